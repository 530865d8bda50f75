from __future__ import annotations

from passlib.context import CryptContext

from member_auth.infrastructure.security.password_hasher import PasswordHasher


def test_hash_and_verify_roundtrip():
    hasher = PasswordHasher()

    password_hash = hasher.hash("Password123!")

    assert password_hash.startswith("$argon2")
    assert hasher.verify("Password123!", password_hash) is True
    assert hasher.verify("Password123?", password_hash) is False


def test_same_password_gets_a_fresh_salt():
    hasher = PasswordHasher()

    assert hasher.hash("Password123!") != hasher.hash("Password123!")


def test_malformed_hash_returns_false():
    hasher = PasswordHasher()

    assert hasher.verify("Password123!", "not-a-hash") is False
    assert hasher.verify_and_update("Password123!", "not-a-hash") == (False, None)


def test_bcrypt_hash_verifies_and_is_upgraded():
    legacy_hash = CryptContext(schemes=["bcrypt"]).hash("Password123!")
    hasher = PasswordHasher()

    verified, replacement = hasher.verify_and_update("Password123!", legacy_hash)

    assert verified is True
    assert replacement is not None
    assert replacement.startswith("$argon2")
