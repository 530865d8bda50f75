from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID
import unittest

from sqlalchemy.exc import IntegrityError, OperationalError

from member_auth.domain.exceptions import ServiceUnavailableError
from member_auth.infrastructure.db.errors import store_errors
from member_auth.infrastructure.db.mappers.accounts_mapper import map_row_to_reset_token, map_row_to_user


CREATED = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _user_row(**overrides):
    row = {
        "id": UUID("8b6f1d1e-58a4-4f3c-9d5a-3f0c2f6a1b11"),
        "name": "Alice",
        "email": "alice@example.com",
        "password_hash": "$argon2id$...",
        "membership": "paid",
        "stripe_customer_id": "cus_1",
        "stripe_subscription_id": "sub_1",
        "payment_status": "active",
        "membership_updated_at": CREATED,
        "deleted_at": None,
        "deletion_audit_id": None,
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    row.update(overrides)
    return row


class AccountsMapperTests(unittest.TestCase):
    def test_map_row_to_user_active_account(self):
        user = map_row_to_user(_user_row())

        self.assertEqual(user.id, "8b6f1d1e-58a4-4f3c-9d5a-3f0c2f6a1b11")
        self.assertTrue(user.is_paid)
        self.assertFalse(user.is_deleted)
        self.assertEqual(user.stripe_subscription_id, "sub_1")

    def test_map_row_to_user_deleted_account_keeps_audit_reference(self):
        user = map_row_to_user(
            _user_row(deleted_at=CREATED, deletion_audit_id="audit-1", membership=None, password_hash=None)
        )

        self.assertTrue(user.is_deleted)
        self.assertEqual(user.state.audit_trail_id, "audit-1")
        self.assertEqual(user.membership, "free")
        self.assertFalse(user.has_password)

    def test_map_row_to_reset_token(self):
        token = map_row_to_reset_token(
            {
                "token": "abc",
                "email": "alice@example.com",
                "expires_at": CREATED,
                "used": 0,
                "created_at": CREATED,
                "used_at": None,
            }
        )

        self.assertIs(token.used, False)
        self.assertTrue(token.is_expired(CREATED))


class StoreErrorsTests(unittest.TestCase):
    def test_connection_failure_becomes_service_unavailable(self):
        with self.assertRaises(ServiceUnavailableError):
            with store_errors("get_user_by_email"):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    def test_other_database_errors_propagate(self):
        with self.assertRaises(IntegrityError):
            with store_errors("create_user"):
                raise IntegrityError("INSERT", {}, Exception("duplicate key"))


if __name__ == "__main__":
    unittest.main()
