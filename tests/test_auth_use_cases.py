from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import FakeAuditLog, FakeMail, make_user
from member_auth.application.dto.auth import (
    ChangePasswordInput,
    ExternalIdentityInfo,
    ForgotPasswordInput,
    LoginGoogleInput,
    LoginLocalInput,
    RegisterUserInput,
    ResetPasswordInput,
)
from member_auth.application.services.reset_tokens import ResetTokenService
from member_auth.application.services.session_issuer import SessionIssuer
from member_auth.application.use_cases.change_password import ChangePasswordUseCase
from member_auth.application.use_cases.forgot_password import FORGOT_PASSWORD_MESSAGE, ForgotPasswordUseCase
from member_auth.application.use_cases.login_google import LoginGoogleUseCase
from member_auth.application.use_cases.login_local import LoginLocalUseCase
from member_auth.application.use_cases.register_user import SIGNUP_MESSAGE, RegisterUserUseCase
from member_auth.application.use_cases.reset_password import ResetPasswordUseCase
from member_auth.domain.exceptions import (
    EmailAlreadyExistsError,
    GoogleTokenValidationError,
    InternalError,
    InvalidCredentialsError,
    InvalidResetTokenError,
    ServiceUnavailableError,
    ValidationError,
    WeakPasswordError,
)
from member_auth.infrastructure.security.token_service import JwtSessionTokenService


class FakeIdentityProvider:
    def __init__(self, info: ExternalIdentityInfo):
        self.info = info

    def verify_id_token(self, *, id_token: str) -> ExternalIdentityInfo:
        if id_token != "valid-google-token":
            raise GoogleTokenValidationError()
        return self.info


def _session_issuer() -> SessionIssuer:
    return SessionIssuer(token_port=JwtSessionTokenService(secret="unit-test-secret-value-32-bytes!", ttl_minutes=60))


def _register(accounts, hasher, clock) -> RegisterUserUseCase:
    return RegisterUserUseCase(accounts_port=accounts, password_hasher=hasher, clock=clock)


def _login(accounts, hasher, clock) -> LoginLocalUseCase:
    return LoginLocalUseCase(
        accounts_port=accounts,
        password_hasher=hasher,
        session_issuer=_session_issuer(),
        clock=clock,
    )


def _reset_tokens(reset_token_port, clock) -> ResetTokenService:
    return ResetTokenService(reset_token_port=reset_token_port, ttl=timedelta(hours=1), clock=clock)


def test_signup_then_authorize(accounts, hasher, clock):
    output = _register(accounts, hasher, clock).execute(
        RegisterUserInput(name="A", email="a@x.com", password="Password123!")
    )
    login = _login(accounts, hasher, clock)

    assert output.message == SIGNUP_MESSAGE
    assert output.user.membership == "free"
    assert login.authorize(email="a@x.com", password="wrong") is None
    identity = login.authorize(email="a@x.com", password="Password123!")
    assert identity is not None
    assert identity.id == output.user.id


def test_signup_normalizes_email(accounts, hasher, clock):
    output = _register(accounts, hasher, clock).execute(
        RegisterUserInput(name="Alice", email="  Alice@Example.COM ", password="Password123!")
    )

    assert output.user.email == "alice@example.com"


def test_signup_duplicate_email_skips_hash_and_create(accounts, hasher, clock):
    accounts.users["user-1"] = make_user(email="alice@example.com")

    with pytest.raises(EmailAlreadyExistsError):
        _register(accounts, hasher, clock).execute(
            RegisterUserInput(name="Alice", email="alice@example.com", password="Password123!")
        )

    assert hasher.hash_calls == 0
    assert len(accounts.users) == 1
    assert accounts.transactions == 0


def test_signup_rejects_weak_password_with_all_errors(accounts, hasher, clock):
    with pytest.raises(WeakPasswordError) as exc_info:
        _register(accounts, hasher, clock).execute(
            RegisterUserInput(name="Alice", email="alice@example.com", password="password")
        )

    assert exc_info.value.status_code == 400
    assert len(exc_info.value.errors) == 3
    assert accounts.users == {}


@pytest.mark.parametrize(
    "name,email",
    [("", "alice@example.com"), ("Alice", "not-an-email"), ("Alice", "")],
)
def test_signup_rejects_invalid_input(accounts, hasher, clock, name, email):
    with pytest.raises(ValidationError):
        _register(accounts, hasher, clock).execute(
            RegisterUserInput(name=name, email=email, password="Password123!")
        )


def test_signup_store_outage_is_retryable(accounts, hasher, clock):
    accounts.fail_with = ServiceUnavailableError()

    with pytest.raises(ServiceUnavailableError) as exc_info:
        _register(accounts, hasher, clock).execute(
            RegisterUserInput(name="Alice", email="alice@example.com", password="Password123!")
        )

    assert exc_info.value.status_code == 503


def test_login_issues_session_and_records_it(accounts, hasher, clock):
    accounts.users["user-1"] = make_user()
    login = _login(accounts, hasher, clock)

    output = login.execute(
        LoginLocalInput(email="alice@example.com", password="Password123!", user_agent="pytest", ip="1.2.3.4")
    )

    assert output.user.id == "user-1"
    assert output.session_token
    [session] = accounts.sessions.values()
    assert session.user_id == "user-1"
    assert session.ip == "1.2.3.4"
    assert _session_issuer().identity_of(output.session_token) == "user-1"


def test_login_failures_are_indistinguishable(accounts, hasher, clock):
    accounts.users["user-1"] = make_user()
    accounts.users["user-2"] = make_user("user-2", email="google@example.com", password_hash=None)
    login = _login(accounts, hasher, clock)

    messages = []
    for email, password in [
        ("alice@example.com", "Wrong123!"),
        ("nobody@example.com", "Password123!"),
        ("google@example.com", "Password123!"),
    ]:
        with pytest.raises(InvalidCredentialsError) as exc_info:
            login.execute(LoginLocalInput(email=email, password=password, user_agent=None, ip=None))
        messages.append(exc_info.value.message)

    assert len(set(messages)) == 1
    assert accounts.sessions == {}


def test_login_store_outage_is_not_a_credential_failure(accounts, hasher, clock):
    accounts.fail_with = ServiceUnavailableError()

    with pytest.raises(ServiceUnavailableError):
        _login(accounts, hasher, clock).authorize(email="alice@example.com", password="Password123!")


def test_login_upgrades_legacy_hash(accounts, clock):
    class UpgradingHasher:
        def verify_and_update(self, plain_password, password_hash):
            return True, "argon2::new"

    accounts.users["user-1"] = make_user(password_hash="bcrypt::old")
    login = LoginLocalUseCase(
        accounts_port=accounts,
        password_hasher=UpgradingHasher(),
        session_issuer=_session_issuer(),
        clock=clock,
    )

    assert login.authorize(email="alice@example.com", password="whatever") is not None
    assert accounts.users["user-1"].password_hash == "argon2::new"


def _google(accounts, clock, *, email_verified: bool = True) -> LoginGoogleUseCase:
    return LoginGoogleUseCase(
        accounts_port=accounts,
        identity_provider=FakeIdentityProvider(
            ExternalIdentityInfo(
                subject="google-sub-1",
                email="Carol@Example.com",
                email_verified=email_verified,
                name="Carol",
            )
        ),
        session_issuer=_session_issuer(),
        clock=clock,
    )


def test_google_login_creates_passwordless_user_once(accounts, clock):
    use_case = _google(accounts, clock)
    command = LoginGoogleInput(id_token="valid-google-token", user_agent=None, ip=None)

    first = use_case.execute(command)
    second = use_case.execute(command)

    assert first.user.id == second.user.id
    assert first.user.email == "carol@example.com"
    assert accounts.users[first.user.id].password_hash is None
    assert len(accounts.identities) == 1


def test_google_login_links_existing_email_account(accounts, clock):
    accounts.users["user-1"] = make_user(email="carol@example.com")

    output = _google(accounts, clock).execute(
        LoginGoogleInput(id_token="valid-google-token", user_agent=None, ip=None)
    )

    assert output.user.id == "user-1"
    assert len(accounts.users) == 1
    [identity] = accounts.identities.values()
    assert identity.user_id == "user-1"


def test_google_login_requires_verified_email(accounts, clock):
    with pytest.raises(GoogleTokenValidationError):
        _google(accounts, clock, email_verified=False).execute(
            LoginGoogleInput(id_token="valid-google-token", user_agent=None, ip=None)
        )

    assert accounts.users == {}


def _forgot(accounts, reset_token_port, clock, mail) -> ForgotPasswordUseCase:
    return ForgotPasswordUseCase(
        accounts_port=accounts,
        reset_tokens=_reset_tokens(reset_token_port, clock),
        mail=mail,
        app_url="https://members.example.com/",
    )


def test_forgot_password_sends_reset_link(accounts, reset_token_port, clock):
    accounts.users["user-1"] = make_user()
    mail = FakeMail()

    output = _forgot(accounts, reset_token_port, clock, mail).execute(ForgotPasswordInput(email="alice@example.com"))

    assert output.message == FORGOT_PASSWORD_MESSAGE
    [token] = reset_token_port.tokens
    [sent] = mail.sent
    assert sent["to"] == "alice@example.com"
    assert f"https://members.example.com/reset-password?token={token}" in sent["text"]
    assert reset_token_port.tokens[token].expires_at == clock.now + timedelta(hours=1)


def test_forgot_password_response_does_not_reveal_accounts(accounts, reset_token_port, clock):
    accounts.users["user-2"] = make_user("user-2", email="google@example.com", password_hash=None)
    accounts.users["user-1"] = make_user()
    mail = FakeMail()
    use_case = _forgot(accounts, reset_token_port, clock, mail)

    known = use_case.execute(ForgotPasswordInput(email="alice@example.com"))
    unknown = use_case.execute(ForgotPasswordInput(email="nobody@example.com"))
    passwordless = use_case.execute(ForgotPasswordInput(email="google@example.com"))

    assert known == unknown == passwordless
    assert len(mail.sent) == 1


def test_forgot_password_swallows_mail_failure(accounts, reset_token_port, clock):
    accounts.users["user-1"] = make_user()

    output = _forgot(accounts, reset_token_port, clock, FakeMail(fail=True)).execute(
        ForgotPasswordInput(email="alice@example.com")
    )

    assert output.message == FORGOT_PASSWORD_MESSAGE


def test_forgot_password_store_failure_is_internal_error(accounts, reset_token_port, clock):
    accounts.fail_with = ServiceUnavailableError()

    with pytest.raises(InternalError) as exc_info:
        _forgot(accounts, reset_token_port, clock, FakeMail()).execute(ForgotPasswordInput(email="alice@example.com"))

    assert exc_info.value.status_code == 500


def test_forgot_password_rejects_invalid_email(accounts, reset_token_port, clock):
    with pytest.raises(ValidationError):
        _forgot(accounts, reset_token_port, clock, FakeMail()).execute(ForgotPasswordInput(email="nope"))


def _reset(accounts, hasher, reset_token_port, clock) -> ResetPasswordUseCase:
    return ResetPasswordUseCase(
        accounts_port=accounts,
        password_hasher=hasher,
        reset_tokens=_reset_tokens(reset_token_port, clock),
        clock=clock,
    )


def test_reset_password_flow_consumes_token(accounts, hasher, reset_token_port, clock):
    accounts.users["user-1"] = make_user()
    _forgot(accounts, reset_token_port, clock, FakeMail()).execute(ForgotPasswordInput(email="alice@example.com"))
    [token] = reset_token_port.tokens
    use_case = _reset(accounts, hasher, reset_token_port, clock)

    use_case.execute(ResetPasswordInput(token=token, password="NewPassword1!"))

    assert accounts.users["user-1"].password_hash == "hashed::NewPassword1!"
    assert reset_token_port.tokens[token].used is True
    assert _login(accounts, hasher, clock).authorize(email="alice@example.com", password="NewPassword1!")
    with pytest.raises(InvalidResetTokenError):
        use_case.execute(ResetPasswordInput(token=token, password="OtherPassword1!"))


def test_reset_password_weak_password_leaves_token_usable(accounts, hasher, reset_token_port, clock):
    accounts.users["user-1"] = make_user()
    service = _reset_tokens(reset_token_port, clock)
    service.save(email="alice@example.com", token="tok-1")

    with pytest.raises(WeakPasswordError):
        _reset(accounts, hasher, reset_token_port, clock).execute(ResetPasswordInput(token="tok-1", password="short"))

    assert service.verify("tok-1") == "alice@example.com"


def test_reset_password_rejects_expired_token(accounts, hasher, reset_token_port, clock):
    accounts.users["user-1"] = make_user()
    _reset_tokens(reset_token_port, clock).save(email="alice@example.com", token="tok-1")
    clock.advance(hours=2)

    with pytest.raises(InvalidResetTokenError):
        _reset(accounts, hasher, reset_token_port, clock).execute(
            ResetPasswordInput(token="tok-1", password="NewPassword1!")
        )

    assert accounts.users["user-1"].password_hash == "hashed::Password123!"


def test_reset_password_lost_consume_race_still_succeeds(accounts, hasher, reset_token_port, clock):
    accounts.users["user-1"] = make_user()
    _reset_tokens(reset_token_port, clock).save(email="alice@example.com", token="tok-1")
    reset_token_port.mark_token_used = lambda *, token, used_at: False

    output = _reset(accounts, hasher, reset_token_port, clock).execute(
        ResetPasswordInput(token="tok-1", password="NewPassword1!")
    )

    assert output.message
    assert accounts.users["user-1"].password_hash == "hashed::NewPassword1!"


def _change(accounts, hasher, clock, audit_log) -> ChangePasswordUseCase:
    return ChangePasswordUseCase(
        accounts_port=accounts,
        password_hasher=hasher,
        audit_log=audit_log,
        clock=clock,
    )


def _change_input(current: str = "Password123!", new: str = "NewPassword1!", confirm: str | None = None):
    return ChangePasswordInput(
        user_id="user-1",
        current_password=current,
        new_password=new,
        confirm_password=new if confirm is None else confirm,
        ip="1.2.3.4",
        user_agent="pytest",
    )


def test_change_password_updates_hash_and_audits(accounts, hasher, clock):
    accounts.users["user-1"] = make_user()
    audit_log = FakeAuditLog()

    _change(accounts, hasher, clock, audit_log).execute(_change_input())

    assert accounts.users["user-1"].password_hash == "hashed::NewPassword1!"
    [entry] = audit_log.entries
    assert entry.action == "password_change"
    assert entry.masked_email == "a***@example.com"
    assert entry.ip == "1.2.3.4"


@pytest.mark.parametrize(
    "command,message",
    [
        (_change_input(confirm="Different1!"), "New passwords do not match."),
        (_change_input(current="Wrong123!"), "Current password is incorrect."),
    ],
)
def test_change_password_rejections(accounts, hasher, clock, command, message):
    accounts.users["user-1"] = make_user()

    with pytest.raises(ValidationError) as exc_info:
        _change(accounts, hasher, clock, FakeAuditLog()).execute(command)

    assert exc_info.value.message == message
    assert accounts.users["user-1"].password_hash == "hashed::Password123!"


def test_change_password_audit_failure_keeps_new_password(accounts, hasher, clock):
    accounts.users["user-1"] = make_user()

    _change(accounts, hasher, clock, FakeAuditLog(fail=True)).execute(_change_input())

    assert accounts.users["user-1"].password_hash == "hashed::NewPassword1!"
