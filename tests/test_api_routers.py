from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from conftest import FakeAuditLog, make_user
from member_auth.api import deps
from member_auth.application.dto.billing import StripeWebhookOutput
from member_auth.application.services.membership_reconciler import MembershipReconciler
from member_auth.application.services.rate_limiter import RateLimiter
from member_auth.application.services.session_issuer import SessionIssuer
from member_auth.application.use_cases.change_password import ChangePasswordUseCase
from member_auth.application.use_cases.delete_account import DeleteAccountUseCase
from member_auth.application.use_cases.get_membership import GetMembershipUseCase
from member_auth.application.use_cases.login_local import LoginLocalUseCase
from member_auth.application.use_cases.register_user import RegisterUserUseCase
from member_auth.domain.entities.user import DeletedAccount
from member_auth.domain.exceptions import BillingError, ForbiddenError, UnauthorizedError
from member_auth.infrastructure.security.token_service import JwtSessionTokenService
from member_auth.main import create_app
from member_auth.shared.config import RateLimitPolicy, Settings


class InMemoryCounterStore:
    def __init__(self):
        self.sets: dict[str, dict[str, float]] = {}

    def range_by_score(self, *, key, min_score, max_score):
        return [(m, s) for m, s in self.sets.get(key, {}).items() if min_score <= s <= max_score]

    def add_scored(self, *, key, score, member):
        self.sets.setdefault(key, {})[member] = score

    def remove_range_by_score(self, *, key, min_score, max_score):
        members = self.sets.get(key, {})
        doomed = [m for m, s in members.items() if min_score <= s <= max_score]
        for member in doomed:
            del members[member]
        return len(doomed)

    def expire(self, *, key, seconds):
        return None


class FakeWebhookUseCase:
    def __init__(self):
        self.ran_on_event_loop: bool | None = None

    def execute(self, command):
        try:
            asyncio.get_running_loop()
            self.ran_on_event_loop = True
        except RuntimeError:
            self.ran_on_event_loop = False
        if command.signature != "t=1,v1=good":
            raise BillingError("Invalid Stripe webhook signature.")
        return StripeWebhookOutput(event_type="customer.subscription.updated", handled=True)


def _settings() -> Settings:
    return Settings(
        postgres_dsn="",
        db_connect_timeout_seconds=5,
        db_statement_timeout_ms=5000,
        redis_url="",
        redis_timeout_seconds=1.0,
        session_secret="unit-test-secret-value-32-bytes!",
        session_ttl_minutes=60,
        reset_token_ttl_minutes=60,
        app_url="https://members.example.com",
        stripe_secret_key="",
        stripe_webhook_secret="",
        stripe_monthly_price_id="",
        stripe_timeout_seconds=10.0,
        sendgrid_api_key="",
        mail_from="noreply@example.com",
        mail_timeout_seconds=10.0,
        google_client_id="",
        log_level="INFO",
        rate_limits={
            "signup": RateLimitPolicy(max_requests=2, window_ms=60_000),
            "stripe-webhook": RateLimitPolicy(max_requests=2, window_ms=60_000),
        },
    )


@pytest.fixture
def session_issuer() -> SessionIssuer:
    return SessionIssuer(token_port=JwtSessionTokenService(secret="unit-test-secret-value-32-bytes!", ttl_minutes=60))


@pytest.fixture
def webhook_use_case() -> FakeWebhookUseCase:
    return FakeWebhookUseCase()


@pytest.fixture
def client(accounts, hasher, clock, session_issuer, webhook_use_case):
    app = create_app()
    limiter = RateLimiter(counter_store=InMemoryCounterStore())
    reconciler = MembershipReconciler(accounts_port=accounts, payment_provider=None, clock=clock)
    app.dependency_overrides[deps.get_app_settings] = _settings
    app.dependency_overrides[deps.get_rate_limiter] = lambda: limiter
    app.dependency_overrides[deps.get_session_issuer] = lambda: session_issuer
    app.dependency_overrides[deps.get_accounts_repository] = lambda: accounts
    app.dependency_overrides[deps.get_register_user_use_case] = lambda: RegisterUserUseCase(
        accounts_port=accounts, password_hasher=hasher, clock=clock
    )
    app.dependency_overrides[deps.get_login_local_use_case] = lambda: LoginLocalUseCase(
        accounts_port=accounts, password_hasher=hasher, session_issuer=session_issuer, clock=clock
    )
    app.dependency_overrides[deps.get_change_password_use_case] = lambda: ChangePasswordUseCase(
        accounts_port=accounts, password_hasher=hasher, audit_log=FakeAuditLog(), clock=clock
    )
    app.dependency_overrides[deps.get_delete_account_use_case] = lambda: DeleteAccountUseCase(
        accounts_port=accounts, membership_reconciler=reconciler, audit_log=FakeAuditLog(), clock=clock
    )
    app.dependency_overrides[deps.get_get_membership_use_case] = lambda: GetMembershipUseCase(
        membership_reconciler=reconciler
    )
    app.dependency_overrides[deps.get_process_stripe_webhook_use_case] = lambda: webhook_use_case
    return TestClient(app)


def _auth_header(session_issuer: SessionIssuer, user_id: str = "user-1") -> dict[str, str]:
    return {"Authorization": f"Bearer {session_issuer.issue(user_id=user_id).token}"}


def test_signup_returns_user_and_rate_limit_headers(client):
    response = client.post(
        "/auth/signup",
        json={"email": "a@x.com", "password": "Password123!", "name": "A"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "a@x.com"
    assert body["user"]["membership"] == "free"
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "1"


def test_signup_weak_password_lists_every_problem(client):
    response = client.post(
        "/auth/signup",
        json={"email": "a@x.com", "password": "password", "name": "A"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "weak_password"
    assert len(body["errors"]) == 3


def test_signup_over_limit_is_429_with_retry_headers(client):
    payload = {"email": "a@x.com", "password": "Password123!", "name": "A"}
    headers = {"X-Forwarded-For": "203.0.113.7"}
    for _ in range(2):
        client.post("/auth/signup", json=payload, headers=headers)

    response = client.post("/auth/signup", json=payload, headers=headers)

    assert response.status_code == 429
    assert response.json()["error"] == "rate_limited"
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert int(response.headers["Retry-After"]) >= 0
    assert "X-RateLimit-Reset" in response.headers


def test_missing_field_is_validation_error(client):
    response = client.post("/auth/login", json={"email": "a@x.com"})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_login_flow(client, accounts):
    accounts.users["user-1"] = make_user()

    bad = client.post("/auth/login", json={"email": "alice@example.com", "password": "Wrong123!"})
    good = client.post("/auth/login", json={"email": "alice@example.com", "password": "Password123!"})

    assert bad.status_code == 401
    assert bad.json()["error"] == "invalid_credentials"
    assert good.status_code == 200
    assert good.json()["token_type"] == "bearer"
    assert good.json()["user"]["id"] == "user-1"


def test_membership_requires_session(client, accounts, session_issuer):
    accounts.users["user-1"] = make_user(membership="paid")

    anonymous = client.get("/account/membership")
    authed = client.get("/account/membership", headers=_auth_header(session_issuer))

    assert anonymous.status_code == 401
    assert anonymous.json()["error"] == "unauthorized"
    assert authed.status_code == 200
    assert authed.json()["membership"] == "paid"


def test_change_password_returns_no_content(client, accounts, session_issuer):
    accounts.users["user-1"] = make_user()

    response = client.patch(
        "/account/password",
        json={"currentPassword": "Password123!", "newPassword": "NewPassword1!", "confirmPassword": "NewPassword1!"},
        headers=_auth_header(session_issuer),
    )

    assert response.status_code == 204
    assert accounts.users["user-1"].password_hash == "hashed::NewPassword1!"


def test_delete_account_of_someone_else_is_forbidden(client, accounts, session_issuer):
    accounts.users["user-1"] = make_user()

    response = client.request(
        "DELETE",
        "/account",
        json={"userId": "user-2", "confirmEmail": "alice@example.com"},
        headers=_auth_header(session_issuer),
    )

    assert response.status_code == 403
    assert not accounts.users["user-1"].is_deleted


def test_delete_account_then_session_is_dead(client, accounts, session_issuer):
    accounts.users["user-1"] = make_user()
    headers = _auth_header(session_issuer)

    response = client.request(
        "DELETE",
        "/account",
        json={"userId": "user-1", "confirmEmail": "alice@example.com"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.get("/account/membership", headers=headers).status_code == 401


def test_delete_account_anonymous_is_unauthorized(client):
    response = client.request("DELETE", "/account", json={"userId": "user-1", "confirmEmail": "a@x.com"})

    assert response.status_code == 401


def test_webhook_signature_failure_is_400(client):
    ok = client.post("/billing/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=good"})
    bad = client.post("/billing/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=forged"})

    assert ok.status_code == 200
    assert ok.json()["handled"] is True
    assert bad.status_code == 400
    assert bad.json()["error"] == "billing_error"


def test_webhook_runs_off_the_event_loop(client, webhook_use_case):
    response = client.post("/billing/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=good"})

    assert response.status_code == 200
    assert webhook_use_case.ran_on_event_loop is False


def test_webhook_is_rate_limited_per_caller(client):
    headers = {"Stripe-Signature": "t=1,v1=good", "X-Forwarded-For": "3.18.12.40"}
    for _ in range(2):
        assert client.post("/billing/webhook", content=b"{}", headers=headers).status_code == 200

    response = client.post("/billing/webhook", content=b"{}", headers=headers)

    assert response.status_code == 429
    assert response.json()["error"] == "rate_limited"


def test_webhook_source_ip_check_when_enabled(client):
    client.app.dependency_overrides[deps.get_app_settings] = lambda: replace(_settings(), stripe_webhook_ip_check=True)
    signature = {"Stripe-Signature": "t=1,v1=good"}

    from_stripe = client.post("/billing/webhook", content=b"{}", headers={**signature, "X-Forwarded-For": "3.18.12.40"})
    from_elsewhere = client.post(
        "/billing/webhook", content=b"{}", headers={**signature, "X-Forwarded-For": "198.51.100.7"}
    )
    no_address = client.post("/billing/webhook", content=b"{}", headers=signature)

    assert from_stripe.status_code == 200
    assert from_elsewhere.status_code == 403
    assert from_elsewhere.json()["error"] == "forbidden"
    assert no_address.status_code == 403


def test_webhook_source_ip_check_is_off_by_default(client):
    response = client.post(
        "/billing/webhook",
        content=b"{}",
        headers={"Stripe-Signature": "t=1,v1=good", "X-Forwarded-For": "198.51.100.7"},
    )

    assert response.status_code == 200


def test_server_error_detail_is_not_exposed(client):
    @client.app.get("/misconfigured")
    def misconfigured():
        raise HTTPException(status_code=500, detail="POSTGRES_DSN is required.")

    response = client.get("/misconfigured")

    assert response.status_code == 500
    assert response.json() == {"error": "internal_error", "message": "An unexpected error occurred."}


def test_require_paid_member_blocks_free_user():
    with pytest.raises(ForbiddenError):
        deps.require_paid_member(user=make_user())


def test_require_paid_member_allows_paid_user():
    user = make_user(membership="paid")

    assert deps.require_paid_member(user=user) is user


def test_current_user_ignores_deleted_accounts(accounts, session_issuer, clock):
    accounts.users["user-1"] = replace(make_user(), state=DeletedAccount(deleted_at=clock.now))
    token = session_issuer.issue(user_id="user-1").token

    user = deps.get_optional_current_user(
        authorization=f"Bearer {token}",
        session_issuer=session_issuer,
        accounts_port=accounts,
    )

    assert user is None
    with pytest.raises(UnauthorizedError):
        deps.get_current_user(user=None)
