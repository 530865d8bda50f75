from __future__ import annotations

import logging
import time
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, Response

from member_auth.application.services.membership_reconciler import MembershipReconciler
from member_auth.application.services.rate_limiter import (
    RateLimiter,
    build_rate_limit_key,
    client_identity,
    ip_in_networks,
)
from member_auth.application.services.reset_tokens import ResetTokenService
from member_auth.application.services.session_issuer import SessionIssuer
from member_auth.application.use_cases.change_password import ChangePasswordUseCase
from member_auth.application.use_cases.create_checkout_session import CreateCheckoutSessionUseCase
from member_auth.application.use_cases.create_portal_session import CreatePortalSessionUseCase
from member_auth.application.use_cases.delete_account import DeleteAccountUseCase
from member_auth.application.use_cases.forgot_password import ForgotPasswordUseCase
from member_auth.application.use_cases.get_membership import GetMembershipUseCase
from member_auth.application.use_cases.login_google import LoginGoogleUseCase
from member_auth.application.use_cases.login_local import LoginLocalUseCase
from member_auth.application.use_cases.process_stripe_webhook import ProcessStripeWebhookUseCase
from member_auth.application.use_cases.register_user import RegisterUserUseCase
from member_auth.application.use_cases.reset_password import ResetPasswordUseCase
from member_auth.domain.entities.user import User
from member_auth.domain.exceptions import ForbiddenError, RateLimitedError, UnauthorizedError
from member_auth.infrastructure.cache.redis_counter_store import RedisCounterStore
from member_auth.infrastructure.clients.google_oidc_client import GoogleOidcClient
from member_auth.infrastructure.clients.sendgrid_mail_client import SendGridMailClient
from member_auth.infrastructure.clients.stripe_client import StripeClient
from member_auth.infrastructure.db.engine import get_engine
from member_auth.infrastructure.db.repositories.accounts_repository import SqlAccountsRepository
from member_auth.infrastructure.db.repositories.audit_log_repository import SqlAuditLogRepository
from member_auth.infrastructure.db.repositories.billing_ledger_repository import SqlBillingLedgerRepository
from member_auth.infrastructure.db.repositories.reset_token_repository import SqlResetTokenRepository
from member_auth.infrastructure.security.password_hasher import PasswordHasher
from member_auth.infrastructure.security.token_service import JwtSessionTokenService
from member_auth.shared.config import Settings, get_settings


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def _get_db_engine():
    settings = get_app_settings()
    if not settings.postgres_dsn:
        raise HTTPException(status_code=500, detail="POSTGRES_DSN is required.")
    return get_engine(
        settings.postgres_dsn,
        settings.db_connect_timeout_seconds,
        settings.db_statement_timeout_ms,
    )


def _get_accounts_repository() -> SqlAccountsRepository:
    return SqlAccountsRepository(_get_db_engine())


@lru_cache(maxsize=1)
def _get_password_hasher() -> PasswordHasher:
    return PasswordHasher()


@lru_cache(maxsize=1)
def _get_session_issuer() -> SessionIssuer:
    settings = get_app_settings()
    if not settings.session_secret:
        raise HTTPException(status_code=500, detail="SESSION_SECRET is required.")
    return SessionIssuer(
        token_port=JwtSessionTokenService(
            secret=settings.session_secret,
            ttl_minutes=settings.session_ttl_minutes,
        )
    )


@lru_cache(maxsize=1)
def _get_google_oidc_client() -> GoogleOidcClient:
    settings = get_app_settings()
    if not settings.google_client_id:
        raise HTTPException(status_code=500, detail="GOOGLE_CLIENT_ID is required.")
    return GoogleOidcClient(client_id=settings.google_client_id)


@lru_cache(maxsize=1)
def _get_stripe_client() -> StripeClient:
    settings = get_app_settings()
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="STRIPE_SECRET_KEY is required.")
    if not settings.stripe_webhook_secret:
        raise HTTPException(status_code=500, detail="STRIPE_WEBHOOK_SECRET is required.")
    return StripeClient(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        timeout_seconds=settings.stripe_timeout_seconds,
    )


def _get_optional_stripe_client() -> StripeClient | None:
    settings = get_app_settings()
    if not settings.stripe_secret_key or not settings.stripe_webhook_secret:
        return None
    return _get_stripe_client()


@lru_cache(maxsize=1)
def _get_mail_client() -> SendGridMailClient:
    settings = get_app_settings()
    if not settings.sendgrid_api_key:
        raise HTTPException(status_code=500, detail="SENDGRID_API_KEY is required.")
    return SendGridMailClient(
        api_key=settings.sendgrid_api_key,
        from_email=settings.mail_from,
        timeout_seconds=settings.mail_timeout_seconds,
    )


def _get_reset_token_service() -> ResetTokenService:
    settings = get_app_settings()
    return ResetTokenService(
        reset_token_port=SqlResetTokenRepository(_get_db_engine()),
        ttl=timedelta(minutes=settings.reset_token_ttl_minutes),
    )


def _get_membership_reconciler(payment_required: bool = False) -> MembershipReconciler:
    payment_provider = _get_stripe_client() if payment_required else _get_optional_stripe_client()
    return MembershipReconciler(
        accounts_port=_get_accounts_repository(),
        payment_provider=payment_provider,
    )


@lru_cache(maxsize=1)
def _get_counter_store() -> RedisCounterStore:
    settings = get_app_settings()
    if not settings.redis_url:
        raise HTTPException(status_code=500, detail="REDIS_URL is required.")
    return RedisCounterStore.from_url(settings.redis_url, timeout_seconds=settings.redis_timeout_seconds)


def get_rate_limiter() -> RateLimiter:
    return RateLimiter(counter_store=_get_counter_store())


def get_register_user_use_case() -> RegisterUserUseCase:
    return RegisterUserUseCase(
        accounts_port=_get_accounts_repository(),
        password_hasher=_get_password_hasher(),
    )


def get_login_local_use_case() -> LoginLocalUseCase:
    return LoginLocalUseCase(
        accounts_port=_get_accounts_repository(),
        password_hasher=_get_password_hasher(),
        session_issuer=_get_session_issuer(),
    )


def get_login_google_use_case() -> LoginGoogleUseCase:
    return LoginGoogleUseCase(
        accounts_port=_get_accounts_repository(),
        identity_provider=_get_google_oidc_client(),
        session_issuer=_get_session_issuer(),
    )


def get_forgot_password_use_case() -> ForgotPasswordUseCase:
    return ForgotPasswordUseCase(
        accounts_port=_get_accounts_repository(),
        reset_tokens=_get_reset_token_service(),
        mail=_get_mail_client(),
        app_url=get_app_settings().app_url,
    )


def get_reset_password_use_case() -> ResetPasswordUseCase:
    return ResetPasswordUseCase(
        accounts_port=_get_accounts_repository(),
        password_hasher=_get_password_hasher(),
        reset_tokens=_get_reset_token_service(),
    )


def get_change_password_use_case() -> ChangePasswordUseCase:
    return ChangePasswordUseCase(
        accounts_port=_get_accounts_repository(),
        password_hasher=_get_password_hasher(),
        audit_log=SqlAuditLogRepository(_get_db_engine()),
    )


def get_delete_account_use_case() -> DeleteAccountUseCase:
    return DeleteAccountUseCase(
        accounts_port=_get_accounts_repository(),
        membership_reconciler=_get_membership_reconciler(),
        audit_log=SqlAuditLogRepository(_get_db_engine()),
    )


def get_get_membership_use_case() -> GetMembershipUseCase:
    return GetMembershipUseCase(membership_reconciler=_get_membership_reconciler())


def get_create_checkout_session_use_case() -> CreateCheckoutSessionUseCase:
    return CreateCheckoutSessionUseCase(
        accounts_port=_get_accounts_repository(),
        payment_provider=_get_stripe_client(),
        membership_reconciler=_get_membership_reconciler(payment_required=True),
        price_id=get_app_settings().stripe_monthly_price_id,
    )


def get_create_portal_session_use_case() -> CreatePortalSessionUseCase:
    return CreatePortalSessionUseCase(
        membership_reconciler=_get_membership_reconciler(payment_required=True),
        payment_provider=_get_stripe_client(),
    )


def get_process_stripe_webhook_use_case() -> ProcessStripeWebhookUseCase:
    return ProcessStripeWebhookUseCase(
        accounts_port=_get_accounts_repository(),
        payment_provider=_get_stripe_client(),
        billing_ledger=SqlBillingLedgerRepository(_get_db_engine()),
        membership_reconciler=_get_membership_reconciler(payment_required=True),
        mail=_get_mail_client(),
        app_url=get_app_settings().app_url,
    )


def get_session_issuer() -> SessionIssuer:
    return _get_session_issuer()


def get_accounts_repository() -> SqlAccountsRepository:
    return _get_accounts_repository()


def get_caller_ip(
    x_forwarded_for: str | None = Header(default=None),
    x_real_ip: str | None = Header(default=None),
) -> str:
    return client_identity(forwarded_for=x_forwarded_for, real_ip=x_real_ip)


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):].strip() or None


def get_optional_current_user(
    authorization: str | None = Header(default=None),
    session_issuer: SessionIssuer = Depends(get_session_issuer),
    accounts_port: SqlAccountsRepository = Depends(get_accounts_repository),
) -> User | None:
    user_id = session_issuer.identity_of(_bearer_token(authorization))
    if user_id is None:
        return None
    user = accounts_port.get_user_by_id(user_id=user_id)
    if user is None or user.is_deleted:
        return None
    return user


def get_current_user(user: User | None = Depends(get_optional_current_user)) -> User:
    if user is None:
        raise UnauthorizedError()
    return user


def require_paid_member(user: User = Depends(get_current_user)) -> User:
    if not MembershipReconciler.has_access(user, "paid"):
        raise ForbiddenError("A paid membership is required.")
    return user


def rate_limit(purpose: str):
    def _dependency(
        response: Response,
        caller: str = Depends(get_caller_ip),
        limiter: RateLimiter = Depends(get_rate_limiter),
        settings: Settings = Depends(get_app_settings),
    ) -> None:
        policy = settings.rate_limit_for(purpose)
        result = limiter.allow(
            key=build_rate_limit_key(purpose, caller),
            window_ms=policy.window_ms,
            max_requests=policy.max_requests,
        )
        if not result.success:
            logger.warning("rate_limit: denied purpose=%s caller=%s", purpose, caller)
            raise RateLimitedError(
                limit=result.limit,
                reset_at_epoch_seconds=result.reset_at_epoch_seconds,
                retry_after_seconds=max(result.reset_at_epoch_seconds - int(time.time()), 0),
            )
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(result.reset_at_epoch_seconds)

    return _dependency


def require_stripe_source_ip(
    caller: str = Depends(get_caller_ip),
    settings: Settings = Depends(get_app_settings),
) -> None:
    if not settings.stripe_webhook_ip_check:
        return
    if not ip_in_networks(caller, settings.stripe_webhook_ip_ranges):
        logger.warning("stripe_webhook: rejected_source_ip caller=%s", caller)
        raise ForbiddenError()
