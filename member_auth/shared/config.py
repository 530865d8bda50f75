from __future__ import annotations

import json
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _json(name: str) -> dict:
    value = _env(name)
    if not value:
        return {}
    return json.loads(value)


@dataclass(frozen=True)
class RateLimitPolicy:
    max_requests: int
    window_ms: int


DEFAULT_RATE_LIMITS: dict[str, RateLimitPolicy] = {
    "login": RateLimitPolicy(max_requests=10, window_ms=60 * 1000),
    "signup": RateLimitPolicy(max_requests=10, window_ms=60 * 1000),
    "forgot-password": RateLimitPolicy(max_requests=10, window_ms=60 * 1000),
    "reset-password": RateLimitPolicy(max_requests=10, window_ms=60 * 1000),
    "password-change": RateLimitPolicy(max_requests=5, window_ms=60 * 1000),
    "account-delete": RateLimitPolicy(max_requests=3, window_ms=60 * 60 * 1000),
    "stripe-webhook": RateLimitPolicy(max_requests=10, window_ms=60 * 1000),
}

# https://stripe.com/docs/ips, webhook sources
STRIPE_WEBHOOK_IP_RANGES: tuple[str, ...] = (
    "3.18.12.32/27",
    "3.130.192.128/26",
    "13.235.14.128/26",
    "13.235.122.128/26",
    "18.211.135.32/27",
    "35.154.171.0/26",
    "52.15.183.32/28",
    "54.187.174.160/27",
    "54.187.205.224/27",
    "54.187.216.64/26",
)


@dataclass(frozen=True)
class Settings:
    postgres_dsn: str
    db_connect_timeout_seconds: int
    db_statement_timeout_ms: int
    redis_url: str
    redis_timeout_seconds: float
    session_secret: str
    session_ttl_minutes: int
    reset_token_ttl_minutes: int
    app_url: str
    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_monthly_price_id: str
    stripe_timeout_seconds: float
    sendgrid_api_key: str
    mail_from: str
    mail_timeout_seconds: float
    google_client_id: str
    log_level: str
    rate_limits: dict[str, RateLimitPolicy] = field(default_factory=dict)
    stripe_webhook_ip_check: bool = False
    stripe_webhook_ip_ranges: tuple[str, ...] = STRIPE_WEBHOOK_IP_RANGES

    def rate_limit_for(self, purpose: str) -> RateLimitPolicy:
        policy = self.rate_limits.get(purpose)
        if policy is not None:
            return policy
        return DEFAULT_RATE_LIMITS.get(purpose, DEFAULT_RATE_LIMITS["login"])


def _rate_limits() -> dict[str, RateLimitPolicy]:
    policies = dict(DEFAULT_RATE_LIMITS)
    for purpose, value in _json("RATE_LIMITS").items():
        max_requests, window_ms = value
        policies[purpose] = RateLimitPolicy(max_requests=int(max_requests), window_ms=int(window_ms))
    return policies


def _csv(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = _env(name)
    if not value:
        return default
    return tuple(part.strip() for part in value.split(",") if part.strip())


def get_settings() -> Settings:
    return Settings(
        postgres_dsn=_env("POSTGRES_DSN", ""),
        db_connect_timeout_seconds=int(_env("DB_CONNECT_TIMEOUT_SECONDS", "5")),
        db_statement_timeout_ms=int(_env("DB_STATEMENT_TIMEOUT_MS", "5000")),
        redis_url=_env("REDIS_URL", ""),
        redis_timeout_seconds=float(_env("REDIS_TIMEOUT_SECONDS", "1")),
        session_secret=_env("SESSION_SECRET", ""),
        session_ttl_minutes=int(_env("SESSION_TTL_MINUTES", str(60 * 24 * 30))),
        reset_token_ttl_minutes=int(_env("RESET_TOKEN_TTL_MINUTES", "60")),
        app_url=_env("APP_URL", "http://localhost:3000").rstrip("/"),
        stripe_secret_key=_env("STRIPE_SECRET_KEY", ""),
        stripe_webhook_secret=_env("STRIPE_WEBHOOK_SECRET", ""),
        stripe_monthly_price_id=_env("STRIPE_MONTHLY_PRICE_ID", ""),
        stripe_timeout_seconds=float(_env("STRIPE_TIMEOUT_SECONDS", "10")),
        sendgrid_api_key=_env("SENDGRID_API_KEY", ""),
        mail_from=_env("MAIL_FROM", "noreply@example.com"),
        mail_timeout_seconds=float(_env("MAIL_TIMEOUT_SECONDS", "10")),
        google_client_id=_env("GOOGLE_CLIENT_ID", ""),
        log_level=_env("LOG_LEVEL", "INFO"),
        rate_limits=_rate_limits(),
        stripe_webhook_ip_check=_env("STRIPE_WEBHOOK_IP_CHECK", "false").lower() in {"1", "true", "yes"},
        stripe_webhook_ip_ranges=_csv("STRIPE_WEBHOOK_IP_RANGES", STRIPE_WEBHOOK_IP_RANGES),
    )
