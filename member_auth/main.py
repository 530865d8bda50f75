from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from member_auth.api.errors import register_exception_handlers
from member_auth.api.routers.account import router as account_router
from member_auth.api.routers.auth import router as auth_router
from member_auth.api.routers.billing import router as billing_router
from member_auth.shared.config import get_settings
from member_auth.shared.logging_config import configure_logging


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Member Auth API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"],
    )
    app.include_router(auth_router)
    app.include_router(account_router)
    app.include_router(billing_router)
    register_exception_handlers(app)
    return app


app = create_app()
