from __future__ import annotations

import logging
from datetime import timedelta

from member_auth.application.services.reset_tokens import ResetTokenService
from member_auth.application.use_cases.cleanup_reset_tokens import CleanupResetTokensUseCase
from member_auth.infrastructure.db.engine import get_engine
from member_auth.infrastructure.db.repositories.reset_token_repository import SqlResetTokenRepository
from member_auth.shared.config import get_settings
from member_auth.shared.logging_config import configure_logging


logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level)
    if not settings.postgres_dsn:
        logger.error("cleanup_reset_tokens: postgres_dsn_missing")
        return 1

    engine = get_engine(
        settings.postgres_dsn,
        settings.db_connect_timeout_seconds,
        settings.db_statement_timeout_ms,
    )
    use_case = CleanupResetTokensUseCase(
        reset_tokens=ResetTokenService(
            reset_token_port=SqlResetTokenRepository(engine),
            ttl=timedelta(minutes=settings.reset_token_ttl_minutes),
        )
    )
    removed = use_case.execute()
    logger.info("cleanup_reset_tokens: done removed=%s", removed)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
