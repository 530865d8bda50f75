from __future__ import annotations

import logging

from member_auth.infrastructure.db.engine import Base, get_engine
from member_auth.infrastructure.db.models import accounts  # noqa: F401  registers the tables
from member_auth.shared.config import get_settings
from member_auth.shared.logging_config import configure_logging


logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()
    configure_logging(settings.log_level)
    if not settings.postgres_dsn:
        logger.error("init_db: postgres_dsn_missing")
        return 1

    engine = get_engine(settings.postgres_dsn, settings.db_connect_timeout_seconds)
    Base.metadata.create_all(engine)
    logger.info("init_db: done tables=%s", len(Base.metadata.tables))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
