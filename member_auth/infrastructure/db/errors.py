from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import InterfaceError, OperationalError, TimeoutError as PoolTimeoutError

from member_auth.domain.exceptions import ServiceUnavailableError


logger = logging.getLogger(__name__)

UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Report connection loss, pool exhaustion and statement timeouts as retryable."""
    try:
        yield
    except UNAVAILABLE_ERRORS as exc:
        logger.error("record_store: unavailable operation=%s error=%s", operation, type(exc).__name__)
        raise ServiceUnavailableError() from exc
