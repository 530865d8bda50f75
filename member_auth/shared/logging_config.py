from __future__ import annotations

import logging


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if any(getattr(handler, "_member_auth", False) for handler in root.handlers):
        root.setLevel(level.upper())
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._member_auth = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level.upper())


def mask_email(email: str | None) -> str:
    """Keep the first character of the local part and the domain, e.g. ``a***@x.com``."""
    if not email:
        return "unknown"
    local, sep, domain = email.partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"
