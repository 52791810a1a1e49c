"""Logging setup and structured event lines for the content store."""
import json
import logging
from typing import Any

from content_store.core.config import Settings, get_settings
from content_store.core.logging_redaction import redact_for_log

ROOT_LOGGER = "content_store"


def configure_logging(settings: Settings | None = None) -> logging.Logger:
    """Attach a single stream handler to the library logger (plain lines, or raw JSON when log_json)."""
    settings = settings or get_settings()
    root = logging.getLogger(ROOT_LOGGER)
    for h in root.handlers[:]:
        root.removeHandler(h)
    h = logging.StreamHandler()
    if settings.log_json:
        h.setFormatter(logging.Formatter("%(message)s"))
    else:
        h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(h)
    root.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    return root


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    message: str,
    *args: Any,
    log_json: bool | None = None,
    **fields: Any,
) -> None:
    """Log one structured line for event. Fields are redacted before they reach any handler.

    log_json None falls back to the process-wide settings.
    """
    if not logger.isEnabledFor(level):
        return
    extra = redact_for_log(fields)
    if log_json is None:
        log_json = get_settings().log_json
    # Single JSON line when log_json; else standard log with extra
    if log_json:
        logger.log(level, json.dumps({"event": event, **extra}, default=str))
    else:
        logger.log(level, message, *args, extra={"event": event, **extra})
