"""Logging configuration helpers."""

import json
import logging

_META_KEYS = (
    ("session_id", "session"),
    ("feature", "feature"),
    ("flow", "flow"),
    ("user_id", "user"),
    ("custom_id", "customId"),
    ("reason", "reason"),
    ("error", "error"),
)


def configure_logging() -> None:
    """Configure application logging with a single stream handler."""
    logger = logging.getLogger("modal_sessions")
    logger.setLevel(logging.INFO)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False


def describe_error(error: object) -> str:
    """Render an error value for a single log line."""
    if isinstance(error, BaseException):
        return f"{type(error).__name__}: {error}"
    if isinstance(error, str):
        return error
    try:
        return json.dumps(error)
    except (TypeError, ValueError):
        return str(error)


def format_meta(**meta: object) -> str:
    """Format known metadata keys in a stable order, skipping empty ones."""
    parts = []
    for key, label in _META_KEYS:
        value = meta.get(key)
        if value is None or value == "":
            continue
        rendered = describe_error(value) if key == "error" else str(value)
        parts.append(f"{label}={rendered}")
    return f" {' '.join(parts)}" if parts else ""


def log_event(
    logger: logging.Logger, level: int, event: str, **meta: object
) -> None:
    """Log a modal protocol event with its metadata."""
    extra = {
        f"modal_{key}": value for key, value in meta.items() if value is not None
    }
    logger.log(level, "[RawModal] %s%s", event, format_meta(**meta), extra=extra)
