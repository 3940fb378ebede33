"""structlog setup for userhub: JSON or console events, credential redaction, file rotation."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import structlog

LOG_FILE_NAME = "userhub.log"

# Event keys whose values never reach a log sink
REDACTED_KEYS = frozenset({"password", "password_hash", "new_password", "secret_key", "token"})
REDACTED_VALUE = "[REDACTED]"


def redact_credentials(logger, method_name: str, event_dict: dict) -> dict:
    """Mask credential values in an event dict, including one level of nested dicts."""
    for key, value in event_dict.items():
        if key in REDACTED_KEYS:
            event_dict[key] = REDACTED_VALUE
        elif isinstance(value, dict):
            event_dict[key] = {
                k: REDACTED_VALUE if k in REDACTED_KEYS else v for k, v in value.items()
            }
    return event_dict


def _build_processors(debug: bool) -> list:
    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_credentials,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        renderer,
    ]


def _file_handler(log_dir: str, max_bytes: int, backup_count: int) -> logging.Handler | None:
    try:
        os.makedirs(log_dir, exist_ok=True)
        return RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except OSError:
        # Read-only filesystem: stdout only
        return None


def setup_logging(
    debug: bool = False,
    log_dir: str = "logs",
    log_max_bytes: int = 10_000_000,
    log_backup_count: int = 5,
) -> None:
    """Configure structlog and the stdlib root logger.

    Events go to stdout, and to ``<log_dir>/userhub.log`` when that directory
    is writable. Credential keys (see ``REDACTED_KEYS``) are masked before
    rendering.
    """
    log_level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=_build_processors(debug),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handlers = [logging.StreamHandler(sys.stdout)]
    file_handler = _file_handler(log_dir, log_max_bytes, log_backup_count)
    if file_handler is not None:
        handlers.append(file_handler)
    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
