"""
structlog setup for the OTP service.

JSON lines in production, coloured console output in development. One-time
codes, their hashes, passwords and secrets never reach a log sink: the
redaction processor masks them, including inside nested dicts.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor

REDACTED = "***REDACTED***"

# Exact keys, matched case-insensitively
REDACTED_FIELDS = frozenset(
    {
        "code",
        "code_hash",
        "otp",
        "password",
        "password_hash",
        "new_password",
        "authorization",
        "x_admin_token",
    }
)
# Any key containing one of these is masked as well
_SENSITIVE_FRAGMENTS = ("password", "token", "secret", "otp", "api_key")
_STRUCTURAL_KEYS = frozenset({"level", "event", "timestamp", "logger", "error_code"})

_QUIET_LOGGERS = ("httpx", "httpcore", "pymongo")


def get_logger(name: str) -> BoundLogger:
    """
    Example:
        >>> log = get_logger(__name__)
        >>> log.info("challenge_issued", subject_id="a@b.c", purpose="email_verify")
    """
    return structlog.get_logger(name)


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return lowered in REDACTED_FIELDS or any(f in lowered for f in _SENSITIVE_FRAGMENTS)


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: REDACTED if _is_sensitive(str(k)) else _mask(v) for k, v in value.items()
        }
    return value


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    for key, value in list(event_dict.items()):
        if key in _STRUCTURAL_KEYS:
            continue
        event_dict[key] = REDACTED if _is_sensitive(key) else _mask(value)
    return event_dict


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=True, pad_event=15, sort_keys=False)


def setup_logging(
    log_level: Optional[str] = None, log_format: Optional[str] = None
) -> None:
    """
    Configure stdlib logging and structlog. Called once from create_app().

    Arguments left as None fall back to LOG_LEVEL / LOG_FORMAT, then to a
    default chosen by ENV (DEBUG + console in development, INFO + json in
    production).
    """
    env = os.getenv("ENV", "development")
    production = env == "production"
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG")
    log_format = log_format or os.getenv("LOG_FORMAT", "json" if production else "console")

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            add_timestamp,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            redact_sensitive_fields,
            structlog.processors.format_exc_info,
            _renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    get_logger(__name__).info(
        "logging_initialized",
        env=env,
        log_level=log_level,
        log_format=log_format,
        sentry_enabled=bool(os.getenv("SENTRY_DSN")),
    )
