"""Structured logging configuration for the S3 IAM COSI driver."""

import json
import logging
import os
import sys
from typing import Any

from .constants import CONTROLLER_NAME
from .utils.context import get_context_dict


def setup_structured_logging(level: str | None = None) -> None:
    """Configure structured JSON logging."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def log_driver_event(
    logger: logging.Logger,
    operation: str,
    bucket: str,
    principal: str | None,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured driver event."""
    log_data = {
        "controller": CONTROLLER_NAME,
        "operation": operation,
        "bucket": bucket,
        "principal": principal,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(kwargs)
    log_data = get_context_dict(sanitize_secrets(log_data))
    logger.log(level, json.dumps(log_data, default=str))


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Remove secret fields from log data."""
    secret_fields = {
        "access_key",
        "secret_key",
        "secret_access_key",
        "accessSecretKey",
        "session_token",
        "password",
    }
    sanitized = log_data.copy()
    for field in secret_fields:
        if field in sanitized:
            sanitized[field] = "***REDACTED***"
    return sanitized
