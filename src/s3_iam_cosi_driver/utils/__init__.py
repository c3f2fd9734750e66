"""Utility functions for the S3 IAM COSI driver."""

from .context import (
    check_deadline,
    get_context_dict,
    get_correlation_id,
    remaining_time,
    request_context,
    set_correlation_id,
)
from .errors import sanitize_dict, sanitize_error_message, sanitize_exception
from .secrets import read_secret_data

__all__ = [
    "set_correlation_id",
    "get_correlation_id",
    "request_context",
    "remaining_time",
    "check_deadline",
    "get_context_dict",
    "sanitize_error_message",
    "sanitize_exception",
    "sanitize_dict",
    "read_secret_data",
]
