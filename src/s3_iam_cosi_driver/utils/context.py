"""Request context: correlation IDs and deadlines."""

from __future__ import annotations

import contextvars
import time
from contextlib import contextmanager
from typing import Any, Iterator

from ..exceptions import DeadlineExceededError

# Context variable for storing correlation ID
correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Monotonic deadline of the current request
deadline: contextvars.ContextVar[float | None] = contextvars.ContextVar(
    "deadline", default=None
)


def set_correlation_id(corr_id: str) -> None:
    """Set the correlation ID in the current context."""
    correlation_id.set(corr_id)


def get_correlation_id() -> str | None:
    """Get the correlation ID from the current context."""
    return correlation_id.get()


@contextmanager
def request_context(corr_id: str, timeout: float | None = None) -> Iterator[str]:
    """Context manager binding a correlation ID and an optional deadline to a block.

    Args:
        corr_id: Correlation ID to use
        timeout: Seconds from now after which ``check_deadline`` fails

    Yields:
        The correlation ID
    """
    corr_token = correlation_id.set(corr_id)
    deadline_value = time.monotonic() + timeout if timeout is not None else None
    deadline_token = deadline.set(deadline_value)
    try:
        yield corr_id
    finally:
        deadline.reset(deadline_token)
        correlation_id.reset(corr_token)


def remaining_time() -> float | None:
    """Seconds left before the current deadline, or None without a deadline."""
    value = deadline.get()
    if value is None:
        return None
    return value - time.monotonic()


def check_deadline(step: str) -> None:
    """Raise if the current request deadline has passed.

    Args:
        step: Name of the remote step about to run, used in the error message

    Raises:
        DeadlineExceededError: If the deadline has passed
    """
    remaining = remaining_time()
    if remaining is not None and remaining <= 0:
        raise DeadlineExceededError(f"deadline exceeded before {step}")


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get a dictionary of context values.

    Args:
        additional: Additional key-value pairs to include

    Returns:
        Dictionary with context values including correlation_id
    """
    ctx: dict[str, Any] = {}

    corr_id = get_correlation_id()
    if corr_id:
        ctx["correlation_id"] = corr_id

    if additional:
        ctx.update(additional)

    return ctx
