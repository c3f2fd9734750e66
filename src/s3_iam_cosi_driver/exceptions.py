"""Error taxonomy for the S3 IAM COSI driver.

Every error raised across the engine boundary is a ``DriverError``. The
``code`` attribute carries the gRPC status name the orchestration layer
reports, and ``retryable`` tells it whether requeueing with backoff makes
sense.
"""

from __future__ import annotations


class DriverError(Exception):
    """Base class for driver errors."""

    code = "Internal"
    retryable = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(DriverError):
    """A principal, policy document, credential or bucket is absent."""

    code = "NotFound"


class AlreadyExistsError(DriverError):
    """The resource being created already exists."""

    code = "AlreadyExists"
    retryable = False


class InvalidArgumentError(DriverError):
    """Malformed bucket or principal name, empty action set, bad configuration."""

    code = "InvalidArgument"
    retryable = False


class InternalError(DriverError):
    """Remote call failure, timeout or serialization failure."""


class PolicyFormatError(InternalError):
    """A bucket policy document could not be parsed."""


class DeadlineExceededError(InternalError):
    """The request deadline passed before the operation finished."""

    code = "DeadlineExceeded"


class PolicyConflictError(InternalError):
    """A concurrent writer changed the policy document between read and write."""

    code = "Aborted"
