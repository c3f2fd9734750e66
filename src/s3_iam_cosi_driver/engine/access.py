"""Grant and revoke bucket access for a principal."""

from __future__ import annotations

import logging
import re
import time
from typing import Iterable

from .. import metrics
from ..constants import PRINCIPAL_NAME_PREFIX
from ..exceptions import DriverError, InvalidArgumentError
from ..services.aws.models import Credential
from ..services.backend.base import BackendGateway
from ..tracing import add_span_attribute, trace_span
from .identity import IdentityManager
from .policy_editor import ConflictCheck, PolicyEditor

logger = logging.getLogger(__name__)


# Lowercase letters, digits, dots and hyphens; starts and ends alphanumeric
_BUCKET_NAME = re.compile(r"[a-z0-9](?:[a-z0-9.-]{0,61}[a-z0-9])?")
# IAM user name charset
_PRINCIPAL_NAME = re.compile(r"[\w+=,.@-]{1,64}", re.ASCII)


def principal_name_for_grant(grant_id: str) -> str:
    """Return the principal name used for a COSI access grant."""
    return f"{PRINCIPAL_NAME_PREFIX}{grant_id}"


def _require_name(kind: str, value: object, pattern: re.Pattern[str]) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{kind} must be a non-empty string")
    if not pattern.fullmatch(value):
        raise InvalidArgumentError(f"invalid {kind} {value!r}")
    return value


def _normalize_actions(actions: Iterable[str]) -> list[str]:
    if isinstance(actions, str):
        raise InvalidArgumentError("actions must be a collection of action names, not a string")
    normalized: list[str] = []
    for action in actions:
        if not isinstance(action, str) or not action.strip():
            raise InvalidArgumentError(f"invalid action {action!r}")
        if action not in normalized:
            normalized.append(action)
    if not normalized:
        raise InvalidArgumentError("at least one action is required")
    return normalized


class AccessEngine:
    """Caller-facing grant and revoke operations."""

    def __init__(self, backend: BackendGateway, conflict_check: ConflictCheck | None = None) -> None:
        self.backend = backend
        self.identity = IdentityManager(backend)
        self.policies = PolicyEditor(backend, self.identity, conflict_check=conflict_check)

    def grant_access(self, bucket: str, principal_name: str, actions: Iterable[str]) -> Credential:
        """Give a principal access to a bucket and return a credential for it.

        Safe to retry: a repeated grant leaves the policy document as it is,
        although it mints another credential each time.

        Raises:
            InvalidArgumentError: For blank names or an empty action set
            InternalError: If a backend call fails
        """
        bucket = _require_name("bucket", bucket, _BUCKET_NAME)
        principal_name = _require_name("principal name", principal_name, _PRINCIPAL_NAME)
        action_list = _normalize_actions(actions)

        start_time = time.time()
        result = "success"
        with trace_span("access.grant", {"bucket": bucket, "principal": principal_name}):
            try:
                credential = self.identity.ensure_principal(principal_name)
                outcome = self.policies.add_principal(bucket, principal_name, action_list)
                add_span_attribute("policy.outcome", outcome.value)
            except DriverError as e:
                result = e.code
                raise
            except Exception:
                result = "error"
                raise
            finally:
                self._record("grant_access", result, start_time)

        logger.info(f"Granted {action_list} on bucket {bucket} to {principal_name} ({outcome.value})")
        return credential

    def revoke_access(self, bucket: str, principal_name: str) -> None:
        """Remove a principal from a bucket policy, then delete the principal.

        Revoking a principal that has no grant succeeds without changes.
        """
        bucket = _require_name("bucket", bucket, _BUCKET_NAME)
        principal_name = _require_name("principal name", principal_name, _PRINCIPAL_NAME)

        start_time = time.time()
        result = "success"
        with trace_span("access.revoke", {"bucket": bucket, "principal": principal_name}):
            try:
                outcome = self.policies.remove_principal(bucket, principal_name)
                add_span_attribute("policy.outcome", outcome.value)
                self.identity.delete_principal(principal_name)
            except DriverError as e:
                result = e.code
                raise
            except Exception:
                result = "error"
                raise
            finally:
                self._record("revoke_access", result, start_time)

        logger.info(f"Revoked access of {principal_name} on bucket {bucket} ({outcome.value})")

    @staticmethod
    def _record(operation: str, result: str, start_time: float) -> None:
        metrics.access_operations_total.labels(operation=operation, result=result).inc()
        metrics.access_operation_duration_seconds.labels(operation=operation).observe(time.time() - start_time)
