"""Read-modify-write editing of bucket policy documents.

The backend stores one policy document per bucket and only supports whole
document replacement, without conditional writes. Two edits of the same
bucket racing each other can therefore lose one update: callers must
serialize edits per bucket (the COSI sidecar processes one request per
BucketAccess, and separate grants on one bucket have to be queued by the
caller).

``PolicyEditor.with_document`` is the single transaction primitive. It runs an
optional ``conflict_check`` right before writing and re-runs the whole
transaction when that check raises ``PolicyConflictError``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, Iterable, Optional

from .. import metrics
from ..exceptions import InternalError, NotFoundError, PolicyConflictError, PolicyFormatError
from ..policy.document import (
    PolicyDocument,
    allow_statement,
    contains_principal,
    empty_policy,
    parse_policy,
    serialize_policy,
    without_principal,
)
from ..services.backend.base import BackendGateway
from ..tracing import trace_span
from ..utils.context import check_deadline
from .identity import IdentityManager

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONFLICT_RETRIES = 3

Transform = Callable[[Optional[PolicyDocument]], Optional[PolicyDocument]]
ConflictCheck = Callable[[str, Optional[str]], None]


class EditOutcome(str, Enum):
    """What a policy transaction did to the stored document."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    ABSENT = "absent"


def reread_conflict_check(backend: BackendGateway) -> ConflictCheck:
    """Build a conflict check that re-reads the document before writing.

    The check fails when the stored document no longer matches the text the
    transaction started from. A writer landing between the re-read and the
    write still goes unnoticed.
    """

    def check(bucket: str, base_raw: str | None) -> None:
        check_deadline("get_bucket_policy")
        try:
            current = backend.get_bucket_policy(bucket)
        except NotFoundError:
            current = None
        if current != base_raw:
            raise PolicyConflictError(f"policy of bucket {bucket} changed during edit")

    return check


class PolicyEditor:
    """Apply principal grants and revocations to bucket policies."""

    def __init__(
        self,
        backend: BackendGateway,
        identity: IdentityManager,
        conflict_check: ConflictCheck | None = None,
        max_conflict_retries: int = DEFAULT_MAX_CONFLICT_RETRIES,
    ) -> None:
        self.backend = backend
        self.identity = identity
        self.conflict_check = conflict_check
        self.max_conflict_retries = max_conflict_retries

    def with_document(self, bucket: str, transform: Transform, transition: str = "edit") -> EditOutcome:
        """Run a read-modify-write transaction on a bucket policy.

        Args:
            bucket: Bucket name
            transform: Receives the current document (None when the bucket has
                no policy) and returns the desired one (None to delete it)
            transition: Label used for metrics and tracing

        Returns:
            Outcome of the transaction

        Raises:
            InternalError: If the stored document cannot be parsed, a backend
                call fails or conflicts persist after all retries
        """
        attempt = 0
        with trace_span("policy.transaction", {"bucket": bucket, "transition": transition}):
            while True:
                try:
                    outcome = self._run_once(bucket, transform)
                except PolicyConflictError:
                    attempt += 1
                    if attempt > self.max_conflict_retries:
                        metrics.policy_edits_total.labels(transition=transition, outcome="conflict").inc()
                        logger.error(f"Giving up on policy edit of bucket {bucket} after {attempt} conflicts")
                        raise
                    logger.warning(f"Policy of bucket {bucket} changed concurrently, retrying ({attempt})")
                    continue
                metrics.policy_edits_total.labels(transition=transition, outcome=outcome.value).inc()
                logger.info(f"Policy {transition} on bucket {bucket}: {outcome.value}")
                return outcome

    def add_principal(self, bucket: str, principal_name: str, actions: Iterable[str]) -> EditOutcome:
        """Allow a principal the given actions on a bucket.

        A principal already referenced by any statement is left as is, even if
        the existing statement grants different actions.
        """
        principal_id = self.identity.resolve_principal_id(principal_name)
        actions = tuple(actions)

        def transform(document: PolicyDocument | None) -> PolicyDocument | None:
            if document is None:
                logger.info(f"No existing policy for bucket {bucket}, creating a new one")
                document = empty_policy()
            if contains_principal(document, principal_id):
                logger.info(f"User {principal_name} already has access to bucket {bucket}")
                return document
            statement = allow_statement(bucket, principal_id, actions)
            return replace(document, statements=document.statements + (statement,))

        return self.with_document(bucket, transform, transition="add_principal")

    def remove_principal(self, bucket: str, principal_name: str) -> EditOutcome:
        """Remove every reference to a principal from a bucket policy."""
        resolved: dict[str, str | None] = {}

        def principal_id() -> str | None:
            if "id" not in resolved:
                try:
                    resolved["id"] = self.identity.resolve_principal_id(principal_name)
                except NotFoundError:
                    logger.info(f"User {principal_name} does not exist, no policy references to remove")
                    resolved["id"] = None
            return resolved["id"]

        def transform(document: PolicyDocument | None) -> PolicyDocument | None:
            if document is None:
                logger.info(f"No policy exists for bucket {bucket}, nothing to remove")
                return None
            user_id = principal_id()
            if user_id is None or not contains_principal(document, user_id):
                return document
            return without_principal(document, user_id)

        return self.with_document(bucket, transform, transition="remove_principal")

    def _run_once(self, bucket: str, transform: Transform) -> EditOutcome:
        base_raw = self._fetch(bucket)
        base = self._parse(bucket, base_raw)

        desired = transform(base)
        if desired is not None and desired.is_empty():
            desired = None

        if desired == base:
            return EditOutcome.ABSENT if base is None else EditOutcome.UNCHANGED

        if self.conflict_check is not None:
            self.conflict_check(bucket, base_raw)

        if desired is None:
            check_deadline("delete_bucket_policy")
            self.backend.delete_bucket_policy(bucket)
            logger.info(f"Deleted bucket policy of bucket {bucket}, no statements left")
            return EditOutcome.DELETED

        check_deadline("put_bucket_policy")
        self.backend.put_bucket_policy(bucket, serialize_policy(desired))
        return EditOutcome.CREATED if base is None else EditOutcome.UPDATED

    def _fetch(self, bucket: str) -> str | None:
        check_deadline("get_bucket_policy")
        try:
            return self.backend.get_bucket_policy(bucket)
        except NotFoundError:
            return None

    def _parse(self, bucket: str, raw: str | None) -> PolicyDocument | None:
        if raw is None:
            return None
        try:
            return parse_policy(raw)
        except PolicyFormatError as e:
            logger.error(f"Failed to parse policy of bucket {bucket}: {e.message}")
            raise InternalError(f"malformed policy on bucket {bucket}: {e.message}") from e
