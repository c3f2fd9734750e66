"""COSI provisioner verbs mapped onto the access engine.

The process hosting the provisioner calls
``logging.setup_structured_logging()`` and ``tracing.initialize_tracing()``
once at startup; this module only emits events and spans.
"""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Mapping

from kubernetes import client, config

from .. import metrics
from ..builders.backend import create_backend_from_parameters
from ..constants import (
    EVENT_REASON_ACCESS_GRANTED,
    EVENT_REASON_ACCESS_REVOKED,
    EVENT_REASON_BUCKET_CREATED,
    EVENT_REASON_BUCKET_DELETED,
    EVENT_REASON_BUCKET_EXISTS,
    EVENT_REASON_REQUEST_FAILED,
    OP_CREATE_BUCKET,
    OP_DELETE_BUCKET,
    OP_GRANT_ACCESS,
    OP_REVOKE_ACCESS,
)
from ..engine.access import AccessEngine, principal_name_for_grant
from ..exceptions import AlreadyExistsError, DriverError, InternalError, NotFoundError
from ..k8s.bucket_access import get_bucket_access_and_class, get_bucket_parameters, resolve_access_mode
from ..logging import log_driver_event
from ..policy.actions import get_allowed_actions
from ..services.aws.client import AWSBackend
from ..services.aws.models import BackendParams
from ..tracing import trace_span
from ..utils.context import request_context
from ..utils.errors import sanitize_dict, sanitize_exception

BackendFactory = Callable[[Mapping[str, str], client.CoreV1Api], tuple[AWSBackend, BackendParams]]


def _request_timeout() -> float | None:
    raw = os.getenv("REQUEST_TIMEOUT_SECONDS")
    return float(raw) if raw else None


class Provisioner:
    """Implements the four COSI driver verbs.

    Responses are plain mappings shaped like the COSI gRPC messages, so a
    gRPC servicer only has to copy fields across.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api | None = None,
        custom_api: client.CustomObjectsApi | None = None,
        backend_factory: BackendFactory = create_backend_from_parameters,
        request_timeout: float | None = None,
    ) -> None:
        if core_api is None or custom_api is None:
            try:
                config.load_incluster_config()
            except config.ConfigException:
                config.load_kube_config()
        self.core_api = core_api or client.CoreV1Api()
        self.custom_api = custom_api or client.CustomObjectsApi()
        self.backend_factory = backend_factory
        self.request_timeout = request_timeout if request_timeout is not None else _request_timeout()
        self.logger = logging.getLogger(__name__)

    # Verbs

    def driver_create_bucket(self, name: str, parameters: Mapping[str, str]) -> dict[str, Any]:
        """Create a bucket; an existing bucket counts as created."""
        with self._request(OP_CREATE_BUCKET, name, None):
            backend, _ = self.backend_factory(parameters, self.core_api)
            try:
                backend.create_bucket(name)
            except AlreadyExistsError:
                self.log_info(OP_CREATE_BUCKET, name, None, f"Bucket {name} already exists", EVENT_REASON_BUCKET_EXISTS)
                return {"bucket_id": name}
            self.log_info(OP_CREATE_BUCKET, name, None, f"Created bucket {name}", EVENT_REASON_BUCKET_CREATED)
            return {"bucket_id": name}

    def driver_delete_bucket(self, bucket_id: str) -> dict[str, Any]:
        """Delete a bucket; a bucket that is already gone counts as deleted."""
        with self._request(OP_DELETE_BUCKET, bucket_id, None):
            parameters = get_bucket_parameters(self.custom_api, bucket_id)
            backend, _ = self.backend_factory(parameters, self.core_api)
            try:
                backend.delete_bucket(bucket_id)
            except NotFoundError:
                self.log_info(OP_DELETE_BUCKET, bucket_id, None, f"Bucket {bucket_id} is already gone", EVENT_REASON_BUCKET_DELETED)
                return {}
            self.log_info(OP_DELETE_BUCKET, bucket_id, None, f"Deleted bucket {bucket_id}", EVENT_REASON_BUCKET_DELETED)
            return {}

    def driver_grant_bucket_access(self, bucket_id: str, name: str, parameters: Mapping[str, str]) -> dict[str, Any]:
        """Grant the BucketAccess ``name`` access to a bucket.

        Returns:
            ``account_id`` (the principal name) and ``credentials`` in the
            COSI ``{"s3": {"secrets": {...}}}`` layout
        """
        principal_name = principal_name_for_grant(name)
        with self._request(OP_GRANT_ACCESS, bucket_id, principal_name):
            backend, params = self.backend_factory(parameters, self.core_api)
            _, bucket_access_class = get_bucket_access_and_class(self.custom_api, name)
            access_mode = resolve_access_mode(bucket_access_class)
            actions = get_allowed_actions(access_mode)

            credential = AccessEngine(backend).grant_access(bucket_id, principal_name, actions)

            self.log_info(
                OP_GRANT_ACCESS,
                bucket_id,
                principal_name,
                f"Granted {access_mode} access on bucket {bucket_id}",
                EVENT_REASON_ACCESS_GRANTED,
                access_mode=access_mode,
                access_key_id=credential.access_key_id,
            )
            response = {
                "account_id": principal_name,
                "credentials": {
                    "s3": {
                        "secrets": {
                            "accessKeyID": credential.access_key_id,
                            "accessSecretKey": credential.secret_access_key or "",
                            "endpoint": params.full_endpoint(),
                            "region": params.region,
                        }
                    }
                },
            }
            self.logger.debug(f"Grant response: {json.dumps(sanitize_dict(response))}")
            return response

    def driver_revoke_bucket_access(self, bucket_id: str, account_id: str) -> dict[str, Any]:
        """Revoke the access of principal ``account_id`` and delete it."""
        with self._request(OP_REVOKE_ACCESS, bucket_id, account_id):
            parameters = get_bucket_parameters(self.custom_api, bucket_id)
            backend, _ = self.backend_factory(parameters, self.core_api)
            AccessEngine(backend).revoke_access(bucket_id, account_id)
            self.log_info(
                OP_REVOKE_ACCESS, bucket_id, account_id, f"Revoked access on bucket {bucket_id}", EVENT_REASON_ACCESS_REVOKED
            )
            return {}

    # Helpers

    @contextmanager
    def _request(self, operation: str, bucket: str, principal: str | None) -> Iterator[None]:
        """Run a verb inside a request context, span and operation metrics.

        Exceptions outside the driver taxonomy are reported as InternalError.
        """
        start_time = time.time()
        result = "success"
        with request_context(str(uuid.uuid4()), self.request_timeout):
            with trace_span(f"driver.{operation}", {"bucket": bucket, "principal": principal or ""}):
                try:
                    yield
                except DriverError as e:
                    result = e.code
                    self.log_error(operation, bucket, principal, f"{operation} failed: {e.message}", e)
                    raise
                except Exception as e:
                    result = InternalError.code
                    self.log_error(operation, bucket, principal, f"{operation} failed unexpectedly", e)
                    raise InternalError(f"{operation} failed: {sanitize_exception(e)}") from e
                finally:
                    metrics.access_operations_total.labels(operation=f"driver_{operation}", result=result).inc()
                    metrics.access_operation_duration_seconds.labels(operation=f"driver_{operation}").observe(
                        time.time() - start_time
                    )

    def log_info(
        self,
        operation: str,
        bucket: str,
        principal: str | None,
        message: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        log_driver_event(
            self.logger,
            operation=operation,
            bucket=bucket,
            principal=principal,
            event="info",
            reason=reason,
            message=message,
            **kwargs,
        )

    def log_error(
        self,
        operation: str,
        bucket: str,
        principal: str | None,
        message: str,
        error: Exception,
    ) -> None:
        log_driver_event(
            self.logger,
            operation=operation,
            bucket=bucket,
            principal=principal,
            event="error",
            reason=EVENT_REASON_REQUEST_FAILED,
            message=message,
            level=logging.ERROR,
            error=sanitize_exception(error),
            error_type=type(error).__name__,
            error_code=getattr(error, "code", InternalError.code),
        )
