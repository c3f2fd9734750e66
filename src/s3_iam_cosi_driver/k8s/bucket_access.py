"""Lookups of COSI custom resources through the Kubernetes API."""

from __future__ import annotations

import logging
import os
from typing import Any

from kubernetes import client

from ..constants import (
    ACCESS_MODE_ADMIN,
    ANNOTATION_ACCESS_MODE,
    BUCKET_ACCESS_ID_PREFIX,
    COSI_API_GROUP,
    COSI_API_VERSION,
    PLURAL_BUCKET_ACCESS_CLASSES,
    PLURAL_BUCKET_ACCESSES,
    PLURAL_BUCKETS,
)
from ..exceptions import InternalError, InvalidArgumentError, NotFoundError

logger = logging.getLogger(__name__)


def find_bucket_access(api: client.CustomObjectsApi, bucket_access_id: str) -> dict[str, Any]:
    """Find a BucketAccess in any namespace by its UID.

    Args:
        api: Kubernetes custom objects API
        bucket_access_id: Id handed to the driver; a leading ``ba-`` is ignored

    Raises:
        NotFoundError: If no BucketAccess has that UID
        InternalError: If listing fails
    """
    try:
        response = api.list_cluster_custom_object(
            group=COSI_API_GROUP,
            version=COSI_API_VERSION,
            plural=PLURAL_BUCKET_ACCESSES,
        )
    except client.exceptions.ApiException as e:
        logger.error(f"Failed to list bucket accesses: {e.status} {e.reason}")
        raise InternalError("failed to list bucket accesses") from e

    uid = bucket_access_id.removeprefix(BUCKET_ACCESS_ID_PREFIX)
    for item in response.get("items", []):
        if item.get("metadata", {}).get("uid") == uid:
            return item

    logger.error(f"Failed to find bucket access with uid {uid}")
    raise NotFoundError(f"bucket access {uid} not found")


def get_bucket_access_and_class(
    api: client.CustomObjectsApi,
    bucket_access_id: str,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return a BucketAccess and the BucketAccessClass it references.

    Raises:
        NotFoundError: If the BucketAccess does not exist
        InvalidArgumentError: If the BucketAccess names no class
        InternalError: If the class cannot be read
    """
    bucket_access = find_bucket_access(api, bucket_access_id)

    class_name = bucket_access.get("spec", {}).get("bucketAccessClassName")
    if not class_name:
        logger.error("bucketAccessClassName is missing from BucketAccess")
        raise InvalidArgumentError("bucketAccessClassName is required")

    logger.info(f"Fetching bucket access class {class_name}")
    try:
        bucket_access_class = api.get_cluster_custom_object(
            group=COSI_API_GROUP,
            version=COSI_API_VERSION,
            plural=PLURAL_BUCKET_ACCESS_CLASSES,
            name=class_name,
        )
    except client.exceptions.ApiException as e:
        logger.error(f"Failed to get bucket access class {class_name}: {e.status} {e.reason}")
        raise InternalError("failed to get bucket access class") from e

    return bucket_access, bucket_access_class


def resolve_access_mode(bucket_access_class: dict[str, Any]) -> str:
    """Read the access mode annotation of a BucketAccessClass.

    Falls back to ``DEFAULT_ACCESS_MODE`` (``admin`` unless set) when the
    class carries no annotation.
    """
    annotations = bucket_access_class.get("metadata", {}).get("annotations") or {}
    mode = annotations.get(ANNOTATION_ACCESS_MODE)
    if not mode:
        mode = os.getenv("DEFAULT_ACCESS_MODE", ACCESS_MODE_ADMIN)
        logger.info(f"No access mode annotation, using default access mode {mode}")
    return mode


def get_bucket_parameters(api: client.CustomObjectsApi, bucket_id: str) -> dict[str, str]:
    """Return ``spec.parameters`` of a cluster-scoped Bucket.

    Raises:
        NotFoundError: If the Bucket does not exist
        InternalError: If the Bucket cannot be read
    """
    try:
        bucket = api.get_cluster_custom_object(
            group=COSI_API_GROUP,
            version=COSI_API_VERSION,
            plural=PLURAL_BUCKETS,
            name=bucket_id,
        )
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise NotFoundError(f"bucket {bucket_id} not found") from e
        logger.error(f"Failed to get bucket {bucket_id}: {e.status} {e.reason}")
        raise InternalError("failed to get bucket") from e
    return dict(bucket.get("spec", {}).get("parameters") or {})
