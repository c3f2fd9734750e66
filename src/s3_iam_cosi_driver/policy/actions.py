"""S3 action sets granted for each COSI access mode."""

from __future__ import annotations

import logging

from ..constants import (
    ACCESS_MODE_ADMIN,
    ACCESS_MODE_LIST_ONLY,
    ACCESS_MODE_READ_ONLY,
    ACCESS_MODE_READ_WRITE,
    ACCESS_MODE_WRITE_ONLY,
    WILDCARD_ACTION,
)
from ..exceptions import InvalidArgumentError

logger = logging.getLogger(__name__)

LIST_ONLY_ACTIONS = (
    "s3:ListBucket",
    "s3:GetBucketLocation",
)

READ_ONLY_ACTIONS = LIST_ONLY_ACTIONS + (
    "s3:GetObject",
    "s3:GetObjectVersion",
    "s3:GetObjectTagging",
)

WRITE_ONLY_ACTIONS = (
    "s3:PutObject",
    "s3:PutObjectTagging",
    "s3:DeleteObject",
    "s3:DeleteObjectVersion",
    "s3:AbortMultipartUpload",
    "s3:ListMultipartUploadParts",
)

READ_WRITE_ACTIONS = READ_ONLY_ACTIONS + WRITE_ONLY_ACTIONS + (
    "s3:ListBucketMultipartUploads",
)

ADMIN_ACTIONS = (WILDCARD_ACTION,)

ACCESS_MODE_ACTIONS: dict[str, tuple[str, ...]] = {
    ACCESS_MODE_READ_ONLY: READ_ONLY_ACTIONS,
    ACCESS_MODE_READ_WRITE: READ_WRITE_ACTIONS,
    ACCESS_MODE_WRITE_ONLY: WRITE_ONLY_ACTIONS,
    ACCESS_MODE_LIST_ONLY: LIST_ONLY_ACTIONS,
    ACCESS_MODE_ADMIN: ADMIN_ACTIONS,
}


def get_allowed_actions(access_mode: str) -> list[str]:
    """Return the S3 actions granted by an access mode.

    Args:
        access_mode: One of ``ro``, ``rw``, ``wo``, ``lo`` or ``admin``

    Returns:
        Action names in a stable order

    Raises:
        InvalidArgumentError: If the access mode is unknown
    """
    try:
        actions = list(ACCESS_MODE_ACTIONS[access_mode])
    except KeyError:
        logger.error(f"Invalid access mode {access_mode!r}")
        raise InvalidArgumentError(f"invalid access mode {access_mode!r}") from None
    logger.info(f"Determined allowed actions for access mode {access_mode}: {actions}")
    return actions
