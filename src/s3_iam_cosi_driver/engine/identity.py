"""Identity lifecycle: make a principal exist and hand out a usable credential.

The backend never returns a secret after the call that created it, so an
"ensure credential" operation has to mint a new key whenever the caller needs
secret material. When the principal already owns the maximum of two keys
this still mints a third one; the older keys stay valid and nothing cleans
them up automatically.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .. import metrics
from ..constants import MAX_ACCESS_KEYS_PER_USER
from ..exceptions import AlreadyExistsError, NotFoundError
from ..services.aws.models import AccessKeyMetadata, Credential
from ..services.backend.base import BackendGateway
from ..utils.context import check_deadline

logger = logging.getLogger(__name__)


def newest_access_key(keys: Iterable[AccessKeyMetadata]) -> AccessKeyMetadata | None:
    """Return the most recently created key.

    Keys without a creation time sort before every dated key; on an exact tie
    the first key seen wins.
    """
    newest: AccessKeyMetadata | None = None
    for key in keys:
        if newest is None:
            newest = key
        elif key.created_at is not None and (newest.created_at is None or key.created_at > newest.created_at):
            newest = key
    return newest


class IdentityManager:
    """Manage IAM principals and their access keys."""

    def __init__(self, backend: BackendGateway, max_access_keys: int = MAX_ACCESS_KEYS_PER_USER) -> None:
        self.backend = backend
        self.max_access_keys = max_access_keys

    def ensure_principal(self, name: str, require_secret: bool = True) -> Credential:
        """Make sure the principal exists and return a credential for it.

        Args:
            name: Principal (IAM user) name
            require_secret: When False and the principal is already at the key
                ceiling, return the newest existing key without its secret
                instead of minting another one

        Returns:
            Credential for the principal
        """
        check_deadline("get_user")
        try:
            self.backend.get_user(name)
        except NotFoundError:
            logger.info(f"User {name} does not exist, creating it")
            self._create_user(name)
            return self._mint(name)

        logger.info(f"User {name} already exists, checking its access keys")
        check_deadline("list_access_keys")
        keys = self.backend.list_access_keys(name)

        if len(keys) < self.max_access_keys:
            logger.info(f"User {name} has {len(keys)} access keys, creating a new one")
            return self._mint(name)

        newest = newest_access_key(keys)
        metrics.credential_cap_reached_total.inc()
        if not require_secret and newest is not None:
            logger.info(f"User {name} is at the access key limit, returning key {newest.access_key_id} without secret")
            return Credential(
                access_key_id=newest.access_key_id,
                secret_access_key=None,
                user_name=name,
                created_at=newest.created_at,
            )

        logger.warning(
            f"User {name} already has {len(keys)} access keys (newest "
            f"{newest.access_key_id if newest else 'unknown'}); creating another one to obtain a secret"
        )
        return self._mint(name)

    def resolve_principal_id(self, name: str) -> str:
        """Return the backend user id of a principal.

        Raises:
            NotFoundError: If the principal does not exist
        """
        check_deadline("get_user")
        return self.backend.get_user(name).user_id

    def delete_principal(self, name: str) -> None:
        """Delete the principal and every access key it owns.

        A principal that is already gone counts as deleted.
        """
        check_deadline("get_user")
        try:
            self.backend.get_user(name)
        except NotFoundError:
            logger.info(f"User {name} does not exist, nothing to delete")
            return

        check_deadline("list_access_keys")
        try:
            keys = self.backend.list_access_keys(name)
        except NotFoundError:
            logger.info(f"User {name} disappeared while listing its access keys")
            return

        for key in keys:
            check_deadline("delete_access_key")
            try:
                self.backend.delete_access_key(name, key.access_key_id)
            except NotFoundError:
                logger.info(f"Access key {key.access_key_id} of user {name} is already gone")

        check_deadline("delete_user")
        try:
            self.backend.delete_user(name)
        except NotFoundError:
            logger.info(f"User {name} is already gone")
            return
        logger.info(f"Deleted user {name} and {len(keys)} access keys")

    def _create_user(self, name: str) -> None:
        check_deadline("create_user")
        try:
            self.backend.create_user(name)
        except AlreadyExistsError:
            # Lost a creation race; the user exists either way
            logger.info(f"User {name} was created concurrently")

    def _mint(self, name: str) -> Credential:
        check_deadline("create_access_key")
        credential = self.backend.create_access_key(name)
        logger.info(f"Created access key {credential.access_key_id} for user {name}")
        return credential
