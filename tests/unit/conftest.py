"""Shared fixtures: an in-memory backend gateway and engine components."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from s3_iam_cosi_driver.engine.access import AccessEngine
from s3_iam_cosi_driver.engine.identity import IdentityManager
from s3_iam_cosi_driver.engine.policy_editor import PolicyEditor
from s3_iam_cosi_driver.exceptions import AlreadyExistsError, InternalError, NotFoundError
from s3_iam_cosi_driver.services.aws.models import AccessKeyMetadata, Credential, IAMUser

_EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)


class InMemoryBackend:
    """BackendGateway fake that behaves like the S3 and IAM APIs.

    User ids differ from user names so tests catch name/id confusion. The
    backend itself tolerates more keys than the identity manager's ceiling;
    ``max_access_keys`` lets a test model a provider that enforces it.
    """

    def __init__(self, max_access_keys: int | None = None) -> None:
        self.buckets: set[str] = set()
        self.policies: dict[str, str] = {}
        self.users: dict[str, IAMUser] = {}
        self.keys: dict[str, list[AccessKeyMetadata]] = {}
        self.max_access_keys = max_access_keys
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._counter = 0

    def _tick(self) -> int:
        self._counter += 1
        return self._counter

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    # Buckets

    def create_bucket(self, name: str) -> None:
        self._record("create_bucket", name)
        if name in self.buckets:
            raise AlreadyExistsError("create_bucket failed: BucketAlreadyOwnedByYou")
        self.buckets.add(name)

    def delete_bucket(self, name: str) -> None:
        self._record("delete_bucket", name)
        if name not in self.buckets:
            raise NotFoundError("delete_bucket failed: NoSuchBucket")
        self.buckets.discard(name)
        self.policies.pop(name, None)

    # Policies

    def get_bucket_policy(self, bucket: str) -> str:
        self._record("get_bucket_policy", bucket)
        if bucket not in self.policies:
            raise NotFoundError("get_bucket_policy failed: NoSuchBucketPolicy")
        return self.policies[bucket]

    def put_bucket_policy(self, bucket: str, policy: str) -> None:
        self._record("put_bucket_policy", bucket, policy)
        self.policies[bucket] = policy

    def delete_bucket_policy(self, bucket: str) -> None:
        self._record("delete_bucket_policy", bucket)
        self.policies.pop(bucket, None)

    # Users

    def get_user(self, name: str) -> IAMUser:
        self._record("get_user", name)
        if name not in self.users:
            raise NotFoundError("get_user failed: NoSuchEntity")
        return self.users[name]

    def create_user(self, name: str) -> IAMUser:
        self._record("create_user", name)
        if name in self.users:
            raise AlreadyExistsError("create_user failed: EntityAlreadyExists")
        user = IAMUser(
            user_name=name,
            user_id=f"AIDA{self._tick():012d}",
            arn=f"arn:aws:iam::000000000000:user/{name}",
            created_at=_EPOCH,
        )
        self.users[name] = user
        self.keys[name] = []
        return user

    def delete_user(self, name: str) -> None:
        self._record("delete_user", name)
        if name not in self.users:
            return
        if self.keys.get(name):
            raise InternalError("delete_user failed: DeleteConflict")
        del self.users[name]
        self.keys.pop(name, None)

    # Access keys

    def list_access_keys(self, user_name: str) -> list[AccessKeyMetadata]:
        self._record("list_access_keys", user_name)
        if user_name not in self.users:
            raise NotFoundError("list_access_keys failed: NoSuchEntity")
        return list(self.keys[user_name])

    def create_access_key(self, user_name: str) -> Credential:
        self._record("create_access_key", user_name)
        if user_name not in self.users:
            raise NotFoundError("create_access_key failed: NoSuchEntity")
        if self.max_access_keys is not None and len(self.keys[user_name]) >= self.max_access_keys:
            raise InternalError("create_access_key failed: LimitExceeded")
        tick = self._tick()
        created_at = _EPOCH + timedelta(minutes=tick)
        key_id = f"AKIA{tick:016d}"
        self.keys[user_name].append(AccessKeyMetadata(access_key_id=key_id, user_name=user_name, created_at=created_at))
        return Credential(
            access_key_id=key_id,
            secret_access_key=f"secret-{tick}",
            user_name=user_name,
            created_at=created_at,
        )

    def delete_access_key(self, user_name: str, access_key_id: str) -> None:
        self._record("delete_access_key", user_name, access_key_id)
        remaining = [k for k in self.keys.get(user_name, []) if k.access_key_id != access_key_id]
        if len(remaining) == len(self.keys.get(user_name, [])):
            raise NotFoundError("delete_access_key failed: NoSuchEntity")
        self.keys[user_name] = remaining


@pytest.fixture
def backend() -> InMemoryBackend:
    """Empty in-memory backend."""
    return InMemoryBackend()


@pytest.fixture
def identity(backend: InMemoryBackend) -> IdentityManager:
    return IdentityManager(backend)


@pytest.fixture
def editor(backend: InMemoryBackend, identity: IdentityManager) -> PolicyEditor:
    return PolicyEditor(backend, identity)


@pytest.fixture
def engine(backend: InMemoryBackend) -> AccessEngine:
    return AccessEngine(backend)


@pytest.fixture
def make_backend() -> type[InMemoryBackend]:
    """The in-memory backend class, for tests needing custom limits."""
    return InMemoryBackend
