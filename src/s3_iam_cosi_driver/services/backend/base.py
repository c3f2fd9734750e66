"""Backend gateway interface.

The engine only ever talks to this protocol, so it can run against the boto3
implementation in ``services.aws.client`` or an in-memory fake in tests.
Implementations translate their transport errors into the driver error
taxonomy (``NotFoundError``, ``AlreadyExistsError``, ``InternalError``).
"""

from __future__ import annotations

from typing import Protocol

from ..aws.models import AccessKeyMetadata, Credential, IAMUser


class BackendGateway(Protocol):
    """Protocol defining the S3 and IAM operations the engine requires."""

    def create_bucket(self, name: str) -> None:
        """Create a bucket.

        Raises:
            AlreadyExistsError: If the bucket already exists
        """
        ...

    def delete_bucket(self, name: str) -> None:
        """Delete a bucket."""
        ...

    def get_bucket_policy(self, bucket: str) -> str:
        """Get the raw JSON policy document of a bucket.

        Raises:
            NotFoundError: If the bucket has no policy
        """
        ...

    def put_bucket_policy(self, bucket: str, policy: str) -> None:
        """Replace the whole policy document of a bucket."""
        ...

    def delete_bucket_policy(self, bucket: str) -> None:
        """Delete the policy document of a bucket."""
        ...

    def get_user(self, name: str) -> IAMUser:
        """Look up an IAM user by name.

        Raises:
            NotFoundError: If the user does not exist
        """
        ...

    def create_user(self, name: str) -> IAMUser:
        """Create an IAM user.

        Raises:
            AlreadyExistsError: If the user already exists
        """
        ...

    def delete_user(self, name: str) -> None:
        """Delete an IAM user; an absent user is not an error."""
        ...

    def list_access_keys(self, user_name: str) -> list[AccessKeyMetadata]:
        """List the access keys of a user."""
        ...

    def create_access_key(self, user_name: str) -> Credential:
        """Create an access key; the only call that ever returns the secret."""
        ...

    def delete_access_key(self, user_name: str, access_key_id: str) -> None:
        """Delete an access key."""
        ...
