"""Backend gateway implementation over boto3 S3 and IAM clients."""

from __future__ import annotations

import logging
import time
from functools import wraps
from typing import Any, Callable, TypeVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ... import metrics
from ...constants import DEFAULT_IAM_REGION, ERROR_CODES_ALREADY_EXISTS, ERROR_CODES_NOT_FOUND
from ...exceptions import AlreadyExistsError, DriverError, InternalError, NotFoundError
from ...utils.errors import sanitize_exception
from .models import AccessKeyMetadata, Credential, IAMUser

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., Any])


def error_code(error: ClientError) -> str:
    """Extract the backend error code from a botocore ClientError."""
    return error.response.get("Error", {}).get("Code", "")


def translate_error(error: Exception, operation: str) -> DriverError:
    """Map a botocore exception onto the driver error taxonomy.

    Args:
        error: Exception raised by a boto3 client call
        operation: Backend operation name, used in the message

    Returns:
        The matching DriverError (not raised)
    """
    if isinstance(error, ClientError):
        code = error_code(error)
        message = f"{operation} failed: {code or 'unknown error'}"
        if code in ERROR_CODES_NOT_FOUND:
            return NotFoundError(message)
        if code in ERROR_CODES_ALREADY_EXISTS:
            return AlreadyExistsError(message)
        return InternalError(message)
    return InternalError(f"{operation} failed: {sanitize_exception(error)}")


def backend_call(api_type: str, operation: str) -> Callable[[_F], _F]:
    """Decorator recording metrics for a backend call and translating its errors."""

    def decorator(func: _F) -> _F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except (ClientError, BotoCoreError) as e:
                translated = translate_error(e, operation)
                _record(api_type, operation, translated, start_time)
                if isinstance(translated, InternalError):
                    logger.error(f"Backend call {operation} failed: {sanitize_exception(e)}")
                else:
                    logger.debug(f"Backend call {operation} returned {translated.code}")
                raise translated from e
            _record(api_type, operation, None, start_time)
            return result

        return wrapper  # type: ignore

    return decorator


def _record(api_type: str, operation: str, error: DriverError | None, start_time: float) -> None:
    if error is None:
        result = "success"
    elif isinstance(error, NotFoundError):
        result = "not_found"
    elif isinstance(error, AlreadyExistsError):
        result = "already_exists"
    else:
        result = "error"
    metrics.backend_call_total.labels(api_type=api_type, operation=operation, result=result).inc()
    metrics.backend_call_duration_seconds.labels(api_type=api_type, operation=operation).observe(
        time.time() - start_time
    )


class AWSBackend:
    """S3-compatible backend reached through boto3."""

    def __init__(
        self,
        endpoint: str,
        iam_endpoint: str,
        region: str,
        access_key: str,
        secret_key: str,
        path_style: bool = True,
        verify: bool | str = True,
        timeout: float = 15.0,
        max_retries: int = 5,
        iam_region: str | None = None,
    ) -> None:
        """Initialize the backend clients.

        Args:
            endpoint: S3 endpoint URL
            iam_endpoint: IAM endpoint URL
            region: Bucket region
            access_key: Access key ID of the account user
            secret_key: Secret access key of the account user
            path_style: Use path-style addressing
            verify: TLS verification flag or path to a CA bundle
            timeout: Connect and read timeout per HTTP request in seconds
            max_retries: Transport level retry attempts
            iam_region: IAM region (defaults to us-east-1)
        """
        self.endpoint = endpoint
        self.iam_endpoint = iam_endpoint
        self.region = region
        self.path_style = path_style
        self.iam_region = iam_region or DEFAULT_IAM_REGION

        config = boto3.session.Config(
            signature_version="s3v4",
            s3={"addressing_style": "path" if path_style else "auto"},
            connect_timeout=timeout,
            read_timeout=timeout,
            retries={"max_attempts": max_retries, "mode": "standard"},
        )

        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=config,
            verify=verify,
        )
        self.iam_client = boto3.client(
            "iam",
            endpoint_url=iam_endpoint,
            region_name=self.iam_region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=config,
            verify=verify,
        )

    # Buckets

    @backend_call("s3", "create_bucket")
    def create_bucket(self, name: str) -> None:
        """Create a bucket."""
        logger.info(f"Creating bucket {name}")
        params: dict[str, Any] = {"Bucket": name}
        if self.region and self.region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        self.client.create_bucket(**params)
        logger.info(f"Successfully created bucket {name}")

    @backend_call("s3", "delete_bucket")
    def delete_bucket(self, name: str) -> None:
        """Delete a bucket."""
        self.client.delete_bucket(Bucket=name)
        logger.info(f"Deleted bucket {name}")

    # Bucket policies

    @backend_call("s3", "get_bucket_policy")
    def get_bucket_policy(self, bucket: str) -> str:
        """Get the raw bucket policy document."""
        response = self.client.get_bucket_policy(Bucket=bucket)
        return response["Policy"]

    @backend_call("s3", "put_bucket_policy")
    def put_bucket_policy(self, bucket: str, policy: str) -> None:
        """Replace the bucket policy document."""
        logger.debug(f"Policy JSON for bucket {bucket}: {policy}")
        self.client.put_bucket_policy(Bucket=bucket, Policy=policy)

    @backend_call("s3", "delete_bucket_policy")
    def delete_bucket_policy(self, bucket: str) -> None:
        """Delete the bucket policy document."""
        self.client.delete_bucket_policy(Bucket=bucket)

    # Users

    @backend_call("iam", "get_user")
    def get_user(self, name: str) -> IAMUser:
        """Look up an IAM user by name."""
        response = self.iam_client.get_user(UserName=name)
        return _user_from_response(response["User"])

    @backend_call("iam", "create_user")
    def create_user(self, name: str) -> IAMUser:
        """Create an IAM user."""
        response = self.iam_client.create_user(UserName=name)
        logger.info(f"Created IAM user {name}")
        return _user_from_response(response["User"])

    @backend_call("iam", "delete_user")
    def delete_user(self, name: str) -> None:
        """Delete an IAM user; an absent user is not an error.

        The user must not own access keys any more; the identity manager clears
        them first.
        """
        try:
            self.iam_client.delete_user(UserName=name)
        except ClientError as e:
            if error_code(e) == "NoSuchEntity":
                logger.info(f"User {name} does not exist, nothing to delete")
                return
            raise
        logger.info(f"Deleted IAM user {name}")

    # Access keys

    @backend_call("iam", "list_access_keys")
    def list_access_keys(self, user_name: str) -> list[AccessKeyMetadata]:
        """List all access keys of a user."""
        keys: list[AccessKeyMetadata] = []
        params: dict[str, Any] = {"UserName": user_name}
        while True:
            response = self.iam_client.list_access_keys(**params)
            for key in response.get("AccessKeyMetadata", []):
                keys.append(
                    AccessKeyMetadata(
                        access_key_id=key["AccessKeyId"],
                        user_name=key.get("UserName", user_name),
                        created_at=key.get("CreateDate"),
                        status=key.get("Status", "Active"),
                    )
                )
            if not response.get("IsTruncated"):
                return keys
            params["Marker"] = response["Marker"]

    @backend_call("iam", "create_access_key")
    def create_access_key(self, user_name: str) -> Credential:
        """Create an access key for a user."""
        response = self.iam_client.create_access_key(UserName=user_name)
        access_key = response["AccessKey"]
        logger.info(f"Created access key {access_key['AccessKeyId']} for user {user_name}")
        return Credential(
            access_key_id=access_key["AccessKeyId"],
            secret_access_key=access_key["SecretAccessKey"],
            user_name=access_key.get("UserName", user_name),
            created_at=access_key.get("CreateDate"),
        )

    @backend_call("iam", "delete_access_key")
    def delete_access_key(self, user_name: str, access_key_id: str) -> None:
        """Delete an access key."""
        self.iam_client.delete_access_key(UserName=user_name, AccessKeyId=access_key_id)
        logger.info(f"Deleted access key {access_key_id} for user {user_name}")


def _user_from_response(user: dict[str, Any]) -> IAMUser:
    return IAMUser(
        user_name=user["UserName"],
        user_id=user["UserId"],
        arn=user.get("Arn"),
        created_at=user.get("CreateDate"),
    )
