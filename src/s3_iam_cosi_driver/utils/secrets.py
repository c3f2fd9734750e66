"""Utilities for reading the COSI account secret from Kubernetes."""

from __future__ import annotations

import base64
import binascii

from kubernetes import client

from ..exceptions import InternalError, NotFoundError


def _decode_value(value: str | bytes) -> str:
    # Handle both string and bytes (different versions of kubernetes client)
    if isinstance(value, bytes):
        return value.decode("utf-8")
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        # Already decoded
        return value


def read_secret_data(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
) -> dict[str, str]:
    """Read all data from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret

    Returns:
        Dictionary of secret data (decoded)

    Raises:
        NotFoundError: If the secret does not exist
        InternalError: On any other API failure
    """
    try:
        secret = api.read_namespaced_secret(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise NotFoundError(f"Secret '{secret_name}' not found in namespace '{namespace}'") from e
        raise InternalError(f"Failed to read secret '{secret_name}' in namespace '{namespace}'") from e

    return {key: _decode_value(value) for key, value in (secret.data or {}).items()}

