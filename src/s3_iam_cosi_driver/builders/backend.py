"""Builder for backend gateway instances from COSI parameters."""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from typing import Any, Mapping

from kubernetes import client, config

from ..constants import (
    DEFAULT_IAM_REGION,
    PARAM_ACCOUNT_SECRET,
    PARAM_ACCOUNT_SECRET_NAMESPACE,
    SECRET_KEY_ACCESS_KEY,
    SECRET_KEY_ACCOUNT_NAME,
    SECRET_KEY_ENDPOINT,
    SECRET_KEY_IAM_PORT,
    SECRET_KEY_REGION,
    SECRET_KEY_S3_PORT,
    SECRET_KEY_SECRET_KEY,
    SECRET_KEY_TLS_CERT,
)
from ..exceptions import InvalidArgumentError
from ..services.aws.client import AWSBackend
from ..services.aws.models import BackendParams
from ..utils.secrets import read_secret_data

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0
DEFAULT_MAX_RETRIES = 5


def get_core_api() -> client.CoreV1Api:
    """Return a CoreV1Api using in-cluster config, falling back to kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    return client.CoreV1Api()


def fetch_secret_name_and_namespace(parameters: Mapping[str, str]) -> tuple[str, str]:
    """Read the account secret reference from BucketClass/BucketAccessClass parameters.

    The namespace falls back to ``POD_NAMESPACE`` when the parameters do not
    name one.

    Raises:
        InvalidArgumentError: If the secret name or namespace cannot be determined
    """
    secret_name = parameters.get(PARAM_ACCOUNT_SECRET, "")
    namespace = parameters.get(PARAM_ACCOUNT_SECRET_NAMESPACE) or os.getenv("POD_NAMESPACE", "")
    if not secret_name or not namespace:
        raise InvalidArgumentError("accountSecret and accountSecretNamespace are required")
    return secret_name, namespace


def fetch_parameters(secret_data: Mapping[str, str]) -> BackendParams:
    """Validate account secret data and build backend connection parameters.

    Raises:
        InvalidArgumentError: If a required key is missing or malformed
    """
    endpoint = secret_data.get(SECRET_KEY_ENDPOINT, "")
    s3_port = secret_data.get(SECRET_KEY_S3_PORT, "")
    iam_port = secret_data.get(SECRET_KEY_IAM_PORT, "")
    account_name = secret_data.get(SECRET_KEY_ACCOUNT_NAME, "")
    access_key = secret_data.get(SECRET_KEY_ACCESS_KEY, "")
    secret_key = secret_data.get(SECRET_KEY_SECRET_KEY, "")
    region = secret_data.get(SECRET_KEY_REGION, "")

    if not endpoint or not access_key or not secret_key:
        raise InvalidArgumentError("endpoint, accessKeyID and secretKey are required")
    if not s3_port or not iam_port:
        raise InvalidArgumentError("s3Port and iamPort are required")
    if not account_name:
        raise InvalidArgumentError("accountName is required")
    if not endpoint.startswith(("http://", "https://")):
        raise InvalidArgumentError("endpoint must include http:// or https:// protocol")

    if not region:
        logger.warning(f"Region is not set, using default region {DEFAULT_IAM_REGION}")
        region = DEFAULT_IAM_REGION

    return BackendParams(
        endpoint=endpoint,
        s3_port=s3_port,
        iam_port=iam_port,
        account_name=account_name,
        access_key=access_key,
        secret_key=secret_key,
        region=region,
        tls_cert=secret_data.get(SECRET_KEY_TLS_CERT, ""),
    )


# Written CA bundles by sha256 of their PEM content
_ca_bundles: dict[str, str] = {}


def write_ca_bundle(pem: str) -> str:
    """Return the path of a CA bundle file holding ``pem``.

    One file is written per distinct certificate and reused by later calls
    while it still exists.
    """
    digest = hashlib.sha256(pem.encode("utf-8")).hexdigest()
    path = _ca_bundles.get(digest)
    if path is not None and os.path.exists(path):
        return path

    fd, path = tempfile.mkstemp(prefix="s3-iam-cosi-ca-", suffix=".pem")
    with os.fdopen(fd, "w") as f:
        f.write(pem)
    _ca_bundles[digest] = path
    return path


def _env_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidArgumentError(f"{name} must be a number, got {raw!r}") from None


def create_backend(params: BackendParams) -> AWSBackend:
    """Create the boto3 backend for validated connection parameters."""
    verify: bool | str = True
    if params.secure and params.tls_cert:
        verify = write_ca_bundle(params.tls_cert)
        logger.debug(f"Using custom CA bundle {verify}")

    return AWSBackend(
        endpoint=params.full_endpoint(),
        iam_endpoint=params.full_iam_endpoint(),
        region=params.region,
        access_key=params.access_key,
        secret_key=params.secret_key,
        path_style=True,
        verify=verify,
        timeout=_env_number("BACKEND_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS),
        max_retries=int(_env_number("BACKEND_MAX_RETRIES", DEFAULT_MAX_RETRIES)),
    )


def create_backend_from_parameters(
    parameters: Mapping[str, str],
    api: client.CoreV1Api | None = None,
) -> tuple[AWSBackend, BackendParams]:
    """Create a backend from the parameters of a BucketClass or BucketAccessClass.

    Args:
        parameters: COSI class parameters naming the account secret
        api: Kubernetes API client (created from the environment if omitted)

    Returns:
        The backend and the connection parameters it was built from

    Raises:
        InvalidArgumentError: If the parameters or the secret are incomplete
        NotFoundError: If the account secret does not exist
    """
    secret_name, namespace = fetch_secret_name_and_namespace(parameters)
    if api is None:
        api = get_core_api()
    secret_data: dict[str, Any] = read_secret_data(api, namespace, secret_name)
    params = fetch_parameters(secret_data)
    logger.info(f"Connecting to backend {params.full_endpoint()} for account {params.account_name}")
    return create_backend(params), params
