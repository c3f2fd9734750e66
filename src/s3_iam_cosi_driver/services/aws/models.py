"""Models for backend S3 and IAM operations."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from ...constants import DEFAULT_IAM_REGION

_PORT_PATTERN = re.compile(r":\d+")


@dataclass(frozen=True)
class IAMUser:
    """View of an IAM user as returned by the backend."""

    user_name: str
    user_id: str
    arn: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class AccessKeyMetadata:
    """Listing view of an access key (the backend never returns the secret here)."""

    access_key_id: str
    user_name: str
    created_at: datetime | None = None
    status: str = "Active"


@dataclass(frozen=True)
class Credential:
    """An access key pair handed back to the caller of a grant."""

    access_key_id: str
    secret_access_key: str | None
    user_name: str
    created_at: datetime | None = None

    @property
    def has_secret(self) -> bool:
        return bool(self.secret_access_key)


def _strip_scheme(endpoint: str) -> tuple[str, str]:
    for scheme in ("http://", "https://"):
        if endpoint.startswith(scheme):
            return scheme, endpoint[len(scheme):]
    return "", endpoint


@dataclass(frozen=True)
class BackendParams:
    """Connection parameters read from the COSI account secret."""

    endpoint: str
    s3_port: str
    iam_port: str
    account_name: str
    access_key: str
    secret_key: str
    region: str = DEFAULT_IAM_REGION
    tls_cert: str = ""

    @property
    def secure(self) -> bool:
        return self.endpoint.startswith("https")

    def full_endpoint(self) -> str:
        """Return the S3 endpoint URL with the S3 port appended when missing."""
        if _PORT_PATTERN.search(self.endpoint) or not self.s3_port:
            return self.endpoint
        scheme, host = _strip_scheme(self.endpoint)
        return f"{scheme}{host}:{self.s3_port}"

    def full_iam_endpoint(self) -> str:
        """Return the IAM endpoint URL; IAM is always reached over https."""
        _, host = _strip_scheme(self.endpoint)
        if _PORT_PATTERN.search(host) or not self.iam_port:
            return f"https://{host}"
        return f"https://{host}:{self.iam_port}"
