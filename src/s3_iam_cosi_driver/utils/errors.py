"""Redaction of credentials in error messages, log fields and driver responses.

Backend errors can echo request details back, including signed headers, and
grant responses carry the secret of a freshly minted access key. Anything that
ends up in a log line or an error message passes through here first.
"""

from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"

# Values embedded in free text; group 1 is the part to redact
_VALUE_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"access[_\s]?key[_\s]?id[:=\s]+([A-Z0-9]{16,128})",
        r"secret[_\s]?access[_\s]?key[:=\s]+([A-Za-z0-9/+=]{30,})",
        r"session[_\s]?token[:=\s]+([A-Za-z0-9/+=]+)",
        r"Credential=([A-Z0-9]{16,128})/",
        r"Signature=([a-f0-9]{64})",
    )
)

# Keys whose values are never shown, matched case-insensitively as substrings
SENSITIVE_FIELDS = frozenset(
    {
        "access_key_id",
        "accesskeyid",
        "secret_access_key",
        "secretaccesskey",
        "accesssecretkey",
        "session_token",
        "password",
        "secret",
        "credentials",
        "token",
        "tlscert",
    }
)

_FIELD_PATTERNS = tuple(
    (field, re.compile(rf"\b{field}[:=\s]+([^\s,;\)\]\}}]+)", re.IGNORECASE)) for field in sorted(SENSITIVE_FIELDS)
)


def sanitize_error_message(message: str) -> str:
    """Redact credentials embedded in a message.

    Args:
        message: Original message, typically ``str()`` of a backend error

    Returns:
        The message with key ids, secrets, tokens and signatures replaced
    """
    for pattern in _VALUE_PATTERNS:
        message = pattern.sub(lambda m: m.group(0).replace(m.group(1), REDACTED), message)
    for field, pattern in _FIELD_PATTERNS:
        message = pattern.sub(f"{field}: {REDACTED}", message)
    return message


def sanitize_exception(error: Exception) -> str:
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive values redacted.

    Nested mappings, such as the ``credentials`` of a grant response, are
    walked recursively; string values are scrubbed as messages.
    """
    keys = SENSITIVE_FIELDS | {key.lower() for key in (sensitive_keys or ())}

    def redact(mapping: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in mapping.items():
            if any(sensitive in key.lower() for sensitive in keys):
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = redact(value)
            elif isinstance(value, str):
                result[key] = sanitize_error_message(value)
            else:
                result[key] = value
        return result

    return redact(data)
