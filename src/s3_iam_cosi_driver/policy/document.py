"""Bucket policy document model.

The wire format is the S3 bucket policy JSON::

    {
      "Version": "2012-10-17",
      "Statement": [
        {
          "Effect": "Allow",
          "Principal": {"AWS": ["<user-id>"]},
          "Action": ["s3:GetObject"],
          "Resource": ["arn:aws:s3:::<bucket>", "arn:aws:s3:::<bucket>/*"]
        }
      ]
    }

``Principal`` is either the literal ``"*"`` or an object of identity
references, ``Action`` either ``"s3:*"`` or a list of action names. Both are
modelled as tagged variants. Statement keys the engine does not manage
(``Sid``, ``Condition``, ...) are kept verbatim, and every parsed statement
remembers its original layout (key order, single strings instead of lists)
so that statements written by someone else serialize back byte for byte.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Union

from ..constants import (
    BUCKET_ARN_PREFIX,
    POLICY_VERSION,
    PRINCIPAL_KEY_AWS,
    WILDCARD_ACTION,
    WILDCARD_PRINCIPAL,
)
from ..exceptions import PolicyFormatError

_STATEMENT_KEYS = ("Effect", "Principal", "Action", "Resource")
_DOCUMENT_KEYS = ("Version", "Statement")


class Effect(str, Enum):
    """Statement effect."""

    ALLOW = "Allow"
    DENY = "Deny"


@dataclass(frozen=True)
class WildcardPrincipal:
    """``"Principal": "*"``"""


@dataclass(frozen=True)
class PrincipalSet:
    """``"Principal": {"AWS": [...], ...}``

    ``aws`` holds backend user ids. Other principal kinds (``Service``,
    ``Federated``, ...) are kept untouched in ``others``.
    """

    aws: tuple[str, ...] = ()
    others: tuple[tuple[str, Any], ...] = ()

    def __contains__(self, principal_id: object) -> bool:
        return principal_id in self.aws

    def is_empty(self) -> bool:
        return not self.aws and not self.others

    def without(self, principal_id: str) -> PrincipalSet:
        return replace(self, aws=tuple(p for p in self.aws if p != principal_id))


Principal = Union[WildcardPrincipal, PrincipalSet]


@dataclass(frozen=True)
class WildcardAction:
    """``"Action": "s3:*"``"""


@dataclass(frozen=True)
class ActionList:
    """``"Action": [...]``"""

    actions: tuple[str, ...]


Action = Union[WildcardAction, ActionList]


@dataclass(frozen=True)
class PolicyStatement:
    """A single allow or deny rule."""

    effect: Effect
    principal: Principal | None
    action: Action | None
    resource: tuple[str, ...] | None
    extra: tuple[tuple[str, Any], ...] = ()
    # Key-value pairs as parsed, used to restore the original layout
    source: tuple[tuple[str, Any], ...] | None = field(default=None, compare=False, repr=False)

    def has_principal(self, principal_id: str) -> bool:
        return isinstance(self.principal, PrincipalSet) and principal_id in self.principal


@dataclass(frozen=True)
class PolicyDocument:
    """A bucket policy: version plus ordered statements."""

    version: str = POLICY_VERSION
    statements: tuple[PolicyStatement, ...] = field(default_factory=tuple)
    extra: tuple[tuple[str, Any], ...] = ()

    def is_empty(self) -> bool:
        return not self.statements


def empty_policy() -> PolicyDocument:
    """Return a document with no statements."""
    return PolicyDocument(version=POLICY_VERSION, statements=())


def bucket_arn(bucket: str) -> str:
    return f"{BUCKET_ARN_PREFIX}{bucket}"


def bucket_resources(bucket: str) -> tuple[str, str]:
    """Return the bucket ARN and the ARN of every object in it."""
    arn = bucket_arn(bucket)
    return arn, f"{arn}/*"


def allow_statement(bucket: str, principal_id: str, actions: Iterable[str]) -> PolicyStatement:
    """Build the statement a grant appends for one principal."""
    return PolicyStatement(
        effect=Effect.ALLOW,
        principal=PrincipalSet(aws=(principal_id,)),
        action=ActionList(tuple(actions)),
        resource=bucket_resources(bucket),
    )


def contains_principal(document: PolicyDocument, principal_id: str) -> bool:
    """Whether any statement references the principal id."""
    return any(statement.has_principal(principal_id) for statement in document.statements)


def without_principal(document: PolicyDocument, principal_id: str) -> PolicyDocument:
    """Return a copy of the document with the principal id removed.

    Statements left without any principal reference are dropped entirely.
    Statements with a wildcard principal or with no ``Principal`` field are
    kept as they are.
    """
    statements = []
    for statement in document.statements:
        if not statement.has_principal(principal_id):
            statements.append(statement)
            continue
        principal = statement.principal.without(principal_id)  # type: ignore[union-attr]
        if principal.is_empty():
            continue
        statements.append(replace(statement, principal=principal))
    return replace(document, statements=tuple(statements))


# Parsing


def parse_policy(raw: str | bytes) -> PolicyDocument:
    """Parse a JSON bucket policy.

    Raises:
        PolicyFormatError: If the document is not a valid bucket policy
    """
    try:
        data = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise PolicyFormatError(f"policy is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise PolicyFormatError("policy must be a JSON object")

    version = data.get("Version", POLICY_VERSION)
    if not isinstance(version, str):
        raise PolicyFormatError("Version must be a string")

    raw_statements = data.get("Statement")
    if raw_statements is None:
        raise PolicyFormatError("policy has no Statement field")
    # A single statement object is valid policy grammar
    if isinstance(raw_statements, dict):
        raw_statements = [raw_statements]
    if not isinstance(raw_statements, list):
        raise PolicyFormatError("Statement must be a list")

    return PolicyDocument(
        version=version,
        statements=tuple(_parse_statement(index, stmt) for index, stmt in enumerate(raw_statements)),
        extra=tuple((k, v) for k, v in data.items() if k not in _DOCUMENT_KEYS),
    )


def _parse_statement(index: int, data: Any) -> PolicyStatement:
    if not isinstance(data, dict):
        raise PolicyFormatError(f"statement {index} must be an object")

    try:
        effect = Effect(data.get("Effect"))
    except ValueError as e:
        raise PolicyFormatError(f"statement {index} has invalid Effect {data.get('Effect')!r}") from e

    return PolicyStatement(
        effect=effect,
        principal=_parse_principal(index, data.get("Principal")),
        action=_parse_action(index, data.get("Action")),
        resource=_optional_string_tuple(index, "Resource", data.get("Resource")),
        extra=tuple(sorted((k, v) for k, v in data.items() if k not in _STATEMENT_KEYS)),
        source=tuple(data.items()),
    )


def _parse_principal(index: int, value: Any) -> Principal | None:
    if value is None:
        return None
    if value == WILDCARD_PRINCIPAL:
        return WildcardPrincipal()
    if isinstance(value, dict):
        aws = value.get(PRINCIPAL_KEY_AWS, [])
        others = tuple(sorted((k, v) for k, v in value.items() if k != PRINCIPAL_KEY_AWS))
        return PrincipalSet(aws=_string_tuple(index, "Principal.AWS", aws), others=others)
    raise PolicyFormatError(f"statement {index} has invalid Principal {value!r}")


def _parse_action(index: int, value: Any) -> Action | None:
    if value is None:
        return None
    if value == WILDCARD_ACTION:
        return WildcardAction()
    return ActionList(_string_tuple(index, "Action", value))


def _optional_string_tuple(index: int, name: str, value: Any) -> tuple[str, ...] | None:
    if value is None:
        return None
    return _string_tuple(index, name, value)


def _string_tuple(index: int, name: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise PolicyFormatError(f"statement {index} has invalid {name} {value!r}")


# Serialization


def serialize_policy(document: PolicyDocument) -> str:
    """Serialize a document with stable key order and two-space indentation.

    Statements built by the engine use the order Effect, Principal, Action,
    Resource followed by unmanaged keys. Parsed statements keep the layout
    they were read with.
    """
    data: dict[str, Any] = {"Version": document.version}
    data.update(document.extra)
    data["Statement"] = [_statement_to_dict(statement) for statement in document.statements]
    return json.dumps(data, indent=2)


def _statement_to_dict(statement: PolicyStatement) -> dict[str, Any]:
    data: dict[str, Any] = {"Effect": statement.effect.value}
    if statement.principal is not None:
        data["Principal"] = _principal_to_wire(statement.principal)
    if statement.action is not None:
        data["Action"] = _action_to_wire(statement.action)
    if statement.resource is not None:
        data["Resource"] = list(statement.resource)
    data.update(statement.extra)
    if statement.source is None:
        return data
    return _restore_layout(data, dict(statement.source))


def _restore_layout(data: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Lay ``data`` out like ``source``: its key order and its single strings."""
    restored = {key: _restore_value(data[key], value) for key, value in source.items() if key in data}
    restored.update((key, value) for key, value in data.items() if key not in restored)
    return restored


def _restore_value(value: Any, original: Any) -> Any:
    if isinstance(original, str) and value == [original]:
        return original
    if isinstance(original, dict) and isinstance(value, dict):
        return _restore_layout(value, original)
    return value


def _principal_to_wire(principal: Principal) -> str | dict[str, Any]:
    if isinstance(principal, WildcardPrincipal):
        return WILDCARD_PRINCIPAL
    wire: dict[str, Any] = {}
    if principal.aws or not principal.others:
        wire[PRINCIPAL_KEY_AWS] = list(principal.aws)
    wire.update(principal.others)
    return wire


def _action_to_wire(action: Action) -> str | list[str]:
    if isinstance(action, WildcardAction):
        return WILDCARD_ACTION
    return list(action.actions)
