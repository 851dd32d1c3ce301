"""Validation rules shared by the request models.

Validation runs before any request is built. Objects report every failing
rule at once; ensure_valid turns a non-empty report into InvalidRequestError,
so no invalid object ever reaches the transport.
"""

from __future__ import annotations

__all__ = [
    "Validatable",
    "attr_violations",
    "ensure_valid",
    "policy_version_violations",
    "prefixed",
    "scope_violations",
    "to_value",
]

import re
from collections.abc import Iterable, Mapping
from typing import Any, Protocol, runtime_checkable

from google.protobuf import json_format, struct_pb2

from pdp_client.exceptions import FieldViolation, InvalidRequestError

# Word characters only, possibly empty (empty selects the server's default version)
_POLICY_VERSION_PATTERN = re.compile(r"[\w]*", re.ASCII)

# Dot-separated segments, each starting with an alphanumeric; empty is the root scope
_SCOPE_PATTERN = re.compile(r"([0-9a-zA-Z][\w\-]*(\.[\w\-]*)*)*", re.ASCII)


@runtime_checkable
class Validatable(Protocol):
    """Anything that can report its own validation failures."""

    def validation_errors(self) -> list[FieldViolation]:
        """Return every failing rule (empty when valid)."""
        ...


def ensure_valid(subject: str, obj: Validatable | None) -> None:
    """Raise if an object is missing or invalid.

    Args:
        subject: What is being validated, for the error message (e.g., "principal").
        obj: The object, or None when the caller passed nothing.

    Raises:
        InvalidRequestError: Listing every violation.
    """
    if obj is None:
        raise InvalidRequestError(subject, [FieldViolation(subject, "value is required")])

    violations = obj.validation_errors()
    if violations:
        raise InvalidRequestError(subject, violations)


def prefixed(prefix: str, violations: Iterable[FieldViolation]) -> list[FieldViolation]:
    """Nest violations under a parent field path."""
    return [FieldViolation(f"{prefix}.{v.field}", v.message) for v in violations]


def policy_version_violations(policy_version: str) -> list[FieldViolation]:
    if _POLICY_VERSION_PATTERN.fullmatch(policy_version):
        return []
    return [FieldViolation("policy_version", f"{policy_version!r} must contain only word characters")]


def scope_violations(scope: str) -> list[FieldViolation]:
    if _SCOPE_PATTERN.fullmatch(scope):
        return []
    return [FieldViolation("scope", f"{scope!r} is not a valid dot-separated scope")]


def attr_violations(attr: Mapping[str, Any]) -> list[FieldViolation]:
    """Every attribute value must be representable as a JSON value."""
    violations: list[FieldViolation] = []
    for key, value in attr.items():
        if not key:
            violations.append(FieldViolation("attr", "attribute names must be non-empty"))
            continue
        try:
            to_value(value)
        except (json_format.ParseError, TypeError, ValueError) as e:
            violations.append(FieldViolation(f"attr.{key}", f"not a JSON-compatible value: {e}"))
    return violations


def to_value(value: Any) -> struct_pb2.Value:
    """Convert a JSON-compatible Python value into a protobuf Value.

    Raises:
        google.protobuf.json_format.ParseError: If the value has no JSON form.
    """
    return json_format.ParseDict(value, struct_pb2.Value())
