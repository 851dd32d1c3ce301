"""Principal model - WHO is making the request.

The Principal represents the identity being authorized, in the terms the
decision service's policies understand: an ID, the roles it holds and
arbitrary attributes for conditions.
"""

from __future__ import annotations

__all__ = ["Principal"]

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pdp_client.exceptions import FieldViolation
from pdp_client.model.validation import (
    attr_violations,
    policy_version_violations,
    scope_violations,
    to_value,
)
from pdp_client.protocol import engine_pb2


class Principal(BaseModel):
    """Identity being authorized.

    Attributes:
        id: Unique principal identifier (required).
        roles: Roles held by the principal (at least one, unique, non-empty).
        attr: Attributes available to policy conditions (JSON-compatible values).
        policy_version: Principal policy version to evaluate (empty = default).
        scope: Principal policy scope (dot-separated, empty = root).
    """

    id: str = ""
    roles: tuple[str, ...] = ()
    attr: dict[str, Any] = Field(default_factory=dict)
    policy_version: str = ""
    scope: str = ""

    model_config = ConfigDict(frozen=True)  # Immutable after creation

    def with_roles(self, *roles: str) -> Principal:
        """Return a copy holding additional roles."""
        return self.model_copy(update={"roles": self.roles + roles})

    def with_attr(self, **attr: Any) -> Principal:
        """Return a copy with attributes added or replaced."""
        return self.model_copy(update={"attr": {**self.attr, **attr}})

    def validation_errors(self) -> list[FieldViolation]:
        """Check the principal against the service's request rules."""
        violations: list[FieldViolation] = []
        if not self.id:
            violations.append(FieldViolation("id", "value is required"))

        if not self.roles:
            violations.append(FieldViolation("roles", "at least one role is required"))
        seen: set[str] = set()
        for index, role in enumerate(self.roles):
            if not role:
                violations.append(FieldViolation(f"roles[{index}]", "role must be non-empty"))
            elif role in seen:
                violations.append(FieldViolation(f"roles[{index}]", f"duplicate role {role!r}"))
            seen.add(role)

        violations.extend(policy_version_violations(self.policy_version))
        violations.extend(scope_violations(self.scope))
        violations.extend(attr_violations(self.attr))
        return violations

    def to_proto(self) -> engine_pb2.Principal:
        """Build the wire message. Call validation_errors() first."""
        return engine_pb2.Principal(
            id=self.id,
            roles=list(self.roles),
            attr={key: to_value(value) for key, value in self.attr.items()},
            policy_version=self.policy_version,
            scope=self.scope,
        )
