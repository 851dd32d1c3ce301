"""Resource models - WHAT is being accessed.

Resource describes one instance (or, for plan queries, a kind of resource).
ResourceBatch groups resources with the actions to check on each.
"""

from __future__ import annotations

__all__ = [
    "BatchEntry",
    "Resource",
    "ResourceBatch",
]

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field

from pdp_client.constants import PLAN_RESOURCE_PLACEHOLDER_ID
from pdp_client.exceptions import FieldViolation
from pdp_client.model.validation import (
    attr_violations,
    policy_version_violations,
    prefixed,
    scope_violations,
    to_value,
)
from pdp_client.protocol import engine_pb2, request_pb2


class Resource(BaseModel):
    """A resource instance.

    Attributes:
        kind: Resource kind, matching a resource policy (required).
        id: Instance identifier (required, except for plan queries).
        attr: Attributes available to policy conditions (JSON-compatible values).
        policy_version: Resource policy version to evaluate (empty = default).
        scope: Resource policy scope (dot-separated, empty = root).
    """

    kind: str = ""
    id: str = ""
    attr: dict[str, Any] = Field(default_factory=dict)
    policy_version: str = ""
    scope: str = ""

    model_config = ConfigDict(frozen=True)  # Immutable after creation

    def with_attr(self, **attr: Any) -> Resource:
        """Return a copy with attributes added or replaced."""
        return self.model_copy(update={"attr": {**self.attr, **attr}})

    def with_placeholder_id(self) -> Resource:
        """Copy carrying a placeholder ID when this resource has none.

        Plan queries describe resources of a kind rather than an instance,
        so callers leave the ID empty. The caller's object is never changed.
        """
        if self.id:
            return self
        return self.model_copy(update={"id": PLAN_RESOURCE_PLACEHOLDER_ID})

    def validation_errors(self) -> list[FieldViolation]:
        """Check the resource against the service's request rules."""
        violations: list[FieldViolation] = []
        if not self.kind:
            violations.append(FieldViolation("kind", "value is required"))
        if not self.id:
            violations.append(FieldViolation("id", "value is required"))
        violations.extend(policy_version_violations(self.policy_version))
        violations.extend(scope_violations(self.scope))
        violations.extend(attr_violations(self.attr))
        return violations

    def to_proto(self) -> engine_pb2.Resource:
        """Build the wire message for check requests."""
        return engine_pb2.Resource(
            kind=self.kind,
            id=self.id,
            attr=self._attr_values(),
            policy_version=self.policy_version,
            scope=self.scope,
        )

    def to_plan_resource(self) -> engine_pb2.PlanResourcesInput.Resource:
        """Build the wire message for plan requests (no instance ID)."""
        return engine_pb2.PlanResourcesInput.Resource(
            kind=self.kind,
            attr=self._attr_values(),
            policy_version=self.policy_version,
            scope=self.scope,
        )

    def _attr_values(self) -> dict[str, Any]:
        return {key: to_value(value) for key, value in self.attr.items()}


class BatchEntry(BaseModel):
    """One resource and the actions to check on it."""

    resource: Resource
    actions: tuple[str, ...]

    model_config = ConfigDict(frozen=True)


class ResourceBatch(BaseModel):
    """Ordered list of resources to check in a single request.

    Example:
        batch = (
            ResourceBatch()
            .add(Resource(kind="album", id="a1"), "view", "edit")
            .add(Resource(kind="album", id="a2"), "view")
        )
    """

    entries: list[BatchEntry] = Field(default_factory=list)

    def add(self, resource: Resource, *actions: str) -> Self:
        """Append a resource with the actions to check on it."""
        self.entries.append(BatchEntry(resource=resource, actions=actions))
        return self

    def __len__(self) -> int:
        return len(self.entries)

    def validation_errors(self) -> list[FieldViolation]:
        """Check every entry; field paths name the offending entry."""
        if not self.entries:
            return [FieldViolation("entries", "at least one resource is required")]

        violations: list[FieldViolation] = []
        for index, entry in enumerate(self.entries):
            path = f"entries[{index}]"
            violations.extend(prefixed(f"{path}.resource", entry.resource.validation_errors()))
            if not entry.actions:
                violations.append(FieldViolation(f"{path}.actions", "at least one action is required"))
            for action_index, action in enumerate(entry.actions):
                if not action:
                    violations.append(FieldViolation(f"{path}.actions[{action_index}]", "action must be non-empty"))
        return violations

    def to_proto(self) -> list[request_pb2.CheckResourcesRequest.ResourceEntry]:
        """Build the resource entries of a check request."""
        return [
            request_pb2.CheckResourcesRequest.ResourceEntry(
                actions=list(entry.actions),
                resource=entry.resource.to_proto(),
            )
            for entry in self.entries
        ]
