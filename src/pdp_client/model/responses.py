"""Read-only views over decision service responses.

Each view keeps the raw protocol message (``raw``) for fields the view does
not surface.
"""

from __future__ import annotations

__all__ = [
    "CheckResourcesResponse",
    "PlanKind",
    "PlanResourcesResponse",
    "ResourceResult",
    "ServerInfo",
]

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from pdp_client.model.effect import Effect
from pdp_client.protocol import engine_pb2, response_pb2

# =============================================================================
# Check
# =============================================================================


@dataclass(frozen=True)
class ResourceResult:
    """Effects for one resource of a check request.

    Attributes:
        id: Resource ID as echoed by the server.
        kind: Resource kind.
        policy_version: Policy version that was evaluated.
        scope: Policy scope that was evaluated.
        actions: Effect per requested action.
        raw: The underlying result entry.
    """

    id: str
    kind: str
    policy_version: str
    scope: str
    actions: Mapping[str, Effect]
    raw: Any

    @classmethod
    def from_proto(cls, entry: Any) -> ResourceResult:
        return cls(
            id=entry.resource.id,
            kind=entry.resource.kind,
            policy_version=entry.resource.policy_version,
            scope=entry.resource.scope,
            actions=MappingProxyType({action: Effect.from_proto(effect) for action, effect in entry.actions.items()}),
            raw=entry,
        )

    @property
    def validation_errors(self) -> tuple[Any, ...]:
        """Validation errors the service reported for this resource."""
        return tuple(self.raw.validation_errors)

    def is_allowed(self, action: str) -> bool:
        """True only if the action was checked and allowed."""
        return self.actions.get(action) is Effect.ALLOW


@dataclass(frozen=True)
class CheckResourcesResponse:
    """Results of a batch check, in request order."""

    results: tuple[ResourceResult, ...]
    raw: response_pb2.CheckResourcesResponse

    @classmethod
    def from_proto(cls, response: response_pb2.CheckResourcesResponse) -> CheckResourcesResponse:
        return cls(
            results=tuple(ResourceResult.from_proto(entry) for entry in response.results),
            raw=response,
        )

    @property
    def request_id(self) -> str:
        return self.raw.request_id

    def find(self, resource_id: str) -> ResourceResult | None:
        """First result for a resource ID, or None if absent."""
        for result in self.results:
            if result.id == resource_id:
                return result
        return None

    def is_allowed(self, resource_id: str, action: str) -> bool:
        """True only if the resource is present and the action was allowed."""
        result = self.find(resource_id)
        return result is not None and result.is_allowed(action)


# =============================================================================
# Plan
# =============================================================================


class PlanKind(str, Enum):
    """Shape of a query plan.

    Attributes:
        ALWAYS_ALLOWED: Every resource of the kind is allowed.
        ALWAYS_DENIED: No resource of the kind is allowed.
        CONDITIONAL: Resources are allowed when the condition holds.
        UNSPECIFIED: The service reported no plan kind.
    """

    ALWAYS_ALLOWED = "always_allowed"
    ALWAYS_DENIED = "always_denied"
    CONDITIONAL = "conditional"
    UNSPECIFIED = "unspecified"


_PLAN_KINDS: dict[int, PlanKind] = {
    engine_pb2.PlanResourcesFilter.KIND_ALWAYS_ALLOWED: PlanKind.ALWAYS_ALLOWED,
    engine_pb2.PlanResourcesFilter.KIND_ALWAYS_DENIED: PlanKind.ALWAYS_DENIED,
    engine_pb2.PlanResourcesFilter.KIND_CONDITIONAL: PlanKind.CONDITIONAL,
}


@dataclass(frozen=True)
class PlanResourcesResponse:
    """Query plan for the resources a principal may act on."""

    raw: response_pb2.PlanResourcesResponse

    @classmethod
    def from_proto(cls, response: response_pb2.PlanResourcesResponse) -> PlanResourcesResponse:
        return cls(raw=response)

    @property
    def request_id(self) -> str:
        return self.raw.request_id

    @property
    def resource_kind(self) -> str:
        return self.raw.resource_kind

    @property
    def policy_version(self) -> str:
        return self.raw.policy_version

    @property
    def validation_errors(self) -> tuple[Any, ...]:
        """Validation errors the service reported for the principal or resource."""
        return tuple(self.raw.validation_errors)

    @property
    def kind(self) -> PlanKind:
        return _PLAN_KINDS.get(self.raw.filter.kind, PlanKind.UNSPECIFIED)

    @property
    def condition(self) -> Any | None:
        """Condition expression for CONDITIONAL plans, otherwise None."""
        if self.kind is not PlanKind.CONDITIONAL or not self.raw.filter.HasField("condition"):
            return None
        return self.raw.filter.condition

    def is_always_allowed(self) -> bool:
        return self.kind is PlanKind.ALWAYS_ALLOWED

    def is_always_denied(self) -> bool:
        return self.kind is PlanKind.ALWAYS_DENIED

    def is_conditional(self) -> bool:
        return self.kind is PlanKind.CONDITIONAL


# =============================================================================
# Server info
# =============================================================================


@dataclass(frozen=True)
class ServerInfo:
    """Build information reported by the decision service."""

    version: str
    commit: str
    build_date: str

    @classmethod
    def from_proto(cls, response: response_pb2.ServerInfoResponse) -> ServerInfo:
        return cls(version=response.version, commit=response.commit, build_date=response.build_date)
