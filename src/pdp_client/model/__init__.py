"""Request and response models.

Modules:
    principal.py  - Principal (who)
    resource.py   - Resource, ResourceBatch (what)
    effect.py     - Effect enum
    responses.py  - Check/plan/server-info response views
    validation.py - Shared validation rules and ensure_valid
"""

from pdp_client.model.effect import Effect
from pdp_client.model.principal import Principal
from pdp_client.model.resource import BatchEntry, Resource, ResourceBatch
from pdp_client.model.responses import (
    CheckResourcesResponse,
    PlanKind,
    PlanResourcesResponse,
    ResourceResult,
    ServerInfo,
)
from pdp_client.model.validation import Validatable, ensure_valid

__all__ = [
    "BatchEntry",
    "CheckResourcesResponse",
    "Effect",
    "PlanKind",
    "PlanResourcesResponse",
    "Principal",
    "Resource",
    "ResourceBatch",
    "ResourceResult",
    "ServerInfo",
    "Validatable",
    "ensure_valid",
]
