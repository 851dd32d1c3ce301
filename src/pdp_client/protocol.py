"""Generated protocol types for the policy decision service.

The message and stub types are owned by the service's protobuf schema and
ship in the ``cerbos`` distribution. Everything in pdp-client imports them
from here so there is a single seam between the SDK and the generated code.
"""

from __future__ import annotations

__all__ = [
    "effect_pb2",
    "engine_pb2",
    "policy_pb2",
    "request_pb2",
    "response_pb2",
    "schema_pb2",
    "svc_pb2_grpc",
]

from cerbos.effect.v1 import effect_pb2
from cerbos.engine.v1 import engine_pb2
from cerbos.policy.v1 import policy_pb2
from cerbos.request.v1 import request_pb2
from cerbos.response.v1 import response_pb2
from cerbos.schema.v1 import schema_pb2
from cerbos.svc.v1 import svc_pb2_grpc
