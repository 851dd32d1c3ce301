"""Client façades for the policy decision service.

Modules:
    grpc_client.py - Client (check, plan, server info) and PrincipalContext
    admin.py       - AdminClient (policy/schema management, basic auth)
    options.py     - Per-request options for scoped views
"""

from pdp_client.client.admin import AdminClient
from pdp_client.client.grpc_client import Client, PrincipalContext
from pdp_client.client.options import (
    RequestOptions,
    aux_data_jwt,
    include_meta,
    with_headers,
    with_request_id,
)

__all__ = [
    "AdminClient",
    "Client",
    "PrincipalContext",
    "RequestOptions",
    "aux_data_jwt",
    "include_meta",
    "with_headers",
    "with_request_id",
]
