"""pdp-client: Python client for a policy decision service over gRPC.

Structure:
    client/     Client (check, plan, server info) and AdminClient façades
    model/      Principal, Resource, ResourceBatch, Effect, response views
    transport/  Channel construction, TLS, retry/stats/metadata interceptors
    auth/       Basic-auth credential resolution (args, environment, netrc)
    utils/      Policy/schema decoding, target parsing, request ID context
    config.py   ConnectionConfig and connection option functions
"""

from pdp_client._version import __version__
from pdp_client.client import (
    AdminClient,
    Client,
    PrincipalContext,
    RequestOptions,
    aux_data_jwt,
    include_meta,
    with_headers,
    with_request_id,
)
from pdp_client.config import (
    ConnectionConfig,
    with_connect_timeout,
    with_max_recv_msg_size_bytes,
    with_max_retries,
    with_max_send_msg_size_bytes,
    with_plaintext,
    with_playground_instance,
    with_retry_timeout,
    with_stats_handler,
    with_stream_interceptors,
    with_tls_authority,
    with_tls_ca_cert,
    with_tls_client_cert,
    with_tls_insecure,
    with_unary_interceptors,
    with_user_agent,
)
from pdp_client.model import (
    CheckResourcesResponse,
    Effect,
    PlanResourcesResponse,
    Principal,
    Resource,
    ResourceBatch,
    ServerInfo,
)
from pdp_client.transport.channel import build_channel
from pdp_client.utils.policy import (
    read_json_or_yaml,
    read_policy,
    read_policy_from_file,
    read_schema,
    read_schema_from_file,
)

__all__ = [
    "__version__",
    # Façades
    "AdminClient",
    "Client",
    "PrincipalContext",
    # Request options
    "RequestOptions",
    "aux_data_jwt",
    "include_meta",
    "with_headers",
    "with_request_id",
    # Connection
    "ConnectionConfig",
    "build_channel",
    "with_connect_timeout",
    "with_max_recv_msg_size_bytes",
    "with_max_retries",
    "with_max_send_msg_size_bytes",
    "with_plaintext",
    "with_playground_instance",
    "with_retry_timeout",
    "with_stats_handler",
    "with_stream_interceptors",
    "with_tls_authority",
    "with_tls_ca_cert",
    "with_tls_client_cert",
    "with_tls_insecure",
    "with_unary_interceptors",
    "with_user_agent",
    # Models
    "CheckResourcesResponse",
    "Effect",
    "PlanResourcesResponse",
    "Principal",
    "Resource",
    "ResourceBatch",
    "ServerInfo",
    # Documents
    "read_json_or_yaml",
    "read_policy",
    "read_policy_from_file",
    "read_schema",
    "read_schema_from_file",
]
