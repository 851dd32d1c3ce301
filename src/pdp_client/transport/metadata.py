"""Static request metadata: playground routing and basic auth.

Metadata reaches the server one of two ways:
- Secure channels: call credentials (grpc.metadata_call_credentials), which
  gRPC only sends over an authenticated transport.
- Plaintext channels: MetadataInterceptor appends the pairs to every call.
"""

from __future__ import annotations

__all__ = [
    "Metadata",
    "MetadataInterceptor",
    "StaticMetadataPlugin",
    "basic_auth_metadata",
    "metadata_call_credentials",
    "playground_metadata",
]

import base64
from typing import Any

import grpc

from pdp_client.constants import AUTHORIZATION_HEADER, PLAYGROUND_INSTANCE_HEADER
from pdp_client.transport.call_details import replace_call_details

Metadata = tuple[tuple[str, str], ...]


def playground_metadata(instance: str) -> Metadata:
    """Metadata routing calls to a playground instance."""
    return ((PLAYGROUND_INSTANCE_HEADER, instance),)


def basic_auth_metadata(username: str, password: str) -> Metadata:
    """Metadata carrying HTTP basic credentials.

    Args:
        username: Admin user name.
        password: Admin password.

    Returns:
        A single authorization header pair.
    """
    token = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return ((AUTHORIZATION_HEADER, f"Basic {token}"),)


class StaticMetadataPlugin(grpc.AuthMetadataPlugin):
    """Supplies the same metadata to every call."""

    def __init__(self, metadata: Metadata) -> None:
        self._metadata = metadata

    def __call__(
        self,
        context: grpc.AuthMetadataContext,
        callback: grpc.AuthMetadataPluginCallback,
    ) -> None:
        callback(self._metadata, None)


def metadata_call_credentials(metadata: Metadata, name: str = "pdp-client") -> grpc.CallCredentials:
    """Wrap static metadata as call credentials for a secure channel."""
    return grpc.metadata_call_credentials(StaticMetadataPlugin(metadata), name=name)


class MetadataInterceptor(
    grpc.UnaryUnaryClientInterceptor,
    grpc.UnaryStreamClientInterceptor,
    grpc.StreamUnaryClientInterceptor,
    grpc.StreamStreamClientInterceptor,
):
    """Appends static metadata to every outgoing call."""

    def __init__(self, metadata: Metadata) -> None:
        self._metadata = metadata

    def _with_metadata(self, details: grpc.ClientCallDetails) -> grpc.ClientCallDetails:
        existing = tuple(details.metadata or ())
        return replace_call_details(details, metadata=existing + self._metadata)

    def intercept_unary_unary(self, continuation: Any, client_call_details: grpc.ClientCallDetails, request: Any) -> Any:
        return continuation(self._with_metadata(client_call_details), request)

    def intercept_unary_stream(self, continuation: Any, client_call_details: grpc.ClientCallDetails, request: Any) -> Any:
        return continuation(self._with_metadata(client_call_details), request)

    def intercept_stream_unary(
        self, continuation: Any, client_call_details: grpc.ClientCallDetails, request_iterator: Any
    ) -> Any:
        return continuation(self._with_metadata(client_call_details), request_iterator)

    def intercept_stream_stream(
        self, continuation: Any, client_call_details: grpc.ClientCallDetails, request_iterator: Any
    ) -> Any:
        return continuation(self._with_metadata(client_call_details), request_iterator)
