"""Request façade for the policy decision service.

Client wraps a channel with typed operations. Every operation validates its
input before building a request, so invalid principals or resources never
reach the transport; gRPC failures surface as RequestFailedError after the
retry interceptor has given up.

Example usage:
    with Client("localhost:3593", with_plaintext()) as client:
        alice = Principal(id="alice", roles=["employee"])
        album = Resource(kind="album", id="a1", attr={"owner": "alice"})
        if client.is_allowed(alice, album, "view"):
            ...
"""

from __future__ import annotations

__all__ = [
    "Client",
    "PrincipalContext",
]

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Self

import grpc

from pdp_client.client.options import RequestOpt, RequestOptions, build_request_options
from pdp_client.config import ConnectionConfig, Opt
from pdp_client.exceptions import FieldViolation, InvalidRequestError, RequestFailedError, UnexpectedResponseError
from pdp_client.model.principal import Principal
from pdp_client.model.resource import Resource, ResourceBatch
from pdp_client.model.responses import CheckResourcesResponse, PlanResourcesResponse, ServerInfo
from pdp_client.model.validation import ensure_valid
from pdp_client.protocol import effect_pb2, request_pb2, svc_pb2_grpc
from pdp_client.transport.channel import build_channel

logger = logging.getLogger(__name__)


class Client:
    """Synchronous client for the decision service.

    One channel per instance; safe for concurrent calls from multiple
    threads. Views created with with_options() share the channel.

    Args:
        address: Dial target (e.g., "localhost:3593", "unix:/var/run/cerbos.sock").
        *opts: Connection options (see pdp_client.config).

    Raises:
        ConfigurationError: If the configuration is invalid or TLS material cannot be loaded.
    """

    def __init__(self, address: str, *opts: Opt) -> None:
        self._channel, self._config = build_channel(address, *opts)
        self._stub = svc_pb2_grpc.CerbosServiceStub(self._channel)
        self._options = RequestOptions()

    @property
    def config(self) -> ConnectionConfig:
        """The resolved connection configuration."""
        return self._config

    @property
    def request_options(self) -> RequestOptions:
        """Options attached to requests built by this view."""
        return self._options

    def close(self) -> None:
        """Close the channel. Views sharing it stop working too."""
        self._channel.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # =========================================================================
    # Views
    # =========================================================================

    def with_options(self, *request_opts: RequestOpt) -> Client:
        """Return a view that attaches the given request options to every request.

        The view shares this client's channel. Options start from empty
        defaults, not from this view's options.
        """
        view = copy.copy(self)
        view._options = build_request_options(*request_opts)
        return view

    def with_principal(self, principal: Principal) -> PrincipalContext:
        """Bind a principal for repeated checks."""
        return PrincipalContext(self, principal)

    # =========================================================================
    # Operations
    # =========================================================================

    def plan_resources(
        self,
        principal: Principal,
        resource: Resource,
        *actions: str,
        timeout: float | None = None,
    ) -> PlanResourcesResponse:
        """Produce a query plan for the resources of a kind the principal may act on.

        The resource describes a kind, so its ID may be left empty.

        Args:
            principal: Who is acting.
            resource: Kind, attributes, policy version and scope to plan for.
            *actions: Actions to plan (at least one).
            timeout: Deadline for the whole call in seconds, retries included.

        Returns:
            The query plan.

        Raises:
            InvalidRequestError: If principal, resource or actions are invalid.
            RequestFailedError: If the call fails.
        """
        ensure_valid("principal", principal)
        ensure_valid("resource", resource.with_placeholder_id() if resource is not None else None)
        if not actions or not all(actions):
            raise InvalidRequestError(
                "plan request",
                [FieldViolation("actions", "at least one non-empty action is required")],
            )

        request = request_pb2.PlanResourcesRequest(
            principal=principal.to_proto(),
            resource=resource.to_plan_resource(),
            actions=list(actions),
        )
        self._options.apply(request)
        response = self._invoke("plan_resources", self._stub.PlanResources, request, timeout)
        return PlanResourcesResponse.from_proto(response)

    def check_resources(
        self,
        principal: Principal,
        batch: ResourceBatch,
        timeout: float | None = None,
    ) -> CheckResourcesResponse:
        """Check a batch of resources and actions for a principal.

        Args:
            principal: Who is acting.
            batch: Resources and the actions to check on each.
            timeout: Deadline for the whole call in seconds, retries included.

        Returns:
            Results in batch order.

        Raises:
            InvalidRequestError: If principal or batch are invalid.
            RequestFailedError: If the call fails.
        """
        ensure_valid("principal", principal)
        ensure_valid("resource batch", batch)

        request = request_pb2.CheckResourcesRequest(
            principal=principal.to_proto(),
            resources=batch.to_proto(),
        )
        self._options.apply(request)
        response = self._invoke("check_resources", self._stub.CheckResources, request, timeout)
        return CheckResourcesResponse.from_proto(response)

    def is_allowed(
        self,
        principal: Principal,
        resource: Resource,
        action: str,
        timeout: float | None = None,
    ) -> bool:
        """Check a single action on a single resource.

        Returns:
            True only if the service allowed the action.

        Raises:
            InvalidRequestError: If principal or resource are invalid.
            RequestFailedError: If the call fails.
            UnexpectedResponseError: If the service returned no result.
        """
        ensure_valid("principal", principal)
        ensure_valid("resource", resource)
        if not action:
            raise InvalidRequestError("check request", [FieldViolation("action", "value is required")])

        request = request_pb2.CheckResourcesRequest(
            principal=principal.to_proto(),
            resources=[
                request_pb2.CheckResourcesRequest.ResourceEntry(actions=[action], resource=resource.to_proto()),
            ],
        )
        self._options.apply(request)
        response = self._invoke("is_allowed", self._stub.CheckResources, request, timeout)

        if not response.results:
            raise UnexpectedResponseError("is_allowed", "no results returned")
        return response.results[0].actions.get(action, effect_pb2.EFFECT_UNSPECIFIED) == effect_pb2.EFFECT_ALLOW

    def server_info(self, timeout: float | None = None) -> ServerInfo:
        """Fetch build information from the service."""
        response = self._invoke("server_info", self._stub.ServerInfo, request_pb2.ServerInfoRequest(), timeout)
        return ServerInfo.from_proto(response)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _invoke(
        self,
        operation: str,
        rpc: Callable[..., Any],
        request: Any,
        timeout: float | None,
    ) -> Any:
        logger.debug(
            {
                "event": "rpc_dispatch",
                "message": f"Calling {operation}",
                "details": {"operation": operation, "request_id": getattr(request, "request_id", None)},
            }
        )
        try:
            return rpc(request, timeout=timeout, metadata=self._options.headers or None)
        except grpc.RpcError as e:
            error = RequestFailedError.from_rpc_error(operation, e)
            logger.debug(
                {
                    "event": "rpc_failed",
                    "message": str(error),
                    "details": {"operation": operation, "code": error.code.name if error.code else None},
                }
            )
            raise error from e


@dataclass(frozen=True)
class PrincipalContext:
    """A client bound to one principal."""

    client: Client
    principal: Principal

    def is_allowed(self, resource: Resource, action: str, timeout: float | None = None) -> bool:
        return self.client.is_allowed(self.principal, resource, action, timeout=timeout)

    def check_resources(self, batch: ResourceBatch, timeout: float | None = None) -> CheckResourcesResponse:
        return self.client.check_resources(self.principal, batch, timeout=timeout)

    def plan_resources(self, resource: Resource, *actions: str, timeout: float | None = None) -> PlanResourcesResponse:
        return self.client.plan_resources(self.principal, resource, *actions, timeout=timeout)
