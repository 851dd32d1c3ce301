"""Admin façade for policy and schema management.

AdminClient talks to the service's admin API, which requires HTTP basic
credentials. Server address and credentials are resolved from explicit
arguments, then the environment, then the netrc file (see pdp_client.auth).

Example usage:
    with AdminClient("cerbos.internal:3593", with_tls_ca_cert("ca.pem")) as admin:
        admin.add_or_update_policy(read_policy_from_file("policies/album.yaml"))
"""

from __future__ import annotations

__all__ = ["AdminClient"]

import logging
from collections.abc import Callable, Mapping
from typing import Any, Self

import grpc

from pdp_client.auth.basic import load_basic_auth_data
from pdp_client.config import ConnectionConfig, Opt
from pdp_client.exceptions import ConfigurationError, FieldViolation, InvalidRequestError, RequestFailedError
from pdp_client.protocol import policy_pb2, request_pb2, schema_pb2, svc_pb2_grpc
from pdp_client.transport.channel import build_channel
from pdp_client.transport.metadata import basic_auth_metadata, metadata_call_credentials

logger = logging.getLogger(__name__)


class AdminClient:
    """Synchronous client for the admin API.

    Args:
        address: Dial target; empty falls back to CERBOS_SERVER.
        *opts: Connection options (see pdp_client.config).
        username: Admin user; empty falls back to CERBOS_USERNAME, then netrc.
        password: Admin password; empty falls back to CERBOS_PASSWORD, then netrc.
        environment: Environment to read from (defaults to os.environ).

    Raises:
        CredentialError: If credentials cannot be resolved.
        ConfigurationError: If no server address is available or the channel cannot be built.
    """

    def __init__(
        self,
        address: str = "",
        *opts: Opt,
        username: str = "",
        password: str = "",
        environment: Mapping[str, str] | None = None,
    ) -> None:
        auth = load_basic_auth_data(environment, server=address, username=username, password=password)
        if not auth.server:
            raise ConfigurationError("no server address: pass one explicitly or set CERBOS_SERVER")

        self._channel, self._config = build_channel(auth.server, *opts)
        self._stub = svc_pb2_grpc.CerbosAdminServiceStub(self._channel)

        # Call credentials require a secure channel
        metadata = basic_auth_metadata(auth.username, auth.password)
        if self._config.plaintext:
            self._call_kwargs: dict[str, Any] = {"metadata": metadata}
        else:
            self._call_kwargs = {"credentials": metadata_call_credentials(metadata, name="basic-auth")}

    @property
    def config(self) -> ConnectionConfig:
        """The resolved connection configuration."""
        return self._config

    def close(self) -> None:
        """Close the channel."""
        self._channel.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # =========================================================================
    # Policies
    # =========================================================================

    def add_or_update_policy(self, *policies: policy_pb2.Policy, timeout: float | None = None) -> None:
        """Create or replace policies in the store."""
        _require("policies", policies)
        request = request_pb2.AddOrUpdatePolicyRequest(policies=list(policies))
        self._invoke("add_or_update_policy", self._stub.AddOrUpdatePolicy, request, timeout)

    def list_policies(
        self,
        *,
        include_disabled: bool = False,
        name_regexp: str = "",
        scope_regexp: str = "",
        version_regexp: str = "",
        timeout: float | None = None,
    ) -> list[str]:
        """List policy IDs, optionally filtered."""
        filters: dict[str, Any] = {
            "include_disabled": include_disabled,
            "name_regexp": name_regexp,
            "scope_regexp": scope_regexp,
            "version_regexp": version_regexp,
        }
        request = request_pb2.ListPoliciesRequest(**{k: v for k, v in filters.items() if v})
        response = self._invoke("list_policies", self._stub.ListPolicies, request, timeout)
        return list(response.policy_ids)

    def get_policy(self, *ids: str, timeout: float | None = None) -> list[policy_pb2.Policy]:
        """Fetch policies by ID."""
        _require("ids", ids)
        request = request_pb2.GetPolicyRequest(id=list(ids))
        response = self._invoke("get_policy", self._stub.GetPolicy, request, timeout)
        return list(response.policies)

    def disable_policy(self, *ids: str, timeout: float | None = None) -> int:
        """Disable policies by ID; returns how many were disabled."""
        _require("ids", ids)
        request = request_pb2.DisablePolicyRequest(id=list(ids))
        response = self._invoke("disable_policy", self._stub.DisablePolicy, request, timeout)
        return response.disabled_policies

    def enable_policy(self, *ids: str, timeout: float | None = None) -> int:
        """Enable policies by ID; returns how many were enabled."""
        _require("ids", ids)
        request = request_pb2.EnablePolicyRequest(id=list(ids))
        response = self._invoke("enable_policy", self._stub.EnablePolicy, request, timeout)
        return response.enabled_policies

    # =========================================================================
    # Schemas
    # =========================================================================

    def add_or_update_schema(self, *schemas: schema_pb2.Schema, timeout: float | None = None) -> None:
        """Create or replace schemas in the store."""
        _require("schemas", schemas)
        request = request_pb2.AddOrUpdateSchemaRequest(schemas=list(schemas))
        self._invoke("add_or_update_schema", self._stub.AddOrUpdateSchema, request, timeout)

    def list_schemas(self, timeout: float | None = None) -> list[str]:
        """List schema IDs."""
        response = self._invoke("list_schemas", self._stub.ListSchemas, request_pb2.ListSchemasRequest(), timeout)
        return list(response.schema_ids)

    def get_schema(self, *ids: str, timeout: float | None = None) -> list[schema_pb2.Schema]:
        """Fetch schemas by ID."""
        _require("ids", ids)
        request = request_pb2.GetSchemaRequest(id=list(ids))
        response = self._invoke("get_schema", self._stub.GetSchema, request, timeout)
        return list(response.schemas)

    def delete_schema(self, *ids: str, timeout: float | None = None) -> int:
        """Delete schemas by ID; returns how many were deleted."""
        _require("ids", ids)
        request = request_pb2.DeleteSchemaRequest(id=list(ids))
        response = self._invoke("delete_schema", self._stub.DeleteSchema, request, timeout)
        return response.deleted_schemas

    # =========================================================================
    # Store
    # =========================================================================

    def reload_store(self, wait: bool = False, timeout: float | None = None) -> None:
        """Ask the service to reload its policy store.

        Args:
            wait: Block until the reload has finished.
            timeout: Deadline for the call in seconds.
        """
        request = request_pb2.ReloadStoreRequest(wait=wait)
        self._invoke("reload_store", self._stub.ReloadStore, request, timeout)

    def _invoke(
        self,
        operation: str,
        rpc: Callable[..., Any],
        request: Any,
        timeout: float | None,
    ) -> Any:
        logger.debug({"event": "admin_rpc_dispatch", "message": f"Calling {operation}"})
        try:
            return rpc(request, timeout=timeout, **self._call_kwargs)
        except grpc.RpcError as e:
            raise RequestFailedError.from_rpc_error(operation, e) from e


def _require(field: str, values: tuple[Any, ...]) -> None:
    if not values:
        raise InvalidRequestError("admin request", [FieldViolation(field, "at least one value is required")])
    for index, value in enumerate(values):
        if value is None or value == "":
            raise InvalidRequestError("admin request", [FieldViolation(f"{field}[{index}]", "value is required")])
