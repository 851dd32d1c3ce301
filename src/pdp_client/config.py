"""Connection configuration for pdp-client.

Defines the immutable connection model and the option functions that build it.
A configuration starts from defaults and each option returns a new, validated
copy, so options apply in order and the last write to a field wins.
Interceptor options replace the previous tuple rather than extending it.

Example usage:
    conf = resolve_config(
        "dns:///cerbos.internal:3593",
        with_tls_ca_cert("/etc/cerbos/ca.pem"),
        with_max_retries(5),
    )
"""

from __future__ import annotations

__all__ = [
    "ConnectionConfig",
    "Opt",
    "resolve_config",
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
]

from collections.abc import Callable
from typing import Any, Self

import grpc
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pdp_client.constants import (
    DEFAULT_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_TIMEOUT_SECONDS,
    USER_AGENT,
)
from pdp_client.transport.stats import StatsHandler

_STREAM_INTERCEPTOR_TYPES = (
    grpc.UnaryStreamClientInterceptor,
    grpc.StreamUnaryClientInterceptor,
    grpc.StreamStreamClientInterceptor,
)


class ConnectionConfig(BaseModel):
    """Settings used to build a gRPC channel to the decision service.

    Attributes:
        address: Dial target (e.g., "localhost:3593", "dns:///cerbos:3593").
        tls_authority: Overrides the server authority when it differs from the address.
        tls_ca_cert: Path to a PEM CA bundle used to verify the server.
        tls_client_cert: Path to the PEM client certificate (mutual TLS).
        tls_client_key: Path to the PEM client private key (mutual TLS).
        tls_insecure: Trust whatever certificate the server presents.
        plaintext: Connect without transport security (h2c).
        user_agent: Primary user agent sent on every connection.
        playground_instance: Playground instance to route calls to (demo only).
        connect_timeout: Minimum connection establishment time in seconds (0 = transport default).
        max_retries: Total attempts per call (0 disables the retry interceptor).
        retry_timeout: Deadline for each attempt in seconds (0 disables the retry interceptor).
        max_recv_msg_size_bytes: Largest response accepted (0 = transport default).
        max_send_msg_size_bytes: Largest request sent (0 = transport default).
        unary_interceptors: Interceptors for unary-unary calls, outermost first.
        stream_interceptors: Interceptors for streaming calls, outermost first.
        stats_handler: Receives an RPCStats record for every call attempt.
    """

    address: str
    tls_authority: str = ""
    tls_ca_cert: str = ""
    tls_client_cert: str = ""
    tls_client_key: str = ""
    tls_insecure: bool = False
    plaintext: bool = False
    user_agent: str = Field(default=USER_AGENT, min_length=1)
    playground_instance: str = ""
    connect_timeout: float = Field(default=DEFAULT_CONNECT_TIMEOUT_SECONDS, ge=0)
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    retry_timeout: float = Field(default=DEFAULT_RETRY_TIMEOUT_SECONDS, ge=0)
    max_recv_msg_size_bytes: int = Field(default=0, ge=0)
    max_send_msg_size_bytes: int = Field(default=0, ge=0)
    unary_interceptors: tuple[Any, ...] = ()
    stream_interceptors: tuple[Any, ...] = ()
    stats_handler: Any = None

    model_config = ConfigDict(frozen=True)  # Immutable after creation

    @field_validator("unary_interceptors", mode="after")
    @classmethod
    def check_unary_interceptors(cls, v: tuple[Any, ...]) -> tuple[Any, ...]:
        """Only gRPC unary-unary client interceptors are accepted."""
        for interceptor in v:
            if not isinstance(interceptor, grpc.UnaryUnaryClientInterceptor):
                raise ValueError(f"{type(interceptor).__name__} is not a grpc.UnaryUnaryClientInterceptor")
        return v

    @field_validator("stream_interceptors", mode="after")
    @classmethod
    def check_stream_interceptors(cls, v: tuple[Any, ...]) -> tuple[Any, ...]:
        """Only gRPC streaming client interceptors are accepted."""
        for interceptor in v:
            if not isinstance(interceptor, _STREAM_INTERCEPTOR_TYPES):
                raise ValueError(f"{type(interceptor).__name__} is not a gRPC streaming client interceptor")
        return v

    @field_validator("stats_handler", mode="after")
    @classmethod
    def check_stats_handler(cls, v: Any) -> Any:
        """Stats handlers must implement handle_rpc()."""
        if v is not None and not isinstance(v, StatsHandler):
            raise ValueError(f"{type(v).__name__} does not implement StatsHandler.handle_rpc")
        return v

    @model_validator(mode="after")
    def check_client_cert_pair(self) -> Self:
        """Client certificate and key are only usable together."""
        if bool(self.tls_client_cert) != bool(self.tls_client_key):
            raise ValueError("tls_client_cert and tls_client_key must be set together")
        return self

    @property
    def retries_enabled(self) -> bool:
        """Whether the retry interceptor is installed."""
        return self.max_retries > 0 and self.retry_timeout > 0

    def with_changes(self, **changes: Any) -> ConnectionConfig:
        """Return a validated copy with the given fields replaced."""
        return type(self).model_validate({**dict(self), **changes})


# =============================================================================
# Option functions
# =============================================================================

Opt = Callable[[ConnectionConfig], ConnectionConfig]
"""Configuration option: takes a config and returns an updated copy."""


def resolve_config(address: str, *opts: Opt) -> ConnectionConfig:
    """Apply options, in order, over the default configuration.

    Args:
        address: Dial target.
        *opts: Option functions; later options override earlier ones.

    Returns:
        The final, frozen configuration.

    Raises:
        pydantic.ValidationError: If an option sets an invalid value.
    """
    conf = ConnectionConfig(address=address)
    for opt in opts:
        conf = opt(conf)
    return conf


def _set(**changes: Any) -> Opt:
    def apply(conf: ConnectionConfig) -> ConnectionConfig:
        return conf.with_changes(**changes)

    return apply


def with_plaintext() -> Opt:
    """Connect over h2c, without transport security."""
    return _set(plaintext=True)


def with_tls_authority(authority: str) -> Opt:
    """Override the server authority if it differs from the address."""
    return _set(tls_authority=authority)


def with_tls_insecure() -> Opt:
    """Skip verification of the server certificate chain."""
    return _set(tls_insecure=True)


def with_tls_ca_cert(cert_path: str) -> Opt:
    """Verify the server against the CA certificates in a PEM file."""
    return _set(tls_ca_cert=cert_path)


def with_tls_client_cert(cert: str, key: str) -> Opt:
    """Authenticate to the server with a client certificate and key (PEM files)."""
    return _set(tls_client_cert=cert, tls_client_key=key)


def with_connect_timeout(timeout: float) -> Opt:
    """Set the connection establishment timeout in seconds."""
    return _set(connect_timeout=timeout)


def with_max_retries(retries: int) -> Opt:
    """Set the maximum number of attempts per call."""
    return _set(max_retries=retries)


def with_retry_timeout(timeout: float) -> Opt:
    """Set the timeout of each attempt in seconds."""
    return _set(retry_timeout=timeout)


def with_user_agent(user_agent: str) -> Opt:
    """Set the user agent string."""
    return _set(user_agent=user_agent)


def with_playground_instance(instance: str) -> Opt:
    """Use a playground instance as the source of policies.

    Playground instances are for demonstration purposes only and do not
    provide any performance or availability guarantees.
    """
    return _set(playground_instance=instance)


def with_stream_interceptors(*interceptors: Any) -> Opt:
    """Set the interceptors for streaming calls, replacing earlier ones."""
    return _set(stream_interceptors=tuple(interceptors))


def with_unary_interceptors(*interceptors: grpc.UnaryUnaryClientInterceptor) -> Opt:
    """Set the interceptors for unary calls, replacing earlier ones."""
    return _set(unary_interceptors=tuple(interceptors))


def with_stats_handler(handler: StatsHandler) -> Opt:
    """Report per-attempt call statistics to a handler."""
    return _set(stats_handler=handler)


def with_max_recv_msg_size_bytes(size: int) -> Opt:
    """Set the maximum size of a single response payload."""
    return _set(max_recv_msg_size_bytes=size)


def with_max_send_msg_size_bytes(size: int) -> Opt:
    """Set the maximum size of a single request payload."""
    return _set(max_send_msg_size_bytes=size)
