"""gRPC channel construction.

Turns a ConnectionConfig into a ready-to-use channel:
- Transport security: plaintext (h2c), verified TLS, mutual TLS or insecure TLS
- Channel options: user agent, reconnect backoff, message size limits, authority
- Gzip compression on every call
- Interceptor chain, outermost first: retry, caller's unary interceptors,
  caller's stream interceptors, playground metadata (plaintext only), stats

Channels are created lazily by gRPC; building one never contacts the server,
except in insecure TLS mode where the server certificate is fetched once.
"""

from __future__ import annotations

__all__ = [
    "build_channel",
    "channel_interceptors",
    "channel_options",
    "create_channel",
]

import logging
from typing import Any

import grpc
from pydantic import ValidationError

from pdp_client.config import ConnectionConfig, Opt, resolve_config
from pdp_client.exceptions import ConfigurationError
from pdp_client.transport.metadata import (
    MetadataInterceptor,
    metadata_call_credentials,
    playground_metadata,
)
from pdp_client.transport.retry import RetryInterceptor
from pdp_client.transport.stats import StatsInterceptor
from pdp_client.transport.tls import create_channel_security

logger = logging.getLogger(__name__)


def build_channel(address: str, *opts: Opt) -> tuple[grpc.Channel, ConnectionConfig]:
    """Resolve options and create a channel to the decision service.

    Args:
        address: Dial target (e.g., "localhost:3593", "dns:///cerbos:3593", "unix:/var/run/cerbos.sock").
        *opts: Configuration options, applied in order.

    Returns:
        The channel and the configuration it was built from.

    Raises:
        ConfigurationError: If an option is invalid, TLS material cannot be
            loaded, or the channel cannot be created.
    """
    try:
        conf = resolve_config(address, *opts)
    except ValidationError as e:
        raise ConfigurationError(f"invalid connection configuration: {e}") from e
    return create_channel(conf), conf


def create_channel(conf: ConnectionConfig) -> grpc.Channel:
    """Create a channel from a resolved configuration.

    Args:
        conf: Connection configuration.

    Returns:
        Channel with the interceptor chain installed.

    Raises:
        ConfigurationError: If TLS material cannot be loaded or the channel cannot be created.
    """
    options = channel_options(conf)

    try:
        if conf.plaintext:
            channel = grpc.insecure_channel(conf.address, options=options, compression=grpc.Compression.Gzip)
        else:
            security = create_channel_security(conf)
            credentials = security.credentials
            if conf.playground_instance:
                credentials = grpc.composite_channel_credentials(
                    credentials,
                    metadata_call_credentials(playground_metadata(conf.playground_instance)),
                )
            name_override = conf.tls_authority or security.target_name_override
            if name_override:
                options.append(("grpc.ssl_target_name_override", name_override))
            channel = grpc.secure_channel(
                conf.address, credentials, options=options, compression=grpc.Compression.Gzip
            )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"failed to create gRPC channel to {conf.address!r}: {e}") from e

    interceptors = channel_interceptors(conf)
    if interceptors:
        channel = grpc.intercept_channel(channel, *interceptors)

    logger.debug(
        {
            "event": "channel_created",
            "message": f"Created {'plaintext' if conf.plaintext else 'TLS'} channel to {conf.address}",
            "details": {
                "address": conf.address,
                "plaintext": conf.plaintext,
                "tls_insecure": conf.tls_insecure,
                "retries": conf.max_retries if conf.retries_enabled else 0,
                "interceptors": len(interceptors),
            },
        }
    )
    return channel


def channel_options(conf: ConnectionConfig) -> list[tuple[str, Any]]:
    """Channel arguments derived from a configuration.

    Size limits are only set when positive, leaving the transport defaults
    in place otherwise. The authority override applies to TLS channels only.
    """
    options: list[tuple[str, Any]] = [("grpc.primary_user_agent", conf.user_agent)]
    if conf.connect_timeout > 0:
        options.append(("grpc.min_reconnect_backoff_ms", int(conf.connect_timeout * 1000)))
    if conf.max_recv_msg_size_bytes > 0:
        options.append(("grpc.max_receive_message_length", conf.max_recv_msg_size_bytes))
    if conf.max_send_msg_size_bytes > 0:
        options.append(("grpc.max_send_message_length", conf.max_send_msg_size_bytes))
    if conf.tls_authority and not conf.plaintext:
        options.append(("grpc.default_authority", conf.tls_authority))
    return options


def channel_interceptors(conf: ConnectionConfig) -> list[Any]:
    """Interceptor chain for a configuration, outermost first."""
    interceptors: list[Any] = []
    if conf.retries_enabled:
        interceptors.append(RetryInterceptor(conf.max_retries, conf.retry_timeout))
    interceptors.extend(conf.unary_interceptors)
    interceptors.extend(conf.stream_interceptors)
    if conf.plaintext and conf.playground_instance:
        interceptors.append(MetadataInterceptor(playground_metadata(conf.playground_instance)))
    if conf.stats_handler is not None:
        interceptors.append(StatsInterceptor(conf.stats_handler))
    return interceptors
