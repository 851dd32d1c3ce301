"""gRPC target parsing.

Splits dial targets into host and port so the credential resolver can look up
the right netrc machine and the TLS layer knows which server to contact.

Supported forms:
    host, host:port, [v6]:port, bare IPv4/IPv6,
    dns:host:port, dns:///host:port, dns://authority/host:port

Anything with a scheme other than dns (unix:, unix-abstract:, vsock:, ...)
has no network host and is rejected.
"""

from __future__ import annotations

__all__ = [
    "DNS_SCHEME",
    "TargetEndpoint",
    "parse_target",
    "split_host_port",
]

import ipaddress
import re
from typing import NamedTuple

DNS_SCHEME = "dns"

_SCHEME_PATTERN = re.compile(r"^(?P<scheme>[A-Za-z][A-Za-z0-9+.\-]*):(?P<rest>.*)$", re.DOTALL)


class TargetEndpoint(NamedTuple):
    """Host and optional port of a dial target."""

    host: str
    port: int | None


def parse_target(target: str) -> TargetEndpoint:
    """Parse a gRPC dial target into host and port.

    Args:
        target: Dial target (e.g., "dns:///cerbos.internal:3593").

    Returns:
        The endpoint. Empty input yields an empty host.

    Raises:
        ValueError: If the target uses a non-DNS scheme, names only an
            authority without an endpoint, or has a malformed port.
    """
    if not target:
        return TargetEndpoint("", None)

    return split_host_port(_strip_scheme(target))


def split_host_port(endpoint: str) -> TargetEndpoint:
    """Split "host:port" into its parts.

    Bracketed IPv6 ("[::1]:80") loses its brackets. Bare IPv6 ("::1") and
    hosts without a port are returned whole.

    Raises:
        ValueError: If brackets are unbalanced or the port is not numeric.
    """
    if endpoint.startswith("["):
        close = endpoint.find("]")
        if close == -1:
            raise ValueError(f"missing ']' in address {endpoint!r}")
        host, remainder = endpoint[1:close], endpoint[close + 1 :]
        if not remainder:
            return TargetEndpoint(host, None)
        if not remainder.startswith(":"):
            raise ValueError(f"unexpected characters after ']' in address {endpoint!r}")
        return TargetEndpoint(host, _parse_port(remainder[1:], endpoint))

    # More than one colon without brackets: bare IPv6
    if endpoint.count(":") > 1:
        return TargetEndpoint(endpoint, None)

    host, sep, port = endpoint.partition(":")
    return TargetEndpoint(host, _parse_port(port, endpoint) if sep else None)


def _strip_scheme(target: str) -> str:
    """Remove a dns scheme (and authority) from the target, leaving host[:port]."""
    if _is_ip_address(target):
        return target

    match = _SCHEME_PATTERN.match(target)
    if match is None:
        return target

    scheme, rest = match["scheme"], match["rest"]

    # "myserver:3593" looks like scheme "myserver", but it is host:port
    if rest == "" or rest.isdigit():
        return target

    if scheme.lower() != DNS_SCHEME:
        raise ValueError(f"unsupported scheme {scheme!r}")

    if not rest.startswith("//"):
        return rest

    # dns://[authority]/host:port
    authority, sep, endpoint = rest[2:].partition("/")
    if not sep:
        raise ValueError(f"no endpoint after authority {authority!r}")
    return endpoint


def _parse_port(port: str, endpoint: str) -> int | None:
    if not port:
        return None
    if not port.isdigit():
        raise ValueError(f"invalid port {port!r} in address {endpoint!r}")
    return int(port)


def _is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True
