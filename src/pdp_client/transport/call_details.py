"""Mutable view over grpc.ClientCallDetails for interceptors."""

from __future__ import annotations

__all__ = [
    "ClientCallDetails",
    "replace_call_details",
]

from collections import namedtuple
from typing import Any

import grpc


class ClientCallDetails(
    namedtuple(
        "ClientCallDetails",
        ("method", "timeout", "metadata", "credentials", "wait_for_ready", "compression"),
    ),
    grpc.ClientCallDetails,
):
    """Concrete ClientCallDetails an interceptor can pass to its continuation."""


def replace_call_details(details: grpc.ClientCallDetails, **changes: Any) -> ClientCallDetails:
    """Copy call details, replacing the given fields.

    Args:
        details: Details received by the interceptor.
        **changes: Fields to replace (e.g., timeout, metadata).

    Returns:
        New call details for the continuation.
    """
    fields = {
        "method": details.method,
        "timeout": details.timeout,
        "metadata": details.metadata,
        "credentials": details.credentials,
        "wait_for_ready": getattr(details, "wait_for_ready", None),
        "compression": getattr(details, "compression", None),
    }
    fields.update(changes)
    return ClientCallDetails(**fields)
