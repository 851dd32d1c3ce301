"""Request ID propagation for check and plan queries.

Callers bind an ID once (e.g., from their own incoming request) and every
check or plan query issued in that context carries it, unless a scoped
client view sets an explicit ID. The server echoes the ID back, so the
caller's logs and the decision log line up.

The value lives in a ContextVar: each thread and each asyncio task sees its
own binding.
"""

from __future__ import annotations

__all__ = [
    "clear_context",
    "get_request_id",
    "request_context",
    "request_id_var",
    "set_request_id",
]

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

logger = logging.getLogger(__name__)

# Request ID for correlating the caller's logs with decision service logs
request_id_var: ContextVar[str | None] = ContextVar("pdp_client_request_id", default=None)
"""Request ID propagated to requests built in the current context."""


def get_request_id() -> str | None:
    """Request ID bound in the calling context.

    Returns:
        The bound ID, or None when nothing is bound.
    """
    return request_id_var.get()


def set_request_id(request_id: str | None) -> None:
    """Bind a request ID in the calling context.

    IDs containing CR or LF are refused and leave the context unbound, since
    they would let a caller-controlled value forge lines in either log.

    Args:
        request_id: Request ID to set. Empty or None clears it.
    """
    if not request_id:
        request_id_var.set(None)
        return

    if "\n" in request_id or "\r" in request_id:
        logger.warning(
            {
                "event": "invalid_request_id",
                "request_id": repr(request_id),
                "message": "Rejecting request_id containing newline characters",
            }
        )
        request_id_var.set(None)
        return

    request_id_var.set(request_id)


@contextmanager
def request_context(request_id: str) -> Iterator[None]:
    """Bind a request ID for the duration of a with-block.

    The previous value is restored on exit, so contexts nest.

    Args:
        request_id: Request ID to propagate.
    """
    token = request_id_var.set(None)
    try:
        set_request_id(request_id)
        yield
    finally:
        request_id_var.reset(token)


def clear_context() -> None:
    """Unbind the request ID.

    Mostly for test isolation; request_context() restores on its own.
    """
    request_id_var.set(None)
