"""Per-call statistics reporting.

A StatsHandler receives one RPCStats record for every call attempt that
passes through the channel. The interceptor sits innermost in the chain, so
retried calls produce one record per attempt.
"""

from __future__ import annotations

__all__ = [
    "RPCStats",
    "StatsHandler",
    "StatsInterceptor",
]

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import grpc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RPCStats:
    """Outcome of one call attempt.

    Attributes:
        method: Full method name (e.g., "/cerbos.svc.v1.CerbosService/CheckResources").
        code: Final gRPC status code of the attempt.
        duration: Wall-clock seconds from dispatch to completion.
        is_stream: Whether the call returns a stream.
    """

    method: str
    code: grpc.StatusCode
    duration: float
    is_stream: bool = False


@runtime_checkable
class StatsHandler(Protocol):
    """Receives call statistics.

    Implementations must be thread-safe; streaming calls report from the
    gRPC completion thread.
    """

    def handle_rpc(self, stats: RPCStats) -> None:
        """Record one call attempt."""
        ...


class StatsInterceptor(grpc.UnaryUnaryClientInterceptor, grpc.UnaryStreamClientInterceptor):
    """Reports the status and duration of every call attempt to a StatsHandler."""

    def __init__(self, handler: StatsHandler) -> None:
        self._handler = handler

    def intercept_unary_unary(
        self,
        continuation: Any,
        client_call_details: grpc.ClientCallDetails,
        request: Any,
    ) -> Any:
        start = time.monotonic()
        outcome = continuation(client_call_details, request)
        self._report(client_call_details.method, outcome.code(), start, is_stream=False)
        return outcome

    def intercept_unary_stream(
        self,
        continuation: Any,
        client_call_details: grpc.ClientCallDetails,
        request: Any,
    ) -> Any:
        start = time.monotonic()
        call = continuation(client_call_details, request)
        method = client_call_details.method
        call.add_done_callback(lambda done: self._report(method, done.code(), start, is_stream=True))
        return call

    def _report(self, method: str, code: grpc.StatusCode, start: float, *, is_stream: bool) -> None:
        stats = RPCStats(
            method=_method_name(method),
            code=code,
            duration=time.monotonic() - start,
            is_stream=is_stream,
        )
        try:
            self._handler.handle_rpc(stats)
        except Exception as e:
            # Reporting must not change the outcome of the call
            logger.warning(
                {
                    "event": "stats_handler_failed",
                    "message": f"Stats handler raised while recording {stats.method}",
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                }
            )


def _method_name(method: str | bytes) -> str:
    return method.decode() if isinstance(method, bytes) else method
