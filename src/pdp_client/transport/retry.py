"""Client-side retry interceptor.

Retries unary calls, and server-streaming calls until their first message,
when the failure is transient:
- UNAVAILABLE and RESOURCE_EXHAUSTED are always retried.
- DEADLINE_EXCEEDED is retried only when the per-attempt timeout caused it
  and the caller's own deadline has not passed.

Each attempt is bounded by the per-attempt timeout, clipped to whatever
remains of the caller's deadline. Attempts are spaced by a constant backoff
with jitter. Client-streaming calls are not retried because their request
iterator cannot be replayed.
"""

from __future__ import annotations

__all__ = [
    "RETRYABLE_STATUS_CODES",
    "RetryInterceptor",
]

import logging
import random
import time
from collections.abc import Callable, Iterator
from typing import Any

import grpc

from pdp_client.constants import RETRY_BACKOFF_JITTER, RETRY_BACKOFF_SECONDS
from pdp_client.transport.call_details import replace_call_details

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES: frozenset[grpc.StatusCode] = frozenset(
    {grpc.StatusCode.UNAVAILABLE, grpc.StatusCode.RESOURCE_EXHAUSTED}
)


class RetryInterceptor(grpc.UnaryUnaryClientInterceptor, grpc.UnaryStreamClientInterceptor):
    """Retries transient failures with a bounded number of attempts.

    Args:
        max_attempts: Total attempts per call, first attempt included.
        attempt_timeout: Deadline in seconds for each attempt.
        backoff: Wait in seconds between attempts.
        jitter: Fractional jitter applied to the wait (0.1 = +/- 10%).
        sleep: Sleep function (replaced in tests).
        clock: Monotonic clock (replaced in tests).
    """

    def __init__(
        self,
        max_attempts: int,
        attempt_timeout: float,
        *,
        backoff: float = RETRY_BACKOFF_SECONDS,
        jitter: float = RETRY_BACKOFF_JITTER,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if attempt_timeout <= 0:
            raise ValueError(f"attempt_timeout must be positive, got {attempt_timeout}")
        self._max_attempts = max_attempts
        self._attempt_timeout = attempt_timeout
        self._backoff = backoff
        self._jitter = jitter
        self._sleep = sleep
        self._clock = clock

    # =========================================================================
    # Interceptor hooks
    # =========================================================================

    def intercept_unary_unary(
        self,
        continuation: Any,
        client_call_details: grpc.ClientCallDetails,
        request: Any,
    ) -> Any:
        deadline = self._deadline(client_call_details.timeout)
        attempt = 1
        while True:
            details, bounded = self._attempt_details(client_call_details, deadline)
            outcome = continuation(details, request)
            code = outcome.code()
            if not self._should_retry(code, bounded, deadline, attempt):
                return outcome
            self._log_retry(client_call_details.method, code, attempt)
            self._wait(deadline)
            attempt += 1

    def intercept_unary_stream(
        self,
        continuation: Any,
        client_call_details: grpc.ClientCallDetails,
        request: Any,
    ) -> Any:
        deadline = self._deadline(client_call_details.timeout)
        attempt = 1
        while True:
            details, bounded = self._attempt_details(client_call_details, deadline)
            call = continuation(details, request)
            try:
                first = next(call)
            except StopIteration:
                return call
            except grpc.RpcError as e:
                code = e.code()
                if not self._should_retry(code, bounded, deadline, attempt):
                    return call
                self._log_retry(client_call_details.method, code, attempt)
                self._wait(deadline)
                attempt += 1
                continue
            return _PrefetchedStream(call, first)

    # =========================================================================
    # Attempt bookkeeping
    # =========================================================================

    def _deadline(self, timeout: float | None) -> float | None:
        return None if timeout is None else self._clock() + timeout

    def _attempt_details(
        self,
        details: grpc.ClientCallDetails,
        deadline: float | None,
    ) -> tuple[grpc.ClientCallDetails, bool]:
        """Details for the next attempt, and whether the attempt timeout bounds it."""
        if deadline is not None:
            remaining = max(deadline - self._clock(), 0.0)
            if remaining <= self._attempt_timeout:
                return replace_call_details(details, timeout=remaining), False
        return replace_call_details(details, timeout=self._attempt_timeout), True

    def _should_retry(
        self,
        code: grpc.StatusCode,
        bounded: bool,
        deadline: float | None,
        attempt: int,
    ) -> bool:
        if attempt >= self._max_attempts:
            return False
        if deadline is not None and self._clock() >= deadline:
            return False
        if code in RETRYABLE_STATUS_CODES:
            return True
        return code == grpc.StatusCode.DEADLINE_EXCEEDED and bounded

    def _wait(self, deadline: float | None) -> None:
        delay = self._backoff * (1 + random.uniform(-self._jitter, self._jitter))
        if deadline is not None:
            delay = min(delay, max(deadline - self._clock(), 0.0))
        if delay > 0:
            self._sleep(delay)

    def _log_retry(self, method: str | bytes, code: grpc.StatusCode, attempt: int) -> None:
        logger.debug(
            {
                "event": "rpc_retry",
                "message": f"Retrying {method!s} after {code.name} (attempt {attempt}/{self._max_attempts})",
                "details": {"method": str(method), "code": code.name, "attempt": attempt},
            }
        )


class _PrefetchedStream:
    """Response stream whose first message was consumed while deciding on a retry.

    Yields the buffered message first, then delegates to the underlying call.
    Every other attribute (code(), cancel(), trailing_metadata(), ...) is the
    call's own.
    """

    def __init__(self, call: Any, first: Any) -> None:
        self._call = call
        self._pending = [first]

    def __iter__(self) -> Iterator[Any]:
        return self

    def __next__(self) -> Any:
        if self._pending:
            return self._pending.pop()
        return next(self._call)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._call, name)
