"""Bounded retry of remote calls that failed for server-side reasons.

A failure is *transient* when the server could not serve the call right now
(5xx, rippled load errors, a transport-level bad response, a timeout). Any
other failure is *terminal* and is raised on its first occurrence.
"""
import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx
from xrpl.asyncio.clients.exceptions import XRPLRequestFailureException

import ledger_sweep.constants as C
from ledger_sweep.errors import TerminalError, TransientError

log = logging.getLogger("ledger_sweep.retry")

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, TransientError):
        return True
    if isinstance(exc, TerminalError):
        return False
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, TimeoutError):
        return True
    if isinstance(exc, XRPLRequestFailureException):
        error = getattr(exc, "error", None)
        if isinstance(error, int):
            return error >= 500
        if error in C.TRANSIENT_RPC_ERRORS:
            return True
    msg = str(exc)
    return any(marker in msg for marker in C.TRANSIENT_MARKERS)


@dataclass(slots=True)
class RetryState:
    max_attempts: int
    attempt: int = 0
    last_error: BaseException | None = None
    elapsed_backoff: float = 0.0


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = C.MAX_RETRIES,
    backoff: float = C.RETRY_DELAY,
    *,
    name: str = "operation",
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Await ``operation()`` up to ``max_attempts`` times.

    Transient failures sleep ``backoff`` seconds and try again; the last one is
    re-raised once attempts run out. Terminal failures are re-raised at once.
    """
    state = RetryState(max_attempts=max(1, int(max_attempts)))
    while True:
        state.attempt += 1
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            state.last_error = e
            if not is_transient(e):
                raise
            if state.attempt >= state.max_attempts:
                log.warning("%s failed after %s attempts: %s", name, state.attempt, e)
                raise
            log.warning("%s failed (attempt %s/%s), retrying in %.1fs: %s",
                        name, state.attempt, state.max_attempts, backoff, e)
            started = time.monotonic()
            await sleep(backoff)
            state.elapsed_backoff += time.monotonic() - started


@dataclass(slots=True)
class RetryPolicy:
    max_attempts: int = C.MAX_RETRIES
    backoff: float = C.RETRY_DELAY
    sleep: Sleep = asyncio.sleep

    async def call(self, operation: Callable[[], Awaitable[T]], name: str = "operation") -> T:
        return await with_retry(operation, self.max_attempts, self.backoff, name=name, sleep=self.sleep)
