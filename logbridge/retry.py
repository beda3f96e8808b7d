"""Tenacity backoff for transport start-up.

Only connection establishment is retried.  Individual records are never
retried: the bridge drops a record whose delivery fails.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .errors import TransportError
from .settings import RetrySettings

logger = structlog.get_logger()


async def start_with_retry(
    start: Callable[[], Awaitable[None]],
    settings: RetrySettings,
    *,
    what: str,
    retryable_exceptions: tuple[type[BaseException], ...] = (TransportError,),
) -> None:
    """Await *start* until it succeeds or ``settings.max_attempts`` is spent.

    The last exception is re-raised once attempts are exhausted.
    """

    def _log_attempt(state: RetryCallState) -> None:
        logger.warning(
            "transport_start_failed",
            transport=what,
            attempt=state.attempt_number,
            error=str(state.outcome.exception()) if state.outcome else None,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.max_attempts),
        wait=wait_exponential(
            multiplier=settings.multiplier,
            min=settings.initial_wait_seconds,
            max=settings.max_wait_seconds,
        ),
        retry=retry_if_exception_type(retryable_exceptions),
        after=_log_attempt,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            await start()
