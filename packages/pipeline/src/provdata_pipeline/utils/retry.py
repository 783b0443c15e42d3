"""
utils/retry.py — Backoff for the remote province geometry download.

`provdata seed-provinces https://…` fetches a FeatureCollection that can be
tens of megabytes from a public mirror; dropped connections are common
enough to retry. Nothing else retries: a failed import chunk or map query
is reported to the caller as is.

Usage:
    from provdata_pipeline.utils.retry import with_retry

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def _fetch(self, url: str) -> dict:
        ...
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Coroutine[Any, Any, Any]])


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: type[Exception] | tuple[type[Exception], ...] = Exception,
) -> Callable[[F], F]:
    """
    Retry an async download with exponential backoff.

    Delays: base_delay * 2^(attempt-1), capped at max_delay. Exceptions not
    listed in retry_on propagate on the first attempt; after the last
    attempt the original exception is re-raised.

    Args:
        max_attempts: Total attempts before giving up.
        base_delay:   Initial delay in seconds.
        max_delay:    Maximum delay cap in seconds.
        retry_on:     Exception type(s) that count as a transient failure.
    """

    def decorator(fn: F) -> F:
        download = fn.__qualname__

        def before_sleep(state: RetryCallState) -> None:
            log.warning(
                "download_retry",
                download=download,
                attempt=state.attempt_number,
                max_attempts=max_attempts,
                wait_s=round(state.next_action.sleep, 2) if state.next_action else None,
                error=str(state.outcome.exception()) if state.outcome else None,
            )

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(max_attempts),
                    wait=wait_exponential(multiplier=base_delay, max=max_delay),
                    retry=retry_if_exception_type(retry_on),
                    before_sleep=before_sleep,
                    reraise=True,
                ):
                    with attempt:
                        return await fn(*args, **kwargs)
            except retry_on as exc:
                log.error(
                    "download_failed", download=download, attempts=max_attempts, error=str(exc)
                )
                raise

        return wrapper  # type: ignore[return-value]

    return decorator
