"""Retry policies for outbound requests and store writes."""

import asyncio

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
    wait_none,
)

from listing_parser.core.exceptions import StoreError

logger = structlog.get_logger(__name__)


def log_before_sleep(retry_state: RetryCallState) -> None:
    """Log a failed attempt before tenacity sleeps for the next one."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retrying_after_failure",
        attempt=retry_state.attempt_number,
        sleep_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
        error=str(exc) if exc else None,
    )


def transport_retrying(max_attempts: int) -> AsyncRetrying:
    """Immediate retries against network-level failures only.

    HTTP status codes are not failures at this layer; callers decide what
    a non-200 response means.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_none(),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )


def store_retrying(max_attempts: int, backoff_seconds: float) -> AsyncRetrying:
    """Linear backoff for store writes: attempt N waits N * backoff_seconds.

    A timed-out attempt counts as a failed attempt.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_incrementing(start=backoff_seconds, increment=backoff_seconds),
        retry=retry_if_exception_type((StoreError, asyncio.TimeoutError)),
        before_sleep=log_before_sleep,
        reraise=True,
    )
