"""Retry policy for transient transport failures.

WHY: The Batch Speech-to-Text endpoints throttle aggressively (HTTP 429)
and long-running calls occasionally drop their connection. Every request
the client makes should survive a few of those without the caller having
to care.

HOW: Wraps a zero-argument coroutine factory in a tenacity AsyncRetrying
loop. Transport exceptions and 429 responses are retried with exponential
backoff; everything else is returned to the caller as-is.

RULES:
- Retry on httpx.TransportError (connect errors, timeouts, protocol errors)
- Retry on HTTP 429; any other status passes straight through
- Wait base ** attempt seconds: 2, 4, 8, 16, 32 with the defaults
- At most 5 retries; afterwards the last exception is re-raised or the
  last 429 response is returned
- Each retry is logged and reported through on_status
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
)

logger = logging.getLogger(__name__)

MAX_RETRIES = 5
BACKOFF_BASE_S = 2.0
RETRYABLE_STATUS_CODES = frozenset({429})


def is_retryable_response(response: httpx.Response) -> bool:
    return response.status_code in RETRYABLE_STATUS_CODES


def _describe_failure(retry_state: RetryCallState) -> str:
    outcome = retry_state.outcome
    if outcome is None:
        return "unknown failure"
    if outcome.failed:
        exc = outcome.exception()
        return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
    response = outcome.result()
    return f"HTTP {response.status_code} {response.reason_phrase}".rstrip()


def _last_outcome(retry_state: RetryCallState) -> httpx.Response:
    # Re-raises the last exception, or hands back the last 429 response.
    return retry_state.outcome.result()


class RetryPolicy:
    """Exponential-backoff retry around a single HTTP call.

    The sleep function is injectable so tests can record the waits instead
    of actually sleeping.
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._sleep = sleep
        self._on_status = on_status

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (1-based)."""
        return self.backoff_base ** attempt

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
        msg = (
            f"Request failed with {_describe_failure(retry_state)}. "
            f"Waiting {wait:g}s before next retry. "
            f"Retry attempt {retry_state.attempt_number}"
        )
        logger.info(msg)
        if self._on_status:
            self._on_status(msg)

    async def execute(
        self, send: Callable[[], Awaitable[httpx.Response]]
    ) -> httpx.Response:
        """Run ``send`` until it succeeds, fails terminally, or retries run out.

        Args:
            send: Zero-argument coroutine factory performing one request.

        Returns:
            The first non-retryable response, or the last 429 response
            once retries are exhausted.

        Raises:
            httpx.TransportError: If the final attempt failed at the
                transport level.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=lambda rs: self.delay_for(rs.attempt_number),
            retry=(
                retry_if_exception_type(httpx.TransportError)
                | retry_if_result(is_retryable_response)
            ),
            before_sleep=self._before_sleep,
            retry_error_callback=_last_outcome,
            sleep=self._sleep,
        )

        # tenacity awaits only coroutine functions; send may be a plain lambda.
        async def _attempt() -> httpx.Response:
            return await send()

        return await retrying(_attempt)
