"""
Retry Policy for Provider Calls

Classifies failures from inference-provider calls into transient
(rate limited, overloaded, 5xx, timeout) and fatal (quota exhausted,
malformed request), and retries transient ones on a fixed schedule.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import anthropic

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Attempt 0 runs immediately; attempts 1 and 2 wait 10s and 30s.
RETRY_DELAYS_MS = (10_000, 30_000)
MAX_RETRIES = len(RETRY_DELAYS_MS)

QUOTA_MARKERS = ("insufficient_quota", "quota", "billing", "credit balance")
TRANSIENT_MARKERS = ("rate limit", "rate_limit_error", "overloaded", "capacity", "429")
TRANSIENT_TYPES = ("rate_limit_error", "overloaded_error")


def _error_status(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def _error_type(error: BaseException) -> Optional[str]:
    """Provider error type from an Anthropic error body, if present."""
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error")
        if isinstance(inner, dict) and isinstance(inner.get("type"), str):
            return inner["type"]
        if isinstance(body.get("type"), str):
            return body["type"]
    err_type = getattr(error, "type", None)
    return err_type if isinstance(err_type, str) else None


def is_quota_error(error: BaseException) -> bool:
    """Quota/billing exhaustion never resolves by waiting."""
    message = str(error).lower()
    return any(marker in message for marker in QUOTA_MARKERS)


def is_retryable(error: BaseException) -> bool:
    """
    Decide whether a failed provider call should be retried.

    Rules are checked in order: quota errors are fatal, then 429/5xx are
    transient, then provider rate-limit/overload markers, then timeouts.
    """
    if is_quota_error(error):
        return False

    status = _error_status(error)
    if status is not None and (status == 429 or 500 <= status < 600):
        return True

    if _error_type(error) in TRANSIENT_TYPES:
        return True

    message = str(error).lower()
    if any(marker in message for marker in TRANSIENT_MARKERS):
        return True

    # Per-call timeouts count as transient
    if isinstance(error, (asyncio.TimeoutError, anthropic.APITimeoutError, anthropic.APIConnectionError)):
        return True

    return False


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    on_retry: Optional[Callable[[int], Any]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``fn`` with bounded retries for transient failures.

    Args:
        fn: Zero-argument coroutine factory (called once per attempt)
        on_retry: Called with the delay in ms before each wait; may be async
        sleep: Sleep function, injectable for tests

    Returns:
        Result of the first successful attempt

    Raises:
        The last error, unchanged, once retries are exhausted or the
        error is not retryable.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= MAX_RETRIES or not is_retryable(e):
                raise

            delay_ms = RETRY_DELAYS_MS[attempt]
            attempt += 1
            logger.warning(
                f"Provider call failed (attempt {attempt}/{MAX_RETRIES + 1}), "
                f"retrying in {delay_ms / 1000:.0f}s: {e}"
            )

            if on_retry is not None:
                result = on_retry(delay_ms)
                if inspect.isawaitable(result):
                    await result

            await sleep(delay_ms / 1000)
