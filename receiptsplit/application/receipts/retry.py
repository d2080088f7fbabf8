"""Retry policy for extraction service calls."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from receiptsplit.runtime import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})
TRANSIENT_MESSAGE_MARKERS = ("rate limit", "quota", "unavailable", "timeout", "network")
_STATUS_IN_MESSAGE = re.compile(r"\b(429|502|503|504)\b")


def _status_code(exc: BaseException) -> int | None:
    status = getattr(exc, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def is_transient_error(exc: BaseException) -> bool:
    """Whether another attempt has a reasonable chance of succeeding."""
    if isinstance(exc, (TimeoutError, httpx.TimeoutException, httpx.NetworkError)):
        return True
    if _status_code(exc) in TRANSIENT_STATUS_CODES:
        return True

    message = str(exc)
    if _STATUS_IN_MESSAGE.search(message):
        return True
    lowered = message.lower()
    return any(marker in lowered for marker in TRANSIENT_MESSAGE_MARKERS)


def describe_error(exc: BaseException) -> str:
    """Translate an extraction failure into a message for the person scanning."""
    status = _status_code(exc)
    message = str(exc)
    lowered = message.lower()

    if status == 429 or "429" in message or "quota" in lowered or "rate limit" in lowered:
        return "The receipt reader is busy right now. Please wait a moment and try again."
    if status in (502, 503) or "503" in message or "502" in message or "unavailable" in lowered:
        return "The receipt reader is temporarily unavailable. Try again shortly."
    if status == 413 or "413" in message or "too large" in lowered:
        return "Image is too large to process. Try a closer, cropped photo of just the receipt."
    if (status == 400 or "400" in message) and "image" in lowered:
        return "Could not read the image. Make sure the receipt is well-lit and in focus."
    return message or exc.__class__.__name__


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 2,
    base_delay: float = 0.8,
    attempt_timeout: float | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    label: str = "extraction",
) -> T:
    """
    Await ``operation`` until it succeeds or the attempt budget is spent.

    Attempts run one at a time. Between attempts the caller is suspended for
    ``base_delay * 2**attempt`` seconds (attempt counted from zero). Permanent
    errors are re-raised immediately; the last transient error is re-raised
    once ``max_attempts`` is reached. Cancellation is never caught.
    """
    attempts = max(1, max_attempts)
    for attempt in range(attempts):
        try:
            if attempt_timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=attempt_timeout)
        except Exception as exc:
            if not is_transient_error(exc):
                raise
            if attempt == attempts - 1:
                logger.warning("%s failed after %d attempt(s): %s", label, attempts, exc)
                raise
            delay = base_delay * (2**attempt)
            logger.info(
                "%s attempt %d/%d failed (%s); retrying in %.1fs", label, attempt + 1, attempts, exc, delay
            )
            await sleep(delay)

    raise AssertionError("unreachable")
