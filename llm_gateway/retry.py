from __future__ import annotations  # Exponential backoff retry wrapper

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

import httpx

from config import RetryPolicy

from .errors import FatalBackendError, RetryExhausted, TransientBackendError

logger = logging.getLogger(__name__)  # Module logger setup

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
RETRYABLE_ERROR_CODES = frozenset({"ECONNRESET", "ETIMEDOUT", "ENOTFOUND", "ECONNREFUSED"})
RETRYABLE_KEYWORDS = (
    "rate limit",
    "quota",
    "timeout",
    "timed out",
    "unavailable",
    "resource exhausted",
    "deadline exceeded",
    "internal error",
)
JITTER_FRACTION = 0.3


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):  # Successful value plus the attempt that produced it
    value: T
    attempts: int


def is_retryable(exc: BaseException) -> bool:  # Classify an error as transient
    if isinstance(exc, TransientBackendError):
        return True
    if isinstance(exc, FatalBackendError):
        return False
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if isinstance(status, int) and status in RETRYABLE_STATUS_CODES:
        return True
    code = getattr(exc, "code", None)
    if isinstance(code, str) and code in RETRYABLE_ERROR_CODES:
        return True
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    message = str(exc).lower()
    return any(keyword in message for keyword in RETRYABLE_KEYWORDS)


def compute_delay(attempt: int, policy: RetryPolicy, rng: Optional[random.Random] = None) -> float:
    """Seconds to wait before ``attempt`` (2-based: the first retry is attempt 2)."""

    raw = policy.base_delay_s * (policy.exponential_base ** (attempt - 1))
    delay = min(raw, policy.max_delay_s)
    if policy.jitter:
        source = rng or random
        delay += (source.random() * 2 - 1) * delay * JITTER_FRACTION
    return max(delay, 0.0)


class RetryExecutor:  # Runs an async operation under a RetryPolicy
    def __init__(
        self,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._sleep = sleep
        self._rng = rng

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        context: str = "operation",
    ) -> RetryOutcome[T]:
        total = policy.max_retries + 1
        attempt = 1
        while True:
            logger.debug("%s attempt=%d/%d", context, attempt, total)
            try:
                value = await operation()
            except Exception as exc:  # noqa: BLE001
                if not is_retryable(exc):
                    logger.warning("%s non-retryable error: %s", context, exc)
                    raise
                if attempt >= total:
                    logger.error("%s all %d attempts failed", context, total)
                    raise RetryExhausted(context, total, exc) from exc
                attempt += 1
                delay = compute_delay(attempt, policy, self._rng)
                logger.warning("%s attempt %d failed: %s. Retrying in %.2fs", context, attempt - 1, exc, delay)
                await self._sleep(delay)
                continue
            if attempt > 1:
                logger.info("%s succeeded on attempt %d", context, attempt)
            return RetryOutcome(value=value, attempts=attempt)


__all__ = [
    "RETRYABLE_KEYWORDS",
    "RETRYABLE_STATUS_CODES",
    "RetryExecutor",
    "RetryOutcome",
    "compute_delay",
    "is_retryable",
]
