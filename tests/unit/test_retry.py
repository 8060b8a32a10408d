from __future__ import annotations

import asyncio
import random

import httpx
import pytest

from config import RetryPolicy
from llm_gateway import (
    FatalBackendError,
    RetryExecutor,
    RetryExhausted,
    TransientBackendError,
    compute_delay,
    is_retryable,
)


class _StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"status {status_code}")
        self.status_code = status_code


class _CodeError(Exception):
    def __init__(self, code: str) -> None:
        super().__init__("network")
        self.code = code


def _flaky(failures: int, exc_factory=lambda: TransientBackendError("503 unavailable")):
    calls = {"count": 0}

    async def operation():
        calls["count"] += 1
        if calls["count"] <= failures:
            raise exc_factory()
        return "ok"

    return operation, calls


def _executor(delays=None):
    async def sleep(seconds: float) -> None:
        if delays is not None:
            delays.append(seconds)

    return RetryExecutor(sleep=sleep, rng=random.Random(7))


@pytest.mark.parametrize("max_retries", [0, 1, 2, 5])
def test_succeeds_after_max_retries_failures(max_retries):
    operation, calls = _flaky(max_retries)
    outcome = asyncio.run(_executor().execute(operation, RetryPolicy(max_retries=max_retries), "op"))
    assert outcome.value == "ok"
    assert outcome.attempts == max_retries + 1
    assert calls["count"] == max_retries + 1


def test_exhaustion_wraps_last_error():
    operation, calls = _flaky(10)
    with pytest.raises(RetryExhausted) as info:
        asyncio.run(_executor().execute(operation, RetryPolicy(max_retries=2), "Gemini primary"))
    assert info.value.attempts == 3
    assert isinstance(info.value.last_error, TransientBackendError)
    assert info.value.__cause__ is info.value.last_error
    assert "Gemini primary" in str(info.value)
    assert calls["count"] == 3


def test_single_attempt_policy_exhausts_without_sleeping():
    delays = []
    operation, calls = _flaky(10)
    with pytest.raises(RetryExhausted) as info:
        asyncio.run(_executor(delays).execute(operation, RetryPolicy(max_retries=0), "op"))
    assert info.value.attempts == 1
    assert info.value.__cause__ is info.value.last_error
    assert delays == []
    assert calls["count"] == 1


def test_non_retryable_aborts_on_first_attempt():
    operation, calls = _flaky(10, lambda: FatalBackendError("API key not valid"))
    with pytest.raises(FatalBackendError):
        asyncio.run(_executor().execute(operation, RetryPolicy(max_retries=5), "op"))
    assert calls["count"] == 1


def test_delays_grow_exponentially_and_respect_cap():
    delays: list[float] = []
    operation, _ = _flaky(4)
    policy = RetryPolicy(max_retries=4, base_delay_s=1.0, max_delay_s=5.0, exponential_base=2.0, jitter=False)
    asyncio.run(_executor(delays).execute(operation, policy, "op"))
    assert delays == [2.0, 4.0, 5.0, 5.0]


def test_jitter_stays_within_thirty_percent():
    policy = RetryPolicy(base_delay_s=1.0, max_delay_s=30.0, exponential_base=2.0, jitter=True)
    rng = random.Random(11)
    for attempt in range(2, 6):
        nominal = min(2.0 ** (attempt - 1), 30.0)
        for _ in range(50):
            delay = compute_delay(attempt, policy, rng)
            assert nominal * 0.7 - 1e-9 <= delay <= nominal * 1.3 + 1e-9
            assert delay >= 0


@pytest.mark.parametrize(
    "exc",
    [
        _StatusError(429),
        _StatusError(503),
        _StatusError(408),
        _CodeError("ECONNRESET"),
        _CodeError("ENOTFOUND"),
        ConnectionResetError("peer reset"),
        TimeoutError(),
        httpx.ConnectError("boom"),
        RuntimeError("Resource exhausted for project"),
        RuntimeError("Quota exceeded"),
        RuntimeError("Model primary timed out after 60s"),
        RuntimeError("DEADLINE EXCEEDED"),
        TransientBackendError("anything"),
    ],
)
def test_retryable_errors(exc):
    assert is_retryable(exc)


@pytest.mark.parametrize(
    "exc",
    [
        _StatusError(400),
        _StatusError(403),
        _CodeError("EACCES"),
        ValueError("malformed request"),
        FatalBackendError("503 unavailable"),
    ],
)
def test_non_retryable_errors(exc):
    assert not is_retryable(exc)
