"""In-process counters for backend usage and fallback behaviour."""
from __future__ import annotations

import logging
import threading
from typing import Dict

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class BackendStats(BaseModel):
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    total_duration_ms: int = 0
    average_duration_ms: int = 0


class FallbackStats(BaseModel):
    total_requests: int = 0
    successful_fallbacks: int = 0
    complete_failures: int = 0


class MetricsSnapshot(BaseModel):
    backends: Dict[str, BackendStats]
    fallback: FallbackStats


class MetricsSink:
    """Thread-safe aggregation of per-backend call statistics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._backends: Dict[str, BackendStats] = {}
        self._fallback = FallbackStats()

    def record_backend_call(
        self, backend: str, duration_ms: int, tokens: int, success: bool, cost: float = 0.0
    ) -> None:
        """Count one backend call; tokens and cost are charged only when it succeeded."""

        with self._lock:
            stats = self._backends.setdefault(backend, BackendStats())
            stats.total_requests += 1
            if success:
                stats.successful_requests += 1
                stats.total_tokens += tokens
                stats.total_cost += cost
            else:
                stats.failed_requests += 1
            stats.total_duration_ms += duration_ms
            stats.average_duration_ms = round(stats.total_duration_ms / stats.total_requests)

    def record_fallback_success(self, backend: str, fallbacks_used: int, duration_ms: int) -> None:
        with self._lock:
            self._fallback.total_requests += 1
            if fallbacks_used > 0:
                self._fallback.successful_fallbacks += 1
        logger.info("Chain success backend=%s fallbacks=%d ms=%d", backend, fallbacks_used, duration_ms)

    def record_backend_failure(self, backend: str, error: BaseException) -> None:
        logger.error("Backend failure backend=%s error=%s", backend, error)

    def record_chain_failure(self, duration_ms: int) -> None:
        with self._lock:
            self._fallback.total_requests += 1
            self._fallback.complete_failures += 1
        logger.critical("All backends failed after %dms", duration_ms)

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                backends={name: stats.model_copy() for name, stats in self._backends.items()},
                fallback=self._fallback.model_copy(),
            )

    def reset(self) -> None:
        with self._lock:
            self._backends.clear()
            self._fallback = FallbackStats()


__all__ = ["BackendStats", "FallbackStats", "MetricsSink", "MetricsSnapshot"]
