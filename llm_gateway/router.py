from __future__ import annotations  # Priority-ordered backend fallback chain

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from langchain_core.messages import BaseMessage

from config import BackendRoute, RetryPolicy
from observability import MetricsSink, log_event

from .client import ModelInvocationClient, ModelReply
from .errors import AllBackendsExhausted, BackendTimeoutError, RetryExhausted
from .retry import RetryExecutor

logger = logging.getLogger(__name__)  # Module logger setup


@dataclass(frozen=True)
class RouterResult:  # Outcome of one routed request
    text: str
    backend_used: str
    tokens_used: int
    finish_reason: str
    attempts_made: int
    fallbacks_used: int
    total_duration_ms: int


def estimate_tokens(text: str) -> int:  # Rough count at ~4 chars per token
    return math.ceil(len(text) / 4)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class BackendRouter:
    """Tries each backend in priority order, retrying each before falling back."""

    def __init__(
        self,
        backends: Sequence[BackendRoute],
        client: ModelInvocationClient,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        enable_fallback: bool = True,
        executor: Optional[RetryExecutor] = None,
        metrics: Optional[MetricsSink] = None,
    ) -> None:
        if not backends:
            raise ValueError("BackendRouter requires at least one backend")
        self._backends: tuple[BackendRoute, ...] = tuple(sorted(backends, key=lambda route: route.priority))
        self._client = client
        self._policy = retry_policy or RetryPolicy()
        self._enable_fallback = enable_fallback
        self._executor = executor or RetryExecutor()
        self._metrics = metrics or MetricsSink()

    @property
    def backends(self) -> tuple[BackendRoute, ...]:
        return self._backends

    @property
    def metrics(self) -> MetricsSink:
        return self._metrics

    @property
    def client(self) -> ModelInvocationClient:
        return self._client

    @property
    def fallback_enabled(self) -> bool:
        return self._enable_fallback

    def chain_for(self, preferred_backend: Optional[str] = None) -> List[BackendRoute]:  # Resolve the ordered chain for one request
        chain = list(self._backends)
        if preferred_backend:
            pinned = [route for route in chain if route.name == preferred_backend]
            if pinned:
                chain = pinned
            else:
                logger.warning("Unknown preferred backend %s; using full chain", preferred_backend)
        if not self._enable_fallback:
            chain = chain[:1]
        return chain

    async def invoke(
        self,
        prompt: str,
        history: Sequence[BaseMessage],
        *,
        preferred_backend: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> RouterResult:
        chain = self.chain_for(preferred_backend)
        names = [route.name for route in chain]
        started = time.monotonic()
        attempts_made = 0
        fallbacks_used = 0
        last_error: Optional[BaseException] = None
        logger.info("LLM chain start chain=%s", " -> ".join(names))

        for index, route in enumerate(chain):
            attempt_no = 0

            async def _attempt(route: BackendRoute = route) -> ModelReply:
                nonlocal attempts_made, attempt_no
                attempts_made += 1
                attempt_no += 1
                log_event(
                    "llm_attempt",
                    conversation_id,
                    backend=route.name,
                    attempt=f"{attempt_no}/{route.max_retries + 1}",
                )
                call_started = time.monotonic()
                try:
                    reply = await asyncio.wait_for(
                        self._client.send(route.name, prompt, history),
                        timeout=route.timeout_s,
                    )
                except asyncio.TimeoutError as exc:
                    self._metrics.record_backend_call(route.name, _elapsed_ms(call_started), 0, False)
                    raise BackendTimeoutError(route.name, route.timeout_s) from exc
                except Exception:
                    self._metrics.record_backend_call(route.name, _elapsed_ms(call_started), 0, False)
                    raise
                tokens = reply.tokens_used or estimate_tokens(prompt + reply.text)
                self._metrics.record_backend_call(
                    route.name, _elapsed_ms(call_started), tokens, True, cost=route.cost_per_request
                )
                return reply

            policy = self._policy.model_copy(update={"max_retries": route.max_retries})
            try:
                outcome = await self._executor.execute(_attempt, policy, context=f"Gemini {route.name}")
            except Exception as exc:  # noqa: BLE001
                last_error = exc.last_error if isinstance(exc, RetryExhausted) else exc
                fallbacks_used += 1
                self._metrics.record_backend_failure(route.name, exc)
                next_backend = chain[index + 1].name if index + 1 < len(chain) else None
                log_event(
                    "llm_fallback",
                    conversation_id,
                    level=logging.WARNING,
                    backend=route.name,
                    next_backend=next_backend or "-",
                    fallbacks=fallbacks_used,
                    error=str(exc),
                )
                continue

            reply = outcome.value
            duration = _elapsed_ms(started)
            self._metrics.record_fallback_success(route.name, fallbacks_used, duration)
            log_event(
                "llm_success",
                conversation_id,
                backend=route.name,
                attempt=attempts_made,
                fallbacks=fallbacks_used,
                ms=duration,
            )
            return RouterResult(
                text=reply.text,
                backend_used=route.name,
                tokens_used=reply.tokens_used or estimate_tokens(prompt + reply.text),
                finish_reason=reply.finish_reason,
                attempts_made=attempts_made,
                fallbacks_used=fallbacks_used,
                total_duration_ms=duration,
            )

        duration = _elapsed_ms(started)
        self._metrics.record_chain_failure(duration)
        log_event(
            "llm_exhausted",
            conversation_id,
            level=logging.CRITICAL,
            attempt=attempts_made,
            fallbacks=fallbacks_used,
            ms=duration,
            error=str(last_error),
        )
        raise AllBackendsExhausted(names, last_error, attempts_made)


__all__ = ["BackendRouter", "RouterResult", "estimate_tokens"]
