from __future__ import annotations  # Re-export llm_gateway public API

from .client import GeminiRestClient, ModelInvocationClient, ModelReply
from .errors import (
    AllBackendsExhausted,
    BackendTimeoutError,
    FatalBackendError,
    LlmGatewayError,
    RetryExhausted,
    TransientBackendError,
)
from .retry import RetryExecutor, RetryOutcome, compute_delay, is_retryable
from .router import BackendRouter, RouterResult, estimate_tokens

__all__ = [
    "AllBackendsExhausted",
    "BackendRouter",
    "BackendTimeoutError",
    "FatalBackendError",
    "GeminiRestClient",
    "LlmGatewayError",
    "ModelInvocationClient",
    "ModelReply",
    "RetryExecutor",
    "RetryExhausted",
    "RetryOutcome",
    "RouterResult",
    "TransientBackendError",
    "compute_delay",
    "estimate_tokens",
    "is_retryable",
]
