from __future__ import annotations  # Error taxonomy for model invocation

from typing import Optional, Sequence


class LlmGatewayError(RuntimeError):  # Base gateway error
    pass


class TransientBackendError(LlmGatewayError):  # Retryable upstream failure
    def __init__(self, message: str, *, status_code: Optional[int] = None, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class BackendTimeoutError(TransientBackendError):  # Per-attempt deadline expired
    def __init__(self, backend: str, timeout_s: float) -> None:
        super().__init__(f"Request to {backend} timed out after {timeout_s:g}s", code="ETIMEDOUT")
        self.backend = backend
        self.timeout_s = timeout_s


class FatalBackendError(LlmGatewayError):  # Non-retryable upstream failure
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryExhausted(LlmGatewayError):  # One backend spent its retry budget
    def __init__(self, context: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"{context} failed after {attempts} attempts: {last_error}")
        self.context = context
        self.attempts = attempts
        self.last_error = last_error


class AllBackendsExhausted(LlmGatewayError):  # Every backend in the chain failed
    def __init__(self, chain: Sequence[str], last_error: Optional[BaseException], attempts_made: int) -> None:
        order = " -> ".join(chain)
        super().__init__(f"All backends failed ({order}). Last error: {last_error}")
        self.chain = list(chain)
        self.last_error = last_error
        self.attempts_made = attempts_made


__all__ = [
    "AllBackendsExhausted",
    "BackendTimeoutError",
    "FatalBackendError",
    "LlmGatewayError",
    "RetryExhausted",
    "TransientBackendError",
]
