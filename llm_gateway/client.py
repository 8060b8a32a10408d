from __future__ import annotations  # Upstream model invocation clients

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from config import GenerationSettings

from .errors import FatalBackendError, TransientBackendError
from .retry import RETRYABLE_STATUS_CODES

logger = logging.getLogger(__name__)  # Module logger setup


@dataclass(frozen=True)
class ModelReply:  # Raw text plus usage metadata for one call
    text: str
    finish_reason: str = "STOP"
    tokens_used: Optional[int] = None


class ModelInvocationClient(Protocol):  # Single-backend call contract
    async def send(self, backend_name: str, prompt: str, history: Sequence[BaseMessage]) -> ModelReply: ...


def history_contents(history: Sequence[BaseMessage]) -> List[Dict[str, Any]]:  # Map LangChain messages to Gemini contents
    contents: List[Dict[str, Any]] = []
    for message in history:
        if isinstance(message, HumanMessage):
            role = "user"
        elif isinstance(message, AIMessage):
            role = "model"
        else:
            raise TypeError(f"Unsupported history message type: {message.type}")
        text = message.content if isinstance(message.content, str) else str(message.content)
        contents.append({"role": role, "parts": [{"text": text}]})
    return contents


class GeminiRestClient:
    """Calls the Gemini ``generateContent`` REST endpoint through httpx."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        generation: Optional[GenerationSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._generation = generation or GenerationSettings()
        self._http = http_client
        self._owns_http = http_client is None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            # Per-attempt deadlines are enforced by the router.
            self._http = httpx.AsyncClient(timeout=None)
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    def _payload(self, prompt: str, history: Sequence[BaseMessage]) -> Dict[str, Any]:
        contents = history_contents(history)
        contents.append({"role": "user", "parts": [{"text": prompt}]})
        return {
            "contents": contents,
            "generationConfig": self._generation.as_payload(),
            "safetySettings": [item.model_dump() for item in self._generation.safety],
        }

    async def send(self, backend_name: str, prompt: str, history: Sequence[BaseMessage]) -> ModelReply:
        if not self._api_key:
            raise FatalBackendError("GEMINI_API_KEY is not configured")
        url = f"{self._base_url}/models/{backend_name}:generateContent"
        headers = {"Content-Type": "application/json", "x-goog-api-key": self._api_key}
        logger.info(
            "Gemini send model=%s prompt_chars=%d history=%d",
            backend_name,
            len(prompt),
            len(history),
        )
        started = time.monotonic()
        try:
            response = await self._client().post(url, json=self._payload(prompt, history), headers=headers)
        except httpx.TransportError as exc:
            raise TransientBackendError(f"{backend_name} transport failure: {exc}") from exc
        if response.status_code >= 400:
            detail = _error_detail(response)
            message = f"{backend_name} returned status {response.status_code}: {detail}"
            if response.status_code in RETRYABLE_STATUS_CODES:
                raise TransientBackendError(message, status_code=response.status_code)
            raise FatalBackendError(message, status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise TransientBackendError(f"{backend_name} payload was not JSON") from exc
        reply = _extract_reply(backend_name, data)
        logger.info(
            "Gemini done model=%s ms=%d finish=%s",
            backend_name,
            int((time.monotonic() - started) * 1000),
            reply.finish_reason,
        )
        return reply


def _error_detail(response: httpx.Response) -> str:  # Best-effort error message from an error body
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return str(body["error"].get("message", ""))[:200]
    return str(body)[:200]


def _extract_reply(backend_name: str, data: Any) -> ModelReply:  # Pull text and usage out of a generateContent body
    if not isinstance(data, dict):
        raise FatalBackendError(f"{backend_name} returned an unexpected payload")
    feedback = data.get("promptFeedback") or {}
    if feedback.get("blockReason"):
        raise FatalBackendError(f"{backend_name} blocked the prompt: {feedback['blockReason']}")
    candidates = data.get("candidates") or []
    if not candidates:
        raise FatalBackendError(f"{backend_name} returned no candidates")
    first = candidates[0] if isinstance(candidates[0], dict) else {}
    parts = (first.get("content") or {}).get("parts") or []
    text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
    usage = data.get("usageMetadata") or {}
    tokens = usage.get("totalTokenCount")
    return ModelReply(
        text=text,
        finish_reason=str(first.get("finishReason") or "STOP"),
        tokens_used=tokens if isinstance(tokens, int) else None,
    )


__all__ = ["GeminiRestClient", "ModelInvocationClient", "ModelReply", "history_contents"]
