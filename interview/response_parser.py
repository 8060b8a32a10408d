from __future__ import annotations  # Structured reply extraction with degraded fallback

import json
import logging
import re
from typing import Optional

from pydantic import ValidationError

from .models import DecisionObject

logger = logging.getLogger(__name__)  # Module logger setup

MAX_REPLY_CHARS = 64_000
PREVIEW_CHARS = 300
FALLBACK_MESSAGE = "I'm sorry, could you repeat that?"

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_MESSAGE_RE = re.compile(r'"agentMessage"\s*:\s*"([^"\\]*(?:\\.[^"\\]*)*)"')


class StructuredReplyError(ValueError):  # Strict parse failure, converted to a degraded result
    def __init__(self, reason: str, raw: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw = raw


def strip_fence(text: str) -> str:  # Remove a single markdown code fence when present
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def extract_object(text: str) -> Optional[str]:  # First balanced top-level {...} span, string-aware
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def _clip(raw: str) -> str:
    if len(raw) > MAX_REPLY_CHARS:
        logger.warning("Model reply truncated from %d to %d chars", len(raw), MAX_REPLY_CHARS)
        return raw[:MAX_REPLY_CHARS]
    return raw


def parse_strict(raw: str) -> DecisionObject:
    """Parse a model reply into a ``DecisionObject`` or raise ``StructuredReplyError``."""

    text = strip_fence(_clip(raw or ""))
    span = extract_object(text)
    if span is None:
        raise StructuredReplyError("no JSON object found", raw)
    try:
        payload = json.loads(span)
    except json.JSONDecodeError as exc:
        raise StructuredReplyError(f"invalid JSON: {exc.msg}", raw) from exc
    if not isinstance(payload, dict):
        raise StructuredReplyError("reply is not a JSON object", raw)
    try:
        return DecisionObject.model_validate(payload)
    except ValidationError as exc:
        raise StructuredReplyError(f"schema validation failed: {exc.error_count()} errors", raw) from exc


def recover_message(raw: str) -> str:
    """Best-effort agent message from an unparseable reply."""

    match = _MESSAGE_RE.search(raw)
    if match:
        try:
            message = json.loads(f'"{match.group(1)}"')
        except json.JSONDecodeError:
            message = match.group(1).replace("\\n", "\n").replace('\\"', '"')
        if message.strip():
            return message.strip()
    return raw.strip() or FALLBACK_MESSAGE


def parse_reply(raw: str) -> DecisionObject:
    """Parse a model reply; never raises, degrading to a message-only decision."""

    try:
        return parse_strict(raw)
    except StructuredReplyError as exc:
        clipped = _clip(raw or "")
        logger.warning(
            "Structured reply parse degraded reason=%s preview=%s",
            exc.reason,
            clipped[:PREVIEW_CHARS].replace("\n", " "),
        )
        return DecisionObject.degraded(recover_message(clipped))


__all__ = [
    "MAX_REPLY_CHARS",
    "StructuredReplyError",
    "extract_object",
    "parse_reply",
    "parse_strict",
    "recover_message",
    "strip_fence",
]
