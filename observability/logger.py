"""Structured logging for conversation turns and backend calls.

Two streams share one set of handlers:

* module loggers (``logging.getLogger(__name__)``) propagate to the root logger,
  which :func:`configure_logging` points at the console and the human log file;
* :func:`log_event` writes one human line per event and, when file logs are
  enabled, one JSON line per event to the rotating JSON file.
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any, Optional

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_FILE_LOGS = os.getenv("ENABLE_FILE_LOGS", "1") in ("1", "true", "True")
LOG_FILE = os.getenv("LOG_FILE", "logs/interview.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

EVENT_LOGGER = "interview.events"

_HUMAN_FORMAT = logging.Formatter(
    "[%(asctime)s] %(levelname)s %(name)s :: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
_HUMAN_KEYS = (
    "backend",
    "attempt",
    "phase",
    "proposed",
    "status",
    "fallbacks",
    "next_backend",
    "ms",
    "outcome",
    "error",
)

_events = logging.getLogger(EVENT_LOGGER)
_events.propagate = False
_configured = False


def _is_json(record: logging.LogRecord) -> bool:
    return getattr(record, "is_json", False) is True


def _human_file_name() -> str:
    base = LOG_FILE if LOG_FILE.endswith(".log") else f"{LOG_FILE}.log"
    return base[: -len(".log")] + "-human.log"


def _rotating(path: str, *, json_lines: bool) -> logging.Handler:  # Rotating file handler for one stream
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
    if json_lines:
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler.addFilter(_is_json)
    else:
        handler.setFormatter(_HUMAN_FORMAT)
        handler.addFilter(lambda record: not _is_json(record))
    return handler


def _console() -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(_HUMAN_FORMAT)
    handler.addFilter(lambda record: not _is_json(record))
    return handler


def configure_logging(level: Optional[str] = None) -> None:
    """Attach console and file handlers once; later calls only adjust the level."""

    global _configured
    resolved = (level or LOG_LEVEL).upper()
    root = logging.getLogger()
    root.setLevel(resolved)
    _events.setLevel(resolved)
    if _configured:
        return
    _configured = True

    handlers = [_console()]
    if ENABLE_FILE_LOGS:
        handlers.append(_rotating(_human_file_name(), json_lines=False))
    for handler in handlers:
        root.addHandler(handler)
        _events.addHandler(handler)
    if ENABLE_FILE_LOGS:
        _events.addHandler(_rotating(LOG_FILE, json_lines=True))


def _format_human(evt: dict[str, Any]) -> str:
    extras = [f"{key}={evt[key]}" for key in _HUMAN_KEYS if key in evt]
    line = f"conversation={evt.get('conversation_id')} kind={evt.get('kind')}"
    return f"{line} {' '.join(extras)}" if extras else line


def _emit(level: int, message: str, *, is_json: bool) -> None:
    record = _events.makeRecord(_events.name, level, fn="", lno=0, msg=message, args=(), exc_info=None)
    record.is_json = is_json  # type: ignore[attr-defined]
    _events.handle(record)


def log_event(kind: str, conversation_id: Optional[str], *, level: int = logging.INFO, **fields: Any) -> None:
    """Record one orchestration event as a human line and a JSON line."""

    if not _configured:
        configure_logging()
    if not _events.isEnabledFor(level):
        return
    payload: dict[str, Any] = {
        "ts": time.time(),
        "trace": str(uuid.uuid4()),
        "kind": kind,
        "conversation_id": conversation_id or "-",
    }
    payload.update(fields)
    _emit(level, _format_human(payload), is_json=False)
    if ENABLE_FILE_LOGS:
        _emit(level, json.dumps(payload, ensure_ascii=False, default=str), is_json=True)


__all__ = ["EVENT_LOGGER", "configure_logging", "log_event"]
