import json
import os
import sys
import tempfile
from pathlib import Path

import pytest

os.environ.setdefault("ENABLE_FILE_LOGS", "0")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import BackendRoute, RetryPolicy
from config.settings import settings
from interview import ConversationOrchestrator, PromptBuilder, StaticContent
from llm_gateway import BackendRouter, ModelReply, RetryExecutor
from observability import MetricsSink
from storage.migrate import migrate
from storage.records import SqliteRecordStore


async def _no_sleep(_: float) -> None:
    return None


class ScriptedClient:
    """Model client replaying scripted replies; the last item of a script repeats."""

    def __init__(self, script):
        if isinstance(script, dict):
            self._scripts = {name: list(items) for name, items in script.items()}
        else:
            self._scripts = {None: list(script)}
        self.calls = []

    async def send(self, backend_name, prompt, history):
        self.calls.append({"backend": backend_name, "prompt": prompt, "history": list(history)})
        key = backend_name if backend_name in self._scripts else None
        queue = self._scripts.get(key)
        if not queue:
            raise AssertionError(f"no scripted reply for {backend_name}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, ModelReply):
            return item
        if isinstance(item, dict):
            item = json.dumps(item)
        return ModelReply(text=item)


TEST_BACKENDS = [
    BackendRoute(name="primary", priority=1, timeout_s=1.0, max_retries=2),
    BackendRoute(name="secondary", priority=2, timeout_s=1.0, max_retries=2),
    BackendRoute(name="tertiary", priority=3, timeout_s=1.0, max_retries=3),
]


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


@pytest.fixture
def no_sleep_executor():
    return RetryExecutor(sleep=_no_sleep)


@pytest.fixture
def store(tmp_db):
    return SqliteRecordStore(tmp_db)


@pytest.fixture
def make_router(no_sleep_executor):
    def _make(client, *, backends=None, enable_fallback=True, metrics=None):
        return BackendRouter(
            backends or TEST_BACKENDS,
            client,
            retry_policy=RetryPolicy(base_delay_s=0.0, max_delay_s=0.0, jitter=False),
            enable_fallback=enable_fallback,
            executor=no_sleep_executor,
            metrics=metrics or MetricsSink(),
        )

    return _make


@pytest.fixture
def make_orchestrator(store, make_router):
    def _make(script, **router_kwargs):
        client = ScriptedClient(script)
        router = make_router(client, **router_kwargs)
        prompts = PromptBuilder(StaticContent(policy="POLICY TEXT", knowledge="KNOWLEDGE TEXT"))
        return ConversationOrchestrator(store, router, prompts), client

    return _make


@pytest.fixture
def scripted_client():
    return ScriptedClient
