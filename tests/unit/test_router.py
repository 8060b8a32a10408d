from __future__ import annotations

import asyncio

import pytest

from config import BackendRoute
from llm_gateway import (
    AllBackendsExhausted,
    BackendTimeoutError,
    FatalBackendError,
    ModelReply,
    TransientBackendError,
)
from observability import MetricsSink


def _fail():
    return TransientBackendError("503 service unavailable", status_code=503)


@pytest.mark.parametrize("k", [0, 1, 2])
def test_fallback_count_equals_index_of_first_success(k, scripted_client, make_router):
    names = ["primary", "secondary", "tertiary"]
    script = {name: [_fail()] for name in names[:k]}
    for name in names[k:]:
        script[name] = ["hello"]
    router = make_router(scripted_client(script))
    result = asyncio.run(router.invoke("prompt", []))
    assert result.backend_used == names[k]
    assert result.fallbacks_used == k
    assert result.text == "hello"


def test_attempts_count_across_backends(scripted_client, make_router):
    client = scripted_client({"primary": [_fail()], "secondary": [_fail(), _fail(), "ok"]})
    result = asyncio.run(make_router(client).invoke("prompt", []))
    # primary: 3 attempts, secondary: 3 attempts
    assert result.attempts_made == 6
    assert result.fallbacks_used == 1
    assert [call["backend"] for call in client.calls] == ["primary"] * 3 + ["secondary"] * 3


def test_fatal_error_skips_backend_without_retry(scripted_client, make_router):
    client = scripted_client({"primary": [FatalBackendError("API key not valid", status_code=403)], "secondary": ["ok"]})
    result = asyncio.run(make_router(client).invoke("prompt", []))
    assert result.backend_used == "secondary"
    assert [call["backend"] for call in client.calls] == ["primary", "secondary"]


def test_all_backends_exhausted_embeds_chain_and_last_error(scripted_client, make_router):
    last = FatalBackendError("blocked")
    client = scripted_client({"primary": [_fail()], "secondary": [_fail()], "tertiary": [last]})
    with pytest.raises(AllBackendsExhausted) as info:
        asyncio.run(make_router(client).invoke("prompt", []))
    assert info.value.chain == ["primary", "secondary", "tertiary"]
    assert info.value.last_error is last
    assert info.value.attempts_made == 3 + 3 + 1
    assert "primary -> secondary -> tertiary" in str(info.value)


def test_chain_sorted_by_priority(scripted_client, make_router):
    backends = [
        BackendRoute(name="late", priority=3, timeout_s=1.0, max_retries=0),
        BackendRoute(name="early", priority=1, timeout_s=1.0, max_retries=0),
    ]
    client = scripted_client(["ok"])
    result = asyncio.run(make_router(client, backends=backends).invoke("prompt", []))
    assert result.backend_used == "early"


def test_fallback_disabled_uses_primary_only(scripted_client, make_router):
    client = scripted_client({"primary": [_fail()], "secondary": ["ok"]})
    router = make_router(client, enable_fallback=False)
    with pytest.raises(AllBackendsExhausted) as info:
        asyncio.run(router.invoke("prompt", []))
    assert info.value.chain == ["primary"]
    assert {call["backend"] for call in client.calls} == {"primary"}


def test_preferred_backend_pins_known_entry(scripted_client, make_router):
    client = scripted_client(["ok"])
    router = make_router(client)
    assert asyncio.run(router.invoke("p", [], preferred_backend="tertiary")).backend_used == "tertiary"
    assert [route.name for route in router.chain_for("unknown")] == ["primary", "secondary", "tertiary"]


def test_per_attempt_timeout_is_retried_then_falls_back(make_router):
    class SlowPrimary:
        def __init__(self):
            self.primary_calls = 0

        async def send(self, backend_name, prompt, history):
            if backend_name == "primary":
                self.primary_calls += 1
                await asyncio.sleep(5)
            return ModelReply(text="fast")

    backends = [
        BackendRoute(name="primary", priority=1, timeout_s=0.1, max_retries=1),
        BackendRoute(name="secondary", priority=2, timeout_s=1.0, max_retries=0),
    ]
    client = SlowPrimary()
    result = asyncio.run(make_router(client, backends=backends).invoke("p", []))
    assert client.primary_calls == 2
    assert result.backend_used == "secondary"
    assert result.fallbacks_used == 1


def test_timeout_error_is_transient():
    exc = BackendTimeoutError("primary", 0.5)
    assert isinstance(exc, TransientBackendError)
    assert "timed out" in str(exc)


def test_tokens_estimated_when_backend_silent(scripted_client, make_router):
    client = scripted_client([ModelReply(text="abcd" * 3)])
    result = asyncio.run(make_router(client).invoke("x" * 8, []))
    assert result.tokens_used == 5  # ceil((8 + 12) / 4)
    reported = scripted_client([ModelReply(text="hi", tokens_used=42)])
    assert asyncio.run(make_router(reported).invoke("x", [])).tokens_used == 42


def test_metrics_record_success_failure_and_fallbacks(scripted_client, make_router):
    metrics = MetricsSink()
    client = scripted_client({"primary": [FatalBackendError("bad")], "secondary": ["ok"]})
    asyncio.run(make_router(client, metrics=metrics).invoke("p", []))
    snap = metrics.snapshot()
    assert snap.backends["primary"].failed_requests == 1
    assert snap.backends["secondary"].successful_requests == 1
    assert snap.fallback.total_requests == 1
    assert snap.fallback.successful_fallbacks == 1

    failing = scripted_client([FatalBackendError("bad")])
    with pytest.raises(AllBackendsExhausted):
        asyncio.run(make_router(failing, metrics=metrics).invoke("p", []))
    assert metrics.snapshot().fallback.complete_failures == 1
    metrics.reset()
    assert metrics.snapshot().backends == {}


def test_metrics_charge_route_cost_on_success_only(scripted_client, make_router):
    backends = [
        BackendRoute(name="pricey", priority=1, timeout_s=1.0, max_retries=0, cost_per_request=0.25),
        BackendRoute(name="cheap", priority=2, timeout_s=1.0, max_retries=0, cost_per_request=0.01),
    ]
    metrics = MetricsSink()
    client = scripted_client({"pricey": [FatalBackendError("bad"), "ok"], "cheap": ["ok"]})
    router = make_router(client, backends=backends, metrics=metrics)
    asyncio.run(router.invoke("p", []))
    asyncio.run(router.invoke("p", []))
    snap = metrics.snapshot()
    assert snap.backends["pricey"].failed_requests == 1
    assert snap.backends["pricey"].total_cost == pytest.approx(0.25)
    assert snap.backends["cheap"].total_cost == pytest.approx(0.01)
