from __future__ import annotations

import asyncio

import psutil
import pytest

from argus import metrics
from argus.rate_limit import SlidingWindowLimiter
from argus.services.alerts_evaluator import alerts_evaluator_loop
from argus.services.metrics_sampler import sample_process, sampler_loop


async def _run_one_tick(loop, state) -> None:
    shutdown = asyncio.Event()
    task = asyncio.create_task(loop(state, shutdown))
    await asyncio.sleep(0.05)
    shutdown.set()
    await asyncio.wait_for(task, timeout=2.0)


@pytest.mark.anyio
async def test_evaluator_loop_fires_matching_rules(state, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(state.alerting, "simulate_notification_send", lambda channel, alert: True)
    monkeypatch.setattr(
        state.alerting, "sample_value", lambda rule: 99.0 if rule.name == "high-cpu-usage" else rule.threshold.value
    )
    await _run_one_tick(alerts_evaluator_loop, state)
    assert [a.rule_name for a in state.alerting.list_active_alerts()] == ["high-cpu-usage"]


@pytest.mark.anyio
async def test_evaluator_loop_survives_tick_failure(state, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture):
    def explode():
        raise RuntimeError("sampling backend gone")

    monkeypatch.setattr(state.alerting, "evaluate_all", explode)
    await _run_one_tick(alerts_evaluator_loop, state)
    assert "Alerts evaluator tick failed" in caplog.text


def test_sample_process_sets_gauges():
    sample = sample_process(psutil.Process())
    assert sample["memory_percent"] > 0
    assert metrics.memory_usage_percent._value.get() == sample["memory_percent"]


@pytest.mark.anyio
async def test_sampler_loop_prunes_idle_clients(state):
    now = [0.0]
    state.rate_limiter = SlidingWindowLimiter(5, 60.0, clock=lambda: now[0])
    state.rate_limiter.allow("198.51.100.1")
    now[0] = 120.0
    await _run_one_tick(sampler_loop, state)
    assert state.rate_limiter._hits == {}
