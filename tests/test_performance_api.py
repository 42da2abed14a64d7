from __future__ import annotations

import random

import httpx
import pytest

from argus.services.performance_service import ERROR_MESSAGES, LOG_MESSAGES, pick_scale_log


@pytest.mark.anyio
async def test_metrics_scale(async_client: httpx.AsyncClient):
    res = await async_client.get(
        "/test-metrics-scale", params={"count": "500", "duration": "200ms", "concurrency": "2"}
    )
    assert res.status_code == 200
    body = res.json()
    assert body["test_type"] == "metrics_scale"
    assert body["status"] == "completed"
    assert body["items_generated"] > 0
    assert body["items_generated"] % 4 == 0
    assert body["details"] == {
        "concurrency": "2",
        "target_count": "500",
        "test_duration": "200ms",
        "metric_types": "4",
    }
    assert "resource_usage" not in body


@pytest.mark.anyio
async def test_metrics_scale_caps_concurrency(async_client: httpx.AsyncClient, state):
    body = (
        await async_client.get("/test-metrics-scale", params={"duration": "50ms", "concurrency": "100000"})
    ).json()
    assert body["details"]["concurrency"] == str(state.validation.max_concurrency)
    assert body["details"]["target_count"] == "1000"


@pytest.mark.anyio
@pytest.mark.parametrize("level,expected", [("error", "error"), ("warn", "warn"), ("verbose", "mixed")])
async def test_logs_scale_levels(async_client: httpx.AsyncClient, level: str, expected: str):
    body = (
        await async_client.get("/test-logs-scale", params={"duration": "100ms", "concurrency": "2", "level": level})
    ).json()
    assert body["test_type"] == "logs_scale"
    assert body["details"]["log_level"] == expected
    assert body["items_generated"] > 0


@pytest.mark.anyio
async def test_traces_scale_caps_concurrency_at_ten(async_client: httpx.AsyncClient):
    body = (await async_client.get("/test-traces-scale", params={"duration": "100ms", "concurrency": "40"})).json()
    assert body["test_type"] == "traces_scale"
    assert body["details"]["concurrency"] == "10"
    assert body["details"]["services_count"] == "5"
    assert body["details"]["operations_count"] == "7"

    body = (await async_client.get("/test-traces-scale", params={"duration": "100ms"})).json()
    assert body["details"]["concurrency"] == "3"


@pytest.mark.anyio
async def test_dashboard_load_stops_after_requests_per_worker(async_client: httpx.AsyncClient, lgtm):
    res = await async_client.get(
        "/test-dashboard-load", params={"concurrency": "2", "duration": "5s", "requests": "3"}
    )
    body = res.json()
    assert body["test_type"] == "dashboard_load"
    assert body["items_generated"] == 6
    assert body["duration_seconds"] < 5
    assert body["details"]["successful_requests"] == "6"
    assert body["details"]["success_rate"] == "100.00%"
    assert body["details"]["endpoints_tested"] == "8"
    assert len(lgtm.requests) == 6


@pytest.mark.anyio
async def test_dashboard_load_counts_failures(async_client: httpx.AsyncClient, lgtm):
    lgtm.down.update({"grafana", "prometheus", "loki", "tempo"})
    body = (
        await async_client.get("/test-dashboard-load", params={"concurrency": "1", "duration": "5s", "requests": "2"})
    ).json()
    assert body["details"]["successful_requests"] == "0"
    assert body["details"]["success_rate"] == "0.00%"


@pytest.mark.anyio
async def test_resource_usage_reports_process_snapshot(async_client: httpx.AsyncClient, lgtm):
    lgtm.down.add("tempo")
    body = (await async_client.get("/test-resource-usage")).json()
    assert body["test_type"] == "resource_usage"
    assert body["details"]["components_checked"] == "4"
    assert body["details"]["tempo_status"] == "failed"
    assert body["details"]["grafana_health"] == "healthy"
    assert body["details"]["loki_ingester_active"] == "true"
    assert body["resource_usage"]["memory_mb"] > 0


@pytest.mark.anyio
async def test_storage_limits(async_client: httpx.AsyncClient, lgtm):
    lgtm.down.add("prometheus")
    body = (await async_client.get("/test-storage-limits")).json()
    assert body["test_type"] == "storage_limits"
    assert body["details"]["storage_components"] == "3"
    assert body["details"]["prometheus_storage_accessible"] == "false"
    assert body["details"]["tempo_storage_accessible"] == "true"
    assert body["details"]["retention_policy_days"] == "30"
    assert 100 <= int(body["details"]["prometheus_estimated_size_mb"]) <= 1099


def test_mixed_scale_logs_draw_all_four_kinds():
    rng = random.Random(7)
    picks = [pick_scale_log("mixed", rng) for _ in range(200)]
    assert {level for level, _ in picks} == {"info", "warn", "error", "debug"}
    for level, message in picks:
        if level == "warn":
            assert message.startswith("Warning: ")
        elif level == "debug":
            assert message.startswith("Debug: ")
        elif level == "error":
            assert message in ERROR_MESSAGES

    assert pick_scale_log("warn", rng)[1].startswith("Warning: ")
    assert pick_scale_log("info", rng)[1] in LOG_MESSAGES
