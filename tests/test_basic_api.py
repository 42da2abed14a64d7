from __future__ import annotations

import asyncio
import re

import httpx
import pytest
from prometheus_client import REGISTRY

from argus.services import basic_service


@pytest.mark.anyio
async def test_health_reports_service_and_checks(async_client: httpx.AsyncClient):
    res = await async_client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "healthy"
    assert body["service"] == "argus"
    assert body["version"]
    assert body["uptime"].endswith("s")
    assert body["checks"] == {"web_server": "ok", "metrics_registry": "ok", "logging_service": "ok"}
    assert "timestamp" in body


@pytest.mark.anyio
async def test_config_is_not_cached(async_client: httpx.AsyncClient, state):
    res = await async_client.get("/config")
    assert res.status_code == 200
    assert res.headers["cache-control"] == "no-cache"
    assert res.json() == {
        "api_base_url": state.config.api_base_url,
        "version": state.config.version,
        "environment": state.config.environment,
    }


@pytest.mark.anyio
async def test_generate_metrics_counts_and_defaults(async_client: httpx.AsyncClient):
    res = await async_client.get("/generate-metrics", params={"count": "25"})
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Metrics generated successfully"
    assert body["metrics_generated"] == 25
    assert "custom_business_metric" in body["types"]

    res = await async_client.get("/generate-metrics", params={"count": "-3"})
    assert res.json()["metrics_generated"] == 10

    gauge = REGISTRY.get_sample_value("custom_business_metric", {"metric_type": "test", "category": "generated"})
    assert gauge is not None and 0 <= gauge <= 100
    scraped = (await async_client.get("/metrics")).text
    assert 'endpoint="/api/test"' in scraped


@pytest.mark.anyio
async def test_generate_logs(async_client: httpx.AsyncClient):
    res = await async_client.get("/generate-logs", params={"count": "3"})
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Logs generated successfully"
    assert body["logs_generated"] == 3
    assert body["log_types"] == ["info", "warn", "error", "debug"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "error_type,status",
    [("validation", 400), ("auth", 401), ("timeout", 408), ("database", 500), ("network", 500)],
)
async def test_generate_error_maps_type_to_status(async_client: httpx.AsyncClient, error_type: str, status: int):
    res = await async_client.get("/generate-error", params={"type": error_type}, headers={"X-Request-ID": "req-42"})
    assert res.status_code == status
    body = res.json()
    assert body["error"] is True
    assert body["type"] == error_type
    assert re.fullmatch(rf"ERR_{error_type.upper()}_\d{{3}}", body["code"])
    assert body["request_id"] == "req-42"


@pytest.mark.anyio
async def test_generate_error_unknown_type_picks_a_known_one(async_client: httpx.AsyncClient):
    res = await async_client.get("/generate-error", params={"type": "cosmic-ray"})
    assert res.json()["type"] in ("validation", "database", "network", "timeout", "auth")


@pytest.mark.anyio
async def test_cpu_load_returns_immediately(async_client: httpx.AsyncClient, state):
    res = await async_client.get("/cpu-load", params={"duration": "100ms", "intensity": "250"})
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "CPU load simulation started"
    assert body["duration"] == "100ms"
    assert body["intensity"] == 100
    assert len(state.background_tasks) == 1
    await asyncio.gather(*state.background_tasks)


@pytest.mark.anyio
async def test_cpu_load_defaults(async_client: httpx.AsyncClient, state, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(basic_service, "_burn_cpu", lambda duration_s, intensity: 0)
    res = await async_client.get("/cpu-load", params={"duration": "nope", "intensity": "0"})
    body = res.json()
    assert body["duration"] == "5s"
    assert body["intensity"] == 50
    await asyncio.gather(*state.background_tasks)


@pytest.mark.anyio
async def test_memory_load_reports_stats(async_client: httpx.AsyncClient, state):
    res = await async_client.get("/memory-load", params={"size": "1", "duration": "100ms"})
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == "Memory load simulation started"
    assert body["size_mb"] == 1
    assert body["duration"] == "100ms"
    assert body["memory_stats"]["process_rss_mb"] > 0
    await asyncio.gather(*state.background_tasks)


@pytest.mark.anyio
async def test_memory_load_caps_size(async_client: httpx.AsyncClient, state, monkeypatch: pytest.MonkeyPatch):
    async def hold(size_mb: int, duration_s: float) -> None:
        return None

    monkeypatch.setattr(basic_service, "_memory_load_task", hold)
    res = await async_client.get("/memory-load", params={"size": "999999", "duration": "10ms"})
    assert res.json()["size_mb"] == 1024
    await asyncio.gather(*state.background_tasks)


@pytest.mark.anyio
async def test_lgtm_status_online_and_offline(async_client: httpx.AsyncClient, lgtm):
    lgtm.down.add("tempo")
    lgtm.set("loki", "/ready", status=503, body="not ready")
    res = await async_client.get("/lgtm-status")
    assert res.status_code == 200
    assert res.json() == {
        "prometheus": "online",
        "grafana": "online",
        "loki": "offline",
        "tempo": "offline",
        "alertmanager": "online",
    }
    assert lgtm.calls("grafana", "/api/health")
    assert lgtm.calls("alertmanager", "/-/healthy")


@pytest.mark.anyio
async def test_test_simple_page(async_client: httpx.AsyncClient):
    res = await async_client.get("/test-simple")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/html")
    assert "Argus" in res.text


@pytest.mark.anyio
async def test_static_ui_and_metrics(async_client: httpx.AsyncClient):
    res = await async_client.get("/")
    assert res.status_code == 200
    assert "<title>Argus" in res.text

    res = await async_client.get("/metrics")
    assert res.status_code == 200
    assert "http_requests_total" in res.text


@pytest.mark.anyio
async def test_unknown_path_uses_error_envelope(async_client: httpx.AsyncClient):
    res = await async_client.get("/does-not-exist")
    assert res.status_code == 404
    body = res.json()
    assert body["detail"] == "Not Found"
    assert body["code"] == "404"
