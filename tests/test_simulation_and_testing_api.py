from __future__ import annotations

import json
import random
import re

import httpx
import pytest

from argus.services import simulation_service


@pytest.mark.anyio
@pytest.mark.parametrize(
    "path,message,service_type",
    [
        ("/simulate/web-service", "Web service simulation completed", "web-service"),
        ("/simulate/api-service", "API service simulation completed", "api-service"),
        ("/simulate/database-service", "Database service simulation completed", "database-service"),
        ("/simulate/static-site", "Static site simulation completed", "static-site"),
        ("/simulate/microservice", "Microservice simulation completed", "microservice"),
    ],
)
async def test_simulations_report_their_type(async_client: httpx.AsyncClient, path: str, message: str, service_type: str):
    res = await async_client.get(path)
    assert res.status_code == 200
    body = res.json()
    assert body["message"] == message
    assert body["service_type"] == service_type
    assert "timestamp" in body


@pytest.mark.anyio
async def test_web_and_api_simulation_shapes(async_client: httpx.AsyncClient):
    web = (await async_client.get("/simulate/web-service")).json()
    assert 10 <= web["requests_simulated"] <= 60
    assert web["endpoints_tested"] == simulation_service.WEB_ENDPOINTS
    assert 0 <= web["error_rate"] <= 100

    api = (await async_client.get("/simulate/api-service")).json()
    assert api["endpoints_available"] == 8
    assert api["rate_limit_hits"] >= 0


@pytest.mark.anyio
async def test_database_static_and_microservice_shapes(async_client: httpx.AsyncClient):
    db = (await async_client.get("/simulate/database-service")).json()
    assert 20 <= db["queries_executed"] <= 100
    assert set(db["tables_accessed"]) <= set(simulation_service.DB_TABLES)

    static = (await async_client.get("/simulate/static-site")).json()
    assert re.fullmatch(r"\d{1,3}\.\d%", static["cache_hit_rate"])
    assert float(static["total_bandwidth_mb"]) >= 0

    micro = (await async_client.get("/simulate/microservice")).json()
    assert 10 <= micro["service_calls"] <= 50
    assert set(micro["services_involved"]) <= set(simulation_service.MICROSERVICES)


@pytest.mark.anyio
@pytest.mark.parametrize(
    "path,message,functionality",
    [
        ("/simulate-service/wordpress", "WordPress service simulation completed", "wordpress_monitoring"),
        ("/simulate-service/nextjs", "Next.js service simulation completed", "nextjs_monitoring"),
    ],
)
async def test_cms_simulations(async_client: httpx.AsyncClient, path: str, message: str, functionality: str):
    body = (await async_client.get(path)).json()
    assert body["message"] == message
    assert body["service"] == "argus"
    assert body["functionality"] == functionality


@pytest.mark.anyio
async def test_nextjs_render_split(async_client: httpx.AsyncClient):
    body = (await async_client.get("/simulate-service/nextjs")).json()
    assert body["ssr_renders"] + body["static_renders"] == body["page_renders"]


@pytest.mark.anyio
async def test_json_logs(async_client: httpx.AsyncClient):
    body = (await async_client.get("/generate-logs/json")).json()
    assert body["logs_generated"] == 10
    assert body["log_formats"] == 3
    assert len(body["sample_logs"]) == 3
    assert body["functionality"] == "loki_json_validation"
    for line in body["sample_logs"]:
        entry = line if isinstance(line, dict) else json.loads(line)
        assert entry["service"] == "argus"


@pytest.mark.anyio
async def test_unstructured_logs(async_client: httpx.AsyncClient):
    body = (await async_client.get("/generate-logs/unstructured")).json()
    assert body["logs_generated"] == 10
    assert body["log_templates"] == 7
    assert body["functionality"] == "loki_unstructured_validation"
    assert all(line.startswith("[") for line in body["sample_logs"])


@pytest.mark.anyio
async def test_mixed_logs(async_client: httpx.AsyncClient):
    body = (await async_client.get("/generate-logs/mixed")).json()
    assert body["logs_generated"] == 15
    assert body["formats"] == ["JSON", "Key-Value", "Plain Text"]
    assert body["functionality"] == "loki_mixed_validation"


@pytest.mark.anyio
async def test_multiline_logs_cover_three_languages(async_client: httpx.AsyncClient):
    body = (await async_client.get("/generate-logs/multiline")).json()
    assert body["logs_generated"] == 3
    assert [t["language"] for t in body["stack_traces"]] == ["java", "python", "go"]
    assert all(t["lines"] > 1 for t in body["stack_traces"])
    assert body["functionality"] == "loki_multiline_validation"


@pytest.mark.anyio
async def test_cross_service_traces(async_client: httpx.AsyncClient):
    body = (await async_client.get("/simulate-trace/cross-service")).json()
    assert body["generated_traces"] == 3
    assert body["functionality"] == "tempo_cross_service_tracing"
    for scenario in body["trace_scenarios"]:
        assert re.fullmatch(r"[0-9a-f]{32}", scenario["trace_id"])
        assert scenario["spans"]
        for span in scenario["spans"]:
            assert span["parent_span_id"]


@pytest.mark.anyio
async def test_service_discovery_reports_unreachable(async_client: httpx.AsyncClient, lgtm, state):
    lgtm.down.add("tempo")
    body = (await async_client.get("/test-service-discovery")).json()
    assert body["total_count"] == len(state.config.service_urls)
    assert body["discovered_count"] == body["total_count"] - 1
    tempo = next(s for s in body["services_tested"] if s["service"] == "tempo")
    assert tempo["discovered"] is False
    assert body["functionality"] == "service_discovery"


@pytest.mark.anyio
async def test_reverse_proxy_ssl_and_domain_checks(async_client: httpx.AsyncClient):
    proxy = (await async_client.get("/test-reverse-proxy")).json()
    assert len(proxy["routes_tested"]) == 5
    assert proxy["healthy_routes"] == sum(1 for r in proxy["routes_tested"] if r["healthy"])
    assert proxy["functionality"] == "reverse_proxy_monitoring"

    ssl = (await async_client.get("/test-ssl-monitoring")).json()
    assert len(ssl["certificates_checked"]) == 4
    assert ssl["functionality"] == "ssl_monitoring"

    domains = (await async_client.get("/test-domain-health")).json()
    assert len(domains["domains_checked"]) == 4
    assert domains["functionality"] == "domain_health_monitoring"


def test_seeded_rng_is_repeatable(app):
    class _Req:
        pass

    req = _Req()
    req.app = app
    first = simulation_service.simulate_web_service(req, rng=random.Random(3))
    second = simulation_service.simulate_web_service(req, rng=random.Random(3))
    assert first["requests_simulated"] == second["requests_simulated"]
