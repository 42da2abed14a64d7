from __future__ import annotations

import base64

import httpx
import pytest


def _settings_payload(grafana_user: str = "viewer") -> dict:
    return {
        "grafana": {"url": "http://localhost:3000/", "username": grafana_user, "password": "secret"},
        "prometheus": {"url": "http://localhost:9090"},
        "loki": {"url": "http://localhost:3100"},
        "tempo": {"url": "http://localhost:3200"},
    }


def _basic(user: str, password: str) -> str:
    return "Basic " + base64.b64encode(f"{user}:{password}".encode()).decode()


@pytest.mark.anyio
async def test_default_settings_use_config_urls(async_client: httpx.AsyncClient, state):
    res = await async_client.get("/api/settings")
    assert res.status_code == 200
    body = res.json()
    assert body["grafana"]["url"] == state.config.service_url("grafana")
    assert body["grafana"]["username"] == "admin"
    assert body["grafana"]["password"] == "admin123"
    assert body["prometheus"]["url"] == state.config.service_url("prometheus")


@pytest.mark.anyio
async def test_save_settings_round_trip(async_client: httpx.AsyncClient):
    res = await async_client.post("/api/settings", json=_settings_payload())
    assert res.status_code == 200
    saved = res.json()
    assert saved["status"] == "saved"
    assert saved["message"] == "Settings saved successfully"
    assert "timestamp" in saved

    current = (await async_client.get("/api/settings")).json()
    assert current["grafana"]["username"] == "viewer"
    assert current["grafana"]["url"] == "http://localhost:3000"


@pytest.mark.anyio
async def test_save_settings_rejects_malformed_json(async_client: httpx.AsyncClient):
    res = await async_client.post(
        "/api/settings", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert res.status_code == 400
    body = res.json()
    assert body["detail"] == "Invalid JSON"
    assert body["code"] == "invalid_request"
    assert "errors" in body["meta"]


@pytest.mark.anyio
async def test_save_settings_rejects_missing_services(async_client: httpx.AsyncClient):
    res = await async_client.post("/api/settings", json={"grafana": {"url": "http://g"}})
    assert res.status_code == 400
    assert res.json()["detail"] == "Invalid JSON"


@pytest.mark.anyio
async def test_connection_grafana_success_sends_basic_auth(async_client: httpx.AsyncClient, lgtm):
    res = await async_client.post(
        "/api/test-connection/grafana",
        json={"url": "http://localhost:3000", "username": "admin", "password": "pw"},
    )
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "success"
    assert body["message"] == "grafana is accessible"
    assert body["details"] == {"url": "http://localhost:3000/api/user", "status_code": 200}
    assert lgtm.calls("grafana", "/api/user")[-1].headers["authorization"] == _basic("admin", "pw")


@pytest.mark.anyio
async def test_connection_grafana_auth_failure(async_client: httpx.AsyncClient, lgtm):
    lgtm.set("grafana", "/api/user", status=401, body="unauthorized")
    res = await async_client.post("/api/test-connection/grafana", json={"url": "http://localhost:3000"})
    body = res.json()
    assert body["status"] == "error"
    assert body["message"] == "Authentication failed - check username/password"
    # credentials are always sent to Grafana, even empty ones
    assert "authorization" in lgtm.calls("grafana", "/api/user")[-1].headers


@pytest.mark.anyio
async def test_connection_prometheus_auth_only_with_username(async_client: httpx.AsyncClient, lgtm):
    await async_client.post("/api/test-connection/prometheus", json={"url": "http://localhost:9090"})
    assert "authorization" not in lgtm.calls("prometheus", "/-/healthy")[-1].headers

    await async_client.post(
        "/api/test-connection/prometheus", json={"url": "http://localhost:9090", "username": "u", "password": "p"}
    )
    assert lgtm.calls("prometheus", "/-/healthy")[-1].headers["authorization"] == _basic("u", "p")


@pytest.mark.anyio
async def test_connection_other_status_and_transport_errors(async_client: httpx.AsyncClient, lgtm):
    lgtm.set("loki", "/ready", status=503, body="")
    res = await async_client.post("/api/test-connection/loki", json={"url": "http://localhost:3100"})
    assert res.json()["message"] == "loki returned HTTP 503"

    lgtm.down.add("tempo")
    res = await async_client.post("/api/test-connection/tempo", json={"url": "http://localhost:3200"})
    body = res.json()
    assert body["status"] == "error"
    assert body["message"].startswith("Connection failed: ")
    assert "details" not in body


@pytest.mark.anyio
async def test_connection_unknown_service(async_client: httpx.AsyncClient):
    res = await async_client.post("/api/test-connection/mimir", json={"url": "http://localhost:9009"})
    assert res.status_code == 200
    assert res.json() == {"status": "error", "message": "Unknown service"}
