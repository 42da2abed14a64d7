from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import AsyncIterator
from typing import Dict, List, Set, Tuple

import httpx
import pytest

from argus.config import SERVICE_PORTS, load_config
from argus.state import AppState, get_state, init_state

_PORT_SERVICE = {port: service for service, port in SERVICE_PORTS.items()}

# Bodies shaped like the real LGTM endpoints; counted by substring in the integration checks.
DEFAULT_BODIES: Dict[Tuple[str, str], str] = {
    ("grafana", "/api/datasources"): '[{"name":"Prometheus","type":"prometheus"},{"name":"Loki","type":"loki"}]',
    ("prometheus", "/api/v1/targets"): '{"data":{"activeTargets":[{"health":"up"},{"health":"up"},{"health":"down"}]}}',
    ("prometheus", "/api/v1/rules"): '{"status":"success","data":{"groups":[]}}',
    ("loki", "/metrics"): "loki_ingester_streams_created_total 3\nloki_distributor_bytes_received_total 512\n",
    ("otel-collector", "/metrics"): (
        "otelcol_receiver_accepted_spans 10\notelcol_processor_batch_batch_send_size 4\notelcol_exporter_sent_spans 10\n"
    ),
}


class FakeLGTM:
    """
    Stand-in for the LGTM services behind an httpx.MockTransport.

    Requests are routed by port (the default service URLs use distinct ports). Unknown
    paths answer 200 "ok". Services listed in `down` refuse connections.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Tuple[int, str]] = {k: (200, v) for k, v in DEFAULT_BODIES.items()}
        self.down: Set[str] = set()
        self.requests: List[httpx.Request] = []

    def set(self, service: str, path: str, status: int = 200, body: str = "") -> None:
        self.routes[(service, path)] = (status, body)

    def service_of(self, request: httpx.Request) -> str:
        return _PORT_SERVICE.get(request.url.port, request.url.host)

    def calls(self, service: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if self.service_of(r) == service and r.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        service = self.service_of(request)
        if service in self.down:
            raise httpx.ConnectError("connection refused", request=request)
        status, body = self.routes.get((service, request.url.path), (200, "ok"))
        return httpx.Response(status, text=body)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def lgtm() -> FakeLGTM:
    return FakeLGTM()


@pytest.fixture
def app(tmp_path, lgtm: FakeLGTM):
    """
    FastAPI app with fresh state per test.

    Outbound calls go to the FakeLGTM transport, rule files are written under tmp_path,
    and no Prometheus rules directory is probed.
    """
    from argus.main import app as fastapi_app

    config = dataclasses.replace(
        load_config(),
        rules_output_dir=str(tmp_path / "rules"),
        prometheus_rule_dirs=(),
    )
    state = init_state(fastapi_app, config)
    state.http_transport = httpx.MockTransport(lgtm.handle)
    return fastapi_app


@pytest.fixture
def state(app) -> AppState:
    return get_state(app)


@pytest.fixture
async def async_client(app) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client bound to the FastAPI ASGI app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    # Let background load tasks started by the test finish before the loop closes.
    pending = list(get_state(app).background_tasks)
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
