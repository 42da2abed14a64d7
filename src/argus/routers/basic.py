from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse

from argus.schemas.common import ConfigResponse, HealthResponse
from argus.services import basic_service
from argus.state import get_state

router = APIRouter(tags=["Basic"])

TEST_SIMPLE_HTML = """<!DOCTYPE html>
<html>
<head><title>Argus Test</title></head>
<body>
<h1>Argus is running</h1>
<p>LGTM stack synthetic data generator and validator.</p>
<ul>
<li><a href="/health">/health</a></li>
<li><a href="/metrics">/metrics</a></li>
<li><a href="/lgtm-status">/lgtm-status</a></li>
</ul>
</body>
</html>
"""


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Liveness check with version, uptime and subsystem checks.",
    operation_id="health_check",
)
def health_check(request: Request) -> HealthResponse:
    """Return service liveness status."""
    return basic_service.health(request)


@router.get(
    "/config",
    response_model=ConfigResponse,
    summary="Frontend config",
    description="Runtime configuration for the bundled UI.",
    operation_id="frontend_config",
)
def frontend_config(request: Request) -> JSONResponse:
    cfg = get_state(request.app).config
    body = ConfigResponse(api_base_url=cfg.api_base_url, version=cfg.version, environment=cfg.environment)
    return JSONResponse(content=body.model_dump(), headers={"Cache-Control": "no-cache"})


@router.get(
    "/generate-metrics",
    summary="Generate metrics",
    description="Emit synthetic business metrics and API request counts.",
    operation_id="generate_metrics",
)
def generate_metrics(
    request: Request,
    count: Optional[str] = Query(default=None, description="Number of samples (default 10)."),
) -> Dict[str, Any]:
    return basic_service.generate_metrics(request, count)


@router.get(
    "/generate-logs",
    summary="Generate logs",
    description="Write correlated log lines of random level, 10ms apart.",
    operation_id="generate_logs",
)
async def generate_logs(
    request: Request,
    count: Optional[str] = Query(default=None, description="Number of log lines (default 5)."),
) -> Dict[str, Any]:
    return await basic_service.generate_logs(request, count)


@router.get(
    "/generate-error",
    summary="Generate error",
    description="Log a simulated error and answer with the matching HTTP status.",
    operation_id="generate_error",
)
def generate_error(
    request: Request,
    type: Optional[str] = Query(default=None, description="validation|database|network|timeout|auth (default random)."),
) -> JSONResponse:
    status_code, body = basic_service.generate_error(request, type)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@router.get(
    "/cpu-load",
    summary="CPU load",
    description="Start a background busy loop; returns immediately.",
    operation_id="cpu_load",
)
async def cpu_load(
    request: Request,
    duration: Optional[str] = Query(default=None, description="Duration such as '30s' (default 5s)."),
    intensity: Optional[str] = Query(default=None, description="Percent of each slice spent busy, 1-100 (default 50)."),
) -> Dict[str, Any]:
    return basic_service.cpu_load(request, duration, intensity)


@router.get(
    "/memory-load",
    summary="Memory load",
    description="Hold an allocation in the background; returns immediately.",
    operation_id="memory_load",
)
async def memory_load(
    request: Request,
    size: Optional[str] = Query(default=None, description="Megabytes to allocate (default 100, max 1024)."),
    duration: Optional[str] = Query(default=None, description="How long to hold it (default 30s)."),
) -> Dict[str, Any]:
    return basic_service.memory_load(request, size, duration)


@router.get(
    "/lgtm-status",
    summary="LGTM status",
    description="online/offline per LGTM service from its health endpoint.",
    operation_id="lgtm_status",
)
async def lgtm_status(request: Request) -> Dict[str, str]:
    return await basic_service.lgtm_status(request)


@router.get(
    "/test-simple",
    response_class=HTMLResponse,
    summary="Simple test page",
    operation_id="test_simple_page",
)
def test_simple() -> HTMLResponse:
    return HTMLResponse(TEST_SIMPLE_HTML)
