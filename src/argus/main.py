from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from argus.config import load_config
from argus.metrics import render_metrics
from argus.middleware import install_middleware
from argus.routers import alerting, basic, integration, performance, settings, simulation, testing
from argus.schemas.common import ErrorResponse
from argus.services.alerts_evaluator import alerts_evaluator_loop
from argus.services.metrics_sampler import sampler_loop
from argus.state import get_state, init_state

openapi_tags = [
    {"name": "Basic", "description": "Health, config, and basic metric/log/error/load generators."},
    {"name": "Settings", "description": "LGTM connection settings and per-service connection tests."},
    {"name": "Simulation", "description": "Simulated application workloads."},
    {"name": "Testing", "description": "Log format, service type, tracing and infrastructure checks."},
    {"name": "Integration", "description": "LGTM stack integration, Grafana dashboard and alert rule provisioning."},
    {"name": "Performance", "description": "Concurrent scale and load tests."},
    {"name": "Alerting", "description": "In-memory alert manager, incidents and notification channels."},
    {"name": "Metrics", "description": "Prometheus exposition."},
]

logger = logging.getLogger(__name__)

config = load_config()

app = FastAPI(
    title="Argus",
    description=(
        "Synthetic load generator and validator for LGTM (Loki, Grafana, Tempo, Mimir/Prometheus) "
        "observability stacks. Generates metrics, logs, traces and alerts on demand and checks that "
        "each component receives them."
    ),
    version=config.version,
    openapi_tags=openapi_tags,
)

# Initialize typed app state (config + service singletons)
init_state(app, config)
install_middleware(app, config.security)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    body = ErrorResponse(detail=str(exc.detail), code=str(exc.status_code))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = ErrorResponse(detail="Invalid JSON", code="invalid_request", meta={"errors": jsonable_encoder(exc.errors())})
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())


@app.on_event("startup")
async def _on_startup() -> None:
    """Startup hook: start the alert evaluator and resource sampler loops."""
    state = get_state(app)

    app.state._sampler_shutdown = asyncio.Event()
    state.sampler_task = asyncio.create_task(sampler_loop(state, app.state._sampler_shutdown))

    if state.config.alert_evaluation_enabled:
        app.state._alerts_shutdown = asyncio.Event()
        state.alerts_task = asyncio.create_task(alerts_evaluator_loop(state, app.state._alerts_shutdown))

    logger.info(
        "Argus started version=%s port=%s environment=%s tracing_endpoint=%s sampling_rate=%s",
        state.config.version,
        state.config.port,
        state.config.environment,
        state.config.tracing.collector_endpoint,
        state.config.tracing.sampling_rate,
    )


@app.on_event("shutdown")
async def _on_shutdown() -> None:
    """Shutdown hook: stop the background loops and wait for load tasks."""
    state = get_state(app)

    sampler_shutdown = getattr(app.state, "_sampler_shutdown", None)
    if sampler_shutdown is not None:
        sampler_shutdown.set()
    sampler_task = state.sampler_task
    if sampler_task is not None:
        try:
            await asyncio.wait_for(sampler_task, timeout=5.0)
        except Exception:
            logger.exception("Error stopping resource sampler task")

    alerts_shutdown = getattr(app.state, "_alerts_shutdown", None)
    if alerts_shutdown is not None:
        alerts_shutdown.set()
    alerts_task = state.alerts_task
    if alerts_task is not None:
        try:
            await asyncio.wait_for(alerts_task, timeout=5.0)
        except Exception:
            logger.exception("Error stopping alerts evaluator task")

    for task in list(state.background_tasks):
        task.cancel()
    if state.background_tasks:
        await asyncio.gather(*state.background_tasks, return_exceptions=True)


@app.get("/metrics", tags=["Metrics"], summary="Prometheus metrics", operation_id="metrics", include_in_schema=False)
def prometheus_metrics() -> Response:
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)


app.include_router(basic.router)
app.include_router(settings.router)
app.include_router(simulation.router)
app.include_router(testing.router)
app.include_router(integration.router)
app.include_router(performance.router)
app.include_router(alerting.router)

# Mounted last so API routes win over the static UI.
app.mount("/", StaticFiles(directory=str(config.static_dir), html=True), name="static")
