"""HTTP middleware chain.

Order, outermost first: correlation, timeout, rate limit, CORS, security headers,
tracing, prometheus instrumentation. Starlette wraps each added middleware around
the ones added before it, so install_middleware adds them innermost first.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.routing import APIRoute
from fastapi.staticfiles import StaticFiles
from starlette.routing import Mount

from argus import metrics
from argus.config import SecurityConfig
from argus.context import bind_request, bind_trace, reset_request
from argus.rate_limit import client_ip
from argus.services.tracing_service import generate_span_id, generate_trace_id
from argus.state import get_state

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]

# Paths allowed the long request timeout.
LONG_RUNNING_PATHS = frozenset(
    {
        "/test-metrics-scale",
        "/test-logs-scale",
        "/test-traces-scale",
        "/test-dashboard-load",
        "/test-resource-usage",
        "/test-storage-limits",
    }
)
LONG_RUNNING_PREFIXES = ("/simulate/",)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


# PUBLIC_INTERFACE
def request_timeout_for(path: str, security: SecurityConfig) -> float:
    """Timeout in seconds for a request path."""
    if path in LONG_RUNNING_PATHS or path.startswith(LONG_RUNNING_PREFIXES):
        return security.long_request_timeout
    return security.request_timeout


async def correlation_middleware(request: Request, call_next: CallNext) -> Response:
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    user_id = request.headers.get("x-user-id") or "anonymous"
    session_id = request.headers.get("x-session-id") or str(uuid.uuid4())
    tokens = bind_request(request_id, user_id, session_id)
    try:
        response = await call_next(request)
    finally:
        reset_request(tokens)
    response.headers["X-Request-ID"] = request_id
    response.headers["X-User-ID"] = user_id
    response.headers["X-Session-ID"] = session_id
    return response


async def timeout_middleware(request: Request, call_next: CallNext) -> Response:
    state = get_state(request.app)
    timeout = request_timeout_for(request.url.path, state.config.security)
    try:
        return await asyncio.wait_for(call_next(request), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Request timed out path=%s timeout=%ss", request.url.path, timeout)
        return PlainTextResponse("Request timeout\n", status_code=408)


async def rate_limit_middleware(request: Request, call_next: CallNext) -> Response:
    state = get_state(request.app)
    client = client_ip(request.headers, request.client.host if request.client else None)
    if not state.rate_limiter.allow(client):
        logger.warning("Rate limit exceeded client=%s", client)
        return PlainTextResponse(
            f"Rate limit exceeded: {state.rate_limiter.limit} requests per minute", status_code=429
        )
    return await call_next(request)


async def security_headers_middleware(request: Request, call_next: CallNext) -> Response:
    response = await call_next(request)
    if get_state(request.app).config.security.enable_security_headers:
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
    return response


async def tracing_middleware(request: Request, call_next: CallNext) -> Response:
    state = get_state(request.app)
    trace_id = request.headers.get("x-trace-id") or generate_trace_id()
    tokens = bind_trace(trace_id, generate_span_id())
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Trace-ID"] = trace_id
        return response
    finally:
        duration = time.perf_counter() - started
        operation = f"{request.method} {route_label(request)}"
        service = state.config.tracing.service_name
        status = "error" if status_code >= 500 else "ok"
        metrics.apm_traces_total.labels(service=service, operation=operation, status=status).inc()
        metrics.apm_span_duration_seconds.labels(service=service, operation=operation).observe(duration)
        state.tracing.log_apm_data(state.tracing.create_apm_data(operation, duration, status_code))
        reset_request(tokens)


# PUBLIC_INTERFACE
def route_label(request: Request) -> str:
    """
    Metric label for the route that served a request.

    API routes are labelled by their path template so path parameters do not mint new
    series. Anything served by the static mount is "static" and requests no route
    matched are "unmatched".
    """
    route = request.scope.get("route")
    if isinstance(route, APIRoute):
        return route.path
    if isinstance(route, Mount) or isinstance(request.scope.get("endpoint"), StaticFiles):
        return "static"
    return "unmatched"


async def prometheus_middleware(request: Request, call_next: CallNext) -> Response:
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        metrics.record_http_request(request.method, route_label(request), status_code, time.perf_counter() - started)


# PUBLIC_INTERFACE
def install_middleware(app: FastAPI, security: SecurityConfig) -> None:
    """Register the middleware chain on app."""
    app.middleware("http")(prometheus_middleware)
    app.middleware("http")(tracing_middleware)
    app.middleware("http")(security_headers_middleware)
    if security.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(security.allowed_origins),
            allow_methods=list(security.allowed_methods),
            allow_headers=list(security.allowed_headers),
            expose_headers=["X-Request-ID", "X-Trace-ID"],
            max_age=86400,
        )
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(timeout_middleware)
    app.middleware("http")(correlation_middleware)
