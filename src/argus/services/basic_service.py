from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Dict, Optional, Tuple

import psutil
from fastapi import Request

from argus import metrics
from argus.config import format_duration, parse_duration
from argus.schemas.common import HealthResponse, utc_now
from argus.schemas.settings import ConnectionTestResult, ServiceConfig
from argus.services.lgtm_client import LGTMClient, basic_auth
from argus.state import get_state
from argus.validation import validate_positive_int, validate_string_from_list

logger = logging.getLogger(__name__)

PURPOSE = "LGTM stack synthetic data generator and validator"

ERROR_TYPES = ("validation", "database", "network", "timeout", "auth")
_ERROR_STATUS = {"validation": 400, "auth": 401, "timeout": 408}

LOG_TYPES = ["info", "warn", "error", "debug"]
_LOG_MESSAGES = {
    "info": ["User request processed", "Cache warmed", "Job scheduled", "Health probe passed"],
    "warn": ["Response time above target", "Retrying upstream call", "Connection pool nearly exhausted"],
    "error": ["Upstream returned 503", "Failed to persist record", "Payment gateway timeout"],
    "debug": ["Request headers parsed", "Query plan selected", "Feature flag evaluated"],
}

MAX_MEMORY_MB = 1024
DEFAULT_MEMORY_MB = 100
DEFAULT_MEMORY_DURATION_S = 30.0
DEFAULT_CPU_DURATION_S = 5.0
CPU_SLICE_S = 0.1

LGTM_STATUS_TIMEOUT_S = 8.0
CONNECTION_TEST_TIMEOUT_S = 5.0

# service -> health path used by /lgtm-status
HEALTH_PATHS: Dict[str, str] = {
    "prometheus": "/-/healthy",
    "grafana": "/api/health",
    "loki": "/ready",
    "tempo": "/ready",
    "alertmanager": "/-/healthy",
}

# service -> (probe path, send basic auth when a username is set); grafana always authenticates
CONNECTION_PROBES: Dict[str, Tuple[str, bool]] = {
    "grafana": ("/api/user", True),
    "prometheus": ("/-/healthy", True),
    "alertmanager": ("/-/healthy", False),
    "loki": ("/ready", False),
    "tempo": ("/ready", False),
}


async def _run_in_thread(func, *args, **kwargs):
    """Run blocking work in a worker thread."""
    return await asyncio.to_thread(func, *args, **kwargs)


# PUBLIC_INTERFACE
def health(request: Request) -> HealthResponse:
    """Liveness payload with version and uptime."""
    state = get_state(request.app)
    uptime = (utc_now() - state.started_at).total_seconds()
    return HealthResponse(
        status="healthy",
        timestamp=utc_now(),
        uptime=format_duration(round(uptime, 3)),
        version=state.config.version,
        service=state.config.name,
        purpose=PURPOSE,
        checks={"web_server": "ok", "metrics_registry": "ok", "logging_service": "ok"},
    )


# PUBLIC_INTERFACE
def generate_metrics(request: Request, count_raw: Optional[str]) -> Dict[str, Any]:
    """Emit `count` synthetic business metric samples and API request counts."""
    state = get_state(request.app)
    count = validate_positive_int(count_raw, 10, state.validation.max_count)
    for _ in range(count):
        metrics.custom_business_metric.labels(metric_type="test", category="generated").set(random.uniform(0, 100))
        if random.random() < 0.5:
            metrics.record_http_request("GET", "/api/test", 200, random.uniform(0.01, 0.2))
        else:
            metrics.record_http_request("POST", "/api/test", 201, random.uniform(0.02, 0.4))

    state.logging_service.log_business_event("metrics_generated", "generate-metrics", {"count": count})
    return {
        "message": "Metrics generated successfully",
        "metrics_generated": count,
        "timestamp": utc_now(),
        "types": ["custom_business_metric", "http_requests_total"],
    }


# PUBLIC_INTERFACE
async def generate_logs(request: Request, count_raw: Optional[str]) -> Dict[str, Any]:
    """Write `count` correlated log lines of random level, 10ms apart."""
    state = get_state(request.app)
    count = validate_positive_int(count_raw, 5, state.validation.max_count)
    ctx = state.logging_service.create_log_context(request.headers)
    for i in range(count):
        level = random.choice(LOG_TYPES)
        state.logging_service.log_with_context(
            level,
            random.choice(_LOG_MESSAGES[level]),
            sequence=i + 1,
            log_type="generated",
            context={"request_id": ctx.request_id, "user_id": ctx.user_id, "session_id": ctx.session_id},
        )
        await asyncio.sleep(0.01)

    return {
        "message": "Logs generated successfully",
        "logs_generated": count,
        "log_types": list(LOG_TYPES),
        "timestamp": utc_now(),
    }


# PUBLIC_INTERFACE
def generate_error(request: Request, type_raw: Optional[str]) -> Tuple[int, Dict[str, Any]]:
    """Log a simulated error of the given type and return (HTTP status, body)."""
    state = get_state(request.app)
    error_type = validate_string_from_list(type_raw, ERROR_TYPES, random.choice(ERROR_TYPES))
    code = f"ERR_{error_type.upper()}_{random.randint(1, 999):03d}"
    message = f"Simulated {error_type} error for testing"
    state.logging_service.log_error(error_type, code, message, data={"severity": "high", "simulated": True})
    status = _ERROR_STATUS.get(error_type, 500)
    return status, {
        "error": True,
        "type": error_type,
        "code": code,
        "message": message,
        "timestamp": utc_now(),
        "request_id": request.headers.get("x-request-id", ""),
    }


def _burn_cpu(duration_s: float, intensity: int) -> int:
    """Busy-loop for intensity% of each slice until duration_s has passed. Returns slices run."""
    deadline = time.monotonic() + duration_s
    busy_s = CPU_SLICE_S * intensity / 100.0
    slices = 0
    while time.monotonic() < deadline:
        slice_end = time.monotonic() + busy_s
        x = 0
        while time.monotonic() < slice_end:
            x += 1
        rest = CPU_SLICE_S - busy_s
        if rest > 0:
            time.sleep(rest)
        slices += 1
    return slices


async def _cpu_load_task(duration_s: float, intensity: int) -> None:
    try:
        slices = await _run_in_thread(_burn_cpu, duration_s, intensity)
        logger.info("CPU load finished duration=%s intensity=%s slices=%s", format_duration(duration_s), intensity, slices)
    except Exception:
        logger.exception("CPU load task failed")


def _duration_or(raw: Optional[str], default: float, max_s: float) -> float:
    if not raw:
        return default
    try:
        value = parse_duration(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    return min(value, max_s)


# PUBLIC_INTERFACE
def cpu_load(request: Request, duration_raw: Optional[str], intensity_raw: Optional[str]) -> Dict[str, Any]:
    """Start a background busy loop and return immediately."""
    state = get_state(request.app)
    duration_s = _duration_or(duration_raw, DEFAULT_CPU_DURATION_S, state.validation.max_test_duration)
    intensity = validate_positive_int(intensity_raw, 50, 100)
    state.spawn(_cpu_load_task(duration_s, intensity))
    state.logging_service.log_with_context("info", "CPU load started", duration_s=duration_s, intensity=intensity)
    return {
        "message": "CPU load simulation started",
        "duration": format_duration(duration_s),
        "intensity": intensity,
        "timestamp": utc_now(),
    }


def memory_stats() -> Dict[str, Any]:
    """Process and host memory figures in MB."""
    proc = psutil.Process().memory_info()
    vm = psutil.virtual_memory()
    return {
        "process_rss_mb": round(proc.rss / (1024 * 1024), 2),
        "process_vms_mb": round(proc.vms / (1024 * 1024), 2),
        "system_total_mb": round(vm.total / (1024 * 1024), 2),
        "system_available_mb": round(vm.available / (1024 * 1024), 2),
        "system_used_percent": vm.percent,
    }


async def _memory_load_task(size_mb: int, duration_s: float) -> None:
    try:
        block = bytearray(size_mb * 1024 * 1024)
        # Touch each page so the allocation is resident.
        for i in range(0, len(block), 4096):
            block[i] = 1
        logger.info("Memory load holding %sMB for %s", size_mb, format_duration(duration_s))
        await asyncio.sleep(duration_s)
        del block
        logger.info("Memory load released %sMB", size_mb)
    except MemoryError:
        logger.exception("Memory load could not allocate %sMB", size_mb)


# PUBLIC_INTERFACE
def memory_load(request: Request, size_raw: Optional[str], duration_raw: Optional[str]) -> Dict[str, Any]:
    """Allocate `size` MB in the background for `duration` and return immediately."""
    state = get_state(request.app)
    size_mb = validate_positive_int(size_raw, DEFAULT_MEMORY_MB, MAX_MEMORY_MB)
    duration_s = _duration_or(duration_raw, DEFAULT_MEMORY_DURATION_S, state.validation.max_test_duration)
    state.spawn(_memory_load_task(size_mb, duration_s))
    state.logging_service.log_with_context("info", "Memory load started", size_mb=size_mb, duration_s=duration_s)
    return {
        "message": "Memory load simulation started",
        "size_mb": size_mb,
        "duration": format_duration(duration_s),
        "memory_stats": memory_stats(),
        "timestamp": utc_now(),
    }


def _status_targets(request: Request) -> Dict[str, str]:
    state = get_state(request.app)
    settings = state.settings.get()
    return {
        "prometheus": settings.prometheus.url,
        "grafana": settings.grafana.url,
        "loki": settings.loki.url,
        "tempo": settings.tempo.url,
        "alertmanager": state.config.service_url("alertmanager"),
    }


# PUBLIC_INTERFACE
async def lgtm_status(request: Request) -> Dict[str, str]:
    """Probe each LGTM service's health path concurrently; online iff it answers 2xx/3xx."""
    state = get_state(request.app)
    targets = _status_targets(request)
    async with LGTMClient(transport=state.http_transport, timeout=LGTM_STATUS_TIMEOUT_S) as client:
        results = await asyncio.gather(
            *(client.get(base.rstrip("/") + HEALTH_PATHS[svc], read_body=False) for svc, base in targets.items())
        )
    status = {svc: ("online" if res.online else "offline") for svc, res in zip(targets, results)}
    logger.debug("LGTM status %s", status)
    return status


# PUBLIC_INTERFACE
async def probe_connection(request: Request, service: str, cfg: ServiceConfig) -> ConnectionTestResult:
    """Probe one service with user-supplied connection settings."""
    probe = CONNECTION_PROBES.get(service)
    if probe is None:
        return ConnectionTestResult(status="error", message="Unknown service")
    path, use_auth = probe
    url = cfg.url.rstrip("/") + path
    auth = basic_auth(cfg) if use_auth else None
    if service == "grafana":
        auth = (cfg.username or "", cfg.password or "")

    state = get_state(request.app)
    async with LGTMClient(transport=state.http_transport, timeout=CONNECTION_TEST_TIMEOUT_S) as client:
        res = await client.get(url, auth=auth, read_body=False)

    if res.error is not None:
        return ConnectionTestResult(status="error", message=f"Connection failed: {res.error}")
    details = {"url": url, "status_code": res.status_code}
    if service == "grafana" and res.status_code in (401, 403):
        return ConnectionTestResult(
            status="error", message="Authentication failed - check username/password", details=details
        )
    if res.ok:
        return ConnectionTestResult(status="success", message=f"{service} is accessible", details=details)
    return ConnectionTestResult(status="error", message=f"{service} returned HTTP {res.status_code}", details=details)
