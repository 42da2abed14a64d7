"""Load-generation tests (metrics, logs, traces, dashboard) and LGTM resource/storage probes.

The scale tests share run_load: a fixed pool of asyncio workers looping until the
requested duration elapses, with the totals reported as a PerformanceTestResult.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Dict, Optional, Tuple

import psutil
from fastapi import Request

from argus import metrics
from argus.config import format_duration
from argus.schemas.common import utc_now
from argus.schemas.performance import PerformanceTestResult, ResourceUsage
from argus.services.lgtm_client import LGTMClient
from argus.services.load_runner import LoadResult, run_load
from argus.services.tracing_service import generate_span_id, generate_trace_id
from argus.state import AppState, get_state
from argus.validation import (
    validate_concurrency,
    validate_count,
    validate_duration,
    validate_log_level,
    validate_positive_int,
)

logger = logging.getLogger(__name__)

METRICS_PAUSE_S = 0.001
LOGS_PAUSE_S = 0.005
TRACES_PAUSE_S = 0.01
DASHBOARD_PAUSE_S = 0.01
PROBE_TIMEOUT_S = 10.0

LOG_MESSAGES = [
    "User authentication successful",
    "Database query executed",
    "API request processed",
    "Cache miss occurred",
    "File upload completed",
    "Background job started",
    "Configuration loaded",
    "Connection established",
    "Data validation passed",
    "Transaction committed",
]

ERROR_MESSAGES = [
    "Database connection timeout",
    "Invalid user credentials",
    "File not found",
    "Permission denied",
    "Network connection failed",
    "Invalid JSON payload",
    "Rate limit exceeded",
    "Service unavailable",
    "Validation error",
    "Internal server error",
]

TRACE_SERVICES = ["user-service", "order-service", "payment-service", "notification-service", "inventory-service"]
TRACE_OPERATIONS = ["get", "create", "update", "delete", "list", "validate", "process"]

MIXED_LOG_LEVELS = ("info", "warn", "error", "debug")
LOG_PREFIXES = {"warn": "Warning: ", "debug": "Debug: "}


# PUBLIC_INTERFACE
def pick_scale_log(level: str, rng: Any = random) -> Tuple[str, str]:
    """Level and message for one scale-test log line; mixed draws from all four levels."""
    chosen = rng.choice(MIXED_LOG_LEVELS) if level == "mixed" else level
    if chosen == "error":
        return chosen, rng.choice(ERROR_MESSAGES)
    return chosen, LOG_PREFIXES.get(chosen, "") + rng.choice(LOG_MESSAGES)


def _result(state: AppState, test_type: str, load: LoadResult, details: Dict[str, str]) -> PerformanceTestResult:
    metrics.record_test_outcome(test_type, load.errors == 0, load.elapsed_s)
    state.logging_service.log_performance(
        test_type, load.elapsed_s, {"items": load.total, "workers": load.workers, "errors": load.errors}
    )
    return PerformanceTestResult(
        test_type=test_type,
        status="completed",
        duration_seconds=load.elapsed_s,
        items_generated=load.total,
        items_per_second=load.items_per_second,
        details=details,
        timestamp=utc_now(),
    )


# PUBLIC_INTERFACE
async def metrics_scale(request: Request) -> PerformanceTestResult:
    """Record 4 metric samples per worker iteration until the duration elapses."""
    state = get_state(request.app)
    params = request.query_params
    count = validate_count(params.get("count"), state.validation)
    duration_s = validate_duration(params.get("duration"), state.validation)
    concurrency = validate_concurrency(params.get("concurrency"), state.validation)
    state.logging_service.log_with_context(
        "info", "Metrics scale test parameters validated", count=count, duration_s=duration_s, concurrency=concurrency
    )

    def work(worker_id: int, iteration: int) -> int:
        metrics.custom_business_metric.labels(metric_type="performance_test", category=f"worker_{worker_id}").set(
            random.random() * 100
        )
        metrics.http_requests_total.labels(method="GET", endpoint="/api/scale-test", status="200").inc()
        metrics.http_requests_total.labels(method="POST", endpoint="/api/scale-test", status="201").inc()
        metrics.http_requests_total.labels(method="PUT", endpoint="/api/scale-test", status="200").inc()
        return 4

    load = await run_load(work, concurrency, duration_s, pause_s=METRICS_PAUSE_S)
    return _result(
        state,
        "metrics_scale",
        load,
        {
            "concurrency": str(concurrency),
            "target_count": str(count),
            "test_duration": format_duration(duration_s),
            "metric_types": "4",
        },
    )


# PUBLIC_INTERFACE
async def logs_scale(request: Request) -> PerformanceTestResult:
    """Write log lines at the requested level (or a random mix) until the duration elapses."""
    state = get_state(request.app)
    params = request.query_params
    duration_s = validate_duration(params.get("duration"), state.validation)
    concurrency = validate_concurrency(params.get("concurrency"), state.validation)
    level = validate_log_level(params.get("level"))
    log = state.logging_service
    log.log_with_context(
        "info", "Logs scale test parameters validated", duration_s=duration_s, concurrency=concurrency, log_level=level
    )

    def work(worker_id: int, iteration: int) -> int:
        chosen, message = pick_scale_log(level)
        if chosen == "error":
            log.log_error(
                "performance_test",
                "SCALE_TEST_ERROR",
                message,
                data={"worker_id": worker_id, "test_type": "scale"},
            )
        else:
            log.log_with_context(chosen, message, worker_id=worker_id, test_type="scale")
        return 1

    load = await run_load(work, concurrency, duration_s, pause_s=LOGS_PAUSE_S)
    return _result(
        state,
        "logs_scale",
        load,
        {
            "concurrency": str(concurrency),
            "log_level": level,
            "test_duration": format_duration(duration_s),
            "log_types": "4",
        },
    )


# PUBLIC_INTERFACE
async def traces_scale(request: Request) -> PerformanceTestResult:
    """Produce one span per worker iteration across the synthetic services and operations."""
    state = get_state(request.app)
    params = request.query_params
    duration_s = validate_duration(params.get("duration"), state.validation)
    concurrency = validate_positive_int(params.get("concurrency"), 3, 10)
    tracing = state.tracing
    state.logging_service.log_with_context(
        "info", "Traces scale test parameters validated", duration_s=duration_s, concurrency=concurrency
    )

    def work(worker_id: int, iteration: int) -> int:
        service = random.choice(TRACE_SERVICES)
        operation = random.choice(TRACE_OPERATIONS)
        with tracing.span(operation, service_name=service, worker=str(worker_id)) as sp:
            logger.debug(
                "Trace generated service=%s operation=%s span_id=%s",
                service,
                operation,
                sp.span_id,
                extra={"trace_id": sp.trace_id},
            )
        return 1

    load = await run_load(work, concurrency, duration_s, pause_s=TRACES_PAUSE_S)
    return _result(
        state,
        "traces_scale",
        load,
        {
            "concurrency": str(concurrency),
            "test_duration": format_duration(duration_s),
            "services_count": str(len(TRACE_SERVICES)),
            "operations_count": str(len(TRACE_OPERATIONS)),
        },
    )


# PUBLIC_INTERFACE
async def dashboard_load(request: Request) -> PerformanceTestResult:
    """Each worker sends up to `requests` GETs to dashboard-backing endpoints, stopping at the deadline."""
    state = get_state(request.app)
    params = request.query_params
    concurrency = validate_concurrency(params.get("concurrency"), state.validation)
    duration_s = validate_duration(params.get("duration"), state.validation)
    per_worker = validate_positive_int(params.get("requests"), 100, 1000)

    settings = state.settings.get()
    endpoints = [
        f"{settings.grafana.url}/api/health",
        f"{settings.grafana.url}/api/datasources",
        f"{settings.grafana.url}/api/dashboards/home",
        f"{settings.grafana.url}/api/search",
        f"{settings.prometheus.url}/api/v1/query?query=up",
        f"{settings.prometheus.url}/api/v1/targets",
        f"{settings.loki.url}/ready",
        f"{settings.tempo.url}/ready",
    ]
    state.logging_service.log_with_context(
        "info", "Dashboard load test parameters validated", concurrency=concurrency, requests=per_worker
    )

    successful = 0

    async with LGTMClient(transport=state.http_transport, timeout=PROBE_TIMEOUT_S, max_concurrent=concurrency) as client:

        async def work(worker_id: int, iteration: int) -> int:
            nonlocal successful
            res = await client.get(random.choice(endpoints), read_body=False)
            if res.status_code is not None and res.status_code < 400:
                successful += 1
            return 1

        load = await run_load(work, concurrency, duration_s, pause_s=DASHBOARD_PAUSE_S, max_iterations=per_worker)

    rate = successful / load.total * 100.0 if load.total else 0.0
    metrics.record_test_outcome("dashboard_load", rate >= 50.0, load.elapsed_s)
    return PerformanceTestResult(
        test_type="dashboard_load",
        status="completed",
        duration_seconds=load.elapsed_s,
        items_generated=load.total,
        items_per_second=load.items_per_second,
        details={
            "concurrency": str(concurrency),
            "requests_per_user": str(per_worker),
            "successful_requests": str(successful),
            "success_rate": f"{rate:.2f}%",
            "endpoints_tested": str(len(endpoints)),
        },
        timestamp=utc_now(),
    )


def _process_usage() -> ResourceUsage:
    """Resource figures for this process and host, from psutil."""
    proc = psutil.Process()
    with proc.oneshot():
        cpu = proc.cpu_percent(interval=None)
        rss = proc.memory_info().rss
    disk = psutil.disk_usage("/")
    net = psutil.net_io_counters()
    return ResourceUsage(
        cpu_percent=float(cpu),
        memory_mb=round(rss / (1024 * 1024), 2),
        disk_usage_mb=round(disk.used / (1024 * 1024), 2),
        network_bytes_tx=int(net.bytes_sent) if net is not None else 0,
        network_bytes_rx=int(net.bytes_recv) if net is not None else 0,
    )


# PUBLIC_INTERFACE
async def resource_usage(request: Request) -> PerformanceTestResult:
    """Probe the LGTM services for resource data and attach a process resource snapshot."""
    state = get_state(request.app)
    settings = state.settings.get()
    started = time.perf_counter()
    data: Dict[str, Any] = {}

    async with LGTMClient(transport=state.http_transport, timeout=PROBE_TIMEOUT_S) as client:
        prom = await client.get(f"{settings.prometheus.url}/api/v1/query?query=up")
        if prom.reachable:
            data["prometheus_targets_up"] = prom.body.count('"value":[')

        loki = await client.get(f"{settings.loki.url}/metrics")
        if loki.reachable:
            data["loki_ingester_active"] = "loki_ingester_" in loki.body
            data["loki_metrics_count"] = loki.body.count("\n")

        tempo = await client.get(f"{settings.tempo.url}/status", read_body=False)
        data["tempo_status"] = "accessible" if tempo.reachable else "failed"

        grafana = await client.get(f"{settings.grafana.url}/api/health", read_body=False)
        if not grafana.reachable:
            data["grafana_health"] = "failed"
        else:
            data["grafana_health"] = "healthy" if grafana.status_code == 200 else "degraded"

    try:
        usage: Optional[ResourceUsage] = _process_usage()
    except (OSError, psutil.Error):
        logger.exception("Cannot read process resource usage")
        usage = None

    elapsed = time.perf_counter() - started
    details = {"components_checked": "4", "data_points": str(len(data))}
    details.update({k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in data.items()})
    metrics.record_test_outcome("resource_usage", data["grafana_health"] != "failed", elapsed)
    state.logging_service.log_with_context("info", "Resource usage test completed", data_points=len(data))
    return PerformanceTestResult(
        test_type="resource_usage",
        status="completed",
        duration_seconds=elapsed,
        items_generated=len(data),
        items_per_second=len(data) / elapsed if elapsed > 0 else 0.0,
        details=details,
        resource_usage=usage,
        timestamp=utc_now(),
    )


# PUBLIC_INTERFACE
async def storage_limits(request: Request, rng: Optional[random.Random] = None) -> PerformanceTestResult:
    """Probe storage-related endpoints and report estimated sizes and retention."""
    rng = rng or random.Random()
    state = get_state(request.app)
    settings = state.settings.get()
    started = time.perf_counter()
    data: Dict[str, Any] = {}

    async with LGTMClient(transport=state.http_transport, timeout=PROBE_TIMEOUT_S) as client:
        prom = await client.get(
            f"{settings.prometheus.url}/api/v1/query?query=prometheus_tsdb_symbol_table_size_bytes", read_body=False
        )
        data["prometheus_storage_accessible"] = prom.reachable

        loki = await client.get(f"{settings.loki.url}/metrics")
        if loki.reachable:
            data["loki_ingestion_rate_available"] = "loki_distributor_" in loki.body

        tempo = await client.get(f"{settings.tempo.url}/status", read_body=False)
        data["tempo_storage_accessible"] = tempo.reachable

    # No storage API is queried for sizes; these are estimates.
    data["prometheus_estimated_size_mb"] = rng.randint(100, 1099)
    data["loki_estimated_size_mb"] = rng.randint(200, 2199)
    data["tempo_estimated_size_mb"] = rng.randint(150, 1649)
    data["retention_policy_days"] = 30
    data["compression_ratio"] = f"{2.5 + rng.random() * 2:.2f}"

    elapsed = time.perf_counter() - started
    details = {"storage_components": "3", "data_points": str(len(data))}
    details.update({k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in data.items()})
    metrics.record_test_outcome("storage_limits", True, elapsed)
    state.logging_service.log_with_context("info", "Storage limits test completed", data_points=len(data))
    return PerformanceTestResult(
        test_type="storage_limits",
        status="completed",
        duration_seconds=elapsed,
        items_generated=len(data),
        items_per_second=len(data) / elapsed if elapsed > 0 else 0.0,
        details=details,
        timestamp=utc_now(),
    )
