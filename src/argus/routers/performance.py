from __future__ import annotations

from fastapi import APIRouter, Request

from argus.schemas.performance import PerformanceTestResult
from argus.services import performance_service

router = APIRouter(tags=["Performance"])

# Query parameters are read raw from request.query_params so invalid values fall back to
# defaults instead of failing validation.


@router.get(
    "/test-metrics-scale",
    response_model=PerformanceTestResult,
    response_model_exclude_none=True,
    summary="Metrics scale test",
    description="Query: count, duration, concurrency.",
    operation_id="test_metrics_scale",
)
async def test_metrics_scale(request: Request) -> PerformanceTestResult:
    return await performance_service.metrics_scale(request)


@router.get(
    "/test-logs-scale",
    response_model=PerformanceTestResult,
    response_model_exclude_none=True,
    summary="Logs scale test",
    description="Query: duration, concurrency, level (info|warn|error|mixed).",
    operation_id="test_logs_scale",
)
async def test_logs_scale(request: Request) -> PerformanceTestResult:
    return await performance_service.logs_scale(request)


@router.get(
    "/test-traces-scale",
    response_model=PerformanceTestResult,
    response_model_exclude_none=True,
    summary="Traces scale test",
    description="Query: duration, concurrency (default 3, max 10).",
    operation_id="test_traces_scale",
)
async def test_traces_scale(request: Request) -> PerformanceTestResult:
    return await performance_service.traces_scale(request)


@router.get(
    "/test-dashboard-load",
    response_model=PerformanceTestResult,
    response_model_exclude_none=True,
    summary="Dashboard load test",
    description="Query: concurrency, duration, requests (per worker, default 100, max 1000).",
    operation_id="test_dashboard_load",
)
async def test_dashboard_load(request: Request) -> PerformanceTestResult:
    return await performance_service.dashboard_load(request)


@router.get(
    "/test-resource-usage",
    response_model=PerformanceTestResult,
    response_model_exclude_none=True,
    summary="Resource usage test",
    operation_id="test_resource_usage",
)
async def test_resource_usage(request: Request) -> PerformanceTestResult:
    return await performance_service.resource_usage(request)


@router.get(
    "/test-storage-limits",
    response_model=PerformanceTestResult,
    response_model_exclude_none=True,
    summary="Storage limits test",
    operation_id="test_storage_limits",
)
async def test_storage_limits(request: Request) -> PerformanceTestResult:
    return await performance_service.storage_limits(request)
