from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from argus.services import checks_service, log_formats, simulation_service

router = APIRouter(tags=["Testing"])


@router.get(
    "/generate-logs/json",
    summary="JSON logs",
    description="JSON log lines in three shapes for Loki JSON parsing checks.",
    operation_id="generate_json_logs",
)
def generate_json_logs(request: Request) -> Dict[str, Any]:
    return log_formats.generate_json_logs(request)


@router.get(
    "/generate-logs/unstructured",
    summary="Unstructured logs",
    description="Plain-text log lines for Loki pattern parsing checks.",
    operation_id="generate_unstructured_logs",
)
def generate_unstructured_logs(request: Request) -> Dict[str, Any]:
    return log_formats.generate_unstructured_logs(request)


@router.get(
    "/generate-logs/mixed",
    summary="Mixed format logs",
    description="JSON, key=value and plain-text lines in one stream.",
    operation_id="generate_mixed_logs",
)
def generate_mixed_logs(request: Request) -> Dict[str, Any]:
    return log_formats.generate_mixed_logs(request)


@router.get(
    "/generate-logs/multiline",
    summary="Multiline logs",
    description="Java, Python and Go stack traces as single multi-line entries.",
    operation_id="generate_multiline_logs",
)
def generate_multiline_logs(request: Request) -> Dict[str, Any]:
    return log_formats.generate_multiline_logs(request)


@router.get(
    "/simulate-service/wordpress",
    summary="Simulate WordPress",
    operation_id="simulate_wordpress",
)
def simulate_wordpress(request: Request) -> Dict[str, Any]:
    return simulation_service.simulate_wordpress(request)


@router.get(
    "/simulate-service/nextjs",
    summary="Simulate Next.js",
    operation_id="simulate_nextjs",
)
def simulate_nextjs(request: Request) -> Dict[str, Any]:
    return simulation_service.simulate_nextjs(request)


@router.get(
    "/simulate-trace/cross-service",
    summary="Cross-service traces",
    description="One multi-hop trace per scenario for Tempo service graph checks.",
    operation_id="simulate_cross_service_traces",
)
async def simulate_cross_service_traces(request: Request) -> Dict[str, Any]:
    return await checks_service.simulate_cross_service_traces(request)


@router.get(
    "/test-service-discovery",
    summary="Service discovery",
    description="Probe every configured LGTM service URL.",
    operation_id="test_service_discovery",
)
async def test_service_discovery(request: Request) -> Dict[str, Any]:
    return await checks_service.check_service_discovery(request)


@router.get("/test-reverse-proxy", summary="Reverse proxy routes", operation_id="test_reverse_proxy")
def test_reverse_proxy(request: Request) -> Dict[str, Any]:
    return checks_service.check_reverse_proxy(request)


@router.get("/test-ssl-monitoring", summary="SSL certificate expiry", operation_id="test_ssl_monitoring")
def test_ssl_monitoring(request: Request) -> Dict[str, Any]:
    return checks_service.check_ssl_monitoring(request)


@router.get("/test-domain-health", summary="Domain health", operation_id="test_domain_health")
def test_domain_health(request: Request) -> Dict[str, Any]:
    return checks_service.check_domain_health(request)
