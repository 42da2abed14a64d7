from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from argus.services import simulation_service

router = APIRouter(prefix="/simulate", tags=["Simulation"])


@router.get(
    "/web-service",
    summary="Simulate web service",
    description="Page-view burst against a small website.",
    operation_id="simulate_web_service",
)
def simulate_web_service(request: Request) -> Dict[str, Any]:
    return simulation_service.simulate_web_service(request)


@router.get(
    "/api-service",
    summary="Simulate API service",
    description="REST API traffic with rate limiting and authentication failures.",
    operation_id="simulate_api_service",
)
def simulate_api_service(request: Request) -> Dict[str, Any]:
    return simulation_service.simulate_api_service(request)


@router.get(
    "/database-service",
    summary="Simulate database service",
    description="Query workload against a connection pool, with slow queries.",
    operation_id="simulate_database_service",
)
def simulate_database_service(request: Request) -> Dict[str, Any]:
    return simulation_service.simulate_database_service(request)


@router.get(
    "/static-site",
    summary="Simulate static site",
    description="Asset delivery with cache hits and bandwidth totals.",
    operation_id="simulate_static_site",
)
def simulate_static_site(request: Request) -> Dict[str, Any]:
    return simulation_service.simulate_static_site(request)


@router.get(
    "/microservice",
    summary="Simulate microservice",
    description="Inter-service calls recorded as spans, with circuit breaker trips.",
    operation_id="simulate_microservice",
)
def simulate_microservice(request: Request) -> Dict[str, Any]:
    return simulation_service.simulate_microservice(request)
