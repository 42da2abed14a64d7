from __future__ import annotations

from fastapi import APIRouter, Request

from argus.schemas.integration import AlertRulesTestResponse, DashboardTestResponse, IntegrationSummary
from argus.services import integration_service

router = APIRouter(tags=["Integration"])


@router.get(
    "/test-lgtm-integration",
    response_model=IntegrationSummary,
    summary="LGTM integration",
    description=(
        "Check Grafana datasources, Prometheus targets, Loki ingestion, Tempo tracing and the OTEL "
        "collector, and roll the results up into one status."
    ),
    operation_id="test_lgtm_integration",
)
async def test_lgtm_integration(request: Request) -> IntegrationSummary:
    return await integration_service.run_lgtm_integration(request)


@router.get(
    "/test-grafana-dashboards",
    response_model=DashboardTestResponse,
    response_model_exclude_none=True,
    summary="Provision Grafana dashboard",
    description="Create or update the bundled Argus dashboard in Grafana.",
    operation_id="test_grafana_dashboards",
)
async def test_grafana_dashboards(request: Request) -> DashboardTestResponse:
    return await integration_service.provision_dashboard(request)


@router.get(
    "/test-alert-rules",
    response_model=AlertRulesTestResponse,
    response_model_exclude_none=True,
    summary="Provision Prometheus alert rules",
    description="Check whether the Argus alert rules are loaded in Prometheus and try to load them when they are not.",
    operation_id="test_alert_rules",
)
async def test_alert_rules(request: Request) -> AlertRulesTestResponse:
    return await integration_service.provision_alert_rules(request)
