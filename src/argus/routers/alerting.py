from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, Request

from argus.services import alert_management

router = APIRouter(tags=["Alerting"])

# Dashboard buttons POST to these; scripts use GET.
_METHODS = ["GET", "POST"]


@router.api_route(
    "/test-alert-rules-legacy",
    methods=_METHODS,
    summary="Alert rules overview",
    description="Rules held by the in-memory alert manager.",
)
def test_alert_rules_legacy(request: Request) -> Dict[str, Any]:
    return alert_management.alert_rules_overview(request)


@router.api_route(
    "/test-fire-alert",
    methods=_METHODS,
    summary="Fire a test alert",
    description="Fire an alert for a rule (created on demand) with the given severity.",
)
def test_fire_alert(
    request: Request,
    type: Optional[str] = Query(None, description="Rule name; defaults to high-cpu-usage."),
    severity: Optional[str] = Query(None, description="info|warning|critical; defaults to critical."),
) -> Dict[str, Any]:
    return alert_management.fire_test_alert(request, type, severity)


@router.api_route(
    "/test-incident-management",
    methods=_METHODS,
    summary="Incident management",
)
def test_incident_management(request: Request) -> Dict[str, Any]:
    return alert_management.incident_management(request)


@router.api_route(
    "/test-notification-channels",
    methods=_METHODS,
    summary="Notification channels",
    description="Send a critical test notification through each configured channel.",
)
def test_notification_channels(request: Request) -> Dict[str, Any]:
    return alert_management.notification_channels(request)


@router.get("/active-alerts", summary="Active alerts", operation_id="active_alerts")
def get_active_alerts(request: Request) -> Dict[str, Any]:
    return alert_management.active_alerts(request)


@router.get("/active-incidents", summary="Active incidents", operation_id="active_incidents")
def get_active_incidents(request: Request) -> Dict[str, Any]:
    return alert_management.active_incidents(request)
