from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ComponentCheck(BaseModel):
    """Health of one LGTM component as seen by the integration test."""

    component: str = Field(..., description="Component name, e.g. 'grafana_datasources'.")
    status: str = Field(..., description="healthy|degraded|failed")
    message: str = Field(..., description="Human-readable result.")
    response_time_ms: float = Field(..., description="Time spent probing the component, in milliseconds.")
    details: Dict[str, str] = Field(default_factory=dict, description="Component-specific details.")
    timestamp: datetime = Field(..., description="UTC timestamp of the check.")


class IntegrationSummary(BaseModel):
    """Roll-up of all component checks."""

    overall_status: str = Field(..., description="healthy|degraded|critical")
    healthy_count: int
    total_count: int
    components: List[ComponentCheck]
    timestamp: datetime


class DashboardTestResponse(BaseModel):
    """Result of pushing the bundled dashboard into Grafana."""

    status: str = Field(..., description="created|updated|auth_error|manual_import_required|error")
    message: str
    error: Optional[str] = None
    dashboard_title: Optional[str] = None
    dashboard_uid: Optional[str] = None
    grafana_url: Optional[str] = None
    dashboard_url: Optional[str] = None
    panels: Optional[List[str]] = None
    instructions: Optional[List[str]] = None
    actions_completed: Optional[List[str]] = None
    response: Optional[str] = Field(default=None, description="Raw Grafana response body on unexpected status.")
    fallback_instructions: Optional[List[str]] = None
    dashboard_json: Optional[str] = Field(default=None, description="Dashboard JSON for manual import.")
    timestamp: datetime


class AlertRulesTestResponse(BaseModel):
    """Result of checking/loading the bundled alert rules into Prometheus."""

    status: str = Field(
        ...,
        description="loaded|auto_loaded|file_created|reload_failed|auto_load_failed|connection_error|api_error|error",
    )
    message: str
    error: Optional[str] = None
    rule_groups_total: Optional[int] = None
    alert_rules_total: Optional[int] = None
    argus_rules_found: Optional[bool] = None
    config_details: Optional[Dict[str, Any]] = None
    prometheus_url: Optional[str] = None
    alerts_url: Optional[str] = None
    rules_url: Optional[str] = None
    instructions: Optional[List[str]] = None
    actions_completed: Optional[List[str]] = None
    rules_yaml: Optional[str] = None
    timestamp: datetime
