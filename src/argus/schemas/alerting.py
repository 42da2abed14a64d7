from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from argus.schemas.common import Severity


class AlertThreshold(BaseModel):
    operator: str = Field(..., description="Comparison operator: >, <, >=, <=, ==")
    value: float = Field(..., description="Threshold value.")


class AlertRule(BaseModel):
    """Alert rule definition held by the in-memory alert manager."""

    id: str
    name: str
    description: str = ""
    query: str = ""
    threshold: AlertThreshold
    duration_seconds: float = Field(0.0, description="How long the condition must hold before firing.")
    severity: Severity = Severity.warning
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    enabled: bool = True
    created_at: datetime
    updated_at: datetime


class Alert(BaseModel):
    """A firing or resolved alert instance."""

    id: str
    rule_id: str
    rule_name: str
    status: str = Field(..., description="firing|resolved")
    severity: Severity
    value: float = 0.0
    threshold: float = 0.0
    message: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    fingerprint: str = ""
    starts_at: datetime
    ends_at: Optional[datetime] = None
    notifications_sent: int = 0


class IncidentEvent(BaseModel):
    timestamp: datetime
    type: str = Field(..., description="creation|update|resolution|comment")
    message: str
    author: str


class IncidentMetrics(BaseModel):
    time_to_detection: float = Field(0.0, description="Seconds from alert start to incident creation.")
    time_to_resolution: float = Field(0.0, description="Seconds from incident creation to resolution.")
    mttr: float = Field(0.0, description="Mean time to resolution in seconds at resolve time.")


class Incident(BaseModel):
    id: str
    title: str
    description: str = ""
    status: str = Field(..., description="open|investigating|resolved")
    severity: Severity
    priority: str = Field(..., description="high|medium|low")
    assignee: str = ""
    related_alerts: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    timeline: List[IncidentEvent] = Field(default_factory=list)
    metrics: IncidentMetrics = Field(default_factory=IncidentMetrics)
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None


class NotificationCondition(BaseModel):
    severities: List[Severity] = Field(default_factory=list, description="Empty means any severity.")
    rule_names: List[str] = Field(default_factory=list, description="Empty means any rule.")


class NotificationRateLimit(BaseModel):
    max_alerts: int = Field(..., description="Maximum notifications inside the window.")
    time_window_seconds: float = Field(..., description="Window length in seconds.")


class NotificationChannel(BaseModel):
    id: str
    name: str
    type: str = Field(..., description="slack|email|webhook")
    config: Dict[str, str] = Field(default_factory=dict)
    enabled: bool = True
    conditions: NotificationCondition = Field(default_factory=NotificationCondition)
    rate_limit: NotificationRateLimit


class NotificationResult(BaseModel):
    channel: str
    type: str
    success: bool
    skipped_reason: Optional[str] = Field(default=None, description="Set when the channel was not attempted.")
    latency_ms: float = 0.0
