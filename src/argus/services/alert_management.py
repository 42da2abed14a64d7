from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import Request

from argus.schemas.alerting import Alert
from argus.schemas.common import Severity, utc_now
from argus.state import get_state
from argus.validation import validate_string_from_list

DEFAULT_ALERT_TYPE = "high-cpu-usage"
DEFAULT_ALERT_SEVERITY = Severity.critical.value
RECENT_ALERTS_LIMIT = 10


def _envelope(message: str, functionality: str) -> Dict[str, Any]:
    return {
        "message": message,
        "test_status": "success",
        "service": "argus",
        "functionality": functionality,
        "timestamp": utc_now(),
    }


# PUBLIC_INTERFACE
def alert_rules_overview(request: Request) -> Dict[str, Any]:
    """Summarize the alert manager's rules and active alert count."""
    alerting = get_state(request.app).alerting
    rules = alerting.list_rules()
    body = _envelope("Alert rules functionality tested", "alert_management")
    body.update(
        {
            "total_rules": len(rules),
            "enabled_rules": sum(1 for r in rules if r.enabled),
            "active_alerts": len(alerting.list_active_alerts()),
            "rules": rules,
        }
    )
    return body


# PUBLIC_INTERFACE
def fire_test_alert(request: Request, type_raw: Optional[str], severity_raw: Optional[str]) -> Dict[str, Any]:
    """
    Fire an alert of the requested type and severity.

    Unknown alert types get an ad-hoc rule. A rule that is already firing is resolved
    first so every call produces a fresh alert with the requested severity.
    """
    state = get_state(request.app)
    alerting = state.alerting
    alert_type = type_raw or DEFAULT_ALERT_TYPE
    severity = Severity(
        validate_string_from_list(severity_raw, [s.value for s in Severity], DEFAULT_ALERT_SEVERITY)
    )

    rule = alerting.ensure_rule(alert_type, severity)
    alerting.resolve_alert(rule.id)
    alert = alerting.fire_alert(rule, severity=severity)

    state.logging_service.log_business_event("alert_fired", alert.id, {"rule": alert_type, "severity": severity.value})
    body = _envelope("Alert fired successfully", "alert_firing")
    body.update(
        {
            "alert_type": alert_type,
            "severity": severity.value,
            "alert": alert,
            "active_alerts": len(alerting.list_active_alerts()),
        }
    )
    return body


# PUBLIC_INTERFACE
def incident_management(request: Request) -> Dict[str, Any]:
    """Open a test incident, walk it to investigating and report incident counts."""
    state = get_state(request.app)
    alerting = state.alerting
    incident = alerting.create_incident(
        title="Test Incident",
        severity=Severity.warning,
        description="Incident opened by the incident management test",
        tags=["test"],
    )
    alerting.update_incident_status(incident.id, "investigating", author="argus", note="Investigation started")
    current = next(i for i in alerting.list_incidents() if i.id == incident.id)

    stats = alerting.incident_statistics()
    body = _envelope("Incident management tested", "incident_management")
    body.update(
        {
            "created_incident": {"id": current.id, "title": current.title, "status": current.status},
            "total_incidents": stats["total"],
            "open_incidents": stats["open"] + stats["investigating"],
            "resolved_incidents": stats["resolved"],
        }
    )
    return body


# PUBLIC_INTERFACE
def notification_channels(request: Request) -> Dict[str, Any]:
    """Send a critical test notification through every channel and report per-channel outcomes."""
    alerting = get_state(request.app).alerting
    probe = Alert(
        id=str(uuid.uuid4()),
        rule_id="notification-test",
        rule_name="notification-test",
        status="firing",
        severity=Severity.critical,
        message="Notification channel test",
        labels={"team": "argus", "component": "test"},
        starts_at=utc_now(),
    )
    results = alerting.send_notifications(probe)
    body = _envelope("Notification channels tested", "notification_testing")
    body.update(
        {
            "channels_tested": len(results),
            "successful": sum(1 for r in results if r.success),
            "results": results,
        }
    )
    return body


# PUBLIC_INTERFACE
def active_alerts(request: Request) -> Dict[str, Any]:
    alerting = get_state(request.app).alerting
    active = alerting.list_active_alerts()
    recent = alerting.recent_alerts(RECENT_ALERTS_LIMIT)
    body = _envelope("Active alerts retrieved", "active_alerts_monitoring")
    body.update(
        {
            "active_alerts": active,
            "active_count": len(active),
            "recent_alerts": recent,
            "recent_count": len(recent),
        }
    )
    return body


# PUBLIC_INTERFACE
def active_incidents(request: Request) -> Dict[str, Any]:
    """Unresolved incidents with statistics, priority breakdown and MTTR."""
    alerting = get_state(request.app).alerting
    unresolved = [i for i in alerting.list_incidents() if i.status != "resolved"]
    body = _envelope("Active incidents retrieved", "incident_monitoring")
    body.update(
        {
            "active_incidents": unresolved,
            "incident_statistics": alerting.incident_statistics(),
            "priority_breakdown": alerting.priority_breakdown(),
            "mttr_minutes": round(alerting.mttr_minutes(), 2),
        }
    )
    return body
