from __future__ import annotations

import random

import pytest

from argus.schemas.common import Severity
from argus.services import alerting_service
from argus.services.alerting_service import AlertingService, compare


@pytest.fixture
def alerting() -> AlertingService:
    svc = AlertingService(rng=random.Random(7))
    svc.init_alert_manager()
    return svc


def _rule(svc: AlertingService, name: str):
    return next(r for r in svc.rules if r.name == name)


@pytest.mark.parametrize(
    "value,operator,threshold,expected",
    [
        (5, ">", 3, True),
        (3, ">", 3, False),
        (2, "<", 3, True),
        (3, ">=", 3, True),
        (3, "<=", 2, False),
        (3, "==", 3, True),
        (3, "!=", 4, False),
        (3, "~", 3, False),
    ],
)
def test_compare_operators(value, operator, threshold, expected):
    assert compare(value, operator, threshold) is expected


def test_defaults_loaded(alerting: AlertingService):
    names = {r.name: r for r in alerting.rules}
    assert set(names) == {"high-cpu-usage", "high-memory-usage", "high-error-rate", "low-throughput"}
    assert names["high-cpu-usage"].threshold.operator == ">"
    assert names["high-cpu-usage"].threshold.value == 80
    assert names["high-cpu-usage"].duration_seconds == 300
    assert names["high-memory-usage"].threshold.value == 2147483648
    assert names["high-error-rate"].severity == Severity.critical
    assert names["low-throughput"].threshold.operator == "<"
    assert [c.name for c in alerting.channels] == ["slack-alerts", "email-critical", "webhook-integration"]


def test_evaluate_rule_uses_given_value(alerting: AlertingService):
    rule = _rule(alerting, "high-cpu-usage")
    assert alerting.evaluate_rule(rule, value=95.0) is True
    assert alerting.evaluate_rule(rule, value=10.0) is False


def test_fire_alert_keeps_one_active_alert_per_rule(alerting: AlertingService):
    rule = _rule(alerting, "high-cpu-usage")
    first = alerting.fire_alert(rule, value=91.0)
    second = alerting.fire_alert(rule, value=99.0)

    assert first.status == "firing"
    assert second.id == first.id
    assert len(alerting.list_active_alerts()) == 1
    assert len(alerting.alert_history) == 1
    # warning alerts do not open incidents
    assert alerting.list_incidents() == []


def test_critical_alert_opens_incident(alerting: AlertingService):
    alert = alerting.fire_alert(_rule(alerting, "high-error-rate"), value=12.0)

    incidents = alerting.list_incidents()
    assert len(incidents) == 1
    incident = incidents[0]
    assert incident.status == "open"
    assert incident.priority == "high"
    assert incident.related_alerts == [alert.id]
    assert "auto-generated" in incident.tags and "critical" in incident.tags
    assert incident.timeline[0].type == "creation"
    assert incident.timeline[0].author == "system"
    assert incident.metrics.time_to_detection > 0


def test_resolve_alert(alerting: AlertingService):
    rule = _rule(alerting, "low-throughput")
    alerting.fire_alert(rule, value=1.0)
    resolved = alerting.resolve_alert(rule.id)

    assert resolved is not None
    assert resolved.status == "resolved"
    assert resolved.ends_at is not None
    assert alerting.list_active_alerts() == []
    assert alerting.resolve_alert(rule.id) is None


def test_evaluate_all_fires_and_resolves(alerting: AlertingService, monkeypatch: pytest.MonkeyPatch):
    readings = {"high-cpu-usage": 95.0, "high-memory-usage": 1.0, "high-error-rate": 1.0, "low-throughput": 50.0}
    monkeypatch.setattr(alerting, "sample_value", lambda rule: readings[rule.name])

    summary = alerting.evaluate_all()
    assert summary == {"evaluated": 4, "fired": 1, "resolved": 0}
    assert [a.rule_name for a in alerting.list_active_alerts()] == ["high-cpu-usage"]

    readings["high-cpu-usage"] = 10.0
    summary = alerting.evaluate_all()
    assert summary == {"evaluated": 4, "fired": 0, "resolved": 1}
    assert alerting.list_active_alerts() == []


def test_silenced_and_disabled_rules_are_skipped(alerting: AlertingService, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(alerting, "sample_value", lambda rule: 1e12)
    cpu = _rule(alerting, "high-cpu-usage")
    alerting.silence_rule(cpu.id, 60)
    assert alerting.is_silenced(cpu.id)

    adhoc = alerting.ensure_rule("disk-space-low", Severity.warning)
    assert adhoc.enabled is False
    assert alerting.ensure_rule("disk-space-low", Severity.critical).id == adhoc.id

    summary = alerting.evaluate_all()
    assert summary["evaluated"] == 3
    active = {a.rule_name for a in alerting.list_active_alerts()}
    assert "high-cpu-usage" not in active
    assert "disk-space-low" not in active


def test_expired_silence_is_lifted(alerting: AlertingService):
    rule = _rule(alerting, "high-cpu-usage")
    alerting.silence_rule(rule.id, -1)
    assert alerting.is_silenced(rule.id) is False


def test_notifications_follow_conditions(alerting: AlertingService, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(alerting, "simulate_notification_send", lambda channel, alert: True)
    alert = alerting.fire_alert(_rule(alerting, "high-cpu-usage"), value=90.0)

    results = {r.channel: r for r in alerting.send_notifications(alert)}
    assert results["slack-alerts"].success is True
    assert results["webhook-integration"].success is True
    assert results["email-critical"].success is False
    assert results["email-critical"].skipped_reason == "conditions"


def test_notifications_respect_rate_limit(alerting: AlertingService, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(alerting, "simulate_notification_send", lambda channel, alert: True)
    alert = alerting.fire_alert(_rule(alerting, "high-error-rate"), value=50.0)

    # the fire above already used one send on every channel; email-critical allows 5 per window
    for _ in range(4):
        alerting.send_notifications(alert)
    results = {r.channel: r for r in alerting.send_notifications(alert)}
    assert results["email-critical"].skipped_reason == "rate_limited"
    assert results["slack-alerts"].success is True


def test_incident_lifecycle_and_mttr(alerting: AlertingService):
    incident = alerting.create_incident("Database down", Severity.warning, description="primary unreachable")
    assert incident.priority == "medium"
    assert alerting.incident_statistics()["open"] == 1
    assert alerting.priority_breakdown()["medium"] == 1

    updated = alerting.update_incident_status(incident.id, "investigating", author="oncall")
    assert updated is not None and updated.status == "investigating"
    assert alerting.incident_statistics()["investigating"] == 1

    resolved = alerting.resolve_incident(incident.id, author="oncall")
    assert resolved is not None
    assert resolved.status == "resolved"
    assert resolved.resolved_at is not None
    assert resolved.timeline[-1].type == "resolution"
    assert resolved.metrics.time_to_resolution >= 0
    assert alerting.incident_statistics() == {"total": 1, "open": 0, "investigating": 0, "resolved": 1}
    assert alerting.priority_breakdown()["medium"] == 0
    assert alerting.mttr_minutes() >= 0
    assert alerting.resolve_incident("missing") is None


def test_recent_alerts_newest_first(alerting: AlertingService):
    cpu = _rule(alerting, "high-cpu-usage")
    low = _rule(alerting, "low-throughput")
    alerting.fire_alert(cpu, value=90.0)
    alerting.fire_alert(low, value=1.0)
    recent = alerting.recent_alerts(limit=1)
    assert [a.rule_name for a in recent] == ["low-throughput"]


def test_resolving_critical_alert_resolves_its_incident(alerting: AlertingService):
    rule = _rule(alerting, "high-error-rate")
    alerting.fire_alert(rule, value=9.0)
    manual = alerting.create_incident("Checkout latency", Severity.critical)

    alerting.resolve_alert(rule.id)

    statuses = {i.title: i.status for i in alerting.list_incidents()}
    assert statuses["Critical alert: high-error-rate"] == "resolved"
    assert statuses[manual.title] == "open"


def test_evaluator_churn_leaves_no_dangling_incidents(monkeypatch: pytest.MonkeyPatch):
    svc = AlertingService(rng=random.Random(11))
    svc.init_alert_manager()
    monkeypatch.setattr(svc, "simulate_notification_send", lambda channel, alert: True)
    for _ in range(300):
        svc.evaluate_all()

    unresolved = [i for i in svc.list_incidents() if i.status != "resolved"]
    assert len(unresolved) <= 1
    assert len(svc.list_incidents()) > 1


def test_incidents_are_capped_evicting_resolved_first(alerting: AlertingService, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(alerting_service, "INCIDENT_LIMIT", 5)
    first = alerting.create_incident("first", Severity.warning)
    done = alerting.create_incident("done", Severity.warning)
    alerting.resolve_incident(done.id)
    for n in range(4):
        alerting.create_incident(f"later-{n}", Severity.info)

    titles = {i.title for i in alerting.list_incidents()}
    assert len(titles) == 5
    assert "done" not in titles
    assert "first" in titles

    alerting.create_incident("newest", Severity.info)
    titles = {i.title for i in alerting.list_incidents()}
    assert len(titles) == 5
    assert "first" not in titles
    assert "newest" in titles


def test_adhoc_rules_are_capped(alerting: AlertingService, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(alerting_service, "ADHOC_RULE_LIMIT", 3)
    monkeypatch.setattr(alerting, "simulate_notification_send", lambda channel, alert: True)
    oldest = alerting.ensure_rule("adhoc-0", Severity.warning)
    alerting.fire_alert(oldest)
    for n in range(1, 5):
        alerting.ensure_rule(f"adhoc-{n}", Severity.warning)

    names = [r.name for r in alerting.rules]
    assert len(names) == 4 + 3
    assert names[-3:] == ["adhoc-2", "adhoc-3", "adhoc-4"]
    assert alerting.list_active_alerts() == []
