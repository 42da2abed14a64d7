from __future__ import annotations

import hashlib
import logging
import random
import threading
import time
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from argus import metrics
from argus.schemas.alerting import (
    Alert,
    AlertRule,
    AlertThreshold,
    Incident,
    IncidentEvent,
    IncidentMetrics,
    NotificationChannel,
    NotificationCondition,
    NotificationRateLimit,
    NotificationResult,
)
from argus.schemas.common import Severity, utc_now

logger = logging.getLogger(__name__)

NOTIFICATION_SUCCESS_RATE = 0.95
ALERT_HISTORY_LIMIT = 1000
INCIDENT_LIMIT = 500
ADHOC_RULE_LIMIT = 50
AUTO_INCIDENT_TAG = "auto-generated"
HEALTH_COMPONENTS = ("rules_engine", "notification_system", "incident_management")

_GIB = 1024 * 1024 * 1024


# PUBLIC_INTERFACE
def compare(value: float, operator: str, threshold: float) -> bool:
    """Apply a rule operator; unknown operators never match."""
    if operator == ">":
        return value > threshold
    if operator == "<":
        return value < threshold
    if operator == ">=":
        return value >= threshold
    if operator == "<=":
        return value <= threshold
    if operator == "==":
        return value == threshold
    return False


def _fingerprint(rule: AlertRule) -> str:
    raw = rule.id + "|" + "|".join(f"{k}={v}" for k, v in sorted(rule.labels.items()))
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


class AlertingService:
    """
    In-memory alert manager: rules, active alerts, history, incidents and notification channels.

    All mutation happens under one re-entrant lock so the evaluator loop and request
    handlers can share the instance.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._lock = threading.RLock()
        self._rng = rng or random.Random()
        self.rules: List[AlertRule] = []
        self.active_alerts: Dict[str, Alert] = {}  # keyed by rule id
        self.alert_history: List[Alert] = []
        self.incidents: Dict[str, Incident] = {}
        self.channels: List[NotificationChannel] = []
        self.silenced_rules: Dict[str, datetime] = {}
        self._sent_at: Dict[str, List[float]] = {}
        self._adhoc_rule_ids: List[str] = []  # oldest first

    # ------------------------------------------------------------------ setup

    # PUBLIC_INTERFACE
    def init_alert_manager(self) -> None:
        """Load the default rules and notification channels and mark components healthy."""
        self.init_default_rules()
        self.init_default_channels()
        for component in HEALTH_COMPONENTS:
            metrics.alert_manager_health.labels(component=component).set(1)
        logger.info("Alert manager initialized rules=%s channels=%s", len(self.rules), len(self.channels))

    def _new_rule(
        self,
        name: str,
        description: str,
        query: str,
        operator: str,
        value: float,
        duration: timedelta,
        severity: Severity,
        labels: Dict[str, str],
        enabled: bool = True,
    ) -> AlertRule:
        now = utc_now()
        return AlertRule(
            id=str(uuid.uuid4()),
            name=name,
            description=description,
            query=query,
            threshold=AlertThreshold(operator=operator, value=value),
            duration_seconds=duration.total_seconds(),
            severity=severity,
            labels=labels,
            annotations={"summary": description, "runbook_url": f"https://runbooks.argus.local/{name}"},
            enabled=enabled,
            created_at=now,
            updated_at=now,
        )

    # PUBLIC_INTERFACE
    def init_default_rules(self) -> None:
        """Replace rules with the four defaults."""
        rules = [
            self._new_rule(
                "high-cpu-usage",
                "CPU usage is above 80%",
                "argus_cpu_usage_percent",
                ">",
                80.0,
                timedelta(minutes=5),
                Severity.warning,
                {"team": "platform", "component": "cpu"},
            ),
            self._new_rule(
                "high-memory-usage",
                "Memory usage is above 2GB",
                "process_resident_memory_bytes",
                ">",
                float(2 * _GIB),
                timedelta(minutes=3),
                Severity.warning,
                {"team": "platform", "component": "memory"},
            ),
            self._new_rule(
                "high-error-rate",
                "HTTP 5xx error rate is above 5%",
                'rate(http_requests_total{status=~"5.."}[5m]) / rate(http_requests_total[5m]) * 100',
                ">",
                5.0,
                timedelta(minutes=2),
                Severity.critical,
                {"team": "backend", "component": "api"},
            ),
            self._new_rule(
                "low-throughput",
                "Request throughput dropped below 10 rps",
                "sum(rate(http_requests_total[5m]))",
                "<",
                10.0,
                timedelta(minutes=5),
                Severity.warning,
                {"team": "backend", "component": "api"},
            ),
        ]
        with self._lock:
            self.rules = rules
            self._adhoc_rule_ids = []

    # PUBLIC_INTERFACE
    def init_default_channels(self) -> None:
        """Replace notification channels with slack, email and webhook defaults."""
        channels = [
            NotificationChannel(
                id=str(uuid.uuid4()),
                name="slack-alerts",
                type="slack",
                config={"webhook_url": "https://hooks.slack.com/services/argus/alerts", "channel": "#alerts"},
                conditions=NotificationCondition(),
                rate_limit=NotificationRateLimit(max_alerts=10, time_window_seconds=3600),
            ),
            NotificationChannel(
                id=str(uuid.uuid4()),
                name="email-critical",
                type="email",
                config={"smtp_host": "smtp.argus.local", "to": "oncall@argus.local"},
                conditions=NotificationCondition(severities=[Severity.critical]),
                rate_limit=NotificationRateLimit(max_alerts=5, time_window_seconds=1800),
            ),
            NotificationChannel(
                id=str(uuid.uuid4()),
                name="webhook-integration",
                type="webhook",
                config={"url": "http://localhost:8080/webhook", "method": "POST"},
                conditions=NotificationCondition(),
                rate_limit=NotificationRateLimit(max_alerts=20, time_window_seconds=3600),
            ),
        ]
        with self._lock:
            self.channels = channels
            self._sent_at = {}

    # PUBLIC_INTERFACE
    def ensure_rule(self, name: str, severity: Severity) -> AlertRule:
        """
        Return the rule with this name, registering a disabled ad-hoc rule when none exists.

        At most ADHOC_RULE_LIMIT ad-hoc rules are kept; registering past the limit drops
        the oldest one and resolves its active alert.
        """
        with self._lock:
            for rule in self.rules:
                if rule.name == name:
                    return rule
            rule = self._new_rule(
                name,
                f"Manually fired test alert '{name}'",
                f'argus_manual_alert{{type="{name}"}}',
                ">",
                0.0,
                timedelta(0),
                severity,
                {"team": "argus", "component": "test"},
                enabled=False,
            )
            self.rules.append(rule)
            self._adhoc_rule_ids.append(rule.id)
            while len(self._adhoc_rule_ids) > ADHOC_RULE_LIMIT:
                evicted = self._adhoc_rule_ids.pop(0)
                self.rules = [r for r in self.rules if r.id != evicted]
                self.silenced_rules.pop(evicted, None)
                self.resolve_alert(evicted)
            return rule

    # ------------------------------------------------------------- evaluation

    # PUBLIC_INTERFACE
    def sample_value(self, rule: AlertRule) -> float:
        """Synthetic reading for a rule, scaled to what its query measures."""
        name = rule.name
        if "memory" in name:
            return self._rng.uniform(0, 4 * _GIB)
        if "error" in name:
            return self._rng.uniform(0, 10)
        return self._rng.uniform(0, 100)

    # PUBLIC_INTERFACE
    def evaluate_rule(self, rule: AlertRule, value: Optional[float] = None) -> bool:
        """Compare a reading (sampled when not given) against the rule threshold."""
        reading = self.sample_value(rule) if value is None else value
        return compare(reading, rule.threshold.operator, rule.threshold.value)

    # PUBLIC_INTERFACE
    def is_silenced(self, rule_id: str) -> bool:
        with self._lock:
            until = self.silenced_rules.get(rule_id)
            if until is None:
                return False
            if until <= utc_now():
                del self.silenced_rules[rule_id]
                return False
            return True

    # PUBLIC_INTERFACE
    def silence_rule(self, rule_id: str, duration_s: float) -> datetime:
        """Suppress evaluation of a rule for duration_s seconds."""
        until = utc_now() + timedelta(seconds=duration_s)
        with self._lock:
            self.silenced_rules[rule_id] = until
        logger.info("Rule silenced rule_id=%s until=%s", rule_id, until.isoformat())
        return until

    # PUBLIC_INTERFACE
    def evaluate_all(self) -> Dict[str, int]:
        """Evaluate enabled, unsilenced rules once: fire on match, resolve on clear."""
        with self._lock:
            rules = [r for r in self.rules if r.enabled]
        evaluated = fired = resolved = 0
        for rule in rules:
            if self.is_silenced(rule.id):
                continue
            evaluated += 1
            value = self.sample_value(rule)
            if compare(value, rule.threshold.operator, rule.threshold.value):
                with self._lock:
                    already = rule.id in self.active_alerts
                self.fire_alert(rule, value=value)
                if not already:
                    fired += 1
            elif self.resolve_alert(rule.id) is not None:
                resolved += 1
        return {"evaluated": evaluated, "fired": fired, "resolved": resolved}

    # ----------------------------------------------------------------- alerts

    # PUBLIC_INTERFACE
    def fire_alert(self, rule: AlertRule, value: Optional[float] = None, severity: Optional[Severity] = None) -> Alert:
        """
        Fire an alert for a rule.

        At most one alert per rule is active; firing again returns the active alert
        unchanged. New alerts are recorded in history, notified, and open an incident
        when critical.
        """
        with self._lock:
            existing = self.active_alerts.get(rule.id)
            if existing is not None and existing.status == "firing":
                return existing
            reading = rule.threshold.value if value is None else value
            sev = severity or rule.severity
            alert = Alert(
                id=str(uuid.uuid4()),
                rule_id=rule.id,
                rule_name=rule.name,
                status="firing",
                severity=sev,
                value=reading,
                threshold=rule.threshold.value,
                message=f"{rule.name}: value {reading:.2f} {rule.threshold.operator} threshold {rule.threshold.value:g}",
                labels=dict(rule.labels),
                annotations=dict(rule.annotations),
                fingerprint=_fingerprint(rule),
                starts_at=utc_now(),
            )
            self.active_alerts[rule.id] = alert
            self.alert_history.append(alert)
            if len(self.alert_history) > ALERT_HISTORY_LIMIT:
                del self.alert_history[: len(self.alert_history) - ALERT_HISTORY_LIMIT]

        metrics.alerts_total.labels(rule=rule.name, severity=sev.value, status="firing").inc()
        logger.warning("Alert firing rule=%s severity=%s value=%.2f", rule.name, sev.value, reading)

        self.send_notifications(alert)
        if sev == Severity.critical:
            self.create_incident_for_alert(alert)
        return alert

    # PUBLIC_INTERFACE
    def resolve_alert(self, rule_id: str) -> Optional[Alert]:
        """Resolve the active alert of a rule, if any, along with the incidents it opened."""
        with self._lock:
            alert = self.active_alerts.pop(rule_id, None)
            if alert is None:
                return None
            alert.status = "resolved"
            alert.ends_at = utc_now()
            opened = [
                i.id
                for i in self.incidents.values()
                if i.status != "resolved" and AUTO_INCIDENT_TAG in i.tags and alert.id in i.related_alerts
            ]
        duration = (alert.ends_at - alert.starts_at).total_seconds()
        metrics.alerts_total.labels(rule=alert.rule_name, severity=alert.severity.value, status="resolved").inc()
        metrics.alert_duration_seconds.labels(rule=alert.rule_name, severity=alert.severity.value).observe(duration)
        logger.info("Alert resolved rule=%s duration_s=%.1f", alert.rule_name, duration)
        for incident_id in opened:
            self.resolve_incident(incident_id)
        return alert

    # ---------------------------------------------------------- notifications

    def _matches(self, conditions: NotificationCondition, alert: Alert) -> bool:
        if conditions.severities and alert.severity not in conditions.severities:
            return False
        if conditions.rule_names and alert.rule_name not in conditions.rule_names:
            return False
        return True

    def _allow_send(self, channel: NotificationChannel) -> bool:
        now = time.monotonic()
        window = channel.rate_limit.time_window_seconds
        with self._lock:
            sent = [t for t in self._sent_at.get(channel.id, []) if now - t < window]
            if len(sent) >= channel.rate_limit.max_alerts:
                self._sent_at[channel.id] = sent
                return False
            sent.append(now)
            self._sent_at[channel.id] = sent
            return True

    # PUBLIC_INTERFACE
    def simulate_notification_send(self, channel: NotificationChannel, alert: Alert) -> bool:
        """Pretend to deliver a notification; succeeds about 95% of the time."""
        return self._rng.random() < NOTIFICATION_SUCCESS_RATE

    # PUBLIC_INTERFACE
    def send_notifications(self, alert: Alert) -> List[NotificationResult]:
        """Notify every enabled channel whose conditions match, honoring per-channel rate limits."""
        with self._lock:
            channels = list(self.channels)
        results: List[NotificationResult] = []
        for channel in channels:
            if not channel.enabled:
                results.append(NotificationResult(channel=channel.name, type=channel.type, success=False, skipped_reason="disabled"))
                continue
            if not self._matches(channel.conditions, alert):
                results.append(
                    NotificationResult(channel=channel.name, type=channel.type, success=False, skipped_reason="conditions")
                )
                continue
            if not self._allow_send(channel):
                metrics.notifications_sent_total.labels(
                    channel_type=channel.type, severity=alert.severity.value, status="rate_limited"
                ).inc()
                results.append(
                    NotificationResult(channel=channel.name, type=channel.type, success=False, skipped_reason="rate_limited")
                )
                continue

            started = time.perf_counter()
            ok = self.simulate_notification_send(channel, alert)
            latency = time.perf_counter() - started
            metrics.notifications_sent_total.labels(
                channel_type=channel.type, severity=alert.severity.value, status="sent" if ok else "failed"
            ).inc()
            metrics.notification_latency_seconds.labels(channel_type=channel.type).observe(latency)
            if ok:
                with self._lock:
                    alert.notifications_sent += 1
            else:
                logger.warning("Notification failed channel=%s alert=%s", channel.name, alert.rule_name)
            results.append(
                NotificationResult(channel=channel.name, type=channel.type, success=ok, latency_ms=latency * 1000.0)
            )
        return results

    # -------------------------------------------------------------- incidents

    # PUBLIC_INTERFACE
    def create_incident(
        self,
        title: str,
        severity: Severity,
        description: str = "",
        related_alerts: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        author: str = "user",
        service: str = "argus",
        detected_after_s: float = 0.0,
    ) -> Incident:
        """Open an incident."""
        now = utc_now()
        incident = Incident(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            status="open",
            severity=severity,
            priority="high" if severity == Severity.critical else ("medium" if severity == Severity.warning else "low"),
            related_alerts=list(related_alerts or []),
            tags=list(tags or []),
            timeline=[IncidentEvent(timestamp=now, type="creation", message=f"Incident created: {title}", author=author)],
            metrics=IncidentMetrics(time_to_detection=detected_after_s),
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self.incidents[incident.id] = incident
            self._prune_incidents_locked()
        metrics.incidents_total.labels(severity=severity.value, status="open", service=service).inc()
        logger.warning("Incident opened id=%s title=%s severity=%s", incident.id, title, severity.value)
        return incident

    # PUBLIC_INTERFACE
    def create_incident_for_alert(self, alert: Alert) -> Incident:
        """Open an auto-generated incident for a (critical) alert."""
        detected_after = max((utc_now() - alert.starts_at).total_seconds(), 1e-6)
        return self.create_incident(
            title=f"Critical alert: {alert.rule_name}",
            severity=alert.severity,
            description=alert.message,
            related_alerts=[alert.id],
            tags=[AUTO_INCIDENT_TAG, alert.severity.value],
            author="system",
            service=alert.labels.get("service", "argus"),
            detected_after_s=detected_after,
        )

    # PUBLIC_INTERFACE
    def update_incident_status(self, incident_id: str, status: str, author: str = "system", note: str = "") -> Optional[Incident]:
        """Move an incident to open/investigating and record it on the timeline."""
        with self._lock:
            incident = self.incidents.get(incident_id)
            if incident is None:
                return None
            now = utc_now()
            incident.status = status
            incident.updated_at = now
            incident.timeline.append(
                IncidentEvent(timestamp=now, type="update", message=note or f"Status changed to {status}", author=author)
            )
            return incident

    # PUBLIC_INTERFACE
    def resolve_incident(self, incident_id: str, author: str = "system") -> Optional[Incident]:
        """Resolve an incident and refresh the MTTR gauge."""
        with self._lock:
            incident = self.incidents.get(incident_id)
            if incident is None or incident.status == "resolved":
                return incident
            now = utc_now()
            incident.status = "resolved"
            incident.resolved_at = now
            incident.updated_at = now
            incident.metrics.time_to_resolution = (now - incident.created_at).total_seconds()
            incident.timeline.append(IncidentEvent(timestamp=now, type="resolution", message="Incident resolved", author=author))
            incident.metrics.mttr = self._mttr_seconds_locked()

        metrics.incidents_total.labels(severity=incident.severity.value, status="resolved", service="argus").inc()
        metrics.incident_duration_seconds.labels(severity=incident.severity.value, service="argus").observe(
            incident.metrics.time_to_resolution
        )
        metrics.mttr_seconds.labels(service="argus", severity=incident.severity.value).set(incident.metrics.mttr)
        logger.info("Incident resolved id=%s ttr_s=%.1f", incident.id, incident.metrics.time_to_resolution)
        return incident

    def _prune_incidents_locked(self) -> None:
        # Keep at most INCIDENT_LIMIT; resolved incidents go first, oldest first.
        excess = len(self.incidents) - INCIDENT_LIMIT
        if excess <= 0:
            return
        resolved = [i.id for i in self.incidents.values() if i.status == "resolved"]
        unresolved = [i.id for i in self.incidents.values() if i.status != "resolved"]
        for incident_id in (resolved + unresolved)[:excess]:
            del self.incidents[incident_id]

    def _mttr_seconds_locked(self) -> float:
        resolved = [i.metrics.time_to_resolution for i in self.incidents.values() if i.status == "resolved"]
        return sum(resolved) / len(resolved) if resolved else 0.0

    # -------------------------------------------------------------- snapshots

    # PUBLIC_INTERFACE
    def list_rules(self) -> List[AlertRule]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self.rules]

    # PUBLIC_INTERFACE
    def list_active_alerts(self) -> List[Alert]:
        with self._lock:
            return [a.model_copy(deep=True) for a in self.active_alerts.values()]

    # PUBLIC_INTERFACE
    def recent_alerts(self, limit: int = 10) -> List[Alert]:
        """Most recent alerts first."""
        with self._lock:
            return [a.model_copy(deep=True) for a in reversed(self.alert_history[-limit:])]

    # PUBLIC_INTERFACE
    def list_incidents(self, status: Optional[str] = None) -> List[Incident]:
        with self._lock:
            items = [i.model_copy(deep=True) for i in self.incidents.values()]
        if status is not None:
            items = [i for i in items if i.status == status]
        return sorted(items, key=lambda i: i.created_at, reverse=True)

    # PUBLIC_INTERFACE
    def incident_statistics(self) -> Dict[str, int]:
        with self._lock:
            statuses = [i.status for i in self.incidents.values()]
        return {
            "total": len(statuses),
            "open": statuses.count("open"),
            "investigating": statuses.count("investigating"),
            "resolved": statuses.count("resolved"),
        }

    # PUBLIC_INTERFACE
    def priority_breakdown(self) -> Dict[str, int]:
        """Count of unresolved incidents by priority."""
        breakdown = {"high": 0, "medium": 0, "low": 0}
        with self._lock:
            for incident in self.incidents.values():
                if incident.status != "resolved":
                    breakdown[incident.priority] = breakdown.get(incident.priority, 0) + 1
        return breakdown

    # PUBLIC_INTERFACE
    def mttr_minutes(self) -> float:
        with self._lock:
            return self._mttr_seconds_locked() / 60.0
