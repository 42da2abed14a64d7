from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# HTTP and logging

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    labelnames=("method", "endpoint", "status"),
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=("method", "endpoint"),
)

log_entries_total = Counter(
    "log_entries_total",
    "Total number of log entries written",
    labelnames=("level", "service", "error_type"),
)

log_processing_duration_seconds = Histogram(
    "log_processing_duration_seconds",
    "Time spent writing log entries",
    labelnames=("operation", "log_level"),
)

errors_by_category_total = Counter(
    "errors_by_category_total",
    "Errors grouped by category",
    labelnames=("category", "severity", "source"),
)

custom_business_metric = Gauge(
    "custom_business_metric",
    "Synthetic business metric for testing",
    labelnames=("metric_type", "category"),
)

# APM

apm_traces_total = Counter(
    "apm_traces_total",
    "Total number of traces produced",
    labelnames=("service", "operation", "status"),
)

apm_span_duration_seconds = Histogram(
    "apm_span_duration_seconds",
    "Span duration in seconds",
    labelnames=("service", "operation"),
)

service_dependency_latency_seconds = Histogram(
    "service_dependency_latency_seconds",
    "Latency of calls between services",
    labelnames=("source_service", "target_service", "operation"),
)

performance_anomalies_total = Counter(
    "performance_anomalies_total",
    "Detected performance anomalies",
    labelnames=("service", "operation", "anomaly_type"),
)

# Alerting and incidents

alerts_total = Counter(
    "alerts_total",
    "Total number of alerts by rule, severity and status",
    labelnames=("rule", "severity", "status"),
)

alert_duration_seconds = Histogram(
    "alert_duration_seconds",
    "How long alerts stayed firing",
    labelnames=("rule", "severity"),
)

incidents_total = Counter(
    "incidents_total",
    "Total number of incidents",
    labelnames=("severity", "status", "service"),
)

incident_duration_seconds = Histogram(
    "incident_duration_seconds",
    "Incident duration from creation to resolution",
    labelnames=("severity", "service"),
)

notifications_sent_total = Counter(
    "notifications_sent_total",
    "Notifications sent by channel type",
    labelnames=("channel_type", "severity", "status"),
)

notification_latency_seconds = Histogram(
    "notification_latency_seconds",
    "Time spent delivering notifications",
    labelnames=("channel_type",),
)

alert_manager_health = Gauge(
    "alert_manager_health",
    "Health of alert manager components (1 healthy, 0 unhealthy)",
    labelnames=("component",),
)

mttr_seconds = Gauge(
    "mttr_seconds",
    "Mean time to resolution",
    labelnames=("service", "severity"),
)

# Self-monitoring series referenced by the bundled Prometheus alert rules

cpu_usage_percent = Gauge(
    "argus_cpu_usage_percent",
    "Argus process CPU usage percent",
)

memory_usage_percent = Gauge(
    "argus_memory_usage_percent",
    "Argus process memory usage as percent of system memory",
)

test_status = Gauge(
    "argus_test_status",
    "Outcome of the last run of a test (1 passed, 0 failed)",
    labelnames=("test_name",),
)

performance_test_duration_seconds = Gauge(
    "argus_performance_test_duration_seconds",
    "Duration of the last performance test run",
    labelnames=("test_type",),
)


def record_http_request(method: str, endpoint: str, status_code: int, duration_s: float) -> None:
    """Record one served HTTP request."""
    http_requests_total.labels(method=method, endpoint=endpoint, status=str(status_code)).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(max(0.0, duration_s))


def record_test_outcome(test_name: str, passed: bool, duration_s: float | None = None) -> None:
    """Publish the outcome of a performance or integration test run."""
    test_status.labels(test_name=test_name).set(1 if passed else 0)
    if duration_s is not None:
        performance_test_duration_seconds.labels(test_type=test_name).set(max(0.0, duration_s))


def render_metrics() -> tuple[bytes, str]:
    """Return the metrics payload and content type for the /metrics route."""
    return generate_latest(), CONTENT_TYPE_LATEST
