from __future__ import annotations

import asyncio
import logging
import random
import secrets
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

import psutil

from argus import metrics
from argus.config import ArgusConfig
from argus.context import bind_trace, current_correlation, reset_request
from argus.schemas.common import utc_now
from argus.schemas.telemetry import APMData, ResourceMetrics, ServiceDependency

logger = logging.getLogger(__name__)

# Anomaly thresholds
HIGH_LATENCY_S = 5.0
HIGH_MEMORY_BYTES = 1024 * 1024 * 1024
HIGH_CPU_PERCENT = 80.0
TASK_LEAK_COUNT = 1000

# operation -> (service, operation, downstream dependencies)
_DEPENDENCY_MAP: Dict[str, tuple] = {
    "user_authentication": ("auth-service", "validate_token", ["user-db", "redis-cache"]),
    "data_processing": ("database-service", "query_data", ["postgres-db"]),
    "api_gateway": ("rate-limiter", "check_limits", ["redis-cache"]),
}


# PUBLIC_INTERFACE
def generate_trace_id() -> str:
    """32 lowercase hex characters."""
    return secrets.token_hex(16)


# PUBLIC_INTERFACE
def generate_span_id() -> str:
    """16 lowercase hex characters."""
    return secrets.token_hex(8)


@dataclass
class Span:
    """A synthetic span bound to the current context while open."""

    name: str
    service_name: str
    trace_id: str
    span_id: str
    parent_span_id: str = ""
    status: str = "ok"
    attributes: Dict[str, str] = field(default_factory=dict)
    started: float = field(default_factory=time.perf_counter)
    duration_s: float = 0.0


def _task_count() -> int:
    try:
        tasks = len(asyncio.all_tasks())
    except RuntimeError:
        tasks = 0
    return tasks + threading.active_count()


class TracingService:
    """Synthetic trace/span generation and APM bookkeeping."""

    def __init__(self, config: ArgusConfig) -> None:
        self.config = config
        self._process = psutil.Process()

    # PUBLIC_INTERFACE
    @contextmanager
    def span(self, name: str, service_name: Optional[str] = None, **attributes: str) -> Iterator[Span]:
        """
        Open a span for the duration of the block.

        The span joins the trace bound to the current context or starts a new one,
        becomes the current span, and is counted in apm_traces_total /
        apm_span_duration_seconds when it closes.
        """
        corr = current_correlation()
        trace_id = corr.trace_id or generate_trace_id()
        current = Span(
            name=name,
            service_name=service_name or self.config.tracing.service_name,
            trace_id=trace_id,
            span_id=generate_span_id(),
            parent_span_id=corr.span_id,
            attributes={k: str(v) for k, v in attributes.items()},
        )
        tokens = bind_trace(trace_id, current.span_id)
        try:
            yield current
        except Exception:
            current.status = "error"
            raise
        finally:
            reset_request(tokens)
            current.duration_s = time.perf_counter() - current.started
            metrics.apm_traces_total.labels(
                service=current.service_name, operation=name, status=current.status
            ).inc()
            metrics.apm_span_duration_seconds.labels(service=current.service_name, operation=name).observe(
                current.duration_s
            )

    # PUBLIC_INTERFACE
    def resource_metrics(self) -> ResourceMetrics:
        """Snapshot of the current process resources."""
        with self._process.oneshot():
            mem = self._process.memory_info()
            cpu = self._process.cpu_percent(interval=None)
            try:
                io = self._process.io_counters()
                disk_io = int(io.read_bytes + io.write_bytes)
            except (AttributeError, psutil.Error):
                disk_io = 0
        net = psutil.net_io_counters()
        network_io = int(net.bytes_sent + net.bytes_recv) if net is not None else 0
        return ResourceMetrics(
            cpu_usage=min(100.0, max(0.0, float(cpu))),
            memory_usage=int(mem.rss),
            task_count=_task_count(),
            heap_size=int(mem.vms),
            gc_pause=0.0,
            disk_io=disk_io,
            network_io=network_io,
        )

    # PUBLIC_INTERFACE
    def generate_dependencies(self, operation: str) -> List[ServiceDependency]:
        """Downstream calls for a known operation; unknown operations have none."""
        entry = _DEPENDENCY_MAP.get(operation)
        if entry is None:
            return []
        service, op, deps = entry
        return [
            ServiceDependency(
                service_name=service,
                operation=op,
                response_time_seconds=random.uniform(5, 100) / 1000.0,
                status_code=200,
                error_rate=random.uniform(0.1, 5.0),
                request_count=random.randint(100, 10000),
                dependencies=list(deps),
                custom_attributes={
                    "region": random.choice(["us-east-1", "us-west-2", "eu-west-1"]),
                    "pool": f"pool-{random.randint(1, 5)}",
                },
            )
        ]

    # PUBLIC_INTERFACE
    def create_apm_data(self, operation: str, duration_s: float, status_code: int) -> APMData:
        """Build an APM record; trace/span ids come from the active span and are empty without one."""
        corr = current_correlation()
        return APMData(
            service_name=self.config.tracing.service_name,
            operation_name=operation,
            start_time=utc_now(),
            duration_seconds=duration_s,
            status_code=status_code,
            trace_id=corr.trace_id if corr.span_id else "",
            span_id=corr.span_id,
            resource_usage=self.resource_metrics(),
            dependencies=self.generate_dependencies(operation),
            custom_tags={"environment": self.config.environment, "version": self.config.version},
        )

    # PUBLIC_INTERFACE
    def log_apm_data(self, apm: APMData) -> None:
        """Log an APM record, record dependency latencies and run anomaly detection."""
        logger.info(
            "APM data operation=%s status=%s duration_ms=%.2f",
            apm.operation_name,
            apm.status_code,
            apm.duration_seconds * 1000.0,
            extra={"trace_id": apm.trace_id, "apm": apm.model_dump(mode="json", exclude={"dependencies"})},
        )
        for dep in apm.dependencies:
            metrics.service_dependency_latency_seconds.labels(
                source_service=apm.service_name, target_service=dep.service_name, operation=dep.operation
            ).observe(dep.response_time_seconds)
        if apm.resource_usage is not None:
            self.detect_performance_anomalies(apm.operation_name, apm.duration_seconds, apm.resource_usage)

    # PUBLIC_INTERFACE
    def detect_performance_anomalies(self, operation: str, duration_s: float, usage: ResourceMetrics) -> List[str]:
        """Return anomaly types (high_latency, high_memory, high_cpu, task_leak) and count each one."""
        found: List[str] = []
        if duration_s > HIGH_LATENCY_S:
            found.append("high_latency")
        if usage.memory_usage > HIGH_MEMORY_BYTES:
            found.append("high_memory")
        if usage.cpu_usage > HIGH_CPU_PERCENT:
            found.append("high_cpu")
        if usage.task_count > TASK_LEAK_COUNT:
            found.append("task_leak")
        for anomaly in found:
            metrics.performance_anomalies_total.labels(
                service=self.config.tracing.service_name, operation=operation, anomaly_type=anomaly
            ).inc()
            logger.warning("Performance anomaly detected operation=%s type=%s", operation, anomaly)
        return found
