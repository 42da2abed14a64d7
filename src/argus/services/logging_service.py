from __future__ import annotations

import logging
import secrets
import time
import uuid
from typing import Any, Dict, Mapping, Optional

from argus import metrics
from argus.config import ArgusConfig
from argus.context import current_correlation
from argus.schemas.common import utc_now
from argus.schemas.telemetry import LogContext

logger = logging.getLogger("argus.events")

# Level names accepted by log_with_context, mapped onto stdlib levels.
LEVELS: Dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


# PUBLIC_INTERFACE
def generate_node_id() -> str:
    """Return 'node-' followed by 8 lowercase hex characters."""
    return "node-" + secrets.token_hex(4)


class LoggingService:
    """
    Structured, correlated application logging.

    Entries go through the standard logging module with the correlation fields passed
    as `extra`, so the JSON formatter renders them as top-level keys. Every entry is
    counted in log_entries_total.
    """

    def __init__(self, config: ArgusConfig, node_id: Optional[str] = None) -> None:
        self.config = config
        self.node_id = node_id or generate_node_id()

    # PUBLIC_INTERFACE
    def create_log_context(self, headers: Mapping[str, str]) -> LogContext:
        """Build a log context from request headers (X-Request-ID, X-Correlation-ID, X-User-ID, X-Session-ID)."""
        corr = current_correlation()
        request_id = headers.get("x-request-id") or headers.get("x-correlation-id") or str(uuid.uuid4())
        return LogContext(
            request_id=request_id,
            trace_id=corr.trace_id,
            span_id=corr.span_id,
            user_id=headers.get("x-user-id") or "",
            session_id=headers.get("x-session-id") or "",
            service_name=self.config.name,
            version=self.config.version,
            environment=self.config.environment,
            node_id=self.node_id,
            start_time=utc_now(),
        )

    def _base_fields(self) -> Dict[str, Any]:
        return {
            "service": self.config.name,
            "version": self.config.version,
            "environment": self.config.environment,
            "node_id": self.node_id,
        }

    # PUBLIC_INTERFACE
    def log_with_context(self, level: str, message: str, **fields: Any) -> None:
        """Write one correlated log entry at level debug/info/warn/error."""
        started = time.perf_counter()
        extra = self._base_fields()
        extra.update(fields)
        logger.log(LEVELS.get(level, logging.INFO), message, extra=extra)
        metrics.log_entries_total.labels(
            level=level, service=self.config.name, error_type=str(fields.get("error_type", ""))
        ).inc()
        metrics.log_processing_duration_seconds.labels(operation="log_with_context", log_level=level).observe(
            time.perf_counter() - started
        )

    # PUBLIC_INTERFACE
    def log_error(
        self,
        error_type: str,
        error_code: str,
        message: str,
        err: Optional[BaseException] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write an error entry and count it by category."""
        fields: Dict[str, Any] = {"error_type": error_type, "error_code": error_code}
        if err is not None:
            fields["error"] = str(err)
        if data:
            fields["error_data"] = data
        severity = str((data or {}).get("severity", "medium"))
        metrics.errors_by_category_total.labels(category=error_type, severity=severity, source=self.config.name).inc()
        self.log_with_context("error", message, **fields)

    # PUBLIC_INTERFACE
    def log_business_event(self, event_type: str, entity_id: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Write a business event entry."""
        self.log_with_context(
            "info",
            "Business event",
            event_type=event_type,
            entity_id=entity_id,
            event_data=data or {},
            log_type="business_event",
        )

    # PUBLIC_INTERFACE
    def log_performance(self, operation: str, duration_s: float, data: Optional[Dict[str, Any]] = None) -> None:
        """Write a performance entry; slow operations (over 1s) are logged as warnings."""
        level = "warn" if duration_s > 1.0 else "info"
        self.log_with_context(
            level,
            "Performance metric",
            operation=operation,
            duration_ms=round(duration_s * 1000.0, 3),
            performance_data=data or {},
            log_type="performance",
        )
