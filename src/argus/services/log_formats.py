from __future__ import annotations

import json
import logging
import random
import uuid
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request

from argus import metrics
from argus.schemas.common import utc_now
from argus.state import get_state

logger = logging.getLogger(__name__)

# Raw lines shipped to Loki exactly as generated.
loki_logger = logging.getLogger("argus.loki")

JSON_LOG_COUNT = 10
UNSTRUCTURED_LOG_COUNT = 10
MIXED_LOG_COUNT = 15
SAMPLE_SIZE = 3

_USERS = ["alice", "bob", "carol", "dave", "erin"]
_PATHS = ["/", "/login", "/api/orders", "/api/users", "/checkout", "/search"]
_MESSAGES = [
    "User login successful",
    "Order created",
    "Payment processed",
    "Cache refreshed",
    "Search query executed",
    "Session expired",
]

UNSTRUCTURED_TEMPLATES = [
    "[{ts}] INFO User {user} logged in from {ip}",
    "[{ts}] INFO GET {path} completed in {ms}ms status=200",
    "[{ts}] WARN Slow query detected on table {table} ({ms}ms)",
    "[{ts}] ERROR Failed to connect to upstream {host}: connection refused",
    "[{ts}] INFO Background job {job} finished processed={n}",
    "[{ts}] WARN Retrying request to {host} attempt={n}",
    "[{ts}] ERROR Unhandled exception in handler {path}: timeout after {ms}ms",
]

MIXED_FORMATS = ["JSON", "Key-Value", "Plain Text"]

STACK_TRACES: Dict[str, str] = {
    "java": (
        "Exception in thread \"main\" java.lang.NullPointerException: order is null\n"
        "\tat com.argus.orders.OrderService.process(OrderService.java:42)\n"
        "\tat com.argus.orders.OrderController.create(OrderController.java:27)\n"
        "\tat java.base/java.lang.Thread.run(Thread.java:833)"
    ),
    "python": (
        "Traceback (most recent call last):\n"
        "  File \"/app/orders/service.py\", line 42, in process\n"
        "    total = order.total()\n"
        "  File \"/app/orders/models.py\", line 17, in total\n"
        "    return sum(i.price for i in self.items)\n"
        "TypeError: unsupported operand type(s) for +: 'int' and 'NoneType'"
    ),
    "go": (
        "panic: runtime error: invalid memory address or nil pointer dereference\n"
        "[signal SIGSEGV: segmentation violation code=0x1 addr=0x0 pc=0x4a3b2c]\n\n"
        "goroutine 1 [running]:\n"
        "main.(*OrderService).Process(0x0)\n"
        "\t/app/orders/service.go:42 +0x1c\n"
        "main.main()\n"
        "\t/app/main.go:27 +0x45"
    ),
}


def _ts() -> str:
    return utc_now().strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _count_line(level: str, error_type: str = "") -> None:
    metrics.log_entries_total.labels(level=level, service="argus", error_type=error_type).inc()


def _json_entry(rng: random.Random, index: int) -> Dict[str, Any]:
    level = rng.choice(["info", "info", "warn", "error"])
    base: Dict[str, Any] = {
        "timestamp": _ts(),
        "level": level,
        "service": "argus",
        "message": rng.choice(_MESSAGES),
    }
    shape = index % 3
    if shape == 1:
        base["context"] = {
            "request_id": str(uuid.uuid4()),
            "user": rng.choice(_USERS),
            "path": rng.choice(_PATHS),
        }
    elif shape == 2:
        base["metrics"] = {
            "duration_ms": rng.randint(5, 900),
            "bytes": rng.randint(200, 50000),
            "status_code": rng.choice([200, 200, 201, 404, 500]),
        }
    return base


# PUBLIC_INTERFACE
def generate_json_logs(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Emit JSON-formatted lines in three shapes (flat, nested context, embedded metrics)."""
    rng = rng or random.Random()
    lines: List[str] = []
    for i in range(JSON_LOG_COUNT):
        entry = _json_entry(rng, i)
        line = json.dumps(entry)
        loki_logger.info(line)
        _count_line(entry["level"])
        lines.append(line)

    get_state(request.app).logging_service.log_with_context("info", "JSON logs generated", count=len(lines))
    return {
        "message": "JSON logs generated for Loki testing",
        "logs_generated": len(lines),
        "log_formats": 3,
        "sample_logs": lines[:SAMPLE_SIZE],
        "test_purpose": "Validate Loki JSON parsing and label extraction",
        "service": "argus",
        "functionality": "loki_json_validation",
        "timestamp": utc_now(),
    }


def _render_template(rng: random.Random, template: str) -> str:
    return template.format(
        ts=_ts(),
        user=rng.choice(_USERS),
        ip=f"10.0.{rng.randint(0, 255)}.{rng.randint(1, 254)}",
        path=rng.choice(_PATHS),
        ms=rng.randint(5, 5000),
        table=rng.choice(["users", "orders", "payments"]),
        host=rng.choice(["db-primary:5432", "cache:6379", "payments-api:443"]),
        job=f"job-{rng.randint(1000, 9999)}",
        n=rng.randint(1, 500),
    )


def _level_of(line: str) -> str:
    for level in ("ERROR", "WARN", "INFO"):
        if f"] {level} " in line:
            return level.lower()
    return "info"


# PUBLIC_INTERFACE
def generate_unstructured_logs(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Emit plain-text lines from the bracketed-timestamp templates."""
    rng = rng or random.Random()
    lines = [_render_template(rng, UNSTRUCTURED_TEMPLATES[i % len(UNSTRUCTURED_TEMPLATES)]) for i in range(UNSTRUCTURED_LOG_COUNT)]
    for line in lines:
        loki_logger.info(line)
        _count_line(_level_of(line))

    get_state(request.app).logging_service.log_with_context("info", "Unstructured logs generated", count=len(lines))
    return {
        "message": "Unstructured logs generated for Loki testing",
        "logs_generated": len(lines),
        "log_templates": len(UNSTRUCTURED_TEMPLATES),
        "sample_logs": lines[:SAMPLE_SIZE],
        "test_purpose": "Validate Loki regex/pattern parsing of plain-text logs",
        "service": "argus",
        "functionality": "loki_unstructured_validation",
        "timestamp": utc_now(),
    }


def _mixed_line(rng: random.Random, fmt: str) -> Tuple[str, str]:
    level = rng.choice(["info", "warn", "error"])
    message = rng.choice(_MESSAGES)
    if fmt == "JSON":
        return level, json.dumps({"timestamp": _ts(), "level": level, "service": "argus", "message": message})
    if fmt == "Key-Value":
        return level, f'ts={_ts()} level={level} service=argus msg="{message}" user={rng.choice(_USERS)}'
    return level, f"{_ts()} {level.upper()} argus: {message}"


# PUBLIC_INTERFACE
def generate_mixed_logs(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Emit lines alternating between JSON, key=value and plain text."""
    rng = rng or random.Random()
    lines: List[str] = []
    for i in range(MIXED_LOG_COUNT):
        fmt = MIXED_FORMATS[i % len(MIXED_FORMATS)]
        level, line = _mixed_line(rng, fmt)
        loki_logger.info(line)
        _count_line(level)
        lines.append(line)

    get_state(request.app).logging_service.log_with_context("info", "Mixed format logs generated", count=len(lines))
    return {
        "message": "Mixed format logs generated for Loki testing",
        "logs_generated": len(lines),
        "formats": list(MIXED_FORMATS),
        "sample_logs": lines[: len(MIXED_FORMATS)],
        "test_purpose": "Validate Loki handling of heterogeneous log formats in one stream",
        "service": "argus",
        "functionality": "loki_mixed_validation",
        "timestamp": utc_now(),
    }


# PUBLIC_INTERFACE
def generate_multiline_logs(request: Request) -> Dict[str, Any]:
    """Emit one multi-line stack trace per language as a single log entry each."""
    state = get_state(request.app)
    traces: List[Dict[str, Any]] = []
    for language, trace in STACK_TRACES.items():
        state.logging_service.log_error(
            "stack_trace",
            f"ERR_STACK_{language.upper()}",
            f"Unhandled exception ({language})\n{trace}",
            data={"language": language, "severity": "high"},
        )
        traces.append({"language": language, "lines": trace.count("\n") + 1, "stack_trace": trace})

    return {
        "message": "Multiline logs generated for Loki testing",
        "logs_generated": len(traces),
        "stack_traces": traces,
        "test_purpose": "Validate Loki multiline stage grouping of stack traces",
        "service": "argus",
        "functionality": "loki_multiline_validation",
        "timestamp": utc_now(),
    }
