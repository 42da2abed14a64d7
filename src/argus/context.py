from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Optional

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")
user_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("user_id", default="")
session_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("session_id", default="")
trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="")
span_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("span_id", default="")


@dataclass
class RequestCorrelation:
    """Identifiers bound to the current request."""

    request_id: str = ""
    user_id: str = ""
    session_id: str = ""
    trace_id: str = ""
    span_id: str = ""


# PUBLIC_INTERFACE
def current_correlation() -> RequestCorrelation:
    """Snapshot of the identifiers bound to the running task."""
    return RequestCorrelation(
        request_id=request_id_var.get(),
        user_id=user_id_var.get(),
        session_id=session_id_var.get(),
        trace_id=trace_id_var.get(),
        span_id=span_id_var.get(),
    )


# PUBLIC_INTERFACE
def bind_request(request_id: str, user_id: str, session_id: str) -> list:
    """Bind correlation ids for the current request; returns tokens for reset_request."""
    return [
        (request_id_var, request_id_var.set(request_id)),
        (user_id_var, user_id_var.set(user_id)),
        (session_id_var, session_id_var.set(session_id)),
    ]


# PUBLIC_INTERFACE
def bind_trace(trace_id: str, span_id: Optional[str] = "") -> list:
    """Bind trace/span ids for the current request; returns tokens for reset_request."""
    return [
        (trace_id_var, trace_id_var.set(trace_id)),
        (span_id_var, span_id_var.set(span_id or "")),
    ]


# PUBLIC_INTERFACE
def reset_request(tokens: list) -> None:
    """Undo bindings made by bind_request/bind_trace."""
    for var, token in reversed(tokens):
        var.reset(token)
