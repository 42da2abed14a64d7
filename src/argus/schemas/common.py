from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """Severity levels for alerts, incidents and notifications."""

    info = "info"
    warning = "warning"
    critical = "critical"


class HealthResponse(BaseModel):
    """Response model for the liveness endpoint."""

    status: str = Field(..., description="High-level health status string ('healthy').")
    timestamp: datetime = Field(..., description="UTC timestamp at time of response.")
    uptime: str = Field(..., description="Time since the service started, compact duration style (e.g. '1h2m3s').")
    version: str = Field(..., description="Service version.")
    service: str = Field(..., description="Service name.")
    purpose: str = Field(..., description="What this service is for.")
    checks: Dict[str, str] = Field(default_factory=dict, description="Per-subsystem check results.")


class ConfigResponse(BaseModel):
    """Frontend runtime configuration."""

    api_base_url: str = Field(..., description="Base URL the UI should call.")
    version: str = Field(..., description="Service version.")
    environment: str = Field(..., description="Deployment environment name.")


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    detail: str = Field(..., description="Human-readable error details.")
    code: Optional[str] = Field(default=None, description="Optional machine-readable error code.")
    meta: Dict[str, Any] = Field(default_factory=dict, description="Optional metadata for debugging.")


# PUBLIC_INTERFACE
def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)
