from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ServiceConfig(BaseModel):
    """Connection settings for one LGTM service."""

    url: str = Field(..., description="Base URL of the service (no trailing slash).")
    username: Optional[str] = Field(default=None, description="Optional basic-auth username.")
    password: Optional[str] = Field(default=None, description="Optional basic-auth password.")


class LGTMSettings(BaseModel):
    """User-editable connection settings for the LGTM stack."""

    grafana: ServiceConfig
    prometheus: ServiceConfig
    loki: ServiceConfig
    tempo: ServiceConfig


class SettingsSavedResponse(BaseModel):
    status: str = Field(..., description="'saved' on success.")
    message: str = Field(..., description="Human-readable result.")
    timestamp: datetime = Field(..., description="UTC timestamp of the save.")


class ConnectionTestResult(BaseModel):
    """Outcome of probing a single service with user-supplied settings."""

    status: str = Field(..., description="success|error")
    message: str = Field(..., description="Human-readable result.")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Probed url and status_code when available.")
