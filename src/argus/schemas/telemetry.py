from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ResourceMetrics(BaseModel):
    """Process resource snapshot attached to APM records."""

    cpu_usage: float = Field(..., description="CPU percent (0-100).")
    memory_usage: int = Field(..., description="Resident memory in bytes.")
    task_count: int = Field(..., description="Running asyncio tasks plus threads.")
    heap_size: int = Field(..., description="Virtual memory size in bytes.")
    gc_pause: float = Field(0.0, description="Approximate GC pause in milliseconds.")
    disk_io: int = Field(0, description="Bytes read plus written by the process.")
    network_io: int = Field(0, description="Bytes sent plus received by the host.")


class ServiceDependency(BaseModel):
    """A downstream call made while serving an operation."""

    service_name: str
    operation: str
    response_time_seconds: float
    status_code: int
    error_rate: float
    request_count: int
    dependencies: List[str] = Field(default_factory=list)
    custom_attributes: Dict[str, str] = Field(default_factory=dict)


class APMData(BaseModel):
    """Synthetic APM record for one operation."""

    service_name: str
    operation_name: str
    start_time: datetime
    duration_seconds: float = Field(..., description="Operation duration.")
    status_code: int
    trace_id: str = Field("", description="32 hex characters; empty without an active trace.")
    span_id: str = Field("", description="16 hex characters; empty without an active span.")
    resource_usage: Optional[ResourceMetrics] = None
    dependencies: List[ServiceDependency] = Field(default_factory=list)
    custom_tags: Dict[str, str] = Field(default_factory=dict)


class LogContext(BaseModel):
    """Correlation context attached to structured log entries."""

    request_id: str
    trace_id: str = ""
    span_id: str = ""
    user_id: str = ""
    session_id: str = ""
    service_name: str
    version: str
    environment: str
    node_id: str
    start_time: datetime
