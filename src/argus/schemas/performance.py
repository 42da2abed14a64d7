from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field


class ResourceUsage(BaseModel):
    """Resource consumption snapshot."""

    cpu_percent: float = Field(..., description="CPU usage percent.")
    memory_mb: float = Field(..., description="Resident memory in MB.")
    disk_usage_mb: float = Field(..., description="Disk usage in MB.")
    network_bytes_tx: int = Field(..., description="Bytes sent.")
    network_bytes_rx: int = Field(..., description="Bytes received.")


class PerformanceTestResult(BaseModel):
    """Result envelope shared by all performance tests."""

    test_type: str = Field(..., description="metrics_scale|logs_scale|traces_scale|dashboard_load|resource_usage|storage_limits")
    status: str = Field(..., description="Test status ('completed').")
    duration_seconds: float = Field(..., description="Wall-clock duration of the test.")
    items_generated: int = Field(..., description="Number of items (metrics, logs, spans, requests) produced.")
    items_per_second: float = Field(0.0, description="Throughput over the test duration.")
    details: Dict[str, str] = Field(default_factory=dict, description="Test-specific details, stringified.")
    resource_usage: Optional[ResourceUsage] = Field(default=None, description="Resource snapshot when measured.")
    timestamp: datetime = Field(..., description="UTC timestamp at completion.")
