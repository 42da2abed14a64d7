from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Coroutine, Optional, Set

import httpx
from fastapi import FastAPI

from argus.config import ArgusConfig
from argus.rate_limit import SlidingWindowLimiter
from argus.schemas.common import utc_now
from argus.services.alerting_service import AlertingService
from argus.services.logging_service import LoggingService
from argus.services.settings_store import SettingsStore
from argus.services.tracing_service import TracingService
from argus.validation import ValidationConfig


@dataclass
class AppState:
    """Typed app.state container for shared singletons."""

    config: ArgusConfig
    settings: SettingsStore
    alerting: AlertingService
    logging_service: LoggingService
    tracing: TracingService
    rate_limiter: SlidingWindowLimiter
    validation: ValidationConfig
    started_at: datetime = field(default_factory=utc_now)
    # Outbound transport override; None means real network.
    http_transport: Optional[httpx.AsyncBaseTransport] = None
    background_tasks: Set[asyncio.Task] = field(default_factory=set)
    alerts_task: Optional[object] = None  # asyncio.Task, kept loose like the other task slots
    sampler_task: Optional[object] = None

    # PUBLIC_INTERFACE
    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run a fire-and-forget coroutine, keeping a reference until it finishes."""
        task = asyncio.create_task(coro)
        self.background_tasks.add(task)
        task.add_done_callback(self.background_tasks.discard)
        return task


# PUBLIC_INTERFACE
def build_state(config: ArgusConfig) -> AppState:
    """Create the service singletons for a config."""
    alerting = AlertingService()
    alerting.init_alert_manager()
    return AppState(
        config=config,
        settings=SettingsStore(config),
        alerting=alerting,
        logging_service=LoggingService(config),
        tracing=TracingService(config),
        rate_limiter=SlidingWindowLimiter(config.security.rate_limit_rpm, 60.0),
        validation=ValidationConfig.from_security(config.security),
    )


# PUBLIC_INTERFACE
def init_state(app: FastAPI, config: ArgusConfig) -> AppState:
    """Initialize app.state with the service singletons for config."""
    state = build_state(config)
    app.state.state = state
    return state


# PUBLIC_INTERFACE
def get_state(app: FastAPI) -> AppState:
    """Fetch typed AppState from a FastAPI app."""
    return app.state.state  # type: ignore[attr-defined]
