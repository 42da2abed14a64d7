from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict

import psutil

from argus import metrics
from argus.state import AppState

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def sample_process(process: psutil.Process) -> Dict[str, float]:
    """Read CPU and memory percent for the Argus process and publish them as gauges."""
    with process.oneshot():
        cpu = float(process.cpu_percent(interval=None))
        mem = float(process.memory_percent())
    metrics.cpu_usage_percent.set(cpu)
    metrics.memory_usage_percent.set(mem)
    return {"cpu_percent": cpu, "memory_percent": mem}


# PUBLIC_INTERFACE
async def sampler_loop(state: AppState, shutdown_event: asyncio.Event) -> None:
    """
    Background loop that publishes Argus' own CPU/memory usage.

    These are the series the bundled Prometheus alert rules watch, so load generated
    by /cpu-load and /memory-load becomes visible to Prometheus. Errors are logged
    and non-fatal.
    """
    interval = max(1, int(state.config.resource_sample_interval_sec))
    process = psutil.Process()
    # First cpu_percent call only primes the counter.
    process.cpu_percent(interval=None)

    logger.info("Resource sampler started (interval=%ss)", interval)

    while not shutdown_event.is_set():
        tick_started = datetime.now(timezone.utc)
        try:
            sample_process(process)
        except psutil.Error:
            logger.exception("Resource sampler tick failed")
        # Idle rate limiter buckets are dropped on the same cadence.
        state.rate_limiter.prune()

        elapsed = (datetime.now(timezone.utc) - tick_started).total_seconds()
        sleep_for = max(0.1, interval - elapsed)
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=sleep_for)
        except asyncio.TimeoutError:
            pass

    logger.info("Resource sampler stopped")
