from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from argus.state import AppState

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
async def alerts_evaluator_loop(state: AppState, shutdown_event: asyncio.Event) -> None:
    """
    Background loop that evaluates the in-memory alert rules on a fixed cadence.

    Each tick samples every enabled, unsilenced rule, fires alerts whose condition
    matches (one active alert per rule) and resolves alerts whose condition cleared.
    Tick failures are logged and the loop keeps going.
    """
    interval = max(1, int(state.config.alert_eval_interval_sec))
    logger.info("Alerts evaluator started (interval=%ss)", interval)

    while not shutdown_event.is_set():
        tick_started = datetime.now(timezone.utc)
        try:
            summary = state.alerting.evaluate_all()
            if summary["fired"] or summary["resolved"]:
                logger.info(
                    "Alerts evaluated rules=%s fired=%s resolved=%s",
                    summary["evaluated"],
                    summary["fired"],
                    summary["resolved"],
                )
        except Exception:
            logger.exception("Alerts evaluator tick failed")

        elapsed = (datetime.now(timezone.utc) - tick_started).total_seconds()
        sleep_for = max(0.1, interval - elapsed)
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=sleep_for)
        except asyncio.TimeoutError:
            pass

    logger.info("Alerts evaluator stopped")
