from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)

# work(worker_id, iteration) -> number of items produced by this iteration
WorkFn = Callable[[int, int], Union[int, Awaitable[int]]]


@dataclass
class LoadResult:
    """Totals of one load run."""

    total: int
    elapsed_s: float
    workers: int
    peak_active: int
    iterations: int
    errors: int

    @property
    def items_per_second(self) -> float:
        return self.total / self.elapsed_s if self.elapsed_s > 0 else 0.0


class _Counters:
    def __init__(self) -> None:
        self.total = 0
        self.iterations = 0
        self.errors = 0
        self.active = 0
        self.peak_active = 0


# PUBLIC_INTERFACE
async def run_load(
    work: WorkFn,
    concurrency: int,
    duration_s: float,
    pause_s: float = 0.0,
    max_iterations: Optional[int] = None,
) -> LoadResult:
    """
    Run `concurrency` workers until the deadline passes.

    Each worker repeatedly calls work(worker_id, iteration), adds the returned item
    count to the shared total and sleeps pause_s. A worker also stops after
    max_iterations iterations when given. Exceptions raised by work are counted and
    logged; the worker keeps going. The run never has more than `concurrency`
    workers active and returns shortly after the deadline.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be >= 1")
    if duration_s <= 0:
        raise ValueError("duration must be positive")

    counters = _Counters()
    loop = asyncio.get_running_loop()
    started = time.perf_counter()
    deadline = loop.time() + duration_s

    async def worker(worker_id: int) -> None:
        counters.active += 1
        counters.peak_active = max(counters.peak_active, counters.active)
        produced = 0
        iteration = 0
        try:
            while loop.time() < deadline:
                if max_iterations is not None and iteration >= max_iterations:
                    break
                try:
                    result = work(worker_id, iteration)
                    if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                        remaining = deadline - loop.time()
                        if remaining <= 0:
                            if asyncio.iscoroutine(result):
                                result.close()
                            break
                        try:
                            result = await asyncio.wait_for(result, timeout=remaining)
                        except asyncio.TimeoutError:
                            break
                    produced += int(result or 0)
                except Exception:
                    counters.errors += 1
                    logger.exception("Load worker %s iteration %s failed", worker_id, iteration)
                iteration += 1
                counters.iterations += 1
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                await asyncio.sleep(min(pause_s, remaining) if pause_s > 0 else 0)
        finally:
            counters.total += produced
            counters.active -= 1

    await asyncio.gather(*(worker(i) for i in range(concurrency)))

    result = LoadResult(
        total=counters.total,
        elapsed_s=time.perf_counter() - started,
        workers=concurrency,
        peak_active=counters.peak_active,
        iterations=counters.iterations,
        errors=counters.errors,
    )
    logger.debug(
        "Load run finished workers=%s total=%s elapsed=%.3fs peak_active=%s errors=%s",
        result.workers,
        result.total,
        result.elapsed_s,
        result.peak_active,
        result.errors,
    )
    return result
