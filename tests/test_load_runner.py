from __future__ import annotations

import asyncio
import time

import pytest

from argus.services.load_runner import run_load


@pytest.mark.anyio
async def test_run_load_never_exceeds_worker_count_and_stops_near_deadline():
    active = 0
    peak = 0

    async def work(worker_id: int, iteration: int) -> int:
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.005)
        active -= 1
        return 2

    started = time.perf_counter()
    result = await run_load(work, concurrency=4, duration_s=0.2)
    elapsed = time.perf_counter() - started

    assert peak <= 4
    assert result.peak_active <= 4
    assert result.workers == 4
    assert result.total == 2 * result.iterations
    assert result.total > 0
    assert 0.2 <= elapsed < 1.0
    assert result.items_per_second > 0


@pytest.mark.anyio
async def test_run_load_accepts_sync_work_and_counts_errors():
    def work(worker_id: int, iteration: int) -> int:
        if iteration == 0:
            raise RuntimeError("boom")
        return 1

    result = await run_load(work, concurrency=2, duration_s=0.05, pause_s=0.001)
    assert result.errors == 2
    assert result.total == result.iterations - result.errors


@pytest.mark.anyio
async def test_run_load_stops_after_max_iterations():
    result = await run_load(lambda w, i: 1, concurrency=3, duration_s=5.0, pause_s=0.001, max_iterations=4)
    assert result.iterations == 12
    assert result.total == 12
    assert result.elapsed_s < 5.0


@pytest.mark.anyio
async def test_run_load_abandons_work_that_outlives_the_deadline():
    async def slow(worker_id: int, iteration: int) -> int:
        await asyncio.sleep(10)
        return 1

    started = time.perf_counter()
    result = await run_load(slow, concurrency=2, duration_s=0.1)
    assert time.perf_counter() - started < 1.0
    assert result.total == 0


@pytest.mark.anyio
@pytest.mark.parametrize("concurrency,duration", [(0, 1.0), (2, 0.0), (2, -1.0)])
async def test_run_load_rejects_invalid_arguments(concurrency: int, duration: float):
    with pytest.raises(ValueError):
        await run_load(lambda w, i: 1, concurrency=concurrency, duration_s=duration)
