"""Run a per-unit worker over many spatial units, in-process."""

from __future__ import annotations

import time
import traceback
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Hashable, Sequence

from loguru import logger

from sar_flood_pipeline.tracking import RunTracker, UnitOutcome


def _invoke_worker(
    worker_fn: Callable[[Any], Any],
    unit: Any,
    unit_id: Hashable,
    tracker: RunTracker,
) -> None:
    """Call *worker_fn* on *unit* and record the outcome in *tracker*."""
    logger.info(f"Starting unit {unit_id}")
    t0 = time.perf_counter()

    try:
        result = worker_fn(unit)
    except Exception as exc:
        duration = time.perf_counter() - t0
        logger.error(f"Unit {unit_id} failed: {type(exc).__name__}: {exc}")
        tracker.add_outcome(UnitOutcome(
            unit_id=unit_id,
            status="failed",
            duration_sec=duration,
            error_message=str(exc),
            error_traceback=traceback.format_exc(),
            error_type=type(exc).__name__,
        ))
        return

    duration = time.perf_counter() - t0
    tracker.add_outcome(UnitOutcome(
        unit_id=unit_id,
        status="success",
        duration_sec=duration,
        result=result,
    ))
    logger.info(f"Completed unit {unit_id} in {duration:.2f}s")


def run_local_tasks(
    worker_fn: Callable[[Any], Any],
    units: Sequence[Any],
    tracker: RunTracker,
    max_workers: int = 1,
    unit_id_fn: Callable[[Any], Hashable] = lambda u: getattr(u, "unit_id", id(u)),
) -> None:
    """Call *worker_fn* for each unit, sequentially or in parallel.

    Args:
        worker_fn: Single-unit pipeline function.
        units: Independent work items; order carries no meaning.
        tracker: Collects one outcome per unit.
        max_workers: ``1`` for sequential (default), ``>1`` for
            thread-pool parallelism.  numpy and scipy release the GIL for
            most of the per-unit work.
        unit_id_fn: Extracts the identifier used in logs and outcomes.
    """
    if not units:
        return

    logger.info(f"Running {len(units)} units (max_workers={max_workers})")

    if max_workers <= 1:
        for unit in units:
            _invoke_worker(worker_fn, unit, unit_id_fn(unit), tracker)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {
                pool.submit(_invoke_worker, worker_fn, unit, unit_id_fn(unit), tracker): unit
                for unit in units
            }
            for fut in as_completed(futures):
                fut.result()  # failures are already recorded inside
