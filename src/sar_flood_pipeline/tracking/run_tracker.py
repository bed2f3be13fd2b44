"""Collects unit outcomes across a pipeline run."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List

import pandas as pd
from loguru import logger

from sar_flood_pipeline.tracking.unit_outcome import UnitOutcome
from sar_flood_pipeline.zonal.aggregate import ZonalResult


class RunTracker:
    """Thread-safe, append-only store of :class:`UnitOutcome` records."""

    def __init__(self):
        self.outcomes: List[UnitOutcome] = []
        self.start_time = datetime.now()
        self._lock = threading.Lock()

    def add_outcome(self, outcome: UnitOutcome) -> None:
        with self._lock:
            self.outcomes.append(outcome)

    @property
    def results(self) -> List[ZonalResult]:
        """Zonal results of successful units, in completion order."""
        return [o.result for o in self.outcomes if o.status == "success" and o.result is not None]

    @property
    def failed(self) -> List[UnitOutcome]:
        return [o for o in self.outcomes if o.status != "success"]

    def summary(self) -> Dict[str, int]:
        total = len(self.outcomes)
        failed = len(self.failed)
        degraded = sum(1 for r in self.results if r.degraded)
        return {
            "total": total,
            "succeeded": total - failed,
            "failed": failed,
            "degraded": degraded,
        }

    def log_summary(self) -> None:
        s = self.summary()
        elapsed = (datetime.now() - self.start_time).total_seconds()
        logger.info(
            f"Run finished in {elapsed:.1f}s: {s['succeeded']}/{s['total']} units succeeded, "
            f"{s['failed']} failed, {s['degraded']} degraded aggregations"
        )
        for o in self.failed:
            logger.error(f"  {o.unit_id}: {o.error_type}: {o.error_message}")

    def to_dataframe(self) -> pd.DataFrame:
        """One row per unit: result columns for successes, error for failures."""
        rows = []
        for o in self.outcomes:
            row = {"unit_id": o.unit_id, "status": o.status, "duration_sec": o.duration_sec}
            if o.result is not None:
                row.update({k: v for k, v in o.result.to_dict().items() if k != "unit_id"})
            row["error_message"] = o.error_message
            rows.append(row)
        columns = [
            "unit_id", "status", "pixel_count", "area", "scale",
            "degraded", "duration_sec", "error_message",
        ]
        return pd.DataFrame(rows, columns=columns)
