"""Outcome tracking for multi-unit pipeline runs."""

from sar_flood_pipeline.tracking.run_tracker import RunTracker
from sar_flood_pipeline.tracking.unit_outcome import UnitOutcome

__all__ = [
    "RunTracker",
    "UnitOutcome",
]
