"""Structured exit codes for pipeline commands."""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sar_flood_pipeline.tracking import RunTracker


class ExitCode(IntEnum):
    SUCCESS = 0
    PARTIAL_FAILURE = 1
    TOTAL_FAILURE = 2
    BAD_INPUT = 3
    NO_WORK = 6  # No spatial units to process


def exit_code_from_tracker(tracker: RunTracker) -> ExitCode:
    """Derive an exit code from a :class:`RunTracker`'s outcomes."""
    failed = sum(1 for o in tracker.outcomes if o.status != "success")
    if failed == len(tracker.outcomes) and tracker.outcomes:
        return ExitCode.TOTAL_FAILURE
    elif failed > 0:
        return ExitCode.PARTIAL_FAILURE
    return ExitCode.SUCCESS
