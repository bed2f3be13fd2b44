"""Per-unit execution record."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Hashable, Optional

from sar_flood_pipeline.zonal.aggregate import ZonalResult


@dataclass
class UnitOutcome:
    """Result of running the pipeline on one spatial unit."""

    unit_id: Hashable
    status: str  # 'success' or 'failed'
    duration_sec: Optional[float] = None
    result: Optional[ZonalResult] = None
    error_message: Optional[str] = None
    error_traceback: Optional[str] = None
    error_type: Optional[str] = None  # exception class name

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
