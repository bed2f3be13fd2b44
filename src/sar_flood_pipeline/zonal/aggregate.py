"""Sum of flagged pixels inside a polygon.

The mask is aggregated on a coarser sampling grid whose cells are square
blocks of ``factor x factor`` native pixels, laid out from the corner of
the polygon's pixel window.  A block contributes all of its flagged native
pixels when its centre falls inside the polygon, so the count is exact at
``factor == 1`` and increasingly approximate along the polygon boundary as
the sampling scale grows.  Interior blocks are always counted exactly.

Sampling scales are in metres.  On a geographic CRS they are converted to
degrees at the nominal length of one degree at the equator.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Hashable, Optional

import numpy as np
from loguru import logger
from rasterio.crs import CRS
from rasterio.features import geometry_mask
from rasterio.transform import Affine

from sar_flood_pipeline.errors import AggregationTooLarge, DegradedAggregationWarning
from sar_flood_pipeline.raster.clip import as_geometry
from sar_flood_pipeline.raster.grid import RasterGrid

DEFAULT_SAMPLING_SCALE = 150.0
DEFAULT_MAX_PIXELS = 10_000_000

METRES_PER_DEGREE = 111_319.49


@dataclass(frozen=True)
class ZonalResult:
    """Flood pixel count for one spatial unit.

    ``degraded`` is True when the sampling scale had to be coarsened to
    stay within the pixel budget; ``scale`` is the scale actually used,
    in metres.
    """

    unit_id: Optional[Hashable]
    pixel_count: int
    area: float
    scale: float
    degraded: bool = False

    def to_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "pixel_count": self.pixel_count,
            "area": self.area,
            "scale": self.scale,
            "degraded": self.degraded,
        }


def metres_per_unit(crs: Any) -> float:
    """Length of one CRS unit in metres; projected CRSs are taken as metric."""
    if crs is None:
        return 1.0
    if CRS.from_user_input(crs).is_geographic:
        return METRES_PER_DEGREE
    return 1.0


def aggregate_zonal(
    mask: RasterGrid,
    geometry: Any,
    scale: float = DEFAULT_SAMPLING_SCALE,
    best_effort: bool = True,
    max_pixels: int = DEFAULT_MAX_PIXELS,
    unit_id: Optional[Hashable] = None,
) -> ZonalResult:
    """Count flagged pixels of *mask* inside *geometry*.

    Args:
        mask: Boolean flood mask; invalid cells count as unflagged.
        geometry: Shapely geometry or GeoJSON-like mapping in the mask's CRS.
        scale: Sampling scale in metres.  Rounded to a whole multiple of
            the native pixel size, never finer than native and never
            coarser than the polygon's pixel window.
        best_effort: When the polygon needs more than *max_pixels* sampling
            cells, double the scale until it fits instead of raising.
        max_pixels: Budget of sampling cells per polygon, at least 1.
        unit_id: Identifier copied to the result.

    Raises:
        AggregationTooLarge: Budget exceeded and *best_effort* is False.
        ValueError: *max_pixels* is below 1.
    """
    if max_pixels < 1:
        raise ValueError(f"max_pixels must be >= 1, got {max_pixels}")

    x_size, _ = mask.pixel_size
    cell_metres = x_size * metres_per_unit(mask.crs)
    factor = max(1, int(round(scale / cell_metres))) if cell_metres > 0 else 1

    geom = as_geometry(geometry) if geometry is not None else None
    if geom is None or geom.is_empty:
        return ZonalResult(unit_id, 0, 0.0, factor * cell_metres, False)

    row0, row1, col0, col1 = mask.window(geom.bounds)
    n_rows, n_cols = row1 - row0, col1 - col0
    if n_rows == 0 or n_cols == 0:
        return ZonalResult(unit_id, 0, 0.0, factor * cell_metres, False)

    extent = max(n_rows, n_cols)
    factor = min(factor, extent)
    degraded = False
    while True:
        n_cells = -(-n_rows // factor) * -(-n_cols // factor)
        if n_cells <= max_pixels:
            break
        if not best_effort:
            raise AggregationTooLarge(
                f"unit {unit_id}: {n_cells} sampling cells at scale {factor * cell_metres:g} "
                f"exceeds max_pixels={max_pixels}"
            )
        factor = min(factor * 2, extent)
        degraded = True

    used_scale = factor * cell_metres
    if degraded:
        msg = (
            f"unit {unit_id}: sampling coarsened to scale {used_scale:g} "
            f"(requested {scale:g}) to fit max_pixels={max_pixels}"
        )
        logger.warning(msg)
        warnings.warn(msg, DegradedAggregationWarning, stacklevel=2)

    # Flagged native pixels per block; trailing blocks may be partial.
    flagged = (mask.data.astype(bool) & mask.valid)[row0:row1, col0:col1].astype(np.int64)
    block_counts = np.add.reduceat(flagged, np.arange(0, n_rows, factor), axis=0)
    block_counts = np.add.reduceat(block_counts, np.arange(0, n_cols, factor), axis=1)

    block_transform = mask.transform @ Affine.translation(col0, row0) @ Affine.scale(factor)
    inside = geometry_mask(
        [geom],
        out_shape=block_counts.shape,
        transform=block_transform,
        invert=True,
    )
    count = int(block_counts[inside].sum())
    return ZonalResult(unit_id, count, count * mask.pixel_area, used_scale, degraded)
