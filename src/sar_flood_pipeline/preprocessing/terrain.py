"""Terrain slope from an elevation model."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from sar_flood_pipeline.raster.grid import RasterGrid


def slope_degrees(
    dem: RasterGrid,
    pixel_size: Optional[Tuple[float, float]] = None,
) -> RasterGrid:
    """Slope in degrees from central differences of *dem*.

      slope = arctan( sqrt( (dz/dx)^2 + (dz/dy)^2 ) )  [degrees]

    Args:
        dem: Elevation grid; must be in a projected CRS with the same
            horizontal unit as elevation unless *pixel_size* is given.
        pixel_size: ``(x_size, y_size)`` in elevation units; defaults to
            the grid's transform.

    Cells next to missing elevation are invalid.
    """
    x_size, y_size = pixel_size or dem.pixel_size
    height = dem.filled(np.nan).astype(np.float64)
    if min(height.shape) < 2:
        return dem.like(np.zeros(height.shape, dtype=np.float32))

    gy, gx = np.gradient(height, y_size, x_size)
    slope = np.degrees(np.arctan(np.hypot(gx, gy))).astype(np.float32)
    return dem.like(slope, valid=dem.valid & np.isfinite(slope))
