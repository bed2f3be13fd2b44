"""Decibel / natural (linear power) conversions.

Both transforms are elementwise and total: ``to_db(0)`` is ``-inf`` and
negative inputs give NaN.  Downstream validity tracking masks those cells.
"""

from __future__ import annotations

import numpy as np

from sar_flood_pipeline.raster.grid import RasterGrid


def to_natural(grid: RasterGrid) -> RasterGrid:
    """``10 ** (dB / 10)``"""
    with np.errstate(over="ignore", invalid="ignore"):
        out = np.power(10.0, grid.data.astype(np.float64) / 10.0)
    return grid.like(out)


def to_db(grid: RasterGrid) -> RasterGrid:
    """``10 * log10(x)``"""
    with np.errstate(divide="ignore", invalid="ignore"):
        out = 10.0 * np.log10(grid.data.astype(np.float64))
    return grid.like(out)
