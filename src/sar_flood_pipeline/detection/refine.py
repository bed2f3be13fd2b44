"""Flood mask refinement: permanent water, steep terrain, speckle residue.

Each step only ever clears flagged cells, so the refined mask is a subset
of the candidate mask.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from loguru import logger
from scipy import ndimage

from sar_flood_pipeline.config import FloodConfig
from sar_flood_pipeline.raster.grid import RasterGrid, check_aligned


def _flagged(mask: RasterGrid) -> np.ndarray:
    return mask.data.astype(bool) & mask.valid


def exclude_permanent_water(
    mask: RasterGrid,
    seasonality: RasterGrid,
    min_months: int = 5,
) -> RasterGrid:
    """Clear cells where water is present at least *min_months* a year.

    Cells with no seasonality data are left as they are.
    """
    check_aligned(mask, seasonality)
    with np.errstate(invalid="ignore"):
        permanent = seasonality.valid & (seasonality.data >= min_months)
    return mask.like(_flagged(mask) & ~permanent)


def exclude_steep_terrain(
    mask: RasterGrid,
    slope: RasterGrid,
    max_slope: float = 5.0,
) -> RasterGrid:
    """Keep only cells whose slope is below *max_slope* degrees.

    Cells with no slope data are cleared.
    """
    check_aligned(mask, slope)
    with np.errstate(invalid="ignore"):
        flat = slope.valid & (slope.data < max_slope)
    return mask.like(_flagged(mask) & flat)


def connected_pixel_count(
    mask: RasterGrid,
    max_size: int = 25,
    eight_connected: bool = True,
) -> RasterGrid:
    """Size of each flagged cell's connected region, capped at *max_size*.

    Unflagged cells get 0.
    """
    if eight_connected:
        structure = np.ones((3, 3), dtype=bool)
    else:
        structure = ndimage.generate_binary_structure(2, 1)
    labels, _ = ndimage.label(_flagged(mask), structure=structure)
    sizes = np.bincount(labels.ravel(), minlength=1)
    sizes[0] = 0
    counts = np.minimum(sizes[labels], max_size).astype(np.int32)
    return mask.like(counts)


def exclude_small_regions(
    mask: RasterGrid,
    min_pixels: int = 8,
    max_size: int = 25,
    eight_connected: bool = True,
) -> RasterGrid:
    """Keep cells whose (capped) connected-region size exceeds *min_pixels*."""
    if min_pixels >= max_size:
        logger.warning(
            f"min_connected_pixels={min_pixels} >= connectivity_radius={max_size}; "
            "every region will be removed"
        )
    counts = connected_pixel_count(mask, max_size=max_size, eight_connected=eight_connected)
    return mask.like(_flagged(mask) & (counts.data > min_pixels))


def refine_flood_mask(
    candidate: RasterGrid,
    seasonality: RasterGrid,
    slope: RasterGrid,
    cfg: Optional[FloodConfig] = None,
) -> RasterGrid:
    """Apply water, slope and region-size exclusions in that order."""
    cfg = cfg or FloodConfig()
    check_aligned(candidate, seasonality, slope)

    no_water = exclude_permanent_water(candidate, seasonality, cfg.permanent_water_months)
    flat = exclude_steep_terrain(no_water, slope, cfg.slope_threshold_degrees)
    refined = exclude_small_regions(
        flat,
        min_pixels=cfg.min_connected_pixels,
        max_size=cfg.connectivity_radius,
        eight_connected=cfg.eight_connected,
    )
    logger.debug(
        f"Mask refinement: candidates={int(_flagged(candidate).sum())} "
        f"-> no_water={int(no_water.data.sum())} -> flat={int(flat.data.sum())} "
        f"-> connected={int(refined.data.sum())}"
    )
    return refined
