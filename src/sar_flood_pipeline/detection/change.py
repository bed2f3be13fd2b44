"""Ratio change detection between despeckled before/after images."""

from __future__ import annotations

import numpy as np
from loguru import logger

from sar_flood_pipeline.raster.grid import RasterGrid, check_aligned

DEFAULT_DIFFERENCE_THRESHOLD = 1.25


def ratio(after: RasterGrid, before: RasterGrid) -> RasterGrid:
    """Elementwise ``after / before``.

    A zero *before* value gives inf (or NaN for 0/0); such cells are kept
    in the data but marked invalid rather than raising.
    """
    check_aligned(after, before)
    with np.errstate(divide="ignore", invalid="ignore"):
        r = after.data.astype(np.float64) / before.data.astype(np.float64)
    valid = after.valid & before.valid & np.isfinite(r)
    return after.like(r, valid=valid)


def threshold_ratio(difference: RasterGrid, threshold: float = DEFAULT_DIFFERENCE_THRESHOLD) -> RasterGrid:
    """Flood candidates: valid cells whose ratio is strictly above *threshold*."""
    with np.errstate(invalid="ignore"):
        flagged = difference.valid & (difference.data > threshold)
    return difference.like(flagged)


def detect_change(
    after: RasterGrid,
    before: RasterGrid,
    threshold: float = DEFAULT_DIFFERENCE_THRESHOLD,
) -> RasterGrid:
    """Boolean flood-candidate mask from two despeckled grids."""
    difference = ratio(after, before)
    candidate = threshold_ratio(difference, threshold)
    logger.debug(
        f"Change detection: {int(candidate.data.sum())} candidates "
        f"of {difference.count_valid()} valid cells (threshold {threshold})"
    )
    return candidate
