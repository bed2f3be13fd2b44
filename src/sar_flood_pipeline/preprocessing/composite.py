"""Collapse a sequence of co-registered acquisitions into one grid.

The before-event image is a mosaic of everything in the pre-event window
(most recent pixel on top); the after-event image is the first acquisition
of the post-event window.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from sar_flood_pipeline.errors import EmptyInput
from sar_flood_pipeline.raster.grid import RasterGrid, check_aligned


def _require_images(grids: Sequence[RasterGrid], name: str) -> None:
    if not grids:
        raise EmptyInput(
            f"{name}: no images in collection (check the date window and coverage)"
        )
    check_aligned(*grids)


def mosaic(grids: Sequence[RasterGrid], name: str = "collection") -> RasterGrid:
    """Stack *grids* in order, later valid pixels overwriting earlier ones."""
    _require_images(grids, name)
    first = grids[0]
    data = first.filled(np.nan).astype(np.float64)
    valid = first.valid.copy()
    for g in grids[1:]:
        data = np.where(g.valid, g.data, data)
        valid |= g.valid
    return first.like(data, valid=valid)


def first(grids: Sequence[RasterGrid], name: str = "collection") -> RasterGrid:
    """Earliest acquisition of *grids*."""
    _require_images(grids, name)
    return grids[0]
