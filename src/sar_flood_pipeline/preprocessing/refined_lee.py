"""Refined Lee speckle filter (directional adaptive MMSE).

Follows the SNAP S1TBX formulation as ported to Earth Engine by Guido
Lemoine: the local edge direction is estimated from nine 3x3 sub-window
means sampled inside a 7x7 window, and the MMSE estimate is computed from
statistics over the half- or triangular window on the homogeneous side of
that edge.

Input must be in natural (linear power) units, not dB.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, Optional, Tuple

import numpy as np
from loguru import logger

from sar_flood_pipeline.raster.grid import RasterGrid
from sar_flood_pipeline.raster.kernel import Kernel
from sar_flood_pipeline.raster.neighborhood import neighborhood_to_bands, reduce_array


class DirectionLabel(IntEnum):
    """Edge-aligned sub-window chosen for a pixel (0 = none)."""

    UNLABELED = 0
    SOUTH = 1
    SOUTH_WEST = 2
    WEST = 3
    NORTH_WEST = 4
    NORTH = 5
    NORTH_EAST = 6
    EAST = 7
    SOUTH_EAST = 8


KERNEL3 = Kernel.square(3)

# Centres of the nine 3x3 sub-windows inside a 7x7 window.  Band order is
# row-major: 0 1 2 / 3 4 5 / 6 7 8, band 4 being the pixel itself.
SAMPLE_KERNEL = Kernel.fixed([
    [0, 0, 0, 0, 0, 0, 0],
    [0, 1, 0, 1, 0, 1, 0],
    [0, 0, 0, 0, 0, 0, 0],
    [0, 1, 0, 1, 0, 1, 0],
    [0, 0, 0, 0, 0, 0, 0],
    [0, 1, 0, 1, 0, 1, 0],
    [0, 0, 0, 0, 0, 0, 0],
])

RECT_KERNEL = Kernel.fixed([[0] * 7] * 3 + [[1] * 7] * 4)
DIAG_KERNEL = Kernel.fixed([[1] * (i + 1) + [0] * (6 - i) for i in range(7)])

# Label 2k+1 uses the rectangle rotated k quarter turns clockwise, 2k+2 the
# triangle.  Labels run clockwise from the lower half-window.
DIRECTION_KERNELS: Dict[DirectionLabel, Kernel] = {}
for _k in range(4):
    DIRECTION_KERNELS[DirectionLabel(2 * _k + 1)] = RECT_KERNEL.rotate(-_k)
    DIRECTION_KERNELS[DirectionLabel(2 * _k + 2)] = DIAG_KERNEL.rotate(-_k)

# Opposite sample pairs whose mean difference is each gradient band.
GRADIENT_PAIRS = ((1, 7), (6, 2), (3, 5), (0, 8))

NOISE_SAMPLES = 5

# Cells of context needed on each side of a tile for an exact result:
# the 3x3 stats feeding the outermost samples, or the directional window.
TILE_HALO = max(
    KERNEL3.radius + SAMPLE_KERNEL.radius,
    max(k.radius for k in DIRECTION_KERNELS.values()),
)


def _local_statistics(x: np.ndarray, valid: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Direction labels and noise variance estimate ``sigmaV`` per pixel."""
    mean3, _ = reduce_array(x, valid, KERNEL3, "mean")
    var3, _ = reduce_array(x, valid, KERNEL3, "variance")

    sample_mean, available = neighborhood_to_bands(mean3, valid, SAMPLE_KERNEL)
    sample_var, _ = neighborhood_to_bands(var3, valid, SAMPLE_KERNEL)
    # Missing sub-windows (off-grid or no data) fall back to the pixel's own.
    sample_mean = np.where(available, sample_mean, mean3[None])
    sample_var = np.where(available, sample_var, var3[None])

    gradients = np.stack([np.abs(sample_mean[a] - sample_mean[b]) for a, b in GRADIENT_PAIRS])
    gradients = np.where(np.isnan(gradients), -np.inf, gradients)
    # First band attaining the maximum wins ties.
    band = np.argmax(gradients, axis=0)

    centre = sample_mean[4]
    steeper = np.stack([
        (sample_mean[1] - centre) > (centre - sample_mean[7]),
        (sample_mean[6] - centre) > (centre - sample_mean[2]),
        (sample_mean[3] - centre) > (centre - sample_mean[5]),
        (sample_mean[0] - centre) > (centre - sample_mean[8]),
    ])
    chosen = np.take_along_axis(steeper, band[None], axis=0)[0]
    labels = np.where(chosen, band + 1, band + 5).astype(np.uint8)
    labels[~valid] = DirectionLabel.UNLABELED

    with np.errstate(divide="ignore", invalid="ignore"):
        ratios = sample_var / (sample_mean * sample_mean)
    # NaN sorts last, so it only enters the estimate when few samples exist.
    sigma_v = np.sort(ratios, axis=0)[:NOISE_SAMPLES].mean(axis=0)
    return labels, sigma_v


def _filter_window(x: np.ndarray, valid: np.ndarray, clamp_weight: bool) -> np.ndarray:
    labels, sigma_v = _local_statistics(x, valid)

    dir_mean = np.full(x.shape, np.nan, dtype=np.float64)
    dir_var = np.full(x.shape, np.nan, dtype=np.float64)
    for label, kernel in DIRECTION_KERNELS.items():
        sel = labels == label
        if not sel.any():
            continue
        m, _ = reduce_array(x, valid, kernel, "mean")
        v, _ = reduce_array(x, valid, kernel, "variance")
        dir_mean[sel] = m[sel]
        dir_var[sel] = v[sel]

    with np.errstate(divide="ignore", invalid="ignore"):
        var_x = (dir_var - dir_mean * dir_mean * sigma_v) / (sigma_v + 1.0)
        if clamp_weight:
            var_x = np.maximum(var_x, 0.0)
        # A flat directional window carries no detail to preserve.
        b = np.where(dir_var == 0, 0.0, var_x / dir_var)
    if clamp_weight:
        b = np.clip(b, 0.0, 1.0)

    xf = np.where(valid, x, np.nan).astype(np.float64)
    out = dir_mean + b * (xf - dir_mean)
    out[~valid] = np.nan
    return out


def _tiles(height: int, width: int, tile_size: int):
    for r0 in range(0, height, tile_size):
        for c0 in range(0, width, tile_size):
            yield r0, min(r0 + tile_size, height), c0, min(c0 + tile_size, width)


def refined_lee(
    grid: RasterGrid,
    tile_size: Optional[int] = None,
    clamp_weight: bool = True,
) -> RasterGrid:
    """Despeckle *grid* with the Refined Lee filter.

    Args:
        grid: Backscatter in natural units.
        tile_size: Process in ``tile_size`` square tiles (plus a
            :data:`TILE_HALO` border) to bound memory.  The result is
            identical to the untiled one.
        clamp_weight: Clamp the signal variance at 0 and the adaptive
            weight to ``[0, 1]``.  ``False`` keeps the raw formula, which
            can yield negative weights on low-variance windows.

    Returns:
        Filtered grid with the input's shape and validity mask; invalid
        cells hold NaN.
    """
    x = grid.data.astype(np.float64)
    valid = grid.valid
    h, w = x.shape
    out_dtype = np.result_type(grid.data.dtype, np.float32)

    if tile_size is None or (tile_size >= h and tile_size >= w):
        out = _filter_window(x, valid, clamp_weight)
    else:
        out = np.full(x.shape, np.nan, dtype=np.float64)
        n_tiles = 0
        for r0, r1, c0, c1 in _tiles(h, w, tile_size):
            pr0, pr1 = max(0, r0 - TILE_HALO), min(h, r1 + TILE_HALO)
            pc0, pc1 = max(0, c0 - TILE_HALO), min(w, c1 + TILE_HALO)
            win = _filter_window(x[pr0:pr1, pc0:pc1], valid[pr0:pr1, pc0:pc1], clamp_weight)
            out[r0:r1, c0:c1] = win[r0 - pr0:r1 - pr0, c0 - pc0:c1 - pc0]
            n_tiles += 1
        logger.debug(f"Refined Lee processed {n_tiles} tiles of {tile_size}px (halo {TILE_HALO})")

    return grid.like(out.astype(out_dtype), valid=valid)


def direction_labels(grid: RasterGrid) -> RasterGrid:
    """Per-pixel :class:`DirectionLabel` as a uint8 grid (0 where invalid)."""
    labels, _ = _local_statistics(grid.data.astype(np.float64), grid.valid)
    return grid.like(labels)
