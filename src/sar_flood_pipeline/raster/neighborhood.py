"""Weighted neighborhood reductions with edge truncation.

Each statistic is evaluated exactly as its naive definition: for every
output cell, the weighted samples inside the kernel footprint that fall
inside the grid *and* are valid.  Samples past the grid edge are dropped
(no wraparound, no zero padding), so border cells are computed from a
truncated window.

The loop runs over kernel offsets, not over pixels; each iteration adds
one shifted slice of the grid, keeping the cost at ``O(k^2)`` numpy passes.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from sar_flood_pipeline.raster.grid import RasterGrid
from sar_flood_pipeline.raster.kernel import Kernel

STATISTICS = ("mean", "variance", "sum")


def shifted_slices(dr: int, dc: int, height: int, width: int) -> Tuple[Tuple[slice, slice], Tuple[slice, slice]]:
    """Slices pairing output cell ``(i, j)`` with input cell ``(i+dr, j+dc)``.

    Returns ``(out_slices, in_slices)``; both are empty when the offset
    exceeds the grid.
    """
    r0, r1 = max(0, -dr), min(height, height - dr)
    c0, c1 = max(0, -dc), min(width, width - dc)
    r1, c1 = max(r0, r1), max(c0, c1)
    out_sl = (slice(r0, r1), slice(c0, c1))
    in_sl = (slice(r0 + dr, r1 + dr), slice(c0 + dc, c1 + dc))
    return out_sl, in_sl


def reduce_array(
    values: np.ndarray,
    valid: np.ndarray,
    kernel: Kernel,
    statistic: str,
) -> Tuple[np.ndarray, np.ndarray]:
    """Array-level reduction used by :func:`reduce_neighborhood`.

    Args:
        values: ``(H, W)`` float array; invalid cells may hold anything.
        valid: ``(H, W)`` bool mask of usable samples.
        kernel: Weights and anchor.
        statistic: One of ``"mean"``, ``"variance"``, ``"sum"``.

    Returns:
        ``(result, has_samples)``: float64 result (NaN where no sample
        contributed) and a bool mask of cells with at least one sample.
    """
    if statistic not in STATISTICS:
        raise ValueError(f"unknown statistic {statistic!r}; expected one of {STATISTICS}")

    h, w = values.shape
    x = np.where(valid, values, 0.0).astype(np.float64)
    weight_sum = np.zeros((h, w), dtype=np.float64)
    total = np.zeros((h, w), dtype=np.float64)
    offsets = list(kernel.offsets())

    for dr, dc, wt in offsets:
        out_sl, in_sl = shifted_slices(dr, dc, h, w)
        v = valid[in_sl]
        weight_sum[out_sl] += wt * v
        total[out_sl] += wt * x[in_sl]

    has_samples = weight_sum > 0
    if statistic == "sum":
        return np.where(has_samples, total, np.nan), has_samples

    with np.errstate(invalid="ignore", divide="ignore"):
        mean = np.where(has_samples, total / weight_sum, np.nan)
    if statistic == "mean":
        return mean, has_samples

    # Two-pass weighted population variance.
    sq_dev = np.zeros((h, w), dtype=np.float64)
    for dr, dc, wt in offsets:
        out_sl, in_sl = shifted_slices(dr, dc, h, w)
        dev = np.where(valid[in_sl], x[in_sl] - mean[out_sl], 0.0)
        sq_dev[out_sl] += wt * dev * dev
    with np.errstate(invalid="ignore", divide="ignore"):
        var = np.where(has_samples, sq_dev / weight_sum, np.nan)
    return var, has_samples


def reduce_neighborhood(grid: RasterGrid, kernel: Kernel, statistic: str) -> RasterGrid:
    """Weighted *statistic* over *kernel* centred on every cell of *grid*.

    The output keeps the input's validity, further restricted to cells with
    at least one contributing sample.
    """
    result, has_samples = reduce_array(grid.data, grid.valid, kernel, statistic)
    out_valid = grid.valid & has_samples
    return grid.like(np.where(out_valid, result, np.nan), valid=out_valid)


def neighborhood_to_bands(
    values: np.ndarray,
    valid: np.ndarray,
    kernel: Kernel,
) -> Tuple[np.ndarray, np.ndarray]:
    """Stack the value at each non-zero kernel offset as a separate band.

    Returns ``(bands, available)`` each shaped ``(n, H, W)`` where ``n`` is
    the number of non-zero weights in row-major order.  ``available`` is
    False where the offset falls outside the grid or on an invalid cell;
    those band values are NaN.
    """
    h, w = values.shape
    offsets = list(kernel.offsets())
    bands = np.full((len(offsets), h, w), np.nan, dtype=np.float64)
    available = np.zeros((len(offsets), h, w), dtype=bool)
    for i, (dr, dc, _) in enumerate(offsets):
        out_sl, in_sl = shifted_slices(dr, dc, h, w)
        bands[i][out_sl] = values[in_sl]
        available[i][out_sl] = valid[in_sl]
    bands[~available] = np.nan
    return bands, available
