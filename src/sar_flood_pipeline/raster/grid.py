"""In-memory raster grid with a per-cell validity mask.

Every intermediate image in the pipeline is a :class:`RasterGrid`.  The
georeferencing (affine transform + CRS) is carried along untouched so that
grids produced by one stage can be checked against the next stage's inputs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np
from rasterio.transform import Affine

from sar_flood_pipeline.errors import DimensionMismatch, EmptyInput


def _frozen(arr: np.ndarray) -> np.ndarray:
    out = np.array(arr, copy=True)
    out.flags.writeable = False
    return out


@dataclass(frozen=True, eq=False)
class RasterGrid:
    """Single-band 2-D raster.

    Attributes:
        data: ``(H, W)`` cell values (float32 for imagery, bool for masks).
        valid: ``(H, W)`` bool, False where the cell holds no data.
        transform: Affine pixel-to-CRS transform.
        crs: Coordinate reference system; opaque to the algorithms.
    """

    data: np.ndarray
    valid: np.ndarray
    transform: Affine = Affine.identity()
    crs: Any = None

    def __post_init__(self):
        data = np.asarray(self.data)
        valid = np.asarray(self.valid, dtype=bool)
        if data.ndim != 2:
            raise ValueError(f"RasterGrid data must be 2-D, got shape {data.shape}")
        if valid.shape != data.shape:
            raise DimensionMismatch(
                f"validity mask shape {valid.shape} != data shape {data.shape}"
            )
        object.__setattr__(self, "data", _frozen(data))
        object.__setattr__(self, "valid", _frozen(valid))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_array(
        cls,
        data: np.ndarray,
        valid: Optional[np.ndarray] = None,
        transform: Affine = Affine.identity(),
        crs: Any = None,
        nodata: Optional[float] = None,
    ) -> "RasterGrid":
        """Wrap *data*; cells equal to *nodata* or NaN are marked invalid."""
        data = np.asarray(data)
        if valid is None:
            valid = np.ones(data.shape, dtype=bool)
            if np.issubdtype(data.dtype, np.floating):
                valid &= ~np.isnan(data)
            if nodata is not None:
                valid &= data != nodata
        return cls(data=data, valid=valid, transform=transform, crs=crs)

    def like(self, data: np.ndarray, valid: Optional[np.ndarray] = None) -> "RasterGrid":
        """New grid on the same georeferencing; validity defaults to ours."""
        return RasterGrid(
            data=data,
            valid=self.valid if valid is None else valid,
            transform=self.transform,
            crs=self.crs,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    @property
    def height(self) -> int:
        return self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def pixel_size(self) -> Tuple[float, float]:
        """``(x_size, y_size)`` in CRS units, always positive."""
        return abs(self.transform.a), abs(self.transform.e)

    @property
    def pixel_area(self) -> float:
        x_size, y_size = self.pixel_size
        return x_size * y_size

    @property
    def is_empty(self) -> bool:
        return self.data.size == 0

    def filled(self, value: float = np.nan) -> np.ndarray:
        """Return a writable copy of the data with invalid cells set to *value*."""
        dtype = np.result_type(self.data.dtype, np.asarray(value).dtype)
        out = self.data.astype(dtype, copy=True)
        out[~self.valid] = value
        return out

    def count_valid(self) -> int:
        return int(self.valid.sum())

    def window(self, bounds: Tuple[float, float, float, float], pad: int = 0) -> Tuple[int, int, int, int]:
        """``(row0, row1, col0, col1)`` covering *bounds* plus *pad* cells.

        The window is clipped to the grid and may be empty (``row1 == row0``).
        """
        minx, miny, maxx, maxy = bounds
        inv = ~self.transform
        cols, rows = zip(*(inv @ (x, y) for x in (minx, maxx) for y in (miny, maxy)))
        row0 = max(0, math.floor(min(rows)) - pad)
        row1 = min(self.height, math.ceil(max(rows)) + pad)
        col0 = max(0, math.floor(min(cols)) - pad)
        col1 = min(self.width, math.ceil(max(cols)) + pad)
        return row0, max(row0, row1), col0, max(col0, col1)

    # ------------------------------------------------------------------
    # Contract checks
    # ------------------------------------------------------------------

    def same_footprint(self, other: "RasterGrid") -> bool:
        return (
            self.shape == other.shape
            and self.transform == other.transform
            and self.crs == other.crs
        )

    def __repr__(self) -> str:
        return (
            f"RasterGrid(shape={self.shape}, dtype={self.data.dtype}, "
            f"valid={self.count_valid()}/{self.data.size})"
        )


def check_aligned(*grids: RasterGrid) -> None:
    """Raise :class:`DimensionMismatch` unless all *grids* share a footprint."""
    first = grids[0]
    for g in grids[1:]:
        if not first.same_footprint(g):
            raise DimensionMismatch(
                f"grid footprints differ: {first.shape} @ {tuple(first.transform)[:6]} "
                f"vs {g.shape} @ {tuple(g.transform)[:6]}"
            )


def require_non_empty(grid: RasterGrid, name: str = "raster") -> None:
    """Raise :class:`EmptyInput` for a zero-extent grid."""
    if grid.is_empty:
        raise EmptyInput(f"{name} has zero extent {grid.shape}")
