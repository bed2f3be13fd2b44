"""Crop grids to the neighbourhood of a polygon."""

from __future__ import annotations

from typing import Any

from rasterio.transform import Affine
from shapely.geometry import shape
from shapely.geometry.base import BaseGeometry

from sar_flood_pipeline.errors import EmptyInput
from sar_flood_pipeline.raster.grid import RasterGrid


def as_geometry(geometry: Any) -> BaseGeometry:
    """Shapely geometry from a geometry or GeoJSON-like mapping.

    Raises:
        EmptyInput: *geometry* is None (e.g. a feature without geometry).
    """
    if geometry is None:
        raise EmptyInput("feature has no geometry")
    if isinstance(geometry, BaseGeometry):
        return geometry
    return shape(geometry)


def clip_to_geometry(grid: RasterGrid, geometry: Any, pad: int = 0) -> RasterGrid:
    """Sub-grid covering *geometry*'s bounds plus *pad* cells on each side.

    The returned grid's transform is shifted to the window origin, so grids
    clipped with the same geometry and pad stay aligned.

    Raises:
        EmptyInput: the geometry is missing, empty or does not overlap the grid.
    """
    geom = as_geometry(geometry)
    if geom.is_empty:
        raise EmptyInput("cannot clip to an empty geometry")
    row0, row1, col0, col1 = grid.window(geom.bounds, pad)
    if row1 <= row0 or col1 <= col0:
        raise EmptyInput(f"geometry bounds {geom.bounds} do not overlap the grid")

    return RasterGrid(
        data=grid.data[row0:row1, col0:col1],
        valid=grid.valid[row0:row1, col0:col1],
        transform=grid.transform @ Affine.translation(col0, row0),
        crs=grid.crs,
    )
