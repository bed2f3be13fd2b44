"""Raster grids, kernels and neighborhood reductions."""

from sar_flood_pipeline.raster.grid import RasterGrid, check_aligned
from sar_flood_pipeline.raster.kernel import Kernel
from sar_flood_pipeline.raster.neighborhood import reduce_neighborhood

__all__ = [
    "Kernel",
    "RasterGrid",
    "check_aligned",
    "reduce_neighborhood",
]
