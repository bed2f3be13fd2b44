"""Read single-band GeoTIFFs into :class:`RasterGrid` objects."""

from __future__ import annotations

import numpy as np
import rasterio
from loguru import logger

from sar_flood_pipeline.raster.grid import RasterGrid


def read_grid(path: str, band: int = 1) -> RasterGrid:
    """Load *band* of *path*; the file's nodata value and NaNs become invalid."""
    with rasterio.open(path) as src:
        data = src.read(band)
        valid = src.read_masks(band) > 0
        transform = src.transform
        crs = src.crs
    if np.issubdtype(data.dtype, np.floating):
        valid &= ~np.isnan(data)
    logger.debug(f"Read {path}: {data.shape} {data.dtype}, {int(valid.sum())} valid")
    return RasterGrid(data=data, valid=valid, transform=transform, crs=crs)
