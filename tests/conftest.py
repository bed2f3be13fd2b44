"""Shared grid builders for the test suite."""

import numpy as np
import pytest
from rasterio.transform import Affine

from sar_flood_pipeline.raster.grid import RasterGrid

# 150 m pixels, north-up, origin at (0, 1500).
TRANSFORM_150 = Affine(150.0, 0.0, 0.0, 0.0, -150.0, 1500.0)


def make_grid(data, valid=None, transform=Affine.identity(), crs=None):
    data = np.asarray(data, dtype=np.float64)
    if valid is None:
        valid = np.ones(data.shape, dtype=bool)
    return RasterGrid(data=data, valid=valid, transform=transform, crs=crs)


def constant_grid(value, shape, transform=Affine.identity()):
    return make_grid(np.full(shape, value, dtype=np.float64), transform=transform)


@pytest.fixture
def rng():
    return np.random.default_rng(42)
