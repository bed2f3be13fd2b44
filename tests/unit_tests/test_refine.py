import numpy as np

from conftest import make_grid
from sar_flood_pipeline.config import FloodConfig
from sar_flood_pipeline.detection.refine import (
    connected_pixel_count,
    exclude_permanent_water,
    exclude_small_regions,
    exclude_steep_terrain,
    refine_flood_mask,
)


def _mask(data, valid=None):
    data = np.asarray(data, dtype=bool)
    return make_grid(data, valid=valid).like(data)


def test_permanent_water_threshold_inclusive():
    mask = _mask(np.ones((1, 4)))
    season_valid = np.array([[True, True, True, False]])
    seasonality = make_grid([[4, 5, 12, 12]], valid=season_valid)
    out = exclude_permanent_water(mask, seasonality, min_months=5)
    # No seasonality data leaves the cell alone.
    np.testing.assert_array_equal(out.data, [[True, False, False, True]])


def test_slope_threshold_strict_and_missing_removed():
    mask = _mask(np.ones((1, 4)))
    slope = make_grid([[0.0, 4.99, 5.0, 1.0]], valid=np.array([[True, True, True, False]]))
    out = exclude_steep_terrain(mask, slope, max_slope=5.0)
    np.testing.assert_array_equal(out.data, [[True, True, False, False]])


def test_connected_count_is_capped():
    counts = connected_pixel_count(_mask(np.ones((10, 10))), max_size=25)
    assert (counts.data == 25).all()


def test_connectivity_modes():
    data = np.zeros((4, 4), dtype=bool)
    data[0, 0] = data[1, 1] = True
    eight = connected_pixel_count(_mask(data), eight_connected=True)
    four = connected_pixel_count(_mask(data), eight_connected=False)
    assert eight.data[0, 0] == 2
    assert four.data[0, 0] == 1
    assert eight.data[3, 3] == 0


def test_isolated_pixel_removed():
    data = np.zeros((5, 5), dtype=bool)
    data[2, 2] = True
    out = exclude_small_regions(_mask(data), min_pixels=1)
    assert not out.data.any()


def test_region_size_boundary():
    data = np.zeros((8, 12), dtype=bool)
    data[1, 0:8] = True    # 8 pixels: removed
    data[5, 0:9] = True    # 9 pixels: kept
    out = exclude_small_regions(_mask(data), min_pixels=8, max_size=25)
    assert not out.data[1].any()
    np.testing.assert_array_equal(out.data[5], data[5])


def test_refined_is_subset_of_candidate(rng):
    shape = (30, 30)
    candidate = _mask(rng.random(shape) > 0.3)
    seasonality = make_grid(rng.integers(0, 13, size=shape))
    slope = make_grid(rng.uniform(0, 10, size=shape))
    refined = refine_flood_mask(candidate, seasonality, slope, FloodConfig())
    assert not (refined.data & ~candidate.data).any()
    assert refined.data.sum() <= candidate.data.sum()


def test_refine_order_and_defaults():
    shape = (6, 6)
    candidate = _mask(np.ones(shape))
    seasonality = make_grid(np.zeros(shape))
    slope = make_grid(np.zeros(shape))
    refined = refine_flood_mask(candidate, seasonality, slope)
    assert refined.data.all()

    # Steep cells split the block into regions too small to keep.
    steep = np.zeros(shape)
    steep[:, 2] = steep[:, 4] = steep[3, :] = 30.0
    refined = refine_flood_mask(candidate, seasonality, make_grid(steep))
    assert not refined.data.any()


def test_min_pixels_above_cap_removes_everything():
    out = exclude_small_regions(_mask(np.ones((6, 6))), min_pixels=30, max_size=25)
    assert not out.data.any()
