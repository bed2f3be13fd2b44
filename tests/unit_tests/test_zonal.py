import numpy as np
import pytest
from rasterio.crs import CRS
from rasterio.transform import Affine
from shapely.geometry import box, mapping

from conftest import make_grid
from sar_flood_pipeline.errors import AggregationTooLarge, DegradedAggregationWarning
from sar_flood_pipeline.zonal.aggregate import aggregate_zonal

# 10 m pixels over (0, 0) - (100, 100).
TRANSFORM_10 = Affine(10.0, 0.0, 0.0, 0.0, -10.0, 100.0)


def _flood(data, valid=None):
    data = np.asarray(data, dtype=bool)
    return make_grid(data, valid=valid, transform=TRANSFORM_10).like(data)


def test_full_cover_native_scale():
    result = aggregate_zonal(_flood(np.ones((10, 10))), box(0, 0, 100, 100), scale=10, unit_id="a")
    assert result.unit_id == "a"
    assert result.pixel_count == 100
    assert result.area == pytest.approx(100 * 100.0)
    assert result.scale == 10
    assert not result.degraded


def test_pixel_centres_decide_membership():
    result = aggregate_zonal(_flood(np.ones((10, 10))), box(0, 0, 50, 100), scale=10)
    assert result.pixel_count == 50


def test_accepts_geojson_mapping():
    result = aggregate_zonal(_flood(np.ones((10, 10))), mapping(box(0, 0, 50, 100)), scale=10)
    assert result.pixel_count == 50


def test_coarser_scale_counts_whole_blocks():
    result = aggregate_zonal(_flood(np.ones((10, 10))), box(0, 0, 60, 100), scale=20)
    assert result.scale == 20
    assert result.pixel_count == 60


def test_invalid_and_unflagged_not_counted():
    data = np.ones((10, 10), dtype=bool)
    data[0, :] = False
    valid = np.ones((10, 10), dtype=bool)
    valid[1, :] = False
    result = aggregate_zonal(_flood(data, valid=valid), box(0, 0, 100, 100), scale=10)
    assert result.pixel_count == 80


def test_polygon_outside_grid():
    result = aggregate_zonal(_flood(np.ones((10, 10))), box(500, 500, 600, 600), scale=10)
    assert result.pixel_count == 0
    assert result.area == 0.0


def test_best_effort_coarsens_and_flags():
    with pytest.warns(DegradedAggregationWarning):
        result = aggregate_zonal(
            _flood(np.ones((10, 10))), box(-50, -50, 150, 150), scale=10, max_pixels=10,
        )
    assert result.degraded
    assert result.scale == 40
    assert result.pixel_count == 100


def test_without_best_effort_raises():
    with pytest.raises(AggregationTooLarge):
        aggregate_zonal(
            _flood(np.ones((10, 10))), box(0, 0, 100, 100),
            scale=10, max_pixels=10, best_effort=False,
        )


def test_geographic_grid_takes_scale_in_metres():
    # 0.0001 degree pixels, as in a typical EPSG:4326 backscatter export.
    transform = Affine(0.0001, 0.0, 10.0, 0.0, -0.0001, 50.0)
    data = np.ones((10, 10), dtype=bool)
    mask = make_grid(data, transform=transform, crs=CRS.from_epsg(4326)).like(data)
    result = aggregate_zonal(mask, box(10.0, 49.999, 10.001, 50.0))
    assert result.pixel_count == 100
    assert not result.degraded
    # 150 m is ~13 pixels; the whole 10 pixel window becomes one block.
    assert result.scale == pytest.approx(10 * 0.0001 * 111_319.49)


def test_scale_larger_than_polygon_is_capped():
    result = aggregate_zonal(_flood(np.ones((10, 10))), box(0, 0, 100, 100), scale=1000)
    assert result.pixel_count == 100
    assert result.scale == 100


def test_blocks_start_at_polygon_window():
    data = np.zeros((10, 10), dtype=bool)
    data[3:7, 3:7] = True
    result = aggregate_zonal(_flood(data), box(30, 30, 70, 70), scale=40)
    assert result.scale == 40
    assert result.pixel_count == 16


def test_max_pixels_below_one_rejected():
    with pytest.raises(ValueError):
        aggregate_zonal(_flood(np.ones((10, 10))), box(0, 0, 100, 100), scale=10, max_pixels=0)


def test_missing_or_empty_geometry_counts_nothing():
    from shapely.geometry import Polygon

    mask = _flood(np.ones((10, 10)))
    assert aggregate_zonal(mask, None, scale=10).pixel_count == 0
    assert aggregate_zonal(mask, Polygon(), scale=10).pixel_count == 0


def test_best_effort_stops_at_single_block():
    with pytest.warns(DegradedAggregationWarning):
        result = aggregate_zonal(_flood(np.ones((10, 10))), box(0, 0, 100, 100), scale=10, max_pixels=1)
    assert result.scale == 100
    assert result.pixel_count == 100
