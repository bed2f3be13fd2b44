import numpy as np
import pytest

from conftest import constant_grid, make_grid
from sar_flood_pipeline.preprocessing.refined_lee import (
    DIRECTION_KERNELS,
    TILE_HALO,
    DirectionLabel,
    direction_labels,
    refined_lee,
)


@pytest.fixture
def speckled(rng):
    """Single-look-ish gamma speckle over a unit-mean surface."""
    looks = 4.4
    return make_grid(rng.gamma(looks, 1.0 / looks, size=(48, 48)))


def test_constant_image_is_unchanged():
    g = constant_grid(2.0, (12, 12))
    out = refined_lee(g)
    np.testing.assert_array_equal(out.data, g.data)


def test_preserves_shape_and_validity(rng, speckled):
    valid = rng.random(speckled.shape) > 0.05
    g = make_grid(speckled.data, valid=valid)
    out = refined_lee(g)
    assert out.shape == g.shape
    np.testing.assert_array_equal(out.valid, g.valid)
    assert np.isfinite(out.data[valid]).all()
    assert np.isnan(out.data[~valid]).all()
    assert out.transform == g.transform


def test_reduces_speckle(speckled):
    out = refined_lee(speckled)
    inner = (slice(4, -4), slice(4, -4))
    assert out.data[inner].std() < 0.6 * speckled.data[inner].std()
    assert out.data[inner].mean() == pytest.approx(speckled.data[inner].mean(), rel=0.1)


def test_step_edge_preserved_away_from_edge():
    data = np.ones((16, 16))
    data[:, 8:] = 10.0
    out = refined_lee(make_grid(data))
    # Fully homogeneous 7x7 windows on either side are untouched.
    np.testing.assert_array_equal(out.data[:, :5], data[:, :5])
    np.testing.assert_array_equal(out.data[:, 11:], data[:, 11:])
    # Near the edge the estimate stays between the two levels.
    assert out.data.min() >= 1.0 - 1e-9
    assert out.data.max() <= 10.0 + 1e-9


def test_tiled_matches_untiled(speckled):
    whole = refined_lee(speckled)
    tiled = refined_lee(speckled, tile_size=10)
    np.testing.assert_allclose(tiled.data, whole.data, rtol=1e-12)
    assert TILE_HALO == 3


def test_input_dtype_kept_for_float32():
    g = make_grid(np.ones((8, 8)))
    g32 = type(g)(data=g.data.astype(np.float32), valid=g.valid)
    assert refined_lee(g32).data.dtype == np.float32


def test_direction_kernels_cover_all_labels():
    assert sorted(DIRECTION_KERNELS) == list(range(1, 9))
    for kernel in DIRECTION_KERNELS.values():
        assert kernel.shape == (7, 7)
        # Every sub-window contains the pixel itself.
        assert kernel.weights[3, 3] == 1


def test_labels_constant_and_invalid():
    valid = np.ones((9, 9), dtype=bool)
    valid[0, 0] = False
    labels = direction_labels(make_grid(np.full((9, 9), 3.0), valid=valid))
    assert labels.data[0, 0] == DirectionLabel.UNLABELED
    # Flat windows: first gradient band wins, centre test fails -> complement.
    assert (labels.data[valid] == DirectionLabel.NORTH).all()


def test_labels_horizontal_edge():
    data = np.ones((12, 12))
    data[:5, :] = 10.0
    labels = direction_labels(make_grid(data))
    # Just below a bright band: filter from the homogeneous lower half-window.
    assert labels.data[6, 6] == DirectionLabel.SOUTH


def test_labels_are_in_range(speckled):
    labels = direction_labels(speckled)
    assert labels.data.min() >= 1
    assert labels.data.max() <= 8


def test_direction_kernels_turn_clockwise():
    west = DIRECTION_KERNELS[DirectionLabel.WEST].weights
    assert west[:, :4].all()
    assert not west[:, 4:].any()
    east = DIRECTION_KERNELS[DirectionLabel.EAST].weights
    assert east[:, 3:].all()
    assert not east[:, :3].any()
    north_west = DIRECTION_KERNELS[DirectionLabel.NORTH_WEST].weights
    assert north_west[0, 0] == 1 and north_west[6, 6] == 0
    south_east = DIRECTION_KERNELS[DirectionLabel.SOUTH_EAST].weights
    assert south_east[6, 6] == 1 and south_east[0, 0] == 0


def _low_variance_half_window():
    """7x7 image whose centre pixel filters from a quiet lower half-window.

    The upper rows are a high-variance checkerboard, so the noise estimate
    (4/15) exceeds the relative variance of the lower half-window (mean
    1.25, variance 3/16) and the raw adaptive weight is -55/57.
    """
    data = np.ones((7, 7))
    rows, cols = np.indices((2, 7))
    data[:2] = np.where((rows + cols) % 2 == 0, 20.0, 0.0)
    data[2] = 10.0
    data[3] = 2.0
    return make_grid(data)


def test_clamped_weight_stays_between_window_mean_and_pixel():
    g = _low_variance_half_window()
    assert direction_labels(g).data[3, 3] == DirectionLabel.SOUTH
    out = refined_lee(g, clamp_weight=True)
    assert out.data[3, 3] == pytest.approx(1.25)


def test_unclamped_weight_overshoots_past_window_mean():
    g = _low_variance_half_window()
    out = refined_lee(g, clamp_weight=False)
    # Pixel value 2.0 sits above the window mean; the estimate lands below it.
    assert out.data[3, 3] == pytest.approx(10 / 19)
    assert out.data[3, 3] < 1.25


@pytest.mark.parametrize("clamp_weight", [True, False])
def test_flat_directional_window_gives_zero_weight(clamp_weight):
    data = np.ones((16, 16))
    data[:, 8:] = 10.0
    out = refined_lee(make_grid(data), clamp_weight=clamp_weight)
    assert np.isfinite(out.data).all()
    np.testing.assert_array_equal(out.data[:, :5], data[:, :5])
    np.testing.assert_array_equal(out.data[:, 11:], data[:, 11:])


def test_clamped_output_within_window_range(speckled):
    from scipy import ndimage

    out = refined_lee(speckled, clamp_weight=True)
    lo = ndimage.minimum_filter(speckled.data, size=7, mode="nearest")
    hi = ndimage.maximum_filter(speckled.data, size=7, mode="nearest")
    assert (out.data >= lo - 1e-12).all()
    assert (out.data <= hi + 1e-12).all()
