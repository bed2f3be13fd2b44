import numpy as np
import pytest

from sar_flood_pipeline.preprocessing.refined_lee import DIAG_KERNEL, RECT_KERNEL
from sar_flood_pipeline.raster.kernel import Kernel


@pytest.mark.parametrize("kernel", [
    RECT_KERNEL,
    DIAG_KERNEL,
    Kernel(weights=np.arange(15).reshape(3, 5) + 1, anchor=(0, 1)),
])
def test_four_rotations_return_original(kernel):
    rotated = kernel
    for _ in range(4):
        rotated = rotated.rotate(1)
    assert rotated == kernel
    assert kernel.rotate(4) == kernel


def test_rotate_does_not_mutate():
    before = RECT_KERNEL.weights.copy()
    RECT_KERNEL.rotate(1)
    np.testing.assert_array_equal(RECT_KERNEL.weights, before)
    assert not RECT_KERNEL.weights.flags.writeable


def test_positive_rotation_turns_counter_clockwise():
    right = RECT_KERNEL.rotate(1).weights
    assert right[:, 3:].all()
    assert not right[:, :3].any()
    left = RECT_KERNEL.rotate(-1).weights
    assert left[:, :4].all()
    assert not left[:, 4:].any()
    north = RECT_KERNEL.rotate(2).weights
    assert north[:4, :].all()
    assert not north[4:, :].any()


def test_negative_rotation():
    assert RECT_KERNEL.rotate(-1) == RECT_KERNEL.rotate(3)


def test_anchor_follows_rotation():
    k = Kernel(weights=np.ones((3, 5)), anchor=(0, 1))
    r = k.rotate(1)
    assert r.shape == (5, 3)
    # The anchor cell keeps its weight position after rotation.
    assert r.anchor == (3, 0)


def test_even_kernel_rejected():
    with pytest.raises(ValueError):
        Kernel.fixed(np.ones((4, 4)))


def test_offsets_and_radius():
    k = Kernel.square(3)
    offsets = [(dr, dc) for dr, dc, _ in k.offsets()]
    assert offsets[0] == (-1, -1)
    assert offsets[-1] == (1, 1)
    assert len(offsets) == 9
    assert k.radius == 1
    assert RECT_KERNEL.radius == 3
