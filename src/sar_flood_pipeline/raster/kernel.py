"""Fixed-weight neighborhood kernels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True, eq=False)
class Kernel:
    """Immutable 2-D weight matrix anchored on the output cell.

    ``weights[r, c]`` applies to the input cell at offset
    ``(r - anchor[0], c - anchor[1])`` from the output cell.
    """

    weights: np.ndarray
    anchor: Tuple[int, int]

    def __post_init__(self):
        w = np.array(self.weights, dtype=np.float64, copy=True)
        if w.ndim != 2:
            raise ValueError(f"kernel weights must be 2-D, got shape {w.shape}")
        if w.shape[0] % 2 == 0 or w.shape[1] % 2 == 0:
            raise ValueError(f"kernel dimensions must be odd, got {w.shape}")
        r, c = self.anchor
        if not (0 <= r < w.shape[0] and 0 <= c < w.shape[1]):
            raise ValueError(f"anchor {self.anchor} outside kernel of shape {w.shape}")
        w.flags.writeable = False
        object.__setattr__(self, "weights", w)
        object.__setattr__(self, "anchor", (int(r), int(c)))

    @classmethod
    def fixed(cls, weights: Sequence[Sequence[float]], anchor: Optional[Tuple[int, int]] = None) -> "Kernel":
        """Kernel from explicit weights; anchor defaults to the centre."""
        w = np.asarray(weights, dtype=np.float64)
        if anchor is None:
            anchor = (w.shape[0] // 2, w.shape[1] // 2)
        return cls(weights=w, anchor=anchor)

    @classmethod
    def square(cls, size: int) -> "Kernel":
        """``size x size`` kernel of ones, centred."""
        return cls.fixed(np.ones((size, size)))

    @property
    def shape(self) -> Tuple[int, int]:
        return self.weights.shape

    @property
    def radius(self) -> int:
        """Largest distance from the anchor to any non-zero weight."""
        return max((max(abs(dr), abs(dc)) for dr, dc, _ in self.offsets()), default=0)

    def offsets(self) -> Iterator[Tuple[int, int, float]]:
        """Yield ``(d_row, d_col, weight)`` for every non-zero weight, row-major."""
        ar, ac = self.anchor
        for r, c in zip(*np.nonzero(self.weights)):
            yield int(r) - ar, int(c) - ac, float(self.weights[r, c])

    def rotate(self, k: int = 1) -> "Kernel":
        """Return a copy rotated ``90 * k`` degrees counter-clockwise.

        Rotation is in array (row-down) orientation; ``k`` may be negative.
        ``rotate(4)`` returns a kernel equal to this one.
        """
        k = k % 4
        h, w = self.weights.shape
        r, c = self.anchor
        # Where the anchor cell lands after k quarter turns (np.rot90 semantics).
        for _ in range(k):
            r, c = w - 1 - c, r
            h, w = w, h
        return Kernel(weights=np.rot90(self.weights, k), anchor=(r, c))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Kernel):
            return NotImplemented
        return self.anchor == other.anchor and np.array_equal(self.weights, other.weights)

    def __hash__(self) -> int:
        return hash((self.anchor, self.weights.shape, self.weights.tobytes()))
