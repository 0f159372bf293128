"""
Spatial Functions

A spatial function maps a physical point to a scalar. The rasterizer
evaluates one at the physical point of every voxel to synthesize a grid
analytically.

Each function defines a membership test; the scalar it produces is
``inside_value`` for members and ``outside_value`` otherwise. With
supersampling the membership is averaged over sub-voxel sample offsets,
which gives a smooth (antialiased) boundary.
"""

from typing import Sequence
import math
import numpy as np
from numba import njit


@njit(cache=True)
def _sphere_coverage(
    points: np.ndarray,
    offsets: np.ndarray,
    center: np.ndarray,
    radius_sq: float
) -> np.ndarray:
    """
    Fraction of sample positions inside the sphere, per point.

    Args:
        points: (M, N) physical points
        offsets: (K, N) sample offsets added to each point
        center: (N,) sphere center
        radius_sq: Squared radius

    Returns:
        (M,) float64 coverage in [0, 1]
    """
    m, n = points.shape
    k = offsets.shape[0]
    coverage = np.zeros(m, dtype=np.float64)
    for i in range(m):
        hits = 0
        for s in range(k):
            dist_sq = 0.0
            for d in range(n):
                delta = points[i, d] + offsets[s, d] - center[d]
                dist_sq += delta * delta
            if dist_sq <= radius_sq:
                hits += 1
        coverage[i] = hits / k
    return coverage


class SpatialFunction:
    """
    Base class for closed-form spatial predicates.

    Subclasses implement ``coverage``; evaluation and single-point calls
    are built on it.
    """

    def __init__(self, inside_value: float = 1.0, outside_value: float = 0.0):
        self.inside_value = float(inside_value)
        self.outside_value = float(outside_value)

    @property
    def dimension(self) -> int:
        raise NotImplementedError

    def coverage(self, points: np.ndarray, offsets: np.ndarray) -> np.ndarray:
        """Fraction of ``points + offsets`` samples inside, per point."""
        raise NotImplementedError

    def evaluate(self, points: np.ndarray, offsets: np.ndarray = None) -> np.ndarray:
        """
        Evaluate at a block of physical points.

        Args:
            points: (M, N) physical points
            offsets: Optional (K, N) supersampling offsets; without them
                the membership test is binary

        Returns:
            (M,) float64 values between outside_value and inside_value
        """
        points = np.ascontiguousarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != self.dimension:
            raise ValueError(
                f"Expected points of shape (M, {self.dimension}), got {points.shape}"
            )
        if offsets is None:
            offsets = np.zeros((1, self.dimension), dtype=np.float64)
        offsets = np.ascontiguousarray(offsets, dtype=np.float64)

        fraction = self.coverage(points, offsets)
        return self.outside_value + fraction * (self.inside_value - self.outside_value)

    def __call__(self, point: Sequence[float]) -> float:
        """Evaluate at a single physical point (binary membership)."""
        return float(self.evaluate(np.asarray(point, dtype=np.float64)[None, :])[0])


class SphereSpatialFunction(SpatialFunction):
    """
    N-dimensional sphere (circle in 2D) in physical coordinates.

    A point is inside when its distance to ``center`` is at most
    ``radius``.
    """

    def __init__(
        self,
        center: Sequence[float],
        radius: float,
        inside_value: float = 1.0,
        outside_value: float = 0.0
    ):
        super().__init__(inside_value, outside_value)
        self.center = np.asarray(center, dtype=np.float64)
        if self.center.ndim != 1 or self.center.size == 0:
            raise ValueError(f"Center must be a non-empty vector, got {center}")
        if not (math.isfinite(radius) and radius > 0):
            raise ValueError(f"Radius must be positive and finite, got {radius}")
        self.radius = float(radius)

    @property
    def dimension(self) -> int:
        return int(self.center.size)

    def coverage(self, points: np.ndarray, offsets: np.ndarray) -> np.ndarray:
        return _sphere_coverage(points, offsets, self.center, self.radius * self.radius)

    def __repr__(self) -> str:
        return (
            f"SphereSpatialFunction(center={tuple(self.center)}, radius={self.radius})"
        )


def supersample_offsets(spacing: Sequence[float], factor: int) -> np.ndarray:
    """
    Sub-voxel sample offsets for antialiasing.

    The voxel around each physical point is split into ``factor`` equal
    parts per axis; the offsets point at the centers of those parts.

    Args:
        spacing: Voxel size per axis
        factor: Samples per axis (1 = single sample at the voxel point)

    Returns:
        (factor**N, N) float64 offsets
    """
    if factor < 1:
        raise ValueError(f"Supersampling factor must be >= 1, got {factor}")
    spacing = np.asarray(spacing, dtype=np.float64)
    steps = (np.arange(factor, dtype=np.float64) + 0.5) / factor - 0.5
    axes = [steps * s for s in spacing]
    mesh = np.meshgrid(*axes, indexing="ij")
    return np.stack([m.ravel() for m in mesh], axis=-1)
