"""
Voxel Grid Data Structures

This module provides:
- Grid: Dense N-dimensional scalar voxel grid with physical geometry
- IndexSpace: Lazy, restartable walk over every index of an extent

Array layout: ``Grid.data`` has shape ``extent``, so axis i of the array
is axis i of the grid (x first). Physical coordinates follow
    point[i] = origin[i] + index[i] * spacing[i]

Memory consideration: a 512³ float64 grid is 1 GB; grids are expected to
fit in memory.
"""

from dataclasses import dataclass, field
from itertools import product
from typing import Iterator, Optional, Sequence, Tuple
import logging
import math
import numpy as np

from .errors import ErrorKind, Result
from .pixel_types import ValueType, cast_to_value_type, value_type_from_dtype


logger = logging.getLogger(__name__)


class IndexSpace:
    """
    All voxel indices of an extent, in C order (last axis varies fastest).

    Iteration is lazy and restartable: each call to ``iter()`` starts a
    fresh walk from the first index. The order does not depend on how the
    voxels are stored, so a consumer may split the walk into batches or
    ranges without changing which voxels it visits.
    """

    def __init__(self, extent: Sequence[int]):
        self.extent = tuple(int(n) for n in extent)

    def __len__(self) -> int:
        return int(np.prod(self.extent, dtype=np.int64))

    def __iter__(self) -> Iterator[Tuple[int, ...]]:
        return product(*(range(n) for n in self.extent))

    def batches(self, batch_size: int = 65536) -> Iterator[np.ndarray]:
        """
        Walk the indices in blocks.

        Args:
            batch_size: Maximum number of indices per block

        Yields:
            int64 arrays of shape (M, N), M <= batch_size, in C order
        """
        total = len(self)
        for start in range(0, total, batch_size):
            stop = min(start + batch_size, total)
            flat = np.arange(start, stop, dtype=np.int64)
            yield np.stack(np.unravel_index(flat, self.extent), axis=-1)


@dataclass(eq=False)
class Grid:
    """
    Dense N-dimensional voxel grid of a single scalar value type.

    N is fixed when the grid is created; extent, spacing and origin all
    have N entries.
    """

    data: np.ndarray
    spacing: Optional[Tuple[float, ...]] = None
    origin: Optional[Tuple[float, ...]] = None
    value_type: ValueType = field(init=False)

    def __post_init__(self):
        value_type = value_type_from_dtype(self.data.dtype)
        if value_type is None:
            raise ValueError(f"Unsupported voxel dtype: {self.data.dtype}")
        self.value_type = value_type

        n = self.data.ndim
        if self.spacing is None:
            self.spacing = (1.0,) * n
        if self.origin is None:
            self.origin = (0.0,) * n
        self.spacing = tuple(float(s) for s in self.spacing)
        self.origin = tuple(float(o) for o in self.origin)

        if len(self.spacing) != n or len(self.origin) != n:
            raise ValueError(
                f"Grid of dimension {n} needs {n} spacing and origin entries, "
                f"got {len(self.spacing)} and {len(self.origin)}"
            )
        if not all(math.isfinite(s) and s > 0 for s in self.spacing):
            raise ValueError(f"Spacing must be positive and finite: {self.spacing}")

    @classmethod
    def allocate(
        cls,
        extent: Sequence[int],
        value_type: ValueType,
        spacing: Optional[Sequence[float]] = None,
        origin: Optional[Sequence[float]] = None
    ) -> Result:
        """
        Allocate an uninitialized grid.

        Args:
            extent: Voxel count per axis (all positive)
            value_type: Voxel value type
            spacing: Physical voxel size per axis (default 1.0)
            origin: Physical position of index 0 (default zeros)

        Returns:
            Result holding the Grid, or an InvalidArgument /
            AllocationFailure error
        """
        extent = tuple(int(n) for n in extent)
        if not extent or any(n <= 0 for n in extent):
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT,
                f"Extent must be a non-empty list of positive sizes, got {extent}"
            )

        try:
            data = np.empty(extent, dtype=value_type.dtype)
        except (MemoryError, ValueError):
            # numpy raises ValueError when the byte count overflows its index type
            nbytes = math.prod(extent) * value_type.dtype.itemsize
            return Result.failure(
                ErrorKind.ALLOCATION_FAILURE,
                f"Cannot allocate {nbytes} bytes for a {extent} {value_type.value} grid"
            )

        try:
            grid = cls(data, spacing=spacing, origin=origin)
        except ValueError as e:
            return Result.failure(ErrorKind.INVALID_ARGUMENT, str(e))

        logger.debug("Allocated %s grid of extent %s", value_type.value, extent)
        return Result.success(grid)

    @property
    def dimension(self) -> int:
        return self.data.ndim

    @property
    def extent(self) -> Tuple[int, ...]:
        """Voxel count per axis."""
        return tuple(self.data.shape)

    @property
    def voxel_count(self) -> int:
        return int(self.data.size)

    def indices(self) -> IndexSpace:
        """Index space covering this grid."""
        return IndexSpace(self.extent)

    def physical_point(self, index: Sequence[int]) -> np.ndarray:
        """Physical coordinates of one voxel index."""
        return (
            np.asarray(self.origin, dtype=np.float64)
            + np.asarray(index, dtype=np.float64) * np.asarray(self.spacing, dtype=np.float64)
        )

    def physical_points(self, indices: np.ndarray) -> np.ndarray:
        """
        Physical coordinates of a block of voxel indices.

        Each point is computed directly from its own index.

        Args:
            indices: Integer array of shape (M, N)

        Returns:
            float64 array of shape (M, N)
        """
        origin = np.asarray(self.origin, dtype=np.float64)
        spacing = np.asarray(self.spacing, dtype=np.float64)
        return origin + indices.astype(np.float64) * spacing

    def store(self, indices: np.ndarray, values: np.ndarray):
        """
        Store values at a block of indices, cast to the grid's value type.

        Args:
            indices: Integer array of shape (M, N)
            values: Real array of shape (M,)
        """
        self.data[tuple(indices.T)] = cast_to_value_type(values, self.value_type)

    def same_geometry(self, other: "Grid") -> bool:
        """True if both grids have the same dimension and extent."""
        return self.extent == other.extent

    def astype(self, value_type: ValueType) -> "Grid":
        """Copy of this grid cast to another value type."""
        return Grid(
            cast_to_value_type(self.data, value_type),
            spacing=self.spacing,
            origin=self.origin
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return (
            self.value_type == other.value_type
            and self.spacing == other.spacing
            and self.origin == other.origin
            and np.array_equal(self.data, other.data)
        )
