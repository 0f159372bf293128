"""
Analytic Grid Synthesis

Rasterization fills a grid from a spatial function: every voxel index is
mapped to its physical point, the function is evaluated there, and the
result is stored with the grid's casting policy.

The walk over the grid comes from IndexSpace in fixed-size batches, so
memory stays bounded for large grids while each point is still computed
from its own index (no incremental stepping, hence no drift).

This module also defines the sphere synthesis operation and its dispatch
matrix: every supported value type in 2D and 3D.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union
import logging
import math

from .dispatch import DispatchKey, DispatchTable
from .errors import ErrorKind, Result
from .formats import write_grid
from .grid import Grid
from .pixel_types import ValueType
from .spatial import SpatialFunction, SphereSpatialFunction, supersample_offsets


logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 65536


def rasterize(
    grid: Grid,
    function: SpatialFunction,
    supersampling: int = 1,
    batch_size: int = DEFAULT_BATCH_SIZE
) -> Grid:
    """
    Overwrite every voxel of a grid with a spatial function's value.

    Args:
        grid: Grid to fill (modified in place)
        function: Spatial function of the grid's dimension
        supersampling: Samples per axis per voxel; 1 gives a binary
            membership test, more gives an antialiased boundary
        batch_size: Number of voxels evaluated per block

    Returns:
        The same grid, for chaining
    """
    if function.dimension != grid.dimension:
        raise ValueError(
            f"{function.dimension}D function cannot fill a {grid.dimension}D grid"
        )

    offsets = None
    if supersampling > 1:
        offsets = supersample_offsets(grid.spacing, supersampling)

    visited = 0
    for indices in grid.indices().batches(batch_size):
        points = grid.physical_points(indices)
        grid.store(indices, function.evaluate(points, offsets))
        visited += len(indices)

    logger.debug("Rasterized %d voxels with %r", visited, function)
    return grid


@dataclass
class SphereParameters:
    """Inputs of sphere synthesis, in physical units where applicable."""
    extent: Sequence[int]
    center: Sequence[float]
    radius: float
    spacing: Optional[Sequence[float]] = None
    origin: Optional[Sequence[float]] = None
    inside_value: float = 1.0
    outside_value: float = 0.0
    supersampling: int = 1

    def check(self, dimension: int) -> Result:
        """
        Validate against a dimension.

        Vectors longer than the dimension are truncated; shorter ones are
        an InvalidArgument error.

        Returns:
            Result holding the truncated parameters
        """
        vectors = {
            "size": self.extent,
            "center": self.center,
            "spacing": self.spacing if self.spacing is not None else [1.0] * dimension,
            "origin": self.origin if self.origin is not None else [0.0] * dimension,
        }
        for name, vector in vectors.items():
            if len(vector) < dimension:
                return Result.failure(
                    ErrorKind.INVALID_ARGUMENT,
                    f"{name} needs {dimension} values, got {len(vector)}"
                )

        if not (math.isfinite(self.radius) and self.radius > 0):
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT,
                f"radius must be positive and finite, got {self.radius}"
            )
        if not all(math.isfinite(c) for c in vectors["center"][:dimension]):
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT,
                f"center must be finite, got {list(vectors['center'][:dimension])}"
            )
        if self.supersampling < 1:
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT,
                f"supersampling must be at least 1, got {self.supersampling}"
            )
        if not all(math.isfinite(s) and s > 0 for s in vectors["spacing"][:dimension]):
            return Result.failure(
                ErrorKind.INVALID_ARGUMENT,
                f"spacing must be positive and finite, got {list(vectors['spacing'][:dimension])}"
            )

        return Result.success(SphereParameters(
            extent=tuple(int(n) for n in vectors["size"][:dimension]),
            center=tuple(float(c) for c in vectors["center"][:dimension]),
            radius=float(self.radius),
            spacing=tuple(float(s) for s in vectors["spacing"][:dimension]),
            origin=tuple(float(o) for o in vectors["origin"][:dimension]),
            inside_value=self.inside_value,
            outside_value=self.outside_value,
            supersampling=int(self.supersampling),
        ))


def synthesize_sphere(key: DispatchKey, params: SphereParameters) -> Result:
    """
    Build a sphere grid in memory.

    Returns:
        Result holding the Grid, or an InvalidArgument /
        AllocationFailure error
    """
    checked = params.check(key.dimension)
    if not checked.ok:
        return checked
    params = checked.value

    allocated = Grid.allocate(params.extent, key.value_type, params.spacing, params.origin)
    if not allocated.ok:
        return allocated
    grid = allocated.value

    sphere = SphereSpatialFunction(
        params.center,
        params.radius,
        inside_value=params.inside_value,
        outside_value=params.outside_value
    )
    return Result.success(rasterize(grid, sphere, params.supersampling))


def create_sphere_impl(
    key: DispatchKey,
    params: SphereParameters,
    output_path: Union[str, Path]
) -> Result:
    """Synthesize a sphere grid for one (type, dimension) cell and write it."""
    synthesized = synthesize_sphere(key, params)
    if not synthesized.ok:
        return synthesized
    grid = synthesized.value

    written = write_grid(grid, output_path)
    if not written.ok:
        return written

    logger.info("Created %s sphere grid %s in %s", key, grid.extent, output_path)
    return Result.success(grid)


CREATE_SPHERE = DispatchTable("pxcreatesphere").specialize(
    create_sphere_impl,
    value_types=list(ValueType),
    dimensions=(2, 3)
)


def create_sphere(
    params: SphereParameters,
    output_path: Union[str, Path],
    value_type: Union[str, ValueType] = "short",
    dimension: int = 3
) -> Result:
    """
    Create a sphere grid file.

    Args:
        params: Sphere and grid geometry
        output_path: Output file; its extension selects the format
        value_type: Voxel value type tag (default "short")
        dimension: Grid dimension (default 3)

    Returns:
        Result holding the written Grid, or the first failure
    """
    return CREATE_SPHERE.invoke(value_type, dimension, params, output_path)
