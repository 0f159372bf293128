"""
Voxel Tools
===========

Command-line utilities for N-dimensional voxel grids.

Each tool is a fixed matrix of (pixel type, dimension) specializations
behind an explicit dispatch table, and runs one of two pipelines:
- synthesis: rasterize a spatial function (e.g. a sphere) into a new grid
- filtering: read a grid (and optional mask), filter it, write the result

Tools:
- pxcreatesphere: binary or antialiased sphere/disk images
- pxhistogramequalizeimage: histogram equalization within an optional mask

Example Usage:
    from voxel_tools import SphereParameters, create_sphere

    params = SphereParameters(extent=(64, 64, 64), center=(32, 32, 32), radius=20)
    result = create_sphere(params, "sphere.mha", value_type="unsigned char")
    if not result.ok:
        print(result.error)
"""

__version__ = "1.0.0"
__author__ = "Voxel Tools Team"

from .errors import ErrorKind, Result, ToolError
from .pixel_types import ValueType, cast_to_value_type, parse_value_type
from .grid import Grid, IndexSpace
from .dispatch import DispatchKey, DispatchTable, Specialization
from .spatial import SpatialFunction, SphereSpatialFunction
from .rasterize import CREATE_SPHERE, SphereParameters, create_sphere, rasterize
from .filters import HistogramEqualizationFilter
from .pipeline import (
    HISTOGRAM_EQUALIZE,
    EqualizeParameters,
    PipelineRunner,
    Stage,
    histogram_equalize_image,
)
from .formats import read_grid, read_grid_info, write_grid

__all__ = [
    "ErrorKind",
    "Result",
    "ToolError",
    "ValueType",
    "cast_to_value_type",
    "parse_value_type",
    "Grid",
    "IndexSpace",
    "DispatchKey",
    "DispatchTable",
    "Specialization",
    "SpatialFunction",
    "SphereSpatialFunction",
    "CREATE_SPHERE",
    "SphereParameters",
    "create_sphere",
    "rasterize",
    "HistogramEqualizationFilter",
    "HISTOGRAM_EQUALIZE",
    "EqualizeParameters",
    "PipelineRunner",
    "Stage",
    "histogram_equalize_image",
    "read_grid",
    "read_grid_info",
    "write_grid",
]
