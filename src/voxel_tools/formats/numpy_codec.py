"""
Numpy Array Codec

- .npy: the voxel array only (default spacing and origin on read)
- .npz: arrays ``data``, ``spacing`` and ``origin``
"""

from pathlib import Path
from typing import Union
import numpy as np

from ..grid import Grid
from ..pixel_types import value_type_from_dtype
from .info import GridInfo


class NumpyCodec:
    """Grid reader/writer for numpy's own file formats."""

    extensions = (".npy", ".npz")

    def read_info(self, path: Union[str, Path]) -> GridInfo:
        if Path(path).suffix.lower() == ".npz":
            with np.load(path, allow_pickle=False) as archive:
                data = archive["data"]
                dtype, shape = data.dtype, data.shape
        else:
            data = np.load(path, mmap_mode="r", allow_pickle=False)
            dtype, shape = data.dtype, data.shape

        return GridInfo(
            value_type=value_type_from_dtype(dtype),
            dimension=len(shape),
            extent=tuple(int(n) for n in shape),
            pixel_type_name=str(dtype),
        )

    def read(self, path: Union[str, Path]) -> Grid:
        if Path(path).suffix.lower() == ".npz":
            with np.load(path, allow_pickle=False) as archive:
                if "data" not in archive.files:
                    raise ValueError(f"{path} has no 'data' array")
                spacing = archive["spacing"] if "spacing" in archive.files else None
                origin = archive["origin"] if "origin" in archive.files else None
                return Grid(archive["data"], spacing=spacing, origin=origin)

        return Grid(np.load(path, allow_pickle=False))

    def write(self, grid: Grid, path: Union[str, Path]):
        if Path(path).suffix.lower() == ".npz":
            np.savez(
                path,
                data=grid.data,
                spacing=np.asarray(grid.spacing),
                origin=np.asarray(grid.origin)
            )
        else:
            np.save(path, grid.data)
