"""
Pillow Raster Codec

2D grayscale raster formats (PNG, BMP, JPEG, GIF). These formats carry
no spacing or origin; grids read from them get the defaults, and the
geometry of a written grid is dropped.

Supported voxel types:
- uint8 everywhere (mode "L"; palette images read as their indices)
- uint16 for PNG only (mode "I;16")
"""

from pathlib import Path
from typing import Union
import numpy as np
from PIL import Image

from ..grid import Grid
from ..pixel_types import ValueType
from .info import GridInfo


# Pillow mode -> value type of the grid produced on read
MODE_TYPES = {
    "1": ValueType.UINT8,
    "L": ValueType.UINT8,
    "P": ValueType.UINT8,
    "I;16": ValueType.UINT16,
    "I": ValueType.UINT16,  # 16-bit PNGs may open as 32-bit "I"
    "F": ValueType.FLOAT32,
}


class PillowCodec:
    """Grid reader/writer for 2D raster images."""

    extensions = (".png", ".bmp", ".jpg", ".jpeg", ".gif")

    def read_info(self, path: Union[str, Path]) -> GridInfo:
        with Image.open(path) as img:
            mode = img.mode
            width, height = img.size
        return GridInfo(
            value_type=MODE_TYPES.get(mode),
            dimension=2,
            extent=(width, height),
            pixel_type_name=mode,
        )

    def read(self, path: Union[str, Path]) -> Grid:
        with Image.open(path) as img:
            if img.mode == "1":
                img = img.convert("L")
            # np.array of a "P" image holds the palette indices
            if img.mode not in MODE_TYPES:
                raise ValueError(f"{path}: pixel mode {img.mode} is not a scalar type")
            array = np.array(img)

        if img.mode == "I":
            if array.size and (array.min() < 0 or array.max() > 65535):
                raise ValueError(f"{path}: 32-bit values do not fit a 16-bit grid")
            array = array.astype(np.uint16)

        # Pillow arrays are (row, column) = (y, x)
        return Grid(np.ascontiguousarray(array.T))

    def write(self, grid: Grid, path: Union[str, Path]):
        if grid.dimension != 2:
            raise ValueError(
                f"{Path(path).suffix} files hold 2D images, got a {grid.dimension}D grid"
            )

        suffix = Path(path).suffix.lower()
        if grid.value_type == ValueType.UINT16 and suffix != ".png":
            raise ValueError(f"16-bit images can only be written as .png, not {suffix}")
        if grid.value_type not in (ValueType.UINT8, ValueType.UINT16):
            raise ValueError(
                f"{suffix} cannot store {grid.value_type.c_name} voxels "
                "(use unsigned char, or unsigned short for .png)"
            )

        img = Image.fromarray(np.ascontiguousarray(grid.data.T))
        img.save(path)
