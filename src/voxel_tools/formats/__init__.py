"""
Grid file formats.

The codec is chosen from the file extension:
- SimpleITK (.mha, .mhd, .nii, .nii.gz, .nrrd, .nhdr, .tif, .tiff, .vtk)
- Pillow (.png, .bmp, .jpg, .jpeg, .gif), 2D only
- numpy (.npy, .npz)

``read_grid``, ``read_grid_info`` and ``write_grid`` return Results.
Writes go to a staging directory beside the target and are moved into
place only once the codec has finished, so a failed write never leaves a
partial file behind or touches an existing one.
"""

from pathlib import Path
from typing import Optional, Union
import logging
import os
import tempfile

from ..errors import ErrorKind, Result
from ..grid import Grid
from ..pixel_types import ValueType
from .info import GridInfo
from .numpy_codec import NumpyCodec
from .pil_codec import PillowCodec
from .sitk_codec import SimpleITKCodec


logger = logging.getLogger(__name__)

CODECS = (SimpleITKCodec(), PillowCodec(), NumpyCodec())

# Exceptions the codec libraries raise for unreadable/unwritable files
CODEC_ERRORS = (OSError, RuntimeError, ValueError, TypeError, KeyError)


def codec_for_path(path: Union[str, Path]):
    """Codec handling the path's extension, or None."""
    name = Path(path).name.lower()
    # Longest extension first so ".nii.gz" wins over ".gz"
    matches = [
        (len(ext), codec)
        for codec in CODECS
        for ext in codec.extensions
        if name.endswith(ext)
    ]
    if not matches:
        return None
    return max(matches, key=lambda m: m[0])[1]


def supported_extensions():
    return sorted(ext for codec in CODECS for ext in codec.extensions)


def read_grid_info(path: Union[str, Path]) -> Result:
    """
    Read a grid file's header.

    Returns:
        Result holding a GridInfo, or a ReadInput error
    """
    path = Path(path)
    if not path.is_file():
        return Result.failure(ErrorKind.READ_INPUT, f"File not found: {path}")

    codec = codec_for_path(path)
    if codec is None:
        return Result.failure(ErrorKind.READ_INPUT, f"No reader for file type: {path}")

    try:
        info = codec.read_info(path)
    except CODEC_ERRORS as e:
        return Result.failure(ErrorKind.READ_INPUT, f"Cannot read {path}: {e}")
    return Result.success(info)


def read_grid(
    path: Union[str, Path],
    value_type: Optional[ValueType] = None
) -> Result:
    """
    Read a grid file.

    Args:
        path: File to read
        value_type: If given, the grid is cast to this type after reading

    Returns:
        Result holding the Grid, or a ReadInput error
    """
    path = Path(path)
    if not path.is_file():
        return Result.failure(ErrorKind.READ_INPUT, f"File not found: {path}")

    codec = codec_for_path(path)
    if codec is None:
        return Result.failure(ErrorKind.READ_INPUT, f"No reader for file type: {path}")

    try:
        grid = codec.read(path)
    except CODEC_ERRORS as e:
        return Result.failure(ErrorKind.READ_INPUT, f"Cannot read {path}: {e}")

    if value_type is not None and grid.value_type != value_type:
        grid = grid.astype(value_type)

    logger.debug("Read %s: %s %s", path, grid.value_type.value, grid.extent)
    return Result.success(grid)


def write_grid(grid: Grid, path: Union[str, Path]) -> Result:
    """
    Write a grid file, replacing the target only on success.

    Returns:
        Result holding the written path, or a WriteOutput error
    """
    path = Path(path)
    codec = codec_for_path(path)
    if codec is None:
        return Result.failure(
            ErrorKind.WRITE_OUTPUT,
            f"No writer for file type: {path} "
            f"(supported: {', '.join(supported_extensions())})"
        )

    parent = path.parent
    if not parent.is_dir():
        return Result.failure(ErrorKind.WRITE_OUTPUT, f"Directory does not exist: {parent}")

    try:
        with tempfile.TemporaryDirectory(dir=parent, prefix=".voxel_tools-") as staging:
            codec.write(grid, Path(staging) / path.name)
            # Header/data pairs such as .mhd/.raw produce several files
            for produced in sorted(Path(staging).iterdir()):
                os.replace(produced, parent / produced.name)
    except CODEC_ERRORS as e:
        return Result.failure(ErrorKind.WRITE_OUTPUT, f"Cannot write {path}: {e}")

    logger.debug("Wrote %s", path)
    return Result.success(path)


__all__ = [
    "GridInfo",
    "SimpleITKCodec",
    "PillowCodec",
    "NumpyCodec",
    "codec_for_path",
    "read_grid",
    "read_grid_info",
    "write_grid",
]
