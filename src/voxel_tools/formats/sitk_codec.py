"""
SimpleITK Grid Codec

Reads and writes the volumetric formats ITK understands (MetaImage,
NIfTI, NRRD, TIFF, VTK). The format is chosen by ITK from the file
extension.

Axis order: SimpleITK arrays are indexed (z, y, x); Grid arrays are
indexed (x, y, z), so arrays are transposed on the way in and out.
Direction cosines are not carried by Grid and are ignored on read.
"""

from pathlib import Path
from typing import Union
import numpy as np
import SimpleITK as sitk

from ..grid import Grid
from ..pixel_types import ValueType
from .info import GridInfo


PIXEL_IDS = {
    sitk.sitkInt8: ValueType.INT8,
    sitk.sitkUInt8: ValueType.UINT8,
    sitk.sitkInt16: ValueType.INT16,
    sitk.sitkUInt16: ValueType.UINT16,
    sitk.sitkFloat32: ValueType.FLOAT32,
    sitk.sitkFloat64: ValueType.FLOAT64,
}


class SimpleITKCodec:
    """Grid reader/writer backed by SimpleITK."""

    extensions = (
        ".mha", ".mhd", ".nii", ".nii.gz", ".nrrd", ".nhdr",
        ".tif", ".tiff", ".vtk",
    )

    def read_info(self, path: Union[str, Path]) -> GridInfo:
        """Read only the header: value type, dimension and extent."""
        reader = sitk.ImageFileReader()
        reader.SetFileName(str(path))
        reader.ReadImageInformation()

        if reader.GetNumberOfComponents() != 1:
            raise ValueError(
                f"{path} has {reader.GetNumberOfComponents()} components per voxel; "
                "only scalar images are supported"
            )

        pixel_id = reader.GetPixelID()
        return GridInfo(
            value_type=PIXEL_IDS.get(pixel_id),
            dimension=reader.GetDimension(),
            extent=tuple(reader.GetSize()),
            pixel_type_name=sitk.GetPixelIDValueAsString(pixel_id),
        )

    def read(self, path: Union[str, Path]) -> Grid:
        image = sitk.ReadImage(str(path))
        if image.GetNumberOfComponentsPerPixel() != 1:
            raise ValueError(f"{path} is not a scalar image")

        array = sitk.GetArrayFromImage(image)
        return Grid(
            np.ascontiguousarray(array.transpose()),
            spacing=image.GetSpacing(),
            origin=image.GetOrigin(),
        )

    def write(self, grid: Grid, path: Union[str, Path]):
        image = sitk.GetImageFromArray(
            np.ascontiguousarray(grid.data.transpose()),
            isVector=False
        )
        image.SetSpacing(grid.spacing)
        image.SetOrigin(grid.origin)
        sitk.WriteImage(image, str(path))
