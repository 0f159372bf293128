"""
Grid Filters

Filters follow a two-step contract:
1. configure(image, mask=None) binds the inputs. It does no computation
   and only fails for incompatible inputs (FilterPrecondition).
2. execute() computes and returns a new grid with the same extent,
   value type and geometry as the input.
"""

from typing import Optional
import logging
import numpy as np
from skimage import exposure

from .errors import ErrorKind, Result
from .grid import Grid
from .pixel_types import cast_to_value_type


logger = logging.getLogger(__name__)


class HistogramEqualizationFilter:
    """
    Global histogram equalization with an optional mask.

    The histogram (and so the intensity mapping) is computed only over
    voxels where the mask is nonzero; the mapping is applied to every
    voxel. The equalized values are spread over the [min, max] intensity
    range of the counted voxels and cast back to the input value type.
    """

    def __init__(self, nbins: int = 256):
        if nbins < 2:
            raise ValueError(f"nbins must be at least 2, got {nbins}")
        self.nbins = nbins
        self._image: Optional[Grid] = None
        self._mask: Optional[Grid] = None

    @property
    def configured(self) -> bool:
        return self._image is not None

    def configure(self, image: Grid, mask: Optional[Grid] = None) -> Result:
        """
        Bind the input grid and optional mask.

        Returns:
            Result (no value), or a FilterPrecondition error when the mask
            does not match the image
        """
        if mask is not None and not image.same_geometry(mask):
            return Result.failure(
                ErrorKind.FILTER_PRECONDITION,
                f"Mask extent {mask.extent} does not match image extent {image.extent}"
            )
        self._image = image
        self._mask = mask
        return Result.success()

    def execute(self) -> Result:
        """
        Equalize the configured image.

        Returns:
            Result holding the equalized Grid
        """
        if not self.configured:
            return Result.failure(
                ErrorKind.FILTER_PRECONDITION, "Filter executed before configure()"
            )

        image = self._image
        data = image.data.astype(np.float64)
        included = None
        if self._mask is not None:
            included = self._mask.data != 0
            if not included.any():
                return Result.failure(
                    ErrorKind.FILTER_EXECUTION, "Mask does not select any voxel"
                )

        counted = data[included] if included is not None else data
        lo, hi = float(counted.min()), float(counted.max())

        if lo == hi:
            logger.debug("Constant intensity %s under mask, output equals input", lo)
            return Result.success(Grid(image.data.copy(), image.spacing, image.origin))

        try:
            cdf = exposure.equalize_hist(data, nbins=self.nbins, mask=included)
        except (ValueError, FloatingPointError) as e:
            return Result.failure(ErrorKind.FILTER_EXECUTION, f"Equalization failed: {e}")

        values = lo + cdf * (hi - lo)
        equalized = Grid(
            cast_to_value_type(values, image.value_type),
            spacing=image.spacing,
            origin=image.origin
        )
        return Result.success(equalized)
