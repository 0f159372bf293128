"""
Read -> Filter -> Write Pipeline

PipelineRunner drives one filter over one input file through fixed
stages:

    INIT -> INPUT_LOADED -> [MASK_LOADED] -> FILTER_CONFIGURED
         -> FILTER_EXECUTED -> OUTPUT_WRITTEN -> SUCCESS

Every stage returns a Result. The first failure moves the runner to
FAILED, records which stage it was attempting, and stops: later stages,
in particular the write, never run. The runner owns its grids for the
duration of ``run()`` and drops them when it finishes either way.

This module also defines the histogram equalization tool, whose
specialization is chosen from the input file's header.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union
import logging

from .dispatch import DispatchKey, DispatchTable
from .errors import ErrorKind, Result
from .filters import HistogramEqualizationFilter
from .formats import read_grid, read_grid_info, write_grid
from .grid import Grid
from .pixel_types import ValueType


logger = logging.getLogger(__name__)

MASK_VALUE_TYPE = ValueType.UINT8


class Stage(Enum):
    """Pipeline states."""
    INIT = "Init"
    INPUT_LOADED = "InputLoaded"
    MASK_LOADED = "MaskLoaded"
    FILTER_CONFIGURED = "FilterConfigured"
    FILTER_EXECUTED = "FilterExecuted"
    OUTPUT_WRITTEN = "OutputWritten"
    SUCCESS = "Success"
    FAILED = "Failed"


class PipelineRunner:
    """
    Sequential read/filter/write driver for one specialization.

    Attributes:
        stage: Current state
        failed_stage: The stage being entered when a failure occurred
        history: States visited, in order
    """

    def __init__(
        self,
        key: DispatchKey,
        filter_,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        mask_path: Optional[Union[str, Path]] = None
    ):
        """
        Args:
            key: The specialization (input value type and dimension)
            filter_: Object with configure(image, mask) and execute()
            input_path: Primary input grid file
            output_path: Output grid file
            mask_path: Optional mask grid file
        """
        self.key = key
        self.filter = filter_
        self.input_path = Path(input_path)
        self.output_path = Path(output_path)
        self.mask_path = Path(mask_path) if mask_path else None

        self.stage = Stage.INIT
        self.failed_stage: Optional[Stage] = None
        self.history: List[Stage] = [Stage.INIT]

        self._input: Optional[Grid] = None
        self._mask: Optional[Grid] = None
        self._output: Optional[Grid] = None

    def _steps(self) -> List[Tuple[Stage, Callable[[], Result]]]:
        steps = [(Stage.INPUT_LOADED, self._read_input)]
        if self.mask_path is not None:
            steps.append((Stage.MASK_LOADED, self._read_mask))
        steps += [
            (Stage.FILTER_CONFIGURED, self._configure),
            (Stage.FILTER_EXECUTED, self._execute),
            (Stage.OUTPUT_WRITTEN, self._write),
        ]
        return steps

    def run(self) -> Result:
        """
        Run all stages, stopping at the first failure.

        Returns:
            Result holding the output Grid, or the failing stage's error
        """
        if self.stage is not Stage.INIT:
            raise RuntimeError("A PipelineRunner can only run once")

        try:
            for target, step in self._steps():
                result = step()
                if not result.ok:
                    self.failed_stage = target
                    self._enter(Stage.FAILED)
                    logger.debug("Failed entering %s: %s", target.value, result.error)
                    return result
                self._enter(target)

            self._enter(Stage.SUCCESS)
            return Result.success(self._output)
        finally:
            self._input = self._mask = self._output = None

    def _enter(self, stage: Stage):
        logger.debug("%s: %s -> %s", self.key, self.stage.value, stage.value)
        self.stage = stage
        self.history.append(stage)

    def _read_input(self) -> Result:
        result = read_grid(self.input_path, self.key.value_type)
        if result.ok:
            if result.value.dimension != self.key.dimension:
                return Result.failure(
                    ErrorKind.READ_INPUT,
                    f"{self.input_path} is {result.value.dimension}D, "
                    f"expected {self.key.dimension}D"
                )
            self._input = result.value
        return result

    def _read_mask(self) -> Result:
        result = read_grid(self.mask_path, MASK_VALUE_TYPE).with_kind(ErrorKind.READ_MASK)
        if result.ok:
            self._mask = result.value
        return result

    def _configure(self) -> Result:
        return self.filter.configure(self._input, self._mask)

    def _execute(self) -> Result:
        result = self.filter.execute()
        if result.ok:
            self._output = result.value
        return result

    def _write(self) -> Result:
        return write_grid(self._output, self.output_path)


@dataclass
class EqualizeParameters:
    """Inputs of the histogram equalization tool."""
    input_path: Union[str, Path]
    output_path: Union[str, Path]
    mask_path: Optional[Union[str, Path]] = None
    nbins: int = 256


def histogram_equalize_impl(key: DispatchKey, params: EqualizeParameters) -> Result:
    """Equalize one input file for one (type, dimension) cell."""
    if params.nbins < 2:
        return Result.failure(
            ErrorKind.INVALID_ARGUMENT, f"nbins must be at least 2, got {params.nbins}"
        )

    runner = PipelineRunner(
        key,
        HistogramEqualizationFilter(nbins=params.nbins),
        params.input_path,
        params.output_path,
        params.mask_path
    )
    result = runner.run()
    if result.ok:
        logger.info("Equalized %s (%s) into %s", params.input_path, key, params.output_path)
    return result


HISTOGRAM_EQUALIZE = DispatchTable("pxhistogramequalizeimage").specialize(
    histogram_equalize_impl,
    value_types=list(ValueType),
    dimensions=(2, 3)
)


def histogram_equalize_image(params: EqualizeParameters) -> Result:
    """
    Equalize an image file, dispatching on the type stored in its header.

    Returns:
        Result holding the output Grid, or the first failure
    """
    info = read_grid_info(params.input_path)
    if not info.ok:
        return info
    info = info.value

    if info.value_type is None:
        return Result.failure(
            ErrorKind.UNSUPPORTED_CONFIGURATION,
            f"pxhistogramequalizeimage: pixel type \"{info.pixel_type_name}\" "
            f"with dimension {info.dimension} is not supported"
        )

    return HISTOGRAM_EQUALIZE.invoke(info.value_type, info.dimension, params)
