"""Header information shared by the codecs."""

from typing import NamedTuple, Optional, Tuple

from ..pixel_types import ValueType


class GridInfo(NamedTuple):
    """What a file header says about the grid it holds."""
    value_type: Optional[ValueType]  # None when the stored type is unsupported
    dimension: int
    extent: Tuple[int, ...]
    pixel_type_name: str
