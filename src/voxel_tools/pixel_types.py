"""
Pixel Value Types

The tools operate on a closed set of scalar value types. Each type has a
canonical tag, the numpy dtype used for storage, and the spellings the
command line accepts for it (C style names such as "unsigned short" as
well as the numpy names).

Casting policy (used everywhere a continuous value is stored):
- Integer types: round half to even, then clamp to the type range.
  NaN is stored as 0.
- Float types: plain cast.
"""

from enum import Enum
from typing import Optional, Union
import numpy as np


class ValueType(Enum):
    """Supported voxel value types."""
    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    @property
    def dtype(self) -> np.dtype:
        """Numpy dtype used to store this value type."""
        return np.dtype(self.value)

    @property
    def is_integer(self) -> bool:
        return np.issubdtype(self.dtype, np.integer)

    @property
    def value_range(self):
        """(min, max) representable values."""
        if self.is_integer:
            info = np.iinfo(self.dtype)
        else:
            info = np.finfo(self.dtype)
        return info.min, info.max

    @property
    def c_name(self) -> str:
        """The C style name, as printed in help text."""
        return _C_NAMES[self]


_C_NAMES = {
    ValueType.INT8: "char",
    ValueType.UINT8: "unsigned char",
    ValueType.INT16: "short",
    ValueType.UINT16: "unsigned short",
    ValueType.FLOAT32: "float",
    ValueType.FLOAT64: "double",
}

# Every spelling accepted for a tag, after underscore normalization
_ALIASES = {
    "char": ValueType.INT8,
    "signed char": ValueType.INT8,
    "int8": ValueType.INT8,
    "unsigned char": ValueType.UINT8,
    "uint8": ValueType.UINT8,
    "short": ValueType.INT16,
    "int16": ValueType.INT16,
    "unsigned short": ValueType.UINT16,
    "uint16": ValueType.UINT16,
    "float": ValueType.FLOAT32,
    "float32": ValueType.FLOAT32,
    "double": ValueType.FLOAT64,
    "float64": ValueType.FLOAT64,
}


def normalize_type_tag(tag: str) -> str:
    """
    Normalize a value type tag as typed on the command line.

    Underscores stand in for spaces so that multi-word C names can be
    passed without quoting: "unsigned_char" -> "unsigned char".
    """
    return " ".join(tag.replace("_", " ").split()).lower()


def parse_value_type(tag: Union[str, ValueType]) -> Optional[ValueType]:
    """
    Resolve a tag to a ValueType.

    Args:
        tag: ValueType, or any accepted spelling of one

    Returns:
        The matching ValueType, or None if the tag is not recognized
    """
    if isinstance(tag, ValueType):
        return tag
    return _ALIASES.get(normalize_type_tag(tag))


def value_type_from_dtype(dtype) -> Optional[ValueType]:
    """Map a numpy dtype onto a ValueType (None when unsupported)."""
    dtype = np.dtype(dtype)
    for value_type in ValueType:
        if value_type.dtype == dtype:
            return value_type
    return None


def cast_to_value_type(values, value_type: ValueType) -> np.ndarray:
    """
    Store continuous values into the given value type.

    Args:
        values: Array-like of real values
        value_type: Target value type

    Returns:
        Array of dtype value_type.dtype
    """
    values = np.asarray(values)
    if not value_type.is_integer:
        return values.astype(value_type.dtype)

    if np.issubdtype(values.dtype, np.integer) or values.dtype == np.bool_:
        lo, hi = value_type.value_range
        return np.clip(values.astype(np.int64), lo, hi).astype(value_type.dtype)

    lo, hi = value_type.value_range
    rounded = np.rint(values.astype(np.float64))
    rounded = np.nan_to_num(rounded, nan=0.0, posinf=hi, neginf=lo)
    return np.clip(rounded, lo, hi).astype(value_type.dtype)
