"""
Type/Dimension Dispatch

Each tool supports a fixed matrix of (value type, dimension)
specializations. A DispatchTable holds that matrix explicitly: it is
filled once when the tool module is imported and afterwards only
consulted by exact-match lookup. There is no coercion between value
types and no promotion between dimensions; a request outside the matrix
fails with UnsupportedConfiguration before any work is done.

Example:
    table = DispatchTable("pxcreatesphere")
    table.specialize(create_sphere_impl, ValueType, (2, 3))
    result = table.invoke("short", 3, params)
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Union
import logging

from .errors import ErrorKind, Result
from .pixel_types import ValueType, parse_value_type


logger = logging.getLogger(__name__)


class DispatchKey(NamedTuple):
    """Selection key: one cell of the dispatch matrix."""
    value_type: ValueType
    dimension: int

    def __str__(self) -> str:
        return f"{self.dimension}D {self.value_type.c_name}"


@dataclass(frozen=True)
class Specialization:
    """
    One entry of the matrix.

    The entry point is called as ``entry(key, *args, **kwargs)`` so that a
    single generic implementation can serve every cell it is registered
    for, with the cell's value type and dimension bound in.
    """
    key: DispatchKey
    entry: Callable[..., Result]

    def __call__(self, *args, **kwargs) -> Result:
        return self.entry(self.key, *args, **kwargs)


class DispatchTable:
    """
    Explicit (value type, dimension) -> specialization table for one tool.
    """

    def __init__(self, name: str):
        self.name = name
        self._entries: Dict[DispatchKey, Specialization] = {}

    def register(
        self,
        value_type: ValueType,
        dimension: int,
        entry: Callable[..., Result]
    ) -> Specialization:
        """
        Add one cell to the matrix.

        Raises:
            ValueError: If the cell is already registered
        """
        key = DispatchKey(value_type, int(dimension))
        if key in self._entries:
            raise ValueError(f"{self.name}: {key} is already registered")
        specialization = Specialization(key, entry)
        self._entries[key] = specialization
        return specialization

    def specialize(
        self,
        entry: Callable[..., Result],
        value_types: Iterable[ValueType],
        dimensions: Iterable[int]
    ) -> "DispatchTable":
        """
        Register one generic entry point for every (type, dimension) pair.

        Returns:
            self for method chaining
        """
        dimensions = list(dimensions)
        for value_type in value_types:
            for dimension in dimensions:
                self.register(value_type, dimension, entry)
        return self

    def supported_keys(self) -> List[DispatchKey]:
        """All cells of the matrix, ordered by dimension then value type."""
        order = list(ValueType)
        return sorted(
            self._entries,
            key=lambda k: (k.dimension, order.index(k.value_type))
        )

    def __contains__(self, key) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(
        self,
        value_type: Union[str, ValueType],
        dimension: int
    ) -> Result:
        """
        Find the specialization for an exact (type, dimension) match.

        Args:
            value_type: ValueType or any accepted tag spelling
            dimension: Grid dimensionality

        Returns:
            Result holding the Specialization, or an
            UnsupportedConfiguration error
        """
        resolved = parse_value_type(value_type)
        if resolved is None:
            return Result.failure(
                ErrorKind.UNSUPPORTED_CONFIGURATION,
                f"{self.name}: unknown pixel type \"{value_type}\""
            )

        key = DispatchKey(resolved, int(dimension))
        specialization = self._entries.get(key)
        if specialization is None:
            return Result.failure(
                ErrorKind.UNSUPPORTED_CONFIGURATION,
                f"{self.name}: pixel type \"{resolved.c_name}\" with dimension "
                f"{dimension} is not supported"
            )

        logger.debug("%s: selected %s", self.name, key)
        return Result.success(specialization)

    def invoke(
        self,
        value_type: Union[str, ValueType],
        dimension: int,
        *args: Any,
        **kwargs: Any
    ) -> Result:
        """
        Run the matching specialization exactly once.

        Returns:
            The specialization's Result, or the lookup failure
        """
        found = self.lookup(value_type, dimension)
        if not found.ok:
            return found
        return found.value(*args, **kwargs)

    def describe(self) -> str:
        """Human readable summary of the matrix, for help text."""
        dims = sorted({k.dimension for k in self._entries})
        types = []
        for key in self.supported_keys():
            if key.value_type.c_name not in types:
                types.append(key.value_type.c_name)
        dim_text = ", ".join(f"{d}D" for d in dims)
        return f"Supported: {dim_text}, {', '.join(types)}."
