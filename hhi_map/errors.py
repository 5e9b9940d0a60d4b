# hhi_map/errors.py
"""Error taxonomy for the HHI tract pipeline.

Row-level conditions (UnrecognizedLevel) are recovered by the caller; everything else
aborts the run before any artifact is written.
"""

from __future__ import annotations


class HhiMapError(Exception):
    """Base class for pipeline errors."""


class RegistryConfigError(HhiMapError, ValueError):
    """Code tables are internally inconsistent (e.g. a code contains the separator)."""


class UnrecognizedLevel(HhiMapError, KeyError):
    """Raw level value is not in the code table for its dimension."""

    def __init__(self, dimension: str, value: object) -> None:
        super().__init__(f"Unrecognized level {value!r} for dimension '{dimension}'")
        self.dimension = dimension
        self.value = value

    def __str__(self) -> str:
        return str(self.args[0])


class UnrecognizedIndicator(HhiMapError, KeyError):
    """Indicator column has no code; the code tables must be updated."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Unrecognized indicator column '{name}'. "
            "Add it to the indicator code table before re-running."
        )
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class DuplicateObservation(HhiMapError, ValueError):
    """The same (unit, column) cell appears more than once in one source table."""


def format_list_preview(x: list, max_items: int = 10) -> str:
    """Bounded preview of a list for error messages."""
    if len(x) <= max_items:
        return str(x)
    return str(x[:max_items])[:-1] + f", ...] (n={len(x)})"
