# hhi_map/colnames.py
"""Encoded column names: {dimension}_{level}_{indicator}_{year}.

This is the only place the name format is defined. Codes never contain the separator
(enforced when the registry is loaded), so names decode unambiguously.
"""

from __future__ import annotations

from typing import NamedTuple

SEPARATOR = "_"


class ColumnKey(NamedTuple):
    dimension_code: str
    level_code: str
    indicator_code: str
    year: int


def _check_code(kind: str, code: str) -> None:
    if not isinstance(code, str) or not code:
        raise ValueError(f"{kind} code must be a non-empty string, got {code!r}")
    if SEPARATOR in code:
        raise ValueError(f"{kind} code {code!r} contains the separator {SEPARATOR!r}")


def encode(dimension_code: str, level_code: str, indicator_code: str, year: int) -> str:
    """Build the flat column name for one (dimension, level, indicator, year) cell."""
    _check_code("Dimension", dimension_code)
    _check_code("Level", level_code)
    _check_code("Indicator", indicator_code)
    if isinstance(year, bool) or not isinstance(year, int):
        raise ValueError(f"Year must be an integer, got {year!r}")
    return SEPARATOR.join([dimension_code, level_code, indicator_code, str(year)])


def decode(column: str) -> ColumnKey:
    """Split an encoded column name back into its four codes."""
    parts = column.split(SEPARATOR)
    if len(parts) != 4 or not all(parts[:3]):
        raise ValueError(f"Not an encoded column name: {column!r}")
    try:
        year = int(parts[3])
    except ValueError as e:
        raise ValueError(f"Column {column!r} does not end in an integer year") from e
    return ColumnKey(parts[0], parts[1], parts[2], year)


def is_encoded(column: str) -> bool:
    try:
        decode(column)
    except ValueError:
        return False
    return True
