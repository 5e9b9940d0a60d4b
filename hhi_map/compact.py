# hhi_map/compact.py
"""Shrink tile properties: round HHI values before they are written to tiles and parquet."""

from __future__ import annotations

from collections.abc import Iterable

import polars as pl


def round_numeric(df: pl.DataFrame, *, decimals: int = 3, exclude: Iterable[str] = ("GEOID",)) -> pl.DataFrame:
    """Round float columns to `decimals` to keep tile properties small.

    Key, integer and string columns pass through; nulls stay null.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")
    skip = set(exclude)
    float_cols = [c for c, dtype in df.schema.items() if dtype.is_float() and c not in skip]
    return df.with_columns([pl.col(c).round(decimals) for c in float_cols])
