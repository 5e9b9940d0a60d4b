# hhi_map/merge.py
"""Full outer join of per-dimension wide tables on the geographic key."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import polars as pl

logger = logging.getLogger(__name__)


def merge_wide(tables: Sequence[pl.DataFrame], *, key_col: str = "GEOID") -> pl.DataFrame:
    """Merge wide tables into one row per unit.

    Keeps the union of units and the union of columns. A unit missing from one input
    gets nulls in that input's columns (missing concentration is not zero concentration).
    """
    if not tables:
        raise ValueError("merge_wide needs at least one table")

    seen: dict[str, int] = {}
    for i, t in enumerate(tables):
        if key_col not in t.columns:
            raise ValueError(f"Table {i} has no key column '{key_col}'")
        overlap = [c for c in t.columns if c != key_col and c in seen]
        if overlap:
            raise ValueError(
                f"Column collision between tables {seen[overlap[0]]} and {i}: {overlap[:10]}"
            )
        seen.update({c: i for c in t.columns if c != key_col})

    merged = tables[0].with_columns(pl.col(key_col).cast(pl.Utf8))
    for t in tables[1:]:
        merged = merged.join(
            t.with_columns(pl.col(key_col).cast(pl.Utf8)),
            on=key_col,
            how="full",
            coalesce=True,
        )

    merged = merged.sort(key_col)
    logger.info(f"Merged {len(tables)} tables: {len(merged.columns) - 1} columns for {merged.height:,} units")
    return merged
