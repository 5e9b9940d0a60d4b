# hhi_map/pivot.py
"""Long -> wide reshape of one HHI source table.

Input: one row per (GEOID, level, year) with one or more hhi_* indicator columns.
Output: one row per GEOID with one Float64 column per encoded
{dimension}_{level}_{indicator}_{year} name that was actually observed.
"""

from __future__ import annotations

import logging

import polars as pl

from hhi_map.colnames import encode
from hhi_map.errors import DuplicateObservation, format_list_preview
from hhi_map.registry import CodeRegistry

logger = logging.getLogger(__name__)

__all__ = ["pivot_wide", "unrecognized_levels"]

# Working column names; prefixed so they cannot collide with source columns
_LEVEL = "__level_code"
_INDICATOR = "__indicator"
_YEAR = "__year"
_VALUE = "__value"
_COLUMN = "__column"


def _require_columns(columns: list[str], required: list[str]) -> None:
    missing = [c for c in required if c not in columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}\n- available={columns}\n")


def _recognized_mask(level_col: str, values: list[str]) -> pl.Expr:
    # Null levels come back null from is_in; treat them as unrecognized
    return pl.col(level_col).cast(pl.Utf8).is_in(values).fill_null(False)


def unrecognized_levels(df: pl.DataFrame, dimension_name: str, registry: CodeRegistry) -> list[str | None]:
    """Distinct level values in `df` that the code table does not know, sorted (nulls last)."""
    dim = registry.dimension(dimension_name)
    return (
        df.filter(~_recognized_mask(dim.column, dim.values))
        .select(pl.col(dim.column).cast(pl.Utf8).unique())
        .to_series()
        .sort(nulls_last=True)
        .to_list()
    )


def pivot_wide(
    df: pl.DataFrame,
    dimension_name: str,
    registry: CodeRegistry,
    *,
    key_col: str = "GEOID",
    year_col: str = "listing_year",
    indicator_prefix: str = "hhi_",
) -> pl.DataFrame:
    """Pivot one dimension's long table to one row per geographic unit.

    Rows whose level is not in the code table are dropped (partial coverage is expected)
    and reported as a warning.

    Raises:
        ValueError: missing key/level/year columns, null keys or years, no indicator columns,
            or an indicator column that is not numeric.
        UnrecognizedIndicator: an indicator column has no code.
        DuplicateObservation: the same (unit, column) cell appears more than once.
    """
    dim = registry.dimension(dimension_name)
    level_col = dim.column

    _require_columns(df.columns, [key_col, level_col, year_col])

    indicator_cols = [c for c in df.columns if c.startswith(indicator_prefix)]
    if not indicator_cols:
        raise ValueError(
            f"No indicator columns found for dimension '{dim.name}' (prefix {indicator_prefix!r}).\n"
            f"- available={df.columns}\n"
        )
    # Fatal: schema drift between the source files and the code tables
    indicators = {c: registry.indicator(c) for c in indicator_cols}
    schema = df.schema
    non_numeric = [
        f"{c}: {schema[c]}" for c in indicator_cols if not (schema[c].is_numeric() or schema[c] == pl.Null)
    ]
    if non_numeric:
        raise ValueError(
            f"Contract violation: non-numeric indicator columns in '{dim.name}' table.\n"
            f"- columns={non_numeric}\n"
        )

    n_null_keys = df[key_col].null_count()
    if n_null_keys:
        raise ValueError(f"Contract violation: {n_null_keys:,} rows with null {key_col} in '{dim.name}' table")

    mask = _recognized_mask(level_col, dim.values)
    kept = df.filter(mask)
    n_dropped = df.height - kept.height
    if n_dropped:
        bad = unrecognized_levels(df, dim.name, registry)
        logger.warning(
            f"{dim.name}: dropped {n_dropped:,} rows with unrecognized levels {format_list_preview(bad)}"
        )

    n_null_years = kept[year_col].null_count()
    if n_null_years:
        raise ValueError(f"Contract violation: {n_null_years:,} rows with null {year_col} in '{dim.name}' table")

    if kept.is_empty():
        logger.warning(f"{dim.name}: no rows left after level filtering")
        return pl.DataFrame(schema={key_col: pl.Utf8})

    level_codes = {lvl.value: lvl.code for lvl in dim.levels}
    long = kept.select([
        pl.col(key_col).cast(pl.Utf8),
        pl.col(level_col).cast(pl.Utf8).replace_strict(level_codes, return_dtype=pl.Utf8).alias(_LEVEL),
        pl.col(year_col).cast(pl.Int64).alias(_YEAR),
        *[pl.col(c).cast(pl.Float64) for c in indicator_cols],
    ]).unpivot(
        index=[key_col, _LEVEL, _YEAR],
        on=indicator_cols,
        variable_name=_INDICATOR,
        value_name=_VALUE,
    )

    # Encode each distinct (level, indicator, year) once, in display order:
    # registry level order, then registry indicator order, then year.
    level_rank = {lvl.code: i for i, lvl in enumerate(dim.levels)}
    indicator_rank = {ind.name: i for i, ind in enumerate(registry.indicators)}
    combos = sorted(
        long.select([_LEVEL, _INDICATOR, _YEAR]).unique().iter_rows(),
        key=lambda r: (level_rank[r[0]], indicator_rank[r[1]], r[2]),
    )
    names = [encode(dim.code, lc, indicators[ind].code, yr) for lc, ind, yr in combos]
    lookup = pl.DataFrame(
        {
            _LEVEL: [c[0] for c in combos],
            _INDICATOR: [c[1] for c in combos],
            _YEAR: [c[2] for c in combos],
            _COLUMN: names,
        },
        schema={_LEVEL: pl.Utf8, _INDICATOR: pl.Utf8, _YEAR: pl.Int64, _COLUMN: pl.Utf8},
    )
    long = long.join(lookup, on=[_LEVEL, _INDICATOR, _YEAR], how="left")

    dupes = long.group_by([key_col, _COLUMN]).len().filter(pl.col("len") > 1).sort([key_col, _COLUMN])
    if dupes.height:
        sample = [f"{k}:{c}" for k, c in dupes.select([key_col, _COLUMN]).head(10).iter_rows()]
        raise DuplicateObservation(
            f"Duplicate observations in '{dim.name}' table: {dupes.height:,} (unit, column) cells occur "
            "more than once.\n"
            f"- sample={format_list_preview(sample)}\n"
        )

    wide = long.pivot(on=_COLUMN, index=key_col, values=_VALUE)
    wide = wide.select([pl.col(key_col), *[pl.col(n).cast(pl.Float64) for n in names]]).sort(key_col)

    logger.info(f"{dim.name}: {wide.height:,} units x {len(names)} columns")
    return wide
