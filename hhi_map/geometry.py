# hhi_map/geometry.py
"""Attach tract geometry to the wide HHI table.

Geometry travels through polars as an opaque WKB `Binary` column; only the
GeoDataFrame conversions at the edges know what it contains.
"""

from __future__ import annotations

import logging

import geopandas as gpd
import polars as pl

logger = logging.getLogger(__name__)


def join_geometry(
    attributes: pl.DataFrame,
    geometry: pl.DataFrame,
    *,
    key_col: str = "GEOID",
) -> pl.DataFrame:
    """Inner join attributes onto geometry.

    Units without geometry are dropped: a feature without a shape is unusable in the
    map, unlike the outer join used when merging attribute tables.
    """
    for name, df in (("attributes", attributes), ("geometry", geometry)):
        if key_col not in df.columns:
            raise ValueError(f"{name} table has no key column '{key_col}'")

    n_dupes = geometry.height - geometry[key_col].n_unique()
    if n_dupes:
        raise ValueError(f"Geometry table has {n_dupes:,} duplicate {key_col} values")

    clash = [c for c in attributes.columns if c != key_col and c in geometry.columns]
    if clash:
        raise ValueError(f"Attribute columns collide with geometry columns: {clash}")

    joined = geometry.with_columns(pl.col(key_col).cast(pl.Utf8)).join(
        attributes.with_columns(pl.col(key_col).cast(pl.Utf8)),
        on=key_col,
        how="inner",
    )

    n_missing = attributes.height - joined.height
    if n_missing:
        logger.info(f"{n_missing:,} units with HHI data have no geometry and were dropped")
    logger.info(f"{joined.height:,} tracts with HHI data")
    return joined.sort(key_col)


def geodataframe_to_polars(
    gdf: gpd.GeoDataFrame,
    *,
    key_col: str = "GEOID",
    geometry_col: str = "geometry",
) -> pl.DataFrame:
    """Key + WKB geometry as a polars frame."""
    return pl.DataFrame(
        {
            key_col: gdf[key_col].astype(str).tolist(),
            geometry_col: gdf.geometry.to_wkb().tolist(),
        },
        schema={key_col: pl.Utf8, geometry_col: pl.Binary},
    )


def polars_to_geodataframe(
    df: pl.DataFrame,
    *,
    crs: object,
    geometry_col: str = "geometry",
) -> gpd.GeoDataFrame:
    """Inverse of geodataframe_to_polars, carrying every other column as a property."""
    attrs = df.drop(geometry_col).to_pandas()
    geoms = gpd.GeoSeries.from_wkb(df[geometry_col].to_list(), index=attrs.index, crs=crs)
    return gpd.GeoDataFrame(attrs, geometry=geoms)
