# hhi_map/tracts.py
"""Census tract boundaries: TIGER/Line download via pygris, simplification via mapshaper.

Both steps are cached as GeoParquet under the data directory, since a nationwide pull
takes several minutes.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Sequence
from pathlib import Path

import geopandas as gpd
import pandas as pd
import pygris

from hhi_map.external import run_command

logger = logging.getLogger(__name__)

# 50 states + DC (FIPS codes <= 56, excluding unassigned codes)
STATE_FIPS: list[str] = [
    "01", "02", "04", "05", "06", "08", "09", "10", "11", "12",
    "13", "15", "16", "17", "18", "19", "20", "21", "22", "23",
    "24", "25", "26", "27", "28", "29", "30", "31", "32", "33",
    "34", "35", "36", "37", "38", "39", "40", "41", "42", "44",
    "45", "46", "47", "48", "49", "50", "51", "53", "54", "55",
    "56",
]  # fmt: skip


def fetch_tracts(
    state_fips: Sequence[str] = tuple(STATE_FIPS),
    *,
    year: int = 2020,
    cb: bool = True,
    key_col: str = "GEOID",
) -> gpd.GeoDataFrame:
    """Download tract boundaries state by state, keeping only the key and geometry."""
    if not state_fips:
        raise ValueError("No state FIPS codes given")

    logger.info(f"Downloading census tract geometries for {len(state_fips)} states (year {year}, cb={cb})")
    frames: list[gpd.GeoDataFrame] = []
    for s in state_fips:
        logger.info(f"  State FIPS: {s}")
        gdf = pygris.tracts(state=s, cb=cb, year=year, cache=True)
        frames.append(gdf[[key_col, "geometry"]])

    tracts = gpd.GeoDataFrame(pd.concat(frames, ignore_index=True), geometry="geometry", crs=frames[0].crs)
    logger.info(f"Retrieved {len(tracts):,} tracts")
    return tracts


def load_tracts(
    cache_path: Path | str,
    state_fips: Sequence[str] = tuple(STATE_FIPS),
    *,
    year: int = 2020,
    cb: bool = True,
) -> gpd.GeoDataFrame:
    """Raw tract boundaries from the GeoParquet cache, downloading on first use."""
    cache_path = Path(cache_path)
    if cache_path.exists():
        logger.info(f"Using cached tracts: {cache_path}")
        return gpd.read_parquet(cache_path)

    tracts = fetch_tracts(state_fips, year=year, cb=cb)
    cache_path.parent.mkdir(parents=True, exist_ok=True)
    tracts.to_parquet(cache_path)
    logger.info(f"Saved {len(tracts):,} tracts to {cache_path}")
    return tracts


def build_mapshaper_command(input_path: Path | str, output_path: Path | str, *, keep: float) -> list[str]:
    """mapshaper invocation retaining `keep` (0-1] of removable vertices; no shape is removed."""
    if not 0 < keep <= 1:
        raise ValueError(f"keep must be in (0, 1], got {keep}")
    return [
        "mapshaper",
        str(input_path),
        "-simplify",
        f"{keep * 100:g}%",
        "keep-shapes",
        "-o",
        str(output_path),
        "format=geojson",
    ]


def simplify_tracts(gdf: gpd.GeoDataFrame, *, keep: float = 0.05) -> gpd.GeoDataFrame:
    """Simplify boundaries with mapshaper (topology-aware, shared borders stay shared)."""
    with tempfile.TemporaryDirectory(prefix="hhi_simplify_") as tmp:
        src = Path(tmp) / "tracts.geojson"
        dst = Path(tmp) / "tracts_simplified.geojson"
        gdf.to_file(src, driver="GeoJSON")
        run_command(build_mapshaper_command(src, dst, keep=keep))
        simplified = gpd.read_file(dst)

    # mapshaper does not carry the CRS through GeoJSON
    return simplified.set_crs(gdf.crs, allow_override=True)


def load_simplified_tracts(
    raw_cache: Path | str,
    simplified_cache: Path | str,
    state_fips: Sequence[str] = tuple(STATE_FIPS),
    *,
    year: int = 2020,
    cb: bool = True,
    keep: float = 0.05,
) -> gpd.GeoDataFrame:
    """Simplified tract boundaries, building and caching each stage as needed."""
    simplified_cache = Path(simplified_cache)
    if simplified_cache.exists():
        logger.info(f"Using cached simplified tracts: {simplified_cache}")
        return gpd.read_parquet(simplified_cache)

    tracts = load_tracts(raw_cache, state_fips, year=year, cb=cb)
    logger.info("Simplifying geometries...")
    simplified = simplify_tracts(tracts, keep=keep)
    simplified.to_parquet(simplified_cache)
    logger.info(f"Saved simplified tracts to {simplified_cache}")
    return simplified
