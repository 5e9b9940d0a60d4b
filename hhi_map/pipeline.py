# hhi_map/pipeline.py
"""
End-to-end preparation of the HHI tract map data.

Flow:
    source parquet (one per dimension) -> pivot_wide -> merge_wide -> round_numeric
        -> join_geometry -> tippecanoe (PMTiles)
    code tables + observed years -> build_descriptor -> config.json

Every artifact is computed before the first one is written, so a fatal error
(unknown indicator, duplicate observation, failed checkpoint) publishes nothing.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import polars as pl

from hhi_map.compact import round_numeric
from hhi_map.config import PipelineSettings
from hhi_map.descriptor import build_descriptor, observed_years, write_descriptor
from hhi_map.geometry import geodataframe_to_polars, join_geometry
from hhi_map.merge import merge_wide
from hhi_map.pipeline_validator import PipelineValidator
from hhi_map.pivot import pivot_wide
from hhi_map.registry import CodeRegistry
from hhi_map.run_manifest import write_run_manifest
from hhi_map.sources import load_sources
from hhi_map.tiles import stage_pmtiles
from hhi_map.tracts import STATE_FIPS, load_simplified_tracts

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class PipelineOutputs:
    wide_path: Path
    descriptor_path: Path
    manifest_path: Path
    pmtiles_path: Path | None
    n_units: int
    n_columns: int
    n_joined: int | None
    years: list[int]


def build_wide_table(
    sources: Mapping[str, pl.DataFrame],
    registry: CodeRegistry,
    *,
    key_col: str = "GEOID",
    year_col: str = "listing_year",
    indicator_prefix: str = "hhi_",
    decimals: int = 3,
    validator: PipelineValidator | None = None,
) -> pl.DataFrame:
    """Pivot each dimension's table (registry order), merge on the key, round."""
    unknown = sorted(set(sources) - {d.name for d in registry.dimensions})
    if unknown:
        raise ValueError(f"Source tables for unknown dimensions: {unknown}")

    logger.info("Pivoting HHI data to wide format...")
    wide_list: list[pl.DataFrame] = []
    for dim in registry.dimensions:
        if dim.name not in sources:
            raise ValueError(f"No source table for dimension '{dim.name}'")
        logger.info(f"  {dim.name}...")
        wide = pivot_wide(
            sources[dim.name],
            dim.name,
            registry,
            key_col=key_col,
            year_col=year_col,
            indicator_prefix=indicator_prefix,
        )
        if validator is not None:
            validator.checkpoint(f"pivot_{dim.name}", wide)
        wide_list.append(wide)

    logger.info("Merging datasets...")
    merged = merge_wide(wide_list, key_col=key_col)

    # Rounded before the geometry join so geometry-side numeric fields are never touched
    compacted = round_numeric(merged, decimals=decimals, exclude=[key_col])
    if validator is not None:
        validator.checkpoint("merged", compacted)

    logger.info(f"  {len(compacted.columns) - 1} HHI columns for {compacted.height:,} tracts")
    return compacted


def _write_parquet_atomic(df: pl.DataFrame, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    os.close(fd)
    try:
        df.write_parquet(tmp)
        os.replace(tmp, path)
    finally:
        Path(tmp).unlink(missing_ok=True)
    logger.info(f"Saved wide table to {path}")
    return path


def run_pipeline(
    settings: PipelineSettings,
    registry: CodeRegistry,
    *,
    download: bool = True,
    skip_geometry: bool = False,
    skip_tiles: bool = False,
    command: str = "",
) -> PipelineOutputs:
    """Run the full preparation and write the artifacts under settings.data_dir.

    Args:
        download: fetch missing source parquet files from the release.
        skip_geometry: stop after the wide table (no tract join, no tiles).
        skip_tiles: join geometry (validating coverage) but do not run tippecanoe.

    Raises:
        RuntimeError: a validation checkpoint failed or an external tool failed.
    """
    validator = PipelineValidator(key_col=settings.key_col)

    sources = load_sources(settings, registry, download=download)
    for name, df in sources.items():
        validator.checkpoint(f"source_{name}", df, unique_key=False)

    wide = build_wide_table(
        sources,
        registry,
        key_col=settings.key_col,
        year_col=settings.year_col,
        indicator_prefix=settings.indicator_prefix,
        decimals=settings.decimals,
        validator=validator,
    )

    years = observed_years(sources.values(), year_col=settings.year_col)
    descriptor = build_descriptor(registry, years)

    joined: pl.DataFrame | None = None
    crs: object = None
    if not skip_geometry:
        logger.info("Joining to tract geometries...")
        tracts = load_simplified_tracts(
            settings.path(settings.tracts_file),
            settings.path(settings.tracts_simplified_file),
            settings.state_fips or STATE_FIPS,
            year=settings.geometry_year,
            cb=settings.cartographic,
            keep=settings.simplify_keep,
        )
        crs = tracts.crs
        geometry = geodataframe_to_polars(tracts, key_col=settings.key_col)
        joined = join_geometry(wide, geometry, key_col=settings.key_col)
        validator.checkpoint("joined", joined, required_cols=["geometry"])
        validator.compare_checkpoints("merged", "joined")

    validator.summary()
    if validator.failed:
        raise RuntimeError(f"Validation failed at: {validator.failed}; no artifacts written")

    # Tiles are staged first and published last, so the live PMTiles never lacks a matching config
    pmtiles_path: Path | None = None
    staged: Path | None = None
    if joined is not None and not skip_tiles:
        staged = stage_pmtiles(joined, settings.path(settings.pmtiles_file), settings.tiles, crs=crs)

    try:
        descriptor_path = write_descriptor(descriptor, settings.path(settings.descriptor_file))
        wide_path = _write_parquet_atomic(wide, settings.path(settings.wide_file))
        if staged is not None:
            pmtiles_path = settings.path(settings.pmtiles_file)
            os.replace(staged, pmtiles_path)
            logger.info(f"Saved PMTiles to {pmtiles_path}")
    finally:
        if staged is not None:
            staged.unlink(missing_ok=True)

    manifest_path = write_run_manifest(
        output_dir=settings.data_dir,
        command=command,
        registry_fingerprint=registry.fingerprint(),
        inputs={name: settings.path(fname) for name, fname in settings.sources.items()},
        outputs={"wide": wide_path, "config": descriptor_path, "pmtiles": pmtiles_path},
        counts={
            "units": wide.height,
            "hhi_columns": len(wide.columns) - 1,
            "joined_tracts": joined.height if joined is not None else -1,
        },
        years=years,
        repo_root=REPO_ROOT,
    )

    return PipelineOutputs(
        wide_path=wide_path,
        descriptor_path=descriptor_path,
        manifest_path=manifest_path,
        pmtiles_path=pmtiles_path,
        n_units=wide.height,
        n_columns=len(wide.columns) - 1,
        n_joined=joined.height if joined is not None else None,
        years=years,
    )
