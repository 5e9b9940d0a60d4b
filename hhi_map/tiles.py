# hhi_map/tiles.py
"""Hand the joined tract table to tippecanoe to build a PMTiles archive."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

import polars as pl

from hhi_map.external import run_command
from hhi_map.geometry import polars_to_geodataframe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TileSettings:
    layer_name: str = "tracts"
    min_zoom: int = 2
    max_zoom: int = 12
    simplification: float = 2
    detect_shared_borders: bool = True
    generate_ids: bool = True
    no_tile_size_limit: bool = True
    no_feature_limit: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.min_zoom <= self.max_zoom:
            raise ValueError(f"Invalid zoom range: min_zoom={self.min_zoom}, max_zoom={self.max_zoom}")
        if self.simplification <= 0:
            raise ValueError(f"simplification must be > 0, got {self.simplification}")


def build_tippecanoe_command(input_path: Path | str, output_path: Path | str, settings: TileSettings) -> list[str]:
    cmd = [
        "tippecanoe",
        "-o",
        str(output_path),
        "--force",
        f"--layer={settings.layer_name}",
        f"--minimum-zoom={settings.min_zoom}",
        f"--maximum-zoom={settings.max_zoom}",
        f"--simplification={settings.simplification:g}",
    ]
    if settings.detect_shared_borders:
        cmd.append("--detect-shared-borders")
    if settings.generate_ids:
        cmd.append("--generate-ids")
    if settings.no_tile_size_limit:
        cmd.append("--no-tile-size-limit")
    if settings.no_feature_limit:
        cmd.append("--no-feature-limit")
    cmd.append(str(input_path))
    return cmd


def partial_path(output_path: Path | str) -> Path:
    output_path = Path(output_path)
    return output_path.with_name(f".{output_path.stem}.partial{output_path.suffix}")


def stage_pmtiles(
    joined: pl.DataFrame,
    output_path: Path | str,
    settings: TileSettings,
    *,
    crs: object,
    geometry_col: str = "geometry",
) -> Path:
    """Run tippecanoe on `joined` (key + WKB geometry + HHI columns) into a hidden partial file.

    Returns the partial path; the caller publishes it with os.replace once the other
    artifacts are written. Nothing is left behind if tippecanoe fails.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    gdf = polars_to_geodataframe(joined, crs=crs, geometry_col=geometry_col).to_crs(epsg=4326)

    logger.info(f"Creating PMTiles for {len(gdf):,} features (this may take a few minutes)...")
    partial = partial_path(output_path)
    with tempfile.TemporaryDirectory(prefix="hhi_tiles_") as tmp:
        src = Path(tmp) / "tracts.geojson"
        gdf.to_file(src, driver="GeoJSON")
        try:
            run_command(build_tippecanoe_command(src, partial, settings))
        except BaseException:
            partial.unlink(missing_ok=True)
            raise
    return partial


def write_pmtiles(
    joined: pl.DataFrame,
    output_path: Path | str,
    settings: TileSettings,
    *,
    crs: object,
    geometry_col: str = "geometry",
) -> Path:
    """Stage and publish in one step."""
    output_path = Path(output_path)
    staged = stage_pmtiles(joined, output_path, settings, crs=crs, geometry_col=geometry_col)
    os.replace(staged, output_path)
    logger.info(f"Saved PMTiles to {output_path}")
    return output_path
