"""
Configuration loader for HHI map data preparation runs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

import yaml

from hhi_map.tiles import TileSettings

DEFAULT_RELEASE_BASE_URL = "https://github.com/vehicletrends/vehicletrends/releases/download/data-v1"

DEFAULT_SOURCES: dict[str, str] = {
    "powertrain": "hhi_pt_60.parquet",
    "vehicle_type": "hhi_vt_60.parquet",
    "price_bin": "hhi_pb_60.parquet",
}


def load_config(config_path: Path | str | None = None) -> dict[str, Any]:
    """
    Load configuration from YAML file with environment variable substitution.

    Args:
        config_path: Path to config file. If None, uses config/hhi_map.yaml in the
            project root when present, otherwise an empty config (all defaults).

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If an explicit config file does not exist
        ValueError: If the YAML root is not a mapping
    """
    if config_path is None:
        project_root = Path(__file__).parent.parent
        default_path = project_root / "config" / "hhi_map.yaml"
        if not default_path.exists():
            return {}
        config_path = default_path

    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        config: dict[str, Any] = {}
    elif not isinstance(data, dict):
        raise ValueError(f"Config root must be a mapping, got {type(data).__name__}")
    else:
        config = cast(dict[str, Any], data)

    return cast(dict[str, Any], _substitute_env_vars(config))


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute ${VAR} patterns with environment variables."""
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    if isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
        var_name = obj[2:-1]
        return os.getenv(var_name, obj)  # fall back to original if unset
    return obj


@dataclass(frozen=True)
class PipelineSettings:
    """Resolved settings for one run. Relative filenames live under data_dir."""

    data_dir: Path = Path("data")
    release_base_url: str = DEFAULT_RELEASE_BASE_URL
    sources: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SOURCES))
    registry_path: Path | None = None

    key_col: str = "GEOID"
    year_col: str = "listing_year"
    indicator_prefix: str = "hhi_"
    decimals: int = 3

    geometry_year: int = 2020
    cartographic: bool = True
    state_fips: tuple[str, ...] | None = None
    simplify_keep: float = 0.05
    tracts_file: str = "tracts.parquet"
    tracts_simplified_file: str = "tracts_simplified.parquet"

    tiles: TileSettings = field(default_factory=TileSettings)
    pmtiles_file: str = "hhi_tracts.pmtiles"
    descriptor_file: str = "config.json"
    wide_file: str = "hhi_wide.parquet"
    download_timeout: int = 300

    def path(self, filename: str) -> Path:
        return self.data_dir / filename

    def source_url(self, dimension: str) -> str:
        return f"{self.release_base_url.rstrip('/')}/{self.sources[dimension]}"


def settings_from_config(config: dict[str, Any] | None = None) -> PipelineSettings:
    """
    Build PipelineSettings from a loaded config dict.

    Recognized sections: data_dir, release_base_url, registry, sources, columns,
    rounding, geometry, tiles, outputs. Missing keys keep their defaults.

    Raises:
        ValueError: for out-of-range values (negative rounding, keep outside (0, 1],
            inverted zoom range) or an empty sources mapping.
    """
    if config is None:
        config = load_config()

    columns = config.get("columns", {}) or {}
    geometry = config.get("geometry", {}) or {}
    tiles_cfg = config.get("tiles", {}) or {}
    outputs = config.get("outputs", {}) or {}

    sources = config.get("sources", DEFAULT_SOURCES)
    if not isinstance(sources, dict) or not sources:
        raise ValueError("Config 'sources' must be a non-empty mapping of dimension -> filename")

    decimals = int(config.get("rounding", 3))
    if decimals < 0:
        raise ValueError(f"rounding must be >= 0, got {decimals}")

    keep = float(geometry.get("keep", 0.05))
    if not 0 < keep <= 1:
        raise ValueError(f"geometry.keep must be in (0, 1], got {keep}")

    state_fips = geometry.get("states")
    registry = config.get("registry")

    tiles = TileSettings(
        layer_name=str(tiles_cfg.get("layer_name", "tracts")),
        min_zoom=int(tiles_cfg.get("min_zoom", 2)),
        max_zoom=int(tiles_cfg.get("max_zoom", 12)),
        simplification=float(tiles_cfg.get("simplification", 2)),
        detect_shared_borders=bool(tiles_cfg.get("detect_shared_borders", True)),
        generate_ids=bool(tiles_cfg.get("generate_ids", True)),
        no_tile_size_limit=bool(tiles_cfg.get("no_tile_size_limit", True)),
        no_feature_limit=bool(tiles_cfg.get("no_feature_limit", True)),
    )

    return PipelineSettings(
        data_dir=Path(config.get("data_dir", "data")),
        release_base_url=str(config.get("release_base_url", DEFAULT_RELEASE_BASE_URL)),
        sources={str(k): str(v) for k, v in sources.items()},
        registry_path=Path(registry) if registry else None,
        key_col=str(columns.get("key", "GEOID")),
        year_col=str(columns.get("year", "listing_year")),
        indicator_prefix=str(columns.get("indicator_prefix", "hhi_")),
        decimals=decimals,
        geometry_year=int(geometry.get("year", 2020)),
        cartographic=bool(geometry.get("cartographic", True)),
        state_fips=tuple(str(s).zfill(2) for s in state_fips) if state_fips else None,
        simplify_keep=keep,
        tracts_file=str(geometry.get("tracts_file", "tracts.parquet")),
        tracts_simplified_file=str(geometry.get("simplified_file", "tracts_simplified.parquet")),
        tiles=tiles,
        pmtiles_file=str(outputs.get("pmtiles", "hhi_tracts.pmtiles")),
        descriptor_file=str(outputs.get("config", "config.json")),
        wide_file=str(outputs.get("wide", "hhi_wide.parquet")),
        download_timeout=int(config.get("download_timeout", 300)),
    )
