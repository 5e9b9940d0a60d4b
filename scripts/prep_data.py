#!/usr/bin/env python3
"""
Build the HHI tract map data: wide HHI table, PMTiles and viewer config.

Usage:
    python scripts/prep_data.py
    python scripts/prep_data.py --config config/hhi_map.yaml --data-dir data
    python scripts/prep_data.py --skip-tiles            # everything except tippecanoe
    python scripts/prep_data.py --skip-geometry --no-download

Requires mapshaper and tippecanoe on PATH unless geometry/tiles are skipped.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, replace
from pathlib import Path

from hhi_map.config import load_config, settings_from_config
from hhi_map.errors import HhiMapError
from hhi_map.pipeline import run_pipeline
from hhi_map.registry import load_registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrepArgs:
    """Parsed CLI arguments."""

    config: Path | None
    registry: Path | None
    data_dir: Path | None
    download: bool
    skip_geometry: bool
    skip_tiles: bool
    log_file: Path | None


def _parse_args(argv: list[str] | None = None) -> PrepArgs:
    parser = argparse.ArgumentParser(
        description="Prepare HHI census tract map data (PMTiles + config.json)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, default=None, help="Config file (default: config/hhi_map.yaml)")
    parser.add_argument("--registry", type=Path, default=None, help="YAML override of the code tables")
    parser.add_argument("--data-dir", type=Path, default=None, help="Data/output directory (default: from config)")
    parser.add_argument("--no-download", action="store_true", help="Fail instead of downloading missing sources")
    parser.add_argument("--skip-geometry", action="store_true", help="Stop after the wide table")
    parser.add_argument("--skip-tiles", action="store_true", help="Join geometry but do not run tippecanoe")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")

    ns = parser.parse_args(argv)
    return PrepArgs(
        config=ns.config,
        registry=ns.registry,
        data_dir=ns.data_dir,
        download=not ns.no_download,
        skip_geometry=ns.skip_geometry,
        skip_tiles=ns.skip_tiles,
        log_file=ns.log_file,
    )


def _configure_logging(log_path: Path | None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_path), encoding="utf-8"))

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.log_file)

    try:
        settings = settings_from_config(load_config(args.config))
        if args.data_dir is not None:
            settings = replace(settings, data_dir=args.data_dir)
        registry = load_registry(args.registry or settings.registry_path)

        outputs = run_pipeline(
            settings,
            registry,
            download=args.download,
            skip_geometry=args.skip_geometry,
            skip_tiles=args.skip_tiles,
            command=" ".join(sys.argv),
        )
    except (HhiMapError, ValueError, FileNotFoundError, RuntimeError) as e:
        logger.error("Data preparation failed: %s", e)
        return 1

    logger.info("=" * 70)
    logger.info("Done: %d tracts, %d HHI columns, years %s", outputs.n_units, outputs.n_columns, outputs.years)
    logger.info("  wide table: %s", outputs.wide_path)
    logger.info("  config:     %s", outputs.descriptor_path)
    if outputs.pmtiles_path is not None:
        logger.info("  pmtiles:    %s", outputs.pmtiles_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
