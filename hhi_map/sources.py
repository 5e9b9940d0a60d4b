# hhi_map/sources.py
"""Source HHI parquet files: download once from the release, then read from disk."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

import polars as pl
import requests

from hhi_map.config import PipelineSettings
from hhi_map.registry import CodeRegistry

logger = logging.getLogger(__name__)


def download_source(url: str, dest: Path | str, *, timeout: int = 300) -> Path:
    """Download `url` to `dest` unless it already exists.

    The body is streamed to a temporary file next to `dest` and renamed on success,
    so an interrupted download never leaves a truncated parquet behind.
    """
    dest = Path(dest)
    if dest.exists():
        return dest

    dest.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Downloading {dest.name}...")

    fd, tmp = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".part")
    try:
        try:
            with os.fdopen(fd, "wb") as f, requests.get(url, stream=True, timeout=timeout) as resp:
                resp.raise_for_status()
                for chunk in resp.iter_content(chunk_size=1 << 20):
                    f.write(chunk)
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            body = e.response.text[:500] if e.response is not None and e.response.text else str(e)
            raise RuntimeError(f"Download of {url} failed with HTTP {status_code}.\nResponse body: {body}") from e
        except requests.exceptions.RequestException as e:
            raise RuntimeError(f"Download of {url} failed with error: {e}") from e
        os.replace(tmp, dest)
    finally:
        Path(tmp).unlink(missing_ok=True)

    return dest


def read_source(path: Path | str, *, required_cols: Iterable[str] = ()) -> pl.DataFrame:
    """Read one source parquet, logging its schema and checking required columns."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Source parquet not found: {path}")

    df = pl.read_parquet(path)
    schema = ", ".join(f"{name}: {dtype}" for name, dtype in df.schema.items())
    logger.info(f"Schema for {path.name}: {schema}")

    missing = [c for c in required_cols if c not in df.columns]
    if missing:
        raise ValueError(f"Source parquet {path} missing required columns: {missing}")
    return df


def load_sources(
    settings: PipelineSettings,
    registry: CodeRegistry,
    *,
    download: bool = True,
) -> dict[str, pl.DataFrame]:
    """One long table per registry dimension, in registry order."""
    unknown = sorted(set(settings.sources) - {d.name for d in registry.dimensions})
    if unknown:
        raise ValueError(f"Sources configured for unknown dimensions: {unknown}")

    tables: dict[str, pl.DataFrame] = {}
    for dim in registry.dimensions:
        if dim.name not in settings.sources:
            raise ValueError(f"No source file configured for dimension '{dim.name}'")
        path = settings.path(settings.sources[dim.name])
        if download:
            download_source(settings.source_url(dim.name), path, timeout=settings.download_timeout)
        tables[dim.name] = read_source(path, required_cols=[settings.key_col, dim.column, settings.year_col])
    return tables
