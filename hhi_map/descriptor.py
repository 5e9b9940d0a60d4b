# hhi_map/descriptor.py
"""Viewer config: decodes tile property names back into labels.

Shape consumed by the viewer:

    {
      "groupVars": [{"label", "code", "levels": [{"label", "code"}], "excludeIndicator"?}],
      "indicators": [{"label", "code"}],
      "years": [int]
    }
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import polars as pl

from hhi_map.colnames import decode
from hhi_map.registry import CodeRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LevelEntry:
    label: str
    code: str


@dataclass(frozen=True)
class IndicatorEntry:
    label: str
    code: str


@dataclass(frozen=True)
class GroupVar:
    label: str
    code: str
    levels: tuple[LevelEntry, ...]
    exclude_indicator: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "label": self.label,
            "code": self.code,
            "levels": [{"label": lvl.label, "code": lvl.code} for lvl in self.levels],
        }
        if self.exclude_indicator is not None:
            out["excludeIndicator"] = self.exclude_indicator
        return out


@dataclass(frozen=True)
class ConfigDescriptor:
    group_vars: tuple[GroupVar, ...]
    indicators: tuple[IndicatorEntry, ...]
    years: tuple[int, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "groupVars": [gv.to_dict() for gv in self.group_vars],
            "indicators": [{"label": i.label, "code": i.code} for i in self.indicators],
            "years": list(self.years),
        }

    def decode(self, column: str) -> dict[str, Any]:
        """Human labels for an encoded column name.

        Raises:
            ValueError: not an encoded name.
            KeyError: a code the descriptor does not list.
        """
        key = decode(column)
        group = next((gv for gv in self.group_vars if gv.code == key.dimension_code), None)
        if group is None:
            raise KeyError(f"Unknown dimension code '{key.dimension_code}' in {column!r}")
        level = next((lvl for lvl in group.levels if lvl.code == key.level_code), None)
        if level is None:
            raise KeyError(f"Unknown level code '{key.level_code}' for '{group.code}' in {column!r}")
        indicator = next((i for i in self.indicators if i.code == key.indicator_code), None)
        if indicator is None:
            raise KeyError(f"Unknown indicator code '{key.indicator_code}' in {column!r}")
        if key.year not in self.years:
            raise KeyError(f"Year {key.year} not in descriptor years {list(self.years)}")
        return {"group": group.label, "level": level.label, "indicator": indicator.label, "year": key.year}


def observed_years(tables: Iterable[pl.DataFrame], *, year_col: str = "listing_year") -> list[int]:
    """Sorted distinct years across all source tables."""
    years: set[int] = set()
    for df in tables:
        if year_col not in df.columns:
            raise ValueError(f"Missing year column '{year_col}'")
        years.update(int(y) for y in df[year_col].drop_nulls().unique().to_list())
    return sorted(years)


def build_descriptor(registry: CodeRegistry, years: Iterable[int]) -> ConfigDescriptor:
    """Walk the registry one dimension at a time."""
    group_vars = tuple(
        GroupVar(
            label=dim.label,
            code=dim.code,
            levels=tuple(LevelEntry(label=lvl.label, code=lvl.code) for lvl in dim.levels),
            exclude_indicator=dim.exclude_indicator,
        )
        for dim in registry.dimensions
    )
    indicators = tuple(IndicatorEntry(label=i.label, code=i.code) for i in registry.indicators)
    return ConfigDescriptor(group_vars=group_vars, indicators=indicators, years=tuple(sorted(set(years))))


def write_descriptor(descriptor: ConfigDescriptor, path: Path | str) -> Path:
    """Write pretty JSON atomically (temp file in the same directory, then rename)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(descriptor.to_dict(), indent=2, ensure_ascii=False) + "\n"

    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise

    logger.info(f"Saved config to {path}")
    return path
