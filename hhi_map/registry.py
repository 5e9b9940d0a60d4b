# hhi_map/registry.py
"""Immutable code table registry.

Built once from DIMENSION_SPECS / INDICATOR_SPECS (or a YAML override) and passed by
reference into every pipeline stage. Validation happens here, before any pivot runs.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from hhi_map.code_tables import DIMENSION_SPECS, INDICATOR_SPECS
from hhi_map.colnames import SEPARATOR
from hhi_map.errors import RegistryConfigError, UnrecognizedIndicator, UnrecognizedLevel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Level:
    value: str
    code: str
    label: str


@dataclass(frozen=True)
class Indicator:
    name: str
    code: str
    label: str


@dataclass(frozen=True)
class Dimension:
    """One grouping dimension and its ordered levels."""

    name: str
    code: str
    label: str
    column: str
    levels: tuple[Level, ...]
    exclude_indicator: str | None = None
    _by_value: Mapping[str, Level] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_value", MappingProxyType({lvl.value: lvl for lvl in self.levels}))

    @property
    def values(self) -> list[str]:
        return [lvl.value for lvl in self.levels]

    def level(self, value: object) -> Level:
        if not isinstance(value, str) or value not in self._by_value:
            raise UnrecognizedLevel(self.name, value)
        return self._by_value[value]

    def level_by_code(self, code: str) -> Level:
        for lvl in self.levels:
            if lvl.code == code:
                return lvl
        raise KeyError(f"No level with code '{code}' in dimension '{self.name}'")


@dataclass(frozen=True)
class CodeRegistry:
    """Dimensions and indicators, in display order."""

    dimensions: tuple[Dimension, ...]
    indicators: tuple[Indicator, ...]
    _dims: Mapping[str, Dimension] = field(init=False, repr=False, compare=False)
    _inds: Mapping[str, Indicator] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_dims", MappingProxyType({d.name: d for d in self.dimensions}))
        object.__setattr__(self, "_inds", MappingProxyType({i.name: i for i in self.indicators}))

    def dimension(self, name: str) -> Dimension:
        try:
            return self._dims[name]
        except KeyError:
            raise KeyError(f"Unknown dimension '{name}'. Known: {list(self._dims)}") from None

    def dimension_by_code(self, code: str) -> Dimension:
        for d in self.dimensions:
            if d.code == code:
                return d
        raise KeyError(f"No dimension with code '{code}'")

    def level(self, dimension_name: str, value: object) -> Level:
        return self.dimension(dimension_name).level(value)

    def is_recognized_level(self, dimension_name: str, value: object) -> bool:
        try:
            self.level(dimension_name, value)
        except UnrecognizedLevel:
            return False
        return True

    def indicator(self, name: str) -> Indicator:
        if name not in self._inds:
            raise UnrecognizedIndicator(name)
        return self._inds[name]

    def indicator_by_code(self, code: str) -> Indicator:
        for ind in self.indicators:
            if ind.code == code:
                return ind
        raise KeyError(f"No indicator with code '{code}'")

    def to_specs(self) -> dict[str, list[dict[str, Any]]]:
        """Dump back to the spec-list shape (used for fingerprinting and YAML export)."""
        return {
            "dimensions": [
                {
                    "name": d.name,
                    "code": d.code,
                    "label": d.label,
                    "column": d.column,
                    "exclude_indicator": d.exclude_indicator,
                    "levels": [{"value": lvl.value, "code": lvl.code, "label": lvl.label} for lvl in d.levels],
                }
                for d in self.dimensions
            ],
            "indicators": [{"name": i.name, "code": i.code, "label": i.label} for i in self.indicators],
        }

    def fingerprint(self) -> str:
        """Stable sha256 of the code tables; tiles and config from one run share it."""
        payload = json.dumps(self.to_specs(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()


# -----------------------------------------------------------------------------
# Construction + validation
# -----------------------------------------------------------------------------
def _require_code(where: str, code: object) -> str:
    if not isinstance(code, str) or not code:
        raise RegistryConfigError(f"{where}: code must be a non-empty string, got {code!r}")
    if SEPARATOR in code:
        raise RegistryConfigError(
            f"{where}: code {code!r} contains the reserved separator {SEPARATOR!r}; "
            "encoded column names would be ambiguous"
        )
    return code


def _require_unique(where: str, kind: str, items: list[str]) -> None:
    dupes = sorted(k for k, n in Counter(items).items() if n > 1)
    if dupes:
        raise RegistryConfigError(f"{where}: duplicate {kind}: {dupes}")


def _build_dimension(spec: Mapping[str, Any]) -> Dimension:
    name = spec.get("name")
    if not isinstance(name, str) or not name:
        raise RegistryConfigError(f"Dimension spec without a name: {dict(spec)}")
    where = f"dimension '{name}'"
    code = _require_code(where, spec.get("code"))

    raw_levels = spec.get("levels") or []
    if not raw_levels:
        raise RegistryConfigError(f"{where}: no levels defined")

    levels: list[Level] = []
    for lvl in raw_levels:
        value = lvl.get("value")
        if not isinstance(value, str) or not value:
            raise RegistryConfigError(f"{where}: level without a raw value: {dict(lvl)}")
        lvl_code = _require_code(f"{where}, level {value!r}", lvl.get("code"))
        levels.append(Level(value=value, code=lvl_code, label=str(lvl.get("label") or value)))

    _require_unique(where, "level values", [lvl.value for lvl in levels])
    _require_unique(where, "level codes", [lvl.code for lvl in levels])

    return Dimension(
        name=name,
        code=code,
        label=str(spec.get("label") or name),
        column=str(spec.get("column") or name),
        levels=tuple(levels),
        exclude_indicator=spec.get("exclude_indicator"),
    )


def registry_from_specs(
    dimension_specs: Sequence[Mapping[str, Any]],
    indicator_specs: Sequence[Mapping[str, Any]],
) -> CodeRegistry:
    """Validate spec lists and build a CodeRegistry.

    Raises:
        RegistryConfigError: on separator collisions, empty or duplicate codes, or an
            exclude_indicator that is not a known indicator code.
    """
    if not dimension_specs:
        raise RegistryConfigError("No dimensions defined")
    if not indicator_specs:
        raise RegistryConfigError("No indicators defined")

    dimensions = [_build_dimension(s) for s in dimension_specs]

    indicators: list[Indicator] = []
    for s in indicator_specs:
        name = s.get("name")
        if not isinstance(name, str) or not name:
            raise RegistryConfigError(f"Indicator spec without a name: {dict(s)}")
        code = _require_code(f"indicator '{name}'", s.get("code"))
        indicators.append(Indicator(name=name, code=code, label=str(s.get("label") or name)))

    _require_unique("registry", "dimension names", [d.name for d in dimensions])
    _require_unique("registry", "dimension codes", [d.code for d in dimensions])
    _require_unique("registry", "indicator names", [i.name for i in indicators])
    _require_unique("registry", "indicator codes", [i.code for i in indicators])

    indicator_codes = {i.code for i in indicators}
    for d in dimensions:
        if d.exclude_indicator is not None and d.exclude_indicator not in indicator_codes:
            raise RegistryConfigError(
                f"dimension '{d.name}': exclude_indicator {d.exclude_indicator!r} is not an indicator code "
                f"({sorted(indicator_codes)})"
            )

    return CodeRegistry(dimensions=tuple(dimensions), indicators=tuple(indicators))


@lru_cache(maxsize=1)
def default_registry() -> CodeRegistry:
    """Registry built from the in-repo code tables (once per process)."""
    return registry_from_specs(DIMENSION_SPECS, INDICATOR_SPECS)


def load_registry(path: Path | str | None = None) -> CodeRegistry:
    """Load code tables from a YAML file with `dimensions` and `indicators` lists.

    Args:
        path: YAML file. If None, returns the default in-repo registry.
    """
    if path is None:
        return default_registry()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Code table file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise RegistryConfigError(f"Code table root must be a mapping, got {type(data).__name__}")

    registry = registry_from_specs(data.get("dimensions") or [], data.get("indicators") or [])
    logger.info(
        f"Loaded code tables from {path}: {len(registry.dimensions)} dimensions, "
        f"{len(registry.indicators)} indicators (fingerprint {registry.fingerprint()[:12]})"
    )
    return registry
