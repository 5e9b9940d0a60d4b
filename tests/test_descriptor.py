"""Tests for the viewer config descriptor"""

import json

import polars as pl
import pytest

from hhi_map.colnames import decode, encode
from hhi_map.descriptor import build_descriptor, observed_years, write_descriptor
from hhi_map.pipeline import build_wide_table


def test_descriptor_structure(registry):
    config = build_descriptor(registry, [2024, 2023, 2024]).to_dict()

    assert list(config) == ["groupVars", "indicators", "years"]
    assert config["years"] == [2023, 2024]
    assert [gv["code"] for gv in config["groupVars"]] == ["pt", "vt", "pb"]
    assert [gv["label"] for gv in config["groupVars"]] == ["Powertrain", "Vehicle Type", "Price Bin"]
    assert config["indicators"] == [
        {"label": "Make", "code": "mk"},
        {"label": "Vehicle Type", "code": "vt"},
        {"label": "Price Bin", "code": "pb"},
    ]


def test_self_referential_indicator_excluded(registry):
    pt, vt, pb = build_descriptor(registry, [2024]).to_dict()["groupVars"]

    assert "excludeIndicator" not in pt
    assert vt["excludeIndicator"] == "vt"
    assert pb["excludeIndicator"] == "pb"


def test_levels_in_registry_order(registry):
    pt, vt, pb = build_descriptor(registry, [2024]).to_dict()["groupVars"]

    assert pt["levels"][0] == {"label": "Gasoline", "code": "cv"}
    assert {"label": "Diesel", "code": "dsl"} in pt["levels"]
    assert [lvl["code"] for lvl in vt["levels"]] == ["car", "cuv", "suv", "pup", "van"]
    assert pb["levels"][0] == {"label": "$0-$10k", "code": "p0"}
    assert pb["levels"][-1] == {"label": "$70k+", "code": "p70"}


def test_observed_years_across_tables():
    a = pl.DataFrame({"listing_year": [2024, 2022, None]})
    b = pl.DataFrame({"listing_year": [2023, 2024]})
    assert observed_years([a, b]) == [2022, 2023, 2024]

    with pytest.raises(ValueError):
        observed_years([pl.DataFrame({"year": [2024]})])


def test_every_wide_column_decodes(registry, sources):
    wide = build_wide_table(sources, registry)
    descriptor = build_descriptor(registry, observed_years(sources.values()))

    for column in wide.columns[1:]:
        labels = descriptor.decode(column)
        key = decode(column)
        dim = registry.dimension_by_code(key.dimension_code)
        assert labels["group"] == dim.label
        assert labels["level"] == dim.level_by_code(key.level_code).label
        assert labels["indicator"] == registry.indicator_by_code(key.indicator_code).label
        assert encode(*key) == column


def test_decode_labels(registry):
    descriptor = build_descriptor(registry, [2024])
    assert descriptor.decode("pt_dsl_mk_2024") == {
        "group": "Powertrain",
        "level": "Diesel",
        "indicator": "Make",
        "year": 2024,
    }


@pytest.mark.parametrize("column", ["zz_cv_mk_2024", "pt_zz_mk_2024", "pt_cv_zz_2024", "pt_cv_mk_1999"])
def test_decode_unknown_codes(registry, column):
    descriptor = build_descriptor(registry, [2024])
    with pytest.raises(KeyError):
        descriptor.decode(column)


def test_write_descriptor(registry, tmp_path):
    descriptor = build_descriptor(registry, [2023, 2024])
    path = write_descriptor(descriptor, tmp_path / "out" / "config.json")

    text = path.read_text(encoding="utf-8")
    assert text.endswith("\n")
    assert json.loads(text) == descriptor.to_dict()
    assert "$70k+" in text
    assert [p.name for p in path.parent.iterdir()] == ["config.json"]
