"""Tests for the long -> wide pivot"""

import logging

import polars as pl
import pytest

from hhi_map.errors import DuplicateObservation, UnrecognizedIndicator
from hhi_map.pivot import pivot_wide, unrecognized_levels


def test_price_bin_column_names(registry):
    df = pl.DataFrame({
        "GEOID": ["06001400100", "06001400100"],
        "price_bin": ["$0-$10k", "$70k+"],
        "listing_year": [2024, 2024],
        "hhi_price_bin": [0.41, 0.87],
    })
    wide = pivot_wide(df, "price_bin", registry)

    assert wide.columns == ["GEOID", "pb_p0_pb_2024", "pb_p70_pb_2024"]
    assert wide.height == 1
    assert wide.row(0) == ("06001400100", 0.41, 0.87)


def test_unrecognized_level_is_dropped(registry, caplog):
    df = pl.DataFrame({
        "GEOID": ["A", "A", "B"],
        "powertrain": ["cv", "steam", "steam"],
        "listing_year": [2024, 2024, 2024],
        "hhi_make": [0.2, 0.9, 0.8],
    })
    with caplog.at_level(logging.WARNING, logger="hhi_map.pivot"):
        wide = pivot_wide(df, "powertrain", registry)

    assert wide.columns == ["GEOID", "pt_cv_mk_2024"]
    assert wide["GEOID"].to_list() == ["A"]
    assert not any("steam" in c for c in wide.columns)
    assert "dropped 2 rows" in caplog.text
    assert "steam" in caplog.text


def test_null_level_is_dropped(registry):
    df = pl.DataFrame({
        "GEOID": ["A", "B"],
        "powertrain": ["hev", None],
        "listing_year": [2024, 2024],
        "hhi_make": [0.2, 0.3],
    })
    wide = pivot_wide(df, "powertrain", registry)
    assert wide["GEOID"].to_list() == ["A"]
    assert unrecognized_levels(df, "powertrain", registry) == [None]


def test_raw_values_are_recoded(registry):
    df = pl.DataFrame({
        "GEOID": ["A", "A"],
        "vehicle_type": ["pickup", "minivan"],
        "listing_year": [2022, 2022],
        "hhi_make": [0.2, 0.3],
    })
    wide = pivot_wide(df, "vehicle_type", registry)
    assert wide.columns == ["GEOID", "vt_pup_mk_2022", "vt_van_mk_2022"]


def test_columns_follow_registry_order(registry):
    df = pl.DataFrame({
        "GEOID": ["A", "A", "A"],
        "powertrain": ["bev", "cv", "cv"],
        "listing_year": [2024, 2024, 2023],
        "hhi_vehicle_type": [0.1, 0.2, 0.3],
        "hhi_make": [0.4, 0.5, 0.6],
    })
    wide = pivot_wide(df, "powertrain", registry)
    assert wide.columns == [
        "GEOID",
        "pt_cv_mk_2023",
        "pt_cv_mk_2024",
        "pt_cv_vt_2023",
        "pt_cv_vt_2024",
        "pt_bev_mk_2024",
        "pt_bev_vt_2024",
    ]
    assert wide["pt_cv_mk_2023"].to_list() == [0.6]
    assert wide["pt_bev_vt_2024"].to_list() == [0.1]


def test_one_row_per_unit_with_missing_cells(registry):
    df = pl.DataFrame({
        "GEOID": ["B", "A"],
        "powertrain": ["bev", "cv"],
        "listing_year": [2023, 2024],
        "hhi_make": [0.7, None],
    })
    wide = pivot_wide(df, "powertrain", registry)

    assert wide["GEOID"].to_list() == ["A", "B"]
    assert set(wide.columns) == {"GEOID", "pt_cv_mk_2024", "pt_bev_mk_2023"}
    rows = {r["GEOID"]: r for r in wide.to_dicts()}
    assert rows["A"]["pt_bev_mk_2023"] is None
    assert rows["A"]["pt_cv_mk_2024"] is None  # null input value stays null
    assert rows["B"]["pt_cv_mk_2024"] is None
    assert rows["B"]["pt_bev_mk_2023"] == 0.7


def test_only_observed_columns(registry, powertrain_df):
    wide = pivot_wide(powertrain_df, "powertrain", registry)
    # 2 levels x 3 indicators x 1 year, never the full level grid
    assert len(wide.columns) - 1 == 6
    assert wide.schema["GEOID"] == pl.Utf8
    assert all(wide.schema[c] == pl.Float64 for c in wide.columns[1:])


def test_non_indicator_columns_ignored(registry):
    df = pl.DataFrame({
        "GEOID": ["A"],
        "price_bin": ["$30k-$40k"],
        "listing_year": [2024],
        "n_listings": [120],
        "hhi_make": [0.25],
    })
    wide = pivot_wide(df, "price_bin", registry)
    assert wide.columns == ["GEOID", "pb_p30_mk_2024"]


def test_duplicate_observation_is_fatal(registry):
    df = pl.DataFrame({
        "GEOID": ["A", "A"],
        "powertrain": ["cv", "cv"],
        "listing_year": [2024, 2024],
        "hhi_make": [0.2, 0.3],
    })
    with pytest.raises(DuplicateObservation, match="A:pt_cv_mk_2024"):
        pivot_wide(df, "powertrain", registry)


def test_unrecognized_indicator_is_fatal(registry):
    df = pl.DataFrame({
        "GEOID": ["A"],
        "powertrain": ["cv"],
        "listing_year": [2024],
        "hhi_body_style": [0.2],
    })
    with pytest.raises(UnrecognizedIndicator):
        pivot_wide(df, "powertrain", registry)


def test_non_numeric_indicator_is_fatal(registry):
    df = pl.DataFrame({
        "GEOID": ["A"],
        "powertrain": ["cv"],
        "listing_year": [2024],
        "hhi_make": ["n/a"],
    })
    with pytest.raises(ValueError, match="hhi_make"):
        pivot_wide(df, "powertrain", registry)


def test_all_null_indicator_column_is_kept(registry):
    df = pl.DataFrame({
        "GEOID": ["A"],
        "powertrain": ["cv"],
        "listing_year": [2024],
        "hhi_make": [None],
    })
    wide = pivot_wide(df, "powertrain", registry)
    assert wide.to_dicts() == [{"GEOID": "A", "pt_cv_mk_2024": None}]


def test_missing_columns(registry):
    df = pl.DataFrame({"GEOID": ["A"], "powertrain": ["cv"], "hhi_make": [0.2]})
    with pytest.raises(ValueError, match="listing_year"):
        pivot_wide(df, "powertrain", registry)


def test_no_indicator_columns(registry):
    df = pl.DataFrame({"GEOID": ["A"], "powertrain": ["cv"], "listing_year": [2024]})
    with pytest.raises(ValueError, match="No indicator columns"):
        pivot_wide(df, "powertrain", registry)


def test_null_key_is_rejected(registry):
    df = pl.DataFrame({
        "GEOID": [None, "A"],
        "powertrain": ["cv", "cv"],
        "listing_year": [2024, 2024],
        "hhi_make": [0.2, 0.3],
    })
    with pytest.raises(ValueError, match="null GEOID"):
        pivot_wide(df, "powertrain", registry)


def test_all_rows_unrecognized(registry):
    df = pl.DataFrame({
        "GEOID": ["A"],
        "powertrain": ["steam"],
        "listing_year": [2024],
        "hhi_make": [0.2],
    })
    wide = pivot_wide(df, "powertrain", registry)
    assert wide.columns == ["GEOID"]
    assert wide.height == 0


def test_custom_column_names(registry):
    df = pl.DataFrame({
        "tract": ["A"],
        "powertrain": ["fcev"],
        "year": [2021],
        "hhi_make": [0.5],
    })
    wide = pivot_wide(df, "powertrain", registry, key_col="tract", year_col="year")
    assert wide.columns == ["tract", "pt_fcev_mk_2021"]
