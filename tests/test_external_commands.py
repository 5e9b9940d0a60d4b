"""Tests for the mapshaper / tippecanoe hand-off (external tools are replaced with fakes)"""

from pathlib import Path

import geopandas as gpd
import polars as pl
import pytest

from hhi_map.external import run_command
from hhi_map.tiles import TileSettings, build_tippecanoe_command, partial_path, stage_pmtiles, write_pmtiles
from hhi_map.tracts import STATE_FIPS, build_mapshaper_command


def test_tippecanoe_command_defaults():
    cmd = build_tippecanoe_command("in.geojson", "out.pmtiles", TileSettings())

    assert cmd[0] == "tippecanoe"
    assert cmd[1:3] == ["-o", "out.pmtiles"]
    assert cmd[-1] == "in.geojson"
    for flag in (
        "--layer=tracts",
        "--minimum-zoom=2",
        "--maximum-zoom=12",
        "--simplification=2",
        "--detect-shared-borders",
        "--generate-ids",
        "--no-tile-size-limit",
        "--no-feature-limit",
    ):
        assert flag in cmd


def test_tippecanoe_optional_flags_off():
    settings = TileSettings(
        layer_name="hhi",
        min_zoom=4,
        max_zoom=10,
        simplification=1.5,
        detect_shared_borders=False,
        generate_ids=False,
        no_tile_size_limit=False,
        no_feature_limit=False,
    )
    cmd = build_tippecanoe_command("in.geojson", "out.pmtiles", settings)
    assert "--layer=hhi" in cmd
    assert "--simplification=1.5" in cmd
    assert not [c for c in cmd if c.startswith("--no-") or c in ("--generate-ids", "--detect-shared-borders")]


@pytest.mark.parametrize("kwargs", [{"min_zoom": 5, "max_zoom": 4}, {"min_zoom": -1}, {"simplification": 0}])
def test_tile_settings_validation(kwargs):
    with pytest.raises(ValueError):
        TileSettings(**kwargs)


def test_mapshaper_command():
    cmd = build_mapshaper_command("tracts.geojson", "simple.geojson", keep=0.05)
    assert cmd == [
        "mapshaper",
        "tracts.geojson",
        "-simplify",
        "5%",
        "keep-shapes",
        "-o",
        "simple.geojson",
        "format=geojson",
    ]


@pytest.mark.parametrize("keep", [0, -0.1, 1.01])
def test_mapshaper_keep_range(keep):
    with pytest.raises(ValueError):
        build_mapshaper_command("a", "b", keep=keep)


def test_missing_tool_fails_loudly():
    with pytest.raises(RuntimeError, match="not found"):
        run_command(["hhi-map-no-such-tool-xyz", "--version"])


def test_state_fips_list():
    assert len(STATE_FIPS) == 51
    assert "11" in STATE_FIPS  # DC
    assert all(len(s) == 2 and int(s) <= 56 for s in STATE_FIPS)
    assert len(set(STATE_FIPS)) == 51


def _joined_frame() -> pl.DataFrame:
    wkb = gpd.GeoSeries(gpd.points_from_xy([-87.6], [41.8])).to_wkb().tolist()
    return pl.DataFrame({"GEOID": ["17031010100"], "geometry": wkb, "pt_cv_mk_2024": [0.212]})


def test_write_pmtiles_publishes_tippecanoe_output(tmp_path, monkeypatch):
    calls = []

    def fake_run(cmd):
        calls.append(cmd)
        Path(cmd[2]).write_bytes(b"PMTiles")

    monkeypatch.setattr("hhi_map.tiles.run_command", fake_run)
    out = write_pmtiles(_joined_frame(), tmp_path / "tiles" / "hhi.pmtiles", TileSettings(), crs="EPSG:4269")

    assert out.read_bytes() == b"PMTiles"
    assert not partial_path(out).exists()
    assert calls[0][2] == str(partial_path(out))
    assert calls[0][-1].endswith("tracts.geojson")


def test_stage_pmtiles_cleans_up_on_failure(tmp_path, monkeypatch):
    def failing_run(cmd):
        Path(cmd[2]).write_bytes(b"half")
        raise RuntimeError("tippecanoe failed")

    monkeypatch.setattr("hhi_map.tiles.run_command", failing_run)
    out = tmp_path / "hhi.pmtiles"
    with pytest.raises(RuntimeError, match="tippecanoe failed"):
        stage_pmtiles(_joined_frame(), out, TileSettings(), crs="EPSG:4269")

    assert not out.exists()
    assert not partial_path(out).exists()
