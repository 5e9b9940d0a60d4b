"""Shared fixtures: small HHI source tables shaped like the released parquet files."""

import polars as pl
import pytest

from hhi_map.registry import CodeRegistry, default_registry


@pytest.fixture
def registry() -> CodeRegistry:
    return default_registry()


@pytest.fixture
def powertrain_df() -> pl.DataFrame:
    return pl.DataFrame({
        "GEOID": ["17031010100", "17031010100", "17031010200"],
        "powertrain": ["cv", "bev", "cv"],
        "listing_year": [2024, 2024, 2024],
        "hhi_make": [0.21234, 0.5, 0.3],
        "hhi_vehicle_type": [0.4, 0.9, 0.35],
        "hhi_price_bin": [0.11, 0.12, 0.13],
    })


@pytest.fixture
def vehicle_type_df() -> pl.DataFrame:
    return pl.DataFrame({
        "GEOID": ["17031010100", "17031010300"],
        "vehicle_type": ["suv", "pickup"],
        "listing_year": [2023, 2024],
        "hhi_make": [0.25, 0.6],
        "hhi_price_bin": [0.3, 0.7],
    })


@pytest.fixture
def price_bin_df() -> pl.DataFrame:
    return pl.DataFrame({
        "GEOID": ["17031010200", "17031010200"],
        "price_bin": ["$0-$10k", "$70k+"],
        "listing_year": [2024, 2024],
        "hhi_make": [0.1, 0.2],
        "hhi_vehicle_type": [0.3, 0.4],
    })


@pytest.fixture
def sources(powertrain_df, vehicle_type_df, price_bin_df) -> dict[str, pl.DataFrame]:
    return {
        "powertrain": powertrain_df,
        "vehicle_type": vehicle_type_df,
        "price_bin": price_bin_df,
    }
