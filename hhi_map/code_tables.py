# hhi_map/code_tables.py
"""Code tables for compact tile property names.

Column names follow the pattern {dimension}_{level}_{indicator}_{year},
e.g. pt_cv_mk_2024 = powertrain / gasoline / make-HHI / 2024.

- DIMENSION_SPECS maps raw values found in the source parquet files to short codes and
  display labels, one entry per grouping dimension.
- INDICATOR_SPECS maps indicator column names to short codes.

These tables are part of the contract with published tiles: changing a code renames
columns in every tile generated afterwards, so the viewer config must be regenerated
in the same run.
"""

from __future__ import annotations

from typing import Any

# -----------------------------------------------------------------------------
# Grouping dimensions
# -----------------------------------------------------------------------------
DIMENSION_SPECS: list[dict[str, Any]] = [
    {
        "name": "powertrain",
        "code": "pt",
        "label": "Powertrain",
        "column": "powertrain",
        "exclude_indicator": None,
        "levels": [
            {"value": "cv", "code": "cv", "label": "Gasoline"},
            {"value": "flex", "code": "flex", "label": "Flex Fuel (E85)"},
            {"value": "hev", "code": "hev", "label": "Hybrid Electric (HEV)"},
            {"value": "phev", "code": "phev", "label": "Plug-In Hybrid Electric (PHEV)"},
            {"value": "bev", "code": "bev", "label": "Battery Electric (BEV)"},
            {"value": "diesel", "code": "dsl", "label": "Diesel"},
            {"value": "fcev", "code": "fcev", "label": "Fuel Cell"},
        ],
    },
    {
        "name": "vehicle_type",
        "code": "vt",
        "label": "Vehicle Type",
        "column": "vehicle_type",
        # HHI over vehicle types is meaningless within a single vehicle type
        "exclude_indicator": "vt",
        "levels": [
            {"value": "car", "code": "car", "label": "Car"},
            {"value": "cuv", "code": "cuv", "label": "CUV"},
            {"value": "suv", "code": "suv", "label": "SUV"},
            {"value": "pickup", "code": "pup", "label": "Pickup"},
            {"value": "minivan", "code": "van", "label": "Minivan"},
        ],
    },
    {
        "name": "price_bin",
        "code": "pb",
        "label": "Price Bin",
        "column": "price_bin",
        "exclude_indicator": "pb",
        # Labels default to the raw value
        "levels": [
            {"value": "$0-$10k", "code": "p0"},
            {"value": "$10k-$20k", "code": "p10"},
            {"value": "$20k-$30k", "code": "p20"},
            {"value": "$30k-$40k", "code": "p30"},
            {"value": "$40k-$50k", "code": "p40"},
            {"value": "$50k-$60k", "code": "p50"},
            {"value": "$60k-$70k", "code": "p60"},
            {"value": "$70k+", "code": "p70"},
        ],
    },
]

# -----------------------------------------------------------------------------
# Indicators (HHI computed over ...)
# -----------------------------------------------------------------------------
INDICATOR_SPECS: list[dict[str, Any]] = [
    {"name": "hhi_make", "code": "mk", "label": "Make"},
    {"name": "hhi_vehicle_type", "code": "vt", "label": "Vehicle Type"},
    {"name": "hhi_price_bin", "code": "pb", "label": "Price Bin"},
]
