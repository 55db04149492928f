"""
Rolling-window feature engineering for the risk model.

For each asset (readings oldest first, one per minute) computes the 24h
rolling mean / std / max / min, the 1h lag and the 24h rate of change of
every sensor, sampled once per stride (hourly by default) plus the newest
reading.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import polars as pl
from sqlalchemy.orm import Session

from pdm_dashboard.config import settings
from pdm_dashboard.db import crud

logger = logging.getLogger("pdm.features")

# (feature prefix, reading column)
SENSORS: list[tuple[str, str]] = [
    ("temp", "temp_f"),
    ("pressure", "pressure_psi"),
    ("vibration", "vibration_mm"),
]

FEATURE_COLUMNS: list[str] = [
    *(f"{p}_{stat}_24h" for p, _ in SENSORS for stat in ("mean", "std", "max", "min")),
    *(f"{p}_lag_1h" for p, _ in SENSORS),
    *(f"{p}_roc_24h" for p, _ in SENSORS),
]


def readings_frame(readings: Sequence[Any]) -> pl.DataFrame:
    """ORM readings (oldest first) -> polars frame."""
    return pl.DataFrame(
        {
            "timestamp": [r.timestamp for r in readings],
            "temp_f": [r.temp_f for r in readings],
            "pressure_psi": [r.pressure_psi for r in readings],
            "vibration_mm": [r.vibration_mm for r in readings],
            "failure_flag": [r.failure_flag for r in readings],
        },
        schema={
            "timestamp": pl.Utf8,
            "temp_f": pl.Float64,
            "pressure_psi": pl.Float64,
            "vibration_mm": pl.Float64,
            "failure_flag": pl.Int64,
        },
    )


def build_features(
    frame: pl.DataFrame,
    window: int | None = None,
    lag: int | None = None,
    stride: int | None = None,
) -> pl.DataFrame:
    window = window or settings.feature_window_readings
    lag = lag or settings.feature_lag_readings
    stride = stride or settings.feature_stride_readings

    if frame.height == 0:
        return pl.DataFrame(schema={"window_end": pl.Utf8, **{c: pl.Float64 for c in FEATURE_COLUMNS}, "failure_flag": pl.Int64})

    exprs: list[pl.Expr] = []
    for prefix, column in SENSORS:
        col = pl.col(column)
        # Start of the (possibly partial) window.
        base = pl.coalesce(col.shift(window - 1), col.first())
        exprs += [
            col.rolling_mean(window, min_samples=1).alias(f"{prefix}_mean_24h"),
            col.rolling_std(window, min_samples=2).alias(f"{prefix}_std_24h"),
            col.rolling_max(window, min_samples=1).alias(f"{prefix}_max_24h"),
            col.rolling_min(window, min_samples=1).alias(f"{prefix}_min_24h"),
            col.shift(lag).alias(f"{prefix}_lag_1h"),
            pl.when(base != 0).then((col - base) / base * 100).otherwise(None).alias(f"{prefix}_roc_24h"),
        ]

    last = frame.height - 1
    return (
        frame.with_row_index("row")
        .with_columns(exprs)
        .filter(((pl.col("row") + 1) % stride == 0) | (pl.col("row") == last))
        .select(
            pl.col("timestamp").alias("window_end"),
            *FEATURE_COLUMNS,
            "failure_flag",
        )
    )


def rebuild_features(session: Session, asset_id: str) -> int:
    """Recompute and store the feature rows of one asset."""
    readings = crud.get_all_readings(session, asset_id)
    features = build_features(readings_frame(readings))
    count = crud.replace_features(session, asset_id, features.to_dicts())
    logger.info("Rebuilt %d feature rows for %s from %d readings", count, asset_id, len(readings))
    return count
