"""
Seed the database with sample assets and write sample sensor CSVs.

Pre-seeded assets get their readings loaded straight into SQLite (and a copy
in data/seeds/); the upload-test assets are only written as CSV so they can
be pushed through POST /api/upload.

Usage:
    python scripts/seed.py [--readings 1000] [--seed 42]
"""

import argparse
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import polars as pl
from sqlalchemy import delete

from pdm_dashboard.config import settings
from pdm_dashboard.core.ingest import normalize_timestamp
from pdm_dashboard.db import crud
from pdm_dashboard.db.migrate import run_migrations
from pdm_dashboard.db.models import (
    AssetRow,
    DataQualityIssueRow,
    FeatureRow,
    PredictionRow,
    SensorReadingRow,
    UploadedFileRow,
)
from pdm_dashboard.db.session import SessionLocal

logger = logging.getLogger("pdm.seed")

SEEDS_DIR = Path(settings.data_dir) / "seeds"

# (id, name, type, location, manufacturer, model, base temp/pressure/vibration, std devs, failure point)
SEEDED_ASSETS = [
    ("PUMP-101", "Water Pump 101", "pump", "Building A - Utility Room", "Flowserve", "MX-5000", (165, 95, 1.2), (8, 5, 0.3), 850),
    ("PUMP-204", "Chemical Pump 204", "pump", "Building B - Process Area", "Grundfos", "CR-200", (170, 110, 1.5), (10, 8, 0.4), 900),
    ("COMP-105", "Air Compressor 105", "compressor", "Building A - Basement", "Atlas Copco", "GA-90", (185, 120, 2.5), (12, 10, 0.6), 800),
    ("MOTOR-307", "Primary Motor 307", "motor", "Building A - Floor 2", "ACME Motors", "PM-5000", (175, 100, 1.8), (10, 6, 0.5), 750),
    ("MOTOR-411", "Conveyor Motor 411", "motor", "Building C - Production Line", "Siemens", "SM-1000", (160, 90, 1.0), (7, 5, 0.2), 950),
]

UPLOAD_TEST_ASSETS = [
    ("PUMP-303", "Hydraulic Pump 303", "pump", "Building D - Hydraulics Lab", "Bosch Rexroth", "A10VSO", (155, 130, 1.3), (9, 12, 0.35), 820),
    ("COMP-208", "Refrigeration Compressor 208", "compressor", "Building B - Cold Storage", "Carrier", "06E", (190, 140, 2.8), (15, 15, 0.8), 700),
    # Failure point beyond the series: stays healthy.
    ("MOTOR-512", "Fan Motor 512", "motor", "Building A - HVAC Room", "WEG", "W22", (150, 85, 0.8), (6, 4, 0.15), 1100),
]


def generate_readings(config, count, rng, now):
    """One reading per minute ending at `now`; sensors drift once past the failure point."""
    asset_id, *_, base, spread, failure_point = config
    i = np.arange(count)
    degradation = np.clip((i - failure_point) / max(count - failure_point, 1), 0, None)
    failing = i >= failure_point

    temp = rng.normal(base[0], spread[0], count)
    pressure = rng.normal(base[1], spread[1], count)
    vibration = rng.normal(base[2], spread[2], count)

    temp += np.where(failing, degradation * 25 + rng.random(count) * 10, 0)
    pressure -= np.where(failing, degradation * 15 + rng.random(count) * 8, 0)
    vibration += np.where(failing, degradation * 3 + rng.random(count) * 2, 0)

    start = now - timedelta(minutes=count)
    return pl.DataFrame(
        {
            "timestamp": [normalize_timestamp(start + timedelta(minutes=int(n))) for n in i],
            "asset_id": [asset_id] * count,
            "tempF": np.round(np.clip(temp, 120, 250), 1),
            "pressurePSI": np.round(np.clip(pressure, 50, 150), 1),
            "vibrationMM": np.round(np.clip(vibration, 0.1, 8), 2),
            "failure_flag": failing.astype(np.int64),
        }
    )


def clear_database(session):
    for table in (DataQualityIssueRow, PredictionRow, FeatureRow, SensorReadingRow, AssetRow, UploadedFileRow):
        session.execute(delete(table))
    session.commit()


def seed(count, rng):
    now = datetime.now(timezone.utc)
    SEEDS_DIR.mkdir(parents=True, exist_ok=True)
    run_migrations()

    session = SessionLocal()
    try:
        clear_database(session)
        file_row = crud.create_uploaded_file(
            session,
            file_name="initial_seed_data.csv",
            row_count=len(SEEDED_ASSETS) * count,
            asset_count=len(SEEDED_ASSETS),
            status="processed",
        )
        for config in SEEDED_ASSETS:
            asset_id, name, asset_type, location, manufacturer, model = config[:6]
            crud.create_asset(
                session,
                id=asset_id,
                name=name,
                type=asset_type,
                location=location,
                manufacturer=manufacturer,
                model=model,
                installation_date="2020-01-15",
                last_maintenance_date="2024-11-01",
                file_id=file_row.id,
            )
            frame = generate_readings(config, count, rng, now)
            frame.write_csv(SEEDS_DIR / f"{asset_id.lower()}-sensor-data.csv")
            crud.insert_readings(
                session,
                frame.select(
                    "asset_id",
                    "timestamp",
                    pl.col("tempF").alias("temp_f"),
                    pl.col("pressurePSI").alias("pressure_psi"),
                    pl.col("vibrationMM").alias("vibration_mm"),
                    "failure_flag",
                )
                .with_columns(pl.lit(file_row.id).alias("file_id"))
                .to_dicts(),
            )
            logger.info("Seeded %s (%s) with %d readings", asset_id, name, count)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    for config in UPLOAD_TEST_ASSETS:
        path = SEEDS_DIR / f"test-upload-{config[0].lower()}.csv"
        generate_readings(config, count, rng, now).write_csv(path)
        logger.info("Wrote upload test file %s", path)


def main():
    parser = argparse.ArgumentParser(description="Seed sample assets and sensor readings.")
    parser.add_argument("--readings", type=int, default=1000, help="Readings per asset (one per minute)")
    parser.add_argument("--seed", type=int, default=settings.random_seed, help="Random seed")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s  %(name)-20s  %(levelname)-7s  %(message)s")
    seed(args.readings, np.random.default_rng(args.seed))
    logger.info("Seed complete: %d assets in the database, CSVs in %s", len(SEEDED_ASSETS), SEEDS_DIR)


if __name__ == "__main__":
    main()
