"""
Database helpers for uploads, assets, readings, predictions, features,
model metadata and data-quality issues.

Used by: the upload pipeline, the API routes and the risk model.
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime
from typing import Any, Iterable, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from pdm_dashboard.config import settings
from pdm_dashboard.db.models import (
    AssetRow,
    DataQualityIssueRow,
    FeatureRow,
    ModelRow,
    PredictionRow,
    SensorReadingRow,
    UploadedFileRow,
    utcnow,
)

logger = logging.getLogger("pdm.db.crud")

_ID_ALPHABET = string.ascii_lowercase + string.digits


# ---------------------------------------------------------------------------
# Uploaded files
# ---------------------------------------------------------------------------
def new_file_id(now: datetime | None = None) -> str:
    stamp = (now or utcnow()).strftime("%Y%m%dT%H%M%S")
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"file_{stamp}_{suffix}"


def create_uploaded_file(
    session: Session,
    file_name: str,
    row_count: int,
    asset_count: int = 0,
    status: str = "uploaded",
) -> UploadedFileRow:
    row = UploadedFileRow(
        id=new_file_id(),
        file_name=file_name,
        row_count=row_count,
        asset_count=asset_count,
        status=status,
    )
    session.add(row)
    session.flush()
    return row


def get_uploaded_file(session: Session, file_id: str) -> UploadedFileRow | None:
    return session.get(UploadedFileRow, file_id)


def list_uploaded_files(session: Session) -> list[UploadedFileRow]:
    return list(session.scalars(select(UploadedFileRow).order_by(UploadedFileRow.uploaded_at)))


def update_file_status(session: Session, file_id: str, status: str, asset_count: int | None = None) -> None:
    values: dict[str, Any] = {"status": status}
    if asset_count is not None:
        values["asset_count"] = asset_count
    session.execute(update(UploadedFileRow).where(UploadedFileRow.id == file_id).values(**values))


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------
def create_asset(session: Session, **fields: Any) -> AssetRow:
    row = AssetRow(**fields)
    session.add(row)
    session.flush()
    return row


def get_asset(session: Session, asset_id: str) -> AssetRow | None:
    return session.get(AssetRow, asset_id)


def list_assets(session: Session, asset_type: str | None = None) -> list[AssetRow]:
    stmt = select(AssetRow).order_by(AssetRow.id)
    if asset_type:
        stmt = stmt.where(AssetRow.type == asset_type)
    return list(session.scalars(stmt))


def get_asset_with_readings(
    session: Session, asset_id: str, limit: int | None = None
) -> tuple[AssetRow, list[SensorReadingRow], PredictionRow | None] | None:
    """Asset, its newest `limit` readings (newest first) and latest prediction."""
    asset = get_asset(session, asset_id)
    if asset is None:
        return None
    readings = get_readings(session, asset_id, limit=limit or settings.default_readings_limit)
    return asset, readings, get_latest_prediction(session, asset_id)


def update_asset(session: Session, asset_id: str, **fields: Any) -> AssetRow | None:
    asset = get_asset(session, asset_id)
    if asset is None:
        return None
    for key, value in fields.items():
        setattr(asset, key, value)
    session.flush()
    return asset


def delete_asset(session: Session, asset_id: str) -> None:
    """Delete an asset together with its readings, features and predictions."""
    session.execute(delete(SensorReadingRow).where(SensorReadingRow.asset_id == asset_id))
    session.execute(delete(FeatureRow).where(FeatureRow.asset_id == asset_id))
    session.execute(delete(PredictionRow).where(PredictionRow.asset_id == asset_id))
    session.execute(delete(AssetRow).where(AssetRow.id == asset_id))


# ---------------------------------------------------------------------------
# Sensor readings
# ---------------------------------------------------------------------------
def insert_readings(session: Session, readings: Sequence[dict[str, Any]], batch_size: int | None = None) -> int:
    """Bulk insert readings in batches; returns the number inserted."""
    batch_size = batch_size or settings.reading_batch_size
    inserted = 0
    for start in range(0, len(readings), batch_size):
        batch = readings[start:start + batch_size]
        session.add_all(SensorReadingRow(**r) for r in batch)
        session.flush()
        inserted += len(batch)
    return inserted


def get_readings(
    session: Session,
    asset_id: str,
    limit: int | None = None,
    offset: int = 0,
    order: str = "desc",
) -> list[SensorReadingRow]:
    if order == "desc":
        ordering = (SensorReadingRow.timestamp.desc(), SensorReadingRow.id.desc())
    else:
        ordering = (SensorReadingRow.timestamp.asc(), SensorReadingRow.id.asc())
    stmt = (
        select(SensorReadingRow)
        .where(SensorReadingRow.asset_id == asset_id)
        .order_by(*ordering)
        .limit(limit or settings.default_readings_limit)
        .offset(offset)
    )
    return list(session.scalars(stmt))


def get_all_readings(session: Session, asset_id: str) -> list[SensorReadingRow]:
    """Every reading of an asset, oldest first."""
    stmt = (
        select(SensorReadingRow)
        .where(SensorReadingRow.asset_id == asset_id)
        .order_by(SensorReadingRow.timestamp.asc(), SensorReadingRow.id.asc())
    )
    return list(session.scalars(stmt))


def get_latest_reading(session: Session, asset_id: str) -> SensorReadingRow | None:
    rows = get_readings(session, asset_id, limit=1)
    return rows[0] if rows else None


def get_readings_in_range(session: Session, asset_id: str, start: str, end: str) -> list[SensorReadingRow]:
    stmt = (
        select(SensorReadingRow)
        .where(
            SensorReadingRow.asset_id == asset_id,
            SensorReadingRow.timestamp >= start,
            SensorReadingRow.timestamp <= end,
        )
        .order_by(SensorReadingRow.timestamp.asc())
    )
    return list(session.scalars(stmt))


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------
def create_prediction(session: Session, **fields: Any) -> PredictionRow:
    row = PredictionRow(**fields)
    session.add(row)
    session.flush()
    return row


def get_latest_prediction(session: Session, asset_id: str) -> PredictionRow | None:
    stmt = (
        select(PredictionRow)
        .where(PredictionRow.asset_id == asset_id)
        .order_by(PredictionRow.predicted_at.desc(), PredictionRow.id.desc())
        .limit(1)
    )
    return session.scalars(stmt).first()


def get_prediction_history(session: Session, asset_id: str, limit: int | None = None) -> list[PredictionRow]:
    stmt = (
        select(PredictionRow)
        .where(PredictionRow.asset_id == asset_id)
        .order_by(PredictionRow.predicted_at.desc(), PredictionRow.id.desc())
        .limit(limit or settings.prediction_history_limit)
    )
    return list(session.scalars(stmt))


# ---------------------------------------------------------------------------
# Data quality
# ---------------------------------------------------------------------------
def create_quality_issue(session: Session, file_id: str, **fields: Any) -> DataQualityIssueRow:
    row = DataQualityIssueRow(file_id=file_id, **fields)
    session.add(row)
    return row


def get_issues_for_file(session: Session, file_id: str) -> list[DataQualityIssueRow]:
    stmt = select(DataQualityIssueRow).where(DataQualityIssueRow.file_id == file_id).order_by(DataQualityIssueRow.id)
    return list(session.scalars(stmt))


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------
def replace_features(session: Session, asset_id: str, rows: Iterable[dict[str, Any]]) -> int:
    session.execute(delete(FeatureRow).where(FeatureRow.asset_id == asset_id))
    objects = [FeatureRow(asset_id=asset_id, **r) for r in rows]
    session.add_all(objects)
    session.flush()
    return len(objects)


def get_features(session: Session, asset_id: str | None = None) -> list[FeatureRow]:
    stmt = select(FeatureRow).order_by(FeatureRow.asset_id, FeatureRow.window_end)
    if asset_id is not None:
        stmt = stmt.where(FeatureRow.asset_id == asset_id)
    return list(session.scalars(stmt))


def get_latest_features(session: Session, asset_id: str) -> FeatureRow | None:
    stmt = (
        select(FeatureRow)
        .where(FeatureRow.asset_id == asset_id)
        .order_by(FeatureRow.window_end.desc(), FeatureRow.id.desc())
        .limit(1)
    )
    return session.scalars(stmt).first()


# ---------------------------------------------------------------------------
# Model metadata
# ---------------------------------------------------------------------------
def create_model_record(session: Session, **fields: Any) -> ModelRow:
    row = ModelRow(**fields)
    session.add(row)
    session.flush()
    logger.info("Recorded model %s (%s)", row.version, row.model_type)
    return row


def get_latest_model(session: Session) -> ModelRow | None:
    stmt = select(ModelRow).order_by(ModelRow.trained_at.desc(), ModelRow.id.desc()).limit(1)
    return session.scalars(stmt).first()


def get_model_by_version(session: Session, version: str) -> ModelRow | None:
    return session.scalars(select(ModelRow).where(ModelRow.version == version)).first()
