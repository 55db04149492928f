"""
CSV upload pipeline: parse, validate row by row, record data-quality issues,
create unseen assets and store the valid readings.
"""

from __future__ import annotations

import io
import logging
import re
from datetime import datetime, timezone
from typing import Any

import polars as pl
from pydantic import ValidationError
from sqlalchemy.orm import Session

from pdm_dashboard.config import settings
from pdm_dashboard.db import crud
from pdm_dashboard.errors import ValidationFailed
from pdm_dashboard.schemas import (
    AssetType,
    CsvRow,
    QualityIssue,
    UploadResult,
    ValidationSummary,
)

logger = logging.getLogger("pdm.ingest")

REQUIRED_COLUMNS: list[str] = [
    "timestamp",
    "asset_id",
    "tempF",
    "pressurePSI",
    "vibrationMM",
    "failure_flag",
]

_TYPE_PREFIXES: list[tuple[str, AssetType]] = [
    ("PUMP", AssetType.PUMP),
    ("COMP", AssetType.COMPRESSOR),
    ("MOTOR", AssetType.MOTOR),
]

_TYPE_NAMES: dict[AssetType, str] = {
    AssetType.PUMP: "Pump",
    AssetType.COMPRESSOR: "Compressor",
    AssetType.MOTOR: "Motor",
    AssetType.OTHER: "Equipment",
}


def asset_type_for(asset_id: str) -> AssetType:
    upper = asset_id.upper()
    for prefix, asset_type in _TYPE_PREFIXES:
        if upper.startswith(prefix):
            return asset_type
    return AssetType.OTHER


def asset_name_for(asset_id: str) -> str:
    """"PUMP-303" -> "Pump 303"."""
    return f"{_TYPE_NAMES[asset_type_for(asset_id)]} {re.sub(r'[^0-9]', '', asset_id)}"


def normalize_timestamp(value: datetime) -> str:
    """UTC ISO 8601 with millisecond precision, e.g. 2025-01-10T10:00:00.000Z.

    Naive timestamps are taken as UTC. One fixed format keeps string ordering
    in the database chronological.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def parse_csv(content: bytes) -> pl.DataFrame:
    """Read the upload as an all-string frame and check the header."""
    if not content.strip():
        raise ValidationFailed("CSV file must contain a header row and at least one data row")

    try:
        frame = pl.read_csv(io.BytesIO(content), infer_schema_length=0)
    except pl.exceptions.PolarsError as exc:
        raise ValidationFailed("Could not parse CSV file", details=str(exc)) from exc

    frame = frame.rename({name: name.strip() for name in frame.columns})
    frame = frame.with_columns(pl.col(pl.Utf8).str.strip_chars())

    missing = [col for col in REQUIRED_COLUMNS if col not in frame.columns]
    if missing:
        raise ValidationFailed(
            f"CSV missing required columns: {', '.join(missing)}",
            details={"found_columns": frame.columns, "required_columns": REQUIRED_COLUMNS},
        )
    if frame.height == 0:
        raise ValidationFailed("CSV file must contain a header row and at least one data row")
    return frame


def validate_rows(frame: pl.DataFrame) -> tuple[list[CsvRow], list[QualityIssue]]:
    """Validate every data row; the first error of a bad row becomes an issue."""
    valid: list[CsvRow] = []
    issues: list[QualityIssue] = []

    for position, raw in enumerate(frame.select(REQUIRED_COLUMNS).iter_rows(named=True)):
        try:
            valid.append(CsvRow.model_validate(raw))
        except ValidationError as exc:
            error = exc.errors()[0]
            field = str(error["loc"][0]) if error["loc"] else "unknown"
            value = raw.get(field, "unknown")
            if value is None:
                value = ""
            issues.append(
                QualityIssue(
                    issue_type="invalid_format",
                    severity="error",
                    field=field,
                    value=str(value),
                    # +1 for the header, +1 for one-based numbering
                    row_number=position + 2,
                    asset_id=raw.get("asset_id") or "",
                    timestamp=raw.get("timestamp") or "",
                )
            )
    return valid, issues


def count_missing(frame: pl.DataFrame) -> int:
    counts = frame.select(REQUIRED_COLUMNS).select(
        [(pl.col(c).is_null() | (pl.col(c) == "")).sum() for c in REQUIRED_COLUMNS]
    )
    return int(sum(counts.row(0)))


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------
def ingest_upload(session: Session, filename: str, content: bytes) -> UploadResult:
    if not filename or not filename.lower().endswith(".csv"):
        raise ValidationFailed("File must be a CSV file")
    if len(content) > settings.max_upload_mb * 1024 * 1024:
        raise ValidationFailed(f"File too large (>{settings.max_upload_mb}MB)")

    frame = parse_csv(content)
    valid, issues = validate_rows(frame)

    try:
        file_row = crud.create_uploaded_file(session, file_name=filename, row_count=frame.height)

        for issue in issues:
            crud.create_quality_issue(
                session,
                file_row.id,
                asset_id=issue.asset_id,
                timestamp=issue.timestamp,
                issue_type=issue.issue_type,
                field=issue.field,
                value=issue.value,
                severity=issue.severity,
            )

        asset_ids = list(dict.fromkeys(row.asset_id for row in valid))
        for asset_id in asset_ids:
            if crud.get_asset(session, asset_id) is None:
                crud.create_asset(
                    session,
                    id=asset_id,
                    name=asset_name_for(asset_id),
                    type=asset_type_for(asset_id).value,
                    location="Unknown",
                    file_id=file_row.id,
                )
                logger.info("Created asset %s from upload %s", asset_id, file_row.id)

        inserted = crud.insert_readings(session, [_reading_fields(row, file_row.id) for row in valid])
        crud.update_file_status(session, file_row.id, "processed", asset_count=len(asset_ids))
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Upload %s (%s): %d/%d rows ingested, %d assets, %d issues",
        file_row.id,
        filename,
        inserted,
        frame.height,
        len(asset_ids),
        len(issues),
    )
    return UploadResult(
        file_id=file_row.id,
        rows_ingested=inserted,
        assets_detected=len(asset_ids),
        columns=frame.columns,
        validation_summary=ValidationSummary(
            total_rows=frame.height,
            valid_rows=len(valid),
            invalid_rows=len(issues),
            missing_values=count_missing(frame),
        ),
    )


def _reading_fields(row: CsvRow, file_id: str) -> dict[str, Any]:
    return {
        "asset_id": row.asset_id,
        "timestamp": normalize_timestamp(row.timestamp),
        "temp_f": row.temp_f,
        "pressure_psi": row.pressure_psi,
        "vibration_mm": row.vibration_mm,
        "failure_flag": row.failure_flag,
        "file_id": file_id,
    }
