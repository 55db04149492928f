"""
SQLAlchemy models for the SQLite store.

Tables:
  - uploaded_files      : every CSV upload
  - assets              : monitored equipment
  - sensor_readings     : raw time series from uploads
  - features            : engineered rolling-window features
  - predictions         : failure-risk predictions per asset
  - models              : trained model metadata
  - data_quality_issues : rows rejected during upload validation
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Naive UTC now; DateTime columns store UTC without tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class UploadedFileRow(Base):
    __tablename__ = "uploaded_files"

    id = Column(String(64), primary_key=True)  # e.g. file_20251214T153045_k3j9x2
    file_name = Column(String(512), nullable=False)
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)
    row_count = Column(Integer, nullable=False)
    asset_count = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="uploaded")


class AssetRow(Base):
    __tablename__ = "assets"

    id = Column(String(64), primary_key=True)  # e.g. PUMP-101
    name = Column(String(256), nullable=False)
    type = Column(String(32), nullable=False)
    location = Column(String(256), nullable=True)
    manufacturer = Column(String(256), nullable=True)
    model = Column(String(256), nullable=True)
    installation_date = Column(String(32), nullable=True)  # ISO string
    last_maintenance_date = Column(String(32), nullable=True)  # ISO string
    file_id = Column(String(64), ForeignKey("uploaded_files.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SensorReadingRow(Base):
    __tablename__ = "sensor_readings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(String(64), ForeignKey("assets.id"), nullable=False, index=True)
    timestamp = Column(String(40), nullable=False, index=True)  # ISO 8601
    temp_f = Column(Float, nullable=False)
    pressure_psi = Column(Float, nullable=False)
    vibration_mm = Column(Float, nullable=False)
    failure_flag = Column(Integer, nullable=False, default=0)  # 0 = normal, 1 = failure
    file_id = Column(String(64), ForeignKey("uploaded_files.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class FeatureRow(Base):
    __tablename__ = "features"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(String(64), ForeignKey("assets.id"), nullable=False, index=True)
    window_end = Column(String(40), nullable=False)

    # Rolling statistics (24h window)
    temp_mean_24h = Column(Float, nullable=True)
    temp_std_24h = Column(Float, nullable=True)
    temp_max_24h = Column(Float, nullable=True)
    temp_min_24h = Column(Float, nullable=True)
    pressure_mean_24h = Column(Float, nullable=True)
    pressure_std_24h = Column(Float, nullable=True)
    pressure_max_24h = Column(Float, nullable=True)
    pressure_min_24h = Column(Float, nullable=True)
    vibration_mean_24h = Column(Float, nullable=True)
    vibration_std_24h = Column(Float, nullable=True)
    vibration_max_24h = Column(Float, nullable=True)
    vibration_min_24h = Column(Float, nullable=True)

    # Lag features (1h)
    temp_lag_1h = Column(Float, nullable=True)
    pressure_lag_1h = Column(Float, nullable=True)
    vibration_lag_1h = Column(Float, nullable=True)

    # Rate of change (24h)
    temp_roc_24h = Column(Float, nullable=True)
    pressure_roc_24h = Column(Float, nullable=True)
    vibration_roc_24h = Column(Float, nullable=True)

    failure_flag = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class PredictionRow(Base):
    __tablename__ = "predictions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    asset_id = Column(String(64), ForeignKey("assets.id"), nullable=False, index=True)
    probability = Column(Float, nullable=False)
    risk_level = Column(String(16), nullable=False)  # green / yellow / red
    recommendation = Column(Text, nullable=False)
    model_version = Column(String(64), nullable=True)
    feature_importances = Column(JSON, nullable=True)  # top 5 [{feature, importance}]
    predicted_at = Column(DateTime, default=utcnow, nullable=False)


class ModelRow(Base):
    __tablename__ = "models"

    id = Column(Integer, primary_key=True, autoincrement=True)
    version = Column(String(64), nullable=False, unique=True)  # e.g. v1_20251214_154530
    model_type = Column(String(64), nullable=False)
    training_samples = Column(Integer, nullable=False)
    validation_samples = Column(Integer, nullable=False)
    metrics = Column(JSON, nullable=False)  # accuracy, precision, recall, f1_score
    feature_importances = Column(JSON, nullable=False)  # [{feature, importance}]
    model_path = Column(String(512), nullable=True)
    trained_at = Column(DateTime, default=utcnow, nullable=False)


class DataQualityIssueRow(Base):
    __tablename__ = "data_quality_issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    file_id = Column(String(64), ForeignKey("uploaded_files.id"), nullable=False, index=True)
    asset_id = Column(String(64), nullable=True)
    timestamp = Column(String(40), nullable=True)
    issue_type = Column(String(32), nullable=False)  # missing_value / outlier / invalid_format
    field = Column(String(64), nullable=True)
    value = Column(Text, nullable=True)
    severity = Column(String(16), nullable=False)  # warning / error
    detected_at = Column(DateTime, default=utcnow, nullable=False)
