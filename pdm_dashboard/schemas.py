"""
Pydantic schemas for the predictive-maintenance dashboard.

Covers: CSV row validation, trend-analysis results, asset listing and
detail payloads, ML train/predict contracts and health checks.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class RiskLevel(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class AssetType(str, Enum):
    PUMP = "pump"
    COMPRESSOR = "compressor"
    MOTOR = "motor"
    OTHER = "other"


class FileStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSED = "processed"
    ERROR = "error"


class ModelType(str, Enum):
    RANDOM_FOREST = "random_forest"
    XGBOOST = "xgboost"
    NEURAL_NETWORK = "neural_network"


class SortField(str, Enum):
    ID = "id"
    NAME = "name"
    LOCATION = "location"
    RISK_LEVEL = "risk_level"
    FAILURE_PROBABILITY = "failure_probability"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# ---------------------------------------------------------------------------
# Sensor readings
# ---------------------------------------------------------------------------
class Reading(BaseModel):
    """One sensor sample as consumed by the trend engine."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    temperature: float
    pressure: float
    vibration: float


class CsvRow(BaseModel):
    """One data row of an uploaded CSV, before it becomes a stored reading."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    asset_id: str = Field(..., min_length=1)
    temp_f: float = Field(..., alias="tempF", ge=-50, le=500)
    pressure_psi: float = Field(..., alias="pressurePSI", ge=0, le=10000)
    vibration_mm: float = Field(..., alias="vibrationMM", ge=0, le=100)
    failure_flag: int = Field(..., ge=0, le=1)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _iso_timestamp(cls, value: Any) -> Any:
        # Require a full ISO 8601 datetime string; bare dates and epoch numbers are rejected.
        if not isinstance(value, str) or "T" not in value:
            raise ValueError("Invalid timestamp format. Use ISO 8601.")
        return value

    @field_validator("asset_id", mode="before")
    @classmethod
    def _strip_asset_id(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("temp_f", "pressure_psi", "vibration_mm")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("Value must be a finite number")
        return value

    @field_validator("failure_flag", mode="before")
    @classmethod
    def _flag_is_integer(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            try:
                number = float(value)
            except ValueError:
                return value
            if not number.is_integer():
                raise ValueError("Failure flag must be 0 or 1")
            return int(number)
        return value


# ---------------------------------------------------------------------------
# Trend analysis
# ---------------------------------------------------------------------------
class MetricValues(BaseModel):
    """One number per metric; None means "not available", never "no change"."""

    temperature: float | None = None
    pressure: float | None = None
    vibration: float | None = None


class HalfMetrics(BaseModel):
    mean: MetricValues = Field(default_factory=MetricValues)
    max: MetricValues = Field(default_factory=MetricValues)
    min: MetricValues = Field(default_factory=MetricValues)


class HalfToHalf(BaseModel):
    first_count: int = 0
    second_count: int = 0
    first_half: HalfMetrics = Field(default_factory=HalfMetrics)
    second_half: HalfMetrics = Field(default_factory=HalfMetrics)
    # Rate of change (percent) keyed the same way as the halves.
    roc: HalfMetrics = Field(default_factory=HalfMetrics)


class Chunk(BaseModel):
    index: int = Field(..., description="Generation order, 0 = oldest segment")
    label: str
    unit: str
    count: int
    mean: MetricValues
    roc: MetricValues


class TrendAnalysis(BaseModel):
    hours: int
    reading_count: int
    chunk_size: int
    unit: str
    half_to_half: HalfToHalf
    # Newest first (table / export order).
    chunks: list[Chunk] = Field(default_factory=list)


class TrendResponse(TrendAnalysis):
    asset_id: str
    # Oldest first (chart order).
    chart: list[Chunk] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------
class QualityIssue(BaseModel):
    issue_type: str = "invalid_format"
    severity: str = "error"
    field: str | None = None
    value: str | None = None
    row_number: int | None = None
    asset_id: str | None = None
    timestamp: str | None = None


class ValidationSummary(BaseModel):
    total_rows: int
    valid_rows: int
    invalid_rows: int
    missing_values: int = 0
    outliers_detected: int = 0


class UploadResult(BaseModel):
    status: str = "success"
    file_id: str
    rows_ingested: int
    assets_detected: int
    columns: list[str]
    validation_summary: ValidationSummary


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------
class AssetSummary(BaseModel):
    id: str
    name: str
    type: str
    location: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    last_maintenance_date: str | None = None
    risk_level: RiskLevel = RiskLevel.GREEN
    failure_probability: float = 0.0
    recommendation: str = "No prediction available"
    last_prediction_date: datetime | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class AssetPage(BaseModel):
    assets: list[AssetSummary]
    pagination: Pagination


class AssetInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: str
    location: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    installation_date: str | None = None
    last_maintenance_date: str | None = None


class ReadingOut(BaseModel):
    timestamp: str
    temp_f: float
    pressure_psi: float
    vibration_mm: float
    failure_flag: int


class PredictionOut(BaseModel):
    risk_level: RiskLevel
    probability: float
    recommendation: str
    predicted_at: datetime
    model_version: str | None = None


class PredictionPoint(BaseModel):
    risk_level: RiskLevel
    probability: float
    predicted_at: datetime


class DateRange(BaseModel):
    start: str | None = None
    end: str | None = None


class AssetStats(BaseModel):
    total_readings: int
    date_range: DateRange


class AssetDetail(BaseModel):
    asset: AssetInfo
    readings: list[ReadingOut]
    current_prediction: PredictionOut | None = None
    prediction_history: list[PredictionPoint] = Field(default_factory=list)
    stats: AssetStats


# ---------------------------------------------------------------------------
# Train / Predict
# ---------------------------------------------------------------------------
class TrainRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    file_id: str = Field(..., min_length=1)
    model_type: ModelType = ModelType.RANDOM_FOREST


class PredictRequest(BaseModel):
    file_id: str = Field(..., min_length=1)


class TrainResult(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: int
    version: str
    model_type: str
    file_id: str
    training_samples: int
    validation_samples: int
    metrics: dict[str, float]
    feature_importances: list[dict[str, Any]]
    trained_at: datetime


class AssetPrediction(BaseModel):
    asset_id: str
    asset_name: str
    risk_level: RiskLevel
    failure_probability: float = Field(..., ge=0, le=1)
    recommendation: str
    model_version: str


class PredictResult(BaseModel):
    predictions: list[AssetPrediction]
    model_version: str
    generated_at: datetime


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
