"""
Risk Model — LightGBM failure classifier over engineered features.

Training fits a binary classifier on the rolling-window features of every
asset (label: the reading's failure flag) and records the model in the
`models` table. Prediction scores each asset's newest feature row with the
latest model; when no trained model is available it falls back to the stub
(a random probability tagged with the stub model version).
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

import lightgbm as lgb
import numpy as np
from sklearn.metrics import accuracy_score, f1_score, precision_score, recall_score
from sklearn.model_selection import train_test_split
from sqlalchemy.orm import Session

from pdm_dashboard.config import settings
from pdm_dashboard.core.features import FEATURE_COLUMNS, rebuild_features
from pdm_dashboard.db import crud
from pdm_dashboard.db.models import utcnow
from pdm_dashboard.errors import FileNotFound, TrainingFailed
from pdm_dashboard.schemas import (
    AssetPrediction,
    ModelType,
    PredictResult,
    RiskLevel,
    TrainResult,
)

logger = logging.getLogger("pdm.risk_model")

MIN_TRAINING_ROWS = 10
TOP_FEATURES = 5

RECOMMENDATIONS: dict[RiskLevel, str] = {
    RiskLevel.GREEN: "Continue normal operation. Asset operating within normal parameters.",
    RiskLevel.YELLOW: "Schedule inspection within 7 days. Elevated risk detected.",
    RiskLevel.RED: "Immediate attention required. High failure risk detected.",
}

_boosters: dict[str, lgb.Booster] = {}


def risk_level_for(probability: float) -> RiskLevel:
    if probability < 0.3:
        return RiskLevel.GREEN
    if probability < 0.7:
        return RiskLevel.YELLOW
    return RiskLevel.RED


def recommendation_for(level: RiskLevel) -> str:
    return RECOMMENDATIONS[level]


def _feature_matrix(rows: Sequence[Any]) -> np.ndarray:
    """Feature rows -> n × len(FEATURE_COLUMNS) array; missing values become NaN."""
    values = [
        [np.nan if getattr(row, col) is None else float(getattr(row, col)) for col in FEATURE_COLUMNS]
        for row in rows
    ]
    return np.array(values, dtype=np.float64).reshape(len(rows), len(FEATURE_COLUMNS))


def _load_booster(model_path: str) -> lgb.Booster | None:
    if model_path in _boosters:
        return _boosters[model_path]
    if not Path(model_path).exists():
        logger.warning("Model file %s is missing; using stub predictions", model_path)
        return None
    try:
        booster = lgb.Booster(model_file=model_path)
    except lgb.basic.LightGBMError:
        logger.exception("Could not load LightGBM model from %s", model_path)
        return None
    _boosters[model_path] = booster
    logger.info("LightGBM model loaded from %s", model_path)
    return booster


def _unique_version(session: Session, now: datetime) -> str:
    base = f"v1_{now:%Y%m%d_%H%M%S}"
    version, n = base, 1
    while crud.get_model_by_version(session, version) is not None:
        n += 1
        version = f"{base}_{n}"
    return version


# ---------------------------------------------------------------------------
# Training
# ---------------------------------------------------------------------------
def train_model(
    session: Session,
    file_id: str,
    model_type: ModelType = ModelType.RANDOM_FOREST,
    now: datetime | None = None,
) -> TrainResult:
    if crud.get_uploaded_file(session, file_id) is None:
        raise FileNotFound(file_id)

    for asset in crud.list_assets(session):
        rebuild_features(session, asset.id)
    rows = crud.get_features(session)

    if len(rows) < MIN_TRAINING_ROWS:
        session.rollback()
        raise TrainingFailed(f"Need at least {MIN_TRAINING_ROWS} feature rows to train, found {len(rows)}")

    X = _feature_matrix(rows)
    y = np.array([row.failure_flag for row in rows], dtype=int)
    classes, class_counts = np.unique(y, return_counts=True)
    if len(classes) < 2:
        session.rollback()
        raise TrainingFailed("Training data must contain both normal and failure readings")

    X_train, X_val, y_train, y_val = train_test_split(
        X,
        y,
        test_size=0.2,
        random_state=42,
        stratify=y if class_counts.min() >= 2 else None,
    )

    params = {
        "objective": "binary",
        "metric": "binary_logloss",
        "verbosity": -1,
        "num_leaves": settings.lgbm_num_leaves,
        "learning_rate": settings.lgbm_learning_rate,
        "min_data_in_leaf": settings.lgbm_min_data_in_leaf,
        "feature_fraction": 0.9,
        "seed": 42,
        "deterministic": True,
    }
    booster = lgb.train(
        params,
        lgb.Dataset(X_train, label=y_train, feature_name=FEATURE_COLUMNS),
        num_boost_round=settings.lgbm_num_boost_round,
    )

    predicted = (booster.predict(X_val) >= 0.5).astype(int)
    metrics = {
        "accuracy": float(accuracy_score(y_val, predicted)),
        "precision": float(precision_score(y_val, predicted, zero_division=0)),
        "recall": float(recall_score(y_val, predicted, zero_division=0)),
        "f1_score": float(f1_score(y_val, predicted, zero_division=0)),
    }
    gains = booster.feature_importance(importance_type="gain")
    importances = sorted(
        ({"feature": name, "importance": float(gain)} for name, gain in zip(FEATURE_COLUMNS, gains)),
        key=lambda item: item["importance"],
        reverse=True,
    )

    now = now or utcnow()
    version = _unique_version(session, now)
    out = Path(settings.model_dir) / f"{version}.txt"
    out.parent.mkdir(parents=True, exist_ok=True)
    booster.save_model(str(out))
    _boosters[str(out)] = booster

    record = crud.create_model_record(
        session,
        version=version,
        model_type=model_type.value,
        training_samples=len(y_train),
        validation_samples=len(y_val),
        metrics=metrics,
        feature_importances=importances,
        model_path=str(out),
        trained_at=now,
    )
    session.commit()
    logger.info(
        "Trained %s on %d rows (validation %d): accuracy=%.3f f1=%.3f",
        version,
        len(y_train),
        len(y_val),
        metrics["accuracy"],
        metrics["f1_score"],
    )
    return TrainResult(
        model_id=record.id,
        version=version,
        model_type=model_type.value,
        file_id=file_id,
        training_samples=len(y_train),
        validation_samples=len(y_val),
        metrics=metrics,
        feature_importances=importances,
        trained_at=now,
    )


# ---------------------------------------------------------------------------
# Prediction
# ---------------------------------------------------------------------------
def predict_all(
    session: Session,
    file_id: str,
    rng: np.random.Generator | None = None,
) -> PredictResult:
    """Score every asset and store one prediction each."""
    if crud.get_uploaded_file(session, file_id) is None:
        raise FileNotFound(file_id)

    model_row = crud.get_latest_model(session)
    booster = _load_booster(model_row.model_path) if model_row and model_row.model_path else None
    rng = rng or np.random.default_rng(settings.random_seed)

    predictions: list[AssetPrediction] = []
    for asset in crud.list_assets(session):
        features = None
        if booster is not None:
            # Readings may have arrived since training; score the newest window.
            rebuild_features(session, asset.id)
            features = crud.get_latest_features(session, asset.id)

        if booster is not None and features is not None:
            probability = float(booster.predict(_feature_matrix([features]))[0])
            version = model_row.version
            top = model_row.feature_importances[:TOP_FEATURES]
        else:
            probability = float(rng.random())
            version = settings.stub_model_version
            top = None

        level = risk_level_for(probability)
        crud.create_prediction(
            session,
            asset_id=asset.id,
            probability=probability,
            risk_level=level.value,
            recommendation=recommendation_for(level),
            model_version=version,
            feature_importances=top,
        )
        predictions.append(
            AssetPrediction(
                asset_id=asset.id,
                asset_name=asset.name,
                risk_level=level,
                failure_probability=probability,
                recommendation=recommendation_for(level),
                model_version=version,
            )
        )

    session.commit()
    model_version = model_row.version if booster is not None else settings.stub_model_version
    logger.info("Generated %d predictions with %s", len(predictions), model_version)
    return PredictResult(predictions=predictions, model_version=model_version, generated_at=utcnow())
