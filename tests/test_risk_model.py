"""
Risk model: thresholds, LightGBM training and prediction with stub fallback.
"""

from __future__ import annotations

from datetime import datetime

import numpy as np
import pytest

from pdm_dashboard.config import settings
from pdm_dashboard.core.ingest import ingest_upload
from pdm_dashboard.db import crud
from pdm_dashboard.errors import FileNotFound, TrainingFailed
from pdm_dashboard.models import risk_model
from pdm_dashboard.models.risk_model import predict_all, recommendation_for, risk_level_for, train_model
from pdm_dashboard.schemas import ModelType, RiskLevel


@pytest.fixture
def small_windows(monkeypatch, tmp_path):
    """Hourly features are too sparse for a short test series; sample every 5 readings instead."""
    monkeypatch.setattr(settings, "feature_stride_readings", 5)
    monkeypatch.setattr(settings, "model_dir", str(tmp_path / "models"))
    monkeypatch.setattr(risk_model, "_boosters", {})


@pytest.mark.parametrize(
    "probability, level",
    [(0.0, RiskLevel.GREEN), (0.29, RiskLevel.GREEN), (0.3, RiskLevel.YELLOW), (0.69, RiskLevel.YELLOW), (0.7, RiskLevel.RED), (1.0, RiskLevel.RED)],
)
def test_risk_thresholds(probability, level):
    assert risk_level_for(probability) is level


def test_recommendations():
    assert recommendation_for(RiskLevel.RED).startswith("Immediate attention required")
    assert recommendation_for(RiskLevel.YELLOW).startswith("Schedule inspection within 7 days")
    assert recommendation_for(RiskLevel.GREEN).startswith("Continue normal operation")


def test_predict_without_model_uses_stub(session, make_csv):
    upload = ingest_upload(session, "readings.csv", make_csv("PUMP-101", 10))
    ingest_upload(session, "more.csv", make_csv("MOTOR-7", 10))

    result = predict_all(session, upload.file_id, rng=np.random.default_rng(7))

    assert result.model_version == settings.stub_model_version
    assert [p.asset_id for p in result.predictions] == ["MOTOR-7", "PUMP-101"]
    for prediction in result.predictions:
        assert 0 <= prediction.failure_probability < 1
        assert prediction.risk_level is risk_level_for(prediction.failure_probability)
        stored = crud.get_latest_prediction(session, prediction.asset_id)
        assert stored.probability == prediction.failure_probability
        assert stored.model_version == settings.stub_model_version


def test_predict_unknown_file(session):
    with pytest.raises(FileNotFound):
        predict_all(session, "file_missing")


def test_train_unknown_file(session):
    with pytest.raises(FileNotFound):
        train_model(session, "file_missing")


def test_train_needs_enough_rows(session, make_csv):
    upload = ingest_upload(session, "readings.csv", make_csv("PUMP-101", 30, failures_from=20))

    with pytest.raises(TrainingFailed, match="at least"):
        train_model(session, upload.file_id)


def test_train_needs_both_classes(session, make_csv, small_windows):
    upload = ingest_upload(session, "readings.csv", make_csv("PUMP-101", 120))

    with pytest.raises(TrainingFailed, match="both"):
        train_model(session, upload.file_id)


def test_train_then_predict_with_model(session, make_csv, small_windows, tmp_path):
    upload = ingest_upload(session, "readings.csv", make_csv("PUMP-101", 200, failures_from=120))

    trained = train_model(session, upload.file_id, ModelType.XGBOOST)

    assert trained.version.startswith("v1_")
    assert trained.model_type == "xgboost"
    assert trained.training_samples + trained.validation_samples == 40
    assert set(trained.metrics) == {"accuracy", "precision", "recall", "f1_score"}
    assert len(trained.feature_importances) == 18
    assert (tmp_path / "models" / f"{trained.version}.txt").exists()

    record = crud.get_latest_model(session)
    assert record.version == trained.version

    result = predict_all(session, upload.file_id)
    assert result.model_version == trained.version
    stored = crud.get_latest_prediction(session, "PUMP-101")
    assert stored.model_version == trained.version
    assert len(stored.feature_importances) == 5


def test_predict_scores_readings_uploaded_after_training(session, make_csv, small_windows):
    first = ingest_upload(session, "readings.csv", make_csv("PUMP-101", 200, failures_from=120))
    train_model(session, first.file_id)
    later = ingest_upload(
        session,
        "later.csv",
        make_csv("PUMP-101", 60, failures_from=0, start=datetime(2025, 1, 11, 0, 0)),
    )

    predict_all(session, later.file_id)

    newest = crud.get_latest_reading(session, "PUMP-101")
    assert newest.timestamp == "2025-01-11T00:59:00.000Z"
    assert crud.get_latest_features(session, "PUMP-101").window_end == newest.timestamp
