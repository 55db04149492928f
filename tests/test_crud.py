"""
Database helpers against an in-memory SQLite database.
"""

from __future__ import annotations

import re
from datetime import datetime

from pdm_dashboard.db import crud
from pdm_dashboard.db.models import utcnow


def add_asset(session, asset_id="PUMP-101"):
    return crud.create_asset(session, id=asset_id, name="Pump 101", type="pump", location="Plant A")


def reading(asset_id, minute, temp=100.0):
    return {
        "asset_id": asset_id,
        "timestamp": f"2025-01-10T10:{minute:02d}:00.000Z",
        "temp_f": temp,
        "pressure_psi": 50.0,
        "vibration_mm": 2.0,
        "failure_flag": 0,
    }


def test_new_file_id_format():
    file_id = crud.new_file_id(datetime(2025, 12, 14, 15, 30, 45))
    assert re.fullmatch(r"file_20251214T153045_[a-z0-9]{6}", file_id)


def test_uploaded_file_status(session):
    row = crud.create_uploaded_file(session, file_name="a.csv", row_count=10)
    crud.update_file_status(session, row.id, "processed", asset_count=2)
    session.commit()
    session.expire_all()

    stored = crud.get_uploaded_file(session, row.id)
    assert stored.status == "processed"
    assert stored.asset_count == 2
    assert [f.id for f in crud.list_uploaded_files(session)] == [row.id]


def test_list_assets_by_type(session):
    add_asset(session, "PUMP-1")
    crud.create_asset(session, id="COMP-1", name="Compressor 1", type="compressor")
    session.commit()

    assert [a.id for a in crud.list_assets(session)] == ["COMP-1", "PUMP-1"]
    assert [a.id for a in crud.list_assets(session, "pump")] == ["PUMP-1"]


def test_readings_are_batched_and_ordered(session):
    add_asset(session)
    inserted = crud.insert_readings(session, [reading("PUMP-101", m, 100.0 + m) for m in range(25)], batch_size=10)
    session.commit()

    assert inserted == 25
    newest = crud.get_readings(session, "PUMP-101", limit=3)
    assert [r.temp_f for r in newest] == [124.0, 123.0, 122.0]
    oldest = crud.get_readings(session, "PUMP-101", limit=2, order="asc")
    assert [r.temp_f for r in oldest] == [100.0, 101.0]
    assert len(crud.get_all_readings(session, "PUMP-101")) == 25
    assert crud.get_latest_reading(session, "PUMP-101").temp_f == 124.0

    window = crud.get_readings_in_range(
        session, "PUMP-101", "2025-01-10T10:05:00.000Z", "2025-01-10T10:07:00.000Z"
    )
    assert [r.temp_f for r in window] == [105.0, 106.0, 107.0]


def test_asset_with_readings(session):
    add_asset(session)
    crud.insert_readings(session, [reading("PUMP-101", m) for m in range(5)])
    session.commit()

    asset, rows, prediction = crud.get_asset_with_readings(session, "PUMP-101", limit=2)
    assert asset.id == "PUMP-101"
    assert len(rows) == 2
    assert prediction is None
    assert crud.get_asset_with_readings(session, "PUMP-999") is None


def test_prediction_history_newest_first(session):
    add_asset(session)
    for day, probability in ((1, 0.2), (3, 0.8), (2, 0.5)):
        crud.create_prediction(
            session,
            asset_id="PUMP-101",
            probability=probability,
            risk_level="green",
            recommendation="ok",
            predicted_at=datetime(2025, 1, day),
        )
    session.commit()

    assert crud.get_latest_prediction(session, "PUMP-101").probability == 0.8
    assert [p.probability for p in crud.get_prediction_history(session, "PUMP-101", limit=2)] == [0.8, 0.5]


def test_update_and_delete_asset(session):
    add_asset(session)
    crud.insert_readings(session, [reading("PUMP-101", 0)])
    crud.create_prediction(
        session, asset_id="PUMP-101", probability=0.1, risk_level="green", recommendation="ok"
    )
    session.commit()

    updated = crud.update_asset(session, "PUMP-101", manufacturer="Acme")
    assert updated.manufacturer == "Acme"
    assert crud.update_asset(session, "PUMP-999", manufacturer="Acme") is None

    crud.delete_asset(session, "PUMP-101")
    session.commit()
    assert crud.get_asset(session, "PUMP-101") is None
    assert crud.get_readings(session, "PUMP-101") == []
    assert crud.get_latest_prediction(session, "PUMP-101") is None


def test_model_records(session):
    for version, trained in (("v1_a", datetime(2025, 1, 1)), ("v1_b", datetime(2025, 1, 2))):
        crud.create_model_record(
            session,
            version=version,
            model_type="random_forest",
            training_samples=8,
            validation_samples=2,
            metrics={"accuracy": 1.0},
            feature_importances=[],
            trained_at=trained,
        )
    session.commit()

    assert crud.get_latest_model(session).version == "v1_b"
    assert crud.get_model_by_version(session, "v1_a").training_samples == 8
    assert crud.get_model_by_version(session, "missing") is None


def test_timestamps_are_naive_utc(session):
    row = crud.create_uploaded_file(session, file_name="a.csv", row_count=1)
    session.commit()

    assert row.uploaded_at.tzinfo is None
    assert abs((utcnow() - row.uploaded_at).total_seconds()) < 60
    assert re.fullmatch(r"file_\d{8}T\d{6}_[a-z0-9]{6}", crud.new_file_id())
