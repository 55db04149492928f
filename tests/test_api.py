"""
HTTP API tests with FastAPI TestClient against an in-memory database.
"""

from __future__ import annotations

import pytest


def upload(client, content: bytes, name: str = "readings.csv"):
    return client.post("/api/upload", files={"file": (name, content, "text/csv")})


@pytest.fixture
def uploaded(client, make_csv):
    response = upload(client, make_csv("PUMP-101", 60))
    assert response.status_code == 200, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_upload(uploaded):
    assert uploaded["status"] == "success"
    assert uploaded["file_id"].startswith("file_")
    assert uploaded["rows_ingested"] == 60
    assert uploaded["assets_detected"] == 1
    assert uploaded["validation_summary"]["valid_rows"] == 60


def test_upload_missing_columns(client):
    response = upload(client, b"timestamp,asset_id\n2025-01-10T10:00:00Z,PUMP-1\n")

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == "error"
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["details"]["found_columns"] == ["timestamp", "asset_id"]


def test_upload_rejects_other_extensions(client, make_csv):
    response = upload(client, make_csv(), name="readings.json")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_list_assets(client, uploaded, make_csv):
    upload(client, make_csv("COMP-7", 5))

    response = client.get("/api/assets", params={"sort": "id", "order": "asc"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert [a["id"] for a in data["assets"]] == ["COMP-7", "PUMP-101"]
    assert data["assets"][0]["risk_level"] == "green"
    assert data["pagination"] == {"page": 1, "limit": 50, "total": 2, "total_pages": 1}

    filtered = client.get("/api/assets", params={"type": "compressor"}).json()["data"]
    assert [a["id"] for a in filtered["assets"]] == ["COMP-7"]
    none_red = client.get("/api/assets", params={"riskLevel": "red"}).json()["data"]
    assert none_red["assets"] == []


def test_list_assets_rejects_bad_query(client):
    response = client.get("/api/assets", params={"limit": 500})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_asset_detail(client, uploaded):
    response = client.get("/api/assets/PUMP-101", params={"readingsLimit": 10})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["asset"]["name"] == "Pump 101"
    assert len(data["readings"]) == 10
    assert data["readings"][0]["timestamp"] == "2025-01-10T10:59:00.000Z"
    assert data["current_prediction"] is None
    assert data["stats"]["date_range"]["end"] == "2025-01-10T10:59:00.000Z"


def test_unknown_asset(client):
    response = client.get("/api/assets/PUMP-999")

    assert response.status_code == 404
    assert response.json() == {
        "status": "error",
        "error": {"code": "ASSET_NOT_FOUND", "message": "Asset with ID 'PUMP-999' not found"},
    }


def test_trends(client, uploaded):
    response = client.get("/api/assets/PUMP-101/trends", params={"hours": 1})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["asset_id"] == "PUMP-101"
    assert data["reading_count"] == 60
    assert data["unit"] == "15min"
    assert [c["index"] for c in data["chunks"]] == [3, 2, 1, 0]
    assert [c["index"] for c in data["chart"]] == [0, 1, 2, 3]
    assert data["chunks"][0]["label"] == "Last 15min"
    assert data["half_to_half"]["first_count"] == 30
    assert data["half_to_half"]["second_half"]["max"]["temperature"] == 159.0


def test_trends_for_unknown_asset(client):
    assert client.get("/api/assets/PUMP-999/trends").status_code == 404


def test_report_download(client, uploaded):
    response = client.get("/api/assets/PUMP-101/report", params={"hours": 4})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    disposition = response.headers["content-disposition"]
    assert 'filename="Pump_101_4h_report_' in disposition
    assert response.text.startswith('"Asset Detailed Report - Pump 101"')
    assert '"Total Readings: 60"' in response.text


def test_assets_export(client, uploaded):
    response = client.get("/api/assets/export")

    assert response.status_code == 200
    assert "assets-export-" in response.headers["content-disposition"]
    lines = response.text.split("\n")
    assert lines[0].startswith("Asset ID,Type,Location")
    assert lines[1].startswith('"PUMP-101","Pump 101","Unknown","green"')


def test_predict_then_list(client, uploaded):
    response = client.post("/api/predict", json={"file_id": uploaded["file_id"]})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Predictions generated successfully"
    prediction = body["data"]["predictions"][0]
    assert prediction["asset_id"] == "PUMP-101"

    asset = client.get("/api/assets").json()["data"]["assets"][0]
    assert asset["failure_probability"] == prediction["failure_probability"]
    assert asset["risk_level"] == prediction["risk_level"]

    detail = client.get("/api/assets/PUMP-101").json()["data"]
    assert detail["current_prediction"]["model_version"] == "stub_v0.1"
    assert len(detail["prediction_history"]) == 1


def test_predict_unknown_file(client):
    response = client.post("/api/predict", json={"file_id": "file_missing"})

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "FILE_NOT_FOUND"


def test_train_without_enough_data(client, uploaded):
    response = client.post("/api/train", json={"file_id": uploaded["file_id"]})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "TRAINING_FAILED"


def test_train_requires_file_id(client):
    response = client.post("/api/train", json={})
    assert response.status_code == 400


def test_files_and_issues(client, make_csv):
    content = make_csv("PUMP-101", 3) + b"2025-01-10T10:03:00Z,PUMP-101,900,150,2.0,0\n"
    file_id = upload(client, content).json()["file_id"]

    files = client.get("/api/files").json()["data"]
    assert files[0]["id"] == file_id
    assert files[0]["status"] == "processed"

    issues = client.get(f"/api/files/{file_id}/issues").json()["data"]
    assert issues == [
        {
            "asset_id": "PUMP-101",
            "timestamp": "2025-01-10T10:03:00Z",
            "issue_type": "invalid_format",
            "field": "tempF",
            "value": "900",
            "severity": "error",
        }
    ]
    assert client.get("/api/files/file_missing/issues").status_code == 404
