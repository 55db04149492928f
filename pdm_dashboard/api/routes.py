"""
FastAPI application — upload, assets, trends, reports, train/predict & health.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, File, Path, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from pdm_dashboard.core import assets as asset_listing
from pdm_dashboard.core import report, trends
from pdm_dashboard.core.ingest import ingest_upload
from pdm_dashboard.db import crud
from pdm_dashboard.db.session import get_session
from pdm_dashboard.errors import AssetNotFound, DashboardError, FileNotFound
from pdm_dashboard.models.risk_model import predict_all, train_model
from pdm_dashboard.schemas import (
    AssetDetail,
    AssetInfo,
    AssetStats,
    AssetType,
    DateRange,
    HealthResponse,
    PredictionOut,
    PredictionPoint,
    PredictRequest,
    Reading,
    ReadingOut,
    RiskLevel,
    SortDirection,
    SortField,
    TrainRequest,
    TrendResponse,
)

logger = logging.getLogger("pdm.api")

router = APIRouter(prefix="/api")


def _success(data: Any = None, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"status": "success", **extra}
    if data is not None:
        payload["data"] = jsonable_encoder(data)
    return payload


def _to_reading(row: Any) -> Reading:
    return Reading(
        timestamp=row.timestamp,
        temperature=row.temp_f,
        pressure=row.pressure_psi,
        vibration=row.vibration_mm,
    )


def _require_asset(session: Session, asset_id: str):
    asset = crud.get_asset(session, asset_id)
    if asset is None:
        raise AssetNotFound(asset_id)
    return asset


def _prediction_out(row: Any) -> PredictionOut | None:
    if row is None:
        return None
    return PredictionOut(
        risk_level=row.risk_level,
        probability=row.probability,
        recommendation=row.recommendation,
        predicted_at=row.predicted_at,
        model_version=row.model_version,
    )


def _asset_summaries(
    session: Session,
    asset_type: AssetType | None,
    risk_level: RiskLevel | None,
    sort: SortField,
    order: SortDirection,
):
    rows = crud.list_assets(session, asset_type.value if asset_type else None)
    summaries = [
        asset_listing.summarize_asset(row, crud.get_latest_prediction(session, row.id))
        for row in rows
    ]
    return asset_listing.sort_assets(asset_listing.filter_by_risk(summaries, risk_level), sort, order)


# ---------------------------------------------------------------------------
# POST /api/upload
# ---------------------------------------------------------------------------
@router.post("/upload")
async def upload(
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
):
    """Validate a sensor CSV and store its readings."""
    content = await file.read()
    logger.info("[upload] %s (%d bytes)", file.filename, len(content))
    result = await run_in_threadpool(ingest_upload, session, file.filename or "", content)
    return jsonable_encoder(result)


# ---------------------------------------------------------------------------
# GET /api/assets
# ---------------------------------------------------------------------------
@router.get("/assets")
def list_assets(
    asset_type: AssetType | None = Query(default=None, alias="type"),
    risk_level: RiskLevel | None = Query(default=None, alias="riskLevel"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    sort: SortField = Query(default=SortField.RISK_LEVEL),
    order: SortDirection = Query(default=SortDirection.DESC),
    session: Session = Depends(get_session),
):
    summaries = _asset_summaries(session, asset_type, risk_level, sort, order)
    return _success(asset_listing.paginate(summaries, page, limit))


@router.get("/assets/export")
def export_assets(
    asset_type: AssetType | None = Query(default=None, alias="type"),
    risk_level: RiskLevel | None = Query(default=None, alias="riskLevel"),
    sort: SortField = Query(default=SortField.RISK_LEVEL),
    order: SortDirection = Query(default=SortDirection.DESC),
    session: Session = Depends(get_session),
):
    summaries = _asset_summaries(session, asset_type, risk_level, sort, order)
    filename = asset_listing.export_filename(date.today())
    return Response(
        content=asset_listing.assets_csv(summaries),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# GET /api/assets/{asset_id}
# ---------------------------------------------------------------------------
@router.get("/assets/{asset_id}")
def get_asset(
    asset_id: str = Path(...),
    readings_limit: int = Query(default=1000, ge=1, le=100_000, alias="readingsLimit"),
    session: Session = Depends(get_session),
):
    found = crud.get_asset_with_readings(session, asset_id, readings_limit)
    if found is None:
        raise AssetNotFound(asset_id)
    asset, readings, latest = found
    history = crud.get_prediction_history(session, asset_id)

    detail = AssetDetail(
        asset=AssetInfo.model_validate(asset),
        readings=[
            ReadingOut(
                timestamp=r.timestamp,
                temp_f=r.temp_f,
                pressure_psi=r.pressure_psi,
                vibration_mm=r.vibration_mm,
                failure_flag=r.failure_flag,
            )
            for r in readings
        ],
        current_prediction=_prediction_out(latest),
        prediction_history=[
            PredictionPoint(risk_level=p.risk_level, probability=p.probability, predicted_at=p.predicted_at)
            for p in history
        ],
        stats=AssetStats(
            total_readings=len(readings),
            date_range=DateRange(
                start=readings[-1].timestamp if readings else None,
                end=readings[0].timestamp if readings else None,
            ),
        ),
    )
    return _success(detail)


# ---------------------------------------------------------------------------
# GET /api/assets/{asset_id}/trends
# ---------------------------------------------------------------------------
@router.get("/assets/{asset_id}/trends")
def get_trends(
    asset_id: str = Path(...),
    hours: int = Query(default=24, ge=1, le=168),
    session: Session = Depends(get_session),
):
    """Half-to-half and chunked trend statistics for the last `hours`."""
    _require_asset(session, asset_id)
    rows = crud.get_readings(session, asset_id, limit=trends.readings_budget(hours))
    analysis = trends.analyze(trends.chronological([_to_reading(r) for r in rows]), hours)
    body = TrendResponse(
        asset_id=asset_id,
        chart=trends.chart_series(analysis.chunks),
        **analysis.model_dump(),
    )
    return _success(body)


# ---------------------------------------------------------------------------
# GET /api/assets/{asset_id}/report
# ---------------------------------------------------------------------------
@router.get("/assets/{asset_id}/report")
def get_report(
    asset_id: str = Path(...),
    hours: int = Query(default=24, ge=1, le=168),
    session: Session = Depends(get_session),
):
    asset = _require_asset(session, asset_id)
    rows = crud.get_readings(session, asset_id, limit=trends.readings_budget(hours))
    prediction = crud.get_latest_prediction(session, asset_id)
    now = datetime.now()
    text = report.build_report(
        asset,
        [_to_reading(r) for r in rows],
        hours,
        prediction=prediction,
        generated_at=now,
    )
    filename = report.report_filename(asset.name, hours, now.date())
    logger.info("[report] %s: %d readings, %dh window -> %s", asset_id, len(rows), hours, filename)
    return Response(
        content=text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# POST /api/train  &  POST /api/predict
# ---------------------------------------------------------------------------
@router.post("/train")
def train(body: TrainRequest, session: Session = Depends(get_session)):
    result = train_model(session, body.file_id, body.model_type)
    return _success(result, message="Model trained successfully")


@router.post("/predict")
def predict(body: PredictRequest, session: Session = Depends(get_session)):
    result = predict_all(session, body.file_id)
    return _success(result, message="Predictions generated successfully")


# ---------------------------------------------------------------------------
# Uploaded files & data quality
# ---------------------------------------------------------------------------
@router.get("/files")
def list_files(session: Session = Depends(get_session)):
    files = crud.list_uploaded_files(session)
    return _success(
        [
            {
                "id": f.id,
                "file_name": f.file_name,
                "uploaded_at": f.uploaded_at,
                "row_count": f.row_count,
                "asset_count": f.asset_count,
                "status": f.status,
            }
            for f in files
        ]
    )


@router.get("/files/{file_id}/issues")
def list_file_issues(file_id: str = Path(...), session: Session = Depends(get_session)):
    if crud.get_uploaded_file(session, file_id) is None:
        raise FileNotFound(file_id)
    issues = crud.get_issues_for_file(session, file_id)
    return _success(
        [
            {
                "asset_id": i.asset_id,
                "timestamp": i.timestamp,
                "issue_type": i.issue_type,
                "field": i.field,
                "value": i.value,
                "severity": i.severity,
            }
            for i in issues
        ]
    )


# ---------------------------------------------------------------------------
# Lifespan: create tables on startup
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    from pdm_dashboard.db.migrate import run_migrations

    logger.info("Predictive maintenance dashboard starting …")
    run_migrations()
    yield
    logger.info("Shutting down.")


app = FastAPI(
    title="Predictive Maintenance Dashboard",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(router)


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    logger.info("[%s] %s: %s", request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_payload()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "status": "error",
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request",
                "details": jsonable_encoder(exc.errors()),
            },
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled server error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}},
    )


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------
@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse()
