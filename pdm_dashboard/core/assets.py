"""
Asset listing: summaries with the latest prediction, filtering, sorting,
pagination and the flat CSV export of the table.
"""

from __future__ import annotations

import csv
import io
import math
from datetime import date
from typing import Any, Sequence

from pdm_dashboard.schemas import (
    AssetPage,
    AssetSummary,
    Pagination,
    RiskLevel,
    SortDirection,
    SortField,
)

RISK_ORDER: dict[RiskLevel, int] = {
    RiskLevel.RED: 3,
    RiskLevel.YELLOW: 2,
    RiskLevel.GREEN: 1,
}

EXPORT_HEADERS: list[str] = [
    "Asset ID",
    "Type",
    "Location",
    "Risk Level",
    "Failure Probability (%)",
    "Recommendation",
    "Manufacturer",
    "Model",
]


def summarize_asset(asset: Any, prediction: Any | None) -> AssetSummary:
    summary = AssetSummary(
        id=asset.id,
        name=asset.name,
        type=asset.type,
        location=asset.location,
        manufacturer=asset.manufacturer,
        model=asset.model,
        last_maintenance_date=asset.last_maintenance_date,
    )
    if prediction is not None:
        summary.risk_level = RiskLevel(prediction.risk_level)
        summary.failure_probability = prediction.probability
        summary.recommendation = prediction.recommendation
        summary.last_prediction_date = prediction.predicted_at
    return summary


def _sort_key(field: SortField):
    if field is SortField.RISK_LEVEL:
        return lambda a: RISK_ORDER[a.risk_level]
    if field is SortField.FAILURE_PROBABILITY:
        return lambda a: a.failure_probability
    if field is SortField.LOCATION:
        return lambda a: a.location or ""
    return lambda a: getattr(a, field.value)


def sort_assets(
    items: Sequence[AssetSummary],
    field: SortField = SortField.RISK_LEVEL,
    direction: SortDirection = SortDirection.DESC,
) -> list[AssetSummary]:
    # sorted() is stable, so ties keep their incoming order in both directions.
    return sorted(items, key=_sort_key(field), reverse=direction is SortDirection.DESC)


def filter_by_risk(items: Sequence[AssetSummary], risk_level: RiskLevel | None) -> list[AssetSummary]:
    if risk_level is None:
        return list(items)
    return [a for a in items if a.risk_level == risk_level]


def paginate(items: Sequence[AssetSummary], page: int = 1, limit: int = 50) -> AssetPage:
    start = (page - 1) * limit
    return AssetPage(
        assets=list(items[start:start + limit]),
        pagination=Pagination(
            page=page,
            limit=limit,
            total=len(items),
            total_pages=math.ceil(len(items) / limit),
        ),
    )


def export_filename(day: date) -> str:
    return f"assets-export-{day.isoformat()}.csv"


def assets_csv(items: Sequence[AssetSummary]) -> str:
    buf = io.StringIO()
    buf.write(",".join(EXPORT_HEADERS))
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="")
    for asset in items:
        buf.write("\n")
        writer.writerow(
            [
                asset.id,
                asset.name,
                asset.location or "",
                asset.risk_level.value,
                f"{asset.failure_probability * 100:.1f}",
                asset.recommendation,
                asset.manufacturer or "",
                asset.model or "",
            ]
        )
    return buf.getvalue()
