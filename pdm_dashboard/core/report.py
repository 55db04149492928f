"""
Detailed per-asset CSV report: asset info, current status, half-to-half and
time-segment trend analysis and the latest prediction.
"""

from __future__ import annotations

import csv
import io
import re
from datetime import date, datetime
from typing import Any, Sequence

from pdm_dashboard.core import trends
from pdm_dashboard.schemas import Reading

_ROC_ROWS = (("Average", "mean"), ("Maximum", "max"), ("Minimum", "min"))


def report_filename(asset_name: str, hours: int, day: date) -> str:
    safe_name = re.sub(r"\s+", "_", asset_name)
    return f"{safe_name}_{hours}h_report_{day.isoformat()}.csv"


def _row(*fields: Any) -> str:
    buf = io.StringIO()
    csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="").writerow(fields)
    return buf.getvalue()


def _num(value: float) -> str:
    # 165.0 -> "165", 165.2 -> "165.2"
    return str(int(value)) if float(value).is_integer() else str(value)


def _fixed(value: float | None) -> str:
    return "N/A" if value is None else f"{value:.2f}"


def _risk_value(risk_level: Any) -> str:
    return getattr(risk_level, "value", risk_level)


def build_report(
    asset: Any,
    readings: Sequence[Reading],
    hours: int,
    prediction: Any | None = None,
    generated_at: datetime | None = None,
) -> str:
    """Render the report text.

    `readings` are newest first, exactly as fetched from storage.
    `asset` needs name/location/manufacturer/model; `prediction` needs
    risk_level/probability/model_version.
    """
    generated_at = generated_at or datetime.now()
    ordered = trends.chronological(readings)
    analysis = trends.analyze(ordered, hours)

    lines: list[str] = [
        _row(f"Asset Detailed Report - {asset.name}"),
        _row(f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}"),
        _row(f"Time Range: {hours} hours"),
        _row(f"Total Readings: {len(readings)}"),
        "",
        _row("ASSET INFORMATION"),
        _row("Type", asset.name),
        _row("Location", asset.location or "N/A"),
        _row("Manufacturer", asset.manufacturer or "N/A"),
        _row("Model", asset.model or "N/A"),
    ]
    if prediction is not None:
        lines.append(_row("Risk Level", _risk_value(prediction.risk_level)))
        lines.append(_row("Failure Probability", f"{prediction.probability * 100:.1f}%"))
    lines.append("")

    if readings:
        current = readings[0]
        lines += [
            _row("CURRENT SENSOR STATUS"),
            _row("Temperature", f"{_num(current.temperature)}°F"),
            _row("Pressure", f"{_num(current.pressure)} PSI"),
            _row("Vibration", f"{_num(current.vibration)} mm"),
            "",
        ]

    roc = analysis.half_to_half.roc
    lines.append(_row("TREND ANALYSIS: FIRST HALF vs SECOND HALF"))
    lines.append(
        _row(
            "Metric",
            "Temperature (°F) Change %",
            "Pressure (PSI) Change %",
            "Vibration (mm) Change %",
        )
    )
    for title, agg in _ROC_ROWS:
        values = getattr(roc, agg)
        lines.append(
            _row(
                title,
                *(f"{_fixed(getattr(values, m))}%" for m in trends.METRICS),
            )
        )
    lines.append("")

    if analysis.chunks:
        lines.append(_row("TIME SEGMENT TREND ANALYSIS"))
        lines.append(
            _row(
                "Period",
                "Temp Avg (°F)",
                "Temp RoC %",
                "Pressure Avg (PSI)",
                "Pressure RoC %",
                "Vibration Avg (mm)",
                "Vibration RoC %",
            )
        )
        for chunk in analysis.chunks:
            cells = [chunk.label]
            for m in trends.METRICS:
                cells.append(_fixed(getattr(chunk.mean, m)))
                cells.append(_fixed(getattr(chunk.roc, m)))
            lines.append(_row(*cells))
        lines.append("")

    if prediction is not None:
        lines.append(_row("ML PREDICTION"))
        lines.append(_row("Failure Probability", f"{prediction.probability * 100:.1f}%"))
        lines.append(_row("Risk Level", _risk_value(prediction.risk_level)))
        if prediction.model_version:
            lines.append(_row("Model Version", prediction.model_version))

    return "\n".join(lines)
