"""
Per-asset CSV report text and filename.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from types import SimpleNamespace

from pdm_dashboard.core.report import build_report, report_filename
from pdm_dashboard.schemas import Reading

GENERATED = datetime(2025, 1, 10, 12, 0, 0)
ASSET = SimpleNamespace(name="Pump 101", location="Plant A", manufacturer=None, model="X-200")
PREDICTION = SimpleNamespace(risk_level="red", probability=0.8234, model_version="v1_20250110_120000")


def newest_first(temps):
    t0 = datetime(2025, 1, 10, 11, 0)
    chronological = [
        Reading(timestamp=t0 + timedelta(minutes=i), temperature=t, pressure=50.0, vibration=2.5)
        for i, t in enumerate(temps)
    ]
    return list(reversed(chronological))


def test_report_filename_replaces_whitespace():
    assert report_filename("Pump 101", 24, date(2025, 1, 10)) == "Pump_101_24h_report_2025-01-10.csv"
    assert report_filename("Main  Cooling Pump", 1, date(2025, 3, 2)) == "Main_Cooling_Pump_1h_report_2025-03-02.csv"


def test_report_sections():
    text = build_report(ASSET, newest_first(range(100, 160)), 1, prediction=PREDICTION, generated_at=GENERATED)
    lines = text.split("\n")

    assert lines[:4] == [
        '"Asset Detailed Report - Pump 101"',
        '"Generated: 2025-01-10 12:00:00"',
        '"Time Range: 1 hours"',
        '"Total Readings: 60"',
    ]
    assert '"Type","Pump 101"' in lines
    assert '"Manufacturer","N/A"' in lines
    assert '"Risk Level","red"' in lines
    assert '"Failure Probability","82.3%"' in lines

    # Current status is the newest reading.
    assert '"Temperature","159°F"' in lines
    assert '"Pressure","50 PSI"' in lines
    assert '"Vibration","2.5 mm"' in lines

    assert '"Average","26.20%","0.00%","0.00%"' in lines
    assert '"Maximum","23.26%","0.00%","0.00%"' in lines

    segment = lines.index('"TIME SEGMENT TREND ANALYSIS"')
    assert lines[segment + 2] == '"Last 15min","152.00","9.66","50.00","0.00","2.50","0.00"'

    assert '"ML PREDICTION"' in lines
    assert lines[-1] == '"Model Version","v1_20250110_120000"'


def test_report_without_prediction_or_history():
    text = build_report(ASSET, newest_first([88.0]), 24, generated_at=GENERATED)
    lines = text.split("\n")

    assert '"ML PREDICTION"' not in lines
    assert '"Average","N/A%","N/A%","N/A%"' in lines
    segment = lines.index('"TIME SEGMENT TREND ANALYSIS"')
    assert lines[segment + 2] == '"Last 3hr","88.00","0.00","50.00","0.00","2.50","0.00"'


def test_report_with_no_readings():
    text = build_report(ASSET, [], 8, generated_at=GENERATED)

    assert '"Total Readings: 0"' in text
    assert "CURRENT SENSOR STATUS" not in text
    assert "TIME SEGMENT TREND ANALYSIS" not in text
    assert '"Minimum","N/A%","N/A%","N/A%"' in text
