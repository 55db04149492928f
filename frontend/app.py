import streamlit as st
import requests
import polars as pl

from pdm_dashboard.config import settings
from pdm_dashboard.core.trends import SUPPORTED_HOURS, describe_change

API_BASE = settings.api_base_url

RISK_COLORS = {"green": "#22c55e", "yellow": "#eab308", "red": "#ef4444"}
METRIC_UNITS = [("temperature", "Temperature (°F)"), ("pressure", "Pressure (PSI)"), ("vibration", "Vibration (mm)")]

st.set_page_config(page_title="Asset Health", layout="wide", page_icon="🔧")

st.markdown('<h1 style="text-align:center; color:#111; font-size:2.3em; font-weight:900; margin-bottom:0.7em;">Predictive Maintenance Dashboard</h1>', unsafe_allow_html=True)

st.markdown(
    """
    <style>
    .block-container { padding-top: 3.5rem !important; padding-bottom: 2.5rem !important; }
    .stApp { background: #f8fafc; }
    .section-header {
        font-size: 1.35em;
        font-weight: 700;
        color: #334155;
        margin: 1.2em 0 0.8em 0;
        letter-spacing: 0.01em;
    }
    .risk-badge {
        display: inline-block;
        padding: 0.2em 0.9em;
        border-radius: 999px;
        color: #fff;
        font-weight: 700;
        text-transform: uppercase;
        font-size: 0.9em;
    }
    .stat-label { color:#000; font-weight:600; }
    .stat-value { color:#000; margin-bottom:0.6em; }
    </style>
    """,
    unsafe_allow_html=True
)


def api_get(path, **params):
    response = requests.get(f"{API_BASE}{path}", params=params, timeout=60)
    if response.status_code != 200:
        st.error(f"API request failed: {error_message(response)}")
        st.stop()
    return response


def api_post(path, **kwargs):
    response = requests.post(f"{API_BASE}{path}", timeout=300, **kwargs)
    if response.status_code != 200:
        st.error(f"API request failed: {error_message(response)}")
        return None
    return response.json()


def error_message(response):
    try:
        error = response.json().get("error", {})
    except ValueError:
        return response.text
    return error.get("message", response.text)


def fmt(value, suffix=""):
    return "N/A" if value is None else f"{value:.2f}{suffix}"


def risk_badge(level):
    return f'<span class="risk-badge" style="background:{RISK_COLORS.get(level, "#64748b")};">{level}</span>'


# --- Sidebar: upload, train, predict ---
with st.sidebar:
    st.markdown('<div class="section-header">Sensor Data</div>', unsafe_allow_html=True)
    sensor_csv = st.file_uploader(
        f"Sensor readings (CSV, max {settings.max_upload_mb}MB)",
        type=["csv"],
        help="Columns: timestamp, asset_id, tempF, pressurePSI, vibrationMM, failure_flag",
        key="sensor_csv",
    )
    if sensor_csv is not None and st.button("Upload", use_container_width=True):
        if sensor_csv.size > settings.max_upload_mb * 1024 * 1024:
            st.error(f"File too large. Please upload a file smaller than {settings.max_upload_mb}MB.")
            st.stop()
        with st.spinner("Validating and storing readings…"):
            result = api_post("/api/upload", files={"file": (sensor_csv.name, sensor_csv.getvalue(), "text/csv")})
        if result:
            st.session_state["file_id"] = result["file_id"]
            summary = result["validation_summary"]
            st.success(f"{result['rows_ingested']} rows ingested for {result['assets_detected']} assets.")
            if summary["invalid_rows"]:
                st.warning(f"{summary['invalid_rows']} of {summary['total_rows']} rows rejected.")

    files = api_get("/api/files").json()["data"]
    file_ids = [f["id"] for f in reversed(files)]
    if file_ids:
        current = st.session_state.get("file_id")
        file_id = st.selectbox(
            "Uploaded file",
            file_ids,
            index=file_ids.index(current) if current in file_ids else 0,
        )
        model_type = st.selectbox("Model type", ["random_forest", "xgboost", "neural_network"])
        tcol, pcol = st.columns(2)
        with tcol:
            if st.button("Train", use_container_width=True):
                with st.spinner("Training model…"):
                    trained = api_post("/api/train", json={"file_id": file_id, "model_type": model_type})
                if trained:
                    metrics = trained["data"]["metrics"]
                    st.success(f"Model {trained['data']['version']} trained (accuracy {metrics['accuracy']:.2f}).")
        with pcol:
            if st.button("Predict", use_container_width=True):
                with st.spinner("Scoring assets…"):
                    predicted = api_post("/api/predict", json={"file_id": file_id})
                if predicted:
                    st.success(f"{len(predicted['data']['predictions'])} predictions generated.")

        issues = api_get(f"/api/files/{file_id}/issues").json()["data"]
        if issues:
            with st.expander(f"Data quality issues ({len(issues)})"):
                st.dataframe(pl.DataFrame(issues), use_container_width=True, hide_index=True)
    else:
        st.info("Upload a sensor CSV to get started.")


# --- Asset table ---
st.markdown('<div class="section-header">Assets</div>', unsafe_allow_html=True)
fcol1, fcol2, fcol3, fcol4 = st.columns(4, gap="medium")
with fcol1:
    type_filter = st.selectbox("Type", ["all", "pump", "compressor", "motor", "other"])
with fcol2:
    risk_filter = st.selectbox("Risk level", ["all", "red", "yellow", "green"])
with fcol3:
    sort_field = st.selectbox("Sort by", ["risk_level", "failure_probability", "id", "name", "location"])
with fcol4:
    sort_order = st.selectbox("Order", ["desc", "asc"])

query = {"sort": sort_field, "order": sort_order, "limit": 100}
if type_filter != "all":
    query["type"] = type_filter
if risk_filter != "all":
    query["riskLevel"] = risk_filter

page = api_get("/api/assets", **query).json()["data"]
assets = page["assets"]
if not assets:
    st.info("No assets match the current filters.")
    st.stop()

table = pl.DataFrame(
    [
        {
            "Asset ID": a["id"],
            "Name": a["name"],
            "Location": a["location"] or "",
            "Risk Level": a["risk_level"],
            "Failure Probability (%)": round(a["failure_probability"] * 100, 1),
            "Recommendation": a["recommendation"],
        }
        for a in assets
    ]
)
st.dataframe(table, use_container_width=True, hide_index=True)

export = api_get("/api/assets/export", **{k: v for k, v in query.items() if k != "limit"})
st.download_button(
    "Export CSV",
    data=export.content,
    file_name=export.headers.get("content-disposition", "").split('filename="')[-1].rstrip('"') or "assets-export.csv",
    mime="text/csv",
)


# --- Asset detail ---
st.markdown('<div class="section-header">Asset Detail</div>', unsafe_allow_html=True)
dcol1, dcol2 = st.columns([2, 3], gap="large")
with dcol1:
    asset_id = st.selectbox("Asset", [a["id"] for a in assets])
with dcol2:
    hours = st.radio("Time range", SUPPORTED_HOURS, index=len(SUPPORTED_HOURS) - 1, horizontal=True, format_func=lambda h: f"{h}h")

detail = api_get(f"/api/assets/{asset_id}", readingsLimit=hours * 60).json()["data"]
trend = api_get(f"/api/assets/{asset_id}/trends", hours=hours).json()["data"]

info, prediction = detail["asset"], detail["current_prediction"]
icol1, icol2, icol3 = st.columns(3, gap="large")
with icol1:
    st.markdown(f'<div class="stat-label">Name</div><div class="stat-value">{info["name"]}</div>', unsafe_allow_html=True)
    st.markdown(f'<div class="stat-label">Location</div><div class="stat-value">{info["location"] or "N/A"}</div>', unsafe_allow_html=True)
with icol2:
    st.markdown(f'<div class="stat-label">Manufacturer</div><div class="stat-value">{info["manufacturer"] or "N/A"}</div>', unsafe_allow_html=True)
    st.markdown(f'<div class="stat-label">Model</div><div class="stat-value">{info["model"] or "N/A"}</div>', unsafe_allow_html=True)
with icol3:
    if prediction:
        st.markdown(f'<div class="stat-label">Risk Level</div><div class="stat-value">{risk_badge(prediction["risk_level"])}</div>', unsafe_allow_html=True)
        st.markdown(f'<div class="stat-label">Failure Probability</div><div class="stat-value">{prediction["probability"] * 100:.1f}%</div>', unsafe_allow_html=True)
        st.markdown(f'<div style="color:#222;">{prediction["recommendation"]}</div>', unsafe_allow_html=True)
    else:
        st.markdown('<div class="stat-value">No prediction available</div>', unsafe_allow_html=True)

# Readings arrive newest first.
readings = list(reversed(detail["readings"]))
if readings:
    current = detail["readings"][0]
    m1, m2, m3 = st.columns(3)
    m1.metric("Temperature", f'{current["temp_f"]}°F')
    m2.metric("Pressure", f'{current["pressure_psi"]} PSI')
    m3.metric("Vibration", f'{current["vibration_mm"]} mm')

    series = pl.DataFrame(readings).select(
        pl.col("timestamp"),
        pl.col("temp_f").alias("Temperature (°F)"),
        pl.col("pressure_psi").alias("Pressure (PSI)"),
        pl.col("vibration_mm").alias("Vibration (mm)"),
    )
    ccol1, ccol2, ccol3 = st.columns(3)
    for column, (_, label) in zip((ccol1, ccol2, ccol3), METRIC_UNITS):
        with column:
            st.markdown(f"**{label}**")
            st.line_chart(series, x="timestamp", y=label, height=220)

if detail["prediction_history"]:
    history = pl.DataFrame(list(reversed(detail["prediction_history"]))).select(
        pl.col("predicted_at"),
        (pl.col("probability") * 100).alias("Failure Probability (%)"),
    )
    st.markdown("**Prediction history**")
    st.line_chart(history, x="predicted_at", y="Failure Probability (%)", height=200)

# --- Half-to-half comparison ---
st.markdown('<div class="section-header">Trend Analysis: First Half vs Second Half</div>', unsafe_allow_html=True)
halves = trend["half_to_half"]
rows = []
for agg, title in (("mean", "Average"), ("max", "Maximum"), ("min", "Minimum")):
    row = {"Metric": title}
    for metric, label in METRIC_UNITS:
        row[label] = describe_change(halves["first_half"][agg][metric], halves["second_half"][agg][metric])
        row[f"{label.split(' ')[0]} Change %"] = fmt(halves["roc"][agg][metric], "%")
    rows.append(row)
st.dataframe(pl.DataFrame(rows), use_container_width=True, hide_index=True)
st.caption(f'{halves["first_count"]} readings in the first half, {halves["second_count"]} in the second.')

# --- Time segments ---
st.markdown(f'<div class="section-header">Time Segment Trend Analysis ({trend["unit"]} periods)</div>', unsafe_allow_html=True)
if trend["chunks"]:
    segments = pl.DataFrame(
        [
            {
                "Period": c["label"],
                "Readings": c["count"],
                "Temp Avg (°F)": fmt(c["mean"]["temperature"]),
                "Temp RoC %": fmt(c["roc"]["temperature"]),
                "Pressure Avg (PSI)": fmt(c["mean"]["pressure"]),
                "Pressure RoC %": fmt(c["roc"]["pressure"]),
                "Vibration Avg (mm)": fmt(c["mean"]["vibration"]),
                "Vibration RoC %": fmt(c["roc"]["vibration"]),
            }
            for c in trend["chunks"]
        ]
    )
    st.dataframe(segments, use_container_width=True, hide_index=True)

    # Chart reads the chronological series.
    roc_chart = pl.DataFrame(
        [
            {
                "period": f'{c["index"]:02d} {c["label"]}',
                "Temperature": c["roc"]["temperature"],
                "Pressure": c["roc"]["pressure"],
                "Vibration": c["roc"]["vibration"],
            }
            for c in trend["chart"]
        ]
    )
    st.markdown("**Rate of change per period (%)**")
    st.bar_chart(roc_chart, x="period", y=["Temperature", "Pressure", "Vibration"], height=260, stack=False)
else:
    st.info("No readings in the selected time range.")

report = api_get(f"/api/assets/{asset_id}/report", hours=hours)
st.download_button(
    "Download Report",
    data=report.content,
    file_name=report.headers.get("content-disposition", "").split('filename="')[-1].rstrip('"') or f"{asset_id}_report.csv",
    mime="text/csv",
)
