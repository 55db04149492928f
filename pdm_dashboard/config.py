"""
Centralised settings loaded from environment / .env file.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # ── SQLite ───────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/maintenance.db"
    data_dir: str = "data"

    # ── Model artifacts ──────────────────────────────────────────────
    model_dir: str = "data/models"
    stub_model_version: str = "stub_v0.1"
    random_seed: int | None = None
    lgbm_num_boost_round: int = 100
    lgbm_learning_rate: float = 0.05
    lgbm_num_leaves: int = 15
    lgbm_min_data_in_leaf: int = 2

    # ── Ingestion / queries ──────────────────────────────────────────
    max_upload_mb: int = 50
    reading_batch_size: int = 100
    default_readings_limit: int = 1000
    prediction_history_limit: int = 30

    # ── Feature engineering (one reading per minute) ─────────────────
    feature_window_readings: int = 24 * 60
    feature_lag_readings: int = 60
    feature_stride_readings: int = 60

    # ── API ──────────────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "info"

    # ── Streamlit ────────────────────────────────────────────────────
    streamlit_port: int = 8501
    api_base_url: str = "http://localhost:8000"

    # ── Derived helpers ──────────────────────────────────────────────

    @property
    def sqlite_path(self) -> Path | None:
        prefix = "sqlite:///"
        if not self.database_url.startswith(prefix):
            return None
        raw = self.database_url[len(prefix):]
        if not raw or raw == ":memory:":
            return None
        return Path(raw)


settings = Settings()
