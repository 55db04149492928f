"""
Domain errors surfaced by the API as the `{"status": "error", ...}` envelope.
"""

from __future__ import annotations

from typing import Any


class DashboardError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"status": "error", "error": error}


class ValidationFailed(DashboardError):
    code = "VALIDATION_ERROR"
    status_code = 400


class AssetNotFound(DashboardError):
    code = "ASSET_NOT_FOUND"
    status_code = 404

    def __init__(self, asset_id: str) -> None:
        super().__init__(f"Asset with ID '{asset_id}' not found")
        self.asset_id = asset_id


class FileNotFound(DashboardError):
    code = "FILE_NOT_FOUND"
    status_code = 404

    def __init__(self, file_id: str) -> None:
        super().__init__(f"File with ID '{file_id}' not found")
        self.file_id = file_id


class TrainingFailed(DashboardError):
    """Not enough labelled feature rows to fit a classifier."""

    code = "TRAINING_FAILED"
    status_code = 422
