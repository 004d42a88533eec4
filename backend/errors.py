"""
Exceptions raised by the posing analysis engine and the HTTP layer.
"""
from typing import Any, Dict, Optional

NO_POSE_DATA_MESSAGE = "analysis failed, no usable pose data detected"


class AnalysisError(Exception):
    """Base exception for a failed analysis run."""

    def __init__(self, message: str, error_code: str = "ANALYSIS_FAILED", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NoDataError(AnalysisError):
    """Raised when no usable joint frames survive sampling and extraction."""

    def __init__(self, message: str = NO_POSE_DATA_MESSAGE, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "NO_POSE_DATA", details)


class DegenerateMeasurementError(AnalysisError):
    """Raised when the mean waist width is zero and no V-taper ratio exists."""

    def __init__(self, message: str, waist_width: float, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DEGENERATE_MEASUREMENT", details)
        self.waist_width = waist_width


class VideoReadError(AnalysisError):
    def __init__(self, message: str, video_path: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VIDEO_READ_ERROR", details)
        self.video_path = video_path


class AnalysisCancelled(AnalysisError):
    """Raised between sampled timestamps when the caller asks to stop."""

    def __init__(self, message: str = "analysis cancelled", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "ANALYSIS_CANCELLED", details)


class UnsupportedModelError(AnalysisError):
    def __init__(self, model: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Unsupported model: {model}", "UNSUPPORTED_MODEL", details)
        self.model = model


def error_payload(exc: AnalysisError) -> Dict[str, Any]:
    """Standard error body returned by the API."""
    return {
        "error": {
            "code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        }
    }
