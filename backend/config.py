"""
Configuration constants for the posing analysis backend.

Values come from the environment (optionally a ``.env`` file next to the
project root) and fall back to the defaults below.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def _optional_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


# ---------------------------------------------------------------------------
# Frame sampling / extraction
# ---------------------------------------------------------------------------
SAMPLE_INTERVAL_SECONDS: float = float(os.environ.get("SAMPLE_INTERVAL_SECONDS", "1.0"))
POSE_MODEL_PATH: str = os.environ.get(
    "POSE_MODEL_PATH", os.path.join(os.path.dirname(__file__), "pose_landmarker_lite.task")
)
MIN_POSE_DETECTION_CONFIDENCE: float = float(os.environ.get("MIN_POSE_DETECTION_CONFIDENCE", "0.5"))
THUMBNAIL_WIDTH: int = int(os.environ.get("THUMBNAIL_WIDTH", "400"))
THUMBNAIL_JPEG_QUALITY: int = int(os.environ.get("THUMBNAIL_JPEG_QUALITY", "80"))

# ---------------------------------------------------------------------------
# Pose classification
# ---------------------------------------------------------------------------
POSE_GAP_SECONDS: float = float(os.environ.get("POSE_GAP_SECONDS", "2.0"))
# Unset means the quality baseline is drawn from an unseeded generator.
POSE_QUALITY_SEED: Optional[int] = _optional_int("POSE_QUALITY_SEED")

# ---------------------------------------------------------------------------
# Re-classification / coaching providers
# ---------------------------------------------------------------------------
OPENAI_API_KEY: str = os.environ.get("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY: str = os.environ.get("ANTHROPIC_API_KEY", "")
GEMINI_API_KEY: str = os.environ.get("GEMINI_API_KEY", "")
RECLASSIFY_WORKERS: int = int(os.environ.get("RECLASSIFY_WORKERS", "4"))

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
