import math
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class JointName(IntEnum):
    """MediaPipe Pose landmark indices for the joints the engine reads."""

    NOSE = 0
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28


NUM_LANDMARKS = 33


def round_half_up(value: float, ndigits: int = 0):
    """Round with halves going up (2.5 -> 3), unlike the builtin ``round``."""
    if ndigits == 0:
        return math.floor(value + 0.5)
    scale = 10 ** ndigits
    return math.floor(value * scale + 0.5) / scale


class Landmark(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


class JointFrame(BaseModel):
    """One sampled instant: landmarks in MediaPipe index order plus a thumbnail."""

    model_config = ConfigDict(frozen=True)

    timestamp: float
    landmarks: list[Landmark]
    thumbnail: Optional[str] = None  # base64 JPEG

    @model_validator(mode="after")
    def _check_landmarks(self):
        if len(self.landmarks) <= max(JointName):
            raise ValueError(
                f"expected at least {max(JointName) + 1} landmarks, got {len(self.landmarks)}"
            )
        return self

    def joint(self, name: JointName) -> Landmark:
        return self.landmarks[name]


class PoseName(str, Enum):
    FRONT_DOUBLE_BICEPS = "front-double-biceps"
    BACK_DOUBLE_BICEPS = "back-double-biceps"
    FRONT_LAT_SPREAD = "front-lat-spread"
    BACK_LAT_SPREAD = "back-lat-spread"
    SIDE_CHEST = "side-chest"
    SIDE_TRICEPS = "side-triceps"
    MOST_MUSCULAR = "most-muscular"
    ABS_AND_THIGHS = "abs-and-thighs"
    GENERAL_TRANSITION_POSE = "general-transition-pose"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def is_mandatory(self) -> bool:
        return self is not PoseName.GENERAL_TRANSITION_POSE


_DISPLAY_NAMES = {
    PoseName.FRONT_DOUBLE_BICEPS: "Front Double Biceps",
    PoseName.BACK_DOUBLE_BICEPS: "Back Double Biceps",
    PoseName.FRONT_LAT_SPREAD: "Front Lat Spread",
    PoseName.BACK_LAT_SPREAD: "Back Lat Spread",
    PoseName.SIDE_CHEST: "Side Chest",
    PoseName.SIDE_TRICEPS: "Side Triceps",
    PoseName.MOST_MUSCULAR: "Most Muscular",
    PoseName.ABS_AND_THIGHS: "Abs & Thighs",
    PoseName.GENERAL_TRANSITION_POSE: "Transition",
}

MANDATORY_POSES: tuple[PoseName, ...] = tuple(p for p in PoseName if p.is_mandatory)


class BodyMeasurements(BaseModel):
    # shoulder_width / waist_width are normalized distances x100, not centimetres
    shoulder_width: int
    waist_width: int
    v_taper_ratio: float
    upper_lower_ratio: float
    left_right_symmetry: float = Field(ge=0, le=100)
    body_fat_percentage: Optional[float] = None


class DetectedPose(BaseModel):
    pose_name: PoseName
    timestamp: int
    quality_score: int = Field(ge=0, le=100)
    thumbnail: Optional[str] = None
    landmarks: Optional[list[Landmark]] = None  # kept for re-rendering only


class CategoryScores(BaseModel):
    muscularity: int = Field(ge=0, le=100)
    symmetry: int = Field(ge=0, le=100)
    conditioning: int = Field(ge=0, le=100)
    posing: int = Field(ge=0, le=100)
    aesthetics: int = Field(ge=0, le=100)

    def overall(self) -> int:
        total = self.muscularity + self.symmetry + self.conditioning + self.posing + self.aesthetics
        return round_half_up(total / 5)


class NoteTier(str, Enum):
    STRENGTH = "strength"
    WEAKNESS = "weakness"
    ATTENTION = "attention"


class DevelopmentTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Recommendation(BaseModel):
    tier: NoteTier
    title: str
    description: str


class JudgeNote(BaseModel):
    tier: NoteTier
    text: str


class AnalysisResult(BaseModel):
    measurements: BodyMeasurements
    detected_poses: list[DetectedPose]
    pose_scores: dict[PoseName, int]
    muscle_groups: dict[str, DevelopmentTier]
    category_scores: CategoryScores
    overall_score: int = Field(ge=0, le=100)
    recommendations: list[Recommendation]
    judge_notes: list[JudgeNote]

    @model_validator(mode="after")
    def _check_invariants(self):
        if self.overall_score != self.category_scores.overall():
            raise ValueError("overall_score must be the rounded mean of the five category scores")
        stamps = [p.timestamp for p in self.detected_poses]
        if stamps != sorted(stamps):
            raise ValueError("detected_poses must be ordered by timestamp")
        return self


# ---------------------------------------------------------------------------
# Service / extension records
# ---------------------------------------------------------------------------

class AnalysisRecord(BaseModel):
    id: str
    video_name: str
    category: str = "bodybuilding"
    duration: float
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    result: AnalysisResult
    coaching_feedback: Optional["CoachingFeedback"] = None


class AnalysisSubmission(BaseModel):
    """Analysis computed client-side and posted for storage."""

    video_name: str
    duration: float
    category: str = "bodybuilding"
    muscularity_score: int = Field(default=0, ge=0, le=100)
    symmetry_score: int = Field(default=0, ge=0, le=100)
    conditioning_score: int = Field(default=0, ge=0, le=100)
    posing_score: int = Field(default=0, ge=0, le=100)
    aesthetics_score: int = Field(default=0, ge=0, le=100)
    measurements: BodyMeasurements
    detected_poses: list[DetectedPose]
    muscle_groups: dict[str, DevelopmentTier] = Field(default_factory=dict)
    recommendations: list[Recommendation] = Field(default_factory=list)
    judge_notes: list[JudgeNote] = Field(default_factory=list)


class ReclassifyRequest(BaseModel):
    model: str


class PoseIdentification(BaseModel):
    pose_name: PoseName
    quality_score: int = Field(ge=0, le=100)
    confidence: int = Field(ge=0, le=100)
    notes: str = ""


class CoachingRequest(BaseModel):
    model: str


class CoachingFeedback(BaseModel):
    strengths: list[str] = Field(default_factory=list)
    areas_to_improve: list[str] = Field(default_factory=list)
    specific_recommendations: list[str] = Field(default_factory=list)
    training_focus: str = ""


class MetricComparison(BaseModel):
    metric: str
    current: int
    previous: int
    change: int


class JobStatus(BaseModel):
    job_id: str
    status: str  # pending, processing, complete, error
    message: str = ""
    analysis_id: Optional[str] = None


AnalysisRecord.model_rebuild()
