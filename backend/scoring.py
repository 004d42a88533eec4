"""
Score aggregation: turns body measurements and pose events into the five
judging category scores, muscle-group tiers, recommendations and judge notes.
"""

import logging
from typing import Optional

import numpy as np

from errors import AnalysisError
from measurements import joint_distance
from models import (
    MANDATORY_POSES,
    AnalysisResult,
    BodyMeasurements,
    CategoryScores,
    DetectedPose,
    DevelopmentTier,
    JointFrame,
    JointName,
    JudgeNote,
    MetricComparison,
    NoteTier,
    PoseName,
    Recommendation,
    round_half_up,
)

logger = logging.getLogger(__name__)

J = JointName

# (threshold, score), checked top-down
CONDITIONING_BANDS = [(1.5, 95), (1.4, 88), (1.3, 80), (1.2, 72)]
CONDITIONING_FLOOR = 65
TAPER_BANDS = [(1.5, 95), (1.4, 88), (1.3, 80)]
TAPER_FLOOR = 70

NO_POSES_POSING_SCORE = 65

# group -> (high, medium)
MUSCLE_GROUP_BANDS = {
    "shoulders": (0.30, 0.20),
    "chest": (0.15, 0.08),
    "lats": (0.28, 0.18),
    "arms": (0.25, 0.15),
    "quads": (0.35, 0.25),
    "calves": (0.25, 0.15),
}


def _band(value: float, bands: list[tuple[float, int]], floor: int) -> int:
    for threshold, score in bands:
        if value >= threshold:
            return score
    return floor


def _clamp_score(value: float, low: int = 0, high: int = 100) -> int:
    return int(min(high, max(low, round_half_up(value))))


def _pair_mean(frame: JointFrame, left: tuple[J, J], right: tuple[J, J]) -> float:
    return (joint_distance(frame, *left) + joint_distance(frame, *right)) / 2


def symmetry_score(measurements: BodyMeasurements) -> int:
    return _clamp_score(measurements.left_right_symmetry)


def muscularity_score(frames: list[JointFrame]) -> int:
    """Upper/lower body size weighted by how balanced the two halves are."""
    if not frames:
        return 60
    contributions = []
    for frame in frames:
        shoulder_span = joint_distance(frame, J.LEFT_SHOULDER, J.RIGHT_SHOULDER)
        upper_arm = _pair_mean(frame, (J.LEFT_SHOULDER, J.LEFT_ELBOW), (J.RIGHT_SHOULDER, J.RIGHT_ELBOW))
        hip_span = joint_distance(frame, J.LEFT_HIP, J.RIGHT_HIP)
        thigh = _pair_mean(frame, (J.LEFT_HIP, J.LEFT_KNEE), (J.RIGHT_HIP, J.RIGHT_KNEE))

        upper = (shoulder_span + upper_arm) * 50
        lower = (hip_span + thigh) * 50
        biggest = max(upper, lower)
        balance = 1 - abs(upper - lower) / biggest if biggest > 0 else 0.0
        contributions.append((upper + lower) * balance)
    return _clamp_score(float(np.mean(contributions)), 60, 100)


def conditioning_score(measurements: BodyMeasurements) -> int:
    base = _band(measurements.v_taper_ratio, CONDITIONING_BANDS, CONDITIONING_FLOOR)
    bonus = measurements.left_right_symmetry * 0.1
    return _clamp_score(base + bonus)


def posing_score(poses: list[DetectedPose]) -> int:
    """50% quality, 30% variety, 20% consistency of pose events."""
    if not poses:
        return NO_POSES_POSING_SCORE
    scores = np.array([p.quality_score for p in poses], dtype=float)
    variety = min(100.0, len(poses) / len(MANDATORY_POSES) * 100)
    quality = float(scores.mean())
    consistency = max(0.0, 100 - float(scores.var()))
    return _clamp_score(quality * 0.5 + variety * 0.3 + consistency * 0.2)


def aesthetics_score(measurements: BodyMeasurements) -> int:
    taper = _band(measurements.v_taper_ratio, TAPER_BANDS, TAPER_FLOOR)
    proportion = min(100.0, measurements.upper_lower_ratio * 70)
    return _clamp_score(taper * 0.4 + measurements.left_right_symmetry * 0.4 + proportion * 0.2)


def best_pose_scores(poses: list[DetectedPose]) -> dict[PoseName, int]:
    best: dict[PoseName, int] = {}
    for pose in poses:
        best[pose.pose_name] = max(pose.quality_score, best.get(pose.pose_name, 0))
    return best


def _classify_tier(value: float, high: float, medium: float) -> DevelopmentTier:
    if value >= high:
        return DevelopmentTier.HIGH
    if value >= medium:
        return DevelopmentTier.MEDIUM
    return DevelopmentTier.LOW


def muscle_groups(frames: list[JointFrame]) -> dict[str, DevelopmentTier]:
    """Relative development tier per muscle group from mean segment sizes."""
    metrics: dict[str, list[float]] = {name: [] for name in MUSCLE_GROUP_BANDS}
    for frame in frames:
        shoulder_span = joint_distance(frame, J.LEFT_SHOULDER, J.RIGHT_SHOULDER)
        chest_depth = abs(frame.joint(J.LEFT_SHOULDER).z + frame.joint(J.RIGHT_SHOULDER).z) / 2
        metrics["shoulders"].append(shoulder_span)
        metrics["chest"].append(chest_depth)
        metrics["lats"].append(shoulder_span * 0.9)
        metrics["arms"].append(
            _pair_mean(frame, (J.LEFT_SHOULDER, J.LEFT_ELBOW), (J.RIGHT_SHOULDER, J.RIGHT_ELBOW))
        )
        metrics["quads"].append(_pair_mean(frame, (J.LEFT_HIP, J.LEFT_KNEE), (J.RIGHT_HIP, J.RIGHT_KNEE)))
        metrics["calves"].append(
            _pair_mean(frame, (J.LEFT_KNEE, J.LEFT_ANKLE), (J.RIGHT_KNEE, J.RIGHT_ANKLE))
        )

    groups = {}
    for name, (high, medium) in MUSCLE_GROUP_BANDS.items():
        mean = float(np.mean(metrics[name])) if metrics[name] else 0.0
        groups[name] = _classify_tier(mean, high, medium)
    return groups


def build_recommendations(
    measurements: BodyMeasurements, symmetry: int, poses: Optional[list[DetectedPose]] = None
) -> list[Recommendation]:
    recs = []
    taper = measurements.v_taper_ratio

    if symmetry >= 92:
        recs.append(Recommendation(
            tier=NoteTier.STRENGTH,
            title="Excellent Symmetry",
            description=f"Outstanding left-right balance at {symmetry}%. "
                        "Equal development between both sides of the body.",
        ))
    elif symmetry >= 85:
        recs.append(Recommendation(
            tier=NoteTier.ATTENTION,
            title="Good Symmetry - Minor Adjustments",
            description=f"Symmetry at {symmetry}%. Small imbalances detected. "
                        "Include more unilateral exercises.",
        ))
    else:
        recs.append(Recommendation(
            tier=NoteTier.WEAKNESS,
            title="Improve Symmetry",
            description=f"Symmetry score is {symmetry}%. Significant imbalance detected. "
                        "Focus on single-arm/leg exercises to correct asymmetry.",
        ))

    if taper >= 1.5:
        recs.append(Recommendation(
            tier=NoteTier.STRENGTH,
            title="Elite V-Taper",
            description=f"V-taper ratio of {taper} exceeds IFBB Gold Standard. "
                        "Exceptional shoulder-to-waist proportion.",
        ))
    elif taper >= 1.4:
        recs.append(Recommendation(
            tier=NoteTier.STRENGTH,
            title="Excellent V-Taper",
            description=f"V-taper ratio of {taper} meets competitive IFBB standards.",
        ))
    elif taper >= 1.3:
        recs.append(Recommendation(
            tier=NoteTier.ATTENTION,
            title="Improve V-Taper",
            description=f"V-taper ratio of {taper}. Build wider shoulders with lateral raises "
                        "and overhead presses, while maintaining tight waist.",
        ))
    else:
        recs.append(Recommendation(
            tier=NoteTier.WEAKNESS,
            title="Develop V-Taper",
            description=f"V-taper ratio of {taper} needs improvement. Prioritize lat development "
                        "and shoulder width while reducing waist size.",
        ))

    if measurements.shoulder_width > measurements.waist_width * 1.5:
        recs.append(Recommendation(
            tier=NoteTier.STRENGTH,
            title="Strong Upper Body Development",
            description="Excellent shoulder width indicates good muscularity in upper body. "
                        "Maintain current chest, shoulder, and back training.",
        ))

    if poses is not None:
        recs.append(_posing_recommendation(poses))

    return recs


def _posing_recommendation(poses: list[DetectedPose]) -> Recommendation:
    shown = {p.pose_name for p in poses if p.pose_name.is_mandatory}
    missing = [p.display_name for p in MANDATORY_POSES if p not in shown]
    total = len(MANDATORY_POSES)
    if not missing:
        return Recommendation(
            tier=NoteTier.STRENGTH,
            title="Complete Mandatory Routine",
            description=f"All {total} mandatory poses were presented.",
        )
    if len(shown) >= 5:
        return Recommendation(
            tier=NoteTier.ATTENTION,
            title="Round Out Your Routine",
            description=f"{len(shown)} of {total} mandatory poses presented. "
                        f"Practice: {', '.join(missing)}.",
        )
    return Recommendation(
        tier=NoteTier.WEAKNESS,
        title="Practice Mandatory Poses",
        description=f"Only {len(shown)} of {total} mandatory poses were recognized. "
                    f"Missing: {', '.join(missing)}.",
    )


def build_judge_notes(measurements: BodyMeasurements, symmetry: int) -> list[JudgeNote]:
    taper = measurements.v_taper_ratio
    notes = [
        JudgeNote(
            tier=NoteTier.STRENGTH,
            text=f"Shoulder width: {measurements.shoulder_width} (proportional muscle development)",
        )
    ]

    if symmetry >= 90:
        tier, label = NoteTier.STRENGTH, "excellent balance"
    elif symmetry >= 85:
        tier, label = NoteTier.ATTENTION, "minor imbalances"
    else:
        tier, label = NoteTier.WEAKNESS, "needs correction"
    notes.append(JudgeNote(tier=tier, text=f"Left-right symmetry: {symmetry}% ({label})"))

    if taper >= 1.5:
        level = "elite level"
    elif taper >= 1.4:
        level = "competitive level"
    elif taper >= 1.3:
        level = "good but improvable"
    else:
        level = "needs development"
    notes.append(JudgeNote(
        tier=NoteTier.STRENGTH if taper >= 1.4 else NoteTier.ATTENTION,
        text=f"V-taper ratio: {taper} ({level} conditioning)",
    ))

    notes.append(JudgeNote(
        tier=NoteTier.STRENGTH,
        text=f"Shoulder-to-waist proportion indicates "
             f"{'excellent' if taper >= 1.4 else 'developing'} aesthetic appeal",
    ))
    return notes


def aggregate_scores(
    measurements: Optional[BodyMeasurements],
    frames: list[JointFrame],
    poses: list[DetectedPose],
) -> AnalysisResult:
    """Combine measurements and pose events into the final analysis."""
    if measurements is None:
        raise AnalysisError("Cannot score without body measurements", "MISSING_MEASUREMENTS")

    category_scores = CategoryScores(
        muscularity=muscularity_score(frames),
        symmetry=symmetry_score(measurements),
        conditioning=conditioning_score(measurements),
        posing=posing_score(poses),
        aesthetics=aesthetics_score(measurements),
    )
    logger.info("Category scores: %s", category_scores.model_dump())

    return AnalysisResult(
        measurements=measurements,
        detected_poses=poses,
        pose_scores=best_pose_scores(poses),
        muscle_groups=muscle_groups(frames),
        category_scores=category_scores,
        overall_score=category_scores.overall(),
        recommendations=build_recommendations(measurements, category_scores.symmetry, poses),
        judge_notes=build_judge_notes(measurements, category_scores.symmetry),
    )


def compare_results(current: AnalysisResult, previous: AnalysisResult) -> list[MetricComparison]:
    """Per-metric change between two analyses, overall first."""
    pairs = [("Overall Score", current.overall_score, previous.overall_score)]
    for field in CategoryScores.model_fields:
        pairs.append((
            field.capitalize(),
            getattr(current.category_scores, field),
            getattr(previous.category_scores, field),
        ))
    return [
        MetricComparison(metric=name, current=now, previous=before, change=now - before)
        for name, now, before in pairs
    ]
