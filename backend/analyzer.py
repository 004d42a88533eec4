"""
Single-pass analysis pipeline: joint frames -> measurements and pose events
-> category scores.
"""

import logging
from typing import Callable, Iterable, Optional

import config
from errors import NoDataError
from measurements import calculate_measurements
from models import AnalysisResult, AnalysisSubmission, CategoryScores, JointFrame
from pose_classifier import DedupPolicy, QualityBaseline, detect_poses
from scoring import aggregate_scores, best_pose_scores

logger = logging.getLogger(__name__)


def analyze_frames(
    frames: Iterable[Optional[JointFrame]],
    seed: Optional[int] = config.POSE_QUALITY_SEED,
    policy: DedupPolicy = DedupPolicy.TIME_GAP,
) -> AnalysisResult:
    """Analyze extracted joint frames.

    ``None`` entries (samples where extraction found no body) are dropped.
    Raises NoDataError when no frame is left; no partial result is returned.
    """
    usable = sorted((f for f in frames if f is not None), key=lambda f: f.timestamp)
    if not usable:
        raise NoDataError()

    measurements = calculate_measurements(usable)
    poses = detect_poses(usable, baseline=QualityBaseline(seed), policy=policy)
    result = aggregate_scores(measurements, usable, poses)
    logger.info("Analysis complete: overall %d from %d frames", result.overall_score, len(usable))
    return result


def analyze_video(
    video_path: str,
    interval: float = config.SAMPLE_INTERVAL_SECONDS,
    should_cancel: Optional[Callable[[], bool]] = None,
    seed: Optional[int] = config.POSE_QUALITY_SEED,
) -> tuple[AnalysisResult, float]:
    """Extract joints from a video file and analyze them.

    Returns (AnalysisResult, duration).
    """
    # mediapipe is only needed when reading real video
    from pose_extractor import extract_joint_frames

    frames, duration = extract_joint_frames(video_path, interval, should_cancel)
    if not frames:
        raise NoDataError(details={"video_path": video_path, "duration": duration})
    return analyze_frames(frames, seed=seed), duration


def apply_client_scores(submission: AnalysisSubmission) -> AnalysisResult:
    """Build a result from client-computed scores.

    The overall score and pose scores are always recomputed here.
    """
    category_scores = CategoryScores(
        muscularity=submission.muscularity_score,
        symmetry=submission.symmetry_score,
        conditioning=submission.conditioning_score,
        posing=submission.posing_score,
        aesthetics=submission.aesthetics_score,
    )
    poses = sorted(submission.detected_poses, key=lambda p: p.timestamp)
    return AnalysisResult(
        measurements=submission.measurements,
        detected_poses=poses,
        pose_scores=best_pose_scores(poses),
        muscle_groups=submission.muscle_groups,
        category_scores=category_scores,
        overall_score=category_scores.overall(),
        recommendations=submission.recommendations,
        judge_notes=submission.judge_notes,
    )
