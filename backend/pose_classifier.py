"""
Rule-based bodybuilding pose classification.

Each frame is reduced to a set of boolean signals computed from normalized
joint coordinates (larger y is lower in the frame). An ordered rule list maps
the signals to a pose name; the first matching rule wins because the
predicates overlap. Consecutive frames are then collapsed into pose events.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import config
from measurements import distance, frame_symmetry
from models import DetectedPose, JointFrame, JointName, PoseName, round_half_up

logger = logging.getLogger(__name__)

RAISE_MARGIN = 0.05
ELBOW_MARGIN = 0.05
HIP_PROXIMITY = 0.15
CROSS_FACTOR = 0.3
WIDE_FACTOR = 1.6
NARROW_FACTOR = 1.4
CLOSE_FACTOR = 0.7

BASELINE_LOW = 75.0
BASELINE_HIGH = 90.0


@dataclass(frozen=True)
class PoseSignals:
    arm_spread: float
    shoulder_spread: float
    both_arms_raised: bool
    arms_wide: bool
    left_elbow_high: bool
    right_elbow_high: bool
    left_hand_near_hip: bool
    right_hand_near_hip: bool
    left_arm_crossed: bool
    right_arm_crossed: bool
    left_arm_high: bool
    right_arm_high: bool
    arms_down: bool
    arms_narrow: bool
    hands_close: bool
    hands_mid: bool

    @property
    def elbow_high(self) -> bool:
        return self.left_elbow_high or self.right_elbow_high

    @property
    def both_hands_near_hip(self) -> bool:
        return self.left_hand_near_hip and self.right_hand_near_hip

    @property
    def arm_crossed(self) -> bool:
        return self.left_arm_crossed or self.right_arm_crossed

    @property
    def arms_asymmetric(self) -> bool:
        return self.left_arm_high != self.right_arm_high


def compute_signals(frame: JointFrame) -> PoseSignals:
    l_shoulder = frame.joint(JointName.LEFT_SHOULDER)
    r_shoulder = frame.joint(JointName.RIGHT_SHOULDER)
    l_elbow = frame.joint(JointName.LEFT_ELBOW)
    r_elbow = frame.joint(JointName.RIGHT_ELBOW)
    l_wrist = frame.joint(JointName.LEFT_WRIST)
    r_wrist = frame.joint(JointName.RIGHT_WRIST)
    l_hip = frame.joint(JointName.LEFT_HIP)
    r_hip = frame.joint(JointName.RIGHT_HIP)

    arm_spread = distance(l_wrist, r_wrist)
    shoulder_spread = distance(l_shoulder, r_shoulder)
    shoulder_mid_y = (l_shoulder.y + r_shoulder.y) / 2
    hip_mid_y = (l_hip.y + r_hip.y) / 2

    return PoseSignals(
        arm_spread=arm_spread,
        shoulder_spread=shoulder_spread,
        both_arms_raised=(
            l_wrist.y < l_shoulder.y - RAISE_MARGIN and r_wrist.y < r_shoulder.y - RAISE_MARGIN
        ),
        arms_wide=arm_spread > shoulder_spread * WIDE_FACTOR,
        left_elbow_high=l_elbow.y < l_shoulder.y + ELBOW_MARGIN,
        right_elbow_high=r_elbow.y < r_shoulder.y + ELBOW_MARGIN,
        left_hand_near_hip=abs(l_wrist.y - l_hip.y) < HIP_PROXIMITY,
        right_hand_near_hip=abs(r_wrist.y - r_hip.y) < HIP_PROXIMITY,
        left_arm_crossed=abs(l_wrist.x - r_shoulder.x) < shoulder_spread * CROSS_FACTOR,
        right_arm_crossed=abs(r_wrist.x - l_shoulder.x) < shoulder_spread * CROSS_FACTOR,
        left_arm_high=l_wrist.y < shoulder_mid_y,
        right_arm_high=r_wrist.y < shoulder_mid_y,
        arms_down=l_wrist.y > hip_mid_y and r_wrist.y > hip_mid_y,
        arms_narrow=arm_spread < shoulder_spread * NARROW_FACTOR,
        hands_close=arm_spread < shoulder_spread * CLOSE_FACTOR,
        hands_mid=shoulder_mid_y < l_wrist.y < hip_mid_y,
    )


def classify_signals(s: PoseSignals) -> PoseName:
    """Apply the ordered rule list; first match wins."""
    if s.both_arms_raised and s.arms_wide and s.elbow_high:
        return PoseName.BACK_DOUBLE_BICEPS
    if s.both_arms_raised and s.elbow_high and not s.arms_wide:
        return PoseName.FRONT_DOUBLE_BICEPS
    if s.arms_wide and s.both_hands_near_hip and not s.both_arms_raised:
        return PoseName.FRONT_LAT_SPREAD
    if s.arms_wide and not s.both_arms_raised and not s.both_hands_near_hip:
        return PoseName.BACK_LAT_SPREAD
    if s.arm_crossed and not s.both_arms_raised:
        return PoseName.SIDE_TRICEPS
    if s.arms_asymmetric and not s.arms_wide:
        return PoseName.SIDE_CHEST
    if s.hands_close and s.hands_mid and not s.arms_down:
        return PoseName.MOST_MUSCULAR
    if s.arms_down and s.arms_narrow:
        return PoseName.ABS_AND_THIGHS
    return PoseName.GENERAL_TRANSITION_POSE


def identify_pose(frame: JointFrame) -> PoseName:
    return classify_signals(compute_signals(frame))


class QualityBaseline:
    """Bounded random stand-in for the unmeasured part of pose quality.

    Pass a seed to make the sequence of draws reproducible.
    """

    def __init__(self, seed: Optional[int] = None, low: float = BASELINE_LOW, high: float = BASELINE_HIGH):
        self._rng = random.Random(seed)
        self.low = low
        self.high = high

    def draw(self) -> float:
        return self._rng.uniform(self.low, self.high)


def score_pose(frame: JointFrame, baseline: QualityBaseline) -> int:
    return round_half_up((frame_symmetry(frame) + baseline.draw()) / 2)


class DedupPolicy(str, Enum):
    TIME_GAP = "time-gap"                  # re-emit a repeated pose after a gap
    FIRST_OCCURRENCE = "first-occurrence"  # each pose name at most once


def detect_poses(
    frames: list[JointFrame],
    baseline: Optional[QualityBaseline] = None,
    policy: DedupPolicy = DedupPolicy.TIME_GAP,
    gap_seconds: float = config.POSE_GAP_SECONDS,
) -> list[DetectedPose]:
    """Collapse per-frame classifications into ordered pose events."""
    if baseline is None:
        baseline = QualityBaseline(config.POSE_QUALITY_SEED)

    events: list[DetectedPose] = []
    last_pose: Optional[PoseName] = None
    last_timestamp: Optional[float] = None
    seen: set[PoseName] = set()

    for frame in sorted(frames, key=lambda f: f.timestamp):
        pose_name = identify_pose(frame)

        if policy is DedupPolicy.FIRST_OCCURRENCE:
            emit = pose_name not in seen
        else:
            is_different = pose_name != last_pose
            is_new_instance = last_timestamp is None or frame.timestamp - last_timestamp > gap_seconds
            emit = is_different or is_new_instance

        if not emit:
            continue

        events.append(
            DetectedPose(
                pose_name=pose_name,
                timestamp=round_half_up(frame.timestamp),
                quality_score=score_pose(frame, baseline),
                thumbnail=frame.thumbnail,
                landmarks=list(frame.landmarks),
            )
        )
        seen.add(pose_name)
        last_pose = pose_name
        last_timestamp = frame.timestamp

    logger.info("Detected %d pose events from %d frames", len(events), len(frames))
    return events


def poses_with_snapshots(poses: list[DetectedPose]) -> list[DetectedPose]:
    """Events worth showing as snapshots: captured thumbnail, not a transition."""
    return [p for p in poses if p.thumbnail and p.pose_name.is_mandatory]
