import logging

import numpy as np

from errors import DegenerateMeasurementError, NoDataError
from models import BodyMeasurements, JointFrame, JointName, Landmark, round_half_up

logger = logging.getLogger(__name__)

# Not derivable from the tracked joints; reported as a fixed nominal value.
UPPER_LOWER_RATIO_PLACEHOLDER = 1.1

SYMMETRY_FLOOR = 70.0
SYMMETRY_CEILING = 100.0
DISPLAY_SCALE = 100


def _point(lm: Landmark) -> np.ndarray:
    return np.array([lm.x, lm.y, lm.z or 0.0])


def distance(a: Landmark, b: Landmark) -> float:
    """3D Euclidean distance between two landmarks."""
    return float(np.linalg.norm(_point(a) - _point(b)))


def joint_distance(frame: JointFrame, a: JointName, b: JointName) -> float:
    return distance(frame.joint(a), frame.joint(b))


def frame_symmetry(frame: JointFrame) -> float:
    """Level-ness of shoulders and hips, clamped to [70, 100]."""
    shoulder_diff = abs(frame.joint(JointName.LEFT_SHOULDER).y - frame.joint(JointName.RIGHT_SHOULDER).y)
    hip_diff = abs(frame.joint(JointName.LEFT_HIP).y - frame.joint(JointName.RIGHT_HIP).y)
    score = 100 - (shoulder_diff + hip_diff) * 200
    return float(np.clip(score, SYMMETRY_FLOOR, SYMMETRY_CEILING))


def calculate_measurements(frames: list[JointFrame]) -> BodyMeasurements:
    """Average shoulder width, waist width and symmetry over all frames."""
    if not frames:
        raise NoDataError(details={"stage": "measurements"})

    shoulder = np.array([joint_distance(f, JointName.LEFT_SHOULDER, JointName.RIGHT_SHOULDER) for f in frames])
    waist = np.array([joint_distance(f, JointName.LEFT_HIP, JointName.RIGHT_HIP) for f in frames])
    symmetry = np.array([frame_symmetry(f) for f in frames])

    avg_shoulder = float(shoulder.mean())
    avg_waist = float(waist.mean())
    if avg_waist == 0:
        raise DegenerateMeasurementError(
            "Waist width is zero; V-taper ratio is undefined",
            waist_width=avg_waist,
            details={"frames": len(frames)},
        )

    measurements = BodyMeasurements(
        shoulder_width=round_half_up(avg_shoulder * DISPLAY_SCALE),
        waist_width=round_half_up(avg_waist * DISPLAY_SCALE),
        v_taper_ratio=round_half_up(avg_shoulder / avg_waist, 2),
        upper_lower_ratio=UPPER_LOWER_RATIO_PLACEHOLDER,
        left_right_symmetry=round_half_up(float(symmetry.mean())),
        body_fat_percentage=None,
    )
    logger.info(
        "Measurements over %d frames: v-taper %.2f, symmetry %.0f",
        len(frames), measurements.v_taper_ratio, measurements.left_right_symmetry,
    )
    return measurements
