"""Synthetic joint frames for engine tests.

Base body: shoulders 0.2 apart at y=0.3, hips 0.15 apart at y=0.6
(V-taper ~1.33), both level. Only elbows and wrists change between poses.
"""

import pytest

from models import NUM_LANDMARKS, JointFrame, JointName, Landmark, PoseName

BASE_JOINTS = {
    JointName.NOSE: (0.5, 0.15),
    JointName.LEFT_SHOULDER: (0.4, 0.3),
    JointName.RIGHT_SHOULDER: (0.6, 0.3),
    JointName.LEFT_HIP: (0.425, 0.6),
    JointName.RIGHT_HIP: (0.575, 0.6),
    JointName.LEFT_KNEE: (0.43, 0.8),
    JointName.RIGHT_KNEE: (0.57, 0.8),
    JointName.LEFT_ANKLE: (0.43, 0.95),
    JointName.RIGHT_ANKLE: (0.57, 0.95),
}

# pose -> (left wrist, right wrist, left elbow, right elbow)
POSE_ARMS = {
    PoseName.BACK_DOUBLE_BICEPS: ((0.2, 0.1), (0.8, 0.1), (0.25, 0.3), (0.75, 0.3)),
    PoseName.FRONT_DOUBLE_BICEPS: ((0.35, 0.15), (0.65, 0.15), (0.3, 0.3), (0.7, 0.3)),
    PoseName.FRONT_LAT_SPREAD: ((0.2, 0.55), (0.8, 0.55), (0.25, 0.45), (0.75, 0.45)),
    PoseName.BACK_LAT_SPREAD: ((0.2, 0.35), (0.8, 0.35), (0.25, 0.4), (0.75, 0.4)),
    PoseName.SIDE_TRICEPS: ((0.58, 0.5), (0.7, 0.7), (0.45, 0.45), (0.68, 0.5)),
    PoseName.SIDE_CHEST: ((0.45, 0.2), (0.65, 0.4), (0.35, 0.25), (0.68, 0.35)),
    PoseName.MOST_MUSCULAR: ((0.48, 0.45), (0.52, 0.45), (0.38, 0.4), (0.62, 0.4)),
    PoseName.ABS_AND_THIGHS: ((0.42, 0.65), (0.58, 0.65), (0.4, 0.45), (0.6, 0.45)),
    PoseName.GENERAL_TRANSITION_POSE: ((0.35, 0.5), (0.65, 0.5), (0.37, 0.4), (0.63, 0.4)),
}


def build_frame(timestamp=0.0, joints=None, thumbnail=None, z=0.0):
    coords = dict(BASE_JOINTS)
    coords.update(joints or {})
    landmarks = [Landmark(x=0.5, y=0.5, z=0.0, visibility=0.1) for _ in range(NUM_LANDMARKS)]
    for name, xy in coords.items():
        x, y = xy[0], xy[1]
        landmarks[name] = Landmark(x=x, y=y, z=xy[2] if len(xy) > 2 else z, visibility=0.99)
    return JointFrame(timestamp=timestamp, landmarks=landmarks, thumbnail=thumbnail)


def build_pose_frame(pose, timestamp=0.0, thumbnail=None, joints=None):
    lw, rw, le, re = POSE_ARMS[pose]
    arms = {
        JointName.LEFT_WRIST: lw,
        JointName.RIGHT_WRIST: rw,
        JointName.LEFT_ELBOW: le,
        JointName.RIGHT_ELBOW: re,
    }
    arms.update(joints or {})
    return build_frame(timestamp, arms, thumbnail=thumbnail)


@pytest.fixture
def make_frame():
    return build_frame


@pytest.fixture
def pose_frame():
    return build_pose_frame


@pytest.fixture
def routine_frames():
    """The eight mandatory poses, 3 seconds apart, with thumbnails."""
    mandatory = [p for p in POSE_ARMS if p.is_mandatory]
    return [
        build_pose_frame(pose, timestamp=i * 3.0, thumbnail=f"thumb-{i}")
        for i, pose in enumerate(mandatory)
    ]
