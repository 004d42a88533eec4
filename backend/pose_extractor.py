import base64
import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import cv2
import mediapipe as mp
import numpy as np

import config
from errors import AnalysisCancelled, VideoReadError
from models import JointFrame, Landmark
from sampler import sample_timestamps

logger = logging.getLogger(__name__)

PoseLandmarker = mp.tasks.vision.PoseLandmarker
PoseLandmarkerOptions = mp.tasks.vision.PoseLandmarkerOptions
RunningMode = mp.tasks.vision.RunningMode
BaseOptions = mp.tasks.BaseOptions


@contextmanager
def open_video(video_path: str) -> Iterator[cv2.VideoCapture]:
    """Open a video for seeking; the capture is released on every exit path."""
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        cap.release()
        raise VideoReadError(f"Cannot open video: {video_path}", video_path=video_path)
    try:
        yield cap
    finally:
        cap.release()


def video_duration(cap: cv2.VideoCapture) -> float:
    fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
    frame_count = cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0
    return float(frame_count) / fps


def encode_thumbnail(
    frame: np.ndarray,
    width: int = config.THUMBNAIL_WIDTH,
    quality: int = config.THUMBNAIL_JPEG_QUALITY,
) -> Optional[str]:
    """Downscale a BGR frame to ``width`` pixels wide and return base64 JPEG."""
    h, w = frame.shape[:2]
    if w == 0 or h == 0:
        return None
    height = max(1, round(width * h / w))
    small = cv2.resize(frame, (width, height), interpolation=cv2.INTER_AREA)
    ok, buf = cv2.imencode(".jpg", small, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        return None
    return base64.b64encode(buf.tobytes()).decode("ascii")


def extract_joint_frames(
    video_path: str,
    interval: float = config.SAMPLE_INTERVAL_SECONDS,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> tuple[list[JointFrame], float]:
    """Sample a video at ``interval`` seconds and extract one body per sample.

    Returns (list of JointFrame, duration). Samples where seeking fails or no
    body is found are dropped.
    """
    options = PoseLandmarkerOptions(
        base_options=BaseOptions(model_asset_path=config.POSE_MODEL_PATH),
        running_mode=RunningMode.IMAGE,
        num_poses=1,
        min_pose_detection_confidence=config.MIN_POSE_DETECTION_CONFIDENCE,
    )
    frames: list[JointFrame] = []

    with open_video(video_path) as cap, PoseLandmarker.create_from_options(options) as landmarker:
        duration = video_duration(cap)
        timestamps = list(sample_timestamps(duration, interval))
        logger.info("Analyzing %d frames from %.1fs video", len(timestamps), duration)

        buffer: Optional[np.ndarray] = None  # reused decode surface
        for timestamp in timestamps:
            if should_cancel is not None and should_cancel():
                raise AnalysisCancelled(details={"timestamp": timestamp})

            cap.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000)
            ret, buffer = cap.read(buffer)
            if not ret or buffer is None:
                logger.debug("No frame decoded at %.2fs", timestamp)
                buffer = None
                continue

            rgb = cv2.cvtColor(buffer, cv2.COLOR_BGR2RGB)
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
            result = landmarker.detect(mp_image)

            if not result.pose_landmarks:
                logger.debug("No body found at %.2fs", timestamp)
                continue

            frames.append(
                JointFrame(
                    timestamp=timestamp,
                    landmarks=_to_landmarks(result.pose_landmarks[0]),  # first person
                    thumbnail=encode_thumbnail(buffer),
                )
            )

    logger.info("Detected poses in %d of %d frames", len(frames), len(timestamps))
    return frames, duration


def _to_landmarks(raw_landmarks) -> list[Landmark]:
    # MediaPipe Tasks API: NormalizedLandmark with x, y, z, visibility
    return [
        Landmark(
            x=lm.x,
            y=lm.y,
            z=lm.z,
            visibility=getattr(lm, "visibility", 1.0) or 1.0,
        )
        for lm in raw_landmarks
    ]
