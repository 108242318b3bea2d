"""
MediaPipe pose source. Produces 17-landmark Frames in normalized video
coordinates with landmark visibility as confidence.
Uses Pose Landmarker task (MediaPipe 0.10+). CPU-only.
"""
from __future__ import annotations

import os
import urllib.request
from typing import Optional

import cv2
import numpy as np

from .frame import Frame, Keypoint, Landmark

# MediaPipe's 33-landmark model -> the 17 landmarks the core uses.
MEDIAPIPE_INDEX = {
    Landmark.NOSE: 0,
    Landmark.LEFT_EYE: 2,
    Landmark.RIGHT_EYE: 5,
    Landmark.LEFT_EAR: 7,
    Landmark.RIGHT_EAR: 8,
    Landmark.LEFT_SHOULDER: 11,
    Landmark.RIGHT_SHOULDER: 12,
    Landmark.LEFT_ELBOW: 13,
    Landmark.RIGHT_ELBOW: 14,
    Landmark.LEFT_WRIST: 15,
    Landmark.RIGHT_WRIST: 16,
    Landmark.LEFT_HIP: 23,
    Landmark.RIGHT_HIP: 24,
    Landmark.LEFT_KNEE: 25,
    Landmark.RIGHT_KNEE: 26,
    Landmark.LEFT_ANKLE: 27,
    Landmark.RIGHT_ANKLE: 28,
}

# Pose Landmarker model URL (lite = faster, CPU-friendly)
_POSE_MODEL_URL = "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_lite/float16/1/pose_landmarker_lite.task"
_POSE_MODEL_FILENAME = "pose_landmarker_lite.task"


def _get_model_path(cache_dir: Optional[str] = None) -> str:
    """Return path to pose landmarker model, downloading if needed."""
    if cache_dir is None:
        cache_dir = os.path.join(os.path.expanduser("~"), ".cache", "repguard")
    os.makedirs(cache_dir, exist_ok=True)
    path = os.path.join(cache_dir, _POSE_MODEL_FILENAME)
    if not os.path.isfile(path):
        urllib.request.urlretrieve(_POSE_MODEL_URL, path)
    return path


def _create_landmarker(cache_dir: Optional[str] = None):
    from mediapipe.tasks.python.core import base_options
    from mediapipe.tasks.python.vision import PoseLandmarker, PoseLandmarkerOptions
    from mediapipe.tasks.python.vision.core import vision_task_running_mode

    model_path = _get_model_path(cache_dir)
    base = base_options.BaseOptions(model_asset_path=model_path)
    options = PoseLandmarkerOptions(
        base_options=base,
        running_mode=vision_task_running_mode.VisionTaskRunningMode.IMAGE,
        num_poses=1,
        min_pose_detection_confidence=0.5,
        min_pose_presence_confidence=0.5,
        min_tracking_confidence=0.5,
    )
    return PoseLandmarker.create_from_options(options)


def create_pose_detector(
    min_detection_confidence: float = 0.5,
    min_tracking_confidence: float = 0.5,
    cache_dir: Optional[str] = None,
):
    """MediaPipe 0.10+ PoseLandmarker, or the legacy solution API when tasks are unavailable."""
    try:
        return _create_landmarker(cache_dir)
    except Exception:
        import mediapipe as mp
        return mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=1,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )


def landmarks_to_frame(landmarks, timestamp_ms: float) -> Frame:
    """Map a 33-entry MediaPipe landmark list onto a 17-landmark Frame."""
    keypoints: dict[Landmark, Optional[Keypoint]] = {}
    for lm, idx in MEDIAPIPE_INDEX.items():
        if idx >= len(landmarks):
            keypoints[lm] = None
            continue
        p = landmarks[idx]
        visibility = getattr(p, "visibility", None)
        keypoints[lm] = Keypoint(
            lm, float(p.x), float(p.y), float(visibility) if visibility is not None else 0.0,
        )
    return Frame(timestamp_ms=timestamp_ms, keypoints=keypoints)


def empty_frame(timestamp_ms: float) -> Frame:
    """No person detected: every landmark is signalled absent."""
    return Frame(timestamp_ms=timestamp_ms, keypoints={})


def process_frame(frame_bgr: np.ndarray, pose, timestamp_ms: float) -> Frame:
    """Run pose estimation on one BGR image. Always returns a Frame."""
    rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

    if hasattr(pose, "detect"):
        from mediapipe.tasks.python.vision.core import image as mp_image
        mp_img = mp_image.Image(image_format=mp_image.ImageFormat.SRGB, data=rgb)
        result = pose.detect(mp_img)
        if not result.pose_landmarks:
            return empty_frame(timestamp_ms)
        return landmarks_to_frame(result.pose_landmarks[0], timestamp_ms)
    results = pose.process(rgb)
    if not results.pose_landmarks:
        return empty_frame(timestamp_ms)
    return landmarks_to_frame(results.pose_landmarks.landmark, timestamp_ms)


def smooth_frame(current: Frame, previous: Optional[Frame], alpha: float = 0.4) -> Frame:
    """
    One-step EMA on keypoint positions. Applied by the capture loop before a
    frame reaches the session; a keypoint missing from either frame is passed
    through untouched.
    """
    if previous is None:
        return current
    smoothed: dict[Landmark, Optional[Keypoint]] = {}
    for lm, kp in current.keypoints.items():
        prev = previous.get(lm)
        if kp is None or prev is None:
            smoothed[lm] = kp
            continue
        smoothed[lm] = Keypoint(
            lm,
            alpha * kp.x + (1 - alpha) * prev.x,
            alpha * kp.y + (1 - alpha) * prev.y,
            kp.confidence,
        )
    return Frame(timestamp_ms=current.timestamp_ms, keypoints=smoothed)
