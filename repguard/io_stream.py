"""
Frame sources for the capture loop: video file or webcam.
Yields (frame_bgr, frame_idx, timestamp_ms); the capture is always released.
"""
from __future__ import annotations

import time
from typing import Generator

import cv2
import numpy as np

FrameStream = Generator[tuple[np.ndarray, int, float], None, None]


def video_frames(video_path: str) -> FrameStream:
    """Timestamps come from the container's frame rate, not wall time."""
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise FileNotFoundError(f"Cannot open video: {video_path}")
    try:
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        idx = 0
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            yield (frame, idx, idx * 1000.0 / fps)
            idx += 1
    finally:
        cap.release()


def webcam_frames(
    camera_id: int = 0,
    target_fps: float = 30,
    width: int = 1280,
    height: int = 720,
) -> FrameStream:
    """Timestamps are monotonic milliseconds since the first frame."""
    cap = cv2.VideoCapture(camera_id)
    if not cap.isOpened():
        raise RuntimeError(f"Cannot open camera {camera_id}. Check permissions and that no other app is using it.")
    try:
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        cap.set(cv2.CAP_PROP_FPS, target_fps)
        idx = 0
        t0 = time.monotonic()
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            yield (frame, idx, (time.monotonic() - t0) * 1000.0)
            idx += 1
    finally:
        cap.release()
