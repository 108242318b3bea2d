"""
Live webcam loop: capture, pose, session pass, render. Nothing is saved; the
session summary is logged and returned on exit (q).
"""
from __future__ import annotations

import logging
import time
from typing import Any, Optional

import cv2

from .config import Config
from .frame import Frame
from .io_stream import webcam_frames
from .overlay import render
from .pose import create_pose_detector, process_frame, smooth_frame
from .session import Session, Viewport

logger = logging.getLogger(__name__)

DISPLAY_WIDTH = 1280
DISPLAY_HEIGHT = 720
# No-pose warning after this many seconds
NO_POSE_WARN_SEC = 2.0
# EMA alpha for keypoint smoothing
SMOOTH_ALPHA = 0.4


def run_live_pipeline(
    config: Config,
    camera_id: int = 0,
    target_fps: float = 30,
    mirrored: bool = True,
) -> dict[str, Any]:
    """Run live capture loop. q=quit, r=reset. Returns the session summary."""
    pose = create_pose_detector()
    session = Session(config).start()
    prev_frame: Optional[Frame] = None
    last_pose_time = time.perf_counter()
    win_name = "RepGuard (q=quit, r=reset)"

    cv2.namedWindow(win_name, cv2.WINDOW_NORMAL)
    try:
        for frame_bgr, frame_idx, timestamp_ms in webcam_frames(camera_id, target_fps=target_fps):
            if session.viewport is None:
                h, w = frame_bgr.shape[:2]
                session.set_viewport(Viewport(w, h, DISPLAY_WIDTH, DISPLAY_HEIGHT, mirrored))

            raw = process_frame(frame_bgr, pose, timestamp_ms)
            if any(kp is not None for kp in raw.keypoints.values()):
                last_pose_time = time.perf_counter()
            frame = smooth_frame(raw, prev_frame, SMOOTH_ALPHA)
            prev_frame = frame

            result = session.process(frame)

            message = None
            if time.perf_counter() - last_pose_time > NO_POSE_WARN_SEC:
                message = "Move into frame"
            cv2.imshow(win_name, render(frame_bgr, result, session.viewport, message))

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord("r"):
                session.reset()
                prev_frame = None
            if frame_idx and frame_idx % 300 == 0:
                logger.info("live: frame %s (rep_count=%s)", frame_idx, session.rep_count)
    finally:
        cv2.destroyAllWindows()

    return session.stop()
