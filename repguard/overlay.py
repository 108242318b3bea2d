"""
OpenCV rendering for the live window. Keypoints arrive already projected to
display coordinates by the session, so the video must be fitted to the
display with the same transform and mirror flag.
"""
from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .constraints import Outcome
from .frame import Landmark
from .geometry import Point
from .session import FrameResult, Viewport

# COCO skeleton over the 17 landmarks
_SKELETON = (
    (Landmark.LEFT_SHOULDER, Landmark.RIGHT_SHOULDER),
    (Landmark.LEFT_SHOULDER, Landmark.LEFT_ELBOW),
    (Landmark.LEFT_ELBOW, Landmark.LEFT_WRIST),
    (Landmark.RIGHT_SHOULDER, Landmark.RIGHT_ELBOW),
    (Landmark.RIGHT_ELBOW, Landmark.RIGHT_WRIST),
    (Landmark.LEFT_SHOULDER, Landmark.LEFT_HIP),
    (Landmark.RIGHT_SHOULDER, Landmark.RIGHT_HIP),
    (Landmark.LEFT_HIP, Landmark.RIGHT_HIP),
    (Landmark.LEFT_HIP, Landmark.LEFT_KNEE),
    (Landmark.LEFT_KNEE, Landmark.LEFT_ANKLE),
    (Landmark.RIGHT_HIP, Landmark.RIGHT_KNEE),
    (Landmark.RIGHT_KNEE, Landmark.RIGHT_ANKLE),
    (Landmark.NOSE, Landmark.LEFT_EYE),
    (Landmark.NOSE, Landmark.RIGHT_EYE),
    (Landmark.LEFT_EYE, Landmark.LEFT_EAR),
    (Landmark.RIGHT_EYE, Landmark.RIGHT_EAR),
)

_OUTCOME_COLOR = {
    Outcome.PASSED: (80, 220, 80),
    Outcome.FAILED: (60, 60, 230),
    Outcome.INDETERMINATE: (0, 200, 255),
}


def _pt(p: Point) -> tuple[int, int]:
    return (int(round(p[0])), int(round(p[1])))


def fit_frame(frame_bgr: np.ndarray, viewport: Viewport) -> np.ndarray:
    """Cover-fit the video into the display size, then mirror if requested."""
    t = viewport.transform()
    h, w = frame_bgr.shape[:2]
    new_w = max(1, int(round(w * t.scale_x)))
    new_h = max(1, int(round(h * t.scale_y)))
    interp = cv2.INTER_AREA if t.scale_x < 1 else cv2.INTER_LINEAR
    resized = cv2.resize(frame_bgr, (new_w, new_h), interpolation=interp)

    dw, dh = viewport.display_width, viewport.display_height
    canvas = np.zeros((dh, dw, 3), dtype=frame_bgr.dtype)
    ox, oy = int(round(t.offset_x)), int(round(t.offset_y))
    # Destination and source windows; negative offsets crop the overflow.
    dx0, dy0 = max(0, ox), max(0, oy)
    sx0, sy0 = max(0, -ox), max(0, -oy)
    cw = min(dw - dx0, new_w - sx0)
    ch = min(dh - dy0, new_h - sy0)
    if cw > 0 and ch > 0:
        canvas[dy0:dy0 + ch, dx0:dx0 + cw] = resized[sy0:sy0 + ch, sx0:sx0 + cw]
    if viewport.mirrored:
        canvas = cv2.flip(canvas, 1)
    return canvas


def draw_skeleton(
    canvas: np.ndarray,
    points: dict[Landmark, Point],
    color: tuple[int, int, int] = (0, 255, 0),
    thickness: int = 2,
) -> None:
    """Draw the skeleton in-place. points are display coordinates."""
    for a, b in _SKELETON:
        if a in points and b in points:
            cv2.line(canvas, _pt(points[a]), _pt(points[b]), color, thickness)
    for p in points.values():
        cv2.circle(canvas, _pt(p), 4, color, -1)


def draw_debug_panel(
    canvas: np.ndarray,
    result: FrameResult,
    message: Optional[str] = None,
) -> None:
    """
    Draw count, state, status text and per-constraint diagnostics (in-place).
    The constraint rows are the raw latest-frame values.
    """
    h, w = canvas.shape[:2]
    rows = len(result.verdict.verdicts)
    panel_h = 28 * (4 + rows) + 12
    overlay = canvas.copy()
    cv2.rectangle(overlay, (0, 0), (min(w, 560), panel_h), (40, 40, 40), -1)
    cv2.addWeighted(overlay, 0.6, canvas, 0.4, 0, canvas)

    font = cv2.FONT_HERSHEY_SIMPLEX
    y0, dy = 28, 28
    white = (255, 255, 255)

    def put(line: str, y: int, color: tuple[int, int, int] = white, scale: float = 0.6) -> None:
        cv2.putText(canvas, line, (12, y), font, scale, color, 2, cv2.LINE_AA)

    def fmt(val: Optional[float]) -> str:
        return f"{val:.1f}" if val is not None else "--"

    put(f"Reps: {result.rep_count}", y0, scale=0.8)
    put(f"State: {result.state.value}", y0 + dy)
    put(f"Elbows: L {fmt(result.angles.left)}  R {fmt(result.angles.right)} deg", y0 + 2 * dy)
    put(f"Status: {result.status}", y0 + 3 * dy)
    for i, v in enumerate(result.verdict.verdicts):
        ratios = " ".join(f"{k}={val:.2f}" for k, val in v.ratios.items() if k != "limit")
        put(
            f"{v.name}: {v.outcome.value} {ratios}",
            y0 + (4 + i) * dy,
            color=_OUTCOME_COLOR[v.outcome],
            scale=0.45,
        )

    if message:
        cv2.putText(
            canvas, message, (w // 2 - 120, h // 2),
            font, 0.8, (0, 200, 255), 2, cv2.LINE_AA,
        )


def render(frame_bgr: np.ndarray, result: FrameResult, viewport: Viewport, message: Optional[str] = None) -> np.ndarray:
    canvas = fit_frame(frame_bgr, viewport)
    if result.overlay:
        color = (0, 255, 0) if result.verdict.passed else (0, 165, 255)
        draw_skeleton(canvas, result.overlay, color=color)
    draw_debug_panel(canvas, result, message)
    return canvas
