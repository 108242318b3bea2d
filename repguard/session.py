"""
One exercise session: the per-frame pass
normalize -> constraints -> rep state machine (+ hold gate) -> status debounce
-> overlay transform, run synchronously and in that order.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .config import Config
from .constraints import FrameVerdict, evaluate_constraints
from .feedback import FeedbackDebouncer, status_text
from .frame import Frame, Landmark
from .geometry import AspectFitTransform, Point, aspect_fit_transform, project_keypoints
from .normalize import normalize_frame
from .reps import ElbowAngles, RepEvent, RepState, RepStateMachine, elbow_angles

logger = logging.getLogger(__name__)


class SessionStoppedError(RuntimeError):
    """process() was called on a session that has been stopped."""


@dataclass(frozen=True)
class Viewport:
    """Video size (pixels) and the display container it is drawn into."""

    video_width: int
    video_height: int
    display_width: int
    display_height: int
    mirrored: bool = False

    def transform(self) -> AspectFitTransform:
        return aspect_fit_transform(
            self.video_width, self.video_height, self.display_width, self.display_height,
        )

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> Viewport:
        return cls(
            video_width=int(values["video_width"]),
            video_height=int(values["video_height"]),
            display_width=int(values["display_width"]),
            display_height=int(values["display_height"]),
            mirrored=bool(values.get("mirrored", False)),
        )


@dataclass(frozen=True)
class FrameResult:
    timestamp_ms: float
    verdict: FrameVerdict
    angles: ElbowAngles
    state: RepState
    rep_count: int
    event: Optional[RepEvent]
    status: str
    dropped: tuple[Landmark, ...]
    transform: Optional[AspectFitTransform] = None
    overlay: Optional[dict[Landmark, Point]] = None

    @property
    def debug(self) -> dict[str, Any]:
        """Latest-frame diagnostics for the debug view. Never debounced."""
        return {
            "state": self.state.value,
            "rep_count": self.rep_count,
            "left_elbow_deg": self.angles.left,
            "right_elbow_deg": self.angles.right,
            "verdict": self.verdict.as_dict(),
            "dropped": [lm.value for lm in self.dropped],
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp_ms": self.timestamp_ms,
            "rep_count": self.rep_count,
            "state": self.state.value,
            "status": self.status,
            "rep": self.event.as_dict() if self.event else None,
            "debug": self.debug,
            "transform": self.transform.as_dict() if self.transform else None,
            "overlay": (
                {lm.value: [x, y] for lm, (x, y) in self.overlay.items()}
                if self.overlay is not None
                else None
            ),
        }


class Session:
    """
    Session context: owns the rep state, count and dwell timer. The config is
    validated here and fixed for the session's lifetime.
    """

    def __init__(self, config: Optional[Config] = None, viewport: Optional[Viewport] = None):
        self.config = (config or Config()).validate()
        self.machine = RepStateMachine(self.config)
        self.debouncer = FeedbackDebouncer(self.config.feedback_debounce_ms)
        self.viewport: Optional[Viewport] = None
        self._transform: Optional[AspectFitTransform] = None
        self.frames = 0
        self.running = False
        if viewport is not None:
            self.set_viewport(viewport)

    @property
    def state(self) -> RepState:
        return self.machine.state

    @property
    def rep_count(self) -> int:
        return self.machine.rep_count

    def set_viewport(self, viewport: Optional[Viewport]) -> None:
        """Change the display geometry between passes."""
        self._transform = viewport.transform() if viewport is not None else None
        self.viewport = viewport

    def start(self) -> Session:
        self.running = True
        logger.info("session: started (config=%s)", self.config.as_dict())
        return self

    def stop(self) -> dict[str, Any]:
        """Freeze the session at its last committed state and return the summary."""
        self.running = False
        summary = self.summary()
        logger.info("session: stopped (frames=%s rep_count=%s)", self.frames, self.rep_count)
        return summary

    def reset(self) -> None:
        self.machine.reset()
        self.debouncer.reset()
        self.frames = 0
        logger.info("session: reset")

    def process(self, frame: Frame) -> FrameResult:
        if not self.running:
            raise SessionStoppedError("session is not running; call start() first")
        self.frames += 1
        norm = normalize_frame(frame, self.config)
        verdict = evaluate_constraints(norm, self.config)
        angles = elbow_angles(norm)
        event = self.machine.step(angles, verdict, frame.timestamp_ms)
        status = self.debouncer.update(
            status_text(verdict, self.machine.state, self.machine.counted_phase),
            frame.timestamp_ms,
        )

        overlay = None
        if self.viewport is not None and self._transform is not None:
            vp = self.viewport
            overlay = project_keypoints(
                norm, self._transform,
                vp.video_width, vp.video_height, vp.display_width, vp.mirrored,
            )

        return FrameResult(
            timestamp_ms=frame.timestamp_ms,
            verdict=verdict,
            angles=angles,
            state=self.machine.state,
            rep_count=self.machine.rep_count,
            event=event,
            status=status,
            dropped=norm.dropped,
            transform=self._transform,
            overlay=overlay,
        )

    def summary(self) -> dict[str, Any]:
        return {
            "rep_count": self.machine.rep_count,
            "state": self.machine.state.value,
            "frames": self.frames,
            "reps": [e.as_dict() for e in self.machine.events],
            "rejected_attempts": dict(self.machine.rejections),
            "config": self.config.as_dict(),
        }
