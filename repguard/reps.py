"""
Rep counting: a three-state machine (none / down / up) driven by both elbow
angles, gated by the constraint verdict and a minimum dwell in "down".
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import Config
from .constraints import FrameVerdict
from .frame import Landmark
from .geometry import angle
from .normalize import NormalizedFrame

logger = logging.getLogger(__name__)

HOLD_TIME_REASON = "hold_time"


class RepState(str, Enum):
    NONE = "none"
    DOWN = "down"
    UP = "up"


@dataclass(frozen=True)
class ElbowAngles:
    left: Optional[float]
    right: Optional[float]

    def below(self, threshold: float) -> bool:
        """Both arms strictly under threshold. An unseen arm never crosses."""
        if self.left is None or self.right is None:
            return False
        return self.left < threshold and self.right < threshold

    def above(self, threshold: float) -> bool:
        if self.left is None or self.right is None:
            return False
        return self.left > threshold and self.right > threshold

    @property
    def shallowest(self) -> Optional[float]:
        if self.left is None or self.right is None:
            return None
        return max(self.left, self.right)


def elbow_angles(frame: NormalizedFrame) -> ElbowAngles:
    """Shoulder-elbow-wrist angle per side; None where a keypoint is unusable."""

    def side(shoulder: Landmark, elbow: Landmark, wrist: Landmark) -> Optional[float]:
        pts = frame.require(shoulder, elbow, wrist)
        if pts is None:
            return None
        return angle(pts[0].xy, pts[1].xy, pts[2].xy)

    return ElbowAngles(
        left=side(Landmark.LEFT_SHOULDER, Landmark.LEFT_ELBOW, Landmark.LEFT_WRIST),
        right=side(Landmark.RIGHT_SHOULDER, Landmark.RIGHT_ELBOW, Landmark.RIGHT_WRIST),
    )


def next_state(
    current: RepState,
    angles: ElbowAngles,
    verdict: FrameVerdict,
    hold_satisfied: bool,
    config: Config,
) -> tuple[RepState, bool]:
    """
    Transition table. Returns (next_state, rep_counted).
    Angles inside the (down, up) band leave the state unchanged.
    """
    if verdict.hard_failure:
        return RepState.NONE, False
    if angles.below(config.elbow_angle_down):
        return RepState.DOWN, False
    if angles.above(config.elbow_angle_up):
        if current is RepState.DOWN:
            if verdict.passed and hold_satisfied:
                return RepState.UP, True
            return RepState.DOWN, False
        return RepState.UP, False
    return current, False


class HoldTimeGate:
    """Dwell timer for the "down" state. Re-entering down restarts it."""

    def __init__(self, hold_time_ms: float = 0.0):
        self.hold_time_ms = hold_time_ms
        self.entered_ms: Optional[float] = None

    def enter(self, timestamp_ms: float) -> None:
        self.entered_ms = timestamp_ms

    def reset(self) -> None:
        self.entered_ms = None

    def dwell(self, timestamp_ms: float) -> Optional[float]:
        if self.entered_ms is None:
            return None
        return timestamp_ms - self.entered_ms

    def satisfied(self, timestamp_ms: float) -> bool:
        if self.hold_time_ms <= 0:
            return True
        dwell = self.dwell(timestamp_ms)
        return dwell is not None and dwell >= self.hold_time_ms


@dataclass(frozen=True)
class RepEvent:
    rep: int
    timestamp_ms: float
    down_entered_ms: Optional[float]
    dwell_ms: Optional[float]
    bottom_angle_deg: Optional[float]

    def as_dict(self) -> dict:
        return {
            "rep": self.rep,
            "timestamp_ms": self.timestamp_ms,
            "down_entered_ms": self.down_entered_ms,
            "dwell_ms": self.dwell_ms,
            "bottom_angle_deg": self.bottom_angle_deg,
        }


class RepStateMachine:
    """
    Owns the RepState / rep count / dwell timer triple for one session.
    Counts exactly once per "down -> up" edge whose triggering frame passes
    every constraint and whose dwell in "down" meets the hold time.
    """

    def __init__(self, config: Config):
        self.config = config
        self.gate = HoldTimeGate(config.hold_time_ms)
        self.state = RepState.NONE
        self.rep_count = 0
        self.events: list[RepEvent] = []
        self.rejections: dict[str, int] = {}
        # True while in an "up" phase that was entered through a counted rep.
        self.counted_phase = False
        self._withheld_reason: Optional[str] = None
        self._bottom_angle: Optional[float] = None

    def reset(self) -> None:
        self.gate.reset()
        self.state = RepState.NONE
        self.rep_count = 0
        self.events.clear()
        self.rejections.clear()
        self.counted_phase = False
        self._withheld_reason = None
        self._bottom_angle = None

    def step(
        self,
        angles: ElbowAngles,
        verdict: FrameVerdict,
        timestamp_ms: float,
    ) -> Optional[RepEvent]:
        """Advance one frame. Returns the RepEvent if this frame counted a rep."""
        prev = self.state
        hold_ok = prev is RepState.DOWN and self.gate.satisfied(timestamp_ms)
        nxt, counted = next_state(prev, angles, verdict, hold_ok, self.config)

        if prev is RepState.DOWN and nxt is RepState.DOWN and angles.above(self.config.elbow_angle_up):
            self._withheld_reason = self._withheld_because(verdict, hold_ok)
        if nxt is RepState.DOWN and angles.shallowest is not None:
            if self._bottom_angle is None or angles.shallowest < self._bottom_angle:
                self._bottom_angle = angles.shallowest

        event: Optional[RepEvent] = None
        if counted:
            self.rep_count += 1
            event = RepEvent(
                rep=self.rep_count,
                timestamp_ms=timestamp_ms,
                down_entered_ms=self.gate.entered_ms,
                dwell_ms=self.gate.dwell(timestamp_ms),
                bottom_angle_deg=self._bottom_angle,
            )
            self.events.append(event)
            logger.info(
                "rep: %s (t=%s dwell_ms=%s bottom=%s)",
                self.rep_count, timestamp_ms, event.dwell_ms, event.bottom_angle_deg,
            )

        if nxt is not prev:
            logger.debug("rep: %s -> %s at t=%s", prev.value, nxt.value, timestamp_ms)
            self.counted_phase = counted
            if prev is RepState.DOWN:
                self._close_down_phase(counted)
            if nxt is RepState.DOWN:
                self.gate.enter(timestamp_ms)
                self._bottom_angle = angles.shallowest
            else:
                self.gate.reset()
        self.state = nxt
        return event

    def _withheld_because(self, verdict: FrameVerdict, hold_ok: bool) -> str:
        problem = verdict.first_problem()
        if problem is not None:
            return problem.reason.value
        if not hold_ok:
            return HOLD_TIME_REASON
        return "unknown"

    def _close_down_phase(self, counted: bool) -> None:
        if not counted and self._withheld_reason is not None:
            reason = self._withheld_reason
            self.rejections[reason] = self.rejections.get(reason, 0) + 1
            logger.info("rep: attempt rejected (%s)", reason)
        self._withheld_reason = None
        self._bottom_angle = None
