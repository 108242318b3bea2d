"""
User-facing status text and its debouncer. Only the text is smoothed; rep
state, count and constraint diagnostics are always reported as of the latest
frame.
"""
from __future__ import annotations

from typing import Optional

from .constraints import FrameVerdict, Reason
from .reps import RepState

_REASON_TEXT = {
    Reason.STANDING: "Get down into a plank",
    Reason.WRISTS_ABOVE_SHOULDERS: "Hands down, below your shoulders",
    Reason.NOT_IN_PLANK: "Hands too far from your hips",
    Reason.ASYMMETRIC_WRISTS: "Keep both hands level",
    Reason.LOW_CONFIDENCE: "Can't see you clearly",
    Reason.DEGENERATE_GEOMETRY: "Can't see you clearly",
}

_STATE_TEXT = {
    RepState.NONE: "Get into position",
    RepState.DOWN: "Push up",
    RepState.UP: "Go down",
}

REP_TEXT = "Good rep!"


def status_text(
    verdict: FrameVerdict,
    state: RepState,
    counted_phase: bool = False,
) -> str:
    """counted_phase: the current "up" phase was entered through a counted rep."""
    problem = verdict.first_problem()
    if problem is not None:
        return _REASON_TEXT.get(problem.reason, "Check your form")
    if state is RepState.UP and counted_phase:
        return REP_TEXT
    return _STATE_TEXT[state]


class FeedbackDebouncer:
    """
    Commits a new status only after it has been pending, unchanged, for at
    least debounce_ms. Any change of the pending value restarts the wait.
    """

    def __init__(self, debounce_ms: float, initial: str = ""):
        self.debounce_ms = debounce_ms
        self.committed = initial
        self.pending: Optional[str] = None
        self.pending_since_ms: Optional[float] = None

    def update(self, status: str, timestamp_ms: float) -> str:
        if status == self.committed:
            self.pending = None
            self.pending_since_ms = None
            return self.committed
        if status != self.pending:
            self.pending = status
            self.pending_since_ms = timestamp_ms
        if timestamp_ms - self.pending_since_ms >= self.debounce_ms:
            self.committed = status
            self.pending = None
            self.pending_since_ms = None
        return self.committed

    def reset(self, initial: str = "") -> None:
        self.committed = initial
        self.pending = None
        self.pending_since_ms = None
