"""
Anti-cheat posture constraints. Each predicate is pure:
(NormalizedFrame, Config) -> ConstraintVerdict.

Shoulder width (distance between the shoulder keypoints) is the only unit of
physical scale, so thresholds hold regardless of subject size or camera
distance. A missing keypoint yields an indeterminate verdict, never a pass.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from .config import Config
from .frame import Landmark
from .geometry import distance
from .normalize import NormalizedFrame

logger = logging.getLogger(__name__)

# Shoulder widths below this (normalized units) are degenerate.
MIN_SHOULDER_WIDTH = 1e-6
# Float slack when comparing the converted wrist difference against its limit.
_CM_TOLERANCE = 1e-9

PLANK = "plank_alignment"
STANDING = "standing_rejection"
ORIENTATION = "wrist_orientation"
SYMMETRY = "wrist_symmetry"

# Failing one of these means the user left the exercise posture entirely.
HARD_CONSTRAINTS = frozenset({STANDING, ORIENTATION})


class Outcome(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    INDETERMINATE = "indeterminate"


class Reason(str, Enum):
    OK = "ok"
    LOW_CONFIDENCE = "low_confidence"
    DEGENERATE_GEOMETRY = "degenerate_geometry"
    NOT_IN_PLANK = "not_in_plank"
    STANDING = "standing"
    WRISTS_ABOVE_SHOULDERS = "wrists_above_shoulders"
    ASYMMETRIC_WRISTS = "asymmetric_wrists"


@dataclass(frozen=True)
class ConstraintVerdict:
    name: str
    outcome: Outcome
    reason: Reason
    ratios: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "ratios", MappingProxyType(dict(self.ratios)))

    @property
    def passed(self) -> bool:
        return self.outcome is Outcome.PASSED

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED

    @property
    def indeterminate(self) -> bool:
        return self.outcome is Outcome.INDETERMINATE

    def as_dict(self) -> dict:
        return {
            "passed": self.passed,
            "outcome": self.outcome.value,
            "reason": self.reason.value,
            "ratios": dict(self.ratios),
        }


@dataclass(frozen=True)
class FrameVerdict:
    """All constraint verdicts for one frame."""

    verdicts: tuple[ConstraintVerdict, ...]

    @property
    def passed(self) -> bool:
        return all(v.passed for v in self.verdicts)

    @property
    def hard_failure(self) -> bool:
        return any(v.failed and v.name in HARD_CONSTRAINTS for v in self.verdicts)

    @property
    def failed(self) -> tuple[str, ...]:
        return tuple(v.name for v in self.verdicts if v.failed)

    @property
    def indeterminate(self) -> tuple[str, ...]:
        return tuple(v.name for v in self.verdicts if v.indeterminate)

    @property
    def ratios(self) -> dict[str, float]:
        out: dict[str, float] = {}
        for v in self.verdicts:
            for key, value in v.ratios.items():
                out[f"{v.name}.{key}"] = value
        return out

    def get(self, name: str) -> Optional[ConstraintVerdict]:
        for v in self.verdicts:
            if v.name == name:
                return v
        return None

    def first_problem(self) -> Optional[ConstraintVerdict]:
        """Most severe non-passing verdict: hard failures, then failures, then indeterminate."""
        ranked = sorted(
            (v for v in self.verdicts if not v.passed),
            key=lambda v: (
                0 if v.failed and v.name in HARD_CONSTRAINTS else 1 if v.failed else 2
            ),
        )
        return ranked[0] if ranked else None

    def as_dict(self) -> dict:
        return {
            "passed": self.passed,
            "hard_failure": self.hard_failure,
            "constraints": {v.name: v.as_dict() for v in self.verdicts},
        }


def _indeterminate(name: str, reason: Reason = Reason.LOW_CONFIDENCE) -> ConstraintVerdict:
    return ConstraintVerdict(name, Outcome.INDETERMINATE, reason)


def shoulder_width(frame: NormalizedFrame) -> Optional[float]:
    pts = frame.require(Landmark.LEFT_SHOULDER, Landmark.RIGHT_SHOULDER)
    if pts is None:
        return None
    ls, rs = pts
    return distance(ls.xy, rs.xy)


def _scaled(frame: NormalizedFrame, name: str, *landmarks: Landmark):
    """(shoulder_width, keypoints) or an indeterminate verdict."""
    pts = frame.require(Landmark.LEFT_SHOULDER, Landmark.RIGHT_SHOULDER, *landmarks)
    if pts is None:
        return _indeterminate(name)
    sw = distance(pts[0].xy, pts[1].xy)
    if sw < MIN_SHOULDER_WIDTH:
        return _indeterminate(name, Reason.DEGENERATE_GEOMETRY)
    return sw, pts


def plank_alignment(frame: NormalizedFrame, config: Config) -> ConstraintVerdict:
    """Each wrist must sit within the multiplier of shoulder widths of its hip."""
    res = _scaled(
        frame, PLANK,
        Landmark.LEFT_WRIST, Landmark.RIGHT_WRIST, Landmark.LEFT_HIP, Landmark.RIGHT_HIP,
    )
    if isinstance(res, ConstraintVerdict):
        return res
    sw, (_, _, lw, rw, lh, rh) = res
    left = distance(lw.xy, lh.xy) / sw
    right = distance(rw.xy, rh.xy) / sw
    limit = config.plank_shoulder_width_multiplier
    ratios = {"left_wrist_hip": left, "right_wrist_hip": right, "limit": limit}
    # Both sides independently: one planted arm cannot carry the check.
    if left <= limit and right <= limit:
        return ConstraintVerdict(PLANK, Outcome.PASSED, Reason.OK, ratios)
    return ConstraintVerdict(PLANK, Outcome.FAILED, Reason.NOT_IN_PLANK, ratios)


def standing_rejection(frame: NormalizedFrame, config: Config) -> ConstraintVerdict:
    res = _scaled(frame, STANDING, Landmark.LEFT_HIP, Landmark.RIGHT_HIP)
    if isinstance(res, ConstraintVerdict):
        return res
    sw, (ls, rs, lh, rh) = res
    shoulder_y = (ls.y + rs.y) / 2.0
    hip_y = (lh.y + rh.y) / 2.0
    vertical = abs(shoulder_y - hip_y) / sw
    limit = config.standing_shoulder_width_multiplier
    ratios = {"shoulder_hip_vertical": vertical, "limit": limit}
    if vertical <= limit:
        return ConstraintVerdict(STANDING, Outcome.PASSED, Reason.OK, ratios)
    return ConstraintVerdict(STANDING, Outcome.FAILED, Reason.STANDING, ratios)


def wrist_orientation(frame: NormalizedFrame, config: Config) -> ConstraintVerdict:
    """Wrists must be at or below shoulder height (image y grows downward)."""
    res = _scaled(frame, ORIENTATION, Landmark.LEFT_WRIST, Landmark.RIGHT_WRIST)
    if isinstance(res, ConstraintVerdict):
        return res
    sw, (ls, rs, lw, rw) = res
    shoulder_y = (ls.y + rs.y) / 2.0
    wrist_y = (lw.y + rw.y) / 2.0
    ratios = {"wrist_shoulder_vertical": (wrist_y - shoulder_y) / sw}
    if wrist_y >= shoulder_y:
        return ConstraintVerdict(ORIENTATION, Outcome.PASSED, Reason.OK, ratios)
    return ConstraintVerdict(ORIENTATION, Outcome.FAILED, Reason.WRISTS_ABOVE_SHOULDERS, ratios)


def wrist_symmetry(frame: NormalizedFrame, config: Config) -> ConstraintVerdict:
    res = _scaled(frame, SYMMETRY, Landmark.LEFT_WRIST, Landmark.RIGHT_WRIST)
    if isinstance(res, ConstraintVerdict):
        return res
    sw, (ls, rs, lw, rw) = res
    left_offset = lw.y - ls.y
    right_offset = rw.y - rs.y
    cm_per_unit = config.assumed_shoulder_width_cm / sw
    diff_cm = abs(left_offset - right_offset) * cm_per_unit
    ratios = {
        "offset_diff_cm": diff_cm,
        "cm_per_unit": cm_per_unit,
        "limit_cm": config.wrist_symmetry_cm,
    }
    if diff_cm <= config.wrist_symmetry_cm + _CM_TOLERANCE:
        return ConstraintVerdict(SYMMETRY, Outcome.PASSED, Reason.OK, ratios)
    return ConstraintVerdict(SYMMETRY, Outcome.FAILED, Reason.ASYMMETRIC_WRISTS, ratios)


CONSTRAINTS = (plank_alignment, standing_rejection, wrist_orientation, wrist_symmetry)


def evaluate_constraints(frame: NormalizedFrame, config: Config) -> FrameVerdict:
    """Run every constraint. Nothing short-circuits: diagnostics need all four."""
    verdict = FrameVerdict(tuple(check(frame, config) for check in CONSTRAINTS))
    if not verdict.passed:
        logger.debug(
            "constraints: t=%s failed=%s indeterminate=%s",
            frame.timestamp_ms, verdict.failed, verdict.indeterminate,
        )
    return verdict
