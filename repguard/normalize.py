"""
Confidence filtering: turns a raw Frame into the set of keypoints the
constraints are allowed to use.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from .config import Config
from .frame import Frame, Keypoint, Landmark


@dataclass(frozen=True)
class NormalizedFrame:
    timestamp_ms: float
    points: Mapping[Landmark, Keypoint]
    dropped: tuple[Landmark, ...]

    def get(self, landmark: Landmark) -> Optional[Keypoint]:
        return self.points.get(landmark)

    def missing(self, *landmarks: Landmark) -> tuple[Landmark, ...]:
        return tuple(lm for lm in landmarks if lm not in self.points)

    def require(self, *landmarks: Landmark) -> Optional[tuple[Keypoint, ...]]:
        """All requested keypoints in order, or None if any is unusable."""
        if self.missing(*landmarks):
            return None
        return tuple(self.points[lm] for lm in landmarks)


def _usable(kp: Optional[Keypoint], min_confidence: float) -> bool:
    if kp is None:
        return False
    if not (math.isfinite(kp.x) and math.isfinite(kp.y) and math.isfinite(kp.confidence)):
        return False
    if not (0.0 <= kp.x <= 1.0 and 0.0 <= kp.y <= 1.0):
        return False
    if not 0.0 <= kp.confidence <= 1.0:
        return False
    return kp.confidence >= min_confidence


def normalize_frame(frame: Frame, config: Config) -> NormalizedFrame:
    points: dict[Landmark, Keypoint] = {}
    dropped: list[Landmark] = []
    for landmark in Landmark:
        kp = frame.get(landmark)
        if _usable(kp, config.min_confidence):
            points[landmark] = kp
        else:
            dropped.append(landmark)
    return NormalizedFrame(
        timestamp_ms=frame.timestamp_ms,
        points=MappingProxyType(points),
        dropped=tuple(dropped),
    )
