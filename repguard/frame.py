"""
Keypoint and frame types shared by the pose source and the rep core.
Coordinates are normalized video space (0..1, y grows downward).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class Landmark(str, Enum):
    """The 17 body landmarks, in COCO keypoint order."""

    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


@dataclass(frozen=True)
class Keypoint:
    landmark: Landmark
    x: float
    y: float
    confidence: float

    @property
    def xy(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class Frame:
    """
    One detection cycle. Every landmark has an entry; a keypoint the pose
    source could not locate is stored as None rather than left out.
    """

    timestamp_ms: float
    keypoints: Mapping[Landmark, Optional[Keypoint]]

    def __post_init__(self) -> None:
        full = {lm: self.keypoints.get(lm) for lm in Landmark}
        object.__setattr__(self, "keypoints", MappingProxyType(full))

    def get(self, landmark: Landmark) -> Optional[Keypoint]:
        return self.keypoints[landmark]

    @classmethod
    def from_points(
        cls,
        timestamp_ms: float,
        points: Mapping[Landmark, tuple[float, float, float]],
    ) -> Frame:
        """Build a frame from {landmark: (x, y, confidence)}."""
        return cls(
            timestamp_ms=float(timestamp_ms),
            keypoints={
                lm: Keypoint(lm, float(x), float(y), float(c))
                for lm, (x, y, c) in points.items()
            },
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Frame:
        """
        Parse the wire form used by browser-side pose models:
        {"timestamp_ms": t, "keypoints": [{"name", "x", "y", "score"}, ...]}.
        Raises ValueError on malformed input.
        """
        if "timestamp_ms" not in payload:
            raise ValueError("frame payload missing timestamp_ms")
        try:
            timestamp_ms = float(payload["timestamp_ms"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"bad timestamp_ms: {payload['timestamp_ms']!r}") from e
        if not math.isfinite(timestamp_ms):
            raise ValueError("timestamp_ms must be finite")
        raw = payload.get("keypoints")
        if not isinstance(raw, list):
            raise ValueError("frame payload keypoints must be a list")

        keypoints: dict[Landmark, Optional[Keypoint]] = {}
        for item in raw:
            if not isinstance(item, Mapping):
                raise ValueError(f"bad keypoint entry: {item!r}")
            try:
                landmark = Landmark(item.get("name"))
            except ValueError:
                # Models with more landmarks (e.g. feet) send extras; skip them.
                continue
            if item.get("x") is None or item.get("y") is None:
                keypoints[landmark] = None
                continue
            try:
                score = item.get("score", item.get("confidence", 0.0))
                keypoints[landmark] = Keypoint(
                    landmark,
                    float(item["x"]),
                    float(item["y"]),
                    float(score if score is not None else 0.0),
                )
            except (TypeError, ValueError) as e:
                raise ValueError(f"bad keypoint values for {landmark.value}") from e
        return cls(timestamp_ms=timestamp_ms, keypoints=keypoints)

    def to_payload(self) -> dict[str, Any]:
        return {
            "timestamp_ms": self.timestamp_ms,
            "keypoints": [
                {"name": lm.value, "x": kp.x, "y": kp.y, "score": kp.confidence}
                if kp is not None
                else {"name": lm.value, "x": None, "y": None, "score": None}
                for lm, kp in self.keypoints.items()
            ],
        }
