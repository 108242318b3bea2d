"""
Session thresholds. One frozen Config is validated at session start and
injected into every component; it never changes mid-session.
"""
from __future__ import annotations

import dataclasses
import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "REPGUARD_"


class ConfigError(ValueError):
    """A threshold is outside its sane range. Fatal at session start."""


@dataclass(frozen=True)
class Config:
    # Per-keypoint confidence below which a keypoint is treated as unseen.
    min_confidence: float = 0.3
    # Elbow angle (deg) strictly below which an arm is "down".
    elbow_angle_down: float = 90.0
    # Elbow angle (deg) strictly above which an arm is "up".
    elbow_angle_up: float = 160.0
    # Max wrist-hip distance, in shoulder widths, for plank alignment.
    plank_shoulder_width_multiplier: float = 1.5
    # Max shoulder-hip vertical separation, in shoulder widths, before the body counts as upright.
    standing_shoulder_width_multiplier: float = 1.5
    # Max left/right wrist height difference (cm).
    wrist_symmetry_cm: float = 15.0
    # Physical shoulder width used to convert normalized units to cm.
    assumed_shoulder_width_cm: float = 40.0
    # Minimum dwell in "down" before "down -> up" counts. 0 disables the gate.
    hold_time_ms: float = 0.0
    # Status text must stay unchanged this long before it is shown.
    feedback_debounce_ms: float = 300.0

    def validate(self) -> Config:
        """Raise ConfigError on the first out-of-range value; return self."""
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise ConfigError(f"{f.name} must be finite, got {value!r}")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ConfigError(f"min_confidence must be in [0, 1], got {self.min_confidence}")
        if not 0.0 < self.elbow_angle_down < self.elbow_angle_up <= 180.0:
            raise ConfigError(
                "elbow thresholds must satisfy 0 < down < up <= 180, "
                f"got down={self.elbow_angle_down} up={self.elbow_angle_up}"
            )
        for name in (
            "plank_shoulder_width_multiplier",
            "standing_shoulder_width_multiplier",
            "assumed_shoulder_width_cm",
        ):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be > 0, got {getattr(self, name)}")
        for name in ("wrist_symmetry_cm", "hold_time_ms", "feedback_debounce_ms"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} must be >= 0, got {getattr(self, name)}")
        return self

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], base: Optional[Config] = None) -> Config:
        """Overlay values onto base (or defaults). Unknown keys are rejected."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
        parsed: dict[str, float] = {}
        for key, value in values.items():
            try:
                parsed[key] = float(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{key} must be a number, got {value!r}") from e
        return dataclasses.replace(base or cls(), **parsed).validate()

    def as_dict(self) -> dict[str, float]:
        return dataclasses.asdict(self)


def load_config(env_file: Optional[str] = None, **overrides: Any) -> Config:
    """
    Build a Config from REPGUARD_<FIELD> environment variables (a .env file is
    loaded first if present), then apply keyword overrides.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
    values: dict[str, Any] = {}
    for f in dataclasses.fields(Config):
        raw = os.environ.get(ENV_PREFIX + f.name.upper())
        if raw is not None and raw.strip() != "":
            values[f.name] = raw
    values.update({k: v for k, v in overrides.items() if v is not None})
    config = Config.from_mapping(values)
    if values:
        logger.info("config: overrides %s", sorted(values))
    return config
