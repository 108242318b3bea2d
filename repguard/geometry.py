"""
Pure geometry: distances, joint angles and the video -> display transform.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .frame import Landmark
from .normalize import NormalizedFrame

Point = tuple[float, float]

# Vector norms below this are treated as coincident points.
_EPS = 1e-9


def distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


def angle(
    a: Optional[Point],
    vertex: Optional[Point],
    b: Optional[Point],
) -> Optional[float]:
    """Angle at vertex for a-vertex-b, in degrees [0, 180]. None if undefined."""
    if a is None or vertex is None or b is None:
        return None
    va = (a[0] - vertex[0], a[1] - vertex[1])
    vb = (b[0] - vertex[0], b[1] - vertex[1])
    norm_a = math.hypot(va[0], va[1])
    norm_b = math.hypot(vb[0], vb[1])
    if norm_a < _EPS or norm_b < _EPS:
        return None
    cos_val = (va[0] * vb[0] + va[1] * vb[1]) / (norm_a * norm_b)
    cos_val = max(-1.0, min(1.0, cos_val))
    return math.degrees(math.acos(cos_val))


@dataclass(frozen=True)
class AspectFitTransform:
    offset_x: float
    offset_y: float
    scale_x: float
    scale_y: float

    def as_dict(self) -> dict[str, float]:
        return {
            "offset_x": self.offset_x,
            "offset_y": self.offset_y,
            "scale_x": self.scale_x,
            "scale_y": self.scale_y,
        }


def aspect_fit_transform(
    content_width: float,
    content_height: float,
    container_width: float,
    container_height: float,
) -> AspectFitTransform:
    """
    Cover fit: scale content uniformly until it fills the container, then
    center it. The limiting axis gets offset 0; the other axis overflows and
    gets a (negative) centering offset.
    """
    if min(content_width, content_height, container_width, container_height) <= 0:
        raise ValueError(
            f"dimensions must be positive: content={content_width}x{content_height} "
            f"container={container_width}x{container_height}"
        )
    sx = container_width / content_width
    sy = container_height / content_height
    if sx >= sy:
        scale = sx
        offset_x = 0.0
        offset_y = (container_height - content_height * scale) / 2.0
    else:
        scale = sy
        offset_x = (container_width - content_width * scale) / 2.0
        offset_y = 0.0
    return AspectFitTransform(offset_x, offset_y, scale, scale)


def to_display(
    x: float,
    y: float,
    transform: AspectFitTransform,
    container_width: float,
    mirrored: bool = False,
) -> Point:
    """Video pixel -> display pixel. The offset is always applied."""
    dx = transform.offset_x + x * transform.scale_x
    dy = transform.offset_y + y * transform.scale_y
    if mirrored:
        dx = container_width - dx
    return (dx, dy)


def project_keypoints(
    frame: NormalizedFrame,
    transform: AspectFitTransform,
    content_width: float,
    content_height: float,
    container_width: float,
    mirrored: bool = False,
) -> dict[Landmark, Point]:
    """Display coordinates for every usable keypoint of the frame."""
    return {
        lm: to_display(
            kp.x * content_width,
            kp.y * content_height,
            transform,
            container_width,
            mirrored,
        )
        for lm, kp in frame.points.items()
    }
