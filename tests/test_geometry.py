import math

import pytest

from repguard.config import Config
from repguard.frame import Landmark
from repguard.geometry import (
    angle,
    aspect_fit_transform,
    distance,
    project_keypoints,
    to_display,
)
from repguard.normalize import normalize_frame

from poses import pushup_frame


def test_distance():
    assert distance((0.0, 0.0), (3.0, 4.0)) == pytest.approx(5.0)
    assert distance((0.2, 0.2), (0.2, 0.2)) == 0.0


def test_angle_right_and_straight():
    assert angle((1.0, 0.0), (0.0, 0.0), (0.0, 1.0)) == pytest.approx(90.0)
    assert angle((-1.0, 0.0), (0.0, 0.0), (1.0, 0.0)) == pytest.approx(180.0)
    assert angle((1.0, 0.0), (0.0, 0.0), (2.0, 0.0)) == pytest.approx(0.0)


def test_angle_coincident_points_is_undefined():
    assert angle((0.5, 0.5), (0.5, 0.5), (0.1, 0.2)) is None
    assert angle((0.1, 0.2), (0.5, 0.5), (0.5, 0.5)) is None
    assert angle(None, (0.5, 0.5), (0.1, 0.2)) is None


def test_cover_transform_wide_container():
    t = aspect_fit_transform(640, 480, 1280, 720)
    assert t.scale_x == t.scale_y == pytest.approx(2.0)
    assert t.offset_x == 0.0
    # 480 * 2 = 960 overflows 720; centered overflow is cropped evenly
    assert t.offset_y == pytest.approx((720 - 960) / 2)


def test_cover_transform_tall_container():
    t = aspect_fit_transform(640, 480, 360, 640)
    assert t.scale_x == t.scale_y == pytest.approx(640 / 480)
    assert t.offset_y == 0.0
    assert t.offset_x == pytest.approx((360 - 640 * (640 / 480)) / 2)


@pytest.mark.parametrize(
    "content,container",
    [
        ((640, 480), (1280, 720)),
        ((1280, 720), (640, 480)),
        ((1920, 1080), (390, 844)),
        ((480, 640), (1024, 768)),
        ((300, 100), (100, 300)),
    ],
)
def test_cover_transform_uniform_scale_and_single_offset(content, container):
    t = aspect_fit_transform(*content, *container)
    assert t.scale_x == t.scale_y
    assert (t.offset_x == 0.0) != (t.offset_y == 0.0)
    # the limiting axis exactly fills the container
    if t.offset_x == 0.0:
        assert content[0] * t.scale_x == pytest.approx(container[0])
    else:
        assert content[1] * t.scale_y == pytest.approx(container[1])


def test_cover_transform_rejects_empty_dimensions():
    with pytest.raises(ValueError):
        aspect_fit_transform(0, 480, 1280, 720)
    with pytest.raises(ValueError):
        aspect_fit_transform(640, 480, 1280, -1)


def test_display_mapping_applies_offset():
    t = aspect_fit_transform(640, 480, 1280, 720)
    x, y = to_display(320.0, 240.0, t, 1280)
    assert (x, y) == pytest.approx((t.offset_x + 320.0 * t.scale_x, t.offset_y + 240.0 * t.scale_y))
    assert (x, y) == pytest.approx((640.0, 360.0))
    # scaling without the offset lands 120px too low
    assert y != pytest.approx(240.0 * t.scale_y)


def test_display_mapping_mirrored():
    t = aspect_fit_transform(640, 480, 1280, 720)
    x, y = to_display(100.0, 240.0, t, 1280, mirrored=True)
    assert x == pytest.approx(1280 - 200.0)
    assert y == pytest.approx(360.0)


def test_project_keypoints_matches_offset_plus_scaled_position():
    frame = normalize_frame(pushup_frame(170.0), Config())
    t = aspect_fit_transform(640, 480, 1280, 720)
    points = project_keypoints(frame, t, 640, 480, 1280)
    assert set(points) == set(frame.points)
    for lm, kp in frame.points.items():
        expected = (t.offset_x + kp.x * 640 * t.scale_x, t.offset_y + kp.y * 480 * t.scale_y)
        assert points[lm] == pytest.approx(expected)


def test_project_keypoints_mirrors_every_point():
    frame = normalize_frame(pushup_frame(170.0), Config())
    t = aspect_fit_transform(640, 480, 1280, 720)
    plain = project_keypoints(frame, t, 640, 480, 1280)
    mirrored = project_keypoints(frame, t, 640, 480, 1280, mirrored=True)
    for lm in plain:
        assert mirrored[lm][0] == pytest.approx(1280 - plain[lm][0])
        assert mirrored[lm][1] == pytest.approx(plain[lm][1])
    # left shoulder (x=0.4) ends up right of centre once mirrored
    assert mirrored[Landmark.LEFT_SHOULDER][0] > 640


def test_synthetic_elbow_angles():
    frame = normalize_frame(pushup_frame(70.0, right_elbow_deg=150.0), Config())
    pts = frame.points
    left = angle(pts[Landmark.LEFT_SHOULDER].xy, pts[Landmark.LEFT_ELBOW].xy, pts[Landmark.LEFT_WRIST].xy)
    right = angle(pts[Landmark.RIGHT_SHOULDER].xy, pts[Landmark.RIGHT_ELBOW].xy, pts[Landmark.RIGHT_WRIST].xy)
    assert math.isclose(left, 70.0, abs_tol=1e-6)
    assert math.isclose(right, 150.0, abs_tol=1e-6)
