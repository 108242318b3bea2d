import pytest

from repguard.config import Config
from repguard.constraints import (
    ORIENTATION,
    PLANK,
    STANDING,
    SYMMETRY,
    Outcome,
    Reason,
    evaluate_constraints,
    plank_alignment,
    shoulder_width,
    standing_rejection,
    wrist_orientation,
    wrist_symmetry,
)
from repguard.frame import Landmark
from repguard.normalize import normalize_frame

from poses import pushup_frame, standing_frame, wide_plank_frame

CFG = Config()


def _norm(frame, config=CFG):
    return normalize_frame(frame, config)


def test_good_pushup_passes_everything():
    verdict = evaluate_constraints(_norm(pushup_frame(170.0)), CFG)
    assert verdict.passed
    assert not verdict.hard_failure
    assert verdict.failed == ()
    assert verdict.indeterminate == ()
    assert [v.name for v in verdict.verdicts] == [PLANK, STANDING, ORIENTATION, SYMMETRY]


def test_shoulder_width_is_the_scale():
    assert shoulder_width(_norm(pushup_frame(170.0))) == pytest.approx(0.2)
    v = plank_alignment(_norm(pushup_frame(170.0)), CFG)
    # wrist-hip distance 0.05 / shoulder width 0.2
    assert v.ratios["left_wrist_hip"] == pytest.approx(0.25)
    assert v.ratios["right_wrist_hip"] == pytest.approx(0.25)


def test_scale_invariance():
    """Same pose at half the size gives the same ratios and outcome."""
    small = pushup_frame(
        170.0,
        shoulders=((0.45, 0.5), (0.55, 0.5)),
        hips=((0.45, 0.525), (0.55, 0.525)),
        wrists=((0.45, 0.55), (0.55, 0.55)),
    )
    big = plank_alignment(_norm(pushup_frame(170.0)), CFG)
    v = plank_alignment(_norm(small), CFG)
    assert v.passed and big.passed
    assert v.ratios["left_wrist_hip"] == pytest.approx(big.ratios["left_wrist_hip"])


def test_plank_fails_when_both_wrists_far_from_hips():
    v = plank_alignment(_norm(wide_plank_frame(170.0)), CFG)
    assert v.outcome is Outcome.FAILED
    assert v.reason is Reason.NOT_IN_PLANK
    assert v.ratios["left_wrist_hip"] == pytest.approx(2.0)
    assert v.ratios["right_wrist_hip"] == pytest.approx(2.0)


@pytest.mark.parametrize("dx", [0.31, 0.35, 0.4])
def test_plank_fails_whenever_both_distances_exceed_limit(dx):
    frame = pushup_frame(170.0, hips=((0.4 - dx, 0.6), (0.6 + dx, 0.6)))
    v = plank_alignment(_norm(frame), CFG)
    assert v.ratios["left_wrist_hip"] > 1.5
    assert v.ratios["right_wrist_hip"] > 1.5
    assert v.failed


def test_plank_one_side_far_is_enough_to_fail():
    frame = pushup_frame(170.0, hips=((0.4, 0.55), (1.0, 0.6)))
    v = plank_alignment(_norm(frame), CFG)
    assert v.ratios["left_wrist_hip"] <= 1.5
    assert v.failed


def test_standing_detected():
    v = standing_rejection(_norm(standing_frame(170.0)), CFG)
    assert v.failed
    assert v.reason is Reason.STANDING
    assert v.ratios["shoulder_hip_vertical"] == pytest.approx(2.0)
    verdict = evaluate_constraints(_norm(standing_frame(170.0)), CFG)
    assert verdict.hard_failure
    assert not verdict.passed


def test_wrists_above_shoulders_fail_orientation():
    frame = pushup_frame(170.0, wrists=((0.4, 0.4), (0.6, 0.4)))
    v = wrist_orientation(_norm(frame), CFG)
    assert v.failed
    assert v.reason is Reason.WRISTS_ABOVE_SHOULDERS
    assert v.ratios["wrist_shoulder_vertical"] == pytest.approx(-0.5)
    assert evaluate_constraints(_norm(frame), CFG).hard_failure


def test_wrists_level_with_shoulders_pass_orientation():
    frame = pushup_frame(170.0, wrists=((0.3, 0.5), (0.7, 0.5)))
    assert wrist_orientation(_norm(frame), CFG).passed


# Shoulder width 0.25 and 40 cm assumed width give exactly 160 cm per unit.
_SYM_SHOULDERS = ((0.375, 0.5), (0.625, 0.5))


def _symmetry_frame(right_wrist_y: float):
    return pushup_frame(
        170.0,
        shoulders=_SYM_SHOULDERS,
        hips=((0.375, 0.55), (0.625, 0.55)),
        wrists=((0.375, 0.625), (0.625, right_wrist_y)),
    )


def test_symmetry_exactly_at_limit_passes():
    # (0.71875 - 0.625) * 160 == 15.0
    v = wrist_symmetry(_norm(_symmetry_frame(0.71875)), CFG)
    assert v.ratios["cm_per_unit"] == 160.0
    assert v.ratios["offset_diff_cm"] == 15.0
    assert v.passed


def test_symmetry_just_over_limit_fails():
    v = wrist_symmetry(_norm(_symmetry_frame(0.625 + 15.01 / 160.0)), CFG)
    assert v.ratios["offset_diff_cm"] == pytest.approx(15.01)
    assert v.failed
    assert v.reason is Reason.ASYMMETRIC_WRISTS


def test_symmetry_failure_is_not_hard():
    verdict = evaluate_constraints(_norm(_symmetry_frame(0.8)), CFG)
    assert not verdict.passed
    assert verdict.failed == (SYMMETRY,)
    assert not verdict.hard_failure


def test_low_confidence_is_indeterminate_not_failed():
    frame = pushup_frame(170.0, low_confidence=(Landmark.LEFT_HIP,))
    verdict = evaluate_constraints(_norm(frame), CFG)
    plank = verdict.get(PLANK)
    assert plank.outcome is Outcome.INDETERMINATE
    assert plank.reason is Reason.LOW_CONFIDENCE
    assert not plank.passed and not plank.failed
    assert verdict.get(ORIENTATION).passed
    assert set(verdict.indeterminate) == {PLANK, STANDING}
    assert not verdict.passed
    assert not verdict.hard_failure


def test_missing_shoulder_makes_everything_indeterminate():
    frame = pushup_frame(170.0, low_confidence=(Landmark.RIGHT_SHOULDER,))
    verdict = evaluate_constraints(_norm(frame), CFG)
    assert len(verdict.indeterminate) == 4


def test_coincident_shoulders_are_degenerate():
    frame = pushup_frame(170.0, shoulders=((0.5, 0.5), (0.5, 0.5)))
    verdict = evaluate_constraints(_norm(frame), CFG)
    assert all(v.reason is Reason.DEGENERATE_GEOMETRY for v in verdict.verdicts)
    assert all(v.indeterminate for v in verdict.verdicts)


def test_ratios_are_read_only():
    v = plank_alignment(_norm(pushup_frame(170.0)), CFG)
    with pytest.raises(TypeError):
        v.ratios["limit"] = 99.0


def test_first_problem_prefers_hard_failure():
    frame = pushup_frame(170.0, wrists=((0.4, 0.4), (0.6, 0.45)), low_confidence=(Landmark.LEFT_HIP,))
    verdict = evaluate_constraints(_norm(frame), CFG)
    assert verdict.first_problem().name == ORIENTATION
    assert "wrist_orientation.wrist_shoulder_vertical" in verdict.ratios
