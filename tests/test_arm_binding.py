"""Tests for the upper-arm binding classifier."""

import pytest

from src.calibration.arm_binding import (
    ArmBindingAccumulator,
    ArmBindingClassifier,
    BindingPrompt,
    VerdictKind,
    WarningKind,
)
from src.config.calibration_config import BindingSettings
from src.interface.rig import Chirality, NodeSample
from src.simulation import gestures

DT = 1.0 / 60.0


def _level(side):
    return gestures.still(side, raw=gestures.level())


def _run_until(classifier, left, right, dt=DT, kinds=(VerdictKind.COMMIT,), max_frames=600):
    """Feed frames until a verdict of one of *kinds*; left/right map frame -> sample."""
    for frame in range(max_frames):
        verdict = classifier.update(left(frame), right(frame), dt)
        if verdict.kind in kinds:
            return frame, verdict
    pytest.fail(f"no verdict in {kinds} after {max_frames} frames")


@pytest.fixture
def classifier():
    c = ArmBindingClassifier(BindingSettings())
    c.start(upper_arm_count=2)
    return c


class TestAccumulator:
    def test_rejects_non_lateral_side(self, binding_settings):
        with pytest.raises(ValueError):
            ArmBindingAccumulator(Chirality.BOTH, binding_settings)

    def test_shake_counts_reversals(self, binding_settings):
        acc = ArmBindingAccumulator(Chirality.RIGHT, binding_settings)
        for sample in gestures.shake_stream(Chirality.RIGHT, 10):
            acc.update(sample)
        assert acc.tremble_count == 9

    def test_slow_drift_below_border_is_ignored(self, binding_settings):
        acc = ArmBindingAccumulator(Chirality.RIGHT, binding_settings)
        for frame in range(20):
            acc.update(gestures.shaking(Chirality.RIGHT, frame, amplitude=2.0))
        assert acc.tremble_count == 0

    def test_hanging_arm_fills_below_bucket(self, binding_settings):
        acc = ArmBindingAccumulator(Chirality.LEFT, binding_settings)
        for sample in gestures.still_stream(Chirality.LEFT, 5):
            acc.update(sample)
        assert acc.side_below_zero == pytest.approx(5.0)
        assert acc.side_above_zero == 0.0
        assert acc.direction_pass is True
        assert acc.revert_orientation is False

    def test_mirrored_mount_reads_as_reverted(self, binding_settings):
        acc = ArmBindingAccumulator(Chirality.RIGHT, binding_settings)
        for sample in gestures.still_stream(Chirality.RIGHT, 5, raw=gestures.hanging(mirrored=True)):
            acc.update(sample)
        assert acc.direction_pass is True
        assert acc.revert_orientation is True

    def test_horizontal_arm_is_skipped(self, binding_settings):
        acc = ArmBindingAccumulator(Chirality.LEFT, binding_settings)
        for _ in range(5):
            acc.update(_level(Chirality.LEFT))
        assert acc.side_above_zero == 0.0
        assert acc.side_below_zero == 0.0
        assert acc.direction_pass is False

    def test_reset_is_neutral(self, binding_settings):
        acc = ArmBindingAccumulator(Chirality.RIGHT, binding_settings)
        for sample in gestures.shake_stream(Chirality.RIGHT, 12, raw=gestures.raised()):
            acc.update(sample)
        assert acc.tremble_count > 0
        acc.reset()
        assert acc.tremble_count == 0
        assert acc.last_acceleration == 0.0
        assert acc.direction_up is False
        assert acc.direction_pass is False
        assert acc.revert_orientation is False


class TestPredicates:
    def test_neutral_after_reset(self, classifier):
        for frame in range(8):
            classifier.left.update(gestures.shaking(Chirality.LEFT, frame))
        classifier.left.reset()
        classifier.right.reset()
        assert classifier.left_dominates() is False
        assert classifier.right_dominates() is False
        assert classifier.tremble_detected() is False

    def test_tremble_needs_min_shake_count(self, classifier):
        for frame in range(5):
            classifier.left.update(gestures.shaking(Chirality.LEFT, frame))
        assert classifier.left.tremble_count == 4
        assert classifier.left_dominates() is True
        assert classifier.tremble_detected() is False
        classifier.left.update(gestures.shaking(Chirality.LEFT, 5))
        assert classifier.tremble_detected() is True

    def test_equal_shaking_does_not_dominate(self, classifier):
        for frame in range(10):
            classifier.left.update(gestures.shaking(Chirality.LEFT, frame))
            classifier.right.update(gestures.shaking(Chirality.RIGHT, frame))
        assert classifier.tremble_detected() is False


class TestCommit:
    def test_left_shake_commits_with_swap(self, classifier):
        frame, verdict = _run_until(
            classifier,
            lambda f: gestures.shaking(Chirality.LEFT, f),
            lambda f: gestures.still(Chirality.RIGHT),
        )
        assert verdict.swap_left_right is True
        assert verdict.revert_left is False
        assert verdict.revert_right is False
        # early tremble evaluation, well inside the shake window
        assert frame * DT < classifier.settings.shake_window_s
        assert classifier.attempt is None
        assert classifier.last_attempt.attempt_number == 1

    def test_right_shake_commits_without_swap(self, classifier):
        _, verdict = _run_until(
            classifier,
            lambda f: gestures.still(Chirality.LEFT),
            lambda f: gestures.shaking(Chirality.RIGHT, f),
        )
        assert verdict.swap_left_right is False

    def test_swap_moves_revert_to_other_role(self, classifier):
        mirrored = gestures.hanging(mirrored=True)
        _, verdict = _run_until(
            classifier,
            lambda f: gestures.shaking(Chirality.LEFT, f),
            lambda f: gestures.still(Chirality.RIGHT, raw=mirrored),
        )
        assert verdict.swap_left_right is True
        assert verdict.revert_left is True
        assert verdict.revert_right is False

    def test_revert_without_swap(self, classifier):
        mirrored = gestures.hanging(mirrored=True)
        _, verdict = _run_until(
            classifier,
            lambda f: gestures.still(Chirality.LEFT, raw=mirrored),
            lambda f: gestures.shaking(Chirality.RIGHT, f),
        )
        assert verdict.swap_left_right is False
        assert verdict.revert_left is True
        assert verdict.revert_right is False

    def test_no_connected_nodes_commits_immediately(self):
        classifier = ArmBindingClassifier()
        verdict = classifier.update(None, None, DT)
        assert verdict.kind is VerdictKind.COMMIT
        assert (verdict.swap_left_right, verdict.revert_left, verdict.revert_right) == (False, False, False)
        assert classifier.attempt is None

    def test_single_node_start_runs_arms_down_window(self):
        classifier = ArmBindingClassifier()
        attempt = classifier.start(upper_arm_count=1)
        settings = classifier.settings
        assert attempt.already_bound_by_single_node is True
        assert attempt.chirality_locked is True
        assert attempt.time_remaining == pytest.approx(settings.arms_down_window_s + settings.error_window_s)
        assert classifier.prompt is BindingPrompt.ARMS_DOWN

    @pytest.mark.parametrize("side", [Chirality.LEFT, Chirality.RIGHT])
    def test_single_node_commits_after_arms_down_window(self, side):
        classifier = ArmBindingClassifier()
        classifier.start(upper_arm_count=1)
        sample = gestures.still(side)
        left = sample if side is Chirality.LEFT else None
        right = sample if side is Chirality.RIGHT else None

        verdict = classifier.update(left, right, DT)
        assert verdict.kind is VerdictKind.COLLECTING

        frame, verdict = _run_until(classifier, lambda f: left, lambda f: right)
        assert (frame + 2) * DT == pytest.approx(classifier.settings.arms_down_window_s, abs=2 * DT)
        assert (verdict.swap_left_right, verdict.revert_left, verdict.revert_right) == (False, False, False)

    def test_single_mirrored_node_is_reverted(self):
        classifier = ArmBindingClassifier()
        classifier.start(upper_arm_count=1)
        mirrored = gestures.still(Chirality.RIGHT, raw=gestures.hanging(mirrored=True))
        _, verdict = _run_until(classifier, lambda f: None, lambda f: mirrored)
        assert verdict.swap_left_right is False
        assert verdict.revert_left is False
        assert verdict.revert_right is True

    def test_single_node_shake_does_not_swap(self):
        classifier = ArmBindingClassifier()
        classifier.start(upper_arm_count=1)
        _, verdict = _run_until(classifier, lambda f: gestures.shaking(Chirality.LEFT, f), lambda f: None)
        assert verdict.swap_left_right is False

    def test_single_lowered_but_level_node_warns_lower_arms(self):
        classifier = ArmBindingClassifier()
        classifier.start(upper_arm_count=1)
        _, verdict = _run_until(
            classifier,
            lambda f: _level(Chirality.LEFT),
            lambda f: None,
            dt=0.5,
            kinds=(VerdictKind.WARN, VerdictKind.COMMIT),
        )
        assert verdict.kind is VerdictKind.WARN
        assert verdict.warning is WarningKind.LOWER_ARMS

    def test_node_dropping_mid_attempt_restarts_arms_down_window(self, classifier):
        for frame in range(5):
            classifier.update(gestures.shaking(Chirality.LEFT, frame), gestures.still(Chirality.RIGHT), DT)
        verdict = classifier.update(gestures.still(Chirality.LEFT), None, DT)
        assert verdict.kind is VerdictKind.COLLECTING
        attempt = classifier.attempt
        settings = classifier.settings
        assert attempt.already_bound_by_single_node is True
        assert attempt.time_remaining == pytest.approx(settings.arms_down_window_s + settings.error_window_s - DT)

        frame, verdict = _run_until(classifier, lambda f: gestures.still(Chirality.LEFT), lambda f: None)
        assert frame > 0
        assert verdict.swap_left_right is False


class TestPartialAndManual:
    def test_shake_without_lowered_arms_locks_chirality(self, classifier):
        _, verdict = _run_until(
            classifier,
            lambda f: gestures.shaking(Chirality.LEFT, f, raw=gestures.level()),
            lambda f: _level(Chirality.RIGHT),
            kinds=(VerdictKind.COMMIT, VerdictKind.WARN),
        )
        assert verdict.kind is VerdictKind.WARN
        assert verdict.warning is WarningKind.PARTIAL
        assert verdict.swap_left_right is True
        attempt = classifier.attempt
        assert attempt.chirality_locked is True
        assert attempt.attempt_number == 2
        assert attempt.time_remaining == pytest.approx(
            classifier.settings.shake_window_s + classifier.settings.error_window_s
        )
        assert classifier.left.tremble_count == 0
        assert classifier.prompt is BindingPrompt.ARMS_DOWN

    def test_lowering_arms_after_partial_commits_without_swap(self, classifier):
        _run_until(
            classifier,
            lambda f: gestures.shaking(Chirality.LEFT, f, raw=gestures.level()),
            lambda f: _level(Chirality.RIGHT),
            kinds=(VerdictKind.WARN,),
        )
        frame, verdict = _run_until(
            classifier,
            lambda f: gestures.still(Chirality.LEFT),
            lambda f: gestures.still(Chirality.RIGHT),
        )
        assert verdict.swap_left_right is False
        # committed once the fresh two-node window ran out
        assert (frame + 1) * DT == pytest.approx(classifier.settings.shake_window_s, abs=2 * DT)

    def test_manual_press_on_left_slot_requests_swap(self, classifier):
        assert classifier.manual_bind(left_pressed=True, right_pressed=False) is True
        attempt = classifier.attempt
        assert attempt.chirality_locked is True
        assert attempt.attempt_number == 2

    def test_manual_press_on_right_slot_keeps_roles(self, classifier):
        assert classifier.manual_bind(left_pressed=False, right_pressed=True) is False
        assert classifier.attempt.chirality_locked is True

    def test_no_press_is_a_no_op(self, classifier):
        assert classifier.manual_bind(False, False) is False
        assert classifier.attempt.chirality_locked is False

    def test_second_press_does_not_restart_window(self, classifier):
        classifier.manual_bind(True, False)
        classifier.update(gestures.still(Chirality.LEFT), gestures.still(Chirality.RIGHT), DT)
        remaining = classifier.attempt.time_remaining
        classifier.manual_bind(True, False)
        assert classifier.attempt.time_remaining == remaining
        assert classifier.attempt.attempt_number == 2

    def test_manual_lock_then_arms_down_commits(self, classifier):
        classifier.manual_bind(False, True)
        _, verdict = _run_until(
            classifier,
            lambda f: gestures.still(Chirality.LEFT),
            lambda f: gestures.still(Chirality.RIGHT, raw=gestures.hanging(mirrored=True)),
        )
        assert verdict.swap_left_right is False
        assert verdict.revert_right is True


class TestWarningsAndExpiry:
    def test_no_shake_warns_shake_harder(self, classifier):
        _, verdict = _run_until(
            classifier,
            lambda f: _level(Chirality.LEFT),
            lambda f: _level(Chirality.RIGHT),
            dt=0.5,
            kinds=(VerdictKind.WARN,),
        )
        assert verdict.warning is WarningKind.SHAKE_HARDER
        assert classifier.last_warning is WarningKind.SHAKE_HARDER
        assert classifier.prompt is BindingPrompt.WARNING

    def test_both_arms_shaking_warns_ambiguous(self, classifier):
        _, verdict = _run_until(
            classifier,
            lambda f: gestures.shaking(Chirality.LEFT, f),
            lambda f: gestures.shaking(Chirality.RIGHT, f),
            dt=0.1,
            kinds=(VerdictKind.WARN, VerdictKind.COMMIT),
        )
        assert verdict.kind is VerdictKind.WARN
        assert verdict.warning is WarningKind.AMBIGUOUS_SHAKE

    def test_locked_without_lowered_arms_warns_lower_arms(self, classifier):
        classifier.manual_bind(True, False)
        _, verdict = _run_until(
            classifier,
            lambda f: _level(Chirality.LEFT),
            lambda f: _level(Chirality.RIGHT),
            dt=0.5,
            kinds=(VerdictKind.WARN, VerdictKind.COMMIT),
        )
        assert verdict.kind is VerdictKind.WARN
        assert verdict.warning is WarningKind.LOWER_ARMS

    def test_expiry_restarts_fresh_window(self, classifier):
        settings = classifier.settings
        verdicts = []
        for _ in range(20):
            verdict = classifier.update(_level(Chirality.LEFT), _level(Chirality.RIGHT), 0.5)
            verdicts.append(verdict.kind)
            if verdict.kind is VerdictKind.EXPIRED:
                break
        assert verdicts[-1] is VerdictKind.EXPIRED
        assert verdicts.count(VerdictKind.WARN) == 1
        attempt = classifier.attempt
        assert attempt.attempt_number == 2
        assert attempt.waiting_for_result is False
        assert attempt.time_remaining == pytest.approx(settings.shake_window_s + settings.error_window_s)
        assert classifier.left.side_above_zero == 0.0
        assert classifier.right.tremble_count == 0

        verdict = classifier.update(_level(Chirality.LEFT), _level(Chirality.RIGHT), 0.5)
        assert verdict.kind is VerdictKind.COLLECTING

    def test_expiry_on_warning_frame_carries_warning(self, classifier):
        classifier.update(_level(Chirality.LEFT), _level(Chirality.RIGHT), 0.1)
        verdict = classifier.update(_level(Chirality.LEFT), _level(Chirality.RIGHT), 10.0)
        assert verdict.kind is VerdictKind.EXPIRED
        assert verdict.warning is WarningKind.SHAKE_HARDER


class TestFrameTiming:
    def test_zero_dt_changes_nothing(self, classifier):
        left = gestures.shaking(Chirality.LEFT, 1)
        right = gestures.still(Chirality.RIGHT)
        remaining = classifier.attempt.time_remaining
        for _ in range(2):
            verdict = classifier.update(left, right, 0.0)
            assert verdict.kind is VerdictKind.COLLECTING
        assert classifier.attempt.time_remaining == remaining
        assert classifier.left.tremble_count == 0
        assert classifier.left.side_below_zero == 0.0
        assert classifier.right.side_below_zero == 0.0

    def test_update_without_start_begins_attempt(self):
        classifier = ArmBindingClassifier()
        verdict = classifier.update(gestures.still(Chirality.LEFT), gestures.still(Chirality.RIGHT), DT)
        assert verdict.kind is VerdictKind.COLLECTING
        assert classifier.attempt.attempt_number == 1

    def test_cancel_drops_attempt(self, classifier):
        classifier.cancel()
        assert classifier.attempt is None
        assert classifier.prompt is None


def test_invalid_settings_raise():
    with pytest.raises(ValueError):
        BindingSettings(shake_window_s=0.0)
    with pytest.raises(ValueError):
        BindingSettings(acceleration_ratio=-1.0)
    with pytest.raises(ValueError):
        BindingSettings(min_shake_count=-1)


def test_node_sample_normalizes_orientation():
    sample = NodeSample(acceleration=[0.0, 9.8, 0.0], orientation=[0.0, 0.0, 0.0, 3.0])
    assert sample.orientation[3] == pytest.approx(1.0)
