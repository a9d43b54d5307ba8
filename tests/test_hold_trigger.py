"""Tests for the hold-to-trigger latch."""

from src.calibration.hold_trigger import HoldTrigger, LatchState


class TestHoldTrigger:
    def test_press_arms_when_idle(self):
        hold = HoldTrigger()
        assert hold.update(pressed=True, released=False, calibrating=False) is LatchState.ARMED
        assert hold.state is LatchState.ARMED

    def test_press_ignored_while_calibrating(self):
        hold = HoldTrigger()
        hold.update(pressed=True, released=False, calibrating=True)
        assert hold.state is LatchState.IDLE

    def test_release_returns_to_idle(self):
        hold = HoldTrigger()
        hold.update(True, False, False)
        hold.consume()
        assert hold.state is LatchState.CONSUMED
        hold.update(False, True, False)
        assert hold.state is LatchState.IDLE

    def test_consumed_press_cannot_rearm_until_released(self):
        hold = HoldTrigger()
        hold.update(True, False, False)
        hold.consume()
        hold.update(True, False, False)
        assert hold.state is LatchState.CONSUMED

    def test_consume_when_idle_is_no_op(self):
        hold = HoldTrigger()
        hold.consume()
        assert hold.state is LatchState.IDLE


class TestReadiness:
    def test_absent_controller_is_ready(self):
        assert HoldTrigger().is_ready(connected=False, press_time=0.0, hold_time=0.3) is True

    def test_needs_hold_longer_than_threshold(self):
        hold = HoldTrigger()
        hold.update(True, False, False)
        assert hold.is_ready(True, press_time=0.3, hold_time=0.3) is False
        assert hold.is_ready(True, press_time=0.31, hold_time=0.3) is True

    def test_consumed_is_not_ready(self):
        hold = HoldTrigger()
        hold.update(True, False, False)
        hold.consume()
        assert hold.is_ready(True, press_time=5.0, hold_time=0.3) is False
