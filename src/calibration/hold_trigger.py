"""
Hold-to-trigger latch for the calibration button.

A press arms the latch only while no calibration is running. The
latch stays armed while the button is held and is consumed once a
calibration starts, so one long press never triggers twice.
"""

from __future__ import annotations

from enum import Enum


class LatchState(Enum):
    IDLE = "idle"
    ARMED = "armed"
    CONSUMED = "consumed"


class HoldTrigger:
    """IDLE -> ARMED -> CONSUMED latch driven by button edges."""

    def __init__(self):
        self.state = LatchState.IDLE

    def update(self, pressed: bool, released: bool, calibrating: bool) -> LatchState:
        """Apply one frame of button edges."""
        if pressed and not calibrating and self.state is LatchState.IDLE:
            self.state = LatchState.ARMED
        if released:
            self.state = LatchState.IDLE
        return self.state

    def is_ready(self, connected: bool, press_time: float, hold_time: float) -> bool:
        """An absent controller never blocks the other side."""
        if not connected:
            return True
        return self.state is LatchState.ARMED and press_time > hold_time

    def consume(self) -> None:
        if self.state is LatchState.ARMED:
            self.state = LatchState.CONSUMED

