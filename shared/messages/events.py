"""Event type definitions for calibration session ticks."""

from enum import Enum


class EventType(str, Enum):
    """Events reported by CalibrationSession.tick() and its transitions."""

    # Session lifecycle
    CALIBRATION_STARTED = "calibration.started"
    CALIBRATION_ENDED = "calibration.ended"
    STAGE_ENTERED = "calibration.stage_entered"
    STAGE_PASSED = "calibration.stage_passed"

    # Momentary calibration shortcuts
    MOMENTARY_CALIBRATION = "calibration.momentary"
    CONTROLLER_CALIBRATED = "calibration.controller"

    # Upper-arm binding
    BINDING_COMMITTED = "binding.committed"
    BINDING_PARTIAL = "binding.partial"
    BINDING_WARNING = "binding.warning"
    BINDING_EXPIRED = "binding.expired"
    BINDING_MANUAL = "binding.manual"

    # Faults
    INCORRECT_NODE_SET = "calibration.incorrect_set"
    ENVIRONMENT_SHIFT = "calibration.environment_shift"
