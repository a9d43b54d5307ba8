"""Pydantic message schemas for calibration status reporting."""

from shared.messages.events import EventType
from shared.messages.calibration import ArmBindingResultMessage, CalibrationStatusMessage
