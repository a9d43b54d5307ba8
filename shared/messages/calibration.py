"""Pydantic models for calibration status and result messages."""

from typing import Optional

from pydantic import BaseModel, Field


class ArmBindingResultMessage(BaseModel):
    """Outcome of the upper-arm binding stage."""

    swap_left_right: bool = Field(default=False, description="Upper-arm roles were swapped")
    revert_left: bool = Field(default=False, description="Left upper-arm frame was reverted")
    revert_right: bool = Field(default=False, description="Right upper-arm frame was reverted")
    bypassed: bool = Field(
        default=False, description="Fewer than two upper arms, classification skipped"
    )
    manual: bool = Field(default=False, description="Chirality was bound by a button press")
    attempts: int = Field(default=0, ge=0, description="Binding windows started")
    duration_s: float = Field(default=0.0, ge=0.0, description="Time spent in the binding stage")
    timestamp: float = Field(description="Unix timestamp")


class CalibrationStatusMessage(BaseModel):
    """Snapshot of a calibration session."""

    phase: str = Field(description="Phase: idle, running, completed")
    stage_index: Optional[int] = Field(default=None, description="Running stage index")
    stage_id: Optional[str] = Field(default=None, description="Running stage presentation id")
    total_stages: int = Field(default=0, ge=0, description="Stages in the selected sequence")
    calibration_type: str = Field(description="Type: full, fast")
    active: bool = Field(description="Whether the calibration module is active")
    incorrect_set: bool = Field(default=False, description="Incorrect node set warning shown")
    last_binding: Optional[ArmBindingResultMessage] = Field(
        default=None, description="Result of the most recent binding stage"
    )
    timestamp: float = Field(description="Unix timestamp")
