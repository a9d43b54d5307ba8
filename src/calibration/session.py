"""
Calibration session state machine.

Owns the stage index of the guided calibration flow, the Full/Fast
calibration type and the hold-to-trigger latches of both controllers.
Everything runs inside tick(dt); transitions report EventType values
and notify the PresentationListener in a fixed order.

    Idle -> Running(0) -> ... -> Running(n-1) -> Completed

calibrate() restarts at Running(0) from any state. Losing a required
node aborts to Idle and shows the incorrect-set warning; resuming the
application forces a Full restart.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from shared.messages.calibration import ArmBindingResultMessage, CalibrationStatusMessage
from shared.messages.events import EventType
from src.calibration.angle_gate import AngleGate
from src.calibration.hold_trigger import HoldTrigger
from src.calibration.stages import ArmBindingStage, Stage, build_stages
from src.config.calibration_config import BindingSettings, SessionSettings
from src.interface.presentation import LoggingPresentation, PresentationListener
from src.interface.rig import CONTROLLER_NODES, Chirality, ControllerType, NodeType, Rig

logger = logging.getLogger("limbcal.session")


class CalibrationType(str, Enum):
    FULL = "full"
    FAST = "fast"


class SessionPhase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass(frozen=True)
class StageState:
    phase: SessionPhase
    index: Optional[int] = None

    @classmethod
    def idle(cls) -> StageState:
        return cls(SessionPhase.IDLE)

    @classmethod
    def running(cls, index: int) -> StageState:
        return cls(SessionPhase.RUNNING, index)

    @classmethod
    def completed(cls) -> StageState:
        return cls(SessionPhase.COMPLETED)


class CalibrationSession:
    """Drives the guided calibration flow for one rig."""

    def __init__(
        self,
        rig: Rig,
        presentation: Optional[PresentationListener] = None,
        angle_gate: Optional[AngleGate] = None,
        settings: Optional[SessionSettings] = None,
        binding_settings: Optional[BindingSettings] = None,
    ):
        self.rig = rig
        self.presentation = presentation or LoggingPresentation()
        self.angle_gate = angle_gate or AngleGate()
        self.settings = settings or SessionSettings()

        self._sequences: dict[CalibrationType, list[Stage]] = {
            CalibrationType.FULL: build_stages(self.settings.full_stages, binding_settings),
            CalibrationType.FAST: build_stages(self.settings.fast_stages, binding_settings),
        }
        self._configured_type = CalibrationType(self.settings.calibration_type)
        self._controller_type = ControllerType(self.settings.controller_type)
        self._calibration_type = CalibrationType.FULL
        self._stage = StageState.idle()
        self._active = False
        self._paused = False
        self._incorrect_set = False
        self._holds = {Chirality.LEFT: HoldTrigger(), Chirality.RIGHT: HoldTrigger()}
        self._last_binding: Optional[ArmBindingResultMessage] = None
        self._pending: list[EventType] = []

    # -- queries -----------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def stage(self) -> StageState:
        return self._stage

    @property
    def calibration_type(self) -> CalibrationType:
        return self._calibration_type

    @property
    def stages(self) -> list[Stage]:
        return self._sequences[self._calibration_type]

    @property
    def current_stage(self) -> Optional[Stage]:
        if self._stage.phase is not SessionPhase.RUNNING:
            return None
        return self.stages[self._stage.index]

    @property
    def incorrect_set_shown(self) -> bool:
        return self._incorrect_set

    @property
    def last_binding(self) -> Optional[ArmBindingResultMessage]:
        return self._last_binding

    def hold_trigger(self, side: Chirality) -> HoldTrigger:
        return self._holds[side]

    def status(self) -> CalibrationStatusMessage:
        stage = self.current_stage
        return CalibrationStatusMessage(
            phase=self._stage.phase.value,
            stage_index=self._stage.index,
            stage_id=stage.presentation_id if stage is not None else None,
            total_stages=len(self.stages),
            calibration_type=self._calibration_type.value,
            active=self._active,
            incorrect_set=self._incorrect_set,
            last_binding=self._last_binding,
            timestamp=time.time(),
        )

    # -- transitions -------------------------------------------------------

    def start(self) -> list[EventType]:
        """Hide every stage and, if configured, run a Full calibration."""
        self.presentation.deactivate_all()
        if self.settings.calibrate_on_start:
            return self.calibrate(CalibrationType.FULL)
        return []

    def calibrate(self, calibration_type: Union[CalibrationType, str, None] = None) -> list[EventType]:
        """Restart the flow at stage 0 with a fresh calibration type."""
        self._calibration_type = CalibrationType(calibration_type or self._configured_type)
        self._incorrect_set = False
        logger.info("Calibration requested (%s)", self._calibration_type.value)
        return self.load_step(0)

    def next_step(self) -> list[EventType]:
        """Advance past the running stage; no-op unless running."""
        if self._stage.phase is not SessionPhase.RUNNING:
            return []
        return self.load_step(self._stage.index + 1)

    def load_step(self, stage_id: int) -> list[EventType]:
        events: list[EventType] = []
        stage_id = max(stage_id, 0)
        stages = self.stages

        self._exit_current_stage()
        self.presentation.deactivate_all()

        if stage_id == 0:
            self._active = True
            self.presentation.on_session_start()
            events.append(EventType.CALIBRATION_STARTED)
        else:
            events.append(EventType.STAGE_PASSED)

        if stage_id >= len(stages):
            self._active = False
            self._stage = StageState.completed()
            self.presentation.on_session_end()
            events.append(EventType.CALIBRATION_ENDED)
            logger.info("Calibration finished (%s)", self._calibration_type.value)
            self._pending.extend(events)
            return events

        self._stage = StageState.running(stage_id)
        stage = stages[stage_id]
        self.presentation.activate_stage(stage.presentation_id, stage_id)
        events.append(EventType.STAGE_ENTERED)
        logger.debug("Stage %d entered: %s", stage_id, stage.presentation_id)
        self._pending.extend(events)

        if isinstance(stage, ArmBindingStage):
            stage.enter(self.rig)
            if stage.not_applicable(self.rig):
                events.extend(self._drive_binding(stage, 0.0))
        return events

    def _exit_current_stage(self) -> None:
        stage = self.current_stage
        if isinstance(stage, ArmBindingStage):
            stage.exit()

    # -- external events ---------------------------------------------------

    def on_node_disconnected(self, node: NodeType) -> list[EventType]:
        """Abort to Idle when the playable node set is no longer complete."""
        if self.rig.registry.all_playable_connected or self._incorrect_set:
            return []
        logger.warning(
            "Node %s disconnected during %s, aborting calibration",
            node.value,
            self._stage.phase.value,
        )
        self._exit_current_stage()
        self._active = False
        self._stage = StageState.idle()
        self.presentation.deactivate_all()
        self._incorrect_set = True
        self.presentation.show_incorrect_set()
        self._pending.append(EventType.INCORRECT_NODE_SET)
        return [EventType.INCORRECT_NODE_SET]

    def on_application_pause(self, paused: bool) -> None:
        """A pause invalidates calibration; the next tick restarts Full."""
        self._paused |= paused

    # -- per frame ---------------------------------------------------------

    def tick(self, dt: float) -> list[EventType]:
        """Run one frame: resume restart, hold latches, trigger, active stage."""
        self._pending = []

        if self._paused:
            self._paused = False
            logger.info("Application resumed, restarting full calibration")
            self._pending.append(EventType.ENVIRONMENT_SHIFT)
            self.calibrate(CalibrationType.FULL)

        self._update_pressing()
        self._try_calibrate()

        stage = self.current_stage
        if isinstance(stage, ArmBindingStage):
            self._drive_binding(stage, dt)

        events, self._pending = self._pending, []
        return events

    def _drive_binding(self, stage: ArmBindingStage, dt: float) -> list[EventType]:
        passed, events = stage.update(self.rig, self.presentation, dt)
        self._pending.extend(events)
        if passed:
            self._last_binding = stage.result
            events = events + self.load_step(self._stage.index + 1)
        return events

    def _update_pressing(self) -> None:
        inputs = self.rig.inputs
        for side, hold in self._holds.items():
            hold.update(inputs.button_down(side), inputs.button_up(side), self._active)

    def _side_ready(self, side: Chirality) -> bool:
        return self._holds[side].is_ready(
            self.rig.sensors.is_connected(CONTROLLER_NODES[side]),
            self.rig.inputs.press_time(side),
            self.settings.hold_time_s,
        )

    def _try_calibrate(self) -> None:
        sensors, inputs, registry = self.rig.sensors, self.rig.inputs, self.rig.registry
        left_ready = self._side_ready(Chirality.LEFT)
        right_ready = self._side_ready(Chirality.RIGHT)
        fast_configured = self._configured_type is CalibrationType.FAST and registry.all_playable_connected
        dash = self._controller_type is ControllerType.DASH

        if fast_configured and dash:
            for side, ready in ((Chirality.LEFT, left_ready), (Chirality.RIGHT, right_ready)):
                if ready and sensors.is_connected(CONTROLLER_NODES[side]):
                    inputs.haptic_pulse(side, self.settings.haptic_ms)
                    self.rig.roles.calibrate(side)
                    self._holds[side].consume()
                    self._pending.append(EventType.CONTROLLER_CALIBRATED)
                    logger.info("Controller %s calibrated instantly", side.value)
            return

        if sensors.controllers_count() == 0 or not (left_ready and right_ready) or self._active:
            return

        for hold in self._holds.values():
            hold.consume()
        self._reset_calibration()

        left_capacity_ok = (
            not sensors.is_connected(NodeType.LEFT_HAND)
            or sensors.capacity_hint(NodeType.LEFT_HAND) is Chirality.LEFT
        )
        right_capacity_ok = (
            not sensors.is_connected(NodeType.RIGHT_HAND)
            or sensors.capacity_hint(NodeType.RIGHT_HAND) is Chirality.RIGHT
        )
        momentary = left_capacity_ok and right_capacity_ok and self.angle_gate.is_angle_acceptable() and not dash

        if fast_configured and momentary:
            inputs.haptic_pulse(Chirality.LEFT, self.settings.haptic_ms)
            inputs.haptic_pulse(Chirality.RIGHT, self.settings.haptic_ms)
            self.rig.roles.calibrate(Chirality.BOTH)
            self._pending.append(EventType.MOMENTARY_CALIBRATION)
            logger.info("Momentary calibration performed")
            return

        all_connected = registry.all_playable_connected
        if not all_connected:
            registry.reset_saved_set()
        self.calibrate(self._configured_type if all_connected else CalibrationType.FULL)

    def _reset_calibration(self) -> None:
        """Reset calibration for both sides, keeping upper-arm reverts."""
        roles = self.rig.roles
        reverted = [side for side in (Chirality.LEFT, Chirality.RIGHT) if roles.is_upper_arm_reverted(side)]
        roles.reset_calibration(Chirality.BOTH)
        for side in reverted:
            roles.revert_upper_arm(side)
        self.angle_gate.update(self.rig.sensors)
