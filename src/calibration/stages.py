"""
Calibration stage variants.

A stage sequence mixes plain presentation stages, which the tutorial UI
completes by calling CalibrationSession.next_step(), with the single
algorithmic upper-arm binding stage that the session drives every frame.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from shared.messages.calibration import ArmBindingResultMessage
from shared.messages.events import EventType
from src.calibration.arm_binding import ArmBindingClassifier, VerdictKind, WarningKind
from src.config.calibration_config import ARM_BINDING_STAGE, BindingSettings
from src.interface.presentation import PresentationListener
from src.interface.rig import Chirality, NodeType, Rig

logger = logging.getLogger("limbcal.stages")


@dataclass(frozen=True)
class GenericStage:
    """Presentation-only stage."""

    presentation_id: str


@dataclass
class ArmBindingStage:
    """Upper-arm chirality and orientation binding."""

    presentation_id: str = ARM_BINDING_STAGE
    classifier: ArmBindingClassifier = field(default_factory=ArmBindingClassifier)
    result: Optional[ArmBindingResultMessage] = None
    _manual: bool = field(default=False, repr=False)
    _elapsed_s: float = field(default=0.0, repr=False)

    def enter(self, rig: Rig) -> None:
        """Clear previous binding and start a fresh classifier attempt."""
        roles, sensors = rig.roles, rig.sensors

        for side in (Chirality.LEFT, Chirality.RIGHT):
            if roles.is_upper_arm_reverted(side):
                roles.revert_upper_arm(side)
            roles.reset_calibration(side)

        # a lone upper arm belongs to the side of the lone controller
        right_mismatch = sensors.is_connected(NodeType.RIGHT_HAND) and sensors.is_connected(NodeType.LEFT_UPPER_ARM)
        left_mismatch = sensors.is_connected(NodeType.LEFT_HAND) and sensors.is_connected(NodeType.RIGHT_UPPER_ARM)
        lone_pair = sensors.upper_arm_count() == 1 and sensors.controllers_count() == 1
        if lone_pair and (right_mismatch or left_mismatch):
            roles.swap_roles(NodeType.LEFT_UPPER_ARM, NodeType.RIGHT_UPPER_ARM)

        self.result = None
        self._manual = False
        self._elapsed_s = 0.0
        self.classifier.start(sensors.upper_arm_count())

    def exit(self) -> None:
        self.classifier.cancel()

    @staticmethod
    def not_applicable(rig: Rig) -> bool:
        upper_arms = rig.sensors.upper_arm_count()
        return upper_arms == 0 or upper_arms < rig.sensors.controllers_count()

    def update(self, rig: Rig, presentation: PresentationListener, dt: float) -> tuple[bool, list[EventType]]:
        """Drive one frame. Returns (stage passed, events)."""
        events: list[EventType] = []
        self._elapsed_s += max(dt, 0.0)

        if self.not_applicable(rig):
            self.classifier.cancel()
            self._bind(rig, bypassed=True)
            return True, events

        roles, sensors, inputs = rig.roles, rig.sensors, rig.inputs

        left_pressed = inputs.node_button_down(NodeType.LEFT_UPPER_ARM)
        right_pressed = inputs.node_button_down(NodeType.RIGHT_UPPER_ARM)
        if left_pressed or right_pressed:
            self._manual = True
            events.append(EventType.BINDING_MANUAL)
            if self.classifier.manual_bind(left_pressed, right_pressed):
                roles.swap_roles(NodeType.LEFT_UPPER_ARM, NodeType.RIGHT_UPPER_ARM)

        verdict = self.classifier.update(
            sensors.sample(NodeType.LEFT_UPPER_ARM) if sensors.is_connected(NodeType.LEFT_UPPER_ARM) else None,
            sensors.sample(NodeType.RIGHT_UPPER_ARM) if sensors.is_connected(NodeType.RIGHT_UPPER_ARM) else None,
            dt,
        )
        presentation.show_prompt(self.classifier.prompt)

        if verdict.is_commit:
            # reverts are per role, so order relative to the swap does not matter
            if verdict.revert_left:
                roles.revert_upper_arm(Chirality.LEFT)
            if verdict.revert_right:
                roles.revert_upper_arm(Chirality.RIGHT)
            if verdict.swap_left_right:
                roles.swap_roles(NodeType.LEFT_UPPER_ARM, NodeType.RIGHT_UPPER_ARM)
            self._bind(
                rig,
                swap_left_right=verdict.swap_left_right,
                revert_left=verdict.revert_left,
                revert_right=verdict.revert_right,
            )
            events.append(EventType.BINDING_COMMITTED)
            return True, events

        if verdict.kind is VerdictKind.WARN:
            if verdict.warning is WarningKind.PARTIAL:
                if verdict.swap_left_right:
                    roles.swap_roles(NodeType.LEFT_UPPER_ARM, NodeType.RIGHT_UPPER_ARM)
                events.append(EventType.BINDING_PARTIAL)
            else:
                events.append(EventType.BINDING_WARNING)
            presentation.show_warning(verdict.warning)
        elif verdict.kind is VerdictKind.EXPIRED:
            if verdict.warning is not None:
                events.append(EventType.BINDING_WARNING)
                presentation.show_warning(verdict.warning)
            events.append(EventType.BINDING_EXPIRED)

        return False, events

    def _bind(self, rig: Rig, bypassed: bool = False, **flags: bool) -> None:
        rig.roles.bind_upper_arms()
        controllers = rig.sensors.controllers_count()
        upper_arms = rig.sensors.upper_arm_count()
        rig.registry.remember_nodes(controllers, 0 if controllers > upper_arms else controllers)

        attempt = self.classifier.last_attempt
        self.result = ArmBindingResultMessage(
            bypassed=bypassed,
            manual=self._manual,
            attempts=attempt.attempt_number if attempt is not None and not bypassed else 0,
            duration_s=self._elapsed_s,
            timestamp=time.time(),
            **flags,
        )
        logger.info("Upper arms bound: %s", self.result.model_dump(exclude={"timestamp"}))


Stage = Union[GenericStage, ArmBindingStage]


def build_stages(stage_ids: Iterable[str], binding_settings: Optional[BindingSettings] = None) -> list[Stage]:
    """Build a stage sequence; the binding stage id maps to ArmBindingStage."""
    stages: list[Stage] = []
    for stage_id in stage_ids:
        if not isinstance(stage_id, str) or not stage_id:
            raise ValueError(f"Stage ids must be non-empty strings, got {stage_id!r}")
        if stage_id == ARM_BINDING_STAGE:
            stages.append(ArmBindingStage(stage_id, ArmBindingClassifier(binding_settings)))
        else:
            stages.append(GenericStage(stage_id))
    return stages
