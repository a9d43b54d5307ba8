"""
Simulated rig, a drop-in replacement for the sensor driver and role control.

Keeps node state in memory and implements every collaborator protocol of
src.interface.rig on one object. No hardware, no threads.

Upper-arm nodes are modelled as two physical nodes ("arm_a", "arm_b")
strapped to the user's arms. Role swaps move physical nodes between the
LEFT/RIGHT upper-arm slots and reverts are per role, so tests can check
that a binding ends with each physical node in the right slot.

Used for:
  - Offline development of the calibration flow
  - Integration testing of CalibrationSession
  - scripts/simulate_calibration.py
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from src.interface.rig import CONTROLLER_NODES, Chirality, NodeSample, NodeType
from src.simulation import gestures
from src.utils.vector_math import IDENTITY_QUAT, as_quaternion, as_vector

logger = logging.getLogger(__name__)

PHYSICAL_ARMS = ("arm_a", "arm_b")


class SimulatedRig:
    """In-memory rig implementing SensorSource, NodeRoleControl,
    ControllerInput and NodeSetRegistry.

    Button edges set with press_button()/release_button() are visible for
    one frame; end_frame(dt) clears them and advances hold times.
    """

    def __init__(
        self,
        controllers: int = 2,
        upper_arms: int = 2,
        controller_type: str = "shift",
    ) -> None:
        if not 0 <= controllers <= 2 or not 0 <= upper_arms <= 2:
            raise ValueError("A rig has at most two controllers and two upper arms")
        self.controller_type = controller_type

        # Which physical node sits in each upper-arm slot
        self._slots: dict[NodeType, str] = {
            NodeType.LEFT_UPPER_ARM: PHYSICAL_ARMS[0],
            NodeType.RIGHT_UPPER_ARM: PHYSICAL_ARMS[1],
        }
        self._arm_raw = {name: gestures.hanging() for name in PHYSICAL_ARMS}
        self._arm_accel = {name: gestures.gravity() for name in PHYSICAL_ARMS}
        self._arms_connected = set(PHYSICAL_ARMS[:upper_arms])

        # a lone controller is the right hand
        hands = [NodeType.RIGHT_HAND, NodeType.LEFT_HAND]
        self._hands_connected = set(hands[:controllers])
        self._controller_orientation = {side: IDENTITY_QUAT.copy() for side in CONTROLLER_NODES}
        self._capacity = {NodeType.LEFT_HAND: Chirality.LEFT, NodeType.RIGHT_HAND: Chirality.RIGHT}

        self._reverted = {Chirality.LEFT: False, Chirality.RIGHT: False}
        self._calibrated: set[Chirality] = set()

        self._down: set[Chirality] = set()
        self._up: set[Chirality] = set()
        self._held: dict[Chirality, float] = {}
        self._node_buttons: set[NodeType] = set()

        self._remembered: Optional[tuple[int, int]] = (self.controllers_count(), self.upper_arm_count())

        # Command logs for assertions
        self.swap_count = 0
        self.bind_count = 0
        self.calibrations: list[Chirality] = []
        self.resets: list[Chirality] = []
        self.haptics: list[tuple[Chirality, int]] = []

    # ------------------------------------------------------------------
    # Scene control
    # ------------------------------------------------------------------

    def connect(self, node: str | NodeType) -> None:
        if isinstance(node, NodeType):
            if node.is_upper_arm:
                node = self._slots[node]
            else:
                self._hands_connected.add(node)
                return
        self._arms_connected.add(node)

    def disconnect(self, node: str | NodeType) -> None:
        if isinstance(node, NodeType):
            if node.is_upper_arm:
                node = self._slots[node]
            else:
                self._hands_connected.discard(node)
                return
        self._arms_connected.discard(node)
        logger.info("SimulatedRig: %s disconnected", node)

    def slot_of(self, physical: str) -> NodeType:
        """Upper-arm slot currently holding *physical*."""
        for slot, name in self._slots.items():
            if name == physical:
                return slot
        raise KeyError(physical)

    def set_arm(self, physical: str, raw_orientation=None, acceleration=None) -> None:
        """Set the raw pose / acceleration of a physical upper-arm node."""
        if physical not in PHYSICAL_ARMS:
            raise KeyError(physical)
        if raw_orientation is not None:
            self._arm_raw[physical] = as_quaternion(raw_orientation)
        if acceleration is not None:
            self._arm_accel[physical] = as_vector(acceleration)

    def set_controller_orientation(self, side: Chirality, orientation) -> None:
        self._controller_orientation[side] = as_quaternion(orientation)

    def set_capacity_hint(self, node: NodeType, hint: Chirality) -> None:
        self._capacity[node] = hint

    def press_button(self, side: Chirality) -> None:
        self._down.add(side)
        self._held[side] = 0.0

    def release_button(self, side: Chirality) -> None:
        self._up.add(side)
        self._held.pop(side, None)

    def press_node_button(self, node: NodeType) -> None:
        self._node_buttons.add(node)

    def end_frame(self, dt: float) -> None:
        """Clear one-frame edges and advance held-button timers."""
        self._down.clear()
        self._up.clear()
        self._node_buttons.clear()
        for side in self._held:
            self._held[side] += dt

    # ------------------------------------------------------------------
    # SensorSource
    # ------------------------------------------------------------------

    def is_connected(self, node: NodeType) -> bool:
        if node.is_upper_arm:
            return self._slots[node] in self._arms_connected
        return node in self._hands_connected

    def sample(self, node: NodeType) -> Optional[NodeSample]:
        if not self.is_connected(node):
            return None
        if node.is_upper_arm:
            physical = self._slots[node]
            side = node.chirality
            return NodeSample(
                acceleration=self._arm_accel[physical],
                orientation=gestures.reported_orientation(self._arm_raw[physical], side, self._reverted[side]),
            )
        return NodeSample(acceleration=gestures.gravity(), orientation=self._controller_orientation[node.chirality])

    def capacity_hint(self, node: NodeType) -> Chirality:
        if not self.is_connected(node):
            return Chirality.UNKNOWN
        return self._capacity.get(node, Chirality.UNKNOWN)

    def controller_orientation(self, side: Chirality) -> Optional[np.ndarray]:
        if not self.is_connected(CONTROLLER_NODES[side]):
            return None
        return self._controller_orientation[side].copy()

    def controllers_count(self) -> int:
        return len(self._hands_connected)

    def upper_arm_count(self) -> int:
        return len(self._arms_connected)

    # ------------------------------------------------------------------
    # NodeRoleControl
    # ------------------------------------------------------------------

    def swap_roles(self, a: NodeType, b: NodeType) -> None:
        self._slots[a], self._slots[b] = self._slots[b], self._slots[a]
        self.swap_count += 1
        logger.debug("SimulatedRig: swapped %s <-> %s", a.value, b.value)

    def revert_upper_arm(self, side: Chirality) -> None:
        self._reverted[side] = not self._reverted[side]

    def is_upper_arm_reverted(self, side: Chirality) -> bool:
        return self._reverted[side]

    def bind_upper_arms(self) -> None:
        self.bind_count += 1

    def reset_calibration(self, scope: Chirality) -> None:
        self.resets.append(scope)
        for side in self._sides(scope):
            self._calibrated.discard(side)
            self._reverted[side] = False

    def calibrate(self, scope: Chirality) -> None:
        self.calibrations.append(scope)
        self._calibrated.update(self._sides(scope))

    def is_calibrated(self, side: Chirality) -> bool:
        return side in self._calibrated

    @staticmethod
    def _sides(scope: Chirality) -> tuple[Chirality, ...]:
        if scope is Chirality.BOTH:
            return (Chirality.LEFT, Chirality.RIGHT)
        if scope in (Chirality.LEFT, Chirality.RIGHT):
            return (scope,)
        return ()

    # ------------------------------------------------------------------
    # ControllerInput
    # ------------------------------------------------------------------

    def button_down(self, side: Chirality) -> bool:
        return side in self._down

    def button_up(self, side: Chirality) -> bool:
        return side in self._up

    def press_time(self, side: Chirality) -> float:
        return self._held.get(side, 0.0)

    def node_button_down(self, node: NodeType) -> bool:
        return node in self._node_buttons and self.is_connected(node)

    def haptic_pulse(self, side: Chirality, duration_ms: int) -> None:
        self.haptics.append((side, duration_ms))

    # ------------------------------------------------------------------
    # NodeSetRegistry
    # ------------------------------------------------------------------

    @property
    def remembered(self) -> Optional[tuple[int, int]]:
        return self._remembered

    @property
    def all_playable_connected(self) -> bool:
        if self._remembered is None:
            return True
        controllers, upper_arms = self._remembered
        return self.controllers_count() >= controllers and self.upper_arm_count() >= upper_arms

    def remember_nodes(self, controllers: int, upper_arms: int) -> None:
        self._remembered = (controllers, upper_arms)

    def reset_saved_set(self) -> None:
        self._remembered = None
