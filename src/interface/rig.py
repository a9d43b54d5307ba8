"""
Node types, per-frame samples and the collaborator protocols the
calibration core talks to.

The sensor driver, role control, controller input and the remembered
node set all live outside this package; anything implementing these
protocols can drive a CalibrationSession.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

import numpy as np

from src.utils.vector_math import IDENTITY_QUAT, as_quaternion, as_vector


class NodeType(Enum):
    """Physical node slots of the rig."""

    LEFT_HAND = "left_hand"
    RIGHT_HAND = "right_hand"
    LEFT_UPPER_ARM = "left_upper_arm"
    RIGHT_UPPER_ARM = "right_upper_arm"

    @property
    def is_upper_arm(self) -> bool:
        return self in (NodeType.LEFT_UPPER_ARM, NodeType.RIGHT_UPPER_ARM)

    @property
    def chirality(self) -> Chirality:
        if self in (NodeType.LEFT_HAND, NodeType.LEFT_UPPER_ARM):
            return Chirality.LEFT
        return Chirality.RIGHT


class Chirality(Enum):
    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"
    UNKNOWN = "unknown"


class ControllerType(str, Enum):
    """Controller hardware family."""

    SHIFT = "shift"
    DASH = "dash"  # supports instant per-controller calibration


CONTROLLER_NODES = {
    Chirality.LEFT: NodeType.LEFT_HAND,
    Chirality.RIGHT: NodeType.RIGHT_HAND,
}

UPPER_ARM_NODES = {
    Chirality.LEFT: NodeType.LEFT_UPPER_ARM,
    Chirality.RIGHT: NodeType.RIGHT_UPPER_ARM,
}


@dataclass(frozen=True)
class NodeSample:
    """One frame of data from a connected node."""

    acceleration: np.ndarray  # world frame, m/s^2, gravity included
    orientation: np.ndarray = field(default_factory=IDENTITY_QUAT.copy)  # (x, y, z, w)

    def __post_init__(self):
        object.__setattr__(self, "acceleration", as_vector(self.acceleration))
        object.__setattr__(self, "orientation", as_quaternion(self.orientation))


class SensorSource(Protocol):
    """Per-frame node state delivered by the sensor driver."""

    def is_connected(self, node: NodeType) -> bool: ...

    def sample(self, node: NodeType) -> Optional[NodeSample]: ...

    def capacity_hint(self, node: NodeType) -> Chirality: ...

    def controller_orientation(self, side: Chirality) -> Optional[np.ndarray]: ...

    def controllers_count(self) -> int: ...

    def upper_arm_count(self) -> int: ...


class NodeRoleControl(Protocol):
    """Commands that rewrite node roles and calibration state."""

    def swap_roles(self, a: NodeType, b: NodeType) -> None: ...

    def revert_upper_arm(self, side: Chirality) -> None: ...

    def is_upper_arm_reverted(self, side: Chirality) -> bool: ...

    def bind_upper_arms(self) -> None: ...

    def reset_calibration(self, scope: Chirality) -> None: ...

    def calibrate(self, scope: Chirality) -> None: ...


class ControllerInput(Protocol):
    """Designated calibration button state and haptics."""

    def button_down(self, side: Chirality) -> bool: ...

    def button_up(self, side: Chirality) -> bool: ...

    def press_time(self, side: Chirality) -> float: ...

    def node_button_down(self, node: NodeType) -> bool: ...

    def haptic_pulse(self, side: Chirality, duration_ms: int) -> None: ...


class NodeSetRegistry(Protocol):
    """The remembered set of playable nodes."""

    @property
    def all_playable_connected(self) -> bool: ...

    def remember_nodes(self, controllers: int, upper_arms: int) -> None: ...

    def reset_saved_set(self) -> None: ...


@dataclass
class Rig:
    """The collaborators a calibration session drives."""

    sensors: SensorSource
    roles: NodeRoleControl
    inputs: ControllerInput
    registry: NodeSetRegistry

    @classmethod
    def from_device(cls, device) -> Rig:
        """Wrap one object implementing every collaborator protocol."""
        return cls(sensors=device, roles=device, inputs=device, registry=device)
