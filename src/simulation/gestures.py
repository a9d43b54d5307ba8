"""
Synthetic upper-arm sample streams for simulation and tests.

Raw node orientations use the node's strap axis (+x): a correctly
mounted node hanging on a lowered arm has +x pointing down, a mirrored
mount has it pointing up. The driver reports the left role through a
mirrored frame, so both roles see the strap axis along their outward
axis; reported_orientation() applies that mapping.
"""

from __future__ import annotations

from typing import Iterator

import numpy as np

from src.interface.rig import Chirality, NodeSample
from src.utils.vector_math import (
    IDENTITY_QUAT,
    MIRROR_QUAT,
    RIGHT,
    STANDARD_GRAVITY,
    UP,
    FORWARD,
    compose,
    quat_about_axis,
)

DEFAULT_SHAKE_AMPLITUDE = 8.0  # m/s^2, squared well above the default noise border


def hanging(mirrored: bool = False) -> np.ndarray:
    """Raw orientation of a node on a lowered arm."""
    return quat_about_axis(FORWARD, 90.0 if mirrored else -90.0)


def raised(mirrored: bool = False) -> np.ndarray:
    """Raw orientation of a node on an arm lifted overhead."""
    return hanging(not mirrored)


def level() -> np.ndarray:
    """Raw orientation with the strap axis horizontal (arm held out sideways)."""
    return IDENTITY_QUAT.copy()


def reported_orientation(raw, side: Chirality, reverted: bool = False) -> np.ndarray:
    """Orientation the driver reports for a node in the *side* role."""
    q = np.asarray(raw, dtype=np.float64)
    if side is Chirality.LEFT:
        q = compose(q, MIRROR_QUAT)
    if reverted:
        q = compose(q, MIRROR_QUAT)
    return q


def gravity() -> np.ndarray:
    return UP * STANDARD_GRAVITY


def still(side: Chirality, raw=None) -> NodeSample:
    """A motionless node."""
    raw = hanging() if raw is None else raw
    return NodeSample(acceleration=gravity(), orientation=reported_orientation(raw, side))


def shake_acceleration(frame: int, amplitude: float = DEFAULT_SHAKE_AMPLITUDE) -> np.ndarray:
    """Lateral jolt on odd frames: alternates the compensated magnitude every frame."""
    jolt = RIGHT * amplitude if frame % 2 else np.zeros(3)
    return gravity() + jolt


def shaking(side: Chirality, frame: int, raw=None, amplitude: float = DEFAULT_SHAKE_AMPLITUDE) -> NodeSample:
    raw = hanging() if raw is None else raw
    return NodeSample(
        acceleration=shake_acceleration(frame, amplitude),
        orientation=reported_orientation(raw, side),
    )


def shake_stream(side: Chirality, frames: int, raw=None, amplitude: float = DEFAULT_SHAKE_AMPLITUDE) -> Iterator[NodeSample]:
    for frame in range(frames):
        yield shaking(side, frame, raw, amplitude)


def still_stream(side: Chirality, frames: int, raw=None) -> Iterator[NodeSample]:
    sample = still(side, raw)
    for _ in range(frames):
        yield sample
