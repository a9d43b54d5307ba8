"""
Vector and rotation helpers shared by the calibration core.

World frame is y-up. Orientations are unit quaternions in scalar-last
(x, y, z, w) order, matching scipy.spatial.transform.Rotation.
"""

from __future__ import annotations

import math

import numpy as np
from scipy.spatial.transform import Rotation

UP = np.array([0.0, 1.0, 0.0])
RIGHT = np.array([1.0, 0.0, 0.0])
LEFT = np.array([-1.0, 0.0, 0.0])
FORWARD = np.array([0.0, 0.0, 1.0])

IDENTITY_QUAT = np.array([0.0, 0.0, 0.0, 1.0])

STANDARD_GRAVITY = 9.8


def as_vector(v) -> np.ndarray:
    arr = np.asarray(v, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {arr.shape}")
    return arr


def as_quaternion(q) -> np.ndarray:
    """Validate and normalize a scalar-last quaternion."""
    arr = np.asarray(q, dtype=np.float64)
    if arr.shape != (4,):
        raise ValueError(f"Expected a quaternion (x, y, z, w), got shape {arr.shape}")
    norm = np.linalg.norm(arr)
    if norm == 0.0:
        raise ValueError("Quaternion must be non-zero")
    return arr / norm


def rotate(q, v) -> np.ndarray:
    """Rotate vector *v* by quaternion *q*."""
    return Rotation.from_quat(as_quaternion(q)).apply(as_vector(v))


def vertical_component(q, axis) -> float:
    """Height (y) of *axis* after rotating it by *q*."""
    return float(rotate(q, axis)[1])


def gravity_compensated_sq(acceleration, gravity: float = STANDARD_GRAVITY) -> float:
    """Squared magnitude of the acceleration with the vertical gravity term removed."""
    diff = as_vector(acceleration) - UP * gravity
    return float(np.dot(diff, diff))


def quat_from_euler_deg(pitch: float = 0.0, yaw: float = 0.0, roll: float = 0.0) -> np.ndarray:
    """Quaternion from intrinsic pitch (about x), yaw (about y), roll (about z) in degrees."""
    return Rotation.from_euler("xyz", [pitch, yaw, roll], degrees=True).as_quat()


def quat_about_axis(axis, angle_deg: float) -> np.ndarray:
    axis = as_vector(axis)
    axis = axis / np.linalg.norm(axis)
    return Rotation.from_rotvec(axis * math.radians(angle_deg)).as_quat()


def elevation_deg(q, axis=FORWARD) -> float:
    """Angle in degrees between the rotated *axis* and the horizontal plane."""
    y = max(-1.0, min(1.0, vertical_component(q, axis)))
    return math.degrees(math.asin(y))


# Half turn about the forward axis: swaps the node's left/right handedness.
MIRROR_QUAT = np.array([0.0, 0.0, 1.0, 0.0])


def compose(q_outer, q_inner) -> np.ndarray:
    """Quaternion applying *q_inner* first, then *q_outer*."""
    return (Rotation.from_quat(as_quaternion(q_outer)) * Rotation.from_quat(as_quaternion(q_inner))).as_quat()
