"""
Controller orientation gate for momentary calibration.

The instant shortcut is only safe when the user already holds the
controllers roughly level. The caller updates the gate once per frame,
before the session tick reads it.
"""

from __future__ import annotations

import logging
from typing import Optional

from src.config.calibration_config import AngleGateSettings
from src.interface.rig import Chirality, SensorSource, CONTROLLER_NODES
from src.utils.vector_math import FORWARD, elevation_deg

logger = logging.getLogger(__name__)


class AngleGate:
    """True while every connected controller points within max_pitch_deg of level."""

    def __init__(self, settings: Optional[AngleGateSettings] = None):
        self.settings = settings or AngleGateSettings()
        self._acceptable = False
        self._pitches: dict[Chirality, float] = {}

    def update(self, sensors: SensorSource) -> bool:
        pitches: dict[Chirality, float] = {}
        for side, node in CONTROLLER_NODES.items():
            if not sensors.is_connected(node):
                continue
            orientation = sensors.controller_orientation(side)
            if orientation is None:
                continue
            pitches[side] = elevation_deg(orientation, FORWARD)

        acceptable = bool(pitches) and all(abs(p) <= self.settings.max_pitch_deg for p in pitches.values())
        if acceptable != self._acceptable:
            logger.debug("Angle gate %s (pitches=%s)", "open" if acceptable else "closed", pitches)
        self._acceptable = acceptable
        self._pitches = pitches
        return acceptable

    @property
    def pitches(self) -> dict[Chirality, float]:
        return dict(self._pitches)

    def is_angle_acceptable(self) -> bool:
        return self._acceptable
