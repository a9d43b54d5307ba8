"""
Central configuration for calibration parameters.

Singleton config loader that reads from data/calibration_config.json
(or the file named by LIMBCAL_CONFIG_FILE). Components should build
their settings from `get_calibration_config()` instead of hardcoding
thresholds.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "data"
_CONFIG_FILE = _CONFIG_DIR / "calibration_config.json"

CONFIG_FILE_ENV = "LIMBCAL_CONFIG_FILE"

ARM_BINDING_STAGE = "binds_upper_arms"

# ── Defaults ──────────────────────────────────────────────────────────────

DEFAULTS: dict[str, Any] = {
    "session": {
        "calibrate_on_start": True,
        "calibration_type": "fast",
        "hold_time_s": 0.3,
        "haptic_ms": 120,
        "controller_type": "shift",
        "full_stages": [
            "welcome",
            ARM_BINDING_STAGE,
            "hands_forward",
            "finish",
        ],
        "fast_stages": [
            "hands_forward",
            "finish",
        ],
    },
    "binding": {
        "shake_window_s": 2.5,
        "arms_down_window_s": 1.5,
        "error_window_s": 2.0,
        "min_shake_count": 4,
        "epsilon": 0.01,
        "acceleration_ratio": 5.0,
        "acceleration_border": 30.0,
        "angle_border": 0.3,
        "gravity": 9.8,
        "orientation_ratio": 2.0,
    },
    "angle_gate": {
        "max_pitch_deg": 30.0,
    },
}


def _config_file() -> Path:
    override = os.getenv(CONFIG_FILE_ENV)
    return Path(override) if override else _CONFIG_FILE


class CalibrationConfig:
    """Singleton configuration for calibration parameters.

    Thread-safe. Auto-saves on change.
    """

    _instance: Optional[CalibrationConfig] = None
    _lock = threading.Lock()

    def __new__(cls) -> CalibrationConfig:
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._data: dict[str, Any] = copy.deepcopy(DEFAULTS)
        self._path = _config_file()
        self._initialized = True
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self):
        """Load config from disk, merging with defaults."""
        if self._path.exists():
            try:
                saved = json.loads(self._path.read_text())
                self._merge(self._data, saved)
                logger.info("Loaded calibration config from %s", self._path)
            except (OSError, ValueError) as e:
                logger.warning("Failed to load calibration config: %s", e)

    def _merge(self, base: dict, overlay: dict):
        """Deep-merge overlay into base."""
        for k, v in overlay.items():
            if k in base and isinstance(base[k], dict) and isinstance(v, dict):
                self._merge(base[k], v)
            else:
                base[k] = v

    def _save(self):
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._data, indent=2))
        except OSError as e:
            logger.warning("Failed to save calibration config: %s", e)

    def get(self, section: str, key: Optional[str] = None) -> Any:
        """Get a config value. If key is None, returns the whole section."""
        with self._lock:
            sec = self._data.get(section, {})
            if key is None:
                return copy.deepcopy(sec)
            return copy.deepcopy(sec.get(key))

    def set(self, section: str, key: str, value: Any):
        """Set a config value and auto-save."""
        with self._lock:
            if section not in self._data:
                self._data[section] = {}
            self._data[section][key] = value
            self._save()

    def reset(self):
        """Reset to defaults and save."""
        with self._lock:
            self._data = copy.deepcopy(DEFAULTS)
            self._save()

    def diff(self) -> dict[str, Any]:
        """Return values that differ from defaults."""
        with self._lock:
            return self._diff_dict(DEFAULTS, self._data)

    def _diff_dict(self, defaults: dict, current: dict) -> dict:
        result = {}
        for k, v in current.items():
            if k not in defaults:
                result[k] = v
            elif isinstance(v, dict) and isinstance(defaults[k], dict):
                d = self._diff_dict(defaults[k], v)
                if d:
                    result[k] = d
            elif v != defaults[k]:
                result[k] = v
        return result


def get_calibration_config() -> CalibrationConfig:
    """Get the singleton CalibrationConfig instance."""
    return CalibrationConfig()


# ── Typed settings ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class BindingSettings:
    """Thresholds and windows of the upper-arm binding classifier."""

    shake_window_s: float = 2.5
    arms_down_window_s: float = 1.5
    error_window_s: float = 2.0
    min_shake_count: int = 4
    epsilon: float = 0.01
    acceleration_ratio: float = 5.0
    acceleration_border: float = 30.0
    angle_border: float = 0.3
    gravity: float = 9.8
    orientation_ratio: float = 2.0

    def __post_init__(self):
        for name in ("shake_window_s", "arms_down_window_s", "error_window_s"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("epsilon", "acceleration_ratio", "orientation_ratio"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.min_shake_count < 0:
            raise ValueError(f"min_shake_count must be non-negative, got {self.min_shake_count}")
        if self.acceleration_border < 0 or self.angle_border < 0:
            raise ValueError("acceleration_border and angle_border must be non-negative")

    @classmethod
    def from_config(cls, config: Optional[CalibrationConfig] = None) -> BindingSettings:
        config = config or get_calibration_config()
        return cls(**config.get("binding"))


@dataclass(frozen=True)
class SessionSettings:
    """Stage sequences and trigger options of a calibration session."""

    calibrate_on_start: bool = True
    calibration_type: str = "fast"
    hold_time_s: float = 0.3
    haptic_ms: int = 120
    controller_type: str = "shift"
    full_stages: tuple[str, ...] = tuple(DEFAULTS["session"]["full_stages"])
    fast_stages: tuple[str, ...] = tuple(DEFAULTS["session"]["fast_stages"])

    def __post_init__(self):
        object.__setattr__(self, "full_stages", tuple(self.full_stages))
        object.__setattr__(self, "fast_stages", tuple(self.fast_stages))
        if self.calibration_type not in ("full", "fast"):
            raise ValueError(f"calibration_type must be 'full' or 'fast', got {self.calibration_type!r}")
        if self.hold_time_s < 0:
            raise ValueError(f"hold_time_s must be non-negative, got {self.hold_time_s}")

    @classmethod
    def from_config(cls, config: Optional[CalibrationConfig] = None) -> SessionSettings:
        config = config or get_calibration_config()
        return cls(**config.get("session"))


@dataclass(frozen=True)
class AngleGateSettings:
    max_pitch_deg: float = 30.0

    def __post_init__(self):
        if not 0 < self.max_pitch_deg <= 90:
            raise ValueError(f"max_pitch_deg must be in (0, 90], got {self.max_pitch_deg}")

    @classmethod
    def from_config(cls, config: Optional[CalibrationConfig] = None) -> AngleGateSettings:
        config = config or get_calibration_config()
        return cls(**config.get("angle_gate"))
