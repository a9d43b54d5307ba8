"""
Shared test fixtures for the limbcal test suite.

Sessions run against the in-memory SimulatedRig; the presentation
listener is a MagicMock so tests can assert on call order.
"""

from unittest.mock import MagicMock

import pytest

from src.calibration.session import CalibrationSession
from src.config.calibration_config import BindingSettings, SessionSettings
from src.interface.rig import Rig
from src.interface.simulated_rig import SimulatedRig

FRAME_DT = 1.0 / 60.0


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def binding_settings():
    return BindingSettings()


@pytest.fixture
def session_settings():
    """Full sequence with the binding stage second; no auto-start."""
    return SessionSettings(calibrate_on_start=False, calibration_type="full")


@pytest.fixture
def sim_rig():
    return SimulatedRig()


@pytest.fixture
def presentation():
    return MagicMock(name="presentation")


@pytest.fixture
def make_session(sim_rig, presentation, session_settings, binding_settings):
    """Factory so tests can swap settings or the rig before building."""

    def _make(rig=None, settings=None, angle_gate=None):
        return CalibrationSession(
            Rig.from_device(rig or sim_rig),
            presentation=presentation,
            angle_gate=angle_gate,
            settings=settings or session_settings,
            binding_settings=binding_settings,
        )

    return _make


@pytest.fixture
def fresh_config(tmp_path, monkeypatch):
    """A CalibrationConfig singleton backed by a file under tmp_path."""
    import src.config.calibration_config as mod

    monkeypatch.delenv(mod.CONFIG_FILE_ENV, raising=False)
    monkeypatch.setattr(mod.CalibrationConfig, "_instance", None)
    monkeypatch.setattr(mod, "_CONFIG_DIR", tmp_path)
    monkeypatch.setattr(mod, "_CONFIG_FILE", tmp_path / "calibration_config.json")
    return mod.get_calibration_config()
