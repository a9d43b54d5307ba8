#!/usr/bin/env python3
"""
Run a scripted calibration session against the simulated rig.

Usage:
    python scripts/simulate_calibration.py
    python scripts/simulate_calibration.py --scenario mirrored --debug
    python scripts/simulate_calibration.py --scenario manual --fps 90
    python scripts/simulate_calibration.py --set binding.min_shake_count=6 --set angle_gate.max_pitch_deg=20
    python scripts/simulate_calibration.py --reset-config

Scenarios:
    shake      user shakes the arm whose node sits in the LEFT slot
    mirrored   same, with the other node strapped on upside down
    manual     chirality bound with the node button, then arms lowered
    single     two controllers, only one upper-arm node connected (bypassed)
    lone       one controller and one upper-arm node, strapped on upside down
    disconnect an upper-arm node drops out mid-binding
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from dotenv import load_dotenv

load_dotenv()  # may set LIMBCAL_CONFIG_FILE

from shared.messages.events import EventType
from shared.utils.logging_config import setup_logging
from src.calibration.angle_gate import AngleGate
from src.calibration.session import CalibrationSession, SessionPhase
from src.calibration.stages import ArmBindingStage, GenericStage
from src.config.calibration_config import (
    AngleGateSettings,
    BindingSettings,
    CalibrationConfig,
    SessionSettings,
    get_calibration_config,
)
from src.interface.presentation import LoggingPresentation
from src.interface.rig import NodeType, Rig
from src.interface.simulated_rig import SimulatedRig
from src.simulation import gestures

logger = logging.getLogger("limbcal.simulate")

SCENARIOS = ("shake", "mirrored", "manual", "single", "lone", "disconnect")


def config_override(text: str) -> tuple[str, str, Any]:
    """Parse SECTION.KEY=VALUE; VALUE is JSON, or a plain string if it is not."""
    target, sep, raw = text.partition("=")
    section, dot, key = target.partition(".")
    if not sep or not dot or not section or not key:
        raise argparse.ArgumentTypeError(f"expected SECTION.KEY=VALUE, got {text!r}")
    try:
        value = json.loads(raw)
    except ValueError:
        value = raw
    return section, key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="limbcal: simulated calibration session")
    parser.add_argument("--scenario", choices=SCENARIOS, default="shake", help="Scripted user behaviour")
    parser.add_argument("--fps", type=float, default=60.0, help="Simulated frame rate")
    parser.add_argument("--max-seconds", type=float, default=30.0, help="Give up after this much simulated time")
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG logging")
    parser.add_argument("--log-dir", type=str, default=None, help="Custom log directory")
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="SECTION.KEY=VALUE",
        type=config_override,
        action="append",
        default=[],
        help="Override a config value (saved to the config file, repeatable)",
    )
    parser.add_argument("--reset-config", action="store_true", help="Restore config defaults before applying --set")
    return parser


def _drive_arms(rig: SimulatedRig, scenario: str, frame: int, stage: ArmBindingStage) -> None:
    """Pose the physical arms for one frame of the binding stage."""
    attempt = stage.classifier.attempt
    locked = attempt is not None and attempt.chirality_locked

    if scenario == "manual":
        if frame == 1:
            rig.press_node_button(NodeType.LEFT_UPPER_ARM)
        rig.set_arm("arm_a", acceleration=gestures.gravity())
        return

    if scenario == "disconnect" and frame == 2:
        rig.disconnect("arm_b")
        return

    if locked:
        rig.set_arm("arm_a", acceleration=gestures.gravity())
    else:
        rig.set_arm("arm_a", acceleration=gestures.shake_acceleration(frame))


def apply_config_overrides(
    config: CalibrationConfig,
    overrides: list[tuple[str, str, Any]],
    reset: bool = False,
) -> dict[str, Any]:
    """Apply CLI config edits and return the resulting diff from defaults."""
    if reset:
        config.reset()
        logger.info("Config reset to defaults (%s)", config.path)
    for section, key, value in overrides:
        config.set(section, key, value)
        logger.info("Config override %s.%s = %r", section, key, value)
    changed = config.diff()
    if changed:
        logger.info("Config differs from defaults: %s", json.dumps(changed))
    return changed


def run(scenario: str, fps: float = 60.0, max_seconds: float = 30.0) -> CalibrationSession:
    config = get_calibration_config()
    upper_arms = 1 if scenario in ("single", "lone") else 2
    controllers = 1 if scenario == "lone" else 2
    rig = SimulatedRig(controllers=controllers, upper_arms=upper_arms)
    if scenario == "mirrored":
        rig.set_arm("arm_b", raw_orientation=gestures.hanging(mirrored=True))
    elif scenario == "lone":
        rig.set_arm("arm_a", raw_orientation=gestures.hanging(mirrored=True))

    session = CalibrationSession(
        Rig.from_device(rig),
        presentation=LoggingPresentation("simulate"),
        angle_gate=AngleGate(AngleGateSettings.from_config(config)),
        settings=SessionSettings.from_config(config),
        binding_settings=BindingSettings.from_config(config),
    )

    dt = 1.0 / fps
    binding_frame = 0
    session.start()

    for frame in range(int(max_seconds * fps)):
        stage = session.current_stage
        if isinstance(stage, ArmBindingStage):
            _drive_arms(rig, scenario, binding_frame, stage)
            binding_frame += 1
            if not rig.all_playable_connected:
                session.on_node_disconnected(NodeType.RIGHT_UPPER_ARM)

        events = session.tick(dt)
        for event in events:
            logger.debug("frame %d: %s", frame, event.value)

        if isinstance(session.current_stage, GenericStage) and EventType.STAGE_ENTERED not in events:
            # the tutorial UI completes presentation stages after one frame
            session.next_step()

        rig.end_frame(dt)
        if session.stage.phase is not SessionPhase.RUNNING:
            break

    status = session.status()
    logger.info("Session ended: %s", status.model_dump_json(exclude={"timestamp"}))
    logger.info(
        "Slots: arm_a=%s arm_b=%s, swaps=%d",
        rig.slot_of("arm_a").value,
        rig.slot_of("arm_b").value,
        rig.swap_count,
    )
    return session


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(run_name="simulate", debug=args.debug, log_dir=args.log_dir)
    if os.getenv("LIMBCAL_CONFIG_FILE"):
        logger.info("Using config override %s", os.getenv("LIMBCAL_CONFIG_FILE"))
    try:
        apply_config_overrides(get_calibration_config(), args.overrides, reset=args.reset_config)
        session = run(args.scenario, fps=args.fps, max_seconds=args.max_seconds)
    except ValueError as e:
        logger.error("Invalid calibration config: %s", e)
        return 2

    return 0 if session.stage.phase is SessionPhase.COMPLETED or args.scenario == "disconnect" else 1


if __name__ == "__main__":
    sys.exit(main())
