"""
Presentation hooks for the calibration flow.

The tutorial UI, sounds and sprites live elsewhere; the session only
tells a PresentationListener what changed. Call order per transition:
deactivate_all() first, on_session_start() before the first stage is
activated, on_session_end() after the last stage is deactivated.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from src.calibration.arm_binding import BindingPrompt, WarningKind

logger = logging.getLogger(__name__)


class PresentationListener(Protocol):
    def activate_stage(self, stage_id: str, index: int) -> None: ...

    def deactivate_all(self) -> None: ...

    def show_warning(self, kind: WarningKind) -> None: ...

    def show_prompt(self, prompt: Optional[BindingPrompt]) -> None: ...

    def show_incorrect_set(self) -> None: ...

    def on_session_start(self) -> None: ...

    def on_session_end(self) -> None: ...


class LoggingPresentation:
    """Listener that only logs, used by headless runs and the simulator."""

    def __init__(self, name: str = "presentation"):
        self._log = logging.getLogger(f"limbcal.{name}")
        self.active_stage: Optional[str] = None
        self.prompt: Optional[BindingPrompt] = None

    def activate_stage(self, stage_id: str, index: int) -> None:
        self.active_stage = stage_id
        self._log.info("Stage %d active: %s", index, stage_id)

    def deactivate_all(self) -> None:
        self.active_stage = None
        self.prompt = None

    def show_warning(self, kind: WarningKind) -> None:
        self._log.warning("Binding warning: %s", kind.value)

    def show_prompt(self, prompt: Optional[BindingPrompt]) -> None:
        if prompt != self.prompt:
            self._log.debug("Prompt: %s", prompt.value if prompt else None)
        self.prompt = prompt

    def show_incorrect_set(self) -> None:
        self._log.warning("Incorrect node set, reconnect nodes and restart calibration")

    def on_session_start(self) -> None:
        self._log.info("Calibration started")

    def on_session_end(self) -> None:
        self._log.info("Calibration ended")
