"""
Upper-arm binding classifier.

Decides which of the two ambiguous upper-arm nodes is the user's left
arm and whether either node is mounted reversed. The user is asked to
shake one arm and then let both arms hang down; each frame feeds one
acceleration/orientation sample per node and gets back a Verdict.

Two signals are accumulated per node between resets:

- tremble count: edge-triggered reversals of the gravity-compensated
  squared acceleration. Slow drift never crosses the noise border, a
  shaking arm crosses it many times.
- orientation buckets: height of the node's outward axis, summed by
  sign once it leaves the near-horizontal band.

Nothing here raises at runtime. An inconclusive window degrades to a
warning followed by a fresh window, so the flow always progresses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.config.calibration_config import BindingSettings
from src.interface.rig import Chirality, NodeSample
from src.utils.vector_math import LEFT, RIGHT, gravity_compensated_sq, vertical_component

logger = logging.getLogger("limbcal.binding")


class VerdictKind(Enum):
    COLLECTING = "collecting"
    COMMIT = "commit"
    WARN = "warn"
    EXPIRED = "expired"


class WarningKind(str, Enum):
    """User-facing reason a binding window did not commit."""

    PARTIAL = "partial"  # chirality locked, orientation still pending
    SHAKE_HARDER = "shake_harder"
    AMBIGUOUS_SHAKE = "ambiguous_shake"  # both arms moving, neither dominates
    LOWER_ARMS = "lower_arms"


class BindingPrompt(Enum):
    """Which tutorial hint the presentation layer should show."""

    SHAKE = "shake"
    ARMS_DOWN = "arms_down"
    WARNING = "warning"


@dataclass(frozen=True)
class Verdict:
    """Per-frame result of ArmBindingClassifier.update()."""

    kind: VerdictKind
    swap_left_right: bool = False
    revert_left: bool = False
    revert_right: bool = False
    warning: Optional[WarningKind] = None

    @property
    def is_commit(self) -> bool:
        return self.kind is VerdictKind.COMMIT

    @classmethod
    def commit(cls, swap_left_right: bool = False, revert_left: bool = False, revert_right: bool = False) -> Verdict:
        return cls(VerdictKind.COMMIT, swap_left_right, revert_left, revert_right)

    @classmethod
    def warn(cls, warning: WarningKind, swap_left_right: bool = False) -> Verdict:
        return cls(VerdictKind.WARN, swap_left_right=swap_left_right, warning=warning)

    @classmethod
    def expired(cls, warning: Optional[WarningKind] = None) -> Verdict:
        return cls(VerdictKind.EXPIRED, warning=warning)


COLLECTING = Verdict(VerdictKind.COLLECTING)


class ArmBindingAccumulator:
    """Tremble and orientation accumulators for one ambiguous node."""

    def __init__(self, side: Chirality, settings: BindingSettings):
        if side not in (Chirality.LEFT, Chirality.RIGHT):
            raise ValueError(f"Accumulator side must be LEFT or RIGHT, got {side}")
        self.side = side
        self._settings = settings
        self._outward = LEFT if side is Chirality.LEFT else RIGHT
        self.tremble_count = 0
        self.side_above_zero = 0.0
        self.side_below_zero = 0.0
        self.last_acceleration = 0.0
        self.direction_up = False

    def update(self, sample: NodeSample) -> None:
        self._update_tremble(sample)
        self._update_direction(sample)

    def _update_tremble(self, sample: NodeSample) -> None:
        acceleration = gravity_compensated_sq(sample.acceleration, self._settings.gravity)
        delta = acceleration - self.last_acceleration
        if abs(delta) > self._settings.acceleration_border:
            if (delta > 0) != self.direction_up:
                self.direction_up = not self.direction_up
                self.tremble_count += 1
            self.last_acceleration = acceleration

    def _update_direction(self, sample: NodeSample) -> None:
        y = vertical_component(sample.orientation, self._outward)
        if abs(y) < self._settings.angle_border:
            return
        if y > 0:
            self.side_above_zero += y
        else:
            self.side_below_zero -= y

    @property
    def direction_pass(self) -> bool:
        """One orientation bucket dominates the other by orientation_ratio."""
        eps = self._settings.epsilon
        ratio = self._settings.orientation_ratio
        above, below = self.side_above_zero, self.side_below_zero
        if max(above, below) <= 0:
            return False
        return above / max(eps, below) > ratio or below / max(eps, above) > ratio

    @property
    def revert_orientation(self) -> bool:
        """Outward axis points up while the arm rests, so the mount is mirrored."""
        return self.side_above_zero / max(self._settings.epsilon, self.side_below_zero) > self._settings.orientation_ratio

    def reset(self) -> None:
        self.tremble_count = 0
        self.side_above_zero = 0.0
        self.side_below_zero = 0.0
        self.last_acceleration = 0.0
        self.direction_up = False

    def __repr__(self) -> str:
        return (
            f"ArmBindingAccumulator(side={self.side.value}, tremble={self.tremble_count}, "
            f"above={self.side_above_zero:.2f}, below={self.side_below_zero:.2f})"
        )


@dataclass
class BindingAttempt:
    """Countdown state of the live binding window."""

    time_remaining: float
    already_bound_by_single_node: bool = False
    waiting_for_result: bool = False
    chirality_locked: bool = False
    attempt_number: int = 0
    elapsed_s: float = 0.0


class ArmBindingClassifier:
    """Classifies the shake / arms-down gestures of two upper-arm nodes.

    Typical usage from the binding stage::

        classifier.start(upper_arm_count=2)
        # every frame:
        verdict = classifier.update(left_sample, right_sample, dt)
        if verdict.is_commit:
            apply(verdict.swap_left_right, verdict.revert_left, verdict.revert_right)
    """

    def __init__(self, settings: Optional[BindingSettings] = None):
        self.settings = settings or BindingSettings()
        self.left = ArmBindingAccumulator(Chirality.LEFT, self.settings)
        self.right = ArmBindingAccumulator(Chirality.RIGHT, self.settings)
        self._attempt: Optional[BindingAttempt] = None
        self._last_attempt: Optional[BindingAttempt] = None
        self._node_count = 2
        self._last_warning: Optional[WarningKind] = None

    @property
    def attempt(self) -> Optional[BindingAttempt]:
        return self._attempt

    @property
    def last_attempt(self) -> Optional[BindingAttempt]:
        """The most recently finished attempt."""
        return self._last_attempt

    @property
    def last_warning(self) -> Optional[WarningKind]:
        return self._last_warning

    @property
    def prompt(self) -> Optional[BindingPrompt]:
        attempt = self._attempt
        if attempt is None:
            return None
        if attempt.time_remaining > self.settings.error_window_s:
            return BindingPrompt.ARMS_DOWN if attempt.chirality_locked else BindingPrompt.SHAKE
        return BindingPrompt.WARNING

    # -- predicates --------------------------------------------------------

    def left_dominates(self) -> bool:
        eps = self.settings.epsilon
        return self.left.tremble_count / max(eps, self.right.tremble_count) > self.settings.acceleration_ratio

    def right_dominates(self) -> bool:
        eps = self.settings.epsilon
        return self.right.tremble_count / max(eps, self.left.tremble_count) > self.settings.acceleration_ratio

    def tremble_detected(self) -> bool:
        """One arm shook enough and clearly more than the other."""
        most = max(self.left.tremble_count, self.right.tremble_count)
        return most > self.settings.min_shake_count and (self.left_dominates() or self.right_dominates())

    # -- lifecycle ---------------------------------------------------------

    def start(self, upper_arm_count: int) -> BindingAttempt:
        """Begin a fresh attempt, discarding any previous one.

        A lone upper arm has no chirality to resolve, so only the
        arms-down gesture is collected for it.
        """
        self._node_count = max(0, min(upper_arm_count, 2))
        single = self._node_count < 2
        self._last_warning = None
        self._attempt = BindingAttempt(
            time_remaining=0.0,
            already_bound_by_single_node=single,
            chirality_locked=single,
        )
        self._restart_window()
        logger.debug("Binding attempt started (upper arms=%d)", upper_arm_count)
        return self._attempt

    def _window_length(self) -> float:
        gesture = self.settings.shake_window_s if self._node_count > 1 else self.settings.arms_down_window_s
        return gesture + self.settings.error_window_s

    def _restart_window(self) -> None:
        attempt = self._attempt
        attempt.time_remaining = self._window_length()
        attempt.waiting_for_result = False
        attempt.attempt_number += 1
        self.left.reset()
        self.right.reset()

    def _finish(self) -> None:
        if self._attempt is not None:
            self._last_attempt = self._attempt
        self.left.reset()
        self.right.reset()
        self._attempt = None

    def cancel(self) -> None:
        """Drop the live attempt without a verdict."""
        if self._attempt is not None:
            logger.debug("Binding attempt cancelled")
        self._finish()

    # -- per frame ---------------------------------------------------------

    def manual_bind(self, left_pressed: bool, right_pressed: bool) -> bool:
        """Handle a bind-button press on an upper-arm node.

        The user presses the button on the arm the tutorial names. A press
        on the node currently in the LEFT slot means that node is the other
        arm, so True is returned and the caller must swap roles.
        """
        if not (left_pressed or right_pressed):
            return False
        swap = left_pressed
        attempt = self._attempt
        if attempt is not None and not attempt.chirality_locked:
            attempt.chirality_locked = True
            self._restart_window()
        logger.info("Chirality bound manually (swap=%s)", swap)
        return swap

    def update(
        self,
        left_sample: Optional[NodeSample],
        right_sample: Optional[NodeSample],
        dt: float,
    ) -> Verdict:
        """Feed one frame. A None sample means the node is not connected."""
        connected = sum(s is not None for s in (left_sample, right_sample))
        if connected == 0:
            logger.info("No upper arms connected, binding accepted as-is")
            self._finish()
            return Verdict.commit()

        if self._attempt is None:
            self.start(connected)
        elif connected != self._node_count:
            logger.info("Upper arms connected changed %d -> %d, restarting binding", self._node_count, connected)
            self.start(connected)
        attempt = self._attempt

        error_window = self.settings.error_window_s
        if dt > 0:
            attempt.time_remaining -= dt
            attempt.elapsed_s += dt
        collecting = attempt.time_remaining > error_window
        if collecting:
            attempt.waiting_for_result = True
            if dt > 0:
                if left_sample is not None:
                    self.left.update(left_sample)
                if right_sample is not None:
                    self.right.update(right_sample)

        tremble = self.tremble_detected()
        verdict = COLLECTING

        if not collecting or (tremble and not attempt.chirality_locked):
            if attempt.waiting_for_result:
                attempt.waiting_for_result = False
                resolved = attempt.already_bound_by_single_node or attempt.chirality_locked or tremble
                swap = self.left_dominates() and self._node_count > 1 and not attempt.chirality_locked
                # an absent node never blocks the orientation check
                left_down = left_sample is None or self.left.direction_pass
                right_down = right_sample is None or self.right.direction_pass

                if resolved and left_down and right_down:
                    verdict = self._commit(swap)
                    self._finish()
                    return verdict

                if tremble and not attempt.chirality_locked:
                    attempt.chirality_locked = True
                    self._restart_window()
                    self._last_warning = WarningKind.PARTIAL
                    logger.info("Chirality locked by shake (swap=%s), waiting for arms down", swap)
                    return Verdict.warn(WarningKind.PARTIAL, swap_left_right=swap)

                kind = self._warning_kind(tremble, attempt.chirality_locked)
                self._last_warning = kind
                logger.info(
                    "Binding window %d inconclusive: %s (left=%r, right=%r)",
                    attempt.attempt_number,
                    kind.value,
                    self.left,
                    self.right,
                )
                verdict = Verdict.warn(kind)

            if attempt.time_remaining < 0:
                logger.debug("Binding window %d expired, restarting", attempt.attempt_number)
                self._restart_window()
                return Verdict.expired(verdict.warning)

        return verdict

    def _commit(self, swap: bool) -> Verdict:
        left_revert = self.left.revert_orientation
        right_revert = self.right.revert_orientation
        # a swapped node carries its revert flag into the other role
        revert_left = right_revert if swap else left_revert
        revert_right = left_revert if swap else right_revert
        logger.info(
            "Upper arms bound after %.2fs (swap=%s, revert_left=%s, revert_right=%s)",
            self._attempt.elapsed_s,
            swap,
            revert_left,
            revert_right,
        )
        return Verdict.commit(swap, revert_left, revert_right)

    def _warning_kind(self, tremble: bool, chirality_locked: bool) -> WarningKind:
        if tremble or chirality_locked:
            return WarningKind.LOWER_ARMS
        if max(self.left.tremble_count, self.right.tremble_count) > self.settings.min_shake_count:
            return WarningKind.AMBIGUOUS_SHAKE
        return WarningKind.SHAKE_HARDER
