"""Trigger handling: debounced activation and timed state sequences.

An activation (space bar, gamepad button, HTTP request) overrides the
per-level thresholds and walks every level through the configured sequence
together, e.g. Calm -> Excited (6 s) -> Recovering (4 s) -> Calm. While a
sequence runs, autonomous evaluation is suspended.

Each delayed step is a deferred action in the engine's scheduler. A step
remembers the generation of every level it moved; a level whose generation
moved on by the next step (a debug force, a manual transition) is released
and left alone until the sequence ends. After the last step, evaluation can
stay suspended for a short settle window so the return to baseline holds.
"""

import logging
import time
from typing import Callable, Dict, Optional, Union

from biocascade.config.installation_config import SequenceConfig
from biocascade.config.trigger import ANALOG_PRESS_THRESHOLD, MIN_PRESS_SECONDS
from biocascade.events import EventBus, SequenceEndedEvent, SequenceStartedEvent
from biocascade.scheduler import DeferredScheduler
from biocascade.state_machine import BiologicalStateMachine
from biocascade.states import TransitionKind

logger = logging.getLogger(__name__)

SEQUENCE_KEY = "trigger.sequence"
ACTIVATION_KEY = "trigger.activation"
SETTLE_KEY = "trigger.settle"


class TriggerController:
    """Accepts triggers and runs the configured sequence.

    Attributes:
        triggers_accepted: Number of triggers that started a sequence
        triggers_ignored: Number of triggers dropped by the debounce rules
    """

    def __init__(
        self,
        machine: BiologicalStateMachine,
        scheduler: DeferredScheduler,
        config: SequenceConfig,
        event_bus: Optional[EventBus] = None,
        timestamp_fn: Callable[[], float] = time.time,
    ) -> None:
        self._machine = machine
        self._scheduler = scheduler
        self._config = config
        self._bus = event_bus or machine.event_bus
        self._timestamp = timestamp_fn

        self._last_trigger_at: Optional[float] = None
        self._sequence_active = False
        self._token = 0
        self._activation_active = False
        self._activation_token = 0

        self.triggers_accepted = 0
        self.triggers_ignored = 0

    @property
    def sequence_active(self) -> bool:
        return self._sequence_active

    @property
    def activation_active(self) -> bool:
        """Transient feedback flag, cleared a fixed delay after a trigger."""
        return self._activation_active

    def trigger(self, now: float) -> bool:
        """Handle one activation signal.

        Ignored while a sequence runs, within the cooldown window of the
        last accepted trigger, and (if configured) unless every level is
        at baseline.

        Args:
            now: Current time on the engine clock

        Returns:
            True if the trigger was accepted
        """
        reason = self._rejection_reason(now)
        if reason is not None:
            self.triggers_ignored += 1
            logger.warning("Trigger ignored: %s", reason)
            return False

        self.triggers_accepted += 1
        self._last_trigger_at = now
        self._raise_activation(now)

        if not self._config.steps:
            logger.info("Trigger accepted (no sequence configured)")
            return True

        self._token += 1
        self._sequence_active = True
        self._machine.suspend_autonomous()
        logger.info(
            "Sequence started: %s",
            " -> ".join(f"{step.state.name} {step.dwell_seconds:g}s" for step in self._config.steps),
        )
        self._bus.emit(
            SequenceStartedEvent(
                steps=tuple(step.state.name for step in self._config.steps),
                timestamp=self._timestamp(),
            )
        )
        self._enter_step(0, now, self._token, owned=None)
        return True

    def cancel(self) -> None:
        """Abort a running sequence and drop the activation flag.

        Levels stay in whatever state they are in; autonomous evaluation
        resumes.
        """
        self._token += 1
        self._scheduler.cancel_key(SEQUENCE_KEY)
        self._scheduler.cancel_key(SETTLE_KEY)
        self._clear_activation()
        self._last_trigger_at = None
        if self._sequence_active:
            self._end_sequence(completed=False)
        else:
            self._machine.resume_autonomous()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rejection_reason(self, now: float) -> Optional[str]:
        if self._sequence_active:
            return "sequence already in progress"
        if self._last_trigger_at is not None:
            elapsed = now - self._last_trigger_at
            if elapsed < self._config.cooldown_seconds:
                return f"cooldown ({elapsed:.2f}s < {self._config.cooldown_seconds:g}s)"
        if self._config.require_all_baseline and not self._machine.all_at_baseline():
            return "not every level is at baseline"
        return None

    def _raise_activation(self, now: float) -> None:
        self._activation_token += 1
        token = self._activation_token
        self._activation_active = True
        self._scheduler.cancel_key(ACTIVATION_KEY)
        self._scheduler.schedule(
            now + self._config.activation_feedback_seconds,
            self._clear_activation,
            key=ACTIVATION_KEY,
            guard=lambda: token == self._activation_token,
        )

    def _clear_activation(self) -> None:
        self._activation_active = False

    def _enter_step(
        self,
        index: int,
        started_at: float,
        token: int,
        owned: Optional[Dict[str, int]],
    ) -> None:
        step = self._config.steps[index]
        owned = self._force_all(step.state, owned, f"sequence step {index + 1}")

        due = started_at + step.dwell_seconds
        self._scheduler.schedule(
            due,
            lambda: self._advance(index + 1, due, token, owned),
            key=SEQUENCE_KEY,
            guard=lambda: token == self._token,
        )

    def _advance(self, index: int, started_at: float, token: int, owned: Dict[str, int]) -> None:
        if index < len(self._config.steps):
            self._enter_step(index, started_at, token, owned)
            return
        self._force_all(self._machine.graph.baseline, owned, "sequence complete")
        self._end_sequence(completed=True, now=started_at)

    def _force_all(self, state, owned: Optional[Dict[str, int]], reason: str) -> Dict[str, int]:
        """Move the levels the sequence still owns to ``state``.

        ``owned`` maps level ids to the generation each had after the
        previous step (None on the first step, which claims every
        non-terminal level). A level missing from it, or whose generation
        moved on, has been taken over and stays out for the rest of the run.

        Returns:
            The levels still owned, with their generations after this step
        """
        graph = self._machine.graph
        still_owned: Dict[str, int] = {}
        for level_id in self._machine.level_ids:
            if owned is not None:
                if level_id not in owned:
                    continue
                if self._machine.generation(level_id) != owned[level_id]:
                    logger.debug(f"Sequence releases {level_id}: changed outside the sequence")
                    continue
            current = self._machine.state(level_id)
            if graph.is_terminal(current):
                continue
            if current != state:
                self._machine.force_state(
                    level_id,
                    state,
                    kind=TransitionKind.SEQUENCE,
                    play_transition=self._config.play_transition,
                    reason=reason,
                )
            still_owned[level_id] = self._machine.generation(level_id)
        return still_owned

    def _end_sequence(self, completed: bool, now: Optional[float] = None) -> None:
        self._sequence_active = False
        logger.info("Sequence %s", "completed" if completed else "cancelled")
        self._bus.emit(SequenceEndedEvent(completed=completed, timestamp=self._timestamp()))

        settle = self._config.settle_seconds
        if completed and settle > 0 and now is not None:
            # Values still carry the sequence; let them relax before thresholds apply again
            token = self._token
            self._scheduler.schedule(
                now + settle,
                self._machine.resume_autonomous,
                key=SETTLE_KEY,
                guard=lambda: token == self._token,
            )
        else:
            self._machine.resume_autonomous()


class ButtonDebouncer:
    """Turns a polled button reading into discrete presses.

    A press fires once, after the button has been held for
    ``min_press_seconds``; it fires again only after a release. Analog
    readings (triggers, axes) count as pressed at or above ``threshold``.
    Discrete keyboard events do not need this filter.
    """

    def __init__(
        self,
        min_press_seconds: float = MIN_PRESS_SECONDS,
        threshold: float = ANALOG_PRESS_THRESHOLD,
    ) -> None:
        self.min_press_seconds = min_press_seconds
        self.threshold = threshold
        self._pressed_since: Optional[float] = None
        self._fired = False

    def update(self, reading: Union[bool, float], now: float) -> bool:
        """Feed one poll result.

        Returns:
            True exactly once per qualifying press
        """
        if isinstance(reading, bool):
            pressed = reading
        else:
            pressed = float(reading) >= self.threshold

        if not pressed:
            self._pressed_since = None
            self._fired = False
            return False

        if self._pressed_since is None:
            self._pressed_since = now
        if not self._fired and now - self._pressed_since >= self.min_press_seconds:
            self._fired = True
            return True
        return False

    @property
    def held(self) -> bool:
        return self._pressed_since is not None
