"""State machines for the biological levels.

Two layers live here:

- ``StateMachine`` holds one level's state and validates every requested
  change against a ``TransitionGraph``. Invalid transitions are rejected
  with an ``Err`` result, never an exception, and the state stays put.
- ``BiologicalStateMachine`` owns one ``StateMachine`` per level, evaluates
  the per-level transition rules against the current channel values, and
  publishes a ``TransitionEvent`` for every committed change.

Usage:
------
    machine = BiologicalStateMachine(registry, create_cascade_graph(), rules)
    unsubscribe = machine.subscribe(lambda event: print(event.transition_name))

    machine.evaluate_all(values)  # Threshold-driven changes
    machine.transition("flock", CascadeState.EXCITED)  # Validated request
    machine.force_state("individual", CascadeState.DEAD)  # Debug override
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from biocascade.config.simulation import LEVEL_HISTORY_LIMIT
from biocascade.events import EventBus, LevelsResetEvent, TransitionEvent, Unsubscribe
from biocascade.exceptions import ConfigurationError
from biocascade.levels import LevelRegistry
from biocascade.result import Err, Ok, Result
from biocascade.rules import TransitionRule, Values
from biocascade.states import TransitionGraph, TransitionKind, transition_name

logger = logging.getLogger(__name__)

# Type variable for state enum types
S = TypeVar("S", bound=Enum)


@dataclass
class StateTransition(Generic[S]):
    """Record of a state transition for debugging.

    Attributes:
        from_state: The state before transition
        to_state: The state after transition
        frame: The engine frame when transition occurred
        reason: Optional description of why transition happened
    """

    from_state: S
    to_state: S
    frame: int
    reason: str = ""


class StateMachine(Generic[S]):
    """A single level's state with explicit transition validation.

    Every committed change, validated or forced, bumps ``generation``.
    Delayed effects record the generation when they are scheduled and
    compare it before applying, so a change made in the meantime wins.
    """

    def __init__(
        self,
        initial_state: S,
        graph: TransitionGraph[S],
        track_history: bool = False,
        max_history: int = LEVEL_HISTORY_LIMIT,
    ) -> None:
        """Initialize the state machine.

        Args:
            initial_state: The starting state
            graph: Valid transitions and terminal states
            track_history: Whether to record transition history
            max_history: Maximum number of transitions to keep in history
        """
        if initial_state not in graph.edges:
            raise ConfigurationError(
                f"Initial state {initial_state} not in transition graph. "
                f"Valid states: {[s.name for s in graph.edges]}"
            )

        self._state = initial_state
        self._graph = graph
        self._track_history = track_history
        self._max_history = max_history
        self._history: List[StateTransition[S]] = []
        self._generation = 0

    @property
    def state(self) -> S:
        """Get the current state."""
        return self._state

    @property
    def generation(self) -> int:
        """Number of committed changes so far."""
        return self._generation

    @property
    def history(self) -> List[StateTransition[S]]:
        """Get transition history (empty if tracking disabled)."""
        return self._history.copy()

    @property
    def is_terminal(self) -> bool:
        return self._graph.is_terminal(self._state)

    def can_transition(self, target: S) -> bool:
        """Check if transition to target state is valid."""
        return self._graph.allows(self._state, target)

    def try_transition(self, target: S, frame: int = 0, reason: str = "") -> Result[S, str]:
        """Attempt to transition to a new state.

        Returns Ok(new_state) if successful, Err(message) if invalid. On
        Err the state is unchanged.
        """
        if not self.can_transition(target):
            if self._graph.is_terminal(self._state):
                return Err(
                    f"Invalid transition: {self._state.name} -> {target.name}. "
                    f"{self._state.name} is terminal"
                )
            valid_targets = self._graph.targets(self._state)
            return Err(
                f"Invalid transition: {self._state.name} -> {target.name}. "
                f"Valid targets from {self._state.name}: {[t.name for t in valid_targets]}"
            )

        self._commit(target, frame, reason)
        return Ok(target)

    def force_state(self, state: S, frame: int = 0, reason: str = "forced") -> None:
        """Force a state change without validation.

        Use sparingly! This bypasses the graph, terminal states included,
        and exists for debug controls and the trigger controller.
        """
        self._commit(state, frame, f"[FORCED] {reason}")

    def reset(self, state: S) -> None:
        """Return to ``state`` and forget history."""
        self._state = state
        self._generation += 1
        self._history.clear()

    def _commit(self, target: S, frame: int, reason: str) -> None:
        old_state = self._state
        self._state = target
        self._generation += 1
        if self._track_history:
            self._record_transition(old_state, target, frame, reason)

    def _record_transition(self, from_state: S, to_state: S, frame: int, reason: str) -> None:
        """Record a transition in history."""
        self._history.append(
            StateTransition(
                from_state=from_state,
                to_state=to_state,
                frame=frame,
                reason=reason,
            )
        )

        # Trim history if too long
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history :]

    def __repr__(self) -> str:
        return f"StateMachine(state={self._state.name}, generation={self._generation})"


class BiologicalStateMachine(Generic[S]):
    """Authoritative per-level state for the whole installation.

    Attributes:
        graph: The shared transition graph
        frame: Current engine frame, stamped on events (set by the engine)
    """

    def __init__(
        self,
        registry: LevelRegistry,
        graph: TransitionGraph[S],
        rules: Iterable[TransitionRule] = (),
        event_bus: Optional[EventBus] = None,
        timestamp_fn: Callable[[], float] = time.time,
        track_history: bool = False,
    ) -> None:
        """Initialize every level at the graph's baseline.

        Args:
            registry: The fixed set of levels
            graph: Valid transitions shared by every level
            rules: Autonomous transition rules, at most one per level
            event_bus: Bus to publish events on (a private one by default)
            timestamp_fn: Wall-clock source for event timestamps
            track_history: Whether each level records its transitions

        Raises:
            ConfigurationError: If the graph is inconsistent or a rule
                references an unknown level or channel
        """
        graph.validate()
        self.graph = graph
        self.frame = 0
        self._registry = registry
        self._bus = event_bus or EventBus()
        self._timestamp = timestamp_fn
        self._suspended = False

        self._rules: Dict[str, TransitionRule] = {}
        for rule in rules:
            rule.validate(registry)
            if rule.level_id in self._rules:
                raise ConfigurationError(f"Duplicate transition rule for level {rule.level_id!r}")
            self._rules[rule.level_id] = rule

        self._machines: Dict[str, StateMachine[S]] = {
            level_id: StateMachine(graph.baseline, graph, track_history=track_history)
            for level_id in registry.level_ids
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def level_ids(self) -> List[str]:
        return list(self._machines)

    @property
    def autonomous_suspended(self) -> bool:
        return self._suspended

    def state(self, level_id: str) -> Optional[S]:
        machine = self._machines.get(level_id)
        return machine.state if machine is not None else None

    def states(self) -> Dict[str, S]:
        """Snapshot of every level's current state."""
        return {level_id: machine.state for level_id, machine in self._machines.items()}

    def generation(self, level_id: str) -> int:
        machine = self._machines.get(level_id)
        return machine.generation if machine is not None else -1

    def level_history(self, level_id: str) -> List[StateTransition[S]]:
        machine = self._machines.get(level_id)
        return machine.history if machine is not None else []

    def rule_for(self, level_id: str) -> Optional[TransitionRule]:
        return self._rules.get(level_id)

    def all_at_baseline(self) -> bool:
        return all(machine.state == self.graph.baseline for machine in self._machines.values())

    def can_transition(self, level_id: str, to_state: S) -> bool:
        machine = self._machines.get(level_id)
        return machine is not None and machine.can_transition(to_state)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def transition(
        self,
        level_id: str,
        to_state: S,
        *,
        kind: TransitionKind = TransitionKind.MANUAL,
        play_transition: bool = True,
        reason: str = "",
    ) -> Result[TransitionEvent, str]:
        """Request a validated state change.

        Rejections (unknown level, state outside the graph, edge not in the
        graph, leaving a terminal state) are logged at warning level and
        returned as Err; the level keeps its state.
        """
        machine = self._machines.get(level_id)
        if machine is None:
            message = f"Unknown level {level_id!r}"
            logger.warning("Transition rejected: %s", message)
            return Err(message)

        target = self.graph.parse(to_state)
        if target is None:
            message = f"State {to_state!r} is not part of the transition graph"
            logger.warning("Transition rejected for %s: %s", level_id, message)
            return Err(message)

        from_state = machine.state
        result = machine.try_transition(target, self.frame, reason or kind.value)
        if result.is_err():
            logger.warning("Transition rejected for %s: %s", level_id, result.error)
            return Err(result.error)

        return Ok(self._publish(level_id, from_state, target, kind, play_transition))

    def force_state(
        self,
        level_id: str,
        state: S,
        *,
        kind: TransitionKind = TransitionKind.FORCED,
        play_transition: bool = False,
        reason: str = "forced",
    ) -> Result[TransitionEvent, str]:
        """Set a level's state without consulting the graph.

        Still emits a TransitionEvent, flagged as forced. Only an unknown
        level or a state outside the graph is rejected.
        """
        machine = self._machines.get(level_id)
        if machine is None:
            message = f"Unknown level {level_id!r}"
            logger.warning("Forced state rejected: %s", message)
            return Err(message)

        target = self.graph.parse(state)
        if target is None:
            message = f"State {state!r} is not part of the transition graph"
            logger.warning("Forced state rejected for %s: %s", level_id, message)
            return Err(message)

        from_state = machine.state
        machine.force_state(target, self.frame, reason)
        return Ok(self._publish(level_id, from_state, target, kind, play_transition))

    def evaluate(self, level_id: str, values: Values) -> Optional[TransitionEvent]:
        """Run autonomous evaluation for one level.

        Does nothing while evaluation is suspended, when the level's state
        is not eligible (terminal states never are), or when the level has
        no rule.

        Returns:
            The committed event, or None if the state did not change
        """
        if self._suspended:
            return None

        machine = self._machines.get(level_id)
        rule = self._rules.get(level_id)
        if machine is None or rule is None:
            return None

        state = machine.state
        if state not in self.graph.eligible_states:
            return None

        if rule.should_terminate(values):
            terminal = next((t for t in self.graph.targets(state) if self.graph.is_terminal(t)), None)
            if terminal is not None:
                return self._autonomous(level_id, terminal, "terminal conditions met")

        if state == self.graph.baseline:
            if rule.should_activate(values):
                return self._autonomous(level_id, self.graph.elevated, rule.summary())
        elif state == self.graph.elevated and self.graph.auto_revert:
            if not rule.should_activate(values):
                return self._autonomous(level_id, self.graph.baseline, f"not ({rule.summary()})")

        return None

    def evaluate_all(self, values: Values) -> List[TransitionEvent]:
        """Evaluate every level, in registry order, against one snapshot."""
        events: List[TransitionEvent] = []
        if self._suspended:
            return events
        for level_id in self._machines:
            event = self.evaluate(level_id, values)
            if event is not None:
                events.append(event)
        return events

    def suspend_autonomous(self) -> None:
        self._suspended = True

    def resume_autonomous(self) -> None:
        self._suspended = False

    def subscribe(self, handler: Callable[[TransitionEvent], None]) -> Unsubscribe:
        """Register an observer for TransitionEvents.

        Returns:
            An idempotent unsubscribe callable
        """
        return self._bus.subscribe(TransitionEvent, handler)

    def reset(self) -> None:
        """Return every level to baseline and clear per-level history."""
        for machine in self._machines.values():
            machine.reset(self.graph.baseline)
        logger.info("All %d levels reset to %s", len(self._machines), self.graph.baseline.name)
        self._bus.emit(
            LevelsResetEvent(
                level_ids=tuple(self._machines),
                baseline=self.graph.baseline,
                timestamp=self._timestamp(),
            )
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _autonomous(self, level_id: str, target: S, reason: str) -> Optional[TransitionEvent]:
        result = self.transition(level_id, target, kind=TransitionKind.AUTONOMOUS, reason=reason)
        return result.unwrap_or(None)

    def _publish(
        self,
        level_id: str,
        from_state: S,
        to_state: S,
        kind: TransitionKind,
        play_transition: bool,
    ) -> TransitionEvent:
        event = TransitionEvent(
            level_id=level_id,
            from_state=from_state,
            to_state=to_state,
            kind=kind,
            transition_name=transition_name(from_state, to_state),
            timestamp=self._timestamp(),
            frame=self.frame,
            play_transition=play_transition,
        )
        logger.debug(
            f"{level_id}: {from_state.name} -> {to_state.name} ({kind.value}, frame {self.frame})"
        )
        self._bus.emit(event)
        return event

    def __repr__(self) -> str:
        states = ", ".join(f"{level}={state.name}" for level, state in self.states().items())
        return f"BiologicalStateMachine({states})"
