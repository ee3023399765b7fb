"""Installation engine - the per-frame tick driver.

This module wires the core together and runs it one frame at a time.
The engine is a COORDINATOR: values come from the ValueSimulator, coupling
from the CouplingEngine, states from the BiologicalStateMachine and timed
sequences from the TriggerController. It owns the current values and the
deferred-action queue and nothing else.

Frame order
-----------
1. Run deferred actions that are due (sequence steps, clip expiry, the
   activation flag).
2. Draw fresh targets when the target interval has elapsed.
3. Smooth every channel toward its target.
4. Apply coupling rules.
5. Every ``evaluation_interval_frames`` frames, evaluate the transition
   rules (skipped while a sequence suspends evaluation).
6. Return a FrameSnapshot for the renderer.

Input handlers (keyboard, HTTP, gamepad) call inject_spike(), trigger(),
force_state() or reset() between frames. There is one logical thread of
control, so these take effect immediately.
"""

import logging
import random
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from biocascade.config.installation_config import InstallationConfig
from biocascade.events import EventBus, LevelsResetEvent, SequenceEndedEvent, TransitionEvent, Unsubscribe
from biocascade.levels import DataPoint, LevelRegistry
from biocascade.result import Result
from biocascade.scheduler import DeferredScheduler
from biocascade.simulation.coupling import CouplingEngine
from biocascade.simulation.value_simulator import ValueSimulator, Values
from biocascade.state_machine import BiologicalStateMachine
from biocascade.states import TransitionKind
from biocascade.trigger import TriggerController

logger = logging.getLogger(__name__)

CLIP_KEY_PREFIX = "clip."


@dataclass(frozen=True)
class FrameSnapshot:
    """Everything the renderer needs to draw one frame.

    Attributes:
        frame: Frame number (1 after the first tick)
        states: Current state per level
        values: Displayed value per channel
        transitioning: Transition clip name per level, None when not playing
        activation_active: Trigger feedback flag
        sequence_active: Whether a triggered sequence is running
        autonomous_suspended: Whether threshold evaluation is paused
    """

    frame: int
    states: Mapping[str, Enum]
    values: Mapping[DataPoint, float]
    transitioning: Mapping[str, Optional[str]] = field(default_factory=dict)
    activation_active: bool = False
    sequence_active: bool = False
    autonomous_suspended: bool = False

    def level_values(self, level_id: str) -> Dict[str, float]:
        return {point.name: value for point, value in self.values.items() if point.level_id == level_id}

    def to_dict(self) -> Dict[str, Any]:
        levels: Dict[str, Any] = {}
        for level_id, state in self.states.items():
            levels[level_id] = {
                "state": state.value,
                "transition": self.transitioning.get(level_id),
                "values": {name: round(value, 1) for name, value in self.level_values(level_id).items()},
            }
        return {
            "frame": self.frame,
            "levels": levels,
            "activation_active": self.activation_active,
            "sequence_active": self.sequence_active,
            "autonomous_suspended": self.autonomous_suspended,
        }


class InstallationEngine:
    """Runs one installation frame by frame.

    Example:
        engine = InstallationEngine(cascade_config(), rng=random.Random(42))
        engine.subscribe(renderer.on_transition)
        while running:
            snapshot = engine.tick()
            renderer.draw(snapshot)
    """

    def __init__(
        self,
        config: InstallationConfig,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        timestamp_fn: Callable[[], float] = time.time,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        """Build and validate the installation.

        Args:
            config: Installation configuration
            rng: Random source for lerp rates and targets
            clock: Monotonic clock (seconds) used when tick()/trigger() get
                no explicit time
            timestamp_fn: Wall clock stamped on TransitionEvents
            event_bus: Bus shared with subscribers (a private one by default)

        Raises:
            ConfigurationError: If the configuration is inconsistent
        """
        self.config = config
        self.registry: LevelRegistry = config.validate()
        self.timing = config.timing
        self.event_bus = event_bus or EventBus()
        self._clock = clock

        self.machine = BiologicalStateMachine(
            self.registry,
            config.graph,
            config.rules,
            event_bus=self.event_bus,
            timestamp_fn=timestamp_fn,
        )
        self.simulator = ValueSimulator(
            self.registry,
            profiles=config.value_profiles,
            lerp_rate_range=self.timing.lerp_rate_range,
            value_range=self.timing.value_range,
            spike_hold_frames=self.timing.spike_hold_frames,
            rng=rng,
        )
        self.coupling = CouplingEngine(config.couplings)
        self.scheduler = DeferredScheduler()
        self.trigger_controller = TriggerController(
            self.machine,
            self.scheduler,
            config.sequence,
            event_bus=self.event_bus,
            timestamp_fn=timestamp_fn,
        )

        self.frame = 0
        self._values: Values = {point: 0.0 for point in self.registry.data_points}
        self._smoothed: Values = dict(self._values)
        self._last_target_time: Optional[float] = None
        self._now: Optional[float] = None
        self._transitioning: Dict[str, Optional[str]] = {level_id: None for level_id in self.registry.level_ids}
        self._history: Deque[TransitionEvent] = deque(maxlen=self.timing.history_limit)

        self.event_bus.subscribe(TransitionEvent, self._on_transition)
        self.event_bus.subscribe(LevelsResetEvent, self._on_reset)
        self.event_bus.subscribe(SequenceEndedEvent, self._on_sequence_ended)
        logger.info(
            "Installation %r ready: %d levels, %d data points, %d rules, %d couplings",
            config.name,
            len(self.registry),
            len(self.registry.data_points),
            len(config.rules),
            len(config.couplings),
        )

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    def tick(self, now: Optional[float] = None) -> FrameSnapshot:
        """Advance one frame.

        Args:
            now: Current time in seconds on the engine clock; defaults to
                the clock passed at construction

        Returns:
            The snapshot to render
        """
        now = self._resolve_now(now)
        self._now = now
        self.scheduler.run_due(now)

        states = self.machine.states()
        if self._last_target_time is None or now - self._last_target_time >= self.timing.target_interval_seconds:
            self.simulator.generate_targets(states)
            self._last_target_time = now

        smoothed = self.simulator.tick(self._values if self.config.compound_coupling else self._smoothed)
        self.simulator.advance_spikes()
        self._smoothed = smoothed
        self._values = self.coupling.apply(smoothed, states)

        self.frame += 1
        self.machine.frame = self.frame
        if self.frame % self.timing.evaluation_interval_frames == 0:
            self.machine.evaluate_all(self._values)

        return self.snapshot()

    def run_frames(self, count: int, start: float = 0.0) -> FrameSnapshot:
        """Tick ``count`` frames on a simulated clock at the nominal frame rate."""
        snapshot = self.snapshot()
        base = self._now if self._now is not None else start
        for i in range(1, count + 1):
            snapshot = self.tick(base + i * self.timing.frame_seconds)
        return snapshot

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def inject_spike(self, level_id: str, data_point: str, value: float) -> bool:
        """Spike one channel, e.g. push the predator's Hunger over 80.

        The value is shown immediately and the channel's target is held at
        it for the spike hold window, so the next evaluation boundary sees
        it.

        Returns:
            False if the channel does not exist
        """
        if not self.simulator.inject_spike(level_id, data_point, value):
            return False
        point = DataPoint(level_id, data_point)
        self._values[point] = value
        self._smoothed[point] = value
        logger.info("Spike on %s: %.1f", point, value)
        return True

    def trigger(self, now: Optional[float] = None) -> bool:
        """Activate the configured sequence (debounced)."""
        return self.trigger_controller.trigger(self._resolve_now(now))

    def transition(self, level_id: str, state: Any, play_transition: bool = True) -> Result[TransitionEvent, str]:
        """Request a validated state change."""
        return self.machine.transition(level_id, state, kind=TransitionKind.MANUAL, play_transition=play_transition)

    def force_state(self, level_id: str, state: Any, play_transition: bool = False) -> Result[TransitionEvent, str]:
        """Debug override that bypasses the transition graph."""
        return self.machine.force_state(level_id, state, play_transition=play_transition)

    def transition_all(self, state: Any, play_transition: bool = False) -> List[TransitionEvent]:
        """Request the same validated change on every level that allows it.

        Levels that are already in ``state`` or cannot reach it are skipped
        without a warning.
        """
        target = self.machine.graph.parse(state)
        if target is None:
            return []
        events = []
        for level_id in self.registry.level_ids:
            if self.machine.state(level_id) == target or not self.machine.can_transition(level_id, target):
                continue
            result = self.transition(level_id, target, play_transition=play_transition)
            if result.is_ok():
                events.append(result.unwrap())
        return events

    def reset(self) -> None:
        """Return every level to baseline, cancel timers and clear history."""
        self.trigger_controller.cancel()
        self.scheduler.clear()
        self.simulator.clear_spikes()
        self.machine.reset()

    def subscribe(self, handler: Callable[[TransitionEvent], None]) -> Unsubscribe:
        return self.machine.subscribe(handler)

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def states(self) -> Dict[str, Enum]:
        return self.machine.states()

    def values(self) -> Dict[DataPoint, float]:
        return dict(self._values)

    def targets(self) -> Dict[DataPoint, float]:
        return dict(self.simulator.targets)

    @property
    def history(self) -> List[TransitionEvent]:
        """Recent transition events, newest first."""
        return list(self._history)

    @property
    def transitioning(self) -> Dict[str, Optional[str]]:
        return dict(self._transitioning)

    @property
    def activation_active(self) -> bool:
        return self.trigger_controller.activation_active

    @property
    def sequence_active(self) -> bool:
        return self.trigger_controller.sequence_active

    def snapshot(self) -> FrameSnapshot:
        return FrameSnapshot(
            frame=self.frame,
            states=self.machine.states(),
            values=dict(self._values),
            transitioning=dict(self._transitioning),
            activation_active=self.trigger_controller.activation_active,
            sequence_active=self.trigger_controller.sequence_active,
            autonomous_suspended=self.machine.autonomous_suspended,
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_transition(self, event: TransitionEvent) -> None:
        self._history.appendleft(event)
        level_id = event.level_id
        key = f"{CLIP_KEY_PREFIX}{level_id}"
        self.scheduler.cancel_key(key)
        if not event.play_transition or self.timing.transition_clip_seconds <= 0:
            self._transitioning[level_id] = None
            return

        self._transitioning[level_id] = event.transition_name
        generation = self.machine.generation(level_id)
        now = self._now if self._now is not None else self._clock()
        self.scheduler.schedule(
            now + self.timing.transition_clip_seconds,
            lambda: self._transitioning.__setitem__(level_id, None),
            key=key,
            guard=lambda: self.machine.generation(level_id) == generation,
        )

    def _on_reset(self, event: LevelsResetEvent) -> None:
        self._history.clear()
        for level_id in self._transitioning:
            self._transitioning[level_id] = None

    def _on_sequence_ended(self, event: SequenceEndedEvent) -> None:
        # Draw baseline targets on the next frame instead of keeping the sequence's
        self._last_target_time = None

    def _resolve_now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def __repr__(self) -> str:
        return f"InstallationEngine(config={self.config.name!r}, frame={self.frame}, machine={self.machine!r})"
