"""Installation configuration dataclasses.

Everything the core consumes but does not own lives here: the level list,
the transition graph, transition and coupling rules, state value profiles,
timing and the trigger sequence. ``InstallationConfig.validate()`` checks
every cross-reference up front so wiring mistakes fail at load time with a
descriptive ConfigurationError rather than silently misbehaving mid-show.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from biocascade.config.display import FRAME_RATE
from biocascade.config.simulation import (
    EVALUATION_INTERVAL_FRAMES,
    HISTORY_LIMIT,
    LERP_RATE_MAX,
    LERP_RATE_MIN,
    SPIKE_HOLD_FRAMES,
    TARGET_INTERVAL_SECONDS,
    VALUE_RANGE,
)
from biocascade.config.trigger import (
    ACTIVATION_FEEDBACK_SECONDS,
    MIN_PRESS_SECONDS,
    TRANSITION_CLIP_SECONDS,
    TRIGGER_COOLDOWN_SECONDS,
)
from biocascade.exceptions import ConfigurationError
from biocascade.levels import LevelDefinition, LevelRegistry
from biocascade.rules import TransitionRule
from biocascade.simulation.coupling import CouplingRule
from biocascade.simulation.value_simulator import ValueProfile
from biocascade.states import TransitionGraph


@dataclass
class TimingConfig:
    """Frame cadence and timer lengths.

    Attributes:
        frame_rate: Nominal frames per second of the render loop
        evaluation_interval_frames: Autonomous evaluation runs every N frames
        target_interval_seconds: Seconds between target regenerations
        spike_hold_frames: Frames an injected spike survives regeneration
        transition_clip_seconds: How long a level shows its transition clip
        history_limit: Transition events kept for the debug overlay
        lerp_rate_range: Range each channel's lerp rate is drawn from
        value_range: Upper bound of a raw random target
    """

    frame_rate: int = FRAME_RATE
    evaluation_interval_frames: int = EVALUATION_INTERVAL_FRAMES
    target_interval_seconds: float = TARGET_INTERVAL_SECONDS
    spike_hold_frames: int = SPIKE_HOLD_FRAMES
    transition_clip_seconds: float = TRANSITION_CLIP_SECONDS
    history_limit: int = HISTORY_LIMIT
    lerp_rate_range: Tuple[float, float] = (LERP_RATE_MIN, LERP_RATE_MAX)
    value_range: float = VALUE_RANGE

    @property
    def frame_seconds(self) -> float:
        return 1.0 / self.frame_rate


@dataclass(frozen=True)
class SequenceStep:
    """One stage of a triggered sequence: hold every level in ``state``."""

    state: Enum
    dwell_seconds: float


@dataclass
class SequenceConfig:
    """Trigger controller behaviour.

    Attributes:
        steps: Stages forced in order; after the last one every level
            returns to baseline
        cooldown_seconds: Triggers this soon after an accepted one are ignored
        activation_feedback_seconds: Lifetime of the "activation active" flag
        min_press_seconds: Hold time required from polled hardware buttons
        require_all_baseline: Only accept triggers while every level rests
        play_transition: Whether sequence changes play transition clips
        settle_seconds: Autonomous evaluation stays suspended this long
            after a completed sequence
    """

    steps: Tuple[SequenceStep, ...] = ()
    cooldown_seconds: float = TRIGGER_COOLDOWN_SECONDS
    activation_feedback_seconds: float = ACTIVATION_FEEDBACK_SECONDS
    min_press_seconds: float = MIN_PRESS_SECONDS
    require_all_baseline: bool = True
    play_transition: bool = True
    settle_seconds: float = 0.0

    @property
    def total_seconds(self) -> float:
        return sum(step.dwell_seconds for step in self.steps)


@dataclass
class InstallationConfig:
    """Complete configuration of one installation.

    Attributes:
        name: Preset name, for logs and the API
        levels: Level definitions in display order
        graph: Transition graph shared by all levels
        rules: Autonomous transition rules (at most one per level)
        couplings: Cross-level coupling rules, applied in order
        value_profiles: Target multipliers per state
        timing: Frame cadence and timer lengths
        sequence: Trigger controller behaviour
        compound_coupling: Feed coupled values back into smoothing (the
            influence accumulates frame over frame) instead of overlaying
            them on the smoothed values each frame
    """

    name: str
    levels: Tuple[LevelDefinition, ...]
    graph: TransitionGraph
    rules: Tuple[TransitionRule, ...] = ()
    couplings: Tuple[CouplingRule, ...] = ()
    value_profiles: Dict[Enum, ValueProfile] = field(default_factory=dict)
    timing: TimingConfig = field(default_factory=TimingConfig)
    sequence: SequenceConfig = field(default_factory=SequenceConfig)
    compound_coupling: bool = True

    def build_registry(self) -> LevelRegistry:
        return LevelRegistry(self.levels)

    def validate(self, registry: Optional[LevelRegistry] = None) -> LevelRegistry:
        """Check every cross-reference in the configuration.

        Args:
            registry: Registry to validate against (built from ``levels``
                when omitted)

        Returns:
            The registry the configuration was validated against

        Raises:
            ConfigurationError: On the first inconsistency found
        """
        registry = registry or self.build_registry()
        self.graph.validate()
        states = self.graph.states

        seen_rules = set()
        for rule in self.rules:
            rule.validate(registry)
            if rule.level_id in seen_rules:
                raise ConfigurationError(f"Duplicate transition rule for level {rule.level_id!r}")
            seen_rules.add(rule.level_id)

        for coupling_rule in self.couplings:
            coupling_rule.validate(registry, states)

        for state in self.value_profiles:
            if state not in self.graph.edges:
                raise ConfigurationError(f"Value profile for {state} which is not in the transition graph")

        self._validate_timing()
        self._validate_sequence()
        return registry

    def _validate_timing(self) -> None:
        timing = self.timing
        if timing.frame_rate <= 0:
            raise ConfigurationError(f"frame_rate must be positive, got {timing.frame_rate}")
        if timing.evaluation_interval_frames <= 0:
            raise ConfigurationError(
                f"evaluation_interval_frames must be positive, got {timing.evaluation_interval_frames}"
            )
        if timing.target_interval_seconds <= 0:
            raise ConfigurationError(
                f"target_interval_seconds must be positive, got {timing.target_interval_seconds}"
            )
        if timing.spike_hold_frames < 0 or timing.history_limit < 0:
            raise ConfigurationError("spike_hold_frames and history_limit cannot be negative")
        if timing.transition_clip_seconds < 0:
            raise ConfigurationError("transition_clip_seconds cannot be negative")
        low, high = timing.lerp_rate_range
        if not 0 < low <= high <= 1:
            raise ConfigurationError(
                f"lerp_rate_range must satisfy 0 < low <= high <= 1, got {timing.lerp_rate_range}"
            )

    def _validate_sequence(self) -> None:
        sequence = self.sequence
        for step in sequence.steps:
            if step.state not in self.graph.edges:
                raise ConfigurationError(f"Sequence step state {step.state} not in transition graph")
            if step.dwell_seconds <= 0:
                raise ConfigurationError(
                    f"Sequence step {step.state} needs a positive dwell, got {step.dwell_seconds}"
                )
        if sequence.cooldown_seconds < 0 or sequence.activation_feedback_seconds < 0:
            raise ConfigurationError("Trigger cooldown and feedback durations cannot be negative")
        if sequence.min_press_seconds < 0:
            raise ConfigurationError("min_press_seconds cannot be negative")
        if sequence.settle_seconds < 0:
            raise ConfigurationError("settle_seconds cannot be negative")
