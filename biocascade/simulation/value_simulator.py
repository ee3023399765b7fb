"""Simulated sensor feed for every data point.

Each channel chases a random target: every ``target_interval_seconds`` a new
target is drawn for every channel, scaled by a multiplier that depends on
the owning level's state (excited levels run hot, dead levels fall silent),
and every frame the displayed value moves a fixed fraction of the way
toward it (exponential smoothing). The fraction, the channel's lerp rate,
is drawn once per channel at construction and never changes, which gives
each bar its own temperament.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence, Tuple

from biocascade.config.simulation import (
    DEFAULT_LERP_RATE,
    LERP_RATE_MAX,
    LERP_RATE_MIN,
    SPIKE_HOLD_FRAMES,
    VALUE_RANGE,
)
from biocascade.levels import DataPoint, LevelRegistry

logger = logging.getLogger(__name__)

Values = Dict[DataPoint, float]


def lerp(start: float, end: float, rate: float) -> float:
    """Move ``rate`` of the way from ``start`` to ``end``."""
    return start + (end - start) * rate


@dataclass(frozen=True)
class ValueProfile:
    """Target multipliers for levels in one state.

    Attributes:
        default: Multiplier for channels without a matching override
        overrides: ``(keywords, multiplier)`` pairs; the first pair with a
            keyword contained in the channel name wins
    """

    default: float = 1.0
    overrides: Tuple[Tuple[Tuple[str, ...], float], ...] = ()

    def multiplier_for(self, data_point: str) -> float:
        for keywords, multiplier in self.overrides:
            if any(keyword in data_point for keyword in keywords):
                return multiplier
        return self.default


class ValueSimulator:
    """Target generator plus smoothing engine for all channels.

    Attributes:
        targets: Most recent target per channel
    """

    def __init__(
        self,
        registry: LevelRegistry,
        profiles: Optional[Mapping[Enum, ValueProfile]] = None,
        lerp_rate_range: Tuple[float, float] = (LERP_RATE_MIN, LERP_RATE_MAX),
        value_range: float = VALUE_RANGE,
        spike_hold_frames: int = SPIKE_HOLD_FRAMES,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize the simulator and draw every channel's lerp rate.

        Args:
            registry: Levels and their channels
            profiles: Multiplier profile per state; states without a
                profile use a multiplier of 1
            lerp_rate_range: ``(low, high)`` range lerp rates are drawn from
            value_range: Upper bound of a raw target before the multiplier
            spike_hold_frames: Frames an injected spike survives regeneration
            rng: Random source (a fresh unseeded one by default)
        """
        self._registry = registry
        self._profiles: Dict[Enum, ValueProfile] = dict(profiles or {})
        self._value_range = value_range
        self._spike_hold_frames = spike_hold_frames
        self._rng = rng if rng is not None else random.Random()

        low, high = lerp_rate_range
        self._lerp_rates: Mapping[DataPoint, float] = MappingProxyType(
            {point: low + self._rng.random() * (high - low) for point in registry.data_points}
        )
        self.targets: Values = {}
        self._pinned: Dict[DataPoint, int] = {}

    @property
    def lerp_rates(self) -> Mapping[DataPoint, float]:
        """Read-only view of every channel's lerp rate."""
        return self._lerp_rates

    @property
    def data_points(self) -> Sequence[DataPoint]:
        return self._registry.data_points

    def multiplier(self, state: Optional[Enum], data_point: DataPoint) -> float:
        profile = self._profiles.get(state) if state is not None else None
        if profile is None:
            return 1.0
        return profile.multiplier_for(data_point.name)

    def generate_targets(self, states: Mapping[str, Enum]) -> Values:
        """Draw a fresh target for every channel.

        Channels holding an injected spike keep their spiked target.

        Args:
            states: Current state per level

        Returns:
            The new targets (also stored on ``targets``)
        """
        targets: Values = {}
        for point in self._registry.data_points:
            if point in self._pinned and point in self.targets:
                targets[point] = self.targets[point]
                continue
            base = self._rng.random() * self._value_range
            targets[point] = base * self.multiplier(states.get(point.level_id), point)
        self.targets = targets
        return targets

    def tick(self, current_values: Mapping[DataPoint, float]) -> Values:
        """Advance every channel one smoothing step toward its target.

        Pure with respect to ``(current_values, targets, lerp_rates)``: a
        missing current value counts as 0, a missing target leaves the
        value where it is, and a missing rate uses DEFAULT_LERP_RATE.
        """
        new_values: Values = {}
        for point in self._registry.data_points:
            current = current_values.get(point, 0.0) or 0.0
            target = self.targets.get(point, current)
            rate = self._lerp_rates.get(point, DEFAULT_LERP_RATE)
            new_values[point] = lerp(current, target, rate)
        return new_values

    def inject_spike(self, level_id: str, name: str, value: float) -> bool:
        """Pin a channel's target to ``value`` for the spike hold window.

        Returns:
            False (and does nothing) if the channel does not exist
        """
        point = DataPoint(level_id, name)
        if not self._registry.has_data_point(level_id, name):
            logger.warning("Ignoring spike on unknown data point %s", point)
            return False
        self.targets[point] = value
        self._pinned[point] = self._spike_hold_frames
        logger.debug(f"Spike injected on {point}: {value:.1f}")
        return True

    def advance_spikes(self) -> None:
        """Count down spike hold windows by one frame."""
        for point in list(self._pinned):
            self._pinned[point] -= 1
            if self._pinned[point] <= 0:
                del self._pinned[point]

    def is_pinned(self, point: DataPoint) -> bool:
        return point in self._pinned

    def clear_spikes(self) -> None:
        self._pinned.clear()
