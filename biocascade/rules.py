"""Threshold-based transition rules.

A rule decides whether a level should leave its baseline state. Most rules
are a handful of comparisons against the level's own channels ("Hunger above
80"), so they are written declaratively as ``Threshold`` conditions; that
keeps them inspectable and lets configuration loading check that every
referenced channel exists. Rules that need arbitrary logic can supply a
predicate instead.

Missing values read as 0.
"""

import operator
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Tuple

from biocascade.exceptions import ConfigurationError
from biocascade.levels import DataPoint, LevelRegistry

Values = Mapping[DataPoint, float]

_OPERATORS: Dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


@dataclass(frozen=True)
class Threshold:
    """One comparison, e.g. ``Threshold("Hunger", ">", 80)``.

    Attributes:
        data_point: Channel name
        op: One of ``>``, ``>=``, ``<``, ``<=``
        value: Right-hand side of the comparison
        level_id: Level owning the channel; None means the rule's own level
    """

    data_point: str
    op: str
    value: float
    level_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.op not in _OPERATORS:
            raise ConfigurationError(
                f"Unknown comparison {self.op!r} in threshold on {self.data_point!r}. "
                f"Valid comparisons: {sorted(_OPERATORS)}"
            )

    def resolve(self, default_level: str) -> DataPoint:
        return DataPoint(self.level_id or default_level, self.data_point)

    def holds(self, values: Values, default_level: str) -> bool:
        current = values.get(self.resolve(default_level), 0.0)
        return _OPERATORS[self.op](float(current or 0.0), self.value)

    def __str__(self) -> str:
        return f"{self.data_point} {self.op} {self.value:g}"


@dataclass(frozen=True)
class TransitionRule:
    """Autonomous transition rule for one level.

    Activation requires every condition (and the predicate, if given) to
    hold. A rule with neither conditions nor predicate never activates.

    Attributes:
        level_id: Level the rule belongs to
        conditions: Thresholds that must all hold to activate
        terminal_conditions: Thresholds that, all holding, move an active
            level into the terminal state. Empty means never.
        predicate: Optional extra check over the full values snapshot
        description: Human-readable summary for logs and the API
    """

    level_id: str
    conditions: Tuple[Threshold, ...] = ()
    terminal_conditions: Tuple[Threshold, ...] = ()
    predicate: Optional[Callable[[Values], bool]] = None
    description: str = ""

    def should_activate(self, values: Values) -> bool:
        if not self.conditions and self.predicate is None:
            return False
        if not all(condition.holds(values, self.level_id) for condition in self.conditions):
            return False
        if self.predicate is not None and not self.predicate(values):
            return False
        return True

    def should_terminate(self, values: Values) -> bool:
        if not self.terminal_conditions:
            return False
        return all(condition.holds(values, self.level_id) for condition in self.terminal_conditions)

    def summary(self) -> str:
        if self.description:
            return self.description
        parts = [str(condition) for condition in self.conditions]
        if self.predicate is not None:
            parts.append("custom predicate")
        return " and ".join(parts) or "never"

    def validate(self, registry: LevelRegistry) -> None:
        """Check every referenced level and channel exists.

        Raises:
            ConfigurationError: On the first dangling reference
        """
        if self.level_id not in registry:
            raise ConfigurationError(
                f"Transition rule references unknown level {self.level_id!r}. "
                f"Known levels: {registry.level_ids}"
            )
        for condition in self.conditions + self.terminal_conditions:
            point = condition.resolve(self.level_id)
            registry.require_data_point(
                point.level_id, point.name, context=f"transition rule for {self.level_id!r}"
            )


def threshold_rule(level_id: str, *conditions: Tuple[str, str, float], **kwargs) -> TransitionRule:
    """Build a rule from ``(data_point, op, value)`` triples on the level's own channels.

    Example:
        threshold_rule("flock", ("Cohesion", "<", 50), ("Variance", ">", 50))
    """
    return TransitionRule(
        level_id=level_id,
        conditions=tuple(Threshold(name, op, value) for name, op, value in conditions),
        **kwargs,
    )
