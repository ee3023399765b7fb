"""Cross-level data coupling.

Coupling rules let one level's state bias another level's displayed values:
an excited predator raises the flock's collective energy, an excited flock
pushes individual birds closer together, and so on down the scales. Rules
are applied after smoothing and before threshold evaluation, so a coupled
value can itself push the target level over its activation threshold.

``add`` and ``multiply`` compound when applied to their own output again.
That is the intended per-cycle influence; only ``set`` is idempotent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Mapping, Tuple

from biocascade.exceptions import ConfigurationError
from biocascade.levels import DataPoint, LevelRegistry


class CombineMode(Enum):
    """How a coupling influence combines with the target value."""

    ADD = "add"
    MULTIPLY = "multiply"
    SET = "set"

    def combine(self, value: float, influence: float) -> float:
        if self is CombineMode.ADD:
            return value + influence
        if self is CombineMode.MULTIPLY:
            return value * influence
        return influence


@dataclass(frozen=True)
class CouplingRule:
    """One cross-level influence.

    Attributes:
        source_level: Level whose state gates the rule
        source_states: States of the source level in which the rule applies
        target: Channel the rule perturbs
        influence: Amount added, factor multiplied, or value set
        mode: How the influence combines with the target value
    """

    source_level: str
    source_states: FrozenSet[Enum]
    target: DataPoint
    influence: float
    mode: CombineMode = CombineMode.ADD

    def applies(self, states: Mapping[str, Enum]) -> bool:
        return states.get(self.source_level) in self.source_states

    def validate(self, registry: LevelRegistry, known_states: Iterable[Enum]) -> None:
        """Check the source level, target channel and gating states exist.

        Raises:
            ConfigurationError: On the first dangling reference
        """
        context = f"coupling {self.source_level!r} -> {self.target}"
        if self.source_level not in registry:
            raise ConfigurationError(
                f"{context}: unknown source level {self.source_level!r}. "
                f"Known levels: {registry.level_ids}"
            )
        registry.require_data_point(self.target.level_id, self.target.name, context=context)
        if not self.source_states:
            raise ConfigurationError(f"{context}: no source states given")
        known = set(known_states)
        unknown = [state for state in self.source_states if state not in known]
        if unknown:
            raise ConfigurationError(f"{context}: source states {unknown} not in transition graph")

    def __str__(self) -> str:
        states = "|".join(sorted(state.name for state in self.source_states))
        return f"{self.source_level}[{states}] {self.mode.value} {self.influence:g} -> {self.target}"


def coupling(
    source_level: str,
    source_state: Enum,
    target_level: str,
    target_data_point: str,
    influence: float,
    mode: str = "add",
) -> CouplingRule:
    """Shorthand for the common single-state rule.

    Example:
        coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 15)
    """
    return CouplingRule(
        source_level=source_level,
        source_states=frozenset({source_state}),
        target=DataPoint(target_level, target_data_point),
        influence=influence,
        mode=CombineMode(mode),
    )


class CouplingEngine:
    """Applies a fixed list of coupling rules to value snapshots.

    Rules run in configuration order; several rules targeting the same
    channel see each other's results.
    """

    def __init__(self, rules: Iterable[CouplingRule] = ()) -> None:
        self._rules: Tuple[CouplingRule, ...] = tuple(rules)

    @property
    def rules(self) -> Tuple[CouplingRule, ...]:
        return self._rules

    def apply(self, values: Mapping[DataPoint, float], states: Mapping[str, Enum]) -> Dict[DataPoint, float]:
        """Return a copy of ``values`` with every applicable rule applied.

        Rules whose source level is not in one of their source states are
        skipped. A target with no value yet counts as 0. The input mapping
        is never modified.
        """
        adjusted: Dict[DataPoint, float] = dict(values)
        for rule in self._rules:
            if not rule.applies(states):
                continue
            current = adjusted.get(rule.target, 0.0)
            adjusted[rule.target] = rule.mode.combine(current, rule.influence)
        return adjusted

    def active_rules(self, states: Mapping[str, Enum]) -> List[CouplingRule]:
        """Rules that would apply under ``states`` (debug overlay)."""
        return [rule for rule in self._rules if rule.applies(states)]
