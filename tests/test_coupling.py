"""Tests for cross-level coupling rules."""

import pytest

from biocascade.config.presets import cascade_config
from biocascade.exceptions import ConfigurationError
from biocascade.levels import DataPoint
from biocascade.simulation.coupling import CombineMode, CouplingEngine, coupling
from biocascade.states import CascadeState

COLLECTIVE_ENERGY = DataPoint("flock", "Collective Energy")


def states(**overrides):
    base = {level.level_id: CascadeState.NORMAL for level in cascade_config().levels}
    base.update(overrides)
    return base


class TestCouplingEngine:
    def test_add_applies_when_source_excited(self) -> None:
        engine = CouplingEngine([coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 15)])

        result = engine.apply({COLLECTIVE_ENERGY: 40.0}, states(predator=CascadeState.EXCITED))

        assert result[COLLECTIVE_ENERGY] == 55.0

    def test_rule_skipped_when_source_not_in_state(self) -> None:
        engine = CouplingEngine([coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 15)])

        result = engine.apply({COLLECTIVE_ENERGY: 40.0}, states())

        assert result[COLLECTIVE_ENERGY] == 40.0
        assert engine.active_rules(states()) == []

    def test_input_is_not_modified(self) -> None:
        engine = CouplingEngine([coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 15)])
        values = {COLLECTIVE_ENERGY: 40.0}

        engine.apply(values, states(predator=CascadeState.EXCITED))

        assert values == {COLLECTIVE_ENERGY: 40.0}

    def test_set_is_idempotent(self) -> None:
        engine = CouplingEngine(
            [coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 70, mode="set")]
        )
        excited = states(predator=CascadeState.EXCITED)

        once = engine.apply({COLLECTIVE_ENERGY: 40.0}, excited)
        twice = engine.apply(once, excited)

        assert once == twice == {COLLECTIVE_ENERGY: 70.0}

    def test_add_and_multiply_compound(self) -> None:
        excited = states(predator=CascadeState.EXCITED)
        add = CouplingEngine([coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 15)])
        multiply = CouplingEngine(
            [coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 2, mode="multiply")]
        )

        assert add.apply(add.apply({COLLECTIVE_ENERGY: 40.0}, excited), excited)[COLLECTIVE_ENERGY] == 70.0
        assert multiply.apply(multiply.apply({COLLECTIVE_ENERGY: 10.0}, excited), excited)[COLLECTIVE_ENERGY] == 40.0

    def test_rules_apply_in_order_on_same_target(self) -> None:
        engine = CouplingEngine(
            [
                coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 10),
                coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 3, mode="multiply"),
            ]
        )

        result = engine.apply({COLLECTIVE_ENERGY: 5.0}, states(predator=CascadeState.EXCITED))

        assert result[COLLECTIVE_ENERGY] == 45.0

    def test_missing_target_counts_as_zero(self) -> None:
        engine = CouplingEngine([coupling("predator", CascadeState.EXCITED, "flock", "Collective Energy", 15)])

        result = engine.apply({}, states(predator=CascadeState.EXCITED))

        assert result == {COLLECTIVE_ENERGY: 15.0}

    def test_negative_influence(self) -> None:
        engine = CouplingEngine([coupling("flock", CascadeState.EXCITED, "individual", "Neighbor Proximity", -10)])
        point = DataPoint("individual", "Neighbor Proximity")

        result = engine.apply({point: 30.0}, states(flock=CascadeState.EXCITED))

        assert result[point] == 20.0


class TestCouplingRuleValidation:
    def test_cascade_preset_has_nine_add_rules(self) -> None:
        rules = cascade_config().couplings
        assert len(rules) == 9
        assert all(rule.mode is CombineMode.ADD for rule in rules)

    def test_unknown_target_rejected(self) -> None:
        config = cascade_config()
        rule = coupling("predator", CascadeState.EXCITED, "flock", "Wingbeat", 5)
        with pytest.raises(ConfigurationError, match="Wingbeat"):
            rule.validate(config.build_registry(), config.graph.states)

    def test_unknown_source_rejected(self) -> None:
        config = cascade_config()
        rule = coupling("whale", CascadeState.EXCITED, "flock", "Cohesion", 5)
        with pytest.raises(ConfigurationError, match="whale"):
            rule.validate(config.build_registry(), config.graph.states)

    def test_unknown_mode_rejected(self) -> None:
        with pytest.raises(ValueError):
            coupling("predator", CascadeState.EXCITED, "flock", "Cohesion", 5, mode="average")
