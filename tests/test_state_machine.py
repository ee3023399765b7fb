"""Tests for per-level state machines and autonomous evaluation."""

import pytest

from biocascade.config.presets import cascade_config, physiological_config
from biocascade.events import EventBus, LevelsResetEvent, TransitionEvent
from biocascade.exceptions import ConfigurationError
from biocascade.levels import DataPoint
from biocascade.rules import Threshold, TransitionRule, threshold_rule
from biocascade.state_machine import BiologicalStateMachine, StateMachine
from biocascade.states import (
    CascadeState,
    PhysiologicalState,
    TransitionKind,
    create_cascade_graph,
    create_physiological_graph,
)


@pytest.fixture
def machine():
    config = cascade_config()
    return BiologicalStateMachine(
        config.build_registry(), config.graph, config.rules, timestamp_fn=lambda: 100.0
    )


@pytest.fixture
def events(machine):
    received: list = []
    machine.subscribe(received.append)
    return received


def hunger(value: float):
    return {DataPoint("predator", "Hunger"): value}


class TestStateMachine:
    def test_valid_transition_bumps_generation(self) -> None:
        sm = StateMachine(CascadeState.NORMAL, create_cascade_graph(), track_history=True)

        result = sm.try_transition(CascadeState.EXCITED)

        assert result.is_ok()
        assert sm.state == CascadeState.EXCITED
        assert sm.generation == 1
        assert sm.history[-1].to_state == CascadeState.EXCITED

    def test_terminal_state_rejects_everything(self) -> None:
        sm = StateMachine(CascadeState.NORMAL, create_cascade_graph(), track_history=True)
        sm.force_state(CascadeState.DEAD)

        for target in CascadeState:
            result = sm.try_transition(target)
            assert result.is_err()
            assert "terminal" in result.error
        assert sm.state == CascadeState.DEAD

    def test_invalid_edge_lists_valid_targets(self) -> None:
        sm = StateMachine(PhysiologicalState.CALM, create_physiological_graph())

        result = sm.try_transition(PhysiologicalState.RECOVERING)

        assert result.is_err()
        assert "EXCITED" in result.error
        assert sm.state == PhysiologicalState.CALM
        assert sm.generation == 0

    def test_forced_history_reason(self) -> None:
        sm = StateMachine(CascadeState.NORMAL, create_cascade_graph(), track_history=True)
        sm.force_state(CascadeState.DEAD, frame=5, reason="debug key")

        assert sm.history[-1].reason == "[FORCED] debug key"
        assert sm.history[-1].frame == 5

    def test_initial_state_must_be_in_graph(self) -> None:
        with pytest.raises(ConfigurationError):
            StateMachine(PhysiologicalState.CALM, create_cascade_graph())


class TestBiologicalStateMachine:
    def test_all_levels_start_at_baseline(self, machine) -> None:
        assert set(machine.states().values()) == {CascadeState.NORMAL}
        assert machine.all_at_baseline()

    def test_manual_transition_publishes_event(self, machine, events) -> None:
        result = machine.transition("flock", CascadeState.EXCITED)

        assert result.is_ok()
        event = result.unwrap()
        assert events == [event]
        assert event.kind is TransitionKind.MANUAL
        assert event.transition_name == "NORMAL_TO_EXCITED"
        assert event.timestamp == 100.0
        assert not event.forced

    def test_state_names_parse_case_insensitively(self, machine) -> None:
        assert machine.transition("flock", "excited").is_ok()
        assert machine.state("flock") == CascadeState.EXCITED

    def test_dead_level_cannot_be_excited(self, machine, events) -> None:
        """force_state(individual, DEAD) then transition(individual, EXCITED) is rejected."""
        machine.force_state("individual", CascadeState.DEAD)
        events.clear()

        result = machine.transition("individual", CascadeState.EXCITED)

        assert result.is_err()
        assert machine.state("individual") == CascadeState.DEAD
        assert events == []

    def test_force_state_bypasses_terminal(self, machine, events) -> None:
        machine.force_state("individual", CascadeState.DEAD)
        result = machine.force_state("individual", CascadeState.NORMAL)

        assert result.is_ok()
        assert machine.state("individual") == CascadeState.NORMAL
        assert all(event.forced for event in events)
        assert not events[-1].play_transition

    def test_unknown_level_and_state_are_errors(self, machine) -> None:
        assert machine.transition("whale", CascadeState.EXCITED).is_err()
        assert machine.transition("flock", "asleep").is_err()
        assert machine.force_state("flock", PhysiologicalState.RECOVERING).is_err()
        assert machine.state("whale") is None
        assert machine.generation("whale") == -1

    def test_hunger_above_eighty_excites_predator(self, machine, events) -> None:
        event = machine.evaluate("predator", hunger(95.0))

        assert event is not None
        assert event.kind is TransitionKind.AUTONOMOUS
        assert machine.state("predator") == CascadeState.EXCITED

    def test_threshold_is_strict(self, machine) -> None:
        assert machine.evaluate("predator", hunger(80.0)) is None
        assert machine.state("predator") == CascadeState.NORMAL

    def test_auto_revert_when_rule_stops_holding(self, machine) -> None:
        machine.evaluate("predator", hunger(95.0))

        event = machine.evaluate("predator", hunger(50.0))

        assert event is not None
        assert event.transition_name == "EXCITED_TO_NORMAL"

    def test_no_revert_without_auto_revert(self) -> None:
        config = cascade_config()
        machine = BiologicalStateMachine(
            config.build_registry(), create_cascade_graph(auto_revert=False), config.rules
        )
        machine.evaluate("predator", hunger(95.0))
        machine.evaluate("predator", hunger(10.0))

        assert machine.state("predator") == CascadeState.EXCITED

    def test_flock_needs_both_conditions(self, machine) -> None:
        cohesion = DataPoint("flock", "Cohesion")
        variance = DataPoint("flock", "Variance")

        assert machine.evaluate("flock", {cohesion: 40.0, variance: 40.0}) is None
        assert machine.evaluate("flock", {cohesion: 40.0, variance: 60.0}) is not None

    def test_dead_level_is_never_evaluated(self, machine) -> None:
        machine.force_state("predator", CascadeState.DEAD)

        assert machine.evaluate("predator", hunger(95.0)) is None
        assert machine.state("predator") == CascadeState.DEAD

    def test_suspended_evaluation_changes_nothing(self, machine) -> None:
        machine.suspend_autonomous()
        assert machine.evaluate_all(hunger(95.0)) == []

        machine.resume_autonomous()
        assert len(machine.evaluate_all(hunger(95.0))) == 1

    def test_level_without_rule_never_changes_on_its_own(self) -> None:
        config = cascade_config()
        machine = BiologicalStateMachine(config.build_registry(), config.graph, rules=())
        machine.transition("predator", CascadeState.EXCITED)

        assert machine.evaluate_all(hunger(0.0)) == []
        assert machine.state("predator") == CascadeState.EXCITED

    def test_terminal_conditions_kill_the_level(self) -> None:
        config = cascade_config()
        fatigue = DataPoint("individual", "Fatigue")
        rule = TransitionRule(
            "individual",
            conditions=(Threshold("Fear Level", ">", 40),),
            terminal_conditions=(Threshold("Fatigue", ">", 90),),
        )
        machine = BiologicalStateMachine(config.build_registry(), config.graph, [rule])

        event = machine.evaluate("individual", {fatigue: 99.0})

        assert event.to_state == CascadeState.DEAD
        assert machine.graph.is_terminal(machine.state("individual"))

    def test_physiological_levels_never_evaluate(self) -> None:
        config = physiological_config()
        rule = TransitionRule("heart", predicate=lambda values: True)
        machine = BiologicalStateMachine(config.build_registry(), config.graph, [rule])

        assert machine.evaluate_all({}) == []
        assert machine.state("heart") == PhysiologicalState.CALM

    def test_unsubscribe_stops_delivery(self, machine) -> None:
        received: list = []
        unsubscribe = machine.subscribe(received.append)
        unsubscribe()

        machine.transition("flock", CascadeState.EXCITED)

        assert received == []

    def test_reset_returns_to_baseline_and_emits(self, machine) -> None:
        resets: list = []
        machine.event_bus.subscribe(LevelsResetEvent, resets.append)
        machine.force_state("individual", CascadeState.DEAD)
        machine.transition("flock", CascadeState.EXCITED)
        generation = machine.generation("flock")

        machine.reset()

        assert machine.all_at_baseline()
        assert machine.generation("flock") == generation + 1
        assert machine.level_history("flock") == []
        assert resets[0].baseline == CascadeState.NORMAL

    def test_shared_event_bus(self) -> None:
        config = cascade_config()
        bus = EventBus()
        received: list = []
        bus.subscribe(TransitionEvent, received.append)
        machine = BiologicalStateMachine(config.build_registry(), config.graph, event_bus=bus)

        machine.transition("muscle", CascadeState.EXCITED)

        assert len(received) == 1
        assert received[0].frame == machine.frame

    def test_duplicate_rules_rejected(self) -> None:
        config = cascade_config()
        rules = [threshold_rule("predator", ("Hunger", ">", 80)), threshold_rule("predator", ("Energy", ">", 10))]
        with pytest.raises(ConfigurationError, match="Duplicate"):
            BiologicalStateMachine(config.build_registry(), config.graph, rules)

    def test_rule_on_unknown_channel_rejected(self) -> None:
        config = cascade_config()
        with pytest.raises(ConfigurationError, match="Appetite"):
            BiologicalStateMachine(
                config.build_registry(), config.graph, [threshold_rule("predator", ("Appetite", ">", 80))]
            )

    def test_level_history_is_opt_in(self, machine) -> None:
        machine.transition("flock", CascadeState.EXCITED)
        assert machine.level_history("flock") == []

        config = cascade_config()
        tracked = BiologicalStateMachine(config.build_registry(), config.graph, track_history=True)
        tracked.transition("flock", CascadeState.EXCITED)

        history = tracked.level_history("flock")
        assert [(t.from_state, t.to_state) for t in history] == [(CascadeState.NORMAL, CascadeState.EXCITED)]
