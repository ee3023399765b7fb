"""Tests for the per-frame installation engine."""

import random

import pytest

from biocascade.config.presets import cascade_config
from biocascade.levels import DataPoint
from biocascade.rules import TransitionRule
from biocascade.simulation.engine import InstallationEngine
from biocascade.states import CascadeState, TransitionKind

HUNGER = DataPoint("predator", "Hunger")


class TestFrameLoop:
    def test_values_cover_every_channel(self, engine) -> None:
        snapshot = engine.tick(0.0)

        assert snapshot.frame == 1
        assert set(snapshot.values) == set(engine.registry.data_points)
        assert set(snapshot.states) == set(engine.registry.level_ids)

    def test_targets_regenerate_on_interval(self, engine) -> None:
        engine.tick(0.0)
        first = engine.targets()

        engine.tick(0.5)
        assert engine.targets() == first

        engine.tick(0.8)
        assert engine.targets() != first

    def test_evaluation_runs_every_thirty_frames(self, seeded_rng) -> None:
        calls: list = []
        config = cascade_config()
        config.rules = (TransitionRule("predator", predicate=lambda values: calls.append(1) and False),)
        engine = InstallationEngine(config, rng=seeded_rng)

        engine.run_frames(29)
        assert calls == []

        engine.run_frames(61)
        assert len(calls) == 3

    def test_same_seed_same_run(self) -> None:
        first = InstallationEngine(cascade_config(), rng=random.Random(3)).run_frames(120)
        second = InstallationEngine(cascade_config(), rng=random.Random(3)).run_frames(120)

        assert first.values == second.values
        assert first.states == second.states


class TestPredatorScenario:
    def test_hunger_spike_excites_predator_at_next_boundary(self, engine) -> None:
        assert engine.inject_spike("predator", "Hunger", 95.0)
        assert engine.values()[HUNGER] == 95.0

        engine.run_frames(29)
        assert engine.states()["predator"] == CascadeState.NORMAL

        engine.run_frames(1)
        assert engine.states()["predator"] == CascadeState.EXCITED
        predator_events = [e for e in engine.history if e.level_id == "predator"]
        assert predator_events[0].kind is TransitionKind.AUTONOMOUS
        assert predator_events[0].frame == 30

    def test_predator_never_excites_itself_when_normal(self, engine) -> None:
        engine.run_frames(900)

        assert engine.states()["predator"] == CascadeState.NORMAL

    def test_excited_predator_raises_flock_energy(self, engine) -> None:
        engine.tick(0.0)
        before = engine.values()[DataPoint("flock", "Collective Energy")]
        engine.transition("predator", CascadeState.EXCITED)
        smoothed = engine.simulator.tick(engine.values())[DataPoint("flock", "Collective Energy")]

        engine.tick(1 / 60)

        after = engine.values()[DataPoint("flock", "Collective Energy")]
        assert after == pytest.approx(smoothed + 15.0)
        assert after > before

    def test_unknown_spike_target(self, engine) -> None:
        assert not engine.inject_spike("predator", "Wingspan", 95.0)


class TestTransitionClips:
    def test_clip_plays_for_three_seconds(self, engine) -> None:
        engine.tick(0.0)
        engine.transition("flock", CascadeState.EXCITED)
        assert engine.transitioning["flock"] == "NORMAL_TO_EXCITED"

        engine.tick(2.9)
        assert engine.transitioning["flock"] == "NORMAL_TO_EXCITED"

        engine.tick(3.0)
        assert engine.transitioning["flock"] is None

    def test_newer_transition_keeps_its_own_clip(self, engine) -> None:
        engine.tick(0.0)
        engine.transition("flock", CascadeState.EXCITED)
        engine.tick(2.0)
        engine.transition("flock", CascadeState.NORMAL)

        engine.tick(3.0)
        assert engine.transitioning["flock"] == "EXCITED_TO_NORMAL"

        engine.tick(5.0)
        assert engine.transitioning["flock"] is None

    def test_forced_changes_skip_the_clip(self, engine) -> None:
        engine.tick(0.0)
        engine.force_state("individual", CascadeState.DEAD)

        assert engine.transitioning["individual"] is None
        assert engine.snapshot().to_dict()["levels"]["individual"]["state"] == "Dead"


class TestHistoryAndReset:
    def test_history_is_newest_first_and_bounded(self, engine) -> None:
        for i in range(12):
            target = CascadeState.EXCITED if i % 2 == 0 else CascadeState.NORMAL
            engine.transition("flock", target)

        history = engine.history
        assert len(history) == 10
        assert history[0].transition_name == "EXCITED_TO_NORMAL"
        assert history[0].timestamp >= history[-1].timestamp

    def test_transition_all_skips_levels_that_cannot_move(self, engine) -> None:
        engine.force_state("individual", CascadeState.DEAD)

        events = engine.transition_all(CascadeState.EXCITED)

        assert len(events) == 4
        assert engine.states()["individual"] == CascadeState.DEAD

    def test_reset_restores_baseline_and_clears_history(self, engine) -> None:
        engine.inject_spike("predator", "Hunger", 95.0)
        engine.force_state("individual", CascadeState.DEAD)
        engine.transition("flock", CascadeState.EXCITED)

        engine.reset()

        assert set(engine.states().values()) == {CascadeState.NORMAL}
        assert engine.history == []
        assert not engine.simulator.is_pinned(HUNGER)
        assert all(clip is None for clip in engine.transitioning.values())

    def test_subscribers_see_every_event(self, engine) -> None:
        received: list = []
        unsubscribe = engine.subscribe(received.append)

        engine.transition("muscle", CascadeState.EXCITED)
        unsubscribe()
        engine.transition("muscle", CascadeState.NORMAL)

        assert [event.transition_name for event in received] == ["NORMAL_TO_EXCITED"]

    def test_snapshot_dict(self, engine) -> None:
        engine.inject_spike("predator", "Hunger", 95.0)
        data = engine.snapshot().to_dict()

        assert data["frame"] == 0
        assert data["levels"]["predator"]["values"]["Hunger"] == 95.0
        assert data["levels"]["predator"]["transition"] is None
        assert data["sequence_active"] is False
