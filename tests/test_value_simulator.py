"""Tests for target generation and smoothing."""

import random

import pytest

from biocascade.config.presets import cascade_config
from biocascade.levels import DataPoint
from biocascade.simulation.value_simulator import ValueProfile, ValueSimulator, lerp
from biocascade.states import CascadeState

HUNGER = DataPoint("predator", "Hunger")
FEAR = DataPoint("individual", "Fear Level")
HEAT = DataPoint("muscle", "Heat")


@pytest.fixture
def simulator(seeded_rng):
    config = cascade_config()
    return ValueSimulator(
        config.build_registry(),
        profiles=config.value_profiles,
        lerp_rate_range=config.timing.lerp_rate_range,
        rng=seeded_rng,
    )


def all_normal():
    return {level.level_id: CascadeState.NORMAL for level in cascade_config().levels}


class TestLerpRates:
    def test_every_channel_gets_a_rate_in_range(self, simulator) -> None:
        rates = simulator.lerp_rates
        assert set(rates) == set(simulator.data_points)
        assert all(0.02 <= rate <= 0.3 for rate in rates.values())

    def test_rates_are_read_only_and_stable(self, simulator) -> None:
        before = dict(simulator.lerp_rates)
        simulator.generate_targets(all_normal())
        simulator.tick({})

        assert dict(simulator.lerp_rates) == before
        with pytest.raises(TypeError):
            simulator.lerp_rates[HUNGER] = 0.5

    def test_same_seed_same_rates(self) -> None:
        registry = cascade_config().build_registry()
        first = ValueSimulator(registry, rng=random.Random(7))
        second = ValueSimulator(registry, rng=random.Random(7))
        assert dict(first.lerp_rates) == dict(second.lerp_rates)


class TestTargets:
    def test_normal_targets_stay_below_seventy(self, simulator) -> None:
        for _ in range(50):
            targets = simulator.generate_targets(all_normal())
            assert all(0.0 <= value <= 70.0 for value in targets.values())

    def test_state_multipliers(self, simulator) -> None:
        assert simulator.multiplier(CascadeState.NORMAL, HUNGER) == 0.7
        assert simulator.multiplier(CascadeState.EXCITED, HUNGER) == 1.2
        assert simulator.multiplier(CascadeState.EXCITED, FEAR) == 1.5
        assert simulator.multiplier(CascadeState.DEAD, HUNGER) == 0.1
        assert simulator.multiplier(CascadeState.DEAD, HEAT) == 0.3

    def test_state_without_profile_uses_one(self, seeded_rng) -> None:
        simulator = ValueSimulator(cascade_config().build_registry(), rng=seeded_rng)
        assert simulator.multiplier(CascadeState.EXCITED, HUNGER) == 1.0

    def test_first_matching_override_wins(self) -> None:
        profile = ValueProfile(default=1.0, overrides=((("Energy",), 2.0), (("Collective",), 3.0)))
        assert profile.multiplier_for("Collective Energy") == 2.0
        assert profile.multiplier_for("Cohesion") == 1.0


class TestSmoothing:
    def test_converges_toward_fixed_target(self, simulator) -> None:
        simulator.targets = {point: 50.0 for point in simulator.data_points}
        values = {point: 0.0 for point in simulator.data_points}
        rate = simulator.lerp_rates[HUNGER]

        for step in range(1, 40):
            values = simulator.tick(values)
            expected_gap = 50.0 * (1 - rate) ** step
            assert values[HUNGER] == pytest.approx(50.0 - expected_gap)

    def test_tick_is_pure(self, simulator) -> None:
        simulator.generate_targets(all_normal())
        values = {point: 10.0 for point in simulator.data_points}
        snapshot = dict(values)

        first = simulator.tick(values)
        second = simulator.tick(values)

        assert values == snapshot
        assert first == second

    def test_missing_current_counts_as_zero(self, simulator) -> None:
        simulator.targets = {HUNGER: 10.0}
        rate = simulator.lerp_rates[HUNGER]
        assert simulator.tick({})[HUNGER] == pytest.approx(10.0 * rate)

    def test_missing_target_keeps_value(self, simulator) -> None:
        simulator.targets = {}
        assert simulator.tick({HUNGER: 42.0})[HUNGER] == 42.0

    def test_lerp(self) -> None:
        assert lerp(0.0, 100.0, 0.25) == 25.0
        assert lerp(80.0, 80.0, 0.3) == 80.0


class TestSpikes:
    def test_spike_survives_regeneration_while_pinned(self, seeded_rng) -> None:
        config = cascade_config()
        simulator = ValueSimulator(config.build_registry(), spike_hold_frames=2, rng=seeded_rng)
        simulator.generate_targets(all_normal())

        assert simulator.inject_spike("predator", "Hunger", 95.0)
        simulator.generate_targets(all_normal())
        assert simulator.targets[HUNGER] == 95.0

        simulator.advance_spikes()
        assert simulator.is_pinned(HUNGER)
        simulator.advance_spikes()
        assert not simulator.is_pinned(HUNGER)

    def test_unknown_channel_is_ignored(self, simulator) -> None:
        assert not simulator.inject_spike("predator", "Wingspan", 95.0)
        assert not simulator.inject_spike("whale", "Hunger", 95.0)
        assert DataPoint("predator", "Wingspan") not in simulator.targets

    def test_clear_spikes(self, simulator) -> None:
        simulator.inject_spike("predator", "Hunger", 95.0)
        simulator.clear_spikes()
        assert not simulator.is_pinned(HUNGER)
