"""Pytest configuration and fixtures for installation tests."""

import random

import pytest

from biocascade.config.presets import cascade_config, physiological_config
from biocascade.simulation.engine import InstallationEngine


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@pytest.fixture
def seeded_rng():
    """Provide a deterministic RNG for tests."""
    return random.Random(42)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cascade():
    """Fresh cascade preset configuration."""
    return cascade_config()


@pytest.fixture
def physiological():
    """Fresh physiological preset configuration."""
    return physiological_config()


@pytest.fixture
def engine(cascade, seeded_rng, fake_clock):
    """Cascade engine with a deterministic seed and a fake clock."""
    return InstallationEngine(cascade, rng=seeded_rng, clock=fake_clock, timestamp_fn=fake_clock)


@pytest.fixture
def physiological_engine(physiological, seeded_rng, fake_clock):
    """Physiological engine with a deterministic seed and a fake clock."""
    return InstallationEngine(physiological, rng=seeded_rng, clock=fake_clock, timestamp_fn=fake_clock)
