"""Shared fixtures for the simulation tests."""

import pytest

from cpm import physics


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now=100.0):
        self.now = now
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def state(clock):
    """Single-population model with default parameters."""
    return physics.init_state(clock=clock, seed=1)


@pytest.fixture
def demo_state(clock):
    """Youth/Adult/Elderly model."""
    return physics.init_state(demographics=True, clock=clock, seed=1)


@pytest.fixture
def crush_state(clock):
    """Single population tuned for quick crush deaths."""
    params = physics.get_model_params(stress_rate=5.0, stress_threshold=2.0, crush_threshold=3)
    return physics.init_state(params, clock=clock, seed=1)


def pin_between_walls(state, x=0.0, y=0.0):
    """
    Adds three walls crossing at (x, y) and a particle on the crossing:
    three contacts with no escape direction, so it never moves.
    """
    physics.add_boundary(state, x - 1, y, x + 1, y)
    physics.add_boundary(state, x, y - 1, x, y + 1)
    physics.add_boundary(state, x - 1, y - 1, x + 1, y + 1)
    physics.add_particle(state, x, y)
