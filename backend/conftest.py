"""Shared pytest fixtures for the simulation tests."""

import numpy as np
import pytest

from agents import CompanyAgent, SimulationContext
from market import MarketModel


class FixedRng:
    """
    Stand-in for numpy's Generator that makes every roll predictable.

    random() always returns `value`, uniform() returns the midpoint,
    integers()/choice() return `index`.
    """

    def __init__(self, value: float, index: int = 0):
        self.value = value
        self.index = index

    def random(self):
        return self.value

    def uniform(self, low=0.0, high=1.0):
        return (low + high) / 2.0

    def integers(self, low, high=None):
        if high is None:
            return self.index
        return low + self.index

    def choice(self, a, p=None):
        return self.index


@pytest.fixture
def fixed_rng():
    return FixedRng


@pytest.fixture
def company():
    return CompanyAgent.create("TestCo", "saas", np.random.default_rng(0), starting_cash=1_000_000.0)


@pytest.fixture
def make_context():
    """Factory building a SimulationContext around a company."""

    def _make(player, rng=None, turn=1, competitors=None, market=None, notes=None, end_game=None):
        rng = rng if rng is not None else np.random.default_rng(0)
        market = market if market is not None else MarketModel.create(np.random.default_rng(0))

        def notify(message, kind):
            if notes is not None:
                notes.append((message, kind))

        return SimulationContext(
            turn=turn,
            rng=rng,
            market=market,
            notify=notify,
            player=player,
            competitors=competitors if competitors is not None else [],
            end_game=end_game,
        )

    return _make
