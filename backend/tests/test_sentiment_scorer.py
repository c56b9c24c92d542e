"""Tests for the market spirit score."""

from datetime import date

import pandas as pd
import pytest

from marketpulse.strategy.sentiment_scorer import (
    Regime,
    SentimentScorer,
    daily_breadth,
    regime_for_points,
)

TRADE_DATE = date(2024, 6, 3)


def _universe(n: int, **positives: int) -> pd.DataFrame:
    """``n`` symbols where the first ``positives[col]`` rows are above the threshold."""
    above = {"change": 1.0, "ez": 1.0, "rsi14": 55.0, "macd_hist": 0.5, "cci20": 10.0}
    below = {"change": -1.0, "ez": -1.0, "rsi14": 45.0, "macd_hist": -0.5, "cci20": -10.0}
    data = {"symbol": [f"S{i:02d}" for i in range(n)]}
    for column in above:
        count = positives.get(column, 0)
        data[column] = [above[column] if i < count else below[column] for i in range(n)]
    return pd.DataFrame(data)


@pytest.fixture
def scorer() -> SentimentScorer:
    return SentimentScorer()


class TestRegimeBoundaries:
    @pytest.mark.parametrize(
        "points,regime",
        [(0, Regime.DEFENSE), (2, Regime.DEFENSE), (3, Regime.SELECTIVE),
         (4, Regime.SELECTIVE), (5, Regime.ATTACK), (6, Regime.ATTACK)],
    )
    def test_points_to_regime(self, points, regime):
        assert regime_for_points(points) is regime


class TestDailyBreadth:
    def test_advancing_minus_declining(self):
        assert daily_breadth([1.0, 2.0, -1.0, 0.0]) == 1

    def test_missing_change_counts_as_neither(self):
        assert daily_breadth([None, float("nan"), -0.5]) == -1


class TestScore:
    def test_selective_scenario(self, scorer):
        universe = _universe(10, change=7, ez=6, rsi14=4, macd_hist=6, cci20=3)
        reading = scorer.score(TRADE_DATE, "STOCK", universe, [10, 15, 15])
        assert reading.breadth == 4
        assert reading.breadth_line == 40
        assert reading.points == 4
        assert reading.regime is Regime.SELECTIVE
        assert reading.universe_size == 10

    def test_exactly_two_points_is_defense(self, scorer):
        universe = _universe(10, change=6, ez=6)
        reading = scorer.score(TRADE_DATE, "STOCK", universe, [-5])
        assert reading.points == 2
        assert reading.regime is Regime.DEFENSE

    def test_all_six_points_is_attack(self, scorer):
        universe = _universe(4, change=4, ez=4, rsi14=4, macd_hist=4, cci20=4)
        reading = scorer.score(TRADE_DATE, "STOCK", universe, [3])
        assert reading.points == 6
        assert reading.regime is Regime.ATTACK

    def test_half_is_not_a_majority(self, scorer):
        universe = _universe(10, ez=5, rsi14=5, macd_hist=5, cci20=5, change=5)
        reading = scorer.score(TRADE_DATE, "STOCK", universe, [0])
        assert reading.breadth == 0
        assert reading.points == 0

    def test_missing_indicators_count_against_majority(self, scorer):
        universe = _universe(4, ez=3)
        universe.loc[0:1, "ez"] = None
        reading = scorer.score(TRADE_DATE, "STOCK", universe, [])
        assert reading.breadth_line == 0
        assert reading.points == 0

    def test_empty_universe_is_undefined(self, scorer):
        reading = scorer.score(TRADE_DATE, "STOCK", _universe(0), [5, 5])
        assert not reading.is_defined
        assert reading.points is None
        assert reading.regime is None
        assert reading.breadth is None
        assert reading.breadth_line is None
