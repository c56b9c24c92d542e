"""Tests for the rolling primitives."""

import math

import numpy as np
import pandas as pd
import pytest

from marketpulse.strategy.series_math import (
    exponential_mean,
    mean_absolute_deviation,
    rolling_mean,
    rolling_std,
    rolling_sum,
    to_float_series,
)


class TestToFloatSeries:
    def test_none_and_inf_become_nan(self):
        values = to_float_series(pd.Series([1, None, float("inf"), "x", -float("inf")]))
        assert values.iloc[0] == 1.0
        assert values.iloc[1:].isna().all()


class TestRollingWindows:
    def test_mean_needs_full_window(self):
        result = rolling_mean(pd.Series([1.0, 2.0, 3.0, 4.0]), 3)
        assert result.iloc[:2].isna().all()
        assert result.iloc[2] == pytest.approx(2.0)
        assert result.iloc[3] == pytest.approx(3.0)

    def test_window_restarts_after_gap(self):
        series = pd.Series([1.0, 2.0, np.nan, 3.0, 4.0, 5.0])
        result = rolling_mean(series, 3)
        assert result.iloc[:5].isna().all()
        assert result.iloc[5] == pytest.approx(4.0)

    def test_sum(self):
        result = rolling_sum(pd.Series([1.0, 2.0, 3.0]), 2)
        assert list(result.iloc[1:]) == [3.0, 5.0]

    def test_std_is_population(self):
        result = rolling_std(pd.Series([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]), 8)
        assert result.iloc[-1] == pytest.approx(2.0)

    def test_mean_absolute_deviation(self):
        result = mean_absolute_deviation(pd.Series([1.0, 2.0, 3.0, 4.0]), 4)
        assert result.iloc[-1] == pytest.approx(1.0)

    def test_short_series_is_all_nan(self):
        assert rolling_mean(pd.Series([1.0, 2.0]), 5).isna().all()


class TestExponentialMean:
    def test_seeded_with_simple_mean(self):
        result = exponential_mean(pd.Series([1.0, 2.0, 3.0, 4.0]), 3)
        assert math.isnan(result.iloc[1])
        assert result.iloc[2] == pytest.approx(2.0)
        # k = 0.5
        assert result.iloc[3] == pytest.approx(3.0)

    def test_constant_series_stays_constant(self):
        result = exponential_mean(pd.Series([5.0] * 30), 12)
        assert result.iloc[11:].tolist() == pytest.approx([5.0] * 19)

    def test_reseeds_after_gap(self):
        series = pd.Series([1.0, 2.0, 3.0, np.nan, 10.0, 20.0, 30.0])
        result = exponential_mean(series, 3)
        assert result.iloc[3:6].isna().all()
        assert result.iloc[6] == pytest.approx(20.0)

    def test_keeps_index(self):
        series = pd.Series([1.0, 2.0], index=["a", "b"])
        assert list(exponential_mean(series, 1).index) == ["a", "b"]
