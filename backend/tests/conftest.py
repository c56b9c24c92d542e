"""Shared fixtures for marketpulse tests."""

from __future__ import annotations

from datetime import date, timedelta

import numpy as np
import pandas as pd
import pytest


def make_bars(
    closes,
    start: date = date(2024, 1, 1),
    volume: float = 1000.0,
    turnover: float = 2_000_000.0,
    spread: float = 1.0,
) -> pd.DataFrame:
    """Daily bars indexed by consecutive calendar dates; high/low straddle close."""
    closes = np.asarray(closes, dtype=float)
    index = pd.DatetimeIndex([start + timedelta(days=i) for i in range(len(closes))], name="date")
    return pd.DataFrame(
        {
            "open": closes,
            "high": closes + spread,
            "low": closes - spread,
            "close": closes,
            "volume": volume,
            "turnover": turnover,
        },
        index=index,
    )


@pytest.fixture
def flat_bars() -> pd.DataFrame:
    """25 days at a constant close of 100."""
    return make_bars([100.0] * 25, spread=0.0)


@pytest.fixture
def rising_bars() -> pd.DataFrame:
    """250 strictly increasing closes with some noise in the step size."""
    rng = np.random.default_rng(7)
    steps = 0.5 + rng.random(250)
    return make_bars(100 + np.cumsum(steps))


@pytest.fixture
def noisy_bars() -> pd.DataFrame:
    rng = np.random.default_rng(42)
    closes = 100 + np.cumsum(rng.normal(0, 1.5, 120))
    bars = make_bars(closes)
    bars["volume"] = rng.integers(500, 5000, len(bars)).astype(float)
    return bars
