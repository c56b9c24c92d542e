"""
Null-aware rolling primitives over daily series.

Every function takes a numeric ``pd.Series`` where missing observations are
NaN and returns a float series aligned to the same index. A missing value
is never bridged: windows restart after it, and a NaN output means there is
not yet enough contiguous data.
"""

from __future__ import annotations

import numpy as np
import pandas as pd


def to_float_series(series: pd.Series) -> pd.Series:
    """Coerce to float, mapping None and non-finite values to NaN."""
    values = pd.to_numeric(series, errors="coerce").astype(float)
    return values.replace([np.inf, -np.inf], np.nan)


def rolling_mean(series: pd.Series, period: int) -> pd.Series:
    """Simple moving average over ``period`` consecutive valid values."""
    values = to_float_series(series)
    return values.rolling(period, min_periods=period).mean()


def rolling_sum(series: pd.Series, period: int) -> pd.Series:
    values = to_float_series(series)
    return values.rolling(period, min_periods=period).sum()


def rolling_std(series: pd.Series, period: int) -> pd.Series:
    """Population standard deviation (ddof=0) over the trailing window."""
    values = to_float_series(series)
    return values.rolling(period, min_periods=period).std(ddof=0)


def mean_absolute_deviation(series: pd.Series, period: int) -> pd.Series:
    """Mean absolute deviation of each window from the window's own mean."""
    values = to_float_series(series)
    return values.rolling(period, min_periods=period).apply(
        lambda window: np.abs(window - window.mean()).mean(),
        raw=True,
    )


def exponential_mean(series: pd.Series, period: int) -> pd.Series:
    """
    Exponential moving average with ``k = 2 / (period + 1)``.

    The average is seeded with the simple mean of the first unbroken run of
    ``period`` valid values. A missing value discards the running average,
    which is seeded again once another ``period`` valid values accumulate.
    """
    values = to_float_series(series).to_numpy()
    out = np.full(len(values), np.nan)
    k = 2.0 / (period + 1)
    prev: float | None = None
    run = 0

    for i, value in enumerate(values):
        if np.isnan(value):
            prev = None
            run = 0
            continue

        if prev is None:
            run += 1
            if run < period:
                continue
            prev = float(values[i - period + 1 : i + 1].sum()) / period
        else:
            prev = value * k + prev * (1 - k)
        out[i] = prev

    return pd.Series(out, index=series.index)
