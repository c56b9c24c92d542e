"""
Coarser-timeframe bars and trading-day-offset changes built from daily rows.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Literal

import numpy as np
import pandas as pd

CandlestickTimeframe = Literal["1D", "3D", "1W", "1M", "3M"]
ChangePeriod = Literal["1D", "1W", "1M", "3M"]

FIXED_BUCKET_SIZES: dict[str, int] = {"3D": 3}
CALENDAR_FREQUENCIES: dict[str, str] = {
    "1W": "W-SUN",  # weeks start on Monday
    "1M": "M",
    "3M": "Q",
}
PERIOD_OFFSETS: dict[str, int] = {
    "1D": 1,
    "1W": 5,
    "1M": 21,
    "3M": 63,
}

CARRIED_COLUMNS = ("sma20", "sma50", "sma200", "ez")


def _first(values: pd.Series):
    return values.iloc[0]


def _last(values: pd.Series):
    return values.iloc[-1]


def _sum(values: pd.Series):
    return values.sum(min_count=1)


def _prepare(bars: pd.DataFrame) -> pd.DataFrame:
    frame = bars.copy()
    if "date" not in frame.columns:
        frame = frame.rename_axis("date").reset_index()
    frame["date"] = pd.to_datetime(frame["date"])
    for column in ("open", "high", "low", "close", "volume", *CARRIED_COLUMNS):
        if column not in frame.columns:
            frame[column] = np.nan
        frame[column] = pd.to_numeric(frame[column], errors="coerce")
    return frame.sort_values("date").reset_index(drop=True)


def _aggregate(frame: pd.DataFrame, keys: pd.Series) -> pd.DataFrame:
    aggregations = {
        "date": ("date", "max"),
        "open": ("open", _first),
        "high": ("high", "max"),
        "low": ("low", "min"),
        "close": ("close", _last),
        "volume": ("volume", _sum),
    }
    for column in CARRIED_COLUMNS:
        aggregations[column] = (column, _last)

    result = frame.groupby(keys, sort=True).agg(**aggregations).reset_index(drop=True)
    result["date"] = result["date"].dt.date
    open_ = result["open"].where(result["open"] != 0)
    result["change"] = (result["close"] - open_) / open_ * 100
    return result


def aggregate_fixed(bars: pd.DataFrame, size: int) -> pd.DataFrame:
    """
    Group every ``size`` consecutive trading rows into one bar.

    Open comes from the first row, close and the moving-average columns from
    the last row; high/low are the extremes and volume is summed.
    """
    if size < 1:
        raise ValueError(f"Bucket size must be positive, got {size}")
    frame = _prepare(bars)
    if frame.empty:
        return _empty_result()
    buckets = pd.Series(frame.index // size, index=frame.index)
    return _aggregate(frame, buckets)


def aggregate_calendar(bars: pd.DataFrame, frequency: str) -> pd.DataFrame:
    """Group rows by calendar week ("W-SUN"), month ("M") or quarter ("Q")."""
    frame = _prepare(bars)
    if frame.empty:
        return _empty_result()
    periods = frame["date"].dt.to_period(frequency).dt.start_time
    return _aggregate(frame, periods)


def aggregate_bars(bars: pd.DataFrame, timeframe: CandlestickTimeframe) -> pd.DataFrame:
    if timeframe in FIXED_BUCKET_SIZES:
        return aggregate_fixed(bars, FIXED_BUCKET_SIZES[timeframe])
    if timeframe in CALENDAR_FREQUENCIES:
        return aggregate_calendar(bars, CALENDAR_FREQUENCIES[timeframe])
    raise ValueError(f"Unsupported aggregation timeframe: {timeframe}")


def _empty_result() -> pd.DataFrame:
    columns = ["date", "open", "high", "low", "close", "volume", *CARRIED_COLUMNS, "change"]
    return pd.DataFrame(columns=columns)


def recent_trading_dates(dates: Iterable[date], as_of: date, offset: int) -> list[date]:
    """The ``offset + 1`` most recent distinct dates at or before ``as_of``, ascending."""
    eligible = sorted({d for d in dates if d <= as_of})
    return eligible[-(offset + 1):]


def period_change(
    rows: pd.DataFrame,
    as_of: date,
    offset: int,
    trading_dates: Iterable[date] | None = None,
) -> pd.DataFrame:
    """
    Percentage change of close versus the close ``offset`` trading rows earlier.

    ``rows`` holds symbol, date and close. The lookup is ordinal: each
    symbol's rows within the last ``offset + 1`` trading dates are lagged by
    ``offset`` positions. Returns the rows dated ``as_of`` with a ``change``
    column, null when the earlier close is missing or not positive.
    """
    if rows.empty:
        return rows.assign(change=pd.Series(dtype=float))

    frame = rows.copy()
    frame["date"] = pd.to_datetime(frame["date"]).dt.date
    window = recent_trading_dates(
        trading_dates if trading_dates is not None else frame["date"], as_of, offset
    )

    frame = frame[frame["date"].isin(window)].sort_values(["symbol", "date"])
    close = pd.to_numeric(frame["close"], errors="coerce")
    past_close = close.groupby(frame["symbol"]).shift(offset)
    past_close = past_close.where(past_close > 0)
    frame["change"] = (close - past_close) / past_close * 100

    today = frame[frame["date"] == as_of]
    return today.sort_values("symbol").reset_index(drop=True)
