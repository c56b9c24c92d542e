from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Any

import numpy as np
import pandas as pd

from marketpulse.strategy.series_math import (
    exponential_mean,
    mean_absolute_deviation,
    rolling_mean,
    rolling_std,
    rolling_sum,
    to_float_series,
)

INDICATOR_COLUMNS = (
    "rsi14",
    "macd",
    "macd_signal",
    "macd_hist",
    "cci20",
    "mfi14",
    "turnover10",
    "sma20",
    "sma50",
    "sma200",
    "stddev20",
    "upper_band20",
    "lower_band20",
    "ez",
)


@dataclass
class IndicatorResult:
    """Latest indicator values for one symbol. ``None`` means not computable yet."""

    symbol: str
    trade_date: date | None = None
    rsi14: float | None = None
    macd: float | None = None
    macd_signal: float | None = None
    macd_hist: float | None = None
    cci20: float | None = None
    mfi14: float | None = None
    turnover10: float | None = None
    sma20: float | None = None
    sma50: float | None = None
    sma200: float | None = None
    stddev20: float | None = None
    upper_band20: float | None = None
    lower_band20: float | None = None
    ez: float | None = None

    def values(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in INDICATOR_COLUMNS}

    def is_empty(self) -> bool:
        return all(value is None for value in self.values().values())


class IndicatorEngine:
    """Pure computation engine for per-symbol technical indicators."""

    RSI_PERIOD = 14
    MACD_FAST = 12
    MACD_SLOW = 26
    MACD_SIGNAL = 9
    CCI_PERIOD = 20
    CCI_CONSTANT = 0.015
    MFI_PERIOD = 14
    TURNOVER_PERIOD = 10
    BOLLINGER_PERIOD = 20
    BOLLINGER_WIDTH = 2.0

    def compute_for_symbol(self, symbol: str, bars: pd.DataFrame) -> IndicatorResult:
        """Indicators as of the last bar of ``bars`` (indexed by trade date)."""
        if bars.empty:
            return IndicatorResult(symbol=symbol)

        frame = self.compute_frame(bars)
        last = frame.iloc[-1]
        trade_date = frame.index[-1]
        if isinstance(trade_date, pd.Timestamp):
            trade_date = trade_date.date()

        values = {column: self._to_optional(last[column]) for column in INDICATOR_COLUMNS}
        return IndicatorResult(symbol=symbol, trade_date=trade_date, **values)

    def compute_frame(self, bars: pd.DataFrame) -> pd.DataFrame:
        """Indicator columns for every bar; NaN where a value is not computable."""
        bars = bars.sort_index()
        close = self._column(bars, "close")
        high = self._column(bars, "high")
        low = self._column(bars, "low")
        volume = self._column(bars, "volume")
        turnover = self._column(bars, "turnover")

        frame = pd.DataFrame(index=bars.index)
        frame["rsi14"] = self._rsi(close, self.RSI_PERIOD)

        macd, signal, hist = self._macd(close)
        frame["macd"] = macd
        frame["macd_signal"] = signal
        frame["macd_hist"] = hist

        typical = self._typical_price(high, low, close)
        frame["cci20"] = self._cci(typical, self.CCI_PERIOD)
        frame["mfi14"] = self._mfi(typical, volume, self.MFI_PERIOD)
        frame["turnover10"] = rolling_mean(turnover, self.TURNOVER_PERIOD)

        sma20 = rolling_mean(close, self.BOLLINGER_PERIOD)
        stddev20 = rolling_std(close, self.BOLLINGER_PERIOD)
        frame["sma20"] = sma20
        frame["sma50"] = rolling_mean(close, 50)
        frame["sma200"] = rolling_mean(close, 200)
        frame["stddev20"] = stddev20
        # NaN on either side keeps the band NaN
        frame["upper_band20"] = sma20 + self.BOLLINGER_WIDTH * stddev20
        frame["lower_band20"] = sma20 - self.BOLLINGER_WIDTH * stddev20
        frame["ez"] = self._ez(close, sma20)

        return frame.replace([np.inf, -np.inf], np.nan)

    def _column(self, bars: pd.DataFrame, name: str) -> pd.Series:
        if name not in bars.columns:
            return pd.Series(np.nan, index=bars.index, dtype=float)
        return to_float_series(bars[name])

    def _typical_price(self, high: pd.Series, low: pd.Series, close: pd.Series) -> pd.Series:
        return (high + low + close) / 3

    def _rsi(self, close: pd.Series, period: int) -> pd.Series:
        """
        Wilder RSI. The first ``period`` differences after a gap seed the
        average gain and loss as simple means; later days use Wilder smoothing.
        """
        values = close.to_numpy()
        out = np.full(len(values), np.nan)
        seed_gains: list[float] = []
        seed_losses: list[float] = []
        avg_gain: float | None = None
        avg_loss: float | None = None

        for i in range(1, len(values)):
            prev, cur = values[i - 1], values[i]
            if np.isnan(prev) or np.isnan(cur):
                seed_gains.clear()
                seed_losses.clear()
                avg_gain = avg_loss = None
                continue

            change = cur - prev
            gain = change if change > 0 else 0.0
            loss = -change if change < 0 else 0.0

            if avg_gain is None or avg_loss is None:
                seed_gains.append(gain)
                seed_losses.append(loss)
                if len(seed_gains) < period:
                    continue
                avg_gain = sum(seed_gains) / period
                avg_loss = sum(seed_losses) / period
            else:
                avg_gain = (avg_gain * (period - 1) + gain) / period
                avg_loss = (avg_loss * (period - 1) + loss) / period

            if avg_loss == 0:
                out[i] = 100.0
            else:
                out[i] = 100 - 100 / (1 + avg_gain / avg_loss)

        return pd.Series(out, index=close.index)

    def _macd(self, close: pd.Series) -> tuple[pd.Series, pd.Series, pd.Series]:
        macd = exponential_mean(close, self.MACD_FAST) - exponential_mean(close, self.MACD_SLOW)
        signal = exponential_mean(macd, self.MACD_SIGNAL)
        return macd, signal, macd - signal

    def _cci(self, typical: pd.Series, period: int) -> pd.Series:
        mean = rolling_mean(typical, period)
        deviation = mean_absolute_deviation(typical, period)
        deviation = deviation.where(deviation != 0)
        return (typical - mean) / (self.CCI_CONSTANT * deviation)

    def _mfi(self, typical: pd.Series, volume: pd.Series, period: int) -> pd.Series:
        raw_flow = typical * volume
        delta = typical.diff()
        invalid = delta.isna() | raw_flow.isna()

        positive = pd.Series(np.where(delta > 0, raw_flow, 0.0), index=typical.index)
        negative = pd.Series(np.where(delta < 0, raw_flow, 0.0), index=typical.index)
        positive[invalid] = np.nan
        negative[invalid] = np.nan

        pos_sum = rolling_sum(positive, period)
        neg_sum = rolling_sum(negative, period)

        mfi = 100 - 100 / (1 + pos_sum / neg_sum.where(neg_sum != 0))
        mfi = mfi.where(neg_sum != 0, 100.0)
        # No directional flow at all in the window
        mfi = mfi.where(~((pos_sum == 0) & (neg_sum == 0)))
        return mfi.where(pos_sum.notna() & neg_sum.notna())

    def _ez(self, close: pd.Series, sma20: pd.Series) -> pd.Series:
        base = sma20.where(sma20 != 0)
        return 100 * (close - base) / base

    def _to_optional(self, value: Any) -> float | None:
        if value is None or pd.isna(value):
            return None
        numeric = float(value)
        if not math.isfinite(numeric):
            return None
        return numeric
