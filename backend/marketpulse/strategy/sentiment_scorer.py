"""
Market spirit: a 6-point composite breadth score for one market segment.

Each condition is worth one point:
  1. breadth > 0        - more advancing than declining symbols today
  2. breadth line > 0   - cumulative breadth over the trailing window is positive
  3. >50% ez > 0        - majority of symbols above their SMA20
  4. >50% rsi14 > 50    - majority in bullish RSI territory
  5. >50% macd_hist > 0 - majority with positive MACD momentum
  6. >50% cci20 > 0     - majority with positive CCI

Points map to a regime: Defense (0-2), Selective (3-4), Attack (5-6).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable

import pandas as pd


class Regime(str, Enum):
    DEFENSE = "Defense"
    SELECTIVE = "Selective"
    ATTACK = "Attack"


@dataclass
class SentimentReading:
    trade_date: date
    market_type: str
    universe_size: int
    breadth: int | None = None
    breadth_line: int | None = None
    points: int | None = None
    regime: Regime | None = None

    @property
    def is_defined(self) -> bool:
        return self.regime is not None


def regime_for_points(points: int) -> Regime:
    if points <= 2:
        return Regime.DEFENSE
    if points <= 4:
        return Regime.SELECTIVE
    return Regime.ATTACK


def daily_breadth(changes: Iterable[float | None]) -> int:
    """Advancing minus declining count; a missing change counts as neither."""
    advancing = 0
    declining = 0
    for change in changes:
        if change is None or pd.isna(change):
            continue
        if change > 0:
            advancing += 1
        elif change < 0:
            declining += 1
    return advancing - declining


class SentimentScorer:
    """Score a segment's universe for one trade date."""

    INDICATOR_THRESHOLDS = {
        "ez": 0.0,
        "rsi14": 50.0,
        "macd_hist": 0.0,
        "cci20": 0.0,
    }

    def score(
        self,
        trade_date: date,
        market_type: str,
        universe: pd.DataFrame,
        breadth_history: Iterable[int],
    ) -> SentimentReading:
        """
        ``universe`` has one row per symbol with columns change, ez, rsi14,
        macd_hist and cci20. ``breadth_history`` is the daily breadth of every
        trade date in the trailing window, today included.
        """
        total = len(universe)
        if total == 0:
            return SentimentReading(trade_date=trade_date, market_type=market_type, universe_size=0)

        breadth = daily_breadth(self._column(universe, "change"))
        breadth_line = int(sum(int(value) for value in breadth_history))

        conditions = [breadth > 0, breadth_line > 0]
        for column, threshold in self.INDICATOR_THRESHOLDS.items():
            conditions.append(self._majority_above(universe, column, threshold, total))

        points = sum(1 for passed in conditions if passed)
        return SentimentReading(
            trade_date=trade_date,
            market_type=market_type,
            universe_size=total,
            breadth=breadth,
            breadth_line=breadth_line,
            points=points,
            regime=regime_for_points(points),
        )

    def _majority_above(
        self, universe: pd.DataFrame, column: str, threshold: float, total: int
    ) -> bool:
        values = self._column(universe, column)
        # NaN compares False, so missing indicators never count toward the majority
        above = int((values > threshold).sum())
        return above / total > 0.5

    def _column(self, universe: pd.DataFrame, column: str) -> pd.Series:
        if column not in universe.columns:
            return pd.Series(float("nan"), index=universe.index)
        return pd.to_numeric(universe[column], errors="coerce")
