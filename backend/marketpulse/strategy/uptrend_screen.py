from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from marketpulse.core.config import settings

REQUIRED_COLUMNS = ("turnover10", "rsi14", "macd_hist", "close", "sma20", "sma50", "sma200")


@dataclass
class UptrendItem:
    symbol: str
    ez: float | None


class UptrendScreen:
    """
    Liquid symbols with RSI in a moderate bullish band, non-negative MACD
    histogram and a stacked moving-average trend (close > sma20 > sma50 > sma200).
    """

    def __init__(
        self,
        min_turnover10: float | None = None,
        rsi_low: float | None = None,
        rsi_high: float | None = None,
    ) -> None:
        self.min_turnover10 = (
            settings.UPTREND_MIN_TURNOVER10 if min_turnover10 is None else min_turnover10
        )
        self.rsi_low = settings.UPTREND_RSI_LOW if rsi_low is None else rsi_low
        self.rsi_high = settings.UPTREND_RSI_HIGH if rsi_high is None else rsi_high

    def mask(self, rows: pd.DataFrame) -> pd.Series:
        """Boolean mask of qualifying rows. Any missing required value disqualifies."""
        if rows.empty:
            return pd.Series(dtype=bool, index=rows.index)

        cols = {name: self._column(rows, name) for name in REQUIRED_COLUMNS}
        complete = pd.concat(cols.values(), axis=1).notna().all(axis=1)

        return (
            complete
            & (cols["turnover10"] >= self.min_turnover10)
            & (cols["rsi14"] >= self.rsi_low)
            & (cols["rsi14"] <= self.rsi_high)
            & (cols["macd_hist"] >= 0)
            & (cols["close"] > cols["sma20"])
            & (cols["sma20"] > cols["sma50"])
            & (cols["sma50"] > cols["sma200"])
        )

    def apply(self, rows: pd.DataFrame) -> list[UptrendItem]:
        """Qualifying symbols ordered by ez ascending, then symbol."""
        if rows.empty:
            return []

        selected = rows.loc[self.mask(rows)].copy()
        if selected.empty:
            return []

        selected["ez"] = self._column(selected, "ez")
        selected = selected.sort_values(["ez", "symbol"], ascending=[True, True], na_position="last")
        return [
            UptrendItem(
                symbol=row.symbol,
                ez=None if pd.isna(row.ez) else float(row.ez),
            )
            for row in selected.itertuples(index=False)
        ]

    def _column(self, rows: pd.DataFrame, name: str) -> pd.Series:
        if name not in rows.columns:
            return pd.Series(float("nan"), index=rows.index)
        return pd.to_numeric(rows[name], errors="coerce")
