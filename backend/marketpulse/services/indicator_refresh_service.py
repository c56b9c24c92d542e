from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

import pandas as pd
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert

from marketpulse.core.config import settings
from marketpulse.core.database import AsyncSessionLocal
from marketpulse.core.redis import StreamNames, publish_event_async
from marketpulse.models.daily_bar import DailyBar
from marketpulse.models.indicator_snapshot import IndicatorSnapshot
from marketpulse.strategy.indicator_engine import (
    INDICATOR_COLUMNS,
    IndicatorEngine,
    IndicatorResult,
)

logger = logging.getLogger(__name__)


@dataclass
class RefreshSummary:
    trade_date: date
    market_type: str
    symbols: int = 0
    updated: int = 0
    failed: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": str(self.trade_date),
            "market_type": self.market_type,
            "symbols": self.symbols,
            "updated": self.updated,
            "failed": self.failed,
            "errors": dict(self.errors),
        }


class IndicatorRefreshService:
    """Recompute and store indicator snapshots for every symbol traded on a date."""

    _MAX_QUERY_PARAMS = 30000
    _DEFAULT_COLUMN_OVERHEAD = 2

    def __init__(
        self,
        lookback_days: int | None = None,
        session_factory=None,
        publish_events: bool = True,
    ) -> None:
        self.engine = IndicatorEngine()
        self.lookback_days = lookback_days or settings.INDICATOR_LOOKBACK_DAYS
        self.session_factory = session_factory or AsyncSessionLocal
        self.publish_events = publish_events

    async def refresh(self, trade_date: date, market_type: str | None = None) -> RefreshSummary:
        market_type = market_type or settings.DEFAULT_MARKET_TYPE
        summary = RefreshSummary(trade_date=trade_date, market_type=market_type)

        symbols = await self._load_symbols(trade_date, market_type)
        summary.symbols = len(symbols)
        logger.info(
            "Updating indicators for %s symbols on %s (%s)",
            len(symbols),
            trade_date,
            market_type,
        )
        if not symbols:
            return summary

        start_date = trade_date - timedelta(days=self.lookback_days)
        bars = await self._fetch_daily_bars(symbols, start_date, trade_date)

        results: list[IndicatorResult] = []
        for symbol in symbols:
            try:
                results.append(self._compute_symbol(symbol, trade_date, bars.get(symbol)))
            except Exception as exc:
                logger.exception("Indicator computation failed for %s on %s", symbol, trade_date)
                summary.failed += 1
                summary.errors[symbol] = str(exc)

        summary.updated = await self._store_results(results, trade_date)

        logger.info(
            "Updated %s rows for %s (%s), %s failed",
            summary.updated,
            trade_date,
            market_type,
            summary.failed,
        )
        await self._publish_refreshed(summary)
        return summary

    async def refresh_range(
        self,
        start_date: date,
        end_date: date,
        market_type: str | None = None,
    ) -> list[RefreshSummary]:
        """Refresh every trading date in [start_date, end_date], oldest first."""
        market_type = market_type or settings.DEFAULT_MARKET_TYPE
        trade_dates = await self._load_trade_dates(start_date, end_date, market_type)
        summaries = []
        for trade_date in trade_dates:
            summaries.append(await self.refresh(trade_date, market_type))
        return summaries

    def _compute_symbol(
        self,
        symbol: str,
        trade_date: date,
        bars: pd.DataFrame | None,
    ) -> IndicatorResult:
        if bars is None or bars.empty:
            return IndicatorResult(symbol=symbol, trade_date=trade_date)
        result = self.engine.compute_for_symbol(symbol, bars)
        result.trade_date = trade_date
        return result

    async def _load_symbols(self, trade_date: date, market_type: str) -> list[str]:
        stmt = (
            select(DailyBar.symbol)
            .where(DailyBar.date == trade_date, DailyBar.market_type == market_type)
            .distinct()
            .order_by(DailyBar.symbol.asc())
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [row[0] for row in result.all()]

    async def _load_trade_dates(
        self, start_date: date, end_date: date, market_type: str
    ) -> list[date]:
        stmt = (
            select(DailyBar.date)
            .where(
                DailyBar.market_type == market_type,
                DailyBar.date >= start_date,
                DailyBar.date <= end_date,
            )
            .distinct()
            .order_by(DailyBar.date.asc())
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [row[0] for row in result.all()]

    async def _fetch_daily_bars(
        self,
        symbols: list[str],
        start_date: date,
        end_date: date,
    ) -> dict[str, pd.DataFrame]:
        stmt = select(DailyBar).where(
            DailyBar.symbol.in_(symbols),
            DailyBar.date >= start_date,
            DailyBar.date <= end_date,
        ).order_by(DailyBar.symbol.asc(), DailyBar.date.asc())
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.scalars().all()
        if not rows:
            return {}

        data = [
            {
                "symbol": row.symbol,
                "date": row.date,
                "open": self._to_float(row.open),
                "high": self._to_float(row.high),
                "low": self._to_float(row.low),
                "close": self._to_float(row.close),
                "volume": self._to_float(row.volume),
                "turnover": self._to_float(row.turnover),
            }
            for row in rows
        ]
        return bars_by_symbol(pd.DataFrame(data))

    async def _store_results(self, results: list[IndicatorResult], trade_date: date) -> int:
        rows = [
            {"symbol": result.symbol, "date": trade_date, **result.values()}
            for result in results
        ]
        if not rows:
            return 0

        async with self.session_factory() as session:
            for chunk in self._chunk_rows(rows):
                await session.execute(self._upsert_statement(chunk))
            await session.commit()
        return len(rows)

    def _upsert_statement(self, rows: list[dict[str, Any]]):
        """Insert snapshots; a re-run for the same (symbol, date) overwrites every indicator."""
        stmt = insert(IndicatorSnapshot).values(rows)
        update_map = {column: getattr(stmt.excluded, column) for column in INDICATOR_COLUMNS}
        update_map["updated_at"] = func.now()
        return stmt.on_conflict_do_update(
            constraint="uq_indicator_snapshots_symbol_date",
            set_=update_map,
        )

    async def _publish_refreshed(self, summary: RefreshSummary) -> None:
        if not self.publish_events:
            return
        await publish_event_async(
            StreamNames.INDICATORS_REFRESHED,
            {
                "date": summary.trade_date,
                "market_type": summary.market_type,
                "updated": summary.updated,
                "failed": summary.failed,
            },
        )

    def _to_float(self, value: Any) -> float | None:
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    def _chunk_rows(self, rows: list[dict[str, Any]]) -> list[list[dict[str, Any]]]:
        if not rows:
            return []
        row_size = max(1, len(rows[0]) + self._DEFAULT_COLUMN_OVERHEAD)
        batch_size = max(1, min(1000, self._MAX_QUERY_PARAMS // row_size))
        return [rows[i : i + batch_size] for i in range(0, len(rows), batch_size)]


def bars_by_symbol(df: pd.DataFrame) -> dict[str, pd.DataFrame]:
    """Split a long bars frame into per-symbol frames indexed by date."""
    if df.empty:
        return {}
    df = df.copy()
    df["date"] = pd.to_datetime(df["date"])
    grouped = {}
    for symbol, group in df.groupby("symbol"):
        grouped[symbol] = group.sort_values("date").set_index("date")
    return grouped
