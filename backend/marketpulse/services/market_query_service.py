from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any

import pandas as pd
from sqlalchemy import and_, case, func, select

from marketpulse.core.config import settings
from marketpulse.core.database import AsyncSessionLocal
from marketpulse.core.exceptions import NoTradingDataError
from marketpulse.models.daily_bar import DailyBar
from marketpulse.models.indicator_snapshot import IndicatorSnapshot
from marketpulse.models.instrument_info import InstrumentInfo
from marketpulse.strategy.bar_aggregator import (
    PERIOD_OFFSETS,
    CandlestickTimeframe,
    ChangePeriod,
    aggregate_bars,
    period_change,
)
from marketpulse.strategy.indicator_engine import INDICATOR_COLUMNS
from marketpulse.strategy.sentiment_scorer import SentimentReading, SentimentScorer
from marketpulse.strategy.uptrend_screen import UptrendItem, UptrendScreen

logger = logging.getLogger(__name__)

BAR_COLUMNS = (
    "open",
    "high",
    "low",
    "close",
    "base_price",
    "change",
    "volume",
    "turnover",
    "market_cap",
)
INFO_COLUMNS = ("company_name", "sector", "sub_sector")


@dataclass
class MarketRow:
    """One symbol on one trade date. Fields a query path does not fill stay None."""

    trade_date: date
    symbol: str
    market_type: str | None = None
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None
    base_price: float | None = None
    change: float | None = None
    volume: float | None = None
    turnover: float | None = None
    market_cap: float | None = None
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
    company_name: str | None = None
    sector: str | None = None
    sub_sector: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class EndOfDayResult:
    trade_date: date
    market_type: str
    rows: list[MarketRow] = field(default_factory=list)


@dataclass
class UptrendResult:
    trade_date: date
    market_type: str
    items: list[UptrendItem] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


@dataclass
class SymbolRowsResult:
    symbols: list[str]
    date_from: date | None
    date_to: date | None
    items: list[MarketRow] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


@dataclass
class CandlestickResult:
    symbol: str
    timeframe: str
    items: list[MarketRow] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def date_from(self) -> date | None:
        return self.items[0].trade_date if self.items else None

    @property
    def date_to(self) -> date | None:
        return self.items[-1].trade_date if self.items else None


@dataclass
class HeatmapItem:
    symbol: str
    company_name: str | None
    market_cap: float | None
    change: float | None
    sector: str
    sub_sector: str | None


@dataclass
class SectorHeatmapResult:
    trade_date: date
    market_type: str
    period: str
    items: list[HeatmapItem] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.items)


class MarketQueryService:
    """Read-side operations over stored bars and indicator snapshots."""

    def __init__(self, session_factory=None) -> None:
        self.session_factory = session_factory or AsyncSessionLocal
        self.scorer = SentimentScorer()
        self.screen = UptrendScreen()

    async def resolve_trade_date(self, market_type: str, trade_date: date | None = None) -> date:
        """The requested date, or the most recent trading date at or before today."""
        if trade_date is not None:
            return trade_date
        latest = await self._latest_trade_date(market_type, date.today())
        if latest is None:
            raise NoTradingDataError(market_type)
        return latest

    async def get_end_of_day(
        self, market_type: str | None = None, trade_date: date | None = None
    ) -> EndOfDayResult:
        market_type = market_type or settings.DEFAULT_MARKET_TYPE
        target = await self.resolve_trade_date(market_type, trade_date)
        rows = await self._fetch_rows(market_type=market_type, date_from=target, date_to=target)
        return EndOfDayResult(trade_date=target, market_type=market_type, rows=frame_to_rows(rows))

    async def get_market_sentiment(
        self, market_type: str | None = None, trade_date: date | None = None
    ) -> SentimentReading:
        market_type = market_type or settings.DEFAULT_MARKET_TYPE
        target = await self.resolve_trade_date(market_type, trade_date)
        universe = await self._fetch_rows(market_type=market_type, date_from=target, date_to=target)
        if universe.empty:
            logger.info("No trading rows for %s on %s", market_type, target)
            return self.scorer.score(target, market_type, universe, [])

        start = target - timedelta(days=settings.BREADTH_LINE_DAYS)
        history = await self._fetch_breadth_history(market_type, start, target)
        return self.scorer.score(target, market_type, universe, history)

    async def get_uptrend_symbols(
        self, market_type: str | None = None, trade_date: date | None = None
    ) -> UptrendResult:
        market_type = market_type or settings.DEFAULT_MARKET_TYPE
        target = await self.resolve_trade_date(market_type, trade_date)
        rows = await self._fetch_rows(market_type=market_type, date_from=target, date_to=target)
        return UptrendResult(
            trade_date=target,
            market_type=market_type,
            items=self.screen.apply(rows),
        )

    async def get_symbol_history(
        self,
        symbols: list[str] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> SymbolRowsResult:
        if date_from is None or date_to is None:
            last = await self.resolve_trade_date(settings.DEFAULT_MARKET_TYPE)
            date_from = date_from or last
            date_to = date_to or last
        rows = await self._fetch_rows(symbols=symbols or None, date_from=date_from, date_to=date_to)
        return SymbolRowsResult(
            symbols=symbols or [],
            date_from=date_from,
            date_to=date_to,
            items=frame_to_rows(rows),
        )

    async def get_symbols_by_date(
        self,
        symbols: list[str],
        trade_date: date | None = None,
        period: ChangePeriod = "1D",
    ) -> SymbolRowsResult:
        target = trade_date or await self.resolve_trade_date(settings.DEFAULT_MARKET_TYPE)
        if period == "1D":
            rows = await self._fetch_rows(symbols=symbols, date_from=target, date_to=target)
            return SymbolRowsResult(symbols, target, target, frame_to_rows(rows))

        offset = self._period_offset(period)
        trading_dates = await self._recent_trade_dates(target, offset + 1)
        rows = await self._fetch_rows(symbols=symbols, trade_dates=trading_dates)
        changed = period_change(rows, target, offset, trading_dates)

        items = [
            MarketRow(
                trade_date=target,
                symbol=row["symbol"],
                close=_optional_float(row.get("close")),
                market_cap=_optional_float(row.get("market_cap")),
                change=_optional_float(row.get("change")),
            )
            for row in changed.to_dict("records")
        ]
        return SymbolRowsResult(symbols, target, target, items)

    async def get_candlestick(
        self,
        symbol: str,
        date_from: date | None = None,
        date_to: date | None = None,
        timeframe: CandlestickTimeframe = "1D",
    ) -> CandlestickResult:
        date_to = date_to or await self.resolve_trade_date(settings.DEFAULT_MARKET_TYPE)
        date_from = date_from or date_to - timedelta(days=settings.CANDLESTICK_DEFAULT_DAYS)
        rows = await self._fetch_rows(symbols=[symbol], date_from=date_from, date_to=date_to)

        if timeframe == "1D":
            return CandlestickResult(symbol, timeframe, frame_to_rows(rows))

        aggregated = aggregate_bars(rows, timeframe)
        items = [
            MarketRow(
                trade_date=row["date"],
                symbol=symbol,
                open=_optional_float(row["open"]),
                high=_optional_float(row["high"]),
                low=_optional_float(row["low"]),
                close=_optional_float(row["close"]),
                volume=_optional_float(row["volume"]),
                change=_optional_float(row["change"]),
                sma20=_optional_float(row["sma20"]),
                sma50=_optional_float(row["sma50"]),
                sma200=_optional_float(row["sma200"]),
                ez=_optional_float(row["ez"]),
            )
            for row in aggregated.to_dict("records")
        ]
        return CandlestickResult(symbol, timeframe, items)

    async def get_sector_heatmap(
        self,
        market_type: str | None = None,
        trade_date: date | None = None,
        period: ChangePeriod = "1D",
    ) -> SectorHeatmapResult:
        market_type = market_type or settings.DEFAULT_MARKET_TYPE
        target = await self.resolve_trade_date(market_type, trade_date)

        if period == "1D":
            rows = await self._fetch_rows(market_type=market_type, date_from=target, date_to=target)
        else:
            offset = self._period_offset(period)
            trading_dates = await self._recent_trade_dates(target, offset + 1, market_type)
            rows = await self._fetch_rows(market_type=market_type, trade_dates=trading_dates)
            rows = period_change(rows, target, offset, trading_dates)

        items = [
            HeatmapItem(
                symbol=row["symbol"],
                company_name=_optional_str(row.get("company_name")),
                market_cap=_optional_float(row.get("market_cap")),
                change=_optional_float(row.get("change")),
                sector=row["sector"],
                sub_sector=_optional_str(row.get("sub_sector")),
            )
            for row in _sorted_records(rows)
            if _optional_str(row.get("sector")) is not None
        ]
        return SectorHeatmapResult(target, market_type, period, items)

    def _period_offset(self, period: str) -> int:
        try:
            return PERIOD_OFFSETS[period]
        except KeyError:
            raise ValueError(f"Unsupported period: {period}") from None

    async def _latest_trade_date(self, market_type: str, on_or_before: date) -> date | None:
        stmt = select(func.max(DailyBar.date)).where(
            DailyBar.market_type == market_type,
            DailyBar.date <= on_or_before,
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def _recent_trade_dates(
        self, as_of: date, limit: int, market_type: str | None = None
    ) -> list[date]:
        stmt = select(DailyBar.date).where(DailyBar.date <= as_of)
        if market_type is not None:
            stmt = stmt.where(DailyBar.market_type == market_type)
        stmt = stmt.distinct().order_by(DailyBar.date.desc()).limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return sorted(row[0] for row in result.all())

    async def _fetch_breadth_history(
        self, market_type: str, start_date: date, end_date: date
    ) -> list[int]:
        stmt = self._breadth_statement(market_type, start_date, end_date)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [int(row.breadth or 0) for row in result.all()]

    def _breadth_statement(self, market_type: str, start_date: date, end_date: date):
        """Advancing minus declining symbol count per trade date in [start_date, end_date]."""
        advancing = func.sum(case((DailyBar.change > 0, 1), else_=0))
        declining = func.sum(case((DailyBar.change < 0, 1), else_=0))
        return (
            select(DailyBar.date, (advancing - declining).label("breadth"))
            .where(
                DailyBar.market_type == market_type,
                DailyBar.date >= start_date,
                DailyBar.date <= end_date,
            )
            .group_by(DailyBar.date)
            .order_by(DailyBar.date.asc())
        )

    async def _fetch_rows(
        self,
        *,
        market_type: str | None = None,
        symbols: list[str] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        trade_dates: list[date] | None = None,
    ) -> pd.DataFrame:
        """Bars joined with their indicator snapshot and instrument labels."""
        stmt = (
            select(DailyBar, IndicatorSnapshot, InstrumentInfo)
            .outerjoin(
                IndicatorSnapshot,
                and_(
                    IndicatorSnapshot.symbol == DailyBar.symbol,
                    IndicatorSnapshot.date == DailyBar.date,
                ),
            )
            .outerjoin(InstrumentInfo, InstrumentInfo.symbol == DailyBar.symbol)
        )
        if market_type is not None:
            stmt = stmt.where(DailyBar.market_type == market_type)
        if symbols is not None:
            stmt = stmt.where(DailyBar.symbol.in_(symbols))
        if date_from is not None:
            stmt = stmt.where(DailyBar.date >= date_from)
        if date_to is not None:
            stmt = stmt.where(DailyBar.date <= date_to)
        if trade_dates is not None:
            stmt = stmt.where(DailyBar.date.in_(trade_dates))
        stmt = stmt.order_by(DailyBar.symbol.asc(), DailyBar.date.asc())

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            records = [self._join_to_record(*row) for row in result.all()]
        return pd.DataFrame(records, columns=ROW_COLUMNS)

    def _join_to_record(
        self,
        bar: DailyBar,
        snapshot: IndicatorSnapshot | None,
        info: InstrumentInfo | None,
    ) -> dict[str, Any]:
        record: dict[str, Any] = {
            "date": bar.date,
            "symbol": bar.symbol,
            "market_type": bar.market_type,
        }
        for column in BAR_COLUMNS:
            record[column] = _optional_float(getattr(bar, column))
        for column in INDICATOR_COLUMNS:
            record[column] = _optional_float(getattr(snapshot, column)) if snapshot else None
        record["company_name"] = info.name if info else None
        record["sector"] = info.sector if info else None
        record["sub_sector"] = info.sub_sector if info else None
        return record


ROW_COLUMNS = ["date", "symbol", "market_type", *BAR_COLUMNS, *INDICATOR_COLUMNS, *INFO_COLUMNS]


def frame_to_rows(frame: pd.DataFrame) -> list[MarketRow]:
    rows = []
    for record in _sorted_records(frame):
        trade_date = record.get("date")
        if isinstance(trade_date, pd.Timestamp):
            trade_date = trade_date.date()
        rows.append(
            MarketRow(
                trade_date=trade_date,
                symbol=record["symbol"],
                market_type=_optional_str(record.get("market_type")),
                **{column: _optional_float(record.get(column)) for column in BAR_COLUMNS},
                **{column: _optional_float(record.get(column)) for column in INDICATOR_COLUMNS},
                **{column: _optional_str(record.get(column)) for column in INFO_COLUMNS},
            )
        )
    return rows


def _sorted_records(frame: pd.DataFrame) -> list[dict[str, Any]]:
    if frame.empty:
        return []
    keys = [key for key in ("symbol", "date") if key in frame.columns]
    return frame.sort_values(keys).to_dict("records")


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def _optional_str(value: Any) -> str | None:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    return str(value)
