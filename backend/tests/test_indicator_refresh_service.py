"""Tests for the per-date indicator refresh job."""

import asyncio
from datetime import date

import pandas as pd
import pytest
from sqlalchemy.dialects import postgresql

from conftest import make_bars
from marketpulse.core import redis as redis_module
from marketpulse.services import indicator_refresh_service as refresh_module
from marketpulse.services.indicator_refresh_service import (
    IndicatorRefreshService,
    bars_by_symbol,
)
from marketpulse.strategy.indicator_engine import INDICATOR_COLUMNS

TRADE_DATE = date(2024, 9, 6)


def _make_service(monkeypatch, symbols, bars, stored):
    service = IndicatorRefreshService(session_factory=object(), publish_events=False)

    async def load_symbols(trade_date, market_type):
        return list(symbols)

    async def fetch_daily_bars(symbols, start_date, end_date):
        return bars

    async def store_results(results, trade_date):
        stored.extend(results)
        return len(results)

    monkeypatch.setattr(service, "_load_symbols", load_symbols)
    monkeypatch.setattr(service, "_fetch_daily_bars", fetch_daily_bars)
    monkeypatch.setattr(service, "_store_results", store_results)
    return service


class TestRefresh:
    def test_stores_one_snapshot_per_symbol(self, monkeypatch, rising_bars):
        stored = []
        bars = {"AAA": rising_bars, "BBB": make_bars([10.0] * 5)}
        service = _make_service(monkeypatch, ["AAA", "BBB", "CCC"], bars, stored)

        summary = asyncio.run(service.refresh(TRADE_DATE, "STOCK"))

        assert summary.symbols == 3
        assert summary.updated == 3
        assert summary.failed == 0
        assert {r.symbol for r in stored} == {"AAA", "BBB", "CCC"}
        assert all(r.trade_date == TRADE_DATE for r in stored)
        by_symbol = {r.symbol: r for r in stored}
        assert by_symbol["AAA"].sma200 is not None
        # too little history or none at all
        assert by_symbol["BBB"].sma20 is None
        assert by_symbol["CCC"].is_empty()

    def test_failure_is_isolated(self, monkeypatch, rising_bars):
        stored = []
        bars = {"AAA": rising_bars, "BAD": rising_bars, "ZZZ": rising_bars}
        service = _make_service(monkeypatch, ["AAA", "BAD", "ZZZ"], bars, stored)
        compute_real = service.engine.compute_for_symbol

        def compute(symbol, frame):
            if symbol == "BAD":
                raise ValueError("corrupt bars")
            return compute_real(symbol, frame)

        monkeypatch.setattr(service.engine, "compute_for_symbol", compute)

        summary = asyncio.run(service.refresh(TRADE_DATE, "STOCK"))

        assert summary.updated == 2
        assert summary.failed == 1
        assert summary.errors == {"BAD": "corrupt bars"}
        assert [r.symbol for r in stored] == ["AAA", "ZZZ"]

    def test_no_symbols(self, monkeypatch):
        stored = []
        service = _make_service(monkeypatch, [], {}, stored)
        summary = asyncio.run(service.refresh(TRADE_DATE))
        assert summary.market_type == "STOCK"
        assert summary.symbols == 0
        assert summary.updated == 0
        assert stored == []

    def test_refresh_range(self, monkeypatch, rising_bars):
        stored = []
        service = _make_service(monkeypatch, ["AAA"], {"AAA": rising_bars}, stored)
        dates = [date(2024, 9, 5), date(2024, 9, 6)]

        async def load_trade_dates(start_date, end_date, market_type):
            return dates

        monkeypatch.setattr(service, "_load_trade_dates", load_trade_dates)
        summaries = asyncio.run(service.refresh_range(dates[0], dates[-1], "STOCK"))
        assert [s.trade_date for s in summaries] == dates
        assert [r.trade_date for r in stored] == dates

    def test_summary_dict(self, monkeypatch):
        service = _make_service(monkeypatch, [], {}, [])
        data = asyncio.run(service.refresh(TRADE_DATE, "BOND")).to_dict()
        assert data == {
            "date": "2024-09-06",
            "market_type": "BOND",
            "symbols": 0,
            "updated": 0,
            "failed": 0,
            "errors": {},
        }


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.events = []

    async def xadd(self, stream, fields, **kwargs):
        if self.fail:
            raise ConnectionError("redis down")
        self.events.append((stream, fields))


class TestPublish:
    def _summary(self):
        return refresh_module.RefreshSummary(TRADE_DATE, "STOCK", symbols=2, updated=2)

    def test_publishes_event(self, monkeypatch):
        fake = FakeRedis()

        async def get_redis():
            return fake

        monkeypatch.setattr(redis_module, "get_async_redis", get_redis)
        service = IndicatorRefreshService(session_factory=object())
        asyncio.run(service._publish_refreshed(self._summary()))
        assert fake.events == [
            ("indicators-refreshed",
             {"date": "2024-09-06", "market_type": "STOCK", "updated": "2", "failed": "0"})
        ]

    def test_publish_failure_does_not_raise(self, monkeypatch):
        async def get_redis():
            return FakeRedis(fail=True)

        monkeypatch.setattr(redis_module, "get_async_redis", get_redis)
        service = IndicatorRefreshService(session_factory=object())
        asyncio.run(service._publish_refreshed(self._summary()))


class TestHelpers:
    def test_bars_by_symbol(self):
        df = pd.DataFrame(
            {
                "symbol": ["B", "A", "A"],
                "date": [date(2024, 1, 2), date(2024, 1, 3), date(2024, 1, 2)],
                "close": [1.0, 3.0, 2.0],
            }
        )
        grouped = bars_by_symbol(df)
        assert set(grouped) == {"A", "B"}
        assert grouped["A"]["close"].tolist() == [2.0, 3.0]
        assert isinstance(grouped["A"].index, pd.DatetimeIndex)

    def test_bars_by_symbol_empty(self):
        assert bars_by_symbol(pd.DataFrame()) == {}

    def test_chunk_rows_respects_parameter_limit(self):
        service = IndicatorRefreshService(session_factory=object())
        rows = [{f"c{i}": 0 for i in range(16)} for _ in range(5000)]
        chunks = service._chunk_rows(rows)
        assert sum(len(chunk) for chunk in chunks) == 5000
        assert all(len(chunk) * 18 <= 30000 for chunk in chunks)


class RecordingSession:
    def __init__(self):
        self.statements = []
        self.committed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, stmt):
        self.statements.append(stmt)

    async def commit(self):
        self.committed = True


class TestStoreResults:
    def _results(self, rising_bars):
        engine = IndicatorRefreshService(session_factory=object()).engine
        full = engine.compute_for_symbol("AAA", rising_bars)
        empty = refresh_module.IndicatorResult(symbol="NEW", trade_date=TRADE_DATE)
        return [full, empty]

    def test_upsert_overwrites_every_indicator(self, rising_bars):
        service = IndicatorRefreshService(session_factory=object())
        rows = [{"symbol": r.symbol, "date": TRADE_DATE, **r.values()} for r in self._results(rising_bars)]
        sql = str(service._upsert_statement(rows).compile(dialect=postgresql.dialect()))

        assert "INSERT INTO indicator_snapshots" in sql
        assert "ON CONFLICT ON CONSTRAINT uq_indicator_snapshots_symbol_date DO UPDATE SET" in sql
        for column in INDICATOR_COLUMNS:
            assert f"{column} = excluded.{column}" in sql
        assert "updated_at = now()" in sql
        # the conflict key itself is never rewritten
        assert "symbol = excluded.symbol" not in sql

    def test_store_results_writes_chunks_and_commits(self, rising_bars):
        session = RecordingSession()
        service = IndicatorRefreshService(session_factory=lambda: session)
        results = self._results(rising_bars)

        written = asyncio.run(service._store_results(results, TRADE_DATE))

        assert written == 2
        assert session.committed
        assert len(session.statements) == 1
        params = session.statements[0].compile(dialect=postgresql.dialect()).params
        symbols = {value for key, value in params.items() if key.startswith("symbol")}
        assert symbols == {"AAA", "NEW"}
        # all-null snapshots are still persisted
        assert any(key.startswith("rsi14") and value is None for key, value in params.items())

    def test_store_nothing(self):
        session = RecordingSession()
        service = IndicatorRefreshService(session_factory=lambda: session)
        assert asyncio.run(service._store_results([], TRADE_DATE)) == 0
        assert session.statements == []
