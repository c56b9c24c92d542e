"""Tests for the Celery task bodies, run eagerly in-process."""

from datetime import date

from marketpulse.core import redis as redis_module
from marketpulse.services.indicator_refresh_service import RefreshSummary
from marketpulse.tasks import indicators


class FakeRedis:
    def __init__(self):
        self.events = []

    def xadd(self, stream, fields, **kwargs):
        self.events.append((stream, fields))


def test_refresh_indicators_task(monkeypatch):
    async def refresh(target_date, market_type):
        return RefreshSummary(target_date, market_type, symbols=2, updated=1, failed=1, errors={"X": "bad"})

    monkeypatch.setattr(indicators, "_refresh_indicators_async", refresh)
    result = indicators.refresh_indicators("2024-09-03", "STOCK")
    assert result["status"] == "completed"
    assert result["date"] == "2024-09-03"
    assert result["failed"] == 1
    assert result["errors"] == {"X": "bad"}


def test_refresh_indicators_defaults_to_exchange_today(monkeypatch):
    async def refresh(target_date, market_type):
        return RefreshSummary(target_date, market_type)

    monkeypatch.setattr(indicators, "_refresh_indicators_async", refresh)
    monkeypatch.setattr(indicators, "_exchange_today", lambda: date(2024, 9, 4))
    result = indicators.refresh_indicators()
    assert result["date"] == "2024-09-04"
    assert result["market_type"] == "STOCK"


def test_run_eod_pipeline_publishes_events(monkeypatch):
    fake = FakeRedis()

    async def pipeline(trade_date, market_type=None):
        return {
            "date": str(trade_date),
            "fetched": 10,
            "created": 8,
            "symbols_upserted": 2,
            "updated": 7,
            "failed": 1,
        }

    monkeypatch.setattr(indicators.market_data_service, "run_eod_pipeline", pipeline)
    monkeypatch.setattr(redis_module, "get_redis", lambda: fake)

    result = indicators.run_eod_pipeline("2024-09-03")

    assert result["status"] == "completed"
    assert result["created"] == 8
    streams = [stream for stream, _ in fake.events]
    assert streams == ["market-bars", "alerts"]
    assert fake.events[0][1]["count"] == "8"
