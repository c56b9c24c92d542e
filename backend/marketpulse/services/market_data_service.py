import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

import pandas as pd
from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert

from marketpulse.core.config import settings
from marketpulse.core.database import AsyncSessionLocal
from marketpulse.models.daily_bar import DailyBar
from marketpulse.models.instrument_info import InstrumentInfo
from marketpulse.services.indicator_refresh_service import IndicatorRefreshService
from marketpulse.services.market_data import get_market_data_provider

logger = logging.getLogger(__name__)

INTEGER_FIELDS = ("security_id", "volume", "turnover", "market_cap")
DECIMAL_FIELDS = ("open", "high", "low", "close", "base_price", "change")
LABEL_FIELDS = ("isin", "name", "sector", "sub_sector", "market_type")


@dataclass
class IngestResult:
    trade_date: date
    fetched: int = 0
    created: int = 0


class MarketDataService:
    """
    Fetch end-of-day records and the securities list from the provider and
    store them. Existing (symbol, date) bars are never overwritten; instrument
    labels always take the latest published values.
    """

    BATCH_SIZE = 1000

    def __init__(self, provider_name: str | None = None, provider=None, session_factory=None):
        self.provider_name = provider_name or settings.MARKET_DATA_PROVIDER
        self.provider = provider or get_market_data_provider(self.provider_name)
        self.session_factory = session_factory or AsyncSessionLocal

    async def fetch_and_store_end_of_day(self, trade_date: date) -> IngestResult:
        result = IngestResult(trade_date=trade_date)

        df = await self.provider.fetch_end_of_day(trade_date)
        result.fetched = len(df)
        if df.empty:
            logger.warning("No end-of-day data returned for %s", trade_date)
            return result

        records = [r for r in (self._prepare_record(row) for row in df.to_dict("records")) if r]

        async with self.session_factory() as session:
            for i in range(0, len(records), self.BATCH_SIZE):
                stmt = self._bars_statement(records[i:i + self.BATCH_SIZE])
                outcome = await session.execute(stmt)
                result.created += max(outcome.rowcount or 0, 0)
            await session.commit()

        logger.info(
            "Created %s rows for %s (%s duplicates skipped)",
            result.created,
            trade_date,
            len(records) - result.created,
        )
        return result

    async def fetch_and_store_symbols(self, trade_date: date) -> int:
        """Upsert name and sector labels for every listed security. Returns rows written."""
        df = await self.provider.fetch_securities(trade_date)
        instruments = self._prepare_instruments(df)
        if not instruments:
            logger.warning("No securities returned for %s", trade_date)
            return 0

        async with self.session_factory() as session:
            for i in range(0, len(instruments), self.BATCH_SIZE):
                await session.execute(self._instruments_statement(instruments[i:i + self.BATCH_SIZE]))
            await session.commit()

        logger.info("Upserted %s instruments for %s", len(instruments), trade_date)
        return len(instruments)

    def _bars_statement(self, records: list[dict[str, Any]]):
        stmt = insert(DailyBar).values(records)
        return stmt.on_conflict_do_nothing(constraint="uq_prices_daily_symbol_date")

    def _instruments_statement(self, instruments: list[dict[str, Any]]):
        stmt = insert(InstrumentInfo).values(instruments)
        update_map = {field: getattr(stmt.excluded, field) for field in LABEL_FIELDS}
        update_map["active"] = True
        update_map["updated_at"] = func.now()
        return stmt.on_conflict_do_update(index_elements=["symbol"], set_=update_map)

    def _prepare_record(self, row: dict[str, Any]) -> Optional[dict]:
        """Convert a provider row to a dictionary for DB insert."""
        symbol = _clean(row.get("symbol"))
        trade_date = _clean(row.get("date"))
        if not symbol or trade_date is None:
            logger.warning(f"Skipping row without symbol or date: {row}")
            return None

        record: dict[str, Any] = {
            "symbol": str(symbol),
            "date": trade_date,
            "market_type": _clean(row.get("market_type")),
            "source": self.provider_name,
        }
        for field in INTEGER_FIELDS:
            value = _clean(row.get(field))
            record[field] = None if value is None else int(value)
        for field in DECIMAL_FIELDS:
            value = _clean(row.get(field))
            record[field] = None if value is None else float(value)
        return record

    def _prepare_instruments(self, df: pd.DataFrame) -> list[dict[str, Any]]:
        seen: set[str] = set()
        instruments = []
        for row in df.to_dict("records"):
            symbol = _clean(row.get("symbol"))
            if not symbol or symbol in seen:
                continue
            seen.add(symbol)
            instruments.append(
                {"symbol": str(symbol), **{field: _clean(row.get(field)) for field in LABEL_FIELDS}}
            )
        return instruments


def _clean(value: Any) -> Any:
    """Map None, NaN, NaT and pd.NA to None."""
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


async def run_eod_pipeline(trade_date: date, market_type: str | None = None) -> dict[str, Any]:
    """Ingest one trade date, refresh that date's indicators, then sync instrument labels."""
    service = MarketDataService()
    ingest = await service.fetch_and_store_end_of_day(trade_date)
    summary = await IndicatorRefreshService().refresh(
        trade_date, market_type or settings.DEFAULT_MARKET_TYPE
    )
    symbols_upserted = await service.fetch_and_store_symbols(trade_date)
    return {
        "date": str(trade_date),
        "fetched": ingest.fetched,
        "created": ingest.created,
        "symbols_upserted": symbols_upserted,
        "updated": summary.updated,
        "failed": summary.failed,
    }
