import asyncio
import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from marketpulse.core.config import settings
from marketpulse.core.redis import StreamNames, publish_event
from marketpulse.scheduler.celery_app import app
from marketpulse.services import market_data_service
from marketpulse.services.indicator_refresh_service import IndicatorRefreshService, RefreshSummary

logger = logging.getLogger(__name__)


def _exchange_today() -> date:
    return datetime.now(ZoneInfo(settings.CELERY_TIMEZONE)).date()


async def _refresh_indicators_async(target_date: date, market_type: str) -> RefreshSummary:
    service = IndicatorRefreshService()
    return await service.refresh(target_date, market_type)


@app.task(name="marketpulse.tasks.indicators.refresh_indicators")
def refresh_indicators(
    as_of_date: str | None = None,
    market_type: Optional[str] = None,
) -> dict[str, object]:
    """Recompute indicator snapshots for every symbol traded on the date."""
    target_date = date.fromisoformat(as_of_date) if as_of_date else _exchange_today()
    segment = market_type or settings.DEFAULT_MARKET_TYPE
    summary = asyncio.run(_refresh_indicators_async(target_date, segment))

    if summary.failed:
        logger.warning(
            "Indicator refresh for %s finished with %s failed symbols: %s",
            target_date,
            summary.failed,
            ", ".join(sorted(summary.errors)),
        )
    else:
        logger.info("Indicators refreshed for %s (%s rows)", target_date, summary.updated)

    return {"status": "completed", **summary.to_dict()}


@app.task(name="marketpulse.tasks.indicators.run_eod_pipeline")
def run_eod_pipeline(as_of_date: str | None = None) -> dict[str, object]:
    """Scheduled task: ingest the day's end-of-day data, then refresh indicators."""
    target_date = date.fromisoformat(as_of_date) if as_of_date else _exchange_today()
    logger.info("Running EOD pipeline for %s", target_date)
    result = asyncio.run(market_data_service.run_eod_pipeline(target_date))
    logger.info(
        "EOD pipeline done: fetched=%s, created=%s, updated=%s, symbols_upserted=%s",
        result["fetched"],
        result["created"],
        result["updated"],
        result["symbols_upserted"],
    )

    if result["created"] > 0:
        publish_event(StreamNames.MARKET_BARS, {
            "event_type": "batch_complete",
            "date": result["date"],
            "count": result["created"],
        })

    if result["failed"]:
        publish_event(StreamNames.ALERTS, {
            "level": "WARNING",
            "title": "Indicator Refresh Failures",
            "message": f"{result['failed']} symbols failed on {result['date']}",
        })

    return {"status": "completed", **result}
