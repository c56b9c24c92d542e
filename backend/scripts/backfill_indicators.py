#!/usr/bin/env python3
"""
Recompute indicator snapshots for every trading date in a range.

Usage:
    python scripts/backfill_indicators.py --start 2025-01-01 [--end 2025-06-30] [--market-type STOCK]
"""

import asyncio
import logging
import os
import sys
from datetime import date
from argparse import ArgumentParser

# Add backend to path
sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from marketpulse.core.config import settings
from marketpulse.core.logging import setup_logging
from marketpulse.services.indicator_refresh_service import IndicatorRefreshService

setup_logging()
logger = logging.getLogger(__name__)


async def backfill_indicators(start_date: date, end_date: date, market_type: str) -> int:
    """Refresh each stored trading date in [start_date, end_date]."""
    logger.info(f"Backfilling indicators for {market_type} from {start_date} to {end_date}")

    service = IndicatorRefreshService(publish_events=False)
    summaries = await service.refresh_range(start_date, end_date, market_type)

    updated = sum(s.updated for s in summaries)
    failed = [s for s in summaries if s.failed]
    logger.info(f"Refreshed {len(summaries)} trading dates, {updated} snapshots written")

    for summary in failed[:5]:
        logger.warning(
            f"  {summary.trade_date}: {summary.failed} failed symbols "
            f"({', '.join(sorted(summary.errors)[:5])})"
        )
    return updated


def main():
    parser = ArgumentParser(description="Backfill indicator snapshots")
    parser.add_argument("--start", type=date.fromisoformat, required=True, help="First trade date (YYYY-MM-DD)")
    parser.add_argument("--end", type=date.fromisoformat, default=date.today(), help="Last trade date (default: today)")
    parser.add_argument("--market-type", default=settings.DEFAULT_MARKET_TYPE, help="Market segment")
    args = parser.parse_args()

    if args.start > args.end:
        parser.error("--start must not be after --end")

    try:
        result = asyncio.run(backfill_indicators(args.start, args.end, args.market_type))
    except Exception as e:
        logger.error(f"Backfill failed: {e}", exc_info=True)
        sys.exit(1)

    if result > 0:
        logger.info(f"Backfill completed successfully: {result} snapshots")
        sys.exit(0)
    logger.error("No trading dates found in range")
    sys.exit(1)


if __name__ == "__main__":
    main()
