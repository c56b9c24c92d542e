import asyncio
import logging
from datetime import date
from typing import Any

import httpx
import pandas as pd

from marketpulse.core.config import settings
from marketpulse.core.exceptions import UpstreamError
from marketpulse.services.market_data.base import MarketDataProvider

logger = logging.getLogger(__name__)

EOD_COLUMNS = [
    "symbol",
    "date",
    "market_type",
    "security_id",
    "isin",
    "open",
    "high",
    "low",
    "close",
    "base_price",
    "change",
    "volume",
    "turnover",
    "market_cap",
]

SECURITY_COLUMNS = ["symbol", "isin", "name", "sector", "sub_sector", "market_type"]


class TaseDataHubProvider(MarketDataProvider):
    """End-of-day securities trading data from the TASE Data Hub API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        securities_url: str | None = None,
        timeout_sec: float | None = None,
        max_retries: int = 3,
        backoff_sec: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = settings.TASE_DATA_HUB_API_KEY if api_key is None else api_key
        self.base_url = base_url or settings.TASE_DATA_HUB_URL
        self.securities_url = securities_url or settings.TASE_SECURITIES_LIST_URL
        self.timeout_sec = timeout_sec or settings.TASE_REQUEST_TIMEOUT_SEC
        self.max_retries = max_retries
        self.backoff_sec = backoff_sec
        self.transport = transport

    async def fetch_end_of_day(self, trade_date: date) -> pd.DataFrame:
        logger.info("Fetching TASE end-of-day data for %s", trade_date)
        payload = await self._get(self.base_url, {"date": trade_date.isoformat()})

        items = (payload.get("securitiesEndOfDayTradingData") or {}).get("result") or []
        logger.info("Received %s items for %s", len(items), trade_date)

        records = [self._to_record(item) for item in items if item.get("symbol")]
        return pd.DataFrame(records, columns=EOD_COLUMNS)

    async def fetch_securities(self, trade_date: date) -> pd.DataFrame:
        """Securities list with company name and sector labels, by trade date."""
        url = f"{self.securities_url.rstrip('/')}/{trade_date.year}/{trade_date.month}/{trade_date.day}"
        logger.info("Fetching TASE securities list for %s", trade_date)
        payload = await self._get(url, {})

        items = (payload.get("tradeSecuritiesList") or {}).get("result") or []
        records = [self._to_security(item) for item in items if item.get("symbol")]
        return pd.DataFrame(records, columns=SECURITY_COLUMNS)

    async def _get(self, url: str, params: dict[str, str]) -> dict[str, Any]:
        if not self.api_key:
            raise UpstreamError("TASE_DATA_HUB_API_KEY is not set")

        headers = {"Accept": "application/json", "apikey": self.api_key}
        async with httpx.AsyncClient(
            timeout=self.timeout_sec, headers=headers, transport=self.transport
        ) as client:
            return await self._fetch_with_retry(client, url, params)

    async def _fetch_with_retry(
        self, client: httpx.AsyncClient, url: str, params: dict[str, str]
    ) -> dict[str, Any]:
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = await client.get(url, params=params)
                resp.raise_for_status()
                return resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                if attempt >= self.max_retries:
                    raise UpstreamError(f"TASE Data Hub request failed: {exc}") from exc
                logger.warning("TASE Data Hub attempt %s failed: %s", attempt, exc)
                await asyncio.sleep(self.backoff_sec * (2 ** (attempt - 1)))
        raise UpstreamError("TASE Data Hub request failed")

    def _to_record(self, item: dict[str, Any]) -> dict[str, Any]:
        return {
            "symbol": str(item["symbol"]).strip(),
            "date": self._parse_date(item.get("tradeDate")),
            "market_type": item.get("marketType"),
            "security_id": item.get("securityId"),
            "isin": item.get("isin"),
            "open": item.get("openingPrice"),
            "high": item.get("high"),
            "low": item.get("low"),
            "close": item.get("closingPrice"),
            "base_price": item.get("basePrice"),
            "change": item.get("change"),
            "volume": item.get("volume"),
            "turnover": item.get("turnover"),
            "market_cap": item.get("marketCap"),
        }

    def _to_security(self, item: dict[str, Any]) -> dict[str, Any]:
        return {
            "symbol": str(item["symbol"]).strip(),
            "isin": item.get("isin"),
            "name": item.get("companyName") or item.get("securityName"),
            "sector": item.get("companySector"),
            "sub_sector": item.get("companySubSector"),
            "market_type": item.get("marketType"),
        }

    def _parse_date(self, value: Any) -> date | None:
        if not value:
            return None
        return date.fromisoformat(str(value).split("T")[0])
