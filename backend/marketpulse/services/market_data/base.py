from abc import ABC, abstractmethod
from datetime import date

import pandas as pd


class MarketDataProvider(ABC):
    """Abstract base class for end-of-day market data providers."""

    @abstractmethod
    async def fetch_end_of_day(self, trade_date: date) -> pd.DataFrame:
        """
        Fetch every security's end-of-day record for one trade date.
        Returns DataFrame with columns:
        [symbol, date, market_type, security_id, isin, open, high, low, close,
         base_price, change, volume, turnover, market_cap]
        Price and size columns may hold None when the exchange did not publish them.
        """

    @abstractmethod
    async def fetch_securities(self, trade_date: date) -> pd.DataFrame:
        """
        Fetch the listed securities as of a trade date.
        Returns DataFrame with columns:
        [symbol, isin, name, sector, sub_sector, market_type]
        """
