from typing import Dict, Optional, Type

from marketpulse.core.config import settings
from marketpulse.services.market_data.base import MarketDataProvider
from marketpulse.services.market_data.tase_provider import TaseDataHubProvider

PROVIDERS: Dict[str, Type[MarketDataProvider]] = {
    "tase": TaseDataHubProvider,
}


def get_market_data_provider(name: Optional[str] = None, **options) -> MarketDataProvider:
    """Instantiate the named end-of-day provider (MARKET_DATA_PROVIDER by default)."""
    name = name or settings.MARKET_DATA_PROVIDER
    provider_class = PROVIDERS.get(name)
    if not provider_class:
        raise ValueError(f"Unknown market data provider: {name}")
    return provider_class(**options)
