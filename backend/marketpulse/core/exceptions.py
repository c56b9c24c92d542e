class NoTradingDataError(LookupError):
    """Raised when a market segment has no trading dates to answer a query."""

    def __init__(self, market_type: str):
        super().__init__(f"No trading data found for market type: {market_type}")
        self.market_type = market_type


class UpstreamError(RuntimeError):
    """An external data source could not be reached or returned an error."""
