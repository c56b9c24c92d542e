# Base
from marketpulse.models.base import TimestampMixin, IdMixin

# Market Data
from marketpulse.models.daily_bar import DailyBar
from marketpulse.models.instrument_info import InstrumentInfo

# Indicators
from marketpulse.models.indicator_snapshot import IndicatorSnapshot

__all__ = [
    "TimestampMixin",
    "IdMixin",
    "DailyBar",
    "InstrumentInfo",
    "IndicatorSnapshot",
]
