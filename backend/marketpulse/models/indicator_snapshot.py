from sqlalchemy import Column, String, Date, Numeric, UniqueConstraint
from marketpulse.core.database import Base
from marketpulse.models.base import IdMixin, TimestampMixin


class IndicatorSnapshot(Base, IdMixin, TimestampMixin):
    """
    Technical indicators for one symbol as of one trade date.
    Null columns mean there was not enough history to compute the value.
    """
    __tablename__ = "indicator_snapshots"
    __table_args__ = (
        UniqueConstraint("symbol", "date", name="uq_indicator_snapshots_symbol_date"),
    )

    symbol = Column(String(20), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    rsi14 = Column(Numeric(20, 8))
    macd = Column(Numeric(20, 8))
    macd_signal = Column(Numeric(20, 8))
    macd_hist = Column(Numeric(20, 8))
    cci20 = Column(Numeric(20, 8))
    mfi14 = Column(Numeric(20, 8))
    turnover10 = Column(Numeric(24, 4))
    sma20 = Column(Numeric(20, 8))
    sma50 = Column(Numeric(20, 8))
    sma200 = Column(Numeric(20, 8))
    stddev20 = Column(Numeric(20, 8))
    upper_band20 = Column(Numeric(20, 8))
    lower_band20 = Column(Numeric(20, 8))
    ez = Column(Numeric(20, 8))
