from sqlalchemy import Column, String, Date, Numeric, BigInteger, UniqueConstraint, Index
from marketpulse.core.database import Base
from marketpulse.models.base import IdMixin, TimestampMixin

class DailyBar(Base, IdMixin, TimestampMixin):
    """
    End-of-day trading record for one symbol.
    Written once by ingestion; every price field may be null when unpublished.
    """
    __tablename__ = "prices_daily"
    __table_args__ = (
        UniqueConstraint("symbol", "date", name="uq_prices_daily_symbol_date"),
        Index("ix_prices_daily_market_date", "market_type", "date"),
    )

    symbol = Column(String(20), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    market_type = Column(String(20), index=True)
    security_id = Column(BigInteger)
    open = Column(Numeric(14, 4))
    high = Column(Numeric(14, 4))
    low = Column(Numeric(14, 4))
    close = Column(Numeric(14, 4))
    base_price = Column(Numeric(14, 4))
    change = Column(Numeric(10, 4))  # percent change published by the exchange
    volume = Column(BigInteger)
    turnover = Column(BigInteger)
    market_cap = Column(BigInteger)
    source = Column(String(50), nullable=False, default="tase")
