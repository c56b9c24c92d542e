from sqlalchemy import Column, String, Boolean
from marketpulse.core.database import Base
from marketpulse.models.base import TimestampMixin

class InstrumentInfo(Base, TimestampMixin):
    """
    Master table for listed securities (company name, sector).
    """
    __tablename__ = "instrument_info"

    symbol = Column(String(20), primary_key=True)
    isin = Column(String(20))
    name = Column(String(255))
    sector = Column(String(100), index=True)
    sub_sector = Column(String(100))
    market_type = Column(String(20))
    active = Column(Boolean, default=True)
