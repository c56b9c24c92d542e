from sqlalchemy import Column, DateTime, Integer, func
from sqlalchemy.orm import declarative_mixin


@declarative_mixin
class TimestampMixin:
    """Row audit columns, stamped by the database clock."""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


@declarative_mixin
class IdMixin:
    id = Column(Integer, primary_key=True, autoincrement=True)
