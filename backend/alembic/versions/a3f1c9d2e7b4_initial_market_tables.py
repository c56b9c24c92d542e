"""initial market tables

Revision ID: a3f1c9d2e7b4
Revises:
Create Date: 2026-02-23 17:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "a3f1c9d2e7b4"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "prices_daily",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("symbol", sa.String(length=20), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("market_type", sa.String(length=20)),
        sa.Column("security_id", sa.BigInteger()),
        sa.Column("open", sa.Numeric(14, 4)),
        sa.Column("high", sa.Numeric(14, 4)),
        sa.Column("low", sa.Numeric(14, 4)),
        sa.Column("close", sa.Numeric(14, 4)),
        sa.Column("base_price", sa.Numeric(14, 4)),
        sa.Column("change", sa.Numeric(10, 4)),
        sa.Column("volume", sa.BigInteger()),
        sa.Column("turnover", sa.BigInteger()),
        sa.Column("market_cap", sa.BigInteger()),
        sa.Column("source", sa.String(length=50), nullable=False, server_default="tase"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("symbol", "date", name="uq_prices_daily_symbol_date"),
    )
    op.create_index("ix_prices_daily_symbol", "prices_daily", ["symbol"])
    op.create_index("ix_prices_daily_date", "prices_daily", ["date"])
    op.create_index("ix_prices_daily_market_type", "prices_daily", ["market_type"])
    op.create_index("ix_prices_daily_market_date", "prices_daily", ["market_type", "date"])

    op.create_table(
        "indicator_snapshots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("symbol", sa.String(length=20), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("rsi14", sa.Numeric(20, 8)),
        sa.Column("macd", sa.Numeric(20, 8)),
        sa.Column("macd_signal", sa.Numeric(20, 8)),
        sa.Column("macd_hist", sa.Numeric(20, 8)),
        sa.Column("cci20", sa.Numeric(20, 8)),
        sa.Column("mfi14", sa.Numeric(20, 8)),
        sa.Column("turnover10", sa.Numeric(24, 4)),
        sa.Column("sma20", sa.Numeric(20, 8)),
        sa.Column("sma50", sa.Numeric(20, 8)),
        sa.Column("sma200", sa.Numeric(20, 8)),
        sa.Column("stddev20", sa.Numeric(20, 8)),
        sa.Column("upper_band20", sa.Numeric(20, 8)),
        sa.Column("lower_band20", sa.Numeric(20, 8)),
        sa.Column("ez", sa.Numeric(20, 8)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("symbol", "date", name="uq_indicator_snapshots_symbol_date"),
    )
    op.create_index("ix_indicator_snapshots_symbol", "indicator_snapshots", ["symbol"])
    op.create_index("ix_indicator_snapshots_date", "indicator_snapshots", ["date"])

    op.create_table(
        "instrument_info",
        sa.Column("symbol", sa.String(length=20), primary_key=True),
        sa.Column("isin", sa.String(length=20)),
        sa.Column("name", sa.String(length=255)),
        sa.Column("sector", sa.String(length=100)),
        sa.Column("sub_sector", sa.String(length=100)),
        sa.Column("market_type", sa.String(length=20)),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_instrument_info_sector", "instrument_info", ["sector"])


def downgrade() -> None:
    op.drop_index("ix_instrument_info_sector", table_name="instrument_info")
    op.drop_table("instrument_info")
    op.drop_index("ix_indicator_snapshots_date", table_name="indicator_snapshots")
    op.drop_index("ix_indicator_snapshots_symbol", table_name="indicator_snapshots")
    op.drop_table("indicator_snapshots")
    op.drop_index("ix_prices_daily_market_date", table_name="prices_daily")
    op.drop_index("ix_prices_daily_market_type", table_name="prices_daily")
    op.drop_index("ix_prices_daily_date", table_name="prices_daily")
    op.drop_index("ix_prices_daily_symbol", table_name="prices_daily")
    op.drop_table("prices_daily")
