"""
Create raw feed tables and the pl_report_daily snapshot table.

Revision ID: 0001_create_pl_report_tables
Revises:
Create Date: 2024-10-01 00:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "0001_create_pl_report_tables"
down_revision = None
branch_labels = None
depends_on = None

_QUANTITY_COLUMNS = (
    "market_price",
    "company_buy_size",
    "company_buy_price",
    "company_sell_size",
    "company_sell_price",
    "cp_buy_size",
    "cp_buy_price",
    "cp_sell_size",
    "cp_sell_price",
)

_MONEY_COLUMNS = (
    "company_balance",
    "company_equity",
    "company_floating",
    "company_pln",
    "company_deposit",
    "company_withdrawal",
    "company_realized",
    "company_unrealized",
    "cp_balance",
    "cp_equity",
    "cp_floating",
    "cp_profit_loss",
    "cp_pln",
    "cp_realized",
    "cp_unrealized",
    "prior_company_balance",
    "prior_company_equity",
    "prior_cp_balance",
    "prior_cp_floating",
    "account_profit",
    "daily_company_total",
    "daily_cp_total",
    "daily_grand_total",
)

_TICK_COLUMNS = (
    "market_price",
    "company_buy_size",
    "company_buy_price",
    "company_sell_size",
    "company_sell_price",
    "cp_buy_size",
    "cp_buy_price",
    "cp_sell_size",
    "cp_sell_price",
    "company_balance",
    "company_equity",
    "company_floating",
)


def upgrade() -> None:
    op.create_table(
        "trading_data",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("observed_at", sa.DateTime(), nullable=False),
        *[sa.Column(name, sa.Numeric(20, 8), nullable=True) for name in _TICK_COLUMNS],
    )
    op.create_index("ix_trading_data_observed_at", "trading_data", ["observed_at"])
    op.create_index("ix_trading_data_symbol_observed", "trading_data", ["symbol", "observed_at"])

    op.create_table(
        "sub_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("login", sa.String(length=64), nullable=False),
        sa.Column("symbol", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.UniqueConstraint("login", name="uq_sub_users_login"),
    )
    op.create_index("ix_sub_users_symbol", "sub_users", ["symbol"])

    op.create_table(
        "customer_data",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("login", sa.String(length=64), nullable=False),
        sa.Column("balance", sa.Numeric(20, 8), nullable=True),
        sa.Column("equity", sa.Numeric(20, 8), nullable=True),
        sa.Column("floating", sa.Numeric(20, 8), nullable=True),
        sa.Column("profit_loss", sa.Numeric(20, 8), nullable=True),
        sa.Column("profit_loss_last", sa.Numeric(20, 8), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_customer_data_login_created", "customer_data", ["login", "created_at"])

    op.create_table(
        "pl_report_daily",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trade_date", sa.Date(), nullable=False),
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        *[
            sa.Column(name, sa.Numeric(20, 8), nullable=False, server_default="0")
            for name in _QUANTITY_COLUMNS
        ],
        *[
            sa.Column(name, sa.Numeric(20, 2), nullable=False, server_default="0")
            for name in _MONEY_COLUMNS
        ],
        sa.Column("is_finalized", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_placeholder", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("trade_date", "symbol", name="uq_pl_report_daily_date_symbol"),
    )
    op.create_index("ix_pl_report_daily_year_month", "pl_report_daily", ["year", "month"])


def downgrade() -> None:
    op.drop_index("ix_pl_report_daily_year_month", table_name="pl_report_daily")
    op.drop_table("pl_report_daily")
    op.drop_index("ix_customer_data_login_created", table_name="customer_data")
    op.drop_table("customer_data")
    op.drop_index("ix_sub_users_symbol", table_name="sub_users")
    op.drop_table("sub_users")
    op.drop_index("ix_trading_data_symbol_observed", table_name="trading_data")
    op.drop_index("ix_trading_data_observed_at", table_name="trading_data")
    op.drop_table("trading_data")
