"""Persisted daily P&L snapshot model."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, MappedColumn, mapped_column

from tradedesk.db.base import Base


def _money() -> MappedColumn[Decimal]:
    return mapped_column(Numeric(20, 2), default=Decimal("0"))


def _quantity() -> MappedColumn[Decimal]:
    return mapped_column(Numeric(20, 8), default=Decimal("0"))


class DailyPLRecord(Base):
    __tablename__ = "pl_report_daily"
    __table_args__ = (
        UniqueConstraint("trade_date", "symbol", name="uq_pl_report_daily_date_symbol"),
        Index("ix_pl_report_daily_year_month", "year", "month"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    trade_date: Mapped[date] = mapped_column(Date)
    symbol: Mapped[str] = mapped_column(String(32))
    year: Mapped[int] = mapped_column(Integer)
    month: Mapped[int] = mapped_column(Integer)

    market_price: Mapped[Decimal] = _quantity()
    company_buy_size: Mapped[Decimal] = _quantity()
    company_buy_price: Mapped[Decimal] = _quantity()
    company_sell_size: Mapped[Decimal] = _quantity()
    company_sell_price: Mapped[Decimal] = _quantity()
    cp_buy_size: Mapped[Decimal] = _quantity()
    cp_buy_price: Mapped[Decimal] = _quantity()
    cp_sell_size: Mapped[Decimal] = _quantity()
    cp_sell_price: Mapped[Decimal] = _quantity()

    company_balance: Mapped[Decimal] = _money()
    company_equity: Mapped[Decimal] = _money()
    company_floating: Mapped[Decimal] = _money()
    company_pln: Mapped[Decimal] = _money()
    company_deposit: Mapped[Decimal] = _money()
    company_withdrawal: Mapped[Decimal] = _money()
    company_realized: Mapped[Decimal] = _money()
    company_unrealized: Mapped[Decimal] = _money()

    cp_balance: Mapped[Decimal] = _money()
    cp_equity: Mapped[Decimal] = _money()
    cp_floating: Mapped[Decimal] = _money()
    cp_profit_loss: Mapped[Decimal] = _money()
    cp_pln: Mapped[Decimal] = _money()
    cp_realized: Mapped[Decimal] = _money()
    cp_unrealized: Mapped[Decimal] = _money()

    prior_company_balance: Mapped[Decimal] = _money()
    prior_company_equity: Mapped[Decimal] = _money()
    prior_cp_balance: Mapped[Decimal] = _money()
    prior_cp_floating: Mapped[Decimal] = _money()

    account_profit: Mapped[Decimal] = _money()
    daily_company_total: Mapped[Decimal] = _money()
    daily_cp_total: Mapped[Decimal] = _money()
    daily_grand_total: Mapped[Decimal] = _money()

    is_finalized: Mapped[bool] = mapped_column(Boolean, default=False)
    # Row created by a deposit/withdrawal entry before any computation ran.
    is_placeholder: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


__all__ = ["DailyPLRecord"]
