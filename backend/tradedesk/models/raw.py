"""Raw feed tables: per-symbol trading ticks and the counterparty account feed."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tradedesk.db.base import Base


class TradingTick(Base):
    """One observation of both order books for a symbol.

    Numeric columns are nullable because the upstream feed writes partial rows;
    readers convert them through :func:`tradedesk.services.parsing.to_decimal`.
    """

    __tablename__ = "trading_data"
    __table_args__ = (Index("ix_trading_data_symbol_observed", "symbol", "observed_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    symbol: Mapped[str] = mapped_column(String(32))
    observed_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    market_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)

    company_buy_size: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    company_buy_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    company_sell_size: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    company_sell_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)

    cp_buy_size: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    cp_buy_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    cp_sell_size: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    cp_sell_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)

    company_balance: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    company_equity: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    company_floating: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)


class SubAccount(Base):
    """Counterparty sub-account mapped to the symbol it trades against."""

    __tablename__ = "sub_users"
    __table_args__ = (
        UniqueConstraint("login", name="uq_sub_users_login"),
        Index("ix_sub_users_symbol", "symbol"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    login: Mapped[str] = mapped_column(String(64))
    symbol: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active")


class CustomerSnapshot(Base):
    __tablename__ = "customer_data"
    __table_args__ = (Index("ix_customer_data_login_created", "login", "created_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    login: Mapped[str] = mapped_column(String(64))
    balance: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    equity: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    floating: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    profit_loss: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    profit_loss_last: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime)


__all__ = ["TradingTick", "SubAccount", "CustomerSnapshot"]
