"""Counterparty ("Exp") book aggregates derived from the customer account feed."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence

from sqlalchemy import func, select

from tradedesk.db.session import Database
from tradedesk.models import CustomerSnapshot, SubAccount

from .calculator import CounterpartyAggregate
from .parsing import ZERO, to_decimal
from .ticks import day_bounds

ACTIVE_STATUS = "active"


class CounterpartyAggregator:
    """Sum the latest state of every counterparty sub-account mapped to a symbol.

    Each login contributes its most recent ``customer_data`` row created on or
    before the end of ``as_of``; logins without such a row contribute zero.
    """

    def __init__(self, database: Database):
        self._database = database

    async def aggregate(
        self,
        as_of: date,
        symbols: Sequence[str] | None = None,
    ) -> dict[str, CounterpartyAggregate]:
        _, cutoff = day_bounds(as_of)
        latest = (
            select(
                CustomerSnapshot,
                func.row_number()
                .over(
                    partition_by=CustomerSnapshot.login,
                    order_by=(CustomerSnapshot.created_at.desc(), CustomerSnapshot.id.desc()),
                )
                .label("rn"),
            )
            .where(CustomerSnapshot.created_at < cutoff)
            .subquery()
        )
        stmt = (
            select(
                SubAccount.symbol,
                latest.c.balance,
                latest.c.equity,
                latest.c.floating,
                latest.c.profit_loss,
                latest.c.profit_loss_last,
            )
            .select_from(SubAccount)
            .outerjoin(latest, (latest.c.login == SubAccount.login) & (latest.c.rn == 1))
            .where(
                SubAccount.symbol.is_not(None),
                SubAccount.symbol != "",
                SubAccount.status == ACTIVE_STATUS,
            )
        )
        if symbols:
            stmt = stmt.where(SubAccount.symbol.in_(list(symbols)))

        async with self._database.session() as session:
            rows = (await session.execute(stmt)).all()

        sums: dict[str, dict[str, Decimal]] = {}
        for symbol, balance, equity, floating, profit_loss, profit_loss_last in rows:
            bucket = sums.setdefault(
                symbol, {"balance": ZERO, "equity": ZERO, "floating": ZERO, "pnl": ZERO}
            )
            bucket["balance"] += to_decimal(balance)
            bucket["equity"] += to_decimal(equity)
            bucket["floating"] += to_decimal(floating)
            bucket["pnl"] += to_decimal(profit_loss) + to_decimal(profit_loss_last)

        return {
            symbol: CounterpartyAggregate(symbol=symbol, as_of=as_of, **values)
            for symbol, values in sums.items()
        }


__all__ = ["CounterpartyAggregator", "ACTIVE_STATUS"]
