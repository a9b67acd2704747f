"""Read access to the raw ``trading_data`` feed."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence

import sqlalchemy as sa
from sqlalchemy import Date, func, select
from sqlalchemy.orm import aliased

from tradedesk.db.session import Database
from tradedesk.models import TradingTick

from .calculator import BookSnapshot, RawTick
from .parsing import to_decimal


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def normalize_symbols(symbols: Iterable[str] | None) -> list[str] | None:
    """Uppercase, strip and de-duplicate a symbol filter; ``None`` means every symbol."""

    if symbols is None:
        return None
    normalized = sorted({s.strip().upper() for s in symbols if s and s.strip()})
    return normalized or None


def to_raw_tick(row: TradingTick) -> RawTick:
    return RawTick(
        symbol=row.symbol,
        observed_at=row.observed_at,
        market_price=to_decimal(row.market_price),
        company_book=BookSnapshot(
            buy_size=to_decimal(row.company_buy_size),
            buy_price=to_decimal(row.company_buy_price),
            sell_size=to_decimal(row.company_sell_size),
            sell_price=to_decimal(row.company_sell_price),
        ),
        cp_book=BookSnapshot(
            buy_size=to_decimal(row.cp_buy_size),
            buy_price=to_decimal(row.cp_buy_price),
            sell_size=to_decimal(row.cp_sell_size),
            sell_price=to_decimal(row.cp_sell_price),
        ),
        company_balance=to_decimal(row.company_balance),
        company_equity=to_decimal(row.company_equity),
        company_floating=to_decimal(row.company_floating),
    )


class TickStore:
    """Range queries over ``trading_data``."""

    def __init__(self, database: Database):
        self._database = database

    async def first_ticks(self, trade_date: date, symbols: Sequence[str] | None = None) -> dict[str, RawTick]:
        """Return the first tick of ``trade_date`` for every symbol that traded."""

        start, end = day_bounds(trade_date)
        conditions = [TradingTick.observed_at >= start, TradingTick.observed_at < end]
        if symbols:
            conditions.append(TradingTick.symbol.in_(list(symbols)))
        ranked = (
            select(
                TradingTick,
                func.row_number()
                .over(
                    partition_by=TradingTick.symbol,
                    order_by=(TradingTick.observed_at.asc(), TradingTick.id.asc()),
                )
                .label("rn"),
            )
            .where(*conditions)
            .subquery()
        )
        first = aliased(TradingTick, ranked)
        stmt = select(first).where(ranked.c.rn == 1).order_by(first.symbol)
        async with self._database.session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return {row.symbol: to_raw_tick(row) for row in rows}

    async def symbols_on(self, trade_date: date, symbols: Sequence[str] | None = None) -> list[str]:
        start, end = day_bounds(trade_date)
        stmt = (
            select(TradingTick.symbol)
            .where(TradingTick.observed_at >= start, TradingTick.observed_at < end)
            .distinct()
            .order_by(TradingTick.symbol)
        )
        if symbols:
            stmt = stmt.where(TradingTick.symbol.in_(list(symbols)))
        async with self._database.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def trading_dates(
        self,
        year: int | None = None,
        month: int | None = None,
        symbols: Sequence[str] | None = None,
    ) -> list[date]:
        """Distinct days with at least one tick, oldest first."""

        trade_day = func.date(TradingTick.observed_at, type_=Date)
        stmt = select(trade_day).distinct().order_by(trade_day)
        if year is not None and month is not None:
            start, end = month_bounds(year, month)
            stmt = stmt.where(TradingTick.observed_at >= start, TradingTick.observed_at < end)
        elif year is not None:
            stmt = stmt.where(
                TradingTick.observed_at >= datetime(year, 1, 1),
                TradingTick.observed_at < datetime(year + 1, 1, 1),
            )
        if symbols:
            stmt = stmt.where(TradingTick.symbol.in_(list(symbols)))
        async with self._database.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def distinct_symbols(self) -> list[str]:
        stmt = (
            select(TradingTick.symbol)
            .where(TradingTick.symbol.is_not(None), TradingTick.symbol != "")
            .distinct()
            .order_by(TradingTick.symbol)
        )
        async with self._database.session() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def distinct_years(self) -> list[int]:
        year = sa.extract("year", TradingTick.observed_at)
        stmt = select(year).where(TradingTick.observed_at.is_not(None)).distinct()
        async with self._database.session() as session:
            values = (await session.execute(stmt)).scalars().all()
        return sorted({int(value) for value in values}, reverse=True)


__all__ = [
    "TickStore",
    "to_raw_tick",
    "normalize_symbols",
    "day_bounds",
    "month_bounds",
]
