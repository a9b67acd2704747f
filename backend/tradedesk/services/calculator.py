"""Daily profit/loss computation for the company and counterparty books.

Everything here is pure: callers fetch the raw tick, the counterparty
aggregate and the prior day's balances, then :func:`compute_daily_pl`
turns them into one :class:`DailyPL` record. Math runs on exact ``Decimal``
values and money is rounded to cents only when the record is built.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Mapping

from .parsing import ZERO, round_money


@dataclass(frozen=True)
class BookSnapshot:
    """Aggregated matched orders on one side of the trade."""

    buy_size: Decimal = ZERO
    buy_price: Decimal = ZERO
    sell_size: Decimal = ZERO
    sell_price: Decimal = ZERO

    @property
    def is_active(self) -> bool:
        return self.buy_size != 0 or self.sell_size != 0


@dataclass(frozen=True)
class RawTick:
    symbol: str
    observed_at: datetime
    market_price: Decimal = ZERO
    company_book: BookSnapshot = BookSnapshot()
    cp_book: BookSnapshot = BookSnapshot()
    company_balance: Decimal = ZERO
    company_equity: Decimal = ZERO
    company_floating: Decimal = ZERO

    @property
    def trade_date(self) -> date:
        return self.observed_at.date()


@dataclass(frozen=True)
class CounterpartyAggregate:
    symbol: str
    as_of: date
    balance: Decimal = ZERO
    equity: Decimal = ZERO
    floating: Decimal = ZERO
    pnl: Decimal = ZERO

    @property
    def is_active(self) -> bool:
        return any(value != 0 for value in (self.balance, self.equity, self.floating, self.pnl))


@dataclass(frozen=True)
class PriorDayBalances:
    company_balance: Decimal = ZERO
    company_equity: Decimal = ZERO
    cp_balance: Decimal = ZERO
    cp_floating: Decimal = ZERO


@dataclass(frozen=True)
class BookPnL:
    realized: Decimal
    unrealized: Decimal


@dataclass(frozen=True)
class DailyPL:
    """One computed ``(trade_date, symbol)`` row of the P&L report."""

    trade_date: date
    symbol: str
    market_price: Decimal
    company_buy_size: Decimal
    company_buy_price: Decimal
    company_sell_size: Decimal
    company_sell_price: Decimal
    cp_buy_size: Decimal
    cp_buy_price: Decimal
    cp_sell_size: Decimal
    cp_sell_price: Decimal
    company_balance: Decimal
    company_equity: Decimal
    company_floating: Decimal
    company_pln: Decimal
    company_deposit: Decimal
    company_withdrawal: Decimal
    company_realized: Decimal
    company_unrealized: Decimal
    cp_balance: Decimal
    cp_equity: Decimal
    cp_floating: Decimal
    cp_profit_loss: Decimal
    cp_pln: Decimal
    cp_realized: Decimal
    cp_unrealized: Decimal
    prior_company_balance: Decimal
    prior_company_equity: Decimal
    prior_cp_balance: Decimal
    prior_cp_floating: Decimal
    account_profit: Decimal
    daily_company_total: Decimal
    daily_cp_total: Decimal
    daily_grand_total: Decimal
    is_finalized: bool = False

    @property
    def year(self) -> int:
        return self.trade_date.year

    @property
    def month(self) -> int:
        return self.trade_date.month

    def as_dict(self) -> dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# Fields summed into report totals. Prices and sizes are not additive.
TOTAL_FIELDS: tuple[str, ...] = (
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
    "account_profit",
    "daily_company_total",
    "daily_cp_total",
    "daily_grand_total",
)

# Everything the calculator derives; deposit, withdrawal and finalization are
# owned by the store and never part of a recomputation.
COMPUTED_FIELDS: tuple[str, ...] = tuple(
    f.name
    for f in fields(DailyPL)
    if f.name not in {"trade_date", "symbol", "company_deposit", "company_withdrawal", "is_finalized"}
)


def book_pnl(book: BookSnapshot, market_price: Decimal) -> BookPnL:
    """Realized and unrealized P&L of a book seen from its own side."""

    realized = ZERO
    if book.buy_size > 0 and book.sell_size > 0 and book.buy_price > 0 and book.sell_price > 0:
        realized = min(book.buy_size, book.sell_size) * (book.sell_price - book.buy_price)

    if book.buy_size > book.sell_size:
        unrealized = (book.buy_size - book.sell_size) * (market_price - book.buy_price)
    elif book.sell_size > book.buy_size:
        unrealized = (book.sell_size - book.buy_size) * (book.sell_price - market_price)
    else:
        unrealized = ZERO
    return BookPnL(realized=realized, unrealized=unrealized)


def counterparty_pnl(book: BookSnapshot, market_price: Decimal) -> BookPnL:
    """The counterparty holds the mirror of the company's position."""

    own = book_pnl(book, market_price)
    return BookPnL(realized=-own.realized, unrealized=-own.unrealized)


def company_pln(
    equity: Decimal,
    prior_equity: Decimal,
    deposit: Decimal = ZERO,
    withdrawal: Decimal = ZERO,
) -> Decimal:
    return (equity - prior_equity) - deposit + withdrawal


def is_empty_record(tick: RawTick, aggregate: CounterpartyAggregate | None) -> bool:
    """True when neither the company nor the counterparty shows any activity."""

    company_idle = not tick.company_book.is_active and all(
        value == 0 for value in (tick.company_balance, tick.company_equity, tick.company_floating)
    )
    cp_idle = not tick.cp_book.is_active and (aggregate is None or not aggregate.is_active)
    return company_idle and cp_idle


def compute_daily_pl(
    tick: RawTick,
    aggregate: CounterpartyAggregate | None,
    prior: PriorDayBalances,
    *,
    deposit: Decimal = ZERO,
    withdrawal: Decimal = ZERO,
) -> DailyPL:
    """Build the daily record for ``tick``'s symbol and day."""

    aggregate = aggregate or CounterpartyAggregate(symbol=tick.symbol, as_of=tick.trade_date)
    company = book_pnl(tick.company_book, tick.market_price)
    cp = counterparty_pnl(tick.cp_book, tick.market_price)

    company_total = company.realized + company.unrealized
    cp_total = cp.realized + cp.unrealized
    account_profit = (tick.company_balance - prior.company_balance) - (aggregate.balance - prior.cp_balance)

    return DailyPL(
        trade_date=tick.trade_date,
        symbol=tick.symbol,
        market_price=tick.market_price,
        company_buy_size=tick.company_book.buy_size,
        company_buy_price=tick.company_book.buy_price,
        company_sell_size=tick.company_book.sell_size,
        company_sell_price=tick.company_book.sell_price,
        cp_buy_size=tick.cp_book.buy_size,
        cp_buy_price=tick.cp_book.buy_price,
        cp_sell_size=tick.cp_book.sell_size,
        cp_sell_price=tick.cp_book.sell_price,
        company_balance=round_money(tick.company_balance),
        company_equity=round_money(tick.company_equity),
        company_floating=round_money(tick.company_floating),
        company_pln=round_money(company_pln(tick.company_equity, prior.company_equity, deposit, withdrawal)),
        company_deposit=round_money(deposit),
        company_withdrawal=round_money(withdrawal),
        company_realized=round_money(company.realized),
        company_unrealized=round_money(company.unrealized),
        cp_balance=round_money(aggregate.balance),
        cp_equity=round_money(aggregate.equity),
        cp_floating=round_money(aggregate.floating),
        cp_profit_loss=round_money(aggregate.pnl),
        cp_pln=round_money(aggregate.floating - prior.cp_floating),
        cp_realized=round_money(cp.realized),
        cp_unrealized=round_money(cp.unrealized),
        prior_company_balance=round_money(prior.company_balance),
        prior_company_equity=round_money(prior.company_equity),
        prior_cp_balance=round_money(prior.cp_balance),
        prior_cp_floating=round_money(prior.cp_floating),
        account_profit=round_money(account_profit),
        daily_company_total=round_money(company_total),
        daily_cp_total=round_money(cp_total),
        daily_grand_total=round_money(company_total - cp_total),
    )


def adjust_pln(record: DailyPL, deposit: Decimal, withdrawal: Decimal) -> DailyPL:
    """Apply a deposit/withdrawal entered after ``record`` was computed."""

    return replace(
        record,
        company_deposit=round_money(deposit),
        company_withdrawal=round_money(withdrawal),
        company_pln=round_money(
            company_pln(record.company_equity, record.prior_company_equity, deposit, withdrawal)
        ),
    )


def sum_totals(records: Iterable[DailyPL]) -> dict[str, Decimal]:
    """Unrounded per-field sums over ``records``."""

    totals = {name: ZERO for name in TOTAL_FIELDS}
    for record in records:
        for name in TOTAL_FIELDS:
            totals[name] += getattr(record, name)
    return totals


def merge_totals(*parts: Mapping[str, Decimal]) -> dict[str, Decimal]:
    """Add totals field by field and round once at the end."""

    merged = {name: ZERO for name in TOTAL_FIELDS}
    for part in parts:
        for name in TOTAL_FIELDS:
            merged[name] += part.get(name, ZERO)
    return {name: round_money(value) for name, value in merged.items()}


__all__ = [
    "BookSnapshot",
    "RawTick",
    "CounterpartyAggregate",
    "PriorDayBalances",
    "BookPnL",
    "DailyPL",
    "TOTAL_FIELDS",
    "COMPUTED_FIELDS",
    "book_pnl",
    "counterparty_pnl",
    "company_pln",
    "is_empty_record",
    "compute_daily_pl",
    "adjust_pln",
    "sum_totals",
    "merge_totals",
]
