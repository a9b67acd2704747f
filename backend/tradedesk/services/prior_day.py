"""Previous-day balances used to reconcile a day's P&L."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta
from typing import Sequence

from .calculator import PriorDayBalances
from .counterparty import CounterpartyAggregator
from .parsing import ZERO
from .snapshot_store import SnapshotStore
from .ticks import TickStore


class PriorDayResolver:
    """Resolve the balances of ``date - 1`` for each symbol.

    The company side trusts a stored snapshot first and falls back to the first
    raw tick of the previous day. The counterparty side is always re-derived
    from the customer feed, because that feed is corrected retroactively.
    """

    def __init__(self, ticks: TickStore, counterparty: CounterpartyAggregator, store: SnapshotStore):
        self._ticks = ticks
        self._counterparty = counterparty
        self._store = store

    async def resolve(self, symbol: str, trade_date: date) -> PriorDayBalances:
        resolved = await self.resolve_many([symbol], trade_date)
        return resolved.get(symbol, PriorDayBalances())

    async def resolve_many(self, symbols: Sequence[str], trade_date: date) -> dict[str, PriorDayBalances]:
        if not symbols:
            return {}
        previous = trade_date - timedelta(days=1)
        snapshots, raw_ticks, aggregates = await asyncio.gather(
            self._store.get_company_balances(previous, symbols),
            self._ticks.first_ticks(previous, symbols),
            self._counterparty.aggregate(previous, symbols),
        )

        resolved: dict[str, PriorDayBalances] = {}
        for symbol in symbols:
            if symbol in snapshots:
                company_balance, company_equity = snapshots[symbol]
            elif symbol in raw_ticks:
                company_balance = raw_ticks[symbol].company_balance
                company_equity = raw_ticks[symbol].company_equity
            else:
                company_balance = company_equity = ZERO
            aggregate = aggregates.get(symbol)
            resolved[symbol] = PriorDayBalances(
                company_balance=company_balance,
                company_equity=company_equity,
                cp_balance=aggregate.balance if aggregate else ZERO,
                cp_floating=aggregate.floating if aggregate else ZERO,
            )
        return resolved


__all__ = ["PriorDayResolver"]
