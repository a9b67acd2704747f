"""Shared calculation path: fetch one day's inputs, compute records, optionally persist."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Awaitable, Sequence, TypeVar

from .calculator import DailyPL, compute_daily_pl, is_empty_record
from .counterparty import CounterpartyAggregator
from .errors import stage
from .parsing import ZERO
from .prior_day import PriorDayResolver
from .snapshot_store import SnapshotStore
from .ticks import TickStore, normalize_symbols

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DayMaterializer:
    def __init__(
        self,
        ticks: TickStore,
        counterparty: CounterpartyAggregator,
        prior_day: PriorDayResolver,
        store: SnapshotStore,
        *,
        timeout_seconds: float = 30.0,
    ):
        self.ticks = ticks
        self.counterparty = counterparty
        self.prior_day = prior_day
        self.store = store
        self._timeout = timeout_seconds

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self._timeout)

    async def trading_dates(
        self,
        year: int | None = None,
        month: int | None = None,
        symbols: Sequence[str] | None = None,
    ) -> list[date]:
        with stage("fetch"):
            return await self._bounded(self.ticks.trading_dates(year, month, normalize_symbols(symbols)))

    async def active_symbols(self, trade_date: date, symbols: Sequence[str] | None = None) -> list[str]:
        """Symbols inside the optional filter for which ``compute_day`` yields a record.

        Symbols whose first tick shows no activity on either book are left out,
        since no row is ever stored for them.
        """

        scope = normalize_symbols(symbols)
        with stage("fetch"):
            ticks = await self._bounded(self.ticks.first_ticks(trade_date, scope))
            if not ticks:
                return []
            traded = sorted(ticks)
            aggregates = await self._bounded(self.counterparty.aggregate(trade_date, traded))
        return [symbol for symbol in traded if not is_empty_record(ticks[symbol], aggregates.get(symbol))]

    async def compute_day(self, trade_date: date, symbols: Sequence[str] | None = None) -> list[DailyPL]:
        """Compute one record per symbol that traded on ``trade_date``.

        Stored deposits/withdrawals are read first so ``company_pln`` reflects
        them. Days without ticks, and symbols with no activity on either book,
        produce no records.
        """

        scope = normalize_symbols(symbols)
        with stage("fetch"):
            ticks = await self._bounded(self.ticks.first_ticks(trade_date, scope))
            if not ticks:
                return []
            traded = sorted(ticks)
            aggregates, priors, adjustments = await self._bounded(
                asyncio.gather(
                    self.counterparty.aggregate(trade_date, traded),
                    self.prior_day.resolve_many(traded, trade_date),
                    self.store.get_adjustments(trade_date, traded),
                )
            )

        records: list[DailyPL] = []
        with stage("compute"):
            for symbol in traded:
                tick = ticks[symbol]
                aggregate = aggregates.get(symbol)
                if is_empty_record(tick, aggregate):
                    logger.debug("Skipping %s on %s: no activity on either book", symbol, trade_date)
                    continue
                adjustment = adjustments.get(symbol)
                records.append(
                    compute_daily_pl(
                        tick,
                        aggregate,
                        priors[symbol],
                        deposit=adjustment.deposit if adjustment else ZERO,
                        withdrawal=adjustment.withdrawal if adjustment else ZERO,
                    )
                )
        return records

    async def backfill_day(
        self,
        trade_date: date,
        symbols: Sequence[str] | None = None,
        *,
        finalize: bool = True,
    ) -> list[DailyPL]:
        records = await self.compute_day(trade_date, symbols)
        await self.store.upsert_day(trade_date, symbols, records, finalize=finalize)
        return records


__all__ = ["DayMaterializer"]
