"""Monthly P&L report assembly: live "today" rows blended with stored history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Sequence
from zoneinfo import ZoneInfo

from opentelemetry import trace

from tradedesk.config import AppSettings, get_settings
from tradedesk.db.session import Database

from .calculator import DailyPL, adjust_pln, merge_totals, sum_totals
from .counterparty import CounterpartyAggregator
from .live_cache import LiveWindowCache
from .materializer import DayMaterializer
from .prior_day import PriorDayResolver
from .snapshot_store import Adjustment, SnapshotStore, StorageStats, page_count
from .ticks import TickStore, normalize_symbols

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class Pagination:
    current_page: int
    total_pages: int
    total_records: int
    records_per_page: int


@dataclass
class PLReport:
    rows: list[DailyPL]
    totals: dict[str, Decimal]
    pagination: Pagination
    filters: dict[str, Any] = field(default_factory=dict)


def local_today(timezone: str) -> date:
    return datetime.now(ZoneInfo(timezone)).date()


class ReportAssembler:
    """Entry point used by the HTTP layer and the admin scripts."""

    def __init__(
        self,
        store: SnapshotStore,
        materializer: DayMaterializer,
        cache: LiveWindowCache,
        *,
        today: Callable[[], date],
        default_page_size: int = 31,
    ):
        self.store = store
        self.materializer = materializer
        self.cache = cache
        self._today = today
        self.default_page_size = default_page_size

    async def ensure_backfilled(
        self,
        year: int,
        month: int,
        symbols: Sequence[str] | None,
        *,
        before: date,
    ) -> int:
        """Persist and finalize every traded day of the month before ``before``.

        Days where every active symbol already has a finalized row are skipped,
        so a repeated pass leaves the store untouched. Days with only idle
        symbols have nothing to store and are skipped as well. Returns the number of days that were (re)computed.
        """

        backfilled = 0
        for day in await self.materializer.trading_dates(year, month, symbols):
            if day >= before:
                continue
            active = await self.materializer.active_symbols(day, symbols)
            if await self.store.is_day_complete(day, active):
                continue
            records = await self.materializer.backfill_day(day, symbols, finalize=True)
            logger.info("Backfilled %d P&L rows for %s", len(records), day)
            backfilled += 1
        return backfilled

    async def _today_rows(self, today: date, symbols: Sequence[str] | None) -> list[DailyPL]:
        records = await self.cache.get_today(today, symbols)
        if not records:
            return []
        # Cached rows may predate an adjustment entered since; re-apply the stored ones.
        adjustments = await self.store.get_adjustments(today, [r.symbol for r in records])
        adjusted = [
            adjust_pln(r, *self._amounts(adjustments.get(r.symbol))) for r in records
        ]
        return sorted(adjusted, key=lambda r: r.symbol)

    @staticmethod
    def _amounts(adjustment: Adjustment | None) -> tuple[Decimal, Decimal]:
        adjustment = adjustment or Adjustment()
        return adjustment.deposit, adjustment.withdrawal

    async def get_report(
        self,
        year: int,
        month: int,
        symbols: Sequence[str] | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> PLReport:
        if not 1 <= month <= 12:
            raise ValueError("month must be between 1 and 12")
        if page < 1:
            raise ValueError("page must be at least 1")
        page_size = page_size or self.default_page_size
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        scope = normalize_symbols(symbols)
        today = self._today()
        filters = {"year": year, "month": month, "symbols": scope or []}

        if (year, month) > (today.year, today.month):
            return PLReport(
                rows=[],
                totals=merge_totals(),
                pagination=Pagination(page, 0, 0, page_size),
                filters=filters,
            )

        is_current_month = (year, month) == (today.year, today.month)
        with tracer.start_as_current_span("pl_report.ensure"):
            before = today if is_current_month else date.max
            await self.ensure_backfilled(year, month, scope, before=before)

        today_rows: list[DailyPL] = []
        if is_current_month:
            with tracer.start_as_current_span("pl_report.live"):
                today_rows = await self._today_rows(today, scope)

        start = (page - 1) * page_size
        today_part = today_rows[start : start + page_size]
        with tracer.start_as_current_span("pl_report.stored"):
            stored = await self.store.get_range(
                year,
                month,
                scope,
                page_size=page_size - len(today_part),
                exclude_on_or_after=today if is_current_month else None,
                offset=max(start - len(today_rows), 0),
            )

        total_records = stored.total_count + len(today_rows)
        return PLReport(
            rows=today_part + stored.rows,
            totals=merge_totals(stored.totals, sum_totals(today_rows)),
            pagination=Pagination(
                current_page=page,
                total_pages=page_count(total_records, page_size),
                total_records=total_records,
                records_per_page=page_size,
            ),
            filters=filters,
        )

    async def set_deposit_withdrawal(
        self, trade_date: date | None, symbol: str | None, deposit: Any, withdrawal: Any
    ) -> DailyPL:
        return await self.store.set_deposit_withdrawal(trade_date, symbol, deposit, withdrawal)

    async def get_deposit_withdrawal(self, trade_date: date, symbol: str) -> Adjustment:
        return await self.store.get_deposit_withdrawal(trade_date, symbol)

    async def finalize_day(self, trade_date: date) -> int:
        return await self.store.finalize(trade_date)

    async def rebuild_all(self) -> int:
        return await self.store.rebuild_all(self.materializer)

    async def rebuild_month(self, year: int, month: int) -> int:
        return await self.store.rebuild_month(year, month, self.materializer)

    async def get_storage_stats(self) -> StorageStats:
        return await self.store.get_storage_stats()

    async def list_years(self) -> list[int]:
        years = await self.materializer.ticks.distinct_years()
        current = self._today().year
        if current not in years:
            years.insert(0, current)
        return years

    async def list_symbols(self) -> list[str]:
        return await self.materializer.ticks.distinct_symbols()


def build_report_assembler(
    database: Database,
    settings: AppSettings | None = None,
    *,
    today: Callable[[], date] | None = None,
    clock: Callable[[], float] | None = None,
) -> ReportAssembler:
    """Wire the report components for one process."""

    settings = settings or get_settings()
    ticks = TickStore(database)
    counterparty = CounterpartyAggregator(database)
    store = SnapshotStore(database)
    prior_day = PriorDayResolver(ticks, counterparty, store)
    materializer = DayMaterializer(
        ticks,
        counterparty,
        prior_day,
        store,
        timeout_seconds=settings.source_timeout_seconds,
    )
    cache_options: dict[str, Any] = {"ttl_seconds": settings.live_cache_ttl_seconds}
    if clock is not None:
        cache_options["clock"] = clock
    cache = LiveWindowCache(materializer, **cache_options)
    return ReportAssembler(
        store,
        materializer,
        cache,
        today=today or (lambda: local_today(settings.timezone)),
        default_page_size=settings.report_page_size,
    )


__all__ = [
    "Pagination",
    "PLReport",
    "ReportAssembler",
    "build_report_assembler",
    "local_today",
]
