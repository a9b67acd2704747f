from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest

from tradedesk.db.init import init_database
from tradedesk.db.session import Database
from tradedesk.services.calculator import BookSnapshot, PriorDayBalances, RawTick, compute_daily_pl
from tradedesk.services.counterparty import CounterpartyAggregator
from tradedesk.services.errors import InvalidAdjustmentError, ReportStageError
from tradedesk.services.materializer import DayMaterializer
from tradedesk.services.prior_day import PriorDayResolver
from tradedesk.services.snapshot_store import SnapshotStore, page_count
from tradedesk.services.ticks import TickStore

DAY = date(2024, 9, 10)


@asynccontextmanager
async def _ready(database: Database):
    await init_database(database)
    try:
        yield SnapshotStore(database)
    finally:
        await database.dispose()


def _materializer(database: Database, store: SnapshotStore) -> DayMaterializer:
    ticks = TickStore(database)
    counterparty = CounterpartyAggregator(database)
    return DayMaterializer(ticks, counterparty, PriorDayResolver(ticks, counterparty, store), store)


def _record(symbol: str, trade_date: date = DAY, equity: str = "5200", market: str = "105"):
    tick = RawTick(
        symbol=symbol,
        observed_at=datetime.combine(trade_date, datetime.min.time()),
        market_price=Decimal(market),
        company_book=BookSnapshot(
            buy_size=Decimal("10"), buy_price=Decimal("100"), sell_size=Decimal("6"), sell_price=Decimal("110")
        ),
        company_balance=Decimal("5000"),
        company_equity=Decimal(equity),
    )
    return compute_daily_pl(tick, None, PriorDayBalances(company_equity=Decimal("5000")))


async def test_upsert_twice_is_idempotent(database: Database):
    async with _ready(database) as store:
        records = [_record("XAUUSD"), _record("EURUSD")]
        await store.upsert_day(DAY, None, records)
        first = await store.get_range(2024, 9)
        await store.upsert_day(DAY, None, records)
        second = await store.get_range(2024, 9)

    assert first.total_count == second.total_count == 2
    assert [r.as_dict() for r in first.rows] == [r.as_dict() for r in second.rows]
    assert first.totals == second.totals


async def test_upsert_removes_stale_rows_but_keeps_adjusted_and_finalized(database: Database):
    async with _ready(database) as store:
        await store.upsert_day(DAY, None, [_record("AAA"), _record("BBB"), _record("CCC")])
        await store.set_deposit_withdrawal(DAY, "BBB", "10", "0")
        await store.upsert_day(DAY, None, [_record("AAA")])
        remaining = await store.get_adjustments(DAY)
        stored = await store.get_range(2024, 9)

    assert set(remaining) == {"AAA", "BBB"}
    assert [r.symbol for r in stored.rows] == ["AAA", "BBB"]


async def test_upsert_scope_limits_stale_deletion(database: Database):
    async with _ready(database) as store:
        await store.upsert_day(DAY, None, [_record("AAA"), _record("BBB")])
        await store.upsert_day(DAY, ["AAA"], [])
        stored = await store.get_range(2024, 9)

    assert [r.symbol for r in stored.rows] == ["BBB"]


async def test_finalized_rows_are_never_overwritten(database: Database):
    async with _ready(database) as store:
        await store.upsert_day(DAY, None, [_record("XAUUSD", equity="5200")], finalize=True)
        before = await store.get_record(DAY, "XAUUSD")
        written = await store.upsert_day(DAY, None, [_record("XAUUSD", equity="9999")])
        await store.upsert_day(DAY, None, [])
        after = await store.get_record(DAY, "XAUUSD")

    assert written == 0
    assert before is not None and before.is_finalized
    assert after == before


async def test_finalize_is_idempotent(database: Database):
    async with _ready(database) as store:
        await store.upsert_day(DAY, None, [_record("AAA"), _record("BBB")])
        assert await store.finalize(DAY) == 2
        assert await store.finalize(DAY) == 0
        assert await store.is_day_complete(DAY, ["AAA", "BBB"])
        assert not await store.is_day_complete(DAY, ["AAA", "ZZZ"])
        assert await store.is_day_complete(DAY, [])


async def test_deposit_withdrawal_survives_recompute(database: Database, feed):
    async with _ready(database) as store:
        await store.set_deposit_withdrawal(DAY, "xauusd", 100, 40)
        placeholder = await store.get_range(2024, 9)
        assert placeholder.total_count == 0

        await feed.tick(
            "XAUUSD",
            datetime(2024, 9, 10, 0, 1),
            market_price=105,
            company_buy_size=10,
            company_buy_price=100,
            company_sell_size=6,
            company_sell_price=110,
            company_balance=5000,
            company_equity=5200,
        )
        await feed.tick("XAUUSD", datetime(2024, 9, 9, 0, 1), company_balance=4900, company_equity=5000)
        await _materializer(database, store).backfill_day(DAY, None, finalize=True)
        record = await store.get_record(DAY, "XAUUSD")
        adjustment = await store.get_deposit_withdrawal(DAY, "XAUUSD")

    assert record is not None
    assert adjustment.deposit == Decimal("100.00")
    assert adjustment.withdrawal == Decimal("40.00")
    assert record.company_realized == Decimal("60.00")
    assert record.prior_company_equity == Decimal("5000.00")
    assert record.company_pln == Decimal("140.00")
    assert record.is_finalized


@pytest.mark.parametrize(
    "trade_date, symbol, deposit, withdrawal",
    [
        (None, "XAUUSD", "1", "0"),
        (DAY, "", "1", "0"),
        (DAY, "   ", "1", "0"),
        (DAY, "XAUUSD", "-1", "0"),
        (DAY, "XAUUSD", "0", "-5"),
        (DAY, "XAUUSD", "NaN", "0"),
        (DAY, "XAUUSD", "abc", "0"),
        (DAY, "XAUUSD", "0", "Infinity"),
    ],
)
def test_invalid_adjustments_are_rejected_before_writing(tmp_path: Path, trade_date, symbol, deposit, withdrawal):
    database = Database(url=f"sqlite+aiosqlite:///{tmp_path / 'adjust.db'}")

    async def _scenario():
        async with _ready(database) as store:
            with pytest.raises(InvalidAdjustmentError):
                await store.set_deposit_withdrawal(trade_date, symbol, deposit, withdrawal)
            stats = await store.get_storage_stats()
        assert stats.total_records == 0

    asyncio.run(_scenario())


async def test_adjusted_pln_flows_into_rows_and_totals(database: Database):
    async with _ready(database) as store:
        await store.upsert_day(DAY, None, [_record("XAUUSD")], finalize=True)
        await store.set_deposit_withdrawal(DAY, "XAUUSD", "50", "0")
        result = await store.get_range(2024, 9)

    assert result.rows[0].company_pln == Decimal("150.00")
    assert result.totals["company_pln"] == Decimal("150.00")
    assert result.totals["company_deposit"] == Decimal("50.00")


async def test_pagination_totals_cover_whole_range(database: Database):
    async with _ready(database) as store:
        for day in range(1, 8):
            trade_date = date(2024, 9, day)
            await store.upsert_day(
                trade_date,
                None,
                [_record("AAA", trade_date, market=str(100 + day)), _record("BBB", trade_date)],
            )
        pages = [await store.get_range(2024, 9, page=page, page_size=3) for page in range(1, 6)]

    first = pages[0]
    assert first.total_count == 14
    assert page_count(first.total_count, 3) == 5
    rows = [row for page in pages for row in page.rows]
    assert len(rows) == 14
    assert sum(row.daily_grand_total for row in rows) == first.totals["daily_grand_total"]
    assert rows[0].trade_date == date(2024, 9, 7) and rows[0].symbol == "AAA"
    assert rows[-1].trade_date == date(2024, 9, 1) and rows[-1].symbol == "BBB"


async def test_range_filters_by_symbol_and_cutoff(database: Database):
    async with _ready(database) as store:
        await store.upsert_day(date(2024, 9, 9), None, [_record("AAA", date(2024, 9, 9)), _record("BBB", date(2024, 9, 9))])
        await store.upsert_day(date(2024, 9, 10), None, [_record("AAA", date(2024, 9, 10))])
        filtered = await store.get_range(2024, 9, [" aaa "], exclude_on_or_after=date(2024, 9, 10))
        other_month = await store.get_range(2024, 8)

    assert [(r.trade_date, r.symbol) for r in filtered.rows] == [(date(2024, 9, 9), "AAA")]
    assert filtered.total_count == 1
    assert other_month.total_count == 0
    assert other_month.totals["daily_grand_total"] == Decimal("0.00")


async def test_storage_stats_summarise_months(database: Database):
    async with _ready(database) as store:
        await store.upsert_day(date(2024, 8, 30), None, [_record("AAA", date(2024, 8, 30))], finalize=True)
        await store.upsert_day(DAY, None, [_record("AAA"), _record("BBB")])
        await store.set_deposit_withdrawal(date(2024, 9, 11), "CCC", "5", "0")
        stats = await store.get_storage_stats()

    assert stats.total_records == 4
    assert stats.finalized_records == 1
    assert stats.placeholder_records == 1
    assert stats.first_date == date(2024, 8, 30)
    assert stats.last_date == date(2024, 9, 11)
    assert [(m.year, m.month, m.records, m.finalized) for m in stats.months] == [(2024, 9, 3, 0), (2024, 8, 1, 1)]


async def test_rebuild_regenerates_rows_and_keeps_adjustments(database: Database, feed):
    async with _ready(database) as store:
        for day in (9, 10):
            await feed.tick(
                "XAUUSD",
                datetime(2024, 9, day, 1, 0),
                market_price=105,
                company_buy_size=10,
                company_buy_price=100,
                company_sell_size=6,
                company_sell_price=110,
                company_balance=5000,
                company_equity=5000 + day,
            )
        await store.upsert_day(date(2024, 9, 1), None, [_record("GONE", date(2024, 9, 1))], finalize=True)
        await store.set_deposit_withdrawal(DAY, "XAUUSD", "7", "2")

        written = await store.rebuild_month(2024, 9, _materializer(database, store))
        stored = await store.get_range(2024, 9)
        adjustment = await store.get_deposit_withdrawal(DAY, "XAUUSD")

    assert written == 2
    assert [(r.trade_date, r.symbol) for r in stored.rows] == [
        (date(2024, 9, 10), "XAUUSD"),
        (date(2024, 9, 9), "XAUUSD"),
    ]
    assert all(r.is_finalized for r in stored.rows)
    assert adjustment.deposit == Decimal("7.00") and adjustment.withdrawal == Decimal("2.00")
    assert stored.rows[0].company_pln == Decimal("-4.00")


async def test_rebuild_all_clears_every_month(database: Database, feed):
    async with _ready(database) as store:
        await feed.tick("XAUUSD", datetime(2024, 9, 10, 1, 0), company_balance=10, company_equity=10)
        await store.upsert_day(date(2024, 7, 1), None, [_record("OLD", date(2024, 7, 1))], finalize=True)
        written = await store.rebuild_all(_materializer(database, store))
        stats = await store.get_storage_stats()

    assert written == 1
    assert stats.total_records == 1
    assert stats.first_date == stats.last_date == DAY


async def test_unreachable_store_raises_tagged_error(tmp_path: Path):
    database = Database(url=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nowhere.db'}")
    store = SnapshotStore(database)
    try:
        with pytest.raises(ReportStageError) as excinfo:
            await store.get_range(2024, 9)
    finally:
        await database.dispose()

    assert excinfo.value.stage == "fetch"
    assert excinfo.value.__cause__ is not None


async def test_adjustment_missing_after_write_raises_persist_error(database: Database):
    async with _ready(database) as store:

        async def vanished(trade_date, symbol):
            return None

        store.get_record = vanished
        with pytest.raises(ReportStageError) as excinfo:
            await store.set_deposit_withdrawal(DAY, "XAUUSD", "10", "0")

    assert excinfo.value.stage == "persist"
