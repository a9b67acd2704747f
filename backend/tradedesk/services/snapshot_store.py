"""Persisted daily P&L snapshots (``pl_report_daily``).

Rows are keyed on ``(trade_date, symbol)``. Recomputation goes through a
single transactional ``INSERT ... ON CONFLICT DO UPDATE`` that never touches
finalized rows, deposits or withdrawals. ``company_pln`` is always re-derived
on read from the stored equities and the current deposit/withdrawal, so an
adjustment entered after a row was computed is reflected immediately.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Sequence

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.sql.elements import ColumnElement

from tradedesk.db.session import Database
from tradedesk.models import DailyPLRecord

from .calculator import COMPUTED_FIELDS, TOTAL_FIELDS, DailyPL, company_pln
from .errors import InvalidAdjustmentError, ReportStageError, stage
from .parsing import ZERO, round_money, to_decimal
from .ticks import normalize_symbols

if TYPE_CHECKING:
    from .materializer import DayMaterializer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Adjustment:
    deposit: Decimal = ZERO
    withdrawal: Decimal = ZERO

    @property
    def is_zero(self) -> bool:
        return self.deposit == 0 and self.withdrawal == 0


@dataclass
class RangeResult:
    rows: list[DailyPL]
    totals: dict[str, Decimal]
    total_count: int


@dataclass
class MonthStats:
    year: int
    month: int
    records: int
    finalized: int
    first_date: date | None
    last_date: date | None


@dataclass
class StorageStats:
    total_records: int
    finalized_records: int
    placeholder_records: int
    first_date: date | None
    last_date: date | None
    months: list[MonthStats] = field(default_factory=list)


def _dialect_insert(dialect_name: str) -> Any:
    if dialect_name == "postgresql":
        return pg_insert
    if dialect_name == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Upserts are not supported on the {dialect_name!r} dialect")


def _adjusted_pln_column() -> ColumnElement[Decimal]:
    return (
        DailyPLRecord.company_equity
        - DailyPLRecord.prior_company_equity
        - DailyPLRecord.company_deposit
        + DailyPLRecord.company_withdrawal
    )


def _count_if(condition: ColumnElement[bool]) -> ColumnElement[int]:
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def to_daily_pl(row: DailyPLRecord) -> DailyPL:
    values = {name: to_decimal(getattr(row, name)) for name in COMPUTED_FIELDS}
    deposit = to_decimal(row.company_deposit)
    withdrawal = to_decimal(row.company_withdrawal)
    values["company_pln"] = round_money(
        company_pln(values["company_equity"], values["prior_company_equity"], deposit, withdrawal)
    )
    return DailyPL(
        trade_date=row.trade_date,
        symbol=row.symbol,
        company_deposit=deposit,
        company_withdrawal=withdrawal,
        is_finalized=bool(row.is_finalized),
        **values,
    )


def _parse_amount(value: Any, label: str) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        return ZERO
    parsed = to_decimal(value, default=Decimal("NaN"))
    if parsed.is_nan():
        raise InvalidAdjustmentError(f"{label} must be a finite number")
    if parsed < 0:
        raise InvalidAdjustmentError(f"{label} must not be negative")
    return round_money(parsed)


class SnapshotStore:
    """Queryable store of :class:`DailyPL` rows."""

    def __init__(self, database: Database):
        self._database = database

    # Reads

    def _range_conditions(
        self,
        year: int,
        month: int,
        symbols: Sequence[str] | None,
        exclude_on_or_after: date | None,
    ) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = [
            DailyPLRecord.year == year,
            DailyPLRecord.month == month,
            DailyPLRecord.is_placeholder.is_(False),
        ]
        scope = normalize_symbols(symbols)
        if scope:
            conditions.append(DailyPLRecord.symbol.in_(scope))
        if exclude_on_or_after is not None:
            conditions.append(DailyPLRecord.trade_date < exclude_on_or_after)
        return conditions

    async def get_range(
        self,
        year: int,
        month: int,
        symbols: Sequence[str] | None = None,
        *,
        page: int = 1,
        page_size: int = 31,
        exclude_on_or_after: date | None = None,
        offset: int | None = None,
    ) -> RangeResult:
        """Return one page of rows plus totals and count over the whole filtered range.

        ``offset`` overrides the page-derived offset; the report assembler uses it
        to shift stored rows behind the live rows of today.
        """

        conditions = self._range_conditions(year, month, symbols, exclude_on_or_after)
        start = offset if offset is not None else (max(page, 1) - 1) * page_size
        limit = page_size
        total_columns = [
            func.coalesce(
                func.sum(_adjusted_pln_column() if name == "company_pln" else getattr(DailyPLRecord, name)),
                0,
            )
            for name in TOTAL_FIELDS
        ]
        totals_stmt = select(func.count(DailyPLRecord.id), *total_columns).where(*conditions)
        rows_stmt = (
            select(DailyPLRecord)
            .where(*conditions)
            .order_by(DailyPLRecord.trade_date.desc(), DailyPLRecord.symbol.asc())
            .offset(max(start, 0))
            .limit(limit)
        )
        with stage("fetch"):
            async with self._database.session() as session:
                summary = (await session.execute(totals_stmt)).one()
                rows = [] if limit <= 0 else (await session.execute(rows_stmt)).scalars().all()

        total_count = int(summary[0] or 0)
        totals = {name: round_money(to_decimal(value)) for name, value in zip(TOTAL_FIELDS, summary[1:])}
        return RangeResult(rows=[to_daily_pl(row) for row in rows], totals=totals, total_count=total_count)

    async def get_record(self, trade_date: date, symbol: str) -> DailyPL | None:
        stmt = select(DailyPLRecord).where(
            DailyPLRecord.trade_date == trade_date,
            DailyPLRecord.symbol == symbol.strip().upper(),
        )
        with stage("fetch"):
            async with self._database.session() as session:
                row = (await session.execute(stmt)).scalars().first()
        return to_daily_pl(row) if row is not None else None

    async def get_company_balances(
        self, trade_date: date, symbols: Sequence[str] | None = None
    ) -> dict[str, tuple[Decimal, Decimal]]:
        """Stored ``(company_balance, company_equity)`` per symbol, ignoring placeholders."""

        stmt = select(DailyPLRecord.symbol, DailyPLRecord.company_balance, DailyPLRecord.company_equity).where(
            DailyPLRecord.trade_date == trade_date,
            DailyPLRecord.is_placeholder.is_(False),
        )
        scope = normalize_symbols(symbols)
        if scope:
            stmt = stmt.where(DailyPLRecord.symbol.in_(scope))
        with stage("fetch"):
            async with self._database.session() as session:
                rows = (await session.execute(stmt)).all()
        return {symbol: (to_decimal(balance), to_decimal(equity)) for symbol, balance, equity in rows}

    async def is_day_complete(self, trade_date: date, symbols: Sequence[str]) -> bool:
        """True when every symbol in ``symbols`` already has a finalized row for the day."""

        scope = normalize_symbols(symbols)
        if not scope:
            return True
        stmt = select(DailyPLRecord.symbol).where(
            DailyPLRecord.trade_date == trade_date,
            DailyPLRecord.symbol.in_(scope),
            DailyPLRecord.is_finalized.is_(True),
        )
        with stage("fetch"):
            async with self._database.session() as session:
                finalized = set((await session.execute(stmt)).scalars().all())
        return set(scope) <= finalized

    async def get_adjustments(
        self, trade_date: date, symbols: Sequence[str] | None = None
    ) -> dict[str, Adjustment]:
        stmt = select(
            DailyPLRecord.symbol, DailyPLRecord.company_deposit, DailyPLRecord.company_withdrawal
        ).where(DailyPLRecord.trade_date == trade_date)
        scope = normalize_symbols(symbols)
        if scope:
            stmt = stmt.where(DailyPLRecord.symbol.in_(scope))
        with stage("fetch"):
            async with self._database.session() as session:
                rows = (await session.execute(stmt)).all()
        return {
            symbol: Adjustment(deposit=to_decimal(deposit), withdrawal=to_decimal(withdrawal))
            for symbol, deposit, withdrawal in rows
        }

    async def get_deposit_withdrawal(self, trade_date: date, symbol: str) -> Adjustment:
        if not symbol or not symbol.strip():
            raise InvalidAdjustmentError("symbol is required")
        normalized = symbol.strip().upper()
        adjustments = await self.get_adjustments(trade_date, [normalized])
        return adjustments.get(normalized, Adjustment())

    async def get_storage_stats(self) -> StorageStats:
        overall_stmt = select(
            func.count(DailyPLRecord.id),
            _count_if(DailyPLRecord.is_finalized.is_(True)),
            _count_if(DailyPLRecord.is_placeholder.is_(True)),
            func.min(DailyPLRecord.trade_date),
            func.max(DailyPLRecord.trade_date),
        )
        monthly_stmt = (
            select(
                DailyPLRecord.year,
                DailyPLRecord.month,
                func.count(DailyPLRecord.id),
                _count_if(DailyPLRecord.is_finalized.is_(True)),
                func.min(DailyPLRecord.trade_date),
                func.max(DailyPLRecord.trade_date),
            )
            .group_by(DailyPLRecord.year, DailyPLRecord.month)
            .order_by(DailyPLRecord.year.desc(), DailyPLRecord.month.desc())
        )
        with stage("fetch"):
            async with self._database.session() as session:
                total, finalized, placeholders, first_date, last_date = (await session.execute(overall_stmt)).one()
                monthly = (await session.execute(monthly_stmt)).all()
        return StorageStats(
            total_records=int(total or 0),
            finalized_records=int(finalized or 0),
            placeholder_records=int(placeholders or 0),
            first_date=first_date,
            last_date=last_date,
            months=[
                MonthStats(
                    year=year,
                    month=month,
                    records=int(records or 0),
                    finalized=int(done or 0),
                    first_date=first,
                    last_date=last,
                )
                for year, month, records, done, first, last in monthly
            ],
        )

    # Writes

    async def upsert_day(
        self,
        trade_date: date,
        symbols: Sequence[str] | None,
        records: Sequence[DailyPL],
        *,
        finalize: bool = False,
    ) -> int:
        """Replace the computed rows of ``trade_date`` within the symbol scope.

        Runs in one transaction. Finalized rows are left untouched; deposits and
        withdrawals already stored survive the replacement. Unfinalized rows in
        scope that are absent from ``records`` and carry no adjustment are
        removed. Returns the number of rows inserted or updated.
        """

        scope = normalize_symbols(symbols)
        now = datetime.utcnow()
        insert = _dialect_insert(self._database.dialect_name)

        with stage("persist"):
            async with self._database.session() as session:
                async with session.begin():
                    existing_stmt = select(DailyPLRecord).where(DailyPLRecord.trade_date == trade_date)
                    if scope:
                        existing_stmt = existing_stmt.where(DailyPLRecord.symbol.in_(scope))
                    existing = {
                        row.symbol: row for row in (await session.execute(existing_stmt)).scalars().all()
                    }

                    written = 0
                    for record in records:
                        if record.trade_date != trade_date:
                            raise ValueError(
                                f"record for {record.trade_date} passed to upsert_day({trade_date})"
                            )
                        current = existing.get(record.symbol)
                        if current is not None and current.is_finalized:
                            continue
                        values: dict[str, Any] = {name: getattr(record, name) for name in COMPUTED_FIELDS}
                        values.update(
                            trade_date=trade_date,
                            symbol=record.symbol,
                            year=trade_date.year,
                            month=trade_date.month,
                            company_deposit=(
                                current.company_deposit if current is not None else record.company_deposit
                            ),
                            company_withdrawal=(
                                current.company_withdrawal if current is not None else record.company_withdrawal
                            ),
                            is_finalized=finalize,
                            is_placeholder=False,
                            created_at=now,
                            updated_at=now,
                        )
                        stmt = insert(DailyPLRecord).values(**values)
                        stmt = stmt.on_conflict_do_update(
                            index_elements=[DailyPLRecord.trade_date, DailyPLRecord.symbol],
                            set_={
                                **{name: stmt.excluded[name] for name in COMPUTED_FIELDS},
                                "is_finalized": finalize,
                                "is_placeholder": False,
                                "updated_at": now,
                            },
                            where=DailyPLRecord.is_finalized.is_(False),
                        )
                        await session.execute(stmt)
                        written += 1

                    incoming = {record.symbol for record in records}
                    stale = [
                        row.id
                        for symbol, row in existing.items()
                        if symbol not in incoming
                        and not row.is_finalized
                        and to_decimal(row.company_deposit) == 0
                        and to_decimal(row.company_withdrawal) == 0
                    ]
                    if stale:
                        await session.execute(delete(DailyPLRecord).where(DailyPLRecord.id.in_(stale)))

        logger.debug(
            "Upserted %d P&L rows for %s (finalize=%s, removed %d stale)",
            written,
            trade_date,
            finalize,
            len(stale),
        )
        return written

    async def set_deposit_withdrawal(
        self,
        trade_date: date | None,
        symbol: str | None,
        deposit: Any,
        withdrawal: Any,
    ) -> DailyPL:
        """Store a manual adjustment, creating a zeroed placeholder row if needed."""

        if trade_date is None:
            raise InvalidAdjustmentError("trade_date is required")
        if not symbol or not symbol.strip():
            raise InvalidAdjustmentError("symbol is required")
        normalized = symbol.strip().upper()
        deposit_value = _parse_amount(deposit, "deposit")
        withdrawal_value = _parse_amount(withdrawal, "withdrawal")
        now = datetime.utcnow()
        insert = _dialect_insert(self._database.dialect_name)

        stmt = insert(DailyPLRecord).values(
            trade_date=trade_date,
            symbol=normalized,
            year=trade_date.year,
            month=trade_date.month,
            company_deposit=deposit_value,
            company_withdrawal=withdrawal_value,
            is_finalized=False,
            is_placeholder=True,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyPLRecord.trade_date, DailyPLRecord.symbol],
            set_={
                "company_deposit": deposit_value,
                "company_withdrawal": withdrawal_value,
                "updated_at": now,
            },
        )
        with stage("persist"):
            async with self._database.session() as session:
                async with session.begin():
                    await session.execute(stmt)
        logger.info(
            "Recorded adjustment for %s %s: deposit=%s withdrawal=%s",
            trade_date,
            normalized,
            deposit_value,
            withdrawal_value,
        )
        record = await self.get_record(trade_date, normalized)
        if record is None:
            raise ReportStageError("persist", f"adjustment for {trade_date} {normalized} was not stored")
        return record

    async def finalize(self, trade_date: date) -> int:
        """Lock every row of ``trade_date``; already finalized rows are not touched."""

        stmt = (
            update(DailyPLRecord)
            .where(DailyPLRecord.trade_date == trade_date, DailyPLRecord.is_finalized.is_(False))
            .values(is_finalized=True, updated_at=datetime.utcnow())
        )
        with stage("persist"):
            async with self._database.session() as session:
                async with session.begin():
                    result = await session.execute(stmt)
        affected = result.rowcount or 0
        logger.info("Finalized %d P&L rows for %s", affected, trade_date)
        return affected

    async def _restore_adjustments(self, adjustments: dict[tuple[date, str], Adjustment]) -> None:
        for (trade_date, symbol), adjustment in adjustments.items():
            await self.set_deposit_withdrawal(trade_date, symbol, adjustment.deposit, adjustment.withdrawal)

    async def _take_adjustments(self, *conditions: ColumnElement[bool]) -> dict[tuple[date, str], Adjustment]:
        stmt = select(
            DailyPLRecord.trade_date,
            DailyPLRecord.symbol,
            DailyPLRecord.company_deposit,
            DailyPLRecord.company_withdrawal,
        ).where(
            (DailyPLRecord.company_deposit != 0) | (DailyPLRecord.company_withdrawal != 0),
            *conditions,
        )
        with stage("fetch"):
            async with self._database.session() as session:
                rows = (await session.execute(stmt)).all()
        return {
            (trade_date, symbol): Adjustment(deposit=to_decimal(deposit), withdrawal=to_decimal(withdrawal))
            for trade_date, symbol, deposit, withdrawal in rows
        }

    async def _delete_where(self, *conditions: ColumnElement[bool]) -> int:
        stmt = delete(DailyPLRecord)
        if conditions:
            stmt = stmt.where(*conditions)
        with stage("persist"):
            async with self._database.session() as session:
                async with session.begin():
                    result = await session.execute(stmt)
        return result.rowcount or 0

    async def rebuild_all(self, materializer: "DayMaterializer") -> int:
        """Delete every row and regenerate one finalized row per traded ``(date, symbol)``.

        Manual deposits and withdrawals are carried over. Readers may briefly see
        an empty store while this runs.
        """

        adjustments = await self._take_adjustments()
        deleted = await self._delete_where()
        logger.warning("Rebuild started: deleted %d P&L rows", deleted)
        await self._restore_adjustments(adjustments)
        days = await materializer.trading_dates()
        return await self._rebuild_days(materializer, days)

    async def rebuild_month(self, year: int, month: int, materializer: "DayMaterializer") -> int:
        conditions = (DailyPLRecord.year == year, DailyPLRecord.month == month)
        adjustments = await self._take_adjustments(*conditions)
        deleted = await self._delete_where(*conditions)
        logger.warning("Rebuild of %04d-%02d started: deleted %d P&L rows", year, month, deleted)
        await self._restore_adjustments(adjustments)
        days = await materializer.trading_dates(year, month)
        return await self._rebuild_days(materializer, days)

    async def _rebuild_days(self, materializer: "DayMaterializer", days: Sequence[date]) -> int:
        written = 0
        for day in days:
            records = await materializer.compute_day(day)
            written += await self.upsert_day(day, None, records, finalize=True)
        logger.info("Rebuild finished: %d rows across %d trading days", written, len(days))
        return written


def page_count(total_records: int, page_size: int) -> int:
    return math.ceil(total_records / page_size) if page_size > 0 else 0


__all__ = [
    "Adjustment",
    "RangeResult",
    "MonthStats",
    "StorageStats",
    "SnapshotStore",
    "to_daily_pl",
    "page_count",
]
