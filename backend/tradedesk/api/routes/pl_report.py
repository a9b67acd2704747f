"""Monthly P&L report endpoints."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from tradedesk.schemas import (
    AdjustmentRequest,
    AdjustmentSchema,
    DailyPLSchema,
    FinalizeResponse,
    PaginationSchema,
    PLReportFilters,
    PLReportResponse,
    PLTotalsSchema,
    RebuildResponse,
    StorageStatsSchema,
)
from tradedesk.services.report import ReportAssembler


def _split_symbols(raw: Optional[list[str]]) -> list[str] | None:
    """Accept both ``?symbols=A&symbols=B`` and ``?symbols=A,B``."""

    if not raw:
        return None
    symbols = [part for value in raw for part in value.split(",") if part.strip()]
    return symbols or None


def get_pl_report_router(assembler: ReportAssembler) -> APIRouter:
    router = APIRouter(tags=["pl-report"])

    @router.get("/pl-report", response_model=PLReportResponse)
    async def get_pl_report(
        year: int = Query(..., ge=1970, le=9999),
        month: int = Query(..., ge=1, le=12),
        symbols: Optional[list[str]] = Query(default=None),
        page: int = Query(default=1, ge=1),
        page_size: Optional[int] = Query(default=None, ge=1, le=500),
    ) -> PLReportResponse:
        try:
            report = await assembler.get_report(year, month, _split_symbols(symbols), page, page_size)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        return PLReportResponse(
            rows=[DailyPLSchema.model_validate(row) for row in report.rows],
            totals=PLTotalsSchema(**report.totals),
            pagination=PaginationSchema.model_validate(report.pagination),
            filters=PLReportFilters(**report.filters),
        )

    @router.get("/pl-years", response_model=list[int])
    async def get_pl_years() -> list[int]:
        return await assembler.list_years()

    @router.get("/pl-symbols", response_model=list[str])
    async def get_pl_symbols() -> list[str]:
        return await assembler.list_symbols()

    @router.get("/pl-report/stats", response_model=StorageStatsSchema)
    async def get_pl_report_stats() -> StorageStatsSchema:
        stats = await assembler.get_storage_stats()
        return StorageStatsSchema.model_validate(stats)

    @router.get("/pl-report/adjustments/{trade_date}/{symbol}", response_model=AdjustmentSchema)
    async def get_adjustment(trade_date: date, symbol: str) -> AdjustmentSchema:
        adjustment = await assembler.get_deposit_withdrawal(trade_date, symbol)
        return AdjustmentSchema(
            trade_date=trade_date,
            symbol=symbol.strip().upper(),
            deposit=adjustment.deposit,
            withdrawal=adjustment.withdrawal,
        )

    @router.put("/pl-report/adjustments/{trade_date}/{symbol}", response_model=DailyPLSchema)
    async def put_adjustment(trade_date: date, symbol: str, payload: AdjustmentRequest) -> DailyPLSchema:
        record = await assembler.set_deposit_withdrawal(trade_date, symbol, payload.deposit, payload.withdrawal)
        return DailyPLSchema.model_validate(record)

    @router.post("/pl-report/{trade_date}/finalize", response_model=FinalizeResponse)
    async def finalize_day(trade_date: date) -> FinalizeResponse:
        finalized = await assembler.finalize_day(trade_date)
        return FinalizeResponse(trade_date=trade_date, finalized=finalized)

    @router.post("/pl-report/rebuild", response_model=RebuildResponse)
    async def rebuild_all() -> RebuildResponse:
        written = await assembler.rebuild_all()
        return RebuildResponse(rows_written=written)

    @router.post("/pl-report/rebuild/{year}/{month}", response_model=RebuildResponse)
    async def rebuild_month(year: int, month: int) -> RebuildResponse:
        if not 1 <= month <= 12:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="month must be between 1 and 12")
        written = await assembler.rebuild_month(year, month)
        return RebuildResponse(year=year, month=month, rows_written=written)

    return router


__all__ = ["get_pl_report_router"]
