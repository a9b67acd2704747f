"""Pydantic schemas for the daily P&L report."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DailyPLSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    trade_date: date
    symbol: str = Field(..., examples=["XAUUSD"])
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
    is_finalized: bool


class PLTotalsSchema(BaseModel):
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
    account_profit: Decimal
    daily_company_total: Decimal
    daily_cp_total: Decimal
    daily_grand_total: Decimal


class PaginationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_page: int
    total_pages: int
    total_records: int
    records_per_page: int


class PLReportFilters(BaseModel):
    year: int
    month: int
    symbols: list[str] = Field(default_factory=list)


class PLReportResponse(BaseModel):
    rows: list[DailyPLSchema]
    totals: PLTotalsSchema
    pagination: PaginationSchema
    filters: PLReportFilters

    class Config:
        json_schema_extra = {
            "example": {
                "rows": [],
                "totals": {"company_pln": "0.00", "daily_grand_total": "0.00"},
                "pagination": {
                    "current_page": 1,
                    "total_pages": 0,
                    "total_records": 0,
                    "records_per_page": 31,
                },
                "filters": {"year": 2024, "month": 9, "symbols": ["XAUUSD"]},
            }
        }


class AdjustmentRequest(BaseModel):
    deposit: Optional[Decimal] = Field(default=None, examples=["1500.00"])
    withdrawal: Optional[Decimal] = Field(default=None, examples=["0"])


class AdjustmentSchema(BaseModel):
    trade_date: date
    symbol: str
    deposit: Decimal
    withdrawal: Decimal


class FinalizeResponse(BaseModel):
    trade_date: date
    finalized: int


class RebuildResponse(BaseModel):
    year: Optional[int] = None
    month: Optional[int] = None
    rows_written: int


class MonthStatsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    year: int
    month: int
    records: int
    finalized: int
    first_date: Optional[date] = None
    last_date: Optional[date] = None


class StorageStatsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_records: int
    finalized_records: int
    placeholder_records: int
    first_date: Optional[date] = None
    last_date: Optional[date] = None
    months: list[MonthStatsSchema] = Field(default_factory=list)


__all__ = [
    "DailyPLSchema",
    "PLTotalsSchema",
    "PaginationSchema",
    "PLReportFilters",
    "PLReportResponse",
    "AdjustmentRequest",
    "AdjustmentSchema",
    "FinalizeResponse",
    "RebuildResponse",
    "MonthStatsSchema",
    "StorageStatsSchema",
]
