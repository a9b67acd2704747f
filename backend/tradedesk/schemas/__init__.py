"""Pydantic schema exports."""

from .pl_report import (
    AdjustmentRequest,
    AdjustmentSchema,
    DailyPLSchema,
    FinalizeResponse,
    MonthStatsSchema,
    PaginationSchema,
    PLReportFilters,
    PLReportResponse,
    PLTotalsSchema,
    RebuildResponse,
    StorageStatsSchema,
)

__all__ = [
    "AdjustmentRequest",
    "AdjustmentSchema",
    "DailyPLSchema",
    "FinalizeResponse",
    "MonthStatsSchema",
    "PaginationSchema",
    "PLReportFilters",
    "PLReportResponse",
    "PLTotalsSchema",
    "RebuildResponse",
    "StorageStatsSchema",
]
