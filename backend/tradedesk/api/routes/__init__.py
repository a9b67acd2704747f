"""Route registration helpers."""

from __future__ import annotations

from .pl_report import get_pl_report_router

__all__ = ["get_pl_report_router"]
