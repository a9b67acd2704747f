"""Exceptions raised by the P&L report services."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import Iterator, Literal

from sqlalchemy.exc import SQLAlchemyError

Stage = Literal["fetch", "compute", "persist"]

# Failures tagged with a stage; anything else propagates untouched.
STAGE_ERRORS: tuple[type[BaseException], ...] = (
    SQLAlchemyError,
    OSError,
    asyncio.TimeoutError,
    ArithmeticError,
)


class ReportStageError(RuntimeError):
    """A collaborator failed while the report was being fetched, computed or persisted.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, stage: Stage, message: str):
        super().__init__(f"{stage} failed: {message}")
        self.stage = stage


class InvalidAdjustmentError(ValueError):
    """Raised when a deposit/withdrawal write is missing its key or has a bad amount."""


@contextmanager
def stage(name: Stage) -> Iterator[None]:
    """Tag source failures raised inside the block with the stage they happened in."""

    try:
        yield
    except ReportStageError:
        raise
    except STAGE_ERRORS as exc:
        raise ReportStageError(name, str(exc) or type(exc).__name__) from exc


__all__ = ["ReportStageError", "InvalidAdjustmentError", "STAGE_ERRORS", "Stage", "stage"]
