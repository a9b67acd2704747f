"""Time-boxed cache of today's computed P&L records."""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, Sequence

from .calculator import DailyPL
from .materializer import DayMaterializer
from .ticks import normalize_symbols

logger = logging.getLogger(__name__)

CacheKey = tuple[date, str | tuple[str, ...]]


@dataclass
class _Entry:
    expires_at: float
    records: tuple[DailyPL, ...]


class LiveWindowCache:
    """Serve today's records from memory for ``ttl_seconds`` after computing them.

    A miss computes the day through the materializer and writes the rows through
    to the snapshot store as unfinalized, so the store stays the source of
    truth. Concurrent misses for the same key share one in-flight computation,
    which is shielded from caller cancellation so an abandoned request still
    leaves the store and cache populated. Expired entries are dropped on every
    miss.
    """

    def __init__(
        self,
        materializer: DayMaterializer,
        *,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._materializer = materializer
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, _Entry] = {}
        self._inflight: dict[CacheKey, asyncio.Task[tuple[DailyPL, ...]]] = {}

    @staticmethod
    def key_for(trade_date: date, symbols: Sequence[str] | None) -> CacheKey:
        scope = normalize_symbols(symbols)
        return (trade_date, tuple(scope) if scope else "all")

    def _lookup(self, key: CacheKey) -> tuple[DailyPL, ...] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.records

    def _prune(self) -> None:
        now = self._clock()
        for key in [key for key, entry in self._entries.items() if now >= entry.expires_at]:
            del self._entries[key]

    async def get_today(self, trade_date: date, symbols: Sequence[str] | None = None) -> list[DailyPL]:
        key = self.key_for(trade_date, symbols)
        cached = self._lookup(key)
        if cached is not None:
            return list(cached)

        task = self._inflight.get(key)
        if task is None:
            self._prune()
            task = asyncio.ensure_future(self._populate(key, trade_date, symbols))
            self._inflight[key] = task
            task.add_done_callback(functools.partial(self._finished, key))
        return list(await asyncio.shield(task))

    async def _populate(
        self, key: CacheKey, trade_date: date, symbols: Sequence[str] | None
    ) -> tuple[DailyPL, ...]:
        logger.info("Live cache miss for %s (%s); computing", trade_date, key[1])
        records = tuple(await self._materializer.backfill_day(trade_date, symbols, finalize=False))
        self._entries[key] = _Entry(expires_at=self._clock() + self._ttl, records=records)
        return records

    def _finished(self, key: CacheKey, task: asyncio.Task[tuple[DailyPL, ...]]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Live cache computation for %s (%s) failed: %s", key[0], key[1], error)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["LiveWindowCache"]
