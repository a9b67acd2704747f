import asyncio
import inspect
import pathlib
import sys
from datetime import datetime
from decimal import Decimal
from typing import Any

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tradedesk.db.session import Database  # noqa: E402
from tradedesk.models import CustomerSnapshot, SubAccount, TradingTick  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            arguments = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
            loop.run_until_complete(test_function(**arguments))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


class FeedWriter:
    """Insert raw feed rows (ticks, sub-accounts, customer snapshots) for a test."""

    def __init__(self, database: Database):
        self.database = database

    async def _add(self, *rows: Any) -> None:
        async with self.database.session() as session:
            session.add_all(rows)
            await session.commit()

    async def tick(self, symbol: str, observed_at: datetime, **values: Any) -> None:
        await self._add(
            TradingTick(
                symbol=symbol,
                observed_at=observed_at,
                **{name: Decimal(str(value)) for name, value in values.items()},
            )
        )

    async def sub_account(self, login: str, symbol: str, status: str = "active") -> None:
        await self._add(SubAccount(login=login, symbol=symbol, status=status))

    async def customer(self, login: str, created_at: datetime, **values: Any) -> None:
        await self._add(
            CustomerSnapshot(
                login=login,
                created_at=created_at,
                **{name: Decimal(str(value)) for name, value in values.items()},
            )
        )


@pytest.fixture
def database(tmp_path: pathlib.Path) -> Database:
    return Database(url=f"sqlite+aiosqlite:///{tmp_path / 'tradedesk.db'}")


@pytest.fixture
def feed(database: Database) -> FeedWriter:
    return FeedWriter(database)
