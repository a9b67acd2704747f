"""Rebuild or finalize persisted daily P&L snapshots."""

from __future__ import annotations

import argparse
import asyncio
from datetime import date

from alembic import command
from alembic.config import Config

from tradedesk.config import get_settings
from tradedesk.core.logging import setup_logging
from tradedesk.db.init import init_database
from tradedesk.db.session import Database
from tradedesk.services.report import build_report_assembler


async def _run(args: argparse.Namespace) -> None:
    settings = get_settings()
    database = Database(settings.database_url)
    assembler = build_report_assembler(database, settings)
    try:
        await init_database(database)
        if args.finalize:
            finalized = await assembler.finalize_day(args.finalize)
            print(f"Finalized {finalized} rows for {args.finalize.isoformat()}")
            return
        if args.year is not None:
            written = await assembler.rebuild_month(args.year, args.month)
            print(f"Rebuilt {written} rows for {args.year:04d}-{args.month:02d}")
        else:
            written = await assembler.rebuild_all()
            print(f"Rebuilt {written} rows across all trading days")
    finally:
        await database.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Rebuild the daily P&L snapshot table")
    parser.add_argument("--year", type=int, help="Rebuild a single month (requires --month)")
    parser.add_argument("--month", type=int, choices=range(1, 13), metavar="MONTH")
    parser.add_argument(
        "--finalize",
        type=date.fromisoformat,
        metavar="YYYY-MM-DD",
        help="Only lock the rows of this trade date",
    )
    parser.add_argument("--migrate", action="store_true", help="Apply Alembic migrations first")
    args = parser.parse_args()
    if (args.year is None) != (args.month is None):
        parser.error("--year and --month must be given together")
    setup_logging()
    if args.migrate:
        command.upgrade(Config(get_settings().alembic_ini_path), "head")
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
