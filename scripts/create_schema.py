#!/usr/bin/env python
"""Create the payroll period tables.

Usage:
    python scripts/create_schema.py
    python scripts/create_schema.py --database-url postgresql+asyncpg://...
    python scripts/create_schema.py --drop
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError

from paystub_engine.config import get_settings
from paystub_engine.database import get_engine
from paystub_engine.models import Base


async def create_schema(database_url: str, drop: bool) -> None:
    engine = get_engine(database_url)
    try:
        async with engine.begin() as conn:
            if drop:
                print("  Dropping existing tables")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()

    for table in Base.metadata.sorted_tables:
        print(f"  OK {table.name}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Create payroll period tables")
    parser.add_argument(
        "--database-url",
        default=get_settings().database_url,
        help="Async database URL",
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop existing tables first",
    )
    args = parser.parse_args()

    print("Payroll schema setup")
    print("=" * 50)
    print(f"Database: {args.database_url.split('@')[-1] if '@' in args.database_url else args.database_url}")

    try:
        asyncio.run(create_schema(args.database_url, args.drop))
    except SQLAlchemyError as e:
        print(f"ERROR: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
