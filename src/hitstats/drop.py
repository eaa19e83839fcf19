import asyncio

import asyncpg

from hitstats import settings
from hitstats.granularities import GRANULARITIES
from hitstats.store import table_name


async def drop(connection: asyncpg.Connection) -> None:
    """Drop every hit counter table, leaving the rest of the database alone."""
    for granularity in GRANULARITIES:
        print(f"Dropping {table_name(granularity)}...")
        await connection.execute(f"DROP TABLE IF EXISTS {table_name(granularity)} CASCADE")
    print("✓ Hit counter tables dropped")


async def main() -> None:
    connection = await asyncpg.connect(**settings.connect_kwargs())
    try:
        await drop(connection)
    finally:
        await connection.close()


if __name__ == "__main__":
    asyncio.run(main())
