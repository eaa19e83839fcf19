import asyncio

import asyncpg

from hitstats import settings
from hitstats.drop import drop
from hitstats.migrate import run_all_migrations


async def reset() -> None:
    """Drop the hit counter tables and migrate them back, empty."""
    connection = await asyncpg.connect(**settings.connect_kwargs())
    try:
        await drop(connection)
        await run_all_migrations(connection)
    finally:
        await connection.close()


if __name__ == "__main__":
    asyncio.run(reset())
