from typing import AsyncGenerator, Awaitable, Callable

import asyncpg
import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from hitstats.granularities import GRANULARITIES, Granularity
from hitstats.ingestion import HitRecorder
from hitstats.migrate import run_all_migrations
from hitstats.store import RollupStore, table_name
from tests.utils import Clock, parse_time


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def postgres() -> AsyncGenerator[PostgresContainer, None]:
    with PostgresContainer("postgres:16-alpine", driver=None) as postgres:
        conn: asyncpg.Connection = await asyncpg.connect(postgres.get_connection_url())
        try:
            await run_all_migrations(conn)
        finally:
            await conn.close()
        yield postgres


@pytest_asyncio.fixture
async def connection(postgres: PostgresContainer) -> AsyncGenerator[asyncpg.Connection, None]:
    conn: asyncpg.Connection = await asyncpg.connect(postgres.get_connection_url())
    try:
        yield conn
        await conn.execute(
            f"TRUNCATE TABLE {', '.join(table_name(g) for g in GRANULARITIES)}"
        )
    finally:
        await conn.close()


@pytest_asyncio.fixture
async def pool(postgres: PostgresContainer) -> AsyncGenerator[asyncpg.Pool, None]:
    pool = await asyncpg.create_pool(postgres.get_connection_url(), min_size=2, max_size=10)
    try:
        yield pool
    finally:
        await pool.close()


@pytest.fixture
def store(connection: asyncpg.Connection) -> RollupStore:
    return RollupStore(connection)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def recorder(store: RollupStore, clock: Clock) -> HitRecorder:
    return HitRecorder(store, clock=clock)


@pytest.fixture
def make_hits(store: RollupStore) -> Callable[..., Awaitable[None]]:
    '''
    Usage:

        async def test_foo(make_hits):
            await make_hits("""
                             11:50, 12:00, -2d 09:00
                a.webp:          3,      ,     1
                b.webp:           ,     2,
            """)

    This adds 3 hits for a.webp at 11:50 and 1 hit two days earlier at 09:00, and 2 hits for
    b.webp at 12:00 (times are on the base day of ``tests.utils``). Hits go to every granularity
    unless ``granularities`` restricts them, e.g. to simulate fine rows that were already swept.
    '''

    async def fn(text: str, granularities: tuple[Granularity, ...] = GRANULARITIES) -> None:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        timestamps = [parse_time(t) for t in lines[0].split(",")]
        for line in lines[1:]:
            key, values = [t.strip() for t in line.split(":", 1)]
            for timestamp, count_str in zip(timestamps, values.split(",")):
                try:
                    count = int(count_str)
                except ValueError:
                    continue
                for granularity in granularities:
                    await store.increment(granularity, key, timestamp, count)

    return fn
