"""Per-granularity hit counter tables.

Every granularity in ``GRANULARITIES`` owns one ``hit_bucket_<suffix>`` table keyed by
``(key, bucket_start)``. Increments are single ``INSERT ... ON CONFLICT DO UPDATE`` statements, so
concurrent writers to the same row never lose a count and writers to different rows never wait
on each other beyond PostgreSQL's own row locking.

The store accepts either an ``asyncpg.Connection`` or an ``asyncpg.Pool``; both expose the
``execute``/``fetch``/``fetchrow``/``fetchval`` methods used here.
"""

import functools
from typing import Any, Awaitable, Callable, Iterable

import asyncpg

from hitstats.bucket_clock import align_down
from hitstats.errors import TransientStoreError
from hitstats.granularities import Granularity
from hitstats.models import HitBucket, TrafficPoint

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncpg.CannotConnectNowError,
    asyncpg.TooManyConnectionsError,
    asyncpg.LockNotAvailableError,
    asyncpg.DeadlockDetectedError,
    asyncpg.SerializationError,
    asyncpg.QueryCanceledError,
    OSError,
    TimeoutError,
)


def table_name(granularity: Granularity) -> str:
    return f"hit_bucket_{granularity.suffix}"


def _transient(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
    @functools.wraps(func)
    async def decorated(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except TRANSIENT_ERRORS as exc:
            raise TransientStoreError(f"{func.__name__} failed: {exc}") from exc

    return decorated


class RollupStore:
    def __init__(self, executor: asyncpg.Connection | asyncpg.Pool):
        self.executor = executor

    @_transient
    async def increment(
        self, granularity: Granularity, key: str, timestamp: float, hits: int = 1
    ) -> None:
        table = table_name(granularity)
        await self.executor.execute(
            f"""
                INSERT INTO {table} (key, bucket_start, hits)
                VALUES ($1, $2, $3)
                ON CONFLICT (key, bucket_start) DO UPDATE SET hits = {table}.hits + EXCLUDED.hits
            """,
            key,
            align_down(timestamp, granularity.period),
            hits,
        )

    @_transient
    async def increment_many(self, granularity: Granularity, buckets: Iterable[HitBucket]) -> int:
        """Add many bucket counts at once.

        Buckets are realigned to the granularity and duplicate ``(key, bucket_start)`` pairs are
        summed before insertion, because one ``INSERT ... ON CONFLICT`` may not touch the same row
        twice.

        Returns the number of distinct rows written.
        """
        merged: dict[tuple[str, int], int] = {}
        for bucket in buckets:
            row = (bucket.key, align_down(bucket.bucket_start, granularity.period))
            merged[row] = merged.get(row, 0) + bucket.hits
        if not merged:
            return 0

        records = [HitBucket(key, start, hits) for (key, start), hits in merged.items()]
        keys, bucket_starts, hits = (list(c) for c in zip(*(r.to_tuple() for r in records)))
        table = table_name(granularity)
        await self.executor.execute(
            f"""
                INSERT INTO {table} (key, bucket_start, hits)
                SELECT unnest($1::text[]), unnest($2::bigint[]), unnest($3::bigint[])
                ON CONFLICT (key, bucket_start) DO UPDATE SET hits = {table}.hits + EXCLUDED.hits
            """,
            keys,
            bucket_starts,
            hits,
        )
        return len(records)

    @_transient
    async def read_series(
        self,
        granularity: Granularity,
        start: int,
        end: int,
        key: str | None = None,
        bucket_size: int | None = None,
    ) -> list[TrafficPoint]:
        """Hits per bucket with ``start <= bucket_start <= end``, ascending.

        Without ``key`` hits are summed across keys. ``bucket_size`` groups native buckets into
        super-buckets aligned to multiples of that size.
        """
        args: list[Any] = [start, end, bucket_size or granularity.period]
        key_filter = ""
        if key is not None:
            args.append(key)
            key_filter = "AND key = $4"
        rows = await self.executor.fetch(
            f"""
                SELECT (bucket_start / $3) * $3 AS bucket, SUM(hits)::bigint AS hits
                FROM {table_name(granularity)}
                WHERE bucket_start BETWEEN $1 AND $2 {key_filter}
                GROUP BY bucket
                ORDER BY bucket ASC
            """,
            *args,
        )
        return [TrafficPoint(row["bucket"], row["hits"]) for row in rows]

    @_transient
    async def read_span(
        self, granularity: Granularity, start: int, end: int, key: str | None = None
    ) -> tuple[int, int] | None:
        """First and last bucket holding data within the range, or ``None`` when there is none"""
        args: list[Any] = [start, end]
        key_filter = ""
        if key is not None:
            args.append(key)
            key_filter = "AND key = $3"
        row = await self.executor.fetchrow(
            f"""
                SELECT MIN(bucket_start) AS first, MAX(bucket_start) AS last
                FROM {table_name(granularity)}
                WHERE bucket_start BETWEEN $1 AND $2 {key_filter}
            """,
            *args,
        )
        if row is None or row["first"] is None:
            return None
        return row["first"], row["last"]

    @_transient
    async def read_totals_by_key(
        self, granularity: Granularity, start: int, end: int
    ) -> dict[str, int]:
        rows = await self.executor.fetch(
            f"""
                SELECT key, SUM(hits)::bigint AS total
                FROM {table_name(granularity)}
                WHERE bucket_start BETWEEN $1 AND $2
                GROUP BY key
            """,
            start,
            end,
        )
        return {row["key"]: row["total"] for row in rows}

    @_transient
    async def read_total(self, granularity: Granularity, start: int, end: int) -> int:
        total = await self.executor.fetchval(
            f"""
                SELECT COALESCE(SUM(hits), 0)::bigint
                FROM {table_name(granularity)}
                WHERE bucket_start BETWEEN $1 AND $2
            """,
            start,
            end,
        )
        return int(total)

    @_transient
    async def read_keys(self, granularity: Granularity, start: int, end: int) -> set[str]:
        rows = await self.executor.fetch(
            f"""
                SELECT DISTINCT key
                FROM {table_name(granularity)}
                WHERE bucket_start BETWEEN $1 AND $2
            """,
            start,
            end,
        )
        return {row["key"] for row in rows}

    @_transient
    async def delete_before(self, granularity: Granularity, cutoff: int) -> int:
        status = await self.executor.execute(
            f"DELETE FROM {table_name(granularity)} WHERE bucket_start < $1", cutoff
        )
        # Status looks like "DELETE 42"
        return int(status.split()[-1])
