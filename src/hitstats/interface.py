"""Read side: traffic series, totals and rankings over arbitrary recent windows.

Every public function validates its range before touching the store and reads inside a single
read-only snapshot. Ranges without data yield empty series and zero totals.
"""

import asyncpg
from asyncpg.transaction import Transaction

from hitstats import bucket_clock, settings
from hitstats.errors import InvalidRangeError
from hitstats.granularities import COARSE, FINE, MEDIUM
from hitstats.models import (
    SECONDS_PER_DAY,
    Overview,
    TimeRange,
    TopImage,
    TrafficPoint,
    TrafficResult,
)
from hitstats.selector import (
    MEDIUM_MAX_SPAN_DAYS,
    SourceRange,
    granularity_for_span,
    plan_disjoint_sources,
    source_range,
    super_bucket,
)
from hitstats.store import RollupStore


def _snapshot(connection: asyncpg.Connection) -> Transaction:
    # Multi-statement reads (span, then series) must agree with each other
    return connection.transaction(isolation="repeatable_read", readonly=True)


def resolve_range(
    days: float | None = None,
    start: int | None = None,
    end: int | None = None,
    now: int | None = None,
) -> TimeRange:
    """Turn either ``days`` (ending now) or explicit ``start``/``end`` into a ``TimeRange``"""
    if start is None and end is None:
        if days is None:
            days = settings.DEFAULT_DAYS
        if days < 0:
            raise InvalidRangeError(f"days must not be negative, got {days}")
        if now is None:
            now = bucket_clock.now()
        return TimeRange(now - round(days * SECONDS_PER_DAY), now)

    if days is not None:
        raise InvalidRangeError("pass either days or start/end, not both")
    if start is None or end is None:
        raise InvalidRangeError("start and end must be given together")
    if end < start:
        raise InvalidRangeError(f"end ({end}) is before start ({start})")
    return TimeRange(int(start), int(end))


async def _select_source(
    store: RollupStore, time_range: TimeRange, key: str | None = None
) -> SourceRange:
    source = source_range(granularity_for_span(time_range.span_days), time_range)
    if source.granularity is FINE:
        # Ranges older than the fine retention horizon only exist at medium and coarser
        if await store.read_span(FINE, source.start, source.end, key) is None:
            source = source_range(MEDIUM, time_range)
    return source


def _top_sources(time_range: TimeRange, now: int) -> list[SourceRange]:
    if time_range.span_days <= MEDIUM_MAX_SPAN_DAYS:
        return plan_disjoint_sources(time_range, now)
    return [source_range(COARSE, time_range)]


async def _traffic(store: RollupStore, time_range: TimeRange) -> TrafficResult:
    source = await _select_source(store, time_range)
    span = await store.read_span(*source)
    if span is None:
        return TrafficResult(source.granularity.label, [])

    first, last = span
    bucket = super_bucket(source.granularity, last - first)
    data = await store.read_series(*source, bucket_size=bucket.size)
    return TrafficResult(bucket.label, data)


async def _total_hits(store: RollupStore, time_range: TimeRange) -> int:
    source = await _select_source(store, time_range)
    return await store.read_total(*source)


async def _top_images(
    store: RollupStore, time_range: TimeRange, limit: int, now: int
) -> list[TopImage]:
    totals: dict[str, int] = {}
    for source in _top_sources(time_range, now):
        for key, total in (await store.read_totals_by_key(*source)).items():
            totals[key] = totals.get(key, 0) + total

    ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [TopImage(key, total) for key, total in ranked[:limit]]


async def _unique_images(store: RollupStore, time_range: TimeRange, now: int) -> int:
    keys: set[str] = set()
    for source in _top_sources(time_range, now):
        keys |= await store.read_keys(*source)
    return len(keys)


async def get_traffic(
    connection: asyncpg.Connection,
    days: float | None = None,
    start: int | None = None,
    end: int | None = None,
    now: int | None = None,
) -> TrafficResult:
    time_range = resolve_range(days, start, end, now)
    async with _snapshot(connection):
        return await _traffic(RollupStore(connection), time_range)


async def get_total_hits(
    connection: asyncpg.Connection, days: float = 30, now: int | None = None
) -> int:
    time_range = resolve_range(days, now=now)
    async with _snapshot(connection):
        return await _total_hits(RollupStore(connection), time_range)


async def get_top_images(
    connection: asyncpg.Connection, days: float = 7, limit: int = 10, now: int | None = None
) -> list[TopImage]:
    if limit < 1:
        raise ValueError(f"limit must be positive, got {limit}")
    now = bucket_clock.now() if now is None else now
    time_range = resolve_range(days, now=now)
    async with _snapshot(connection):
        return await _top_images(RollupStore(connection), time_range, limit, now)


async def get_unique_images(
    connection: asyncpg.Connection, days: float = 30, now: int | None = None
) -> int:
    now = bucket_clock.now() if now is None else now
    time_range = resolve_range(days, now=now)
    async with _snapshot(connection):
        return await _unique_images(RollupStore(connection), time_range, now)


async def get_stats(
    connection: asyncpg.Connection, key: str, days: float = 30, now: int | None = None
) -> list[TrafficPoint]:
    time_range = resolve_range(days, now=now)
    async with _snapshot(connection):
        store = RollupStore(connection)
        source = await _select_source(store, time_range, key)
        return await store.read_series(*source, key=key)


async def get_overview(
    connection: asyncpg.Connection,
    days: float = 7,
    limit: int = settings.TOP_IMAGES_LIMIT,
    now: int | None = None,
) -> Overview:
    if limit < 1:
        raise ValueError(f"limit must be positive, got {limit}")
    now = bucket_clock.now() if now is None else now
    time_range = resolve_range(days, now=now)
    async with _snapshot(connection):
        store = RollupStore(connection)
        return Overview(
            total_hits=await _total_hits(store, time_range),
            unique_images=await _unique_images(store, time_range, now),
            top_images=await _top_images(store, time_range, limit, now),
        )
