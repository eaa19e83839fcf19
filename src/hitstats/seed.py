"""Fill the database with a synthetic history of image traffic.

Traffic follows weekday, business-hour and seasonal cycles with an overall growth trend. Images
appear at staggered dates, drift in popularity, get a boost while new, and some go viral for a
couple of weeks. Older history is written at medium and coarse granularity only, the last 24
hours at every granularity, mirroring what the live write path leaves behind after retention.
"""

import argparse
import asyncio
import datetime
import itertools
import random
import string
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TypeVar

import asyncpg
from rich.console import Console
from rich.table import Table

from hitstats import bucket_clock, settings
from hitstats.granularities import COARSE, FINE, GRANULARITIES, MEDIUM, Granularity
from hitstats.models import SECONDS_PER_DAY, HitBucket
from hitstats.store import RollupStore, table_name

KEY_ALPHABET = string.ascii_letters + string.digits + "_-"
VIRAL_WINDOW = 7 * SECONDS_PER_DAY


@dataclass
class Image:
    key: str
    introduced_at: int
    base_popularity: float
    trend_factor: float
    viral_peak: int | None = None


def make_images(count: int, start: int, end: int, rng: random.Random) -> list[Image]:
    images = []
    for _ in range(count):
        introduced_at = rng.randint(start, end)
        image = Image(
            key="".join(rng.choices(KEY_ALPHABET, k=12)) + ".webp",
            introduced_at=introduced_at,
            # Skew toward low popularity
            base_popularity=rng.random() ** 1.5,
            trend_factor=(rng.random() - 0.5) * 0.8,
        )
        if rng.random() < 0.1:
            image.viral_peak = rng.randint(introduced_at, end)
        images.append(image)
    return images


def _popularity(image: Image, timestamp: int) -> float:
    age_days = (timestamp - image.introduced_at) / SECONDS_PER_DAY
    trended = image.base_popularity + image.trend_factor * min(age_days / 180, 1)

    viral_boost = 1.0
    if image.viral_peak is not None:
        distance = abs(timestamp - image.viral_peak)
        if distance < VIRAL_WINDOW:
            viral_boost = 1 + 5 * (1 - distance / VIRAL_WINDOW)

    new_image_boost = 1 + (3 - age_days) * 0.5 if age_days < 3 else 1.0
    return trended * viral_boost * new_image_boost


def _activity(
    timestamp: int, start: int, end: int, base: float, rng: random.Random
) -> float:
    moment = datetime.datetime.fromtimestamp(timestamp, datetime.timezone.utc)
    weekday = 0.6 if moment.weekday() >= 5 else 1.0
    hourly = 1.2 + rng.random() * 0.4 if 9 <= moment.hour <= 17 else 0.4 + rng.random() * 0.3
    seasonal = 1.3 if 6 <= moment.month <= 9 else 0.9
    growth = 0.7 + 0.6 * (timestamp - start) / max(end - start, 1)
    noise = 0.85 + rng.random() * 0.3
    return base * weekday * hourly * seasonal * growth * noise


def generate_hits(
    images: list[Image],
    start: int,
    end: int,
    step: int,
    base_activity: float,
    max_hits: int,
    rng: random.Random,
) -> Iterator[HitBucket]:
    """Yield one ``HitBucket`` per image that received traffic in each ``step`` from start to end"""
    for timestamp in range(bucket_clock.align_down(start, step), end, step):
        activity = _activity(timestamp, start, end, base_activity, rng)
        for image in images:
            if timestamp < image.introduced_at:
                continue
            if rng.random() < activity * _popularity(image, timestamp):
                # Power law: mostly small counts, occasionally large ones
                hits = max(1, int(rng.random() ** 3 * max_hits))
                yield HitBucket(image.key, timestamp, hits)


T = TypeVar("T")


def _chunkify(iterable: Iterable[T], chunk_size: int) -> Iterator[list[T]]:
    for _, enumerated_chunk in itertools.groupby(
        enumerate(iterable), lambda i: i[0] // chunk_size
    ):
        yield [item for _, item in enumerated_chunk]


async def _write(
    store: RollupStore, granularities: tuple[Granularity, ...], buckets: Iterable[HitBucket]
) -> int:
    total = 0
    for chunk in _chunkify(buckets, 50_000):
        for granularity in granularities:
            await store.increment_many(granularity, chunk)
        total += sum(bucket.hits for bucket in chunk)
    return total


async def seed(
    connection: asyncpg.Connection,
    days: int = 365,
    image_count: int = 500,
    rng_seed: int | None = None,
    now: int | None = None,
) -> dict[str, int]:
    """Write synthetic traffic and return the number of hits written per phase"""
    rng = random.Random(rng_seed)
    now = bucket_clock.now() if now is None else now
    start = now - days * SECONDS_PER_DAY
    fine_start = now - FINE.retention if FINE.retention is not None else now
    fine_start = max(fine_start, start)

    images = make_images(image_count, start, now, rng)
    store = RollupStore(connection)

    print(f"Seeding hourly data ({days} days ago until the 10-minute window)...")
    historical = await _write(
        store,
        (MEDIUM, COARSE),
        generate_hits(images, start, fine_start, MEDIUM.period, 0.25, 200, rng),
    )
    print("Seeding 10-minute data (retention window)...")
    recent = await _write(
        store,
        GRANULARITIES,
        generate_hits(images, fine_start, now + 1, FINE.period, 0.35, 100, rng),
    )
    return {"historical": historical, "recent": recent}


async def print_summary(connection: asyncpg.Connection, console: Console) -> None:
    table = Table(title="Seeded hit buckets")
    table.add_column("Table")
    table.add_column("Rows", justify="right")
    table.add_column("Hits", justify="right")
    table.add_column("Keys", justify="right")
    table.add_column("From")
    table.add_column("To")

    for granularity in GRANULARITIES:
        row = await connection.fetchrow(f"""
            SELECT COUNT(*) AS rows, COALESCE(SUM(hits), 0)::bigint AS hits,
                   COUNT(DISTINCT key) AS keys,
                   MIN(bucket_start) AS first, MAX(bucket_start) AS last
            FROM {table_name(granularity)}
        """)
        first, last = (
            datetime.datetime.fromtimestamp(ts, datetime.timezone.utc).isoformat()
            if ts is not None
            else "-"
            for ts in (row["first"], row["last"])
        )
        table.add_row(
            table_name(granularity),
            f"{row['rows']:,}",
            f"{row['hits']:,}",
            f"{row['keys']:,}",
            first,
            last,
        )
    console.print(table)


async def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the database with synthetic traffic")
    parser.add_argument("--days", type=int, default=365, help="Days of history to generate")
    parser.add_argument("--images", type=int, default=500, help="Number of distinct images")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for repeatable data")
    args = parser.parse_args()

    console = Console()
    connection = await asyncpg.connect(**settings.connect_kwargs())
    try:
        written = await seed(connection, args.days, args.images, args.seed)
        console.print(
            f"[green]✓[/green] Wrote {written['historical']:,} historical and "
            f"{written['recent']:,} recent hits"
        )
        await print_summary(connection, console)
    finally:
        await connection.close()


if __name__ == "__main__":
    asyncio.run(main())
