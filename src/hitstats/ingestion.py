from typing import Callable

from hitstats import bucket_clock
from hitstats.errors import TransientStoreError
from hitstats.granularities import FINE, GRANULARITIES, Granularity
from hitstats.logger import get_logger
from hitstats.retention import RetentionSweeper
from hitstats.store import RollupStore

logger = get_logger(__name__)


class HitRecorder:
    """Write path: fans every hit out to all granularities and prunes expired fine rows.

    Sweeps are rate-limited to one per fine period, tracked by ``last_swept_at`` on this instance,
    so independent recorders (e.g. one per shard) keep independent sweep schedules.
    """

    def __init__(
        self,
        store: RollupStore,
        sweeper: RetentionSweeper | None = None,
        clock: Callable[[], int] = bucket_clock.now,
        granularities: tuple[Granularity, ...] = GRANULARITIES,
        sweep_interval: int = FINE.period,
    ):
        self.store = store
        self.sweeper = sweeper or RetentionSweeper(store, granularities)
        self.clock = clock
        self.granularities = granularities
        self.sweep_interval = sweep_interval
        self.last_swept_at = 0

    async def record_hit(self, key: str) -> None:
        await self.record_hits(key, 1)

    async def record_hits(self, key: str, count: int) -> None:
        if not key:
            raise ValueError("key must not be empty")
        if count < 1:
            raise ValueError(f"count must be positive, got {count}")

        now = self.clock()
        # Each granularity is useful on its own, so a failed increment never undoes the others
        for granularity in self.granularities:
            try:
                await self.store.increment(granularity, key, now, count)
            except TransientStoreError:
                logger.warning(
                    "Dropped %d hit(s) for %r at %s granularity",
                    count,
                    key,
                    granularity.suffix,
                    exc_info=True,
                )

        await self.maybe_sweep(now)

    async def maybe_sweep(self, now: int) -> bool:
        if now - self.last_swept_at < self.sweep_interval:
            return False

        # Claim the slot before awaiting so concurrent callers don't sweep twice
        self.last_swept_at = now
        try:
            await self.sweeper.sweep(now)
        except TransientStoreError:
            logger.warning("Retention sweep at %d failed", now, exc_info=True)
            return False
        return True
