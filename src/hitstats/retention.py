from hitstats.bucket_clock import align_down
from hitstats.granularities import GRANULARITIES, Granularity
from hitstats.logger import get_logger
from hitstats.store import RollupStore

logger = get_logger(__name__)


def retention_cutoff(granularity: Granularity, now: int) -> int | None:
    """Oldest ``bucket_start`` that survives a sweep at ``now``, or ``None`` if never pruned"""
    if granularity.retention is None:
        return None
    return align_down(now - granularity.retention, granularity.period)


class RetentionSweeper:
    def __init__(
        self, store: RollupStore, granularities: tuple[Granularity, ...] = GRANULARITIES
    ):
        self.store = store
        self.granularities = granularities

    async def sweep(self, now: int) -> dict[str, int]:
        """Delete expired rows from every granularity that has a retention horizon.

        Only rows strictly older than the cutoff are touched, so rows written concurrently for
        current buckets are unaffected.

        Returns the number of deleted rows per granularity suffix.
        """
        deleted: dict[str, int] = {}
        for granularity in self.granularities:
            cutoff = retention_cutoff(granularity, now)
            if cutoff is None:
                continue
            deleted[granularity.suffix] = await self.store.delete_before(granularity, cutoff)
            logger.debug(
                "Swept %d rows older than %d from %s",
                deleted[granularity.suffix],
                cutoff,
                granularity.suffix,
            )
        return deleted
