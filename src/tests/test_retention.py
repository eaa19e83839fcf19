import pytest

from hitstats.granularities import COARSE, FINE, MEDIUM
from hitstats.models import SECONDS_PER_DAY
from hitstats.retention import RetentionSweeper, retention_cutoff
from hitstats.store import table_name
from tests.utils import NOW, parse_time


def test_retention_cutoff():
    assert retention_cutoff(FINE, NOW) == NOW - SECONDS_PER_DAY
    assert retention_cutoff(FINE, NOW + 7 * 60) == NOW - SECONDS_PER_DAY
    assert retention_cutoff(MEDIUM, NOW) is None
    assert retention_cutoff(COARSE, NOW) is None


@pytest.mark.asyncio
async def test_sweep_only_prunes_expired_fine_rows(connection, store, make_hits):
    await make_hits("""
                    -2d 12:00, -1d 11:50, -1d 12:00, 11:50
        a.webp:             1,         1,         1,     1
    """)

    deleted = await RetentionSweeper(store).sweep(NOW)

    assert deleted == {FINE.suffix: 2}
    fine = await connection.fetch(f"SELECT bucket_start FROM {table_name(FINE)} ORDER BY 1")
    assert [row["bucket_start"] for row in fine] == [parse_time("-1d 12:00"), parse_time("11:50")]
    for granularity in (MEDIUM, COARSE):
        total = await connection.fetchval(f"SELECT SUM(hits) FROM {table_name(granularity)}")
        assert total == 4


@pytest.mark.asyncio
async def test_sweep_leaves_nothing_older_than_cutoff(connection, store, make_hits):
    await make_hits("""
                    -3d 08:00, -2d 23:50, -1d 11:40, -1d 12:10
        a.webp:             1,         2,         3,         4
        b.webp:             5,          ,         6,
    """)

    await RetentionSweeper(store).sweep(NOW)

    oldest = await connection.fetchval(f"SELECT MIN(bucket_start) FROM {table_name(FINE)}")
    assert oldest >= retention_cutoff(FINE, NOW)


@pytest.mark.asyncio
async def test_sweep_without_expiring_granularities(store, make_hits):
    await make_hits("""
                    -5d 12:00
        a.webp:             1
    """)

    assert await RetentionSweeper(store, (MEDIUM, COARSE)).sweep(NOW) == {}
