from hitstats.granularities import COARSE, FINE, MEDIUM
from hitstats.models import SECONDS_PER_DAY, TimeRange
from hitstats.selector import (
    SourceRange,
    SuperBucket,
    granularity_for_span,
    plan_disjoint_sources,
    source_range,
    super_bucket,
)
from tests.utils import NOW, parse_time


def test_granularity_for_span():
    assert granularity_for_span(0) is FINE
    assert granularity_for_span(1) is FINE
    assert granularity_for_span(1.01) is MEDIUM
    assert granularity_for_span(30) is MEDIUM
    assert granularity_for_span(30.5) is COARSE
    assert granularity_for_span(365) is COARSE


def test_fine_is_never_grouped():
    assert super_bucket(FINE, 5 * SECONDS_PER_DAY) == SuperBucket(600, "10min")


def test_medium_super_buckets():
    assert super_bucket(MEDIUM, 7 * SECONDS_PER_DAY) == SuperBucket(3_600, "hourly")
    # floor(13 / 7) == 1 keeps the plain label
    assert super_bucket(MEDIUM, 13 * SECONDS_PER_DAY) == SuperBucket(3_600, "hourly")
    assert super_bucket(MEDIUM, 14 * SECONDS_PER_DAY) == SuperBucket(7_200, "2hourly")
    assert super_bucket(MEDIUM, 30 * SECONDS_PER_DAY) == SuperBucket(4 * 3_600, "4hourly")


def test_coarse_super_buckets():
    assert super_bucket(COARSE, 10 * SECONDS_PER_DAY) == SuperBucket(86_400, "daily")
    assert super_bucket(COARSE, 200 * SECONDS_PER_DAY) == SuperBucket(2 * 86_400, "2daily")
    assert super_bucket(COARSE, 365 * SECONDS_PER_DAY) == SuperBucket(4 * 86_400, "4daily")


def test_source_range_aligns_start_down():
    time_range = TimeRange(parse_time("12:07"), parse_time("14:33"))

    assert source_range(FINE, time_range) == SourceRange(
        FINE, parse_time("12:00"), parse_time("14:33")
    )
    assert source_range(MEDIUM, time_range) == SourceRange(
        MEDIUM, parse_time("12:00"), parse_time("14:33")
    )


def test_disjoint_sources_split_at_hour_after_fine_cutoff():
    time_range = TimeRange(NOW - 7 * SECONDS_PER_DAY, NOW)

    # Fine cutoff is NOW - 24h, already on an hour boundary
    boundary = NOW - SECONDS_PER_DAY
    assert plan_disjoint_sources(time_range, NOW) == [
        SourceRange(MEDIUM, time_range.start, boundary - 1),
        SourceRange(FINE, boundary, NOW),
    ]


def test_disjoint_sources_round_boundary_up_to_the_hour():
    now = NOW + 25 * 60
    time_range = TimeRange(now - 3 * SECONDS_PER_DAY, now)

    # Cutoff NOW - 24h + 20min is rounded up to the next hour
    boundary = NOW - SECONDS_PER_DAY + 3_600
    sources = plan_disjoint_sources(time_range, now)

    assert sources == [
        SourceRange(MEDIUM, NOW - 3 * SECONDS_PER_DAY, boundary - 1),
        SourceRange(FINE, boundary, now),
    ]


def test_disjoint_sources_within_fine_retention():
    time_range = TimeRange(parse_time("09:00"), NOW)

    assert plan_disjoint_sources(time_range, NOW) == [SourceRange(FINE, parse_time("09:00"), NOW)]


def test_disjoint_sources_entirely_before_fine_retention():
    time_range = TimeRange(NOW - 5 * SECONDS_PER_DAY, NOW - 3 * SECONDS_PER_DAY)

    assert plan_disjoint_sources(time_range, NOW) == [
        SourceRange(MEDIUM, time_range.start, time_range.end)
    ]
