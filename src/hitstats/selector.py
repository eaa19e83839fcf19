"""Choosing which granularity serves a query, and how coarsely to group it.

Selection is two-staged. The requested span picks a native granularity; then the span of data
actually present picks a super-bucket multiplier so that sparse data isn't squashed into one
bucket and dense old data doesn't return thousands of points.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple

from hitstats.bucket_clock import align_down, align_up
from hitstats.granularities import COARSE, FINE, MEDIUM, Granularity
from hitstats.models import SECONDS_PER_DAY, TimeRange
from hitstats.retention import retention_cutoff

FINE_MAX_SPAN_DAYS = 1
MEDIUM_MAX_SPAN_DAYS = 30

# Actual data span (in days) above which native buckets are grouped into super-buckets.
# Medium caps near 7 * 24 = 168 points, coarse near 90 points.
SUPER_BUCKET_THRESHOLD_DAYS: dict[str, int] = {
    MEDIUM.suffix: 7,
    COARSE.suffix: 90,
}


@dataclass(frozen=True)
class SuperBucket:
    size: int
    label: str


class SourceRange(NamedTuple):
    granularity: Granularity
    start: int
    end: int


def granularity_for_span(span_days: float) -> Granularity:
    if span_days <= FINE_MAX_SPAN_DAYS:
        return FINE
    if span_days <= MEDIUM_MAX_SPAN_DAYS:
        return MEDIUM
    return COARSE


def super_bucket(granularity: Granularity, actual_span_seconds: int) -> SuperBucket:
    threshold = SUPER_BUCKET_THRESHOLD_DAYS.get(granularity.suffix)
    actual_span_days = actual_span_seconds / SECONDS_PER_DAY
    if threshold is None or actual_span_days <= threshold:
        return SuperBucket(granularity.period, granularity.label)

    multiplier = math.floor(actual_span_days / threshold)
    if multiplier <= 1:
        return SuperBucket(granularity.period, granularity.label)
    return SuperBucket(granularity.period * multiplier, f"{multiplier}{granularity.label}")


def source_range(granularity: Granularity, time_range: TimeRange) -> SourceRange:
    """Bucket bounds for reading ``time_range`` at ``granularity``.

    The start is aligned down so the bucket containing ``time_range.start`` is included.
    """
    return SourceRange(
        granularity, align_down(time_range.start, granularity.period), time_range.end
    )


def plan_disjoint_sources(time_range: TimeRange, now: int) -> list[SourceRange]:
    """Split ``time_range`` between medium and fine tables without overlap.

    Fine rows only exist inside the retention horizon, and every fine hit is also counted in
    medium. Medium serves whole hours before an hour-aligned boundary, fine serves from the
    boundary on, so each hit is counted exactly once.
    """
    cutoff = retention_cutoff(FINE, now)
    if cutoff is None:
        # Fine rows are never pruned
        return [source_range(FINE, time_range)]
    boundary = align_up(max(cutoff, time_range.start), MEDIUM.period)

    sources = []
    medium_start = align_down(time_range.start, MEDIUM.period)
    if medium_start < boundary:
        sources.append(SourceRange(MEDIUM, medium_start, min(boundary - 1, time_range.end)))
    if boundary <= time_range.end:
        sources.append(SourceRange(FINE, boundary, time_range.end))
    return sources
