import bisect
import math
from typing import Sequence

from hitstats import settings

MAX_POINTS = settings.MAX_CHART_POINTS


def downsample(
    timestamps: Sequence[int],
    hits: Sequence[float],
    min_x: float,
    max_x: float,
    max_points: int,
) -> tuple[list[int], list[float]]:
    """Reduce the part of a series inside ``[min_x, max_x]`` to at most ``max_points`` points.

    ``timestamps`` must be ascending and parallel to ``hits``. The window slice is returned as-is
    when it already fits; otherwise it is cut into contiguous chunks of
    ``ceil(len / max_points)`` points and each chunk becomes one point: its first timestamp and
    the mean of its hits. Inputs are never modified, and downsampling the output again with the
    same window and budget returns it unchanged.
    """
    if max_points < 1:
        raise ValueError(f"max_points must be positive, got {max_points}")

    start = bisect.bisect_left(timestamps, min_x)
    stop = bisect.bisect_right(timestamps, max_x)
    if stop <= start:
        return [], []

    ts_slice = list(timestamps[start:stop])
    hits_slice = list(hits[start:stop])
    if len(ts_slice) <= max_points:
        return ts_slice, hits_slice

    chunk_size = math.ceil(len(ts_slice) / max_points)
    ds_timestamps: list[int] = []
    ds_hits: list[float] = []
    for i in range(0, len(ts_slice), chunk_size):
        chunk = hits_slice[i : i + chunk_size]
        ds_timestamps.append(ts_slice[i])
        ds_hits.append(sum(chunk) / len(chunk))
    return ds_timestamps, ds_hits
