"""Rendering-side level-of-detail cache for the traffic chart.

A ``ChartSession`` belongs to one dashboard instance. It keeps at most one fetched series per
granularity slot and answers pan/zoom requests from whichever slot covers the viewport, falling
back to any cached series as a visual stand-in while the right granularity is fetched.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping

from hitstats import settings
from hitstats.downsample import MAX_POINTS, downsample
from hitstats.errors import InvalidRangeError
from hitstats.granularities import GRANULARITIES, Granularity
from hitstats.logger import get_logger
from hitstats.models import SECONDS_PER_DAY, TimeRange, TrafficResult
from hitstats.selector import granularity_for_span, super_bucket

logger = get_logger(__name__)

# Finest first; lookups prefer earlier slots
SLOT_ORDER: tuple[str, ...] = tuple(g.label for g in GRANULARITIES)


class SlotState(enum.Enum):
    EMPTY = "empty"
    FETCHING = "fetching"
    POPULATED = "populated"


@dataclass
class LodCacheEntry:
    granularity: str
    covered_range: TimeRange
    timestamps: list[int]
    hits: list[float]
    label: str = ""

    @property
    def bucket_size(self) -> int:
        granularity, multiplier = parse_label(self.label or self.granularity)
        return granularity.period * multiplier


@dataclass(frozen=True)
class TrafficQuery:
    days: float | None = None
    start: int | None = None
    end: int | None = None

    @property
    def window(self) -> TimeRange | None:
        if self.start is None or self.end is None:
            return None
        return TimeRange(self.start, self.end)


@dataclass
class Frame:
    granularity: str
    window: TimeRange
    timestamps: list[int]
    hits: list[float]
    approximate: bool = False


FetchTraffic = Callable[[TrafficQuery], Awaitable[TrafficResult]]


def parse_label(label: str) -> tuple[Granularity, int]:
    """Split a server label such as ``"3hourly"`` into its granularity and bucket multiplier"""
    for granularity in GRANULARITIES:
        if label == granularity.label:
            return granularity, 1
        multiplier = label.removesuffix(granularity.label)
        if multiplier != label and multiplier.isdigit() and int(multiplier) > 0:
            return granularity, int(multiplier)
    raise ValueError(f"Unknown granularity label: {label!r}")


def slot_for_label(label: str) -> str:
    """Map a server granularity label (``"10min"``, ``"3hourly"``, ...) to its cache slot"""
    return parse_label(label)[0].label


def granularity_for_range(start: float, end: float) -> str:
    return granularity_for_span((end - start) / SECONDS_PER_DAY).label


def covering_cache_for(
    entries: Mapping[str, LodCacheEntry], min_x: float, max_x: float
) -> LodCacheEntry | None:
    for slot in SLOT_ORDER:
        entry = entries.get(slot)
        if entry is not None and entry.covered_range.contains(min_x, max_x):
            return entry
    return None


def best_cache_for(
    entries: Mapping[str, LodCacheEntry], min_x: float, max_x: float
) -> LodCacheEntry | None:
    """The finest entry covering ``[min_x, max_x]``, else any populated entry, else ``None``"""
    if (entry := covering_cache_for(entries, min_x, max_x)) is not None:
        return entry
    for slot in SLOT_ORDER:
        if (entry := entries.get(slot)) is not None:
            return entry
    return None


class LodCache:
    def __init__(self) -> None:
        self.entries: dict[str, LodCacheEntry] = {}
        self.states: dict[str, SlotState] = {slot: SlotState.EMPTY for slot in SLOT_ORDER}

    def clear(self) -> None:
        self.entries.clear()
        self.states = {slot: SlotState.EMPTY for slot in SLOT_ORDER}

    def mark_fetching(self, slot: str) -> None:
        self.states[slot] = SlotState.FETCHING

    def mark_settled(self, slot: str) -> None:
        self.states[slot] = SlotState.POPULATED if slot in self.entries else SlotState.EMPTY

    def store(self, result: TrafficResult, window: TimeRange | None = None) -> LodCacheEntry | None:
        """Replace the slot for ``result`` wholesale; never merges with the previous entry.

        ``window`` is the range that was requested, if any: the server returned everything inside
        it, so the entry covers it even where there were no hits.
        """
        if not result.data:
            return None

        slot = slot_for_label(result.granularity)
        timestamps = [point.bucket for point in result.data]
        hits = [float(point.hits) for point in result.data]
        covered = TimeRange(timestamps[0], timestamps[-1])
        if window is not None:
            covered = TimeRange(min(window.start, covered.start), max(window.end, covered.end))

        entry = LodCacheEntry(slot, covered, timestamps, hits, result.granularity)
        self.entries[slot] = entry
        self.states[slot] = SlotState.POPULATED
        return entry


class ChartSession:
    """Pan/zoom state machine for one rendered chart.

    Interaction methods render synchronously from the cache and schedule at most one fetch;
    issuing a new fetch cancels the previous one, and a stale response that arrives anyway is
    discarded. Fetch failures keep the cache as it was and only clear ``loading``.
    """

    def __init__(
        self,
        fetch_traffic: FetchTraffic,
        days: float = settings.DEFAULT_DAYS,
        width: int = MAX_POINTS,
        on_render: Callable[[Frame], None] | None = None,
    ):
        self.fetch_traffic = fetch_traffic
        self.days = days
        self.max_points = min(max(width, 1), MAX_POINTS)
        self.on_render = on_render
        self.cache = LodCache()
        self.current_range: TimeRange | None = None
        self.original_range: TimeRange | None = None
        self.frame: Frame | None = None
        self.loading = False
        self._inflight: asyncio.Task[None] | None = None
        self._target = SLOT_ORDER[0]
        self._generation = 0

    @property
    def viewport(self) -> TimeRange | None:
        return self.current_range or self.original_range

    def load(self, days: float | None = None) -> None:
        """Full-range load: forget everything and request the last ``days`` days"""
        if days is not None:
            self.days = days
        self.current_range = None
        self.original_range = None
        self.cache.clear()
        self._fetch(TrafficQuery(days=self.days), granularity_for_span(self.days).label)

    def zoom(self, start: int, end: int) -> Frame | None:
        if end < start:
            raise InvalidRangeError(f"end ({end}) is before start ({start})")

        self.current_range = TimeRange(start, end)
        frame = self.render(start, end)
        if not self._satisfied(start, end):
            self._fetch(TrafficQuery(start=start, end=end), granularity_for_range(start, end))
        return frame

    def view(self, min_x: float, max_x: float) -> Frame | None:
        return self.render(min_x, max_x)

    def reset(self) -> Frame | None:
        self.current_range = None
        frame = None
        if self.original_range is not None:
            frame = self.render(self.original_range.start, self.original_range.end)
        self._fetch(TrafficQuery(days=self.days), granularity_for_span(self.days).label)
        return frame

    def resize(self, width: int) -> Frame | None:
        self.max_points = min(max(width, 1), MAX_POINTS)
        if (viewport := self.viewport) is None:
            return None
        return self.render(viewport.start, viewport.end)

    def render(self, min_x: float, max_x: float) -> Frame | None:
        entry = best_cache_for(self.cache.entries, min_x, max_x)
        if entry is None:
            return None

        timestamps, hits = downsample(
            entry.timestamps, entry.hits, min_x, max_x, self.max_points
        )
        if not timestamps:
            return None

        self.frame = Frame(
            granularity=entry.granularity,
            window=TimeRange(int(min_x), int(max_x)),
            timestamps=timestamps,
            hits=hits,
            approximate=not entry.covered_range.contains(min_x, max_x),
        )
        if self.on_render is not None:
            self.on_render(self.frame)
        return self.frame

    async def wait(self) -> None:
        """Wait until no fetch is outstanding (including fetches issued meanwhile)"""
        while self._inflight is not None and not self._inflight.done():
            await asyncio.wait({self._inflight})

    def _satisfied(self, start: int, end: int) -> bool:
        entry = covering_cache_for(self.cache.entries, start, end)
        if entry is None:
            return False
        # The server never groups this window more coarsely than this
        span = end - start
        expected = super_bucket(granularity_for_span(span / SECONDS_PER_DAY), span)
        return entry.bucket_size <= expected.size

    def _fetch(self, query: TrafficQuery, target: str) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
            self.cache.mark_settled(self._target)

        self._generation += 1
        self._target = target
        self.cache.mark_fetching(target)
        self.loading = True
        self._inflight = asyncio.create_task(self._run_fetch(query, target, self._generation))

    async def _run_fetch(self, query: TrafficQuery, target: str, generation: int) -> None:
        try:
            result = await self.fetch_traffic(query)
        except Exception:
            logger.warning("Traffic fetch for %s failed", query, exc_info=True)
            if generation == self._generation:
                self.cache.mark_settled(target)
                self.loading = False
            return

        if generation != self._generation:
            logger.debug("Discarding stale traffic response for %s", query)
            return

        self.loading = False
        entry = self.cache.store(result, query.window)
        self.cache.mark_settled(target)
        if entry is None:
            return

        if self.current_range is None:
            self.original_range = entry.covered_range
        viewport = self.current_range or entry.covered_range
        self.render(viewport.start, viewport.end)
