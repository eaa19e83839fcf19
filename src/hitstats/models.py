from dataclasses import asdict, dataclass, field
from typing import Any

SECONDS_PER_DAY = 86_400


@dataclass(frozen=True)
class TimeRange:
    """Closed interval of epoch seconds"""

    start: int
    end: int

    @property
    def span_seconds(self) -> int:
        return self.end - self.start

    @property
    def span_days(self) -> float:
        return self.span_seconds / SECONDS_PER_DAY

    def contains(self, start: float, end: float) -> bool:
        return self.start <= start and end <= self.end


@dataclass
class HitBucket:
    key: str
    bucket_start: int
    hits: int = 1

    def to_tuple(self) -> tuple[str, int, int]:
        return (self.key, self.bucket_start, self.hits)


@dataclass
class TrafficPoint:
    bucket: int
    hits: int


@dataclass
class TrafficResult:
    granularity: str
    data: list[TrafficPoint] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(point.hits for point in self.data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TopImage:
    key: str
    total: int


@dataclass
class Overview:
    total_hits: int
    unique_images: int
    top_images: list[TopImage] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
