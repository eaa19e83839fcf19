from dataclasses import dataclass


@dataclass(frozen=True)
class Granularity:
    suffix: str
    period: int
    label: str
    retention: int | None


FINE = Granularity("10min", 600, "10min", 86_400)
MEDIUM = Granularity("1h", 3_600, "hourly", None)
COARSE = Granularity("1d", 86_400, "daily", None)

GRANULARITIES = (FINE, MEDIUM, COARSE)
