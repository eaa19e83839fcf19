"""Alignment of epoch-second timestamps to bucket boundaries.

The same functions are used when writing and when reading, so a bucket computed from "now" at
ingestion time is the bucket that reads group by.
"""

import math
import time


def now() -> int:
    return int(time.time())


def align_down(timestamp: float, period: int) -> int:
    timestamp = math.floor(timestamp)
    return timestamp - timestamp % period


def align_up(timestamp: float, period: int) -> int:
    timestamp = math.ceil(timestamp)
    return timestamp + (-timestamp) % period
