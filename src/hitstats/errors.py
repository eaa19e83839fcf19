class HitStatsError(Exception):
    """Base class for errors raised by hitstats"""


class TransientStoreError(HitStatsError):
    """The underlying row store is unavailable, locked or timed out.

    Writes treat this as acceptable data loss; reads let it propagate to the caller.
    """


class InvalidRangeError(HitStatsError, ValueError):
    """A query time range is malformed (e.g. end before start)"""
