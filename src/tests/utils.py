import re

# 2024-01-01T00:00:00Z
BASE_DAY = 1_704_067_200
NOW = BASE_DAY + 12 * 3_600


def parse_time(text: str) -> int:
    """Epoch seconds for ``"HH:MM"`` on the base day, or ``"-3d HH:MM"`` days before it."""
    match = re.fullmatch(r"(?:(-?\d+)d\s+)?(\d{1,2}):(\d{2})", text.strip())
    if match is None:
        raise ValueError(f"Invalid time: {text!r}")
    days, hours, minutes = match.groups()
    return BASE_DAY + int(days or 0) * 86_400 + int(hours) * 3_600 + int(minutes) * 60


class Clock:
    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds
