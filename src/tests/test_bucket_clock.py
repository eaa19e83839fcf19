from hitstats.bucket_clock import align_down, align_up
from tests.utils import BASE_DAY, parse_time


def test_align_down():
    assert align_down(parse_time("12:07"), 600) == parse_time("12:00")
    assert align_down(parse_time("12:59"), 3_600) == parse_time("12:00")
    assert align_down(parse_time("23:59"), 86_400) == BASE_DAY


def test_align_down_is_idempotent():
    for period in (600, 3_600, 86_400):
        aligned = align_down(parse_time("17:43") + 13, period)
        assert align_down(aligned, period) == aligned
        assert aligned % period == 0


def test_align_down_on_boundary_is_unchanged():
    assert align_down(parse_time("12:10"), 600) == parse_time("12:10")


def test_align_down_floors_fractional_seconds():
    assert align_down(parse_time("12:10") + 0.75, 600) == parse_time("12:10")


def test_align_up():
    assert align_up(parse_time("12:01"), 600) == parse_time("12:10")
    assert align_up(parse_time("12:00"), 3_600) == parse_time("12:00")
    assert align_up(parse_time("12:00") + 0.5, 3_600) == parse_time("13:00")
