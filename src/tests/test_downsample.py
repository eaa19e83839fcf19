import pytest

from hitstats.downsample import downsample


def test_series_that_fits_is_returned_unchanged():
    timestamps = [0, 600, 1_200]
    hits = [1.0, 2.0, 3.0]

    assert downsample(timestamps, hits, 0, 1_200, 10) == ([0, 600, 1_200], [1.0, 2.0, 3.0])


def test_window_is_inclusive():
    timestamps = [0, 600, 1_200, 1_800]
    hits = [1.0, 2.0, 3.0, 4.0]

    assert downsample(timestamps, hits, 600, 1_200, 10) == ([600, 1_200], [2.0, 3.0])


def test_empty_window():
    assert downsample([0, 600], [1.0, 2.0], 5_000, 6_000, 10) == ([], [])
    assert downsample([], [], 0, 6_000, 10) == ([], [])


def test_chunk_means():
    timestamps = list(range(0, 6_000, 600))
    hits = [float(i) for i in range(10)]

    # ceil(10 / 4) == 3 points per chunk, the last chunk is short
    ds_timestamps, ds_hits = downsample(timestamps, hits, 0, 6_000, 4)

    assert ds_timestamps == [0, 1_800, 3_600, 5_400]
    assert ds_hits == [1.0, 4.0, 7.0, 9.0]


def test_downsampling_twice_changes_nothing():
    timestamps = list(range(0, 600 * 1_000, 600))
    hits = [float(i % 7) for i in range(1_000)]

    once = downsample(timestamps, hits, 0, timestamps[-1], 100)
    twice = downsample(*once, 0, timestamps[-1], 100)

    assert len(once[0]) <= 100
    assert twice == once


def test_inputs_are_not_modified():
    timestamps = list(range(0, 6_000, 600))
    hits = [1.0] * 10

    downsample(timestamps, hits, 0, 6_000, 3)

    assert timestamps == list(range(0, 6_000, 600))
    assert hits == [1.0] * 10


def test_max_points_must_be_positive():
    with pytest.raises(ValueError):
        downsample([0], [1.0], 0, 0, 0)
