"""
Tests for infer_intervals.
"""

from datetime import datetime, timezone

import pytest

from tick_candles import BASE_DURATIONS, infer_intervals


def minutes(*values):
    return [int(v * 60) for v in values]


def test_default_catalog():
    assert tuple(BASE_DURATIONS) == (60, 120, 300)


def test_no_or_single_timestamp_infers_nothing():
    assert infer_intervals([]) == set()
    assert infer_intervals([1704067200]) == set()


def test_ticks_within_one_bucket_infer_nothing():
    # Every pair falls into the same bucket at every candidate: only one witness each.
    assert infer_intervals([0, 10, 20]) == set()


def test_scenario_infers_one_minute(scenario_observations):
    timestamps = [o.timestamp for o in scenario_observations]
    assert infer_intervals(timestamps) == {60}


def test_gap_multiple_of_candidate_is_witnessed():
    # 0, 3m, 6m
    # 1m candidate: gaps of 3m
    # 2m candidate: truncates to 0, 2m, 6m -> gaps 2m and 4m
    # 5m candidate: 0, 0, 5m -> fallback 5m plus a 5m transition
    assert infer_intervals(minutes(0, 3, 6)) == {120, 180, 240, 300}


def test_catalog_is_a_parameter(scenario_observations):
    timestamps = [o.timestamp for o in scenario_observations]
    assert infer_intervals(timestamps, base_durations=(60,)) == {60}
    assert infer_intervals(timestamps, base_durations=(120,)) == set()
    assert infer_intervals(timestamps, base_durations=(30,)) == {30}


def test_same_bucket_fallback_twice_with_different_buckets():
    # (0:00, 0:30) and (3:00, 3:30) each fall back to 1m, in different buckets.
    assert infer_intervals(minutes(0, 0.5, 3, 3.5), base_durations=(60,)) == {60, 180}


def test_pairs_follow_input_order_not_time_order():
    sorted_input = minutes(0, 1, 2)
    shuffled = minutes(2, 0, 1)
    assert infer_intervals(sorted_input, base_durations=(60,)) == {60}
    # 2m -> 0m steps back 2m, 0m -> 1m steps forward 1m
    assert infer_intervals(shuffled, base_durations=(60,)) == {60, 120}


def test_backward_step_records_absolute_gap():
    assert infer_intervals([60, 0], base_durations=(60,)) == {60}
    assert all(d > 0 for d in infer_intervals(minutes(9, 0, 4, 1)))


def test_accepts_datetimes_and_seconds_alike():
    as_datetimes = [
        datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc),
        datetime(2024, 1, 1, 0, 2, 30, tzinfo=timezone.utc),
    ]
    as_seconds = [int(dt.timestamp()) for dt in as_datetimes]
    assert infer_intervals(as_datetimes) == infer_intervals(as_seconds)


def test_rejects_non_positive_candidate():
    with pytest.raises(ValueError):
        infer_intervals([0, 60], base_durations=(60, 0))
