import dataclasses

import pytest

from propdetect.types import (
    BlockStats,
    DetectionResult,
    Event,
    GlobalStats,
    PropellerDetection,
)


def test_event_defaults_are_zero():
    assert Event() == Event(0, 0, 0, 0)


def test_event_equality_compares_all_fields():
    assert Event(3, 4, 1, 100) == Event(3, 4, 1, 100)
    assert Event(3, 4, 1, 100) != Event(3, 4, 0, 100)
    assert Event(3, 4, 1, 100) != Event(3, 4, 1, 101)


def test_event_is_immutable_and_hashable():
    event = Event(1, 2, 1, 10)
    with pytest.raises(dataclasses.FrozenInstanceError):
        event.x = 5
    assert {event, Event(1, 2, 1, 10)} == {event}


def test_event_replace_builds_new_event():
    moved = dataclasses.replace(Event(1, 2, 1, 10), x=7)
    assert (moved.x, moved.y, moved.p, moved.t) == (7, 2, 1, 10)


def test_block_stats_initial_markers():
    stats = BlockStats()
    assert stats.last_timestamp == -1
    assert stats.e_x_of_std == -1
    assert stats.in_burst is False
    assert stats.burst_std_estimated_ratio == 0
    assert stats.burst_ts == []


def test_block_stats_lists_are_not_shared():
    first, second = BlockStats(), BlockStats()
    first.burst_ts.append(42)
    first.burst_distances_us.append(7)
    assert second.burst_ts == []
    assert second.burst_distances_us == []


def test_global_stats_start_at_zero():
    stats = GlobalStats()
    assert all(value == 0.0 for value in dataclasses.astuple(stats))


def test_propeller_detection_fields():
    detection = PropellerDetection(scale=3, block_m=4, block_n=5)
    assert (detection.scale, detection.block_m, detection.block_n) == (3, 4, 5)
    with pytest.raises(dataclasses.FrozenInstanceError):
        detection.scale = 1


def test_detection_result_defaults():
    result = DetectionResult()
    assert result.stats is None
    assert result.is_peak is False
    assert (result.x, result.ts, result.queue_length, result.missed_results) == (0, 0, 0, 0)


def test_detection_result_keeps_stats_reference():
    grid = [[[[BlockStats()]]]]
    result = DetectionResult(grid)
    grid[0][0][0][0].t_high = 9
    assert result.stats[0][0][0][0].t_high == 9