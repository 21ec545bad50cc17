"""LaneAllocator 的测试。"""

from danmaku_models import DisplayMode
from danmaku_observer import EngineStats
from lane_allocator import LaneAllocator

SCROLL = DisplayMode.SCROLL
OCC = 3000.0
STALE = 8000.0


def test_first_free_lane_is_lowest_index():
    allocator = LaneAllocator(seed=1)
    lanes = [allocator.assign_lane(SCROLL, 0.0, 4, OCC, STALE).lane for _ in range(4)]
    assert lanes == [0, 1, 2, 3]


def test_lane_reused_after_min_occupancy():
    allocator = LaneAllocator(seed=1)
    allocator.assign_lane(SCROLL, 0.0, 2, OCC, STALE)
    allocator.assign_lane(SCROLL, 100.0, 2, OCC, STALE)
    assignment = allocator.assign_lane(SCROLL, 3000.0, 2, OCC, STALE)
    assert assignment.lane == 0
    assert not assignment.fallback


def test_fallback_when_all_lanes_busy():
    stats = EngineStats()
    allocator = LaneAllocator(seed=7)
    for _ in range(3):
        allocator.assign_lane(SCROLL, 0.0, 3, OCC, STALE, observer=stats)
    assignment = allocator.assign_lane(SCROLL, 10.0, 3, OCC, STALE, observer=stats)
    assert assignment.fallback
    assert 0 <= assignment.lane < 3
    assert stats.fallbacks == 1
    assert allocator.table(SCROLL)[assignment.lane] == 10.0


def test_fallback_sequence_is_reproducible_with_seed():
    def run():
        allocator = LaneAllocator(seed=123)
        return [allocator.assign_lane(SCROLL, float(i), 2, OCC, STALE).lane for i in range(20)]

    assert run() == run()


def test_groups_are_independent():
    allocator = LaneAllocator(seed=1)
    allocator.assign_lane(SCROLL, 0.0, 3, OCC, STALE)
    assert allocator.assign_lane(DisplayMode.TOP, 0.0, 3, 3500.0, STALE).lane == 0
    assert allocator.assign_lane(DisplayMode.BOTTOM, 0.0, 3, 3500.0, STALE).lane == 0
    assert allocator.table(SCROLL) == {0: 0.0}


def test_stale_entries_are_evicted():
    allocator = LaneAllocator(seed=1)
    allocator.assign_lane(SCROLL, 0.0, 3, OCC, STALE)
    allocator.assign_lane(SCROLL, 9000.0, 3, OCC, STALE)
    assert allocator.table(SCROLL) == {0: 9000.0}


def test_table_is_a_copy():
    allocator = LaneAllocator(seed=1)
    allocator.assign_lane(SCROLL, 0.0, 3, OCC, STALE)
    allocator.table(SCROLL)[0] = -1.0
    assert allocator.table(SCROLL)[0] == 0.0


def test_allow_overlap_never_reports_fallback():
    stats = EngineStats()
    allocator = LaneAllocator(seed=3)
    for _ in range(10):
        assignment = allocator.assign_lane(SCROLL, 0.0, 2, OCC, STALE, allow_overlap=True, observer=stats)
        assert not assignment.fallback
    assert stats.fallbacks == 0


def test_clear_and_history():
    allocator = LaneAllocator(seed=1, history_size=2)
    for i in range(3):
        allocator.assign_lane(SCROLL, float(i), 3, OCC, STALE)
    assert len(allocator.history) == 2
    allocator.clear()
    assert allocator.table(SCROLL) == {}
    assert allocator.assign_lane(SCROLL, 5.0, 3, OCC, STALE).lane == 0
