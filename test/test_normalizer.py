"""Deduplicator/Normalizer 以及宽度估算的测试。"""

import pytest

from conftest import make_event
from danmaku_models import CommentEvent, DisplayMode, estimate_text_width
from danmaku_normalizer import normalize_events
from danmaku_observer import EngineStats


class TestWidthEstimation:
    def test_narrow_text(self):
        assert estimate_text_width("hi there", 16) == pytest.approx(8 * 16 * 0.6 + 16)

    def test_wide_text(self):
        assert estimate_text_width("你好", 16) == pytest.approx(2 * 16 + 16)

    def test_mixed_text(self):
        assert estimate_text_width("好a", 20) == pytest.approx(20 + 12 + 16)

    def test_monotonic_in_length_and_font_size(self):
        assert estimate_text_width("abc", 16) < estimate_text_width("abcd", 16)
        assert estimate_text_width("abc", 16) < estimate_text_width("abc", 24)
        assert estimate_text_width("ab", 16) < estimate_text_width("你好", 16)


class TestNormalize:
    def test_empty_input(self):
        assert normalize_events([], 16) == []
        assert normalize_events(None, 16) == []

    def test_sorted_by_time_with_stable_ties(self):
        raw = [make_event("third", 3.0), make_event("first", 1.0),
               make_event("fourth", 3.0), make_event("second", 2.0)]
        result = normalize_events(raw, 16)
        assert [e.text for e in result] == ["first", "second", "third", "fourth"]
        assert [e.seq for e in result] == [1, 3, 0, 2]

    def test_duplicates_within_one_second_keep_first_occurrence(self):
        raw = [make_event("hey", 5.0), make_event("hey", 4.5), make_event("hey", 6.2)]
        result = normalize_events(raw, 16)
        assert [e.time for e in result] == [5.0, 6.2]

    def test_duplicate_window_is_strict(self):
        raw = [make_event("a b", 1.0), make_event("a b", 2.0), make_event("a b", 2.5)]
        result = normalize_events(raw, 16)
        assert [e.time for e in result] == [1.0, 2.0]

    def test_dropped_duplicates_still_count_as_earlier_occurrences(self):
        stats = EngineStats()
        raw = [make_event("same", 0.0), make_event("same", 0.8), make_event("same", 1.6)]
        result = normalize_events(raw, 16, stats)
        assert [e.time for e in result] == [0.0]
        assert stats.dropped["duplicate"] == 2

    def test_later_input_near_earlier_input_is_dropped_regardless_of_time_order(self):
        raw = [make_event("same", 3.0), make_event("same", 1.0), make_event("same", 2.2)]
        assert [e.time for e in normalize_events(raw, 16)] == [1.0, 3.0]

    def test_large_spam_input(self):
        raw = [make_event("哈哈哈哈", i * 0.5) for i in range(20000)]
        raw.append(make_event("哈哈哈哈", 20000.0))
        result = normalize_events(raw, 16)
        assert [e.time for e in result] == [0.0, 20000.0]

    def test_same_time_different_text_both_kept(self):
        raw = [make_event("one", 1.0), make_event("two", 1.0)]
        assert len(normalize_events(raw, 16)) == 2

    def test_malformed_events_dropped_and_counted(self):
        stats = EngineStats()
        raw = [
            make_event("   ", 1.0),
            make_event("ok", -1.0),
            make_event("nan", float("nan")),
            make_event("x" * 101, 2.0),
            make_event("fine", 2.0),
        ]
        result = normalize_events(raw, 16, stats)
        assert [e.text for e in result] == ["fine"]
        assert stats.dropped["malformed"] == 4

    def test_text_trimmed_and_fields_carried(self):
        raw = [CommentEvent(" hello ", 1.5, "#ff0000", DisplayMode.TOP)]
        (event,) = normalize_events(raw, 16)
        assert event.text == "hello"
        assert event.color == "#ff0000"
        assert event.mode is DisplayMode.TOP
        assert event.estimated_width == estimate_text_width("hello", 16)

    def test_trimmed_text_used_for_duplicate_detection(self):
        raw = [make_event("hello", 1.0), make_event(" hello", 1.2)]
        assert len(normalize_events(raw, 16)) == 1
