"""QualityFilter 的单元测试。"""

import pytest

from conftest import make_event
from danmaku_models import NormalizedEvent, DisplayMode
from quality_filter import is_admissible, is_low_information, non_linguistic_ratio


class TestBaseChecks:
    def test_too_short_rejected_at_every_level(self):
        for level in range(4):
            assert not is_admissible(make_event("a", 1.0), level)

    def test_too_long_rejected(self):
        assert not is_admissible(make_event("x" * 51, 1.0), 0)
        assert is_admissible(make_event("ab" * 25, 1.0), 0)

    def test_whitespace_only_rejected(self):
        assert not is_admissible(make_event("    ", 1.0), 0)

    def test_text_is_trimmed_before_length_check(self):
        assert not is_admissible(make_event("  a  ", 1.0), 0)


class TestLowInformation:
    def test_repeated_digits_rejected_at_level_one_only(self):
        event = make_event("666666", 1.0)
        assert not is_admissible(event, 1)
        assert is_admissible(event, 0)

    @pytest.mark.parametrize("text", ["哈哈哈哈", "好好好", "abab", "？？？", "12345", "!!!..."])
    def test_low_information_patterns(self, text):
        assert is_low_information(text)
        assert not is_admissible(make_event(text, 1.0), 1)

    @pytest.mark.parametrize("text", ["hi there", "好看", "前方高能", "第2集最好看"])
    def test_normal_text_is_not_low_information(self, text):
        assert not is_low_information(text)
        assert is_admissible(make_event(text, 1.0), 1)


class TestStricterLevels:
    def test_symbol_heavy_text_rejected_from_level_two(self):
        event = make_event("hi ★★★★", 1.0)
        assert non_linguistic_ratio("hi ★★★★") > 0.3
        assert is_admissible(event, 1)
        assert not is_admissible(event, 2)

    def test_normal_punctuation_is_linguistic(self):
        assert non_linguistic_ratio("好看！真的，好看。") == 0.0

    def test_short_text_rejected_at_level_three(self):
        event = make_event("好看", 1.0)
        assert is_admissible(event, 2)
        assert not is_admissible(event, 3)
        assert is_admissible(make_event("hi there", 1.0), 3)


def test_filter_is_pure_and_repeatable():
    event = make_event("666666", 3.0)
    results = [is_admissible(event, level) for level in range(4)]
    assert results == [is_admissible(event, level) for level in range(4)]


def test_accepts_normalized_events():
    event = NormalizedEvent("hello world", 1.0, None, DisplayMode.TOP, 100.0, 0)
    assert is_admissible(event, 3)
