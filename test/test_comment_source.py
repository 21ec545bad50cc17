"""弹幕缓存与数据源的测试。"""

import asyncio
import json
import os

from comment_cache import CACHE_PREFIX, CommentCache, make_key
from comment_source import BaseCommentProvider, LocalFileProvider, fetch_comments
from conftest import FakeClock, make_event
from danmaku_models import DisplayMode


class StubProvider(BaseCommentProvider):
    def __init__(self, events=None, error=None):
        self.events = events or []
        self.error = error
        self.calls = 0

    async def fetch(self, title, episode=None, video_id=None):
        self.calls += 1
        if self.error:
            raise self.error
        return self.events


class TestMakeKey:
    def test_key_is_stable_and_prefixed(self):
        key = make_key("某番剧", "3", "BV1xx")
        assert key == make_key("某番剧", "3", "BV1xx")
        assert key.startswith(CACHE_PREFIX)
        assert len(key) <= len(CACHE_PREFIX) + 50

    def test_missing_parts_use_defaults(self):
        assert make_key("title") == make_key("title", "default", "unknown")
        assert make_key("title", "1") != make_key("title", "2")


class TestCommentCache:
    def test_set_and_get(self, tmp_path):
        cache = CommentCache(str(tmp_path / "cache"))
        events = [make_event("hello", 1.0, color="#ff0000"), make_event("顶部", 2.0, mode=DisplayMode.TOP)]
        assert cache.set("k", events)
        assert cache.get("k") == events

    def test_miss(self, tmp_path):
        assert CommentCache(str(tmp_path)).get("nothing") is None

    def test_expired_entry_is_removed(self, tmp_path):
        clock = FakeClock()
        cache = CommentCache(str(tmp_path), ttl_s=60, time_source=clock)
        cache.set("k", [make_event("hello", 1.0)])
        clock.advance(59)
        assert cache.get("k") is not None
        clock.advance(1)
        assert cache.get("k") is None
        assert not os.path.exists(tmp_path / "k.json")

    def test_corrupt_file_is_a_miss(self, tmp_path):
        (tmp_path / "k.json").write_text("{oops", encoding="utf-8")
        assert CommentCache(str(tmp_path)).get("k") is None

    def test_bad_payload_is_a_miss(self, tmp_path):
        payload = {"expires_at": 1e12, "data": [{"time": 1.0}]}
        (tmp_path / "k.json").write_text(json.dumps(payload), encoding="utf-8")
        assert CommentCache(str(tmp_path)).get("k") is None

    def test_clear_expired(self, tmp_path):
        clock = FakeClock()
        cache = CommentCache(str(tmp_path), ttl_s=60, time_source=clock)
        old_key = make_key("old")
        new_key = make_key("new")
        cache.set(old_key, [make_event("old one", 1.0)])
        clock.advance(30)
        cache.set(new_key, [make_event("new one", 1.0)])
        (tmp_path / "unrelated.json").write_text("{}", encoding="utf-8")

        clock.advance(40)
        assert cache.clear_expired() == 1
        assert cache.get(old_key) is None
        assert cache.get(new_key) is not None
        assert (tmp_path / "unrelated.json").exists()

    def test_clear_expired_without_directory(self, tmp_path):
        assert CommentCache(str(tmp_path / "missing")).clear_expired() == 0


class TestFetchComments:
    def test_provider_result_is_cached(self, tmp_path):
        cache = CommentCache(str(tmp_path))
        provider = StubProvider([make_event("hello", 1.0)])

        first = asyncio.run(fetch_comments("show", "1", provider=provider, cache=cache))
        second = asyncio.run(fetch_comments("show", "1", provider=provider, cache=cache))
        assert first == second == [make_event("hello", 1.0)]
        assert provider.calls == 1

    def test_provider_error_returns_empty(self, tmp_path):
        cache = CommentCache(str(tmp_path))
        provider = StubProvider(error=RuntimeError("network down"))
        assert asyncio.run(fetch_comments("show", provider=provider, cache=cache)) == []
        assert os.listdir(tmp_path) == []

    def test_empty_result_is_not_cached(self, tmp_path):
        cache = CommentCache(str(tmp_path))
        provider = StubProvider([])
        assert asyncio.run(fetch_comments("show", provider=provider, cache=cache)) == []
        asyncio.run(fetch_comments("show", provider=provider, cache=cache))
        assert provider.calls == 2

    def test_without_cache(self):
        provider = StubProvider([make_event("hello", 1.0)])
        assert len(asyncio.run(fetch_comments("show", provider=provider))) == 1


class TestLocalFileProvider:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "comments.json"
        path.write_text(json.dumps([{"text": "from file", "time": 2}]), encoding="utf-8")
        events = asyncio.run(fetch_comments("show", provider=LocalFileProvider(str(path))))
        assert [e.text for e in events] == ["from file"]

    def test_missing_file_returns_empty(self, tmp_path):
        provider = LocalFileProvider(str(tmp_path / "missing.xml"))
        assert asyncio.run(fetch_comments("show", provider=provider)) == []
