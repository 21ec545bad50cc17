"""pytest 公共夹具。"""

import pytest

from config_policy import ConfigPolicy, EngineTimings, Viewport
from danmaku_models import CommentEvent, DisplayMode
from danmaku_observer import EngineStats
from danmaku_scheduler import ActivationScheduler


class FakeClock:
    """可手动推进的单调时钟（秒），替代 time.monotonic。"""

    def __init__(self, start: float = 1000.0):
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float):
        self.t += seconds


def make_event(text: str, time: float, mode: DisplayMode = DisplayMode.SCROLL, color: str | None = None):
    return CommentEvent(text=text, time=time, color=color, mode=mode)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stats():
    return EngineStats()


@pytest.fixture
def make_scheduler(clock, stats):
    """创建使用假时钟和统计观察者的调度器。"""
    def factory(events=None, seed: int = 42, **policy_overrides):
        scheduler = ActivationScheduler(
            policy=ConfigPolicy(**policy_overrides),
            timings=EngineTimings(),
            viewport=Viewport(1920, 1080),
            observer=stats,
            seed=seed,
            time_source=clock,
        )
        if events is not None:
            scheduler.load(events)
        return scheduler
    return factory
