# danmaku_observer.py
import logging
from collections import Counter

from danmaku_models import ActiveItem, DisplayMode


class EngineObserver:
    """
    调度引擎的观察者接口。
    引擎在状态变化时调用这些方法，默认实现什么都不做。
    调试面板、统计和日志都通过注入观察者来获取信息，而不是依赖全局对象。
    """

    def on_load(self, total: int):
        """加载了一组新的弹幕，total 为归一化后的数量。"""

    def on_window_admitted(self, window_start: float, count: int):
        """一个分段窗口的弹幕被加入待显示队列。"""

    def on_activated(self, item: ActiveItem):
        pass

    def on_expired(self, item: ActiveItem):
        pass

    def on_cleared(self, count: int, reason: str):
        """活动弹幕被整体清空（拖动进度、关闭弹幕、重新加载）。"""

    def on_seek(self, previous: float, current: float):
        pass

    def on_lane_fallback(self, group: DisplayMode, lane: int):
        """没有空闲轨道，走了随机分配的降级路径。"""

    def on_events_dropped(self, count: int, reason: str):
        pass

    def on_invalid_tick(self, value):
        pass

    def on_render_complete(self, item_id: int, known: bool):
        """渲染端报告动画完成，仅作参考。"""


class LoggingObserver(EngineObserver):
    """把引擎事件写入日志，调试时使用。"""

    def on_window_admitted(self, window_start: float, count: int):
        logging.debug(f"加载弹幕段 {window_start:.0f}s: {count} 条")

    def on_seek(self, previous: float, current: float):
        logging.debug(f"播放跳转: {previous:.1f}s -> {current:.1f}s")

    def on_lane_fallback(self, group: DisplayMode, lane: int):
        logging.debug(f"{group.value} 轨道已满，随机分配到轨道 {lane}")

    def on_cleared(self, count: int, reason: str):
        logging.debug(f"清空 {count} 条活动弹幕 ({reason})")


class EngineStats(EngineObserver):
    """
    统计引擎事件的计数器。
    调试覆盖层读取这里的数据进行显示，测试也用它来验证引擎行为。
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self.loaded = 0
        self.admitted = 0
        self.activated = 0
        self.expired = 0
        self.seeks = 0
        self.fallbacks = 0
        self.invalid_ticks = 0
        self.render_completions = 0
        self.dropped: Counter = Counter()
        self.activation_times: list[float] = []

    def on_load(self, total: int):
        self.loaded = total

    def on_window_admitted(self, window_start: float, count: int):
        self.admitted += count

    def on_activated(self, item: ActiveItem):
        self.activated += 1
        self.activation_times.append(item.event.time)

    def on_expired(self, item: ActiveItem):
        self.expired += 1

    def on_seek(self, previous: float, current: float):
        self.seeks += 1

    def on_lane_fallback(self, group: DisplayMode, lane: int):
        self.fallbacks += 1

    def on_events_dropped(self, count: int, reason: str):
        self.dropped[reason] += count

    def on_invalid_tick(self, value):
        self.invalid_ticks += 1

    def on_render_complete(self, item_id: int, known: bool):
        self.render_completions += 1


class CompositeObserver(EngineObserver):
    """把事件依次转发给多个观察者。"""

    def __init__(self, *observers: EngineObserver):
        self.observers = [o for o in observers if o is not None]

    def _emit(self, name: str, *args):
        for observer in self.observers:
            getattr(observer, name)(*args)

    def on_load(self, total):
        self._emit('on_load', total)

    def on_window_admitted(self, window_start, count):
        self._emit('on_window_admitted', window_start, count)

    def on_activated(self, item):
        self._emit('on_activated', item)

    def on_expired(self, item):
        self._emit('on_expired', item)

    def on_cleared(self, count, reason):
        self._emit('on_cleared', count, reason)

    def on_seek(self, previous, current):
        self._emit('on_seek', previous, current)

    def on_lane_fallback(self, group, lane):
        self._emit('on_lane_fallback', group, lane)

    def on_events_dropped(self, count, reason):
        self._emit('on_events_dropped', count, reason)

    def on_invalid_tick(self, value):
        self._emit('on_invalid_tick', value)

    def on_render_complete(self, item_id, known):
        self._emit('on_render_complete', item_id, known)
