# segment_loader.py
import bisect
import logging
import math
from collections import deque

from danmaku_models import NormalizedEvent
from quality_filter import is_admissible


class SegmentLoader:
    """
    分段加载器。
    把全部弹幕按固定的时间窗口切分，只有当播放进度到达某个窗口时，
    才把该窗口内通过质量过滤的弹幕加入待显示队列。
    这样每个调度周期的开销只和一个窗口内的弹幕数量有关，而不是全部弹幕。
    """

    def __init__(self, events: list[NormalizedEvent], window_size: float):
        self.events = events
        self.window_size = window_size
        # 【关键】events 已按时间排序，开始时间列表用于二分查找
        self._times = [e.time for e in events]
        self.pending: deque[NormalizedEvent] = deque()
        self.watermark: float | None = None
        self.admission_count = 0
        self._admitted: set[int] = set()

    def window_start(self, current_time: float) -> float:
        return math.floor(current_time / self.window_size) * self.window_size

    def admit(self, current_time: float, filter_level: int, back_window: float = 0.0,
              observer=None, forward_window: float = 0.0) -> int:
        """
        如果播放进度进入了新的窗口，则把该窗口的弹幕加入待显示队列。
        当前时间加上提前量跨入下一个窗口时，下一个窗口也会被提前加载，
        这样窗口边界之后的弹幕同样可以提前出现。

        已经落后于当前时间容差之外的弹幕不会被加入（它们已经错过了显示时机）。

        Returns:
            int: 本次加入队列的弹幕数量。
        """
        admitted = 0
        for start in sorted({self.window_start(current_time), self.window_start(current_time + forward_window)}):
            if self.watermark is not None and self.watermark >= start:
                continue
            admitted += self._admit_window(start, current_time - back_window, filter_level, observer)
        return admitted

    def _admit_window(self, start: float, earliest: float, filter_level: int, observer) -> int:
        end = start + self.window_size
        lo = bisect.bisect_left(self._times, max(start, earliest))
        hi = bisect.bisect_left(self._times, end)

        admitted = 0
        rejected = 0
        for event in self.events[lo:hi]:
            if event.seq in self._admitted:
                continue
            if not is_admissible(event, filter_level):
                rejected += 1
                continue
            self._admitted.add(event.seq)
            self.pending.append(event)
            admitted += 1

        self.watermark = start
        self.admission_count += admitted
        logging.debug(f"加载弹幕段 [{start:.0f}s, {end:.0f}s): {admitted} 条，过滤 {rejected} 条")
        if observer:
            observer.on_window_admitted(start, admitted)
            if rejected:
                observer.on_events_dropped(rejected, 'filtered')
        return admitted

    def prune_stale(self, current_time: float, back_window: float) -> int:
        """丢弃已经落后于容差窗口的待显示弹幕，返回丢弃数量。"""
        threshold = current_time - back_window
        dropped = 0
        while self.pending and self.pending[0].time < threshold:
            self.pending.popleft()
            dropped += 1
        return dropped

    def next_due(self, current_time: float, forward_window: float) -> NormalizedEvent | None:
        """查看队首弹幕，如果它已经到了显示时间则返回它，否则返回None。"""
        if self.pending and self.pending[0].time <= current_time + forward_window:
            return self.pending[0]
        return None

    def consume(self) -> NormalizedEvent:
        return self.pending.popleft()

    def reset(self):
        """拖动进度或重新加载时调用：清空队列，并让下一次 admit 重新加载当前窗口。"""
        self.pending.clear()
        self._admitted.clear()
        self.watermark = None

    def __len__(self):
        return len(self.pending)
