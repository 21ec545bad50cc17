# lane_allocator.py
import logging
import random
from collections import deque
from dataclasses import dataclass

from danmaku_models import DisplayMode


@dataclass(frozen=True)
class LaneAssignment:
    """一次轨道分配的结果。fallback 为True表示没有空闲轨道，随机分配，可能重叠。"""
    group: DisplayMode
    lane: int
    assigned_at: float
    fallback: bool = False


class LaneAllocator:
    """
    弹幕轨道分配器。

    每个显示组（滚动/顶部/底部）各有一张轨道表，记录每条轨道最后一次被分配的时间。
    同一条轨道只有在距离上次分配超过最短占用时间后才能再次使用；
    如果所有轨道都被占用，则随机选择一条（尽力而为，允许重叠）。
    随机数生成器可以指定种子，方便测试稳定地复现降级路径。
    """

    def __init__(self, seed: int | None = None, history_size: int = 1000):
        self._rng = random.Random(seed)
        self._tables: dict[DisplayMode, dict[int, float]] = {group: {} for group in DisplayMode}
        self.history: deque[LaneAssignment] = deque(maxlen=history_size)

    def seed(self, seed: int | None):
        self._rng.seed(seed)

    def table(self, group: DisplayMode) -> dict[int, float]:
        """返回某个组轨道表的只读副本。"""
        return dict(self._tables[group])

    def _evict_stale(self, group: DisplayMode, now: float, stale_ms: float):
        table = self._tables[group]
        for lane in [lane for lane, last in table.items() if now - last > stale_ms]:
            del table[lane]

    def assign_lane(self, group: DisplayMode, now: float, lane_count: int,
                    min_occupancy_ms: float, stale_ms: float,
                    allow_overlap: bool = False, observer=None) -> LaneAssignment:
        """
        为一条弹幕分配轨道。

        Args:
            group (DisplayMode): 显示组。
            now (float): 当前播放时钟（毫秒）。
            lane_count (int): 该组可用的轨道数。
            min_occupancy_ms (float): 同一轨道两次分配之间的最短间隔。
            stale_ms (float): 轨道表记录的清理阈值。
            allow_overlap (bool): 为True时直接随机分配（允许重叠模式）。
            observer: 可选的观察者，降级时通知。

        Returns:
            LaneAssignment: 分配结果。
        """
        self._evict_stale(group, now, stale_ms)
        table = self._tables[group]
        lane_count = max(1, lane_count)

        if allow_overlap:
            lane = self._rng.randrange(lane_count)
            return self._record(group, lane, now, fallback=False)

        for lane in range(lane_count):
            last = table.get(lane)
            if last is None or now - last >= min_occupancy_ms:
                return self._record(group, lane, now, fallback=False)

        # 所有轨道都被占用：随机选择一条，这是过载时的降级行为而不是错误
        lane = self._rng.randrange(lane_count)
        logging.debug(f"{group.value} 组没有空闲轨道，随机分配到轨道 {lane}")
        if observer:
            observer.on_lane_fallback(group, lane)
        return self._record(group, lane, now, fallback=True)

    def _record(self, group: DisplayMode, lane: int, now: float, fallback: bool) -> LaneAssignment:
        self._tables[group][lane] = now
        assignment = LaneAssignment(group, lane, now, fallback)
        self.history.append(assignment)
        return assignment

    def clear(self):
        for table in self._tables.values():
            table.clear()
