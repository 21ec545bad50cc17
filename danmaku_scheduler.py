# danmaku_scheduler.py
import itertools
import logging
import math
import time

from config_policy import (
    ConfigPolicy, EngineTimings, Viewport,
    min_occupancy_ms, stale_threshold_ms, travel_duration_ms,
)
from danmaku_models import ActiveItem, CommentEvent, DisplayMode
from danmaku_normalizer import normalize_events
from danmaku_observer import EngineObserver
from lane_allocator import LaneAllocator
from lifecycle_registry import LifecycleRegistry
from quality_filter import is_admissible
from segment_loader import SegmentLoader


class PlayClock:
    """
    只在播放时前进的毫秒时钟。
    暂停期间累计的时间会被扣除，因此弹幕的"年龄"按播放时间计算，
    长时间暂停后恢复播放不会让所有弹幕同时过期。
    """

    def __init__(self, time_source=time.monotonic):
        self._source = time_source
        self._paused_total = 0.0
        self._paused_at: float | None = None

    @property
    def is_paused(self) -> bool:
        return self._paused_at is not None

    def pause(self):
        if self._paused_at is None:
            self._paused_at = self._source()

    def resume(self):
        if self._paused_at is not None:
            self._paused_total += self._source() - self._paused_at
            self._paused_at = None

    def now(self) -> float:
        base = self._paused_at if self._paused_at is not None else self._source()
        return (base - self._paused_total) * 1000


class ActivationScheduler:
    """
    弹幕调度器，整个引擎的核心状态机。

    由固定周期的定时器驱动（而不是每次播放进度更新都调用）。每个周期：
        1. 检查播放进度是否发生跳转，跳转则整体重置
        2. 回收生命周期结束的弹幕
        3. 让分段加载器加载新到达的窗口
        4. 从待显示队列取出到期的弹幕，分配轨道，计算持续时间，交给注册表
        5. 返回当前活动弹幕的只读快照，供渲染端使用

    所有状态只在 tick() 中被修改，渲染端只读取快照，因此不需要加锁。
    """

    def __init__(self, policy: ConfigPolicy | None = None, timings: EngineTimings | None = None,
                 viewport: Viewport | None = None, observer: EngineObserver | None = None,
                 seed: int | None = None, time_source=time.monotonic):
        # 结构性错误在初始化时就抛出 DanmakuConfigError，而不是等到 tick 时
        self.timings = (timings or EngineTimings()).validate()
        self.policy = (policy or ConfigPolicy()).clamped().validate()
        self.viewport = viewport or Viewport()
        self.observer = observer or EngineObserver()

        self.clock = PlayClock(time_source)
        self.allocator = LaneAllocator(seed)
        self.registry = LifecycleRegistry()
        self.loader = SegmentLoader([], self.timings.segment_window_s)

        self._ids = itertools.count(1)
        self._last_time: float | None = None
        self._snapshot: tuple[ActiveItem, ...] = ()

    # ---- 外部输入 ----

    def load(self, events: list[CommentEvent]):
        """
        加载一组新的弹幕。可以在播放开始之后调用，视为一次全新的加载，
        之前的队列、活动弹幕和轨道记录都会被重置。
        """
        normalized = normalize_events(events, self.policy.font_size, self.observer)
        self.loader = SegmentLoader(normalized, self.timings.segment_window_s)
        self._clear_active('reload')
        self.allocator.clear()
        self._last_time = None
        self._snapshot = ()
        self.observer.on_load(len(normalized))
        if not normalized:
            logging.info("没有可显示的弹幕。")
        else:
            logging.info(f"调度器已加载 {len(normalized)} 条弹幕。")

    def update_policy(self, policy: ConfigPolicy):
        """替换配置快照，下一个周期生效，不影响已经在屏幕上的弹幕。"""
        self.policy = policy.clamped().validate()

    def set_viewport(self, viewport: Viewport):
        self.viewport = viewport

    def notify_render_complete(self, item_id: int):
        """渲染端动画结束的回调，仅作参考，回收以注册表自己的计时为准。"""
        known = item_id in self.registry
        logging.debug(f"渲染端报告弹幕 {item_id} 动画结束 (仍在注册表中: {known})")
        self.observer.on_render_complete(item_id, known)

    # ---- 只读状态 ----

    @property
    def snapshot(self) -> tuple[ActiveItem, ...]:
        return self._snapshot

    @property
    def pending_count(self) -> int:
        return len(self.loader)

    @property
    def last_time(self) -> float | None:
        return self._last_time

    # ---- 调度 ----

    def tick(self, current_time: float, is_playing: bool) -> tuple[ActiveItem, ...]:
        """
        执行一次调度。

        Args:
            current_time (float): 当前播放进度（秒）。负数或NaN会被修正为0。
            is_playing (bool): 是否正在播放。

        Returns:
            tuple[ActiveItem, ...]: 当前活动弹幕的快照。
        """
        t = self._sanitize_time(current_time)

        if not self.policy.enabled:
            self._clear_active('disabled')
            self._snapshot = ()
            return self._snapshot

        if self._is_seek(t):
            self._reset_for_seek(t)
        self._last_time = t

        if not is_playing:
            # 暂停：冻结时钟，不激活也不回收
            self.clock.pause()
            self._snapshot = self.registry.snapshot()
            return self._snapshot

        self.clock.resume()
        now = self.clock.now()

        for item in self.registry.evict_expired(now):
            self.observer.on_expired(item)

        back = self.timings.back_window_s
        self.loader.admit(t, self.policy.filter_level, back, self.observer,
                          forward_window=self.timings.forward_window_s)
        stale = self.loader.prune_stale(t, back)
        if stale:
            self.observer.on_events_dropped(stale, 'stale')

        self._activate_due(t, now)
        self._snapshot = self.registry.snapshot()
        return self._snapshot

    def _sanitize_time(self, current_time) -> float:
        try:
            t = float(current_time)
        except (TypeError, ValueError):
            t = math.nan
        if math.isfinite(t) and t >= 0:
            return t
        logging.warning(f"收到非法的播放进度 {current_time!r}，已修正为0。")
        self.observer.on_invalid_tick(current_time)
        return 0.0

    def _is_seek(self, t: float) -> bool:
        if self._last_time is None:
            return False
        delta = t - self._last_time
        return delta < -self.timings.back_window_s or delta > self.timings.seek_threshold_s

    def _reset_for_seek(self, t: float):
        logging.info(f"检测到播放跳转: {self._last_time:.1f}s -> {t:.1f}s，正在重置弹幕...")
        self.observer.on_seek(self._last_time, t)
        self.loader.reset()
        self.allocator.clear()
        self._clear_active('seek')

    def _clear_active(self, reason: str):
        count = self.registry.clear()
        if count:
            self.observer.on_cleared(count, reason)

    def _activate_due(self, t: float, now: float):
        policy = self.policy
        timings = self.timings
        limit = policy.max_concurrent_per_tick(timings)
        activated = 0
        hidden = 0
        filtered = 0

        while activated < limit and len(self.registry) < policy.max_active_items:
            event = self.loader.next_due(t, timings.forward_window_s)
            if event is None:
                break
            self.loader.consume()

            # 过滤等级可能在加载窗口之后被调高，出队时按当前等级再检查一次
            if not is_admissible(event, policy.filter_level):
                filtered += 1
                continue

            group = event.mode
            if not policy.shows(group):
                hidden += 1
                continue

            assignment = self.allocator.assign_lane(
                group, now,
                lane_count=policy.effective_max_lanes(group, self.viewport),
                min_occupancy_ms=min_occupancy_ms(group, policy, timings, self.viewport),
                stale_ms=stale_threshold_ms(group, policy, timings, self.viewport),
                allow_overlap=policy.allow_overlap,
                observer=self.observer,
            )
            item = ActiveItem(
                event=event,
                id=next(self._ids),
                lane=assignment.lane,
                group=group,
                activated_at=now,
                travel_duration_ms=travel_duration_ms(group, event.estimated_width, policy, timings, self.viewport),
                dwell_ms=0.0 if group is DisplayMode.SCROLL else timings.dwell_ms,
            )
            self.registry.add(item)
            self.observer.on_activated(item)
            activated += 1

        if filtered:
            self.observer.on_events_dropped(filtered, 'filtered')
        if hidden:
            self.observer.on_events_dropped(hidden, 'hidden')
        if activated:
            logging.debug(f"显示弹幕: {activated} 条，当前时间: {t:.1f}s，活跃: {len(self.registry)}")
