# config_policy.py
import math
from dataclasses import dataclass, replace

from danmaku_models import DisplayMode


class DanmakuConfigError(ValueError):
    """配置在结构上不合法（如窗口大小为负），在初始化阶段抛出。"""
    pass


# 最少保证的轨道数
MIN_LANES = 3
# 每条轨道的高度 = 字号 + 行间距
LANE_SPACING = 4
# 各显示组可用的屏幕高度比例
GROUP_BANDS = {
    DisplayMode.SCROLL: 0.6,
    DisplayMode.TOP: 0.25,
    DisplayMode.BOTTOM: 0.25,
}

# 原配置面板提供的预设方案
PRESETS = {
    'performance': {
        'opacity': 0.6, 'font_size': 14, 'speed': 1.5,
        'density': 0.5, 'max_lanes_configured': 5, 'filter_level': 2,
    },
    'balanced': {
        'opacity': 0.8, 'font_size': 16, 'speed': 1.0,
        'density': 0.8, 'max_lanes_configured': 8, 'filter_level': 1,
    },
    'quality': {
        'opacity': 0.9, 'font_size': 18, 'speed': 0.8,
        'density': 1.0, 'max_lanes_configured': 12, 'filter_level': 0,
    },
}


def _clamp(value, lower, upper):
    return max(lower, min(upper, value))


@dataclass(frozen=True)
class Viewport:
    """渲染区域的像素尺寸。"""
    width: float = 1920
    height: float = 1080


@dataclass(frozen=True)
class EngineTimings:
    """
    调度引擎的结构性参数。
    这些值不是给用户调节的，但仍然可以通过 config.ini 的 [Engine] 节覆盖。
    """
    segment_window_s: float = 300.0      # 分段加载的窗口大小
    back_window_s: float = 0.5           # 激活容差：当前时间之前
    forward_window_s: float = 0.5        # 激活容差：当前时间之后
    seek_threshold_s: float = 2.0        # 向前跳转超过该值视为拖动进度条
    tick_interval_ms: int = 100          # 调度周期
    density_cap: int = 20                # 每个周期激活数量的基准上限
    base_speed_px_s: float = 100.0       # 速度倍率为1时的滚动速度
    min_scroll_duration_ms: float = 6000.0
    dwell_ms: float = 3000.0             # 固定弹幕停留时间
    fade_ms: float = 500.0               # 固定弹幕淡出时间
    scroll_occupancy_ratio: float = 0.5  # 滚动轨道最短占用时间相对于基准行程时间的比例
    stale_floor_ms: float = 8000.0       # 轨道表清理阈值的下限

    def validate(self):
        """检查结构性参数，不合法时抛出 DanmakuConfigError。"""
        if not self.segment_window_s > 0:
            raise DanmakuConfigError(f"segment_window_s 必须为正数: {self.segment_window_s}")
        if self.back_window_s < 0 or self.forward_window_s < 0:
            raise DanmakuConfigError("激活容差窗口不能为负数。")
        if not self.seek_threshold_s > 0:
            raise DanmakuConfigError(f"seek_threshold_s 必须为正数: {self.seek_threshold_s}")
        if self.tick_interval_ms <= 0:
            raise DanmakuConfigError(f"tick_interval_ms 必须为正数: {self.tick_interval_ms}")
        if self.density_cap < 0:
            raise DanmakuConfigError(f"density_cap 不能为负数: {self.density_cap}")
        if not self.base_speed_px_s > 0:
            raise DanmakuConfigError(f"base_speed_px_s 必须为正数: {self.base_speed_px_s}")
        if self.min_scroll_duration_ms < 0 or self.dwell_ms < 0 or self.fade_ms < 0:
            raise DanmakuConfigError("弹幕持续时间参数不能为负数。")
        if not 0 < self.scroll_occupancy_ratio <= 1:
            raise DanmakuConfigError(f"scroll_occupancy_ratio 必须在 (0, 1] 之间: {self.scroll_occupancy_ratio}")
        return self

    @property
    def fixed_lifetime_ms(self) -> float:
        return self.dwell_ms + self.fade_ms


@dataclass(frozen=True)
class ConfigPolicy:
    """
    用户可调的弹幕参数快照。
    运行时替换整个快照即可生效（下一个调度周期），不会影响已经在屏幕上的弹幕。
    """
    enabled: bool = True
    opacity: float = 0.8
    font_size: float = 16
    speed: float = 1.0
    density: float = 0.8
    show_scroll: bool = True
    show_top: bool = True
    show_bottom: bool = True
    filter_level: int = 1
    max_lanes_configured: int = 10
    allow_overlap: bool = False
    max_active_items: int = 250

    def validate(self):
        """检查结构性错误，不合法时抛出 DanmakuConfigError。"""
        if not self.speed > 0:
            raise DanmakuConfigError(f"speed 必须为正数: {self.speed}")
        if not self.font_size > 0:
            raise DanmakuConfigError(f"font_size 必须为正数: {self.font_size}")
        if self.max_lanes_configured < 1:
            raise DanmakuConfigError(f"max_lanes_configured 至少为1: {self.max_lanes_configured}")
        if self.max_active_items < 0:
            raise DanmakuConfigError(f"max_active_items 不能为负数: {self.max_active_items}")
        return self

    def clamped(self) -> 'ConfigPolicy':
        """将可调参数限制在合法范围内，返回新的快照。"""
        density = self.density if not math.isnan(self.density) else 0.0
        opacity = self.opacity if not math.isnan(self.opacity) else 1.0
        return replace(
            self,
            opacity=_clamp(opacity, 0.0, 1.0),
            density=_clamp(density, 0.0, 1.0),
            filter_level=int(_clamp(int(self.filter_level), 0, 3)),
        )

    def with_preset(self, name: str) -> 'ConfigPolicy':
        """应用一个预设方案（performance / balanced / quality）。"""
        if name not in PRESETS:
            raise DanmakuConfigError(f"未知的预设方案: {name}")
        return replace(self, **PRESETS[name])

    def shows(self, group: DisplayMode) -> bool:
        if group is DisplayMode.SCROLL:
            return self.show_scroll
        if group is DisplayMode.TOP:
            return self.show_top
        return self.show_bottom

    @property
    def lane_height(self) -> float:
        return self.font_size + LANE_SPACING

    def effective_max_lanes(self, group: DisplayMode, viewport: Viewport) -> int:
        """
        计算某个显示组实际可用的轨道数。
        取配置值和屏幕可容纳行数中较小的一个，但不少于 MIN_LANES。
        """
        band = viewport.height * GROUP_BANDS[group]
        fits = int(band // self.lane_height) if band > 0 else 0
        return max(MIN_LANES, min(self.max_lanes_configured, fits))

    def max_concurrent_per_tick(self, timings: EngineTimings) -> int:
        return math.floor(self.density * timings.density_cap)


def scroll_base_travel_ms(policy: ConfigPolicy, timings: EngineTimings, viewport: Viewport) -> float:
    """滚动弹幕横穿屏幕的基准时间（不计文本自身宽度）。"""
    travel = viewport.width / (timings.base_speed_px_s * policy.speed) * 1000
    return max(timings.min_scroll_duration_ms, travel)


def travel_duration_ms(group: DisplayMode, width: float, policy: ConfigPolicy,
                       timings: EngineTimings, viewport: Viewport) -> float:
    """
    计算一条弹幕的生命周期（毫秒）。
    滚动弹幕需要移动 屏幕宽度 + 文本宽度 的距离，且不少于最短时长；
    固定弹幕为停留时间加淡出时间。
    """
    if group is DisplayMode.SCROLL:
        distance = viewport.width + width
        duration = distance / (timings.base_speed_px_s * policy.speed) * 1000
        return max(timings.min_scroll_duration_ms, duration)
    return timings.fixed_lifetime_ms


def min_occupancy_ms(group: DisplayMode, policy: ConfigPolicy,
                     timings: EngineTimings, viewport: Viewport) -> float:
    """同一条轨道两次分配之间的最短间隔。"""
    if group is DisplayMode.SCROLL:
        return scroll_base_travel_ms(policy, timings, viewport) * timings.scroll_occupancy_ratio
    return timings.fixed_lifetime_ms


def stale_threshold_ms(group: DisplayMode, policy: ConfigPolicy,
                       timings: EngineTimings, viewport: Viewport) -> float:
    """轨道表记录的清理阈值，比任何弹幕的生命周期都长，仅用于回收内存。"""
    if group is DisplayMode.SCROLL:
        longest = scroll_base_travel_ms(policy, timings, viewport)
    else:
        longest = timings.fixed_lifetime_ms
    return max(timings.stale_floor_ms, 2 * longest)
