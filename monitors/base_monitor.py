# monitors/base_monitor.py
from abc import ABC, abstractmethod
from dataclasses import dataclass


class MediaMonitorError(Exception):
    """媒体监控模块的异常基类。"""
    pass


@dataclass(frozen=True)
class PlaybackState:
    """
    播放时钟的一次采样，调度器只需要 position_s 和 is_playing。

    Attributes:
        position_s: 当前播放进度（秒）
        is_playing: 是否正在播放
        title: 媒体标题
        source_id: 来源应用的标识（Windows 上为 AUMID）
        duration_s: 媒体总时长（秒），未知时为0
    """
    position_s: float
    is_playing: bool
    title: str = ""
    source_id: str = ""
    duration_s: float = 0.0

    @staticmethod
    def format_time(seconds: float) -> str:
        """将秒数格式化为 HH:MM:SS"""
        ts = int(max(0, seconds))
        return f"{ts // 3600:02d}:{(ts % 3600) // 60:02d}:{ts % 60:02d}"


class BaseMediaMonitor(ABC):
    """
    媒体监控器（播放时钟）的抽象基类。
    定义了所有平台特定的监控器必须实现的通用接口。
    这使得控制器代码可以与具体的实现解耦，便于未来扩展到其他操作系统。
    """

    @abstractmethod
    async def list_sessions(self) -> list[dict]:
        """
        异步列出所有当前活动的媒体会话。

        Returns:
            list[dict]: 一个包含字典的列表，每个字典应至少包含 'aumid' 和 'title' 键。
        """
        pass

    @abstractmethod
    async def get_playback_state(self, target_id: str | None = None) -> PlaybackState | None:
        """
        异步获取当前（或指定来源的）媒体会话的播放状态。

        Returns:
            PlaybackState | None: 播放状态，或在没有活动会话时返回 None。
        """
        pass

    def get_foreground_window_aumid(self) -> str | None:
        """
        获取当前前台窗口的应用标识符（AUMID）。
        这是一个可选实现的方法，主要用于判断播放器窗口是否在前台。
        """
        return None


class NullMediaMonitor(BaseMediaMonitor):
    """不支持媒体同步的平台上使用的空监控器。"""

    async def list_sessions(self) -> list[dict]:
        return []

    async def get_playback_state(self, target_id: str | None = None) -> PlaybackState | None:
        return None
