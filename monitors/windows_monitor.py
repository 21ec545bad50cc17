# monitors/windows_monitor.py
import logging
from datetime import datetime, timezone

# 导入抽象基类
from .base_monitor import BaseMediaMonitor, MediaMonitorError, PlaybackState

# 尝试导入Windows平台特定的库
try:
    import win32gui
    import win32process
    from psutil import Process
    from winsdk.windows.media.control import (
        GlobalSystemMediaTransportControlsSessionManager as MediaManager,
        GlobalSystemMediaTransportControlsSessionPlaybackStatus as PlaybackStatus
    )
    WINSDK_AVAILABLE = True
except ImportError:
    WINSDK_AVAILABLE = False
    # 如果缺少库，在代码加载时就给出提示
    logging.warning("缺少 Windows 平台所需的库 (winsdk, pywin32, psutil)。媒体同步功能将不可用。")


class WindowsMediaMonitor(BaseMediaMonitor):
    """
    Windows平台的播放时钟实现。
    使用Windows SMTC API读取播放器的进度和播放状态。
    """
    def __init__(self):
        """
        如果 winsdk 不可用，将引发 MediaMonitorError。
        """
        if not WINSDK_AVAILABLE:
            raise MediaMonitorError("winsdk 库未安装或不完整。请运行 'pip install winsdk'。")

    async def list_sessions(self) -> list[dict]:
        """
        异步列出所有当前活动的媒体会话的基本信息。
        """
        manager = await MediaManager.request_async()
        session_list = []
        for session in manager.get_sessions():
            try:
                info = await session.try_get_media_properties_async()
                # 只有包含标题的会话才是有意义的媒体会话
                if info and info.title:
                    session_list.append({
                        "aumid": session.source_app_user_model_id,
                        "title": info.title
                    })
            except Exception as e:
                # 某些会话可能在查询时失效，直接跳过
                logging.debug(f"查询媒体会话失败，已跳过: {e}")
                continue
        return session_list

    async def get_playback_state(self, target_id: str | None = None) -> PlaybackState | None:
        """
        异步获取当前SMTC托管的媒体会话的播放状态。
        指定 target_id 时只返回该来源的会话。
        """
        try:
            manager = await MediaManager.request_async()
            if target_id:
                sessions = [s for s in manager.get_sessions()
                            if target_id.lower() in s.source_app_user_model_id.lower()]
                session = sessions[0] if sessions else None
            else:
                session = manager.get_current_session()
            if session:
                return await self._get_session_state(session)
        except Exception as e:
            logging.debug(f"获取播放状态失败: {e}")
            return None
        return None

    async def _get_session_state(self, session) -> PlaybackState:
        """从一个会话对象中异步提取播放状态。"""
        info = await session.try_get_media_properties_async()
        timeline = session.get_timeline_properties()
        status = PlaybackStatus(session.get_playback_info().playback_status)
        is_playing = status == PlaybackStatus.PLAYING

        position = timeline.position.total_seconds()
        # SMTC 的进度只在播放器上报时才更新，播放中需要按上次更新时间外推
        if is_playing and timeline.last_updated_time:
            elapsed = (datetime.now(timezone.utc) - timeline.last_updated_time).total_seconds()
            if 0 < elapsed < 60:
                position += elapsed

        return PlaybackState(
            position_s=position,
            is_playing=is_playing,
            title=info.title,
            source_id=session.source_app_user_model_id,
            duration_s=timeline.end_time.total_seconds(),
        )

    def get_foreground_window_aumid(self) -> str | None:
        """
        获取当前前台窗口的进程名，作为AUMID的代理。
        注意：这只是一个近似方法，并非所有进程名都等于其AUMID，但对于PotPlayer等应用有效。
        """
        if not WINSDK_AVAILABLE:
            return None
        try:
            hwnd = win32gui.GetForegroundWindow()
            if hwnd:
                _, pid = win32process.GetWindowThreadProcessId(hwnd)
                return Process(pid).name()
        except Exception as e:
            logging.debug(f"获取前台窗口失败: {e}")
            return None
        return None
