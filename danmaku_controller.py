# danmaku_controller.py
import asyncio
import os
import psutil
import logging
import sys
import threading

from PyQt6.QtCore import QObject, QThread, QTimer, pyqtSignal

# 从本地模块导入
from comment_cache import CommentCache
from comment_source import BaseCommentProvider, fetch_comments
from config_loader import get_config
from config_policy import ConfigPolicy, DanmakuConfigError
from danmaku_models import DisplayMode
from danmaku_observer import CompositeObserver, EngineStats, LoggingObserver
from danmaku_renderer import DanmakuWindow
from danmaku_scheduler import ActivationScheduler

from monitors.base_monitor import BaseMediaMonitor, MediaMonitorError, NullMediaMonitor, PlaybackState
IS_WINDOWS = sys.platform == 'win32'
if IS_WINDOWS:
    from monitors.windows_monitor import WindowsMediaMonitor
else:
    logging.warning("非Windows平台，媒体同步功能将不可用。")


class MediaSyncWorker(QObject):
    """
    媒体同步工作者。在一个独立的QThread中运行，避免阻塞主GUI线程。
    它负责周期性地调用监控器的异步方法来获取播放状态，通过信号交给主线程。
    """
    state_updated = pyqtSignal(object)

    def __init__(self, monitor: BaseMediaMonitor, target_id: str | None):
        super().__init__()
        self.monitor = monitor
        self.target_id = target_id
        self._is_running = True
        self.loop = None
        self.main_task = None

    async def _loop_logic(self):
        """异步循环，持续获取播放状态。"""
        logging.info("媒体同步工作线程循环已启动。")
        while self._is_running:
            try:
                state = await self.monitor.get_playback_state(self.target_id)

                # 在 await 之后再次检查标志，因为在等待期间可能已经被停止
                if not self._is_running:
                    break

                self.state_updated.emit(state)

                # 短暂休眠，避免CPU占用过高
                await asyncio.sleep(0.1)

            except asyncio.CancelledError:
                logging.info("媒体同步任务被取消，正常关闭中...")
                break
            except Exception as e:
                logging.error(f"在工作线程中获取播放状态时出错: {e}")
                self.state_updated.emit(None)
                try:
                    # 如果发生错误，等待稍长一点时间再重试
                    await asyncio.sleep(1)
                except asyncio.CancelledError:
                    logging.info("媒体同步任务在错误后等待时被取消。")
                    break

        logging.info("媒体同步工作线程循环已正常退出。")

    def run(self):
        """此方法在QThread启动后被调用。"""
        try:
            self.loop = asyncio.new_event_loop()
            asyncio.set_event_loop(self.loop)
            self.main_task = self.loop.create_task(self._loop_logic())
            self.loop.run_until_complete(self.main_task)
        except Exception as e:
            logging.error(f"asyncio 事件循环中发生意外错误: {e}")

    def stop(self):
        """请求停止工作线程的循环。"""
        logging.info("正在请求停止媒体同步工作线程...")
        self._is_running = False
        if self.loop and self.main_task and not self.main_task.done():
            self.loop.call_soon_threadsafe(self.main_task.cancel)


class DanmakuController(QObject):
    """
    把各个协作者和调度引擎连接起来：
        - 后台线程加载弹幕（缓存 -> 数据源），通过信号交回主线程
        - 媒体同步线程提供播放进度
        - 主线程的 QTimer 按固定周期驱动调度器，并把快照交给渲染窗口
    调度器只在主线程中被调用，渲染窗口只读取快照。
    """
    error_occurred = pyqtSignal(str)
    comments_loaded = pyqtSignal(list)

    def __init__(self, seed: int | None = None):
        super().__init__()
        self.config = get_config()

        try:
            self.monitor: BaseMediaMonitor = WindowsMediaMonitor() if IS_WINDOWS else NullMediaMonitor()
        except MediaMonitorError as e:
            logging.error(f"媒体监控器初始化失败: {e}")
            self.error_occurred.emit(f"媒体监控器初始化失败:\n{e}\n同步功能将不可用。")
            self.monitor = NullMediaMonitor()

        self._self_proc_name = psutil.Process(os.getpid()).name().lower()

        self.stats = EngineStats()
        observer = CompositeObserver(self.stats, LoggingObserver() if self.config.debug else None)
        # 配置结构错误（DanmakuConfigError）在这里直接抛给调用方
        self.timings = self.config.to_timings()
        self.scheduler = ActivationScheduler(
            policy=self.config.to_policy(),
            timings=self.timings,
            observer=observer,
            seed=seed if seed is not None else self.config.lane_seed,
        )
        self.cache = CommentCache(self.config.cache_directory, ttl_s=self.config.cache_ttl_hours * 3600)

        self.renderer: DanmakuWindow | None = None
        self._playback: PlaybackState | None = None
        self._is_running_flag = False

        self._tick_timer = QTimer(self)
        self._tick_timer.timeout.connect(self._on_tick)
        self.comments_loaded.connect(self._on_comments_loaded)

        self._worker_thread: QThread | None = None
        self._worker: MediaSyncWorker | None = None

    def _setup_worker(self):
        logging.debug("正在设置新的工作线程和工作者对象...")
        self._worker_thread = QThread()
        self._worker = MediaSyncWorker(self.monitor, self.config.target_aumid)
        self._worker.moveToThread(self._worker_thread)
        self._worker_thread.started.connect(self._worker.run)
        self._worker.state_updated.connect(self._on_state_received)
        self._worker_thread.finished.connect(self._worker_thread.deleteLater)
        self._worker_thread.finished.connect(self._worker.deleteLater)

    def is_running(self) -> bool:
        return self._is_running_flag

    def start(self, provider: BaseCommentProvider, title: str, episode: str | None = None,
              video_id: str | None = None):
        if self._is_running_flag:
            logging.warning("弹幕已经正在运行。")
            return
        logging.info("正在初始化弹幕...")
        self.renderer = DanmakuWindow(
            clock=self.scheduler.clock.now,
            on_complete=self.scheduler.notify_render_complete,
            stats=self.stats,
        )
        self.scheduler.set_viewport(self.config.to_viewport(self.renderer.viewport()))
        self.renderer.show()
        self._is_running_flag = True

        self._setup_worker()
        self._worker_thread.start()
        self._tick_timer.start(self.timings.tick_interval_ms)
        self.load_comments(provider, title, episode, video_id)
        logging.info("弹幕已启动。")

    def load_comments(self, provider: BaseCommentProvider, title: str, episode: str | None = None,
                      video_id: str | None = None):
        """在后台线程中获取弹幕，完成后通过信号回到主线程交给调度器。"""
        def load_task():
            try:
                events = asyncio.run(fetch_comments(title, episode, video_id, provider=provider, cache=self.cache))
            except Exception as e:
                logging.error(f"加载弹幕时出错: {e}")
                events = []
            self.comments_loaded.emit(events)
        thread = threading.Thread(target=load_task, daemon=True)
        thread.start()

    def _on_comments_loaded(self, events: list):
        if not self._is_running_flag:
            return
        self.scheduler.load(events)
        if self.renderer:
            self.renderer.clear_danmaku()
            if self.renderer.debug_overlay:
                self.renderer.debug_overlay.set_total_count(self.stats.loaded)

    def update_policy(self, policy: ConfigPolicy, persist: bool = False):
        """运行时修改弹幕参数，下一个调度周期生效。"""
        try:
            self.scheduler.update_policy(policy)
        except DanmakuConfigError as e:
            logging.error(f"弹幕配置无效: {e}")
            self.error_occurred.emit(f"弹幕配置无效:\n{e}")
            return
        if self.renderer:
            self.renderer.set_opacity(self.scheduler.policy.opacity)
        if persist:
            self.config.update_from_policy(self.scheduler.policy)
            self.config.save()

    def stop(self):
        if not self._is_running_flag: return
        self._tick_timer.stop()
        if self._worker: self._worker.stop()
        if self._worker_thread and self._worker_thread.isRunning():
            self._worker_thread.quit()
            if not self._worker_thread.wait(500):
                logging.warning("工作线程未在500毫秒内正常停止，正在强制终止。")
                self._worker_thread.terminate()
                self._worker_thread.wait()
        self._worker_thread = None
        self._worker = None
        if self.renderer:
            self.renderer.close()
            self.renderer = None
        self.scheduler.load([])
        self._playback = None
        self._is_running_flag = False
        logging.info("弹幕已停止并清理资源。")

    def _on_state_received(self, state: PlaybackState | None):
        if not self.renderer or not self._is_running_flag: return

        foreground_aumid = self.monitor.get_foreground_window_aumid()
        if foreground_aumid is not None:
            foreground_proc_name = foreground_aumid.lower()
            is_player_foreground = self.config.target_aumid.lower() in foreground_proc_name
            is_gui_foreground = (foreground_proc_name == self._self_proc_name)
            if is_player_foreground:
                self.renderer.show()
                self.renderer.set_stay_on_top(True)
            elif is_gui_foreground:
                self.renderer.show()
                self.renderer.set_stay_on_top(False)
            else:
                self.renderer.hide()

        self._playback = state
        if self.config.debug:
            if state:
                self.renderer.update_debug_playback_info(
                    state.title, state.format_time(state.position_s), state.format_time(state.duration_s))
            else:
                self.renderer.update_debug_playback_info("N/A", "00:00:00", "00:00:00")

    def _on_tick(self):
        """调度周期：把最新的播放状态交给调度器，再把快照交给渲染窗口。"""
        if not self.renderer:
            return
        state = self._playback
        if state is None:
            # 没有播放信息时视为暂停，保持上一次的进度
            position = self.scheduler.last_time or 0.0
            playing = False
        else:
            position = state.position_s
            playing = state.is_playing

        snapshot = self.scheduler.tick(position, playing)
        self.renderer.set_snapshot(snapshot)
        if playing:
            self.renderer.resume()
        else:
            self.renderer.pause()
            self.renderer.update()

        if self.renderer.debug_overlay:
            policy = self.scheduler.policy
            viewport = self.scheduler.viewport
            lanes = "/".join(str(policy.effective_max_lanes(g, viewport)) for g in DisplayMode)
            self.renderer.debug_overlay.update_engine_info(self.scheduler.pending_count, lanes)
