# danmaku_renderer.py
import logging
import sys
from PyQt6.QtWidgets import QMainWindow, QApplication
from PyQt6.QtCore import Qt, QTimer, QPointF, QSize
from PyQt6.QtGui import (
    QFont, QPainter, QColor, QFontMetrics, QPainterPath,
    QPainterPathStroker, QPixmap
)

from config_loader import get_config
from config_policy import LANE_SPACING, Viewport
from danmaku_models import ActiveItem, DisplayMode
from debug_overlay import DebugOverlay

# 平台相关的导入，使其成为可选
IS_WINDOWS = sys.platform == 'win32'
try:
    if IS_WINDOWS:
        import win32gui
        import win32con
    PYWIN32_AVAILABLE = True
except ImportError:
    PYWIN32_AVAILABLE = False

# 各显示组在屏幕上的起始位置（占屏幕高度的比例）
SCROLL_BAND_TOP = 0.2
TOP_MARGIN = 60
BOTTOM_MARGIN = 120


class DanmakuWindow(QMainWindow):
    """
    弹幕渲染窗口。这是一个透明、无边框、可鼠标穿透的顶层窗口。

    它只读取调度器发布的活动弹幕快照，根据轨道、显示组和已经过的时间
    计算每条弹幕的像素位置并绘制，从不修改调度器的状态。
    """
    def __init__(self, clock, on_complete=None, stats=None, total_danmaku_count: int = 0, parent=None):
        """
        Args:
            clock: 返回播放时钟毫秒数的可调用对象（与调度器共用）。
            on_complete: 弹幕动画结束时的回调，参数为弹幕id，仅作参考。
            stats: 可选的 EngineStats，用于调试覆盖层。
            total_danmaku_count (int): 弹幕总数，仅用于调试显示。
        """
        super().__init__(parent)
        self.config = get_config()
        self._clock = clock
        self._on_complete = on_complete

        screen_geometry = QApplication.primaryScreen().geometry()

        window_flags = Qt.WindowType.FramelessWindowHint | Qt.WindowType.Tool
        self.setWindowFlags(window_flags)
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        if not self.config.debug:
            self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)

        self.setGeometry(screen_geometry)

        self._font = QFont(self.config.font_name, self.config.font_size, QFont.Weight.Bold)
        self._font_metrics = QFontMetrics(self._font)
        self._opacity = self.config.opacity
        self.lane_height = self.config.font_size + LANE_SPACING

        self._items: tuple[ActiveItem, ...] = ()
        # 【性能优化】缓存渲染好的弹幕图片（包含描边），避免每一帧都重新绘制文字
        self._pixmap_cache: dict[int, QPixmap] = {}
        self._completed: set[int] = set()

        if self.config.debug:
            self.debug_overlay = DebugOverlay(self, self.config, total_danmaku_count, stats)
        else:
            self.debug_overlay = None

        self._animation_timer = QTimer(self)
        self._animation_timer.timeout.connect(self.update)
        self._animation_timer.start(1000 // 60)

        self._on_top_timer = QTimer(self)
        self._on_top_timer.timeout.connect(self._force_on_top_win32_if_needed)

    def viewport(self) -> Viewport:
        return Viewport(self.width(), self.height())

    def update_debug_playback_info(self, title: str, position_str: str, duration_str: str):
        """将播放器信息传递给调试层。"""
        if self.debug_overlay:
            self.debug_overlay.update_playback_info(title, position_str, duration_str)

    def set_opacity(self, opacity: float):
        self._opacity = opacity

    def set_snapshot(self, items: tuple[ActiveItem, ...]):
        """接收调度器发布的最新快照，并丢弃已经不在快照中的缓存。"""
        self._items = items
        live = {item.id for item in items}
        for item_id in [i for i in self._pixmap_cache if i not in live]:
            del self._pixmap_cache[item_id]
        self._completed &= live
        if self.debug_overlay:
            self.debug_overlay.update_stats(active_count=len(items), cached=len(self._pixmap_cache))

    def set_stay_on_top(self, stay_on_top: bool):
        if IS_WINDOWS and stay_on_top and int(self.config.ontop_strategy) > 1:
            if not self._on_top_timer.isActive():
                self._on_top_timer.start(2000)
        else:
            if self._on_top_timer.isActive():
                self._on_top_timer.stop()
        current_on_top_flag = bool(self.windowFlags() & Qt.WindowType.WindowStaysOnTopHint)
        if current_on_top_flag == stay_on_top: return
        self.setWindowFlag(Qt.WindowType.WindowStaysOnTopHint, stay_on_top)
        self.show()

    def _force_on_top_win32_if_needed(self):
        if not IS_WINDOWS or not PYWIN32_AVAILABLE: return
        if int(self.config.ontop_strategy) < 2: return
        try:
            hwnd = int(self.winId())
            win32gui.SetWindowPos(hwnd, win32con.HWND_TOPMOST, 0, 0, 0, 0,
                                  win32con.SWP_NOMOVE | win32con.SWP_NOSIZE | win32con.SWP_NOACTIVATE)
        except Exception as e:
            logging.error(f"Win32 置顶失败: {e}")
            self._on_top_timer.stop()

    def _lane_y(self, item: ActiveItem) -> float:
        """根据显示组和轨道号计算弹幕基线的y坐标。"""
        ascent = self._font_metrics.ascent()
        if item.group is DisplayMode.TOP:
            return TOP_MARGIN + item.lane * self.lane_height + ascent
        if item.group is DisplayMode.BOTTOM:
            return self.height() - BOTTOM_MARGIN - (item.lane + 1) * self.lane_height + ascent
        return self.height() * SCROLL_BAND_TOP + item.lane * self.lane_height + ascent

    def _layout(self, item: ActiveItem, now: float) -> tuple[QPointF, float] | None:
        """
        计算弹幕在当前时刻的位置和透明度。
        动画走完时返回None，并（只一次）通知完成回调。
        """
        progress = item.age_ms(now) / item.travel_duration_ms if item.travel_duration_ms > 0 else 1.0
        if progress >= 1.0:
            if item.id not in self._completed:
                self._completed.add(item.id)
                if self._on_complete:
                    self._on_complete(item.id)
            return None

        y = self._lane_y(item)
        if item.group is DisplayMode.SCROLL:
            # 从屏幕右侧外匀速移动到左侧外，行程为 屏幕宽度 + 文本宽度
            distance = self.width() + item.event.estimated_width
            return QPointF(self.width() - distance * progress, y), 1.0

        x = (self.width() - item.event.estimated_width) / 2
        age = item.age_ms(now)
        if age <= item.dwell_ms:
            return QPointF(x, y), 1.0
        fade = item.travel_duration_ms - item.dwell_ms
        return QPointF(x, y), max(0.0, 1.0 - (age - item.dwell_ms) / fade) if fade > 0 else 0.0

    def _render_danmaku_to_pixmap(self, item: ActiveItem) -> QPixmap:
        stroke_offset = self.config.stroke_width
        bounding_rect = self._font_metrics.boundingRect(item.text)
        pixmap_size = QSize(bounding_rect.width() + stroke_offset * 2, bounding_rect.height() + stroke_offset * 2)
        pixmap = QPixmap(pixmap_size)
        pixmap.fill(Qt.GlobalColor.transparent)
        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setFont(self._font)
        path = QPainterPath()
        path.addText(stroke_offset, self._font_metrics.ascent() + stroke_offset, self._font, item.text)
        if self.config.stroke_width > 0:
            stroker = QPainterPathStroker()
            stroker.setWidth(self.config.stroke_width * 2)
            stroker.setCapStyle(Qt.PenCapStyle.RoundCap)
            stroker.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
            stroke_path = stroker.createStroke(path)
            painter.setPen(Qt.PenStyle.NoPen)
            painter.fillPath(stroke_path, QColor("black"))
        painter.fillPath(path, QColor(item.color or '#ffffff'))
        painter.end()
        self._pixmap_cache[item.id] = pixmap
        return pixmap

    def paintEvent(self, event):
        painter = QPainter(self)
        now = self._clock()
        for item in self._items:
            layout = self._layout(item, now)
            if layout is None:
                continue
            position, alpha = layout
            pixmap = self._pixmap_cache.get(item.id) or self._render_danmaku_to_pixmap(item)
            draw_pos = QPointF(position.x() - self.config.stroke_width,
                               position.y() - self.config.stroke_width - self._font_metrics.ascent())
            painter.setOpacity(self._opacity * alpha)
            painter.drawPixmap(draw_pos, pixmap)
        painter.setOpacity(1.0)
        if self.debug_overlay:
            self.debug_overlay.paint(painter)

    def clear_danmaku(self):
        self.set_snapshot(())
        self.update()

    def pause(self):
        if self._animation_timer.isActive():
            self._animation_timer.stop()

    def resume(self):
        if not self._animation_timer.isActive():
            self._animation_timer.start(1000 // 60)
