# danmaku_models.py
import unicodedata
from dataclasses import dataclass
from enum import Enum


class DisplayMode(Enum):
    """弹幕的显示模式，同时也是轨道分组的依据。"""
    SCROLL = "scroll"
    TOP = "top"
    BOTTOM = "bottom"


# 宽度估算参数：宽字符（中日韩等全角字符）按一个字号计算，其余字符按0.6个字号
WIDE_CHAR_RATIO = 1.0
NARROW_CHAR_RATIO = 0.6
WIDTH_PADDING = 16.0


def is_wide_char(ch: str) -> bool:
    """判断字符是否为全角宽字符（East Asian Width 为 W 或 F）。"""
    return unicodedata.east_asian_width(ch) in ('W', 'F')


def estimate_text_width(text: str, font_size: float) -> float:
    """
    估算一条弹幕文本渲染后的像素宽度。

    这只是一个排版策略，并不是精确的字体度量。它保证对同样的输入总是得到
    同样的结果，并且随文本长度单调递增，方便测试直接断言具体数值。

    Args:
        text (str): 弹幕文本（应当已经去除首尾空白）。
        font_size (float): 配置的字号（像素）。

    Returns:
        float: 估算的像素宽度，包含左右内边距。
    """
    wide = sum(1 for ch in text if is_wide_char(ch))
    narrow = len(text) - wide
    return wide * font_size * WIDE_CHAR_RATIO + narrow * font_size * NARROW_CHAR_RATIO + WIDTH_PADDING


@dataclass(frozen=True)
class CommentEvent:
    """
    由数据源适配层提供的原始弹幕事件。
    这是一个不可变的纯数据类，核心引擎不关心它来自哪个平台。

    Attributes:
        text: 弹幕文本
        time: 弹幕出现的视频时间（秒）
        color: 颜色字符串（#rrggbb），可以为空
        mode: 显示模式
    """
    text: str
    time: float
    color: str | None = None
    mode: DisplayMode = DisplayMode.SCROLL

    def to_dict(self) -> dict:
        return {'text': self.text, 'time': self.time, 'color': self.color, 'mode': self.mode.value}

    @classmethod
    def from_dict(cls, data: dict) -> 'CommentEvent':
        return cls(
            text=str(data['text']),
            time=float(data['time']),
            color=data.get('color'),
            mode=DisplayMode(data.get('mode', DisplayMode.SCROLL.value)),
        )


@dataclass(frozen=True)
class NormalizedEvent:
    """
    经过去重、校验和排序后的弹幕事件。
    在归一化阶段创建一次，之后不再改变。

    Attributes:
        text: 已去除首尾空白的文本
        time: 出现时间（秒），保证 >= 0
        color: 颜色字符串，可以为空
        mode: 显示模式
        estimated_width: 估算的像素宽度
        seq: 在输入列表中的原始序号，作为引擎内部的身份标识
    """
    text: str
    time: float
    color: str | None
    mode: DisplayMode
    estimated_width: float
    seq: int


@dataclass(frozen=True)
class ActiveItem:
    """
    代表一条当前正在屏幕上显示的弹幕。
    由调度器创建，由生命周期注册表独占持有。

    `activated_at` 使用的是播放时钟（毫秒），暂停期间该时钟不前进，
    因此长时间暂停后恢复播放不会导致弹幕被集中清除。
    """
    event: NormalizedEvent
    id: int
    lane: int
    group: DisplayMode
    activated_at: float
    travel_duration_ms: float
    dwell_ms: float = 0.0

    @property
    def text(self) -> str:
        return self.event.text

    @property
    def color(self) -> str | None:
        return self.event.color

    @property
    def expires_at(self) -> float:
        return self.activated_at + self.travel_duration_ms

    def age_ms(self, now: float) -> float:
        return now - self.activated_at

    def is_expired(self, now: float) -> bool:
        """判断在播放时钟 `now` 时该弹幕是否已经走完生命周期。"""
        return now >= self.expires_at
