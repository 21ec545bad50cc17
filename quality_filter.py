# quality_filter.py
import re
import unicodedata

# 基础长度限制，任何过滤等级都生效
MIN_TEXT_LENGTH = 2
MAX_FILTERED_LENGTH = 50
# 等级3时更严格的最短长度
STRICT_MIN_LENGTH = 4
# 等级2时非语言字符占比的上限
NON_LINGUISTIC_RATIO = 0.3

# 1~3个字符的片段重复填满整条文本，例如 "666666"、"哈哈哈哈"、"abab"
_REPEATED_TOKEN = re.compile(r'^(.{1,3}?)\1+$', re.DOTALL)

# 被视为正常标点的字符（中英文常用标点）
_PERMITTED_PUNCTUATION = set(".,!?;:'\"-~…、，。！？；：“”‘’（）()《》")


def _is_digit_or_symbol(ch: str) -> bool:
    """数字、标点、符号或空白。"""
    if ch.isspace():
        return True
    category = unicodedata.category(ch)
    return category[0] in ('N', 'P', 'S')


def _is_linguistic(ch: str) -> bool:
    """字母（含中日韩文字）、数字、空白以及常用标点被视为语言字符。"""
    if ch.isspace() or ch in _PERMITTED_PUNCTUATION:
        return True
    return unicodedata.category(ch)[0] in ('L', 'N', 'M')


def is_low_information(text: str) -> bool:
    """判断文本是否为低信息量弹幕（纯重复或纯数字/符号）。"""
    if _REPEATED_TOKEN.match(text):
        return True
    return all(_is_digit_or_symbol(ch) for ch in text)


def non_linguistic_ratio(text: str) -> float:
    if not text:
        return 0.0
    count = sum(1 for ch in text if not _is_linguistic(ch))
    return count / len(text)


def is_admissible(event, filter_level: int) -> bool:
    """
    判断一条弹幕是否可以显示。纯函数，没有任何共享状态。

    过滤等级：
        0: 只做长度检查
        1: 额外过滤低信息量弹幕（如 "666666"、"？？？"）
        2: 额外过滤特殊符号占比过高的弹幕
        3: 额外过滤过短的弹幕

    Args:
        event: 任何带有 text 属性的弹幕对象（CommentEvent 或 NormalizedEvent）。
        filter_level (int): 过滤等级 0~3。

    Returns:
        bool: 允许显示返回True。
    """
    text = (event.text or '').strip()
    if not MIN_TEXT_LENGTH <= len(text) <= MAX_FILTERED_LENGTH:
        return False

    if filter_level >= 1 and is_low_information(text):
        return False

    if filter_level >= 2 and non_linguistic_ratio(text) > NON_LINGUISTIC_RATIO:
        return False

    if filter_level >= 3 and len(text) < STRICT_MIN_LENGTH:
        return False

    return True
