# danmaku_normalizer.py
import bisect
import logging
import math

from danmaku_models import CommentEvent, NormalizedEvent, estimate_text_width

# 超过该长度的弹幕视为格式错误直接丢弃
MAX_TEXT_LENGTH = 100
# 同文本且时间差小于该值（秒）的弹幕视为重复
DUPLICATE_WINDOW_S = 1.0


def _is_valid(event: CommentEvent) -> bool:
    text = event.text.strip() if isinstance(event.text, str) else ''
    if not text or len(text) > MAX_TEXT_LENGTH:
        return False
    try:
        time = float(event.time)
    except (TypeError, ValueError):
        return False
    return math.isfinite(time) and time >= 0


def _has_neighbour(times: list[float], time: float) -> bool:
    """在有序时间列表中二分查找与 time 相差小于去重窗口的相邻时间。"""
    i = bisect.bisect_left(times, time)
    if i < len(times) and times[i] - time < DUPLICATE_WINDOW_S:
        return True
    return i > 0 and time - times[i - 1] < DUPLICATE_WINDOW_S


def normalize_events(raw: list[CommentEvent], font_size: float, observer=None) -> list[NormalizedEvent]:
    """
    对原始弹幕进行校验、去重和排序，并计算估算宽度。

    处理顺序：
        1. 丢弃格式错误的弹幕（空文本、过长、时间为负或非数字）
        2. 去重：输入中更早出现过文本相同且时间差小于1秒的弹幕（无论那条是否被保留），
           则丢弃当前弹幕
        3. 按时间稳定排序，时间相同则保持输入顺序

    这个函数不会抛出异常，最坏情况返回空列表。

    Args:
        raw (list[CommentEvent]): 任意顺序的原始弹幕。
        font_size (float): 用于估算宽度的字号。
        observer: 可选的观察者，用于统计被丢弃的弹幕数量。

    Returns:
        list[NormalizedEvent]: 按时间排序的弹幕列表。
    """
    malformed = 0
    duplicates = 0
    # 每种文本出现过的全部时间（有序），被去重丢弃的也记录在内
    seen_times: dict[str, list[float]] = {}
    result: list[NormalizedEvent] = []

    for seq, event in enumerate(raw or []):
        if not _is_valid(event):
            malformed += 1
            continue

        text = event.text.strip()
        time = float(event.time)
        seen = seen_times.setdefault(text, [])
        is_duplicate = _has_neighbour(seen, time)
        bisect.insort(seen, time)
        if is_duplicate:
            duplicates += 1
            continue

        result.append(NormalizedEvent(
            text=text,
            time=time,
            color=event.color,
            mode=event.mode,
            estimated_width=estimate_text_width(text, font_size),
            seq=seq,
        ))

    # list.sort 是稳定排序，时间相同的弹幕保持输入顺序
    result.sort(key=lambda e: e.time)

    if malformed:
        logging.info(f"丢弃了 {malformed} 条格式错误的弹幕。")
        if observer:
            observer.on_events_dropped(malformed, 'malformed')
    if duplicates:
        logging.debug(f"去除了 {duplicates} 条重复弹幕。")
        if observer:
            observer.on_events_dropped(duplicates, 'duplicate')

    logging.info(f"弹幕归一化完成: 原始 {len(raw or [])} 条 -> 有效 {len(result)} 条")
    return result
