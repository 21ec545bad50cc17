# comment_source.py
import asyncio
import logging
import os
from abc import ABC, abstractmethod

from comment_cache import CommentCache, make_key
from danmaku_models import CommentEvent
from danmaku_parser import load_from_file


class CommentSourceError(Exception):
    """弹幕数据源的异常基类。"""
    pass


class BaseCommentProvider(ABC):
    """
    弹幕数据源的抽象基类。
    不同平台的搜索、解析都在具体实现里完成，最后统一交出 CommentEvent 列表，
    核心引擎不关心数据来自哪里。
    """

    @abstractmethod
    async def fetch(self, title: str, episode: str | None = None,
                    video_id: str | None = None) -> list[CommentEvent]:
        """
        异步获取某个视频的弹幕。

        Returns:
            list[CommentEvent]: 弹幕列表，可能为空。
        """
        pass


class LocalFileProvider(BaseCommentProvider):
    """从本地 XML/JSON 弹幕文件读取弹幕，文件读取放在线程池中执行。"""

    def __init__(self, filepath: str):
        self.filepath = filepath

    async def fetch(self, title: str, episode: str | None = None,
                    video_id: str | None = None) -> list[CommentEvent]:
        if not os.path.isfile(self.filepath):
            raise CommentSourceError(f"弹幕文件 '{self.filepath}' 不存在。")
        return await asyncio.to_thread(load_from_file, self.filepath)


async def fetch_comments(title: str, episode: str | None = None, video_id: str | None = None, *,
                         provider: BaseCommentProvider, cache: CommentCache | None = None) -> list[CommentEvent]:
    """
    获取弹幕的主入口：先查缓存，未命中再请求数据源，成功后写入缓存。

    数据源的任何错误都只记录日志并返回空列表；"没有弹幕" 和 "获取失败"
    对引擎来说是一样的。
    """
    logging.info(f"开始获取弹幕: title={title!r}, episode={episode!r}, video_id={video_id!r}")
    key = make_key(title, episode, video_id)

    if cache:
        cached = cache.get(key)
        if cached:
            logging.info(f"使用缓存弹幕: {len(cached)} 条")
            return cached

    try:
        events = await provider.fetch(title, episode, video_id)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logging.error(f"弹幕获取失败: {e}")
        return []

    if not events:
        logging.info("未获取到弹幕数据。")
        return []

    logging.info(f"弹幕获取成功: {len(events)} 条")
    if cache:
        cache.set(key, events)
    return events
