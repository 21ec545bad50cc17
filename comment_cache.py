# comment_cache.py
import base64
import json
import logging
import os
import time

from danmaku_models import CommentEvent

CACHE_PREFIX = 'danmaku_cache_'
CACHE_EXPIRY_S = 24 * 60 * 60  # 24小时


def make_key(title: str, episode: str | None = None, video_id: str | None = None) -> str:
    """根据 (标题, 集数, 视频ID) 生成缓存键。"""
    raw = f"{title}_{episode or 'default'}_{video_id or 'unknown'}"
    encoded = base64.urlsafe_b64encode(raw.encode('utf-8')).decode('ascii')
    return CACHE_PREFIX + encoded[:50]


class CommentCache:
    """
    基于文件的弹幕缓存，每个键对应目录下的一个JSON文件。

    所有操作都是"尽力而为"：读写失败只记录日志并当作未命中处理，
    不会向调用方抛出异常。
    """

    def __init__(self, directory: str = 'cache', ttl_s: float = CACHE_EXPIRY_S, time_source=time.time):
        self.directory = directory
        self.ttl_s = ttl_s
        self._now = time_source

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def get(self, key: str) -> list[CommentEvent] | None:
        """读取缓存。未命中、过期或文件损坏时返回None（过期的文件会被删除）。"""
        path = self._path(key)
        try:
            with open(path, encoding='utf-8') as f:
                payload = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            logging.error(f"读取弹幕缓存失败: {e}")
            return None

        if self._now() >= payload.get('expires_at', 0):
            logging.debug(f"弹幕缓存已过期: {key}")
            self._remove(path)
            return None

        try:
            return [CommentEvent.from_dict(item) for item in payload.get('data', [])]
        except (KeyError, TypeError, ValueError) as e:
            logging.error(f"弹幕缓存内容格式错误: {e}")
            return None

    def set(self, key: str, events: list[CommentEvent], ttl: float | None = None) -> bool:
        """写入缓存，成功返回True。"""
        ttl = self.ttl_s if ttl is None else ttl
        now = self._now()
        payload = {
            'timestamp': now,
            'expires_at': now + ttl,
            'data': [event.to_dict() for event in events],
        }
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(self._path(key), 'w', encoding='utf-8') as f:
                json.dump(payload, f, ensure_ascii=False)
        except OSError as e:
            logging.error(f"缓存弹幕失败: {e}")
            return False
        logging.info(f"弹幕缓存保存成功: {len(events)} 条")
        return True

    def clear_expired(self) -> int:
        """删除所有过期的缓存文件，返回删除数量。"""
        if not os.path.isdir(self.directory):
            return 0
        removed = 0
        now = self._now()
        for name in os.listdir(self.directory):
            if not (name.startswith(CACHE_PREFIX) and name.endswith('.json')):
                continue
            path = os.path.join(self.directory, name)
            try:
                with open(path, encoding='utf-8') as f:
                    expires_at = json.load(f).get('expires_at', 0)
            except (OSError, json.JSONDecodeError):
                expires_at = 0
            if now >= expires_at and self._remove(path):
                removed += 1
        if removed:
            logging.info(f"清理了 {removed} 个过期的弹幕缓存。")
        return removed

    def _remove(self, path: str) -> bool:
        try:
            os.remove(path)
            return True
        except OSError as e:
            logging.warning(f"删除弹幕缓存文件失败: {e}")
            return False
