# lifecycle_registry.py
from danmaku_models import ActiveItem


class LifecycleRegistry:
    """
    保存当前所有活动弹幕，并负责按生命周期回收它们。
    只有调度器会修改它；渲染端只读取 snapshot() 返回的不可变快照。
    """

    def __init__(self):
        self._items: dict[int, ActiveItem] = {}

    def add(self, item: ActiveItem):
        self._items[item.id] = item

    def get(self, item_id: int) -> ActiveItem | None:
        return self._items.get(item_id)

    def evict_expired(self, now: float) -> list[ActiveItem]:
        """
        回收生命周期已经结束的弹幕。
        生命周期以注册表自己的计时为准，渲染端的完成回调不影响回收。

        Args:
            now (float): 当前播放时钟（毫秒）。

        Returns:
            list[ActiveItem]: 被回收的弹幕。
        """
        expired = [item for item in self._items.values() if item.is_expired(now)]
        for item in expired:
            del self._items[item.id]
        return expired

    def clear(self) -> int:
        count = len(self._items)
        self._items.clear()
        return count

    def snapshot(self) -> tuple[ActiveItem, ...]:
        """按弹幕时间（其次按激活顺序）排列的只读快照。"""
        return tuple(sorted(self._items.values(), key=lambda item: (item.event.time, item.id)))

    def __len__(self):
        return len(self._items)

    def __contains__(self, item_id):
        return item_id in self._items
