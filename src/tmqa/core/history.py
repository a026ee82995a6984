"""
撤销 / 重做 / 快照恢复

每次修改前保存整个语料的深拷贝。撤销栈与重做栈都以最新在前，
超过 max_history 时丢弃最旧的快照。
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Iterable, Optional

from ..utils.common import MAX_HISTORY, iso_timestamp
from ..utils.models import HistoryItem, TranslationUnit

logger = logging.getLogger(__name__)


def _copy_units(units: Iterable[TranslationUnit]) -> list[TranslationUnit]:
    return copy.deepcopy(list(units))


class HistoryManager:
    """线性撤销历史"""

    def __init__(self, max_history: int = MAX_HISTORY):
        if max_history < 1:
            logger.warning(f"max_history must be >= 1, got {max_history}, using {MAX_HISTORY}")
            max_history = MAX_HISTORY
        self.max_history = max_history
        self._lock = threading.Lock()
        self.undo_stack: list[HistoryItem] = []
        self.redo_stack: list[HistoryItem] = []

    @property
    def history(self) -> list[HistoryItem]:
        """可恢复的快照（与撤销栈相同，最新在前）"""
        return list(self.undo_stack)

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def _item(self, units: Iterable[TranslationUnit], description: str) -> HistoryItem:
        return HistoryItem(units=_copy_units(units), description=description, timestamp=iso_timestamp())

    def snapshot(self, units: Iterable[TranslationUnit], description: str) -> HistoryItem:
        """在修改前保存快照，同时清空重做栈"""
        item = self._item(units, description)
        with self._lock:
            self.undo_stack = [item, *self.undo_stack][: self.max_history]
            self.redo_stack = []
        logger.debug(f"Snapshot '{description}' ({len(item.units)} units)")
        return item

    def undo(self, current: Iterable[TranslationUnit]) -> Optional[list[TranslationUnit]]:
        """
        恢复最近的快照

        Args:
            current: 当前语料，会保存到重做栈

        Returns:
            恢复后的语料；没有可撤销的快照时返回 None
        """
        with self._lock:
            if not self.undo_stack:
                return None
            previous, *rest = self.undo_stack
            self.redo_stack = [self._item(current, "Before undo"), *self.redo_stack][: self.max_history]
            self.undo_stack = rest
        logger.info(f"Undo: {previous.description}")
        return _copy_units(previous.units)

    def redo(self, current: Iterable[TranslationUnit]) -> Optional[list[TranslationUnit]]:
        with self._lock:
            if not self.redo_stack:
                return None
            following, *rest = self.redo_stack
            self.undo_stack = [self._item(current, "Before redo"), *self.undo_stack][: self.max_history]
            self.redo_stack = rest
        logger.info("Redo")
        return _copy_units(following.units)

    def restore_snapshot(self, snapshot_id: Optional[str] = None) -> Optional[list[TranslationUnit]]:
        """
        恢复到指定快照，比它更新的快照和重做栈全部丢弃

        Args:
            snapshot_id: 快照 id；None 表示最近的快照

        Returns:
            恢复后的语料；id 不存在或历史为空时返回 None
        """
        with self._lock:
            if not self.undo_stack:
                return None
            if snapshot_id is None:
                index = 0
            else:
                index = next((i for i, h in enumerate(self.undo_stack) if h.id == snapshot_id), -1)
                if index == -1:
                    logger.warning(f"Unknown snapshot id: {snapshot_id}")
                    return None
            item = self.undo_stack[index]
            self.undo_stack = self.undo_stack[index + 1:]
            self.redo_stack = []
        logger.info(f"Restored snapshot '{item.description}'")
        return _copy_units(item.units)

    def clear(self) -> None:
        with self._lock:
            self.undo_stack = []
            self.redo_stack = []
