"""
持久化与术语表提供者

服务层只依赖这里的两个协议；具体实现可以换成数据库。
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

from .io import load_units, save_units
from .logger import FileOperationError
from .models import GlossaryTerm, TranslationUnit

logger = logging.getLogger(__name__)


@runtime_checkable
class UnitStore(Protocol):
    """按 id upsert / 删除翻译单元"""

    def put_units(self, units: Iterable[TranslationUnit]) -> None: ...

    def delete_units(self, unit_ids: Iterable[str]) -> None: ...

    def get_units_by_project(self, project_id: str) -> list[TranslationUnit]: ...


@runtime_checkable
class GlossaryProvider(Protocol):
    def get_active_terms(self, glossary_ids: Iterable[str]) -> list[GlossaryTerm]: ...


class InMemoryUnitStore:
    """进程内存储，主要用于测试和 CLI 的一次性运行"""

    def __init__(self, units: Optional[Iterable[TranslationUnit]] = None):
        self._units: dict[str, TranslationUnit] = {}
        self._lock = threading.Lock()
        if units:
            self.put_units(units)

    def put_units(self, units: Iterable[TranslationUnit]) -> None:
        with self._lock:
            for unit in units:
                self._units[unit.id] = unit.clone()

    def delete_units(self, unit_ids: Iterable[str]) -> None:
        with self._lock:
            for unit_id in unit_ids:
                self._units.pop(unit_id, None)

    def get_units_by_project(self, project_id: str) -> list[TranslationUnit]:
        with self._lock:
            found = [u.clone() for u in self._units.values() if u.project_id == project_id]
        return sorted(found, key=lambda u: u.order)

    def __len__(self) -> int:
        return len(self._units)


class JsonlUnitStore:
    """
    单个 JSONL 文件作为存储

    每次写入都会原子重写整个文件，适合中小规模语料。
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._units: dict[str, TranslationUnit] = {}
        if self.path.exists():
            for unit in load_units(self.path):
                self._units[unit.id] = unit

    def _flush(self) -> None:
        try:
            save_units(self.path, sorted(self._units.values(), key=lambda u: u.order))
        except OSError as e:
            raise FileOperationError(f"Cannot write store: {e}", file_path=self.path)

    def put_units(self, units: Iterable[TranslationUnit]) -> None:
        with self._lock:
            count = 0
            for unit in units:
                self._units[unit.id] = unit.clone()
                count += 1
            if count:
                self._flush()
                logger.debug(f"Stored {count} units in {self.path.name}")

    def delete_units(self, unit_ids: Iterable[str]) -> None:
        with self._lock:
            removed = [uid for uid in unit_ids if self._units.pop(uid, None) is not None]
            if removed:
                self._flush()
                logger.debug(f"Deleted {len(removed)} units from {self.path.name}")

    def get_units_by_project(self, project_id: str) -> list[TranslationUnit]:
        with self._lock:
            found = [u.clone() for u in self._units.values() if u.project_id == project_id]
        return sorted(found, key=lambda u: u.order)

    def all_units(self) -> list[TranslationUnit]:
        with self._lock:
            return sorted((u.clone() for u in self._units.values()), key=lambda u: u.order)


class InMemoryGlossary:
    """glossary_id -> 术语列表"""

    def __init__(self, glossaries: Optional[dict[str, list[GlossaryTerm]]] = None):
        self._glossaries: dict[str, list[GlossaryTerm]] = dict(glossaries or {})

    def add_glossary(self, glossary_id: str, terms: Iterable[GlossaryTerm]) -> None:
        self._glossaries[glossary_id] = list(terms)

    def get_active_terms(self, glossary_ids: Iterable[str]) -> list[GlossaryTerm]:
        terms: list[GlossaryTerm] = []
        for glossary_id in glossary_ids:
            if glossary_id not in self._glossaries:
                logger.warning(f"Unknown glossary: {glossary_id}")
                continue
            terms.extend(self._glossaries[glossary_id])
        return terms
