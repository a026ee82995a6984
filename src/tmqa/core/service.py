"""
语料服务

持有当前语料（不可变 tuple，每次修改整体替换），把历史、一致性分析、
QA 引擎、过滤、批处理、清理和持久化串在一起。

每个修改内容的操作：
1. 保存一次快照
2. 生成新语料（跳过锁定单元）
3. 刷新一致性分析
4. 把变化写回存储（失败时抛出 PersistenceError，但内存中的语料已经更新）
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Protocol, runtime_checkable

from ..utils.common import (
    DEFAULT_IGNORED_BY, STATUS_APPROVED, STATUS_EMPTY, STATUS_TRANSLATED, iso_timestamp, lang_match,
)
from ..utils.concordance import ConcordanceHit, ConcordanceIndex
from ..utils.locale_registry import get_settings_for_locale
from ..utils.logger import (
    BatchInProgressError, PersistenceError, RuleGenerationError, TmQaError, UnitLockedError,
)
from ..utils.models import (
    BatchConfig, CleanupConfig, CleanupReport, GlossaryTerm, TmxTag, TranslationUnit,
)
from ..utils.settings import QASettings, UserDefinedCheck, merge_settings
from ..utils.store import GlossaryProvider, UnitStore
from .batch import BatchResult, BatchTransformer
from .cleanup import run_cleanup
from .consistency import (
    ConsistencyReport, analyze_consistency, language_pairs, units_in_pair, validate_consistency,
)
from .filters import FilterCriteria, select_filtered
from .history import HistoryManager
from .qa import QAEngine, find_potential_untranslatables

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
RuleGenerator = Callable[[str], Any]


@runtime_checkable
class LiveConsistency(Protocol):
    """编辑后自动刷新的一致性分析"""

    def refresh_consistency(self) -> ConsistencyReport: ...


@runtime_checkable
class ManualAudit(Protocol):
    """只在显式调用时运行的完整 QA"""

    def run_project_qa(self, preserve_ignored: bool = False) -> "MutationResult": ...


@dataclass
class MutationResult:
    units: tuple[TranslationUnit, ...]
    changed_ids: list[str] = field(default_factory=list)
    consistency: Optional[ConsistencyReport] = None
    deleted_ids: list[str] = field(default_factory=list)


class CorpusService:
    """单个项目语料的读写入口"""

    def __init__(
        self,
        units: Iterable[TranslationUnit],
        settings: Optional[QASettings] = None,
        store: Optional[UnitStore] = None,
        glossary: Optional[GlossaryProvider] = None,
        history: Optional[HistoryManager] = None,
    ):
        self._units: tuple[TranslationUnit, ...] = tuple(units)
        self.settings = settings or QASettings()
        self.store = store
        self.glossary = glossary
        self.history = history or HistoryManager()
        self.batch = BatchTransformer()
        self.filter_criteria = FilterCriteria()
        self.last_engine: Optional[QAEngine] = None
        self._lock = threading.RLock()

        pairs = language_pairs(self._units)
        self.active_language_pair: Optional[tuple[str, str]] = pairs[0] if pairs else None
        self.consistency = self.refresh_consistency()

    # ========================================
    # 读取
    # ========================================

    @property
    def units(self) -> tuple[TranslationUnit, ...]:
        return self._units

    def get_unit(self, unit_id: str) -> Optional[TranslationUnit]:
        return next((u for u in self._units if u.id == unit_id), None)

    def effective_settings(self, target_lang: Optional[str] = None) -> QASettings:
        """全局设置 + 目标语言的区域默认值"""
        if target_lang is None and self.active_language_pair:
            target_lang = self.active_language_pair[1]
        if not target_lang:
            return self.settings
        return merge_settings(self.settings, get_settings_for_locale(target_lang))

    def active_terms(self) -> list[GlossaryTerm]:
        if self.glossary is None:
            return []
        return self.glossary.get_active_terms(self.settings.active_glossary_ids)

    def refresh_consistency(self) -> ConsistencyReport:
        self.consistency = analyze_consistency(
            self._units, self.effective_settings(), self.active_language_pair,
        )
        return self.consistency

    def set_active_language_pair(self, pair: Optional[tuple[str, str]]) -> ConsistencyReport:
        self.active_language_pair = pair
        self.filter_criteria.language_pair = pair
        return self.refresh_consistency()

    def select(self, criteria: Optional[FilterCriteria] = None) -> list[TranslationUnit]:
        criteria = criteria or self.filter_criteria
        report = self.consistency if criteria.language_pair == self.active_language_pair else None
        target_lang = criteria.language_pair[1] if criteria.language_pair else None
        return select_filtered(self._units, criteria, self.effective_settings(target_lang), report)

    def apply_locale_defaults(self, lang: str) -> QASettings:
        self.settings = merge_settings(self.settings, get_settings_for_locale(lang))
        logger.info(f"Applied locale defaults for {lang}")
        self.refresh_consistency()
        return self.settings

    def concordance_search(
        self,
        query: str,
        scope: str = "both",
        fuzzy: bool = False,
        limit: int = 100,
    ) -> list[ConcordanceHit]:
        index = ConcordanceIndex().build(units_in_pair(self._units, self.active_language_pair))
        if fuzzy:
            return index.similar(query, limit=limit)
        return index.search(query, scope=scope, limit=limit)

    def find_potential_untranslatables(self, limit: int = 1000) -> list[str]:
        return find_potential_untranslatables(self._units, self.settings, limit)

    # ========================================
    # 内部
    # ========================================

    def _replace(
        self,
        units: Iterable[TranslationUnit],
        changed: list[TranslationUnit],
        deleted_ids: Optional[list[str]] = None,
        revalidate: bool = False,
    ) -> MutationResult:
        units = list(units)
        if revalidate and changed:
            units = self._revalidate(units, changed)
            by_id = {u.id: u for u in units}
            changed = [by_id[u.id] for u in changed if u.id in by_id]

        self._units = tuple(units)
        report = self.refresh_consistency()
        self._persist(changed, deleted_ids or [])
        return MutationResult(self._units, [u.id for u in changed], report, list(deleted_ids or []))

    def _revalidate(self, units: list[TranslationUnit], changed: list[TranslationUnit]) -> list[TranslationUnit]:
        """重新生成受影响语言对的一致性问题"""
        for pair in language_pairs(changed):
            units = validate_consistency(units, self.effective_settings(pair[1]), pair)
        return units

    def _persist(self, changed: list[TranslationUnit], deleted_ids: list[str]) -> None:
        if self.store is None:
            return
        try:
            if changed:
                self.store.put_units(changed)
            if deleted_ids:
                self.store.delete_units(deleted_ids)
        except (OSError, TmQaError) as e:
            raise PersistenceError(
                f"Failed to persist changes: {e}",
                unit_ids=[u.id for u in changed] + deleted_ids,
            ) from e

    def _map_units(
        self,
        ids: Iterable[str],
        update: Callable[[TranslationUnit], Optional[TranslationUnit]],
        description: str,
        revalidate: bool = False,
    ) -> MutationResult:
        """对选中单元应用 update（返回 None 表示不变）"""
        wanted = set(ids)
        with self._lock:
            self.history.snapshot(self._units, description)
            result = []
            changed = []
            for unit in self._units:
                updated = update(unit) if unit.id in wanted else None
                if updated is None:
                    result.append(unit)
                else:
                    result.append(updated)
                    changed.append(updated)
            logger.info(f"{description}: {len(changed)} units changed")
            return self._replace(result, changed, revalidate=revalidate)

    # ========================================
    # 修改内容的操作
    # ========================================

    def update_segment(
        self,
        unit_id: str,
        target_text: str,
        tags: Optional[list[TmxTag]] = None,
    ) -> MutationResult:
        """
        修改单个单元的译文

        Raises:
            UnitLockedError: 单元已锁定
            KeyError: 单元不存在
        """
        unit = self.get_unit(unit_id)
        if unit is None:
            raise KeyError(unit_id)
        if unit.is_locked:
            raise UnitLockedError("Unit is locked", unit_id=unit_id)

        def update(u: TranslationUnit) -> TranslationUnit:
            updated = u.clone()
            updated.target.text = target_text
            if tags is not None:
                updated.target.tags = list(tags)
            updated.recompute_status()
            updated.last_modified = iso_timestamp()
            return updated

        return self._map_units([unit_id], update, "Manual edit", revalidate=True)

    def copy_source_to_target(self, ids: Iterable[str]) -> MutationResult:
        ids = list(ids)

        def update(u: TranslationUnit) -> Optional[TranslationUnit]:
            if u.is_locked:
                return None
            updated = u.clone()
            updated.target = copy.deepcopy(u.source)
            updated.status = STATUS_TRANSLATED if updated.target.text.strip() else STATUS_EMPTY
            updated.last_modified = iso_timestamp()
            return updated

        return self._map_units(ids, update, f"Copy source to target ({len(ids)} segments)", revalidate=True)

    def clear_target(self, ids: Iterable[str]) -> MutationResult:
        ids = list(ids)

        def update(u: TranslationUnit) -> Optional[TranslationUnit]:
            if u.is_locked:
                return None
            updated = u.clone()
            updated.target.text = ""
            updated.target.tags = []
            updated.status = STATUS_EMPTY
            updated.last_modified = iso_timestamp()
            return updated

        return self._map_units(ids, update, f"Clear target ({len(ids)} segments)", revalidate=True)

    def toggle_lock(self, ids: Iterable[str]) -> MutationResult:
        """新的锁定状态由第一个选中单元决定"""
        ids = list(ids)
        first = self.get_unit(ids[0]) if ids else None
        if first is None:
            return MutationResult(self._units, consistency=self.consistency)
        locked = not first.is_locked

        def update(u: TranslationUnit) -> Optional[TranslationUnit]:
            if u.is_locked == locked:
                return None
            updated = u.clone()
            updated.is_locked = locked
            updated.last_modified = iso_timestamp()
            return updated

        action = "Lock" if locked else "Unlock"
        return self._map_units(ids, update, f"{action} {len(ids)} segments")

    def approve(self, ids: Iterable[str]) -> MutationResult:
        """只批准译文非空的单元"""
        ids = list(ids)

        def update(u: TranslationUnit) -> Optional[TranslationUnit]:
            if not u.target.text.strip() or u.status == STATUS_APPROVED:
                return None
            updated = u.clone()
            updated.status = STATUS_APPROVED
            updated.last_modified = iso_timestamp()
            return updated

        return self._map_units(ids, update, f"Approve {len(ids)} segments")

    def place_tags(self, unit_id: str) -> MutationResult:
        """
        把原文中有、译文中缺少的标签追加到译文末尾

        Raises:
            UnitLockedError: 单元已锁定
            KeyError: 单元不存在
        """
        unit = self.get_unit(unit_id)
        if unit is None:
            raise KeyError(unit_id)
        if unit.is_locked:
            raise UnitLockedError("Unit is locked", unit_id=unit_id)

        present = set(unit.target.tag_ids())
        missing = [t for t in unit.source.tags if t.id not in present]
        if not missing:
            logger.info(f"Unit {unit_id}: all source tags already present")
            return MutationResult(self._units, consistency=self.consistency)

        def update(u: TranslationUnit) -> TranslationUnit:
            updated = u.clone()
            tokens = [t.id for t in missing]
            updated.target.text = " ".join([u.target.text, *tokens]).strip()
            updated.target.tags = [*updated.target.tags, *(TmxTag(**vars(t)) for t in missing)]
            if updated.status == STATUS_EMPTY:
                updated.status = STATUS_TRANSLATED
            updated.last_modified = iso_timestamp()
            return updated

        return self._map_units([unit_id], update, "Place tags", revalidate=True)

    def delete_units(self, ids: Iterable[str]) -> MutationResult:
        """删除单元（锁定单元保留）"""
        wanted = set(ids)
        with self._lock:
            self.history.snapshot(self._units, f"Delete {len(wanted)} segments")
            kept = [u for u in self._units if u.id not in wanted or u.is_locked]
            deleted = [u.id for u in self._units if u.id in wanted and not u.is_locked]
            logger.info(f"Deleted {len(deleted)} units")
            return self._replace(kept, [], deleted_ids=deleted)

    def run_batch_transform(
        self,
        config: BatchConfig,
        on_progress: Optional[ProgressCallback] = None,
    ) -> tuple[MutationResult, BatchResult]:
        """
        运行批量查找替换

        修改过的单元 QA 问题被清空，但不会自动重新计算一致性问题。

        Raises:
            BatchInProgressError: 已有任务在运行
        """
        with self._lock:
            if self.batch.busy:
                raise BatchInProgressError("A batch job is already running")
            filtered_ids = [u.id for u in self.select()] if config.only_filtered else None
            self.history.snapshot(self._units, f"Batch transformation ({len(config.rules)} rules)")
            batch = self.batch.run(self._units, config, on_progress, filtered_ids)
            changed_ids = set(batch.modified_ids)
            changed = [u for u in batch.units if u.id in changed_ids]
            return self._replace(batch.units, changed), batch

    def run_cleanup(
        self,
        config: CleanupConfig,
        on_progress: Optional[ProgressCallback] = None,
    ) -> tuple[MutationResult, CleanupReport]:
        with self._lock:
            self.history.snapshot(self._units, "Cleanup")
            before = {u.id: u for u in self._units}
            kept, report = run_cleanup(self._units, config, on_progress)
            changed = [u for u in kept if before.get(u.id) is not u]
            return self._replace(kept, changed, deleted_ids=report.deleted_ids), report

    def _restore(self, restored: Optional[list[TranslationUnit]]) -> MutationResult:
        if restored is None:
            return MutationResult(self._units, consistency=self.consistency)
        restored_ids = {u.id for u in restored}
        deleted = [u.id for u in self._units if u.id not in restored_ids]
        return self._replace(restored, list(restored), deleted_ids=deleted)

    def undo(self) -> MutationResult:
        """没有可撤销的快照时不做任何事"""
        with self._lock:
            return self._restore(self.history.undo(self._units))

    def redo(self) -> MutationResult:
        with self._lock:
            return self._restore(self.history.redo(self._units))

    def restore_snapshot(self, snapshot_id: Optional[str] = None) -> MutationResult:
        with self._lock:
            return self._restore(self.history.restore_snapshot(snapshot_id))

    # ========================================
    # QA 与忽略状态
    # ========================================

    def run_project_qa(
        self,
        preserve_ignored: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> MutationResult:
        """对整个语料运行 QA（不保存快照）"""
        with self._lock:
            engine = QAEngine()
            audited = engine.run_project(
                self._units, self.settings, self.active_terms(),
                preserve_ignored=preserve_ignored, on_progress=on_progress,
            )
            self.last_engine = engine
            return self._replace(audited, audited)

    def _set_ignored(self, selected: Callable[[TranslationUnit, Any], bool], ignore: bool, user: str) -> MutationResult:
        with self._lock:
            result = []
            changed = []
            for unit in self._units:
                hits = [i for i in unit.qa_issues if selected(unit, i) and i.is_ignored != ignore]
                if not hits:
                    result.append(unit)
                    continue
                updated = unit.clone()
                hit_ids = {i.id for i in hits}
                for issue in updated.qa_issues:
                    if issue.id in hit_ids:
                        issue.is_ignored = ignore
                        issue.ignored_by = user if ignore else None
                result.append(updated)
                changed.append(updated)
            self._units = tuple(result)
            self._persist(changed, [])
            return MutationResult(self._units, [u.id for u in changed], self.consistency)

    def batch_toggle_ignore(
        self,
        pairs: Iterable[tuple[str, str]],
        ignore: Optional[bool] = None,
        user: str = DEFAULT_IGNORED_BY,
    ) -> MutationResult:
        """
        批量切换忽略状态

        Args:
            pairs: (unit_id, issue_id) 列表
            ignore: 目标状态；None 时取第一个问题当前状态的反面
        """
        pairs = list(pairs)
        keys = set(pairs)
        if not keys:
            return MutationResult(self._units, consistency=self.consistency)
        if ignore is None:
            unit_id, issue_id = pairs[0]
            unit = self.get_unit(unit_id)
            issue = next((i for i in unit.qa_issues if i.id == issue_id), None) if unit else None
            ignore = not issue.is_ignored if issue else True
        return self._set_ignored(lambda u, i: (u.id, i.id) in keys, ignore, user)

    def toggle_issue_ignore(self, unit_id: str, issue_id: str, user: str = DEFAULT_IGNORED_BY) -> MutationResult:
        return self.batch_toggle_ignore([(unit_id, issue_id)], user=user)

    def ignore_issue_group(
        self,
        group: str,
        ignore: bool = True,
        user: str = DEFAULT_IGNORED_BY,
    ) -> MutationResult:
        """忽略同一组（group_id 或 code 相同）的全部问题，限于当前语言对"""
        pair = self.active_language_pair

        def selected(unit: TranslationUnit, issue) -> bool:
            if pair is not None and not (lang_match(unit.source_lang, pair[0]) and lang_match(unit.target_lang, pair[1])):
                return False
            return issue.group_id == group or issue.code == group

        return self._set_ignored(selected, ignore, user)

    # ========================================
    # 规则生成
    # ========================================

    def add_generated_check(self, generator: RuleGenerator, description: str) -> UserDefinedCheck:
        """
        用外部助手把自然语言描述转成用户检查并加入设置

        Args:
            generator: 接收描述，返回 UserDefinedCheck 或等价的映射
            description: 规则描述

        Raises:
            RuleGenerationError: 助手失败或返回了无法识别的结果
        """
        try:
            generated = generator(description)
        except Exception as e:
            raise RuleGenerationError(f"Rule generation failed: {e}", description=description) from e

        if isinstance(generated, dict):
            check = UserDefinedCheck.from_dict(generated)
        elif isinstance(generated, UserDefinedCheck):
            check = generated
        else:
            raise RuleGenerationError(
                f"Rule generator returned {type(generated).__name__}", description=description,
            )
        if not check.source_pattern and not check.target_pattern:
            raise RuleGenerationError("Generated check has no patterns", description=description)

        self.settings.user_defined_checks.append(check)
        logger.info(f"Added generated check '{check.title}'")
        return check
