"""
一致性分析

对同一语言对内的单元按规范化键分组：
- 目标不一致：同一原文键对应多个不同译文键
- 源不一致：同一译文键对应多个不同原文键
- 重复：原文键出现 >= 2 次

输出是规范化键的集合，而不是单元 id；调用方通过重新计算单元自身的键来判断归属。
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..utils.common import SEVERITY_WARNING, lang_match
from ..utils.models import QAIssue, TranslationUnit
from ..utils.settings import QASettings
from .normalizer import source_key, target_key

logger = logging.getLogger(__name__)

TARGET_INCONSISTENCY = "Target inconsistency"
SOURCE_INCONSISTENCY = "Source inconsistency"
CONSISTENCY_CODES = (TARGET_INCONSISTENCY, SOURCE_INCONSISTENCY)

_MESSAGES = {
    TARGET_INCONSISTENCY: "This source text has multiple different translations in the project.",
    SOURCE_INCONSISTENCY: "This translation is used for multiple different source texts.",
}
_RULE_IDS = {
    TARGET_INCONSISTENCY: "targetInconsistencyOptions",
    SOURCE_INCONSISTENCY: "sourceInconsistencyOptions",
}


@dataclass
class ConsistencyReport:
    """一个语言对的一致性分析结果"""
    language_pair: Optional[tuple[str, str]] = None
    repetitions: set[str] = field(default_factory=set)
    inconsistent_targets: set[str] = field(default_factory=set)
    inconsistent_sources: set[str] = field(default_factory=set)

    def is_repetition(self, unit: TranslationUnit, settings: QASettings) -> bool:
        return source_key(unit, settings.target_inconsistency_options) in self.repetitions

    def has_inconsistent_target(self, unit: TranslationUnit, settings: QASettings) -> bool:
        return source_key(unit, settings.target_inconsistency_options) in self.inconsistent_targets

    def has_inconsistent_source(self, unit: TranslationUnit, settings: QASettings) -> bool:
        return target_key(unit, settings.source_inconsistency_options) in self.inconsistent_sources

    def summary(self) -> dict:
        return {
            'repetitions': len(self.repetitions),
            'inconsistent_targets': len(self.inconsistent_targets),
            'inconsistent_sources': len(self.inconsistent_sources),
        }


def units_in_pair(
    units: Iterable[TranslationUnit],
    language_pair: Optional[tuple[str, str]],
) -> list[TranslationUnit]:
    """按基础语言代码筛选语言对；language_pair 为 None 时返回全部"""
    if language_pair is None:
        return list(units)
    src, tgt = language_pair
    return [u for u in units if lang_match(u.source_lang, src) and lang_match(u.target_lang, tgt)]


def language_pairs(units: Iterable[TranslationUnit]) -> list[tuple[str, str]]:
    """按首次出现顺序列出语料中的语言对（基础语言代码去重）"""
    seen: dict[tuple[str, str], tuple[str, str]] = {}
    for unit in units:
        key = (unit.source_lang.lower(), unit.target_lang.lower())
        seen.setdefault(key, unit.language_pair)
    return list(seen.values())


def _resolve_pair(
    units: list[TranslationUnit],
    language_pair: Optional[tuple[str, str]],
) -> Optional[tuple[str, str]]:
    if language_pair is not None or not units:
        return language_pair
    pairs = language_pairs(units)
    if len(pairs) > 1:
        logger.warning(
            f"Corpus has {len(pairs)} language pairs; analysing {pairs[0][0]}->{pairs[0][1]} only"
        )
    return pairs[0]


def analyze_consistency(
    units: Iterable[TranslationUnit],
    settings: QASettings,
    language_pair: Optional[tuple[str, str]] = None,
) -> ConsistencyReport:
    """
    一次遍历计算重复与不一致集合

    Args:
        units: 语料
        settings: 提供两组规范化选项
        language_pair: 要分析的语言对；None 时取语料中的第一个语言对

    Returns:
        ConsistencyReport
    """
    units = list(units)
    pair = _resolve_pair(units, language_pair)
    scoped = units_in_pair(units, pair)

    target_opts = settings.target_inconsistency_options
    source_opts = settings.source_inconsistency_options

    source_counts: Counter[str] = Counter()
    source_map: dict[str, set[str]] = defaultdict(set)
    target_map: dict[str, set[str]] = defaultdict(set)

    for unit in scoped:
        src_key = source_key(unit, target_opts)
        source_counts[src_key] += 1

        source_map[src_key].add(target_key(unit, target_opts))
        target_map[target_key(unit, source_opts)].add(source_key(unit, source_opts))

    report = ConsistencyReport(
        language_pair=pair,
        repetitions={k for k, n in source_counts.items() if n >= 2},
        inconsistent_targets={k for k, targets in source_map.items() if len(targets) > 1},
        inconsistent_sources={k for k, sources in target_map.items() if len(sources) > 1},
    )
    logger.debug(f"Consistency for {pair}: {report.summary()}")
    return report


def _consistency_issues(
    unit: TranslationUnit,
    report: ConsistencyReport,
    settings: QASettings,
) -> list[QAIssue]:
    issues = []
    if settings.target_inconsistency_options.enabled:
        key = source_key(unit, settings.target_inconsistency_options)
        if key in report.inconsistent_targets:
            issues.append(_issue(TARGET_INCONSISTENCY, key))
    if settings.source_inconsistency_options.enabled:
        key = target_key(unit, settings.source_inconsistency_options)
        if key in report.inconsistent_sources:
            issues.append(_issue(SOURCE_INCONSISTENCY, key))
    return issues


def _issue(code: str, group_id: str) -> QAIssue:
    return QAIssue(
        code=code,
        message=_MESSAGES[code],
        severity=SEVERITY_WARNING,
        group_id=group_id,
        rule_id=_RULE_IDS[code],
    )


def validate_consistency(
    units: Iterable[TranslationUnit],
    settings: QASettings,
    language_pair: Optional[tuple[str, str]] = None,
    report: Optional[ConsistencyReport] = None,
) -> list[TranslationUnit]:
    """
    为语言对内的单元重新生成一致性问题

    已存在且仍然成立的一致性问题（相同 code 与 group_id）原样保留，
    因此 id 和忽略状态不受影响；不再成立的被移除，新出现的被追加。
    锁定单元和语言对之外的单元原样返回。

    Returns:
        新的单元列表（输入不会被修改）
    """
    units = list(units)
    if report is None:
        report = analyze_consistency(units, settings, language_pair)
    pair = report.language_pair
    enabled = settings.check_inconsistency and (
        settings.target_inconsistency_options.enabled or settings.source_inconsistency_options.enabled
    )

    in_scope = {u.id for u in units_in_pair(units, pair)}
    result = []
    for unit in units:
        if unit.id not in in_scope or unit.is_locked:
            result.append(unit)
            continue

        wanted = _consistency_issues(unit, report, settings) if enabled else []
        existing = [i for i in unit.qa_issues if i.code in CONSISTENCY_CODES]
        kept_keys = {(i.code, i.group_id) for i in wanted}
        current_keys = {(i.code, i.group_id) for i in existing}
        if kept_keys == current_keys and len(existing) == len(wanted):
            result.append(unit)
            continue

        updated = unit.clone()
        seen: set = set()
        issues = []
        for issue in updated.qa_issues:
            if issue.code in CONSISTENCY_CODES:
                key = (issue.code, issue.group_id)
                if key not in kept_keys or key in seen:
                    continue
                seen.add(key)
            issues.append(issue)
        updated.qa_issues = issues
        updated.qa_issues.extend(i for i in wanted if (i.code, i.group_id) not in current_keys)
        result.append(updated)
    return result
