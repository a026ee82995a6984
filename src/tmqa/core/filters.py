"""
过滤与查询

select_filtered() 按固定顺序组合：
语言对 -> 文件 -> 状态 -> 原文/译文查询 -> 内置过滤器或自定义过滤器。
一致性类过滤器使用 ConsistencyReport 的键集合，并把同一键的单元排在一起。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..utils.models import CustomFilter, FilterCondition, TranslationUnit
from ..utils.settings import QASettings
from ..utils.tags import BAD_ENTITY_RE, CONTROL_CHARS_RE, remove_tags
from .consistency import CONSISTENCY_CODES, ConsistencyReport, analyze_consistency, units_in_pair
from .normalizer import source_key, target_key

logger = logging.getLogger(__name__)

SEARCH_MODES = ("normal", "regex", "wildcard")
BUILT_IN_FILTERS = (
    "all", "same", "untranslated", "comments", "invalid",
    "inconsistency", "source_inconsistency", "repetitions", "custom",
)
CONSISTENCY_FILTERS = ("inconsistency", "source_inconsistency", "repetitions")
CONDITION_OPERATORS = ("contains", "excludes", "equal", "not_equal")


@dataclass
class FilterCriteria:
    """一次查询的全部条件；空值表示不过滤"""
    language_pair: Optional[tuple[str, str]] = None
    file_id: Optional[str] = None
    status: str = "all"
    source_query: str = ""
    target_query: str = ""
    search_mode: str = "normal"
    ignore_case: bool = True
    ignore_tags: bool = True
    built_in_filter: str = "all"
    custom_filter: Optional[CustomFilter] = None

    def __post_init__(self):
        if self.search_mode not in SEARCH_MODES:
            logger.warning(f"Unknown search mode {self.search_mode!r}, using 'normal'")
            self.search_mode = "normal"
        if self.built_in_filter not in BUILT_IN_FILTERS:
            logger.warning(f"Unknown filter {self.built_in_filter!r}, using 'all'")
            self.built_in_filter = "all"

    @property
    def uses_consistency(self) -> bool:
        return self.custom_filter is None and self.built_in_filter in CONSISTENCY_FILTERS


def compile_query(query: str, mode: str, ignore_case: bool) -> Optional[re.Pattern]:
    """
    编译查询

    wildcard 模式中只有 * 是通配符（匹配任意字符），由 query_matcher 做整串匹配。

    Returns:
        编译后的模式；非法正则返回 None（调用方视为无匹配）
    """
    flags = re.IGNORECASE if ignore_case else 0
    if mode == "regex":
        source = query
    elif mode == "wildcard":
        source = re.escape(query).replace(r"\*", ".*")
    else:
        source = re.escape(query)
    try:
        return re.compile(source, flags | re.DOTALL if mode == "wildcard" else flags)
    except re.error as e:
        logger.warning(f"Invalid search pattern {query!r}: {e}")
        return None


def query_matcher(pattern: re.Pattern, mode: str) -> Callable[[str], Optional[re.Match]]:
    return pattern.fullmatch if mode == "wildcard" else pattern.search


def _searchable(text: str, ignore_tags: bool) -> str:
    return remove_tags(text) if ignore_tags else text


def match_query(
    units: list[TranslationUnit],
    query: str,
    side: str,
    mode: str,
    ignore_case: bool,
    ignore_tags: bool,
) -> list[TranslationUnit]:
    if not query:
        return units
    pattern = compile_query(query, mode, ignore_case)
    if pattern is None:
        return []
    matches = query_matcher(pattern, mode)
    return [
        u for u in units
        if matches(_searchable(getattr(u, side).text, ignore_tags))
    ]


def _condition_text(unit: TranslationUnit, scope: str) -> Optional[str]:
    if scope == "source":
        return unit.source.text
    if scope == "target":
        return unit.target.text
    if scope == "comment":
        return unit.note or ""
    if scope == "status":
        return unit.status
    if scope.startswith("metadata."):
        value = unit.metadata.get(scope.split(".", 1)[1])
        return "" if value is None else str(value)
    return None


def match_condition(
    unit: TranslationUnit,
    condition: FilterCondition,
    ignore_case: bool = True,
    ignore_tags: bool = True,
) -> bool:
    text = _condition_text(unit, condition.scope)
    if text is None:
        logger.warning(f"Unknown filter scope {condition.scope!r}")
        return False
    if ignore_tags and condition.scope in ("source", "target"):
        text = remove_tags(text)

    value = condition.value
    if ignore_case:
        text = text.lower()
        value = value.lower()

    if condition.operator == "contains":
        return value in text
    if condition.operator == "excludes":
        return value not in text
    if condition.operator == "equal":
        return text == value
    if condition.operator == "not_equal":
        return text != value
    logger.warning(f"Unknown filter operator {condition.operator!r}")
    return False


def match_custom_filter(
    unit: TranslationUnit,
    custom: CustomFilter,
    ignore_case: bool = True,
    ignore_tags: bool = True,
) -> bool:
    """没有条件的过滤器匹配全部单元"""
    if not custom.conditions:
        return True
    results = (match_condition(unit, c, ignore_case, ignore_tags) for c in custom.conditions)
    return all(results) if custom.match_type == "and" else any(results)


def match_built_in(unit: TranslationUnit, filter_id: str, ignore_tags: bool = True) -> bool:
    """不依赖一致性报告的内置过滤器"""
    if filter_id == "same":
        source = _searchable(unit.source.text, ignore_tags).strip()
        target = _searchable(unit.target.text, ignore_tags).strip()
        return bool(source) and source == target
    if filter_id == "untranslated":
        return not unit.target.text.strip()
    if filter_id == "comments":
        return bool(unit.note and unit.note.strip())
    if filter_id == "invalid":
        text = unit.target.text
        return bool(CONTROL_CHARS_RE.search(text) or BAD_ENTITY_RE.search(text))
    if filter_id == "inconsistency":
        return any(i.code in CONSISTENCY_CODES for i in unit.qa_issues)
    return True


def _consistency_key(unit: TranslationUnit, filter_id: str, settings: QASettings) -> str:
    if filter_id == "source_inconsistency":
        return target_key(unit, settings.source_inconsistency_options)
    return source_key(unit, settings.target_inconsistency_options)


def group_by_key(units: list[TranslationUnit], filter_id: str, settings: QASettings) -> list[TranslationUnit]:
    """同一规范化键的单元相邻输出；组按首次出现排序，组内按 order 排序"""
    groups: dict[str, list[TranslationUnit]] = {}
    for unit in units:
        groups.setdefault(_consistency_key(unit, filter_id, settings), []).append(unit)
    result = []
    for group in groups.values():
        result.extend(sorted(group, key=lambda u: u.order))
    return result


def select_filtered(
    units: Iterable[TranslationUnit],
    criteria: FilterCriteria,
    settings: Optional[QASettings] = None,
    report: Optional[ConsistencyReport] = None,
) -> list[TranslationUnit]:
    """
    选出满足条件的单元

    Args:
        units: 语料
        criteria: 查询条件
        settings: 一致性过滤器需要的规范化选项
        report: 预先计算的一致性报告；缺省时按需计算

    Returns:
        匹配的单元（原对象，不复制）
    """
    units = list(units)
    settings = settings or QASettings()
    results = units_in_pair(units, criteria.language_pair)

    if criteria.file_id:
        results = [u for u in results if u.file_id == criteria.file_id]
    if criteria.status and criteria.status != "all":
        results = [u for u in results if u.status == criteria.status]

    results = match_query(results, criteria.source_query, "source",
                          criteria.search_mode, criteria.ignore_case, criteria.ignore_tags)
    results = match_query(results, criteria.target_query, "target",
                          criteria.search_mode, criteria.ignore_case, criteria.ignore_tags)

    if criteria.custom_filter is not None:
        return [
            u for u in results
            if match_custom_filter(u, criteria.custom_filter, criteria.ignore_case, criteria.ignore_tags)
        ]

    filter_id = criteria.built_in_filter
    if filter_id in ("all", "custom"):
        return results

    if filter_id in CONSISTENCY_FILTERS:
        if report is None:
            scope = units_in_pair(units, criteria.language_pair)
            report = analyze_consistency(scope, settings, criteria.language_pair)
        if filter_id == "inconsistency":
            results = [u for u in results if report.has_inconsistent_target(u, settings)]
        elif filter_id == "source_inconsistency":
            results = [u for u in results if report.has_inconsistent_source(u, settings)]
        else:
            results = [u for u in results if report.is_repetition(u, settings)]
        return group_by_key(results, filter_id, settings)

    return [u for u in results if match_built_in(u, filter_id, criteria.ignore_tags)]
