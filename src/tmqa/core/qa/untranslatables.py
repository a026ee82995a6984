"""
不可翻译词与禁用表达

不可翻译词必须在原文和译文中原样出现且次数一致；
禁用表达出现在译文时报错（原文也出现时可以豁免）。
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Iterable, Optional

from ...utils.common import SEVERITY_ERROR, SEVERITY_WARNING
from ...utils.models import QAIssue, TranslationUnit
from ...utils.settings import QASettings
from ...utils.tags import remove_tags, strip_tags
from .issues import make_issue, match_span, raw_span

logger = logging.getLogger(__name__)

TECHNICAL_RE = re.compile(r"[a-zA-Z0-9]+[-_][a-zA-Z0-9_-]+")
MIXED_CASE_RE = re.compile(r"\b[a-z]+[A-Z][a-z]+\b")
UPPER_CASE_RE = re.compile(r"\b[A-Z]{2,}\b")

POTENTIAL_SCAN_LIMIT = 1000


def build_untranslatable_regex(terms: Iterable[str]) -> Optional[re.Pattern]:
    escaped = [re.escape(t) for t in sorted({t for t in terms if t}, key=len, reverse=True)]
    if not escaped:
        return None
    return re.compile(r"(?<!\w)(" + "|".join(escaped) + r")(?!\w)", re.IGNORECASE)


def _prepare(text: str, settings: QASettings) -> str:
    result = strip_tags(text)
    if settings.ignore_space_types:
        result = result.replace("\u00a0", " ")
    return result


def check_untranslatables(source: str, target: str, settings: QASettings) -> list[QAIssue]:
    if not settings.check_untranslatables:
        return []
    regex = build_untranslatable_regex(settings.untranslatables)
    if regex is None:
        return []

    s_matches = list(regex.finditer(_prepare(source, settings)))
    t_matches = list(regex.finditer(_prepare(target, settings)))
    s_counts = Counter(m.group().lower() for m in s_matches)
    t_counts = Counter(m.group().lower() for m in t_matches)
    scope = settings.untranslatable_scope

    issues = []
    for term in dict.fromkeys([*s_counts, *t_counts]):
        s_count = s_counts[term]
        t_count = t_counts[term]
        s_hits = [m for m in s_matches if m.group().lower() == term]
        t_hits = [m for m in t_matches if m.group().lower() == term]
        display = (s_hits or t_hits)[0].group()

        if scope in ("source", "both") and s_count and not t_count:
            issues.append(make_issue(
                'Untranslatable term missing in target',
                f'Untranslatable term missing in target: "{display}" found in source but missing in target.',
                SEVERITY_ERROR, 'untranslatables',
                source_highlights=[match_span(m, source) for m in s_hits],
            ))
        if scope in ("target", "both") and t_count and not s_count:
            issues.append(make_issue(
                'Untranslatable term missing in source',
                f'Untranslatable term missing in source: "{display}" found in target but not in source.',
                SEVERITY_ERROR, 'untranslatables',
                target_highlights=[match_span(m, target) for m in t_hits],
            ))
        if settings.check_untranslatable_count and s_count and t_count and s_count != t_count:
            issues.append(make_issue(
                'Different amount of untranslatables',
                f'Untranslatable count mismatch: "{display}" appears {s_count}x in source but {t_count}x in target.',
                SEVERITY_WARNING, 'checkUntranslatableCount',
                source_highlights=[match_span(m, source) for m in s_hits],
                target_highlights=[match_span(m, target) for m in t_hits],
            ))
    return issues


def _forbidden_pattern(expr: str) -> str:
    if expr.startswith(r"\b") or expr.endswith(r"\b") or "^" in expr or "$" in expr:
        return expr
    return rf"\b{expr}\b"


def check_forbidden_words(source: str, target: str, settings: QASettings) -> list[QAIssue]:
    """禁用表达按正则处理；非法表达记录警告后跳过"""
    if not settings.check_forbidden_words:
        return []

    issues = []
    for expr in settings.forbidden_words:
        if not expr.strip():
            continue
        try:
            regex = re.compile(_forbidden_pattern(expr), re.IGNORECASE)
        except re.error as e:
            logger.warning(f"Invalid forbidden expression {expr!r}: {e}")
            continue

        matches = list(regex.finditer(target))
        if not matches:
            continue
        if settings.ignore_forbidden_if_in_source and regex.search(source):
            continue
        issues.append(make_issue(
            'Forbidden expression detected',
            f'Forbidden expression detected in target: "{expr}"',
            SEVERITY_ERROR, 'checkForbiddenWords',
            target_highlights=[raw_span(m) for m in matches],
        ))
    return issues


def find_potential_untranslatables(
    units: Iterable[TranslationUnit],
    settings: QASettings,
    limit: int = POTENTIAL_SCAN_LIMIT,
) -> list[str]:
    """
    在原文中寻找可能的不可翻译词

    Args:
        units: 翻译单元
        settings: 决定启用哪些启发式规则（技术标识、驼峰词、全大写词）
        limit: 最多扫描的单元数

    Returns:
        排序后的候选列表，已排除现有条目
    """
    regexes = []
    if settings.include_technical:
        regexes.append(TECHNICAL_RE)
    if settings.include_mixed_case:
        regexes.append(MIXED_CASE_RE)
    if settings.include_upper_case:
        regexes.append(UPPER_CASE_RE)

    found: set[str] = set()
    for i, unit in enumerate(units):
        if i >= limit:
            break
        text = remove_tags(unit.source.text)
        for regex in regexes:
            found.update(regex.findall(text))

    existing = set(settings.untranslatables)
    return sorted(found - existing)
