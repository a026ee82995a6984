"""
术语检查

- 原文命中的术语，译文必须出现至少一个认可译法（同一原文的多个条目视为词形变体）
- 译法数量少于原文出现次数时给出警告
- 禁用译法（is_forbidden 条目）出现在译文时报错
- 可选：反向检查、标签包裹一致性
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from ...utils.common import SEVERITY_ERROR, SEVERITY_WARNING
from ...utils.models import GlossaryTerm, QAIssue
from ...utils.settings import QASettings
from ...utils.tags import OBJECT_MARKER, strip_tags
from .issues import make_issue, match_span, term_pattern

logger = logging.getLogger(__name__)


@dataclass
class TermEntry:
    """同一原文（不区分大小写）的全部认可译法"""
    source: str
    targets: list[str] = field(default_factory=list)


def group_terms(glossary: list[GlossaryTerm], skip: Optional[set[str]] = None) -> list[TermEntry]:
    skip = skip or set()
    entries: dict[str, TermEntry] = {}
    for term in glossary:
        if term.is_forbidden or not term.source or not term.target:
            continue
        key = term.source.lower()
        if key in skip:
            continue
        entries.setdefault(key, TermEntry(term.source)).targets.append(term.target)
    return list(entries.values())


def _tag_wrapped(text: str, match: re.Match) -> bool:
    before = text[:match.start()].rstrip()
    after = text[match.end():].lstrip()
    return before.endswith(OBJECT_MARKER) and after.startswith(OBJECT_MARKER)


def _check_entry(
    entry: TermEntry,
    source: str,
    target: str,
    s_stripped: str,
    t_stripped: str,
    settings: QASettings,
    issues: list[QAIssue],
) -> None:
    s_matches = list(term_pattern(entry.source).finditer(s_stripped))
    t_matches = [
        m for variant in entry.targets
        for m in term_pattern(variant).finditer(t_stripped)
    ]

    if s_matches:
        source_highlights = [match_span(m, source) for m in s_matches]
        if not t_matches:
            issues.append(make_issue(
                'Terminology violation',
                f'Terminology violation: Source has "{entry.source}", but no approved translation '
                f'({" / ".join(entry.targets)}) was found in target.',
                SEVERITY_ERROR, 'checkTerminology',
                source_highlights=source_highlights,
            ))
            return
        target_highlights = [match_span(m, target) for m in sorted(t_matches, key=lambda m: m.start())]
        if settings.check_term_count and len(t_matches) < len(s_matches):
            issues.append(make_issue(
                'Terminology count mismatch',
                f'Terminology count mismatch: "{entry.source}" ({len(s_matches)}x) vs approved '
                f'translations ({len(t_matches)}x).',
                SEVERITY_WARNING, 'checkTermCount',
                source_highlights=source_highlights,
                target_highlights=target_highlights,
            ))
        if settings.check_term_tags:
            s_wrapped = any(_tag_wrapped(s_stripped, m) for m in s_matches)
            t_wrapped = any(_tag_wrapped(t_stripped, m) for m in t_matches)
            if s_wrapped and not t_wrapped:
                issues.append(make_issue(
                    'Term tag mismatch',
                    f'Term "{entry.source}" is enclosed in tags in source but not in target.',
                    SEVERITY_WARNING, 'checkTermTags',
                    source_highlights=source_highlights,
                    target_highlights=target_highlights,
                ))
    elif settings.reverse_term_check and t_matches:
        issues.append(make_issue(
            'Terminology violation',
            f'Reverse terminology check: "{t_matches[0].group()}" found in target, '
            f'but "{entry.source}" is missing in source.',
            SEVERITY_WARNING, 'reverseTermCheck',
            target_highlights=[match_span(m, target) for m in t_matches],
        ))


def check_terminology(
    source: str,
    target: str,
    settings: QASettings,
    glossary: Optional[list[GlossaryTerm]],
) -> list[QAIssue]:
    if not glossary or not (settings.check_terminology or settings.detect_forbidden_terms):
        return []

    issues: list[QAIssue] = []
    s_stripped = strip_tags(source)
    t_stripped = strip_tags(target)

    if settings.check_terminology:
        skip = set()
        if settings.skip_untranslatables_in_term:
            skip = {u.lower() for u in settings.untranslatables if u}
        for entry in group_terms(glossary, skip):
            _check_entry(entry, source, target, s_stripped, t_stripped, settings, issues)

    if settings.detect_forbidden_terms:
        for term in glossary:
            if not term.is_forbidden or not term.target:
                continue
            matches = list(term_pattern(term.target).finditer(t_stripped))
            if matches:
                issues.append(make_issue(
                    'Forbidden term detected',
                    f'Forbidden term used: "{term.target}" is prohibited.',
                    SEVERITY_ERROR, 'detectForbiddenTerms',
                    target_highlights=[match_span(m, target) for m in matches],
                ))

    return issues
