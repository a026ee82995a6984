"""Letter case checks."""

from __future__ import annotations

import re

from ...utils.common import SEVERITY_ERROR, SEVERITY_INFO, SEVERITY_WARNING
from ...utils.models import QAIssue
from ...utils.settings import QASettings
from ...utils.tags import strip_tags
from .issues import make_issue, match_span, span

# Latin letters incl. Latin-1 / Latin Extended-A, without × and ÷
ALPHA_RE = re.compile(r"[a-zA-ZÀ-ÖØ-öø-ſ]")
CAMEL_RE = re.compile(r"\b[a-z]+[A-Z][a-z]+")


def _is_upper(char: str) -> bool:
    return char == char.upper() and char != char.lower()


def _all_caps(text: str) -> bool:
    letters = [c for c in text if c.isalpha() and c.upper() != c.lower()]
    return len(letters) >= 2 and all(c.isupper() for c in letters)


def check_letter_case(source: str, target: str, settings: QASettings) -> list[QAIssue]:
    issues = []
    s_stripped = strip_tags(source)
    t_stripped = strip_tags(target)

    if settings.check_initial_capitalization:
        s_first = ALPHA_RE.search(s_stripped)
        t_first = ALPHA_RE.search(t_stripped)
        if s_first and t_first and _is_upper(s_first.group()) != _is_upper(t_first.group()):
            issues.append(make_issue(
                'Inconsistent capitalization of the first letter in source and target',
                'Initial capitalization mismatch with source.',
                SEVERITY_WARNING, 'checkInitialCapitalization',
                source_highlights=[match_span(s_first, source)],
                target_highlights=[match_span(t_first, target)],
            ))

    if settings.check_camel_case:
        special = {s.lower() for s in settings.special_cases}
        highlights = [
            match_span(m, target)
            for m in CAMEL_RE.finditer(t_stripped)
            if m.group().lower() not in special and m.group() not in source
        ]
        if highlights:
            issues.append(make_issue(
                'Suspicious mid-word capitalization',
                'Suspicious mid-word capitalization detected.',
                SEVERITY_INFO, 'checkCamelCase',
                target_highlights=highlights,
            ))

    if settings.check_all_upper and _all_caps(s_stripped) and t_stripped.strip():
        if not _all_caps(t_stripped):
            issues.append(make_issue(
                'All caps mismatch',
                'Source is written in capitals but target is not.',
                SEVERITY_WARNING, 'checkAllUpper',
            ))

    if settings.check_special_case and settings.special_cases:
        highlights = []
        expected = []
        for term in settings.special_cases:
            if not term:
                continue
            for m in re.finditer(rf"\b{re.escape(term)}\b", t_stripped, re.IGNORECASE):
                if m.group() != term:
                    highlights.append(span(m.start(), len(m.group()), target))
                    if term not in expected:
                        expected.append(term)
        if highlights:
            terms = '", "'.join(expected)
            issues.append(make_issue(
                'Invalid special casing',
                f'Invalid special casing. Expected: "{terms}".',
                SEVERITY_ERROR, 'checkSpecialCase',
                target_highlights=highlights,
            ))

    return issues
