"""Shared helpers for the rule modules."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from ...utils.common import SEVERITY_WARNING
from ...utils.models import Highlight, QAIssue
from ...utils.tags import map_stripped_to_original


def make_issue(
    code: str,
    message: str,
    severity: str = SEVERITY_WARNING,
    rule_id: Optional[str] = None,
    source_highlights: Optional[Iterable[Highlight]] = None,
    target_highlights: Optional[Iterable[Highlight]] = None,
) -> QAIssue:
    return QAIssue(
        code=code,
        message=message,
        severity=severity,
        rule_id=rule_id,
        source_highlights=list(source_highlights or []),
        target_highlights=list(target_highlights or []),
    )


def span(index: int, length: int, original: str) -> Highlight:
    """Map a range in strip_tags() text back onto the tagged text."""
    start, end = map_stripped_to_original(index, length, original)
    return Highlight(start, end)


def match_span(match: re.Match, original: str, group: int = 0) -> Highlight:
    return span(match.start(group), match.end(group) - match.start(group), original)


def raw_span(match: re.Match, group: int = 0) -> Highlight:
    """Range of a match made directly on the tagged text."""
    return Highlight(match.start(group), match.end(group))


def term_pattern(term: str, flags: int = re.IGNORECASE) -> re.Pattern:
    """
    Whole-word literal pattern.

    Lookarounds instead of \\b so that terms starting or ending with a
    non-word character ("C++", ".NET") still match.
    """
    return re.compile(rf"(?<!\w){re.escape(term)}(?!\w)", flags)
