"""Quotation mark and apostrophe checks."""

from __future__ import annotations

import re

from ...utils.common import SEVERITY_ERROR, SEVERITY_WARNING
from ...utils.models import QAIssue
from ...utils.settings import QASettings, QuotePair
from ...utils.tags import clean_text, strip_tags
from .issues import make_issue, span

APOSTROPHE_RE = re.compile(r"['’ʼ′]")


def _is_inner_apostrophe(text: str, i: int, apostrophes: list[str]) -> bool:
    """’ between two letters is an apostrophe (don’t), not a closing quote."""
    return (
        text[i] in apostrophes
        and 0 < i < len(text) - 1
        and text[i - 1].isalpha()
        and text[i + 1].isalpha()
    )


def check_quote_balance(
    raw: str,
    pairs: list[QuotePair],
    apostrophes: list[str],
) -> list[QAIssue]:
    text = strip_tags(raw)
    openers = [p.open for p in pairs]
    closers = [p.close for p in pairs]
    marks = set(openers) | set(closers)

    stack: list[tuple[str, int]] = []
    unclosed = []
    mismatched = []
    for i, char in enumerate(text):
        if char not in marks:
            continue
        if _is_inner_apostrophe(text, i, apostrophes):
            continue
        open_idx = openers.index(char) if char in openers else -1
        close_idx = closers.index(char) if char in closers else -1

        # 开闭相同的引号（如 "）：栈顶相同则闭合，否则开启
        if open_idx != -1 and open_idx == close_idx:
            if stack and stack[-1][0] == char:
                stack.pop()
            else:
                stack.append((char, i))
            continue

        if open_idx != -1:
            stack.append((char, i))
        elif not stack:
            unclosed.append(span(i, 1, raw))
        else:
            last, _ = stack.pop()
            if last != pairs[close_idx].open:
                mismatched.append(span(i, 1, raw))

    unclosed.extend(span(i, 1, raw) for _, i in reversed(stack))

    issues = []
    if unclosed:
        issues.append(make_issue(
            'Unclosed quotation mark',
            'Unbalanced or unclosed quotation marks found.',
            SEVERITY_ERROR, 'checkQuotes',
            target_highlights=unclosed,
        ))
    if mismatched:
        issues.append(make_issue(
            'Mismatched quotation mark',
            'Mismatched quotation marks found (e.g., opening with “ and closing with »).',
            SEVERITY_ERROR, 'checkQuotes',
            target_highlights=mismatched,
        ))
    return issues


def check_quotes(source: str, target: str, settings: QASettings) -> list[QAIssue]:
    if not clean_text(target):
        return []

    issues = []
    if settings.check_apostrophes:
        t_stripped = strip_tags(target)
        highlights = [
            span(m.start(), 1, target)
            for m in APOSTROPHE_RE.finditer(t_stripped)
            if m.group() not in settings.allowed_apostrophes
        ]
        if highlights:
            issues.append(make_issue(
                'Invalid apostrophe sign',
                'Incorrect apostrophe type used.',
                SEVERITY_WARNING, 'checkApostrophes',
                target_highlights=highlights,
            ))

    if settings.check_quotes and settings.allowed_quote_pairs:
        pairs = settings.allowed_quote_pairs
        # 原文不平衡时不检查译文
        if not check_quote_balance(source, pairs, settings.allowed_apostrophes):
            issues.extend(check_quote_balance(target, pairs, settings.allowed_apostrophes))

    return issues
