"""
标点与空格检查

包括多余空格、重复标点、句末标点、括号配对、首尾空格以及按语言配置的标点空格网格。
网格检查对同一 code 合并为一个问题，高亮累加。
"""

from __future__ import annotations

import re
from typing import Optional

from ...utils.common import SEVERITY_ERROR, SEVERITY_WARNING
from ...utils.models import Highlight, QAIssue
from ...utils.settings import PunctuationGrid, QASettings
from ...utils.tags import OBJECT_MARKER, strip_tags
from .issues import make_issue, match_span, span

MULTI_SPACE_RE = re.compile(r"\s\s+")
DOUBLE_PUNCT_RE = re.compile(r"([.?!])\1+")

END_MARKS = ".!?"
_END_PUNCT_MAP = {"。": ".", "？": "?", "！": "!"}
_END_IGNORE_ALL = set(" \t\n\"'“”‘’„‚«»‹›「」『』()[]{}<>")
_END_IGNORE_SPACE = set(" \t\n")

BRACKET_PAIRS = {"(": ")", "[": "]", "{": "}"}

# (code, message, pattern); CHAR 替换为转义后的字符
GRID_RULES = (
    ("space_before", 'Invalid spacing before punctuation',
     'Space required before certain punctuation marks.', r"(?<=[^\s\ufffc])(CHAR)"),
    ("space_after", 'No space after punctuation',
     'Space required after certain punctuation marks.', r"(?<!\d)(CHAR)(?=[^\s\ufffc\d])"),
    ("no_space_before", 'Invalid spacing before punctuation',
     'Space not allowed before certain punctuation marks.', r"(\s+)CHAR"),
    ("no_space_after", 'No space after punctuation',
     'Space not allowed after certain punctuation marks.', r"CHAR(\s+)(?=\S)"),
    ("nbsp_before", 'Non-breaking space required before punctuation',
     'NBSP required before certain punctuation marks.', r"([^\u00a0\u202f\ufffc])CHAR"),
    ("nbsp_after", 'Non-breaking space required after punctuation',
     'NBSP required after certain punctuation marks.', r"CHAR([^\u00a0\u202f\ufffc])"),
)


def _last_relevant(text: str, ignore: set) -> tuple[str, int]:
    for i in range(len(text) - 1, -1, -1):
        char = text[i]
        if char not in ignore and char != OBJECT_MARKER:
            return char, i
    return "", -1


def check_end_punctuation(source: str, target: str, settings: QASettings) -> Optional[QAIssue]:
    ignore = _END_IGNORE_ALL if settings.ignore_quotes_brackets_end else _END_IGNORE_SPACE
    s_last, s_index = _last_relevant(strip_tags(source), ignore)
    t_last, t_index = _last_relevant(strip_tags(target), ignore)

    s_norm = _END_PUNCT_MAP.get(s_last, s_last)
    t_norm = _END_PUNCT_MAP.get(t_last, t_last)
    if not s_norm or s_norm not in END_MARKS or s_norm == t_norm:
        return None

    if t_index > -1:
        return make_issue(
            'Inconsistent end punctuation',
            f'End punctuation mismatch: expected "{s_last}".',
            SEVERITY_WARNING, 'checkEndPunctuation',
            target_highlights=[span(t_index, 1, target)],
        )
    return make_issue(
        'Inconsistent end punctuation',
        f'End punctuation mismatch: target is missing end punctuation "{s_last}" from source.',
        SEVERITY_WARNING, 'checkEndPunctuation',
        source_highlights=[span(s_index, 1, source)],
    )


def check_bracket_balance(raw: str, settings: QASettings) -> list[QAIssue]:
    """括号配对（栈）；高亮落在 raw 上"""
    pairs = dict(BRACKET_PAIRS)
    if not settings.ignore_more_less_than_brackets:
        pairs["<"] = ">"
    closers = {close: open_ for open_, close in pairs.items()}

    text = strip_tags(raw)
    issues = []
    stack: list[tuple[str, int]] = []
    for i, char in enumerate(text):
        if char in pairs:
            stack.append((char, i))
        elif char in closers:
            if not stack:
                issues.append(make_issue(
                    'Unmatched closing bracket',
                    f'Unmatched closing bracket "{char}" found.',
                    SEVERITY_ERROR, 'checkBrackets',
                    target_highlights=[span(i, 1, raw)],
                ))
                continue
            opener, opener_index = stack.pop()
            if pairs[opener] != char:
                issues.append(make_issue(
                    'Mismatched brackets',
                    f'Mismatched bracket pair: "{opener}" closed by "{char}".',
                    SEVERITY_ERROR, 'checkBrackets',
                    target_highlights=[span(opener_index, 1, raw), span(i, 1, raw)],
                ))

    if stack:
        chars = ", ".join(c for c, _ in stack)
        issues.append(make_issue(
            'Unclosed opening bracket',
            f'Unclosed opening brackets found: {chars}',
            SEVERITY_ERROR, 'checkBrackets',
            target_highlights=[span(i, 1, raw) for _, i in stack],
        ))
    return issues


def _edge_spaces(text: str) -> tuple[bool, bool]:
    plain = strip_tags(text).replace(OBJECT_MARKER, "")
    if not plain.strip():
        return False, False
    return plain[:1].isspace(), plain[-1:].isspace()


def check_grid(target: str, grid: PunctuationGrid, issues: list[QAIssue]) -> None:
    """按网格检查标点前后空格；同一 code 的高亮合并到已有问题上"""
    stripped = strip_tags(target)
    for field_name, code, message, template in GRID_RULES:
        chars = getattr(grid, field_name, "") or ""
        highlights: list[Highlight] = []
        for char in dict.fromkeys(chars):
            pattern = re.compile(template.replace("CHAR", re.escape(char)))
            for m in pattern.finditer(stripped):
                highlights.append(match_span(m, target, 1))
        if not highlights:
            continue

        existing = next((i for i in issues if i.code == code), None)
        if existing:
            existing.target_highlights.extend(highlights)
        else:
            issues.append(make_issue(
                code, message, SEVERITY_WARNING, 'checkPunctuation',
                target_highlights=highlights,
            ))


def check_punctuation(source: str, target: str, settings: QASettings) -> list[QAIssue]:
    issues: list[QAIssue] = []
    s_stripped = strip_tags(source)
    t_stripped = strip_tags(target)

    if settings.check_multiple_spaces:
        source_has = bool(MULTI_SPACE_RE.search(s_stripped))
        if not (settings.ignore_source_formatting and source_has):
            highlights = [match_span(m, target) for m in MULTI_SPACE_RE.finditer(t_stripped)]
            if highlights:
                issues.append(make_issue(
                    'Multiple consecutive spaces',
                    'Multiple consecutive spaces detected.',
                    SEVERITY_WARNING, 'checkMultipleSpaces',
                    target_highlights=highlights,
                ))

    if settings.check_double_punctuation:
        highlights = [
            match_span(m, target)
            for m in DOUBLE_PUNCT_RE.finditer(t_stripped)
            if not (settings.double_punc_as_in_source and m.group() in s_stripped)
        ]
        if highlights:
            issues.append(make_issue(
                'Double punctuation mismatch',
                'Double punctuation mismatch with source.',
                SEVERITY_WARNING, 'checkDoublePunctuation',
                target_highlights=highlights,
            ))

    if settings.check_end_punctuation:
        issue = check_end_punctuation(source, target, settings)
        if issue:
            issues.append(issue)

    if settings.check_brackets:
        source_issues = check_bracket_balance(source, settings)
        # 原文本身不配对时通常是片段被拆分，跳过译文
        if not source_issues or not settings.ignore_unmatched_brackets_source:
            issues.extend(check_bracket_balance(target, settings))

    if settings.check_start_end_spaces and t_stripped.strip():
        s_lead, s_trail = _edge_spaces(source)
        t_lead, t_trail = _edge_spaces(target)
        if (s_lead, s_trail) != (t_lead, t_trail):
            issues.append(make_issue(
                'Leading/trailing spaces',
                'Leading or trailing whitespace differs from source.',
                SEVERITY_WARNING, 'checkStartEndSpaces',
            ))

    check_grid(target, settings.punctuation_grid, issues)
    check_grid(target, settings.special_signs_grid, issues)
    return issues
