"""
内联标签与 XML 实体检查

标签 ID 取自片段的 tags 列表；列表为空时（纯文本导入）退回到文本中的占位符。
"""

from __future__ import annotations

import re

from ...utils.common import SEVERITY_ERROR, SEVERITY_WARNING
from ...utils.models import QAIssue, TranslationSegment, TranslationUnit
from ...utils.settings import QASettings
from ...utils.tags import TAG_RE, find_tags
from .issues import make_issue, raw_span

MALFORMED_ENTITY_RE = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#\d+|#x[a-f\d]+);)[a-z0-9#]*", re.IGNORECASE)
STANDARD_ENTITY_RE = re.compile(r"&(?:amp|lt|gt|quot|apos);")
OPENING_TAG_SPACE_RE = re.compile(r"(\[bpt(?::\d+)?_\d+\])\s")
CLOSING_TAG_SPACE_RE = re.compile(r"\s(\[ept(?::\d+)?_\d+\])")


def segment_tag_ids(segment: TranslationSegment) -> list[str]:
    return segment.tag_ids() if segment.tags else find_tags(segment.text)


def _surrounding_space(text: str, token: str) -> tuple[bool, bool]:
    index = text.find(token)
    end = index + len(token)
    before = index > 0 and text[index - 1].isspace()
    after = end < len(text) and text[end].isspace()
    return before, after


def _check_integrity(unit: TranslationUnit, issues: list[QAIssue]) -> None:
    s_ids = sorted(segment_tag_ids(unit.source))
    t_ids = sorted(segment_tag_ids(unit.target))
    if len(s_ids) != len(t_ids):
        issues.append(make_issue(
            'Different amount of tags',
            f'Tag count mismatch (Source: {len(s_ids)}, Target: {len(t_ids)}).',
            SEVERITY_ERROR, 'checkTags',
        ))
    elif s_ids != t_ids:
        issues.append(make_issue(
            'Inconsistent tags in source and target',
            'Mismatched tag types or IDs found in target.',
            SEVERITY_ERROR, 'checkTags',
        ))

    # 文本中出现但 tags 列表里没有的占位符
    if unit.target.tags:
        known = set(unit.target.tag_ids())
        orphans = [raw_span(m) for m in TAG_RE.finditer(unit.target.text) if m.group() not in known]
        if orphans:
            issues.append(make_issue(
                'Orphan tag placeholder',
                'Target contains tag placeholders without tag data.',
                SEVERITY_ERROR, 'checkTags',
                target_highlights=orphans,
            ))


def _check_order(source: str, target: str, issues: list[QAIssue]) -> None:
    s_tokens = find_tags(source)
    t_tokens = find_tags(target)
    s_common = [t for t in s_tokens if t in t_tokens]
    t_common = [t for t in t_tokens if t in s_tokens]
    if s_common != t_common:
        issues.append(make_issue(
            'Inconsistent tag order',
            'Tag sequence differs from source.',
            SEVERITY_WARNING, 'checkTagOrder',
        ))


def _check_spacing_consistency(source: str, target: str, issues: list[QAIssue]) -> None:
    highlights = []
    tokens = []
    for m in TAG_RE.finditer(target):
        token = m.group()
        if token not in source:
            continue
        if _surrounding_space(target, token) != _surrounding_space(source, token):
            highlights.append(raw_span(m))
            tokens.append(token)
    if highlights:
        issues.append(make_issue(
            'Inconsistent spacing around tags',
            f'Inconsistent spacing around tag {", ".join(tokens)}.',
            SEVERITY_WARNING, 'checkTagSpacingInconsistency',
            target_highlights=highlights,
        ))


def _check_inner_spacing(source: str, target: str, issues: list[QAIssue]) -> None:
    """[bpt_1] 之后或 [ept_1] 之前的空格（原文同一位置没有时）"""
    s_spaced = {m.group(1) for m in OPENING_TAG_SPACE_RE.finditer(source)}
    s_spaced |= {m.group(1) for m in CLOSING_TAG_SPACE_RE.finditer(source)}
    highlights = [
        raw_span(m)
        for regex in (OPENING_TAG_SPACE_RE, CLOSING_TAG_SPACE_RE)
        for m in regex.finditer(target)
        if m.group(1) not in s_spaced
    ]
    if highlights:
        issues.append(make_issue(
            'Space inside tag pair',
            'Whitespace directly inside a paired tag.',
            SEVERITY_WARNING, 'checkTagSpacing',
            target_highlights=sorted(highlights, key=lambda h: h.start),
        ))


def _check_entities(source: str, target: str, issues: list[QAIssue]) -> None:
    bad = [raw_span(m) for m in MALFORMED_ENTITY_RE.finditer(target) if len(m.group()) > 1]
    if bad:
        issues.append(make_issue(
            'Malformed XML entity',
            'Malformed or unsupported XML entity detected.',
            SEVERITY_ERROR, 'checkEntities',
            target_highlights=bad,
        ))
    if len(STANDARD_ENTITY_RE.findall(source)) > len(STANDARD_ENTITY_RE.findall(target)):
        issues.append(make_issue(
            'XML entity present in source but missing in target',
            'XML entity present in source but missing in target.',
            SEVERITY_WARNING, 'checkEntities',
        ))


def check_tags(unit: TranslationUnit, settings: QASettings) -> list[QAIssue]:
    source = unit.source.text
    target = unit.target.text
    issues: list[QAIssue] = []

    if settings.check_tags:
        _check_integrity(unit, issues)
    if settings.check_tag_order:
        _check_order(source, target, issues)
    if settings.check_tag_spacing_inconsistency:
        _check_spacing_consistency(source, target, issues)
    if settings.check_tag_spacing:
        _check_inner_spacing(source, target, issues)
    if settings.check_entities:
        _check_entities(source, target, issues)
    return issues
