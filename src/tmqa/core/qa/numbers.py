"""
数字与区间检查

- 原文与译文中的数字（包括数字单词，如 "two"）按数值一一对应
- 译文数字格式（小数点、千位分隔符、前导零）
- 区间符号与空格、编号符号、数学符号、数字顺序
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass
from typing import Optional

from ...utils.common import SEVERITY_ERROR, SEVERITY_INFO, SEVERITY_WARNING
from ...utils.models import QAIssue
from ...utils.settings import QASettings
from ...utils.tags import strip_tags
from .issues import make_issue, span

logger = logging.getLogger(__name__)

# 分组分隔符后必须正好 3 位，避免把 "2023 5" 当成一个数
NUMBER_RE = re.compile(r"\d+(?:[.,]\d+|[ \u00a0\u202f]\d{3}(?!\d))*")
IMPERIAL_RE = re.compile(
    r"\(\s*\d[\d.,\s\u00a0]*(?:ft|in|mi|yd|lb|oz|'|\")\s*\)", re.IGNORECASE
)
MATH_SIGN_RE = re.compile(r"(?<=[\d\s])([+×÷=±≤≥<>])(?=[\s\d])")
_SPACES_RE = re.compile(r"[\s\u00a0\u202f]")

DECIMAL_CHARS = {"dot": ".", "comma": ","}
THOUSAND_CHARS = {
    "comma": {","},
    "dot": {"."},
    "space": {" ", "\u00a0", "\u202f"},
    "nbsp": {"\u00a0", "\u202f"},
    "none": set(),
}
KNOWN_NUMBER_SIGNS = ("№", "#", "No.", "no.", "Nº", "nº", "N°", "n°", "Nr.", "nr.", "nr", "n.º", "č.")


@dataclass
class NumberToken:
    raw: str
    index: int
    value: float
    kind: str = "digit"  # digit / text

    @property
    def end(self) -> int:
        return self.index + len(self.raw)


def parse_number(raw: str) -> Optional[float]:
    """
    宽松解析，不依赖语言设置

    同时出现 ',' 和 '.' 时最后一个是小数点；同一分隔符出现多次为千位分隔符；
    只出现一次时，后面正好 3 位视为千位分隔符，否则为小数点。
    """
    s = _SPACES_RE.sub("", raw)
    if "," in s and "." in s:
        decimal = s[max(s.rfind(","), s.rfind("."))]
        thousand = "." if decimal == "," else ","
        s = s.replace(thousand, "").replace(decimal, ".")
    else:
        for sep in (",", "."):
            if sep not in s:
                continue
            before, _, after = s.partition(sep)
            if s.count(sep) > 1 or (len(after) == 3 and before != "0" and len(before) <= 3):
                s = s.replace(sep, "")
            else:
                s = s.replace(sep, ".")
    try:
        return float(s)
    except ValueError:
        return None


def _compile_ignore(settings: QASettings) -> Optional[re.Pattern]:
    if not settings.ignore_numbers_regex:
        return None
    try:
        return re.compile(settings.ignore_numbers_regex)
    except re.error as e:
        logger.warning(f"Invalid ignore_numbers_regex {settings.ignore_numbers_regex!r}: {e}")
        return None


def _inside(index: int, end: int, ranges: list[tuple[int, int]]) -> bool:
    return any(start <= index and end <= stop for start, stop in ranges)


def extract_numbers(
    text: str,
    settings: QASettings,
    skip_ranges: Optional[list[tuple[int, int]]] = None,
) -> list[NumberToken]:
    """从 strip_tags() 文本中提取数字和数字单词，按位置排序"""
    skip_ranges = skip_ranges or []
    tokens = []
    for m in NUMBER_RE.finditer(text):
        value = parse_number(m.group())
        if value is not None and not _inside(m.start(), m.end(), skip_ranges):
            tokens.append(NumberToken(m.group(), m.start(), value))

    if settings.digit_to_text_enabled:
        for entry in settings.digit_to_text_map:
            for form in entry.forms:
                if not form:
                    continue
                for m in re.finditer(rf"\b{re.escape(form)}\b", text, re.IGNORECASE):
                    if not _inside(m.start(), m.end(), skip_ranges):
                        tokens.append(NumberToken(m.group(), m.start(), float(entry.digit), "text"))

    tokens.sort(key=lambda t: t.index)
    return tokens


def _match_numbers(
    source_nums: list[NumberToken],
    target_nums: list[NumberToken],
) -> tuple[list[NumberToken], list[NumberToken]]:
    """按数值配对，返回两侧未配对的数字"""
    unmatched_target = list(target_nums)
    unmatched_source = []
    for token in source_nums:
        for i, candidate in enumerate(unmatched_target):
            if math.isclose(candidate.value, token.value):
                del unmatched_target[i]
                break
        else:
            unmatched_source.append(token)
    return unmatched_source, unmatched_target


def format_problem(raw: str, settings: QASettings, source_raws: set[str]) -> Optional[str]:
    """
    检查单个译文数字的格式

    Returns:
        问题描述，格式正确时返回 None
    """
    decimal = DECIMAL_CHARS[settings.decimal_separator]
    thousands = THOUSAND_CHARS[settings.thousand_separator]
    separators = re.findall(r"\D", raw)
    groups = re.split(r"\D", raw)

    if not separators:
        if not settings.allow_leading_zeros and len(raw) > 1 and raw.startswith("0") and raw not in source_raws:
            return "Leading zeros are not allowed."
        # 与原文写法完全相同的纯数字（年份、代码）不要求分组
        if raw in source_raws or not thousands:
            return None
        if len(raw) >= 5 or (len(raw) == 4 and settings.thousand_separator_1000 == "require"):
            return f"Thousand separator '{settings.thousand_separator}' required."
        return None

    if separators.count(decimal) > 1:
        return "Incorrect thousand separator found."
    int_separators = separators
    int_groups = groups
    if separators[-1] == decimal:
        int_separators = separators[:-1]
        int_groups = groups[:-1]

    for i, sep in enumerate(int_separators):
        following = int_groups[i + 1]
        if sep not in thousands:
            is_last = i == len(separators) - 1
            if is_last and sep in ",." and len(following) != 3:
                return f"Incorrect decimal separator: expected '{decimal}'."
            if not thousands:
                return "Thousand separators are not used."
            return "Incorrect thousand separator found."
        if len(following) != 3:
            if i == len(separators) - 1 and sep in ",.":
                return f"Incorrect decimal separator: expected '{decimal}'."
            return "Incorrect thousand separator found."

    if int_groups and not 1 <= len(int_groups[0]) <= 3 and int_separators:
        return "Incorrect thousand separator found."

    int_digits = "".join(int_groups)
    if not int_separators and thousands and raw not in source_raws:
        if len(int_digits) >= 5 or (len(int_digits) == 4 and settings.thousand_separator_1000 == "require"):
            return f"Thousand separator '{settings.thousand_separator}' required."
    if int_separators and len(int_digits) == 4 and settings.thousand_separator_1000 == "disallow":
        return "Thousand separator not allowed in four-digit numbers."
    return None


def _check_ranges(target: str, t_stripped: str, settings: QASettings) -> Optional[QAIssue]:
    preferred = settings.preferred_range_symbol
    symbols = "".join(dict.fromkeys(preferred + "-à~–—～"))
    range_re = re.compile(rf"(\d+)(\s*)([{re.escape(symbols)}])(\s*)(\d+)")

    highlights = []
    for m in range_re.finditer(t_stripped):
        spaced = bool(m.group(2)) and bool(m.group(4))
        wrong_symbol = m.group(3) != preferred
        wrong_spacing = spaced != (settings.range_spacing == "space")
        if wrong_symbol or wrong_spacing:
            highlights.append(span(m.start(), len(m.group()), target))
    if not highlights:
        return None
    return make_issue(
        'Invalid format of number range',
        'Invalid format of number range.',
        SEVERITY_WARNING, 'checkRanges',
        target_highlights=highlights,
    )


def _check_number_sign(target: str, t_stripped: str, settings: QASettings) -> Optional[QAIssue]:
    preferred = settings.preferred_number_sign
    signs = sorted(set(KNOWN_NUMBER_SIGNS) | {preferred}, key=len, reverse=True)
    sign_re = re.compile(
        r"(?<!\w)(" + "|".join(re.escape(s) for s in signs if s) + r")([ \u00a0\u202f]*)(?=\d)"
    )

    highlights = []
    message = ""
    for m in sign_re.finditer(t_stripped):
        sign, spacing = m.group(1), m.group(2)
        if sign != preferred:
            message = f"Number sign should be \"{preferred}\"."
        elif bool(spacing) != (settings.number_sign_spacing == "space"):
            message = (
                "Space required between number sign and number."
                if settings.number_sign_spacing == "space"
                else "Space not allowed between number sign and number."
            )
        else:
            continue
        highlights.append(span(m.start(), len(m.group()), target))
    if not highlights:
        return None
    return make_issue(
        'Invalid number sign', message, SEVERITY_WARNING, 'checkNumberSign',
        target_highlights=highlights,
    )


def check_numbers(source: str, target: str, settings: QASettings) -> list[QAIssue]:
    if not settings.check_numbers_and_ranges:
        return []

    issues = []
    s_stripped = strip_tags(source)
    t_stripped = strip_tags(target)

    ignore_re = _compile_ignore(settings)
    s_skip = [m.span() for m in ignore_re.finditer(s_stripped)] if ignore_re else []
    t_skip = [m.span() for m in ignore_re.finditer(t_stripped)] if ignore_re else []
    if settings.skip_imperial_in_parens:
        s_skip.extend(m.span() for m in IMPERIAL_RE.finditer(s_stripped))

    source_nums = extract_numbers(s_stripped, settings, s_skip)
    target_nums = extract_numbers(t_stripped, settings, t_skip)

    unmatched_source, unmatched_target = _match_numbers(source_nums, target_nums)
    if unmatched_source or unmatched_target:
        issues.append(make_issue(
            'Inconsistent numbers in source and target',
            'Inconsistent numbers in source and target.',
            SEVERITY_ERROR, 'checkNumbersAndRanges',
            source_highlights=[span(t.index, len(t.raw), source) for t in unmatched_source],
            target_highlights=[span(t.index, len(t.raw), target) for t in unmatched_target],
        ))
    elif settings.check_numbers_order:
        s_values = [t.value for t in source_nums if t.kind == "digit"]
        t_values = [t.value for t in target_nums if t.kind == "digit"]
        if len(s_values) > 1 and sorted(s_values) == sorted(t_values) and s_values != t_values:
            issues.append(make_issue(
                'Inconsistent order of numbers',
                'Numbers appear in a different order than in source.',
                SEVERITY_INFO, 'checkNumbersOrder',
            ))

    if settings.number_formatting_enabled:
        source_raws = {t.raw for t in source_nums if t.kind == "digit"}
        highlights = []
        message = ""
        for token in target_nums:
            if token.kind != "digit":
                continue
            problem = format_problem(token.raw, settings, source_raws)
            if problem:
                message = problem
                highlights.append(span(token.index, len(token.raw), target))
        if highlights:
            issues.append(make_issue(
                'Invalid number formatting', message, SEVERITY_WARNING, 'numberFormattingEnabled',
                target_highlights=highlights,
            ))

    if settings.check_ranges:
        issue = _check_ranges(target, t_stripped, settings)
        if issue:
            issues.append(issue)

    if settings.check_number_sign:
        issue = _check_number_sign(target, t_stripped, settings)
        if issue:
            issues.append(issue)

    if settings.check_math_signs:
        s_signs = Counter(MATH_SIGN_RE.findall(s_stripped))
        t_signs = Counter(MATH_SIGN_RE.findall(t_stripped))
        if s_signs != t_signs:
            issues.append(make_issue(
                'Inconsistent math signs',
                'Mathematical signs differ between source and target.',
                SEVERITY_WARNING, 'checkMathSigns',
            ))

    return issues
