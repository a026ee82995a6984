"""
遗漏与杂项检查

- 空译文、与原文相同、部分翻译、句子数量
- 重复相邻词、URL、混合文字、长度限制
"""

from __future__ import annotations

import re

from ...utils.common import STATUS_EMPTY, SEVERITY_ERROR, SEVERITY_WARNING
from ...utils.models import QAIssue, TranslationUnit
from ...utils.settings import QASettings
from ...utils.tags import TAG_RE, clean_text
from .issues import make_issue

MATH_ONLY_RE = re.compile(r"^[\d\s+\-*/=%.,]+$")
SENTENCE_END_RE = re.compile(r"[.!?。？！]+")
REPEATED_WORD_RE = re.compile(r"\b(\w+)\s+\1\b", re.IGNORECASE)
URL_RE = re.compile(r"https?://\S+|www\.\S+", re.IGNORECASE)
WORD_SPLIT_RE = re.compile(r"[\s.,;!?()\"“„«”»'’]+")
LATIN_RE = re.compile(r"[a-zA-Z]")
CYRILLIC_RE = re.compile(r"[а-яА-ЯёЁ]")
TECHNICAL_RE = re.compile(r"[\d_-]")

PARTIAL_OVERLAP_RATIO = 0.7


def check_omissions(unit: TranslationUnit, settings: QASettings) -> list[QAIssue]:
    """空译文 / 与原文相同 / 部分翻译 / 句子数量"""
    issues = []
    source_text = unit.source.text.strip()
    target_text = unit.target.text.strip()
    clean_source = clean_text(source_text)
    clean_target = clean_text(target_text)

    # 状态为 empty 的单元本来就没有译文，不算遗漏
    if settings.check_empty and not target_text and unit.status != STATUS_EMPTY:
        issues.append(make_issue(
            'No translation in target',
            'Segment is finished but target content is missing.',
            SEVERITY_ERROR, 'checkEmpty',
        ))

    if settings.check_same_as_source and clean_source and clean_source == clean_target:
        too_short = settings.ignore_single_latin and len(clean_source) <= 1
        math_only = settings.ignore_math_only and MATH_ONLY_RE.match(clean_source)
        if not too_short and not math_only:
            issues.append(make_issue(
                'Same source and target',
                'Target text is identical to source text.',
                SEVERITY_WARNING, 'checkSameAsSource',
            ))

    if settings.check_partial_translation:
        issue = _check_partial(clean_source, clean_target, settings)
        if issue:
            issues.append(issue)

    if settings.check_sentence_count:
        s_count = len(SENTENCE_END_RE.findall(source_text))
        t_count = len(SENTENCE_END_RE.findall(target_text))
        if s_count and s_count != t_count:
            issues.append(make_issue(
                'Different number of sentences',
                f'Sentence count mismatch (Source: {s_count}, Target: {t_count}).',
                SEVERITY_WARNING, 'checkSentenceCount',
            ))

    return issues


def _check_partial(clean_source: str, clean_target: str, settings: QASettings):
    """原文中超过 70% 的词原样出现在译文中"""
    words = []
    for word in clean_source.split():
        if settings.ignore_words_with_numbers_hyphens and (re.search(r"\d", word) or "-" in word):
            continue
        if len(word) > 1:
            words.append(word)

    if len(words) < settings.min_words_partial or clean_source == clean_target:
        return None

    target_words = set(clean_target.lower().split())
    overlap = sum(1 for w in words if w.lower() in target_words)
    if overlap and overlap / len(words) > PARTIAL_OVERLAP_RATIO:
        return make_issue(
            'Partially translated segment',
            'Segment appears to be only partially translated.',
            SEVERITY_WARNING, 'checkPartialTranslation',
        )
    return None


def check_misc(source: str, target: str, settings: QASettings) -> list[QAIssue]:
    """重复相邻词、URL、混合文字、长度限制"""
    issues = []
    source_plain = TAG_RE.sub(" ", source)
    target_plain = TAG_RE.sub(" ", target)

    if settings.check_repeated_words:
        reported = set()
        for match in REPEATED_WORD_RE.finditer(target_plain):
            word = match.group(1)
            if word.lower() in reported:
                continue
            in_source = re.search(
                rf"\b{re.escape(word)}\s+{re.escape(word)}\b", source_plain, re.IGNORECASE
            )
            if not in_source:
                reported.add(word.lower())
                issues.append(make_issue(
                    'Repeated adjacent words',
                    f'Repeated adjacent words detected: "{word}"',
                    SEVERITY_WARNING, 'checkRepeatedWords',
                ))

    if settings.check_urls:
        if sorted(URL_RE.findall(source)) != sorted(URL_RE.findall(target)):
            issues.append(make_issue(
                'Inconsistent URLs',
                'URL mismatch: Web links must match source exactly.',
                SEVERITY_ERROR, 'checkUrls',
            ))

    if settings.check_mixed_scripts:
        flagged = []
        for word in WORD_SPLIT_RE.split(target_plain):
            if (
                len(word) > 1
                and LATIN_RE.search(word)
                and CYRILLIC_RE.search(word)
                and not TECHNICAL_RE.search(word)
                and "http" not in word
                and "www" not in word
                and word not in flagged
            ):
                flagged.append(word)
        if flagged:
            words = '", "'.join(flagged)
            issues.append(make_issue(
                'Mixed script word',
                f'Potential mixed-script typo detected in word(s): "{words}"',
                SEVERITY_ERROR, 'checkMixedScripts',
            ))

    if settings.check_length_limit:
        s_len = len(clean_text(source))
        t_len = len(clean_text(target))
        limit = s_len * (1 + settings.length_limit_percent / 100)
        if s_len and t_len > limit:
            issues.append(make_issue(
                'Length limit exceeded',
                f'Target is {t_len} characters, more than {settings.length_limit_percent}% '
                f'longer than source ({s_len}).',
                SEVERITY_WARNING, 'checkLengthLimit',
            ))

    return issues
