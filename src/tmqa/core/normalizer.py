"""
一致性比较用的文本规范化

normalize_for_consistency() 是纯函数且幂等：
normalize(normalize(x)) == normalize(x)。
步骤顺序固定：
1. 去除内联标签占位符
2. 转小写
3. 空白变体统一为空格；可选去除标点
4. 数字串折叠为 '#'
5. 英语复数后缀（仅英语）
6. 折叠空白并 strip
"""

from __future__ import annotations

import re
from typing import Optional

from ..utils.common import base_language
from ..utils.settings import ConsistencyRuleOptions
from ..utils.tags import remove_tags

# \s 已包含 NBSP、窄 NBSP、全角空格；另加零宽空格和 BOM
_SPACE_VARIANTS_RE = re.compile(r"[\s\u200b\ufeff]")
_DIGITS_RE = re.compile(r"\d+")
_WS_RE = re.compile(r"\s+")
_SPACES_RE = re.compile(r" +")
_WORD_RE = re.compile(r"\S+")

NUMBER_PLACEHOLDER = "#"


def _strip_punctuation(text: str, keep_placeholder: bool) -> str:
    return "".join(
        ch for ch in text
        if ch.isalnum() or ch.isspace() or (keep_placeholder and ch == NUMBER_PLACEHOLDER)
    )


def _singular(word: str) -> str:
    """重复去掉 -es / -s，直到不再适用（保留 -ss 和 3 个字符以内的词）"""
    while len(word) > 3 and word.endswith("s") and not word.endswith("ss"):
        word = word[:-2] if word.endswith("es") else word[:-1]
    return word


def normalize_for_consistency(
    text: str,
    options: Optional[ConsistencyRuleOptions] = None,
    lang: str = "",
) -> str:
    """
    规范化文本，得到一致性分组用的键

    Args:
        text: 片段文本（可含标签占位符）
        options: 规则选项，None 时使用默认值
        lang: 文本所属语言，只影响复数处理

    Returns:
        规范化键
    """
    options = options or ConsistencyRuleOptions()
    result = text or ""

    if options.check_without_tags:
        result = remove_tags(result)

    if options.ignore_case:
        result = result.lower()
        if options.check_without_tags:
            # "[PH_1]" 小写后才成为占位符
            result = remove_tags(result)

    if options.ignore_space_types:
        result = _SPACE_VARIANTS_RE.sub(" ", result)
    if options.ignore_punctuation:
        result = _strip_punctuation(result, keep_placeholder=options.ignore_numbers)

    if options.ignore_numbers:
        result = _DIGITS_RE.sub(NUMBER_PLACEHOLDER, result)

    if options.ignore_plural_english and base_language(lang) == "en":
        result = _WORD_RE.sub(lambda m: _singular(m.group(0)), result)

    collapse = _WS_RE if options.ignore_space_types else _SPACES_RE
    return collapse.sub(" ", result).strip()


def source_key(unit, options: Optional[ConsistencyRuleOptions] = None) -> str:
    """单元原文的规范化键

    两侧都按目标语言处理复数，同一语言对内原文键与译文键使用同一套规则。
    """
    return normalize_for_consistency(unit.source.text, options, unit.target_lang)


def target_key(unit, options: Optional[ConsistencyRuleOptions] = None) -> str:
    return normalize_for_consistency(unit.target.text, options, unit.target_lang)
