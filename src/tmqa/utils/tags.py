"""
内联标签占位符工具

片段文本中的内联标签以占位符形式出现，如 ``[ph_0]``、``[bpt_1]``、``[ept_1]``、
``[g:2_3]``。本模块提供：
- 占位符正则
- 去除标签 / 以单字符替换标签（保持位置可映射）
- 从去标签文本映射回原文的高亮区间
- 用户模式（字面量 / 正则）编译
"""

from __future__ import annotations

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# 所有常见 TMX/XLIFF 标签类型
TAG_RE = re.compile(r"\[(?:bpt|ept|ph|it|ut|sub|x|g|bx|ex|mrk|sc|ec)(?::\d+)?_\d+\]")

# 标签在去标签文本中占一个字符
OBJECT_MARKER = "\ufffc"

# 控制字符（保留 \t \n \r）
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")

# & 后面不是合法实体
BAD_ENTITY_RE = re.compile(r"&(?!(?:amp|lt|gt|quot|apos|#\d+|#x[a-f\d]+);)", re.IGNORECASE)


def find_tags(text: str) -> list[str]:
    """按出现顺序返回文本中的占位符"""
    return TAG_RE.findall(text or "")


def remove_tags(text: str) -> str:
    """删除全部占位符，直到不再出现新的占位符"""
    result = text or ""
    while True:
        result, count = TAG_RE.subn("", result)
        if not count:
            return result


def strip_tags(text: str) -> str:
    """将每个占位符替换为 U+FFFC，使去标签文本中的位置可以映射回原文"""
    return TAG_RE.sub(OBJECT_MARKER, text or "")


def clean_text(text: str) -> str:
    """去除占位符及其标记字符后的纯文本（已 strip）"""
    return strip_tags(text).replace(OBJECT_MARKER, "").strip()


def split_on_tags(text: str) -> tuple[list[str], list[str]]:
    """
    拆分为可翻译部分和占位符

    Returns:
        (parts, tags)，满足 len(parts) == len(tags) + 1
    """
    text = text or ""
    tags = TAG_RE.findall(text)
    parts = TAG_RE.split(text)
    return parts, tags


def join_parts(parts: list[str], tags: list[str]) -> str:
    """split_on_tags 的逆操作"""
    out = []
    for i, part in enumerate(parts):
        out.append(part)
        if i < len(tags):
            out.append(tags[i])
    return "".join(out)


def map_stripped_to_original(index: int, length: int, original: str) -> tuple[int, int]:
    """
    将 strip_tags() 结果中的区间 [index, index+length) 映射到原文

    每个占位符在去标签文本中占一个字符。无法定位的端点落在原文末尾。

    Returns:
        (start, end) 半开区间
    """
    matches = [(m.start(), m.end()) for m in TAG_RE.finditer(original)]
    stripped_pos = 0
    original_pos = 0
    start = -1
    end = -1
    match_idx = 0
    total = len(original)

    while original_pos <= total:
        if stripped_pos == index and start == -1:
            start = original_pos
        if stripped_pos == index + length and end == -1:
            end = original_pos
        if start != -1 and end != -1:
            break
        if original_pos == total:
            break

        if match_idx < len(matches) and original_pos == matches[match_idx][0]:
            original_pos = matches[match_idx][1]
            match_idx += 1
        else:
            original_pos += 1
        stripped_pos += 1

    return (
        total if start == -1 else start,
        total if end == -1 else end,
    )


def compile_pattern(
    pattern: str,
    is_regex: bool = False,
    case_sensitive: bool = False,
    whole_word: bool = False,
) -> Optional[re.Pattern]:
    """
    编译用户提供的查找模式

    字面量会被转义；whole_word 只对字面量生效（加 \\b 边界）。
    非法正则返回 None 并记录警告，调用方应把该规则视为不匹配。
    """
    if not pattern:
        return None

    flags = 0 if case_sensitive else re.IGNORECASE
    source = pattern
    if not is_regex:
        source = re.escape(pattern)
        if whole_word:
            source = rf"\b{source}\b"

    try:
        return re.compile(source, flags)
    except re.error as e:
        logger.warning(f"Invalid pattern {pattern!r}: {e}")
        return None
