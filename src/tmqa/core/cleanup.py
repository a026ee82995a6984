"""
结构清理

按顺序执行：删除空/未翻译单元 -> 空白与控制字符 -> 自定义正则 ->
标签修复 -> 元数据 -> 完全重复去重。锁定单元保持原样。
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, Optional

from ..utils.common import ANONYMOUS_USER, iso_timestamp, tmx_timestamp, utc_now
from ..utils.models import CleanupConfig, CleanupReport, TmxTag, TranslationSegment, TranslationUnit
from ..utils.tags import CONTROL_CHARS_RE, TAG_RE, remove_tags
from .batch import convert_replacement

logger = logging.getLogger(__name__)

PAIRED_TAG_RE = re.compile(r"\[(bpt|ept)((?::\d+)?_\d+)\]")
WHITESPACE_RE = re.compile(r"\s+")
DUPLICATE_KEY_SEPARATOR = "|||"


def close_unbalanced_tags(segment: TranslationSegment) -> bool:
    """为缺少配对的 bpt / ept 补上另一半；返回是否修改"""
    opened = {}
    closed = {}
    for m in PAIRED_TAG_RE.finditer(segment.text):
        (opened if m.group(1) == "bpt" else closed).setdefault(m.group(2), m.group())

    prefix = [f"[bpt{suffix}]" for suffix in closed if suffix not in opened]
    suffix_tags = [f"[ept{suffix}]" for suffix in opened if suffix not in closed]
    if not prefix and not suffix_tags:
        return False

    segment.text = "".join(prefix) + segment.text + "".join(suffix_tags)
    if segment.tags:
        segment.tags.extend(TmxTag(id=token, type="bpt") for token in prefix)
        segment.tags.extend(TmxTag(id=token, type="ept") for token in suffix_tags)
    return True


def remove_orphan_tags(segment: TranslationSegment) -> bool:
    """删除在 tags 列表中没有条目的占位符（仅对带标签数据的片段）"""
    if not segment.tags:
        return False
    known = set(segment.tag_ids())
    text = TAG_RE.sub(lambda m: m.group() if m.group() in known else "", segment.text)
    if text == segment.text:
        return False
    segment.text = text
    return True


def _map_text(unit: TranslationUnit, func: Callable[[str], str], target_only: bool = False) -> bool:
    changed = False
    segments = (unit.target,) if target_only else (unit.source, unit.target)
    for segment in segments:
        text = func(segment.text)
        if text != segment.text:
            segment.text = text
            changed = True
    return changed


def _compile_custom(config: CleanupConfig) -> Optional[re.Pattern]:
    if not config.custom_regex_enabled or not config.custom_regex_find:
        return None
    try:
        return re.compile(config.custom_regex_find)
    except re.error as e:
        logger.warning(f"Invalid cleanup regex {config.custom_regex_find!r}: {e}")
        return None


def clean_unit(
    unit: TranslationUnit,
    config: CleanupConfig,
    report: CleanupReport,
    custom: Optional[re.Pattern] = None,
    now=None,
) -> tuple[TranslationUnit, bool]:
    """
    清理单个单元（不含删除与去重）

    Returns:
        (单元, 是否修改)；未修改时返回原对象
    """
    updated = unit.clone()
    text_changed = False

    if config.strip_control_chars:
        text_changed |= _map_text(updated, lambda s: CONTROL_CHARS_RE.sub("", s))
    if config.trim_whitespace:
        text_changed |= _map_text(updated, str.strip)
    if config.normalize_spacing:
        text_changed |= _map_text(updated, lambda s: WHITESPACE_RE.sub(" ", s))
    if custom is not None:
        template = convert_replacement(config.custom_regex_replace)
        try:
            text_changed |= _map_text(updated, lambda s: custom.sub(template, s), target_only=True)
        except (re.error, IndexError) as e:
            logger.warning(f"Cleanup regex replacement failed: {e}")

    tags_fixed = False
    if config.strip_all_tags:
        for segment in (updated.source, updated.target):
            text = remove_tags(segment.text)
            if text != segment.text or segment.tags:
                segment.text = text
                segment.tags = []
                tags_fixed = True
    else:
        if config.remove_orphan_tags:
            tags_fixed |= remove_orphan_tags(updated.source)
            tags_fixed |= remove_orphan_tags(updated.target)
        if config.auto_close_tags:
            tags_fixed |= close_unbalanced_tags(updated.source)
            tags_fixed |= close_unbalanced_tags(updated.target)
    if tags_fixed:
        report.tags_fixed += 1

    meta_changed = False
    if config.anonymize_users:
        for key in ("creationid", "changeid"):
            if updated.metadata.get(key) != ANONYMOUS_USER:
                updated.metadata[key] = ANONYMOUS_USER
                meta_changed = True
    if config.batch_date_update:
        now = now or utc_now()
        updated.metadata["changedate"] = tmx_timestamp(now)
        updated.last_modified = iso_timestamp(now)
        meta_changed = True
    if meta_changed:
        report.metadata_updated += 1

    if text_changed or tags_fixed:
        updated.recompute_status()
        updated.qa_issues = []
    if not (text_changed or tags_fixed or meta_changed):
        return unit, False
    return updated, True


def run_cleanup(
    units: Iterable[TranslationUnit],
    config: CleanupConfig,
    on_progress: Optional[Callable[[int], None]] = None,
) -> tuple[list[TranslationUnit], CleanupReport]:
    """
    运行清理

    Args:
        units: 语料（不会被修改）
        config: 清理选项
        on_progress: 进度回调（0-100）

    Returns:
        (保留下来的单元, 报告)
    """
    units = list(units)
    report = CleanupReport()
    custom = _compile_custom(config)
    now = utc_now()
    seen: set[str] = set()
    result = []

    for i, unit in enumerate(units):
        modified = False
        if not unit.is_locked:
            target = unit.target.text
            if config.remove_empty and not target.strip():
                report.deleted += 1
                report.deleted_ids.append(unit.id)
                continue
            if config.remove_untranslated and target.strip() and unit.source.text == target:
                report.deleted += 1
                report.deleted_ids.append(unit.id)
                continue
            unit, modified = clean_unit(unit, config, report, custom, now)

        if config.delete_exact_duplicates:
            key = f"{unit.source.text}{DUPLICATE_KEY_SEPARATOR}{unit.target.text}"
            if key in seen and not unit.is_locked:
                report.duplicates_removed += 1
                report.deleted_ids.append(unit.id)
                continue
            seen.add(key)

        if modified:
            report.modified += 1
        result.append(unit)
        if on_progress and i % 100 == 0:
            on_progress(int(i * 100 / len(units)))

    if on_progress:
        on_progress(100)
    logger.info(
        f"Cleanup: {report.modified} modified, {report.deleted} deleted, "
        f"{report.duplicates_removed} duplicates removed"
    )
    return result, report
