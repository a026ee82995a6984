"""
批量查找替换

- 规则只作用于标签之间的文本，占位符不会被破坏
- 正则替换支持 $1 / $& 形式的反向引用
- 分块处理（默认每块 500 个单元），每块完成后报告进度
- 同一时间只允许一个批处理任务
"""

from __future__ import annotations

import logging
import re
import threading
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Generator, Iterable, Optional

from ..utils.common import BATCH_CHUNK_SIZE, iso_timestamp, tmx_timestamp, utc_now
from ..utils.logger import BatchInProgressError
from ..utils.models import BatchConfig, BatchRule, TranslationUnit
from ..utils.tags import compile_pattern, join_parts, split_on_tags

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

_JS_REPLACEMENT_RE = re.compile(r"\$(\d+|&|\$)|\\")


def convert_replacement(replacement: str) -> str:
    """
    把 $1 / $& / $$ 形式的替换串转换为 Python 的 \\g<1> / \\g<0> / $

    反斜杠按字面处理。
    """
    def convert(m: re.Match) -> str:
        token = m.group(1)
        if token is None:
            return "\\\\"
        if token == "&":
            return r"\g<0>"
        if token == "$":
            return "$"
        return rf"\g<{token}>"

    return _JS_REPLACEMENT_RE.sub(convert, replacement)


def fold_diacritics(text: str) -> tuple[str, list[int]]:
    """
    去掉组合附加符号

    Returns:
        (folded, positions)，positions[i] 是 folded[i] 在原文中的下标，
        末尾额外附加 len(text)
    """
    folded = []
    positions = []
    for i, char in enumerate(text):
        base = "".join(
            part for part in unicodedata.normalize("NFD", char) if not unicodedata.combining(part)
        )
        # 韩文音节等分解后需重新组合
        for part in unicodedata.normalize("NFC", base):
            folded.append(part)
            positions.append(i)
    positions.append(len(text))
    return "".join(folded), positions


def compile_rule(rule: BatchRule) -> Optional[re.Pattern]:
    find = rule.find
    if not rule.diacritic_sensitive:
        find = fold_diacritics(find)[0]
    return compile_pattern(find, rule.is_regex, rule.case_sensitive, rule.whole_word)


def _on_boundaries(positions: list[int], start: int, end: int) -> bool:
    """匹配的两端都必须落在原文字符的边界上"""
    starts_clean = start == 0 or positions[start - 1] != positions[start]
    ends_clean = positions[end - 1] != positions[end]
    return starts_clean and ends_clean


def _replace_part(part: str, pattern: re.Pattern, rule: BatchRule) -> str:
    if rule.is_regex:
        template = convert_replacement(rule.replace)
        expand = lambda m: m.expand(template)  # noqa: E731
    else:
        expand = lambda m: rule.replace  # noqa: E731

    if rule.diacritic_sensitive:
        return pattern.sub(expand, part)

    folded, positions = fold_diacritics(part)
    out = []
    last = 0
    for m in pattern.finditer(folded):
        if m.start() == m.end() or not _on_boundaries(positions, m.start(), m.end()):
            continue
        start, end = positions[m.start()], positions[m.end()]
        out.append(part[last:start])
        out.append(expand(m))
        last = end
    out.append(part[last:])
    return "".join(out)


def apply_batch_rule(text: str, rule: BatchRule) -> tuple[str, bool]:
    """
    对标签之间的文本应用一条规则

    Returns:
        (新文本, 是否改变)；规则非法时原样返回
    """
    if not rule.find:
        return text, False
    pattern = compile_rule(rule)
    if pattern is None:
        return text, False

    parts, tags = split_on_tags(text)
    try:
        parts = [_replace_part(part, pattern, rule) if part else part for part in parts]
    except (re.error, IndexError) as e:
        # 替换串引用了不存在的分组
        logger.warning(f"Batch rule {rule.find!r} -> {rule.replace!r} failed: {e}")
        return text, False
    result = join_parts(parts, tags)
    return result, result != text


def process_unit_batch(
    unit: TranslationUnit,
    config: BatchConfig,
    now: Optional[datetime] = None,
) -> tuple[TranslationUnit, bool]:
    """
    对单个单元应用整条规则链

    Returns:
        (单元, 是否修改)；未修改或锁定时返回原对象
    """
    if unit.is_locked or not config.rules:
        return unit, False

    source = unit.source.text
    target = unit.target.text
    for rule in config.rules:
        if config.scope in ("source", "both"):
            source, _ = apply_batch_rule(source, rule)
        if config.scope in ("target", "both"):
            target, _ = apply_batch_rule(target, rule)

    if source == unit.source.text and target == unit.target.text:
        return unit, False

    now = now or utc_now()
    updated = unit.clone()
    updated.source.text = source
    updated.target.text = target
    updated.recompute_status()
    updated.qa_issues = []
    updated.last_modified = iso_timestamp(now)

    meta = config.metadata_updates
    if meta.update_user and meta.user_name:
        updated.metadata["changeid"] = meta.user_name
        updated.last_modified_by = meta.user_name
    if meta.update_date:
        updated.metadata["changedate"] = tmx_timestamp(now)
    return updated, True


@dataclass
class BatchProgress:
    processed: int
    total: int
    modified: int

    @property
    def percent(self) -> int:
        if not self.total:
            return 100
        return int(self.processed * 100 / self.total)


@dataclass
class BatchResult:
    units: list[TranslationUnit]
    modified: int = 0
    modified_ids: list[str] = field(default_factory=list)


class BatchTransformer:
    """批处理任务执行器（单任务）"""

    def __init__(self, chunk_size: int = BATCH_CHUNK_SIZE):
        if chunk_size < 1:
            logger.warning(f"chunk_size must be >= 1, got {chunk_size}, using {BATCH_CHUNK_SIZE}")
            chunk_size = BATCH_CHUNK_SIZE
        self.chunk_size = chunk_size
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def iter_batch(
        self,
        units: Iterable[TranslationUnit],
        config: BatchConfig,
        filtered_ids: Optional[Iterable[str]] = None,
    ) -> Generator[BatchProgress, None, BatchResult]:
        """
        分块处理，每块结束后产出一次进度

        Args:
            units: 全部单元（不会被修改）
            config: 批处理配置
            filtered_ids: config.only_filtered 为 True 时的工作集

        Returns:
            生成器结束时返回 BatchResult（完整语料，顺序不变）

        Raises:
            BatchInProgressError: 已有任务在运行
        """
        if not self._lock.acquire(blocking=False):
            raise BatchInProgressError("A batch job is already running")
        try:
            units = list(units)
            allowed = set(filtered_ids or []) if config.only_filtered else None
            work = [i for i, u in enumerate(units) if allowed is None or u.id in allowed]
            total = len(work)
            now = utc_now()

            result = list(units)
            modified_ids = []
            if not work:
                yield BatchProgress(0, 0, 0)
            for start in range(0, total, self.chunk_size):
                for index in work[start:start + self.chunk_size]:
                    updated, changed = process_unit_batch(units[index], config, now)
                    if changed:
                        result[index] = updated
                        modified_ids.append(updated.id)
                yield BatchProgress(min(start + self.chunk_size, total), total, len(modified_ids))

            logger.info(f"Batch transform modified {len(modified_ids)} of {total} units")
            return BatchResult(result, len(modified_ids), modified_ids)
        finally:
            self._lock.release()

    def run(
        self,
        units: Iterable[TranslationUnit],
        config: BatchConfig,
        on_progress: Optional[ProgressCallback] = None,
        filtered_ids: Optional[Iterable[str]] = None,
    ) -> BatchResult:
        """运行整个任务，按块回调进度（单调递增，以 100 结束）"""
        job = self.iter_batch(units, config, filtered_ids)
        while True:
            try:
                progress = next(job)
            except StopIteration as stop:
                return stop.value
            if on_progress:
                on_progress(progress.percent)


def run_batch_transform(
    units: Iterable[TranslationUnit],
    config: BatchConfig,
    on_progress: Optional[ProgressCallback] = None,
    filtered_ids: Optional[Iterable[str]] = None,
) -> BatchResult:
    return BatchTransformer().run(units, config, on_progress, filtered_ids)
