"""
语料检索 (Concordance) 模块

支持:
- 原文 / 译文子串检索
- 相似片段模糊匹配（使用 rapidfuzz）
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable

from rapidfuzz import fuzz, process

from .models import TranslationUnit
from .tags import remove_tags

logger = logging.getLogger(__name__)

SCOPES = ("source", "target", "both")


@dataclass
class ConcordanceHit:
    """检索结果"""
    unit_id: str
    source: str
    target: str
    score: float  # 0-100
    match_type: str = "exact"  # exact, fuzzy


class ConcordanceIndex:
    """按原文建立的检索索引"""

    def __init__(self, min_length: int = 2):
        """
        Args:
            min_length: 参与模糊匹配的最小原文长度（去标签后）
        """
        self.min_length = min_length
        self._units: list[TranslationUnit] = []
        # 去标签原文 -> 单元列表（用于模糊匹配）
        self._by_source: dict[str, list[TranslationUnit]] = defaultdict(list)
        self._sources: list[str] = []

    def build(self, units: Iterable[TranslationUnit]) -> "ConcordanceIndex":
        self._units = list(units)
        self._by_source.clear()
        self._sources = []
        for unit in self._units:
            key = remove_tags(unit.source.text).strip()
            if len(key) < self.min_length:
                continue
            if key not in self._by_source:
                self._sources.append(key)
            self._by_source[key].append(unit)
        logger.debug(f"Concordance index: {len(self._units)} units, {len(self._sources)} unique sources")
        return self

    def search(
        self,
        query: str,
        scope: str = "both",
        ignore_case: bool = True,
        limit: int = 100,
    ) -> list[ConcordanceHit]:
        """
        子串检索（忽略标签）

        Args:
            query: 查询文本
            scope: source / target / both
            ignore_case: 是否忽略大小写
            limit: 最大返回数量
        """
        if scope not in SCOPES:
            logger.warning(f"Unknown concordance scope {scope!r}, using 'both'")
            scope = "both"
        needle = query.strip()
        if not needle:
            return []
        if ignore_case:
            needle = needle.lower()

        hits = []
        for unit in self._units:
            haystacks = []
            if scope in ("source", "both"):
                haystacks.append(remove_tags(unit.source.text))
            if scope in ("target", "both"):
                haystacks.append(remove_tags(unit.target.text))
            if any(needle in (h.lower() if ignore_case else h) for h in haystacks):
                hits.append(ConcordanceHit(
                    unit_id=unit.id,
                    source=unit.source.text,
                    target=unit.target.text,
                    score=100.0,
                ))
                if len(hits) >= limit:
                    break
        return hits

    def similar(
        self,
        text: str,
        threshold: float = 75.0,
        limit: int = 5,
    ) -> list[ConcordanceHit]:
        """
        相似原文查询

        Args:
            text: 源文本
            threshold: 最小匹配分数（0-100）
            limit: 最大返回数量

        Returns:
            匹配结果列表（按分数降序）
        """
        if not self._sources:
            return []

        query = remove_tags(text).strip()
        if not query:
            return []

        results = process.extract(
            query,
            self._sources,
            scorer=fuzz.ratio,
            limit=limit * 2  # 同一原文可能对应多个单元
        )

        hits = []
        for matched_source, score, _ in results:
            if score < threshold:
                continue
            for unit in self._by_source.get(matched_source, []):
                hits.append(ConcordanceHit(
                    unit_id=unit.id,
                    source=unit.source.text,
                    target=unit.target.text,
                    score=score,
                    match_type="exact" if score >= 100 else "fuzzy",
                ))
                if len(hits) >= limit:
                    return hits
        return hits

    def __len__(self) -> int:
        return len(self._sources)

    def stats(self) -> dict:
        return {
            'units': len(self._units),
            'unique_sources': len(self._sources),
        }
