"""
数据模型

翻译单元、片段、标签、QA 问题以及过滤 / 批处理 / 清理 / 历史配置。
所有记录都是 dataclass，并提供 to_dict() / from_dict() 供持久化和 CLI 使用。
from_dict() 同时接受 snake_case 与导出工作台数据中的 camelCase 键。
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Optional

from .common import (
    STATUS_EMPTY, STATUSES, SEVERITY_WARNING, SEVERITIES,
    new_id, derive_status,
)
from .logger import ValidationError

logger = logging.getLogger(__name__)


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """按顺序取第一个存在的键"""
    for key in keys:
        if key in data:
            return data[key]
    return default


@dataclass
class Highlight:
    """半开区间 [start, end)，指向带标签的原文"""
    start: int
    end: int

    @classmethod
    def from_dict(cls, data: dict) -> "Highlight":
        return cls(start=int(data["start"]), end=int(data["end"]))


@dataclass
class TmxTag:
    """内联标签：id 为占位符本身，content 为原始标记"""
    id: str
    type: str = "ph"
    content: str = ""
    index: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "TmxTag":
        return cls(
            id=data["id"],
            type=data.get("type", "ph"),
            content=data.get("content", ""),
            index=data.get("index"),
        )


@dataclass
class TranslationSegment:
    text: str = ""
    tags: list[TmxTag] = field(default_factory=list)

    def tag_ids(self) -> list[str]:
        return [t.id for t in self.tags]

    def tag_for(self, token: str) -> Optional[TmxTag]:
        for tag in self.tags:
            if tag.id == token:
                return tag
        return None

    @classmethod
    def from_dict(cls, data: Any) -> "TranslationSegment":
        if data is None:
            return cls()
        if isinstance(data, str):
            return cls(text=data)
        return cls(
            text=data.get("text", "") or "",
            tags=[TmxTag.from_dict(t) for t in data.get("tags", [])],
        )


@dataclass
class QAIssue:
    """
    QA 问题

    忽略状态独立于问题本身：忽略不会删除问题。
    """
    code: str
    message: str
    severity: str = SEVERITY_WARNING
    id: str = field(default_factory=new_id)
    rule_id: Optional[str] = None
    group_id: Optional[str] = None
    is_ignored: bool = False
    ignored_by: Optional[str] = None
    source_highlights: list[Highlight] = field(default_factory=list)
    target_highlights: list[Highlight] = field(default_factory=list)

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            logger.warning(f"Unknown issue severity {self.severity!r}, using 'warning'")
            self.severity = SEVERITY_WARNING

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "QAIssue":
        return cls(
            id=data.get("id") or new_id(),
            code=data.get("code", ""),
            message=data.get("message", ""),
            severity=_pick(data, "severity", "type", default=SEVERITY_WARNING),
            rule_id=_pick(data, "rule_id", "ruleId"),
            group_id=_pick(data, "group_id", "groupId"),
            is_ignored=bool(_pick(data, "is_ignored", "isIgnored", default=False)),
            ignored_by=_pick(data, "ignored_by", "ignoredBy"),
            source_highlights=[
                Highlight.from_dict(h)
                for h in _pick(data, "source_highlights", "sourceHighlights", default=[]) or []
            ],
            target_highlights=[
                Highlight.from_dict(h)
                for h in _pick(data, "target_highlights", "targetHighlights", default=[]) or []
            ],
        )


@dataclass
class TranslationUnit:
    """一个对齐的原文 / 译文单元"""
    id: str = field(default_factory=new_id)
    tu_id: str = ""
    order: int = 0
    source: TranslationSegment = field(default_factory=TranslationSegment)
    target: TranslationSegment = field(default_factory=TranslationSegment)
    status: str = STATUS_EMPTY
    metadata: dict[str, Any] = field(default_factory=dict)
    project_id: str = ""
    file_id: str = ""
    source_lang: str = ""
    target_lang: str = ""
    qa_issues: list[QAIssue] = field(default_factory=list)
    is_locked: bool = False
    note: Optional[str] = None
    last_modified: Optional[str] = None
    last_modified_by: Optional[str] = None

    def __post_init__(self):
        if self.status not in STATUSES:
            logger.warning(f"Unit {self.id}: unknown status {self.status!r}, deriving from target")
            self.status = derive_status(self.target.text)

    @property
    def language_pair(self) -> tuple[str, str]:
        return (self.source_lang, self.target_lang)

    def clone(self) -> "TranslationUnit":
        """深拷贝，修改前必须先复制，不能原地修改共享对象"""
        return copy.deepcopy(self)

    def recompute_status(self) -> None:
        self.status = derive_status(self.target.text, self.status)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TranslationUnit":
        """
        从字典构建单元

        Raises:
            ValidationError: 记录不是映射或缺少 id
        """
        if not isinstance(data, dict):
            raise ValidationError(f"Unit record must be a mapping, got {type(data).__name__}")
        unit_id = data.get("id")
        if not unit_id:
            raise ValidationError("Unit record has no id", tu_id=_pick(data, "tu_id", "tuId"))

        target = TranslationSegment.from_dict(data.get("target"))
        status = data.get("status") or derive_status(target.text)
        return cls(
            id=str(unit_id),
            tu_id=str(_pick(data, "tu_id", "tuId", default="") or ""),
            order=int(data.get("order", 0) or 0),
            source=TranslationSegment.from_dict(data.get("source")),
            target=target,
            status=status,
            metadata=dict(data.get("metadata") or {}),
            project_id=_pick(data, "project_id", "projectId", default="") or "",
            file_id=_pick(data, "file_id", "fileId", default="") or "",
            source_lang=_pick(data, "source_lang", "sourceLang", default="") or "",
            target_lang=_pick(data, "target_lang", "targetLang", default="") or "",
            qa_issues=[
                QAIssue.from_dict(i)
                for i in _pick(data, "qa_issues", "qaIssues", default=[]) or []
            ],
            is_locked=bool(_pick(data, "is_locked", "isLocked", default=False)),
            note=data.get("note"),
            last_modified=_pick(data, "last_modified", "lastModified"),
            last_modified_by=_pick(data, "last_modified_by", "lastModifiedBy"),
        )


@dataclass
class GlossaryTerm:
    source: str
    target: str
    id: str = field(default_factory=new_id)
    is_forbidden: bool = False
    note: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "GlossaryTerm":
        return cls(
            id=data.get("id") or new_id(),
            source=data.get("source", ""),
            target=data.get("target", ""),
            is_forbidden=bool(_pick(data, "is_forbidden", "isForbidden", default=False)),
            note=data.get("note"),
        )


# ========================================
# 过滤
# ========================================

@dataclass
class FilterCondition:
    """scope: source / target / comment / status / metadata.<key>"""
    scope: str
    operator: str  # contains / excludes / equal / not_equal
    value: str = ""
    id: str = field(default_factory=new_id)


@dataclass
class CustomFilter:
    name: str = ""
    match_type: str = "and"
    conditions: list[FilterCondition] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    def __post_init__(self):
        self.match_type = (self.match_type or "and").lower()
        if self.match_type not in ("and", "or"):
            logger.warning(f"Unknown match type {self.match_type!r}, using 'and'")
            self.match_type = "and"

    @classmethod
    def from_dict(cls, data: dict) -> "CustomFilter":
        return cls(
            id=data.get("id") or new_id(),
            name=data.get("name", ""),
            match_type=_pick(data, "match_type", "matchType", default="and"),
            conditions=[
                FilterCondition(
                    id=c.get("id") or new_id(),
                    scope=c["scope"],
                    operator=c["operator"],
                    value=str(c.get("value", "")),
                )
                for c in data.get("conditions", [])
            ],
        )


# ========================================
# 批处理 / 清理
# ========================================

@dataclass
class BatchRule:
    find: str
    replace: str = ""
    is_regex: bool = False
    case_sensitive: bool = False
    whole_word: bool = False
    diacritic_sensitive: bool = True
    id: str = field(default_factory=new_id)

    @classmethod
    def from_dict(cls, data: dict) -> "BatchRule":
        return cls(
            id=data.get("id") or new_id(),
            find=data.get("find", ""),
            replace=data.get("replace", ""),
            is_regex=bool(_pick(data, "is_regex", "isRegex", default=False)),
            case_sensitive=bool(_pick(data, "case_sensitive", "caseSensitive", default=False)),
            whole_word=bool(_pick(data, "whole_word", "wholeWord", default=False)),
            diacritic_sensitive=bool(_pick(data, "diacritic_sensitive", "diacriticSensitive", default=True)),
        )


@dataclass
class MetadataUpdates:
    update_user: bool = False
    user_name: str = ""
    update_date: bool = False


@dataclass
class BatchConfig:
    scope: str = "target"  # source / target / both
    only_filtered: bool = False
    rules: list[BatchRule] = field(default_factory=list)
    metadata_updates: MetadataUpdates = field(default_factory=MetadataUpdates)

    def __post_init__(self):
        if self.scope not in ("source", "target", "both"):
            logger.warning(f"Unknown batch scope {self.scope!r}, using 'target'")
            self.scope = "target"

    @classmethod
    def from_dict(cls, data: dict) -> "BatchConfig":
        meta = _pick(data, "metadata_updates", "metadataUpdates", default={}) or {}
        return cls(
            scope=data.get("scope", "target"),
            only_filtered=bool(_pick(data, "only_filtered", "onlyFiltered", default=False)),
            rules=[BatchRule.from_dict(r) for r in data.get("rules", [])],
            metadata_updates=MetadataUpdates(
                update_user=bool(_pick(meta, "update_user", "updateUser", default=False)),
                user_name=_pick(meta, "user_name", "userName", default="") or "",
                update_date=bool(_pick(meta, "update_date", "updateDate", default=False)),
            ),
        )


@dataclass
class CleanupConfig:
    remove_empty: bool = False
    remove_untranslated: bool = False
    strip_control_chars: bool = True
    trim_whitespace: bool = True
    normalize_spacing: bool = False
    strip_all_tags: bool = False
    auto_close_tags: bool = False
    remove_orphan_tags: bool = False
    delete_exact_duplicates: bool = False
    anonymize_users: bool = False
    batch_date_update: bool = False
    custom_regex_enabled: bool = False
    custom_regex_find: str = ""
    custom_regex_replace: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "CleanupConfig":
        valid = {f.name for f in fields(cls)}
        unknown = set(data) - valid
        if unknown:
            logger.warning(f"Ignoring unknown cleanup options: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in valid})


@dataclass
class CleanupReport:
    modified: int = 0
    deleted: int = 0
    duplicates_removed: int = 0
    tags_fixed: int = 0
    metadata_updated: int = 0
    deleted_ids: list[str] = field(default_factory=list)


# ========================================
# 历史
# ========================================

@dataclass
class HistoryItem:
    """一次快照：整个语料的深拷贝"""
    units: list[TranslationUnit]
    description: str
    timestamp: str
    id: str = field(default_factory=new_id)
