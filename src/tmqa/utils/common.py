"""
公共常量与小工具

所有模块共享的状态值、严重级别、ID 生成以及时间戳格式化。
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

# 单元状态
STATUS_EMPTY = "empty"
STATUS_TRANSLATED = "translated"
STATUS_APPROVED = "approved"
STATUSES = (STATUS_EMPTY, STATUS_TRANSLATED, STATUS_APPROVED)

# 问题严重级别（按报告顺序）
SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"
SEVERITY_INFO = "info"
SEVERITIES = (SEVERITY_ERROR, SEVERITY_WARNING, SEVERITY_INFO)

# 批处理与历史
BATCH_CHUNK_SIZE = 500
MAX_HISTORY = 50

ANONYMOUS_USER = "tmx_editor_user"
DEFAULT_IGNORED_BY = "User"

# TMX 日期格式: 20240131T120000Z
TMX_DATE_FORMAT = "%Y%m%dT%H%M%SZ"


def new_id() -> str:
    """生成新的唯一 ID"""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def tmx_timestamp(moment: Optional[datetime] = None) -> str:
    """格式化为 TMX 的 changedate/creationdate 格式"""
    moment = moment or utc_now()
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TMX_DATE_FORMAT)


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or utc_now()
    return moment.isoformat()


def base_language(lang: str) -> str:
    """'fr-CA' -> 'fr'"""
    return (lang or "").split('-')[0].split('_')[0].lower()


def lang_match(lang1: str, lang2: str) -> bool:
    """按基础语言代码比较两个语言标签（忽略大小写和地区）"""
    if not lang1 or not lang2:
        return False
    return base_language(lang1) == base_language(lang2)


def derive_status(target_text: str, current: str = STATUS_EMPTY) -> str:
    """根据译文重新推导状态：空 -> empty，非空 -> translated（已批准的保持 approved）"""
    if not target_text or not target_text.strip():
        return STATUS_EMPTY
    if current == STATUS_APPROVED:
        return STATUS_APPROVED
    return STATUS_TRANSLATED
