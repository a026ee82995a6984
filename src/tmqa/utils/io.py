"""
文件 I/O 工具函数

提供语料 / 术语表的安全读写：
- 原子写入（防止数据损坏）
- JSONL 读写，无效行跳过并记录
- 翻译单元与术语的加载 / 保存
"""

from __future__ import annotations

import json
import os
import tempfile
import logging
from pathlib import Path
from typing import Iterable, Dict, Any

from .logger import FileOperationError, ValidationError
from .models import TranslationUnit, GlossaryTerm

# 获取模块级 logger
logger = logging.getLogger(__name__)


def ensure_parent_dir(path: str | Path) -> Path:
    """确保父目录存在"""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def _atomic_write(p: Path, write) -> None:
    """先写临时文件再 os.replace，失败时清理临时文件"""
    fd, tmp_path = tempfile.mkstemp(
        dir=p.parent,
        prefix=f".{p.name}.",
        suffix=".tmp"
    )
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            write(f)
        os.replace(tmp_path, p)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def read_json_file(path: str | Path) -> Any:
    """
    读取 JSON 文件

    Raises:
        FileOperationError: 文件不存在、不可读或不是合法 JSON
    """
    p = Path(path)
    try:
        with p.open('r', encoding='utf-8-sig') as f:
            return json.load(f)
    except OSError as e:
        raise FileOperationError(f"Cannot read {p.name}: {e}", file_path=p)
    except json.JSONDecodeError as e:
        raise FileOperationError(f"Invalid JSON in {p.name}: {e}", file_path=p, line=e.lineno)


def write_json_file(path: str | Path, data: Any, atomic: bool = True) -> None:
    p = ensure_parent_dir(path)

    def _write(f):
        json.dump(data, f, ensure_ascii=False, indent=2)

    if atomic:
        _atomic_write(p, _write)
    else:
        with p.open('w', encoding='utf-8') as f:
            _write(f)


def read_jsonl_lines(
    path: str | Path,
    skip_invalid: bool = True,
    log_errors: bool = True
) -> list[Dict[str, Any]]:
    """读取 JSONL 文件

    Args:
        path: 文件路径
        skip_invalid: 是否跳过无效行
        log_errors: 是否记录解析错误

    Returns:
        解析后的对象列表

    Raises:
        FileOperationError: 文件不可读，或 skip_invalid=False 时遇到无效行
    """
    p = Path(path)
    out: list[Dict[str, Any]] = []
    error_count = 0

    try:
        f = p.open('r', encoding='utf-8-sig')
    except OSError as e:
        raise FileOperationError(f"Cannot open {p.name}: {e}", file_path=p)

    with f:
        for line_num, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                out.append(json.loads(line))
            except json.JSONDecodeError as e:
                error_count += 1
                if log_errors:
                    logger.warning(
                        f"JSONL parse error at {p.name}:{line_num}: {e}"
                    )
                if not skip_invalid:
                    raise FileOperationError(
                        f"Invalid JSONL line {line_num}", file_path=p, line=line_num
                    )

    if error_count > 0 and log_errors:
        logger.warning(
            f"Skipped {error_count} invalid lines in {p.name}"
        )

    return out


def write_jsonl_lines(
    path: str | Path,
    rows: Iterable[Dict[str, Any]],
    atomic: bool = True
) -> int:
    """写入 JSONL 文件

    Args:
        path: 文件路径
        rows: 要写入的对象
        atomic: 是否使用原子写入

    Returns:
        写入的行数
    """
    p = ensure_parent_dir(path)
    count = 0

    def _write(f):
        nonlocal count
        for obj in rows:
            f.write(json.dumps(obj, ensure_ascii=False) + "\n")
            count += 1

    if atomic:
        _atomic_write(p, _write)
    else:
        with p.open('w', encoding='utf-8') as f:
            _write(f)

    return count


def load_units(path: str | Path) -> list[TranslationUnit]:
    """
    从 JSONL 语料文件加载翻译单元

    无法构建的记录会被跳过并记录警告；结果按 order 排序。
    """
    units: list[TranslationUnit] = []
    skipped = 0
    for row in read_jsonl_lines(path):
        try:
            units.append(TranslationUnit.from_dict(row))
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            skipped += 1
            logger.warning(f"Skipping unit record: {e}")

    if skipped:
        logger.warning(f"Skipped {skipped} malformed unit records in {Path(path).name}")
    units.sort(key=lambda u: u.order)
    logger.debug(f"Loaded {len(units)} units from {path}")
    return units


def save_units(path: str | Path, units: Iterable[TranslationUnit]) -> int:
    """原子写入全部单元，返回写入数量"""
    return write_jsonl_lines(path, (u.to_dict() for u in units))


def load_glossary(path: str | Path) -> list[GlossaryTerm]:
    """
    加载术语表

    支持 .jsonl（每行一个术语）和 .json（术语数组，或 {"terms": [...]}）。
    """
    p = Path(path)
    if p.suffix.lower() == '.jsonl':
        rows = read_jsonl_lines(p)
    else:
        data = read_json_file(p)
        rows = data.get("terms", []) if isinstance(data, dict) else data
        if not isinstance(rows, list):
            raise FileOperationError("Glossary must be a list of terms", file_path=p)

    terms = []
    for row in rows:
        if not isinstance(row, dict) or not row.get("source"):
            logger.warning(f"Skipping glossary entry without source: {row!r}")
            continue
        terms.append(GlossaryTerm.from_dict(row))
    return terms
