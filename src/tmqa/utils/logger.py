"""
Unified logging system for the TM QA workbench.

Provides:
- Rich console logging plus optional file output
- Performance timing utilities
- Progress tracking integration
- Custom exception hierarchy
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional
from contextlib import contextmanager

from rich.logging import RichHandler
from rich.console import Console
from rich.progress import Progress, BarColumn, TimeElapsedColumn, TextColumn

_console = Console(stderr=True)


# ========================================
# 自定义异常层次结构
# ========================================

class TmQaError(Exception):
    """工作台基础异常"""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class FileOperationError(TmQaError):
    """文件操作错误（读取、写入、编码等）"""

    def __init__(self, message: str, file_path: Optional[Path] = None, **kwargs):
        details = {"file_path": str(file_path) if file_path else None, **kwargs}
        super().__init__(message, details)
        self.file_path = file_path


class ValidationError(TmQaError):
    """数据校验错误（记录缺字段、类型不对等）"""

    def __init__(self, message: str, unit_id: Optional[str] = None, **kwargs):
        details = {"unit_id": unit_id, **kwargs}
        super().__init__(message, details)
        self.unit_id = unit_id


class ConfigurationError(TmQaError):
    """配置错误（缺少必要参数、无效值等）"""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        details = {"config_key": config_key, **kwargs}
        super().__init__(message, details)
        self.config_key = config_key


class PersistenceError(TmQaError):
    """持久化失败；内存中的语料已是最新状态"""

    def __init__(self, message: str, unit_ids: Optional[list[str]] = None, **kwargs):
        details = {"unit_count": len(unit_ids) if unit_ids else 0, **kwargs}
        super().__init__(message, details)
        self.unit_ids = unit_ids or []


class BatchInProgressError(TmQaError):
    """已有批处理任务在运行"""


class UnitLockedError(TmQaError):
    """试图修改已锁定的翻译单元"""

    def __init__(self, message: str, unit_id: Optional[str] = None):
        super().__init__(message, {"unit_id": unit_id})
        self.unit_id = unit_id


class RuleGenerationError(TmQaError):
    """规则生成助手失败"""

    def __init__(self, message: str, description: Optional[str] = None, **kwargs):
        details = {"description": description[:100] if description else None, **kwargs}
        super().__init__(message, details)
        self.description = description


# ========================================
# 日志类
# ========================================


class QALogger:
    """Logger wrapper with convenience methods."""

    def __init__(
        self,
        name: str = "tmqa",
        level: int = logging.INFO,
        log_file: Optional[Path] = None,
    ):
        """
        Initialize logger.

        Args:
            name: Logger name
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Optional file path for log output
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.logger.handlers = []  # Clear existing handlers

        console_handler = RichHandler(
            console=_console,
            rich_tracebacks=True,
            markup=False,
            show_time=True,
            show_path=False
        )
        console_handler.setLevel(level)
        self.logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            file_handler.setLevel(logging.DEBUG)  # Log everything to file
            self.logger.addHandler(file_handler)

    def debug(self, msg: str, *args, **kwargs):
        self.logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self.logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self.logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        """Log exception with traceback."""
        self.logger.exception(msg, *args, **kwargs)

    @contextmanager
    def timer(self, operation: str, level: int = logging.INFO):
        """
        Context manager for timing operations.

        Usage:
            with logger.timer("Running QA"):
                engine.run_project(units, settings)
        """
        start = time.time()
        self.logger.log(level, f"Starting: {operation}")
        try:
            yield
        finally:
            elapsed = time.time() - start
            self.logger.log(level, f"Completed: {operation} (took {elapsed:.2f}s)")

    @contextmanager
    def progress(
        self,
        total: int = 100,
        description: str = "Processing",
        disable: bool = False
    ):
        """
        Context manager for progress tracking with Rich.

        The yielded callable takes an absolute completion value, which is
        what the batch engine reports (0-100).

        Usage:
            with logger.progress(100, "Batch") as update:
                transformer.run(units, config, on_progress=update)
        """
        if disable:
            yield lambda completed: None
            return

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=_console,
        ) as progress:
            task = progress.add_task(description, total=total)

            def update(completed: float):
                progress.update(task, completed=completed)

            yield update


# Global logger instance
_default_logger: Optional[QALogger] = None


def get_logger(
    name: str = "tmqa",
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> QALogger:
    """
    Get or create global logger instance.

    Args:
        name: Logger name
        level: Logging level
        log_file: Optional log file path

    Returns:
        QALogger instance
    """
    global _default_logger
    if _default_logger is None:
        _default_logger = QALogger(name=name, level=level, log_file=log_file)
    return _default_logger


def setup_logger(
    name: str = "tmqa",
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> QALogger:
    """
    Setup and configure global logger, replacing any previous one.

    Returns:
        Configured QALogger instance
    """
    global _default_logger
    _default_logger = QALogger(name=name, level=level, log_file=log_file)
    return _default_logger
