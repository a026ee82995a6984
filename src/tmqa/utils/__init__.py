from .common import (
    STATUS_EMPTY, STATUS_TRANSLATED, STATUS_APPROVED,
    SEVERITY_ERROR, SEVERITY_WARNING, SEVERITY_INFO,
    new_id, tmx_timestamp, lang_match, derive_status,
)
from .models import (
    Highlight, TmxTag, TranslationSegment, QAIssue, TranslationUnit,
    GlossaryTerm, FilterCondition, CustomFilter, BatchRule, BatchConfig,
    MetadataUpdates, CleanupConfig, CleanupReport, HistoryItem,
)
from .settings import QASettings, QAProfile, SettingsManager, get_settings_manager, merge_settings
from .locale_registry import get_settings_for_locale
from .tags import TAG_RE, strip_tags, remove_tags, map_stripped_to_original, compile_pattern
from .io import read_jsonl_lines, write_jsonl_lines, load_units, save_units, load_glossary
from .store import UnitStore, GlossaryProvider, InMemoryUnitStore, JsonlUnitStore, InMemoryGlossary
from .concordance import ConcordanceIndex, ConcordanceHit
from .ui import Message, issue_table, summary_table, show_cleanup_report
from .logger import (
    TmQaError, ConfigurationError, ValidationError, FileOperationError,
    PersistenceError, BatchInProgressError, UnitLockedError, RuleGenerationError,
    QALogger, get_logger, setup_logger,
)

__all__ = [
    # common
    "STATUS_EMPTY",
    "STATUS_TRANSLATED",
    "STATUS_APPROVED",
    "SEVERITY_ERROR",
    "SEVERITY_WARNING",
    "SEVERITY_INFO",
    "new_id",
    "tmx_timestamp",
    "lang_match",
    "derive_status",
    # models
    "Highlight",
    "TmxTag",
    "TranslationSegment",
    "QAIssue",
    "TranslationUnit",
    "GlossaryTerm",
    "FilterCondition",
    "CustomFilter",
    "BatchRule",
    "BatchConfig",
    "MetadataUpdates",
    "CleanupConfig",
    "CleanupReport",
    "HistoryItem",
    # settings
    "QASettings",
    "QAProfile",
    "SettingsManager",
    "get_settings_manager",
    "merge_settings",
    "get_settings_for_locale",
    # tags
    "TAG_RE",
    "strip_tags",
    "remove_tags",
    "map_stripped_to_original",
    "compile_pattern",
    # io / store
    "read_jsonl_lines",
    "write_jsonl_lines",
    "load_units",
    "save_units",
    "load_glossary",
    "UnitStore",
    "GlossaryProvider",
    "InMemoryUnitStore",
    "JsonlUnitStore",
    "InMemoryGlossary",
    # concordance
    "ConcordanceIndex",
    "ConcordanceHit",
    # ui
    "Message",
    "issue_table",
    "summary_table",
    "show_cleanup_report",
    # logger
    "TmQaError",
    "ConfigurationError",
    "ValidationError",
    "FileOperationError",
    "PersistenceError",
    "BatchInProgressError",
    "UnitLockedError",
    "RuleGenerationError",
    "QALogger",
    "get_logger",
    "setup_logger",
]
