"""
QA settings management for the TM QA workbench.

A single ``QASettings`` aggregate holds one enable flag plus parameters per
rule family. Settings are deep-mergeable so that locale defaults can be laid
over the global settings for each target language before any check runs.
"""

from __future__ import annotations

import copy
import json
import logging
import re
import threading
from pathlib import Path
from typing import Any, Optional
from dataclasses import dataclass, asdict, field, fields

from .common import new_id
from .logger import ConfigurationError

logger = logging.getLogger(__name__)

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

# camelCase exports that do not convert cleanly
_ALIASES = {
    "thousand_separator1000": "thousand_separator_1000",
}


def snake_key(key: str) -> str:
    """'checkTagOrder' -> 'check_tag_order'"""
    snake = _CAMEL_RE.sub("_", key).lower()
    return _ALIASES.get(snake, snake)


class _SettingsRecord:
    """Shared dict conversion for settings dataclasses."""

    _NESTED: dict = {}
    _NESTED_LISTS: dict = {}

    @classmethod
    def from_dict(cls, data: dict):
        valid = {f.name for f in fields(cls)}
        kwargs = {}
        for raw_key, value in data.items():
            key = snake_key(raw_key)
            if key not in valid:
                logger.warning(f"Unknown {cls.__name__} key: {raw_key}")
                continue
            if key in cls._NESTED and isinstance(value, dict):
                value = cls._NESTED[key].from_dict(value)
            elif key in cls._NESTED_LISTS and isinstance(value, list):
                item_cls = cls._NESTED_LISTS[key]
                value = [item_cls.from_dict(v) if isinstance(v, dict) else v for v in value]
            kwargs[key] = value
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PunctuationGrid(_SettingsRecord):
    """Characters (as strings) that require or forbid adjacent spacing."""
    space_before: str = ""
    space_after: str = ""
    no_space_before: str = ""
    no_space_after: str = ""
    nbsp_before: str = ""
    nbsp_after: str = ""


@dataclass
class QuotePair(_SettingsRecord):
    open: str
    close: str


@dataclass
class MeasurementUnit(_SettingsRecord):
    name: str
    target_unit: str
    id: str = field(default_factory=new_id)
    custom: bool = False


@dataclass
class DigitToTextEntry(_SettingsRecord):
    digit: int
    forms: list[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)


@dataclass
class ConsistencyRuleOptions(_SettingsRecord):
    """Normalization switches for one consistency rule."""
    enabled: bool = True
    ignore_space_types: bool = True
    ignore_case: bool = True
    check_without_tags: bool = True
    ignore_numbers: bool = False
    ignore_plural_english: bool = False
    ignore_punctuation: bool = False


@dataclass
class MatchOptions(_SettingsRecord):
    case_sensitive: bool = False
    whole_word: bool = False
    is_regex: bool = False


USER_CHECK_CONDITIONS = (
    "both_found",
    "source_found_target_missing",
    "target_found_source_missing",
    "both_regex_match",
)


@dataclass
class UserDefinedCheck(_SettingsRecord):
    title: str = ""
    source_pattern: str = ""
    target_pattern: str = ""
    condition: str = "source_found_target_missing"
    source_options: MatchOptions = field(default_factory=MatchOptions)
    target_options: MatchOptions = field(default_factory=MatchOptions)
    enabled: bool = True
    languages: list[str] = field(default_factory=list)
    group: str = ""
    id: str = field(default_factory=new_id)

    _NESTED = {"source_options": MatchOptions, "target_options": MatchOptions}

    def __post_init__(self):
        if self.condition not in USER_CHECK_CONDITIONS:
            logger.warning(f"User check {self.title!r}: unknown condition {self.condition!r}, check disabled")
            self.enabled = False


def _default_quote_pairs() -> list[QuotePair]:
    return [QuotePair("“", "”"), QuotePair("‘", "’")]


def _default_digit_map() -> list[DigitToTextEntry]:
    return [
        DigitToTextEntry(1, ["one", "un", "une"], id="1"),
        DigitToTextEntry(2, ["two", "deux"], id="2"),
        DigitToTextEntry(3, ["three", "trois"], id="3"),
    ]


@dataclass
class QASettings(_SettingsRecord):
    """Complete QA configuration."""

    # Omissions
    check_empty: bool = True
    check_same_as_source: bool = True
    ignore_single_latin: bool = True
    ignore_math_only: bool = True
    check_partial_translation: bool = False
    min_words_partial: int = 4
    ignore_words_with_numbers_hyphens: bool = True
    check_sentence_count: bool = True

    # Letter case
    check_initial_capitalization: bool = True
    check_camel_case: bool = True
    check_mixed_scripts: bool = True
    check_all_upper: bool = False
    check_special_case: bool = False
    special_cases: list[str] = field(default_factory=list)

    # Punctuation and spacing
    check_multiple_spaces: bool = True
    ignore_source_formatting: bool = False
    check_end_punctuation: bool = True
    ignore_quotes_brackets_end: bool = True
    check_double_punctuation: bool = True
    double_punc_as_in_source: bool = True
    check_start_end_spaces: bool = True
    check_brackets: bool = True
    ignore_more_less_than_brackets: bool = True
    ignore_unmatched_brackets_source: bool = True
    punctuation_grid: PunctuationGrid = field(
        default_factory=lambda: PunctuationGrid(no_space_before=".,!?:;")
    )
    special_signs_grid: PunctuationGrid = field(default_factory=PunctuationGrid)

    # Quotes and apostrophes
    check_quotes: bool = True
    check_apostrophes: bool = True
    allowed_quote_pairs: list[QuotePair] = field(default_factory=_default_quote_pairs)
    allowed_apostrophes: list[str] = field(default_factory=lambda: ["’"])
    quote_locale_preset: str = "en-US"

    # Measurements
    check_measurement_units: bool = True
    ignore_custom_units: bool = False
    measurement_units: list[MeasurementUnit] = field(default_factory=list)
    measurement_spacing: str = "space"
    measurement_require_nbsp: bool = True
    temperature_spacing: str = "no-space"
    temperature_require_nbsp: bool = False
    check_temperature_signs: bool = True
    measurement_locale_preset: str = "en-US"

    # Numbers and ranges
    check_numbers_and_ranges: bool = True
    ignore_numbers_regex: str = ""
    digit_to_text_enabled: bool = True
    digit_to_text_map: list[DigitToTextEntry] = field(default_factory=_default_digit_map)
    skip_imperial_in_parens: bool = True
    number_formatting_enabled: bool = True
    allow_leading_zeros: bool = False
    check_number_sign: bool = True
    preferred_number_sign: str = "#"
    number_sign_spacing: str = "no-space"
    check_ranges: bool = True
    preferred_range_symbol: str = "-"
    range_spacing: str = "no-space"
    decimal_separator: str = "dot"
    thousand_separator: str = "comma"
    thousand_separator_1000: str = "require"
    check_numbers_order: bool = True
    check_math_signs: bool = True
    number_locale_preset: str = "en-US"

    # Tags
    check_tags: bool = True
    check_tag_order: bool = True
    check_tag_spacing: bool = True
    check_tag_spacing_inconsistency: bool = True
    check_entities: bool = True

    # Consistency
    check_inconsistency: bool = True
    target_inconsistency_options: ConsistencyRuleOptions = field(default_factory=ConsistencyRuleOptions)
    source_inconsistency_options: ConsistencyRuleOptions = field(
        default_factory=lambda: ConsistencyRuleOptions(enabled=False)
    )

    # Misc
    check_repeated_words: bool = True
    check_urls: bool = True
    check_length_limit: bool = False
    length_limit_percent: int = 20

    # Untranslatables
    check_untranslatables: bool = True
    untranslatables: list[str] = field(default_factory=list)
    untranslatable_scope: str = "both"
    check_untranslatable_count: bool = True
    include_technical: bool = True
    include_mixed_case: bool = True
    include_upper_case: bool = True
    ignore_space_types: bool = True

    # Forbidden words
    check_forbidden_words: bool = False
    ignore_forbidden_if_in_source: bool = True
    forbidden_words: list[str] = field(default_factory=list)

    # Terminology
    check_terminology: bool = True
    check_term_count: bool = True
    skip_untranslatables_in_term: bool = True
    check_term_tags: bool = False
    reverse_term_check: bool = False
    detect_forbidden_terms: bool = True
    active_glossary_ids: list[str] = field(default_factory=list)

    # User-defined checks
    user_defined_checks: list[UserDefinedCheck] = field(default_factory=list)

    _NESTED = {
        "punctuation_grid": PunctuationGrid,
        "special_signs_grid": PunctuationGrid,
        "target_inconsistency_options": ConsistencyRuleOptions,
        "source_inconsistency_options": ConsistencyRuleOptions,
    }
    _NESTED_LISTS = {
        "allowed_quote_pairs": QuotePair,
        "measurement_units": MeasurementUnit,
        "digit_to_text_map": DigitToTextEntry,
        "user_defined_checks": UserDefinedCheck,
    }

    def __post_init__(self):
        """Validate field values after initialization."""
        if self.min_words_partial < 1:
            logger.warning(f"min_words_partial must be >= 1, got {self.min_words_partial}, using 1")
            self.min_words_partial = 1
        if self.length_limit_percent < 0:
            logger.warning(f"length_limit_percent must be >= 0, got {self.length_limit_percent}, using 0")
            self.length_limit_percent = 0
        for key, allowed in (
            ("measurement_spacing", ("space", "no-space")),
            ("temperature_spacing", ("space", "no-space")),
            ("range_spacing", ("space", "no-space")),
            ("number_sign_spacing", ("space", "no-space")),
            ("decimal_separator", ("dot", "comma")),
            ("thousand_separator", ("space", "comma", "dot", "nbsp", "none")),
            ("thousand_separator_1000", ("require", "disallow")),
            ("untranslatable_scope", ("source", "target", "both")),
        ):
            value = getattr(self, key)
            if value not in allowed:
                default = getattr(QASettings, key)
                logger.warning(f"{key} must be one of {allowed}, got {value!r}, using {default!r}")
                setattr(self, key, default)


def _deep_merge(base: dict, overrides: dict) -> dict:
    """Nested dicts merge recursively; lists and scalars replace."""
    merged = copy.deepcopy(base)
    for raw_key, value in overrides.items():
        key = snake_key(raw_key)
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_settings(base: QASettings, overrides: Optional[dict]) -> QASettings:
    """
    Return a new QASettings with ``overrides`` laid over ``base``.

    Args:
        base: Global settings (not modified)
        overrides: Partial mapping, e.g. from get_settings_for_locale()

    Returns:
        New QASettings instance
    """
    if not overrides:
        return copy.deepcopy(base)
    return QASettings.from_dict(_deep_merge(base.to_dict(), overrides))


@dataclass
class QAProfile(_SettingsRecord):
    """A named settings bundle for a client or locale."""
    profile_name: str
    target_locale: str = ""
    client_name: str = ""
    version: str = "1.0"
    last_modified: str = ""
    settings: QASettings = field(default_factory=QASettings)
    id: str = field(default_factory=new_id)

    _NESTED = {"settings": QASettings}

    @classmethod
    def from_dict(cls, data: dict) -> "QAProfile":
        if not isinstance(data.get("settings", {}), dict):
            raise ConfigurationError("Profile settings must be a mapping", config_key="settings")
        if not data.get("profileName") and not data.get("profile_name"):
            raise ConfigurationError("Profile has no name", config_key="profile_name")
        return super().from_dict(data)


class SettingsManager:
    """Manage QA settings with automatic save/load."""

    def __init__(self, settings_path: Optional[Path] = None):
        """
        Initialize settings manager.

        Args:
            settings_path: Path to settings file. Defaults to ./tmqa_settings.json
        """
        self.settings_path = Path(settings_path) if settings_path else Path.cwd() / "tmqa_settings.json"
        self._lock = threading.Lock()
        self.settings = self.load()

    def load(self) -> QASettings:
        """Load settings from file, falling back to defaults."""
        if not self.settings_path.exists():
            return QASettings()

        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                logger.warning(f"Settings file {self.settings_path} is not an object, using defaults")
                return QASettings()
            return QASettings.from_dict(data)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to load settings: {e}, using defaults")
            return QASettings()
        except OSError as e:
            logger.warning(f"Settings file I/O error: {e}, using defaults")
            return QASettings()

    def save(self) -> bool:
        """Save settings to file."""
        try:
            with self._lock:
                data = self.settings.to_dict()
                self.settings_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.settings_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
            return True
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")
            return False
        except (TypeError, ValueError) as e:
            logger.error(f"Settings serialization error: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self.settings, key, default)

    def set(self, key: str, value: Any, auto_save: bool = True) -> bool:
        """Set a single top-level settings value."""
        if key not in QASettings.__dataclass_fields__:
            logger.warning(f"Unknown settings key: {key}")
            return False

        with self._lock:
            self.settings = merge_settings(self.settings, {key: value})

        if auto_save:
            return self.save()
        return True

    def update(self, overrides: dict, auto_save: bool = True) -> bool:
        """Deep-merge a partial mapping into the current settings."""
        with self._lock:
            self.settings = merge_settings(self.settings, overrides)
        if auto_save:
            return self.save()
        return True

    def load_profile(self, path: Path) -> QAProfile:
        """
        Load a QA profile and make its settings current.

        Raises:
            ConfigurationError: unreadable or malformed profile
        """
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read profile: {e}", config_key="profile", path=str(path))
        if not isinstance(data, dict):
            raise ConfigurationError("Profile must be a JSON object", config_key="profile", path=str(path))

        profile = QAProfile.from_dict(data)
        with self._lock:
            self.settings = profile.settings
        logger.info(f"Loaded QA profile '{profile.profile_name}' ({profile.target_locale or 'any locale'})")
        return profile

    def reset_to_defaults(self) -> bool:
        with self._lock:
            self.settings = QASettings()
        return self.save()


# Global settings instance with thread safety
_settings_manager: Optional[SettingsManager] = None
_settings_lock = threading.Lock()


def get_settings_manager() -> SettingsManager:
    """Get global settings manager instance (thread-safe singleton)."""
    global _settings_manager
    if _settings_manager is None:
        with _settings_lock:
            # Double-check locking pattern
            if _settings_manager is None:
                _settings_manager = SettingsManager()
    return _settings_manager
