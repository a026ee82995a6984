"""User-defined pattern checks."""

from __future__ import annotations

import logging
import re
from typing import Optional

from ...utils.common import SEVERITY_WARNING, lang_match
from ...utils.models import QAIssue, TranslationUnit
from ...utils.settings import MatchOptions, QASettings, UserDefinedCheck
from ...utils.tags import compile_pattern
from .issues import make_issue

logger = logging.getLogger(__name__)

DEFAULT_CODE = 'User check'


def compile_check_pattern(pattern: str, options: MatchOptions) -> Optional[re.Pattern]:
    """Whole-word applies to regex patterns as well as literals."""
    if not pattern:
        return None
    source = pattern if options.is_regex else re.escape(pattern)
    if options.whole_word:
        source = rf"\b(?:{source})\b"
    return compile_pattern(source, is_regex=True, case_sensitive=options.case_sensitive)


def is_violation(condition: str, source_found: bool, target_found: bool) -> bool:
    if condition in ("both_found", "both_regex_match"):
        return source_found and target_found
    if condition == "source_found_target_missing":
        return source_found and not target_found
    if condition == "target_found_source_missing":
        return target_found and not source_found
    return False


def applies_to(check: UserDefinedCheck, target_lang: str) -> bool:
    if not check.languages:
        return True
    return any(lang_match(lang, target_lang) for lang in check.languages)


def run_user_check(unit: TranslationUnit, check: UserDefinedCheck) -> Optional[QAIssue]:
    source_re = compile_check_pattern(check.source_pattern, check.source_options)
    target_re = compile_check_pattern(check.target_pattern, check.target_options)
    # 非空但无法编译的模式：整条规则跳过
    if (check.source_pattern and source_re is None) or (check.target_pattern and target_re is None):
        logger.warning(f"Skipping user check {check.title or check.id!r}: invalid pattern")
        return None

    source_found = bool(source_re and source_re.search(unit.source.text))
    target_found = bool(target_re and target_re.search(unit.target.text))
    if not is_violation(check.condition, source_found, target_found):
        return None
    return make_issue(
        check.title or DEFAULT_CODE,
        f"User Check: {check.title or 'Untitled Check'}",
        SEVERITY_WARNING, check.id,
    )


def check_user_defined(unit: TranslationUnit, settings: QASettings, target_lang: str = "") -> list[QAIssue]:
    issues = []
    for check in settings.user_defined_checks:
        if not check.enabled or not applies_to(check, target_lang or unit.target_lang):
            continue
        issue = run_user_check(unit, check)
        if issue:
            issues.append(issue)
    return issues
