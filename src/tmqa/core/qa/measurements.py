"""
计量单位与温度符号检查

- 原文中的 "数值 + 单位" 必须以相同数值和单位出现在译文中
- 译文中数值与单位之间的空格按 measurement_spacing / measurement_require_nbsp 校验
- 温度 / 度数符号同理，使用 temperature_* 设置
"""

from __future__ import annotations

import re
from typing import Optional

from ...utils.common import SEVERITY_ERROR, SEVERITY_WARNING
from ...utils.models import Highlight, QAIssue
from ...utils.settings import QASettings
from ...utils.tags import strip_tags
from .issues import make_issue, span

VALUE = r"(\d+(?:[.,\s\u00a0]\d+)*)"
SEPARATOR = r"([^\d\w\ufffc])?"
TEMPERATURE_RE = re.compile(VALUE + SEPARATOR + r"(°[CF]?)")

_VALUE_SEPARATORS_RE = re.compile(r"[\s\u00a0,.]")


def _value_key(raw: str) -> str:
    return _VALUE_SEPARATORS_RE.sub("", raw)


def build_unit_regex(settings: QASettings) -> Optional[re.Pattern]:
    """由设置中的目标单位构建匹配正则；没有单位时返回 None"""
    units = {
        u.target_unit for u in settings.measurement_units
        if u.target_unit and not (settings.ignore_custom_units and u.custom)
    }
    if not units:
        return None
    # 长的优先，避免 "km" 被 "m" 截断
    alternatives = "|".join(re.escape(u) for u in sorted(units, key=len, reverse=True))
    return re.compile(VALUE + SEPARATOR + rf"({alternatives})(?!\w)")


def _missing_in_target(source: str, s_matches, t_matches) -> list[Highlight]:
    found = [(_value_key(m.group(1)), m.group(3)) for m in t_matches]
    missing = []
    for m in s_matches:
        key = (_value_key(m.group(1)), m.group(3))
        if key in found:
            found.remove(key)
        else:
            missing.append(span(m.start(), len(m.group()), source))
    return missing


def _spacing_issue(
    target: str,
    t_matches,
    spacing: str,
    require_nbsp: bool,
    codes: dict,
    noun: str,
    rule_id: str,
) -> Optional[QAIssue]:
    """codes: missing / nbsp / forbidden -> issue code"""
    highlights = []
    code = message = ""
    for m in t_matches:
        separator = m.group(2) or ""
        start = m.start() + len(m.group(1))
        length = len(separator) or 1
        if spacing == "space":
            if not separator or not separator.isspace():
                code, message = codes["missing"], f"Missing space before {noun}."
                length = 1
            elif require_nbsp and separator not in ("\u00a0", "\u202f"):
                code, message = codes["nbsp"], f"Non-breaking space (NBSP) required before {noun}."
            else:
                continue
        elif separator and separator.isspace():
            code, message = codes["forbidden"], f"Space not allowed before {noun}."
        else:
            continue
        highlights.append(span(start, length, target))

    if not highlights:
        return None
    return make_issue(code, message, SEVERITY_WARNING, rule_id, target_highlights=highlights)


def check_measurements(source: str, target: str, settings: QASettings) -> list[QAIssue]:
    if not settings.check_measurement_units:
        return []

    issues = []
    s_stripped = strip_tags(source)
    t_stripped = strip_tags(target)

    unit_re = build_unit_regex(settings)
    if unit_re is not None:
        s_matches = list(unit_re.finditer(s_stripped))
        t_matches = list(unit_re.finditer(t_stripped))

        missing = _missing_in_target(source, s_matches, t_matches)
        if missing:
            issues.append(make_issue(
                'Inconsistent measurement units',
                'Measurement units found in source are missing or different in target.',
                SEVERITY_ERROR, 'checkMeasurementUnits',
                source_highlights=missing,
            ))

        issue = _spacing_issue(
            target, t_matches, settings.measurement_spacing, settings.measurement_require_nbsp,
            {
                "missing": 'Invalid spacing before measurement unit',
                "nbsp": 'Non-breaking space required before measurement unit',
                "forbidden": 'Forbidden spacing before measurement unit',
            },
            "units", 'checkMeasurementUnits',
        )
        if issue:
            issues.append(issue)

    if settings.check_temperature_signs:
        s_temps = list(TEMPERATURE_RE.finditer(s_stripped))
        t_temps = list(TEMPERATURE_RE.finditer(t_stripped))

        missing = _missing_in_target(source, s_temps, t_temps)
        if missing:
            issues.append(make_issue(
                'Temperature sign missing',
                'Temperature/Degree signs missing in target.',
                SEVERITY_WARNING, 'checkTemperatureSigns',
                source_highlights=missing,
            ))

        issue = _spacing_issue(
            target, t_temps, settings.temperature_spacing, settings.temperature_require_nbsp,
            {
                "missing": 'Invalid spacing before temperature sign',
                "nbsp": 'Non-breaking space required before temperature sign',
                "forbidden": 'Forbidden spacing before temperature sign',
            },
            "degree signs", 'checkTemperatureSigns',
        )
        if issue:
            issues.append(issue)

    return issues
