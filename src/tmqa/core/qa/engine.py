"""
QA 规则引擎

- run_qa(): 对单个单元运行全部规则族
- QAEngine: 按语言对运行整个语料，合并区域默认设置，
  追加一致性问题，按严重级别汇总并生成报告（html / json / tsv）
"""

from __future__ import annotations

import html
import json
import logging
from pathlib import Path
from typing import Callable, Collection, Iterable, Optional

from ...utils.common import SEVERITIES
from ...utils.locale_registry import get_settings_for_locale
from ...utils.models import GlossaryTerm, QAIssue, TranslationUnit
from ...utils.settings import QASettings, merge_settings
from ..consistency import validate_consistency
from .casing import check_letter_case
from .measurements import check_measurements
from .numbers import check_numbers
from .omissions import check_misc, check_omissions
from .punctuation import check_punctuation
from .quotes import check_quotes
from .tags import check_tags
from .terminology import check_terminology
from .untranslatables import check_forbidden_words, check_untranslatables
from .user_checks import check_user_defined

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


def run_qa(
    unit: TranslationUnit,
    settings: QASettings,
    glossary: Optional[list[GlossaryTerm]] = None,
    target_lang: Optional[str] = None,
    families: Optional[Collection[str]] = None,
) -> list[QAIssue]:
    """
    对单个单元运行 QA 规则

    Args:
        unit: 翻译单元（不会被修改）
        settings: 已合并区域默认值的有效设置
        glossary: 当前激活的术语
        target_lang: 目标语言，默认取单元自身的 target_lang
        families: 只运行这些规则族（None 表示全部）

    Returns:
        问题列表；锁定单元返回空列表
    """
    if unit.is_locked:
        return []

    def enabled(family: str) -> bool:
        return families is None or family in families

    source = unit.source.text
    target = unit.target.text
    issues: list[QAIssue] = []

    if enabled('omissions'):
        issues.extend(check_omissions(unit, settings))

    # 空译文只继续做结构性检查
    if not target.strip() and not settings.check_end_punctuation and not settings.check_tags:
        return issues

    if enabled('casing'):
        issues.extend(check_letter_case(source, target, settings))
    if enabled('punctuation'):
        issues.extend(check_punctuation(source, target, settings))
    if enabled('quotes'):
        issues.extend(check_quotes(source, target, settings))
    if enabled('tags'):
        issues.extend(check_tags(unit, settings))
    if enabled('measurements'):
        issues.extend(check_measurements(source, target, settings))
    if enabled('numbers'):
        issues.extend(check_numbers(source, target, settings))
    if enabled('misc'):
        issues.extend(check_misc(source, target, settings))
    if enabled('terminology'):
        issues.extend(check_terminology(source, target, settings, glossary))
    if enabled('untranslatables'):
        issues.extend(check_untranslatables(source, target, settings))
    if enabled('forbidden_words'):
        issues.extend(check_forbidden_words(source, target, settings))
    if enabled('user_checks'):
        issues.extend(check_user_defined(unit, settings, target_lang or unit.target_lang))

    return issues


def carry_ignore_state(previous: list[QAIssue], fresh: list[QAIssue]) -> list[QAIssue]:
    """
    把上一轮已忽略问题的 id 和忽略状态带到本轮相同的问题上

    相同的判断依据：code、rule_id、message 和高亮位置都一致。
    """
    ignored = {}
    for issue in previous:
        if issue.is_ignored:
            ignored.setdefault(_identity(issue), issue)
    for issue in fresh:
        old = ignored.pop(_identity(issue), None)
        if old is not None:
            issue.id = old.id
            issue.is_ignored = True
            issue.ignored_by = old.ignored_by
    return fresh


def _identity(issue: QAIssue) -> tuple:
    return (
        issue.code,
        issue.rule_id,
        issue.message,
        tuple((h.start, h.end) for h in issue.source_highlights),
        tuple((h.start, h.end) for h in issue.target_highlights),
    )


class QAEngine:
    """按语言对运行 QA 并汇总问题"""

    # 规则族配置
    DEFAULT_CHECKS = {
        'omissions': {'enabled': True, 'label': 'Omissions'},
        'casing': {'enabled': True, 'label': 'Letter case'},
        'punctuation': {'enabled': True, 'label': 'Punctuation and spacing'},
        'quotes': {'enabled': True, 'label': 'Quotes and apostrophes'},
        'tags': {'enabled': True, 'label': 'Tags and entities'},
        'measurements': {'enabled': True, 'label': 'Measurement units'},
        'numbers': {'enabled': True, 'label': 'Numbers and ranges'},
        'misc': {'enabled': True, 'label': 'Repeated words, URLs, length'},
        'terminology': {'enabled': True, 'label': 'Terminology'},
        'untranslatables': {'enabled': True, 'label': 'Untranslatables'},
        'forbidden_words': {'enabled': True, 'label': 'Forbidden words'},
        'user_checks': {'enabled': True, 'label': 'User-defined checks'},
        'consistency': {'enabled': True, 'label': 'Consistency'},
    }

    def __init__(self, config: Optional[dict] = None, apply_locale_defaults: bool = True):
        """
        初始化引擎

        Args:
            config: 规则族配置（不提供则使用默认配置）
            apply_locale_defaults: 是否为每个目标语言合并区域默认设置
        """
        self.config = config or self.DEFAULT_CHECKS
        self.apply_locale_defaults = apply_locale_defaults
        self.issues: dict[str, list[dict]] = {level: [] for level in SEVERITIES}
        self.units_checked = 0

    def reset(self):
        """重置问题列表"""
        self.issues = {level: [] for level in SEVERITIES}
        self.units_checked = 0

    def _should_check(self, family: str) -> bool:
        return self.config.get(family, {}).get('enabled', False)

    @property
    def families(self) -> set[str]:
        return {name for name in self.config if self._should_check(name)}

    def effective_settings(self, settings: QASettings, target_lang: str) -> QASettings:
        """全局设置 + 目标语言的区域默认值"""
        if not self.apply_locale_defaults:
            return settings
        return merge_settings(settings, get_settings_for_locale(target_lang))

    def run_project(
        self,
        units: Iterable[TranslationUnit],
        settings: QASettings,
        glossary: Optional[list[GlossaryTerm]] = None,
        preserve_ignored: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> list[TranslationUnit]:
        """
        对整个语料运行 QA

        每个语言对只计算一次有效设置，先跑单元规则，再跑该语言对的一致性检查。

        Args:
            units: 全部单元（不会被修改）
            settings: 全局设置
            glossary: 当前激活的术语
            preserve_ignored: 为 True 时沿用上一轮被忽略问题的忽略状态
            on_progress: 每个语言对完成后回调百分比

        Returns:
            新的单元列表，顺序与输入一致
        """
        self.reset()
        units = list(units)
        audited: dict[str, TranslationUnit] = {}
        families = self.families
        groups: dict[tuple[str, str], list[TranslationUnit]] = {}
        for unit in units:
            groups.setdefault((unit.source_lang.lower(), unit.target_lang.lower()), []).append(unit)
        pairs = list(groups.values())

        for done, pair_units in enumerate(pairs, start=1):
            pair = pair_units[0].language_pair
            effective = self.effective_settings(settings, pair[1])
            logger.debug(f"Running QA for {pair[0]} -> {pair[1]} ({len(pair_units)} units)")

            checked = []
            for unit in pair_units:
                updated = unit.clone()
                updated.qa_issues = run_qa(updated, effective, glossary, pair[1], families)
                checked.append(updated)

            if 'consistency' in families:
                checked = validate_consistency(checked, effective, pair)
            if preserve_ignored:
                for previous, updated in zip(pair_units, checked):
                    updated.qa_issues = carry_ignore_state(previous.qa_issues, updated.qa_issues)
            for unit in checked:
                audited[unit.id] = unit

            if on_progress:
                on_progress(int(done * 100 / len(pairs)))

        result = [audited.get(unit.id, unit) for unit in units]
        self.collect(result)
        logger.info(f"QA finished: {self.units_checked} units, {self.get_summary()['total']} issues")
        return result

    def collect(self, units: Iterable[TranslationUnit]) -> None:
        """按严重级别收集（未忽略的）问题"""
        self.reset()
        for unit in units:
            self.units_checked += 1
            for issue in unit.qa_issues:
                if issue.is_ignored:
                    continue
                self.issues[issue.severity].append({
                    'unit_id': unit.id,
                    'order': unit.order,
                    'code': issue.code,
                    'message': issue.message,
                    'rule_id': issue.rule_id,
                    'group_id': issue.group_id,
                })

    def generate_report(self, format: str = 'html', output_path: Optional[str] = None) -> str:
        """
        生成质量报告

        Args:
            format: 报告格式（'html', 'json', 'tsv'）
            output_path: 输出路径（如果提供，会写入文件）

        Returns:
            报告内容
        """
        if format == 'html':
            report = self._generate_html_report()
        elif format == 'json':
            report = json.dumps(
                {'summary': self.get_summary(), 'issues': self.issues},
                indent=2, ensure_ascii=False,
            )
        elif format == 'tsv':
            report = self._generate_tsv_report()
        else:
            raise ValueError(f"Unsupported format: {format}")

        if output_path:
            Path(output_path).write_text(report, encoding='utf-8')
            logger.info(f"Report saved to {output_path}")

        return report

    def _generate_html_report(self) -> str:
        """生成 HTML 质量报告"""
        summary = self.get_summary()
        rows = []
        for level in SEVERITIES:
            for issue in self.issues[level]:
                rows.append(
                    f"<tr>"
                    f"<td class='{level}'>{level.upper()}</td>"
                    f"<td>{issue['order']}</td>"
                    f"<td>{html.escape(issue['code'])}</td>"
                    f"<td>{html.escape(issue['message'])}</td>"
                    f"</tr>"
                )

        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>TM QA Report</title>
    <style>
        body {{ font-family: Arial, sans-serif; margin: 20px; }}
        .error {{ color: #d32f2f; font-weight: bold; }}
        .warning {{ color: #f57c00; }}
        .info {{ color: #0288d1; }}
        table {{ border-collapse: collapse; width: 100%; margin-top: 20px; }}
        th, td {{ border: 1px solid #ddd; padding: 8px; text-align: left; }}
        th {{ background-color: #4CAF50; color: white; }}
        .stats {{ display: flex; gap: 20px; margin-bottom: 20px; }}
        .stat-card {{ border: 1px solid #ddd; padding: 15px; border-radius: 5px; flex: 1; }}
        .stat-card p {{ font-size: 32px; font-weight: bold; margin: 10px 0; }}
    </style>
</head>
<body>
    <h1>TM QA Report</h1>
    <p>{summary['units']} units checked</p>
    <div class="stats">
        <div class="stat-card"><h3 class="error">Errors</h3><p>{summary['error']}</p></div>
        <div class="stat-card"><h3 class="warning">Warnings</h3><p>{summary['warning']}</p></div>
        <div class="stat-card"><h3 class="info">Info</h3><p>{summary['info']}</p></div>
    </div>
    <h2>Issues</h2>
    <table>
        <tr><th>Level</th><th>Unit</th><th>Issue</th><th>Message</th></tr>
        {''.join(rows)}
    </table>
</body>
</html>"""

    def _generate_tsv_report(self) -> str:
        """生成 TSV 质量报告"""
        lines = ['Level\tUnit\tOrder\tCode\tMessage']
        for level in SEVERITIES:
            for issue in self.issues[level]:
                lines.append(
                    f"{level}\t{issue['unit_id']}\t{issue['order']}\t{issue['code']}\t{issue['message']}"
                )
        return '\n'.join(lines)

    def get_summary(self) -> dict:
        """
        获取问题摘要

        Returns:
            {'units': 单元数, 'error': 数量, 'warning': 数量, 'info': 数量,
             'total': 总数, 'by_code': {code: 数量}}
        """
        by_code: dict[str, int] = {}
        for level in SEVERITIES:
            for issue in self.issues[level]:
                by_code[issue['code']] = by_code.get(issue['code'], 0) + 1
        return {
            'units': self.units_checked,
            'error': len(self.issues['error']),
            'warning': len(self.issues['warning']),
            'info': len(self.issues['info']),
            'total': sum(len(v) for v in self.issues.values()),
            'by_code': dict(sorted(by_code.items(), key=lambda kv: -kv[1])),
        }
