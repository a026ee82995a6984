#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
tmqa - 翻译记忆库 QA 命令行入口

所有命令都读取 JSONL 语料（每行一个翻译单元）：
- qa: 运行全部 QA 规则并生成报告
- consistency: 重复与不一致统计
- filter: 按条件筛选单元
- batch: 批量查找替换
- cleanup: 语料清理
- untranslatables: 查找可能的不可翻译词
- concordance: 语料检索

用法:
    tmqa <command> corpus.jsonl [options]
    tmqa <command> --help
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .core.consistency import analyze_consistency, language_pairs
from .core.filters import BUILT_IN_FILTERS, SEARCH_MODES, FilterCriteria, select_filtered
from .core.qa import QAEngine
from .core.service import CorpusService
from .utils.common import STATUSES
from .utils.io import load_glossary, load_units, read_json_file, save_units
from .utils.logger import TmQaError, setup_logger
from .utils.models import BatchConfig, BatchRule, CleanupConfig, CustomFilter, MetadataUpdates
from .utils.settings import QASettings, SettingsManager
from .utils.ui import Message, console, issue_table, show_cleanup_report, summary_table

logger = logging.getLogger(__name__)


def parse_pair(value: Optional[str]) -> Optional[tuple[str, str]]:
    """'en-US:fr-FR' -> ('en-US', 'fr-FR')"""
    if not value:
        return None
    if ':' not in value:
        raise argparse.ArgumentTypeError(f"语言对格式应为 SRC:TGT，得到 {value!r}")
    src, tgt = value.split(':', 1)
    return src.strip(), tgt.strip()


def load_settings(args: argparse.Namespace) -> QASettings:
    """--settings 提供全局设置，--profile 覆盖为某个 QA 配置"""
    settings_path = getattr(args, 'settings', None)
    profile_path = getattr(args, 'profile', None)
    if not settings_path and not profile_path:
        return QASettings()
    manager = SettingsManager(Path(settings_path) if settings_path else None)
    if profile_path:
        manager.load_profile(Path(profile_path))
    return manager.settings


def _output_path(args: argparse.Namespace) -> Optional[Path]:
    if args.output:
        return Path(args.output)
    if getattr(args, 'in_place', False):
        return Path(args.corpus)
    return None


def _write_units(args: argparse.Namespace, units) -> None:
    out = _output_path(args)
    if out is None:
        return
    count = save_units(out, units)
    Message.success(f"已写入 {count} 个单元到 {out}")


# ========================================
# 命令
# ========================================

def cmd_qa(args: argparse.Namespace) -> int:
    units = load_units(args.corpus)
    settings = load_settings(args)
    glossary = load_glossary(args.glossary) if args.glossary else []

    config = None
    if args.checks:
        wanted = {c.strip() for c in args.checks.split(',') if c.strip()}
        unknown = wanted - set(QAEngine.DEFAULT_CHECKS)
        if unknown:
            Message.error(f"未知规则族: {', '.join(sorted(unknown))}")
            return 2
        config = {
            name: {**opts, 'enabled': name in wanted}
            for name, opts in QAEngine.DEFAULT_CHECKS.items()
        }

    engine = QAEngine(config, apply_locale_defaults=not args.no_locale_defaults)
    with args.qa_logger.timer("QA"), _progress(args, "QA") as update:
        audited = engine.run_project(
            units, settings, glossary,
            preserve_ignored=args.preserve_ignored,
            on_progress=update,
        )

    console.print(issue_table(audited, include_ignored=args.show_ignored, limit=args.limit))
    summary = engine.get_summary()
    console.print(summary_table(summary))

    if args.report:
        engine.generate_report(args.format, args.report)
        Message.info(f"报告已保存: {args.report}")
    _write_units(args, audited)

    if args.fail_on_error and summary['error']:
        return 1
    return 0


def cmd_consistency(args: argparse.Namespace) -> int:
    units = load_units(args.corpus)
    settings = load_settings(args)
    pairs = [args.pair] if args.pair else language_pairs(units)
    if not pairs:
        Message.warning("语料为空")
        return 0

    for pair in pairs:
        report = analyze_consistency(units, settings, pair)
        summary = {'language_pair': f"{pair[0]} -> {pair[1]}", **report.summary()}
        console.print(summary_table(summary))
    return 0


def build_criteria(args: argparse.Namespace) -> FilterCriteria:
    custom = None
    if args.custom_filter:
        data = read_json_file(args.custom_filter)
        custom = CustomFilter.from_dict(data)
    return FilterCriteria(
        language_pair=args.pair,
        file_id=args.file_id,
        status=args.status,
        source_query=args.source or "",
        target_query=args.target or "",
        search_mode=args.mode,
        ignore_case=not args.case_sensitive,
        ignore_tags=not args.keep_tags,
        built_in_filter=args.filter,
        custom_filter=custom,
    )


def cmd_filter(args: argparse.Namespace) -> int:
    units = load_units(args.corpus)
    settings = load_settings(args)
    criteria = build_criteria(args)
    selected = select_filtered(units, criteria, settings)

    Message.info(f"匹配 {len(selected)} / {len(units)} 个单元")
    if args.ids_only:
        for unit in selected:
            console.print(unit.id, markup=False, highlight=False)
    _write_units(args, selected)
    return 0


def build_batch_config(args: argparse.Namespace) -> BatchConfig:
    if args.config:
        return BatchConfig.from_dict(read_json_file(args.config))
    if not args.find:
        raise TmQaError("需要 --config 或 --find")
    rule = BatchRule(
        find=args.find,
        replace=args.replace,
        is_regex=args.regex,
        case_sensitive=args.case_sensitive,
        whole_word=args.whole_word,
        diacritic_sensitive=not args.ignore_diacritics,
    )
    return BatchConfig(
        scope=args.scope,
        rules=[rule],
        metadata_updates=MetadataUpdates(
            update_user=bool(args.user),
            user_name=args.user or "",
            update_date=args.update_date,
        ),
    )


def cmd_batch(args: argparse.Namespace) -> int:
    units = load_units(args.corpus)
    config = build_batch_config(args)
    service = CorpusService(units, load_settings(args))

    with _progress(args, "Batch") as update:
        _, batch = service.run_batch_transform(config, on_progress=update)

    Message.success(f"修改了 {batch.modified} 个单元")
    _write_units(args, service.units)
    return 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    units = load_units(args.corpus)
    config = CleanupConfig.from_dict(read_json_file(args.config)) if args.config else CleanupConfig()
    service = CorpusService(units, load_settings(args))

    with _progress(args, "Cleanup") as update:
        _, report = service.run_cleanup(config, on_progress=update)

    show_cleanup_report(report)
    _write_units(args, service.units)
    return 0


def cmd_untranslatables(args: argparse.Namespace) -> int:
    units = load_units(args.corpus)
    service = CorpusService(units, load_settings(args))
    found = service.find_potential_untranslatables(args.limit)
    if not found:
        Message.info("没有发现候选词")
        return 0
    for term in found:
        console.print(term, markup=False, highlight=False)
    Message.info(f"共 {len(found)} 个候选词")
    return 0


def cmd_concordance(args: argparse.Namespace) -> int:
    units = load_units(args.corpus)
    service = CorpusService(units, load_settings(args))
    if args.pair:
        service.set_active_language_pair(args.pair)
    hits = service.concordance_search(args.query, scope=args.scope, fuzzy=args.fuzzy, limit=args.limit)
    if not hits:
        Message.info("没有匹配结果")
        return 0
    for hit in hits:
        console.print(f"[{hit.score:5.1f}] {hit.source}  =>  {hit.target}", markup=False, highlight=False)
    return 0


def _progress(args: argparse.Namespace, description: str):
    return args.qa_logger.progress(100, description, disable=args.quiet)


# ========================================
# 参数
# ========================================

def _add_common(p: argparse.ArgumentParser, writes: bool = True) -> None:
    p.add_argument("corpus", help="JSONL 语料文件")
    p.add_argument("--settings", help="QA 设置 JSON 文件")
    p.add_argument("--profile", help="QA 配置文件（覆盖 --settings）")
    if writes:
        p.add_argument("-o", "--output", help="结果语料输出路径")
        p.add_argument("--in-place", action="store_true", help="直接覆盖输入语料")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tmqa",
        description="翻译记忆库质量保证工具",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
可用命令:
  qa               运行 QA 规则并生成报告
  consistency      重复与不一致统计
  filter           按条件筛选单元
  batch            批量查找替换
  cleanup          语料清理
  untranslatables  查找可能的不可翻译词
  concordance      语料检索

示例:
  tmqa qa corpus.jsonl --glossary terms.jsonl --report qa.html
  tmqa filter corpus.jsonl --filter inconsistency -o subset.jsonl
  tmqa batch corpus.jsonl --find colour --replace color --whole-word --in-place
        """
    )
    parser.add_argument("--version", action="version", version=f"tmqa {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    parser.add_argument("-q", "--quiet", action="store_true", help="不显示进度条")
    parser.add_argument("--log-file", help="日志文件路径")

    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("qa", help="运行 QA 规则")
    _add_common(p)
    p.add_argument("--glossary", help="术语表（.jsonl 或 .json）")
    p.add_argument("--report", help="报告输出路径")
    p.add_argument("--format", choices=("html", "json", "tsv"), default="html", help="报告格式（默认 html）")
    p.add_argument("--checks", help="只运行这些规则族（逗号分隔）")
    p.add_argument("--preserve-ignored", action="store_true", help="沿用上一轮的忽略状态")
    p.add_argument("--no-locale-defaults", action="store_true", help="不合并目标语言的区域默认设置")
    p.add_argument("--show-ignored", action="store_true", help="表格中也显示已忽略的问题")
    p.add_argument("--limit", type=int, default=200, help="表格最多显示的问题数（默认 200）")
    p.add_argument("--fail-on-error", action="store_true", help="存在 error 级问题时非零退出")
    p.set_defaults(func=cmd_qa)

    p = sub.add_parser("consistency", help="一致性统计")
    _add_common(p, writes=False)
    p.add_argument("--pair", type=parse_pair, help="语言对 SRC:TGT（默认全部）")
    p.set_defaults(func=cmd_consistency)

    p = sub.add_parser("filter", help="筛选单元")
    _add_common(p)
    p.add_argument("--pair", type=parse_pair, help="语言对 SRC:TGT")
    p.add_argument("--file-id", help="只保留该文件的单元")
    p.add_argument("--status", choices=("all",) + STATUSES, default="all")
    p.add_argument("--source", help="原文查询")
    p.add_argument("--target", help="译文查询")
    p.add_argument("--mode", choices=SEARCH_MODES, default="normal", help="查询模式（默认 normal）")
    p.add_argument("--case-sensitive", action="store_true")
    p.add_argument("--keep-tags", action="store_true", help="查询时不忽略标签")
    p.add_argument("--filter", choices=BUILT_IN_FILTERS, default="all", help="内置过滤器")
    p.add_argument("--custom-filter", help="自定义过滤器 JSON 文件")
    p.add_argument("--ids-only", action="store_true", help="打印匹配单元的 id")
    p.set_defaults(func=cmd_filter)

    p = sub.add_parser("batch", help="批量查找替换")
    _add_common(p)
    p.add_argument("--config", help="批处理配置 JSON（提供时忽略下面的单规则参数）")
    p.add_argument("--find", help="查找内容")
    p.add_argument("--replace", default="", help="替换内容（正则模式支持 $1 / $&）")
    p.add_argument("--regex", action="store_true")
    p.add_argument("--case-sensitive", action="store_true")
    p.add_argument("--whole-word", action="store_true")
    p.add_argument("--ignore-diacritics", action="store_true")
    p.add_argument("--scope", choices=("source", "target", "both"), default="target")
    p.add_argument("--user", help="记录为修改人")
    p.add_argument("--update-date", action="store_true", help="更新修改时间")
    p.set_defaults(func=cmd_batch)

    p = sub.add_parser("cleanup", help="语料清理")
    _add_common(p)
    p.add_argument("--config", help="清理选项 JSON")
    p.set_defaults(func=cmd_cleanup)

    p = sub.add_parser("untranslatables", help="查找可能的不可翻译词")
    _add_common(p, writes=False)
    p.add_argument("--limit", type=int, default=1000, help="最多扫描的单元数（默认 1000）")
    p.set_defaults(func=cmd_untranslatables)

    p = sub.add_parser("concordance", help="语料检索")
    _add_common(p, writes=False)
    p.add_argument("query")
    p.add_argument("--pair", type=parse_pair, help="语言对 SRC:TGT")
    p.add_argument("--scope", choices=("source", "target", "both"), default="both")
    p.add_argument("--fuzzy", action="store_true", help="按相似度检索原文")
    p.add_argument("--limit", type=int, default=100)
    p.set_defaults(func=cmd_concordance)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """主入口函数"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    args.qa_logger = setup_logger(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=Path(args.log_file) if args.log_file else None,
    )

    try:
        return args.func(args)
    except TmQaError as e:
        Message.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
