"""
tmqa - 翻译记忆库质量保证工具集

对 JSONL 格式的翻译单元语料运行 QA 规则、一致性分析、
过滤、批量替换和清理。命令行入口见 tmqa.cli。
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
