"""
核心引擎

- qa: 规则族与 QAEngine
- consistency / normalizer: 重复与不一致分析
- filters: 组合查询
- batch / cleanup: 批量替换与清理
- history: 快照撤销 / 重做
- service: 语料服务，串联以上所有操作
"""

from .normalizer import normalize_for_consistency
from .consistency import ConsistencyReport, analyze_consistency, validate_consistency, language_pairs
from .qa import QAEngine, run_qa, carry_ignore_state, find_potential_untranslatables
from .filters import FilterCriteria, select_filtered
from .batch import BatchTransformer, BatchResult, apply_batch_rule, run_batch_transform
from .cleanup import run_cleanup
from .history import HistoryManager
from .service import CorpusService, MutationResult

__all__ = [
    "normalize_for_consistency",
    "ConsistencyReport",
    "analyze_consistency",
    "validate_consistency",
    "language_pairs",
    "QAEngine",
    "run_qa",
    "carry_ignore_state",
    "find_potential_untranslatables",
    "FilterCriteria",
    "select_filtered",
    "BatchTransformer",
    "BatchResult",
    "apply_batch_rule",
    "run_batch_transform",
    "run_cleanup",
    "HistoryManager",
    "CorpusService",
    "MutationResult",
]
