"""
Hub 外部协作者

- 表达式求值 (ExpressionEvaluator, ArithmeticEvaluator)
- 快照持久化 (SnapshotStore, JsonSnapshotStore)
"""

from .evaluator import ExpressionEvaluator, ArithmeticEvaluator
from .snapshot import SnapshotStore, JsonSnapshotStore

__all__ = [
    "ExpressionEvaluator",
    "ArithmeticEvaluator",
    "SnapshotStore",
    "JsonSnapshotStore",
]
