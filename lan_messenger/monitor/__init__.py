"""
LAN Messenger 监控模块

运行指标收集与 rich 表格展示
"""

from .metrics import HubMetrics, render_stats_table

__all__ = [
    "HubMetrics",
    "render_stats_table",
]
