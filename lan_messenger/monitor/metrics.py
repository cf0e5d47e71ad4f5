"""Hub 指标收集器"""

import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from rich.table import Table


@dataclass
class HubMetrics:
    """Hub 运行指标

    只在事件循环线程中更新，不需要额外加锁。
    """

    started_at: float = field(default_factory=time.time)

    sessions_accepted: int = 0
    sessions_joined: int = 0
    sessions_left: int = 0
    sessions_rejected: int = 0

    lines_received: int = 0
    messages_broadcast: int = 0
    delivery_failures: int = 0
    replies_dropped: int = 0

    commands: Counter = field(default_factory=Counter)

    def record_accepted(self) -> None:
        self.sessions_accepted += 1

    def record_joined(self) -> None:
        self.sessions_joined += 1

    def record_left(self) -> None:
        self.sessions_left += 1

    def record_rejected(self) -> None:
        self.sessions_rejected += 1

    def record_line(self) -> None:
        self.lines_received += 1

    def record_broadcast(self, delivered: int, failed: int = 0) -> None:
        self.messages_broadcast += delivered
        self.delivery_failures += failed

    def record_reply_dropped(self) -> None:
        self.replies_dropped += 1

    def record_command(self, kind: str) -> None:
        self.commands[kind] += 1

    @property
    def uptime(self) -> float:
        return time.time() - self.started_at

    def snapshot(self) -> Dict[str, Any]:
        """导出当前指标"""
        return {
            "uptime": round(self.uptime, 3),
            "sessions_accepted": self.sessions_accepted,
            "sessions_joined": self.sessions_joined,
            "sessions_left": self.sessions_left,
            "sessions_rejected": self.sessions_rejected,
            "lines_received": self.lines_received,
            "messages_broadcast": self.messages_broadcast,
            "delivery_failures": self.delivery_failures,
            "replies_dropped": self.replies_dropped,
            "commands": dict(self.commands),
        }


def render_stats_table(
    metrics: HubMetrics, active_sessions: Optional[int] = None
) -> Table:
    """把指标渲染为 rich 表格"""
    table = Table(title="Hub 状态", show_header=True, header_style="bold cyan")
    table.add_column("指标", style="bold")
    table.add_column("值", justify="right")

    data = metrics.snapshot()
    if active_sessions is not None:
        table.add_row("active_sessions", str(active_sessions))
    for key, value in data.items():
        if key == "commands":
            continue
        table.add_row(key, str(value))
    for kind, count in sorted(data["commands"].items()):
        table.add_row(f"command:{kind}", str(count))

    return table
