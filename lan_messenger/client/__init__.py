"""
LAN Messenger 客户端模块
"""

from .chat import ChatClient, render_line, run_console

__all__ = [
    "ChatClient",
    "render_line",
    "run_console",
]
