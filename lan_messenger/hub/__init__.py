"""
Hub 服务器模块

会话注册、广播路由、命令分发和会话生命周期：
- 服务器实现
- 会话与注册表
- 广播与命令分发
- 传输层
"""

from .server import HubServer, start_hub_server
from .session import Session
from .registry import SessionRegistry
from .router import BroadcastRouter
from .dispatcher import (
    CommandDispatcher,
    CommandHandler,
    EvaluateCommand,
    CoordinatesCommand,
    SnapshotCommand,
    QuitCommand,
    match_marker,
)
from .lifecycle import SessionLifecycle
from .transport import LineTransport, StreamTransport, WebSocketTransport, open_websocket

__all__ = [
    "HubServer",
    "start_hub_server",
    "Session",
    "SessionRegistry",
    "BroadcastRouter",
    "CommandDispatcher",
    "CommandHandler",
    "EvaluateCommand",
    "CoordinatesCommand",
    "SnapshotCommand",
    "QuitCommand",
    "match_marker",
    "SessionLifecycle",
    "LineTransport",
    "StreamTransport",
    "WebSocketTransport",
    "open_websocket",
]
