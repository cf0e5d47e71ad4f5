"""
LAN Messenger - 局域网文本聊天 Hub

主要组件：
- protocol: 行协议的标签、命令标记与解析
- hub: 会话注册表、广播路由、命令分发、会话生命周期与服务器
- services: 表达式求值、用户快照持久化
- client: 控制台聊天客户端
- monitor: 运行指标
- cli: 命令行入口
- utils: 配置与日志
"""

__version__ = "1.0.0"
__description__ = "LAN text-messaging hub with side-channel commands"

from .protocol import CommandKind, SessionState, User
from .hub import (
    HubServer,
    start_hub_server,
    Session,
    SessionRegistry,
    BroadcastRouter,
    CommandDispatcher,
    SessionLifecycle,
)
from .services import ArithmeticEvaluator, JsonSnapshotStore
from .client import ChatClient
from .utils import HubConfig, configure_logging, get_logger
from .exceptions import (
    HubError,
    TransportError,
    ProtocolViolation,
    HandlerError,
    EvaluationError,
    PersistenceError,
    BindError,
    DuplicateIdentityError,
)

__all__ = [
    "__version__",
    "__description__",
    "CommandKind",
    "SessionState",
    "User",
    "HubServer",
    "start_hub_server",
    "Session",
    "SessionRegistry",
    "BroadcastRouter",
    "CommandDispatcher",
    "SessionLifecycle",
    "ArithmeticEvaluator",
    "JsonSnapshotStore",
    "ChatClient",
    "HubConfig",
    "configure_logging",
    "get_logger",
    "HubError",
    "TransportError",
    "ProtocolViolation",
    "HandlerError",
    "EvaluationError",
    "PersistenceError",
    "BindError",
    "DuplicateIdentityError",
]
