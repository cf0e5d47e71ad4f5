"""LAN Messenger 类型定义

本模块定义了会话状态、命令类型和服务端消息类型的枚举。
"""

from enum import Enum


class SessionState(Enum):
    """会话状态枚举

    状态只能单向推进：CONNECTING -> HANDSHAKING -> ACTIVE -> CLOSING -> CLOSED。
    握手失败时会从 HANDSHAKING 直接进入 CLOSING。
    """

    CONNECTING = "connecting"
    HANDSHAKING = "handshaking"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class CommandKind(Enum):
    """输入行的分类

    声明顺序即匹配优先级，CHAT 为兜底分类。
    """

    EVALUATE = "evaluate"
    COORDINATES = "coordinates"
    SNAPSHOT = "snapshot"
    QUIT = "quit"
    CHAT = "chat"


class ServerMessageKind(Enum):
    """服务端下发消息的类型"""

    RESULT = "result"
    USER_LIST = "user_list"
    USER_COORDINATES = "user_coordinates"
    TEXT = "text"
