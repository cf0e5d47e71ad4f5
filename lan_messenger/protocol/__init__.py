"""
LAN Messenger 协议模块

行协议的标签、命令标记、格式化与解析
"""

from .types import SessionState, CommandKind, ServerMessageKind
from .exceptions import ProtocolException, MessageFormatException
from .messages import (
    RESULT_TAG,
    USER_LIST_TAG,
    USER_COORDINATES_TAG,
    EVAL_MARKER,
    GET_MARKER,
    SAVE_MARKER,
    QUIT_MARKER,
    EVAL_ERROR_TEXT,
    USER_NOT_FOUND,
    SNAPSHOT_SAVED,
    SNAPSHOT_FAILED,
    INVALID_COORDINATES,
    SERVER_FULL,
    PROMPT_USERNAME,
    PROMPT_LATITUDE,
    PROMPT_LONGITUDE,
    User,
    ServerMessage,
    format_chat,
    format_joined,
    format_left,
    format_welcome,
    format_help,
    format_result,
    format_user_list,
    format_coordinates,
    parse_coordinate,
    parse_server_line,
)

__all__ = [
    "SessionState",
    "CommandKind",
    "ServerMessageKind",
    "ProtocolException",
    "MessageFormatException",
    "RESULT_TAG",
    "USER_LIST_TAG",
    "USER_COORDINATES_TAG",
    "EVAL_MARKER",
    "GET_MARKER",
    "SAVE_MARKER",
    "QUIT_MARKER",
    "EVAL_ERROR_TEXT",
    "USER_NOT_FOUND",
    "SNAPSHOT_SAVED",
    "SNAPSHOT_FAILED",
    "INVALID_COORDINATES",
    "SERVER_FULL",
    "PROMPT_USERNAME",
    "PROMPT_LATITUDE",
    "PROMPT_LONGITUDE",
    "User",
    "ServerMessage",
    "format_chat",
    "format_joined",
    "format_left",
    "format_welcome",
    "format_help",
    "format_result",
    "format_user_list",
    "format_coordinates",
    "parse_coordinate",
    "parse_server_line",
]
