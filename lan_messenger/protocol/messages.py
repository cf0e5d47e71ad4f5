"""LAN Messenger 消息格式

行协议：每行一条消息，UTF-8 编码，以换行符分隔。
服务端下发的结构化消息带有固定前缀标签，其余均为纯文本。
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import MessageFormatException
from .types import ServerMessageKind

# 服务端标签
RESULT_TAG = "RESULT:"
USER_LIST_TAG = "USER_LIST:"
USER_COORDINATES_TAG = "USER_COORDINATES:"

# 客户端命令标记
EVAL_MARKER = "EVAL:"
GET_MARKER = "/get"
SAVE_MARKER = "/save"
QUIT_MARKER = "/quit"

# 固定文案
EVAL_ERROR_TEXT = "Error evaluating expression."
USER_NOT_FOUND = "User not found."
SNAPSHOT_SAVED = "User data has been saved."
SNAPSHOT_FAILED = "Error saving user data."
INVALID_COORDINATES = "Invalid coordinates. Connection will be closed."
SERVER_FULL = "Server is full. Try again later."
PROMPT_USERNAME = "Enter your username:"
PROMPT_LATITUDE = "Enter your latitude:"
PROMPT_LONGITUDE = "Enter your longitude:"


@dataclass(frozen=True)
class User:
    """带坐标的在线用户"""

    user_name: str
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userName": self.user_name,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        try:
            return cls(
                user_name=str(data["userName"]),
                latitude=float(data["latitude"]),
                longitude=float(data["longitude"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MessageFormatException(f"Invalid user payload: {data!r}") from e


@dataclass
class ServerMessage:
    """客户端解析后的服务端消息"""

    kind: ServerMessageKind
    raw: str
    text: str = ""
    users: List[str] = field(default_factory=list)
    coordinates: Optional[User] = None


def format_chat(display_name: str, line: str) -> str:
    return f"[{display_name}]: {line}"


def format_joined(display_name: str) -> str:
    return f"{display_name} has joined the chat."


def format_left(display_name: str) -> str:
    return f"{display_name} has left the chat."


def format_welcome(display_name: str) -> str:
    return f"Welcome to the chat room, {display_name}!"


def format_help(commands: Sequence[str]) -> str:
    """欢迎语之后的命令提示"""
    if not commands:
        return "Write any message you want :D"
    return "Write any message you want, or use: " + ", ".join(commands)


def format_result(text: str) -> str:
    return f"{RESULT_TAG}{text}"


def format_user_list(names: Sequence[str]) -> str:
    """用户列表消息，空列表渲染为 "USER_LIST:"，没有多余分隔符"""
    return USER_LIST_TAG + ",".join(names)


def format_coordinates(user: User) -> str:
    payload = json.dumps(user.to_dict(), separators=(",", ":"), ensure_ascii=False)
    return f"{USER_COORDINATES_TAG}{payload}"


def parse_coordinate(text: Optional[str]) -> float:
    """解析十进制坐标

    Raises:
        ValueError: 不是有限的十进制数
    """
    if text is None:
        raise ValueError("missing coordinate")
    value = float(text.strip())
    # float() 接受 "nan" / "inf"，坐标不接受
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError(f"not a finite number: {text!r}")
    return value


def parse_server_line(line: str) -> ServerMessage:
    """按标签分类服务端下发的一行"""
    if line.startswith(RESULT_TAG):
        return ServerMessage(
            kind=ServerMessageKind.RESULT,
            raw=line,
            text=line[len(RESULT_TAG):].strip(),
        )

    if line.startswith(USER_LIST_TAG):
        body = line[len(USER_LIST_TAG):]
        users = [name for name in body.split(",") if name] if body else []
        return ServerMessage(kind=ServerMessageKind.USER_LIST, raw=line, users=users)

    if line.startswith(USER_COORDINATES_TAG):
        body = line[len(USER_COORDINATES_TAG):]
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise MessageFormatException(f"Invalid coordinates payload: {body!r}") from e
        if not isinstance(data, dict):
            raise MessageFormatException(f"Invalid coordinates payload: {body!r}")
        return ServerMessage(
            kind=ServerMessageKind.USER_COORDINATES,
            raw=line,
            coordinates=User.from_dict(data),
        )

    return ServerMessage(kind=ServerMessageKind.TEXT, raw=line, text=line)
