"""
Hub 命令分发器

每个输入行按固定优先级分类：求值 -> 坐标查询 -> 快照保存 -> 退出 -> 普通聊天。
命令只回复给发送者，普通聊天才会广播。
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from ..exceptions import EvaluationError, HandlerError, PersistenceError
from ..monitor import HubMetrics
from ..protocol import (
    EVAL_ERROR_TEXT,
    EVAL_MARKER,
    GET_MARKER,
    QUIT_MARKER,
    SAVE_MARKER,
    SNAPSHOT_FAILED,
    SNAPSHOT_SAVED,
    USER_NOT_FOUND,
    CommandKind,
    format_chat,
    format_coordinates,
    format_result,
)
from ..services import ExpressionEvaluator, SnapshotStore
from ..utils import get_logger
from .registry import SessionRegistry
from .router import BroadcastRouter
from .session import Session

# CommandKind 的声明顺序即优先级
PRECEDENCE: List[CommandKind] = [kind for kind in CommandKind if kind != CommandKind.CHAT]


def match_marker(line: str, marker: str, needs_delimiter: bool) -> Optional[str]:
    """匹配行首标记

    Args:
        line: 已去掉首尾空白的输入行
        marker: 标记字面量，大小写敏感
        needs_delimiter: 标记后是否必须是空白（或行尾）

    Returns:
        去掉首尾空白的参数；不匹配时返回 None
    """
    if not line.startswith(marker):
        return None
    rest = line[len(marker):]
    if needs_delimiter and rest and not rest[0].isspace():
        return None
    return rest.strip()


class CommandHandler(ABC):
    """命令处理器基类"""

    kind: CommandKind
    marker: str
    needs_delimiter: bool = True
    description: str = ""

    def __init__(self, router: BroadcastRouter):
        self.router = router
        self.logger = get_logger(f"lan_messenger.hub.commands.{self.kind.value}")

    def match(self, line: str) -> Optional[str]:
        return match_marker(line, self.marker, self.needs_delimiter)

    @abstractmethod
    async def execute(self, session: Session, argument: str) -> None:
        """执行命令并回复发送者

        Args:
            session: 发送命令的会话
            argument: 标记之后的参数，可能为空字符串
        """
        pass

    def error_reply(self) -> Optional[str]:
        """命令意外失败时回复发送者的文本，None 表示不回复"""
        return None

    def get_help(self) -> str:
        return f"{self.marker} {self.description}".strip()


class EvaluateCommand(CommandHandler):
    """EVAL: <表达式>"""

    kind = CommandKind.EVALUATE
    marker = EVAL_MARKER
    needs_delimiter = False
    description = "<expression>"

    def __init__(self, router: BroadcastRouter, evaluator: ExpressionEvaluator):
        super().__init__(router)
        self.evaluator = evaluator

    async def execute(self, session: Session, argument: str) -> None:
        self.logger.info(f"Received expression from {session.label}: {argument}")
        try:
            result = self.evaluator.evaluate(argument)
        except EvaluationError as e:
            self.logger.info(f"Evaluation failed for {session.label}: {e}")
            result = EVAL_ERROR_TEXT
        self.router.send_to(session, format_result(result))

    def error_reply(self) -> Optional[str]:
        return format_result(EVAL_ERROR_TEXT)


class CoordinatesCommand(CommandHandler):
    """/get <用户名>"""

    kind = CommandKind.COORDINATES
    marker = GET_MARKER
    description = "<user>"

    def __init__(self, router: BroadcastRouter, registry: SessionRegistry):
        super().__init__(router)
        self.registry = registry

    async def execute(self, session: Session, argument: str) -> None:
        target = self.registry.find_by_name(argument) if argument else None
        user = target.to_user() if target else None
        if user is None:
            self.logger.debug(f"{session.label} asked for unknown user {argument!r}")
            self.router.send_to(session, USER_NOT_FOUND)
            return
        self.router.send_to(session, format_coordinates(user))


class SnapshotCommand(CommandHandler):
    """/save"""

    kind = CommandKind.SNAPSHOT
    marker = SAVE_MARKER

    def __init__(
        self, router: BroadcastRouter, registry: SessionRegistry, store: SnapshotStore
    ):
        super().__init__(router)
        self.registry = registry
        self.store = store

    async def execute(self, session: Session, argument: str) -> None:
        users = self.registry.users()
        try:
            # 文件 I/O 放到线程里，不阻塞其他会话
            await asyncio.to_thread(self.store.persist, users)
        except PersistenceError as e:
            self.logger.error(f"Snapshot requested by {session.label} failed: {e}")
            self.router.send_to(session, SNAPSHOT_FAILED)
            return
        self.router.send_to(session, SNAPSHOT_SAVED)

    def error_reply(self) -> Optional[str]:
        return SNAPSHOT_FAILED


class QuitCommand(CommandHandler):
    """/quit"""

    kind = CommandKind.QUIT
    marker = QUIT_MARKER

    async def execute(self, session: Session, argument: str) -> None:
        self.logger.info(f"{session.label} quit")
        session.request_close("quit")


class CommandDispatcher:
    """命令分发器"""

    def __init__(
        self,
        registry: SessionRegistry,
        router: BroadcastRouter,
        metrics: Optional[HubMetrics] = None,
    ):
        self.registry = registry
        self.router = router
        self.metrics = metrics or HubMetrics()
        self.handlers: Dict[CommandKind, CommandHandler] = {}
        self.logger = get_logger("lan_messenger.hub.dispatcher")

    def register(self, handler: CommandHandler) -> None:
        """注册命令处理器，同类处理器后注册的覆盖先注册的"""
        if handler.kind == CommandKind.CHAT:
            raise ValueError("Plain chat is handled by the dispatcher itself")
        self.handlers[handler.kind] = handler

    def unregister(self, kind: CommandKind) -> None:
        self.handlers.pop(kind, None)

    def get_help(self) -> List[str]:
        return [self.handlers[k].get_help() for k in PRECEDENCE if k in self.handlers]

    def classify(self, line: str) -> Tuple[CommandKind, str]:
        """对一行分类

        Returns:
            (命令类型, 参数)；普通聊天的参数是原始行
        """
        stripped = line.strip()
        for kind in PRECEDENCE:
            handler = self.handlers.get(kind)
            if handler is None:
                continue
            argument = handler.match(stripped)
            if argument is not None:
                return kind, argument
        return CommandKind.CHAT, line

    async def dispatch(self, session: Session, line: str) -> CommandKind:
        """处理一行输入

        Returns:
            该行被归入的命令类型
        """
        kind, argument = self.classify(line)
        self.metrics.record_command(kind.value)

        if kind == CommandKind.CHAT:
            self.logger.info(format_chat(session.label, line))
            self.router.broadcast(format_chat(session.label, line), session.session_id)
            return kind

        handler = self.handlers[kind]
        try:
            await handler.execute(session, argument)
        except HandlerError as e:
            self.logger.error(f"Command {kind.value} from {session.label} failed: {e}")
        except Exception:
            # 协作者的意外错误只影响本次命令，不影响会话
            self.logger.exception(
                f"Unexpected error in command {kind.value} from {session.label}"
            )
        else:
            return kind

        reply = handler.error_reply()
        if reply is not None:
            self.router.send_to(session, reply)
        return kind
