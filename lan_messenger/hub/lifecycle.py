"""
Hub 会话生命周期管理

CONNECTING -> HANDSHAKING -> ACTIVE -> CLOSING -> CLOSED

每个连接一个任务：握手、注册并宣告加入、读循环、注销并宣告离开。
任何退出路径（包括异常）都会关闭传输，且只关闭一次。
"""

import asyncio
from typing import Optional, Tuple

from ..exceptions import ProtocolViolation, TransportError
from ..monitor import HubMetrics
from ..protocol import (
    INVALID_COORDINATES,
    PROMPT_LATITUDE,
    PROMPT_LONGITUDE,
    PROMPT_USERNAME,
    SERVER_FULL,
    SessionState,
    format_help,
    format_joined,
    format_left,
    format_welcome,
    parse_coordinate,
)
from ..utils import HubConfig, get_logger
from .dispatcher import CommandDispatcher
from .registry import SessionRegistry
from .router import BroadcastRouter
from .session import Session
from .transport import LineTransport


class _SessionEnded(Exception):
    """对端关闭或会话被请求关闭"""


class SessionLifecycle:
    """会话生命周期管理器"""

    def __init__(
        self,
        registry: SessionRegistry,
        router: BroadcastRouter,
        dispatcher: CommandDispatcher,
        config: Optional[HubConfig] = None,
        metrics: Optional[HubMetrics] = None,
    ):
        self.registry = registry
        self.router = router
        self.dispatcher = dispatcher
        self.config = config or HubConfig()
        self.metrics = metrics or HubMetrics()

        # 所有未关闭的会话（包括尚未注册的握手中会话）
        self._live: set = set()

        self.logger = get_logger("lan_messenger.hub.lifecycle")

    @property
    def live_sessions(self) -> int:
        return len(self._live)

    def request_close_all(self, reason: str = "server shutdown") -> int:
        """请求关闭所有会话，清理仍由各自的生命周期完成"""
        sessions = list(self._live)
        for session in sessions:
            session.request_close(reason)
        return len(sessions)

    async def run(self, transport: LineTransport) -> None:
        """处理一个连接直到结束"""
        session = Session(transport, outbound_queue_limit=self.config.outbound_queue_limit)
        self._live.add(session)
        self.metrics.record_accepted()
        self.logger.info(f"New client connected: {session.peer}")

        registered = False
        try:
            session.start_writer()

            session.state = SessionState.HANDSHAKING
            try:
                name, location = await self._until_closed(session, self._handshake(session))
            except _SessionEnded:
                self.logger.info(f"Client {session.peer} left during handshake")
                return
            session.set_identity(name, location)

            if not self._admit(session):
                return

            session.state = SessionState.ACTIVE
            self._greet(session)
            self.registry.register(session)
            registered = True
            self._announce_join(session)
            try:
                await self._until_closed(session, self._read_loop(session))
            except _SessionEnded:
                self.logger.info(f"Closing {session.label}: {session.close_reason}")

        except ProtocolViolation as e:
            self.logger.warning(f"Protocol violation from {session.label}: {e}")
            if e.notice:
                session.send(e.notice)
        except TransportError as e:
            self.logger.info(f"Connection with {session.label} lost: {e}")
        except Exception:
            self.logger.exception(f"Unexpected error in session {session.label}")
        finally:
            await self._teardown(session, registered)

    # 握手
    async def _handshake(self, session: Session) -> Tuple[str, Optional[Tuple[float, float]]]:
        geo = self.config.enable_geo

        if geo:
            session.send(PROMPT_USERNAME)
        name = await self._read_handshake_line(session)
        name = name.strip() or self.config.default_name

        if not geo:
            return name, None

        session.send(format_welcome(name))
        session.send(PROMPT_LATITUDE)
        latitude_text = await self._read_handshake_line(session)
        session.send(PROMPT_LONGITUDE)
        longitude_text = await self._read_handshake_line(session)

        try:
            latitude = parse_coordinate(latitude_text)
            longitude = parse_coordinate(longitude_text)
        except ValueError as e:
            raise ProtocolViolation(
                f"Invalid coordinates from {name}: {e}", notice=INVALID_COORDINATES
            ) from e

        return name, (latitude, longitude)

    async def _read_handshake_line(self, session: Session) -> str:
        line = await self._read(session, self.config.handshake_timeout)
        if line is None:
            raise _SessionEnded()
        return line

    async def _read(self, session: Session, timeout: Optional[float]) -> Optional[str]:
        if timeout is None:
            return await session.transport.read_line()
        try:
            return await asyncio.wait_for(session.transport.read_line(), timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"No data from {session.label} for {timeout}s") from e

    def _admit(self, session: Session) -> bool:
        limit = self.config.max_sessions
        if limit is not None and len(self.registry) >= limit:
            self.logger.warning(f"Rejecting {session.label}: {limit} sessions already active")
            self.metrics.record_rejected()
            session.send(SERVER_FULL)
            return False
        return True

    # 在线
    def _greet(self, session: Session) -> None:
        if not self.config.enable_geo:
            session.send(format_welcome(session.display_name))
        session.send(format_help(self.dispatcher.get_help()))

    def _announce_join(self, session: Session) -> None:
        name = session.display_name
        self.logger.info(f"User connected: {name}")
        self.metrics.record_joined()
        self.router.broadcast(format_joined(name), exclude_id=session.session_id)
        self.router.notify_user_list_changed()

    async def _until_closed(self, session: Session, coro):
        """运行 coro，直到它结束或会话被请求关闭（写失败、/quit、服务器停止）

        Raises:
            _SessionEnded: coro 结束前会话被请求关闭
        """
        work = asyncio.create_task(coro, name=f"session-{session.session_id[:8]}")
        closer = asyncio.create_task(session.wait_close_requested())

        try:
            await asyncio.wait({work, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (work, closer):
                if not task.done():
                    task.cancel()
            await asyncio.gather(work, closer, return_exceptions=True)

        if work.cancelled():
            raise _SessionEnded()
        return work.result()

    async def _read_loop(self, session: Session) -> None:
        """读循环，直到 EOF、传输错误或 /quit"""
        while not session.close_requested:
            line = await self._read(session, self.config.read_timeout)
            if line is None:
                return
            self.metrics.record_line()
            await self.dispatcher.dispatch(session, line)

    # 关闭
    async def _teardown(self, session: Session, registered: bool) -> None:
        session.state = SessionState.CLOSING
        try:
            if registered and self.registry.unregister(session.session_id) is not None:
                name = session.display_name
                self.logger.info(f"User disconnected: {name}")
                self.metrics.record_left()
                self.router.broadcast(format_left(name), exclude_id=session.session_id)
                self.router.notify_user_list_changed()
        finally:
            self._live.discard(session)
            await session.close(self.config.drain_timeout)
