"""
LAN Messenger 会话

一个已接入客户端在服务端的全部状态：身份、传输、出站队列和坐标。
"""

import asyncio
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from ..exceptions import TransportError
from ..protocol import SessionState, User
from ..utils import get_logger
from .transport import LineTransport

# 出站队列里的关闭标记
_CLOSE = object()


class Session:
    """客户端会话

    出站消息先进入本会话的 FIFO 队列，再由专属写任务写入传输层，
    广播方只做入队，不会被任何一个慢速接收方阻塞。
    """

    def __init__(
        self,
        transport: LineTransport,
        outbound_queue_limit: int = 1000,
        session_id: Optional[str] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.transport = transport
        self.display_name: Optional[str] = None
        self.location: Optional[Tuple[float, float]] = None
        self.state = SessionState.CONNECTING
        self.connected_at = datetime.now()
        self.close_reason: Optional[str] = None

        self.outbound_queue_limit = outbound_queue_limit
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._writer_task: Optional[asyncio.Task] = None
        self._close_requested = asyncio.Event()
        self._accepting = True
        self._closed = False

        self.logger = get_logger("lan_messenger.hub.session")

    def __repr__(self) -> str:
        return (
            f"Session(id={self.session_id[:8]}, name={self.display_name!r}, "
            f"state={self.state.value})"
        )

    @property
    def peer(self) -> str:
        return self.transport.peer

    @property
    def label(self) -> str:
        """日志里使用的可读标识"""
        return self.display_name or self.peer

    @property
    def close_requested(self) -> bool:
        return self._close_requested.is_set()

    @property
    def closed(self) -> bool:
        return self._closed

    def set_identity(
        self, display_name: str, location: Optional[Tuple[float, float]] = None
    ) -> None:
        """握手完成后设置身份，之后不可再修改"""
        if self.state not in (SessionState.CONNECTING, SessionState.HANDSHAKING):
            raise RuntimeError(f"Identity of {self!r} is immutable after handshake")
        self.display_name = display_name
        self.location = location

    def to_user(self) -> Optional[User]:
        if self.location is None or self.display_name is None:
            return None
        latitude, longitude = self.location
        return User(self.display_name, latitude, longitude)

    # 出站
    def start_writer(self) -> None:
        if self._writer_task is None:
            self._writer_task = asyncio.create_task(
                self._write_loop(), name=f"session-writer-{self.session_id[:8]}"
            )

    def send(self, line: str) -> bool:
        """把一行放入出站队列

        Returns:
            入队成功返回 True；会话已关闭或队列溢出返回 False，不抛异常
        """
        if not self._accepting:
            return False

        if self._outbound.qsize() >= self.outbound_queue_limit:
            self.logger.warning(
                f"Outbound queue of {self.label} is full, dropping session"
            )
            self.request_close("outbound queue overflow")
            return False

        self._outbound.put_nowait(line)
        return True

    async def _write_loop(self) -> None:
        while True:
            line = await self._outbound.get()
            if line is _CLOSE:
                return
            try:
                await self.transport.write_line(line)
            except TransportError as e:
                self.logger.info(f"Delivery to {self.label} failed: {e}")
                self.request_close(str(e))
                return

    # 关闭
    def request_close(self, reason: str) -> None:
        """请求关闭会话，实际清理由生命周期管理器完成"""
        if not self._close_requested.is_set():
            self.close_reason = reason
            self._accepting = False
            self._close_requested.set()

    async def wait_close_requested(self) -> None:
        await self._close_requested.wait()

    async def close(self, drain_timeout: float = 5.0) -> None:
        """清空出站队列后关闭传输，只执行一次"""
        if self._closed:
            return
        self._closed = True
        self._accepting = False

        if self._writer_task is not None and not self._writer_task.done():
            self._outbound.put_nowait(_CLOSE)
            try:
                await asyncio.wait_for(self._writer_task, timeout=drain_timeout)
            except asyncio.TimeoutError:
                self.logger.warning(
                    f"Dropping unsent messages for {self.label} after {drain_timeout}s"
                )

        await self.transport.close()
        self.state = SessionState.CLOSED

    def get_info(self) -> Dict[str, Any]:
        """获取会话详细信息"""
        return {
            "session_id": self.session_id,
            "display_name": self.display_name,
            "peer": self.peer,
            "state": self.state.value,
            "connected_at": self.connected_at.isoformat(),
            "location": self.location,
            "pending_outbound": self._outbound.qsize(),
        }
