"""Hub 行传输层

把 TCP 字节流和 WebSocket 连接统一成"按行读写"的接口，
会话层只和 LineTransport 打交道。
"""

import asyncio
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from ..exceptions import TransportError
from ..utils import get_logger

ENCODING = "utf-8"


def _format_peer(address) -> str:
    if isinstance(address, (tuple, list)) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address) if address else "unknown"


class LineTransport(ABC):
    """按行读写的双向传输"""

    def __init__(self, peer: str):
        self.peer = peer
        self._closed = False
        self.logger = get_logger("lan_messenger.hub.transport")

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    async def read_line(self) -> Optional[str]:
        """读取下一行（不含换行符）

        Returns:
            一行文本；对端正常关闭时返回 None

        Raises:
            TransportError: 读取失败
        """
        pass

    @abstractmethod
    async def write_line(self, line: str) -> None:
        """写入一行

        Raises:
            TransportError: 写入失败
        """
        pass

    async def close(self) -> None:
        """关闭传输，重复调用无副作用"""
        if self._closed:
            return
        self._closed = True
        try:
            await self._close()
        except (OSError, ConnectionError, ConnectionClosed) as e:
            self.logger.debug(f"Error closing transport {self.peer}: {e}")

    @abstractmethod
    async def _close(self) -> None:
        pass


class StreamTransport(LineTransport):
    """基于 asyncio StreamReader/StreamWriter 的换行分隔传输"""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        super().__init__(_format_peer(writer.get_extra_info("peername")))
        self.reader = reader
        self.writer = writer

    async def read_line(self) -> Optional[str]:
        if self._closed:
            raise TransportError(f"Transport {self.peer} is closed")
        try:
            data = await self.reader.readline()
        except ValueError as e:
            # 超过 StreamReader limit 的超长行
            raise TransportError(f"Line too long from {self.peer}") from e
        except (OSError, ConnectionError, asyncio.IncompleteReadError) as e:
            raise TransportError(f"Read failed from {self.peer}: {e}") from e

        if not data:
            return None
        return data.decode(ENCODING, errors="replace").rstrip("\r\n")

    async def write_line(self, line: str) -> None:
        if self._closed or self.writer.is_closing():
            raise TransportError(f"Transport {self.peer} is closed")
        try:
            self.writer.write((line + "\n").encode(ENCODING))
            await self.writer.drain()
        except (OSError, ConnectionError) as e:
            raise TransportError(f"Write failed to {self.peer}: {e}") from e

    async def _close(self) -> None:
        self.writer.close()
        await self.writer.wait_closed()


class WebSocketTransport(LineTransport):
    """基于 websockets 连接的传输

    一个文本帧可以携带多行，按换行拆分后逐行交给会话层。
    """

    def __init__(self, websocket):
        super().__init__(_format_peer(getattr(websocket, "remote_address", None)))
        self.websocket = websocket
        self._pending: Deque[str] = deque()

    async def read_line(self) -> Optional[str]:
        while not self._pending:
            if self._closed:
                raise TransportError(f"Transport {self.peer} is closed")
            try:
                frame = await self.websocket.recv()
            except ConnectionClosedOK:
                return None
            except ConnectionClosed as e:
                raise TransportError(f"WebSocket {self.peer} closed: {e}") from e

            if isinstance(frame, bytes):
                frame = frame.decode(ENCODING, errors="replace")
            self._pending.extend(part.rstrip("\r") for part in frame.split("\n"))
            # 帧末尾的换行只是分隔符
            if frame.endswith("\n"):
                self._pending.pop()

        return self._pending.popleft()

    async def write_line(self, line: str) -> None:
        if self._closed:
            raise TransportError(f"Transport {self.peer} is closed")
        try:
            await self.websocket.send(line)
        except ConnectionClosed as e:
            raise TransportError(f"WebSocket {self.peer} closed: {e}") from e

    async def _close(self) -> None:
        await self.websocket.close()


async def open_websocket(uri: str, **kwargs) -> WebSocketTransport:
    """以客户端身份连接 WebSocket 端点"""
    try:
        websocket = await websockets.connect(uri, **kwargs)
    except (OSError, websockets.exceptions.InvalidHandshake) as e:
        raise TransportError(f"Cannot connect to {uri}: {e}") from e
    return WebSocketTransport(websocket)
