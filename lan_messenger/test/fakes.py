"""测试用的内存传输与辅助函数"""

import asyncio
from typing import List, Optional, Tuple

from lan_messenger.exceptions import TransportError
from lan_messenger.hub import LineTransport, Session, SessionRegistry

_EOF = object()


class FakeTransport(LineTransport):
    """内存中的行传输

    feed() 模拟客户端发来的行，written 记录服务端写出的行。
    """

    def __init__(self, peer: str = "fake:0", block_writes: bool = False):
        super().__init__(peer)
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.written: List[str] = []
        self.fail_writes = False
        self.write_gate = asyncio.Event()
        if not block_writes:
            self.write_gate.set()
        self.close_count = 0

    def feed(self, *lines: str) -> None:
        for line in lines:
            self.inbound.put_nowait(line)

    def feed_eof(self) -> None:
        self.inbound.put_nowait(_EOF)

    def feed_error(self, message: str = "connection reset by peer") -> None:
        self.inbound.put_nowait(TransportError(message))

    async def read_line(self) -> Optional[str]:
        item = await self.inbound.get()
        if item is _EOF:
            return None
        if isinstance(item, Exception):
            raise item
        return item

    async def write_line(self, line: str) -> None:
        if self.fail_writes or self._closed:
            raise TransportError(f"Write failed to {self.peer}")
        await self.write_gate.wait()
        self.written.append(line)

    async def _close(self) -> None:
        self.close_count += 1


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """轮询直到 predicate() 为真"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


def make_session(
    registry: SessionRegistry,
    name: str,
    location: Optional[Tuple[float, float]] = None,
    start_writer: bool = True,
    **kwargs,
) -> Session:
    """创建、注册一个在线会话"""
    session = Session(FakeTransport(peer=f"{name}:0"), **kwargs)
    session.set_identity(name, location)
    registry.register(session)
    if start_writer:
        session.start_writer()
    return session
