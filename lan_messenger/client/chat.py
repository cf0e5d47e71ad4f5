"""ChatClient 实现"""

import asyncio
import threading
from typing import Callable, List, Optional

from rich.console import Console

from ..exceptions import TransportError
from ..protocol import (
    MessageFormatException,
    ServerMessage,
    ServerMessageKind,
    parse_server_line,
)
from ..hub.transport import LineTransport, StreamTransport, open_websocket
from ..utils import get_logger


class ChatClient:
    """聊天客户端

    连接 Hub，按行收发。握手之后的每一行都由服务端按命令标记分类。
    """

    def __init__(self, transport: LineTransport):
        self.transport = transport
        self.logger = get_logger("lan_messenger.client")

    @classmethod
    async def connect(
        cls, host: str = "localhost", port: int = 5000, limit: int = 64 * 1024
    ) -> "ChatClient":
        """通过 TCP 连接 Hub

        Raises:
            TransportError: 连接失败
        """
        try:
            reader, writer = await asyncio.open_connection(host, port, limit=limit)
        except OSError as e:
            raise TransportError(f"Cannot connect to {host}:{port}: {e}") from e
        return cls(StreamTransport(reader, writer))

    @classmethod
    async def connect_websocket(cls, uri: str) -> "ChatClient":
        """通过 WebSocket 连接 Hub"""
        return cls(await open_websocket(uri))

    async def __aenter__(self) -> "ChatClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def handshake(
        self,
        name: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> None:
        """发送握手行：用户名，以及可选的纬度、经度"""
        await self.send(name)
        if latitude is not None and longitude is not None:
            await self.send(str(latitude))
            await self.send(str(longitude))

    async def send(self, line: str) -> None:
        await self.transport.write_line(line)

    async def receive(self, timeout: Optional[float] = None) -> Optional[str]:
        """读取下一行，连接关闭时返回 None

        Raises:
            asyncio.TimeoutError: 超时仍未收到
        """
        if timeout is None:
            return await self.transport.read_line()
        return await asyncio.wait_for(self.transport.read_line(), timeout)

    async def receive_message(self, timeout: Optional[float] = None) -> Optional[ServerMessage]:
        line = await self.receive(timeout)
        return parse_server_line(line) if line is not None else None

    async def wait_for(
        self, predicate: Callable[[str], bool], timeout: float = 5.0
    ) -> str:
        """丢弃不满足条件的行，直到收到满足条件的一行

        Raises:
            asyncio.TimeoutError: 超时
            TransportError: 连接在满足条件前关闭
        """

        async def _wait() -> str:
            while True:
                line = await self.transport.read_line()
                if line is None:
                    raise TransportError("Connection closed by server")
                if predicate(line):
                    return line

        return await asyncio.wait_for(_wait(), timeout)

    async def drain(self, quiet_period: float = 0.2) -> List[str]:
        """收下所有已到达的行，直到 quiet_period 内没有新行或连接关闭"""
        lines: List[str] = []
        while True:
            try:
                line = await self.receive(quiet_period)
            except asyncio.TimeoutError:
                return lines
            if line is None:
                return lines
            lines.append(line)

    async def close(self) -> None:
        await self.transport.close()


def render_line(console: Console, line: str) -> None:
    """按消息类型渲染服务端下发的一行"""
    try:
        message = parse_server_line(line)
    except MessageFormatException:
        console.print(line, markup=False, highlight=False)
        return

    if message.kind == ServerMessageKind.RESULT:
        console.print(f"[bold green]Evaluation Result:[/] {message.text}")
    elif message.kind == ServerMessageKind.USER_LIST:
        names = ", ".join(message.users) or "-"
        console.print(f"[cyan]Online users:[/] {names}")
    elif message.kind == ServerMessageKind.USER_COORDINATES:
        user = message.coordinates
        console.print(
            f"[magenta]{user.user_name}[/] is at "
            f"latitude {user.latitude}, longitude {user.longitude}"
        )
    else:
        console.print(message.text, markup=False, highlight=False)


async def run_console(
    client: ChatClient,
    name: str,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    console: Optional[Console] = None,
) -> None:
    """交互式控制台：后台打印服务端消息，前台读取标准输入"""
    console = console or Console()
    await client.handshake(name, latitude, longitude)
    console.print("[bold]CONNECTED TO THE CHAT SERVER![/]")

    async def _print_incoming() -> None:
        while True:
            line = await client.receive()
            if line is None:
                console.print("[red]Connection to server lost.[/]")
                return
            render_line(console, line)

    loop = asyncio.get_running_loop()
    typed: asyncio.Queue = asyncio.Queue()

    def _input_loop() -> None:
        # 在守护线程中阻塞读取标准输入，进程退出时不需要等待它
        while True:
            try:
                text = input()
            except EOFError:
                text = None
            try:
                loop.call_soon_threadsafe(typed.put_nowait, text)
            except RuntimeError:
                # 事件循环已关闭
                return
            if text is None:
                return

    threading.Thread(target=_input_loop, daemon=True).start()

    async def _read_input() -> None:
        while True:
            line = await typed.get()
            if line is None:
                return
            await client.send(line)
            if line.strip() == "/quit":
                return

    incoming = asyncio.create_task(_print_incoming())
    outgoing = asyncio.create_task(_read_input())
    try:
        await asyncio.wait({incoming, outgoing}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (incoming, outgoing):
            task.cancel()
        await asyncio.gather(incoming, outgoing, return_exceptions=True)
        await client.close()
