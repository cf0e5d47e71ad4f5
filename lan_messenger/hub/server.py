"""Hub 服务器"""

import asyncio
from typing import Any, Dict, Optional

import websockets

from ..exceptions import BindError
from ..monitor import HubMetrics
from ..services import (
    ArithmeticEvaluator,
    ExpressionEvaluator,
    JsonSnapshotStore,
    SnapshotStore,
)
from ..utils import HubConfig, get_logger
from .dispatcher import (
    CommandDispatcher,
    CoordinatesCommand,
    EvaluateCommand,
    QuitCommand,
    SnapshotCommand,
)
from .lifecycle import SessionLifecycle
from .registry import SessionRegistry
from .router import BroadcastRouter
from .transport import StreamTransport, WebSocketTransport


class HubServer:
    """LAN Messenger Hub 服务器

    TCP 监听（必选）和 WebSocket 监听（可选）共用同一个注册表，
    两种客户端可以互相聊天。
    """

    def __init__(
        self,
        config: Optional[HubConfig] = None,
        evaluator: Optional[ExpressionEvaluator] = None,
        snapshot_store: Optional[SnapshotStore] = None,
    ):
        self.config = config or HubConfig()

        # 核心组件
        self.metrics = HubMetrics()
        self.registry = SessionRegistry()
        self.router = BroadcastRouter(self.registry, self.metrics)
        self.dispatcher = CommandDispatcher(self.registry, self.router, self.metrics)
        self.lifecycle = SessionLifecycle(
            self.registry, self.router, self.dispatcher, self.config, self.metrics
        )

        self.evaluator = evaluator or ArithmeticEvaluator()
        self.snapshot_store = snapshot_store or JsonSnapshotStore(self.config.snapshot_path)
        self._register_commands()

        # 服务器状态
        self._tcp_server: Optional[asyncio.AbstractServer] = None
        self._ws_server = None
        self._session_tasks: set = set()
        self.running = False

        self.logger = get_logger("lan_messenger.hub.server")

    def _register_commands(self) -> None:
        if self.config.enable_eval:
            self.dispatcher.register(EvaluateCommand(self.router, self.evaluator))
        if self.config.enable_geo:
            self.dispatcher.register(CoordinatesCommand(self.router, self.registry))
            self.dispatcher.register(
                SnapshotCommand(self.router, self.registry, self.snapshot_store)
            )
        self.dispatcher.register(QuitCommand(self.router))

    @property
    def port(self) -> Optional[int]:
        """实际监听的 TCP 端口（配置为 0 时由系统分配）"""
        if not self._tcp_server or not self._tcp_server.sockets:
            return None
        return self._tcp_server.sockets[0].getsockname()[1]

    @property
    def ws_port(self) -> Optional[int]:
        if not self._ws_server or not self._ws_server.sockets:
            return None
        return list(self._ws_server.sockets)[0].getsockname()[1]

    async def start(self) -> None:
        """启动服务器

        Raises:
            BindError: 无法监听端口
        """
        if self.running:
            self.logger.warning("Hub server is already running")
            return

        host = self.config.host
        try:
            self._tcp_server = await asyncio.start_server(
                self._handle_stream,
                host,
                self.config.port,
                limit=self.config.max_line_length,
            )
        except OSError as e:
            self.logger.error(f"Failed to listen on {host}:{self.config.port}: {e}")
            raise BindError(host, self.config.port, {"reason": str(e)}) from e

        if self.config.ws_port is not None:
            try:
                self._ws_server = await websockets.serve(
                    self._handle_websocket,
                    host,
                    self.config.ws_port,
                    max_size=self.config.max_line_length,
                )
            except OSError as e:
                self._tcp_server.close()
                await self._tcp_server.wait_closed()
                self._tcp_server = None
                self.logger.error(
                    f"Failed to listen on {host}:{self.config.ws_port} (websocket): {e}"
                )
                raise BindError(host, self.config.ws_port, {"reason": str(e)}) from e

        self.running = True
        self.logger.info(
            f"Server is running on port {self.port} and waiting for connections..."
        )
        if self._ws_server is not None:
            self.logger.info(f"WebSocket endpoint listening on port {self.ws_port}")

    async def stop(self, disconnect_clients: bool = True) -> None:
        """停止服务器

        先关闭监听不再接入新连接，然后（可选）请求所有会话关闭，
        每个会话仍走自己的离开流程。
        """
        if not self.running:
            return

        self.logger.info("Stopping hub server")
        self.running = False

        if self._tcp_server is not None:
            self._tcp_server.close()
        if self._ws_server is not None:
            self._ws_server.close(close_connections=False)

        if disconnect_clients:
            self.lifecycle.request_close_all()
            if self._session_tasks:
                await asyncio.gather(*list(self._session_tasks), return_exceptions=True)
            # wait_closed() 会等待所有连接结束，只在会话都已关闭时调用
            if self._tcp_server is not None:
                await self._tcp_server.wait_closed()
            if self._ws_server is not None:
                await self._ws_server.wait_closed()

        self._tcp_server = None
        self._ws_server = None

        self.logger.info("Hub server stopped")

    async def serve_forever(self) -> None:
        """启动并一直运行，直到任务被取消"""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    async def __aenter__(self) -> "HubServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _handle_stream(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        await self._run_session(StreamTransport(reader, writer))

    async def _handle_websocket(self, websocket) -> None:
        await self._run_session(WebSocketTransport(websocket))

    async def _run_session(self, transport) -> None:
        task = asyncio.current_task()
        self._session_tasks.add(task)
        try:
            await self.lifecycle.run(transport)
        finally:
            self._session_tasks.discard(task)

    def get_stats(self) -> Dict[str, Any]:
        """获取服务器统计信息"""
        return {
            "server": {
                "running": self.running,
                "host": self.config.host,
                "port": self.port,
                "ws_port": self.ws_port,
                "max_sessions": self.config.max_sessions,
            },
            "sessions": {
                **self.registry.get_stats(),
                "live": self.lifecycle.live_sessions,
            },
            "metrics": self.metrics.snapshot(),
        }


async def start_hub_server(config: Optional[HubConfig] = None) -> HubServer:
    """启动 Hub 服务器

    Args:
        config: 服务器配置

    Returns:
        已启动的 Hub 服务器实例
    """
    server = HubServer(config)
    await server.start()
    return server
