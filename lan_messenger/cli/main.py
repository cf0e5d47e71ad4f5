"""
LAN Messenger 命令行入口

lan-messenger serve    启动 Hub 服务器
lan-messenger connect  以控制台客户端身份加入聊天
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from rich.console import Console

from ..client import ChatClient, run_console
from ..exceptions import BindError, TransportError
from ..hub import HubServer
from ..monitor import render_stats_table
from ..utils import HubConfig, configure_logging, get_logger


class HubServerRunner:
    """运行 Hub 服务器直到收到停止信号"""

    def __init__(self, config: HubConfig, console: Optional[Console] = None):
        self.config = config
        self.server = HubServer(config)
        self.console = console or Console()
        self.logger = get_logger("lan_messenger.cli")

    async def run(self) -> None:
        await self.server.start()

        stop_event = asyncio.Event()

        def signal_handler():
            self.logger.warning("Received stop signal, shutting down...")
            stop_event.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, signal_handler)
            except NotImplementedError:
                # Windows 不支持 add_signal_handler，依赖 KeyboardInterrupt
                pass

        stats_task = None
        if self.config.stats_interval:
            stats_task = asyncio.create_task(self.monitor_stats(self.config.stats_interval))

        try:
            await stop_event.wait()
        finally:
            if stats_task is not None:
                stats_task.cancel()
            await self.server.stop()

    async def monitor_stats(self, interval: float) -> None:
        """定期输出服务器统计信息"""
        while True:
            await asyncio.sleep(interval)
            self.console.print(
                render_stats_table(self.server.metrics, len(self.server.registry))
            )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lan-messenger", description="LAN text-messaging hub"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the hub server")
    serve.add_argument("--host", help="Listen address")
    serve.add_argument("--port", type=int, help="TCP port")
    serve.add_argument("--ws-port", type=int, help="Also accept WebSocket clients on this port")
    serve.add_argument("--geo", action="store_true", default=None,
                       help="Ask for coordinates at handshake and enable /get and /save")
    serve.add_argument("--no-eval", action="store_true", help="Disable EVAL: commands")
    serve.add_argument("--max-sessions", type=int, help="Reject clients beyond this many")
    serve.add_argument("--snapshot-path", help="Where /save writes the user snapshot")
    serve.add_argument("--log-level", help="Log level (DEBUG, INFO, ...)")
    serve.add_argument("--log-file", help="Also write logs to this file")
    serve.add_argument("--stats-interval", type=float,
                       help="Print hub statistics every N seconds")

    connect = subparsers.add_parser("connect", help="Join a hub from the terminal")
    connect.add_argument("--host", default="localhost", help="Hub address")
    connect.add_argument("--port", type=int, default=5000, help="Hub TCP port")
    connect.add_argument("--name", help="Display name (prompted when omitted)")
    connect.add_argument("--latitude", type=float, help="Latitude for geo-enabled hubs")
    connect.add_argument("--longitude", type=float, help="Longitude for geo-enabled hubs")

    return parser


def config_from_args(args: argparse.Namespace) -> HubConfig:
    """环境变量打底，命令行参数覆盖"""
    config = HubConfig.from_env()
    config.update(
        host=args.host,
        port=args.port,
        ws_port=args.ws_port,
        enable_geo=args.geo,
        max_sessions=args.max_sessions,
        snapshot_path=args.snapshot_path,
        log_level=args.log_level,
        log_file=args.log_file,
        stats_interval=args.stats_interval,
    )
    if args.no_eval:
        config.enable_eval = False
    return config


def _serve(args: argparse.Namespace) -> int:
    config = config_from_args(args)
    configure_logging(
        level=config.log_level,
        log_file=config.log_file,
        enable_rich=config.enable_rich_logging,
    )
    logger = get_logger("lan_messenger.cli")

    try:
        asyncio.run(HubServerRunner(config).run())
    except BindError as e:
        logger.error(f"Server exception: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
    return 0


async def _connect(args: argparse.Namespace, console: Console) -> int:
    name = args.name or console.input("Enter your username: ")
    try:
        client = await ChatClient.connect(args.host, args.port)
    except TransportError as e:
        console.print(f"[red]{e}[/]")
        return 1
    await run_console(client, name, args.latitude, args.longitude, console)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        return _serve(args)

    console = Console()
    configure_logging(level="WARNING")
    try:
        return asyncio.run(_connect(args, console))
    except KeyboardInterrupt:
        console.print("\n[yellow]Bye![/]")
        return 0


if __name__ == "__main__":
    sys.exit(main())
