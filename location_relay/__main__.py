"""
Location Relay Hub 服务器入口

python -m location_relay --host 0.0.0.0 --port 3000
"""

import argparse
import asyncio
import signal
import sys

from rich.console import Console
from rich.panel import Panel

from .hub import HubServer
from .utils import RelayConfig, configure_logging, get_logger, set_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="location_relay", description="Real-time location relay hub"
    )
    parser.add_argument("--host", default=None, help="Host address")
    parser.add_argument("--port", type=int, default=None, help="Port number")
    parser.add_argument("--path", default=None, help="WebSocket path")
    parser.add_argument(
        "--max-connections", type=int, default=None, help="0 means unlimited"
    )
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING ...")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument(
        "--metrics", action="store_true", help="Collect in-process relay metrics"
    )
    parser.add_argument(
        "--stats-interval",
        type=float,
        default=10.0,
        help="Seconds between stats log lines, 0 disables",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> RelayConfig:
    """环境变量配置之上叠加命令行参数"""
    config = RelayConfig.from_env()
    overrides = {
        "hub_host": args.host,
        "hub_port": args.port,
        "hub_path": args.path,
        "hub_max_connections": args.max_connections,
        "log_level": args.log_level,
        "log_file": args.log_file,
    }
    config.update(**{k: v for k, v in overrides.items() if v is not None})
    if args.metrics:
        config.metrics_enabled = True
    return config


async def monitor_stats(server: HubServer, interval: float) -> None:
    """定期输出服务器统计信息"""
    logger = get_logger("location_relay.cli")
    while True:
        await asyncio.sleep(interval)
        stats = server.get_stats()
        sessions = stats["sessions"]
        line = f"活跃会话: {sessions['total']} | 待发送帧: {sessions['queued_frames']}"
        if "metrics" in stats:
            metrics = stats["metrics"]
            line += (
                f" | 位置更新: {metrics['updates_received']}"
                f" | 投递失败: {metrics['delivery_failures']}"
            )
        logger.info(f"📊 服务器状态: {line}")


async def run(config: RelayConfig, stats_interval: float) -> None:
    server = HubServer(config=config)
    await server.start()

    console = Console()
    console.print(
        Panel.fit(
            f"[bold green]Location Relay[/bold green]\n"
            f"📍 {server.url}\n"
            f"💡 按 Ctrl+C 停止服务器",
            title="Hub",
        )
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows 不支持 add_signal_handler，依赖 KeyboardInterrupt
            pass

    stats_task = None
    if stats_interval > 0:
        stats_task = asyncio.create_task(monitor_stats(server, stats_interval))

    try:
        await stop_event.wait()
    finally:
        if stats_task:
            stats_task.cancel()
        await server.stop()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)
    set_config(config)
    configure_logging(
        level=config.log_level,
        log_file=config.log_file,
        enable_rich=config.enable_rich_logging,
        log_format=config.log_format,
    )

    try:
        asyncio.run(run(config, args.stats_interval))
    except KeyboardInterrupt:
        pass
    except Exception as e:
        get_logger("location_relay.cli").error(f"❌ 程序异常退出: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
