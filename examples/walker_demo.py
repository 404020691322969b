#!/usr/bin/env python3
"""
Location Relay 多客户端演示

启动若干模拟行人，每个都周期性上报位置，并打印收到的其他人的位置。
先运行服务器：python -m location_relay
"""

import argparse
import asyncio
import random

from rich.console import Console

from location_relay import BroadcastEnvelope, LocationClient, configure_logging

console = Console()


async def walker(url: str, name: str, interval: float, steps: int) -> None:
    """一个模拟行人：随机游走并上报位置"""
    client = LocationClient(url)

    @client.on_location()
    async def on_location(envelope: BroadcastEnvelope):
        console.print(
            f"[cyan]{name}[/cyan] 看到 {envelope.sender_id}: "
            f"({envelope.latitude:.5f}, {envelope.longitude:.5f})"
        )

    @client.on_user_disconnect()
    async def on_departure(session_id: str):
        console.print(f"[yellow]{name}[/yellow] 看到 {session_id} 离开")

    latitude = 22.3193 + random.uniform(-0.01, 0.01)
    longitude = 114.1694 + random.uniform(-0.01, 0.01)

    async with client:
        console.print(f"[green]{name}[/green] 已连接，会话ID: {client.session_id}")
        for _ in range(steps):
            latitude += random.uniform(-0.0005, 0.0005)
            longitude += random.uniform(-0.0005, 0.0005)
            await client.send_location(latitude, longitude, accuracy=5.0, name=name)
            await asyncio.sleep(interval)


async def main() -> None:
    parser = argparse.ArgumentParser(description="Location Relay Walker Demo")
    parser.add_argument("--url", default="ws://localhost:3000/ws/location")
    parser.add_argument("--walkers", type=int, default=3)
    parser.add_argument("--interval", type=float, default=1.0)
    parser.add_argument("--steps", type=int, default=10)
    args = parser.parse_args()

    configure_logging(level="warning")

    await asyncio.gather(
        *(
            walker(args.url, f"walker-{i}", args.interval, args.steps)
            for i in range(args.walkers)
        )
    )


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\n👋 再见!")
