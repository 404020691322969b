"""
Location Relay

Real-time location relay: a WebSocket hub that fans each client's position
update out to every other connected client and announces disconnects.

主要组件：
- protocol: 帧格式和消息定义
- hub: 会话注册表、广播路由、连接中枢和 WebSocket 服务器
- client: asyncio 客户端 SDK
- monitor: 独立可插拔的指标收集
- utils: 配置和日志
"""

__version__ = "1.0.0"

from .protocol import (
    EventName,
    DisconnectReason,
    Frame,
    LocationUpdate,
    BroadcastEnvelope,
    DisconnectNotice,
)
from .hub import ConnectionHub, HubServer, start_hub_server
from .client import LocationClient
from .utils import RelayConfig, configure_logging, get_config, get_logger
from .exceptions import (
    RelayError,
    ServerError,
    ClientError,
    ClientNotConnectedError,
)

__all__ = [
    "__version__",
    # Protocol
    "EventName",
    "DisconnectReason",
    "Frame",
    "LocationUpdate",
    "BroadcastEnvelope",
    "DisconnectNotice",
    # Hub
    "ConnectionHub",
    "HubServer",
    "start_hub_server",
    # Client
    "LocationClient",
    # Utils
    "RelayConfig",
    "configure_logging",
    "get_config",
    "get_logger",
    # Exceptions
    "RelayError",
    "ServerError",
    "ClientError",
    "ClientNotConnectedError",
]
