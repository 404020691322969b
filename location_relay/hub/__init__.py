"""
Hub 模块

位置中继核心：
- 会话与会话注册表
- 广播路由
- 连接中枢
- WebSocket 服务器
"""

from .session import Session
from .manager import SessionManager
from .router import MessageRouter
from .relay import ConnectionHub
from .server import HubServer, start_hub_server

__all__ = [
    "Session",
    "SessionManager",
    "MessageRouter",
    "ConnectionHub",
    "HubServer",
    "start_hub_server",
]
