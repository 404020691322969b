"""Location Relay 协议核心模块"""

from .exceptions import (
    ProtocolException,
    SerializationException,
    MessageFormatException,
)
from .types import EventName, DisconnectReason
from .messages import (
    Frame,
    LocationUpdate,
    BroadcastEnvelope,
    DisconnectNotice,
)

__all__ = [
    # 异常类
    "ProtocolException",
    "SerializationException",
    "MessageFormatException",
    # 类型枚举
    "EventName",
    "DisconnectReason",
    # 消息类型
    "Frame",
    "LocationUpdate",
    "BroadcastEnvelope",
    "DisconnectNotice",
]
