"""Location Relay 类型定义

本模块定义了线上事件名称的枚举。
"""

from enum import Enum


class EventName(Enum):
    """事件名称枚举

    客户端与 Hub 之间交换的全部事件。
    """

    # 客户端 -> Hub
    SEND_LOCATION = "send-location"
    DISCONNECT = "disconnect"

    # Hub -> 客户端
    CONNECTED = "connected"
    RECEIVE_LOCATION = "receive-location"
    USER_DISCONNECT = "user-disconnect"


class DisconnectReason(Enum):
    """会话结束原因"""

    TRANSPORT = "transport"  # 连接关闭或传输错误
    EXPLICIT = "explicit"  # 客户端发送 disconnect 事件
    DELIVERY_FAILURE = "delivery_failure"  # 向该会话发送失败或超时
    OVERFLOW = "overflow"  # 发送队列溢出
