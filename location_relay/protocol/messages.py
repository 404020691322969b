"""Location Relay 消息格式定义

本模块定义了线上帧格式和三种业务消息：位置更新、广播信封和断开通知。
帧在线上是 JSON 文本：{"event": <事件名>, "data": <载荷>}。
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .types import EventName
from .exceptions import SerializationException, MessageFormatException


@dataclass
class Frame:
    """线上帧"""

    event: EventName
    data: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """序列化为字典"""
        result: Dict[str, Any] = {"event": self.event.value}
        if self.data is not None:
            result["data"] = self.data
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Frame":
        """从字典反序列化

        Raises:
            MessageFormatException: 缺少 event 字段或事件名未知
        """
        if not isinstance(data, dict):
            raise MessageFormatException(
                f"Frame must be a JSON object, got {type(data).__name__}"
            )
        try:
            event = EventName(data["event"])
        except KeyError:
            raise MessageFormatException("Frame is missing 'event'")
        except (TypeError, ValueError):
            raise MessageFormatException(f"Unknown event: {data.get('event')!r}")
        return cls(event=event, data=data.get("data"))

    def to_json(self) -> str:
        """序列化为JSON字符串"""
        try:
            return json.dumps(self.to_dict(), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationException(f"Failed to serialize frame: {e}")

    @classmethod
    def from_json(cls, raw: Any) -> "Frame":
        """从JSON字符串（或 UTF-8 字节）反序列化"""
        try:
            data = json.loads(raw)
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationException(f"Invalid JSON format: {e}")
        return cls.from_dict(data)


@dataclass
class LocationUpdate:
    """位置更新

    Hub 不校验也不解释任何字段，extra 中的字段原样转发。
    """

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        result.update(self.extra)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocationUpdate":
        extra = {k: v for k, v in data.items() if k not in ("latitude", "longitude")}
        return cls(
            latitude=data.get("latitude"),
            longitude=data.get("longitude"),
            extra=extra,
        )

    def to_frame(self) -> Frame:
        return Frame(EventName.SEND_LOCATION, self.to_dict())


@dataclass
class BroadcastEnvelope:
    """广播信封

    发送者ID与位置字段合并后发给其他所有会话。载荷中的 id 字段
    总是被发送者ID覆盖。
    """

    sender_id: str
    fields: Dict[str, Any] = field(default_factory=dict)

    @property
    def latitude(self) -> Any:
        return self.fields.get("latitude")

    @property
    def longitude(self) -> Any:
        return self.fields.get("longitude")

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"id": self.sender_id}
        result.update(self.fields)
        result["id"] = self.sender_id
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BroadcastEnvelope":
        if not isinstance(data, dict) or "id" not in data:
            raise MessageFormatException("receive-location payload must carry 'id'")
        fields = {k: v for k, v in data.items() if k != "id"}
        return cls(sender_id=str(data["id"]), fields=fields)

    def to_frame(self) -> Frame:
        return Frame(EventName.RECEIVE_LOCATION, self.to_dict())


@dataclass
class DisconnectNotice:
    """断开通知，载荷就是离开会话的ID"""

    sender_id: str

    def to_frame(self) -> Frame:
        return Frame(EventName.USER_DISCONNECT, self.sender_id)

    @classmethod
    def from_data(cls, data: Any) -> "DisconnectNotice":
        if not isinstance(data, str) or not data:
            raise MessageFormatException("user-disconnect payload must be a session id")
        return cls(sender_id=data)
