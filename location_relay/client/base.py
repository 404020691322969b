"""Location Relay 客户端"""

import asyncio
import inspect
from typing import Any, Callable, List, Optional

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from ..exceptions import ClientError, ClientNotConnectedError
from ..protocol import (
    BroadcastEnvelope,
    DisconnectNotice,
    EventName,
    Frame,
    LocationUpdate,
    ProtocolException,
)
from ..utils import get_logger


class LocationClient:
    """位置中继客户端

    连接 Hub、上报位置，并通过装饰器注册的处理器接收其他会话的位置和断开通知。

    用户装饰器：
    - @on_location(): 收到 receive-location 时调用，参数为 BroadcastEnvelope
    - @on_user_disconnect(): 收到 user-disconnect 时调用，参数为离开的会话ID

    Usage:
        client = LocationClient("ws://localhost:3000/ws/location")

        @client.on_location()
        async def handle(envelope: BroadcastEnvelope):
            print(envelope.sender_id, envelope.latitude, envelope.longitude)

        await client.connect()
        await client.send_location(22.3, 114.2, accuracy=5)
    """

    def __init__(self, hub_url: str, connect_timeout: float = 10.0):
        self.hub_url = hub_url
        self.connect_timeout = connect_timeout

        self.websocket: Optional[ClientConnection] = None
        self.connected = False
        self.session_id: Optional[str] = None

        # 用户自定义处理器（通过装饰器注册）
        self._location_handlers: List[Callable] = []
        self._disconnect_handlers: List[Callable] = []

        self._registered: Optional[asyncio.Event] = None
        self._receive_task: Optional[asyncio.Task] = None

        self.logger = get_logger("location_relay.client")

    # ===========================================
    # 装饰器 - 用户自定义处理器注册
    # ===========================================

    def on_location(self):
        """receive-location 处理器装饰器"""

        def decorator(func: Callable):
            self._location_handlers.append(func)
            return func

        return decorator

    def on_user_disconnect(self):
        """user-disconnect 处理器装饰器"""

        def decorator(func: Callable):
            self._disconnect_handlers.append(func)
            return func

        return decorator

    # ===========================================
    # 连接和消息发送
    # ===========================================

    async def connect(self) -> str:
        """连接到 Hub 并等待分配会话ID

        Returns:
            Hub 分配的会话ID

        Raises:
            ClientError: 连接失败或 Hub 在分配ID前关闭了连接
        """
        try:
            self.logger.info(f"连接到 Hub: {self.hub_url}")
            self.websocket = await connect(self.hub_url, open_timeout=self.connect_timeout)
        except (OSError, asyncio.TimeoutError) as e:
            self.logger.error(f"连接失败: {e}")
            raise ClientError(f"Failed to connect to {self.hub_url}: {e}") from e
        except Exception as e:
            self.logger.error(f"握手失败: {e}")
            raise ClientError(f"Handshake with {self.hub_url} failed: {e}") from e

        self.connected = True
        self._registered = asyncio.Event()
        self._receive_task = asyncio.create_task(self.receive_loop())

        registered = asyncio.create_task(self._registered.wait())
        done, _ = await asyncio.wait(
            {registered, self._receive_task},
            timeout=self.connect_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
        if registered not in done:
            registered.cancel()
            await self._close()
            raise ClientError("Hub closed the connection before assigning a session id")

        self.logger.info(f"连接成功，会话ID: {self.session_id}")
        return self.session_id

    async def send_frame(self, frame: Frame) -> None:
        """发送一帧

        Raises:
            ClientNotConnectedError: 客户端未连接
        """
        if not self.connected or not self.websocket:
            raise ClientNotConnectedError()

        try:
            await self.websocket.send(frame.to_json())
        except ConnectionClosed as e:
            self.connected = False
            raise ClientNotConnectedError(f"Connection closed: {e}") from e

    async def send_location(
        self, latitude: float, longitude: float, **fields: Any
    ) -> None:
        """上报位置

        Args:
            latitude: 纬度
            longitude: 经度
            **fields: 其他原样转发的字段（如 accuracy）
        """
        update = LocationUpdate(latitude=latitude, longitude=longitude, extra=fields)
        await self.send_frame(update.to_frame())
        self.logger.debug(f"发送位置: {latitude}, {longitude}")

    async def disconnect(self) -> None:
        """显式断开连接"""
        if self.connected and self.websocket:
            try:
                await self.websocket.send(Frame(EventName.DISCONNECT).to_json())
            except ConnectionClosed:
                pass
        await self._close()
        self.logger.info("连接已断开")

    async def _close(self) -> None:
        self.connected = False
        if self.websocket:
            await self.websocket.close()
        if self._receive_task and self._receive_task is not asyncio.current_task():
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
        self.websocket = None

    async def wait_closed(self) -> None:
        """等待接收循环结束（Hub 关闭连接时）"""
        if self._receive_task:
            await self._receive_task

    async def receive_loop(self) -> None:
        """消息监听循环"""
        try:
            async for raw_message in self.websocket:
                try:
                    frame = Frame.from_json(raw_message)
                except ProtocolException as e:
                    self.logger.warning(f"忽略无法解析的帧: {e}")
                    continue
                await self._handle_frame(frame)

        except ConnectionClosed:
            self.logger.info("WebSocket 连接已关闭")
        finally:
            self.connected = False

    async def _handle_frame(self, frame: Frame) -> None:
        """根据事件名分发帧"""
        try:
            if frame.event == EventName.CONNECTED:
                if not isinstance(frame.data, dict) or "id" not in frame.data:
                    raise ProtocolException("connected payload must carry 'id'")
                self.session_id = frame.data["id"]
                self._registered.set()
            elif frame.event == EventName.RECEIVE_LOCATION:
                envelope = BroadcastEnvelope.from_dict(frame.data)
                await self._dispatch(self._location_handlers, envelope)
            elif frame.event == EventName.USER_DISCONNECT:
                notice = DisconnectNotice.from_data(frame.data)
                await self._dispatch(self._disconnect_handlers, notice.sender_id)
            else:
                self.logger.warning(f"未知事件: {frame.event.value}")
        except ProtocolException as e:
            self.logger.warning(f"忽略格式错误的 {frame.event.value} 事件: {e}")

    async def _dispatch(self, handlers: List[Callable], arg: Any) -> None:
        for handler in handlers:
            try:
                result = handler(arg)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(f"处理器 {getattr(handler, '__name__', handler)} 出错: {e}")

    async def __aenter__(self) -> "LocationClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()
