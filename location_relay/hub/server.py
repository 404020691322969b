"""Hub WebSocket 服务器"""

from http import HTTPStatus
from typing import Optional
from urllib.parse import urlsplit

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from .relay import ConnectionHub
from ..exceptions import ServerError
from ..protocol import DisconnectReason, EventName, Frame, ProtocolException
from ..utils import RelayConfig, get_config, get_logger


class HubServer:
    """Hub WebSocket 服务器

    在固定路径上接受 WebSocket 连接，每个连接对应 Hub 中的一个会话。
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        path: Optional[str] = None,
        max_connections: Optional[int] = None,
        config: Optional[RelayConfig] = None,
    ):
        self.config = config or get_config()
        self.host = host if host is not None else self.config.hub_host
        self.port = port if port is not None else self.config.hub_port
        self.path = path or self.config.hub_path
        # 0 表示不限制
        self.max_connections = (
            max_connections
            if max_connections is not None
            else self.config.hub_max_connections
        )

        # 核心组件
        self.hub = ConnectionHub(self.config)
        if self.config.metrics_enabled:
            self.hub.enable_metrics()

        # 服务器状态
        self.server: Optional[Server] = None
        self.running = False

        self.logger = get_logger("location_relay.hub.server")

    @property
    def bound_port(self) -> Optional[int]:
        """实际监听的端口（port=0 时由系统分配）"""
        if not self.server:
            return None
        for sock in self.server.sockets:
            return sock.getsockname()[1]
        return None

    @property
    def url(self) -> str:
        """客户端连接地址"""
        port = self.bound_port or self.port
        return f"ws://{self.host}:{port}{self.path}"

    async def start(self) -> None:
        """启动服务器"""
        if self.running:
            self.logger.warning("服务器已经在运行")
            return

        try:
            self.logger.info(f"启动 Hub 服务器: {self.host}:{self.port}{self.path}")

            self.server = await serve(
                self._handle_client,
                self.host,
                self.port,
                process_request=self._check_path,
                ping_interval=self.config.ws_ping_interval,
                ping_timeout=self.config.ws_ping_timeout,
                close_timeout=self.config.ws_close_timeout,
            )

            self.running = True
            self.logger.info(f"Hub 服务器启动成功: {self.url}")

        except OSError as e:
            self.logger.error(f"启动服务器失败: {e}")
            raise ServerError(
                f"Failed to start hub server: {e}",
                {"host": self.host, "port": self.port},
            ) from e

    async def stop(self) -> None:
        """停止服务器"""
        if not self.running:
            return

        self.logger.info("停止 Hub 服务器")
        self.running = False

        try:
            # 首先断开所有会话
            await self.hub.close(code=1001, reason="Server shutdown")

            if self.server:
                self.server.close()
                await self.server.wait_closed()
                self.server = None

            self.logger.info("Hub 服务器已停止")

        except Exception as e:
            self.logger.error(f"停止服务器时出错: {e}")

    def _check_path(
        self, connection: ServerConnection, request: Request
    ) -> Optional[Response]:
        """拒绝固定路径以外的握手请求"""
        request_path = urlsplit(request.path).path
        if request_path != self.path:
            self.logger.debug(f"拒绝路径 {request_path} 的连接")
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """处理客户端连接

        Args:
            websocket: WebSocket 连接
        """
        # 检查连接数限制
        if self.max_connections and self.hub.session_count() >= self.max_connections:
            self.logger.warning(
                f"拒绝连接 {websocket.remote_address}: 超过最大连接数"
            )
            await websocket.close(code=1013, reason="Server overloaded")
            return

        session_id = await self.hub.on_connect(websocket)
        self.logger.debug(f"客户端 {websocket.remote_address} -> 会话 {session_id}")

        try:
            # 进入消息循环
            async for raw_message in websocket:
                if not await self._handle_frame(session_id, raw_message):
                    break

        except ConnectionClosed:
            self.logger.debug(f"会话 {session_id} 连接已关闭")
        except Exception as e:
            self.logger.error(f"处理会话 {session_id} 连接失败: {e}")

        finally:
            await self.hub.on_disconnect(session_id, DisconnectReason.TRANSPORT)

    async def _handle_frame(self, session_id: str, raw_message) -> bool:
        """处理一帧

        Returns:
            是否继续接收（客户端显式断开时返回 False）
        """
        try:
            frame = Frame.from_json(raw_message)
        except ProtocolException as e:
            self.logger.warning(f"丢弃会话 {session_id} 的畸形帧: {e}")
            await self._record_dropped("malformed")
            return True

        if frame.event == EventName.SEND_LOCATION:
            await self.hub.on_location_update(session_id, frame.data)
        elif frame.event == EventName.DISCONNECT:
            await self.hub.on_disconnect(session_id, DisconnectReason.EXPLICIT)
            return False
        else:
            self.logger.warning(
                f"丢弃会话 {session_id} 发送的服务端事件: {frame.event.value}"
            )
            await self._record_dropped("unexpected_event")

        return True

    async def _record_dropped(self, reason: str) -> None:
        if self.hub.metrics is not None:
            await self.hub.metrics.record_frame_dropped(reason)

    def get_stats(self) -> dict:
        """获取服务器统计信息

        Returns:
            统计信息字典
        """
        return {
            "server": {
                "running": self.running,
                "host": self.host,
                "port": self.bound_port or self.port,
                "path": self.path,
                "max_connections": self.max_connections,
            },
            **self.hub.get_stats(),
        }


# 便捷的启动函数
async def start_hub_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    path: Optional[str] = None,
    max_connections: Optional[int] = None,
    config: Optional[RelayConfig] = None,
) -> HubServer:
    """启动 Hub 服务器

    Args:
        host: 监听地址
        port: 监听端口
        path: WebSocket 路径
        max_connections: 最大连接数
        config: 配置，默认使用全局配置

    Returns:
        Hub 服务器实例
    """
    server = HubServer(host, port, path, max_connections, config)
    await server.start()
    return server
