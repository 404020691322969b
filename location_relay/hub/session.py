"""
Location Relay 会话

一个会话对应一个已连接的客户端：持有传输句柄、有界发送队列、
负责清空队列的发送任务，以及一次性的断开标记。
"""

import asyncio
import threading
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from ..protocol import DisconnectReason
from ..utils import get_logger

FailureCallback = Callable[["Session", DisconnectReason], Awaitable[Any]]


class Session:
    """客户端会话"""

    def __init__(
        self,
        session_id: str,
        transport: Any,
        queue_size: int = 256,
        send_timeout: float = 5.0,
    ):
        self.session_id = session_id
        self.transport = transport
        self.connected_at = datetime.now()
        self.send_timeout = send_timeout

        # 出站队列：元素是已序列化的帧文本
        self.queue: "asyncio.Queue[str]" = asyncio.Queue(maxsize=max(1, queue_size))

        self._disconnected = False
        self._flag_lock = threading.Lock()
        self._sender_task: Optional[asyncio.Task] = None

        self.logger = get_logger("location_relay.hub.session")

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    def mark_disconnected(self) -> bool:
        """Connected -> Disconnected 的一次性转换

        Returns:
            只有第一次调用返回 True
        """
        with self._flag_lock:
            if self._disconnected:
                return False
            self._disconnected = True
            return True

    def enqueue(self, text: str) -> bool:
        """非阻塞地把一帧放入发送队列

        已断开的会话直接丢弃该帧。

        Returns:
            队列溢出时返回 False
        """
        if self._disconnected:
            return True
        try:
            self.queue.put_nowait(text)
            return True
        except asyncio.QueueFull:
            return False

    def start_sender(self, on_failure: FailureCallback) -> None:
        """启动发送任务

        Args:
            on_failure: 发送失败或超时时调用，由 Hub 转换为隐式断开
        """
        if self._sender_task is None:
            self._sender_task = asyncio.create_task(
                self._send_loop(on_failure), name=f"relay-send-{self.session_id}"
            )

    async def _send_loop(self, on_failure: FailureCallback) -> None:
        while True:
            text = await self.queue.get()
            reason = None
            try:
                await asyncio.wait_for(
                    self.transport.send(text), timeout=self.send_timeout
                )
            except asyncio.TimeoutError:
                self.logger.warning(
                    f"向会话 {self.session_id} 发送超时 ({self.send_timeout}s)"
                )
                reason = DisconnectReason.DELIVERY_FAILURE
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.warning(f"向会话 {self.session_id} 发送失败: {e}")
                reason = DisconnectReason.DELIVERY_FAILURE
            finally:
                self.queue.task_done()

            if reason is not None:
                await on_failure(self, reason)
                return

    def stop(self) -> int:
        """停止发送任务并丢弃尚未发送的帧

        Returns:
            被丢弃的帧数量
        """
        task = self._sender_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        dropped = 0
        while True:
            try:
                self.queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self.queue.task_done()
            dropped += 1

        if dropped:
            self.logger.debug(f"会话 {self.session_id} 丢弃 {dropped} 条未发送消息")
        return dropped

    async def join(self) -> None:
        """等待发送队列清空"""
        await self.queue.join()

    async def close_transport(self, code: int = 1000, reason: str = "") -> None:
        """关闭底层传输，错误只记录不抛出"""
        try:
            await self.transport.close(code=code, reason=reason)
        except Exception as e:
            self.logger.debug(f"关闭会话 {self.session_id} 传输失败: {e}")
