"""Hub 位置中继

ConnectionHub 与传输无关：任何提供 async send(text) 和
async close(code, reason) 的对象都可以作为会话的传输。
"""

import asyncio
from typing import Any, Dict, List, Optional, Set, Tuple

from .manager import SessionManager
from .router import MessageRouter
from .session import Session
from ..protocol import (
    BroadcastEnvelope,
    DisconnectNotice,
    DisconnectReason,
    EventName,
    Frame,
    SerializationException,
)
from ..utils import RelayConfig, get_config, get_logger


class ConnectionHub:
    """连接中枢

    接受会话、把位置更新转发给其他所有会话、在会话结束时广播断开通知。
    Hub 不保存任何位置状态。
    """

    def __init__(self, config: Optional[RelayConfig] = None):
        self.config = config or get_config()

        # 核心组件
        self.session_manager = SessionManager()
        self.router = MessageRouter(self.session_manager)

        # 后台关闭传输的任务
        self._background: Set[asyncio.Task] = set()

        # 监控（可选）
        self._metrics_enabled = False
        self._metrics_collector = None

        self.logger = get_logger("location_relay.hub.relay")

    async def on_connect(self, transport: Any) -> str:
        """注册新会话

        Args:
            transport: 会话的传输对象

        Returns:
            新会话ID
        """
        session_id = self.session_manager.generate_session_id()
        session = Session(
            session_id,
            transport,
            queue_size=self.config.send_queue_size,
            send_timeout=self.config.send_timeout,
        )
        session.start_sender(self._handle_delivery_failure)

        # 告知客户端自己的ID，先于任何广播入队
        self.router.send_to(session, Frame(EventName.CONNECTED, {"id": session_id}))
        self.session_manager.add_session(session)

        if self._metrics_enabled and self._metrics_collector:
            await self._metrics_collector.record_session_connected(session_id)

        return session_id

    async def on_location_update(self, session_id: str, payload: Any) -> int:
        """转发位置更新

        Args:
            session_id: 发送者会话ID
            payload: 位置字段，原样转发

        Returns:
            成功入队的接收者数量
        """
        session = self.session_manager.get_session(session_id)
        if session is None or session.disconnected:
            self.logger.debug(f"忽略未知会话 {session_id} 的位置更新")
            return 0

        if not isinstance(payload, dict):
            self.logger.warning(
                f"丢弃会话 {session_id} 的畸形位置更新: {type(payload).__name__}"
            )
            if self._metrics_enabled and self._metrics_collector:
                await self._metrics_collector.record_frame_dropped("payload_type")
            return 0

        if self._metrics_enabled and self._metrics_collector:
            await self._metrics_collector.record_update_received(session_id)

        envelope = BroadcastEnvelope(sender_id=session_id, fields=dict(payload))
        try:
            queued, overflowed = self.router.broadcast(
                envelope.to_frame(), exclude=session_id
            )
        except SerializationException as e:
            self.logger.warning(f"丢弃会话 {session_id} 无法序列化的位置更新: {e}")
            if self._metrics_enabled and self._metrics_collector:
                await self._metrics_collector.record_frame_dropped("serialization")
            return 0

        if self._metrics_enabled and self._metrics_collector:
            await self._metrics_collector.record_broadcast(
                EventName.RECEIVE_LOCATION.value, queued
            )

        await self._disconnect_overflowed(overflowed)
        return queued

    async def on_disconnect(
        self,
        session_id: str,
        reason: DisconnectReason = DisconnectReason.TRANSPORT,
    ) -> bool:
        """结束会话并广播断开通知

        幂等：同一会话只有第一次调用生效。

        Args:
            session_id: 会话ID
            reason: 断开原因

        Returns:
            本次调用是否完成了断开转换
        """
        pending: List[Tuple[str, DisconnectReason]] = [(session_id, reason)]
        first = True
        performed = False

        # 广播通知可能让其他会话队列溢出，逐个处理而不是递归
        while pending:
            current_id, current_reason = pending.pop(0)
            overflowed = await self._disconnect_one(current_id, current_reason)
            if first:
                performed = overflowed is not None
                first = False
            for session in overflowed or []:
                pending.append((session.session_id, DisconnectReason.OVERFLOW))

        return performed

    async def _disconnect_one(
        self, session_id: str, reason: DisconnectReason
    ) -> Optional[List[Session]]:
        session = self.session_manager.get_session(session_id)
        if session is None or not session.mark_disconnected():
            self.logger.debug(f"会话 {session_id} 已断开，忽略重复断开")
            return None

        self.session_manager.remove_session(session_id)
        session.stop()
        self.logger.info(f"会话 {session_id} 断开 ({reason.value})")

        if reason != DisconnectReason.TRANSPORT:
            self._spawn(
                session.close_transport(
                    code=1011 if reason == DisconnectReason.DELIVERY_FAILURE else 1000,
                    reason=reason.value,
                )
            )

        queued, overflowed = self.router.broadcast(
            DisconnectNotice(session_id).to_frame(), exclude=session_id
        )

        if self._metrics_enabled and self._metrics_collector:
            await self._metrics_collector.record_session_disconnected(session_id, reason)
            if reason == DisconnectReason.DELIVERY_FAILURE:
                await self._metrics_collector.record_delivery_failure(session_id)
            await self._metrics_collector.record_broadcast(
                EventName.USER_DISCONNECT.value, queued
            )

        return overflowed

    async def _disconnect_overflowed(self, overflowed: List[Session]) -> None:
        for session in overflowed:
            self.logger.warning(f"会话 {session.session_id} 发送队列溢出，断开连接")
            await self.on_disconnect(session.session_id, DisconnectReason.OVERFLOW)

    async def _handle_delivery_failure(
        self, session: Session, reason: DisconnectReason
    ) -> None:
        await self.on_disconnect(session.session_id, reason)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def flush(self) -> None:
        """等待所有会话的发送队列清空"""
        sessions = self.session_manager.snapshot().values()
        await asyncio.gather(*(session.join() for session in sessions))

    async def close(self, code: int = 1001, reason: str = "Server shutdown") -> None:
        """关闭全部会话，不广播断开通知"""
        sessions = self.session_manager.snapshot()
        closing = []

        for session_id, session in sessions.items():
            if not session.mark_disconnected():
                continue
            self.session_manager.remove_session(session_id)
            session.stop()
            closing.append(session.close_transport(code=code, reason=reason))

            if self._metrics_enabled and self._metrics_collector:
                await self._metrics_collector.record_session_disconnected(
                    session_id, DisconnectReason.EXPLICIT
                )

        if closing:
            await asyncio.gather(*closing, return_exceptions=True)
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        self.logger.info(f"已关闭 {len(closing)} 个会话")

    def session_ids(self) -> List[str]:
        """获取当前所有会话ID"""
        return self.session_manager.get_all_session_ids()

    def session_count(self) -> int:
        """获取当前会话数量"""
        return self.session_manager.get_session_count()

    def enable_metrics(self, collector=None) -> None:
        """启用监控

        Args:
            collector: 指标收集器，如果为 None 则使用默认收集器
        """
        self._metrics_enabled = True
        if collector is None:
            from ..monitor import MetricsCollector

            self._metrics_collector = MetricsCollector()
        else:
            self._metrics_collector = collector

    def disable_metrics(self) -> None:
        """禁用监控"""
        self._metrics_enabled = False
        self._metrics_collector = None

    @property
    def metrics(self):
        return self._metrics_collector

    def get_stats(self) -> Dict[str, Any]:
        """获取 Hub 统计信息"""
        stats: Dict[str, Any] = {"sessions": self.session_manager.get_stats()}
        if self._metrics_enabled and self._metrics_collector:
            stats["metrics"] = self._metrics_collector.get_summary()
        return stats
