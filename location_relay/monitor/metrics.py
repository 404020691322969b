"""Location Relay 指标收集器"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from ..protocol import DisconnectReason
from ..utils import get_logger


@dataclass
class MetricPoint:
    """指标数据点"""

    timestamp: float
    value: Any
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class SessionMetric:
    """会话指标"""

    session_id: str
    connected_at: float
    disconnected_at: Optional[float] = None
    reason: Optional[str] = None

    @property
    def duration(self) -> float:
        """连接持续时间"""
        if self.disconnected_at:
            return self.disconnected_at - self.connected_at
        return time.time() - self.connected_at


class MetricsBackend(ABC):
    """指标后端抽象接口"""

    @abstractmethod
    async def record_session(self, metric: SessionMetric) -> None:
        """记录会话指标"""
        pass

    @abstractmethod
    async def record_counter(
        self, name: str, value: float, labels: Dict[str, str] = None
    ) -> None:
        """记录计数器指标"""
        pass

    @abstractmethod
    async def record_gauge(
        self, name: str, value: float, labels: Dict[str, str] = None
    ) -> None:
        """记录仪表指标"""
        pass

    @abstractmethod
    async def record_histogram(
        self, name: str, value: float, labels: Dict[str, str] = None
    ) -> None:
        """记录直方图指标"""
        pass

    @abstractmethod
    async def export_metrics(self) -> Dict[str, Any]:
        """导出指标数据"""
        pass


class MemoryBackend(MetricsBackend):
    """内存后端实现"""

    def __init__(self, max_points: int = 10000):
        self.max_points = max_points

        self.sessions: Dict[str, SessionMetric] = {}
        self.counters: Dict[str, List[MetricPoint]] = {}
        self.gauges: Dict[str, List[MetricPoint]] = {}
        self.histograms: Dict[str, List[MetricPoint]] = {}

    def _append(
        self,
        store: Dict[str, List[MetricPoint]],
        name: str,
        value: float,
        labels: Optional[Dict[str, str]],
    ) -> None:
        points = store.setdefault(name, [])
        points.append(MetricPoint(timestamp=time.time(), value=value, labels=labels or {}))
        # 限制存储数量
        if len(points) > self.max_points:
            points.pop(0)

    async def record_session(self, metric: SessionMetric) -> None:
        """记录会话指标（同一会话的后续记录覆盖之前的记录）"""
        self.sessions[metric.session_id] = metric
        if len(self.sessions) > self.max_points:
            oldest = next(iter(self.sessions))
            del self.sessions[oldest]

    async def record_counter(
        self, name: str, value: float, labels: Dict[str, str] = None
    ) -> None:
        self._append(self.counters, name, value, labels)

    async def record_gauge(
        self, name: str, value: float, labels: Dict[str, str] = None
    ) -> None:
        self._append(self.gauges, name, value, labels)

    async def record_histogram(
        self, name: str, value: float, labels: Dict[str, str] = None
    ) -> None:
        self._append(self.histograms, name, value, labels)

    @staticmethod
    def _export_points(store: Dict[str, List[MetricPoint]]) -> Dict[str, Any]:
        return {
            name: [
                {
                    "timestamp": point.timestamp,
                    "value": point.value,
                    "labels": point.labels,
                }
                for point in points
            ]
            for name, points in store.items()
        }

    async def export_metrics(self) -> Dict[str, Any]:
        """导出指标数据"""
        return {
            "sessions": [
                {
                    "session_id": s.session_id,
                    "connected_at": s.connected_at,
                    "disconnected_at": s.disconnected_at,
                    "reason": s.reason,
                    "duration": s.duration,
                }
                for s in self.sessions.values()
            ],
            "counters": self._export_points(self.counters),
            "gauges": self._export_points(self.gauges),
            "histograms": self._export_points(self.histograms),
        }


class MetricsCollector:
    """指标收集器"""

    def __init__(self, backend: Optional[MetricsBackend] = None):
        self.backend = backend or MemoryBackend()
        self.logger = get_logger("location_relay.monitor")

        # 内部计数器
        self._active_sessions = 0
        self._sessions_total = 0
        self._updates_received = 0
        self._frames_queued = 0
        self._delivery_failures = 0
        self._frames_dropped = 0
        self._disconnects: Dict[str, int] = {}

    async def record_session_connected(self, session_id: str) -> None:
        """记录会话连接"""
        await self.backend.record_session(
            SessionMetric(session_id=session_id, connected_at=time.time())
        )

        self._active_sessions += 1
        self._sessions_total += 1
        await self.backend.record_gauge("active_sessions", self._active_sessions)
        await self.backend.record_counter("session_connections_total", 1)

        self.logger.debug(f"记录会话连接: {session_id}")

    async def record_session_disconnected(
        self, session_id: str, reason: DisconnectReason
    ) -> None:
        """记录会话断开"""
        metric = getattr(self.backend, "sessions", {}).get(session_id)
        if metric is not None:
            metric.disconnected_at = time.time()
            metric.reason = reason.value
            await self.backend.record_session(metric)

        self._active_sessions = max(0, self._active_sessions - 1)
        self._disconnects[reason.value] = self._disconnects.get(reason.value, 0) + 1
        await self.backend.record_gauge("active_sessions", self._active_sessions)
        await self.backend.record_counter(
            "session_disconnections_total", 1, {"reason": reason.value}
        )

        self.logger.debug(f"记录会话断开: {session_id} ({reason.value})")

    async def record_update_received(self, session_id: str) -> None:
        """记录收到的位置更新"""
        self._updates_received += 1
        await self.backend.record_counter("location_updates_total", 1)

    async def record_broadcast(self, event: str, queued: int) -> None:
        """记录一次广播的扇出数量"""
        self._frames_queued += queued
        await self.backend.record_counter("frames_queued_total", queued, {"event": event})
        await self.backend.record_histogram("broadcast_fanout", queued, {"event": event})

    async def record_delivery_failure(self, session_id: str) -> None:
        """记录投递失败"""
        self._delivery_failures += 1
        await self.backend.record_counter("delivery_failures_total", 1)

    async def record_frame_dropped(self, reason: str) -> None:
        """记录被丢弃的畸形帧"""
        self._frames_dropped += 1
        await self.backend.record_counter("frames_dropped_total", 1, {"reason": reason})

    async def export_metrics(self) -> Dict[str, Any]:
        """导出所有指标"""
        return await self.backend.export_metrics()

    def get_summary(self) -> Dict[str, Any]:
        """获取指标摘要"""
        return {
            "active_sessions": self._active_sessions,
            "sessions_total": self._sessions_total,
            "updates_received": self._updates_received,
            "frames_queued": self._frames_queued,
            "delivery_failures": self._delivery_failures,
            "frames_dropped": self._frames_dropped,
            "disconnects": dict(self._disconnects),
        }
