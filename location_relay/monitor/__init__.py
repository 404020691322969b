"""
监控和指标模块

独立的可插拔监控工具：
- 指标收集器
- 内存后端
"""

from .metrics import MetricsCollector, MetricsBackend, MemoryBackend, SessionMetric

__all__ = [
    "MetricsCollector",
    "MetricsBackend",
    "MemoryBackend",
    "SessionMetric",
]
