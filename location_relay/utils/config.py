"""Location Relay 配置管理

本模块提供统一的配置管理接口，支持环境变量、默认值和运行时配置。
配置优先级：运行时设置 > 环境变量 > 默认值
"""

import os
from typing import Any, Dict, Optional
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RelayConfig:
    """Location Relay 配置类

    包含 Hub 服务器、投递队列、WebSocket、日志和监控的配置选项。
    """

    # Hub 服务器配置
    hub_host: str = "localhost"
    hub_port: int = 3000
    hub_path: str = "/ws/location"
    hub_max_connections: int = 10000  # 0 表示不限制

    # 投递配置
    send_queue_size: int = 256
    send_timeout: float = 5.0

    # WebSocket 配置
    ws_ping_interval: float = 20.0
    ws_ping_timeout: float = 20.0
    ws_close_timeout: float = 10.0

    # 日志配置
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None
    enable_rich_logging: bool = True

    # 监控配置
    metrics_enabled: bool = False

    # 自定义配置
    custom: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """从环境变量创建配置

        读取环境变量并创建配置实例。环境变量格式：RELAY_<配置名>

        Returns:
            从环境变量读取的配置实例
        """
        config = cls()

        # Hub 配置
        config.hub_host = os.getenv("RELAY_HUB_HOST", config.hub_host)
        config.hub_port = int(os.getenv("RELAY_HUB_PORT", str(config.hub_port)))
        config.hub_path = os.getenv("RELAY_HUB_PATH", config.hub_path)
        config.hub_max_connections = int(
            os.getenv("RELAY_HUB_MAX_CONNECTIONS", str(config.hub_max_connections))
        )

        # 投递配置
        config.send_queue_size = int(
            os.getenv("RELAY_SEND_QUEUE_SIZE", str(config.send_queue_size))
        )
        config.send_timeout = float(
            os.getenv("RELAY_SEND_TIMEOUT", str(config.send_timeout))
        )

        # WebSocket 配置
        config.ws_ping_interval = float(
            os.getenv("RELAY_WS_PING_INTERVAL", str(config.ws_ping_interval))
        )
        config.ws_ping_timeout = float(
            os.getenv("RELAY_WS_PING_TIMEOUT", str(config.ws_ping_timeout))
        )
        config.ws_close_timeout = float(
            os.getenv("RELAY_WS_CLOSE_TIMEOUT", str(config.ws_close_timeout))
        )

        # 日志配置
        config.log_level = os.getenv("RELAY_LOG_LEVEL", config.log_level)
        config.log_format = os.getenv("RELAY_LOG_FORMAT", config.log_format)
        config.log_file = os.getenv("RELAY_LOG_FILE", config.log_file)
        config.enable_rich_logging = _env_bool(
            "RELAY_ENABLE_RICH_LOGGING", config.enable_rich_logging
        )

        # 监控配置
        config.metrics_enabled = _env_bool(
            "RELAY_METRICS_ENABLED", config.metrics_enabled
        )

        return config

    def update(self, **kwargs) -> None:
        """更新配置项

        Args:
            **kwargs: 要更新的配置项，未知的键放入 custom
        """
        for key, value in kwargs.items():
            if hasattr(self, key) and key != "custom":
                setattr(self, key, value)
            else:
                self.custom[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """获取配置项

        Args:
            key: 配置项名称
            default: 默认值

        Returns:
            配置项的值
        """
        if hasattr(self, key) and key != "custom":
            return getattr(self, key)
        return self.custom.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典

        Returns:
            配置的字典表示
        """
        result = {
            # Hub 配置
            "hub_host": self.hub_host,
            "hub_port": self.hub_port,
            "hub_path": self.hub_path,
            "hub_max_connections": self.hub_max_connections,
            # 投递配置
            "send_queue_size": self.send_queue_size,
            "send_timeout": self.send_timeout,
            # WebSocket 配置
            "ws_ping_interval": self.ws_ping_interval,
            "ws_ping_timeout": self.ws_ping_timeout,
            "ws_close_timeout": self.ws_close_timeout,
            # 日志配置
            "log_level": self.log_level,
            "log_format": self.log_format,
            "log_file": self.log_file,
            "enable_rich_logging": self.enable_rich_logging,
            # 监控配置
            "metrics_enabled": self.metrics_enabled,
        }

        # 添加自定义配置
        result.update(self.custom)
        return result


# 全局配置实例
_global_config: Optional[RelayConfig] = None


def get_config() -> RelayConfig:
    """获取全局配置

    如果配置尚未初始化，则从环境变量创建默认配置。

    Returns:
        全局配置实例
    """
    global _global_config
    if _global_config is None:
        _global_config = RelayConfig.from_env()
    return _global_config


def set_config(config: RelayConfig) -> None:
    """设置全局配置

    Args:
        config: 新的配置实例
    """
    global _global_config
    _global_config = config


def update_config(**kwargs) -> None:
    """更新全局配置

    Args:
        **kwargs: 要更新的配置项
    """
    config = get_config()
    config.update(**kwargs)


def reset_config() -> None:
    """重置全局配置

    清除当前配置，下次调用 get_config() 时会重新从环境变量读取。
    """
    global _global_config
    _global_config = None
