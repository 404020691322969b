"""Location Relay 日志系统

本模块提供统一的日志接口，支持标准日志和富文本日志。
只有根日志器（"location_relay"）配置 handler，子日志器通过继承获得输出。
"""

import logging
import sys
from typing import Optional

from rich.logging import RichHandler

ROOT_LOGGER_NAME = "location_relay"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: Optional[str] = "info",
    log_file: Optional[str] = None,
    enable_rich: Optional[bool] = True,
    log_format: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """设置根日志器

    创建并配置 location_relay 根日志器。支持控制台输出和文件输出。
    重复调用会替换之前安装的处理器。

    Args:
        level: 日志级别
        log_file: 日志文件路径，为 None 时不写文件
        enable_rich: 是否启用 rich 日志
        log_format: 标准处理器使用的格式

    Returns:
        配置好的日志器
    """
    level = (level or "INFO").upper()
    enable_rich = enable_rich if enable_rich is not None else True

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # 清除现有处理器
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if enable_rich:
        rich_handler = RichHandler(
            rich_tracebacks=True, show_time=True, show_level=True, show_path=True
        )
        rich_handler.setLevel(level)
        logger.addHandler(rich_handler)
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(log_format))
        logger.addHandler(console_handler)

    # 文件处理器（如果指定了日志文件）
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(log_format))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """获取日志器

    名称不在 location_relay 命名空间下时会自动加上前缀，保证继承根日志器配置。

    Args:
        name: 日志器名称

    Returns:
        日志器实例
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
