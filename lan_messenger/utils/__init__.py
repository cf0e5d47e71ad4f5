"""LAN Messenger 工具模块

提供基础设施支持：
- 配置管理 (HubConfig)
- 日志系统 (configure_logging, get_logger)
"""

from .config import HubConfig
from .logger import configure_logging, get_logger

__all__ = [
    # 配置管理
    "HubConfig",
    # 日志系统
    "configure_logging",
    "get_logger",
]
