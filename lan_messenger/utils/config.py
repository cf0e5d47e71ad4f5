"""LAN Messenger 配置管理

本模块提供统一的配置管理接口，支持环境变量、默认值和运行时配置。
配置优先级：命令行参数 > 环境变量 > 默认值
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

ENV_PREFIX = "LAN_HUB_"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_optional_float(name: str, default: Optional[float]) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return float(value)


@dataclass
class HubConfig:
    """Hub 配置类

    包含 Hub 服务器、会话生命周期、附加命令和日志的所有配置项。
    """

    # 监听配置
    host: str = "0.0.0.0"
    port: int = 5000
    ws_port: Optional[int] = None
    max_sessions: Optional[int] = None  # None 表示不限制连接数

    # 附加命令
    enable_eval: bool = True
    enable_geo: bool = False
    snapshot_path: str = "users.json"

    # 会话配置
    outbound_queue_limit: int = 1000
    drain_timeout: float = 5.0
    max_line_length: int = 64 * 1024
    handshake_timeout: Optional[float] = None
    read_timeout: Optional[float] = None
    default_name: str = "Anonymous"

    # 日志配置
    log_level: str = "INFO"
    log_file: Optional[str] = None
    enable_rich_logging: bool = True

    # 监控配置
    stats_interval: Optional[float] = None

    # 自定义配置
    custom: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "HubConfig":
        """从环境变量创建配置

        环境变量格式：LAN_HUB_<配置名大写>

        Returns:
            从环境变量读取的配置实例
        """
        config = cls()

        config.host = os.getenv(f"{ENV_PREFIX}HOST", config.host)
        config.port = int(os.getenv(f"{ENV_PREFIX}PORT", str(config.port)))
        config.ws_port = _env_optional_int(f"{ENV_PREFIX}WS_PORT", config.ws_port)
        config.max_sessions = _env_optional_int(
            f"{ENV_PREFIX}MAX_SESSIONS", config.max_sessions
        )

        config.enable_eval = _env_bool(f"{ENV_PREFIX}ENABLE_EVAL", config.enable_eval)
        config.enable_geo = _env_bool(f"{ENV_PREFIX}ENABLE_GEO", config.enable_geo)
        config.snapshot_path = os.getenv(
            f"{ENV_PREFIX}SNAPSHOT_PATH", config.snapshot_path
        )

        config.outbound_queue_limit = int(
            os.getenv(
                f"{ENV_PREFIX}OUTBOUND_QUEUE_LIMIT", str(config.outbound_queue_limit)
            )
        )
        config.drain_timeout = float(
            os.getenv(f"{ENV_PREFIX}DRAIN_TIMEOUT", str(config.drain_timeout))
        )
        config.max_line_length = int(
            os.getenv(f"{ENV_PREFIX}MAX_LINE_LENGTH", str(config.max_line_length))
        )
        config.handshake_timeout = _env_optional_float(
            f"{ENV_PREFIX}HANDSHAKE_TIMEOUT", config.handshake_timeout
        )
        config.read_timeout = _env_optional_float(
            f"{ENV_PREFIX}READ_TIMEOUT", config.read_timeout
        )
        config.default_name = os.getenv(
            f"{ENV_PREFIX}DEFAULT_NAME", config.default_name
        )

        config.log_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL", config.log_level)
        config.log_file = os.getenv(f"{ENV_PREFIX}LOG_FILE", config.log_file)
        config.enable_rich_logging = _env_bool(
            f"{ENV_PREFIX}ENABLE_RICH_LOGGING", config.enable_rich_logging
        )

        config.stats_interval = _env_optional_float(
            f"{ENV_PREFIX}STATS_INTERVAL", config.stats_interval
        )

        return config

    def update(self, **kwargs) -> None:
        """更新配置项

        None 值会被忽略，方便直接传入未指定的命令行参数。

        Args:
            **kwargs: 要更新的配置项
        """
        for key, value in kwargs.items():
            if value is None:
                continue
            if hasattr(self, key):
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
        if hasattr(self, key):
            return getattr(self, key)
        return self.custom.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典

        Returns:
            配置的字典表示
        """
        result = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "custom"}
        result.update(self.custom)
        return result
