"""Configuration system for itinerary-workflow."""

from .loader import get_config_path, load_config
from .schema import (
    LoggingConfig,
    RedisConfig,
    ServerConfig,
    StoreConfig,
    StreamConfig,
    WorkflowConfig,
)

__all__ = [
    "WorkflowConfig",
    "StoreConfig",
    "RedisConfig",
    "StreamConfig",
    "ServerConfig",
    "LoggingConfig",
    "load_config",
    "get_config_path",
]
