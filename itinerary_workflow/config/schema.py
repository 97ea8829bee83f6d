# itinerary_workflow/config/schema.py
"""
Pydantic configuration models for itinerary-workflow.

All models use extra="ignore" to allow unknown YAML keys without crashing.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class StoreConfig(BaseModel):
    """Session store configuration."""

    model_config = ConfigDict(extra="ignore")

    backend: Literal["memory", "redis"] = Field(
        default="memory", description="Key-value store backend"
    )
    key_prefix: str = Field(
        default="workflow:session:", description="Prefix for session keys"
    )
    session_ttl_seconds: int = Field(
        default=3600,
        ge=1,
        description="Session lifetime, re-applied on every write",
    )
    max_write_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Read-modify-write attempts before giving up on a contended session",
    )


class RedisConfig(BaseModel):
    """Redis connection configuration (used when store.backend == 'redis')."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = Field(
        default=None, description="redis:// URL (overrides host/port/db/password)"
    )
    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    db: int = Field(default=0, ge=0, description="Redis database index")
    password: str | None = Field(default=None, description="Redis password")
    socket_timeout: float = Field(
        default=5.0, gt=0.0, description="Per-command timeout in seconds"
    )


class StreamConfig(BaseModel):
    """Progress stream configuration."""

    model_config = ConfigDict(extra="ignore")

    poll_interval: float = Field(
        default=2.0, gt=0.0, description="Seconds between session reads"
    )
    safety_timeout: float = Field(
        default=300.0,
        gt=0.0,
        description="Hard upper bound on a stream's lifetime in seconds",
    )


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    model_config = ConfigDict(extra="ignore")

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Root log level"
    )


class WorkflowConfig(BaseModel):
    """Root configuration for itinerary-workflow."""

    model_config = ConfigDict(extra="ignore")

    store: StoreConfig = Field(default_factory=StoreConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
