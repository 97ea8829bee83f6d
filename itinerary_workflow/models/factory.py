# itinerary_workflow/models/factory.py
"""Factory for creating the configured key-value store."""

from itinerary_workflow.config.schema import WorkflowConfig

from .memory_store import InMemoryKeyValueStore
from .redis_store import RedisKeyValueStore
from .store import KeyValueStore


def create_store(config: WorkflowConfig) -> KeyValueStore:
    """
    Create the appropriate store based on config.store.backend.

    Args:
        config: Root WorkflowConfig

    Returns:
        RedisKeyValueStore for backend="redis", InMemoryKeyValueStore for backend="memory"
    """
    if config.store.backend == "redis":
        return RedisKeyValueStore(
            url=config.redis.url,
            host=config.redis.host,
            port=config.redis.port,
            db=config.redis.db,
            password=config.redis.password,
            socket_timeout=config.redis.socket_timeout,
        )
    return InMemoryKeyValueStore()
