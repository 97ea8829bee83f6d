"""Workflow session persistence."""

from .repository import DEFAULT_KEY_PREFIX, DEFAULT_TTL_SECONDS, SessionRepository

__all__ = ["SessionRepository", "DEFAULT_KEY_PREFIX", "DEFAULT_TTL_SECONDS"]
