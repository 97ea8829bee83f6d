"""HTTP API for workflow status and progress streaming."""

from .app import create_app

__all__ = ["create_app"]
