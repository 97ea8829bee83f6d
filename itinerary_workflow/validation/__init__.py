"""Input validation utilities."""

from .sanitize import sanitize_workflow_id

__all__ = ["sanitize_workflow_id"]
