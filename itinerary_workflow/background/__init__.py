"""Background tasks: progress broadcasting and service lifecycle."""

from .broadcaster import BroadcasterState, ProgressBroadcaster
from .lifecycle import ServiceLifecycle

__all__ = ["BroadcasterState", "ProgressBroadcaster", "ServiceLifecycle"]
