"""
Runtime module - services shared by running agents.
"""

from .event_bus import CapturingObserver, EventBus, EventHandler

__all__ = ["EventBus", "EventHandler", "CapturingObserver"]
