"""
Configuration module - global settings and per-agent setup.
"""

from .settings import AgentLoopSettings, settings
from .schema import AgentSetup, ModelSettings, RetrySetup

__all__ = [
    "AgentLoopSettings",
    "settings",
    "AgentSetup",
    "ModelSettings",
    "RetrySetup",
]
