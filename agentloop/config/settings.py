"""
Global settings from environment variables.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentLoopSettings(BaseSettings):
    """
    Global configuration loaded from environment variables.

    Environment variables should be prefixed with AGENTLOOP_
    Example: AGENTLOOP_LOG_LEVEL=DEBUG, AGENTLOOP_TOOL_TIMEOUT_SECONDS=10
    """

    model_config = SettingsConfigDict(
        env_prefix="AGENTLOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # Core settings
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["console", "json"] = "console"

    # Tool execution defaults
    tool_timeout_seconds: float | None = Field(default=30.0, gt=0)
    max_worker_threads: int | None = Field(default=None, ge=1)

    # Whole-exchange retry defaults
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=1.0, ge=0.0)


# Global settings instance (singleton)
settings = AgentLoopSettings()


__all__ = ["AgentLoopSettings", "settings"]
