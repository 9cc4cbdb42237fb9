"""
LLM providers - the Model boundary and its implementations.
"""

from .base import (
    OUTPUT_KEY,
    Model,
    ModelOutput,
    ModelOutputDefinition,
    StreamHandler,
    ToolRunner,
    push_chunk,
)
from .scripted import ScriptedModel, ScriptedToolCall, ScriptedTurn, ScriptExhaustedError

__all__ = [
    "OUTPUT_KEY",
    "Model",
    "ModelOutput",
    "ModelOutputDefinition",
    "StreamHandler",
    "ToolRunner",
    "push_chunk",
    "ScriptedModel",
    "ScriptedToolCall",
    "ScriptedTurn",
    "ScriptExhaustedError",
]
