"""
System and user prompt schemas.

The system prompt is a pydantic model rendered as indented JSON, so the model
sees a stable, machine-readable structure:

- core instructions shared by every agent
- the primary task (the agent's own role, instructions and tools)
- secondary tasks contributed by extensions
- facts (extension facts, then caller facts)
- request metadata and hints
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import to_json

CORE_INSTRUCTIONS = (
    "Your main job is to answer the user query as provided in the user_input field "
    "of the user prompt. Follow the role and instructions of the primary task. "
    "Use the provided tools when they help; never invent tool results. "
    "Complete the secondary tasks, if any, and put their results in their output fields. "
    "Use the knowledge (facts) provided to you where relevant."
)


class Fact(BaseModel):
    """A named piece of knowledge handed to the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    content: str


class FactList(BaseModel):
    """Facts grouped under a description, e.g. "Facts about the user"."""

    model_config = ConfigDict(frozen=True)

    description: str
    facts: list[Fact] = Field(default_factory=list)


class ToolSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""


class Task(BaseModel):
    """
    A task for the model.

    Attributes:
        objective: What the task should achieve
        output_field: Output key the task's result must be written to
        instructions: Free-form instructions (any JSON-serializable value)
        additional_instructions: Extra instructions
        tools: Tools relevant to the task
        facts: Knowledge relevant to the task
    """

    objective: str
    output_field: str | None = None
    instructions: Any = None
    additional_instructions: Any = None
    tools: list[ToolSummary] | None = None
    facts: list[FactList] | None = None


class ExtensionPromptSchema(BaseModel):
    """Prompt content contributed by one extension."""

    tasks: list[Task] = Field(default_factory=list)
    hints: list[Any] = Field(default_factory=list)


class AdditionalData(BaseModel):
    session_id: str | None = None
    user_id: str | None = None
    custom_params: dict[str, Any] | None = None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SystemPrompt(BaseModel):
    name: str
    core_instructions: str = CORE_INSTRUCTIONS
    primary_task: Task
    secondary_tasks: list[Task] = Field(default_factory=list)
    facts: list[FactList] = Field(default_factory=list)
    additional_data: AdditionalData | None = None
    hints: list[Any] = Field(default_factory=list)
    current_time: str = Field(default_factory=_utc_now)

    def render(self) -> str:
        """
        Render as indented JSON.

        Raises:
            pydantic_core.PydanticSerializationError: If a free-form value
                cannot be serialized
        """
        return self.model_dump_json(indent=2, exclude_none=True)


class ValidationErrorFixPrompt(BaseModel):
    """Corrective prompt sent after the output failed validation."""

    objective: str = "Fix the validation errors in the previously generated output"
    validation_errors: list[str]
    previously_generated_output: Any = None


def render_user_prompt(request: Any) -> str:
    """Encode the request as ``{"user_input": ...}`` JSON."""
    return to_json({"user_input": request}, indent=2).decode()


__all__ = [
    "CORE_INSTRUCTIONS",
    "Fact",
    "FactList",
    "ToolSummary",
    "Task",
    "ExtensionPromptSchema",
    "AdditionalData",
    "SystemPrompt",
    "ValidationErrorFixPrompt",
    "render_user_prompt",
]
