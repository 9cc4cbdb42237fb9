"""
AgentExtension - pluggable behaviour composed into an agent.

Extensions (sub-agent registries, session memory, guardrails, ...) add prompt
content, tools and seed messages before a run, and may claim one extra field
of the final structured output which they consume after the run. The agent
treats every extension through this interface only.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from agentloop.agent.prompt import ExtensionPromptSchema, FactList
from agentloop.domain.context import ProcessingMode, RunContext
from agentloop.domain.messages import AgentMessage
from agentloop.providers.llm.base import ModelOutputDefinition
from agentloop.tools.base import ToolCatalogue

if TYPE_CHECKING:
    from agentloop.agent.agent import Agent


class AgentExtension(ABC):
    """
    Base class for agent extensions.

    Subclasses implement the four abstract hooks; the rest have no-op
    defaults.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def facts(self, request: Any, context: RunContext, agent: "Agent") -> list[FactList]:
        """Knowledge added to the system prompt for this run."""

    @abstractmethod
    def additional_system_prompts(
        self,
        request: Any,
        context: RunContext,
        agent: "Agent",
        mode: ProcessingMode,
    ) -> ExtensionPromptSchema:
        """Tasks and hints added to the system prompt for this run."""

    @abstractmethod
    def output_schema(self, mode: ProcessingMode) -> ModelOutputDefinition | None:
        """Extra output field this extension expects, if any."""

    @abstractmethod
    def consume(self, output: Any, agent: "Agent") -> None:
        """
        Receive this extension's output field.

        Only called when the model produced the field.
        """

    def messages(self, context: RunContext, agent: "Agent", request: Any) -> list[AgentMessage]:
        """Messages to seed into the history after the system prompt."""
        return []

    def tools(self) -> ToolCatalogue:
        return {}

    def on_registration_completed(self, agent: "Agent") -> None:
        pass


__all__ = ["AgentExtension"]
