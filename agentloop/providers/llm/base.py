"""
Model abstraction layer - the boundary to a language model.

Responsibilities:
- Turn the run history into one model request
- Run requested tool calls through the supplied tool runner
- Report token usage into the run's UsageStats
- Standardize the final answer as a ModelOutput

Does NOT handle:
- The turn loop (the agent calls the model once per turn)
- Retries, output validation or early termination
- Any vendor wire format (implementations own that)
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import to_json

from agentloop.domain.context import ModelRunContext
from agentloop.domain.errors import AgentError, ErrorKind
from agentloop.domain.messages import AgentMessage, ToolCallRequest, ToolCallResponse

if TYPE_CHECKING:
    from agentloop.tools.base import ToolCatalogue

# Key of the agent's own answer inside structured model output
OUTPUT_KEY = "output"

ToolRunner = Callable[[ToolCallRequest], Awaitable[ToolCallResponse]]
StreamHandler = Callable[[bytes], Union[None, Awaitable[None]]]


class ModelOutputDefinition(BaseModel):
    """
    One required field of the final structured output.

    The agent contributes the ``output`` field; extensions may add their own.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    json_schema: dict[str, Any] = Field(default_factory=dict)
    description: str = ""


class ModelOutput(BaseModel):
    """
    Terminal result of a model exchange.

    ``data`` is a mapping of output keys to values in structured mode and the
    raw text in text mode.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: dict[str, Any] | str | None = None
    error: AgentError = Field(default_factory=AgentError.success)

    @property
    def is_success(self) -> bool:
        return self.error.is_success

    @classmethod
    def of(cls, data: dict[str, Any] | str) -> "ModelOutput":
        return cls(data=data)

    @classmethod
    def failure(cls, kind: ErrorKind, *args: object) -> "ModelOutput":
        return cls(error=AgentError.of(kind, *args))

    def to_bytes(self) -> bytes:
        """Encoding pushed to stream handlers."""
        if self.data is None:
            return b""
        if isinstance(self.data, str):
            return self.data.encode("utf-8")
        return to_json(self.data)


class Model(BaseModel, ABC):
    """
    Unified Model abstract base class.

    Implementations map the history to their provider's request format, call
    the provider once per ``exchange_messages`` call and either:

    - hand pending tool calls to ``handle_tool_calls`` and return its result
      (``None`` means "tool calls handled, ask again"), or
    - append the final output message to ``messages`` and return a ModelOutput.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="allow")

    name: str = Field(default="model", description="Model name")

    @abstractmethod
    async def exchange_messages(
        self,
        context: ModelRunContext,
        output_definitions: list[ModelOutputDefinition],
        messages: list[AgentMessage],
        tools: "ToolCatalogue",
        tool_runner: ToolRunner,
    ) -> ModelOutput | None:
        """
        Perform one turn of the exchange.

        Args:
            context: Run-level context (usage accumulator, settings, ids)
            output_definitions: Required output fields; empty in text mode
            messages: The run history (append-only)
            tools: Tool catalogue offered to the model
            tool_runner: Callback executing one tool call

        Returns:
            ModelOutput when the exchange is over, None after tool calls
        """

    async def stream_exchange_messages(
        self,
        context: ModelRunContext,
        output_definitions: list[ModelOutputDefinition],
        messages: list[AgentMessage],
        tools: "ToolCatalogue",
        tool_runner: ToolRunner,
        stream_handler: StreamHandler,
    ) -> ModelOutput | None:
        """
        Streaming variant of ``exchange_messages``.

        The default implementation performs a regular exchange and pushes the
        whole successful output to the handler at once; providers with native
        streaming override it.
        """
        output = await self.exchange_messages(
            context, output_definitions, messages, tools, tool_runner
        )
        if output is not None and output.is_success and output.data is not None:
            await push_chunk(stream_handler, output.to_bytes())
        return output

    @staticmethod
    async def handle_tool_calls(
        messages: list[AgentMessage],
        requests: list[ToolCallRequest],
        tool_runner: ToolRunner,
    ) -> ModelOutput | None:
        """
        Run a turn's tool calls and fold the results into the history.

        Calls run concurrently; each request is appended immediately followed
        by its response, in request order, after the whole batch has joined.

        Returns:
            None when every call succeeded, otherwise a run-level
            TOOL_CALL_PERMANENT_FAILURE output naming the failed tools
        """
        responses = await asyncio.gather(*(tool_runner(request) for request in requests))
        for request, response in zip(requests, responses):
            messages.append(request)
            messages.append(response)

        failed = [response.tool_name for response in responses if not response.is_success]
        if failed:
            return ModelOutput.failure(
                ErrorKind.TOOL_CALL_PERMANENT_FAILURE, ", ".join(failed)
            )
        return None


async def push_chunk(stream_handler: StreamHandler, chunk: bytes) -> None:
    """Send one chunk to a sync or async stream handler."""
    result = stream_handler(chunk)
    if inspect.isawaitable(result):
        await result


__all__ = [
    "OUTPUT_KEY",
    "Model",
    "ModelOutput",
    "ModelOutputDefinition",
    "ToolRunner",
    "StreamHandler",
    "push_chunk",
]
