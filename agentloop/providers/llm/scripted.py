"""
ScriptedModel - an in-process Model that replays a script of turns.

Each call to ``exchange_messages`` consumes the next ScriptedTurn:

    model = ScriptedModel(turns=[
        ScriptedTurn.call("get_name"),
        ScriptedTurn.final("Hello Santanu"),
    ])

Tool-call turns go through the real tool runner, so the script exercises the
same approval/retry/timeout path as a provider-backed model. Useful for tests
and for developing agents offline.
"""

import itertools
import json
from typing import Any, Callable, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic_core import to_json

from agentloop.domain.context import ModelRunContext
from agentloop.domain.errors import AgentError, AgentLoopError, ErrorKind
from agentloop.domain.messages import (
    AgentMessage,
    StructuredOutputMessage,
    TextOutputMessage,
    ToolCallRequest,
)
from agentloop.providers.llm.base import (
    OUTPUT_KEY,
    Model,
    ModelOutput,
    ModelOutputDefinition,
    StreamHandler,
    ToolRunner,
    push_chunk,
)
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)


class ScriptExhaustedError(AgentLoopError):
    """The model was asked for more turns than the script holds."""


class ScriptedToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_name: str
    arguments: dict[str, Any] | str = Field(default_factory=dict)
    tool_call_id: str | None = None

    def arguments_json(self) -> str:
        if isinstance(self.arguments, str):
            return self.arguments
        return json.dumps(self.arguments)


class ScriptedTurn(BaseModel):
    """
    One scripted model turn.

    Exactly one of ``tool_calls``, ``data``, ``error`` or ``raises`` drives
    the turn, checked in that order.

    Attributes:
        tool_calls: Tool calls to request
        data: Final output (mapping of output keys, or text)
        error: Final error to report
        raises: Exception to raise from the model boundary
        chunks: Pieces pushed to the stream handler in streaming mode
        request_tokens: Prompt tokens reported for the turn
        response_tokens: Completion tokens reported for the turn
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    tool_calls: list[ScriptedToolCall] = Field(default_factory=list)
    data: dict[str, Any] | str | None = None
    error: AgentError | None = None
    raises: BaseException | None = None
    chunks: list[str] | None = None
    request_tokens: int = 0
    response_tokens: int = 0

    @classmethod
    def call(cls, tool_name: str, **arguments: Any) -> "ScriptedTurn":
        return cls(tool_calls=[ScriptedToolCall(tool_name=tool_name, arguments=arguments)])

    @classmethod
    def calls(cls, *tool_calls: ScriptedToolCall | tuple[str, dict[str, Any]]) -> "ScriptedTurn":
        items = [
            c if isinstance(c, ScriptedToolCall) else ScriptedToolCall(tool_name=c[0], arguments=c[1])
            for c in tool_calls
        ]
        return cls(tool_calls=items)

    @classmethod
    def final(cls, output: Any, **extension_fields: Any) -> "ScriptedTurn":
        return cls(data={OUTPUT_KEY: output, **extension_fields})

    @classmethod
    def text(cls, content: str, chunks: list[str] | None = None) -> "ScriptedTurn":
        return cls(data=content, chunks=chunks)

    @classmethod
    def fail(cls, kind: ErrorKind, *args: object) -> "ScriptedTurn":
        return cls(error=AgentError.of(kind, *args))

    @classmethod
    def exception(cls, error: BaseException) -> "ScriptedTurn":
        return cls(raises=error)


TurnSource = Union[ScriptedTurn, Callable[[list[AgentMessage]], ScriptedTurn]]


class ScriptedModel(Model):
    """
    Model replaying scripted turns in order.

    A turn may also be a callable receiving the history and returning a
    ScriptedTurn, for replies that depend on what the agent sent.
    """

    name: str = "scripted"
    turns: list[TurnSource] = Field(default_factory=list)

    _cursor: int = PrivateAttr(default=0)
    _received: list[list[AgentMessage]] = PrivateAttr(default_factory=list)
    _call_ids: Any = PrivateAttr(default_factory=lambda: itertools.count(1))

    @property
    def calls_made(self) -> int:
        return len(self._received)

    @property
    def received(self) -> list[list[AgentMessage]]:
        """Snapshot of the history as seen on each call."""
        return [list(messages) for messages in self._received]

    def reset(self) -> None:
        self._cursor = 0
        self._received.clear()

    def _next_turn(self, messages: list[AgentMessage]) -> ScriptedTurn:
        if self._cursor >= len(self.turns):
            raise ScriptExhaustedError(
                f"Script exhausted after {len(self.turns)} turns"
            )
        source = self.turns[self._cursor]
        self._cursor += 1
        return source(list(messages)) if callable(source) else source

    async def exchange_messages(
        self,
        context: ModelRunContext,
        output_definitions: list[ModelOutputDefinition],
        messages: list[AgentMessage],
        tools,
        tool_runner: ToolRunner,
    ) -> ModelOutput | None:
        self._received.append(list(messages))
        turn = self._next_turn(messages)
        logger.debug(
            "scripted_turn",
            agent_name=context.agent_name,
            run_id=context.run_id,
            turn=self._cursor,
        )

        if turn.raises is not None:
            raise turn.raises

        context.usage.record_model_usage(
            request_tokens=turn.request_tokens,
            response_tokens=turn.response_tokens,
        )

        if turn.tool_calls:
            requests = [
                ToolCallRequest(
                    session_id=context.session_id,
                    run_id=context.run_id,
                    tool_call_id=call.tool_call_id or f"call_{next(self._call_ids)}",
                    tool_name=call.tool_name,
                    arguments=call.arguments_json(),
                )
                for call in turn.tool_calls
            ]
            return await self.handle_tool_calls(messages, requests, tool_runner)

        if turn.error is not None:
            return ModelOutput(error=turn.error)

        if turn.data is None:
            return ModelOutput.failure(ErrorKind.NO_RESPONSE)

        if isinstance(turn.data, str):
            messages.append(
                TextOutputMessage(
                    session_id=context.session_id, run_id=context.run_id, content=turn.data
                )
            )
        else:
            messages.append(
                StructuredOutputMessage(
                    session_id=context.session_id,
                    run_id=context.run_id,
                    content=to_json(turn.data).decode(),
                )
            )
        return ModelOutput.of(turn.data)

    async def stream_exchange_messages(
        self,
        context: ModelRunContext,
        output_definitions: list[ModelOutputDefinition],
        messages: list[AgentMessage],
        tools,
        tool_runner: ToolRunner,
        stream_handler: StreamHandler,
    ) -> ModelOutput | None:
        # Peek so scripted chunks can be streamed piece by piece
        chunks = None
        if self._cursor < len(self.turns) and isinstance(self.turns[self._cursor], ScriptedTurn):
            chunks = self.turns[self._cursor].chunks

        output = await self.exchange_messages(
            context, output_definitions, messages, tools, tool_runner
        )
        if output is None or not output.is_success or output.data is None:
            return output

        if chunks:
            for chunk in chunks:
                await push_chunk(stream_handler, chunk.encode("utf-8"))
        else:
            await push_chunk(stream_handler, output.to_bytes())
        return output


__all__ = [
    "ScriptedModel",
    "ScriptedTurn",
    "ScriptedToolCall",
    "ScriptExhaustedError",
    "TurnSource",
]
