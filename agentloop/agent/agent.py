"""
Agent - runs requests through a model, its tools and its extensions.

A run turns one request into an AgentOutput:

1. Merge the run's setup over the agent's setup
2. Build the run context and the system/user prompts
3. Loop: ask the model, run requested tools, until it produces an output
   (inside the whole-exchange retry wrapper)
4. Decode and validate the output, hand extension fields to extensions
5. Merge usage into the caller's accumulator, notify listeners

History is append-only. Every AgentOutput, success or error, carries the
full history built so far.
"""

import asyncio
import functools
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from agentloop.agent.extension import AgentExtension
from agentloop.agent.output import (
    AgentOutput,
    DefaultErrorHandler,
    ErrorResponseHandler,
    ProcessingCompletedData,
)
from agentloop.agent.prompt import (
    AdditionalData,
    FactList,
    SystemPrompt,
    Task,
    ToolSummary,
    ValidationErrorFixPrompt,
    render_user_prompt,
)
from agentloop.agent.retry import retry_exchange
from agentloop.agent.termination import EarlyTerminationStrategy, NeverTerminateEarly
from agentloop.agent.validation import DefaultOutputValidator, OutputValidator
from agentloop.config.schema import AgentSetup, ModelSettings, RetrySetup
from agentloop.config.settings import settings
from agentloop.domain.context import ModelRunContext, ProcessingMode, RequestMetadata, RunContext
from agentloop.domain.errors import AgentError, AgentLoopError, ErrorKind
from agentloop.domain.events import (
    AgentEvent,
    InputReceivedEvent,
    MessageReceivedEvent,
    MessageSentEvent,
    OutputErrorEvent,
    OutputGeneratedEvent,
)
from agentloop.domain.messages import (
    AgentMessage,
    SystemPromptMessage,
    UserPromptMessage,
    is_transient_system_prompt,
)
from agentloop.domain.usage import UsageStats
from agentloop.providers.llm.base import (
    OUTPUT_KEY,
    ModelOutput,
    ModelOutputDefinition,
    StreamHandler,
    push_chunk,
)
from agentloop.runtime.event_bus import EventBus
from agentloop.tools.approval import ToolRunApprovalSeeker
from agentloop.tools.base import ToolCatalogue
from agentloop.tools.executor import ToolExecutor
from agentloop.tools.toolbox import ToolBox, ToolLike, register_tools
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

R = TypeVar("R")
T = TypeVar("T")

PRIMARY_OBJECTIVE = (
    "Respond to the user input (user_input) following the role and instructions below"
)

CompletionListener = Callable[[ProcessingCompletedData], Any]


@dataclass
class _AttemptState:
    """Bookkeeping shared by the attempts of one run."""

    permanent_failure: bool = False


class Agent(Generic[R, T]):
    """
    An LLM-backed agent.

    Args:
        name: Agent name (used in prompts, events and logs)
        instructions: Role and instructions (any JSON-serializable value)
        output_type: Type the final output is decoded into
        setup: Default setup; runs may override it field by field
        tools: Own tools (InternalTool, ExternalTool or plain functions)
        extensions: Extensions, in registration order
        toolboxes: Tool groups registered after the own tools
        approval_seeker: Tool run approval policy
        output_validator: Extra checks on the decoded output
        early_termination: Strategy consulted after every turn
        error_handler: Hook that may rewrite the final output

    Raises:
        ValueError: If two tools share a name
    """

    def __init__(
        self,
        name: str,
        instructions: Any,
        output_type: type[T] = str,
        setup: AgentSetup | None = None,
        tools: Iterable[ToolLike] | ToolCatalogue | None = None,
        extensions: Iterable[AgentExtension] | None = None,
        toolboxes: Iterable[ToolBox] | None = None,
        approval_seeker: ToolRunApprovalSeeker | None = None,
        output_validator: OutputValidator | None = None,
        early_termination: EarlyTerminationStrategy | None = None,
        error_handler: ErrorResponseHandler | None = None,
    ):
        self.name = name
        self.instructions = instructions
        self.output_type = output_type
        self.setup = setup or AgentSetup()
        self.extensions: list[AgentExtension] = list(extensions or [])
        self.output_validator = output_validator or DefaultOutputValidator()
        self.early_termination = early_termination or NeverTerminateEarly()
        self.error_handler = error_handler or DefaultErrorHandler()
        self.event_bus = EventBus()

        self._output_adapter: TypeAdapter = TypeAdapter(output_type)
        self._tool_executor = ToolExecutor(self, approval_seeker)
        self._listeners: list[CompletionListener] = []
        self._executor: ThreadPoolExecutor | None = None

        # Registration order: own tools, toolboxes, extension tools
        self.tools: ToolCatalogue = {}
        self._own_tool_names: list[str] = []
        register_tools(self.tools, tools or [], source=f"agent '{name}'")
        for toolbox in toolboxes or []:
            register_tools(self.tools, toolbox.tools(), source=f"toolbox '{toolbox.name}'")
        self._own_tool_names = list(self.tools)
        for extension in self.extensions:
            register_tools(self.tools, extension.tools(), source=f"extension '{extension.name}'")
        for extension in self.extensions:
            extension.on_registration_completed(self)

        logger.debug(
            "agent_created",
            agent_name=name,
            tools=list(self.tools),
            extensions=[e.name for e in self.extensions],
        )

    # ========================================================================
    # Public API
    # ========================================================================

    def on_request_completed(self, listener: CompletionListener) -> CompletionListener:
        """Register a listener called with a ProcessingCompletedData after every run."""
        self._listeners.append(listener)
        return listener

    def execute(
        self,
        request: R,
        *,
        metadata: RequestMetadata | None = None,
        old_messages: list[AgentMessage] | None = None,
        setup: AgentSetup | None = None,
        facts: list[FactList] | None = None,
    ) -> AgentOutput[T]:
        """Synchronous wrapper around ``execute_async``."""
        return asyncio.run(
            self.execute_async(
                request, metadata=metadata, old_messages=old_messages, setup=setup, facts=facts
            )
        )

    async def execute_async(
        self,
        request: R,
        *,
        metadata: RequestMetadata | None = None,
        old_messages: list[AgentMessage] | None = None,
        setup: AgentSetup | None = None,
        facts: list[FactList] | None = None,
    ) -> AgentOutput[T]:
        """
        Run a request to completion.

        Args:
            request: The request (any JSON-serializable value)
            metadata: Session/user ids and an optional usage accumulator
            old_messages: History of earlier runs to continue from
            setup: Run-level setup override
            facts: Extra knowledge for this run

        Returns:
            AgentOutput with the decoded output or the error
        """
        return await self._run(
            request,
            metadata=metadata,
            old_messages=old_messages,
            setup=setup,
            facts=facts,
            mode=ProcessingMode.DIRECT,
        )

    async def execute_streaming(
        self,
        request: R,
        stream_handler: StreamHandler,
        *,
        metadata: RequestMetadata | None = None,
        old_messages: list[AgentMessage] | None = None,
        setup: AgentSetup | None = None,
        facts: list[FactList] | None = None,
    ) -> AgentOutput[T]:
        """Run a request, pushing the model's output bytes to ``stream_handler``."""
        return await self._run(
            request,
            metadata=metadata,
            old_messages=old_messages,
            setup=setup,
            facts=facts,
            mode=ProcessingMode.STREAMING,
            stream_handler=stream_handler,
        )

    async def execute_text_streaming(
        self,
        request: R,
        stream_handler: StreamHandler,
        *,
        metadata: RequestMetadata | None = None,
        old_messages: list[AgentMessage] | None = None,
        setup: AgentSetup | None = None,
        facts: list[FactList] | None = None,
    ) -> AgentOutput[str]:
        """
        Run a request in free-text mode.

        The returned output's data is the text accumulated from the streamed
        bytes. Extensions do not get an output field in this mode.
        """
        return await self._run(
            request,
            metadata=metadata,
            old_messages=old_messages,
            setup=setup,
            facts=facts,
            mode=ProcessingMode.STREAMING,
            stream_handler=stream_handler,
            text_mode=True,
        )

    def close(self) -> None:
        """Shut down the thread pool the agent created for blocking tools."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    # ========================================================================
    # Run
    # ========================================================================

    async def _run(
        self,
        request: R,
        *,
        metadata: RequestMetadata | None,
        old_messages: list[AgentMessage] | None,
        setup: AgentSetup | None,
        facts: list[FactList] | None,
        mode: ProcessingMode,
        stream_handler: StreamHandler | None = None,
        text_mode: bool = False,
    ) -> AgentOutput:
        merged = self._resolve_setup(setup)
        metadata = metadata or RequestMetadata()
        history = list(old_messages or [])
        if mode is ProcessingMode.STREAMING:
            history = [m for m in history if not is_transient_system_prompt(m)]

        context: RunContext[R] = RunContext(
            run_id=metadata.run_id or f"run-{uuid4()}",
            agent_name=self.name,
            request=request,
            metadata=metadata,
            setup=merged,
            messages=history,
            usage=UsageStats(),
            mode=mode,
        )
        seed_count = len(history)
        start_time = time.perf_counter()
        self._emit(
            context,
            InputReceivedEvent(
                **self._event_ids(context),
                content=to_json(request, serialize_unknown=True).decode(),
            ),
        )
        logger.info(
            "agent_run_started",
            agent_name=self.name,
            run_id=context.run_id,
            session_id=context.session_id,
            mode=mode.value,
            seeded_messages=seed_count,
        )

        accumulated = bytearray()
        if text_mode and stream_handler is not None:
            stream_handler = _accumulating(stream_handler, accumulated)

        output = await self._execute(context, facts, seed_count, stream_handler, text_mode)
        if text_mode and output.is_success and accumulated:
            output = output.model_copy(update={"data": accumulated.decode("utf-8")})

        output = self.error_handler.handle(context, output)
        if metadata.usage_stats is not None:
            metadata.usage_stats.merge(context.usage)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self._finish(context, merged, request, output, elapsed_ms)
        return output

    async def _execute(
        self,
        context: RunContext,
        facts: list[FactList] | None,
        seed_count: int,
        stream_handler: StreamHandler | None,
        text_mode: bool,
    ) -> AgentOutput:
        history = context.messages
        try:
            system_prompt = self._build_system_prompt(context, facts).render()
            user_prompt = render_user_prompt(context.request)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            logger.error(
                "prompt_serialization_failed",
                agent_name=self.name,
                run_id=context.run_id,
                error=str(e),
            )
            return self._failure(
                context, seed_count, AgentError.from_exception(ErrorKind.SERIALIZATION_ERROR, e)
            )

        history.append(
            SystemPromptMessage(
                session_id=context.session_id, run_id=context.run_id, content=system_prompt
            )
        )
        for extension in self.extensions:
            history.extend(extension.messages(context, self, context.request))
        history.append(
            UserPromptMessage(
                session_id=context.session_id, run_id=context.run_id, content=user_prompt
            )
        )

        output_definitions = self._output_definitions(context.mode, text_mode)
        state = _AttemptState()
        return await retry_exchange(
            functools.partial(
                self._run_turns,
                context,
                output_definitions,
                seed_count,
                stream_handler,
                text_mode,
                state,
            ),
            context.setup.retry_setup,
            should_retry=lambda _: not state.permanent_failure,
            agent_name=self.name,
            run_id=context.run_id,
        )

    async def _run_turns(
        self,
        context: RunContext,
        output_definitions: list[ModelOutputDefinition],
        seed_count: int,
        stream_handler: StreamHandler | None,
        text_mode: bool,
        state: _AttemptState,
    ) -> AgentOutput:
        """One attempt: ask the model until it produces an output."""
        setup = context.setup
        history = context.messages
        model_context = ModelRunContext(
            agent_name=self.name,
            run_id=context.run_id,
            session_id=context.session_id,
            user_id=context.user_id,
            setup=setup,
            usage=context.usage,
            mode=context.mode,
        )
        tool_runner = functools.partial(self._tool_executor.run_tool, context, self.tools)
        state.permanent_failure = False
        turn = 0
        corrections = 0

        while True:
            turn += 1
            self._emit(
                context,
                MessageSentEvent(
                    **self._event_ids(context), turn=turn, message_count=len(history)
                ),
            )
            turn_start = time.perf_counter()
            if stream_handler is not None:
                model_output = await setup.model.stream_exchange_messages(
                    model_context,
                    output_definitions,
                    history,
                    self.tools,
                    tool_runner,
                    stream_handler,
                )
            else:
                model_output = await setup.model.exchange_messages(
                    model_context, output_definitions, history, self.tools, tool_runner
                )
            self._emit(
                context,
                MessageReceivedEvent(
                    **self._event_ids(context),
                    turn=turn,
                    message_type=history[-1].message_type.value if history else "",
                    elapsed_ms=(time.perf_counter() - turn_start) * 1000,
                ),
            )

            decision = self.early_termination.evaluate(
                setup.model_settings, model_context, model_output, turn
            )
            if decision.should_terminate:
                logger.info(
                    "agent_run_terminated_early",
                    agent_name=self.name,
                    run_id=context.run_id,
                    turn=turn,
                    reason=decision.reason,
                )
                return self._failure(
                    context,
                    seed_count,
                    AgentError.of(decision.error_kind, decision.reason),
                )

            if model_output is None:
                continue

            if not model_output.is_success:
                return self._failure(context, seed_count, model_output.error)

            decoded = self._decode(model_output, text_mode)
            if isinstance(decoded, AgentError):
                return self._failure(context, seed_count, decoded)

            results = self.output_validator.validate(context, decoded)
            if not results.is_successful:
                if not results.is_retriable:
                    state.permanent_failure = True
                    return self._validation_failure(context, seed_count, results.messages)
                if corrections >= setup.retry_setup.stop_after_attempt:
                    return self._validation_failure(context, seed_count, results.messages)
                corrections += 1
                logger.info(
                    "output_validation_failed",
                    agent_name=self.name,
                    run_id=context.run_id,
                    correction=corrections,
                    errors=results.messages,
                )
                fix = ValidationErrorFixPrompt(
                    validation_errors=results.messages,
                    previously_generated_output=model_output.data,
                )
                history.append(
                    UserPromptMessage(
                        session_id=context.session_id,
                        run_id=context.run_id,
                        content=fix.model_dump_json(indent=2),
                    )
                )
                continue

            if not text_mode:
                self._consume_extension_outputs(context, model_output.data)
            return AgentOutput.success(
                decoded, history[seed_count:], list(history), context.usage
            )

    # ========================================================================
    # Helpers
    # ========================================================================

    def _resolve_setup(self, override: AgentSetup | None) -> AgentSetup:
        merged = self.setup.merge(override)
        if merged.model is None:
            raise AgentLoopError(f"No model configured for agent '{self.name}'")
        defaults: dict[str, Any] = {}
        if merged.model_settings is None:
            defaults["model_settings"] = ModelSettings()
        if merged.event_bus is None:
            defaults["event_bus"] = self.event_bus
        if merged.retry_setup is None:
            defaults["retry_setup"] = RetrySetup()
        if merged.executor is None:
            defaults["executor"] = self._default_executor()
        return merged.model_copy(update=defaults) if defaults else merged

    def _default_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=settings.max_worker_threads,
                thread_name_prefix=f"agentloop-{self.name}",
            )
        return self._executor

    def _build_system_prompt(
        self, context: RunContext, facts: list[FactList] | None
    ) -> SystemPrompt:
        request = context.request
        secondary_tasks: list[Task] = []
        hints: list[Any] = []
        all_facts: list[FactList] = []
        for extension in self.extensions:
            schema = extension.additional_system_prompts(request, context, self, context.mode)
            secondary_tasks.extend(schema.tasks)
            hints.extend(schema.hints)
            all_facts.extend(extension.facts(request, context, self))
        all_facts.extend(facts or [])

        own_tools = [
            ToolSummary(
                name=name, description=self.tools[name].definition.description
            )
            for name in self._own_tool_names
        ]
        metadata = context.metadata
        return SystemPrompt(
            name=self.name,
            primary_task=Task(
                objective=PRIMARY_OBJECTIVE,
                output_field=OUTPUT_KEY,
                instructions=self.instructions,
                tools=own_tools or None,
            ),
            secondary_tasks=secondary_tasks,
            facts=all_facts,
            additional_data=AdditionalData(
                session_id=metadata.session_id,
                user_id=metadata.user_id,
                custom_params=metadata.custom_params or None,
            ),
            hints=hints,
        )

    def _output_definitions(
        self, mode: ProcessingMode, text_mode: bool
    ) -> list[ModelOutputDefinition]:
        if text_mode:
            return []
        definitions = [
            ModelOutputDefinition(
                key=OUTPUT_KEY,
                json_schema=self._output_adapter.json_schema(),
                description="Output generated by the agent",
            )
        ]
        for extension in self.extensions:
            definition = extension.output_schema(mode)
            if definition is not None:
                definitions.append(definition)
        return definitions

    def _decode(self, model_output: ModelOutput, text_mode: bool) -> Any:
        """Decode the model's output, or return the AgentError describing why not."""
        data = model_output.data
        if text_mode:
            if not isinstance(data, str) or not data:
                return AgentError.of(ErrorKind.NO_RESPONSE)
            return data

        raw = data.get(OUTPUT_KEY) if isinstance(data, dict) else None
        if raw is None or raw == "":
            return AgentError.of(ErrorKind.NO_RESPONSE)
        try:
            if isinstance(raw, (str, bytes)) and self.output_type is not str:
                return self._output_adapter.validate_json(raw)
            return self._output_adapter.validate_python(raw)
        except ValidationError as e:
            logger.warning(
                "output_decoding_failed",
                agent_name=self.name,
                output_type=getattr(self.output_type, "__name__", str(self.output_type)),
                error=str(e),
            )
            return AgentError.of(ErrorKind.JSON_ERROR, e)

    def _consume_extension_outputs(self, context: RunContext, data: Any) -> None:
        if not isinstance(data, dict):
            return
        for extension in self.extensions:
            definition = extension.output_schema(context.mode)
            if definition is None or definition.key not in data:
                continue
            try:
                extension.consume(data[definition.key], self)
            except Exception as e:
                logger.warning(
                    "extension_consume_failed",
                    agent_name=self.name,
                    extension=extension.name,
                    run_id=context.run_id,
                    error=str(e),
                    exc_info=True,
                )

    def _failure(self, context: RunContext, seed_count: int, error: AgentError) -> AgentOutput:
        history = context.messages
        return AgentOutput.failure(error, history[seed_count:], list(history), context.usage)

    def _validation_failure(
        self, context: RunContext, seed_count: int, errors: list[str]
    ) -> AgentOutput:
        return self._failure(
            context,
            seed_count,
            AgentError.of(ErrorKind.DATA_VALIDATION_FAILURE, "; ".join(errors)),
        )

    def _finish(
        self,
        context: RunContext,
        setup: AgentSetup,
        request: R,
        output: AgentOutput,
        elapsed_ms: float,
    ) -> None:
        if output.is_success:
            self._emit(
                context,
                OutputGeneratedEvent(
                    **self._event_ids(context),
                    content=to_json(output.data, serialize_unknown=True).decode(),
                    usage=context.usage.to_dict(),
                    elapsed_ms=elapsed_ms,
                ),
            )
            logger.info(
                "agent_run_completed",
                agent_name=self.name,
                run_id=context.run_id,
                requests=context.usage.requests_for_run,
                tool_calls=context.usage.tool_calls_for_run,
                total_tokens=context.usage.total_tokens,
                elapsed_ms=round(elapsed_ms, 2),
            )
        else:
            self._emit(
                context,
                OutputErrorEvent(
                    **self._event_ids(context),
                    error_kind=output.error.kind,
                    message=output.error.message,
                    elapsed_ms=elapsed_ms,
                ),
            )
            logger.warning(
                "agent_run_failed",
                agent_name=self.name,
                run_id=context.run_id,
                error_kind=output.error.kind.value,
                error=output.error.message,
                elapsed_ms=round(elapsed_ms, 2),
            )

        completed = ProcessingCompletedData(
            agent=self,
            setup=setup,
            context=context,
            request=request,
            output=output,
            mode=context.mode,
        )
        for listener in list(self._listeners):
            try:
                listener(completed)
            except Exception as e:
                logger.error(
                    "request_completed_listener_failed",
                    agent_name=self.name,
                    run_id=context.run_id,
                    error=str(e),
                    exc_info=True,
                )

    @staticmethod
    def _event_ids(context: RunContext) -> dict[str, Any]:
        return {
            "agent_name": context.agent_name,
            "run_id": context.run_id,
            "session_id": context.session_id,
            "user_id": context.user_id,
        }

    @staticmethod
    def _emit(context: RunContext, event: AgentEvent) -> None:
        context.setup.event_bus.notify(event)

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r}, tools={list(self.tools)})"


def _accumulating(stream_handler: StreamHandler, buffer: bytearray) -> StreamHandler:
    async def handler(chunk: bytes) -> None:
        buffer.extend(chunk)
        await push_chunk(stream_handler, chunk)

    return handler


__all__ = ["Agent", "CompletionListener"]
