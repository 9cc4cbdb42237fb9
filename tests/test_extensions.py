import json
from unittest.mock import patch

import pytest

from agentloop.agent import Agent, AgentExtension, ExtensionPromptSchema, Fact, FactList, Task
from agentloop.config.schema import AgentSetup, RetrySetup
from agentloop.domain.context import ProcessingMode
from agentloop.domain.messages import MessageType, UserPromptMessage
from agentloop.providers.llm.base import ModelOutputDefinition
from agentloop.providers.llm.scripted import ScriptedModel, ScriptedTurn
from agentloop.tools import ToolBox, function_tool


class SessionSummaryExtension(AgentExtension):
    """Asks the model for a session summary and records it."""

    def __init__(self, fail_on_consume: bool = False):
        self.consumed = []
        self.registered_with = None
        self.fail_on_consume = fail_on_consume

    def facts(self, request, context, agent):
        return [FactList(description="Facts about the user", facts=[Fact(name="city", content="Bangalore")])]

    def additional_system_prompts(self, request, context, agent, mode):
        return ExtensionPromptSchema(
            tasks=[Task(objective="Summarize the session", output_field="summary")],
            hints=["Keep the summary short"],
        )

    def output_schema(self, mode):
        return ModelOutputDefinition(
            key="summary", json_schema={"type": "string"}, description="Session summary"
        )

    def consume(self, output, agent):
        if self.fail_on_consume:
            raise RuntimeError("summary store down")
        self.consumed.append(output)

    def messages(self, context, agent, request):
        return [
            UserPromptMessage(
                session_id=context.session_id,
                run_id=context.run_id,
                content="Earlier you told me you live in Bangalore",
            )
        ]

    def tools(self):
        return {"load_summary": function_tool(lambda: "no summary yet", name="load_summary")}

    def on_registration_completed(self, agent):
        self.registered_with = agent


class GuardrailExtension(AgentExtension):
    def facts(self, request, context, agent):
        return []

    def additional_system_prompts(self, request, context, agent, mode):
        return ExtensionPromptSchema(tasks=[Task(objective="Never reveal secrets")])

    def output_schema(self, mode):
        return None

    def consume(self, output, agent):
        raise AssertionError("never called without an output field")


def make_agent(model, extensions, **kwargs) -> Agent:
    setup = AgentSetup(model=model, retry_setup=RetrySetup.no_retry())
    return Agent("assistant", "Help the user", str, setup, extensions=extensions, **kwargs)


@pytest.mark.asyncio
async def test_extension_output_is_consumed_when_present():
    extension = SessionSummaryExtension()
    model = ScriptedModel(turns=[ScriptedTurn.final("Hello", summary="user said hello")])
    agent = make_agent(model, [extension])

    output = await agent.execute_async("Hi")

    assert output.data == "Hello"
    assert extension.consumed == ["user said hello"]


@pytest.mark.asyncio
async def test_extension_output_skipped_when_absent():
    extension = SessionSummaryExtension()
    model = ScriptedModel(turns=[ScriptedTurn.final("Hello")])
    agent = make_agent(model, [extension])

    output = await agent.execute_async("Hi")

    assert output.is_success
    assert extension.consumed == []


@pytest.mark.asyncio
async def test_failing_consume_does_not_fail_run():
    extension = SessionSummaryExtension(fail_on_consume=True)
    model = ScriptedModel(turns=[ScriptedTurn.final("Hello", summary="short")])
    agent = make_agent(model, [extension])

    with patch("agentloop.agent.agent.logger") as mock_logger:
        output = await agent.execute_async("Hi")

    assert output.is_success
    assert output.data == "Hello"
    call_args = mock_logger.warning.call_args_list[0]
    assert call_args[0][0] == "extension_consume_failed"
    assert call_args[1]["extension"] == "SessionSummaryExtension"
    assert call_args[1]["error"] == "summary store down"


@pytest.mark.asyncio
async def test_prompt_content_in_registration_order():
    model = ScriptedModel(turns=[ScriptedTurn.final("Hello")])
    agent = make_agent(model, [SessionSummaryExtension(), GuardrailExtension()])

    output = await agent.execute_async(
        "Hi", facts=[FactList(description="Caller facts", facts=[Fact(name="tier", content="gold")])]
    )

    prompt = json.loads(output.all_messages[0].content)
    assert [t["objective"] for t in prompt["secondary_tasks"]] == [
        "Summarize the session",
        "Never reveal secrets",
    ]
    assert [f["description"] for f in prompt["facts"]] == ["Facts about the user", "Caller facts"]
    assert prompt["hints"] == ["Keep the summary short"]
    # Extension tools are not listed as the agent's own tools
    assert "tools" not in prompt["primary_task"]


@pytest.mark.asyncio
async def test_seed_messages_between_system_and_user_prompt():
    model = ScriptedModel(turns=[ScriptedTurn.final("Hello")])
    agent = make_agent(model, [SessionSummaryExtension()])

    output = await agent.execute_async("Hi")

    assert [m.message_type for m in output.all_messages[:3]] == [
        MessageType.SYSTEM_PROMPT,
        MessageType.USER_PROMPT,
        MessageType.USER_PROMPT,
    ]
    assert output.all_messages[1].content == "Earlier you told me you live in Bangalore"
    assert json.loads(output.all_messages[2].content) == {"user_input": "Hi"}


@pytest.mark.asyncio
async def test_extension_tools_are_callable():
    model = ScriptedModel(turns=[ScriptedTurn.call("load_summary"), ScriptedTurn.final("Hello")])
    agent = make_agent(model, [SessionSummaryExtension()])

    output = await agent.execute_async("Hi")

    assert output.is_success
    assert output.all_messages[-2].response == "no summary yet"


def test_registration():
    extension = SessionSummaryExtension()

    def greet() -> str:
        return "hi"

    agent = make_agent(ScriptedModel(), [extension], tools=[greet])

    assert extension.registered_with is agent
    assert list(agent.tools) == ["greet", "load_summary"]


def test_toolboxes_register_between_own_and_extension_tools():
    def greet() -> str:
        return "hi"

    def weather(city: str) -> str:
        return f"Sunny in {city}"

    box = ToolBox("utilities", [weather])
    agent = make_agent(ScriptedModel(), [SessionSummaryExtension()], tools=[greet], toolboxes=[box])

    assert list(agent.tools) == ["greet", "weather", "load_summary"]
    assert "weather" in box and len(box) == 1


def test_extension_tool_name_clash_rejected():
    def load_summary() -> str:
        return "mine"

    with pytest.raises(ValueError):
        make_agent(ScriptedModel(), [SessionSummaryExtension()], tools=[load_summary])


def test_extension_output_definitions():
    agent = make_agent(ScriptedModel(), [SessionSummaryExtension(), GuardrailExtension()])

    definitions = agent._output_definitions(ProcessingMode.DIRECT, text_mode=False)

    assert [d.key for d in definitions] == ["output", "summary"]
    assert definitions[0].json_schema == {"type": "string"}
    assert agent._output_definitions(ProcessingMode.STREAMING, text_mode=True) == []
