import json

import pytest

from agentloop.agent import Agent
from agentloop.config.schema import AgentSetup, RetrySetup
from agentloop.domain.messages import SystemPromptMessage
from agentloop.providers.llm.scripted import ScriptedModel, ScriptedTurn
from agentloop.tools import tool


@tool
def get_name() -> str:
    return "Santanu"


def make_agent(model) -> Agent:
    setup = AgentSetup(model=model, retry_setup=RetrySetup.no_retry())
    return Agent("streamer", "Greet the user", str, setup, tools=[get_name])


def system_prompts(messages) -> list[SystemPromptMessage]:
    return [m for m in messages if isinstance(m, SystemPromptMessage)]


@pytest.mark.asyncio
async def test_text_streaming_accumulates_chunks():
    chunks = []
    model = ScriptedModel(
        turns=[
            ScriptedTurn.call("get_name"),
            ScriptedTurn.text("Hello Santanu", chunks=["Hello ", "Santanu"]),
        ]
    )
    agent = make_agent(model)

    output = await agent.execute_text_streaming("Hi", chunks.append)

    assert chunks == [b"Hello ", b"Santanu"]
    assert output.data == "Hello Santanu"
    assert output.usage.tool_calls_for_run == 1


@pytest.mark.asyncio
async def test_async_stream_handler():
    received = bytearray()

    async def handler(chunk: bytes) -> None:
        received.extend(chunk)

    model = ScriptedModel(turns=[ScriptedTurn.text("streamed text")])
    agent = make_agent(model)

    output = await agent.execute_text_streaming("Hi", handler)

    assert received.decode() == "streamed text"
    assert output.data == "streamed text"


@pytest.mark.asyncio
async def test_typed_streaming_pushes_json():
    chunks = []
    model = ScriptedModel(turns=[ScriptedTurn.final("Hello Santanu")])
    agent = make_agent(model)

    output = await agent.execute_streaming("Hi", chunks.append)

    assert output.data == "Hello Santanu"
    assert json.loads(b"".join(chunks)) == {"output": "Hello Santanu"}


@pytest.mark.asyncio
async def test_streaming_strips_seeded_system_prompts():
    model = ScriptedModel(
        turns=[ScriptedTurn.text("first"), ScriptedTurn.text("second"), ScriptedTurn.final("third")]
    )
    agent = make_agent(model)

    first = await agent.execute_text_streaming("Hi", lambda _: None)
    second = await agent.execute_text_streaming("Again", lambda _: None, old_messages=first.all_messages)

    assert len(system_prompts(first.all_messages)) == 1
    assert len(system_prompts(second.all_messages)) == 1
    assert len(system_prompts(model.received[1])) == 1
    # Seeded user prompt and reply survive, only the system prompt is dropped
    assert second.all_messages[0].content == first.all_messages[1].content
    assert second.all_messages[1].content == "first"

    # The direct path keeps seeded history untouched
    third = await agent.execute_async("Once more", old_messages=second.all_messages)
    assert len(system_prompts(third.all_messages)) == 2


@pytest.mark.asyncio
async def test_failed_stream_pushes_nothing():
    chunks = []
    model = ScriptedModel(turns=[ScriptedTurn(data=None)])
    agent = make_agent(model)

    output = await agent.execute_text_streaming("Hi", chunks.append)

    assert chunks == []
    assert not output.is_success
