from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import ValidationError

from agentloop.config.schema import AgentSetup, ModelSettings, RetrySetup
from agentloop.domain.errors import ErrorKind
from agentloop.domain.messages import (
    MessageType,
    StructuredOutputMessage,
    SystemPromptMessage,
    ToolCallRequest,
    ToolCallResponse,
    UserPromptMessage,
    dump_messages,
    is_transient_system_prompt,
    load_messages,
    new_message_id,
)
from agentloop.domain.usage import UsageStats
from agentloop.providers.llm.scripted import ScriptedModel


def sample_history():
    return [
        SystemPromptMessage(session_id="s1", run_id="r1", content="{}"),
        UserPromptMessage(session_id="s1", run_id="r1", content='{"user_input": "Hi"}'),
        ToolCallRequest(session_id="s1", run_id="r1", tool_call_id="call_1", tool_name="get_name"),
        ToolCallResponse(
            session_id="s1",
            run_id="r1",
            tool_call_id="call_1",
            tool_name="get_name",
            error_kind=ErrorKind.TOOL_CALL_TIMEOUT,
            response="Tool call timed out for tool: get_name",
        ),
        StructuredOutputMessage(session_id="s1", run_id="r1", content='{"output": "Hello"}'),
    ]


def test_history_survives_json_storage():
    history = sample_history()

    restored = load_messages(dump_messages(history))

    assert restored == history
    assert isinstance(restored[3], ToolCallResponse)
    assert restored[3].error_kind is ErrorKind.TOOL_CALL_TIMEOUT
    assert not restored[3].is_success
    assert [m.message_type for m in restored][:2] == [MessageType.SYSTEM_PROMPT, MessageType.USER_PROMPT]


def test_message_ids_are_unique_and_ordered():
    ids = [new_message_id() for _ in range(500)]

    assert len(set(ids)) == len(ids)
    assert ids == sorted(ids)


def test_message_ids_unique_across_threads():
    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda _: new_message_id(), range(400)))

    assert len(set(ids)) == len(ids)


def test_messages_are_immutable():
    message = UserPromptMessage(content="Hi")

    with pytest.raises(ValidationError):
        message.content = "changed"


def test_transient_system_prompts():
    assert is_transient_system_prompt(SystemPromptMessage(content="{}"))
    assert not is_transient_system_prompt(SystemPromptMessage(content="{}", transient=False))
    assert not is_transient_system_prompt(UserPromptMessage(content="Hi"))


def test_usage_merge_is_additive():
    total = UsageStats()
    run = UsageStats().record_model_usage(request_tokens=10, response_tokens=5)
    run.increment_tool_calls_for_run(2).add_details({"cached_tokens": 3})

    total.merge(run).merge(run).merge(None)

    assert total.requests_for_run == 2
    assert total.tool_calls_for_run == 4
    assert total.total_tokens == 30
    assert total.details == {"cached_tokens": 6}
    assert total.to_dict()["request_tokens"] == 20


def test_usage_updates_are_thread_safe():
    usage = UsageStats()

    def work(_):
        for _ in range(200):
            usage.increment_tool_calls_for_run()
            usage.record_model_usage(request_tokens=1)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(work, range(8)))

    assert usage.tool_calls_for_run == 1600
    assert usage.requests_for_run == 1600
    assert usage.request_tokens == 1600


def test_agent_setup_merge_prefers_override():
    base_model = ScriptedModel(name="base")
    override_model = ScriptedModel(name="override")
    base = AgentSetup(model=base_model, model_settings=ModelSettings(temperature=0.2))
    override = AgentSetup(model=override_model, retry_setup=RetrySetup.no_retry())

    merged = base.merge(override)

    assert merged.model is override_model
    assert merged.model_settings.temperature == 0.2
    assert merged.retry_setup.stop_after_attempt == 1
    assert base.merge(None) is base
    assert base.model is base_model


def test_model_settings_bounds():
    with pytest.raises(ValidationError):
        ModelSettings(temperature=3.0)
