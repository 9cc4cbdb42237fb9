import pytest
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from agentloop.config.settings import settings
from agentloop.domain.context import RunContext
from agentloop.domain.errors import ErrorKind, ToolRegistrationError
from agentloop.tools import InvalidToolArguments, ToolBox, function_tool, tool


def simple_func(a: int, b: str = "default"):
    """A simple function."""
    return f"{a}-{b}"


def complex_func(items: List[str], meta: Dict[str, int], flag: Optional[bool] = None):
    """Complex types function."""
    return len(items)


class UserInfo(BaseModel):
    name: str
    age: int = Field(description="Age of user")


def nested_model_func(user: UserInfo, action: str):
    """Function with Pydantic model."""
    return f"{action} {user.name}"


def test_simple_func_schema():
    t = function_tool(simple_func)
    schema = t.definition.to_schema()

    assert schema["name"] == "simple_func"
    assert schema["description"] == "A simple function."

    params = schema["parameters"]
    assert params["type"] == "object"
    assert params["properties"]["a"]["type"] == "integer"
    assert params["properties"]["b"]["type"] == "string"
    assert "a" in params["required"]
    assert "b" not in params["required"]
    assert "title" not in params


def test_complex_func_schema():
    t = function_tool(complex_func)
    params = t.definition.parameters

    assert params["properties"]["items"]["type"] == "array"
    assert params["properties"]["items"]["items"]["type"] == "string"
    assert params["properties"]["meta"]["type"] == "object"
    assert "flag" not in params["required"]


def test_nested_model_arguments_stay_models():
    t = function_tool(nested_model_func)

    kwargs = t.parse_arguments('{"user": {"name": "Santanu", "age": 40}, "action": "greet"}')

    assert isinstance(kwargs["user"], UserInfo)
    assert t.function(**kwargs) == "greet Santanu"
    assert "$defs" in t.definition.parameters


def test_invalid_arguments_are_permanent():
    t = function_tool(simple_func)

    with pytest.raises(InvalidToolArguments) as exc_info:
        t.parse_arguments('{"a": "not a number"}')

    assert exc_info.value.kind is ErrorKind.TOOL_CALL_PERMANENT_FAILURE
    assert "simple_func" in str(exc_info.value)


def test_empty_arguments_mean_no_arguments():
    def ping() -> str:
        return "pong"

    t = function_tool(ping)
    assert t.parse_arguments("") == {}
    assert t.parse_arguments(None) == {}


def test_defaults_from_settings():
    t = function_tool(simple_func)

    assert t.definition.retries == 0
    assert t.definition.timeout_seconds == settings.tool_timeout_seconds
    assert t.definition.context_aware is False
    assert t.definition.strict_schema is False


def test_decorator_bare_and_with_options():
    @tool
    def add(x: int, y: int) -> int:
        """Add two numbers."""
        return x + y

    @tool(name="slow_add", retries=2, timeout_seconds=None, strict_schema=True)
    async def other_add(x: int, y: int) -> int:
        return x + y

    assert add.name == "add"
    assert add(2, 3) == 5
    assert add.is_async is False

    assert other_add.name == "slow_add"
    assert other_add.definition.retries == 2
    assert other_add.definition.timeout_seconds is None
    assert other_add.definition.strict_schema is True
    assert other_add.is_async is True


def test_context_parameter_is_injected_not_exposed():
    @tool
    def whoami(context: RunContext, greeting: str = "hi") -> str:
        return f"{greeting} {context.user_id}"

    assert whoami.definition.context_aware is True
    assert whoami.context_parameter == "context"
    assert "context" not in whoami.definition.parameters["properties"]
    assert "greeting" in whoami.definition.parameters["properties"]


def test_parametrized_context_annotation_detected():
    def lookup(ctx: RunContext[str], key: str) -> str:
        return key

    t = function_tool(lookup)
    assert t.context_parameter == "ctx"


def test_varargs_rejected():
    def bad(*args):
        return args

    with pytest.raises(ToolRegistrationError):
        function_tool(bad)


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        function_tool(simple_func, retries=-1)


def test_toolbox_rejects_duplicates():
    box = ToolBox("math", [simple_func])

    assert "simple_func" in box
    assert len(box) == 1
    with pytest.raises(ValueError):
        box.add(simple_func)


def test_toolbox_wraps_plain_functions():
    box = ToolBox("misc", [simple_func, function_tool(complex_func, name="count")])

    assert sorted(box.tools()) == ["count", "simple_func"]
