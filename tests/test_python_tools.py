import math

import pytest

from stepagents.errors import AgentExecutionError, InterpreterRuntimeError
from stepagents.interpreter.python_tools import (
    Tool,
    base_python_tools,
    call_static_tool,
    make_custom_tools,
    make_static_tools,
)


class EchoTool(Tool):
    name = "echo"
    description = "Repeat the text"
    inputs = {
        "text": {"type": "string", "description": "Text to repeat"},
        "times": {"type": "integer", "description": "Repetitions", "nullable": True},
    }

    def forward(self, text, times=1):
        return text * int(times)


class FailingTool(Tool):
    name = "failing"
    description = "Always fails"
    inputs = {"query": {"type": "string", "description": "Anything"}}

    def forward(self, query):
        raise ValueError("boom")


def test_base_tools_map_to_functions():
    tools = base_python_tools()
    assert tools["sqrt"] == "math.sqrt"
    assert tools["print"] == "custom_print"
    assert tools["len"] == "len"


def test_base_tools_returns_copy():
    tools = base_python_tools()
    tools["sqrt"] = "changed"
    assert base_python_tools()["sqrt"] == "math.sqrt"


def test_math_function():
    assert call_static_tool("sqrt", [16.0]) == math.sqrt(16.0)


def test_numeric_results_are_floats():
    result = call_static_tool("len", [["a", "b", "c"]])
    assert isinstance(result, float)
    assert result == float(len(["a", "b", "c"]))


def test_string_conversion():
    assert call_static_tool("str", [5]) == str(5)


def test_string_list_result_is_list():
    assert call_static_tool("sorted", ["cab"]) == sorted("cab")


def test_list_arguments_become_floats():
    assert call_static_tool("sum", [[1, 2, 3]]) == float(sum([1, 2, 3]))


def test_bool_argument_is_zero():
    assert call_static_tool("float", [True]) == 0.0


def test_unknown_name_falls_back_to_float():
    assert call_static_tool("not_a_tool", ["3.5"]) == float("3.5")


def test_errors_are_wrapped():
    with pytest.raises(InterpreterRuntimeError) as info:
        call_static_tool("int", ["abc"])
    assert info.value.detail.startswith("ValueError:")


def test_print_is_not_a_native_function():
    with pytest.raises(InterpreterRuntimeError) as info:
        call_static_tool("print", ["x"])
    assert "custom_print" in info.value.detail


def test_make_static_tools_covers_all_names():
    tools = make_static_tools()
    assert set(tools) == set(base_python_tools())
    assert tools["abs"]([-3]) == float(abs(-3))


def test_make_static_tools_custom_mapping():
    tools = make_static_tools({"root": "math.sqrt"})
    assert list(tools) == ["root"]
    assert tools["root"]([9.0]) == math.sqrt(9.0)


def test_parameter_names_in_order():
    assert Tool.parameter_names(EchoTool()) == ["text", "times"]


def test_tool_info_shape():
    info = Tool.tool_info(EchoTool())
    assert info["type"] == "function"
    assert info["function"]["name"] == "echo"
    assert info["function"]["description"] == "Repeat the text"
    assert list(info["function"]["parameters"]["properties"]) == ["text", "times"]
    assert info["function"]["parameters"]["required"] == ["text"]


def test_forward_json_from_string_and_mapping():
    tool = EchoTool()
    assert Tool.forward_json(tool, '{"text": "hi"}') == "hi"
    assert Tool.forward_json(tool, {"text": "ab", "times": 2}) == "ab" * 2


def test_forward_json_invalid_json():
    with pytest.raises(AgentExecutionError):
        Tool.forward_json(EchoTool(), "{not json")


def test_forward_json_requires_object():
    with pytest.raises(AgentExecutionError):
        Tool.forward_json(EchoTool(), "[1, 2]")


def test_forward_json_missing_argument():
    with pytest.raises(AgentExecutionError) as info:
        Tool.forward_json(EchoTool(), {"times": 2})
    assert "text" in str(info.value)


def test_forward_json_unknown_argument():
    with pytest.raises(AgentExecutionError):
        Tool.forward_json(EchoTool(), {"text": "a", "colour": "red"})


def test_custom_tool_positional_and_keyword():
    tools = make_custom_tools([EchoTool()])
    assert tools["echo"](["hi"], {}) == "hi"
    assert tools["echo"](["hi"], {"times": "3"}) == "hi" * 3
    assert tools["echo"]([], {"text": "yo"}) == "yo"


def test_keyword_overrides_positional():
    tools = make_custom_tools([EchoTool()])
    assert tools["echo"](["first"], {"text": "second"}) == "second"


def test_custom_tool_failure_becomes_text():
    tools = make_custom_tools([FailingTool()])
    assert tools["failing"](["q"], {}) == "Error: boom"


def test_custom_tool_rejects_non_string_positional():
    tools = make_custom_tools([EchoTool()])
    with pytest.raises(InterpreterRuntimeError):
        tools["echo"]([1.0], {})


def test_custom_tool_rejects_too_many_positional():
    tools = make_custom_tools([EchoTool()])
    with pytest.raises(InterpreterRuntimeError):
        tools["echo"](["a", "b", "c"], {})