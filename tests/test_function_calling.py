import pytest

from stepagents.agents.base_agent import Model, ModelResponse
from stepagents.agents.function_calling import FunctionCallingAgent
from stepagents.agents.steps import AgentStep, FunctionCall, TaskStep, ToolCall
from stepagents.errors import AgentGenerationError
from stepagents.interpreter.python_tools import Tool


class FakeResponse(ModelResponse):
    def __init__(self, text=None, calls=()):
        self.text = text
        self.calls = list(calls)

    def get_response(self):
        if self.text is None:
            raise AgentGenerationError("no text")
        return self.text

    def get_tools_used(self):
        return list(self.calls)


class ScriptedModel(Model):
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def run(self, messages, tools, max_tokens=None, args=None):
        self.requests.append({"messages": list(messages), "args": args})
        return self.responses.pop(0)


class EchoTool(Tool):
    name = "echo"
    description = "Repeats the text it is given."
    inputs = {"text": {"type": "string", "description": "Text to repeat"}}

    def forward(self, text):
        return f"echo:{text}"


def call(name, call_id="call_1", **arguments):
    return ToolCall(FunctionCall(name, arguments), id=call_id)


def make_agent(responses, **kwargs):
    model = ScriptedModel(responses)
    return FunctionCallingAgent(model, [EchoTool()], **kwargs), model


def test_default_prompt_lists_tools():
    agent, _ = make_agent([])
    assert "echo, final_answer" in agent.system_prompt_template
    assert "echo: Repeats the text it is given." in agent.system_prompt_template
    assert "{{" not in agent.system_prompt_template


def test_custom_prompt_is_used():
    agent, _ = make_agent([], system_prompt="Only {{tool_names}}")
    assert agent.system_prompt_template == "Only echo, final_answer"


def test_step_returns_final_answer():
    agent, _ = make_agent([FakeResponse(None, [call("final_answer", answer="yes")])])
    agent.logs = []
    step_log = AgentStep(step=0)
    assert agent.step(step_log) == "yes"
    assert step_log.tool_call[0].function.name == "final_answer"


def test_step_records_observations():
    agent, _ = make_agent([FakeResponse(None, [call("echo", text="hi")])])
    step_log = AgentStep(step=0)
    assert agent.step(step_log) is None
    assert step_log.observations == ["Observation from echo: echo:hi"]
    assert step_log.agent_memory == []


def test_step_stream_passes_text_to_callback():
    agent, _ = make_agent([FakeResponse("partial", [call("echo", text="hi")])])
    chunks = []
    step_log = AgentStep(step=0)
    assert agent.step_stream(step_log, chunks.append) is None
    assert chunks == ["partial"]
    assert step_log.observations == ["partial", "Observation from echo: echo:hi"]


def test_step_stream_rejects_other_steps():
    agent, _ = make_agent([])
    with pytest.raises(TypeError):
        agent.step_stream(TaskStep("q"), print)


def test_streamed_run_prints_output(capsys):
    agent, _ = make_agent([FakeResponse("Answer text")])
    assert agent.run("q", stream=True) == "Answer text"
    out = capsys.readouterr().out
    assert "Step number: 0" in out
    assert "Answer text" in out


def test_streamed_run_respects_step_limit():
    agent, model = make_agent(
        [FakeResponse(None, [call("echo", text="a")]), FakeResponse("fallback")],
        max_steps=1,
    )
    assert agent.run("q", stream=True) == "fallback"
    assert len(model.requests) == 2
    assert agent.step_number == 1


def test_direct_run_uses_tools_then_answers():
    agent, model = make_agent(
        [
            FakeResponse(None, [call("echo", text="x")]),
            FakeResponse(None, [call("final_answer", call_id="call_2", answer="done")]),
        ]
    )
    assert agent.run("q") == "done"
    assert model.requests[1]["messages"][-1].content == (
        "Call id: call_1\nObservation: Observation from echo: echo:x"
    )