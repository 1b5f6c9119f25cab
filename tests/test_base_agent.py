from types import SimpleNamespace

import pytest

from stepagents.agents.base_agent import Model, ModelResponse, MultiStepAgent
from stepagents.agents.steps import (
    AgentStep,
    FunctionCall,
    MessageRole,
    PlanningStep,
    SystemPromptStep,
    TaskStep,
    ToolCall,
)
from stepagents.errors import AgentExecutionError, AgentGenerationError
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
        self.requests.append({"messages": list(messages), "tools": tools, "args": args})
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
    return MultiStepAgent(model, [EchoTool()], **kwargs), model


def test_final_answer_tool_and_defaults():
    agent, _ = make_agent([])
    assert [tool.name for tool in agent.tools] == ["echo", "final_answer"]
    assert agent.max_steps == 10
    assert agent.description == "A multi-step agent that can solve tasks using a series of tools"


def test_system_prompt_placeholders_are_filled():
    agent, _ = make_agent(
        [], system_prompt="Tools: {{tool_names}}|{{managed_agents_descriptions}}|{{current_time}}"
    )
    assert agent.system_prompt_template.startswith("Tools: echo, final_answer||")
    assert "{{" not in agent.system_prompt_template


def test_default_prompt_describes_tools():
    agent, _ = make_agent([])
    assert "echo: Repeats the text it is given." in agent.system_prompt_template
    assert "{{" not in agent.system_prompt_template


def test_managed_agents_are_described():
    team = {"helper": SimpleNamespace(description="finds things")}
    agent, _ = make_agent([], system_prompt="{{managed_agents_descriptions}}", managed_agents=team)
    assert 'helper: "finds things"' in agent.system_prompt_template


def test_run_returns_plain_text_answer():
    agent, model = make_agent([FakeResponse("Paris")])
    assert agent.run("q") == "Paris"
    assert [type(step) for step in agent.logs] == [SystemPromptStep, TaskStep, AgentStep]
    assert agent.step_number == 1
    assert agent.logs[2].tool_call == []
    request = model.requests[0]
    assert request["args"] == {"stop": ["Observation:"]}
    assert [m.role for m in request["messages"]] == [MessageRole.SYSTEM, MessageRole.USER]
    assert request["messages"][1].content == "New Task: q"
    assert [info["function"]["name"] for info in request["tools"]] == ["echo", "final_answer"]


def test_final_answer_call_ends_run():
    agent, _ = make_agent([FakeResponse("", [call("final_answer", answer="forty")])])
    assert agent.run("q") == "forty"
    assert agent.logs[-1].observations is None


def test_tool_observation_is_fed_back():
    agent, model = make_agent(
        [
            FakeResponse(None, [call("echo", text="hi")]),
            FakeResponse(None, [call("final_answer", call_id="call_2", answer="done")]),
        ]
    )
    assert agent.run("q") == "done"
    assert agent.logs[2].observations == ["Observation from echo: echo:hi"]
    last = model.requests[1]["messages"][-1]
    assert last.role == MessageRole.USER
    assert last.content == "Call id: call_1\nObservation: Observation from echo: echo:hi"


def test_response_text_is_kept_with_tool_calls():
    agent, _ = make_agent(
        [
            FakeResponse("thinking", [call("echo", text="a")]),
            FakeResponse(None, [call("final_answer", answer="ok")]),
        ]
    )
    agent.run("q")
    assert agent.logs[2].observations == ["thinking", "Observation from echo: echo:a"]


def test_unknown_tool_becomes_observation():
    agent, _ = make_agent(
        [
            FakeResponse(None, [call("missing")]),
            FakeResponse(None, [call("final_answer", answer="ok")]),
        ]
    )
    assert agent.run("q") == "ok"
    observations = agent.logs[2].observations
    assert len(observations) == 1
    assert "missing" in observations[0]
    assert not observations[0].startswith("Observation from")


def test_bad_final_answer_arguments_raise():
    agent, _ = make_agent([FakeResponse(None, [call("final_answer", wrong="x")])])
    with pytest.raises(AgentExecutionError):
        agent.run("q")


def test_max_steps_falls_back_to_direct_answer():
    agent, model = make_agent(
        [
            FakeResponse(None, [call("echo", text="1")]),
            FakeResponse(None, [call("echo", text="2")]),
            FakeResponse("fallback"),
        ],
        max_steps=2,
    )
    assert agent.run("q") == "fallback"
    assert len(model.requests) == 3
    assert agent.step_number == 2
    messages = model.requests[2]["messages"]
    assert messages[0].role == MessageRole.SYSTEM
    assert messages[0].content.startswith("An agent tried to answer a user query")
    assert messages[1].content == "New Task: q"
    assert messages[-1].content.endswith("```\nq")
    assert model.requests[2]["tools"] == []


def test_run_without_reset_keeps_history():
    agent, _ = make_agent([FakeResponse("one"), FakeResponse("two"), FakeResponse("three")])
    agent.run("first", reset=False)
    agent.run("second", reset=False)
    assert isinstance(agent.logs[0], SystemPromptStep)
    assert [s.task for s in agent.logs if isinstance(s, TaskStep)] == ["first", "second"]
    assert agent.step_number == 2
    agent.run("third", reset=True)
    assert len(agent.logs) == 3
    assert agent.step_number == 1


def test_summary_mode_omits_model_output():
    agent, _ = make_agent([])
    agent.logs = [SystemPromptStep("sys"), AgentStep(step=0, llm_output="raw")]
    full = [m.content for m in agent.write_inner_memory_from_logs()]
    summary = [m.content for m in agent.write_inner_memory_from_logs(summary_mode=True)]
    assert "raw" in full
    assert "raw" not in summary
    assert summary == ["sys"]


def test_planning_step_records_plan_and_facts():
    agent, model = make_agent([FakeResponse("fact A"), FakeResponse("1. do x\n<end_plan>")])
    planning = agent.planning_step("q", True, 0)
    expected = PlanningStep(
        "Here is the plan of action that I will follow for the task: \n1. do x\n<end_plan>",
        "Here are the facts that I know so far: \nfact A",
    )
    assert planning == expected
    assert agent.logs[-1] == expected
    assert model.requests[0]["args"] is None
    assert model.requests[1]["args"] == {"stop": ["Observation:"]}
    assert "fact A" in model.requests[1]["messages"][1].content


def test_planning_step_after_first_does_nothing():
    agent, model = make_agent([])
    assert agent.planning_step("q", False, 1) is None
    assert agent.logs == []
    assert model.requests == []


def test_call_tool_unknown_raises():
    agent, _ = make_agent([])
    with pytest.raises(AgentExecutionError):
        agent.call_tool(FunctionCall("nope", {}))


def test_call_tool_accepts_json_arguments():
    agent, _ = make_agent([])
    assert agent.call_tool(FunctionCall("echo", '{"text": "x"}')) == "echo:x"
    assert agent.call_tool(call("echo", text="y")) == "echo:y"


def test_step_rejects_other_steps():
    agent, _ = make_agent([])
    with pytest.raises(TypeError):
        agent.step(TaskStep("q"))


def test_default_run_stream_passes_text_to_callback():
    model = ScriptedModel([FakeResponse("hi")])
    chunks = []
    response = Model.run_stream(model, [], [], None, None, chunks.append)
    assert chunks == ["hi"]
    assert response.get_response() == "hi"
    assert len(model.requests) == 1