# stepagents

A library for LLM agents that solve tasks step by step, either by calling
tools or by writing small Python snippets that run in a restricted
interpreter.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Agents

Agents live in the `stepagents.agents` sub-package. Every agent takes
`(model, tools, system_prompt, managed_agents, description, max_steps)` in
its constructor. Only `model` is required; `tools` defaults to none and
`max_steps` to 10. Each agent has `run(task, stream=False, reset=True)`,
which returns the answer as a string.

- `stepagents.agents.base_agent.MultiStepAgent`: the shared loop. Each step
  sends the agent's memory and the tools' descriptions to the model, runs the
  tool calls it asked for, and records their output as observations. A step
  ends the run when the model calls `final_answer` or replies with text and
  no tool calls. It can also draft a plan with `planning_step(task, True)`.
- `stepagents.agents.function_calling.FunctionCallingAgent`: the same
  tool-calling loop; with `stream=True` it passes model output to
  `Model.run_stream` and prints it as it arrives.
- `stepagents.agents.code_agent.CodeAgent`: asks the model for a fenced
  ```` ```py ```` code block, runs it in `LocalPythonInterpreter`, and feeds
  the printed output (or the last value) back as an observation. Calling
  `final_answer(...)` in the code ends the run.
- `stepagents.agents.planning.PlanningAgent`: asks the model for the facts
  and a numbered plan, then runs every numbered step through a
  `FunctionCallingAgent` and returns the answer of the last step. It raises
  `AgentError` when no plan was produced.

A `final_answer` tool is always appended to the tool list. If there is still
no answer after `max_steps` steps, the agent asks the model for a best-effort
answer from its memory. Observations are cut to 30,000 characters.

Logged steps are kept in `agent.logs` as `PlanningStep`, `TaskStep`,
`SystemPromptStep`, `AgentStep` and `ToolCallStep` objects from
`stepagents.agents.steps`; `step_to_dict(step)` gives a JSON-ready form and
`write_memory(steps, summary_mode)` the chat messages the model sees.

### Supplying a model

A model is a subclass of `stepagents.agents.base_agent.Model` whose
`run(messages, tools, max_tokens, args)` returns a `ModelResponse`.
`get_response()` gives the text and `get_tools_used()` a list of `ToolCall`
objects (none by default).

```python
from stepagents.agents.base_agent import Model, ModelResponse
from stepagents.agents.function_calling import FunctionCallingAgent


class EchoResponse(ModelResponse):
    def __init__(self, text):
        self.text = text

    def get_response(self):
        return self.text


class EchoModel(Model):
    def run(self, messages, tools, max_tokens=None, args=None):
        return EchoResponse("42")


agent = FunctionCallingAgent(EchoModel(), [])
print(agent.run("What is the answer?"))  # 42
```

### Writing a tool

Subclass `stepagents.interpreter.python_tools.Tool`, set `name`,
`description` and `inputs` (parameter name to a JSON-schema property; mark a
parameter optional with `"nullable": True`), and implement
`forward(**kwargs)`. `forward_json(arguments)` accepts a mapping or a JSON
string, checks for missing and unknown arguments, and raises
`AgentExecutionError` on bad input. The same tools work for agents and for
the interpreter.

## The code interpreter

`stepagents.interpreter.local_interpreter.LocalPythonInterpreter` runs a
small subset of Python: assignments, tuple unpacking, `for` loops, list
comprehensions, f-strings, arithmetic, subscripts and slices, dicts, method
calls on values, and a fixed set of built-in and `math` functions (see
`base_python_tools()`). State persists between calls to `forward(code)`,
which returns the text of the last statement's value together with
everything printed so far.

```python
from stepagents.interpreter.local_interpreter import LocalPythonInterpreter

interpreter = LocalPythonInterpreter([])
result, logs = interpreter.forward("word = 'strawberry'\nprint(word[::-1])")
print(logs)  # yrrebwarts
```

`evaluate_python_code(code, custom_tools, state)` runs one snippet against a
state mapping you pass in. Arithmetic and built-in helpers return floats,
shown without a trailing `.0`; booleans print as `true`/`false`.

Calling `final_answer(...)` raises `stepagents.errors.FinalAnswer` with the
answer in `.answer`; other failures raise subclasses of `InterpreterError`
(`InterpreterSyntaxError`, `InterpreterRuntimeError`,
`UnsupportedOperationError`).

## Logging

Agents log through `stepagents.logger.get_logger()`, drawing each message
inside a coloured box as wide as the terminal, on standard output. The level
comes from the `STEPAGENTS_LOG_LEVEL` environment variable (`off`, `error`,
`warn`, `info`, `debug`, `trace`; `info` by default).

## What is not included

The package has no command-line program and ships no model clients: there is
nothing that talks to a hosted or local LLM service, so you supply your own
`Model`. It also ships no ready-made tools such as web search or page
fetching; apart from `final_answer`, every tool is one you write.