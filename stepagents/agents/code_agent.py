"""An agent that answers by writing Python code for the restricted interpreter."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from stepagents.agents.base_agent import OBSERVATION_LIMIT, Model, MultiStepAgent
from stepagents.agents.prompting import parse_code_blobs
from stepagents.agents.steps import AgentStep, FunctionCall, ToolCall
from stepagents.errors import AgentError, AgentExecutionError, FinalAnswer, InterpreterError
from stepagents.interpreter.local_interpreter import LocalPythonInterpreter
from stepagents.interpreter.python_tools import Tool

PYTHON_INTERPRETER = "python_interpreter"
TRUNCATION_NOTICE = (
    " \n....This content has been truncated due to the 30000 character limit....."
)

CODE_SYSTEM_PROMPT = """You are an expert assistant who solves tasks by writing Python code.
On each step, first explain your reasoning after 'Thoughts:', then write the code after 'Code:'
in a block that starts with '```py' and ends with '```<end_code>'.
Use print() to keep intermediate results; they are shown to you as observations.
When you know the answer, call final_answer(answer) in a code block.

The current time is {{current_time}}.

Besides a few Python built-ins you can call these tools as functions:
{{tool_descriptions}}

{{managed_agents_descriptions}}

Only call functions that exist: {{tool_names}}.
"""

_STOP_SEQUENCES = {"stop": ["Observation:", "<end_code>"]}


class CodeAgent(MultiStepAgent):
    """Lets the model write code that calls tools, and runs it step by step."""

    def __init__(
        self,
        model: Model,
        tools: Iterable[Tool] = (),
        system_prompt: str | None = None,
        managed_agents: Mapping[str, Any] | None = None,
        description: str | None = None,
        max_steps: int | None = None,
    ) -> None:
        super().__init__(
            model,
            tools,
            CODE_SYSTEM_PROMPT if system_prompt is None else system_prompt,
            managed_agents,
            description,
            max_steps,
        )
        self.interpreter = LocalPythonInterpreter(self.tools)

    def step(self, step_log: AgentStep) -> str | None:
        """Ask the model for code, run it and record the outcome.

        Returns the answer when the code calls ``final_answer``, otherwise ``None``.
        """
        if not isinstance(step_log, AgentStep):
            raise TypeError(f"only action steps can be taken, not {type(step_log).__name__}")
        memory = self.write_inner_memory_from_logs()
        self.input_messages = memory
        step_log.agent_memory = list(memory)

        stop = {key: list(value) for key, value in _STOP_SEQUENCES.items()}
        response = self.model.run(list(memory), [], None, stop).get_response()
        step_log.llm_output = response

        try:
            code = parse_code_blobs(response)
        except AgentError as exc:
            step_log.error = exc
            self.logger.info("Error: %s", response + "\n" + str(exc))
            return None

        self.logger.info("Code: %s", code)
        step_log.tool_call = [
            ToolCall(
                id=None,
                call_type="function",
                function=FunctionCall(PYTHON_INTERPRETER, {"code": code}),
            )
        ]

        try:
            result, execution_logs = self.interpreter.forward(code)
        except FinalAnswer as answer:
            return answer.answer
        except InterpreterError as exc:
            step_log.error = AgentExecutionError(str(exc))
            self.logger.info("Error: %s", exc)
            return None

        if execution_logs:
            observation = f"Execution logs: {execution_logs}"
        else:
            observation = f"Observation: {result}"
        if len(observation) > OBSERVATION_LIMIT:
            observation = observation[:OBSERVATION_LIMIT] + TRUNCATION_NOTICE
        self.logger.info("Observation: %s", observation)
        step_log.observations = [observation]
        return None