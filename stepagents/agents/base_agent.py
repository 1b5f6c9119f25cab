"""Models, the multi-step agent loop and the tool-calling step agents share."""

from __future__ import annotations

import abc
import json
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from stepagents.agents.prompting import (
    format_prompt_with_managed_agent_description,
    format_prompt_with_tools,
    show_agents_description,
)
from stepagents.agents.steps import (
    AgentStep,
    FunctionCall,
    Message,
    MessageRole,
    PlanningStep,
    Step,
    SystemPromptStep,
    TaskStep,
    ToolCall,
    write_memory,
)
from stepagents.errors import AgentError, AgentExecutionError
from stepagents.interpreter.python_tools import Tool
from stepagents.logger import init_logger_from_env

OBSERVATION_LIMIT = 30000
FINAL_ANSWER_TOOL = "final_answer"
DEFAULT_MAX_STEPS = 10
DEFAULT_DESCRIPTION = "A multi-step agent that can solve tasks using a series of tools"

TOOL_CALLING_SYSTEM_PROMPT = """You are an expert assistant who solves tasks by calling tools.
On each step, call one or more tools with JSON arguments and read the observations they return.
When you know the answer, call the final_answer tool with it.

The current time is {{current_time}}.

You have access to these tools:
{{tool_descriptions}}

{{managed_agents_descriptions}}

Only call tools that exist: {{tool_names}}.
"""

SYSTEM_PROMPT_FACTS = """Below is a task. Before working on it, survey the facts it involves.
List, under separate headings:
1. Facts given in the task.
2. Facts to look up, and where to find them.
3. Facts to derive by reasoning.
Do not solve the task yet."""

SYSTEM_PROMPT_PLAN = """You are a planner. Given a task, the available tools and the known facts,
write a step-by-step high-level plan as a numbered list, one step per line, each line starting
with its number. Do not skip steps and do not add superfluous ones.
After the last step, write '<end_plan>' and stop."""

_STUCK_PROMPT = (
    "An agent tried to answer a user query but it got stuck and failed to do so. "
    "You are tasked with providing an answer instead. Here is the agent's memory:"
)

Generate = Callable[[list[Message], list[dict[str, Any]], dict[str, list[str]]], "ModelResponse"]


def _stop_at_observation() -> dict[str, list[str]]:
    return {"stop": ["Observation:"]}


def _plan_request(task: str, tool_descriptions: str, team: str, facts: str) -> str:
    return (
        f"Here is your task:\n\nTask:\n```\n{task}\n```\n\n"
        f"You can use these tools:\n{tool_descriptions}\n\n{team}\n\n"
        f"List of facts that you know:\n```\n{facts}\n```\n\n"
        "Now begin! Write your plan below."
    )


class ModelResponse(abc.ABC):
    """What a model returned for one request."""

    @abc.abstractmethod
    def get_response(self) -> str:
        """The text of the response; raises :class:`AgentError` when there is none."""

    def get_tools_used(self) -> list[ToolCall]:
        """The tool calls the model asked for; a plain text response has none."""
        return []


class Model(abc.ABC):
    """A chat model that can be asked to answer or to call tools."""

    @abc.abstractmethod
    def run(
        self,
        messages: Sequence[Message],
        tools: Sequence[Mapping[str, Any]],
        max_tokens: int | None = None,
        args: Mapping[str, list[str]] | None = None,
    ) -> ModelResponse:
        """Send ``messages`` with the tool descriptions and return the response."""

    def run_stream(
        self,
        messages: Sequence[Message],
        tools: Sequence[Mapping[str, Any]],
        max_tokens: int | None,
        args: Mapping[str, list[str]] | None,
        callback: Callable[[str], Any],
    ) -> ModelResponse:
        """Like :meth:`run`, passing the response text to ``callback`` as it arrives."""
        response = self.run(messages, tools, max_tokens, args)
        try:
            text = response.get_response()
        except AgentError:
            return response
        if text:
            callback(text)
        return response


class _FinalAnswerTool(Tool):
    name = FINAL_ANSWER_TOOL
    description = "Provides a final answer to the given problem."
    inputs = {"answer": {"type": "string", "description": "The final answer to the problem"}}

    def forward(self, answer: Any) -> str:
        return str(answer)


class MultiStepAgent:
    """An agent that thinks, calls tools and observes, step by step, until it answers."""

    name = "MultiStepAgent"

    def __init__(
        self,
        model: Model,
        tools: Iterable[Tool] = (),
        system_prompt: str | None = None,
        managed_agents: Mapping[str, Any] | None = None,
        description: str | None = None,
        max_steps: int | None = None,
    ) -> None:
        self.logger = init_logger_from_env()
        self.model = model
        self.tools: list[Tool] = [*tools, _FinalAnswerTool()]
        self.managed_agents = dict(managed_agents) if managed_agents else None
        self.description = DEFAULT_DESCRIPTION if description is None else description
        self.max_steps = DEFAULT_MAX_STEPS if max_steps is None else max_steps
        self.step_number = 0
        self.task = ""
        self.input_messages: list[Message] | None = None
        self.logs: list[Step] = []
        template = TOOL_CALLING_SYSTEM_PROMPT if system_prompt is None else system_prompt
        self.system_prompt_template = self._initialize_system_prompt(template)

    def _initialize_system_prompt(self, template: str) -> str:
        prompt = format_prompt_with_tools([tool.tool_info() for tool in self.tools], template)
        prompt = format_prompt_with_managed_agent_description(prompt, self.managed_agents or {})
        return prompt.replace("{{current_time}}", str(datetime.now().astimezone()))

    # running

    def run(self, task: str, stream: bool = False, reset: bool = True) -> str:
        """Solve ``task`` and return the answer.

        With ``reset`` the history is cleared; otherwise it is kept and the
        system prompt at its start is refreshed.
        """
        self.task = task
        system_step = SystemPromptStep(self.system_prompt_template)
        if reset:
            self.logs.clear()
            self.logs.append(system_step)
            self.step_number = 0
        elif not self.logs:
            self.logs.append(system_step)
        else:
            self.logs[0] = system_step
        self.logs.append(TaskStep(task))
        return self.stream_run(task) if stream else self.direct_run(task)

    def direct_run(self, task: str) -> str:
        """Take steps until there is an answer or the step limit is reached."""
        return self._run_steps(task, self.step)

    def stream_run(self, task: str) -> str:
        """Run while streaming model output; plain agents run directly."""
        return self.direct_run(task)

    def _run_steps(self, task: str, take_step: Callable[[AgentStep], str | None]) -> str:
        final_answer: str | None = None
        while final_answer is None and self.step_number < self.max_steps:
            print(f"Step number: {self.step_number}")
            step_log = AgentStep(step=self.step_number)
            final_answer = take_step(step_log)
            self.logs.append(step_log)
            self.step_number += 1

        if final_answer is None and self.step_number >= self.max_steps:
            final_answer = self.provide_final_answer(task)
        self.logger.info(
            "Final answer: %s",
            final_answer if final_answer is not None else "Could not find answer",
        )
        if final_answer is None:
            return "Max steps reached without final answer"
        return final_answer

    # one step

    def step(self, step_log: AgentStep) -> str | None:
        """Ask the model for tool calls, run them and record what they returned.

        Returns the answer when the step is final, otherwise ``None``.
        """
        return self._act(step_log, self._generate)

    def _generate(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]],
        args: dict[str, list[str]],
    ) -> ModelResponse:
        return self.model.run(messages, tools, None, args)

    def _act(self, step_log: AgentStep, generate: Generate) -> str | None:
        if not isinstance(step_log, AgentStep):
            raise TypeError(f"only action steps can be taken, not {type(step_log).__name__}")
        memory = self.write_inner_memory_from_logs()
        self.input_messages = memory
        step_log.agent_memory = list(memory)
        tool_infos = [tool.tool_info() for tool in self.tools]
        response = generate(list(memory), tool_infos, _stop_at_observation())

        calls = list(response.get_tools_used())
        step_log.tool_call = calls
        observations: list[str] = []

        try:
            text: str | None = response.get_response()
        except AgentError:
            text = None
        if text is not None:
            if text.strip():
                observations.append(text)
            if not calls:
                return text

        for call in calls:
            name = call.function.name
            if name == FINAL_ANSWER_TOOL:
                self.logger.info("Executing tool call: %s", name)
                return self.call_tool(call.function)
            self.logger.info(
                "Executing tool call: %s with arguments: %r", name, call.function.arguments
            )
            try:
                observation = self.call_tool(call.function)
            except AgentError as exc:
                observations.append(str(exc))
                self.logger.info("Error: %s", exc)
            else:
                observations.append(
                    f"Observation from {name}: {observation[:OBSERVATION_LIMIT]}"
                )

        step_log.observations = observations
        self.logger.info(
            "Observation: %s \n ....This content has been truncated due to the "
            "30000 character limit.....",
            "\n".join(observations).strip()[:OBSERVATION_LIMIT],
        )
        return None

    def call_tool(self, call: FunctionCall | ToolCall) -> str:
        """Run the named tool with the call's arguments and return its output."""
        function = call.function if isinstance(call, ToolCall) else call
        tool = next((tool for tool in self.tools if tool.name == function.name), None)
        if tool is None:
            raise AgentExecutionError(f"Tool '{function.name}' not found")
        try:
            return tool.forward_json(function.arguments)
        except AgentError:
            raise
        except Exception as exc:
            raise AgentExecutionError(f"Error in tool '{function.name}': {exc}") from exc

    # memory and fallbacks

    def write_inner_memory_from_logs(self, summary_mode: bool = False) -> list[Message]:
        """The logged history as chat messages."""
        return write_memory(self.logs, summary_mode)

    def provide_final_answer(self, task: str) -> str:
        """Ask the model to answer directly from the history after the agent got stuck."""
        messages = [Message(MessageRole.SYSTEM, _STUCK_PROMPT)]
        messages.extend(self.write_inner_memory_from_logs(summary_mode=True)[1:])
        messages.append(
            Message(
                MessageRole.USER,
                "Based on the above, please provide an answer to the following "
                f"user request: \n```\n{task}",
            )
        )
        return self.model.run(messages, [], None, None).get_response()

    def planning_step(
        self, task: str, is_first_step: bool, step: int = 0
    ) -> PlanningStep | None:
        """Survey the facts and draft a plan for ``task``; record it in the logs."""
        if not is_first_step:
            return None
        facts_request = [
            Message(MessageRole.SYSTEM, SYSTEM_PROMPT_FACTS),
            Message(MessageRole.USER, f"Here is the task: ```\n{task}\n```\nNow Begin!\n"),
        ]
        try:
            answer_facts = self.model.run(facts_request, [], None, None).get_response()
        except AgentError:
            answer_facts = ""

        tool_descriptions = json.dumps([tool.tool_info() for tool in self.tools])
        plan_request = [
            Message(MessageRole.SYSTEM, SYSTEM_PROMPT_PLAN),
            Message(
                MessageRole.USER,
                _plan_request(
                    task,
                    tool_descriptions,
                    show_agents_description(self.managed_agents or {}),
                    answer_facts,
                ),
            ),
        ]
        answer_plan = self.model.run(
            plan_request, [], None, _stop_at_observation()
        ).get_response()

        planning = PlanningStep(
            "Here is the plan of action that I will follow for the task: \n" + answer_plan,
            "Here are the facts that I know so far: \n" + answer_facts,
        )
        self.logs.append(planning)
        self.logger.info("Plan: %s", planning.plan)
        return planning