"""An agent that drafts a plan first and then carries out each step of it."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from stepagents.agents.base_agent import Model, MultiStepAgent
from stepagents.agents.function_calling import FunctionCallingAgent
from stepagents.agents.prompting import parse_plan
from stepagents.agents.steps import AgentStep, PlanningStep, Step
from stepagents.errors import AgentError
from stepagents.interpreter.python_tools import Tool


class PlanningAgent:
    """Plans a task with one agent and executes every plan step with a tool-calling agent."""

    name = "PlanningAgent"

    def __init__(
        self,
        model: Model,
        tools: Iterable[Tool] = (),
        system_prompt: str | None = None,
        managed_agents: Mapping[str, Any] | None = None,
        description: str | None = None,
        max_steps: int | None = None,
    ) -> None:
        tools = list(tools)
        self.planner = MultiStepAgent(model, tools, None, None, description, max_steps)
        self.executor = FunctionCallingAgent(
            model, tools, system_prompt, managed_agents, description, max_steps
        )
        self.logs: list[Step] = []

    @property
    def description(self) -> str:
        return self.executor.description

    @property
    def system_prompt_template(self) -> str:
        return self.executor.system_prompt_template

    def run(self, task: str, stream: bool = False, reset: bool = True) -> str:
        """Plan ``task``, run each numbered step and return the last step's answer."""
        if reset:
            self.logs.clear()
        self.planner.task = task
        self.executor.task = task
        self.planner.planning_step(task, True, 0)
        last = self.planner.logs[-1] if self.planner.logs else None
        if not isinstance(last, PlanningStep):
            raise AgentError("Failed to generate plan")

        self.logs.append(PlanningStep(last.plan, last.facts))
        final_answer = ""
        for step_task in parse_plan(last.plan):
            final_answer = self.executor.run(step_task, stream, True)
            self.logs.extend(self.executor.logs)
            self.executor.logs.clear()
        return final_answer

    def step(self, step_log: AgentStep) -> str | None:
        """Take one step with the executing agent."""
        return self.executor.step(step_log)