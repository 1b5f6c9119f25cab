"""An agent for models that call tools natively."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from stepagents.agents.base_agent import (
    TOOL_CALLING_SYSTEM_PROMPT,
    Model,
    ModelResponse,
    MultiStepAgent,
)
from stepagents.agents.steps import AgentStep, Message
from stepagents.interpreter.python_tools import Tool


def _echo(text: str) -> None:
    print(text, end="", flush=True)


class FunctionCallingAgent(MultiStepAgent):
    """Lets the model pick tools by function calling until it gives a final answer."""

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
            TOOL_CALLING_SYSTEM_PROMPT if system_prompt is None else system_prompt,
            managed_agents,
            description,
            max_steps,
        )

    def step(self, step_log: AgentStep) -> str | None:
        """Take one tool-calling step; return the answer if the step is final."""
        return self._act(step_log, self._generate)

    def step_stream(
        self, step_log: AgentStep, callback: Callable[[str], Any]
    ) -> str | None:
        """Like :meth:`step`, passing model output to ``callback`` as it streams."""

        def generate(
            messages: list[Message],
            tools: list[dict[str, Any]],
            args: dict[str, list[str]],
        ) -> ModelResponse:
            return self.model.run_stream(messages, tools, None, args, callback)

        return self._act(step_log, generate)

    def stream_run(self, task: str) -> str:
        """Run to an answer, printing model output as it streams."""
        return self._run_steps(task, lambda step_log: self.step_stream(step_log, _echo))