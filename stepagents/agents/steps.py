"""Messages, tool calls and the log steps an agent records while working."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from stepagents.errors import AgentError

_RETRY_HINT = (
    "\nNow let's retry: take care not to repeat previous errors! "
    "If you have retried several times, try a completely different approach.\n"
)


class MessageRole(Enum):
    """Who a chat message is from."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """One chat message."""

    role: MessageRole
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class FunctionCall:
    """A function name and its JSON arguments."""

    name: str
    arguments: Any = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "arguments": self.arguments}


@dataclass
class ToolCall:
    """A model's request to call a tool."""

    function: FunctionCall
    id: str | None = None
    call_type: str | None = "function"

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.call_type, "function": self.function.to_dict()}


@dataclass
class PlanningStep:
    """A plan and the facts it was based on."""

    plan: str
    facts: str


@dataclass
class TaskStep:
    """The task given to the agent."""

    task: str


@dataclass
class SystemPromptStep:
    """The system prompt the agent runs under."""

    prompt: str


@dataclass
class ToolCallStep:
    """A tool call recorded on its own."""

    tool_call: ToolCall


@dataclass
class AgentStep:
    """One think-act-observe iteration of an agent."""

    step: int = 0
    agent_memory: list[Message] | None = None
    llm_output: str | None = None
    tool_call: list[ToolCall] | None = None
    error: AgentError | None = None
    observations: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_memory": (
                None
                if self.agent_memory is None
                else [message.to_dict() for message in self.agent_memory]
            ),
            "llm_output": self.llm_output,
            "tool_call": (
                None if self.tool_call is None else [call.to_dict() for call in self.tool_call]
            ),
            "error": None if self.error is None else {self.error.kind: self.error.message()},
            "observations": None if self.observations is None else list(self.observations),
            "step": self.step,
        }


Step = Union[PlanningStep, TaskStep, SystemPromptStep, AgentStep, ToolCallStep]


def step_to_dict(step: Step) -> dict[str, Any]:
    """JSON-ready form of a step, tagged with the step's kind."""
    match step:
        case PlanningStep(plan=plan, facts=facts):
            return {"PlanningStep": [plan, facts]}
        case TaskStep(task=task):
            return {"TaskStep": task}
        case SystemPromptStep(prompt=prompt):
            return {"SystemPromptStep": prompt}
        case AgentStep():
            return {"ActionStep": step.to_dict()}
        case ToolCallStep(tool_call=call):
            return {"ToolCall": call.to_dict()}
    raise TypeError(f"not a step: {step!r}")


def _action_messages(step: AgentStep, summary_mode: bool) -> Iterator[Message]:
    if step.llm_output is not None and not summary_mode:
        yield Message(MessageRole.ASSISTANT, step.llm_output)
    if step.tool_call is not None:
        for call in step.tool_call:
            yield Message(MessageRole.ASSISTANT, json.dumps(call.to_dict(), indent=2))
    if step.tool_call is not None and step.observations is not None:
        for call, observation in zip(step.tool_call, step.observations):
            yield Message(
                MessageRole.USER,
                f"Call id: {call.id or ''}\nObservation: {observation}",
            )
    elif step.observations is not None:
        yield Message(MessageRole.USER, "Observations: " + "\n".join(step.observations))
    if step.error is not None:
        yield Message(MessageRole.USER, "Error: " + step.error.message() + _RETRY_HINT)


def _memory(steps: Iterable[Step], summary_mode: bool) -> Iterator[Message]:
    for step in steps:
        match step:
            case PlanningStep(plan=plan, facts=facts):
                yield Message(MessageRole.ASSISTANT, "[PLAN]:\n" + plan)
                if not summary_mode:
                    yield Message(MessageRole.ASSISTANT, "[FACTS]:\n" + facts)
            case TaskStep(task=task):
                yield Message(MessageRole.USER, "New Task: " + task)
            case SystemPromptStep(prompt=prompt):
                yield Message(MessageRole.SYSTEM, prompt)
            case AgentStep():
                yield from _action_messages(step, summary_mode)
            case ToolCallStep():
                pass


def write_memory(steps: Iterable[Step], summary_mode: bool = False) -> list[Message]:
    """Turn logged steps into the messages a model sees.

    In summary mode the raw model outputs and the facts of a plan are left out.
    """
    return list(_memory(steps, summary_mode))