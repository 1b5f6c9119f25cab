"""Exceptions raised by agents and by the restricted Python interpreter."""

from __future__ import annotations


class AgentError(Exception):
    """Base class for errors an agent records or raises while solving a task."""

    kind = "Agent"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self._message = message

    def message(self) -> str:
        """Return the bare error message."""
        return self._message

    def __str__(self) -> str:
        return self._message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AgentError):
            return NotImplemented
        return type(self) is type(other) and self._message == other._message

    def __hash__(self) -> int:
        return hash((type(self), self._message))


class AgentParsingError(AgentError):
    """The model output could not be parsed."""

    kind = "Parsing"


class AgentExecutionError(AgentError):
    """A tool or code execution failed."""

    kind = "Execution"


class AgentMaxStepsError(AgentError):
    """The agent ran out of steps."""

    kind = "MaxSteps"


class AgentGenerationError(AgentError):
    """The model failed to generate a response."""

    kind = "Generation"


class InterpreterError(Exception):
    """Base class for errors raised while evaluating agent-written code."""

    prefix = ""

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        return f"{self.prefix}{self.detail}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InterpreterError):
            return NotImplemented
        return type(self) is type(other) and self.detail == other.detail

    def __hash__(self) -> int:
        return hash((type(self), self.detail))


class InterpreterSyntaxError(InterpreterError):
    """The code could not be parsed."""

    prefix = "Syntax Error: "


class InterpreterRuntimeError(InterpreterError):
    """The code failed while running."""

    prefix = "Runtime Error: "


class FinalAnswer(InterpreterError):
    """Raised by ``final_answer(...)`` to stop evaluation with an answer."""

    prefix = "Final Answer: "

    def __init__(self, answer: str) -> None:
        super().__init__(answer)
        self.answer = answer


class OperationLimitExceeded(InterpreterError):
    """Evaluation performed too many operations."""

    def __init__(self) -> None:
        super().__init__("")

    def __str__(self) -> str:
        return "Operation limit exceeded. Possible infinite loop detected."


class UnauthorizedImportError(InterpreterError):
    """The code tried to import a module that is not allowed."""

    prefix = "Unauthorized import of module: "


class UnsupportedOperationError(InterpreterError):
    """The code used an operation the interpreter does not support."""

    prefix = "Unsupported operation: "