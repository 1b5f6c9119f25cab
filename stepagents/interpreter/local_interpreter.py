"""Entry points for running agent-written code in the restricted interpreter."""

from __future__ import annotations

import ast
from collections.abc import Iterable, MutableMapping
from typing import Any

from stepagents.errors import InterpreterSyntaxError
from stepagents.interpreter.evaluator import PRINT_LOGS, Evaluator
from stepagents.interpreter.python_tools import Tool, make_custom_tools, make_static_tools
from stepagents.interpreter.values import render

_FILENAME = "<embedded>"


def _parse(code: str) -> ast.Module:
    try:
        return ast.parse(code, filename=_FILENAME)
    except SyntaxError as exc:
        raise InterpreterSyntaxError(str(exc)) from exc


def evaluate_python_code(
    code: str,
    custom_tools: Iterable[Tool] = (),
    state: MutableMapping[str, Any] | None = None,
) -> str:
    """Evaluate ``code`` and return the text of its last statement's value.

    ``state`` holds the variables and is updated in place; output of
    ``print`` is collected in ``state["print_logs"]``.
    """
    tree = _parse(code)
    evaluator = Evaluator(make_static_tools(), make_custom_tools(custom_tools), state)
    return render(evaluator.run(tree))


class LocalPythonInterpreter:
    """Runs successive code snippets that share one variable state."""

    def __init__(self, custom_tools: Iterable[Tool] = ()) -> None:
        self.state: dict[str, Any] = {}
        self._evaluator = Evaluator(
            make_static_tools(), make_custom_tools(custom_tools), self.state
        )

    def forward(self, code: str) -> tuple[str, str]:
        """Run ``code``; return its result text and all printed output so far."""
        tree = _parse(code)
        result = self._evaluator.run(tree)
        logs = self.state.get(PRINT_LOGS)
        execution_logs = "\n".join(logs) if isinstance(logs, list) else ""
        return render(result), execution_logs