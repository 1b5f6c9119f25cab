"""Tools callable from interpreted code: built-in helpers and agent tools."""

from __future__ import annotations

import abc
import builtins
import json
import math
import numbers
from collections.abc import Callable, Iterable, Mapping, Sequence
from functools import partial
from typing import Any, ClassVar

from stepagents.errors import AgentExecutionError, InterpreterRuntimeError

StaticTool = Callable[[Sequence[Any]], Any]
CustomTool = Callable[[Sequence[Any], Mapping[str, str]], str]

_FALLBACK_PATH = "builtins.float"

_BASE_PYTHON_TOOLS: dict[str, str] = {
    "print": "custom_print",
    "isinstance": "isinstance",
    "range": "range",
    "float": "float",
    "int": "int",
    "bool": "bool",
    "str": "str",
    "set": "set",
    "list": "list",
    "dict": "dict",
    "tuple": "tuple",
    "round": "round",
    "ceil": "math.ceil",
    "floor": "math.floor",
    "log": "math.log",
    "exp": "math.exp",
    "sin": "math.sin",
    "cos": "math.cos",
    "tan": "math.tan",
    "asin": "math.asin",
    "acos": "math.acos",
    "atan": "math.atan",
    "atan2": "math.atan2",
    "degrees": "math.degrees",
    "radians": "math.radians",
    "pow": "math.pow",
    "sqrt": "math.sqrt",
    "len": "len",
    "sum": "sum",
    "max": "max",
    "min": "min",
    "abs": "abs",
    "enumerate": "enumerate",
    "zip": "zip",
    "reversed": "reversed",
    "sorted": "sorted",
    "all": "all",
    "any": "any",
    "map": "map",
    "filter": "filter",
    "ord": "ord",
    "chr": "chr",
    "next": "next",
    "iter": "iter",
    "divmod": "divmod",
    "callable": "callable",
    "getattr": "getattr",
    "hasattr": "hasattr",
    "setattr": "setattr",
    "issubclass": "issubclass",
    "type": "type",
    "complex": "complex",
}

_NAMESPACES = {"": builtins, "builtins": builtins, "math": math}


class Tool(abc.ABC):
    """A capability an agent can call by name with keyword arguments.

    Subclasses set ``name``, ``description`` and ``inputs`` (parameter name
    to a JSON-schema property; ``"nullable": True`` marks it optional) and
    implement :meth:`forward`.
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    inputs: ClassVar[Mapping[str, Mapping[str, Any]]] = {}
    output_type: ClassVar[str] = "string"

    def parameter_names(self) -> list[str]:
        """Names of the tool's parameters, in declaration order."""
        return list(self.inputs)

    def _required(self) -> list[str]:
        return [
            name for name, spec in self.inputs.items() if not spec.get("nullable", False)
        ]

    def tool_info(self) -> dict[str, Any]:
        """Function-calling description of the tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {key: dict(spec) for key, spec in self.inputs.items()},
                    "required": self._required(),
                },
            },
        }

    @abc.abstractmethod
    def forward(self, **kwargs: Any) -> Any:
        """Run the tool with keyword arguments."""

    def forward_json(self, arguments: Mapping[str, Any] | str | bytes) -> str:
        """Run the tool with arguments given as a JSON object or a mapping."""
        if isinstance(arguments, (str, bytes)):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError as exc:
                raise AgentExecutionError(
                    f"Invalid arguments for tool '{self.name}': {exc}"
                ) from exc
        if not isinstance(arguments, Mapping):
            raise AgentExecutionError(
                f"Arguments for tool '{self.name}' must be an object"
            )
        missing = [name for name in self._required() if name not in arguments]
        if missing:
            raise AgentExecutionError(
                f"Missing required argument(s) for tool '{self.name}': {', '.join(missing)}"
            )
        unknown = [key for key in arguments if key not in self.inputs]
        if unknown:
            raise AgentExecutionError(
                f"Unknown argument(s) for tool '{self.name}': {', '.join(unknown)}"
            )
        return str(self.forward(**arguments))


def base_python_tools() -> dict[str, str]:
    """Names usable in interpreted code, mapped to the function they stand for."""
    return dict(_BASE_PYTHON_TOOLS)


def _resolve(path: str) -> Callable[..., Any]:
    module_name, _, attr = path.rpartition(".")
    namespace = _NAMESPACES.get(module_name)
    func = getattr(namespace, attr, None) if namespace is not None else None
    if func is None:
        raise InterpreterRuntimeError(f"NameError: name '{attr}' is not defined")
    return func


def _to_float(item: Any) -> float:
    if isinstance(item, bool):
        return 0.0
    if isinstance(item, (int, float)):
        return float(item)
    return 0.0


def _to_argument(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_to_float(item) for item in value]
    if isinstance(value, dict):
        return [0.0] * len(value)
    return value


def _from_result(obj: Any) -> Any:
    if isinstance(obj, numbers.Real):
        try:
            return float(obj)
        except OverflowError:
            return obj
    if isinstance(obj, str):
        return obj
    if isinstance(obj, (list, tuple)) and all(isinstance(item, str) for item in obj):
        return list(obj)
    return obj


def _invoke(path: str, args: Sequence[Any]) -> Any:
    func = _resolve(path)
    try:
        result = func(*(_to_argument(arg) for arg in args))
    except Exception as exc:
        raise InterpreterRuntimeError(f"{type(exc).__name__}: {exc}") from exc
    return _from_result(result)


def call_static_tool(name: str, args: Sequence[Any]) -> Any:
    """Call a built-in helper by its interpreter name.

    Booleans and missing values are passed as ``0.0``, lists as lists of
    floats. Numeric results come back as floats. Unknown names fall back
    to ``float``.
    """
    return _invoke(_BASE_PYTHON_TOOLS.get(name, _FALLBACK_PATH), args)


def make_static_tools(names: Mapping[str, str] | None = None) -> dict[str, StaticTool]:
    """Callables for each helper name, taking a list of positional arguments."""
    mapping = _BASE_PYTHON_TOOLS if names is None else names
    return {name: partial(_invoke, path) for name, path in mapping.items()}


def _custom_call(tool: Tool, args: Sequence[Any], kwargs: Mapping[str, str]) -> str:
    parameter_names = tool.parameter_names()
    if len(args) > len(parameter_names):
        raise InterpreterRuntimeError(
            f"Tool '{tool.name}' takes {len(parameter_names)} positional arguments "
            f"but {len(args)} were given"
        )
    merged: dict[str, Any] = {}
    for parameter, arg in zip(parameter_names, args):
        if not isinstance(arg, str):
            raise InterpreterRuntimeError(
                f"Positional argument '{parameter}' of tool '{tool.name}' must be a string"
            )
        merged[parameter] = arg
    merged.update(kwargs)
    try:
        return tool.forward_json(merged)
    except Exception as exc:
        return f"Error: {exc}"


def make_custom_tools(tools: Iterable[Tool]) -> dict[str, CustomTool]:
    """Callables for agent tools, taking positional and keyword arguments.

    Positional arguments fill parameters in order and must be strings;
    keyword arguments override them. A failing tool yields ``"Error: ..."``.
    """
    return {tool.name: partial(_custom_call, tool) for tool in tools}