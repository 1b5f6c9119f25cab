"""Tree-walking evaluator for the small Python subset that agents may run."""

from __future__ import annotations

import ast
import math
import numbers
from collections.abc import Iterable, Mapping, MutableMapping
from typing import Any

from stepagents.errors import (
    FinalAnswer,
    InterpreterRuntimeError,
    UnsupportedOperationError,
)
from stepagents.interpreter.python_tools import CustomTool, StaticTool, make_static_tools
from stepagents.interpreter.values import as_sequence, normalize, render

PRINT_LOGS = "print_logs"

_IN_PLACE_METHODS = frozenset({"append", "extend", "insert"})
_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1
_MISSING = object()


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_plain(value: Any) -> bool:
    return isinstance(value, (str, int, float, bool, list, tuple, dict))


def _native(value: Any) -> Any:
    """A fresh copy of a value, so native calls never alter stored values."""
    if isinstance(value, (list, tuple)):
        return [_native(item) for item in value]
    if isinstance(value, dict):
        return {key: _native(item) for key, item in value.items()}
    return value


def _as_constant(value: Any) -> Any:
    """Argument form for tools: opaque objects are passed as their text."""
    return value if _is_plain(value) else str(value)


def _python_error(exc: BaseException) -> InterpreterRuntimeError:
    return InterpreterRuntimeError(f"{type(exc).__name__}: {exc}")


def _number(value: Any) -> float:
    if isinstance(value, float):
        return value
    if _is_int(value):
        try:
            return float(value)
        except OverflowError:
            return math.copysign(math.inf, value)
    raise InterpreterRuntimeError("Expected float or int")


def _to_i64(value: float) -> int:
    if math.isnan(value):
        return 0
    if value >= _I64_MAX:
        return _I64_MAX
    if value <= _I64_MIN:
        return _I64_MIN
    return int(value)


def _wrap_i64(value: int) -> int:
    return ((value - _I64_MIN) % 2**64) + _I64_MIN


def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    try:
        return a / b
    except OverflowError:
        return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _fmod(a: float, b: float) -> float:
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan


def _odd_integer(value: float) -> bool:
    return value.is_integer() and value % 2 == 1


def _powf(a: float, b: float) -> float:
    try:
        result = a**b
    except ZeroDivisionError:
        return math.copysign(math.inf, a) if _odd_integer(b) else math.inf
    except OverflowError:
        return -math.inf if a < 0 and _odd_integer(b) else math.inf
    if isinstance(result, complex):
        return math.nan
    return result


def _shift_left(a: float, b: float) -> int:
    left, right = _to_i64(a), _to_i64(b)
    if not 0 <= right < 64:
        raise InterpreterRuntimeError("attempt to shift left with overflow")
    return _wrap_i64(left << right)


def _shift_right(a: float, b: float) -> int:
    left, right = _to_i64(a), _to_i64(b)
    if not 0 <= right < 64:
        raise InterpreterRuntimeError("attempt to shift right with overflow")
    return left >> right


_ARITHMETIC = {
    ast.Add: lambda a, b: a + b,
    ast.Sub: lambda a, b: a - b,
    ast.Mult: lambda a, b: a * b,
    ast.MatMult: lambda a, b: a * b,
    ast.Div: _divide,
    ast.FloorDiv: _divide,
    ast.Mod: _fmod,
    ast.Pow: _powf,
    ast.BitOr: lambda a, b: _to_i64(a) | _to_i64(b),
    ast.BitXor: lambda a, b: _to_i64(a) ^ _to_i64(b),
    ast.BitAnd: lambda a, b: _to_i64(a) & _to_i64(b),
    ast.LShift: _shift_left,
    ast.RShift: _shift_right,
}


def _loop_value(item: Any) -> Any:
    if isinstance(item, int) and _I64_MIN <= item <= _I64_MAX:
        return int(item)
    if isinstance(item, numbers.Real):
        try:
            return float(item)
        except (OverflowError, TypeError, ValueError):
            pass
    if isinstance(item, str):
        return item
    raise InterpreterRuntimeError("Unsupported type in iterator")


class Evaluator:
    """Evaluates parsed statements against a mutable variable state.

    Built-in helpers come from ``static_tools`` (positional arguments only),
    agent tools from ``custom_tools`` (positional and keyword arguments).
    Output of ``print`` is collected in ``state["print_logs"]``.
    """

    def __init__(
        self,
        static_tools: Mapping[str, StaticTool] | None = None,
        custom_tools: Mapping[str, CustomTool] | None = None,
        state: MutableMapping[str, Any] | None = None,
    ) -> None:
        self.static_tools = make_static_tools() if static_tools is None else static_tools
        self.custom_tools = {} if custom_tools is None else custom_tools
        self.state = {} if state is None else state

    def run(self, tree: ast.Module | Iterable[ast.stmt]) -> Any:
        """Evaluate every statement; return the value of the last one."""
        body = tree.body if isinstance(tree, ast.Module) else tree
        result: Any = ""
        for node in body:
            result = self.eval_stmt(node)
        return result

    # statements

    def eval_stmt(self, node: ast.stmt) -> Any:
        """Evaluate one statement and return its value."""
        match node:
            case ast.FunctionDef(name=name):
                return f'Function: "{name}"'
            case ast.Expr(value=value):
                return self.eval_expr(value)
            case ast.For():
                return self._for(node)
            case ast.Assign():
                return self._assign(node)
        raise InterpreterRuntimeError(f"Unsupported statement {ast.dump(node)}")

    def _for(self, node: ast.For) -> Any:
        iterable = self.eval_expr(node.iter)
        values = as_sequence(iterable)
        if values is None:
            if _is_plain(iterable):
                raise InterpreterRuntimeError("Expected iterable")
            values = [_loop_value(item) for item in self._iterate(iterable)]
        if not isinstance(node.target, ast.Name):
            raise InterpreterRuntimeError("Expected name as loop target")
        result: Any = ""
        for value in values:
            self.state[node.target.id] = value
            for stmt in node.body:
                result = self.eval_stmt(stmt)
        return result

    def _assign(self, node: ast.Assign) -> str:
        for target in node.targets:
            match target:
                case ast.Name(id=name):
                    self.state[name] = self.eval_expr(node.value)
                case ast.Tuple(elts=elements):
                    self._unpack(elements, self.eval_expr(node.value))
                case _:
                    raise UnsupportedOperationError(
                        f"assignment to {type(target).__name__}"
                    )
        return ""

    def _unpack(self, elements: list[ast.expr], value: Any) -> None:
        values = as_sequence(value)
        if values is None:
            raise InterpreterRuntimeError(
                "Tuple unpacking failed. Expected values of type tuple"
            )
        if len(elements) != len(values):
            raise InterpreterRuntimeError(
                f"Tuple unpacking failed. Expected {len(elements)} values, got {len(values)}"
            )
        for element, item in zip(elements, values):
            if not isinstance(element, ast.Name):
                raise UnsupportedOperationError(
                    f"unpacking into {type(element).__name__}"
                )
            self.state[element.id] = item

    # expressions

    def eval_expr(self, node: ast.expr) -> Any:
        """Evaluate one expression and return its value."""
        match node:
            case ast.Dict():
                return self._dict(node)
            case ast.ListComp():
                return self._list_comp(node)
            case ast.Call():
                return self._call(node)
            case ast.BinOp():
                return self._binop(node)
            case ast.UnaryOp():
                return self._unaryop(node)
            case ast.Constant(value=value):
                return self._constant(value)
            case ast.List(elts=elements) | ast.Tuple(elts=elements):
                return [self.eval_expr(element) for element in elements]
            case ast.Name(id=name):
                value = self.state.get(name, _MISSING)
                if value is _MISSING:
                    raise InterpreterRuntimeError(
                        f"Variable '{name}' used before assignment"
                    )
                return value
            case ast.JoinedStr(values=parts):
                return "".join(render(self.eval_expr(part)) for part in parts)
            case ast.FormattedValue(value=value):
                return render(self.eval_expr(value))
            case ast.Subscript():
                return self._subscript(node)
            case ast.Slice(lower=lower, upper=upper, step=step):
                return [
                    0 if lower is None else self.eval_expr(lower),
                    0 if upper is None else self.eval_expr(upper),
                    1 if step is None else self.eval_expr(step),
                ]
        raise UnsupportedOperationError(f"expression {type(node).__name__}")

    @staticmethod
    def _constant(value: Any) -> Any:
        if value is None:
            return "None"
        if isinstance(value, (bool, int, float, str)):
            return value
        raise UnsupportedOperationError(f"constant of type {type(value).__name__}")

    def _dict(self, node: ast.Dict) -> dict[str, Any]:
        keys = []
        for key in node.keys:
            if key is None:
                raise InterpreterRuntimeError("Dictionary key cannot be None")
            keys.append(render(self.eval_expr(key)))
        values = [self.eval_expr(value) for value in node.values]
        return dict(zip(keys, values))

    @staticmethod
    def _iterate(obj: Any) -> Iterable[Any]:
        try:
            iterator = iter(obj)
        except Exception as exc:
            raise _python_error(exc) from exc
        while True:
            try:
                item = next(iterator)
            except StopIteration:
                return
            except Exception as exc:
                raise _python_error(exc) from exc
            yield item

    def _list_comp(self, node: ast.ListComp) -> list[Any]:
        generator = node.generators[0]
        iterable = _native(self.eval_expr(generator.iter))
        if not isinstance(generator.target, ast.Name):
            raise UnsupportedOperationError(
                f"comprehension target {type(generator.target).__name__}"
            )
        results = []
        for item in self._iterate(iterable):
            self.state[generator.target.id] = normalize(item)
            results.append(self.eval_expr(node.elt))
        return results

    def _call(self, node: ast.Call) -> Any:
        args = [self.eval_expr(arg) for arg in node.args]
        func = node.func
        if isinstance(func, ast.Attribute):
            return self._call_method(func, args)
        if not isinstance(func, ast.Name):
            raise UnsupportedOperationError(f"call of {type(func).__name__}")
        name = func.id

        keywords: dict[str, str] = {}
        for keyword in node.keywords:
            value = self.eval_expr(keyword.value)
            if keyword.arg is None:
                raise UnsupportedOperationError("keyword argument unpacking")
            keywords[keyword.arg] = render(value)

        if name == "final_answer":
            if "answer" in keywords:
                raise FinalAnswer(keywords["answer"])
            raise FinalAnswer(" ".join(render(arg) for arg in args))
        if name == "print":
            return self._print(args)
        constants = [_as_constant(arg) for arg in args]
        if name in self.static_tools:
            return self.static_tools[name](constants)
        if name in self.custom_tools:
            return self.custom_tools[name](constants, keywords)
        raise InterpreterRuntimeError(f"Function '{name}' not found")

    def _print(self, args: list[Any]) -> str:
        rendered = [render(arg) for arg in args]
        text = " ".join(rendered)
        logs = self.state.get(PRINT_LOGS)
        if logs is None:
            self.state[PRINT_LOGS] = rendered
        elif isinstance(logs, list):
            logs.append(text)
        else:
            raise InterpreterRuntimeError("print_logs is not a list")
        return text

    def _call_method(self, attr: ast.Attribute, args: list[Any]) -> Any:
        obj = _native(self.eval_expr(attr.value))
        try:
            method = getattr(obj, attr.attr)
            result = method(*(_native(arg) for arg in args))
        except Exception as exc:
            raise _python_error(exc) from exc
        if attr.attr in _IN_PLACE_METHODS:
            if not isinstance(attr.value, ast.Name):
                raise UnsupportedOperationError(
                    f"'{attr.attr}' on {type(attr.value).__name__}"
                )
            updated = normalize(obj)
            self.state[attr.value.id] = updated
            return updated
        return normalize(result)

    def _subscript(self, node: ast.Subscript) -> Any:
        container = _native(self.eval_expr(node.value))
        if isinstance(node.slice, ast.Slice):
            return self._slice(container, node.slice)
        key = self.eval_expr(node.slice)
        if _is_int(key):
            try:
                return normalize(container[key])
            except Exception as exc:
                raise _python_error(exc) from exc
        if isinstance(key, str) and isinstance(container, dict):
            if key not in container:
                raise InterpreterRuntimeError(f"KeyError: '{key}'")
            return normalize(container[key])
        raise InterpreterRuntimeError("Invalid slice")

    def _slice(self, container: Any, node: ast.Slice) -> Any:
        bounds = []
        for label, bound in (("start", node.lower), ("stop", node.upper), ("step", node.step)):
            if bound is None:
                bounds.append(None)
                continue
            value = self.eval_expr(bound)
            if not _is_int(value):
                raise InterpreterRuntimeError(f"Invalid {label} value in slice")
            bounds.append(value)
        try:
            result = container[slice(*bounds)]
        except Exception as exc:
            raise _python_error(exc) from exc
        return normalize(result)

    def _binop(self, node: ast.BinOp) -> Any:
        left = self.eval_expr(node.left)
        right = self.eval_expr(node.right)
        op = node.op
        if isinstance(op, ast.Add):
            if isinstance(left, str) and isinstance(right, str):
                return left + right
            if isinstance(left, str) and _is_int(right):
                return left + str(right)
            if _is_int(left) and isinstance(right, str):
                return str(left) + right
        elif isinstance(op, ast.Mult):
            if isinstance(left, str) and _is_int(right):
                return left * right
            if _is_int(left) and isinstance(right, str):
                return right * left
        return _ARITHMETIC[type(op)](_number(left), _number(right))

    def _unaryop(self, node: ast.UnaryOp) -> Any:
        operand = self.eval_expr(node.operand)
        match node.op:
            case ast.USub():
                if isinstance(operand, float) or _is_int(operand):
                    return -operand
                raise InterpreterRuntimeError("Expected float or int")
            case ast.UAdd():
                return operand
            case ast.Not():
                if isinstance(operand, bool):
                    return not operand
                raise InterpreterRuntimeError("Expected boolean")
            case ast.Invert():
                if isinstance(operand, float):
                    return float(-_to_i64(operand))
                raise InterpreterRuntimeError("Expected float")
        raise UnsupportedOperationError(f"unary operator {type(node.op).__name__}")