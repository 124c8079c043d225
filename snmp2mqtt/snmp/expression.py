"""
Transform expression evaluator.

Sensors may carry a ``transform`` such as ``"value / 100"`` or
``"'ON' if value == 1 else 'OFF'"``.  The text comes from user configuration,
so it is parsed with :mod:`ast` and walked against a whitelist instead of
being handed to ``eval``.  The only name in scope is ``value``; the only
callables are the ones in ``_FUNCTIONS`` and the string methods in
``_STR_METHODS``.
"""
from __future__ import annotations

import ast
import math
import operator
from typing import Any, Callable

_MAX_EXPRESSION_LENGTH = 1000
_MAX_EXPONENT = 1024
# bounds on intermediate results; checked before the operation where possible
_MAX_INT_BITS = 8192
_MAX_SEQUENCE_LENGTH = 10_000

_BIN_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.BitAnd: operator.and_,
    ast.BitOr: operator.or_,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
}

_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
    ast.Not: operator.not_,
}

_CMP_OPS: dict[type[ast.cmpop], Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "int": int,
    "float": float,
    "str": str,
    "bool": bool,
    "len": len,
    "sqrt": math.sqrt,
    "floor": math.floor,
    "ceil": math.ceil,
    "log": math.log,
    "log10": math.log10,
    "exp": math.exp,
}

_STR_METHODS = frozenset({
    "lower", "upper", "strip", "lstrip", "rstrip",
    "replace", "startswith", "endswith", "split",
})


class ExpressionError(ValueError):
    """Transform expression is invalid, disallowed, or failed to evaluate."""


def evaluate(expression: str, value: Any) -> Any:
    """
    Evaluate ``expression`` with ``value`` as its only variable.

    Raises:
        ExpressionError: on syntax errors, disallowed constructs, or any
            error raised while evaluating (division by zero, bad types...).
    """
    if len(expression) > _MAX_EXPRESSION_LENGTH:
        raise ExpressionError("expression too long")
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        raise ExpressionError(f"invalid expression {expression!r}: {e.msg}") from e
    except (RecursionError, MemoryError, ValueError) as e:
        raise ExpressionError(f"invalid expression {expression!r}: {type(e).__name__}") from e

    try:
        return _Evaluator(value).visit(tree.body)
    except ExpressionError:
        raise
    except (ArithmeticError, TypeError, ValueError, IndexError, KeyError, RecursionError, MemoryError) as e:
        raise ExpressionError(f"{expression!r} failed: {type(e).__name__}: {e}") from e


class _Evaluator:
    def __init__(self, value: Any) -> None:
        self._value = value

    def visit(self, node: ast.AST) -> Any:
        method = getattr(self, f"visit_{type(node).__name__}", None)
        if method is None:
            raise ExpressionError(f"{type(node).__name__} is not allowed")
        return method(node)

    def visit_Constant(self, node: ast.Constant) -> Any:
        if not isinstance(node.value, (int, float, str, bool, type(None))):
            raise ExpressionError(f"literal {node.value!r} is not allowed")
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id == "value":
            return self._value
        if node.id in ("True", "False", "None"):
            return {"True": True, "False": False, "None": None}[node.id]
        raise ExpressionError(f"unknown name {node.id!r}")

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"operator {type(node.op).__name__} is not allowed")
        left = self.visit(node.left)
        right = self.visit(node.right)
        _check_operands(node.op, left, right)
        return _check_size(op(left, right))

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"operator {type(node.op).__name__} is not allowed")
        return op(self.visit(node.operand))

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        if isinstance(node.op, ast.And):
            result: Any = True
            for operand in node.values:
                result = self.visit(operand)
                if not result:
                    return result
            return result
        result = False
        for operand in node.values:
            result = self.visit(operand)
            if result:
                return result
        return result

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            op = _CMP_OPS.get(type(op_node))
            if op is None:
                raise ExpressionError(f"comparison {type(op_node).__name__} is not allowed")
            right = self.visit(comparator)
            if not op(left, right):
                return False
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        if self.visit(node.test):
            return self.visit(node.body)
        return self.visit(node.orelse)

    def visit_Tuple(self, node: ast.Tuple) -> tuple:
        # only useful as the right-hand side of `in`
        return tuple(self.visit(elt) for elt in node.elts)

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        container = self.visit(node.value)
        if not isinstance(container, (str, list)):
            raise ExpressionError("subscript is only allowed on strings")
        return container[self.visit(node.slice)]

    def visit_Slice(self, node: ast.Slice) -> slice:
        return slice(
            self.visit(node.lower) if node.lower else None,
            self.visit(node.upper) if node.upper else None,
            self.visit(node.step) if node.step else None,
        )

    def visit_Call(self, node: ast.Call) -> Any:
        if node.keywords:
            raise ExpressionError("keyword arguments are not allowed")
        args = [self.visit(arg) for arg in node.args]

        if isinstance(node.func, ast.Name):
            func = _FUNCTIONS.get(node.func.id)
            if func is None:
                raise ExpressionError(f"function {node.func.id!r} is not allowed")
            return _check_size(func(*args))

        if isinstance(node.func, ast.Attribute):
            target = self.visit(node.func.value)
            if not isinstance(target, str) or node.func.attr not in _STR_METHODS:
                raise ExpressionError(f"method {node.func.attr!r} is not allowed")
            return _check_size(getattr(target, node.func.attr)(*args))

        raise ExpressionError("call target is not allowed")


def _is_int(x: Any) -> bool:
    return isinstance(x, int) and not isinstance(x, bool)


def _check_operands(op: ast.operator, left: Any, right: Any) -> None:
    """Reject operations whose result would exceed the size limits."""
    if isinstance(op, ast.Pow) and isinstance(right, (int, float)):
        if abs(right) > _MAX_EXPONENT:
            raise ExpressionError("exponent too large")
        if _is_int(left) and _is_int(right) and right > 0:
            if max(left.bit_length(), 1) * right > _MAX_INT_BITS:
                raise ExpressionError("exponent too large")

    elif isinstance(op, ast.LShift) and _is_int(left) and _is_int(right):
        if left.bit_length() + right > _MAX_INT_BITS:
            raise ExpressionError("shift too large")

    elif isinstance(op, ast.Mult):
        if _is_int(left) and _is_int(right):
            if left.bit_length() + right.bit_length() > _MAX_INT_BITS:
                raise ExpressionError("result too large")
        elif isinstance(left, (str, list)) or isinstance(right, (str, list)):
            seq, count = (left, right) if isinstance(left, (str, list)) else (right, left)
            if _is_int(count) and len(seq) * count > _MAX_SEQUENCE_LENGTH:
                raise ExpressionError("repetition too large")

    elif isinstance(op, ast.Mod) and isinstance(left, str):
        raise ExpressionError("string formatting is not allowed")


def _check_size(result: Any) -> Any:
    if isinstance(result, (str, list, tuple)) and len(result) > _MAX_SEQUENCE_LENGTH:
        raise ExpressionError("result too large")
    if _is_int(result) and result.bit_length() > _MAX_INT_BITS:
        raise ExpressionError("result too large")
    return result
