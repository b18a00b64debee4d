"""Per-stack values: plain numbers or small expressions over battler views.

Expressions are parsed once with :mod:`ast` and interpreted against a
read-only context (``a``/``actor`` and ``b``/``target``) on every read,
because they usually reference battler state that changes during a battle.
Anything that fails to parse or evaluate counts as ``0``.
"""
from __future__ import annotations

import ast
import logging
import math
import operator
from types import SimpleNamespace
from typing import Any, Callable, Dict

logger = logging.getLogger(__name__)

_BIN_OPS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: Dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

_COMPARE_OPS: Dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}

_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "floor": math.floor,
    "ceil": math.ceil,
    "min": min,
    "max": max,
    "abs": abs,
    "round": round,
}

# Lets formulas written against the JavaScript host (``Math.floor(a.atk / 2)``) run unchanged.
_MATH = SimpleNamespace(**_FUNCTIONS)

_ALLOWED_CALLABLES = frozenset(id(fn) for fn in _FUNCTIONS.values())

# Guards ``**`` against runaway exponents.
_MAX_EXPONENT = 64


class FormulaView:
    """Marker base for objects exposed to formulas as ``a`` or ``b``.

    Public attributes and methods of a view are readable from expressions;
    names starting with an underscore are not.
    """


class FormulaError(ValueError):
    """Raised internally when an expression uses a construct outside the allowed subset."""


class Formula:
    """A compiled per-stack value."""

    __slots__ = ("source", "_constant", "_tree")

    def __init__(self, source: str, constant: float | None = None, tree: ast.Expression | None = None) -> None:
        self.source = source
        self._constant = constant
        self._tree = tree

    @classmethod
    def compile(cls, raw: Any) -> "Formula":
        if raw is None or isinstance(raw, bool):
            return cls(str(raw), constant=float(bool(raw)) if raw is not None else 0.0)
        if isinstance(raw, (int, float)):
            return cls(str(raw), constant=_finite_or_zero(float(raw)))
        text = str(raw).strip()
        if not text:
            return cls(text, constant=0.0)
        try:
            return cls(text, constant=_finite_or_zero(float(text)))
        except ValueError:
            pass
        try:
            tree = ast.parse(text, mode="eval")
        except SyntaxError as exc:
            logger.debug("Formula %r does not parse: %s", text, exc)
            return cls(text, constant=0.0)
        return cls(text, tree=tree)

    @property
    def is_constant(self) -> bool:
        return self._constant is not None

    def evaluate(self, actor: Any = None, target: Any = None) -> float:
        """Return the value for this read.

        Constants keep their exact value; expression results are floored.
        """
        if self._constant is not None:
            return self._constant
        names = {"a": actor, "actor": actor, "b": target, "target": target, "Math": _MATH}
        names.update(_FUNCTIONS)
        try:
            value = _Interpreter(names).visit(self._tree.body)
            value = math.floor(value)
        except Exception as exc:
            logger.debug("Formula %r evaluated to 0: %s", self.source, exc)
            return 0
        return value

    def __repr__(self) -> str:
        return f"Formula({self.source!r})"


class _Interpreter(ast.NodeVisitor):
    def __init__(self, names: Dict[str, Any]) -> None:
        self.names = names

    def generic_visit(self, node: ast.AST) -> Any:
        raise FormulaError(f"'{type(node).__name__}' is not allowed in formulas")

    def visit_Constant(self, node: ast.Constant) -> Any:
        if isinstance(node.value, (int, float, bool)):
            return node.value
        raise FormulaError(f"Constant {node.value!r} is not numeric")

    def visit_Name(self, node: ast.Name) -> Any:
        try:
            value = self.names[node.id]
        except KeyError as exc:
            raise NameError(f"name '{node.id}' is not defined") from exc
        if value is None:
            raise NameError(f"name '{node.id}' has no value in this context")
        return value

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        if node.attr.startswith("_"):
            raise FormulaError(f"Attribute '{node.attr}' is private")
        owner = self.visit(node.value)
        if not isinstance(owner, (FormulaView, SimpleNamespace)):
            raise FormulaError(f"Attribute access on {type(owner).__name__} is not allowed")
        return getattr(owner, node.attr)

    def visit_Call(self, node: ast.Call) -> Any:
        if node.keywords:
            raise FormulaError("Keyword arguments are not allowed")
        func = self.visit(node.func)
        if id(func) not in _ALLOWED_CALLABLES and not isinstance(getattr(func, "__self__", None), FormulaView):
            raise FormulaError("Only math helpers and battler methods can be called")
        args = [self.visit(arg) for arg in node.args]
        return func(*args)

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise FormulaError(f"Operator '{type(node.op).__name__}' is not allowed")
        left = self.visit(node.left)
        right = self.visit(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise FormulaError("Exponent too large")
        return op(left, right)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        op = _UNARY_OPS.get(type(node.op))
        if op is None:
            raise FormulaError(f"Operator '{type(node.op).__name__}' is not allowed")
        return op(self.visit(node.operand))

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        if isinstance(node.op, ast.And):
            result: Any = True
            for value in node.values:
                result = self.visit(value)
                if not result:
                    return result
            return result
        result = False
        for value in node.values:
            result = self.visit(value)
            if result:
                return result
        return result

    def visit_Compare(self, node: ast.Compare) -> bool:
        left = self.visit(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            op = _COMPARE_OPS.get(type(op_node))
            if op is None:
                raise FormulaError(f"Comparison '{type(op_node).__name__}' is not allowed")
            right = self.visit(comparator)
            if not op(left, right):
                return False
            left = right
        return True

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        if self.visit(node.test):
            return self.visit(node.body)
        return self.visit(node.orelse)


def _finite_or_zero(value: float) -> float:
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return value
