"""Evaluator for the ``$if`` conditions used in device records.

Conditions are small boolean expressions over the device identity, e.g.::

    manufacturerId === 0x0086 && productType === 0x0102 && firmwareVersion >= 1.10

Version literals are compared component-wise, so ``1.10`` is greater than
``1.9``. Any comparison against a missing ``firmwareVersion`` is false.
"""

from __future__ import annotations

import ast
import operator
import re
from collections.abc import Mapping
from typing import Any, Callable

from devconf.core.model import DeviceIdentity

PredicateEvaluator = Callable[[str, Mapping[str, Any]], bool]

_VERSION_LITERAL_RE = re.compile(r"(?<![\w.\"'])(\d+\.\d+(?:\.\d+)?)(?![\w.])")
_NOT_RE = re.compile(r"!(?!=)")
_STRING_LITERAL_RE = re.compile(r"(\"(?:[^\"\\]|\\.)*\"|'(?:[^'\\]|\\.)*')")
_JS_OPERATORS = (("===", "=="), ("!==", "!="), ("&&", " and "), ("||", " or "))
_LITERAL_NAMES = {"true": True, "false": False}
_COMPARATORS: dict[type[ast.cmpop], Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
}


def identity_context(identity: DeviceIdentity) -> dict[str, Any]:
    return {
        "manufacturerId": identity.manufacturer_id,
        "productType": identity.product_type,
        "productId": identity.product_id,
        "firmwareVersion": identity.firmware_version,
    }


def parse_version(value: str | int) -> tuple[int, int, int]:
    if isinstance(value, int):
        return (value, 0, 0)
    parts = value.strip().split(".")
    if not 1 <= len(parts) <= 3 or not all(part.isdigit() for part in parts):
        raise ValueError(f"'{value}' is not a version")
    numbers = [int(part) for part in parts] + [0, 0]
    return (numbers[0], numbers[1], numbers[2])


def _translate_code(text: str) -> str:
    for js_op, py_op in _JS_OPERATORS:
        text = text.replace(js_op, py_op)
    text = _NOT_RE.sub(" not ", text)
    return _VERSION_LITERAL_RE.sub(r'"\1"', text)


def _translate(source: str) -> str:
    # odd-indexed parts are string literals and pass through untouched
    parts = _STRING_LITERAL_RE.split(source)
    return "".join(part if index % 2 else _translate_code(part) for index, part in enumerate(parts))


def _compare(op: ast.cmpop, left: Any, right: Any) -> bool:
    compare = _COMPARATORS.get(type(op))
    if compare is None:
        raise ValueError(f"unsupported operator {type(op).__name__}")
    if left is None or right is None:
        return False
    if isinstance(left, str) or isinstance(right, str):
        try:
            left_version, right_version = parse_version(left), parse_version(right)
        except ValueError:
            if isinstance(op, (ast.Eq, ast.NotEq)):
                return compare(left, right)
            raise
        return compare(left_version, right_version)
    return compare(left, right)


def _eval_node(node: ast.AST, context: Mapping[str, Any]) -> Any:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body, context)
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            return all(_eval_node(value, context) for value in node.values)
        return any(_eval_node(value, context) for value in node.values)
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not):
        return not _eval_node(node.operand, context)
    if isinstance(node, ast.Compare):
        left = _eval_node(node.left, context)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval_node(comparator, context)
            if not _compare(op, left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.Name):
        if node.id in _LITERAL_NAMES:
            return _LITERAL_NAMES[node.id]
        if node.id not in context:
            raise ValueError(f"unknown variable '{node.id}'")
        return context[node.id]
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, str)):
        return node.value
    raise ValueError(f"unsupported expression '{type(node).__name__}'")


def evaluate(source: str, context: Mapping[str, Any]) -> bool:
    """Evaluate ``source`` against ``context``.

    Raises ``ValueError`` or ``SyntaxError`` for conditions that cannot be
    evaluated; callers decide how to report them.
    """
    tree = ast.parse(_translate(source).strip(), mode="eval")
    return bool(_eval_node(tree, context))
