"""
Infix expression parser for AGraph.

Parses mathematical expressions using Python's 'ast' module and
converts them directly to AGraph command arrays.
"""
import ast
import logging
import math
import re
from dataclasses import dataclass, field
from typing import List, Optional

import torch

from .agraph import AGraph
from .operator_definitions import (
    INTEGER, VARIABLE, CONSTANT, ADDITION, SUBTRACTION, MULTIPLICATION,
    DIVISION, SIN, COS, EXPONENTIAL, LOGARITHM, POWER, ABS, SQRT, SINH, COSH,
)
from .program import COMMAND_DTYPE

logger = logging.getLogger(__name__)

FUNCTIONS = {
    'sin': SIN,
    'cos': COS,
    'exp': EXPONENTIAL,
    'log': LOGARITHM,
    'abs': ABS,
    'sqrt': SQRT,
    'sinh': SINH,
    'cosh': COSH,
}

BINARY_OPS = {
    ast.Add: ADDITION,
    ast.Sub: SUBTRACTION,
    ast.Mult: MULTIPLICATION,
    ast.Div: DIVISION,
    ast.Pow: POWER,
}

NAMED_CONSTANTS = {
    'pi': math.pi,
    'e': math.e,
}

_VARIABLE_NAME = re.compile(r"^[Xx]_?(\d+)$")
_CONSTANT_NAME = re.compile(r"^[Cc]_?(\d+)$")


class ExpressionParseError(ValueError):
    """Raised when an expression string cannot be turned into a command array."""
    pass


@dataclass
class ParsedExpression:
    """
    A parsed expression.

    constants holds one entry per constant row in order of appearance;
    entries are None for symbolic C_k placeholders.
    """
    command_array: torch.Tensor
    constants: List[Optional[float]] = field(default_factory=list)

    def has_constant_values(self):
        return all(value is not None for value in self.constants)


class ExpressionParser:
    """
    Parses string-based math expressions into command arrays.
    Example: "X_0**2 - 2.5*X_1 + C_0"

    Names: X_k / x_k are input columns, C_k are constants to be fitted
    (repeated C_k names share one constant row),
    pi and e are numeric constants. Integer literals become integer rows,
    other literals become constant rows carrying their value.
    """
    def parse(self, expr_str):
        """
        Main entry point for parsing an expression string.
        """
        try:
            tree = ast.parse(expr_str.strip(), mode='eval')
        except SyntaxError as e:
            raise ExpressionParseError(f"Invalid expression '{expr_str}': {e.msg}") from e

        self._rows = []
        self._terminals = {}
        self._constants = []
        self._named = {}
        self._evaluate_node(tree.body)
        return ParsedExpression(torch.tensor(self._rows, dtype=COMMAND_DTYPE),
                                list(self._constants))

    def _append(self, op, a, b):
        self._rows.append([op, a, b])
        return len(self._rows) - 1

    def _terminal(self, op, value):
        key = (op, value)
        if key not in self._terminals:
            self._terminals[key] = self._append(op, value, value)
        return self._terminals[key]

    def _constant(self, value):
        slot = len(self._constants)
        self._constants.append(value)
        return self._append(CONSTANT, slot, slot)

    def _named_constant(self, k):
        if k not in self._named:
            self._named[k] = self._constant(None)
        return self._named[k]

    def _number(self, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ExpressionParseError(f"Unsupported literal: {value!r}")
        if float(value).is_integer() and abs(value) < 2 ** 31:
            return self._terminal(INTEGER, int(value))
        return self._constant(float(value))

    def _evaluate_node(self, node):
        # 1. Literals
        if isinstance(node, ast.Constant):
            return self._number(node.value)

        # 2. Names (variables, constants)
        if isinstance(node, ast.Name):
            var_match = _VARIABLE_NAME.match(node.id)
            if var_match:
                return self._terminal(VARIABLE, int(var_match.group(1)))
            const_match = _CONSTANT_NAME.match(node.id)
            if const_match:
                return self._named_constant(int(const_match.group(1)))
            if node.id in NAMED_CONSTANTS:
                return self._constant(NAMED_CONSTANTS[node.id])
            raise ExpressionParseError(f"Unknown name: {node.id}")

        # 3. Binary Operations (+, -, *, /, **)
        if isinstance(node, ast.BinOp):
            op = BINARY_OPS.get(type(node.op))
            if op is None:
                raise ExpressionParseError(f"Unsupported operator: {type(node.op).__name__}")
            left = self._evaluate_node(node.left)
            right = self._evaluate_node(node.right)
            return self._append(op, left, right)

        # 4. Unary Operations (-x, +x)
        if isinstance(node, ast.UnaryOp):
            if isinstance(node.op, ast.USub):
                if isinstance(node.operand, ast.Constant):
                    return self._number(-node.operand.value)
                minus_one = self._terminal(INTEGER, -1)
                operand = self._evaluate_node(node.operand)
                return self._append(MULTIPLICATION, minus_one, operand)
            if isinstance(node.op, ast.UAdd):
                return self._evaluate_node(node.operand)
            raise ExpressionParseError(f"Unsupported unary operator: {type(node.op).__name__}")

        # 5. Functions (exp(x), sin(x), etc.)
        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in FUNCTIONS:
                raise ExpressionParseError(f"Unsupported function call: {ast.dump(node.func)}")
            if len(node.args) != 1 or node.keywords:
                raise ExpressionParseError(f"{node.func.id}() takes exactly one argument")
            arg = self._evaluate_node(node.args[0])
            return self._append(FUNCTIONS[node.func.id], arg, arg)

        raise ExpressionParseError(f"Unsupported expression component: {type(node).__name__}")


def build_agraph(expr_str, use_simplification=False, simplifier=None, dtype=torch.float64):
    """
    Build an AGraph from an expression string.

    Literal constant values are loaded into the graph when every constant
    of the expression has a value and survives simplification; otherwise
    the graph is left flagged for local optimization.
    """
    parsed = ExpressionParser().parse(expr_str)
    graph = AGraph(use_simplification=use_simplification, simplifier=simplifier, dtype=dtype)
    graph.replace_raw_program(parsed.command_array)

    num_params = graph.get_number_local_optimization_params()
    if parsed.constants and parsed.has_constant_values():
        if num_params == len(parsed.constants):
            graph.set_local_optimization_params(parsed.constants)
        else:
            logger.debug(f"Simplification kept {num_params} of {len(parsed.constants)} "
                         f"constants of '{expr_str}'; values not loaded")
    return graph
