"""
Simplification strategies for AGraph command arrays.

A simplifier maps a raw command array to a reduced one that computes the
same value for all finite inputs. Reduced programs only contain rows that
feed the output, in their original relative order.
"""
import logging
from abc import ABC, abstractmethod

import torch

from .operator_definitions import (
    INTEGER, CONSTANT, ADDITION, SUBTRACTION, MULTIPLICATION, DIVISION,
    POWER, SAFE_POWER, SIN, COS, ABS, arity,
)
from .program import COMMAND_DTYPE, empty_program, validate_program

logger = logging.getLogger(__name__)

# Unary operators that map finite values to finite values
BOUNDED_OPERATORS = (SIN, COS, ABS)


def get_utilized_commands(program):
    """
    Per-row liveness of a command array.

    A row is utilized iff it (transitively) feeds the last row.
    """
    rows = program.tolist()
    utilized = [False] * len(rows)
    if not rows:
        return utilized
    utilized[-1] = True
    for i in range(len(rows) - 1, -1, -1):
        if not utilized[i]:
            continue
        op, a, b = rows[i]
        n_args = arity(op)
        if n_args >= 1:
            utilized[a] = True
        if n_args == 2:
            utilized[b] = True
    return utilized


def _compact(rows, output_idx):
    """
    Keep only rows feeding rows[output_idx] and remap their references.
    Unary rows get operand_b mirrored from operand_a.
    """
    live = get_utilized_commands(torch.tensor(rows[:output_idx + 1], dtype=COMMAND_DTYPE))
    new_index = {}
    reduced = []
    for i, keep in enumerate(live):
        if not keep:
            continue
        op, a, b = rows[i]
        n_args = arity(op)
        if n_args == 1:
            a = b = new_index[a]
        elif n_args == 2:
            a, b = new_index[a], new_index[b]
        new_index[i] = len(reduced)
        reduced.append([op, a, b])
    return reduced


class Simplifier(ABC):
    """Strategy interface used by AGraph to derive its reduced program."""

    # Value recorded in AGraph snapshots for this strategy
    use_simplification = False

    @abstractmethod
    def reduce(self, program):
        """Return the reduced command array for a raw command array."""
        pass

    def utilized_commands(self, program):
        return get_utilized_commands(program)


class StackSimplifier(Simplifier):
    """Dead-row elimination only."""

    use_simplification = False

    def reduce(self, program):
        validate_program(program)
        if program.shape[0] == 0:
            return empty_program()
        rows = program.tolist()
        return torch.tensor(_compact(rows, len(rows) - 1), dtype=COMMAND_DTYPE)


class FoldingSimplifier(Simplifier):
    """
    Dead-row elimination plus algebraic rewriting:

    - operators whose operands are all integers fold into an integer row
      when the result is an exact integer
    - identities: x+0, 0+x, x-0, x*1, 1*x, x/1, x**1 -> x;
      x*0, 0*x, x-x -> 0 when x stays finite for finite inputs; x**0 -> 1
    - identical non-constant rows are merged

    Constant rows are never merged since each one owns a constant slot.
    """

    use_simplification = True

    def reduce(self, program):
        validate_program(program)
        if program.shape[0] == 0:
            return empty_program()

        rows = program.tolist()
        live = get_utilized_commands(program)
        new_rows = []
        seen = {}
        alias = {}  # raw row -> reduced row

        def emit(row):
            key = tuple(row)
            if row[0] != CONSTANT and key in seen:
                return seen[key]
            new_rows.append(list(row))
            seen[key] = len(new_rows) - 1
            return seen[key]

        def integer_value(idx):
            op, a, _ = new_rows[idx]
            return a if op == INTEGER else None

        def stays_finite(idx):
            op, a, _ = new_rows[idx]
            if arity(op) == 0:
                return True
            return op in BOUNDED_OPERATORS and stays_finite(a)

        for i, (op, a, b) in enumerate(rows):
            if not live[i]:
                continue
            n_args = arity(op)
            if n_args == 0:
                alias[i] = emit([op, a, b])
                continue
            if n_args == 1:
                a = alias[a]
                alias[i] = emit([op, a, a])
                continue
            a, b = alias[a], alias[b]
            folded = self._rewrite_binary(op, a, b, integer_value(a), integer_value(b),
                                         stays_finite(a) and stays_finite(b))
            if isinstance(folded, tuple):
                alias[i] = emit(list(folded))
            elif folded is not None:
                alias[i] = folded
            else:
                alias[i] = emit([op, a, b])

        reduced = _compact(new_rows, alias[len(rows) - 1])
        logger.debug(f"Folded {len(rows)} rows into {len(reduced)}")
        return torch.tensor(reduced, dtype=COMMAND_DTYPE)

    @staticmethod
    def _rewrite_binary(op, a, b, int_a, int_b, finite=True):
        """
        Returns a reduced row index to alias, a new (op, a, b) row to emit,
        or None to keep the operator as is.

        Rewrites to zero need finite operands: inf * 0 and inf - inf are NaN.
        """
        if int_a is not None and int_b is not None:
            value = _fold_integers(op, int_a, int_b)
            if value is not None and abs(value) < 2 ** 31:
                return (INTEGER, value, value)

        if op == ADDITION:
            if int_b == 0:
                return a
            if int_a == 0:
                return b
        elif op == SUBTRACTION:
            if int_b == 0:
                return a
            if a == b and finite:
                return (INTEGER, 0, 0)
        elif op == MULTIPLICATION:
            if int_b == 1:
                return a
            if int_a == 1:
                return b
            if (int_a == 0 or int_b == 0) and finite:
                return (INTEGER, 0, 0)
        elif op == DIVISION:
            if int_b == 1:
                return a
        elif op in (POWER, SAFE_POWER):
            if int_b == 1 and op == POWER:
                return a
            if int_b == 0:
                return (INTEGER, 1, 1)
        return None


def _fold_integers(op, x, y):
    if op == ADDITION:
        return x + y
    if op == SUBTRACTION:
        return x - y
    if op == MULTIPLICATION:
        return x * y
    if op == DIVISION and y != 0 and x % y == 0:
        return x // y
    if op == POWER and 0 <= y <= 16 and abs(x) <= 64:
        return x ** y
    return None


def create_simplifier(use_simplification=False):
    """Pick the simplification strategy matching a policy flag."""
    return FoldingSimplifier() if use_simplification else StackSimplifier()
