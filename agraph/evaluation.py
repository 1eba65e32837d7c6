"""
Differentiable evaluation of AGraph command arrays.

Executes a reduced command array row by row over a batch of samples
(rows = samples, columns = variables) using torch, so that derivatives
with respect to the inputs or to the constants come from autograd.

Numerically pathological operations are not raised. They are reported
through EvaluationOutcome.fault so the caller decides how to recover.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

import torch

from .operator_definitions import (
    INTEGER, VARIABLE, CONSTANT, ADDITION, SUBTRACTION, MULTIPLICATION,
    DIVISION, SIN, COS, EXPONENTIAL, LOGARITHM, POWER, ABS, SQRT, SAFE_POWER,
    SINH, COSH, OVERFLOW_CHECKED, UNDERFLOW_CHECKED, UNARY_OPERATORS,
)
from .program import MalformedProgramError

logger = logging.getLogger(__name__)


class NumericFault(enum.Enum):
    """Arithmetic conditions that make an evaluation meaningless."""
    UNDERFLOW = "underflow"
    OVERFLOW = "overflow"


@dataclass
class EvaluationOutcome:
    """Result of an evaluation: values (and derivative) or a numeric fault."""
    value: Optional[torch.Tensor] = None
    derivative: Optional[torch.Tensor] = None
    fault: Optional[NumericFault] = None

    @property
    def ok(self) -> bool:
        return self.fault is None


UNARY_FUNCTIONS = {
    SIN: torch.sin,
    COS: torch.cos,
    EXPONENTIAL: torch.exp,
    LOGARITHM: lambda a: torch.log(torch.abs(a)),
    ABS: torch.abs,
    SQRT: lambda a: torch.sqrt(torch.abs(a)),
    SINH: torch.sinh,
    COSH: torch.cosh,
}

BINARY_FUNCTIONS = {
    ADDITION: torch.add,
    SUBTRACTION: torch.sub,
    MULTIPLICATION: torch.mul,
    DIVISION: torch.div,
    POWER: torch.pow,
    SAFE_POWER: lambda a, b: torch.pow(torch.abs(a), b),
}


def _as_batch(x, dtype):
    batch = x.detach().to(dtype=dtype) if torch.is_tensor(x) else torch.as_tensor(x, dtype=dtype)
    if batch.dim() != 2:
        raise ValueError(f"Input batch must be 2-D [samples, variables], got shape {tuple(batch.shape)}")
    return batch


def _as_constants(constants, dtype):
    if torch.is_tensor(constants):
        return constants.detach().to(dtype=dtype).reshape(-1)
    return torch.as_tensor(constants, dtype=dtype).reshape(-1)


def _check_fault(op, result, args):
    finite = torch.isfinite(args[0])
    for arg in args[1:]:
        finite = finite & torch.isfinite(arg)

    if op in OVERFLOW_CHECKED and bool((torch.isinf(result) & finite).any()):
        return NumericFault.OVERFLOW

    if op in UNDERFLOW_CHECKED:
        vanished = finite & (result == 0)
        if op == MULTIPLICATION:
            vanished = vanished & (args[0] != 0) & (args[1] != 0)
        elif op != EXPONENTIAL:
            vanished = vanished & (args[0] != 0)
        if bool(vanished.any()):
            return NumericFault.UNDERFLOW
    return None


def _forward(program, x, constant_column):
    """
    Linear execution loop over the command array.

    Args:
        program: [N, 3] command array
        x: [n, v] input batch
        constant_column: callable slot -> [n, 1] tensor
    Returns:
        (value [n, 1] or None, fault or None)
    """
    if program.shape[0] == 0:
        raise MalformedProgramError("Cannot evaluate an empty command array")

    n_samples = x.shape[0]
    regs = [None] * program.shape[0]

    for i, (op, a, b) in enumerate(program.tolist()):
        if op == INTEGER:
            regs[i] = torch.full((n_samples, 1), float(a), dtype=x.dtype)
        elif op == VARIABLE:
            if a < 0 or a >= x.shape[1]:
                raise MalformedProgramError(
                    f"Row {i}: variable X_{a} out of range for input with {x.shape[1]} columns")
            regs[i] = x[:, a:a + 1]
        elif op == CONSTANT:
            regs[i] = constant_column(a)
        elif op in UNARY_OPERATORS:
            args = (regs[a],)
            regs[i] = UNARY_FUNCTIONS[op](*args)
        else:
            args = (regs[a], regs[b])
            regs[i] = BINARY_FUNCTIONS[op](*args)

        if op in OVERFLOW_CHECKED or op in UNDERFLOW_CHECKED:
            fault = _check_fault(op, regs[i], args)
            if fault is not None:
                logger.debug(f"Row {i}: {fault.value} detected")
                return None, fault

    return regs[-1], None


def _constant_lookup(constants, n_samples):
    def column(slot):
        if slot >= constants.shape[0]:
            raise MalformedProgramError(
                f"Constant slot {slot} out of range for {constants.shape[0]} constants")
        return constants[slot:slot + 1].reshape(1, 1).expand(n_samples, 1)
    return column


def evaluate(program, x, constants, dtype=torch.float64):
    """
    Evaluate a command array at every sample of x.

    Returns:
        EvaluationOutcome with value of shape [n, 1], or a fault.
    """
    x = _as_batch(x, dtype)
    constants = _as_constants(constants, dtype)
    with torch.no_grad():
        value, fault = _forward(program, x, _constant_lookup(constants, x.shape[0]))
    if fault is not None:
        return EvaluationOutcome(fault=fault)
    return EvaluationOutcome(value=value.clone())


def evaluate_with_derivative(program, x, constants, wrt_inputs, dtype=torch.float64):
    """
    Evaluate a command array together with its per-sample derivative.

    Args:
        wrt_inputs: True for d/dx (shape [n, v]), False for d/dc (shape [n, k])
    Returns:
        EvaluationOutcome with value and derivative, or a fault.
    """
    x = _as_batch(x, dtype)
    constants = _as_constants(constants, dtype)
    n_samples = x.shape[0]

    if wrt_inputs:
        x = x.clone().requires_grad_(True)
        target = x
        column = _constant_lookup(constants, n_samples)
    else:
        # One copy of the constants per sample keeps derivatives per sample
        target = constants.reshape(1, -1).expand(n_samples, constants.shape[0]).clone()
        target.requires_grad_(True)

        def column(slot):
            if slot >= constants.shape[0]:
                raise MalformedProgramError(
                    f"Constant slot {slot} out of range for {constants.shape[0]} constants")
            return target[:, slot:slot + 1]

    with torch.enable_grad():
        value, fault = _forward(program, x, column)
        if fault is not None:
            return EvaluationOutcome(fault=fault)
        derivative = None
        if value.requires_grad:
            derivative, = torch.autograd.grad(value.sum(), target, allow_unused=True)

    if derivative is None:
        derivative = torch.zeros_like(target)
    return EvaluationOutcome(value=value.detach().clone(), derivative=derivative.detach())
