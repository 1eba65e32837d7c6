"""
Command array representation for AGraph programs.

A program is an int64 tensor of shape [N, 3]; each row is
(opcode, operand_a, operand_b) and the last row is the output.
Constant tables are 1-D float tensors with one value per constant slot.
"""
import logging

import torch

from .operator_definitions import CONSTANT, VARIABLE, arity, OPERATOR_NAMES

logger = logging.getLogger(__name__)

COMMAND_DTYPE = torch.int64
CONSTANT_DTYPE = torch.float64
DEFAULT_CONSTANT = 1.0


class MalformedProgramError(ValueError):
    """Raised when a command array breaks the stack program contract."""
    pass


def empty_program():
    return torch.zeros((0, 3), dtype=COMMAND_DTYPE)


def empty_constants():
    return torch.zeros(0, dtype=CONSTANT_DTYPE)


def as_program(data):
    """
    Copy a command array (tensor, ndarray or nested sequence) into an
    int64 [N, 3] tensor.

    Raises:
        MalformedProgramError: if the data does not have three columns.
    """
    if torch.is_tensor(data):
        program = data.detach().to(dtype=COMMAND_DTYPE).clone()
    else:
        program = torch.as_tensor(data, dtype=COMMAND_DTYPE).clone()
    if program.numel() == 0:
        return empty_program()
    if program.dim() != 2 or program.shape[1] != 3:
        raise MalformedProgramError(
            f"Command array must have shape [N, 3], got {tuple(program.shape)}")
    return program


def as_constants(values):
    """
    Copy constant values into a 1-D float64 tensor.

    Accepts a flat sequence or a single-column [k, 1] array.
    """
    if torch.is_tensor(values):
        constants = values.detach().to(dtype=CONSTANT_DTYPE).clone()
    else:
        constants = torch.as_tensor(values, dtype=CONSTANT_DTYPE).clone()
    if constants.dim() == 2 and constants.shape[1] == 1:
        constants = constants.reshape(-1)
    if constants.dim() == 0:
        constants = constants.reshape(1)
    if constants.dim() != 1:
        raise ValueError(
            f"Constants must be 1-D or a single column, got shape {tuple(constants.shape)}")
    return constants


def validate_program(program):
    """
    Check that every operator code is known and that operator rows only
    reference earlier rows.

    Raises:
        MalformedProgramError: on the first offending row.
    """
    for i, (op, a, b) in enumerate(program.tolist()):
        if op not in OPERATOR_NAMES:
            raise MalformedProgramError(f"Row {i}: unknown operator code {op}")
        n_args = arity(op)
        if n_args == 0:
            if op in (VARIABLE, CONSTANT) and a < 0:
                raise MalformedProgramError(f"Row {i}: negative index {a}")
            continue
        refs = (a,) if n_args == 1 else (a, b)
        for ref in refs:
            if ref < 0 or ref >= i:
                raise MalformedProgramError(
                    f"Row {i}: operand {ref} does not reference an earlier row")


def row_distance(program_a, program_b):
    """
    Number of rows that differ positionally between two programs.
    Rows present in only one of the programs count as differences.
    """
    n_a, n_b = program_a.shape[0], program_b.shape[0]
    overlap = min(n_a, n_b)
    differing = (program_a[:overlap] != program_b[:overlap]).any(dim=1)
    return int(differing.sum().item()) + abs(n_a - n_b)


def renumber_constants(program):
    """
    Rewrite constant rows as (CONSTANT, k, k) with k dense and zero-based in
    order of appearance.

    Returns:
        (renumbered copy of the program, number of constant slots)
    """
    renumbered = program.clone()
    if renumbered.shape[0] == 0:
        return renumbered, 0
    const_rows = torch.nonzero(renumbered[:, 0] == CONSTANT).reshape(-1)
    slots = torch.arange(const_rows.shape[0], dtype=COMMAND_DTYPE)
    renumbered[const_rows, 1] = slots
    renumbered[const_rows, 2] = slots
    return renumbered, int(const_rows.shape[0])


def resize_constants(constants, num_constants):
    """
    Fit a constant table to a new slot count.

    Shrinking (or keeping) the size truncates and preserves the retained
    values. Growing replaces the table with ones.

    Returns:
        (new constants, needs_refit) where needs_refit is True only when the
        table grew to a non-zero size.
    """
    if num_constants <= constants.shape[0]:
        return constants[:num_constants].clone(), False
    logger.debug(f"Constant table grows from {constants.shape[0]} to {num_constants}; "
                 f"reset to {DEFAULT_CONSTANT}")
    resized = torch.full((num_constants,), DEFAULT_CONSTANT, dtype=CONSTANT_DTYPE)
    return resized, True
