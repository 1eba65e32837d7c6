"""
AGraph: acyclic graph equations for symbolic regression.

An AGraph owns a raw command array that genetic operators mutate freely,
and lazily derives from it a reduced command array plus the table of
constants used for evaluation and local optimization.

Derived state is recomputed only when the raw program changed since the
last recompute, and only at the moment a derived quantity is read.
"""
import enum
import logging
from typing import NamedTuple

import torch

from . import evaluation
from .program import (
    as_constants, as_program, empty_constants, empty_program,
    renumber_constants, resize_constants, row_distance,
)
from .simplification import create_simplifier
from .string_generation import get_formatted_string

logger = logging.getLogger(__name__)

FITNESS_NOT_SET = 1e9


class GraphStatus(enum.Enum):
    CLEAN = "clean"
    DIRTY = "dirty"


class AGraphState(NamedTuple):
    """Everything needed to rebuild an AGraph bit for bit."""
    command_array: torch.Tensor
    simplified_command_array: torch.Tensor
    simplified_constants: torch.Tensor
    needs_opt: bool
    fitness: float
    fit_set: bool
    genetic_age: int
    modified: bool
    use_simplification: bool


class AGraph:
    """
    A candidate equation encoded as a stack program.

    Attributes:
        simplifier: strategy deriving the reduced program from the raw one
        dtype: floating point dtype used for evaluation
    """
    def __init__(self, use_simplification=False, simplifier=None, dtype=torch.float64):
        if simplifier is None:
            simplifier = create_simplifier(use_simplification)
        self.simplifier = simplifier
        self.dtype = dtype

        self._command_array = empty_program()
        self._simplified_command_array = empty_program()
        self._simplified_constants = empty_constants()
        self._needs_opt = False
        self._fitness = FITNESS_NOT_SET
        self._fit_set = False
        self._genetic_age = 0
        self._status = GraphStatus.CLEAN

    @property
    def use_simplification(self):
        return self.simplifier.use_simplification

    # ------------------------------------------------------------------
    # Raw program
    # ------------------------------------------------------------------
    def get_raw_program(self):
        """Copy of the raw command array."""
        return self._command_array.clone()

    def get_mutable_raw_program(self):
        """
        The raw command array itself, for in-place edits by genetic
        operators. The graph is considered modified from this point on.
        """
        self._notify_modification()
        return self._command_array

    def replace_raw_program(self, program):
        self._command_array = as_program(program)
        self._notify_modification()

    def _notify_modification(self):
        self._fitness = FITNESS_NOT_SET
        self._fit_set = False
        self._status = GraphStatus.DIRTY

    def is_modified(self):
        return self._status is GraphStatus.DIRTY

    # ------------------------------------------------------------------
    # Plain accessors
    # ------------------------------------------------------------------
    def get_fitness(self):
        return self._fitness

    def set_fitness(self, fitness):
        self._fitness = fitness
        self._fit_set = True

    def is_fitness_set(self):
        return self._fit_set

    def set_fitness_status(self, fit_set):
        self._fit_set = fit_set

    def get_genetic_age(self):
        return self._genetic_age

    def set_genetic_age(self, age):
        self._genetic_age = age

    def distance(self, other):
        """
        Number of raw command rows that differ positionally from other's.
        When lengths differ, each unmatched row counts as one difference.
        """
        return row_distance(self._command_array, other._command_array)

    # ------------------------------------------------------------------
    # Lazy recompute
    # ------------------------------------------------------------------
    def _ensure_up_to_date(self):
        if self._status is GraphStatus.CLEAN:
            return
        reduced = self.simplifier.reduce(self._command_array)
        reduced, num_constants = renumber_constants(reduced)
        constants, grew = resize_constants(self._simplified_constants, num_constants)
        if grew:
            self._needs_opt = True
        self._simplified_command_array = reduced
        self._simplified_constants = constants
        self._status = GraphStatus.CLEAN
        logger.debug(f"Recomputed graph: {self._command_array.shape[0]} raw rows -> "
                     f"{reduced.shape[0]} reduced rows, {num_constants} constants")

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------
    def get_utilized_commands(self):
        """Per raw row, whether it contributes to the output."""
        self._ensure_up_to_date()
        return self.simplifier.utilized_commands(self._command_array)

    def get_simplified_program(self):
        """Copy of the reduced command array."""
        self._ensure_up_to_date()
        return self._simplified_command_array.clone()

    def needs_local_optimization(self):
        self._ensure_up_to_date()
        return self._needs_opt

    def get_number_local_optimization_params(self):
        self._ensure_up_to_date()
        return self._simplified_constants.shape[0]

    def get_local_optimization_params(self):
        self._ensure_up_to_date()
        return self._simplified_constants.clone()

    def set_local_optimization_params(self, params):
        """
        Replace the constant table with refitted values.

        Accepts a flat sequence or a single-column array. The length is not
        checked against the program; the next recompute after a raw program
        change resizes the table again.
        """
        self._simplified_constants = as_constants(params)
        self._needs_opt = False

    def get_complexity(self):
        """Number of rows in the reduced command array."""
        self._ensure_up_to_date()
        return self._simplified_command_array.shape[0]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def _nan_like(self, x):
        shape = x.shape if torch.is_tensor(x) else torch.as_tensor(x).shape
        return torch.full(tuple(shape), float('nan'), dtype=self.dtype)

    def evaluate(self, x):
        """
        Evaluate the equation at every sample (row) of x.

        Returns:
            [n, 1] tensor, or an all-NaN tensor shaped like x on a numeric fault
        """
        self._ensure_up_to_date()
        outcome = evaluation.evaluate(self._simplified_command_array, x,
                                      self._simplified_constants, dtype=self.dtype)
        if not outcome.ok:
            logger.debug(f"Numeric {outcome.fault.value} during evaluation; returning NaN")
            return self._nan_like(x)
        return outcome.value

    def evaluate_with_input_gradient(self, x):
        """
        Returns:
            (values [n, 1], df/dx [n, num_variables])
        """
        return self._evaluate_with_derivative(x, wrt_inputs=True)

    def evaluate_with_param_gradient(self, x):
        """
        Returns:
            (values [n, 1], df/dc [n, num_constants])
        """
        return self._evaluate_with_derivative(x, wrt_inputs=False)

    def _evaluate_with_derivative(self, x, wrt_inputs):
        self._ensure_up_to_date()
        outcome = evaluation.evaluate_with_derivative(
            self._simplified_command_array, x, self._simplified_constants,
            wrt_inputs, dtype=self.dtype)
        if not outcome.ok:
            logger.debug(f"Numeric {outcome.fault.value} during derivative evaluation; "
                           f"returning NaN")
            return self._nan_like(x), self._nan_like(x)
        return outcome.value, outcome.derivative

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------
    def format(self, style="console", raw=False):
        """
        Text form of the equation.

        With raw=True the unsimplified command array is rendered and
        constants appear as C_k placeholders.
        """
        if raw:
            return get_formatted_string(style, self._command_array, empty_constants())
        self._ensure_up_to_date()
        return get_formatted_string(style, self._simplified_command_array,
                                    self._simplified_constants)

    def get_console_string(self):
        return self.format("console", raw=False)

    def __str__(self):
        return self.get_console_string()

    def __repr__(self):
        return (f"AGraph(rows={self._command_array.shape[0]}, "
                f"status={self._status.value}, fitness={self._fitness})")

    # ------------------------------------------------------------------
    # Copying and snapshots
    # ------------------------------------------------------------------
    def copy(self):
        return AGraph.from_state(self.dump_state(), simplifier=self.simplifier,
                                dtype=self.dtype)

    def __deepcopy__(self, memo):
        return self.copy()

    def dump_state(self):
        """Capture a snapshot; tensors are copied."""
        return AGraphState(
            self._command_array.clone(),
            self._simplified_command_array.clone(),
            self._simplified_constants.clone(),
            self._needs_opt,
            self._fitness,
            self._fit_set,
            self._genetic_age,
            self._status is GraphStatus.DIRTY,
            self.use_simplification,
        )

    @classmethod
    def from_state(cls, state, simplifier=None, dtype=torch.float64):
        """
        Rebuild a graph from a snapshot made by dump_state.

        The simplifier defaults to the built-in strategy matching the
        snapshot's use_simplification flag. The evaluation dtype is not
        part of the snapshot; pass the dtype the graph was built with
        (config.restore_agraph does this for configured graphs).
        """
        state = AGraphState(*state)
        graph = cls(use_simplification=state.use_simplification,
                    simplifier=simplifier, dtype=dtype)
        graph._command_array = as_program(state.command_array)
        graph._simplified_command_array = as_program(state.simplified_command_array)
        graph._simplified_constants = as_constants(state.simplified_constants)
        graph._needs_opt = bool(state.needs_opt)
        graph._fitness = state.fitness
        graph._fit_set = bool(state.fit_set)
        graph._genetic_age = state.genetic_age
        graph._status = GraphStatus.DIRTY if state.modified else GraphStatus.CLEAN
        return graph

    def __getstate__(self):
        return {"state": self.dump_state(), "simplifier": self.simplifier, "dtype": self.dtype}

    def __setstate__(self, data):
        restored = AGraph.from_state(data["state"], simplifier=data["simplifier"],
                                    dtype=data["dtype"])
        self.__dict__.update(restored.__dict__)
