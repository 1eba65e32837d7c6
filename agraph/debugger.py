"""
AGraph Visual Debugger - Command Array Visualization.

Provides utilities for visualizing and debugging stack programs.
"""
import logging

from .operator_definitions import (
    INTEGER, VARIABLE, CONSTANT, OPERATOR_NAMES, arity,
)
from .simplification import get_utilized_commands

logger = logging.getLogger(__name__)


def program_to_dot(program, constants=(), name="agraph"):
    """
    Export a command array to GraphViz DOT format.

    Rows that do not feed the output are drawn greyed out.

    Args:
        program: [N, 3] command array
        constants: constant values used to label constant rows
        name: Graph name
    Returns:
        String in DOT format
    """
    lines = [f"digraph {name} {{"]
    lines.append("  rankdir=BT;")
    lines.append("  node [shape=box, style=filled, fillcolor=lightblue];")

    utilized = get_utilized_commands(program)
    for i, (op, a, b) in enumerate(program.tolist()):
        if op == INTEGER:
            label = str(a)
            color = "lightyellow"
        elif op == CONSTANT:
            label = f"{float(constants[a]):.4g}" if a < len(constants) else f"C_{a}"
            color = "lightyellow"
        elif op == VARIABLE:
            label = f"X_{a}"
            color = "lightgreen"
        else:
            label = OPERATOR_NAMES[op]
            color = "lightcoral" if arity(op) == 1 else "lightblue"
        if not utilized[i]:
            color = "lightgrey"

        lines.append(f'  n{i} [label="({i}) {label}", fillcolor={color}];')

        n_args = arity(op)
        if n_args == 1:
            lines.append(f'  n{a} -> n{i};')
        elif n_args == 2:
            lines.append(f'  n{a} -> n{i} [label="L"];')
            lines.append(f'  n{b} -> n{i} [label="R"];')

    lines.append("}")
    return "\n".join(lines)


def agraph_to_dot(graph, raw=False, name="agraph"):
    """DOT export of an AGraph's reduced (or raw) program."""
    if raw:
        return program_to_dot(graph.get_raw_program(), name=name)
    return program_to_dot(graph.get_simplified_program(),
                          graph.get_local_optimization_params().tolist(), name=name)


def export_to_file(graph, filename="agraph.dot", raw=False):
    """Export an AGraph to a DOT file."""
    dot_str = agraph_to_dot(graph, raw=raw)
    with open(filename, 'w') as f:
        f.write(dot_str)
    logger.info(f"Exported to {filename}")
    return filename
