"""
Text rendering of AGraph command arrays.

Supported formats: "console", "latex", "sympy" and "stack". Constants are
shown by value when the constant table has an entry for their slot and as
a symbolic C_k placeholder otherwise (e.g. for raw, unsimplified programs).
"""
from .operator_definitions import (
    INTEGER, VARIABLE, CONSTANT, ADDITION, SUBTRACTION, MULTIPLICATION,
    DIVISION, SIN, COS, EXPONENTIAL, LOGARITHM, POWER, ABS, SQRT, SAFE_POWER,
    SINH, COSH, BINARY_OPERATORS, OPERATOR_NAMES, arity,
)


class UnknownFormatError(ValueError):
    """Raised when a format name has no renderer."""
    pass


CONSOLE_TEMPLATES = {
    ADDITION: "{a} + {b}",
    SUBTRACTION: "{a} - {b}",
    MULTIPLICATION: "{a} * {b}",
    DIVISION: "{a} / {b}",
    POWER: "{a}^{b}",
    SAFE_POWER: "|{a}|^{b}",
    SIN: "sin({a})",
    COS: "cos({a})",
    EXPONENTIAL: "exp({a})",
    LOGARITHM: "log(|{a}|)",
    ABS: "|{a}|",
    SQRT: "sqrt(|{a}|)",
    SINH: "sinh({a})",
    COSH: "cosh({a})",
}

LATEX_TEMPLATES = {
    ADDITION: "{a} + {b}",
    SUBTRACTION: "{a} - {b}",
    MULTIPLICATION: "{a} {b}",
    DIVISION: "\\frac{{ {a} }}{{ {b} }}",
    POWER: "{a}^{{ {b} }}",
    SAFE_POWER: "|{a}|^{{ {b} }}",
    SIN: "\\sin{{ \\left( {a} \\right) }}",
    COS: "\\cos{{ \\left( {a} \\right) }}",
    EXPONENTIAL: "e^{{ {a} }}",
    LOGARITHM: "\\log{{ \\left( |{a}| \\right) }}",
    ABS: "|{a}|",
    SQRT: "\\sqrt{{ |{a}| }}",
    SINH: "\\sinh{{ \\left( {a} \\right) }}",
    COSH: "\\cosh{{ \\left( {a} \\right) }}",
}

SYMPY_TEMPLATES = {
    ADDITION: "{a} + {b}",
    SUBTRACTION: "{a} - {b}",
    MULTIPLICATION: "{a}*{b}",
    DIVISION: "{a}/{b}",
    POWER: "{a}**{b}",
    SAFE_POWER: "abs({a})**{b}",
    SIN: "sin({a})",
    COS: "cos({a})",
    EXPONENTIAL: "exp({a})",
    LOGARITHM: "log(abs({a}))",
    ABS: "abs({a})",
    SQRT: "sqrt(abs({a}))",
    SINH: "sinh({a})",
    COSH: "cosh({a})",
}

# Operands that never need parentheses inside these templates
_SELF_DELIMITED = {
    "latex": (DIVISION,),
}

# Operand positions where a leading minus sign would bind wrongly
_SIGN_SENSITIVE = {
    POWER: (0,),
    SAFE_POWER: (0,),
    SUBTRACTION: (1,),
}


def _terminal_string(format_, op, a, constants):
    if op == INTEGER:
        return str(a)
    if op == VARIABLE:
        return f"X_{{{a}}}" if format_ == "latex" else f"X_{a}"
    if a < len(constants):
        return str(float(constants[a]))
    return f"C_{{{a}}}" if format_ == "latex" else f"C_{a}"


def _infix_string(format_, templates, program, constants):
    rows = program.tolist()
    if not rows:
        return ""
    strings = []
    for op, a, b in rows:
        n_args = arity(op)
        if n_args == 0:
            strings.append(_terminal_string(format_, op, a, constants))
            continue
        template = templates[op]
        if n_args == 1:
            strings.append(template.format(a=strings[a]))
            continue
        operands = [strings[a], strings[b]]
        if op not in _SELF_DELIMITED.get(format_, ()):
            operands = [f"({s})" if rows[ref][0] in BINARY_OPERATORS else s
                        for s, ref in zip(operands, (a, b))]
        for pos in _SIGN_SENSITIVE.get(op, ()):
            if operands[pos].startswith("-"):
                operands[pos] = f"({operands[pos]})"
        strings.append(template.format(a=operands[0], b=operands[1]))
    return strings[-1]


def _stack_string(program, constants):
    lines = []
    for i, (op, a, b) in enumerate(program.tolist()):
        if op == INTEGER:
            desc = f"{a}"
        elif op == VARIABLE:
            desc = f"X_{a}"
        elif op == CONSTANT:
            desc = f"C_{a}"
            if a < len(constants):
                desc += f" = {float(constants[a])}"
        elif arity(op) == 1:
            desc = f"{OPERATOR_NAMES[op]} ({a})"
        else:
            desc = f"({a}) {OPERATOR_NAMES[op]} ({b})"
        lines.append(f"({i}) <= {desc}")
    return "\n".join(lines)


def get_formatted_string(format_, program, constants):
    """
    Render a command array.

    Args:
        format_: "console", "latex", "sympy" or "stack"
        program: [N, 3] command array
        constants: sequence of constant values (may be empty)
    Raises:
        UnknownFormatError: for any other format name
    """
    if format_ == "stack":
        return _stack_string(program, constants)
    if format_ == "console":
        return _infix_string(format_, CONSOLE_TEMPLATES, program, constants)
    if format_ == "latex":
        return _infix_string(format_, LATEX_TEMPLATES, program, constants)
    if format_ == "sympy":
        return _infix_string(format_, SYMPY_TEMPLATES, program, constants)
    raise UnknownFormatError(f"Unknown format: {format_}")
