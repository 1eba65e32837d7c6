"""
AGraph operator definitions.

Integer opcodes stored in column 0 of a command array, together with
their arity and printable names.
"""

INTEGER = -1
VARIABLE = 0
CONSTANT = 1
ADDITION = 2
SUBTRACTION = 3
MULTIPLICATION = 4
DIVISION = 5
SIN = 6
COS = 7
EXPONENTIAL = 8
LOGARITHM = 9
POWER = 10
ABS = 11
SQRT = 12
SAFE_POWER = 13
SINH = 14
COSH = 15

TERMINALS = (INTEGER, VARIABLE, CONSTANT)

UNARY_OPERATORS = (SIN, COS, EXPONENTIAL, LOGARITHM, ABS, SQRT, SINH, COSH)

BINARY_OPERATORS = (ADDITION, SUBTRACTION, MULTIPLICATION, DIVISION,
                    POWER, SAFE_POWER)

OPERATOR_NAMES = {
    INTEGER: 'integer',
    VARIABLE: 'X',
    CONSTANT: 'C',
    ADDITION: '+',
    SUBTRACTION: '-',
    MULTIPLICATION: '*',
    DIVISION: '/',
    SIN: 'sin',
    COS: 'cos',
    EXPONENTIAL: 'exp',
    LOGARITHM: 'log',
    POWER: 'pow',
    ABS: 'abs',
    SQRT: 'sqrt',
    SAFE_POWER: 'safe_pow',
    SINH: 'sinh',
    COSH: 'cosh',
}

# Operators whose results are checked for overflow / underflow during evaluation
OVERFLOW_CHECKED = (ADDITION, SUBTRACTION, MULTIPLICATION, DIVISION,
                    EXPONENTIAL, POWER, SAFE_POWER, SINH, COSH)
UNDERFLOW_CHECKED = (MULTIPLICATION, DIVISION, EXPONENTIAL, POWER, SAFE_POWER)


def arity(op):
    """Number of row operands read by an opcode (0 for terminals)."""
    if op in TERMINALS:
        return 0
    if op in UNARY_OPERATORS:
        return 1
    if op in BINARY_OPERATORS:
        return 2
    raise ValueError(f"Unknown operator code: {op}")


def is_terminal(op):
    return op in TERMINALS
