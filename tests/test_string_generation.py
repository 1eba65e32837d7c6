import unittest
from agraph.program import as_program
from agraph.string_generation import UnknownFormatError, get_formatted_string


class TestFormattedStrings(unittest.TestCase):
    def setUp(self):
        # X_0 + C_0 * X_1
        self.program = as_program([[0, 0, 0], [1, 0, 0], [0, 1, 1], [4, 1, 2], [2, 0, 3]])
        self.constants = [3.0]

    def test_console(self):
        self.assertEqual(get_formatted_string("console", self.program, self.constants),
                         "X_0 + (3.0 * X_1)")

    def test_console_without_constant_values(self):
        self.assertEqual(get_formatted_string("console", self.program, []),
                         "X_0 + (C_0 * X_1)")

    def test_sympy(self):
        self.assertEqual(get_formatted_string("sympy", self.program, self.constants),
                         "X_0 + (3.0*X_1)")

    def test_latex(self):
        self.assertEqual(get_formatted_string("latex", self.program, self.constants),
                         "X_{0} + (3.0 X_{1})")
        division = as_program([[0, 0, 0], [0, 1, 1], [5, 0, 1]])
        self.assertEqual(get_formatted_string("latex", division, []),
                         "\\frac{ X_{0} }{ X_{1} }")

    def test_unary_functions(self):
        program = as_program([[0, 0, 0], [6, 0, 0]])
        self.assertEqual(get_formatted_string("console", program, []), "sin(X_0)")
        self.assertEqual(get_formatted_string("latex", program, []),
                         "\\sin{ \\left( X_{0} \\right) }")
        log_program = as_program([[0, 0, 0], [9, 0, 0]])
        self.assertEqual(get_formatted_string("sympy", log_program, []), "log(abs(X_0))")

    def test_integer_terminal(self):
        program = as_program([[0, 0, 0], [-1, 2, 2], [10, 0, 1]])
        self.assertEqual(get_formatted_string("sympy", program, []), "X_0**2")

    def test_negative_power_base_keeps_sign(self):
        program = as_program([[-1, -2, -2], [0, 0, 0], [10, 0, 1]])
        sympy_str = get_formatted_string("sympy", program, [])
        self.assertEqual(sympy_str, "(-2)**X_0")
        self.assertEqual(eval(sympy_str, {"X_0": 2}), 4)
        self.assertEqual(get_formatted_string("console", program, []), "(-2)^X_0")

        fitted = as_program([[1, 0, 0], [0, 0, 0], [10, 0, 1]])
        sympy_str = get_formatted_string("sympy", fitted, [-3.0])
        self.assertEqual(sympy_str, "(-3.0)**X_0")
        self.assertEqual(eval(sympy_str, {"X_0": 2}), 9.0)

    def test_subtracting_negative_terminal(self):
        program = as_program([[0, 0, 0], [1, 0, 0], [3, 0, 1]])
        self.assertEqual(get_formatted_string("console", program, [-1.5]), "X_0 - (-1.5)")
        # left operands and other operators are unchanged
        program = as_program([[1, 0, 0], [0, 0, 0], [2, 0, 1]])
        self.assertEqual(get_formatted_string("console", program, [-1.5]), "-1.5 + X_0")

    def test_stack(self):
        expected = "\n".join([
            "(0) <= X_0",
            "(1) <= C_0 = 3.0",
            "(2) <= X_1",
            "(3) <= (1) * (2)",
            "(4) <= (0) + (3)",
        ])
        self.assertEqual(get_formatted_string("stack", self.program, self.constants), expected)

    def test_empty_program(self):
        self.assertEqual(get_formatted_string("console", as_program([]), []), "")

    def test_unknown_format(self):
        with self.assertRaises(UnknownFormatError):
            get_formatted_string("html", self.program, self.constants)
        # still a ValueError for callers that do not know the subclass
        with self.assertRaises(ValueError):
            get_formatted_string("html", self.program, self.constants)


if __name__ == "__main__":
    unittest.main()
