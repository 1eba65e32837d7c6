import unittest
import torch
from agraph.evaluation import evaluate
from agraph.program import MalformedProgramError, as_program
from agraph.simplification import (
    FoldingSimplifier, StackSimplifier, create_simplifier, get_utilized_commands,
)


class TestUtilizedCommands(unittest.TestCase):
    def test_liveness_follows_the_output(self):
        program = as_program([[0, 0, 0], [0, 1, 1], [2, 0, 0], [6, 1, 1]])
        self.assertEqual(get_utilized_commands(program), [False, True, False, True])

    def test_binary_rows_mark_both_operands(self):
        program = as_program([[0, 0, 0], [1, 0, 0], [0, 1, 1], [2, 0, 1]])
        self.assertEqual(get_utilized_commands(program), [True, True, False, True])

    def test_empty(self):
        self.assertEqual(get_utilized_commands(as_program([])), [])


class TestStackSimplifier(unittest.TestCase):
    def setUp(self):
        self.simplifier = StackSimplifier()

    def test_dead_rows_removed_and_references_remapped(self):
        program = as_program([[0, 0, 0], [0, 1, 1], [2, 0, 0], [6, 1, 1]])
        reduced = self.simplifier.reduce(program)
        self.assertEqual(reduced.tolist(), [[0, 1, 1], [6, 0, 0]])

    def test_unary_operand_b_mirrors_operand_a(self):
        reduced = self.simplifier.reduce(as_program([[0, 0, 0], [6, 0, 5]]))
        self.assertEqual(reduced.tolist(), [[0, 0, 0], [6, 0, 0]])

    def test_keeps_duplicate_rows(self):
        program = as_program([[0, 0, 0], [6, 0, 0], [0, 0, 0], [6, 2, 2], [2, 1, 3]])
        self.assertEqual(self.simplifier.reduce(program).shape[0], 5)

    def test_malformed_program_raises(self):
        with self.assertRaises(MalformedProgramError):
            self.simplifier.reduce(as_program([[0, 0, 0], [2, 0, 3]]))

    def test_empty_program(self):
        self.assertEqual(tuple(self.simplifier.reduce(as_program([])).shape), (0, 3))

    def test_does_not_modify_input(self):
        program = as_program([[0, 0, 0], [0, 1, 1], [6, 1, 1]])
        before = program.clone()
        self.simplifier.reduce(program)
        self.assertTrue(torch.equal(program, before))


class TestFoldingSimplifier(unittest.TestCase):
    def setUp(self):
        self.simplifier = FoldingSimplifier()

    def test_add_zero(self):
        reduced = self.simplifier.reduce(as_program([[0, 0, 0], [-1, 0, 0], [2, 0, 1]]))
        self.assertEqual(reduced.tolist(), [[0, 0, 0]])

    def test_integer_folding(self):
        reduced = self.simplifier.reduce(as_program([[-1, 2, 2], [-1, 3, 3], [4, 0, 1]]))
        self.assertEqual(reduced.tolist(), [[-1, 6, 6]])

    def test_inexact_integer_division_is_kept(self):
        reduced = self.simplifier.reduce(as_program([[-1, 1, 1], [-1, 2, 2], [5, 0, 1]]))
        self.assertEqual(reduced.shape[0], 3)

    def test_self_subtraction(self):
        reduced = self.simplifier.reduce(as_program([[0, 0, 0], [3, 0, 0]]))
        self.assertEqual(reduced.tolist(), [[-1, 0, 0]])

    def test_multiplication_by_zero_drops_constant(self):
        reduced = self.simplifier.reduce(as_program([[1, 0, 0], [-1, 0, 0], [4, 0, 1]]))
        self.assertEqual(reduced.tolist(), [[-1, 0, 0]])

    def test_zero_rewrites_need_finite_operands(self):
        # (1 / X_0) * 0 is NaN at X_0 = 0, so it must not fold to 0
        unbounded = as_program([[-1, 1, 1], [0, 0, 0], [5, 0, 1], [-1, 0, 0], [4, 2, 3]])
        self.assertEqual(self.simplifier.reduce(unbounded).shape[0], 5)
        self_sub = as_program([[0, 0, 0], [8, 0, 0], [3, 1, 1]])
        self.assertEqual(self.simplifier.reduce(self_sub).shape[0], 3)

        bounded = as_program([[0, 0, 0], [6, 0, 0], [-1, 0, 0], [4, 1, 2]])
        self.assertEqual(self.simplifier.reduce(bounded).tolist(), [[-1, 0, 0]])

    def test_folding_matches_stack_evaluation_at_faults(self):
        program = as_program([[-1, 1, 1], [0, 0, 0], [5, 0, 1], [-1, 0, 0], [4, 2, 3]])
        x = torch.tensor([[0.0], [2.0]])
        stack = evaluate(StackSimplifier().reduce(program), x, [])
        folded = evaluate(self.simplifier.reduce(program), x, [])
        self.assertEqual(stack.fault, folded.fault)

    def test_duplicate_rows_merged(self):
        program = as_program([[0, 0, 0], [6, 0, 0], [0, 0, 0], [6, 2, 2], [2, 1, 3]])
        reduced = self.simplifier.reduce(program)
        self.assertEqual(reduced.tolist(), [[0, 0, 0], [6, 0, 0], [2, 1, 1]])

    def test_constant_rows_never_merged(self):
        program = as_program([[1, 0, 0], [1, 0, 0], [2, 0, 1]])
        self.assertEqual(self.simplifier.reduce(program).tolist(), program.tolist())

    def test_power_identities(self):
        one = self.simplifier.reduce(as_program([[0, 0, 0], [-1, 0, 0], [10, 0, 1]]))
        self.assertEqual(one.tolist(), [[-1, 1, 1]])
        same = self.simplifier.reduce(as_program([[0, 0, 0], [-1, 1, 1], [10, 0, 1]]))
        self.assertEqual(same.tolist(), [[0, 0, 0]])
        # |x|^1 is not x
        safe = self.simplifier.reduce(as_program([[0, 0, 0], [-1, 1, 1], [13, 0, 1]]))
        self.assertEqual(safe.shape[0], 3)


class TestCreateSimplifier(unittest.TestCase):
    def test_policy_flag_selects_strategy(self):
        self.assertIsInstance(create_simplifier(False), StackSimplifier)
        self.assertIsInstance(create_simplifier(True), FoldingSimplifier)
        self.assertTrue(create_simplifier(True).use_simplification)
        self.assertFalse(create_simplifier(False).use_simplification)


if __name__ == "__main__":
    unittest.main()
