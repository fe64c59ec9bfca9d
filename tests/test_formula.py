import unittest

from coursereq.core.errors import (
    DivisionByZeroError,
    FormulaError,
    NumericOverflowError,
    ParseError,
    UnboundVariableError,
)
from coursereq.formula import BinaryOp, Call, GroupSum, Literal, TaskRef, evaluate, parse, referenced_tasks


class FormulaEvaluationTests(unittest.TestCase):
    def test_sum_of_two_tasks(self) -> None:
        self.assertEqual(evaluate("task(1) + task(2)", {1: 40, 2: 35}), 75)

    def test_string_and_int_keys_are_equivalent(self) -> None:
        self.assertEqual(evaluate("task(1) * 2", {"1": 4}), evaluate("task(1) * 2", {1: 4}))

    def test_precedence_and_left_associativity(self) -> None:
        self.assertEqual(evaluate("2 + 3 * 4", {}), 14)
        self.assertEqual(evaluate("(2 + 3) * 4", {}), 20)
        self.assertEqual(evaluate("10 - 4 - 3", {}), 3)
        self.assertEqual(evaluate("100 / 10 / 5", {}), 2)

    def test_unary_minus(self) -> None:
        self.assertEqual(evaluate("-task(a) + 5", {"a": 2}), 3)
        self.assertEqual(evaluate("--3", {}), 3)

    def test_decimal_literals(self) -> None:
        self.assertEqual(evaluate("0.5 * task(1)", {1: 10}), 5.0)
        self.assertEqual(evaluate(".5 + .25", {}), 0.75)

    def test_whitelisted_functions(self) -> None:
        bindings = {1: 40, 2: 35}
        self.assertEqual(evaluate("min(task(1), task(2))", bindings), 35)
        self.assertEqual(evaluate("max(task(1), task(2))", bindings), 40)
        self.assertEqual(evaluate("sum(task(1), task(2), 5)", bindings), 80)
        self.assertEqual(evaluate("MAX(task(1) / 2, 30)", bindings), 30)

    def test_task_ids_may_be_quoted_or_contain_dashes(self) -> None:
        self.assertEqual(evaluate("task(t-7) + task('lab 2')", {"t-7": 3, "lab 2": 4}), 7)
        self.assertEqual(evaluate('  task ( t7 )  * 2 ', {"t7": 1.5}), 3.0)

    def test_blank_formula_sums_every_binding(self) -> None:
        self.assertEqual(evaluate("", {"a": 1, "b": 2.5}), 3.5)
        self.assertEqual(evaluate("   ", {}), 0)

    def test_unbound_task_is_an_error_not_zero(self) -> None:
        with self.assertRaises(UnboundVariableError) as ctx:
            evaluate("task(99)", {1: 3})
        self.assertEqual(ctx.exception.task_id, "99")

    def test_division_by_runtime_zero(self) -> None:
        with self.assertRaises(DivisionByZeroError):
            evaluate("task(1) / task(2)", {1: 5, 2: 0})
        with self.assertRaises(DivisionByZeroError):
            evaluate("1 / (2 - 2)", {})

    def test_non_numeric_binding_rejected(self) -> None:
        with self.assertRaises(FormulaError):
            evaluate("task(1)", {1: "ten"})
        with self.assertRaises(FormulaError):
            evaluate("task(1)", {1: True})

    def test_values_beyond_float_range_are_formula_errors(self) -> None:
        huge = "1" + "0" * 400
        for formula in (f"task(1) * 0.5 * {huge}", f"{huge} / 3", huge, f"task(1) + {huge}", "task(1) * task(1)"):
            with self.subTest(formula=formula[:20]):
                with self.assertRaises(NumericOverflowError):
                    evaluate(formula, {1: 1e200})

    def test_nesting_up_to_the_limit_evaluates(self) -> None:
        self.assertEqual(evaluate("(" * 99 + "task(1)" + ")" * 99, {1: 4}), 4)
        self.assertEqual(evaluate("1" + " + 1" * 99, {}), 100)
        self.assertEqual(evaluate("-" * 100 + "2", {}), 2)
        self.assertEqual(evaluate("max(" * 50 + "3" + ", 1)" * 50, {}), 3)

    def test_evaluation_is_deterministic(self) -> None:
        formula = "max(task(1), task(2)) / 3 + 0.1"
        bindings = {1: 7, 2: 11}
        self.assertEqual(evaluate(formula, bindings), evaluate(formula, bindings))


class FormulaParsingTests(unittest.TestCase):
    def assertParseError(self, formula: str, position: int) -> ParseError:
        with self.assertRaises(ParseError) as ctx:
            parse(formula)
        self.assertEqual(ctx.exception.position, position, msg=str(ctx.exception))
        self.assertEqual(ctx.exception.formula, formula)
        return ctx.exception

    def test_tree_shape(self) -> None:
        tree = parse("task(1) + 2 * max(task(2), 3)")
        self.assertIsInstance(tree, BinaryOp)
        self.assertEqual(tree.op, "+")
        self.assertEqual(tree.left, TaskRef("1", 0))
        self.assertIsInstance(tree.right, BinaryOp)
        self.assertEqual(tree.right.left, Literal(2, 10))
        self.assertIsInstance(tree.right.right, Call)
        self.assertEqual(tree.right.right.name, "max")
        self.assertEqual(len(tree.right.right.args), 2)

    def test_blank_formula_parses_to_group_sum(self) -> None:
        self.assertIsInstance(parse(""), GroupSum)

    def test_parsed_trees_are_cached(self) -> None:
        self.assertIs(parse("task(1) + task(2)"), parse("task(1) + task(2)"))

    def test_unbalanced_open_paren_points_at_paren(self) -> None:
        error = self.assertParseError("task(1) + (task(2)", 10)
        self.assertIn("Unbalanced", error.reason)

    def test_unbalanced_close_paren(self) -> None:
        self.assertParseError("task(1))", 7)

    def test_unknown_token(self) -> None:
        self.assertParseError("task(1) $ 2", 8)

    def test_unknown_function(self) -> None:
        error = self.assertParseError("pow(2, 3)", 0)
        self.assertIn("pow", error.reason)

    def test_dangling_operator(self) -> None:
        self.assertParseError("task(1) +", 9)

    def test_empty_parens(self) -> None:
        self.assertParseError("()", 1)
        self.assertParseError("min()", 4)

    def test_task_ref_needs_closing_paren(self) -> None:
        self.assertParseError("task(1", 6)

    def test_deep_nesting_is_a_parse_error(self) -> None:
        error = self.assertParseError("-" * 1500 + "1", 100)
        self.assertIn("nests too deeply", error.reason)
        self.assertParseError("(" * 400 + "1" + ")" * 400, 100)
        self.assertParseError("1" + "+1" * 150, 201)
        self.assertParseError("min(" * 120 + "1" + ")" * 120, 400)

    def test_referenced_tasks(self) -> None:
        self.assertEqual(
            referenced_tasks("task(1) + max(task(2), task('x y')) - task(1)"),
            frozenset({"1", "2", "x y"}),
        )
        self.assertEqual(referenced_tasks(""), frozenset())


if __name__ == "__main__":
    unittest.main()
