"""Tests for the SymPy-backed expression evaluator."""

import math

import pytest

from function_visualizer.evaluator import (
    EvaluationError,
    EvaluationFault,
    ExpressionSyntaxError,
    SympyEvaluator,
    evaluate,
    trial_evaluate,
)

CONSTANTS = {"pi": math.pi, "e": math.e}


def bind(**values):
    bindings = dict(CONSTANTS)
    bindings.update(values)
    return bindings


class TestArithmetic:
    """Operators, functions and constants."""

    def test_power_uses_caret(self):
        assert evaluate("x^2", bind(x=3.0)) == 9.0

    def test_division_and_precedence(self):
        assert evaluate("1 + x * 2 / 4", bind(x=2.0)) == pytest.approx(2.0)

    @pytest.mark.parametrize(
        "expression, x, expected",
        [
            ("sin(x)", math.pi / 2, 1.0),
            ("cos(x)", 0.0, 1.0),
            ("tan(x)", math.pi / 4, 1.0),
            ("asin(x)", 1.0, math.pi / 2),
            ("acos(x)", 1.0, 0.0),
            ("atan(x)", 1.0, math.pi / 4),
            ("exp(x)", 1.0, math.e),
            ("log(x)", math.e, 1.0),
            ("log10(x)", 100.0, 2.0),
            ("sqrt(x)", 16.0, 4.0),
            ("abs(x)", -3.0, 3.0),
        ],
    )
    def test_functions(self, expression, x, expected):
        assert evaluate(expression, bind(x=x)) == pytest.approx(expected)

    def test_atan2_takes_two_arguments(self):
        assert evaluate("atan2(y, x)", bind(x=-1.0, y=0.0)) == pytest.approx(math.pi)

    def test_constants_come_from_bindings(self):
        assert evaluate("pi + e", bind(x=0.0)) == pytest.approx(math.pi + math.e)

    def test_constant_expression(self):
        assert evaluate("2", bind(x=5.0)) == 2.0

    def test_preset_expressions_evaluate(self):
        assert evaluate("sin(sqrt(x*x + y*y) + atan2(y, x))", bind(x=1.0, y=1.0)) == pytest.approx(
            math.sin(math.sqrt(2) + math.pi / 4)
        )
        assert evaluate("2 * exp(-(x*x + y*y)/8)", bind(x=0.0, y=0.0)) == pytest.approx(2.0)


class TestConditionals:
    """``cond ? a : b`` support."""

    @pytest.mark.parametrize("x, expected", [(2.0, 1.0), (-1.0, 0.0), (0.0, 0.0)])
    def test_step_function(self, x, expected):
        assert evaluate("x > 0 ? 1 : 0", bind(x=x)) == expected

    @pytest.mark.parametrize("x, expected", [(-5.0, -1.0), (5.0, 1.0), (0.0, 0.0)])
    def test_nested_is_right_associative(self, x, expected):
        assert evaluate("x < 0 ? -1 : x > 0 ? 1 : 0", bind(x=x)) == expected

    def test_conditional_inside_parentheses(self):
        assert evaluate("2 * (x > 0 ? x : -x)", bind(x=-3.0)) == pytest.approx(6.0)

    def test_conditional_as_function_argument(self):
        assert evaluate("abs(x >= 1 ? x : 0)", bind(x=-4.0)) == 0.0

    def test_equality_condition(self):
        assert evaluate("x == 1 ? 3 : 4", bind(x=1.0)) == 3.0
        assert evaluate("x == 1 ? 3 : 4", bind(x=2.0)) == 4.0

    def test_bare_value_condition_is_truthy_when_nonzero(self):
        assert evaluate("x ? 5 : 7", bind(x=2.0)) == 5.0
        assert evaluate("x ? 5 : 7", bind(x=0.0)) == 7.0

    def test_missing_colon_is_an_error(self):
        with pytest.raises(EvaluationError):
            evaluate("x > 0 ? 1", bind(x=1.0))


class TestFailures:
    """Parse errors, unknown names and runtime faults."""

    def test_unterminated_call(self):
        with pytest.raises(EvaluationError) as info:
            evaluate("sin(x", bind(x=1.0))
        assert not isinstance(info.value, EvaluationFault)
        assert info.value.expression == "sin(x"

    def test_empty_expression(self):
        with pytest.raises(EvaluationError):
            evaluate("   ", bind(x=1.0))

    def test_unknown_identifier(self):
        with pytest.raises(EvaluationError, match="Unknown identifier"):
            evaluate("x + z", bind(x=1.0))

    def test_unknown_function(self):
        with pytest.raises(EvaluationError, match="Unknown function"):
            evaluate("foo(x)", bind(x=1.0))

    def test_division_by_zero_is_a_fault(self):
        with pytest.raises(EvaluationFault):
            evaluate("1/x", bind(x=0.0))

    def test_domain_error_is_a_fault(self):
        with pytest.raises(EvaluationFault):
            evaluate("sqrt(x)", bind(x=-1.0))

    def test_overflow_is_a_fault(self):
        with pytest.raises(EvaluationFault):
            evaluate("exp(x)", bind(x=1000.0))

    def test_failed_parse_is_not_retried_per_call(self):
        evaluator = SympyEvaluator()
        for _ in range(3):
            with pytest.raises(EvaluationError):
                evaluator.evaluate("sin(", bind(x=1.0))


class TestTrialEvaluation:
    """Commit-time trial evaluation."""

    def test_curve_trial_binds_x(self):
        assert trial_evaluate("x^2", "curve") == 1.0

    def test_surface_trial_binds_x_and_y(self):
        assert trial_evaluate("x*y/4", "surface") == pytest.approx(0.25)

    def test_syntax_error_is_reported(self):
        with pytest.raises(ExpressionSyntaxError):
            trial_evaluate("sin(x", "curve")

    def test_y_is_unknown_in_curve_mode(self):
        with pytest.raises(ExpressionSyntaxError):
            trial_evaluate("x + y", "curve")

    def test_runtime_fault_at_trial_point_is_accepted(self):
        assert math.isnan(trial_evaluate("sqrt(-x)", "curve"))


class TestInputHandling:
    """Only the expression grammar reaches the parser."""

    def test_attribute_chain_never_runs(self, tmp_path):
        marker = tmp_path / "created"
        payload = (
            "Integer.__new__.__globals__['__builtins__']['__import__']('os')"
            f".system('touch {marker}')"
        )
        with pytest.raises(ExpressionSyntaxError):
            trial_evaluate(payload, "curve")
        assert not marker.exists()

    @pytest.mark.parametrize(
        "expression",
        ["x.real", "'x'", "x[0]", "__import__('os')", "lambda: 1", "Symbol('x')", "x; 1", "x @ x"],
    )
    def test_outside_grammar_is_rejected(self, expression):
        with pytest.raises(EvaluationError) as info:
            evaluate(expression, bind(x=1.0))
        assert not isinstance(info.value, EvaluationFault)

    def test_decimal_and_exponent_literals(self):
        assert evaluate(".5 + 1.5e1", bind(x=0.0)) == pytest.approx(15.5)

    @pytest.mark.parametrize(
        "expression, expected",
        [("2x", 6.0), ("2(x + 1)", 8.0), ("(x - 1)(x + 1)", 8.0), ("2pi", 2 * math.pi), ("3 sin(x)", 3 * math.sin(3.0))],
    )
    def test_implicit_multiplication(self, expression, expected):
        assert evaluate(expression, bind(x=3.0)) == pytest.approx(expected)


class TestFloatingPointSemantics:
    """Expressions are computed in floats, never simplified first."""

    def test_huge_power_overflows_instead_of_expanding(self):
        with pytest.raises(EvaluationFault):
            evaluate("9^9^9", bind(x=0.0))

    def test_huge_power_passes_the_commit_check(self):
        assert math.isnan(trial_evaluate("9^9^9", "curve"))

    def test_self_division_is_not_simplified(self):
        assert evaluate("x/x", bind(x=2.0)) == 1.0
        with pytest.raises(EvaluationFault):
            evaluate("x/x", bind(x=0.0))
