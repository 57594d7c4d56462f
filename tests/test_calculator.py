"""
Tests for the calculator expression evaluator.
"""

import math

import pytest

from podcast_agent.tools.calculator import CalculatorError, evaluate, tokenize


class TestEvaluate:
    """Test supported arithmetic."""

    @pytest.mark.parametrize("expression,expected", [
        ("2 + 2 * 3", 8),
        ("(2 + 2) * 3", 12),
        ("10 / 4", 2.5),
        ("2 ^ 10", 1024),
        ("2 ^ 3 ^ 2", 512),  # right associative
        ("-2 ^ 2", -4),
        ("--3", 3),
        ("sqrt(16)", 4),
        ("abs(-7.5)", 7.5),
        ("pow(2, 8)", 256),
        ("exp(0)", 1),
        ("log(e)", 1),
        ("cos(0)", 1),
        ("50%", 0.5),
        ("15% * 80", 12),
        ("200 % 50", 100),  # percent of
        ("1.5e3 + .5", 1500.5),
        ("PI", math.pi),
        ("  7  ", 7),
    ])
    def test_values(self, expression, expected):
        assert evaluate(expression) == pytest.approx(expected)

    def test_trig_uses_radians(self):
        assert evaluate("sin(pi / 2)") == pytest.approx(1.0)

    def test_function_names_case_insensitive(self):
        assert evaluate("SQRT(9)") == pytest.approx(3.0)


class TestErrors:
    """Test rejected expressions."""

    @pytest.mark.parametrize("expression,message", [
        ("", "Empty expression"),
        ("2 $ 3", "Invalid characters"),
        ("__import__('os')", "Invalid characters"),
        ("1 / 0", "Division by zero"),
        ("foo(1)", "Unknown function"),
        ("x + 1", "Unknown name"),
        ("sqrt(1, 2)", "takes 1 argument"),
        ("(1 + 2", "Expected"),
        ("1 +", "Unexpected end"),
        ("2 3", "Unexpected '3'"),
    ])
    def test_rejected(self, expression, message):
        with pytest.raises(CalculatorError, match=message):
            evaluate(expression)

    @pytest.mark.parametrize("expression", [
        "(" * 2000 + "1" + ")" * 2000,
        "-" * 5000 + "1",
        "sqrt(" * 1500 + "4" + ")" * 1500,
    ])
    def test_deep_nesting(self, expression):
        """Pathologically nested input is rejected cleanly."""
        with pytest.raises(CalculatorError, match="too deeply nested"):
            evaluate(expression)

    def test_domain_error(self):
        """Math domain errors surface as CalculatorError."""
        with pytest.raises(CalculatorError):
            evaluate("sqrt(-1)")

    def test_non_finite_result(self):
        with pytest.raises(CalculatorError, match="not a number"):
            evaluate("1e308 * 10")

    def test_is_value_error(self):
        """Callers can catch plain ValueError."""
        with pytest.raises(ValueError):
            evaluate("1 / 0")


class TestTokenize:
    def test_tokens(self):
        kinds = [t.kind for t in tokenize("sqrt(2) + 3")]
        assert kinds == ["name", "op", "number", "op", "op", "number", "end"]
