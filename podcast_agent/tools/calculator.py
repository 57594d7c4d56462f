"""
Arithmetic expression evaluator for the calculator tool.

Only numbers, ``+ - * / ^ %``, parentheses and a fixed table of functions and
constants are understood. Nothing is ever handed to ``eval``.

Grammar (lowest to highest precedence)::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/" | "%") unary)*
    unary   := ("+" | "-") unary | power
    power   := postfix ("^" unary)?          # right associative
    postfix := primary "%"*                  # percent when no operand follows
    primary := NUMBER | NAME | NAME "(" args ")" | "(" expr ")"
"""

import math
import re
from dataclasses import dataclass
from typing import Callable


class CalculatorError(ValueError):
    """Raised for expressions that cannot be evaluated."""


FUNCTIONS: dict[str, tuple[int, Callable[..., float]]] = {
    "sqrt": (1, math.sqrt),
    "sin": (1, math.sin),
    "cos": (1, math.cos),
    "tan": (1, math.tan),
    "log": (1, math.log),
    "exp": (1, math.exp),
    "abs": (1, abs),
    "pow": (2, math.pow),
}

CONSTANTS: dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}

_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
    r"|(?P<name>[A-Za-z_]+)"
    r"|(?P<op>[-+*/^%(),])"
    r")"
)


@dataclass
class Token:
    kind: str  # "number", "name", "op", "end"
    value: str


def tokenize(expression: str) -> list[Token]:
    """Split an expression into tokens, rejecting anything unexpected."""
    tokens: list[Token] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None or m.end() == pos:
            raise CalculatorError("Invalid characters in expression")
        kind = m.lastgroup
        tokens.append(Token(kind, m.group(kind)))
        pos = m.end()
    tokens.append(Token("end", ""))
    return tokens


class _Parser:
    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int = 1) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def _is_op(self, tok: Token, *ops: str) -> bool:
        return tok.kind == "op" and tok.value in ops

    def _expect(self, op: str) -> None:
        if not self._is_op(self.current, op):
            raise CalculatorError(f"Expected '{op}'")
        self._advance()

    def parse(self) -> float:
        if self.current.kind == "end":
            raise CalculatorError("Empty expression")
        value = self.expr()
        if self.current.kind != "end":
            raise CalculatorError(f"Unexpected '{self.current.value}'")
        return value

    def expr(self) -> float:
        value = self.term()
        while self._is_op(self.current, "+", "-"):
            op = self._advance().value
            rhs = self.term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def term(self) -> float:
        value = self.unary()
        while self._is_op(self.current, "*", "/", "%"):
            op = self._advance().value
            rhs = self.unary()
            if op == "*":
                value = value * rhs
            elif op == "/":
                if rhs == 0:
                    raise CalculatorError("Division by zero")
                value = value / rhs
            else:
                # "a % b" reads as "a percent of b"
                value = value / 100 * rhs
        return value

    def unary(self) -> float:
        if self._is_op(self.current, "-"):
            self._advance()
            return -self.unary()
        if self._is_op(self.current, "+"):
            self._advance()
            return self.unary()
        return self.power()

    def power(self) -> float:
        base = self.postfix()
        if self._is_op(self.current, "^"):
            self._advance()
            exponent = self.unary()
            try:
                return math.pow(base, exponent)
            except (OverflowError, ValueError) as e:
                raise CalculatorError(str(e)) from e
        return base

    def _starts_operand(self, tok: Token) -> bool:
        return tok.kind in ("number", "name") or self._is_op(tok, "(", "-", "+")

    def postfix(self) -> float:
        value = self.primary()
        while self._is_op(self.current, "%") and not self._starts_operand(self._peek()):
            self._advance()
            value = value / 100
        return value

    def primary(self) -> float:
        tok = self.current

        if tok.kind == "number":
            self._advance()
            return float(tok.value)

        if tok.kind == "name":
            self._advance()
            name = tok.value.lower()
            if self._is_op(self.current, "("):
                return self._call(name)
            if name in CONSTANTS:
                return CONSTANTS[name]
            raise CalculatorError(f"Unknown name '{tok.value}'")

        if self._is_op(tok, "("):
            self._advance()
            value = self.expr()
            self._expect(")")
            return value

        if tok.kind == "end":
            raise CalculatorError("Unexpected end of expression")
        raise CalculatorError(f"Unexpected '{tok.value}'")

    def _call(self, name: str) -> float:
        if name not in FUNCTIONS:
            raise CalculatorError(f"Unknown function '{name}'")
        arity, fn = FUNCTIONS[name]

        self._expect("(")
        args = [self.expr()]
        while self._is_op(self.current, ","):
            self._advance()
            args.append(self.expr())
        self._expect(")")

        if len(args) != arity:
            raise CalculatorError(f"{name}() takes {arity} argument(s), got {len(args)}")
        try:
            return float(fn(*args))
        except (ValueError, OverflowError) as e:
            raise CalculatorError(f"{name}(): {e}") from e


def evaluate(expression: str) -> float:
    """
    Evaluate an arithmetic expression.

    Args:
        expression: e.g. "2 + 2 * 3", "sqrt(16)", "sin(pi / 2)", "15% * 80"

    Returns:
        Finite float result

    Raises:
        CalculatorError: Invalid syntax, unknown names, or non-finite result
    """
    if not isinstance(expression, str):
        raise CalculatorError("Expression must be a string")

    try:
        result = _Parser(tokenize(expression)).parse()
    except RecursionError as e:
        raise CalculatorError("Expression too deeply nested") from e
    if not math.isfinite(result):
        raise CalculatorError("Result is not a number")
    return result
