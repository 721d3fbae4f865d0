"""Expression evaluation capability.

The geometry pipeline only needs ``evaluate(expression, bindings) -> float``.
:class:`SympyEvaluator` provides it by parsing the text with SymPy, rewriting
``cond ? a : b`` conditionals into ``Piecewise`` and compiling the result with
``lambdify`` against the ``math`` module. Compiled callables are cached per
(expression, binding names), so sampling a grid parses the text once.

``parse_expr`` runs ``eval`` on its input, so the text is tokenized first and
only numbers, known names and the operators of the expression grammar ever
reach it. Parsing keeps the expression unevaluated and every literal is a
float, so ``9^9^9`` overflows at sample time instead of being expanded as an
exact integer, and ``x/x`` still divides by zero at the origin.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import Callable, List, Mapping, Optional, Protocol, Tuple

import sympy as sp
from sympy.parsing.sympy_parser import (
    convert_xor,
    implicit_multiplication,
    parse_expr,
    standard_transformations,
)

from . import config

logger = logging.getLogger(__name__)

_TRANSFORMATIONS = standard_transformations + (convert_xor, implicit_multiplication)

_TOKEN = re.compile(
    r"\s*(?:"
    r"(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
    r"|(?P<name>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<op><=|>=|==|!=|[-+*/^(),<>?:])"
    r")"
)

_FUNCTIONS = {
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "asin": sp.asin,
    "acos": sp.acos,
    "atan": sp.atan,
    "exp": sp.exp,
    "log": sp.log,
    "log10": lambda arg: sp.log(arg, 10),
    "sqrt": sp.sqrt,
    "abs": sp.Abs,
    "atan2": sp.atan2,
}

# Names the parser's generated code refers to; nothing else from sympy leaks in.
_PARSER_GLOBALS = {
    "__builtins__": {},
    "Symbol": sp.Symbol,
    "Function": sp.Function,
    "Integer": sp.Integer,
    "Float": sp.Float,
    "Rational": sp.Rational,
    "Add": sp.Add,
    "Mul": sp.Mul,
    "Pow": sp.Pow,
    "Piecewise": sp.Piecewise,
    "Eq": sp.Eq,
    "Ne": sp.Ne,
    "Lt": sp.Lt,
    "Le": sp.Le,
    "Gt": sp.Gt,
    "Ge": sp.Ge,
    "And": sp.And,
}

_COMPARISONS = ("<=", ">=", "==", "!=", "<", ">")

# Errors user expressions can raise while being computed with ``math``.
_RUNTIME_ERRORS = (ArithmeticError, ValueError, TypeError, NameError)


class EvaluationError(Exception):
    """Parse error, unknown identifier or runtime fault in an expression."""

    def __init__(self, message: str, expression: Optional[str] = None) -> None:
        super().__init__(message)
        self.expression = expression


class EvaluationFault(EvaluationError):
    """The expression compiled but faulted at the given bindings."""


class ExpressionSyntaxError(EvaluationError):
    """Raised when an expression fails its trial evaluation at commit time."""


class Evaluator(Protocol):
    def evaluate(self, expression: str, bindings: Mapping[str, float]) -> float:
        ...


def _tokenize(source: str) -> List[Tuple[str, str]]:
    tokens = []
    position = 0
    while position < len(source):
        match = _TOKEN.match(source, position)
        if match is None:
            raise EvaluationError(f"Unexpected character {source[position]!r}", source)
        tokens.append((match.lastgroup, match.group(match.lastgroup)))
        position = match.end()
    return tokens


def _normalize(source: str, names: Tuple[str, ...]) -> str:
    """Rebuild ``source`` from grammar tokens with every literal written as a float.

    Any name that is neither bound nor a known function is rejected here, before
    the text is handed to the parser.
    """
    tokens = _tokenize(source.strip())
    undefined = set()
    unknown = set()
    parts = []
    for index, (kind, text) in enumerate(tokens):
        if kind == "number" and not any(mark in text for mark in ".eE"):
            text += ".0"
        elif kind == "name" and text not in names:
            called = index + 1 < len(tokens) and tokens[index + 1] == ("op", "(")
            if not called:
                unknown.add(text)
            elif text not in _FUNCTIONS:
                undefined.add(text)
        parts.append(text)
    if undefined:
        raise EvaluationError(f"Unknown function: {', '.join(sorted(undefined))}", source)
    if unknown:
        raise EvaluationError(f"Unknown identifier: {', '.join(sorted(unknown))}", source)
    return " ".join(parts)


def _scan_top_level(text: str):
    """Yield ``(index, char)`` for characters outside any parentheses."""
    depth = 0
    for index, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0:
            yield index, char


def _find_top_level(text: str, token: str) -> int:
    for index, _ in _scan_top_level(text):
        if text.startswith(token, index):
            return index
    return -1


def _split_arguments(text: str) -> list:
    parts = []
    start = 0
    for index, char in _scan_top_level(text):
        if char == ",":
            parts.append(text[start:index])
            start = index + 1
    parts.append(text[start:])
    return parts


def _rewrite_groups(text: str) -> str:
    out = []
    depth = 0
    opened = 0
    cursor = 0
    for index, char in enumerate(text):
        if char == "(":
            if depth == 0:
                opened = index
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1
            if depth == 0:
                inner = text[opened + 1:index]
                args = ",".join(_rewrite_conditionals(arg) for arg in _split_arguments(inner))
                out.append(text[cursor:opened])
                out.append(f"({args})")
                cursor = index + 1
    out.append(text[cursor:])
    return "".join(out)


def _condition(text: str) -> str:
    for op, wrapper in (("==", "Eq"), ("!=", "Ne")):
        index = _find_top_level(text, op)
        if index >= 0:
            return f"{wrapper}({text[:index]}, {text[index + len(op):]})"
    if any(_find_top_level(text, op) >= 0 for op in _COMPARISONS):
        return text
    # bare values are truthy when non-zero
    return f"Ne({text}, 0)"


def _rewrite_conditionals(text: str) -> str:
    """Rewrite ``cond ? a : b`` (right associative) into ``Piecewise``."""
    if "?" not in text:
        return text
    text = _rewrite_groups(text)
    question = _find_top_level(text, "?")
    if question < 0:
        return text
    condition = text[:question]
    rest = text[question + 1:]
    pending = 0
    colon = -1
    for index, char in _scan_top_level(rest):
        if char == "?":
            pending += 1
        elif char == ":":
            if pending == 0:
                colon = index
                break
            pending -= 1
    if colon < 0:
        raise EvaluationError("Conditional is missing ':'", text)
    when_true = _rewrite_conditionals(rest[:colon])
    when_false = _rewrite_conditionals(rest[colon + 1:])
    return f"Piecewise(({when_true}, {_condition(condition)}), ({when_false}, True))"


@functools.lru_cache(maxsize=config.EVALUATOR_CACHE_SIZE)
def _compile(expression: str, names: Tuple[str, ...]) -> Tuple[Optional[Callable[..., float]], Optional[str]]:
    source = expression.strip()
    if not source:
        return None, "Expression is empty"
    try:
        parsed = parse_expr(
            _rewrite_conditionals(_normalize(source, names)),
            local_dict=dict(_FUNCTIONS),
            global_dict=dict(_PARSER_GLOBALS),
            transformations=_TRANSFORMATIONS,
            evaluate=False,
        )
    except EvaluationError as exc:
        return None, str(exc)
    except Exception as exc:
        return None, f"Cannot parse expression: {exc}"
    if not isinstance(parsed, sp.Basic):
        return None, "Expression does not describe a scalar value"

    try:
        fn = sp.lambdify([sp.Symbol(name) for name in names], parsed, modules="math")
    except Exception as exc:
        return None, f"Cannot compile expression: {exc}"
    logger.debug("Compiled %r over %s", expression, names)
    return fn, None


class SympyEvaluator:
    """Evaluator capability backed by SymPy's parser and ``lambdify``."""

    def evaluate(self, expression: str, bindings: Mapping[str, float]) -> float:
        names = tuple(sorted(bindings))
        fn, error = _compile(expression, names)
        if fn is None:
            raise EvaluationError(error or "Invalid expression", expression)
        try:
            return float(fn(*(float(bindings[name]) for name in names)))
        except _RUNTIME_ERRORS as exc:
            raise EvaluationFault(f"{type(exc).__name__}: {exc}", expression) from exc


default_evaluator = SympyEvaluator()


def evaluate(expression: str, bindings: Mapping[str, float]) -> float:
    return default_evaluator.evaluate(expression, bindings)


def trial_evaluate(expression: str, mode: str, *, evaluator: Optional[Evaluator] = None) -> float:
    """Evaluate once at the mode's trial point.

    Parse errors and unknown identifiers raise :class:`ExpressionSyntaxError`.
    A runtime fault at the trial point (``sqrt(-x)`` at x=1) is not a syntax
    problem: it returns NaN and the per-sample policy handles it later.
    """
    bindings = dict(config.TRIAL_BINDINGS[getattr(mode, "value", mode)])
    bindings.update(config.EXPRESSION_CONSTANTS)
    try:
        return (evaluator or default_evaluator).evaluate(expression, bindings)
    except EvaluationFault as exc:
        logger.debug("Trial point faulted for %r: %s", expression, exc)
        return float("nan")
    except EvaluationError as exc:
        raise ExpressionSyntaxError(str(exc), expression) from exc
