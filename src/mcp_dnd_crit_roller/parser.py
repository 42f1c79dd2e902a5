from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from .errors import DiceError
from .models import DiceTerm, Expression, NumericTerm, OperatorTerm, PoolTerm, Term


logger = logging.getLogger(__name__)

_REFERENCE_RE = re.compile(r"@([a-zA-Z0-9_.]+)")

_TOKEN_RE = re.compile(
    r"""
    (?P<dice>(?P<count>\d*)[dD](?P<faces>\d+|%)(?P<modifiers>(?:(?:kh|kl|dh|dl|r|x)\d*)*))
    |(?P<number>\d+)
    |(?P<op>[+-])
    |(?P<lparen>\()
    |(?P<rparen>\))
    |(?P<flavor>\[[^\]]*\])
    """,
    re.VERBOSE,
)

_MODIFIER_RE = re.compile(r"(?:kh|kl|dh|dl|r|x)\d*")

Token = tuple[str, str, re.Match[str]]


def _lookup(data: Mapping[str, Any], path: str) -> Any:
    value: Any = data
    for key in path.split("."):
        if not isinstance(value, Mapping) or key not in value:
            return None
        value = value[key]
    return value


def replace_formula_data(formula: str, data: Mapping[str, Any] | None) -> str:
    """Substitute ``@path.to.value`` references from ``data``.

    References that cannot be resolved become ``0``.
    """

    def substitute(m: re.Match[str]) -> str:
        value = _lookup(data or {}, m.group(1))
        if value is None or isinstance(value, Mapping):
            logger.warning("Unresolved formula reference '%s' in '%s', using 0", m.group(0), formula)
            return "0"
        return str(value)

    return _REFERENCE_RE.sub(substitute, formula)


def strip_formula_data(formula: str) -> str:
    """Replace every ``@path.to.value`` reference with ``0``, whatever its value."""
    return _REFERENCE_RE.sub("0", formula)


def _reject_out_of_scope_syntax(raw_text: str) -> None:
    if any(op in raw_text for op in ("*", "/")):
        raise DiceError(
            "[OUT_OF_SCOPE_SYNTAX] Only + and - are supported (no * or /). Example: '2d10 + 2d4 + 4'."
        )


def _tokenize(text: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        m = _TOKEN_RE.match(text, pos)
        if not m:
            raise DiceError(
                f"[UNPARSEABLE_INPUT] Could not understand '{text[pos:]}'. Example: '1d8[fire] + 3' or '2d20kh + 5'."
            )
        tokens.append((m.lastgroup, m.group(0), m))
        pos = m.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[Token], formula: str) -> None:
        self.tokens = tokens
        self.formula = formula
        self.pos = 0

    def _peek(self) -> str | None:
        return self.tokens[self.pos][0] if self.pos < len(self.tokens) else None

    def _fail(self, reason: str) -> DiceError:
        return DiceError(f"[UNPARSEABLE_INPUT] {reason} in '{self.formula}'. Example: '1d8 + 3'.")

    def parse(self) -> Expression:
        expression = self._expression()
        if self.pos != len(self.tokens):
            raise self._fail(f"Unexpected '{self.tokens[self.pos][1]}'")
        return expression

    def _operator(self) -> OperatorTerm:
        # Stacked signs fold into one: "+ -2" is "- 2", "- -2" is "+ 2".
        negative = False
        while self._peek() == "op":
            negative ^= self.tokens[self.pos][1] == "-"
            self.pos += 1
        return OperatorTerm(operator="-" if negative else "+")

    def _expression(self) -> Expression:
        terms: list[Term] = []
        if self._peek() == "op":
            terms.append(self._operator())
        terms.append(self._operand())
        while self._peek() == "op":
            terms.append(self._operator())
            terms.append(self._operand())
        return Expression(terms=tuple(terms))

    def _operand(self) -> Term:
        kind = self._peek()
        if kind is None:
            raise self._fail("Dangling operator")

        _, text, m = self.tokens[self.pos]
        self.pos += 1

        term: Term
        if kind == "dice":
            count = int(m.group("count")) if m.group("count") else 1
            faces = 100 if m.group("faces") == "%" else int(m.group("faces"))
            if count <= 0 or faces <= 0:
                raise self._fail(f"Dice count and faces must be positive ('{text}')")
            term = DiceTerm(count=count, faces=faces, modifiers=tuple(_MODIFIER_RE.findall(m.group("modifiers"))))
        elif kind == "number":
            term = NumericTerm(value=int(text))
        elif kind == "lparen":
            inner = self._expression()
            if self._peek() != "rparen":
                raise self._fail("Missing ')'")
            self.pos += 1
            term = PoolTerm(expression=inner)
        else:
            raise self._fail(f"Expected a number, dice or '(' but found '{text}'")

        if self._peek() == "flavor":
            flavor = self.tokens[self.pos][1][1:-1].strip()
            self.pos += 1
            if flavor:
                term = replace(term, flavor=flavor)
        return term


def parse_formula(formula: str, data: Mapping[str, Any] | None = None) -> Expression:
    """Parse a dice formula into an unevaluated Expression.

    Raises DiceError for malformed input.
    """
    if not formula or not formula.strip():
        raise DiceError("[UNPARSEABLE_INPUT] Empty formula. Example: '1d8 + 3' or '2d20kh + 5'.")

    text = replace_formula_data(formula, data)
    _reject_out_of_scope_syntax(text)

    tokens = _tokenize(text)
    if not tokens:
        raise DiceError("[UNPARSEABLE_INPUT] No dice or modifiers found. Example: 'd20' or '2d6 + 3'.")
    if tokens[0][0] == "flavor":
        raise DiceError(f"[UNPARSEABLE_INPUT] Flavor must follow a term in '{formula}'. Example: '1d8[fire]'.")

    return _Parser(tokens, formula).parse()
