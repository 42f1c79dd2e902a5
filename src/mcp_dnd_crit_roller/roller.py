from __future__ import annotations

import logging
import random
import re
import secrets
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from .errors import DiceError
from .models import DiceTerm, Expression, OperatorTerm, PoolTerm, Result, Term
from .parser import parse_formula
from .tree import map_terms


logger = logging.getLogger(__name__)

MAX_EXPLOSIONS = 100

_MODIFIER_PARTS_RE = re.compile(r"^(?P<code>kh|kl|dh|dl|r|x)(?P<n>\d*)$")


class _Roller:
    def __init__(self, rng: random.Random, maximize: bool) -> None:
        self.rng = rng
        self.maximize = maximize

    def _roll_die(self, faces: int) -> int:
        if self.maximize:
            return faces
        return self.rng.randint(1, faces)

    def roll_term(self, term: DiceTerm) -> DiceTerm:
        results = [Result(value=self._roll_die(term.faces)) for _ in range(term.count)]

        for modifier in term.modifiers:
            m = _MODIFIER_PARTS_RE.match(modifier)
            if not m:
                raise DiceError(f"[UNPARSEABLE_INPUT] Unknown dice modifier '{modifier}'. Example: '2d20kh'.")
            code = m.group("code")
            n = int(m.group("n")) if m.group("n") else None

            if code == "r":
                results = self._reroll(results, term.faces, n if n is not None else 1)
            elif code == "x":
                results = self._explode(results, term.faces, n if n is not None else term.faces)
            else:
                results = _keep_or_drop(results, code, n if n is not None else 1)

        return replace(term, results=tuple(results))

    def _reroll(self, results: list[Result], faces: int, target: int) -> list[Result]:
        out: list[Result] = []
        for r in results:
            if r.active and r.value == target:
                out.append(replace(r, rerolled=True))
                out.append(Result(value=self._roll_die(faces)))
            else:
                out.append(r)
        return out

    def _explode(self, results: list[Result], faces: int, target: int) -> list[Result]:
        if self.maximize:
            return results
        out: list[Result] = []
        extra = 0
        for r in results:
            out.append(r)
            value = r.value
            while r.active and value >= target and extra < MAX_EXPLOSIONS:
                value = self._roll_die(faces)
                out.append(Result(value=value))
                extra += 1
        return out

    def evaluate(self, expression: Expression) -> Expression:
        terms: list[Term] = []
        total = 0
        sign = 1
        for term in expression.terms:
            if isinstance(term, OperatorTerm):
                sign = -1 if term.operator == "-" else 1
                terms.append(term)
                continue

            if isinstance(term, DiceTerm):
                term = self.roll_term(term)
            elif isinstance(term, PoolTerm):
                term = replace(term, expression=self.evaluate(term.expression))

            total += sign * (term.total or 0)
            terms.append(term)
            sign = 1

        return replace(expression, terms=tuple(terms), total=total)


def _keep_or_drop(results: list[Result], code: str, n: int) -> list[Result]:
    candidates = [i for i, r in enumerate(results) if r.active]
    # Stable sort keeps the earliest die among equal values.
    ranked = sorted(candidates, key=lambda i: results[i].value, reverse=code in ("kh", "dh"))

    if code in ("kh", "kl"):
        discard = set(ranked[n:])
    else:
        discard = set(ranked[:n])

    return [replace(r, discarded=True) if i in discard else r for i, r in enumerate(results)]


def evaluate(
    expression: Expression,
    *,
    maximize: bool = False,
    rng: random.Random | None = None,
) -> Expression:
    """Roll every die in ``expression`` and return the evaluated copy.

    With ``maximize`` every die shows its highest face. Evaluation is always
    synchronous.
    """
    if expression.evaluated:
        raise DiceError(f"[ALREADY_EVALUATED] '{expression.formula}' has already been rolled.")

    roller = _Roller(rng or secrets.SystemRandom(), maximize)
    evaluated = roller.evaluate(expression)
    logger.debug("Evaluated '%s' (maximize=%s) => %s", evaluated.formula, maximize, evaluated.total)
    return evaluated


def roll(
    formula: str,
    *,
    data: Mapping[str, Any] | None = None,
    maximize: bool = False,
    rng: random.Random | None = None,
) -> Expression:
    """Parse, then roll. Raises DiceError for invalid input."""
    return evaluate(parse_formula(formula, data), maximize=maximize, rng=rng)


def alter(expression: Expression, multiply: int = 1, add: int = 0) -> Expression:
    """Change the number of dice in every dice term to ``count * multiply + add``."""
    if expression.evaluated:
        raise DiceError(f"[ALREADY_EVALUATED] '{expression.formula}' cannot be altered after rolling.")

    def alter_term(term: Term) -> Term:
        if isinstance(term, DiceTerm):
            return replace(term, count=term.count * multiply + add)
        return term

    return map_terms(expression, alter_term)

