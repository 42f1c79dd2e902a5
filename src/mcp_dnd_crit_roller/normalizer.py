from __future__ import annotations

import re
from dataclasses import replace

from .errors import DiceError
from .models import D20Formula, Expression, RollState, Term
from .parser import parse_formula
from .tree import find_d20_term, map_terms


_KEEP_RE = re.compile(r"^k[hl]\d*$")


def normalize_d20_formula(roll: Expression | str) -> D20Formula:
    """Parse a d20 roll into its single-die formula, roll state and roll count.

    The input is left untouched: the returned expression is a copy whose d20
    term is reduced to one die without keep-highest/keep-lowest. Results that
    were already rolled are carried over.
    """
    expression = parse_formula(roll) if isinstance(roll, str) else roll

    d20_term = find_d20_term(expression)
    if d20_term is None:
        return D20Formula(formula=expression.formula, expression=expression)

    num_rolls = d20_term.count
    keep = [m for m in d20_term.modifiers if _KEEP_RE.match(m)]
    roll_state: RollState = None
    if any(m.startswith("kh") for m in keep):
        roll_state = "advantage"
    elif any(m.startswith("kl") for m in keep):
        roll_state = "disadvantage"

    single = replace(d20_term, count=1, modifiers=tuple(m for m in d20_term.modifiers if m not in keep))

    def rewrite(term: Term) -> Term:
        return single if term is d20_term else term

    normalized = map_terms(expression, rewrite)
    return D20Formula(
        formula=normalized.formula,
        expression=normalized,
        num_rolls=num_rolls,
        roll_state=roll_state,
    )


def apply_roll_state(
    roll: Expression | str,
    roll_state: RollState,
    *,
    num_rolls: int = 2,
    reroll_ones: bool = False,
) -> Expression:
    """Turn the d20 term of ``roll`` into an advantage or disadvantage roll.

    The d20 term is rolled ``num_rolls`` times with keep-highest or keep-lowest
    (elven accuracy uses 3). ``reroll_ones`` adds a reroll of natural 1s for
    halfling luck. Formulas without a d20 are returned unchanged.
    """
    expression = normalize_d20_formula(roll).expression
    if expression.evaluated:
        raise DiceError(f"[ALREADY_EVALUATED] '{expression.formula}' has already been rolled.")

    d20_term = find_d20_term(expression)
    if d20_term is None:
        return expression

    modifiers = list(d20_term.modifiers)
    if reroll_ones and "r1" not in modifiers:
        modifiers.insert(0, "r1")
    count = 1
    if roll_state == "advantage":
        count = num_rolls
        modifiers.append("kh")
    elif roll_state == "disadvantage":
        count = num_rolls
        modifiers.append("kl")

    altered = replace(d20_term, count=count, modifiers=tuple(modifiers))
    return map_terms(expression, lambda term: altered if term is d20_term else term)
