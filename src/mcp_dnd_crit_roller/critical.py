from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from typing import Any

from .models import CriticalPolicy, DiceTerm, Expression, NumericTerm, OperatorTerm
from .parser import parse_formula, strip_formula_data
from .roller import alter, evaluate
from .settings import get_settings
from .tree import iter_terms, strip_flat_modifiers, strip_flavors


logger = logging.getLogger(__name__)


def get_base_crit_roll(base_formula: str | None) -> Expression | None:
    """Returns the dice-only part of ``base_formula``, before any crit policy.

    Flavor, flat modifiers and @ references are removed; a reference counts
    as a flat bonus even when its value is dice. Returns None if there are
    no dice, meaning the formula cannot crit.
    """
    if not base_formula:
        return None

    stripped = strip_flat_modifiers(strip_flavors(parse_formula(strip_formula_data(base_formula))))
    if not any(isinstance(term, DiceTerm) for term in iter_terms(stripped)):
        return None
    return stripped


def _append_flat(expression: Expression, value: int) -> Expression:
    operator = "-" if value < 0 else "+"
    terms = expression.terms + (OperatorTerm(operator=operator), NumericTerm(value=abs(value)))
    return Expression(terms=terms)


def derive_critical_roll(
    base_formula: str | None,
    base_total: int,
    *,
    extra_crit_dice: int | None = None,
    policy: CriticalPolicy | str | int | None = None,
    data: Mapping[str, Any] | None = None,
    rng: random.Random | None = None,
) -> Expression | None:
    """Derives and rolls what should be added when a damage roll crits.

    ``base_total`` is the already rolled total of ``base_formula``; policies 3
    and 4 add the difference between it and the maximized base roll, since the
    base roll itself can no longer be changed. ``policy`` defaults to the
    configured crit behavior. Returns None if the formula has no dice.
    """
    crit_base = get_base_crit_roll(base_formula)
    if crit_base is None:
        return None

    if policy is None:
        policy = get_settings().crit_behavior
    policy = CriticalPolicy.coerce(policy)

    crit_roll = evaluate(alter(crit_base, 1, extra_crit_dice or 0), rng=rng)

    if policy is CriticalPolicy.MAXIMIZE_BASE:
        crit_roll = evaluate(parse_formula(crit_roll.formula), maximize=True)

    elif policy in (CriticalPolicy.MAXIMIZE_ALL, CriticalPolicy.MAXIMIZE_BASE_ROLL_CRIT):
        max_base = evaluate(parse_formula(base_formula, data), maximize=True)
        max_difference = max_base.total - base_total
        combined = _append_flat(parse_formula(crit_roll.formula), max_difference)
        crit_roll = evaluate(combined, maximize=policy is CriticalPolicy.MAXIMIZE_ALL, rng=rng)

    logger.debug("Crit roll for '%s' with %s => '%s' = %s", base_formula, policy.name, crit_roll.formula, crit_roll.total)
    return crit_roll
