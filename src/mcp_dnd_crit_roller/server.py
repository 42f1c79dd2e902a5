from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .critical import derive_critical_roll
from .errors import DiceError
from .models import DiceTerm, Expression, NumericTerm, Outcome, PoolTerm
from .normalizer import apply_roll_state, normalize_d20_formula
from .outcome import classify_outcome
from .parser import parse_formula
from .roller import evaluate
from .rollstate import resolve_roll_state
from .settings import get_settings
from .thresholds import has_elven_accuracy, is_halfling_lucky, item_crit_threshold
from .tree import extract_flavors


mcp = FastMCP("mcp-dnd-crit-roller")


def _describe_terms(expression: Expression) -> list[dict[str, Any]]:
    described: list[dict[str, Any]] = []
    sign = 1
    for term in expression.terms:
        if isinstance(term, DiceTerm):
            described.append(
                {
                    "type": "dice",
                    "formula": term.formula,
                    "rolls": [r.value for r in term.results],
                    "kept": [r.value for r in term.results if r.active],
                    "subtotal": sign * (term.total or 0),
                }
            )
        elif isinstance(term, NumericTerm):
            described.append({"type": "constant", "value": term.value, "subtotal": sign * term.value})
        elif isinstance(term, PoolTerm):
            described.append(
                {
                    "type": "pool",
                    "formula": term.formula,
                    "terms": _describe_terms(term.expression),
                    "subtotal": sign * (term.total or 0),
                }
            )
        else:
            sign = -1 if term.operator == "-" else 1
            continue
        sign = 1
    return described


def _describe_outcome(outcome: Outcome | None) -> dict[str, Any] | None:
    if outcome is None:
        return None
    return {
        "total": outcome.total,
        "crit_type": outcome.crit_type,
        "is_crit": outcome.is_crit,
    }


@mcp.tool()
def roll_check(
    formula: str,
    threshold: int | None = None,
    crit_faces: list[int] | None = None,
    advantage: bool = False,
    disadvantage: bool = False,
    item_type: str | None = None,
    actor_flags: dict[str, Any] | None = None,
    ability: str | None = None,
):
    """Roll a d20 check or attack and report crits.

    Input: formula (e.g. "1d20 + 5"), optional crit threshold, the die sizes
    that may crit, advantage/disadvantage, and optional item/actor details.
    Output: structured JSON with the single-d20 formula, roll state, total,
    crit classification, flavors and a per-term breakdown.

    Raises a hard error (exception) on invalid input.
    """

    try:
        written = normalize_d20_formula(formula)
        # The flags win over a keep-highest/keep-lowest already in the formula.
        roll_state = resolve_roll_state(advantage=advantage, disadvantage=disadvantage) or written.roll_state
        if advantage or disadvantage or written.roll_state is None:
            num_rolls = 3 if roll_state == "advantage" and has_elven_accuracy(actor_flags, ability) else 2
        else:
            num_rolls = written.num_rolls
        expression = apply_roll_state(
            formula,
            roll_state,
            num_rolls=num_rolls,
            reroll_ones=is_halfling_lucky(actor_flags),
        )
        rolled = evaluate(expression)

        if threshold is None and item_type is not None:
            threshold = item_crit_threshold(item_type, actor_flags=actor_flags)

        d20 = normalize_d20_formula(rolled)
        outcome = classify_outcome(rolled, threshold, crit_faces if crit_faces else True)
    except DiceError as e:
        # Fail-fast: surface stable error codes in the message.
        raise ValueError(str(e)) from None

    return {
        "formula": d20.formula,
        "rolled_formula": rolled.formula,
        "num_rolls": d20.num_rolls,
        "roll_state": d20.roll_state,
        "threshold": threshold,
        "total": rolled.total,
        "outcome": _describe_outcome(outcome),
        "flavors": extract_flavors(rolled),
        "terms": _describe_terms(rolled),
    }


@mcp.tool()
def roll_critical_damage(
    formula: str,
    base_total: int,
    extra_crit_dice: int = 0,
    policy: str | None = None,
):
    """Roll the bonus damage for a critical hit.

    Input: the base damage formula, its already rolled total, extra crit dice,
    and an optional crit policy code ("1" reroll, "2" maximize base,
    "3" maximize all, "4" maximize base and roll crit dice).
    Output: the critical formula, total and breakdown, or null when the
    formula has no dice to crit.

    Raises a hard error (exception) on invalid input.
    """

    try:
        crit = derive_critical_roll(formula, base_total, extra_crit_dice=extra_crit_dice, policy=policy)
    except DiceError as e:
        raise ValueError(str(e)) from None

    if crit is None:
        return {"critical": None}

    return {
        "critical": {
            "formula": crit.formula,
            "total": crit.total,
            "flavors": extract_flavors(parse_formula(formula)),
            "terms": _describe_terms(crit),
        }
    }


def run() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s:%(name)s:%(message)s")
    # Default transport is stdio.
    mcp.run()


if __name__ == "__main__":
    run()
