from __future__ import annotations

from collections.abc import Collection
from typing import Literal

from .errors import DiceError
from .models import CritType, DiceTerm, Expression, Outcome
from .tree import iter_terms


def classify_outcome(
    roll: Expression | None,
    threshold: int | None = None,
    crit_checks: Literal[True] | Collection[int] = True,
    bonus: Expression | None = None,
) -> Outcome | None:
    """Tests a roll to see if it crit, failed, or was mixed.

    ``threshold`` defaults to each die's face count. ``crit_checks`` is True to
    test every die, or the face counts to test. Rerolled results are skipped;
    discarded ones (e.g. the lower die of an advantage roll) still count.
    The total of ``bonus`` is added to the returned total.
    """
    if roll is None:
        return None
    if not roll.evaluated:
        raise DiceError(f"[UNEVALUATED_ROLL] '{roll.formula}' must be rolled before it can be classified.")

    high = 0
    low = 0
    for die in iter_terms(roll):
        if isinstance(die, DiceTerm) and die.faces > 1 and (crit_checks is True or die.faces in crit_checks):
            for result in die.results:
                if result.rerolled:
                    continue
                if result.value >= (threshold or die.faces):
                    high += 1
                elif result.value == 1:
                    low += 1

    crit_type: CritType = None
    if high > 0 and low > 0:
        crit_type = "mixed"
    elif high > 0:
        crit_type = "success"
    elif low > 0:
        crit_type = "failure"

    bonus_total = bonus.total if bonus is not None and bonus.total is not None else 0
    return Outcome(
        roll=roll,
        total=roll.total + bonus_total,
        crit_type=crit_type,
        is_crit=high > 0,
        ignored=True if roll.ignored else None,
    )
