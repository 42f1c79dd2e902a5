from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .models import RollState


@dataclass(frozen=True)
class InputModifiers:
    """Modifier keys held while a roll was requested."""

    shift_key: bool = False
    ctrl_key: bool = False
    meta_key: bool = False


def _held(event: InputModifiers | Mapping[str, Any], key: str) -> bool:
    if isinstance(event, Mapping):
        return bool(event.get(key))
    return bool(getattr(event, key, False))


def event_to_advantage(event: InputModifiers | Mapping[str, Any] | None = None) -> dict[str, int]:
    """Shift means advantage, ctrl or meta means disadvantage."""
    if event is None:
        return {"advantage": 0, "disadvantage": 0}
    if _held(event, "shift_key"):
        return {"advantage": 1, "disadvantage": 0}
    if _held(event, "ctrl_key") or _held(event, "meta_key"):
        return {"advantage": 0, "disadvantage": 1}
    return {"advantage": 0, "disadvantage": 0}


def resolve_roll_state(
    *,
    roll_state: RollState = None,
    event: InputModifiers | Mapping[str, Any] | None = None,
    advantage: Any = None,
    disadvantage: Any = None,
    adv: Any = None,
    disadv: Any = None,
) -> RollState:
    """Determine the roll state from several parameters.

    An explicit ``roll_state`` always wins, then the advantage/disadvantage
    flags, then the modifier keys of ``event``. Returns None for a normal roll.
    """
    if roll_state:
        return roll_state
    if advantage or adv:
        return "advantage"
    if disadvantage or disadv:
        return "disadvantage"

    if event is not None:
        modifiers = event_to_advantage(event)
        if modifiers["advantage"] or modifiers["disadvantage"]:
            return resolve_roll_state(**modifiers)

    return None
