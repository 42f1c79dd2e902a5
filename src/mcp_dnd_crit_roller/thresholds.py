from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, TypeAlias


ItemType: TypeAlias = Literal["weapon", "power"] | str

DEFAULT_CRIT_THRESHOLD = 20

_ELVEN_ACCURACY_ABILITIES = {"dex", "int", "wis", "cha"}


def _flag_threshold(value: Any) -> int | None:
    if value in (None, "", 0, "0"):
        return None
    return int(value)


def actor_crit_threshold(actor_flags: Mapping[str, Any] | None, item_type: ItemType | None = None) -> int:
    """Crit threshold granted by the actor for this kind of item.

    ``actor_flags`` are the actor's system flags; None means there is no actor.
    """
    if actor_flags is None:
        return DEFAULT_CRIT_THRESHOLD

    key = {"weapon": "weaponCriticalThreshold", "power": "powerCriticalThreshold"}.get(item_type or "")
    threshold = _flag_threshold(actor_flags.get(key)) if key else None
    return threshold if threshold is not None else DEFAULT_CRIT_THRESHOLD


def item_crit_threshold(
    item_type: ItemType | None,
    item_threshold: int | None = None,
    actor_flags: Mapping[str, Any] | None = None,
) -> int:
    """The lowest of the item threshold, the actor threshold, or 20."""
    item_crit = item_threshold or DEFAULT_CRIT_THRESHOLD
    return min(DEFAULT_CRIT_THRESHOLD, actor_crit_threshold(actor_flags, item_type), item_crit)


def is_halfling_lucky(actor_flags: Mapping[str, Any] | None) -> bool:
    return bool((actor_flags or {}).get("halflingLucky"))


def has_elven_accuracy(actor_flags: Mapping[str, Any] | None, ability: str | None) -> bool:
    """True if the actor has elven accuracy and ``ability`` procs it."""
    return bool((actor_flags or {}).get("elvenAccuracy")) and ability in _ELVEN_ACCURACY_ABILITIES
