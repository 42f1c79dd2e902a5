from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional, TypeAlias, Union


logger = logging.getLogger(__name__)

Operator: TypeAlias = Literal["+", "-"]
RollState: TypeAlias = Optional[Literal["advantage", "disadvantage"]]
CritType: TypeAlias = Optional[Literal["success", "failure", "mixed"]]


@dataclass(frozen=True)
class Result:
    value: int
    discarded: bool = False
    rerolled: bool = False

    @property
    def active(self) -> bool:
        return not (self.discarded or self.rerolled)


@dataclass(frozen=True)
class DiceTerm:
    count: int
    faces: int
    modifiers: tuple[str, ...] = ()
    results: tuple[Result, ...] = ()
    flavor: str | None = None

    @property
    def evaluated(self) -> bool:
        return bool(self.results)

    @property
    def total(self) -> int | None:
        if not self.results:
            return None
        return sum(r.value for r in self.results if r.active)

    @property
    def formula(self) -> str:
        return f"{self.count}d{self.faces}{''.join(self.modifiers)}{_flavor_suffix(self.flavor)}"


@dataclass(frozen=True)
class OperatorTerm:
    operator: Operator
    flavor: str | None = None

    @property
    def formula(self) -> str:
        return self.operator


@dataclass(frozen=True)
class NumericTerm:
    value: int
    flavor: str | None = None

    @property
    def total(self) -> int:
        return self.value

    @property
    def formula(self) -> str:
        return f"{self.value}{_flavor_suffix(self.flavor)}"


@dataclass(frozen=True)
class PoolTerm:
    """A parenthesised sub-formula, e.g. ``(1d6 + 2)[fire]``."""

    expression: Expression
    flavor: str | None = None

    @property
    def total(self) -> int | None:
        return self.expression.total

    @property
    def formula(self) -> str:
        return f"({self.expression.formula}){_flavor_suffix(self.flavor)}"


Term: TypeAlias = Union[DiceTerm, OperatorTerm, NumericTerm, PoolTerm]


@dataclass(frozen=True)
class Expression:
    """An ordered sequence of terms, optionally evaluated.

    ``formula`` is rebuilt from the terms on every access, so a rewritten
    expression always reports the formula of its current terms.
    ``ignored`` is set by the host when a roll is superseded (e.g. by a reroll).
    """

    terms: tuple[Term, ...]
    total: int | None = None
    ignored: bool = False

    @property
    def formula(self) -> str:
        return " ".join(t.formula for t in self.terms)

    @property
    def evaluated(self) -> bool:
        return self.total is not None


@dataclass(frozen=True)
class Outcome:
    roll: Expression
    total: int
    crit_type: CritType
    is_crit: bool
    ignored: bool | None = None


@dataclass(frozen=True)
class D20Formula:
    formula: str
    expression: Expression
    num_rolls: int | None = None
    roll_state: RollState = None


class CriticalPolicy(str, Enum):
    """How bonus critical damage is computed."""

    REROLL = "1"
    MAXIMIZE_BASE = "2"
    MAXIMIZE_ALL = "3"
    MAXIMIZE_BASE_ROLL_CRIT = "4"

    @classmethod
    def coerce(cls, value: Any) -> CriticalPolicy:
        """Map a stored setting onto a policy.

        Unrecognized codes fall back to ``REROLL`` with a warning.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            logger.warning("Unrecognized crit behavior %r, falling back to %s", value, cls.REROLL.name)
            return cls.REROLL


def _flavor_suffix(flavor: str | None) -> str:
    return f"[{flavor}]" if flavor else ""
