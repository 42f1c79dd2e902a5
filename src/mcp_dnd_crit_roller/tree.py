from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import replace

from .models import DiceTerm, Expression, NumericTerm, OperatorTerm, PoolTerm, Term
from .parser import parse_formula


def iter_terms(expression: Expression) -> Iterator[Term]:
    """Yield every term depth-first, a pool before its contents."""
    for term in expression.terms:
        yield term
        if isinstance(term, PoolTerm):
            yield from iter_terms(term.expression)


def map_terms(expression: Expression, fn: Callable[[Term], Term]) -> Expression:
    """Return a copy of ``expression`` with ``fn`` applied to every term.

    Pools are rebuilt from their rewritten contents before ``fn`` sees them.
    """
    terms: list[Term] = []
    for term in expression.terms:
        if isinstance(term, PoolTerm):
            term = replace(term, expression=map_terms(term.expression, fn))
        terms.append(fn(term))
    return replace(expression, terms=tuple(terms))


def find_d20_term(expression: Expression | str | None) -> DiceTerm | None:
    if expression is None:
        return None
    if isinstance(expression, str):
        expression = parse_formula(expression)

    for term in iter_terms(expression):
        if isinstance(term, DiceTerm) and term.faces == 20:
            return term
    return None


def find_d20_result(expression: Expression | None) -> int | None:
    term = find_d20_term(expression)
    return term.total if term else None


def extract_flavors(*expressions: Expression | None) -> list[str]:
    """Returns all flavor labels used in roll terms, in order of discovery.

    Catches things like ``+1d8[Thunder]`` bonuses nested in pools.
    """
    flavors: dict[str, None] = {}
    for expression in expressions:
        if expression is None:
            continue
        for term in iter_terms(expression):
            if term.flavor:
                flavors.setdefault(term.flavor)
    return list(flavors)


def strip_flavors(expression: Expression) -> Expression:
    return map_terms(expression, lambda term: replace(term, flavor=None) if term.flavor else term)


def strip_flat_modifiers(expression: Expression) -> Expression:
    """Remove every flat number along with the operator joining it.

    Pools left without terms are removed the same way. Dice terms and the
    operators between them are preserved.
    """
    terms: list[Term] = []
    pending: OperatorTerm | None = None

    for term in expression.terms:
        if isinstance(term, OperatorTerm):
            pending = term
            continue
        if isinstance(term, PoolTerm):
            inner = strip_flat_modifiers(term.expression)
            term = replace(term, expression=inner) if inner.terms else None
        elif isinstance(term, NumericTerm):
            term = None

        if term is not None:
            # The first surviving term keeps its sign only when it is negative.
            if pending is not None and (terms or pending.operator == "-"):
                terms.append(pending)
            terms.append(term)
        pending = None

    return replace(expression, terms=tuple(terms), total=None)
