import random

import pytest

from mcp_dnd_crit_roller.errors import DiceError
from mcp_dnd_crit_roller.models import Result
from mcp_dnd_crit_roller.parser import parse_formula
from mcp_dnd_crit_roller.roller import alter, evaluate, roll


@pytest.mark.parametrize(
    ("formula", "total"),
    [
        ("2d6 + 3", 15),
        ("1d20 - 1", 19),
        ("2d20kh + 5", 25),
        ("(1d6 + 2)[fire] + 1d4", 12),
        ("1d6x", 6),
    ],
)
def test_maximize(formula, total):
    assert roll(formula, maximize=True).total == total


@pytest.mark.parametrize(
    ("formula", "values", "results", "total"),
    [
        ("2d20kh", [7, 15], (Result(7, discarded=True), Result(15)), 15),
        ("2d20kl", [7, 15], (Result(7), Result(15, discarded=True)), 7),
        ("2d20kh", [12, 12], (Result(12), Result(12, discarded=True)), 12),
        (
            "4d6dl",
            [3, 1, 6, 4],
            (Result(3), Result(1, discarded=True), Result(6), Result(4)),
            13,
        ),
        ("3d6kh2", [2, 5, 4], (Result(2, discarded=True), Result(5), Result(4)), 9),
        ("1d20r1", [1, 12], (Result(1, rerolled=True), Result(12)), 12),
        ("1d20r1", [9], (Result(9),), 9),
        ("1d6x", [6, 6, 2], (Result(6), Result(6), Result(2)), 14),
        (
            "2d20r1kh",
            [1, 8, 14],
            (Result(1, rerolled=True), Result(14), Result(8, discarded=True)),
            14,
        ),
    ],
)
def test_dice_modifiers(fixed_rng, formula, values, results, total):
    rolled = roll(formula, rng=fixed_rng(values))
    assert rolled.terms[0].results == results
    assert rolled.total == total


def test_operators_and_pools(fixed_rng):
    rolled = roll("(1d6 + 2)[fire] - 1d4 + 1", rng=fixed_rng([4, 3]))
    pool = rolled.terms[0]
    assert pool.total == 6
    assert pool.expression.total == 6
    assert rolled.total == 4
    assert rolled.formula == "(1d6 + 2)[fire] - 1d4 + 1"


def test_seeded_rolls_repeat():
    a = roll("4d6 + 1d20", rng=random.Random(42))
    b = roll("4d6 + 1d20", rng=random.Random(42))
    assert a == b
    assert all(1 <= r.value <= 6 for r in a.terms[0].results)


def test_evaluate_leaves_input_untouched():
    parsed = parse_formula("1d8 + 3")
    rolled = evaluate(parsed, maximize=True)
    assert rolled.total == 11
    assert not parsed.evaluated
    assert parsed.terms[0].results == ()


def test_evaluate_twice_is_rejected():
    rolled = roll("1d8", maximize=True)
    with pytest.raises(DiceError) as exc:
        evaluate(rolled)
    assert str(exc.value).startswith("[ALREADY_EVALUATED]")


@pytest.mark.parametrize(
    ("formula", "multiply", "add", "expected"),
    [
        ("1d8 + 3", 1, 0, "1d8 + 3"),
        ("1d8 + 2d6 + 3", 1, 2, "3d8 + 4d6 + 3"),
        ("2d6", 2, 0, "4d6"),
        ("(1d6)[fire] + 1d8", 1, 1, "(2d6)[fire] + 2d8"),
    ],
)
def test_alter(formula, multiply, add, expected):
    assert alter(parse_formula(formula), multiply, add).formula == expected


def test_alter_after_rolling_is_rejected():
    with pytest.raises(DiceError):
        alter(roll("1d8", maximize=True), 1, 1)
