import pytest

from mcp_dnd_crit_roller.errors import DiceError
from mcp_dnd_crit_roller.models import DiceTerm, Expression, NumericTerm, OperatorTerm, PoolTerm, Result
from mcp_dnd_crit_roller.outcome import classify_outcome
from mcp_dnd_crit_roller.parser import parse_formula
from mcp_dnd_crit_roller.roller import roll


def _rolled(*terms: DiceTerm, ignored: bool = False) -> Expression:
    joined = []
    for term in terms:
        if joined:
            joined.append(OperatorTerm("+"))
        joined.append(term)
    return Expression(terms=tuple(joined), total=sum(t.total for t in terms), ignored=ignored)


def _d(faces: int, *values: int, **flags) -> DiceTerm:
    return DiceTerm(count=len(values), faces=faces, results=tuple(Result(v, **flags) for v in values))


@pytest.mark.parametrize(
    ("roll_", "threshold", "crit_type", "is_crit"),
    [
        (_rolled(_d(20, 20), _d(20, 1)), 20, "mixed", True),
        (_rolled(_d(20, 12, 8)), 20, None, False),
        (_rolled(_d(20, 20)), 20, "success", True),
        (_rolled(_d(20, 1)), 20, "failure", False),
        (_rolled(_d(20, 19)), 19, "success", True),
        (_rolled(_d(20, 19)), None, None, False),
        (_rolled(_d(6, 6)), None, "success", True),
        (_rolled(_d(6, 6), _d(8, 8)), None, "success", True),
        (_rolled(_d(1, 1)), None, None, False),
    ],
)
def test_classify_outcome(roll_, threshold, crit_type, is_crit):
    outcome = classify_outcome(roll_, threshold)
    assert outcome.crit_type == crit_type
    assert outcome.is_crit is is_crit
    assert outcome.total == roll_.total
    assert outcome.roll is roll_


def test_crit_checks_limits_examined_dice():
    roll_ = _rolled(_d(20, 14), _d(8, 8), _d(6, 1))
    assert classify_outcome(roll_, None, [20]).crit_type is None
    assert classify_outcome(roll_, None, [20, 8]).crit_type == "success"
    assert classify_outcome(roll_, None, True).crit_type == "mixed"


def test_rerolled_results_are_skipped():
    d20 = DiceTerm(count=1, faces=20, modifiers=("r1",), results=(Result(1, rerolled=True), Result(11)))
    outcome = classify_outcome(_rolled(d20), 20)
    assert outcome.crit_type is None


def test_discarded_results_still_count():
    d20 = DiceTerm(count=2, faces=20, modifiers=("kh",), results=(Result(20), Result(1, discarded=True)))
    outcome = classify_outcome(_rolled(d20), 20)
    assert outcome.crit_type == "mixed"
    assert outcome.total == 20


def test_nested_dice_are_examined():
    inner = Expression(terms=(_d(20, 20),), total=20)
    roll_ = Expression(terms=(PoolTerm(expression=inner), OperatorTerm("+"), NumericTerm(3)), total=23)
    assert classify_outcome(roll_, 20).crit_type == "success"


def test_bonus_total_is_added(fixed_rng):
    bonus = roll("1d4", rng=fixed_rng([3]))
    outcome = classify_outcome(_rolled(_d(20, 10)), 20, True, bonus)
    assert outcome.total == 13


def test_ignored_flag():
    assert classify_outcome(_rolled(_d(20, 10), ignored=True)).ignored is True
    assert classify_outcome(_rolled(_d(20, 10))).ignored is None


def test_missing_roll_propagates_none():
    assert classify_outcome(None, 20) is None


def test_unevaluated_roll_is_rejected():
    with pytest.raises(DiceError) as exc:
        classify_outcome(parse_formula("1d20"))
    assert str(exc.value).startswith("[UNEVALUATED_ROLL]")
