import pytest

from mcp_dnd_crit_roller.errors import DiceError
from mcp_dnd_crit_roller.parser import parse_formula


@pytest.mark.parametrize(
    ("text", "prefix"),
    [
        ("", "[UNPARSEABLE_INPUT]"),
        ("   ", "[UNPARSEABLE_INPUT]"),
        ("(2d6 + 3) * 2", "[OUT_OF_SCOPE_SYNTAX]"),
        ("1d6 / 2", "[OUT_OF_SCOPE_SYNTAX]"),
        ("1d6 +", "[UNPARSEABLE_INPUT]"),
        ("(1d6 + 2", "[UNPARSEABLE_INPUT]"),
        ("1d6)", "[UNPARSEABLE_INPUT]"),
        ("()", "[UNPARSEABLE_INPUT]"),
        ("0d6", "[UNPARSEABLE_INPUT]"),
        ("1d0", "[UNPARSEABLE_INPUT]"),
        ("1d6 fire", "[UNPARSEABLE_INPUT]"),
        ("1d6 2", "[UNPARSEABLE_INPUT]"),
        ("[fire] 1d6", "[UNPARSEABLE_INPUT]"),
    ],
)
def test_parse_rejections(text, prefix):
    with pytest.raises(DiceError) as exc:
        parse_formula(text)
    assert str(exc.value).startswith(prefix)
