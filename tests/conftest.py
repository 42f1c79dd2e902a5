from collections.abc import Iterable

import pytest


class FixedRng:
    """Stands in for random.Random, returning predetermined die results."""

    def __init__(self, values: Iterable[int]) -> None:
        self._values = iter(values)

    def randint(self, a: int, b: int) -> int:
        value = next(self._values)
        assert a <= value <= b
        return value


@pytest.fixture
def fixed_rng():
    return FixedRng
