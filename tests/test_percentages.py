from __future__ import annotations

import math

import pytest

from core.aggregation import CategoryValue
from core.percentages import percent_of_fixed, percent_of_sum


ITEMS = [CategoryValue("Sim", 50.0), CategoryValue("Não", 150.0)]


def test_percent_of_sum():
    shares = percent_of_sum(ITEMS)
    assert [(s.name, s.value) for s in shares] == [("Sim", 25.0), ("Não", 75.0)]
    assert sum(s.value for s in shares) == pytest.approx(100.0)


def test_percent_of_fixed_uses_external_denominator():
    shares = percent_of_fixed(ITEMS, 400.0)
    assert [s.value for s in shares] == [12.5, 37.5]


@pytest.mark.parametrize("denominator", [0, -10, None, math.nan])
def test_non_positive_or_missing_denominator_gives_empty_result(denominator):
    assert percent_of_fixed(ITEMS, denominator) == []


def test_percent_of_sum_with_nothing_to_divide():
    assert percent_of_sum([]) == []
    assert percent_of_sum([CategoryValue("A", 0.0)]) == []
