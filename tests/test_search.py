import bisect

import pytest
from hypothesis import given, strategies as st

from ipldcar.search import search


def test_finds_first_true_index():
    values = [1, 4, 9, 16, 25]
    assert search(len(values), lambda i: values[i] >= 9) == values.index(9)


def test_empty_range_returns_zero():
    assert search(0, lambda i: True) == 0


def test_all_false_returns_n():
    assert search(7, lambda i: False) == 7


def test_predicate_error_propagates():
    def failing(i):
        raise KeyError("boom")

    with pytest.raises(KeyError):
        search(5, failing)


@given(st.lists(st.integers(), max_size=50), st.integers())
def test_agrees_with_bisect(values, target):
    values.sort()
    got = search(len(values), lambda i: values[i] >= target)
    assert got == bisect.bisect_left(values, target)