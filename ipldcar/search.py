"""Binary search over an index range with a predicate that may fail."""

from typing import Callable


def search(n: int, predicate: Callable[[int], bool]) -> int:
    """Return the smallest index in [0, n) for which predicate is true, or n.

    The predicate must be monotonic: false for a prefix and true afterwards.
    Any exception raised by the predicate stops the search and propagates.
    """
    low, high = 0, n
    while low < high:
        middle = (low + high) // 2
        if predicate(middle):
            high = middle
        else:
            low = middle + 1
    return low