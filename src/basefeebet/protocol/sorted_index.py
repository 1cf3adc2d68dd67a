"""
basefeebet/protocol/sorted_index.py

Per-group ascending, duplicate-free sequence of guesses.

Membership is capped by the guess domain (900 values), so the O(n) shift
on insert is bounded; lookups are binary searches.
"""

from bisect import bisect_left
from typing import Iterator, List, Tuple

from ..errors import GuessTaken


class SortedGuessIndex:
    """
    Sorted set of guesses with nearest-neighbour lookup.

    Usage:
        index = SortedGuessIndex()
        index.insert(250)
        index.insert(300)
        index.nearest(295)  # (300,)
    """

    def __init__(self):
        self._guesses: List[int] = []

    def __len__(self) -> int:
        return len(self._guesses)

    def __iter__(self) -> Iterator[int]:
        return iter(self._guesses)

    def __contains__(self, guess: int) -> bool:
        low = bisect_left(self._guesses, guess)
        return low < len(self._guesses) and self._guesses[low] == guess

    def lower_bound(self, key: int) -> int:
        """First index whose element is >= key."""
        return bisect_left(self._guesses, key)

    def insert(self, guess: int) -> int:
        """
        Insert a guess, keeping the sequence sorted.

        Returns:
            Position the guess was inserted at

        Raises:
            GuessTaken: if the guess is already present
        """
        low = self.lower_bound(guess)
        if low < len(self._guesses) and self._guesses[low] == guess:
            raise GuessTaken(f"Guess {guess} already taken")
        self._guesses.insert(low, guess)
        return low

    def nearest(self, key: int) -> Tuple[int, ...]:
        """
        Find the guess(es) closest to key.

        Candidates are the left neighbour (index low-1) and the right
        neighbour (index low). The strictly closer one wins; an exact tie
        returns both in ascending order.

        Returns:
            () if the index is empty, otherwise one or two guesses
        """
        low = self.lower_bound(key)
        left = self._guesses[low - 1] if low > 0 else None
        right = self._guesses[low] if low < len(self._guesses) else None

        if left is None and right is None:
            return ()
        if left is None:
            return (right,)
        if right is None:
            return (left,)

        left_distance = key - left
        right_distance = right - key
        if left_distance < right_distance:
            return (left,)
        if right_distance < left_distance:
            return (right,)
        return (left, right)

    def to_list(self) -> List[int]:
        return list(self._guesses)
