"""
basefeebet/protocol/guess.py

Deterministic mapping from a raw value to a 3-digit guess.

A wager amount (fixed-point, 18 fractional digits) or a revealed base fee
is scaled by successive powers of ten and divided by the fixed-point unit
until the integer result lands in [100, 999]. The number of x10 steps is
the scale class, which buckets wagers of similar size into one group.

Examples (18 decimals):
    300 * 10**18     -> (300, 0)
    0.3 * 10**18     -> (300, 3)
    30 gwei base fee -> (300, 10)
    5000 * 10**18    -> invalid (already above 999 at scale 0)
"""

from typing import Optional, Tuple

from ..config import DECIMALS, GUESS_MAX, GUESS_MIN, MAX_SCALE
from ..errors import InvalidGuess


def extract_guess(
    value: int,
    decimals: int = DECIMALS,
    max_scale: int = MAX_SCALE,
    low: int = GUESS_MIN,
    high: int = GUESS_MAX,
) -> Tuple[int, int]:
    """
    Extract (guess, scale) from a raw value.

    Args:
        value: Positive integer amount or signal
        decimals: Fixed-point fractional digits
        max_scale: Number of scale classes to try (0..max_scale-1)
        low: Lowest valid guess
        high: Highest valid guess

    Returns:
        (guess, scale) with low <= guess <= high and 0 <= scale < max_scale

    Raises:
        InvalidGuess: if no scale class yields an in-range value
    """
    if value <= 0:
        raise InvalidGuess(f"Cannot extract a guess from {value}")

    unit = 10 ** decimals
    scaled = value
    for scale in range(max_scale):
        guess = scaled // unit
        if low <= guess <= high:
            return guess, scale
        if guess > high:
            break
        scaled *= 10

    raise InvalidGuess(f"No scale class maps {value} into [{low}, {high}]")


def winning_guess(
    signal: int,
    decimals: int = DECIMALS,
    max_scale: int = MAX_SCALE,
    low: int = GUESS_MIN,
    high: int = GUESS_MAX,
) -> Optional[int]:
    """
    Convert a revealed signal to the guess it rewards.

    Returns:
        The winning guess, or None if the signal cannot be mapped
        (no winners are computable for the round).
    """
    try:
        guess, _ = extract_guess(signal, decimals, max_scale, low, high)
    except InvalidGuess:
        return None
    return guess
