"""
Answer normalization for literal comparisons.
"""

from typing import Sequence


def normalize(answer: str) -> str:
    """Trim surrounding whitespace and case-fold, without locale rules."""
    return answer.strip().casefold()


def answers_match(submitted: str, expected: str) -> bool:
    """Compare two single-valued answers after normalization."""
    return normalize(submitted) == normalize(expected)


def all_positions_match(submitted: Sequence[str], expected: Sequence[str]) -> bool:
    """
    Positional comparison of two answer lists.

    Lists of different lengths never match. A None entry in the submission is
    compared as an empty string.
    """
    if len(submitted) != len(expected):
        return False
    return all(
        answers_match(sub if isinstance(sub, str) else '', exp)
        for sub, exp in zip(submitted, expected)
    )
