"""
Secure randomness for table generation.

Every random decision in the pairing engine (pool shuffles, weighted draws,
table-size coin flips, seat order, room codes) goes through this module.
All helpers draw from the operating system CSPRNG via secrets.SystemRandom,
so outcomes cannot be predicted or replayed from earlier rounds.
There is intentionally no seed parameter anywhere.
"""

import secrets
from collections.abc import MutableSequence, Sequence

_SYSTEM_RANDOM = secrets.SystemRandom()


def shuffle[T](items: MutableSequence[T]) -> None:
    """Fisher-Yates shuffle in place, unbiased via secrets.randbelow."""
    for i in range(len(items) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        items[i], items[j] = items[j], items[i]


def shuffled[T](items: Sequence[T]) -> list[T]:
    """Return a shuffled copy, leaving the input untouched."""
    result = list(items)
    shuffle(result)
    return result


def coin_flip() -> bool:
    return secrets.randbelow(2) == 0


def uniform(upper: float) -> float:
    """Uniform float in [0, upper)."""
    return _SYSTEM_RANDOM.random() * upper


def choice[T](items: Sequence[T]) -> T:
    if not items:
        raise ValueError("Cannot choose from an empty sequence")
    return items[secrets.randbelow(len(items))]
