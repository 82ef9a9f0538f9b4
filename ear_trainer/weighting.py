"""Weighted random selection shared by melody and rhythm generation.

All random decisions in the package go through an injected *random source*
rather than the module level :mod:`random` functions. Any object exposing a
``random()`` method returning a float in ``[0, 1)`` qualifies, so a seeded
:class:`random.Random` makes generation reproducible and tests can script
exact draws.

Design Notes
------------
- :func:`weighted_choice` implements one selection rule everywhere: draw
  ``r`` uniformly in ``[0, total)`` and subtract weights in order until ``r``
  drops to zero or below. Ties go to the first candidate reaching that point.
- The functions validate their inputs so misuse surfaces as ``ValueError``
  instead of an obscure ``IndexError`` deep inside the generation loop.
"""

from __future__ import annotations

import math
from typing import Protocol, Sequence, Tuple, TypeVar

__all__ = [
    "RandomSource",
    "weighted_choice",
    "index_near_center",
    "uniform_index",
    "round_half_up",
]

T = TypeVar("T")


class RandomSource(Protocol):
    """Minimal interface for an injectable randomness source."""

    def random(self) -> float:
        ...


def weighted_choice(pairs: Sequence[Tuple[T, float]], rng: RandomSource) -> T:
    """Return an item from ``(item, weight)`` ``pairs`` chosen by weight.

    Parameters
    ----------
    pairs:
        Candidates with their relative weights. Order matters for ties.
    rng:
        Source of uniform draws.

    Raises
    ------
    ValueError
        If ``pairs`` is empty, a weight is negative or all weights are zero.
    """

    if not pairs:
        raise ValueError("pairs must be non-empty")
    total = 0.0
    for _, weight in pairs:
        if weight < 0:
            raise ValueError("weights must be non-negative")
        total += weight
    if total <= 0:
        raise ValueError("at least one weight must be positive")

    r = rng.random() * total
    for item, weight in pairs:
        r -= weight
        if r <= 0:
            return item
    # Floating point residue can leave ``r`` marginally above zero.
    return pairs[-1][0]


def index_near_center(length: int, rng: RandomSource) -> int:
    """Return an index in ``range(length)`` biased toward the middle.

    The draw spreads a uniform value over roughly the central two thirds of
    the range and clamps the result, so edge indices stay possible but rare.
    """

    if length <= 1:
        return 0
    center = (length - 1) / 2
    spread = length / 3
    index = round_half_up(center + (rng.random() - 0.5) * 2 * spread)
    return max(0, min(length - 1, index))


def uniform_index(length: int, rng: RandomSource) -> int:
    """Return a uniformly distributed index in ``range(length)``."""

    if length <= 0:
        raise ValueError("length must be positive")
    return min(length - 1, int(rng.random() * length))


def round_half_up(value: float) -> int:
    """Round ``value`` to the nearest integer, halves rounding upward.

    The builtin :func:`round` uses banker's rounding, which would turn a 62.5
    score into 62.
    """

    return int(math.floor(value + 0.5))
