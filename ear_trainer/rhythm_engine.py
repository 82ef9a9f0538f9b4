"""Duration selection for rhythm-mode exercises.

Each note of a rhythm-mode melody receives an independently drawn duration
from a small weighted pool. Quarter notes dominate so phrases stay readable
while eighths, dotted quarters and halves add variety. Durations are measured
in beats (``1.0`` == one quarter note at the exercise tempo).

Example
-------
>>> import random
>>> gen = RhythmGenerator({1.0: 1})
>>> gen.generate(3, random.Random(0))
[1.0, 1.0, 1.0]
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .weighting import RandomSource, weighted_choice

__all__ = ["DURATION_POOL", "RhythmGenerator"]


# Relative weights for each duration in beats.
DURATION_POOL: Dict[float, float] = {
    0.5: 20,  # eighth
    1.0: 50,  # quarter
    1.5: 15,  # dotted quarter
    2.0: 15,  # half
}


class RhythmGenerator:
    """Draw note durations from a weighted pool."""

    def __init__(self, pool: Optional[Dict[float, float]] = None) -> None:
        """Create a generator over ``pool`` (``duration -> weight``).

        Weights need not sum to any particular value. ``None`` selects
        :data:`DURATION_POOL`.
        """

        self.pool = dict(pool) if pool is not None else dict(DURATION_POOL)
        if not self.pool:
            raise ValueError("pool must contain at least one duration")
        if any(d <= 0 for d in self.pool):
            raise ValueError("durations must be positive")
        self._pairs = list(self.pool.items())

    def next_duration(self, rng: RandomSource) -> float:
        """Return a single duration."""

        return weighted_choice(self._pairs, rng)

    def generate(self, length: int, rng: RandomSource) -> List[float]:
        """Return ``length`` independently drawn durations."""

        if length <= 0:
            raise ValueError("length must be positive")
        return [self.next_duration(rng) for _ in range(length)]
