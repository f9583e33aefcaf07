"""
Seedable pseudo random numbers for the simulation.

All randomness in a system (initial node placement, tie-breaking force
directions, jitter of coincident points in the spatial tree) is drawn from
one generator so that a seeded system replays exactly.
"""

from __future__ import annotations

from typing import Optional
import random


class PseudoRandom:
    """
    Linear congruential pseudo random number generator.

    One instance per system drives initial node placement, random force
    directions for coincident nodes and jitter in the Barnes-Hut tree.
    """

    def __init__(self, seed: Optional[int] = 1):
        if seed is None:
            seed = random.randrange(2147483648)
        self.seed = seed
        self.a = 214013
        self.c = 2531011
        self.m = 2147483648
        self.range = 32767

    def get_next(self) -> float:
        """Get random real between 0 and 1."""
        self.seed = (self.seed * self.a + self.c) % self.m
        return (self.seed >> 16) / self.range

    def get_next_between(self, min_val: float, max_val: float) -> float:
        """Get random real between min and max."""
        return min_val + self.get_next() * (max_val - min_val)


# Shared generator for callers that do not carry their own
default_random = PseudoRandom(None)
