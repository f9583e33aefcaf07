"""
2D point/vector value type used throughout the simulation.

Points are treated as immutable values: every arithmetic operation returns a
new Point. Arithmetic never raises on degenerate input; division by zero
yields IEEE infinities or NaN so that a numerical blow-up shows up as an
exploded point rather than an exception.
"""

from __future__ import annotations

from typing import Optional
import math

from .prng import PseudoRandom, default_random


def safe_div(a: float, b: float) -> float:
    """Divide with IEEE semantics for a zero divisor."""
    if b != 0.0:
        return a / b
    if a != a or a == 0.0:
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


class Point:
    """
    2D point.

    Attributes:
        x: x coordinate
        y: y coordinate
    """

    __slots__ = ('x', 'y')

    NULL: Point

    def __init__(self, x: float = 0.0, y: float = 0.0):
        self.x = float(x)
        self.y = float(y)

    def __repr__(self) -> str:
        return f"Point({self.x!r}, {self.y!r})"

    def __iter__(self):
        yield self.x
        yield self.y

    @classmethod
    def random(cls, a: float = 5.0, rng: Optional[PseudoRandom] = None) -> Point:
        """
        Random point with both components uniform in [-a, a].

        Used wherever a direction would otherwise be computed from a
        zero-length difference.
        """
        rng = rng if rng is not None else default_random
        return cls(2 * a * (rng.get_next() - 0.5), 2 * a * (rng.get_next() - 0.5))

    def is_null(self) -> bool:
        """Check if this is the "no point" sentinel."""
        return math.isnan(self.x) and math.isnan(self.y)

    def exploded(self) -> bool:
        """
        Check if either coordinate is NaN or infinite.

        Infinite coordinates count as exploded too: they cannot be placed in
        the spatial tree and turn into NaN at the next subtraction.
        """
        return not (math.isfinite(self.x) and math.isfinite(self.y))

    def add(self, a: Point) -> Point:
        return Point(self.x + a.x, self.y + a.y)

    def sub(self, a: Point) -> Point:
        return Point(self.x - a.x, self.y - a.y)

    def mul(self, a: float) -> Point:
        return Point(self.x * a, self.y * a)

    def div(self, a: float) -> Point:
        return Point(safe_div(self.x, a), safe_div(self.y, a))

    def magnitude(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y)

    def magnitude_square(self) -> float:
        return self.x * self.x + self.y * self.y

    def normalize(self) -> Point:
        """Unit vector in the same direction, NULL for zero length."""
        mag = self.magnitude()
        if mag == 0.0 or self.is_null():
            return Point.NULL
        return self.div(mag)

    __add__ = add
    __sub__ = sub
    __mul__ = mul
    __rmul__ = mul
    __truediv__ = div

    def __neg__(self) -> Point:
        return Point(-self.x, -self.y)


Point.NULL = Point(math.nan, math.nan)
