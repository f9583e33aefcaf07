"""
Barnes-Hut quadtree for approximate node repulsion.

The tree is rebuilt from the current node positions on every simulation step
and discarded afterwards. Each branch covers a rectangle of the graph bounds
and keeps the aggregate mass and mass-weighted position of every node below
it, so that a distant branch can stand in for all of its nodes as a single
body at its centre of mass.

Both insertion and force evaluation walk the tree with explicit worklists:
many coincident points can produce arbitrarily deep trees.
"""

from __future__ import annotations

from collections import deque
from enum import IntEnum
from typing import Optional, Union
import logging

from .graph import Node
from .point import Point, safe_div
from .prng import PseudoRandom, default_random

logger = logging.getLogger(__name__)


class Quadrant(IntEnum):
    """Quadrant slots of a branch. NONE marks nodes that cannot be placed."""
    ne = 0
    nw = 1
    se = 2
    sw = 3
    none = 4


# Fraction of a sub-region used to jitter coincident points apart
JITTER = 0.08


class Branch:
    """
    Inner node of the quadtree.

    Attributes:
        origin: Top-left corner of the covered region
        size: Width and height of the covered region
        q: Four quadrant slots, each None, a Node or a Branch
        mass: Aggregate mass of all nodes below this branch
        pt: Aggregate mass-weighted position; divide by mass for the
            centre of mass
    """

    def __init__(self, origin: Point, size: Point):
        self.origin = origin
        self.size = size
        self.q: list[Optional[Union[Node, Branch]]] = [None, None, None, None]
        self.mass = 0.0
        self.pt = Point(0.0, 0.0)

    def add_mass(self, node: Node) -> None:
        """Fold a node into the aggregate mass and weighted position."""
        self.mass += node.mass
        self.pt = self.pt.add(node.pt.mul(node.mass))

    def center_of_mass(self) -> Point:
        return self.pt.div(self.mass)

    def sub_region(self, qd: Quadrant) -> tuple[Point, Point]:
        """Origin and size of the half-sized region of quadrant qd."""
        size = self.size.div(2)
        x = self.origin.x
        y = self.origin.y
        if qd == Quadrant.se or qd == Quadrant.sw:
            y += size.y
        if qd == Quadrant.ne or qd == Quadrant.se:
            x += size.x
        return Point(x, y), size


class BarnesHutTree:
    """
    Quadtree over a rectangle, answering approximate repulsion queries.

    Args:
        origin: Top-left corner of the graph bounds
        bottom_right: Bottom-right corner of the graph bounds
        theta: Opening angle. 0 makes every query exact, larger values
            approximate more branches as single bodies.
        rng: Source of randomness for jitter and tie-breaking directions
    """

    def __init__(
        self,
        origin: Point,
        bottom_right: Point,
        theta: float = 0.4,
        rng: Optional[PseudoRandom] = None
    ):
        self.dist = theta * theta
        self.root = Branch(origin, bottom_right.sub(origin))
        self.random = rng if rng is not None else default_random

    @staticmethod
    def quadrant(node: Node, branch: Branch) -> Quadrant:
        """Quadrant of branch the node falls into, relative to its midpoint."""
        if node.pt.exploded():
            return Quadrant.none

        h = node.pt.sub(branch.origin)
        g = branch.size.div(2)

        if h.y < g.y:
            return Quadrant.nw if h.x < g.x else Quadrant.ne
        return Quadrant.sw if h.x < g.x else Quadrant.se

    def insert(self, node: Node) -> None:
        """
        Place a node into the tree.

        A slot already holding another node is split into a child branch
        and both nodes are reinserted there. Identical coordinates are
        jittered apart so that the splitting terminates.
        """
        f = self.root
        work: deque[Node] = deque([node])

        while work:
            h = work.popleft()
            qd = self.quadrant(h, f)
            if qd == Quadrant.none:
                continue

            fp = f.q[qd]

            if fp is None:
                f.q[qd] = h
                f.add_mass(h)
            elif isinstance(fp, Branch):
                f.add_mass(h)
                f = fp
                work.appendleft(h)
            else:
                origin, size = f.sub_region(qd)
                if size.exploded() or (size.x == 0.0 and size.y == 0.0):
                    # Region too small to split further, h stays out of the tree
                    if logger.isEnabledFor(logging.DEBUG):
                        logger.debug("Cannot split region at %r for node %r", origin, h.sign)
                    continue

                # h passes through f, the child aggregates only its two nodes
                child = Branch(origin, size)
                f.q[qd] = child
                f.add_mass(h)
                f = child

                if fp.pt.x == h.pt.x and fp.pt.y == h.pt.y:
                    fp.pt = self._jitter(fp.pt, origin, size)

                work.append(fp)
                work.appendleft(h)

    def _jitter(self, pt: Point, origin: Point, size: Point) -> Point:
        """Copy of pt moved randomly within JITTER of the region, clamped."""
        k = size.x * JITTER
        i = size.y * JITTER
        x = min(origin.x + size.x, max(origin.x, pt.x - k / 2 + self.random.get_next() * k))
        y = min(origin.y + size.y, max(origin.y, pt.y - i / 2 + self.random.get_next() * i))
        return Point(x, y)

    def apply_forces(self, node: Node, strength: float) -> None:
        """
        Accumulate the approximate repulsion of every other node on node.

        Branches whose area is large relative to their squared distance
        are opened, others act as a single body at their centre of mass.
        """
        if node.pt.exploded():
            return

        queue: deque[Optional[Union[Node, Branch]]] = deque([self.root])

        while queue:
            obj = queue.popleft()
            if obj is None or obj is node:
                continue

            if isinstance(obj, Branch):
                mass = obj.mass
                ptx = obj.center_of_mass()
            else:
                mass = obj.mass
                ptx = obj.pt

            k = node.pt.sub(ptx)
            k_mag = k.magnitude_square()

            if isinstance(obj, Branch):
                area = obj.size.x * obj.size.y
                if safe_div(area, k_mag) > self.dist:
                    queue.extend(obj.q)
                    continue

            direction = (k if k_mag > 0 else Point.random(1, self.random)).normalize()
            node.apply_force(direction.mul(strength * mass).div(max(1.0, k_mag)))
