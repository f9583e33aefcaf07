"""
Graph elements simulated by the layout system.

Nodes are particles with mass, position, velocity and an accumulated force.
Edges are springs between two nodes. All physics lives in the system; these
classes only hold state.
"""

from __future__ import annotations

from typing import Any, Optional

from .point import Point


class Node:
    """
    Simulated particle.

    Attributes:
        sign: Unique identity of the node within one system
        mass: Mass, divides every force applied to the node
        pt: Current position, Point.NULL until placed
        fixed: If set, the node's velocity is forced to zero every step.
            External code may still move it, e.g. while dragging.
        data: Opaque payload, never inspected by the system
    """

    def __init__(
        self,
        sign: str,
        mass: float = 1.0,
        pt: Optional[Point] = None,
        fixed: bool = False,
        data: Any = None,
        **kwargs
    ):
        self.sign = sign
        self.mass = mass
        self.pt: Point = pt if pt is not None else Point.NULL
        self.fixed = fixed
        self.data = data

        # Velocity and force accumulator, owned by the system
        self.v = Point(0.0, 0.0)
        self.f = Point(0.0, 0.0)

        # Copy over any additional properties
        for key, value in kwargs.items():
            if not hasattr(self, key):
                setattr(self, key, value)

    def __repr__(self) -> str:
        return f"Node({self.sign!r}, pt={self.pt!r})"

    def apply_force(self, a: Point) -> None:
        """Accumulate a / mass into the force accumulator."""
        self.f = self.f.add(a.div(self.mass))


class Edge:
    """
    Spring between two nodes.

    Attributes:
        source: Source node
        target: Target node
        length: Rest length of the spring
        stiffness: Spring constant
        directed: Descriptive only, does not change the forces
    """

    def __init__(
        self,
        source: Node,
        target: Node,
        length: float = 1.0,
        stiffness: float = 600.0,
        directed: bool = False,
        **kwargs
    ):
        self.source = source
        self.target = target
        self.length = length
        self.stiffness = stiffness
        self.directed = directed

        # Copy over any additional properties
        for key, value in kwargs.items():
            if not hasattr(self, key):
                setattr(self, key, value)

    def __repr__(self) -> str:
        arrow = '->' if self.directed else '--'
        return f"Edge({self.source.sign!r} {arrow} {self.target.sign!r})"
