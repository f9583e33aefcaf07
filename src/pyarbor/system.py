"""
Force-directed layout simulation.

This module implements the ArborSystem class which provides:
- Node and edge management with sign-keyed lookup
- Spring forces along edges and Barnes-Hut approximated repulsion
- Euler integration with friction, centre drift and optional gravity
- Energy statistics and an auto-stop policy
- Smoothed view bounds and screen coordinate mapping
- Start/stop lifecycle driven by a host scheduler
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol, TypedDict, Union
from enum import IntEnum
import logging
import threading
import time
import warnings

import numpy as np

from .barneshut import BarnesHutTree
from .graph import Node, Edge
from .point import Point, safe_div
from .prng import PseudoRandom
from .scheduler import Scheduler, ManualScheduler

logger = logging.getLogger(__name__)


# Graph bounds padding and minimum extent, in simulation units
BOUNDS_PADDING = 1.2
MIN_EXTENT = 4.0

# Fraction of the distance the view bounds move towards the graph bounds per step
VIEW_SMOOTHING = 0.04

# Squared speed above which velocity is damped
MAX_SPEED_SQUARE = 1000000.0

# Seconds energy must stay below the stop threshold before auto-stop
STOP_HOLD = 1.0


class EventType(IntEnum):
    """
    The system fires two events:
    - start: stepping was (re)started
    - stop: stepping stopped, either on request or by auto-stop
    """
    start = 0
    stop = 1


class Event(TypedDict, total=False):
    """Event dictionary passed to event listeners."""
    type: EventType
    energy: float


class Renderer(Protocol):
    """The one capability the system needs from whatever draws the graph."""

    def request_redraw(self) -> None:
        ...


class ExplosionWarning(UserWarning):
    """Warning about node positions becoming non-numeric."""
    pass


NodeFactory = Callable[[str], Node]
EdgeFactory = Callable[[Node, Node, float, float, bool], Edge]


class Bounds:
    """Axis-aligned rectangle in simulation space."""

    def __init__(self, left_top: Point, right_bottom: Point):
        self.left_top = left_top
        self.right_bottom = right_bottom

    def __repr__(self) -> str:
        return f"Bounds({self.left_top!r}, {self.right_bottom!r})"

    def size(self) -> Point:
        return self.right_bottom.sub(self.left_top)

    def contains(self, pt: Point) -> bool:
        return (self.left_top.x <= pt.x <= self.right_bottom.x
                and self.left_top.y <= pt.y <= self.right_bottom.y)


class ArborSystem:
    """
    Simulation of a graph as charged particles connected by springs.

    Stepping is driven by a host scheduler which calls tick() periodically
    between start() and stop(). Node positions may be read (and fixed nodes
    moved) between steps.

    Args:
        repulsion: Strength of the repulsion between every pair of nodes
        stiffness: Spring constant given to new edges
        friction: Fraction of velocity lost per step
        renderer: Receives one request_redraw() per completed step
        scheduler: Host scheduler, a ManualScheduler by default
        node_factory: Creates nodes for add_node(), Node by default
        edge_factory: Creates edges for add_edge(), Edge by default
        seed: Seed for all randomness of this system
        clock: Monotonic clock in seconds, used by auto-stop
    """

    def __init__(
        self,
        repulsion: float = 1000.0,
        stiffness: float = 600.0,
        friction: float = 0.5,
        renderer: Optional[Renderer] = None,
        scheduler: Optional[Scheduler] = None,
        node_factory: Optional[NodeFactory] = None,
        edge_factory: Optional[EdgeFactory] = None,
        seed: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._repulsion: float = float(repulsion)
        self._stiffness: float = float(stiffness)
        self._friction: float = float(friction)
        self._dt: float = 0.01
        self._gravity: bool = False
        self._precision: float = 0.6
        self._theta: float = 0.4
        self._stepInterval: float = 10.0
        self._stopThreshold: float = 0.7
        self._autoStop: bool = True
        self._margins: tuple[float, float, float, float] = (20.0, 20.0, 20.0, 20.0)

        self._nodes: list[Node] = []
        self._edges: list[Edge] = []
        self._names: dict[str, Node] = {}
        self._edgeIndex: dict[tuple[str, str], Edge] = {}

        self._renderer = renderer
        self._scheduler: Scheduler = scheduler if scheduler is not None else ManualScheduler()
        self._nodeFactory: NodeFactory = node_factory if node_factory is not None else Node
        self._edgeFactory: EdgeFactory = edge_factory if edge_factory is not None else Edge
        self._clock = clock
        self.random = PseudoRandom(seed)

        self._screenWidth: float = 0.0
        self._screenHeight: float = 0.0
        self._graphBounds: Bounds = self._compute_graph_bounds()
        self._viewBounds: Optional[Bounds] = None

        self._running: bool = False
        self._handle: Any = None
        self._busy = threading.Lock()
        self._holdSince: Optional[float] = None
        self._iterations: int = 0

        self.energy_sum: float = 0.0
        self.energy_max: float = 0.0
        self.energy_mean: float = 0.0

        # Event system
        self.event: Optional[dict] = None

    def __enter__(self) -> ArborSystem:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Stop stepping if running."""
        self.stop()

    # ------------------------------------------------------------------
    # Events

    def on(self, e: Union[EventType, str], listener: Callable[[Event], None]) -> ArborSystem:
        """
        Subscribe a listener to an event, replacing any previous one.

        Args:
            e: Event type (EventType enum or string name)
            listener: Function to call when event fires

        Returns:
            self for method chaining
        """
        if self.event is None:
            self.event = {}

        event_type = EventType[e] if isinstance(e, str) else e
        self.event[event_type] = listener
        return self

    def off(self, e: Union[EventType, str]) -> ArborSystem:
        """Remove the listener of an event, if any."""
        if self.event:
            event_type = EventType[e] if isinstance(e, str) else e
            self.event.pop(event_type, None)
        return self

    def trigger(self, e: Event) -> None:
        """Call the listener registered for the event's type."""
        if self.event and e['type'] in self.event:
            self.event[e['type']](e)

    # ------------------------------------------------------------------
    # Parameters

    def repulsion(self, x: Optional[float] = None) -> Union[float, ArborSystem]:
        """
        Get or set repulsion strength. 0 disables the repulsion pass.

        Returns:
            Current value if x is None, otherwise self for chaining
        """
        if x is None:
            return self._repulsion

        self._repulsion = float(x)
        return self

    def stiffness(self, x: Optional[float] = None) -> Union[float, ArborSystem]:
        """
        Get or set spring stiffness.

        New edges take this stiffness. 0 disables the spring pass.
        """
        if x is None:
            return self._stiffness

        self._stiffness = float(x)
        return self

    def friction(self, x: Optional[float] = None) -> Union[float, ArborSystem]:
        """Get or set friction, the fraction of velocity lost per step."""
        if x is None:
            return self._friction

        self._friction = float(x)
        return self

    def dt(self, x: Optional[float] = None) -> Union[float, ArborSystem]:
        """Get or set the integration time step."""
        if x is None:
            return self._dt

        self._dt = float(x)
        return self

    def gravity(self, x: Optional[bool] = None) -> Union[bool, ArborSystem]:
        """Get or set whether nodes are pulled towards the origin."""
        if x is None:
            return self._gravity

        self._gravity = bool(x)
        return self

    def precision(self, x: Optional[float] = None) -> Union[float, ArborSystem]:
        """Get or set precision. Kept for hosts; the physics does not read it."""
        if x is None:
            return self._precision

        self._precision = float(x)
        return self

    def theta(self, x: Optional[float] = None) -> Union[float, ArborSystem]:
        """
        Get or set the Barnes-Hut opening angle.

        0 computes exact pairwise repulsion, larger values approximate more.
        """
        if x is None:
            return self._theta

        self._theta = float(x)
        return self

    def step_interval(self, x: Optional[float] = None) -> Union[float, ArborSystem]:
        """Get or set milliseconds between steps. Applies from the next start()."""
        if x is None:
            return self._stepInterval

        self._stepInterval = float(x)
        return self

    def stop_threshold(self, x: Optional[float] = None) -> Union[float, ArborSystem]:
        """Get or set the mean energy at or below which auto-stop may trigger."""
        if x is None:
            return self._stopThreshold

        self._stopThreshold = float(x)
        return self

    def auto_stop(self, x: Optional[bool] = None) -> Union[bool, ArborSystem]:
        """Get or set whether the system stops itself once settled."""
        if x is None:
            return self._autoStop

        self._autoStop = bool(x)
        return self

    def margins(
        self,
        x: Optional[tuple[float, float, float, float]] = None
    ) -> Union[tuple[float, float, float, float], ArborSystem]:
        """Get or set screen margins in pixels as (top, right, bottom, left)."""
        if x is None:
            return self._margins

        self._margins = tuple(float(m) for m in x)
        return self

    # ------------------------------------------------------------------
    # Graph

    def nodes(self) -> tuple[Node, ...]:
        """Nodes in insertion order."""
        return tuple(self._nodes)

    def edges(self) -> tuple[Edge, ...]:
        """Edges in insertion order."""
        return tuple(self._edges)

    def get_node(self, sign: str) -> Optional[Node]:
        return self._names.get(sign)

    def add_node(self, sign: str, x: Optional[float] = None, y: Optional[float] = None) -> Node:
        """
        Add a node, or return the existing node with this sign unchanged.

        Without coordinates the node is placed at a random point inside the
        current graph bounds.
        """
        node = self._names.get(sign)
        if node is not None:
            return node

        if x is None or y is None:
            lt = self._graphBounds.left_top
            rb = self._graphBounds.right_bottom
            x = lt.x + (rb.x - lt.x) * self.random.get_next()
            y = lt.y + (rb.y - lt.y) * self.random.get_next()

        node = self._nodeFactory(sign)
        node.pt = Point(x, y)

        self._names[sign] = node
        self._nodes.append(node)
        return node

    def add_edge(
        self,
        source_sign: str,
        target_sign: str,
        length: float = 1.0,
        directed: bool = False
    ) -> Edge:
        """
        Add an edge, creating missing endpoints.

        Returns the existing edge unchanged if one already joins source to
        target in this direction. The reverse direction is a different edge.
        """
        src = self.get_node(source_sign)
        if src is None:
            src = self.add_node(source_sign)

        tgt = self.get_node(target_sign)
        if tgt is None:
            tgt = self.add_node(target_sign)

        key = (src.sign, tgt.sign)
        edge = self._edgeIndex.get(key)
        if edge is None:
            edge = self._edgeFactory(src, tgt, length, self._stiffness, directed)
            self._edgeIndex[key] = edge
            self._edges.append(edge)

        return edge

    def positions(self) -> np.ndarray:
        """Node positions as an (n, 2) array in insertion order."""
        return np.array([(n.pt.x, n.pt.y) for n in self._nodes], dtype=float).reshape(-1, 2)

    def exploded_nodes(self) -> list[Node]:
        """Nodes whose position is no longer numeric."""
        return [n for n in self._nodes if n.pt.exploded()]

    # ------------------------------------------------------------------
    # Screen mapping

    def graph_bounds(self) -> Bounds:
        """Padded bounding box of all nodes, as of the last step."""
        return self._graphBounds

    def view_bounds(self) -> Optional[Bounds]:
        """Smoothed bounds mapped onto the screen, None before the first update."""
        return self._viewBounds

    def set_screen_size(self, width: float, height: float) -> None:
        self._screenWidth = width
        self._screenHeight = height
        self._update_view_bounds()

    def to_screen(self, pt: Point) -> Point:
        """Map a simulation point to pixels. NULL before view bounds exist."""
        if self._viewBounds is None:
            return Point.NULL

        top, right, bottom, left = self._margins
        lt = self._viewBounds.left_top
        vd = self._viewBounds.size()
        sx = left + safe_div(pt.x - lt.x, vd.x) * (self._screenWidth - (right + left))
        sy = top + safe_div(pt.y - lt.y, vd.y) * (self._screenHeight - (top + bottom))
        return Point(sx, sy)

    def from_screen(self, sx: float, sy: float) -> Point:
        """Map pixels to a simulation point. NULL before view bounds exist."""
        if self._viewBounds is None:
            return Point.NULL

        top, right, bottom, left = self._margins
        lt = self._viewBounds.left_top
        vd = self._viewBounds.size()
        x = safe_div(sx - left, self._screenWidth - (right + left)) * vd.x + lt.x
        y = safe_div(sy - top, self._screenHeight - (top + bottom)) * vd.y + lt.y
        return Point(x, y)

    def nearest(self, sx: float, sy: float, max_distance: Optional[float] = None) -> Optional[Node]:
        """
        Node closest to a screen point.

        Exploded nodes are ignored; ties go to the node added first.

        Args:
            sx, sy: Screen coordinates
            max_distance: Optional limit in simulation units

        Returns:
            The closest node, or None if there is no eligible node
        """
        x = self.from_screen(sx, sy)
        if x.is_null():
            return None

        res = None
        min_dist = max_distance if max_distance is not None else float('inf')

        for node in self._nodes:
            if node.pt.exploded():
                continue

            dist = node.pt.sub(x).magnitude()
            if dist < min_dist or (res is None and dist == min_dist):
                res = node
                min_dist = dist

        return res

    # ------------------------------------------------------------------
    # Lifecycle

    def is_running(self) -> bool:
        return self._running

    def iterations(self) -> int:
        """Steps run since the last start()."""
        return self._iterations

    def start(self) -> None:
        """
        Start stepping. Restarting a running system re-initialises timing
        without touching node positions.
        """
        self.trigger({'type': EventType.start, 'energy': self.energy_mean})

        self._holdSince = None
        self._iterations = 0

        if self._handle is not None:
            self._scheduler.cancel(self._handle)
        self._handle = self._scheduler.schedule_periodic(self._stepInterval, self.tick)
        self._running = True

        logger.debug("Started with %d nodes, %d edges", len(self._nodes), len(self._edges))

    def stop(self) -> None:
        """Stop stepping. Does nothing if already stopped."""
        if not self._running:
            return

        self._scheduler.cancel(self._handle)
        self._handle = None
        self._running = False

        logger.debug("Stopped after %d steps, mean energy %g", self._iterations, self.energy_mean)
        self.trigger({'type': EventType.stop, 'energy': self.energy_mean})

    def tick(self) -> bool:
        """
        Advance the simulation by one step.

        A call made while another step is executing is dropped.

        Returns:
            True if the step ran, False if it was dropped
        """
        if not self._busy.acquire(blocking=False):
            return False

        try:
            self._iterations += 1
            exploded_before = len(self.exploded_nodes())

            try:
                self._update_physics()
            except (ArithmeticError, ValueError):
                logger.debug("Physics update failed at step %d", self._iterations, exc_info=True)

            try:
                self._update_view_bounds()
            except (ArithmeticError, ValueError):
                logger.debug("View bounds update failed at step %d", self._iterations, exc_info=True)

            exploded = len(self.exploded_nodes())
            if exploded > exploded_before:
                warnings.warn(
                    f"{exploded} of {len(self._nodes)} node positions are no longer numeric. "
                    "Lower dt or raise friction.",
                    ExplosionWarning,
                    stacklevel=2
                )

            if self._renderer is not None:
                self._renderer.request_redraw()

            if self._autoStop:
                self._check_auto_stop()
        finally:
            self._busy.release()

        return True

    def _check_auto_stop(self) -> None:
        """Stop once energy has stayed at or below the threshold long enough."""
        if self.energy_mean <= self._stopThreshold:
            now = self._clock()
            if self._holdSince is None:
                self._holdSince = now
            if now - self._holdSince > STOP_HOLD:
                self.stop()
        else:
            self._holdSince = None

    # ------------------------------------------------------------------
    # Physics

    def _update_physics(self) -> None:
        # A step that faulted part way leaves its forces behind
        for node in self._nodes:
            node.v = Point(0.0, 0.0)
            node.f = Point(0.0, 0.0)

        if self._stiffness > 0:
            self._apply_springs()

        if self._repulsion > 0:
            self._apply_barnes_hut_repulsion()

        self._update_velocity_and_position(self._dt)

    def _apply_springs(self) -> None:
        for edge in self._edges:
            s = edge.target.pt.sub(edge.source.pt)
            s_mag = s.magnitude()

            r = (s if s_mag > 0 else Point.random(1, self.random)).normalize()
            q = edge.stiffness * (edge.length - s_mag)

            edge.source.apply_force(r.mul(q * -0.5))
            edge.target.apply_force(r.mul(q * 0.5))

    def _apply_barnes_hut_repulsion(self) -> None:
        # Nodes may have been moved since the last step, the tree needs
        # bounds that contain all of them
        self._graphBounds = self._compute_graph_bounds()

        bht = BarnesHutTree(
            self._graphBounds.left_top,
            self._graphBounds.right_bottom,
            self._theta,
            self.random
        )

        for node in self._nodes:
            bht.insert(node)

        for node in self._nodes:
            bht.apply_forces(node, self._repulsion)

    def _update_velocity_and_position(self, dt: float) -> None:
        size = len(self._nodes)
        if size == 0:
            self.energy_sum = 0.0
            self.energy_max = 0.0
            self.energy_mean = 0.0
            return

        e_sum = 0.0
        e_max = 0.0

        drift = self._center_drift()

        for node in self._nodes:
            node.apply_force(drift)

            if self._gravity:
                node.apply_force(node.pt.mul(-1).mul(self._repulsion / 100))

            if node.fixed:
                node.v = Point(0.0, 0.0)
            else:
                node.v = node.v.add(node.f.mul(dt)).mul(1 - self._friction)

                r = node.v.magnitude_square()
                if r > MAX_SPEED_SQUARE:
                    node.v = node.v.div(r)

            node.f = Point(0.0, 0.0)

            node.pt = node.pt.add(node.v.mul(dt))

            z = node.v.magnitude_square()
            e_sum += z
            e_max = max(z, e_max)

        self.energy_sum = e_sum
        self.energy_max = e_max
        self.energy_mean = e_sum / size

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Step %d: energy mean=%.5f max=%.5f",
                self._iterations, self.energy_mean, self.energy_max
            )

    def _center_drift(self) -> Point:
        """
        Negative mean position of all numeric nodes.

        Exploded nodes are left out of the mean, otherwise a single one
        would turn every other node's position into NaN.
        """
        pts = self.positions()
        pts = pts[np.isfinite(pts).all(axis=1)]
        if len(pts) == 0:
            return Point(0.0, 0.0)
        mean = pts.mean(axis=0)
        return Point(-mean[0], -mean[1])

    # ------------------------------------------------------------------
    # Bounds

    def _compute_graph_bounds(self) -> Bounds:
        lt = np.array([-1.0, -1.0])
        rb = np.array([1.0, 1.0])

        pts = self.positions()
        pts = pts[np.isfinite(pts).all(axis=1)]
        if len(pts) > 0:
            lt = np.minimum(lt, pts.min(axis=0))
            rb = np.maximum(rb, pts.max(axis=0))

        lt = lt - BOUNDS_PADDING
        rb = rb + BOUNDS_PADDING

        sz = rb - lt
        cent = lt + sz / 2
        d = np.maximum(sz, MIN_EXTENT) / 2

        return Bounds(Point(*(cent - d)), Point(*(cent + d)))

    def _update_view_bounds(self) -> None:
        """
        Recompute graph bounds and ease the view bounds towards them.

        Changes that would move the view by a pixel or less are skipped.
        """
        self._graphBounds = self._compute_graph_bounds()

        if self._viewBounds is None:
            self._viewBounds = self._graphBounds
            return

        v_lt = self._graphBounds.left_top.sub(self._viewBounds.left_top).mul(VIEW_SMOOTHING)
        v_rb = self._graphBounds.right_bottom.sub(self._viewBounds.right_bottom).mul(VIEW_SMOOTHING)

        a_x = v_lt.magnitude() * self._screenWidth
        a_y = v_rb.magnitude() * self._screenHeight

        if a_x > 1 or a_y > 1:
            self._viewBounds = Bounds(
                self._viewBounds.left_top.add(v_lt),
                self._viewBounds.right_bottom.add(v_rb)
            )
