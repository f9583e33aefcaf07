"""
PyArbor: force-directed graph layout

Springs along edges, Barnes-Hut approximated repulsion between nodes.
"""

__version__ = "0.1.0"

from .point import Point
from .graph import Node, Edge
from .barneshut import BarnesHutTree, Branch, Quadrant
from .scheduler import Scheduler, ManualScheduler
from .system import ArborSystem, Bounds, EventType, ExplosionWarning, Renderer
from .geom import intersect_line_line, intersect_line_box

__all__ = [
    "ArborSystem",
    "BarnesHutTree",
    "Bounds",
    "Branch",
    "Edge",
    "EventType",
    "ExplosionWarning",
    "ManualScheduler",
    "Node",
    "Point",
    "Quadrant",
    "Renderer",
    "Scheduler",
    "intersect_line_box",
    "intersect_line_line",
]
