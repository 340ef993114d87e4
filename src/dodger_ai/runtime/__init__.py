"""Runtime helpers for Dodger AI."""

from .geometry import (
    Vec2,
    clamp,
    direction_to,
    distance,
    edge_distances,
    inside_margin,
    length,
    length_squared,
    min_edge_distance,
    normalized,
    perpendicular,
    rotate,
)
from .helpers import get_torch_device

__all__ = [
    "Vec2",
    "clamp",
    "direction_to",
    "distance",
    "edge_distances",
    "inside_margin",
    "length",
    "length_squared",
    "min_edge_distance",
    "normalized",
    "perpendicular",
    "rotate",
    "get_torch_device",
]
