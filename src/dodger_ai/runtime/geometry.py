"""Generic 2D geometry helpers for top-left field coordinates."""

from __future__ import annotations

import math

from pyglet.math import Vec2

EPSILON = 1e-9


def length(vector: Vec2) -> float:
    return math.hypot(vector.x, vector.y)


def length_squared(vector: Vec2) -> float:
    return vector.dot(vector)


def distance(point_a: Vec2, point_b: Vec2) -> float:
    return math.hypot(point_a.x - point_b.x, point_a.y - point_b.y)


def normalized(vector: Vec2, fallback: Vec2 | None = None) -> Vec2:
    """Unit vector along ``vector``; ``fallback`` (or zero) for degenerate input."""
    magnitude = length(vector)
    if magnitude < EPSILON:
        return fallback if fallback is not None else Vec2(0.0, 0.0)
    return Vec2(vector.x / magnitude, vector.y / magnitude)


def direction_to(origin: Vec2, target: Vec2) -> Vec2:
    return normalized(target - origin)


def perpendicular(vector: Vec2) -> Vec2:
    return Vec2(-vector.y, vector.x)


def rotate(vector: Vec2, angle_radians: float) -> Vec2:
    cos_a = math.cos(angle_radians)
    sin_a = math.sin(angle_radians)
    return Vec2(vector.x * cos_a - vector.y * sin_a, vector.x * sin_a + vector.y * cos_a)


def clamp(value: float, min_value: float = 0.0, max_value: float = 1.0) -> float:
    return max(min_value, min(max_value, value))


def edge_distances(point: Vec2, width: float, height: float) -> tuple[float, float, float, float]:
    """Distances to the left, right, top and bottom field edges."""
    return point.x, width - point.x, point.y, height - point.y


def min_edge_distance(point: Vec2, width: float, height: float) -> float:
    return min(edge_distances(point, width, height))


def inside_margin(point: Vec2, width: float, height: float, margin: float) -> bool:
    return margin <= point.x <= width - margin and margin <= point.y <= height - margin
