"""Deterministic kinematic prediction of hazard motion."""

from __future__ import annotations

import math

from dodger_ai.config import TRACKER_MIN_TURN_ANGLE
from dodger_ai.runtime.geometry import Vec2, clamp, normalized, perpendicular
from dodger_ai.world import Hazard, WorldState


def steer_toward(direction: Vec2, target_direction: Vec2, turn_rate: float, dt: float) -> Vec2:
    """Rotate ``direction`` toward ``target_direction`` by at most ``turn_rate * dt`` radians."""
    theta = math.acos(clamp(direction.dot(target_direction), -1.0, 1.0))
    if theta <= TRACKER_MIN_TURN_ANGLE:
        return direction
    k = min(1.0, max(0.0, turn_rate * dt) / theta)
    blended = direction * (1.0 - k) + target_direction * k
    return normalized(blended, fallback=direction)


def predict_hazard_direction(hazard: Hazard, world: WorldState, dt: float, target: Vec2 | None = None) -> Vec2:
    """Heading of ``hazard`` after ``dt`` seconds. Only trackers steer."""
    direction = hazard.direction
    if not hazard.is_tracker or dt <= 0:
        return direction
    aim = target if target is not None else world.player.position
    target_direction = normalized(aim - hazard.position, fallback=direction)
    return steer_toward(direction, target_direction, hazard.effective_turn_rate, dt)


def predict_hazard_position(hazard: Hazard, world: WorldState, dt: float, target: Vec2 | None = None) -> Vec2:
    """Position of ``hazard`` after ``dt`` seconds.

    Trackers steer toward ``target`` (the player by default) with a bounded turn,
    zigzags add a sinusoidal sideways velocity, everything else moves linearly.
    """
    position = hazard.position
    if dt == 0:
        return position

    if hazard.is_tracker:
        direction = predict_hazard_direction(hazard, world, dt, target=target)
        return position + direction * (hazard.base_speed * dt)

    if hazard.kind == "zigzag":
        direction = hazard.direction
        oscillation = math.sin((hazard.t + dt) * hazard.zig_freq) * hazard.zig_amp
        velocity = direction * hazard.base_speed + perpendicular(direction) * oscillation
        return position + velocity * dt

    return position + hazard.direction * (hazard.base_speed * dt)


def time_to_collision(hazard: Hazard, world: WorldState) -> float:
    """First positive time at which ``hazard`` touches the player, or ``math.inf``.

    Uses straight-line relative motion of both bodies.
    """
    player = world.player
    rel_x = hazard.x - player.x
    rel_y = hazard.y - player.y
    vel_x = hazard.dir_x * hazard.base_speed - world.player_vel.x
    vel_y = hazard.dir_y * hazard.base_speed - world.player_vel.y
    reach = hazard.r + player.r

    c = rel_x * rel_x + rel_y * rel_y - reach * reach
    if c <= 0:
        return 0.0
    a = vel_x * vel_x + vel_y * vel_y
    if a < 1e-9:
        return math.inf
    b = 2.0 * (rel_x * vel_x + rel_y * vel_y)
    discriminant = b * b - 4.0 * a * c
    if discriminant < 0:
        return math.inf

    root = math.sqrt(discriminant)
    for candidate in ((-b - root) / (2.0 * a), (-b + root) / (2.0 * a)):
        if candidate > 0:
            return candidate
    return math.inf
