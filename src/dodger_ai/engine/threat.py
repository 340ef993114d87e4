"""Threat classification, direction safety and boundary pressure."""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Sequence

from dodger_ai.config import (
    ACTION_DIRECTIONS,
    COMFORT_ZONE,
    CENTER_RADIUS_RATIO,
    CRITICAL_HEALTH,
    DANGER_FALLOFF_MARGIN,
    EDGE_CENTER_ATTRACTION,
    ESCAPE_BOUNDARY_MARGIN,
    ESCAPE_HAZARD_MARGIN,
    ESCAPE_LOOKAHEAD,
    FAST_HAZARD_SPEED,
    HEADING_THREAT_RANGE,
    HIGH_RISK_BOUNDARY_MARGIN,
    HIGH_RISK_HAZARD_MARGIN,
    HIGH_RISK_PREDICTION_SECONDS,
    HIGH_RISK_THRESHOLD,
    IMMEDIATE_DANGER_MARGIN,
    IMMEDIATE_DANGER_THRESHOLD,
    LOW_HEALTH,
    PREDICTED_DANGER_MARGIN,
    PREDICTED_DANGER_SECONDS,
    PREDICTED_DANGER_THRESHOLD,
    SAFE_EDGE_MARGIN,
    SAFE_STAY_BOUNDARY_DISTANCE,
    SAFE_STAY_HAZARD_DISTANCE,
    SAFETY_BOUNDARY_MARGIN,
    SAFETY_EARLY_STOP,
    SAFETY_SIMULATION_STEPS,
    SAFETY_STEP_DISTANCE,
    SAFETY_STEP_SECONDS,
    STANDARD_HAZARD_RADIUS,
    VERY_FAST_HAZARD_SPEED,
)
from dodger_ai.engine.prediction import predict_hazard_position
from dodger_ai.runtime.geometry import Vec2, distance, inside_margin, min_edge_distance, normalized
from dodger_ai.world import Hazard, WorldState

# Non-hold directions paired with their action index.
MOVE_DIRECTIONS: tuple[tuple[int, Vec2], ...] = tuple(
    (index, Vec2(*ACTION_DIRECTIONS[index])) for index in range(1, len(ACTION_DIRECTIONS))
)


@dataclass(frozen=True)
class ThreatAssessment:
    immediate_danger: bool = False
    high_risk: bool = False
    predicted_danger: bool = False
    danger_level: float = 0.0
    predicted_danger_level: float = 0.0
    nearest_hazard: Hazard | None = None
    escape_actions: tuple[int, ...] = ()


@dataclass(frozen=True)
class BoundaryPressure:
    """Push away from nearby edges (``x``, ``y``) and a pull toward the field center."""

    x: float = 0.0
    y: float = 0.0
    intensity: float = 0.0
    center_x: float = 0.0
    center_y: float = 0.0
    center_strength: float = 0.0


@dataclass(frozen=True)
class EscapeRoute:
    direction: Vec2
    safety: float


@dataclass(frozen=True)
class SmartAvoidance:
    threat_direction: Vec2
    urgency: float
    pressure: BoundaryPressure
    escape_routes: tuple[EscapeRoute, ...] = field(default_factory=tuple)


def combined_radius(hazard: Hazard, world: WorldState) -> float:
    return hazard.r + world.player.r


def nearest_hazard(world: WorldState) -> tuple[Hazard | None, float]:
    player_pos = world.player.position
    best: Hazard | None = None
    best_distance = math.inf
    for hazard in world.hazards:
        hazard_distance = distance(hazard.position, player_pos)
        if hazard_distance < best_distance:
            best = hazard
            best_distance = hazard_distance
    return best, best_distance


def escape_actions(world: WorldState) -> tuple[int, ...]:
    """Movement actions whose point 100 px ahead stays inside the field margin and clear of hazards."""
    player_pos = world.player.position
    actions = []
    for action, direction in MOVE_DIRECTIONS:
        future = player_pos + direction * ESCAPE_LOOKAHEAD
        if not inside_margin(future, world.width, world.height, ESCAPE_BOUNDARY_MARGIN):
            continue
        if all(
            distance(future, hazard.position) >= combined_radius(hazard, world) + ESCAPE_HAZARD_MARGIN
            for hazard in world.hazards
        ):
            actions.append(action)
    return tuple(actions)


def analyze_real_time_threat(world: WorldState) -> ThreatAssessment:
    player_pos = world.player.position
    max_threat = 0.0
    predicted_max = 0.0

    for hazard in world.hazards:
        current_distance = distance(hazard.position, player_pos)
        reach = combined_radius(hazard, world)

        if current_distance < reach + IMMEDIATE_DANGER_MARGIN:
            max_threat = max(max_threat, 1.0)
        elif current_distance < reach + DANGER_FALLOFF_MARGIN:
            max_threat = max(max_threat, math.exp(-(current_distance - reach) / 40))

        future = predict_hazard_position(hazard, world, PREDICTED_DANGER_SECONDS)
        predicted_distance = distance(future, player_pos)
        if predicted_distance < reach + PREDICTED_DANGER_MARGIN:
            predicted_max = max(predicted_max, math.exp(-(predicted_distance - reach) / 35))

        if hazard.base_speed > 0 and 0 < current_distance < HEADING_THREAT_RANGE:
            heading = (hazard.dir_x * (player_pos.x - hazard.x) + hazard.dir_y * (player_pos.y - hazard.y)) / current_distance
            if heading > 0.5:
                max_threat = max(max_threat, 0.7 * heading)

    nearest, _ = nearest_hazard(world)
    return ThreatAssessment(
        immediate_danger=max_threat > IMMEDIATE_DANGER_THRESHOLD,
        high_risk=max_threat > HIGH_RISK_THRESHOLD,
        predicted_danger=predicted_max > PREDICTED_DANGER_THRESHOLD,
        danger_level=max_threat,
        predicted_danger_level=predicted_max,
        nearest_hazard=nearest,
        escape_actions=escape_actions(world),
    )


def _simulated_hazard_position(hazard: Hazard, world: WorldState, seconds: float, player_future: Vec2) -> Vec2:
    if hazard.is_tracker:
        aim = normalized(player_future - hazard.position)
        if aim.x == 0.0 and aim.y == 0.0:
            return hazard.position
        return hazard.position + aim * (hazard.base_speed * seconds)
    return predict_hazard_position(hazard, world, seconds)


def evaluate_direction_safety(world: WorldState, direction: Vec2 | Sequence[float]) -> float:
    """Score in [0.01, 1] for walking along ``direction`` over eight 30 px steps."""
    direction = direction if isinstance(direction, Vec2) else Vec2(float(direction[0]), float(direction[1]))
    player = world.player
    player_pos = player.position
    safety = 1.0

    for step in range(1, SAFETY_SIMULATION_STEPS + 1):
        future = player_pos + direction * (SAFETY_STEP_DISTANCE * step)
        if not inside_margin(future, world.width, world.height, SAFETY_BOUNDARY_MARGIN):
            safety *= 0.3
            break

        step_seconds = step * SAFETY_STEP_SECONDS
        for hazard in world.hazards:
            hazard_future = _simulated_hazard_position(hazard, world, step_seconds, future)
            future_distance = distance(hazard_future, future)

            speed_bonus = 15 if hazard.base_speed > FAST_HAZARD_SPEED else 0
            size_bonus = max(0.0, hazard.r - STANDARD_HAZARD_RADIUS) * 1.2
            min_safe = hazard.r + player.r + 35 + speed_bonus + size_bonus

            if future_distance < min_safe:
                danger = (min_safe - future_distance) / min_safe
                risk_multiplier = 1.5 if hazard.is_tracker else 1.0
                if hazard.base_speed > VERY_FAST_HAZARD_SPEED:
                    risk_multiplier *= 1.3
                time_weight = max(0.5, 1.0 - (step - 1) * 0.1)
                safety *= max(0.05, 1 - danger * risk_multiplier * time_weight * 0.8)
            elif future_distance < min_safe * 2.0:
                risk = (min_safe * 2.0 - future_distance) / min_safe
                safety *= max(0.4, 1 - risk * 0.3)

        if safety < SAFETY_EARLY_STOP:
            break

    return max(0.01, safety)


def predicted_safety(world: WorldState, direction: Vec2, seconds: float = HIGH_RISK_PREDICTION_SECONDS) -> float | None:
    """Safety of the point 100 px along ``direction`` against hazards ``seconds`` ahead.

    Returns None when that point falls inside the boundary margin.
    """
    player_pos = world.player.position
    future = player_pos + direction * ESCAPE_LOOKAHEAD
    if not inside_margin(future, world.width, world.height, HIGH_RISK_BOUNDARY_MARGIN):
        return None
    safety = 1.0
    for hazard in world.hazards:
        predicted = predict_hazard_position(hazard, world, seconds)
        hazard_distance = distance(future, predicted)
        safe_distance = combined_radius(hazard, world) + HIGH_RISK_HAZARD_MARGIN
        if hazard_distance < safe_distance:
            safety *= max(0.1, hazard_distance / safe_distance)
    return safety


def boundary_pressure(world: WorldState, center_bias: float) -> BoundaryPressure:
    player = world.player
    left, right, top, bottom = player.x, world.width - player.x, player.y, world.height - player.y
    boost = 1 + center_bias * 0.5

    pressure_x = 0.0
    pressure_y = 0.0
    intensity = 0.0
    if left < COMFORT_ZONE:
        level = ((COMFORT_ZONE - left) / COMFORT_ZONE) ** 1.5
        pressure_x = level * boost
        intensity = max(intensity, level)
    elif right < COMFORT_ZONE:
        level = ((COMFORT_ZONE - right) / COMFORT_ZONE) ** 1.5
        pressure_x = -level * boost
        intensity = max(intensity, level)

    if top < COMFORT_ZONE:
        level = ((COMFORT_ZONE - top) / COMFORT_ZONE) ** 1.5
        pressure_y = level * boost
        intensity = max(intensity, level)
    elif bottom < COMFORT_ZONE:
        level = ((COMFORT_ZONE - bottom) / COMFORT_ZONE) ** 1.5
        pressure_y = -level * boost
        intensity = max(intensity, level)

    to_center = world.center - player.position
    distance_to_center = math.hypot(to_center.x, to_center.y)
    center_radius = min(world.width, world.height) * CENTER_RADIUS_RATIO
    strength = 0.0
    if distance_to_center > center_radius and center_radius > 0:
        strength = min(1.0, (distance_to_center - center_radius) / center_radius) ** 1.2
    if min(left, right, top, bottom) < SAFE_EDGE_MARGIN:
        strength = max(strength, EDGE_CENTER_ATTRACTION)

    pull = normalized(to_center) if strength > 0 else Vec2(0.0, 0.0)
    return BoundaryPressure(
        x=pressure_x,
        y=pressure_y,
        intensity=intensity,
        center_x=pull.x,
        center_y=pull.y,
        center_strength=strength,
    )


def _points_toward_boundary(world: WorldState, point: Vec2, margin: float = 100.0) -> bool:
    return not inside_margin(point, world.width, world.height, margin)


def is_forced_toward_boundary(world: WorldState, direction: Vec2) -> bool:
    """True when heading toward an edge is the only reasonable option left."""
    player = world.player
    player_pos = player.position
    if not _points_toward_boundary(world, player_pos + direction * 100):
        return False

    if _points_toward_boundary(world, player_pos, margin=120):
        urgent = 0
        weight = 0.0
        for hazard in world.hazards:
            hazard_distance = distance(hazard.position, player_pos)
            critical = combined_radius(hazard, world) + 40
            if hazard_distance < critical:
                urgent += 1
                weight += (critical - hazard_distance) / critical
        return urgent >= 2 and weight > 1.5

    safe_alternatives = 0
    moderate_alternatives = 0
    for _, alternative in MOVE_DIRECTIONS:
        if abs(alternative.x - direction.x) < 0.1 and abs(alternative.y - direction.y) < 0.1:
            continue
        if _points_toward_boundary(world, player_pos + alternative * 100):
            continue
        check = player_pos + alternative * 80
        danger = 0.0
        for hazard in world.hazards:
            safe_distance = combined_radius(hazard, world) + 50
            check_distance = distance(hazard.position, check)
            if check_distance < safe_distance:
                danger += (safe_distance - check_distance) / safe_distance
        if danger == 0:
            safe_alternatives += 1
        elif danger < 0.5:
            moderate_alternatives += 1
    return safe_alternatives == 0 and moderate_alternatives <= 1


def penalize_unforced_boundary(world: WorldState, direction: Vec2, lookahead: float = 80.0) -> bool:
    """True when ``direction`` heads for an edge although it does not have to."""
    if is_forced_toward_boundary(world, direction):
        return False
    return _points_toward_boundary(world, world.player.position + direction * lookahead)


def _escape_routes(world: WorldState, threat_direction: Vec2, pressure: BoundaryPressure) -> tuple[EscapeRoute, ...]:
    candidates = [
        threat_direction * -1.0,
        Vec2(-threat_direction.y, threat_direction.x),
        Vec2(threat_direction.y, -threat_direction.x),
    ]
    if pressure.intensity > 0.3:
        candidates.append(Vec2(pressure.x, pressure.y))

    routes = []
    for candidate in candidates:
        safety = evaluate_direction_safety(world, candidate)
        if penalize_unforced_boundary(world, candidate):
            safety *= 0.2
        routes.append(EscapeRoute(direction=candidate, safety=safety))
    return tuple(sorted(routes, key=lambda route: route.safety, reverse=True))


def smart_avoidance(world: WorldState) -> SmartAvoidance:
    """Weighted threat direction, its urgency, and escape routes ranked by direction safety."""
    player = world.player
    player_pos = player.position
    threat_x = 0.0
    threat_y = 0.0
    total_weight = 0.0
    urgency = 0.0

    for hazard in world.hazards:
        hazard_distance = distance(hazard.position, player_pos)
        if not 0 < hazard_distance < 300:
            continue
        future = predict_hazard_position(hazard, world, PREDICTED_DANGER_SECONDS)
        threat_distance = min(hazard_distance, distance(future, player_pos))

        weight = math.exp(-threat_distance / (60 + hazard.r * 0.5))
        weight *= max(0.5, 1 + (hazard.r - STANDARD_HAZARD_RADIUS) / 30)
        if hazard.is_tracker:
            weight *= 2.5
        if hazard.base_speed > FAST_HAZARD_SPEED:
            weight *= 1.5

        threat_x += (hazard.x - player.x) / hazard_distance * weight
        threat_y += (hazard.y - player.y) / hazard_distance * weight
        total_weight += weight

        min_safe = combined_radius(hazard, world) + 40 + 20
        urgency = max(urgency, max(0.0, (min_safe - threat_distance) / min_safe))

    if total_weight > 0:
        threat_x /= total_weight
        threat_y /= total_weight

    threat_direction = Vec2(threat_x, threat_y)
    pressure = boundary_pressure(world, 1.0)
    return SmartAvoidance(
        threat_direction=threat_direction,
        urgency=urgency,
        pressure=pressure,
        escape_routes=_escape_routes(world, threat_direction, pressure),
    )


def avoidance_score(direction: Vec2, avoidance: SmartAvoidance) -> float:
    best = 0.0
    for route in avoidance.escape_routes:
        alignment = direction.dot(route.direction)
        if alignment > 0:
            best = max(best, alignment * route.safety * avoidance.urgency)
    return best


def is_safe_to_stay(world: WorldState) -> bool:
    """Holding still is fine: no hazard within 180 px, no edge within 120 px, health not low."""
    _, nearest_distance = nearest_hazard(world)
    edge = min_edge_distance(world.player.position, world.width, world.height)
    return (
        nearest_distance > SAFE_STAY_HAZARD_DISTANCE
        and edge > SAFE_STAY_BOUNDARY_DISTANCE
        and world.health_ratio > LOW_HEALTH
    )


def health_tier(world: WorldState) -> tuple[bool, bool]:
    """(low, critical) health flags."""
    ratio = world.health_ratio
    return ratio <= LOW_HEALTH, ratio <= CRITICAL_HEALTH


def global_threat_level(world: WorldState, radius: float = 200.0) -> float:
    """Mean closeness of hazards within ``radius`` px; 0 with none in range."""
    player_pos = world.player.position
    total = 0.0
    count = 0
    for hazard in world.hazards:
        hazard_distance = distance(hazard.position, player_pos)
        if hazard_distance < radius:
            total += 1 - hazard_distance / radius
            count += 1
    return total / count if count else 0.0


def position_is_safe(world: WorldState, point: Vec2, boundary_margin: float = 50.0, hazard_margin: float = 70.0) -> bool:
    if not inside_margin(point, world.width, world.height, boundary_margin):
        return False
    return all(
        distance(point, hazard.position) >= combined_radius(hazard, world) + hazard_margin for hazard in world.hazards
    )


def path_risk(world: WorldState, start: Vec2, direction: Vec2, length: float, steps: int = 10) -> float:
    """Mean per-step proximity risk along a straight path of ``length`` px."""
    total = 0.0
    for step in range(1, steps + 1):
        check = start + direction * (length * step / steps)
        step_risk = 0.0
        for hazard in world.hazards:
            radius = hazard.r + 100
            hazard_distance = distance(check, hazard.position)
            if hazard_distance < radius:
                step_risk = max(step_risk, 1 - hazard_distance / radius)
        total += step_risk
    return total / steps


def path_is_safe(world: WorldState, start: Vec2, end: Vec2, steps: int = 10) -> bool:
    for index in range(steps + 1):
        t = index / steps
        check = start + (end - start) * t
        if not inside_margin(check, world.width, world.height, 30):
            return False
        for hazard in world.hazards:
            if distance(check, hazard.position) < combined_radius(hazard, world) + 60:
                return False
    return True
