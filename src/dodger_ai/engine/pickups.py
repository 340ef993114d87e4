"""Pickup opportunity scoring and pursuit strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
import math

from dodger_ai.config import (
    CRITICAL_HEALTH,
    LOW_HEALTH,
    PICKUP_PATH_STEPS,
    PICKUP_REACH_DISTANCE,
    PLAYER_SPEED,
)
from dodger_ai.engine.prediction import predict_hazard_position
from dodger_ai.engine.threat import (
    MOVE_DIRECTIONS,
    ThreatAssessment,
    combined_radius,
    global_threat_level,
    health_tier,
    path_is_safe,
    path_risk,
    position_is_safe,
)
from dodger_ai.runtime.geometry import Vec2, distance, inside_margin, normalized, rotate
from dodger_ai.world import Pickup, WorldState

STRATEGY_EMERGENCY_HEALTH = "emergency_health"
STRATEGY_SAFE_OPPORTUNITY = "safe_opportunity"
STRATEGY_RISKY_DASH = "risky_dash"
STRATEGY_DEFENSIVE_PREPARATION = "defensive_preparation"
STRATEGY_CALCULATED_RISK = "calculated_risk"
STRATEGY_NONE = "none"


@dataclass(frozen=True)
class PathSafety:
    score: float
    critical_threats: int
    alternative_paths: int


@dataclass(frozen=True)
class PickupOpportunity:
    pickup: Pickup | None = None
    score: float = 0.0
    strategy: str = STRATEGY_NONE
    urgency: float = 0.0
    should_pursue: bool = False
    safe_path: bool = False
    estimated_time: float = 0.0
    risk_level: float = 0.0


@dataclass(frozen=True)
class PickupSeek:
    should_seek: bool = False
    direction: Vec2 = field(default_factory=lambda: Vec2(0.0, 0.0))
    urgency: float = 0.0


def distance_score(pickup_distance: float) -> float:
    if pickup_distance < 50:
        return 1.0
    if pickup_distance < 100:
        return 0.9
    if pickup_distance < 200:
        return 0.7
    if pickup_distance < 300:
        return 0.4
    return max(0.1, 1 / (1 + pickup_distance / 150))


def pickup_type_value(pickup: Pickup, health: float, world: WorldState) -> float:
    """Multiplier for a pickup's kind given current health and buffs."""
    if pickup.is_health:
        if health <= 0.2:
            return 3.0
        if health <= 0.4:
            return 2.5
        if health <= 0.6:
            return 1.8
        if health <= 0.8:
            return 1.2
        return 0.6
    if pickup.type == "shield":
        shield = world.player.shield
        if shield <= 0:
            return 2.2 if health <= 0.5 else 1.8
        return 1.3 if shield < 50 else 0.8
    if pickup.type == "speed":
        speed_ratio = world.player.speed / PLAYER_SPEED if world.player.speed else 1.0
        if speed_ratio < 1.2:
            return 1.5
        if speed_ratio < 1.5:
            return 1.2
        return 0.9
    if pickup.type == "points":
        return 0.7
    if pickup.type == "power":
        return 1.4
    return 1.0


def alternative_path_count(world: WorldState, pickup: Pickup) -> int:
    player_pos = world.player.position
    offset = pickup.position - player_pos
    length = math.hypot(offset.x, offset.y)
    if length == 0:
        return 0
    side = Vec2(-offset.y / length, offset.x / length) * 50
    count = 0
    for start in (player_pos + side, player_pos - side):
        if path_is_safe(world, start, pickup.position):
            count += 1
    return count


def path_safety(world: WorldState, pickup: Pickup) -> PathSafety:
    """Walk the straight line to ``pickup`` over one second against predicted hazards."""
    player_pos = world.player.position
    score = 1.0
    critical = 0
    for step in range(1, PICKUP_PATH_STEPS + 1):
        progress = step / PICKUP_PATH_STEPS
        check = player_pos + (pickup.position - player_pos) * progress
        step_danger = 0.0
        for hazard in world.hazards:
            predicted = predict_hazard_position(hazard, world, progress)
            danger_radius = combined_radius(hazard, world) + 80
            hazard_distance = distance(check, predicted)
            if hazard_distance < danger_radius:
                intensity = 1 - hazard_distance / danger_radius
                step_danger = max(step_danger, intensity)
                if intensity > 0.7:
                    critical += 1
        score *= 1 - step_danger * 0.8
    return PathSafety(
        score=max(0.0, score),
        critical_threats=critical,
        alternative_paths=alternative_path_count(world, pickup),
    )


def threat_trend(world: WorldState, pickup: Pickup) -> float:
    """Negative when hazards near ``pickup`` are heading toward it."""
    total = 0.0
    count = 0
    for hazard in world.hazards:
        hazard_distance = distance(pickup.position, hazard.position)
        if 0 < hazard_distance < 300:
            total += (
                (pickup.x - hazard.x) * hazard.dir_x + (pickup.y - hazard.y) * hazard.dir_y
            ) / hazard_distance
            count += 1
    return -total / count if count else 0.0


def pickup_timing(world: WorldState, pickup: Pickup, threat_level: float) -> float:
    if threat_level > 0.8:
        return 0.4
    if threat_level > 0.6:
        return 0.7
    if threat_level < 0.3:
        return 1.2
    center = world.center
    if distance(world.player.position, center) < 150 and distance(pickup.position, center) > 200:
        return 0.6
    return max(0.3, min(1.5, 1.0 + threat_trend(world, pickup)))


def pickup_competition(world: WorldState, pickup: Pickup) -> float:
    factor = 1.0
    for hazard in world.hazards:
        hazard_distance = distance(pickup.position, hazard.position)
        if 0 < hazard_distance < 200:
            alignment = (
                (pickup.x - hazard.x) * hazard.dir_x + (pickup.y - hazard.y) * hazard.dir_y
            ) / hazard_distance
            if alignment > 0.5:
                factor *= 0.7
    return factor


def escape_routes_from(world: WorldState, point: Vec2) -> int:
    routes = 0
    for _, direction in MOVE_DIRECTIONS:
        check = point + direction * 100
        if not inside_margin(check, world.width, world.height, 50):
            continue
        if all(distance(check, hazard.position) >= hazard.r + 80 for hazard in world.hazards):
            routes += 1
    return routes


def nearby_pickups(world: WorldState, pickup: Pickup, radius: float) -> list[Pickup]:
    return [
        other
        for other in world.pickups
        if other is not pickup and distance(other.position, pickup.position) <= radius
    ]


def strategic_value(world: WorldState, pickup: Pickup) -> float:
    max_center_distance = math.hypot(world.width / 2, world.height / 2) or 1.0
    center_ratio = distance(pickup.position, world.center) / max_center_distance
    value = 1.2 - center_ratio * 0.4
    value *= 0.8 + escape_routes_from(world, pickup.position) * 0.1
    if nearby_pickups(world, pickup, 150):
        value *= 1.3
    return value


def pickup_strategy(pickup: Pickup, health: float, safety: PathSafety, threat_level: float) -> str:
    if health <= CRITICAL_HEALTH and pickup.is_health:
        return STRATEGY_EMERGENCY_HEALTH
    if safety.score > 0.8 and threat_level < 0.4:
        return STRATEGY_SAFE_OPPORTUNITY
    if safety.critical_threats > 0:
        return STRATEGY_RISKY_DASH
    if pickup.type == "shield" and health > LOW_HEALTH:
        return STRATEGY_DEFENSIVE_PREPARATION
    return STRATEGY_CALCULATED_RISK


def should_pursue(pickup: Pickup | None, score: float, health: float, threat_level: float) -> bool:
    """Score threshold by health tier first, then by global threat tier."""
    if pickup is None:
        return False
    if health <= 0.33 and pickup.is_health and score > 0.2:
        return True
    if health <= LOW_HEALTH and pickup.is_health and score > 0.3:
        return True
    if threat_level > 0.7:
        return score > 1.0 and (pickup.is_health or pickup.type == "shield")
    if threat_level > 0.4:
        return score > 0.6
    if threat_level < 0.3:
        return score > 0.3
    return score > 0.5


def pickup_urgency(pickup: Pickup | None, health: float, score: float, threat_level: float) -> float:
    if pickup is None:
        return 0.0
    if pickup.is_health:
        if health <= 0.2:
            urgency = 1.0
        elif health <= 0.4:
            urgency = 0.8
        elif health <= 0.6:
            urgency = 0.5
        else:
            urgency = 0.2
    else:
        urgency = min(0.7, score * 0.8)
    urgency *= 1 - threat_level * 0.3
    return max(0.0, min(1.0, urgency))


def analyze_pickup_opportunity(world: WorldState) -> PickupOpportunity:
    """Score every pickup and return the best one with its pursuit strategy."""
    if not world.pickups:
        return PickupOpportunity()

    health = world.health_ratio
    threat_level = global_threat_level(world)
    player_pos = world.player.position

    best: Pickup | None = None
    best_score = 0.0
    best_strategy = STRATEGY_NONE
    best_risk = 0.0
    best_safety: PathSafety | None = None
    for pickup in world.pickups:
        safety = path_safety(world, pickup)
        score = distance_score(distance(pickup.position, player_pos))
        score *= pickup_type_value(pickup, health, world)
        score *= safety.score
        score *= pickup_timing(world, pickup, threat_level)
        score *= pickup_competition(world, pickup)
        score *= strategic_value(world, pickup)
        if score > best_score:
            best = pickup
            best_score = score
            best_strategy = pickup_strategy(pickup, health, safety, threat_level)
            best_risk = 1 - safety.score
            best_safety = safety

    if best is None:
        return PickupOpportunity()

    speed = world.player.speed or 1.0
    return PickupOpportunity(
        pickup=best,
        score=best_score,
        strategy=best_strategy,
        urgency=pickup_urgency(best, health, best_score, threat_level),
        should_pursue=should_pursue(best, best_score, health, threat_level),
        safe_path=best_safety is not None and best_safety.score > 0.6,
        estimated_time=distance(best.position, player_pos) / speed,
        risk_level=best_risk,
    )


def alternative_pickup_paths(world: WorldState, pickup: Pickup) -> list[tuple[Vec2, float]]:
    """Approach directions to points 60 px around ``pickup``, safest first."""
    player_pos = world.player.position
    paths = []
    for index in range(8):
        angle = index * math.pi / 4
        approach = Vec2(pickup.x + math.cos(angle) * 60, pickup.y + math.sin(angle) * 60)
        if not inside_margin(approach, world.width, world.height, 50):
            continue
        length = distance(approach, player_pos)
        if length > 0:
            direction = normalized(approach - player_pos)
            paths.append((direction, 1 - path_risk(world, player_pos, direction, length)))
    return sorted(paths, key=lambda item: item[1], reverse=True)


def safe_corridor(world: WorldState, start: Vec2, end: Vec2, width: float = 80.0) -> Vec2 | None:
    offset = end - start
    length = math.hypot(offset.x, offset.y)
    if length == 0:
        return None
    direction = Vec2(offset.x / length, offset.y / length)
    side = Vec2(-direction.y, direction.x) * (width / 2)
    for index in range(1, 5):
        check = start + offset * (index / 5)
        for hazard in world.hazards:
            if distance(check + side, hazard.position) < hazard.r + 30:
                return None
            if distance(check - side, hazard.position) < hazard.r + 30:
                return None
    return direction


def safer_approach_position(world: WorldState, pickup: Pickup) -> Vec2 | None:
    best: Vec2 | None = None
    best_safety = -1.0
    for index in range(12):
        angle = index * math.pi / 6
        candidate = Vec2(pickup.x + math.cos(angle) * 120, pickup.y + math.sin(angle) * 120)
        if not inside_margin(candidate, world.width, world.height, 60):
            continue
        safety = 1.0
        for hazard in world.hazards:
            safe_distance = hazard.r + 80
            hazard_distance = distance(candidate, hazard.position)
            if hazard_distance < safe_distance:
                safety *= hazard_distance / safe_distance
        if safety > best_safety:
            best = candidate
            best_safety = safety
    if best is None or best_safety <= 0.6:
        return None
    return best


def detour_direction(world: WorldState) -> Vec2 | None:
    player_pos = world.player.position
    for angle in (math.pi / 3, -math.pi / 3, math.pi / 2, -math.pi / 2):
        direction = Vec2(math.cos(angle), math.sin(angle))
        if position_is_safe(world, player_pos + direction * 100):
            return direction
    return None


def _emergency_direction(world: WorldState, toward: Vec2) -> Vec2:
    player_pos = world.player.position
    adjusted = toward
    for hazard in world.hazards:
        hazard_distance = distance(hazard.position, player_pos)
        if 0 < hazard_distance < 120:
            away = normalized(player_pos - hazard.position)
            adjusted = toward * 0.7 + away * 0.3
    return adjusted


def _safe_opportunity_direction(world: WorldState, pickup: Pickup, toward: Vec2) -> Vec2:
    paths = alternative_pickup_paths(world, pickup)
    if paths:
        return paths[0][0]
    return toward


def _risky_dash_direction(world: WorldState, pickup: Pickup, toward: Vec2) -> Vec2:
    player_pos = world.player.position
    corridor = safe_corridor(world, player_pos, pickup.position)
    if corridor is not None:
        return corridor
    best = toward
    lowest = math.inf
    for step in range(-2, 3):
        candidate = rotate(toward, step * math.pi / 8)
        risk = path_risk(world, player_pos, candidate, 100)
        if risk < lowest:
            lowest = risk
            best = candidate
    return best


def _defensive_direction(world: WorldState, pickup: Pickup, toward: Vec2) -> Vec2:
    player_pos = world.player.position
    if escape_routes_from(world, pickup.position) < 2:
        approach = safer_approach_position(world, pickup)
        if approach is not None and distance(approach, player_pos) > 0:
            return normalized(approach - player_pos)
    return toward * 0.8


def _calculated_risk_direction(world: WorldState, toward: Vec2) -> Vec2 | None:
    if path_risk(world, world.player.position, toward, 80) > 0.7:
        return detour_direction(world)
    return toward


def pursuit_direction(world: WorldState, opportunity: PickupOpportunity, threat: ThreatAssessment) -> Vec2 | None:
    """Direction to move for the chosen pursuit strategy; None means hold position."""
    pickup = opportunity.pickup
    if pickup is None:
        return None
    offset = pickup.position - world.player.position
    pickup_distance = math.hypot(offset.x, offset.y)
    if pickup_distance < PICKUP_REACH_DISTANCE:
        return None
    toward = Vec2(offset.x / pickup_distance, offset.y / pickup_distance)

    strategy = opportunity.strategy
    if strategy == STRATEGY_EMERGENCY_HEALTH:
        return _emergency_direction(world, toward)
    if strategy == STRATEGY_SAFE_OPPORTUNITY:
        return _safe_opportunity_direction(world, pickup, toward)
    if strategy == STRATEGY_RISKY_DASH:
        return _risky_dash_direction(world, pickup, toward)
    if strategy == STRATEGY_DEFENSIVE_PREPARATION:
        return _defensive_direction(world, pickup, toward)
    return _calculated_risk_direction(world, toward)


def simple_pickup_safety(world: WorldState, pickup: Pickup) -> float:
    safety = 1.0
    for hazard in world.hazards:
        threat_radius = hazard.r + 30
        hazard_distance = distance(hazard.position, pickup.position)
        if hazard_distance < threat_radius:
            safety *= 0.3
        elif hazard_distance < threat_radius * 2:
            safety *= 0.7
    return max(0.1, safety)


def nearest_safe_pickup(world: WorldState) -> Pickup | None:
    player_pos = world.player.position
    candidates = [pickup for pickup in world.pickups if simple_pickup_safety(world, pickup) > 0.4]
    if not candidates:
        return None
    return min(candidates, key=lambda pickup: distance(pickup.position, player_pos))


def seek_safety(world: WorldState, pickup: Pickup) -> float:
    """Safety of going for ``pickup`` now; health pickups tolerate more risk."""
    player = world.player
    player_pos = player.position
    health_pickup = pickup.is_health
    leniency = 0.75 if health_pickup else 1.0
    player_time = distance(player_pos, pickup.position) / max(player.speed, 1.0)
    safety = 1.0

    for hazard in world.hazards:
        hazard_distance = distance(hazard.position, pickup.position)
        threat_radius = (hazard.r + (60 if health_pickup else 70)) * leniency
        if hazard_distance < threat_radius:
            hazard_time = hazard_distance / max(hazard.base_speed, 0.1)
            if hazard_time < player_time * (1.2 if health_pickup else 1.5):
                threat = 1 - hazard_distance / threat_radius
                safety *= 1 - threat * (0.7 if health_pickup else 0.9)

    path_steps = 8
    step_offset = (pickup.position - player_pos) * (1 / path_steps)
    for step in range(1, path_steps + 1):
        check = player_pos + step_offset * step
        for hazard in world.hazards:
            future = predict_hazard_position(hazard, world, step * 0.3)
            min_safe = (combined_radius(hazard, world) + 40) * (0.8 if health_pickup else 1.0)
            future_distance = distance(future, check)
            if future_distance < min_safe:
                safety *= 0.6 if health_pickup else 0.4
            elif future_distance < min_safe * 1.8:
                safety *= 0.85 if health_pickup else 0.7

    return max(0.08 if health_pickup else 0.05, safety)


def pickup_seek(world: WorldState) -> PickupSeek:
    """Pickup pull used by the heuristic bias vector."""
    if not world.pickups:
        return PickupSeek()
    low, critical = health_tier(world)
    player_pos = world.player.position

    best: Pickup | None = None
    best_score = -1.0
    for pickup in world.pickups:
        pickup_distance = distance(pickup.position, player_pos)
        safety = seek_safety(world, pickup)
        urgency = 1.0 - pickup.life_ratio
        score = safety / (1 + pickup_distance / 180) + urgency * 1.5
        if pickup.is_health:
            score *= 8.0 if critical else (6.0 if low else 3.0)
            score += max(0.0, (200 - pickup_distance) / 200) * 2.0
            if urgency > 0.7:
                score *= 2.5
            threshold = 0.08 if critical else (0.15 if low else 0.25)
        else:
            score *= 3.0 if critical else (2.5 if low else 1.2)
            threshold = 0.15 if critical else (0.25 if low else 0.35)
        if safety > threshold and score > best_score:
            best = pickup
            best_score = score

    if best is None:
        return PickupSeek()
    if best.is_health:
        seek_threshold = 0.2 if critical else (0.3 if low else 0.5)
    else:
        seek_threshold = 0.4 if critical else (0.6 if low else 1.0)
    best_distance = distance(best.position, player_pos)
    if best_score <= seek_threshold or best_distance <= 0:
        return PickupSeek()
    return PickupSeek(
        should_seek=True,
        direction=normalized(best.position - player_pos),
        urgency=min(4.0, best_score),
    )
