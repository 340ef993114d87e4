"""Fixed-layout feature vector built from a world snapshot."""

from __future__ import annotations

import math
from typing import Sequence

from dodger_ai.config import (
    BASE_BLOCK_SIZE,
    FEATURE_PREDICTION_SECONDS,
    FEATURE_SIZE,
    GLOBAL_THREAT_BLOCK_SIZE,
    HAZARD_BLOCK_OFFSET,
    HAZARD_FEATURES,
    MAX_TRACKED_HAZARDS,
    MAX_TRACKED_PICKUPS,
    NUM_ACTIONS,
    PICKUP_FEATURES,
    PREDICTION_HORIZONS,
    SAFE_EDGE_MARGIN,
)
from dodger_ai.engine.prediction import predict_hazard_position, time_to_collision
from dodger_ai.runtime.geometry import clamp, distance
from dodger_ai.world import WorldState

GLOBAL_THREAT_OFFSET = HAZARD_BLOCK_OFFSET + MAX_TRACKED_HAZARDS * HAZARD_FEATURES + MAX_TRACKED_PICKUPS * PICKUP_FEATURES
SAFETY_OFFSET = GLOBAL_THREAT_OFFSET + GLOBAL_THREAT_BLOCK_SIZE
# Index of the 0.5 s total predicted threat, used for the threat trend.
NEAR_TERM_THREAT_INDEX = BASE_BLOCK_SIZE

CARDINAL_DIRECTIONS = ((-1, 0), (1, 0), (0, -1), (0, 1))
EIGHT_DIRECTIONS = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))


def extract_features(
    world: WorldState,
    difficulty: float,
    last_action: int = 0,
    last_features: Sequence[float] | None = None,
) -> list[float]:
    """Return exactly ``FEATURE_SIZE`` finite floats describing ``world``."""
    features: list[float] = []
    features.extend(_base_features(world, difficulty))
    features.extend(_predictive_features(world))
    features.extend(_center_features(world))
    features.extend(hazard_features(world))
    features.extend(pickup_features(world))
    features.extend(global_threat_features(world))
    features.extend(safety_features(world, features, last_action, last_features))

    if len(features) < FEATURE_SIZE:
        features.extend([0.0] * (FEATURE_SIZE - len(features)))
    return [value if math.isfinite(value) else 0.0 for value in features[:FEATURE_SIZE]]


def _safe_ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def _base_features(world: WorldState, difficulty: float) -> list[float]:
    player = world.player
    velocity = world.player_vel
    return [
        _safe_ratio(player.x, world.width),
        _safe_ratio(player.y, world.height),
        _safe_ratio(math.hypot(velocity.x, velocity.y), player.speed),
        _safe_ratio(velocity.x, player.speed),
        _safe_ratio(velocity.y, player.speed),
        min(difficulty, 5) / 5,
        world.elapsed / 200,
        min(_safe_ratio(world.lives, world.max_lives), 1.0),
    ]


def _predictive_features(world: WorldState) -> list[float]:
    player = world.player
    player_pos = player.position
    to_center = world.center - player_pos
    to_center_dist = math.hypot(to_center.x, to_center.y)
    hazard_count = max(1, len(world.hazards))

    features: list[float] = []
    for horizon in PREDICTION_HORIZONS:
        total_threat = 0.0
        critical = 0
        center_pushing = 0.0
        for hazard in world.hazards:
            predicted = predict_hazard_position(hazard, world, horizon)
            threat_distance = distance(predicted, player_pos)
            safe_distance = hazard.r + player.r + 50
            band = safe_distance * 2.5
            if threat_distance >= band:
                continue
            intensity = max(0.0, (band - threat_distance) / band)
            total_threat += intensity
            if threat_distance < safe_distance * 1.2:
                critical += 1
            if to_center_dist > 0 and threat_distance > 0:
                away = player_pos - predicted
                alignment = away.dot(to_center) / (threat_distance * to_center_dist)
                if alignment > 0.3:
                    center_pushing += alignment * intensity

        features.append(math.tanh(total_threat / hazard_count))
        features.append(min(1.0, critical / hazard_count))
        features.append(math.tanh(center_pushing / hazard_count))
    return features


def _center_features(world: WorldState) -> list[float]:
    player = world.player
    center = world.center
    to_center_x = center.x - player.x
    to_center_y = center.y - player.y
    distance_to_center = math.hypot(to_center_x, to_center_y)
    max_distance = math.hypot(world.width / 2, world.height / 2) or 1.0

    comfort_radius = max_distance * 0.4
    comfort = max(0.0, 1 - distance_to_center / comfort_radius)

    margin = SAFE_EDGE_MARGIN
    pressures = (
        max(0.0, (margin - player.x) / margin),
        max(0.0, (player.x - (world.width - margin)) / margin),
        max(0.0, (margin - player.y) / margin),
        max(0.0, (player.y - (world.height - margin)) / margin),
    )

    center_safety = 1.0
    for hazard in world.hazards:
        hazard_to_center = math.hypot(hazard.x - center.x, hazard.y - center.y)
        if hazard_to_center < 180:
            center_safety *= max(0.1, hazard_to_center / 180)

    features = [
        (distance_to_center / max_distance) ** 1.5,
        to_center_x / max_distance * 2.0,
        to_center_y / max_distance * 2.0,
        comfort**0.8 * 3.0,
    ]
    features.extend(pressure**0.7 * 2.5 for pressure in pressures)
    features.append(sum(pressures) ** 1.2 * 3.0)
    features.append(center_safety * 2.0)
    return features


def hazard_features(world: WorldState) -> list[float]:
    """Nearest-first hazard slots; the last entry of each slot is its proximity weight."""
    player_pos = world.player.position
    diagonal = world.diagonal or 1.0
    ranked = sorted(world.hazards, key=lambda hazard: distance(hazard.position, player_pos))

    features: list[float] = []
    for hazard in ranked[:MAX_TRACKED_HAZARDS]:
        predicted = predict_hazard_position(hazard, world, FEATURE_PREDICTION_SECONDS)
        hazard_distance = distance(hazard.position, player_pos)
        features.extend(
            [
                hazard.x / world.width,
                hazard.y / world.height,
                clamp(predicted.x / world.width),
                clamp(predicted.y / world.height),
                hazard.r / 50,
                math.exp(-hazard_distance / (diagonal * 0.3)),
            ]
        )
    missing = MAX_TRACKED_HAZARDS - min(len(ranked), MAX_TRACKED_HAZARDS)
    features.extend([0.0] * (missing * HAZARD_FEATURES))
    return features


def pickup_features(world: WorldState) -> list[float]:
    player_pos = world.player.position
    diagonal = world.diagonal or 1.0

    def rank(pickup) -> float:
        urgency = 1.0 - pickup.life_ratio
        return urgency * 2 + (1 - distance(pickup.position, player_pos) / diagonal)

    ranked = sorted(world.pickups, key=rank, reverse=True)[:MAX_TRACKED_PICKUPS]
    features: list[float] = []
    for pickup in ranked:
        features.extend(
            [
                pickup.x / world.width,
                pickup.y / world.height,
                pickup.life_ratio,
                1.0 if pickup.is_health else 0.0,
            ]
        )
    features.extend([0.0] * ((MAX_TRACKED_PICKUPS - len(ranked)) * PICKUP_FEATURES))
    return features


def local_threat_density(world: WorldState, radius: float = 100.0) -> float:
    player_pos = world.player.position
    local = 0.0
    for hazard in world.hazards:
        hazard_distance = distance(hazard.position, player_pos)
        if hazard_distance < radius:
            local += (radius - hazard_distance) / radius
    return math.tanh(local / 5)


def estimate_survival_time(world: WorldState) -> float:
    """Seconds until the first approaching hazard closes the gap, capped at 10."""
    player = world.player
    earliest = math.inf
    for hazard in world.hazards:
        rel_x = hazard.x - player.x
        rel_y = hazard.y - player.y
        hazard_distance = math.hypot(rel_x, rel_y)
        if hazard_distance == 0:
            return 0.0
        approach_speed = -(rel_x * hazard.dir_x + rel_y * hazard.dir_y) * hazard.base_speed / hazard_distance
        if approach_speed > 0:
            earliest = min(earliest, (hazard_distance - hazard.r - player.r) / approach_speed)
    if earliest == math.inf:
        return 10.0
    return clamp(earliest, 0.0, 10.0)


def global_threat_features(world: WorldState) -> list[float]:
    hazards = world.hazards
    if not hazards:
        return [0.0] * GLOBAL_THREAT_BLOCK_SIZE

    player_pos = world.player.position
    distances = [distance(hazard.position, player_pos) for hazard in hazards]
    features = [
        math.tanh(min(distances) / 100),
        math.tanh(sum(distances) / len(distances) / 100),
        math.tanh(max(distances) / 100),
        sum(1 for value in distances if value < 150) / len(hazards),
    ]

    for dx, dy in CARDINAL_DIRECTIONS:
        threat = 0.0
        for hazard, hazard_distance in zip(hazards, distances):
            if hazard_distance <= 0:
                continue
            alignment = ((hazard.x - player_pos.x) * dx + (hazard.y - player_pos.y) * dy) / hazard_distance
            if alignment > 0.5:
                threat += math.exp(-hazard_distance / 80) * alignment
        features.append(math.tanh(threat))

    min_ttc = min(time_to_collision(hazard, world) for hazard in hazards)
    features.append(math.tanh(min_ttc / 3))

    trackers = [hazard for hazard in hazards if hazard.is_tracker]
    tracker_threat = sum(math.exp(-distance(hazard.position, player_pos) / 100) for hazard in trackers)
    features.append(math.tanh(tracker_threat))

    if len(hazards) > 1:
        mean_x = sum(hazard.x for hazard in hazards) / len(hazards)
        mean_y = sum(hazard.y for hazard in hazards) / len(hazards)
        spread = sum(math.hypot(hazard.x - mean_x, hazard.y - mean_y) for hazard in hazards) / len(hazards)
        features.append(math.tanh(spread / 200))
    else:
        features.append(0.0)

    kinetic_entropy = sum(abs(hazard.base_speed) * math.hypot(hazard.dir_x, hazard.dir_y) for hazard in hazards)
    features.extend(
        [
            local_threat_density(world),
            min(1.0, estimate_survival_time(world) / 10),
            math.tanh(kinetic_entropy / 1000),
            len(trackers) / len(hazards),
        ]
    )
    return features


def count_escape_routes(world: WorldState) -> int:
    """Number of the 8 compass routes that stay clear for five 0.2 s steps."""
    player = world.player
    routes = 0
    for dx, dy in EIGHT_DIRECTIONS:
        clear = True
        for step in range(1, 6):
            check_x = player.x + dx * player.speed * step * 0.2
            check_y = player.y + dy * player.speed * step * 0.2
            if not (0 <= check_x <= world.width and 0 <= check_y <= world.height):
                clear = False
            else:
                clear = all(
                    math.hypot(hazard.x - check_x, hazard.y - check_y) >= hazard.r + player.r + 20
                    for hazard in world.hazards
                )
            if not clear:
                break
        if clear:
            routes += 1
    return routes


def safe_spot_ratio(world: WorldState, grid_size: float = 50.0) -> float:
    """Fraction of interior grid points no hazard will cover 2 s from now."""
    future_positions = [(hazard, predict_hazard_position(hazard, world, 2.0)) for hazard in world.hazards]
    total = 0
    safe = 0
    x = grid_size
    while x < world.width - grid_size:
        y = grid_size
        while y < world.height - grid_size:
            total += 1
            if all(math.hypot(future.x - x, future.y - y) >= hazard.r + 30 for hazard, future in future_positions):
                safe += 1
            y += grid_size
        x += grid_size
    return _safe_ratio(safe, total)


def action_window(world: WorldState) -> float:
    player_pos = world.player.position
    nearby = [(hazard, distance(hazard.position, player_pos)) for hazard in world.hazards]
    nearby = [(hazard, value) for hazard, value in nearby if value < 150]
    if not nearby:
        return 1.0
    avg_speed = sum(hazard.base_speed for hazard, _ in nearby) / len(nearby)
    avg_distance = sum(value for _, value in nearby) / len(nearby)
    if avg_speed <= 0:
        return 1.0
    return clamp(avg_distance / (avg_speed * 2), 0.1, 1.0)


def safety_features(
    world: WorldState,
    current: Sequence[float],
    last_action: int,
    last_features: Sequence[float] | None,
) -> list[float]:
    player = world.player
    width = world.width
    height = world.height
    features = [
        player.x / width,
        (width - player.x) / width,
        player.y / height,
        (height - player.y) / height,
    ]

    for i in range(2):
        for j in range(2):
            cell_x = (i + 0.5) * width / 2
            cell_y = (j + 0.5) * height / 2
            safety = 1.0
            for hazard in world.hazards:
                safety *= min(1.0, math.hypot(hazard.x - cell_x, hazard.y - cell_y) / (hazard.r + 80))
            features.append(math.tanh(safety))

    best_score = -1.0
    best_direction = (0, 0)
    for dx, dy in CARDINAL_DIRECTIONS:
        check_x = player.x + dx * 100
        check_y = player.y + dy * 100
        if not (0 <= check_x <= width and 0 <= check_y <= height):
            continue
        score = 1.0
        for hazard in world.hazards:
            score *= min(1.0, math.hypot(hazard.x - check_x, hazard.y - check_y) / (hazard.r + 50))
        if score > best_score:
            best_score = score
            best_direction = (dx, dy)
    features.extend(float(value) for value in best_direction)

    trend = 0.0
    if last_features is not None and len(last_features) > NEAR_TERM_THREAT_INDEX and len(current) > NEAR_TERM_THREAT_INDEX:
        trend = clamp(current[NEAR_TERM_THREAT_INDEX] - last_features[NEAR_TERM_THREAT_INDEX], -1.0, 1.0)

    features.extend(
        [
            count_escape_routes(world) / 8,
            safe_spot_ratio(world),
            action_window(world),
            last_action / (NUM_ACTIONS - 1),
            trend,
        ]
    )
    return features
