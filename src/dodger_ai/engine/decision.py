"""Decision cascade: plan, safety overrides, speed and heuristic bias."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
import math
import random
from typing import Sequence

from dodger_ai.config import (
    ACTION_DIRECTIONS,
    ACTION_HOLD,
    ACTION_LEFT,
    ACTION_MOVES,
    BORDER_MEMORY_SECONDS,
    CENTER_FORCE_RATIO,
    DEFAULT_SPEED_LAW,
    EMERGENCY_LOOKAHEAD,
    HEURISTIC_STRENGTH,
    MIN_MOVING_SPEED,
    NUM_ACTIONS,
    OSCILLATION_EDGE_MARGIN,
    OSCILLATION_STEP_THRESHOLD,
    POSITION_MEMORY_SECONDS,
    POSITION_MEMORY_SIZE,
    SPEED_LAWS,
    URGENT_BOUNDARY,
    UNSAFE_HOLD_SPEED,
    WARNING_BOUNDARY,
    SpeedLaw,
)
from dodger_ai.engine.pickups import (
    PickupOpportunity,
    analyze_pickup_opportunity,
    nearest_safe_pickup,
    pickup_seek,
    pursuit_direction,
)
from dodger_ai.engine.threat import (
    MOVE_DIRECTIONS,
    ThreatAssessment,
    analyze_real_time_threat,
    avoidance_score,
    boundary_pressure,
    combined_radius,
    evaluate_direction_safety,
    health_tier,
    is_safe_to_stay,
    penalize_unforced_boundary,
    predicted_safety,
    smart_avoidance,
)
from dodger_ai.runtime.geometry import Vec2, distance, inside_margin, length, min_edge_distance, normalized
from dodger_ai.world import WorldState

LOGGER = logging.getLogger("dodger_ai.agent")

MODE_EMERGENCY = "emergency"
MODE_HIGH_RISK = "high_risk"
MODE_PICKUP_PURSUIT = "pickup_pursuit"
MODE_POLICY_GUIDED = "policy_guided"


@dataclass(frozen=True)
class Plan:
    mode: str
    action: int
    strategy: str | None = None


@dataclass(frozen=True)
class Decision:
    action: int
    speed: float
    mvx: int
    mvy: int
    bias: tuple[float, ...]
    strength: float
    mode: str
    strategy: str | None
    threat: ThreatAssessment
    opportunity: PickupOpportunity
    value: float
    policy: tuple[float, ...]

    @property
    def move(self) -> tuple[int, int]:
        return self.mvx, self.mvy


def action_vector(action: int) -> Vec2:
    return Vec2(*ACTION_DIRECTIONS[action])


def action_for_direction(direction: Vec2) -> int:
    """Movement action best aligned with ``direction``; left for a zero vector."""
    if length(direction) < 1e-9:
        return ACTION_LEFT
    best_action = ACTION_LEFT
    best_alignment = -math.inf
    for action, move in MOVE_DIRECTIONS:
        alignment = move.dot(direction)
        if alignment > best_alignment:
            best_alignment = alignment
            best_action = action
    return best_action


def best_center_action(world: WorldState) -> int:
    player_pos = world.player.position
    to_center = world.center - player_pos
    if length(to_center) < 10:
        return ACTION_HOLD
    heading = normalized(to_center)

    best_action = 0
    best_score = -math.inf
    for action, move in MOVE_DIRECTIONS:
        future = player_pos + move * 80
        safe = all(
            distance(future, hazard.position) >= combined_radius(hazard, world) + 60 for hazard in world.hazards
        )
        score = move.dot(heading)
        if safe and score > best_score:
            best_score = score
            best_action = action
    return best_action or ACTION_LEFT


def emergency_action(world: WorldState, threat: ThreatAssessment) -> int:
    """Escape action keeping the most room to the closest hazard 120 px out."""
    player_pos = world.player.position
    if threat.escape_actions:
        best_action = threat.escape_actions[0]
        best_clearance = 0.0
        for action in threat.escape_actions:
            future = player_pos + action_vector(action) * EMERGENCY_LOOKAHEAD
            clearance = min((distance(future, hazard.position) for hazard in world.hazards), default=math.inf)
            if clearance > best_clearance:
                best_clearance = clearance
                best_action = action
        return best_action

    nearest = threat.nearest_hazard
    if nearest is not None:
        away = player_pos - nearest.position
        if length(away) > 0:
            return action_for_direction(away)
    return ACTION_LEFT


def high_risk_action(world: WorldState) -> int:
    best_action = None
    best_safety = 0.0
    for action, move in MOVE_DIRECTIONS:
        safety = predicted_safety(world, move)
        if safety is not None and safety > best_safety:
            best_safety = safety
            best_action = action
    if best_action is None:
        return best_center_action(world)
    return best_action


def best_movement_action(policy: Sequence[float]) -> int:
    return max(range(1, NUM_ACTIONS), key=lambda action: policy[action])


def policy_guided_action(
    world: WorldState,
    policy: Sequence[float],
    threat: ThreatAssessment,
    training: bool,
    exploration_rate: float,
    rng: random.Random,
) -> int:
    player_pos = world.player.position
    to_center = world.center - player_pos
    max_distance = math.hypot(world.width / 2, world.height / 2) or 1.0

    if threat.predicted_danger:
        action = best_movement_action(policy)
    elif length(to_center) / max_distance > CENTER_FORCE_RATIO:
        action = action_for_direction(to_center)
    elif is_safe_to_stay(world):
        action = ACTION_HOLD
    else:
        action = best_movement_action(policy)

    if training and rng.random() < exploration_rate:
        action = rng.randint(1, NUM_ACTIONS - 1)
    return action


def should_pursue_pickup(world: WorldState, opportunity: PickupOpportunity) -> bool:
    if opportunity.pickup is None:
        return False
    health = world.health_ratio
    urgency = opportunity.urgency
    return urgency > 0.5 or (health <= 0.6 and urgency > 0.3) or (health <= 0.3 and urgency > 0.1)


def plan_action(
    world: WorldState,
    policy: Sequence[float],
    threat: ThreatAssessment,
    opportunity: PickupOpportunity,
    training: bool = False,
    exploration_rate: float = 0.0,
    rng: random.Random | None = None,
) -> Plan:
    """Pick the highest-priority plan for this tick."""
    rng = rng or random.Random()
    if threat.immediate_danger:
        return Plan(MODE_EMERGENCY, emergency_action(world, threat))
    if threat.high_risk:
        return Plan(MODE_HIGH_RISK, high_risk_action(world))
    if should_pursue_pickup(world, opportunity):
        direction = pursuit_direction(world, opportunity, threat)
        action = ACTION_HOLD if direction is None else action_for_direction(direction)
        return Plan(MODE_PICKUP_PURSUIT, action, strategy=opportunity.strategy)
    return Plan(
        MODE_POLICY_GUIDED,
        policy_guided_action(world, policy, threat, training, exploration_rate, rng),
    )


def apply_safety_pass(world: WorldState, action: int, threat: ThreatAssessment) -> int:
    """Replace actions that run into the wall or a hazard within 80 px."""
    player_pos = world.player.position
    future = player_pos + action_vector(action) * 80
    if not inside_margin(future, world.width, world.height, 40):
        return best_center_action(world)
    for hazard in world.hazards:
        if distance(future, hazard.position) < combined_radius(hazard, world) + 30 and threat.escape_actions:
            return threat.escape_actions[0]
    return action


def apply_boundary_tiers(world: WorldState, action: int) -> int:
    """Force center-seeking moves inside the urgent band; correct outward moves in the warning band."""
    player_pos = world.player.position
    edge = min_edge_distance(player_pos, world.width, world.height)
    if edge < URGENT_BOUNDARY:
        LOGGER.debug("Urgent boundary correction at %.1f px", edge)
        return best_center_action(world)
    if edge < WARNING_BOUNDARY:
        mvx, mvy = ACTION_MOVES[action]
        future = Vec2(player_pos.x + mvx * 60, player_pos.y + mvy * 60)
        center = world.center
        if min_edge_distance(future, world.width, world.height) < edge or distance(future, center) > distance(
            player_pos, center
        ):
            return best_center_action(world)
    return action


class OscillationMemory:
    """Recent positions near the walls, used to break back-and-forth movement."""

    def __init__(self, size: int = POSITION_MEMORY_SIZE):
        self.positions: deque[tuple[float, float, float]] = deque(maxlen=size)
        self.border_moves: deque[tuple[tuple[int, int], float]] = deque(maxlen=size)

    def clear(self) -> None:
        self.positions.clear()
        self.border_moves.clear()

    def remember(self, x: float, y: float, now: float) -> None:
        if self.positions and now < self.positions[-1][2]:
            self.clear()
        self.positions.append((x, y, now))
        cutoff = now - POSITION_MEMORY_SECONDS
        while self.positions and self.positions[0][2] <= cutoff:
            self.positions.popleft()

    def remember_border_move(self, move: tuple[int, int], now: float) -> None:
        self.border_moves.append((move, now))
        cutoff = now - BORDER_MEMORY_SECONDS
        while self.border_moves and self.border_moves[0][1] <= cutoff:
            self.border_moves.popleft()

    def is_oscillating(self) -> bool:
        if len(self.positions) < 4:
            return False
        recent = list(self.positions)[-6:]
        threshold = OSCILLATION_STEP_THRESHOLD
        swings = 0
        for prev, curr, nxt in zip(recent, recent[1:], recent[2:]):
            out_step = math.hypot(curr[0] - prev[0], curr[1] - prev[1])
            back_step = math.hypot(nxt[0] - curr[0], nxt[1] - curr[1])
            net = math.hypot(nxt[0] - prev[0], nxt[1] - prev[1])
            if out_step > threshold and back_step > threshold and net < threshold * 0.5:
                swings += 1
        return swings >= 2

    def apply(self, world: WorldState, action: int) -> int:
        player = world.player
        self.remember(player.x, player.y, world.elapsed)
        if inside_margin(player.position, world.width, world.height, OSCILLATION_EDGE_MARGIN):
            return action

        if self.is_oscillating():
            alternatives = sorted(
                (
                    (evaluate_direction_safety(world, move), candidate)
                    for candidate, move in MOVE_DIRECTIONS
                    if candidate != action
                ),
                key=lambda item: item[0],
                reverse=True,
            )[:3]
            if alternatives:
                LOGGER.debug("Oscillation near boundary, replacing action %d with %d", action, alternatives[0][1])
                return alternatives[0][1]

        self.remember_border_move(ACTION_MOVES[action], world.elapsed)
        return action


def compute_speed(world: WorldState, action: int, speed_law: SpeedLaw) -> float:
    low, critical = health_tier(world)
    speed = 3.2 if critical else (2.6 if low else 2.0)
    player = world.player
    player_pos = player.position

    max_threat = 0.0
    nearby = 0
    trackers = 0
    immediate = False
    for hazard in world.hazards:
        hazard_distance = distance(hazard.position, player_pos)
        if hazard_distance < combined_radius(hazard, world) + 40:
            immediate = True
        if hazard_distance < 250:
            max_threat = max(max_threat, math.exp(-hazard_distance / 70))
            if hazard_distance < 120:
                nearby += 1
            if hazard.is_tracker and hazard_distance < 200:
                trackers += 1

    if immediate:
        speed += 2.0
    speed += max_threat * 1.8 + nearby * 0.6 + trackers * 1.5

    edge = min_edge_distance(player_pos, world.width, world.height)
    if edge < 100:
        speed += (100 - edge) / 100 * 1.5

    if low and world.pickups and nearest_safe_pickup(world) is not None:
        speed += 0.8 if critical else 0.5

    if action != ACTION_HOLD:
        speed += 0.3
        return max(MIN_MOVING_SPEED, min(speed_law.max_speed, speed))

    if is_safe_to_stay(world):
        return 0.0 if speed_law.allow_rest else speed_law.idle_speed
    return min(speed_law.max_speed, max(UNSAFE_HOLD_SPEED, speed))


def heuristic_bias(world: WorldState) -> list[float]:
    """Score every action for reward shaping; higher is better."""
    player_pos = world.player.position
    low, critical = health_tier(world)
    center = world.center
    current_center_distance = distance(player_pos, center)
    max_center_distance = math.hypot(world.width / 2, world.height / 2) or 1.0
    center_bias = min(1.0, current_center_distance / (max_center_distance * 0.6))

    avoidance = smart_avoidance(world)
    seek = pickup_seek(world)
    pressure = boundary_pressure(world, center_bias)
    safe_to_stay = is_safe_to_stay(world)

    bias = []
    for action in range(NUM_ACTIONS):
        move = action_vector(action)
        bonus = avoidance_score(move, avoidance) * 5.0

        if action != ACTION_HOLD and penalize_unforced_boundary(world, move) and not inside_margin(
            player_pos + move * 80, world.width, world.height, 150
        ):
            bonus -= 5.0

        if pressure.center_strength > 0.1:
            alignment = move.x * pressure.center_x + move.y * pressure.center_y
            if alignment > 0:
                bonus += alignment * pressure.center_strength * 4.0

        if pressure.intensity > 0.2:
            bonus += (move.x * pressure.x + move.y * pressure.y) * pressure.intensity * 3.5

        future_center_distance = distance(player_pos + move * 60, center)
        if future_center_distance < current_center_distance:
            bonus += (current_center_distance - future_center_distance) / max(1.0, current_center_distance) * 2.0

        if seek.should_seek:
            pickup_bonus = move.dot(seek.direction) * seek.urgency * 3.5
            if critical:
                pickup_bonus *= 2.0
            elif low:
                pickup_bonus *= 1.5
            bonus += pickup_bonus

        if action != ACTION_HOLD:
            bonus += 1.5
        elif not safe_to_stay:
            bonus -= 6.0
        bias.append(bonus)
    return bias


class DecisionComposer:
    """Runs the decision cascade for one agent; owns its anti-oscillation memory."""

    def __init__(self, speed_law: SpeedLaw | str = DEFAULT_SPEED_LAW, rng: random.Random | None = None):
        self.speed_law = SPEED_LAWS[speed_law] if isinstance(speed_law, str) else speed_law
        self.rng = rng or random.Random()
        self.memory = OscillationMemory()
        self.center_ticks = 0
        self.away_ticks = 0

    def reset(self) -> None:
        self.memory.clear()
        self.center_ticks = 0
        self.away_ticks = 0

    def _track_center(self, world: WorldState) -> None:
        max_distance = math.hypot(world.width / 2, world.height / 2) or 1.0
        if distance(world.player.position, world.center) / max_distance > 0.5:
            self.away_ticks += 1
        else:
            self.center_ticks += 1

    @property
    def center_time_ratio(self) -> float:
        total = self.center_ticks + self.away_ticks
        return self.center_ticks / total if total else 0.0

    def compose(
        self,
        world: WorldState,
        value: float,
        policy: Sequence[float],
        training: bool = False,
        exploration_rate: float = 0.0,
    ) -> Decision:
        threat = analyze_real_time_threat(world)
        opportunity = analyze_pickup_opportunity(world)
        plan = plan_action(world, policy, threat, opportunity, training, exploration_rate, self.rng)

        action = apply_safety_pass(world, plan.action, threat)
        if plan.mode != MODE_EMERGENCY:
            action = apply_boundary_tiers(world, action)
        action = self.memory.apply(world, action)
        self._track_center(world)

        mvx, mvy = ACTION_MOVES[action]
        return Decision(
            action=action,
            speed=compute_speed(world, action, self.speed_law),
            mvx=mvx,
            mvy=mvy,
            bias=tuple(heuristic_bias(world)),
            strength=HEURISTIC_STRENGTH,
            mode=plan.mode,
            strategy=plan.strategy,
            threat=threat,
            opportunity=opportunity,
            value=value,
            policy=tuple(policy),
        )
