"""Headless dodger arena used for self-play training."""

from __future__ import annotations

from dataclasses import replace
import math
import random

from dodger_ai.config import (
    ARENA_FPS,
    DIFFICULTY_SECONDS,
    FIELD_HEIGHT,
    FIELD_WIDTH,
    HAZARD_BASE_SPEED,
    HAZARD_DESPAWN_MARGIN,
    HAZARD_LIFE_SECONDS,
    HAZARD_SPAWN_CHECK_SECONDS,
    HAZARD_SPAWN_SPREAD,
    HAZARD_SPEED_PER_DIFFICULTY,
    HIT_IFRAMES_SECONDS,
    MAX_ARENA_HAZARDS,
    MAX_EPISODE_SECONDS,
    MAX_LIVES,
    PENALTY_DEATH,
    PENALTY_HIT,
    PICKUP_COOLDOWN_BASE,
    PICKUP_COOLDOWN_RANDOM,
    PICKUP_LIFE_SECONDS,
    PICKUP_RADIUS,
    PICKUP_SPAWN_CHANCE,
    PICKUP_SPAWN_MARGIN,
    PLAYER_RADIUS,
    PLAYER_SPEED,
    REWARD_PICKUP,
    REWARD_SURVIVAL_PER_SECOND,
)
from dodger_ai.engine.decision import Decision
from dodger_ai.engine.prediction import predict_hazard_direction, predict_hazard_position
from dodger_ai.runtime import Vec2, distance, normalized, rotate
from dodger_ai.world import HAZARD_KINDS, Hazard, Pickup, Player, Velocity, WorldState

_RAMP_PHASES = ((5.0, 6, 1.0), (10.0, 10, 1.05), (15.0, 15, 1.1), (20.0, 20, 1.15))


def spawn_phase(elapsed: float) -> tuple[int, float]:
    """Target hazard count and speed multiplier for the given time into the run."""
    for end, count, speed_mul in _RAMP_PHASES:
        if elapsed < end:
            return count, speed_mul
    if elapsed < 60.0:
        start = 20.0 + 10.0 * math.floor((elapsed - 20.0) / 10.0)
        return 20 + 5 * (int((start - 20.0) / 10.0) + 1), 1.0 + (start / 60.0) * 0.5
    if elapsed < 90.0:
        return min(80, MAX_ARENA_HAZARDS), 1.5
    if elapsed < 120.0:
        return MAX_ARENA_HAZARDS, 1.8
    boosts = int((elapsed - 120.0) // 15.0) + 1
    return MAX_ARENA_HAZARDS, min(2.0 * 1.25**boosts, 12.0)


def hazard_base_speed(elapsed: float, speed_mul: float) -> float:
    return (HAZARD_BASE_SPEED + elapsed / DIFFICULTY_SECONDS * HAZARD_SPEED_PER_DIFFICULTY) * speed_mul


class HazardSpawner:
    """Keeps the hazard population at the phase target, spawning from a random edge."""

    def __init__(self, width: float, height: float, rng: random.Random | None = None):
        self.width = width
        self.height = height
        self.rng = rng or random.Random()

    def spawn(self, elapsed: float) -> Hazard:
        rng = self.rng
        width, height = self.width, self.height
        kind = rng.choice(HAZARD_KINDS)
        side = rng.randrange(4)
        radius = 12 + rng.random() * 6

        if side == 0:
            x, y = rng.random() * width, -radius
        elif side == 1:
            x, y = width + radius, rng.random() * height
        elif side == 2:
            x, y = rng.random() * width, height + radius
        else:
            x, y = -radius, rng.random() * height

        heading = normalized(Vec2(width / 2 - x, height / 2 - y), fallback=Vec2(1.0, 0.0))
        heading = rotate(heading, (rng.random() - 0.5) * HAZARD_SPAWN_SPREAD)

        _, speed_mul = spawn_phase(elapsed)
        zig_amp = zig_freq = 0.0
        turn_rate = None
        if kind == "sprinter":
            speed_mul *= 1.5
            radius *= 0.8
        elif kind == "heavy":
            speed_mul *= 0.7
            radius *= 1.4
        elif kind == "zigzag":
            zig_amp = 80 + rng.random() * 40
            zig_freq = 4 + rng.random() * 3
        elif kind == "tracker":
            turn_rate = math.pi * (1.0 + rng.random() * 0.5)

        return Hazard(
            x=x,
            y=y,
            r=radius,
            dir_x=heading.x,
            dir_y=heading.y,
            base_speed=hazard_base_speed(elapsed, speed_mul),
            kind=kind,
            t=0.0,
            life=HAZARD_LIFE_SECONDS,
            turn_rate=turn_rate,
            zig_amp=zig_amp,
            zig_freq=zig_freq,
        )

    def maintain(self, hazards: list[Hazard], elapsed: float) -> list[Hazard]:
        target, speed_mul = spawn_phase(elapsed)
        hazards = hazards + [self.spawn(elapsed) for _ in range(target - len(hazards))]
        speed = hazard_base_speed(elapsed, speed_mul)
        return [replace(hazard, base_speed=speed) for hazard in hazards]


class Arena:
    """Single-player field: hazards, heart pickups, lives and invulnerability frames."""

    def __init__(
        self,
        width: float = FIELD_WIDTH,
        height: float = FIELD_HEIGHT,
        max_seconds: float = MAX_EPISODE_SECONDS,
        rng: random.Random | None = None,
    ):
        self.width = width
        self.height = height
        self.max_seconds = max_seconds
        self.rng = rng or random.Random()
        self.spawner = HazardSpawner(width, height, self.rng)
        self.reset()

    def reset(self) -> None:
        self.player = Player(x=self.width / 2, y=self.height / 2, r=PLAYER_RADIUS, speed=PLAYER_SPEED)
        self.player_vel = Velocity()
        self.hazards: list[Hazard] = []
        self.pickups: list[Pickup] = []
        self.elapsed = 0.0
        self.lives = MAX_LIVES
        self.hit_iframes = 0.0
        self.frame_count = 0
        self.spawn_cooldown = 0.0
        self.pickup_cooldown = self._next_pickup_cooldown()

    @property
    def difficulty(self) -> float:
        return self.elapsed / DIFFICULTY_SECONDS

    def snapshot(self) -> WorldState:
        return WorldState(
            width=self.width,
            height=self.height,
            player=self.player,
            player_vel=self.player_vel,
            hazards=tuple(self.hazards),
            pickups=tuple(self.pickups),
            elapsed=self.elapsed,
            lives=self.lives,
            max_lives=MAX_LIVES,
        )

    def _next_pickup_cooldown(self) -> float:
        return PICKUP_COOLDOWN_BASE + self.rng.random() * PICKUP_COOLDOWN_RANDOM

    def _spawn_pickup(self) -> None:
        bias = 1.0 if self.lives < MAX_LIVES else 0.4
        if self.rng.random() > PICKUP_SPAWN_CHANCE * bias:
            return
        margin = PICKUP_SPAWN_MARGIN
        self.pickups.append(
            Pickup(
                x=self.rng.random() * (self.width - 2 * margin) + margin,
                y=self.rng.random() * (self.height - 2 * margin) + margin,
                r=PICKUP_RADIUS,
                life=PICKUP_LIFE_SECONDS,
                max_life=PICKUP_LIFE_SECONDS,
                type="heart",
            )
        )

    def _move_player(self, decision: Decision, dt: float) -> None:
        speed = PLAYER_SPEED * (1 + min(0.6, self.difficulty * 0.09)) * decision.speed
        norm = math.hypot(decision.mvx, decision.mvy) or 1.0
        vx = decision.mvx / norm * speed
        vy = decision.mvy / norm * speed
        player = self.player
        self.player_vel = Velocity(vx, vy)
        self.player = replace(
            player,
            x=max(player.r, min(self.width - player.r, player.x + vx * dt)),
            y=max(player.r, min(self.height - player.r, player.y + vy * dt)),
        )

    def _move_hazards(self, dt: float) -> None:
        world = self.snapshot()
        margin = HAZARD_DESPAWN_MARGIN
        moved = []
        for hazard in self.hazards:
            position = predict_hazard_position(hazard, world, dt)
            heading = predict_hazard_direction(hazard, world, dt)
            hazard = replace(
                hazard,
                x=position.x,
                y=position.y,
                dir_x=heading.x,
                dir_y=heading.y,
                t=hazard.t + dt,
                life=hazard.life - dt,
            )
            if hazard.life <= 0:
                continue
            if not (-margin <= hazard.x <= self.width + margin and -margin <= hazard.y <= self.height + margin):
                continue
            moved.append(hazard)
        self.hazards = moved

    def play_step(self, decision: Decision, dt: float = 1.0 / ARENA_FPS) -> tuple[float, bool, dict[str, float]]:
        self.frame_count += 1
        self.elapsed += dt
        self.hit_iframes = max(0.0, self.hit_iframes - dt)

        self.spawn_cooldown -= dt
        if self.spawn_cooldown <= 0:
            self.spawn_cooldown = HAZARD_SPAWN_CHECK_SECONDS
            self.hazards = self.spawner.maintain(self.hazards, self.elapsed)

        self.pickup_cooldown -= dt
        if self.pickup_cooldown <= 0:
            self.pickup_cooldown = self._next_pickup_cooldown()
            self._spawn_pickup()

        self._move_player(decision, dt)
        self._move_hazards(dt)
        self.pickups = [replace(p, life=p.life - dt) for p in self.pickups if p.life - dt > 0]

        breakdown = {"survival": REWARD_SURVIVAL_PER_SECOND * dt, "hit": 0.0, "pickup": 0.0, "death": 0.0}
        player_pos = self.player.position

        if self.hit_iframes <= 0 and any(
            distance(hazard.position, player_pos) <= hazard.r + self.player.r for hazard in self.hazards
        ):
            self.lives -= 1
            self.hit_iframes = HIT_IFRAMES_SECONDS
            breakdown["hit"] = PENALTY_HIT

        remaining = []
        for pickup in self.pickups:
            if distance(pickup.position, player_pos) <= pickup.r + self.player.r:
                if pickup.is_health:
                    self.lives = min(MAX_LIVES, self.lives + 1)
                breakdown["pickup"] += REWARD_PICKUP
            else:
                remaining.append(pickup)
        self.pickups = remaining

        done = False
        if self.lives <= 0:
            breakdown["death"] = PENALTY_DEATH
            done = True
        elif self.elapsed >= self.max_seconds:
            done = True

        return sum(breakdown.values()), done, breakdown
