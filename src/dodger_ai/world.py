"""World snapshot consumed by the decision engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from dodger_ai.config import DEFAULT_TURN_RATE, HEALTH_PICKUP_TYPES
from dodger_ai.runtime.geometry import Vec2

HAZARD_KINDS = ("normal", "sprinter", "heavy", "zigzag", "tracker")
PICKUP_TYPES = ("heart", "health", "shield", "speed", "points", "power")


@dataclass(frozen=True)
class Player:
    x: float
    y: float
    r: float
    speed: float
    shield: int = 0

    @property
    def position(self) -> Vec2:
        return Vec2(self.x, self.y)


@dataclass(frozen=True)
class Velocity:
    x: float = 0.0
    y: float = 0.0

    @property
    def vector(self) -> Vec2:
        return Vec2(self.x, self.y)


@dataclass(frozen=True)
class Hazard:
    """A moving obstacle; ``dir_x``/``dir_y`` is a unit heading, ``base_speed`` is px/s."""

    x: float
    y: float
    r: float
    dir_x: float
    dir_y: float
    base_speed: float
    kind: str = "normal"
    t: float = 0.0
    life: float = 0.0
    turn_rate: float | None = None
    zig_amp: float = 0.0
    zig_freq: float = 0.0

    @property
    def position(self) -> Vec2:
        return Vec2(self.x, self.y)

    @property
    def direction(self) -> Vec2:
        return Vec2(self.dir_x, self.dir_y)

    @property
    def velocity(self) -> Vec2:
        return Vec2(self.dir_x * self.base_speed, self.dir_y * self.base_speed)

    @property
    def effective_turn_rate(self) -> float:
        return DEFAULT_TURN_RATE if self.turn_rate is None else self.turn_rate

    @property
    def is_tracker(self) -> bool:
        return self.kind == "tracker"


@dataclass(frozen=True)
class Pickup:
    x: float
    y: float
    r: float
    life: float
    max_life: float
    type: str

    @property
    def position(self) -> Vec2:
        return Vec2(self.x, self.y)

    @property
    def is_health(self) -> bool:
        return self.type in HEALTH_PICKUP_TYPES

    @property
    def life_ratio(self) -> float:
        if self.max_life <= 0:
            return 0.0
        return self.life / self.max_life


@dataclass(frozen=True)
class WorldState:
    width: float
    height: float
    player: Player
    player_vel: Velocity = field(default_factory=Velocity)
    hazards: tuple[Hazard, ...] = ()
    pickups: tuple[Pickup, ...] = ()
    elapsed: float = 0.0
    lives: int = 3
    max_lives: int = 3

    @property
    def health_ratio(self) -> float:
        if self.max_lives <= 0:
            return 0.0
        return self.lives / self.max_lives

    @property
    def center(self) -> Vec2:
        return Vec2(self.width / 2.0, self.height / 2.0)

    @property
    def diagonal(self) -> float:
        return (self.width**2 + self.height**2) ** 0.5

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WorldState":
        """Build a snapshot from the camelCase document produced by the game loop."""
        player_data = data["player"]
        player = Player(
            x=float(player_data["x"]),
            y=float(player_data["y"]),
            r=float(player_data["r"]),
            speed=float(player_data["speed"]),
            shield=int(player_data.get("shield", 0) or 0),
        )
        velocity_data = data.get("playerVel") or data.get("player_vel") or {}
        velocity = Velocity(float(velocity_data.get("x", 0.0)), float(velocity_data.get("y", 0.0)))
        hazards = tuple(_hazard_from_dict(item) for item in data.get("hazards", ()))
        pickups = tuple(_pickup_from_dict(item) for item in data.get("pickups", ()))
        max_lives = data.get("maxLives", data.get("max_lives", 3))
        return cls(
            width=float(data["width"]),
            height=float(data["height"]),
            player=player,
            player_vel=velocity,
            hazards=hazards,
            pickups=pickups,
            elapsed=float(data.get("elapsed", 0.0)),
            lives=int(data.get("lives", max_lives)),
            max_lives=int(max_lives),
        )


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _hazard_from_dict(data: Mapping[str, Any]) -> Hazard:
    turn_rate = _first(data, "turnRate", "turn_rate")
    return Hazard(
        x=float(data["x"]),
        y=float(data["y"]),
        r=float(data["r"]),
        dir_x=float(_first(data, "dirX", "dir_x", default=0.0)),
        dir_y=float(_first(data, "dirY", "dir_y", default=0.0)),
        base_speed=float(_first(data, "baseSpeed", "base_speed", default=0.0)),
        kind=str(data.get("kind", "normal")),
        t=float(data.get("t", 0.0)),
        life=float(data.get("life", 0.0)),
        turn_rate=None if turn_rate is None else float(turn_rate),
        zig_amp=float(_first(data, "zigAmp", "zig_amp", default=0.0)),
        zig_freq=float(_first(data, "zigFreq", "zig_freq", default=0.0)),
    )


def _pickup_from_dict(data: Mapping[str, Any]) -> Pickup:
    return Pickup(
        x=float(data["x"]),
        y=float(data["y"]),
        r=float(data.get("r", 10.0)),
        life=float(data.get("life", 0.0)),
        max_life=float(_first(data, "maxLife", "max_life", default=1.0)),
        type=str(data.get("type", "points")),
    )
