import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from dodger_ai.config import FEATURE_SIZE, NUM_ACTIONS, NetworkTopology
from dodger_ai.world import Hazard, Pickup, Player, Velocity, WorldState

SMALL_TOPOLOGY = NetworkTopology(input_size=FEATURE_SIZE, hidden_sizes=(16, 12, 10, 8), action_count=NUM_ACTIONS)


def make_world(
    px=600.0,
    py=337.5,
    hazards=(),
    pickups=(),
    lives=3,
    max_lives=3,
    width=1200.0,
    height=675.0,
    elapsed=0.0,
    velocity=(0.0, 0.0),
):
    return WorldState(
        width=width,
        height=height,
        player=Player(x=px, y=py, r=12.0, speed=300.0),
        player_vel=Velocity(*velocity),
        hazards=tuple(hazards),
        pickups=tuple(pickups),
        elapsed=elapsed,
        lives=lives,
        max_lives=max_lives,
    )


def make_hazard(x, y, dir_x=1.0, dir_y=0.0, base_speed=100.0, kind="normal", r=15.0, **kwargs):
    return Hazard(x=x, y=y, r=r, dir_x=dir_x, dir_y=dir_y, base_speed=base_speed, kind=kind, life=10.0, **kwargs)


def make_pickup(x, y, type="heart", life=5.0, max_life=6.0):
    return Pickup(x=x, y=y, r=10.0, life=life, max_life=max_life, type=type)


@pytest.fixture
def small_topology():
    return SMALL_TOPOLOGY
