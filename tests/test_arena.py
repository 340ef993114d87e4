import random

import pytest

from conftest import make_hazard, make_pickup
from dodger_ai.arena import Arena, HazardSpawner, spawn_phase
from dodger_ai.config import MAX_LIVES, NUM_ACTIONS, PENALTY_DEATH, PENALTY_HIT, REWARD_PICKUP
from dodger_ai.engine.decision import MODE_POLICY_GUIDED, Decision
from dodger_ai.engine.pickups import PickupOpportunity
from dodger_ai.engine.threat import ThreatAssessment


def hold_decision():
    return Decision(
        action=0,
        speed=0.0,
        mvx=0,
        mvy=0,
        bias=(0.0,) * NUM_ACTIONS,
        strength=0.0,
        mode=MODE_POLICY_GUIDED,
        strategy=None,
        threat=ThreatAssessment(),
        opportunity=PickupOpportunity(),
        value=0.0,
        policy=(1.0 / NUM_ACTIONS,) * NUM_ACTIONS,
    )


def quiet_arena(**kwargs):
    arena = Arena(rng=random.Random(3), **kwargs)
    arena.spawn_cooldown = 100.0
    arena.pickup_cooldown = 100.0
    return arena


@pytest.mark.parametrize(
    ("elapsed", "expected"),
    [
        (0.0, (6, 1.0)),
        (7.0, (10, 1.05)),
        (19.9, (20, 1.15)),
        (25.0, (25, 1.0 + (20.0 / 60.0) * 0.5)),
        (55.0, (40, 1.0 + (50.0 / 60.0) * 0.5)),
        (75.0, (80, 1.5)),
        (100.0, (100, 1.8)),
    ],
)
def test_spawn_phase_timeline(elapsed, expected):
    count, speed_mul = spawn_phase(elapsed)
    assert count == expected[0]
    assert speed_mul == pytest.approx(expected[1])


def test_late_game_speed_is_capped():
    assert spawn_phase(125.0)[1] == pytest.approx(2.5)
    assert spawn_phase(1000.0)[1] == 12.0


def test_spawned_hazards_enter_from_outside():
    spawner = HazardSpawner(1200, 675, random.Random(7))
    for _ in range(20):
        hazard = spawner.spawn(0.0)
        outside = hazard.x < 0 or hazard.x > 1200 or hazard.y < 0 or hazard.y > 675
        assert outside
        assert hazard.base_speed > 0


def test_first_step_spawns_opening_wave():
    arena = Arena(rng=random.Random(1))
    reward, done, breakdown = arena.play_step(hold_decision())

    assert len(arena.hazards) == 6
    assert not done
    assert breakdown["survival"] == pytest.approx(1.0 / 60.0)
    assert reward == pytest.approx(1.0 / 60.0)


def test_hit_costs_a_life_and_grants_invulnerability():
    arena = quiet_arena()
    arena.hazards = [make_hazard(arena.player.x, arena.player.y, base_speed=0.0)]

    _, _, breakdown = arena.play_step(hold_decision())
    assert arena.lives == MAX_LIVES - 1
    assert breakdown["hit"] == PENALTY_HIT

    _, _, breakdown = arena.play_step(hold_decision())
    assert arena.lives == MAX_LIVES - 1
    assert breakdown["hit"] == 0.0


def test_heart_restores_a_life():
    arena = quiet_arena()
    arena.lives = MAX_LIVES - 1
    arena.pickups = [make_pickup(arena.player.x, arena.player.y)]

    _, _, breakdown = arena.play_step(hold_decision())
    assert arena.lives == MAX_LIVES
    assert breakdown["pickup"] == REWARD_PICKUP
    assert arena.pickups == []


def test_last_life_lost_ends_episode():
    arena = quiet_arena()
    arena.lives = 1
    arena.hazards = [make_hazard(arena.player.x, arena.player.y, base_speed=0.0)]

    _, done, breakdown = arena.play_step(hold_decision())
    assert done
    assert breakdown["death"] == PENALTY_DEATH


def test_time_limit_ends_episode():
    arena = quiet_arena(max_seconds=0.01)
    _, done, breakdown = arena.play_step(hold_decision())

    assert done
    assert breakdown["death"] == 0.0


def test_snapshot_reflects_arena_state():
    arena = quiet_arena()
    arena.hazards = [make_hazard(100, 100)]
    world = arena.snapshot()

    assert len(world.hazards) == 1
    assert world.lives == MAX_LIVES
    assert world.player.x == arena.width / 2
