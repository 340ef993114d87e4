import math

import pytest

from conftest import make_hazard, make_world
from dodger_ai.engine.prediction import predict_hazard_direction, predict_hazard_position, time_to_collision


@pytest.mark.parametrize("kind", ["normal", "sprinter", "heavy", "zigzag", "tracker"])
def test_zero_horizon_returns_current_position(kind):
    hazard = make_hazard(100, 200, kind=kind, zig_amp=100.0, zig_freq=5.0, t=0.3)
    world = make_world(hazards=[hazard])

    predicted = predict_hazard_position(hazard, world, 0.0)

    assert predicted.x == pytest.approx(100)
    assert predicted.y == pytest.approx(200)


def test_normal_hazard_moves_linearly():
    hazard = make_hazard(0, 0, dir_x=1.0, dir_y=0.0, base_speed=100.0)
    world = make_world(hazards=[hazard])

    predicted = predict_hazard_position(hazard, world, 1.0)

    assert predicted.x == pytest.approx(100.0)
    assert predicted.y == pytest.approx(0.0)


def test_tracker_without_turn_rate_moves_straight():
    hazard = make_hazard(100, 100, dir_x=1.0, dir_y=0.0, base_speed=50.0, kind="tracker", turn_rate=0.0)
    world = make_world(px=100, py=500, hazards=[hazard])

    predicted = predict_hazard_position(hazard, world, 2.0)

    assert predicted.x == pytest.approx(200.0)
    assert predicted.y == pytest.approx(100.0)


def test_tracker_turns_toward_player():
    hazard = make_hazard(100, 100, dir_x=1.0, dir_y=0.0, base_speed=50.0, kind="tracker")
    world = make_world(px=100, py=500, hazards=[hazard])

    heading = predict_hazard_direction(hazard, world, 0.2)

    assert heading.y > 0
    assert math.hypot(heading.x, heading.y) == pytest.approx(1.0)


def test_zigzag_adds_sideways_motion():
    hazard = make_hazard(0, 0, base_speed=100.0, kind="zigzag", zig_amp=100.0, zig_freq=math.pi / 2)
    world = make_world(hazards=[hazard])

    predicted = predict_hazard_position(hazard, world, 1.0)

    assert predicted.x == pytest.approx(100.0)
    assert predicted.y == pytest.approx(100.0)


def test_time_to_collision_head_on():
    hazard = make_hazard(400, 337.5, dir_x=1.0, dir_y=0.0, base_speed=100.0, r=13.0)
    world = make_world(px=600, py=337.5, hazards=[hazard])

    assert time_to_collision(hazard, world) == pytest.approx((200 - 25) / 100)


def test_time_to_collision_overlap_and_miss():
    overlapping = make_hazard(605, 337.5)
    world = make_world(hazards=[overlapping])
    assert time_to_collision(overlapping, world) == 0.0

    receding = make_hazard(800, 337.5, dir_x=1.0)
    world = make_world(hazards=[receding])
    assert time_to_collision(receding, world) == math.inf
