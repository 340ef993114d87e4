import math

import pytest

from conftest import make_hazard, make_pickup, make_world
from dodger_ai.config import (
    FEATURE_SIZE,
    GLOBAL_THREAT_BLOCK_SIZE,
    HAZARD_BLOCK_OFFSET,
    HAZARD_FEATURES,
    SAFETY_BLOCK_SIZE,
)
from dodger_ai.engine.features import (
    GLOBAL_THREAT_OFFSET,
    NEAR_TERM_THREAT_INDEX,
    SAFETY_OFFSET,
    extract_features,
)


def test_feature_vector_is_fixed_size_and_finite():
    hazards = [make_hazard(100 + 50 * i, 120 + 20 * i, kind=kind) for i, kind in enumerate(["normal", "zigzag", "tracker"] * 10)]
    world = make_world(hazards=hazards, pickups=[make_pickup(300, 300), make_pickup(900, 500, type="shield")])

    features = extract_features(world, difficulty=2.5)

    assert len(features) == FEATURE_SIZE
    assert all(math.isfinite(value) for value in features)


def test_empty_field_gives_neutral_threat_blocks():
    features = extract_features(make_world(), difficulty=0.0)

    assert len(features) == FEATURE_SIZE
    assert features[GLOBAL_THREAT_OFFSET : GLOBAL_THREAT_OFFSET + GLOBAL_THREAT_BLOCK_SIZE] == [0.0] * GLOBAL_THREAT_BLOCK_SIZE
    assert features[HAZARD_BLOCK_OFFSET + HAZARD_FEATURES - 1] == 0.0


def test_nearest_hazard_fills_first_slot_weight():
    far = make_hazard(1100, 600)
    near = make_hazard(650, 337.5)
    features = extract_features(make_world(hazards=[far, near]), difficulty=1.0)

    first_weight = features[HAZARD_BLOCK_OFFSET + HAZARD_FEATURES - 1]
    second_weight = features[HAZARD_BLOCK_OFFSET + 2 * HAZARD_FEATURES - 1]
    assert features[HAZARD_BLOCK_OFFSET] == pytest.approx(650 / 1200)
    assert first_weight > second_weight > 0


def test_history_features_use_last_action_and_trend():
    world = make_world(hazards=[make_hazard(640, 337.5, dir_x=-1.0)])
    current = extract_features(world, 0.0)
    calm = [0.0] * FEATURE_SIZE

    features = extract_features(world, 0.0, last_action=8, last_features=calm)

    assert features[SAFETY_OFFSET + 13] == pytest.approx(1.0)
    assert features[SAFETY_OFFSET + 14] == pytest.approx(min(1.0, current[NEAR_TERM_THREAT_INDEX]))
    assert features[SAFETY_OFFSET + 14] > 0


def test_safety_block_closes_the_vector():
    assert SAFETY_OFFSET + SAFETY_BLOCK_SIZE == FEATURE_SIZE
    assert GLOBAL_THREAT_OFFSET + GLOBAL_THREAT_BLOCK_SIZE == SAFETY_OFFSET
