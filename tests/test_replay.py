import random

import pytest

from dodger_ai.config import FEATURE_SIZE, HAZARD_BLOCK_OFFSET, HAZARD_FEATURES
from dodger_ai.model.replay import Experience, ExperienceBuffer, experience_priority


def make_experience(priority, tag=0):
    return Experience(state=(float(tag),), action=0, reward=0.0, next_state=None, done=False, priority=priority)


def test_ring_buffer_overwrites_oldest():
    buffer = ExperienceBuffer(capacity=3)
    for tag in range(5):
        buffer.add(make_experience(1.0, tag))

    tags = sorted(exp.state[0] for exp in buffer.sample(10))
    assert len(buffer) == 3
    assert tags == [2.0, 3.0, 4.0]


def test_sample_returns_everything_when_short():
    buffer = ExperienceBuffer(capacity=10)
    buffer.add(make_experience(1.0, 1))
    buffer.add(make_experience(2.0, 2))

    assert len(buffer.sample(5)) == 2


def test_sample_prefers_high_priority_with_stable_ties():
    buffer = ExperienceBuffer(capacity=20, rng=random.Random(3))
    for tag in range(10):
        buffer.add(make_experience(5.0 if tag in (2, 7) else 1.0, tag))
    buffer.add(make_experience(5.0, 11))

    samples = buffer.sample(5)

    assert len(samples) == 5
    assert [exp.state[0] for exp in samples[:4]] == [2.0, 7.0, 11.0, 0.0]


def test_clear_empties_buffer():
    buffer = ExperienceBuffer(capacity=4)
    buffer.add(make_experience(1.0))
    buffer.clear()
    assert buffer.size() == 0


def test_priority_scales_with_nearby_hazards():
    state = [0.0] * FEATURE_SIZE
    assert experience_priority(state, -3.0, True) == pytest.approx(5.0)

    state[HAZARD_BLOCK_OFFSET + HAZARD_FEATURES - 1] = 0.5
    state[HAZARD_BLOCK_OFFSET + 2 * HAZARD_FEATURES - 1] = 0.05
    assert experience_priority(state, 1.0, False) == pytest.approx(1.0 * (1 + 2 * 0.5))


def test_invalid_capacity_rejected():
    with pytest.raises(ValueError):
        ExperienceBuffer(capacity=0)
