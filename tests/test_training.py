import pytest

from conftest import SMALL_TOPOLOGY
from dodger_ai.config import EXPLORATION_RESET, EXPLORATION_START, FEATURE_SIZE
from dodger_ai.model.network import PolicyValueNetwork
from dodger_ai.model.replay import ExperienceBuffer
from dodger_ai.model.storage import MemoryKeyValueStore
from dodger_ai.model.training import Episode, EpisodeStep, TrainingLoop
from dodger_ai.model.weight_store import WeightStore


def make_loop():
    network = PolicyValueNetwork(SMALL_TOPOLOGY)
    return TrainingLoop(network, ExperienceBuffer(capacity=1000), WeightStore(MemoryKeyValueStore()))


def fill(loop, count, reward=1.0):
    state = [0.1] * FEATURE_SIZE
    for _ in range(count):
        loop.add_experience(state, 2, reward, state, False)


def test_train_skips_small_buffers():
    loop = make_loop()
    fill(loop, 99)

    assert loop.train() == 0
    assert loop.exploration_rate == EXPLORATION_START


def test_train_uses_one_batch_and_decays_exploration():
    loop = make_loop()
    fill(loop, 150, reward=5.0)
    value_bias = float(loop.network.layers["valueHead"].biases[0])

    assert loop.train() == 64
    assert loop.exploration_rate == pytest.approx(EXPLORATION_START * 0.995)
    assert float(loop.network.layers["valueHead"].biases[0]) > value_bias


def test_training_step_links_consecutive_features():
    loop = make_loop()
    first = [0.0] * FEATURE_SIZE
    second = [1.0] * FEATURE_SIZE

    loop.add_training_step(first, 3, 0.5)
    assert len(loop.buffer) == 0

    loop.add_training_step(second, 4, -2.0)
    (experience,) = loop.buffer.sample(1)
    assert experience.state == tuple(first)
    assert experience.action == 3
    assert experience.next_state == tuple(second)
    assert experience.priority == pytest.approx(2.1)


def test_end_episode_tracks_performance_and_snapshots_best():
    loop = make_loop()
    for score in (3.0, 1.0, 5.0):
        loop.begin_episode()
        loop.end_episode(score)

    stats = loop.get_stats()
    assert stats["episodes"] == 3
    assert stats["best_performance"] == 5.0
    assert stats["average_performance"] == pytest.approx(3.0)
    assert stats["weight_count"] == 2
    assert loop.store.get_best()["metadata"]["bestPerformance"] == 5.0


def test_periodic_snapshot_every_fifty_episodes():
    loop = make_loop()
    for _ in range(50):
        loop.end_episode(0.0)

    assert len(loop.store) == 1
    assert loop.store.list_snapshots()[0]["performance"] == 0.0


def test_train_from_episodes_fills_buffer_and_trains():
    loop = make_loop()
    steps = tuple(EpisodeStep(features=tuple([0.2] * FEATURE_SIZE), action=1, reward=0.5) for _ in range(60))
    loop.train_from_episodes([Episode(steps=steps, final_score=2.0), Episode(steps=steps, final_score=4.0)])

    assert len(loop.buffer) == 120
    assert loop.state.episodes == 2
    assert loop.exploration_rate < EXPLORATION_START


def test_reset_clears_state():
    loop = make_loop()
    fill(loop, 10)
    loop.end_episode(7.0)

    loop.reset()

    assert loop.state.episodes == 0
    assert loop.exploration_rate == EXPLORATION_RESET
    assert len(loop.buffer) == 0


def test_loop_keeps_the_buffer_and_store_it_was_given():
    buffer = ExperienceBuffer(capacity=3)
    store = WeightStore(MemoryKeyValueStore())
    loop = TrainingLoop(PolicyValueNetwork(SMALL_TOPOLOGY), buffer, store)

    assert loop.buffer is buffer
    assert loop.store is store
    fill(loop, 5)
    assert len(buffer) == 3

    loop.end_episode(1.0)
    assert len(store) == 1


def test_unreadable_metadata_fields_are_skipped():
    loop = make_loop()
    loop.apply_metadata(
        {"episodes": "12", "averagePerformance": "fast", "bestPerformance": float("inf"), "explorationRate": 0.25}
    )

    assert loop.state.episodes == 12
    assert loop.state.average_performance == 0.0
    assert loop.state.best_performance == 0.0
    assert loop.exploration_rate == 0.25
