import json

from conftest import SMALL_TOPOLOGY, make_hazard, make_world
from dodger_ai.agent import SOURCE_FRESH, SOURCE_PRESET, SOURCE_STORAGE, DodgerAgent
from dodger_ai.config import NUM_ACTIONS, FEATURE_SIZE, WEIGHTS_VERSION
from dodger_ai.model.storage import MemoryKeyValueStore
from dodger_ai.model.weight_store import WeightStore


def make_agent(tmp_path, store=None):
    return DodgerAgent(
        topology=SMALL_TOPOLOGY,
        store=store if store is not None else WeightStore(MemoryKeyValueStore()),
        preset_path=tmp_path / "missing-preset.json",
    )


def test_decide_records_features_and_action(tmp_path):
    agent = make_agent(tmp_path)
    decision = agent.decide(make_world(hazards=[make_hazard(630, 337.5, base_speed=0.0)]), difficulty=1.0)

    assert 0 <= decision.action < NUM_ACTIONS
    assert len(agent.last_features) == FEATURE_SIZE
    assert agent.last_action == decision.action


def test_export_import_round_trip(tmp_path):
    source = make_agent(tmp_path)
    source.training.state.episodes = 12
    exported = source.export_weights()

    target = make_agent(tmp_path)
    assert target.import_weights(exported)
    assert json.loads(target.export_weights()) == json.loads(exported)
    assert target.training.state.episodes == 12
    assert json.loads(exported)["metadata"]["version"] == WEIGHTS_VERSION


def test_import_rejects_malformed_documents(tmp_path):
    agent = make_agent(tmp_path)
    before = agent.export_weights()

    assert not agent.import_weights("{not json")
    assert not agent.import_weights(json.dumps({"inputLayer": {}, "metadata": {}}))
    assert not agent.import_weights("[1, 2, 3]")
    assert agent.export_weights() == before


def test_load_from_preset(tmp_path):
    preset = tmp_path / "preset.json"
    preset.write_text(make_agent(tmp_path).export_weights(), encoding="utf-8")

    agent = make_agent(tmp_path)
    assert agent.load_from_preset(preset)
    assert not agent.load_from_preset(tmp_path / "nope.json")


def test_initial_weights_fall_back_in_order(tmp_path):
    store = WeightStore(MemoryKeyValueStore())
    agent = make_agent(tmp_path, store)
    assert agent.load_initial_weights() == SOURCE_FRESH

    agent.training.save_snapshot(4.0)
    reloaded = make_agent(tmp_path, WeightStore(store.backend))
    assert reloaded.load_initial_weights() == SOURCE_STORAGE

    preset = tmp_path / "preset.json"
    preset.write_text(agent.export_weights(), encoding="utf-8")
    with_preset = DodgerAgent(topology=SMALL_TOPOLOGY, store=WeightStore(store.backend), preset_path=preset)
    assert with_preset.load_initial_weights() == SOURCE_PRESET


def test_background_load_resolves(tmp_path):
    agent = make_agent(tmp_path)
    try:
        future = agent.load_weights_in_background()
        assert future.result(timeout=30) == SOURCE_FRESH
    finally:
        agent.close()


def test_load_specific_weights(tmp_path):
    agent = make_agent(tmp_path)
    agent.training.state.episodes = 3
    snapshot_id = agent.training.save_snapshot(2.5)
    agent.training.state.episodes = 9

    assert agent.list_weights()[0]["id"] == snapshot_id
    assert agent.load_specific_weights(snapshot_id)
    assert agent.training.state.episodes == 3
    assert not agent.load_specific_weights("weights_unknown")


def test_reset_weights_and_stats(tmp_path):
    agent = make_agent(tmp_path)
    agent.decide(make_world())
    agent.training.end_episode(3.0)

    agent.reset_weights()
    stats = agent.get_stats()

    assert agent.last_features is None
    assert stats["episodes"] == 0
    assert stats["exploration_rate"] == 0.3
    assert stats["center_time_ratio"] == 0.0
    assert {"experience_count", "weight_count", "speed_law", "best_performance"} <= set(stats)


def test_wrong_typed_metadata_keeps_current_values(tmp_path):
    agent = make_agent(tmp_path)
    agent.training.state.episodes = 7
    agent.training.state.exploration_rate = 0.2
    document = json.loads(make_agent(tmp_path).export_weights())
    document["metadata"].update(episodes="abc", averagePerformance=None, explorationRate=[1])

    assert agent.import_weights(json.dumps(document))
    assert agent.training.state.episodes == 7
    assert agent.training.state.exploration_rate == 0.2
    assert json.loads(agent.export_weights())["inputLayer"] == document["inputLayer"]


def test_preset_with_bad_metadata_still_loads(tmp_path):
    document = json.loads(make_agent(tmp_path).export_weights())
    document["metadata"]["episodes"] = [1]
    preset = tmp_path / "preset.json"
    preset.write_text(json.dumps(document), encoding="utf-8")

    agent = DodgerAgent(topology=SMALL_TOPOLOGY, store=WeightStore(MemoryKeyValueStore()), preset_path=preset)
    assert agent.load_initial_weights() == SOURCE_PRESET
    assert agent.training.state.episodes == 0

    try:
        assert agent.load_weights_in_background().result(timeout=30) == SOURCE_PRESET
    finally:
        agent.close()


def test_episode_snapshots_persist_for_the_next_agent(tmp_path):
    backend = MemoryKeyValueStore()
    agent = make_agent(tmp_path, WeightStore(backend))
    assert agent.training.store is agent.store

    agent.training.end_episode(5.0)
    assert len(agent.list_weights()) == 1
    assert backend.keys()

    successor = make_agent(tmp_path, WeightStore(backend))
    assert successor.load_initial_weights() == SOURCE_STORAGE
    assert successor.training.state.best_performance == 5.0
