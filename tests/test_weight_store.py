import torch

from dodger_ai.model.storage import DirectoryKeyValueStore, MemoryKeyValueStore
from dodger_ai.model.weight_store import WeightStore


def make_parameters(value):
    return {
        "inputLayer": {"weights": torch.full((2, 3), float(value)), "biases": torch.zeros(2)},
        "metadata": {"episodes": int(value), "version": "2.0"},
    }


def test_store_keeps_top_snapshots_by_performance():
    store = WeightStore(MemoryKeyValueStore(), max_snapshots=10)
    for performance in range(12):
        store.save(performance, make_parameters(performance))

    performances = sorted(entry["performance"] for entry in store.list_snapshots())
    assert len(store) == 10
    assert performances == [float(p) for p in range(2, 12)]
    assert store.get_best()["metadata"]["episodes"] == 11


def test_saved_parameters_are_copied():
    store = WeightStore(MemoryKeyValueStore())
    parameters = make_parameters(1)
    snapshot_id = store.save(1.0, parameters)
    parameters["inputLayer"]["weights"].fill_(99.0)

    assert float(store.load(snapshot_id)["inputLayer"]["weights"][0, 0]) == 1.0
    assert store.load("missing") is None


def test_snapshots_survive_reload_from_backend():
    backend = MemoryKeyValueStore()
    first = WeightStore(backend)
    snapshot_id = first.save(4.5, make_parameters(3))

    second = WeightStore(backend)
    assert second.load_from_storage()
    loaded = second.load(snapshot_id)

    assert torch.equal(loaded["inputLayer"]["weights"], torch.full((2, 3), 3.0))
    assert second.list_snapshots()[0]["performance"] == 4.5


def test_corrupt_index_resets_to_empty():
    backend = MemoryKeyValueStore()
    backend.write("dodger_ai_weights_v2", b"{not json")
    store = WeightStore(backend)

    assert store.load_from_storage() is False
    assert len(store) == 0
    assert store.get_best() is None


def test_missing_snapshot_blob_resets_to_empty():
    backend = MemoryKeyValueStore()
    store = WeightStore(backend)
    snapshot_id = store.save(1.0, make_parameters(1))
    backend.delete(f"dodger_ai_weights_v2.{snapshot_id}.pt")

    reloaded = WeightStore(backend)
    assert reloaded.load_from_storage() is False
    assert reloaded.list_snapshots() == []


def test_empty_backend_loads_nothing():
    assert WeightStore(MemoryKeyValueStore()).load_from_storage() is False


def test_directory_backend_round_trip(tmp_path):
    backend = DirectoryKeyValueStore(tmp_path / "store")
    backend.write("a/b", b"payload")

    assert backend.read("a/b") == b"payload"
    assert not list((tmp_path / "store").glob("*.tmp.*"))
    backend.delete("a/b")
    assert backend.read("a/b") is None

    store = WeightStore(DirectoryKeyValueStore(tmp_path / "weights"))
    store.save(2.0, make_parameters(2))
    reloaded = WeightStore(DirectoryKeyValueStore(tmp_path / "weights"))
    assert reloaded.load_from_storage()
    assert reloaded.get_best()["metadata"]["episodes"] == 2
