"""Top-N snapshot store for network parameters."""

from __future__ import annotations

from dataclasses import dataclass
import io
import json
import logging
import pickle
import time
import uuid
from typing import Any

import torch

from dodger_ai.config import MAX_SNAPSHOTS, STORE_INDEX_KEY
from dodger_ai.model.storage import KeyValueStore, MemoryKeyValueStore

LOGGER = logging.getLogger("dodger_ai.store")


@dataclass(frozen=True)
class WeightSnapshot:
    id: str
    timestamp: int
    performance: float
    parameters: dict[str, Any]

    def summary(self) -> dict[str, Any]:
        return {"id": self.id, "performance": self.performance, "timestamp": self.timestamp}


def _encode_parameters(parameters: dict[str, Any]) -> bytes:
    buffer = io.BytesIO()
    torch.save(parameters, buffer)
    return buffer.getvalue()


def _decode_parameters(data: bytes) -> dict[str, Any]:
    return torch.load(io.BytesIO(data), map_location="cpu", weights_only=True)


def _copy_parameters(parameters: dict[str, Any]) -> dict[str, Any]:
    copied: dict[str, Any] = {}
    for key, value in parameters.items():
        if isinstance(value, torch.Tensor):
            copied[key] = value.detach().cpu().clone()
        elif isinstance(value, dict):
            copied[key] = _copy_parameters(value)
        else:
            copied[key] = value
    return copied


class WeightStore:
    """Keeps the best ``max_snapshots`` parameter sets by performance.

    The index (id, timestamp, performance) is a JSON document under
    ``index_key``; each snapshot's tensors are a separate ``torch.save`` blob.
    """

    def __init__(
        self,
        backend: KeyValueStore | None = None,
        max_snapshots: int = MAX_SNAPSHOTS,
        index_key: str = STORE_INDEX_KEY,
    ):
        self.backend = backend if backend is not None else MemoryKeyValueStore()
        self.max_snapshots = max_snapshots
        self.index_key = index_key
        self._snapshots: list[WeightSnapshot] = []

    def __len__(self) -> int:
        return len(self._snapshots)

    def _blob_key(self, snapshot_id: str) -> str:
        return f"{self.index_key}.{snapshot_id}.pt"

    def save(self, performance: float, parameters: dict[str, Any]) -> str:
        snapshot = WeightSnapshot(
            id=f"weights_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}",
            timestamp=int(time.time() * 1000),
            performance=float(performance),
            parameters=_copy_parameters(parameters),
        )
        self._snapshots.append(snapshot)

        evicted: list[WeightSnapshot] = []
        if len(self._snapshots) > self.max_snapshots:
            self._snapshots.sort(key=lambda item: item.performance, reverse=True)
            evicted = self._snapshots[self.max_snapshots :]
            self._snapshots = self._snapshots[: self.max_snapshots]

        self._persist(snapshot, evicted)
        return snapshot.id

    def _persist(self, added: WeightSnapshot, evicted: list[WeightSnapshot]) -> None:
        try:
            if any(item.id == added.id for item in self._snapshots):
                self.backend.write(self._blob_key(added.id), _encode_parameters(added.parameters))
            index = [item.summary() for item in self._snapshots]
            self.backend.write(self.index_key, json.dumps(index).encode("utf-8"))
            for item in evicted:
                self.backend.delete(self._blob_key(item.id))
        except (OSError, RuntimeError) as error:
            LOGGER.warning("Could not persist weight snapshots: %s", error)

    def get_best(self) -> dict[str, Any] | None:
        if not self._snapshots:
            return None
        best = max(self._snapshots, key=lambda item: item.performance)
        return best.parameters

    def load(self, snapshot_id: str) -> dict[str, Any] | None:
        for snapshot in self._snapshots:
            if snapshot.id == snapshot_id:
                return snapshot.parameters
        return None

    def list_snapshots(self) -> list[dict[str, Any]]:
        return [snapshot.summary() for snapshot in self._snapshots]

    def load_from_storage(self) -> bool:
        """Replace the in-memory snapshots with the persisted ones.

        Returns False (leaving the store empty) when nothing is stored or the
        stored data cannot be read.
        """
        try:
            raw_index = self.backend.read(self.index_key)
            if raw_index is None:
                self._snapshots = []
                return False
            loaded = []
            for entry in json.loads(raw_index.decode("utf-8")):
                snapshot_id = str(entry["id"])
                blob = self.backend.read(self._blob_key(snapshot_id))
                if blob is None:
                    raise ValueError(f"missing parameters for snapshot {snapshot_id}")
                loaded.append(
                    WeightSnapshot(
                        id=snapshot_id,
                        timestamp=int(entry["timestamp"]),
                        performance=float(entry["performance"]),
                        parameters=_decode_parameters(blob),
                    )
                )
        except (OSError, RuntimeError, ValueError, KeyError, TypeError, pickle.UnpicklingError, EOFError) as error:
            LOGGER.warning("Stored weights are unreadable, starting empty: %s", error)
            self._snapshots = []
            return False

        if len(loaded) > self.max_snapshots:
            loaded.sort(key=lambda item: item.performance, reverse=True)
            loaded = loaded[: self.max_snapshots]
        self._snapshots = loaded
        LOGGER.info("Loaded %d weight snapshots", len(self._snapshots))
        return bool(self._snapshots)
