"""Autonomous dodger agent: features, network, heuristics and persistence."""

from __future__ import annotations

from concurrent.futures import Executor, Future, ThreadPoolExecutor
import json
import logging
from pathlib import Path
import random
from typing import Any, Iterable, Mapping, Sequence

from dodger_ai.config import DEFAULT_SPEED_LAW, NETWORK_TOPOLOGY, PRESET_WEIGHTS_PATH, STORE_DIR, NetworkTopology, SpeedLaw
from dodger_ai.engine.decision import Decision, DecisionComposer
from dodger_ai.engine.features import extract_features
from dodger_ai.logging_utils import format_display_path
from dodger_ai.model.network import PolicyValueNetwork
from dodger_ai.model.replay import ExperienceBuffer
from dodger_ai.model.storage import DirectoryKeyValueStore
from dodger_ai.model.training import Episode, TrainingLoop
from dodger_ai.model.weight_store import WeightStore
from dodger_ai.world import WorldState

LOGGER = logging.getLogger("dodger_ai.agent")

SOURCE_PRESET = "preset"
SOURCE_STORAGE = "storage"
SOURCE_FRESH = "fresh"


class DodgerAgent:
    """Picks one of nine movement actions and a speed multiplier per tick."""

    def __init__(
        self,
        topology: NetworkTopology = NETWORK_TOPOLOGY,
        store: WeightStore | None = None,
        speed_law: SpeedLaw | str = DEFAULT_SPEED_LAW,
        preset_path: str | Path | None = None,
        rng: random.Random | None = None,
    ):
        self.network = PolicyValueNetwork(topology)
        self.store = store if store is not None else WeightStore(DirectoryKeyValueStore(STORE_DIR))
        self.training = TrainingLoop(self.network, ExperienceBuffer(rng=rng), self.store)
        self.composer = DecisionComposer(speed_law, rng=rng)
        self.preset_path = Path(preset_path) if preset_path is not None else PRESET_WEIGHTS_PATH
        self.last_action = 0
        self.last_features: list[float] | None = None
        self._executor: ThreadPoolExecutor | None = None

    def decide(self, world: WorldState | Mapping[str, Any], difficulty: float = 0.0, training: bool = False) -> Decision:
        if not isinstance(world, WorldState):
            world = WorldState.from_dict(world)
        features = extract_features(world, difficulty, self.last_action, self.last_features)
        value, policy = self.network.forward(features)
        decision = self.composer.compose(
            world,
            value,
            policy,
            training=training,
            exploration_rate=self.training.exploration_rate,
        )
        self.last_features = features
        self.last_action = decision.action
        return decision

    # Training passthroughs
    def begin_episode(self) -> None:
        self.training.begin_episode()
        self.composer.memory.clear()
        self.last_action = 0
        self.last_features = None

    def end_episode(self, final_score: float) -> None:
        self.training.end_episode(final_score)

    def add_experience(self, state: Sequence[float], action: int, reward: float, next_state, done: bool) -> None:
        self.training.add_experience(state, action, reward, next_state, done)

    def add_training_step(self, features: Sequence[float], action: int, reward: float) -> None:
        self.training.add_training_step(features, action, reward)

    def train(self) -> int:
        return self.training.train()

    def train_from_episodes(self, episodes: Iterable[Episode]) -> None:
        self.training.train_from_episodes(episodes)

    # Weights
    def _apply_parameters(self, document: Mapping[str, Any]) -> None:
        self.network.import_layers(document)
        metadata = document.get("metadata")
        if isinstance(metadata, Mapping):
            self.training.apply_metadata(dict(metadata))

    def export_weights(self) -> str:
        document = {**self.network.export_layers(), "metadata": self.training.metadata()}
        return json.dumps(document, indent=2)

    def import_weights(self, data: str | Mapping[str, Any]) -> bool:
        """Load a snapshot document; returns False and keeps current weights when it is malformed."""
        if isinstance(data, Mapping):
            document = data
        else:
            try:
                document = json.loads(data)
            except (TypeError, ValueError) as error:
                LOGGER.warning("Rejected weights document: %s", error)
                return False
        if not isinstance(document, Mapping):
            return False
        metadata = document.get("metadata")
        if not isinstance(metadata, Mapping) or not metadata.get("version"):
            LOGGER.warning("Rejected weights document without metadata.version")
            return False
        self._apply_parameters(document)
        return True

    def list_weights(self) -> list[dict[str, Any]]:
        return self.store.list_snapshots()

    def load_specific_weights(self, snapshot_id: str) -> bool:
        parameters = self.store.load(snapshot_id)
        if parameters is None:
            return False
        self._apply_parameters(parameters)
        return True

    def load_from_storage(self) -> bool:
        self.store.load_from_storage()
        best = self.store.get_best()
        if best is None:
            return False
        self._apply_parameters(best)
        LOGGER.info("Loaded best stored weights")
        return True

    def load_from_preset(self, path: str | Path | None = None) -> bool:
        preset = Path(path) if path is not None else self.preset_path
        try:
            text = preset.read_text(encoding="utf-8")
        except OSError as error:
            LOGGER.warning("Preset weights unavailable (%s): %s", format_display_path(preset), error)
            return False
        if not self.import_weights(text):
            return False
        LOGGER.info("Loaded preset weights from %s", format_display_path(preset))
        return True

    def load_initial_weights(self) -> str:
        """Preset file, then the best stored snapshot, then fresh weights."""
        if self.load_from_preset():
            return SOURCE_PRESET
        if self.load_from_storage():
            return SOURCE_STORAGE
        self.network.reinitialize()
        LOGGER.info("Using freshly initialized weights")
        return SOURCE_FRESH

    def load_weights_in_background(self, executor: Executor | None = None) -> Future:
        if executor is None:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dodger-weights")
            executor = self._executor
        return executor.submit(self.load_initial_weights)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def reset_weights(self) -> None:
        self.network.reinitialize()
        self.training.reset()
        self.composer.reset()
        self.last_action = 0
        self.last_features = None
        LOGGER.info("Weights reset")

    def get_stats(self) -> dict[str, Any]:
        return {
            **self.training.get_stats(),
            "center_time_ratio": self.composer.center_time_ratio,
            "speed_law": self.composer.speed_law.name,
        }
