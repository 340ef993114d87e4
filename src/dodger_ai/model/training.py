"""Episode bookkeeping, replay training and snapshot scheduling."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import logging
import math
from typing import Any, Iterable, Sequence

from dodger_ai.config import (
    BATCH_SIZE,
    EXPLORATION_DECAY,
    EXPLORATION_MIN,
    EXPLORATION_RESET,
    EXPLORATION_START,
    GAMMA,
    LEARNING_RATE,
    MIN_TRAINING_EXPERIENCES,
    SNAPSHOT_EVERY_EPISODES,
    TRAIN_EVERY_EPISODES,
    WEIGHTS_VERSION,
)
from dodger_ai.model.network import PolicyValueNetwork
from dodger_ai.model.replay import Experience, ExperienceBuffer, experience_priority
from dodger_ai.model.weight_store import WeightStore

LOGGER = logging.getLogger("dodger_ai.train")


@dataclass
class TrainingState:
    episodes: int = 0
    total_reward: float = 0.0
    best_performance: float = 0.0
    average_performance: float = 0.0
    exploration_rate: float = EXPLORATION_START


@dataclass(frozen=True)
class EpisodeStep:
    features: tuple[float, ...]
    action: int
    reward: float


@dataclass(frozen=True)
class Episode:
    steps: tuple[EpisodeStep, ...] = field(default_factory=tuple)
    final_score: float = 0.0


def _metadata_value(metadata: dict[str, Any], key: str, cast, current):
    raw = metadata.get(key)
    if raw is None:
        return current
    try:
        value = cast(raw)
    except (TypeError, ValueError, OverflowError):
        LOGGER.warning("Ignoring metadata %s=%r", key, raw)
        return current
    if isinstance(value, float) and not math.isfinite(value):
        LOGGER.warning("Ignoring metadata %s=%r", key, raw)
        return current
    return value


class TrainingLoop:
    def __init__(
        self,
        network: PolicyValueNetwork,
        buffer: ExperienceBuffer | None = None,
        store: WeightStore | None = None,
    ):
        self.network = network
        self.buffer = buffer if buffer is not None else ExperienceBuffer()
        self.store = store if store is not None else WeightStore()
        self.state = TrainingState()
        self.last_features: tuple[float, ...] | None = None
        self.last_action = 0

    @property
    def exploration_rate(self) -> float:
        return self.state.exploration_rate

    def add_experience(
        self,
        state: Sequence[float],
        action: int,
        reward: float,
        next_state: Sequence[float] | None,
        done: bool,
    ) -> None:
        self.buffer.add(
            Experience(
                state=tuple(state),
                action=int(action),
                reward=float(reward),
                next_state=tuple(next_state) if next_state is not None else None,
                done=bool(done),
                priority=experience_priority(state, reward, done),
            )
        )

    def add_training_step(self, features: Sequence[float], action: int, reward: float) -> None:
        """Store the previous step with ``features`` as its next state, then remember this one."""
        features = tuple(features)
        if self.last_features is not None:
            self.buffer.add(
                Experience(
                    state=self.last_features,
                    action=self.last_action,
                    reward=float(reward),
                    next_state=features,
                    done=False,
                    priority=abs(reward) + 0.1,
                )
            )
        self.last_features = features
        self.last_action = int(action)

    def _target(self, experience: Experience) -> float:
        target = experience.reward
        if not experience.done and experience.next_state is not None:
            next_value, _ = self.network.forward(experience.next_state)
            target += GAMMA * next_value
        return target

    def train(self) -> int:
        """One replay pass; returns the number of experiences used."""
        if len(self.buffer) < MIN_TRAINING_EXPERIENCES:
            return 0
        batch = self.buffer.sample(min(BATCH_SIZE, len(self.buffer)))
        for experience in batch:
            target = self._target(experience)
            value, _ = self.network.forward(experience.state)
            self.network.nudge_biases(target - value, experience.action, LEARNING_RATE)

        self.state.exploration_rate = max(EXPLORATION_MIN, self.state.exploration_rate * EXPLORATION_DECAY)
        LOGGER.debug("Trained on %d experiences, exploration %.3f", len(batch), self.state.exploration_rate)
        return len(batch)

    def begin_episode(self) -> None:
        self.last_features = None
        self.last_action = 0

    def end_episode(self, final_score: float) -> None:
        state = self.state
        state.episodes += 1
        state.total_reward += final_score
        state.average_performance = state.total_reward / state.episodes

        if final_score > state.best_performance:
            state.best_performance = final_score
            self.save_snapshot(final_score)

        if state.episodes % TRAIN_EVERY_EPISODES == 0:
            self.train()

        if state.episodes % SNAPSHOT_EVERY_EPISODES == 0:
            self.save_snapshot(state.average_performance)

    def train_from_episodes(self, episodes: Iterable[Episode]) -> None:
        for episode in episodes:
            self.begin_episode()
            for step in episode.steps:
                self.buffer.add(
                    Experience(
                        state=tuple(step.features),
                        action=int(step.action),
                        reward=float(step.reward),
                        next_state=None,
                        done=False,
                        priority=abs(step.reward),
                    )
                )
            self.end_episode(episode.final_score)

        if len(self.buffer) > 32:
            self.train()

    def metadata(self) -> dict[str, Any]:
        return {
            "episodes": self.state.episodes,
            "averagePerformance": self.state.average_performance,
            "bestPerformance": self.state.best_performance,
            "explorationRate": self.state.exploration_rate,
            "version": WEIGHTS_VERSION,
        }

    def apply_metadata(self, metadata: dict[str, Any]) -> None:
        """Copy snapshot metadata into the training state; unreadable fields keep their current value."""
        state = self.state
        state.episodes = _metadata_value(metadata, "episodes", int, state.episodes)
        state.average_performance = _metadata_value(metadata, "averagePerformance", float, state.average_performance)
        state.best_performance = _metadata_value(metadata, "bestPerformance", float, state.best_performance)
        state.exploration_rate = _metadata_value(metadata, "explorationRate", float, state.exploration_rate)
        state.total_reward = state.average_performance * state.episodes

    def snapshot_parameters(self) -> dict[str, Any]:
        return {**self.network.layer_tensors(), "metadata": self.metadata()}

    def save_snapshot(self, performance: float) -> str:
        snapshot_id = self.store.save(performance, self.snapshot_parameters())
        LOGGER.info("Saved weight snapshot %s (performance %.2f)", snapshot_id, performance)
        return snapshot_id

    def get_stats(self) -> dict[str, Any]:
        return {
            **asdict(self.state),
            "experience_count": len(self.buffer),
            "weight_count": len(self.store),
        }

    def reset(self) -> None:
        self.state = TrainingState(exploration_rate=EXPLORATION_RESET)
        self.buffer.clear()
        self.begin_episode()
