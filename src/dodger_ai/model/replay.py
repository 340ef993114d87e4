"""Bounded experience replay with priority-biased sampling."""

from __future__ import annotations

from dataclasses import dataclass
import heapq
import random
from typing import Sequence

from dodger_ai.config import (
    HAZARD_BLOCK_OFFSET,
    HAZARD_FEATURES,
    HIGH_PRIORITY_FRACTION,
    MAX_TRACKED_HAZARDS,
    PROXIMITY_WEIGHT_FLOOR,
    REPLAY_BUFFER_SIZE,
    TERMINAL_PRIORITY_BONUS,
)


@dataclass(frozen=True)
class Experience:
    state: tuple[float, ...]
    action: int
    reward: float
    next_state: tuple[float, ...] | None
    done: bool
    priority: float


def experience_priority(state: Sequence[float], reward: float, done: bool) -> float:
    """``|reward| + 2*done``, scaled up when hazards sit close to the player."""
    priority = abs(reward) + (TERMINAL_PRIORITY_BONUS if done else 0.0)
    weights = []
    for index in range(MAX_TRACKED_HAZARDS):
        offset = HAZARD_BLOCK_OFFSET + index * HAZARD_FEATURES + HAZARD_FEATURES - 1
        if offset >= len(state):
            break
        if state[offset] > PROXIMITY_WEIGHT_FLOOR:
            weights.append(state[offset])
    if weights:
        priority *= 1.0 + 2.0 * (sum(weights) / len(weights))
    return priority


class ExperienceBuffer:
    """Ring buffer; the oldest experience is overwritten once full."""

    def __init__(self, capacity: int = REPLAY_BUFFER_SIZE, rng: random.Random | None = None):
        if capacity <= 0:
            raise ValueError(f"Replay capacity must be positive, got {capacity}.")
        self.capacity = capacity
        self.rng = rng or random.Random()
        self._entries: list[tuple[int, Experience]] = []
        self._write = 0
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._entries)

    def size(self) -> int:
        return len(self._entries)

    def add(self, experience: Experience) -> None:
        entry = (self._sequence, experience)
        self._sequence += 1
        if len(self._entries) < self.capacity:
            self._entries.append(entry)
            return
        self._entries[self._write] = entry
        self._write = (self._write + 1) % self.capacity

    def sample(self, count: int) -> list[Experience]:
        """Top ``floor(0.8*count)`` by priority, then uniform draws with replacement."""
        if len(self._entries) < count:
            return [experience for _, experience in self._entries]

        high_count = int(count * HIGH_PRIORITY_FRACTION)
        top = heapq.nlargest(high_count, self._entries, key=lambda entry: (entry[1].priority, -entry[0]))
        samples = [experience for _, experience in top]
        while len(samples) < count:
            samples.append(self.rng.choice(self._entries)[1])
        return samples

    def clear(self) -> None:
        self._entries.clear()
        self._write = 0
        self._sequence = 0
