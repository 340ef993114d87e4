"""Headless self-play training entrypoint for Dodger AI."""

from __future__ import annotations

if __package__ in {None, ""}:
    import sys
    from pathlib import Path

    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from collections import deque
import logging

from dodger_ai.agent import DodgerAgent
from dodger_ai.arena import Arena
from dodger_ai.config import (
    ARENA_FPS,
    DEFAULT_SPEED_LAW,
    MAX_EPISODE_SECONDS,
    NETWORK_TOPOLOGY,
    PRESET_WEIGHTS_PATH,
    REWARD_ROLLING_WINDOW,
    SPEED_LAWS,
    STORE_DIR,
    TOTAL_TRAINING_EPISODES,
    USE_GPU,
)
from dodger_ai.logging_utils import (
    configure_logging,
    describe_path,
    format_episode_line,
    format_reward_breakdown,
    log_key_values,
    log_run_context,
)

LOGGER = logging.getLogger("dodger_ai.train")


def resolve_training_episodes(episodes: int | None) -> int:
    count = TOTAL_TRAINING_EPISODES if episodes is None else int(episodes)
    if count <= 0:
        raise ValueError(f"Training episode count must be positive, got {count}.")
    return count


def resolve_speed_law(name: str) -> str:
    if name not in SPEED_LAWS:
        raise ValueError(f"Unknown speed law {name!r}. Use one of: {', '.join(sorted(SPEED_LAWS))}.")
    return name


def run_episode(agent: DodgerAgent, arena: Arena) -> tuple[float, dict[str, float], dict[str, int]]:
    """Play one episode with training decisions; returns (reward, reward breakdown, plan counts)."""
    arena.reset()
    agent.begin_episode()
    dt = 1.0 / ARENA_FPS
    episode_reward = 0.0
    breakdown_totals = {"survival": 0.0, "hit": 0.0, "pickup": 0.0, "death": 0.0}
    mode_counts: dict[str, int] = {}

    while True:
        decision = agent.decide(arena.snapshot(), arena.difficulty, training=True)
        mode_counts[decision.mode] = mode_counts.get(decision.mode, 0) + 1
        features = agent.last_features
        reward, done, breakdown = arena.play_step(decision, dt)
        episode_reward += reward
        for key, value in breakdown.items():
            breakdown_totals[key] += value

        if done:
            agent.add_experience(features, decision.action, reward, None, True)
            break
        agent.add_training_step(features, decision.action, reward)

    return episode_reward, breakdown_totals, mode_counts


def train(episodes: int | None = None, speed_law: str = DEFAULT_SPEED_LAW) -> None:
    configure_logging()
    episode_total = resolve_training_episodes(episodes)
    agent = DodgerAgent(speed_law=resolve_speed_law(speed_law))
    weights_source = agent.load_initial_weights()
    arena = Arena(max_seconds=MAX_EPISODE_SECONDS)
    reward_window = deque(maxlen=REWARD_ROLLING_WINDOW)

    log_run_context(
        "train",
        {
            "episodes": episode_total,
            "speed_law": speed_law,
            "hidden_layers": "x".join(str(size) for size in NETWORK_TOPOLOGY.hidden_sizes),
            "weights": weights_source,
            "preset": describe_path(PRESET_WEIGHTS_PATH),
            "store": STORE_DIR,
            "gpu": USE_GPU,
        },
    )

    try:
        for _ in range(episode_total):
            episode_reward, breakdown, mode_counts = run_episode(agent, arena)
            survival_seconds = arena.elapsed
            best_before = agent.training.state.best_performance
            agent.end_episode(survival_seconds)

            stats = agent.get_stats()
            reward_window.append(episode_reward)
            avg_reward = sum(reward_window) / len(reward_window)
            LOGGER.info(
                format_episode_line(
                    {
                        "Episode": stats["episodes"],
                        "Frames": arena.frame_count,
                        "Survival": f"{survival_seconds:.2f}s",
                        "Reward": f"{episode_reward:.2f}",
                        f"Avg{REWARD_ROLLING_WINDOW}": f"{avg_reward:.2f}",
                        "Best": f"{stats['best_performance']:.2f}",
                        "Epsilon": f"{stats['exploration_rate']:.3f}",
                        "Buffer": stats["experience_count"],
                        "Rewards": format_reward_breakdown(breakdown),
                    }
                )
            )
            LOGGER.debug("Plan modes: %s", mode_counts)

            if survival_seconds > best_before:
                log_key_values(
                    LOGGER.name,
                    {
                        "Event": "New Best",
                        "Survival": f"{survival_seconds:.2f}s",
                        "Snapshots": stats["weight_count"],
                    },
                )
    finally:
        agent.close()


if __name__ == "__main__":
    train()
