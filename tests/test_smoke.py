import pytest


def test_import_package():
    import dodger_ai

    assert dodger_ai.__version__


def test_entrypoints_import():
    from dodger_ai import train_ai
    from dodger_ai.agent import DodgerAgent

    assert callable(train_ai.train)
    assert hasattr(DodgerAgent, "decide")


def test_training_arguments_are_validated():
    from dodger_ai.train_ai import resolve_speed_law, resolve_training_episodes

    assert resolve_training_episodes(3) == 3
    assert resolve_speed_law("fast") == "fast"
    with pytest.raises(ValueError):
        resolve_training_episodes(0)
    with pytest.raises(ValueError):
        resolve_speed_law("warp")


def test_short_episode_runs_end_to_end(tmp_path):
    import random

    from conftest import SMALL_TOPOLOGY
    from dodger_ai.agent import DodgerAgent
    from dodger_ai.arena import Arena
    from dodger_ai.model.storage import MemoryKeyValueStore
    from dodger_ai.model.weight_store import WeightStore
    from dodger_ai.train_ai import run_episode

    agent = DodgerAgent(
        topology=SMALL_TOPOLOGY,
        store=WeightStore(MemoryKeyValueStore()),
        preset_path=tmp_path / "none.json",
        rng=random.Random(5),
    )
    arena = Arena(max_seconds=0.1, rng=random.Random(5))

    reward, breakdown, mode_counts = run_episode(agent, arena)

    assert arena.frame_count == sum(mode_counts.values())
    assert breakdown["survival"] > 0
    assert reward <= breakdown["survival"]
    assert len(agent.training.buffer) == arena.frame_count - 1


def test_episode_line_formatting(tmp_path):
    from dodger_ai.logging_utils import describe_path, format_episode_line, format_reward_breakdown

    line = format_episode_line({"Episode": 4, "Skipped": None, "Rewards": format_reward_breakdown({"survival": 1.5})})

    assert line == "Episode=4\tRewards=S1.50 H0.00 P0.00 D0.00"
    assert describe_path(tmp_path / "absent.json").startswith("missing:")
    assert not describe_path(tmp_path).startswith("missing:")
