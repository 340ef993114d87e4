"""Logging setup and run/episode line formatting."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
MISSING_PREFIX = "missing:"

# Short tags for the reward breakdown column of episode lines.
BREAKDOWN_TAGS = (("survival", "S"), ("hit", "H"), ("pickup", "P"), ("death", "D"))


def configure_logging(level: str | None = None) -> None:
    """Root handler for entrypoints; ``DODGER_LOG_LEVEL`` applies when ``level`` is omitted."""
    name = (level or os.getenv("DODGER_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT, force=True)


def format_display_path(path_value: str | Path) -> str:
    path_obj = Path(path_value)
    if not path_obj.is_absolute():
        return str(path_obj)
    for base in (Path.cwd(), PROJECT_ROOT):
        try:
            return str(path_obj.relative_to(base))
        except ValueError:
            continue
    return str(path_obj)


def describe_path(path_value: str | Path) -> str:
    """Display form of a path, tagged ``missing:`` when nothing exists there."""
    shown = format_display_path(path_value)
    return shown if Path(path_value).exists() else f"{MISSING_PREFIX}{shown}"


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "on" if value else "off"
    if isinstance(value, float):
        return f"{value:.3f}"
    if isinstance(value, Path):
        return format_display_path(value)
    return str(value)


def format_reward_breakdown(breakdown: Mapping[str, float]) -> str:
    return " ".join(f"{tag}{breakdown.get(key, 0.0):.2f}" for key, tag in BREAKDOWN_TAGS)


def format_episode_line(segments: Mapping[str, Any]) -> str:
    """Tab-separated ``Key=value`` line; ``None`` values are skipped."""
    return "\t".join(f"{key}={value}" for key, value in segments.items() if value is not None)


def log_key_values(
    logger_name: str,
    values: Mapping[str, Any],
    *,
    prefix: str | None = None,
    separator: str = "=",
    level: int = logging.INFO,
) -> None:
    segments = [str(prefix)] if prefix else []
    for key, value in values.items():
        if value is None:
            continue
        joiner = ": " if separator == ":" else separator
        segments.append(f"{key}{joiner}{_format_value(value)}")
    logging.getLogger(logger_name).log(level, "\t".join(segments))


def log_run_context(mode: str, context: Mapping[str, Any]) -> None:
    """One header line for a run, e.g. ``Train\tEpisodes: 500\tGpu: off``."""
    label = " ".join(word.title() for word in mode.replace("-", " ").split())
    titled = {key.replace("_", " ").title(): value for key, value in context.items()}
    log_key_values("dodger_ai.run", titled, prefix=label, separator=":")
