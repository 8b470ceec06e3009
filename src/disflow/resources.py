from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

VALUES_FILENAME = "vals.toml"
EMOJI_FILENAME = "emoji.toml"


@dataclass(frozen=True, slots=True)
class Resources:
    """User tables shared with every command: ``vals.toml`` and ``emoji.toml``."""

    values: dict[str, Any] = field(default_factory=dict)
    emoji: dict[str, Any] = field(default_factory=dict)


def read_table(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("resources.missing", file=path.name)
        return {}
    except OSError as exc:
        logger.warning("resources.read_failed", file=path.name, error=str(exc))
        return {}
    try:
        table = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        logger.error("resources.malformed", file=path.name, error=str(exc))
        return {}
    logger.info("resources.loaded", file=path.name, entries=len(table))
    return table


def load_resources(base_dir: Path) -> Resources:
    return Resources(
        values=read_table(base_dir / VALUES_FILENAME),
        emoji=read_table(base_dir / EMOJI_FILENAME),
    )
