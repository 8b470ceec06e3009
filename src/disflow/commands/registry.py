"""In-memory slash command table."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import msgspec

from ..logging import get_logger
from ..schemas import CommandParameter, to_parameter

if TYPE_CHECKING:
    from ..context import CommandContext

logger = get_logger(__name__)

CommandHandler = Callable[["CommandContext"], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class CommandDefinition:
    name: str
    description: str
    handler: CommandHandler
    parameters: tuple[CommandParameter, ...] = field(default_factory=tuple)
    source: Path | None = None


class CommandRegistry:
    """Commands keyed by lowercased name. Re-registering a name overwrites."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandDefinition] = {}

    def register(self, definition: CommandDefinition) -> bool:
        name = definition.name
        if not isinstance(name, str) or not name.strip():
            logger.error("command.invalid", reason="name must be a non-empty string")
            return False
        if not isinstance(definition.description, str) or not definition.description.strip():
            logger.error(
                "command.invalid",
                command=name,
                reason="description must be a non-empty string",
            )
            return False
        if not callable(definition.handler):
            logger.error(
                "command.invalid", command=name, reason="handler must be callable"
            )
            return False
        try:
            parameters = tuple(to_parameter(item) for item in definition.parameters)
        except (TypeError, ValueError, msgspec.ValidationError) as exc:
            logger.error(
                "command.invalid",
                command=name,
                reason=f"invalid parameters: {exc}",
            )
            return False

        key = name.strip().lower()
        self._commands[key] = replace(definition, name=key, parameters=parameters)
        return True

    def remove(self, name: str) -> bool:
        return self._commands.pop(name.lower(), None) is not None

    def remove_source(self, source: Path) -> list[str]:
        owned = [
            name
            for name, definition in self._commands.items()
            if definition.source == source
        ]
        for name in owned:
            del self._commands[name]
        return owned

    def has(self, name: str) -> bool:
        return name.lower() in self._commands

    def get(self, name: str) -> CommandDefinition | None:
        return self._commands.get(name.lower())

    def all(self) -> list[CommandDefinition]:
        return list(self._commands.values())

    def list(self) -> list[CommandDefinition]:
        return self.all()

    def names(self) -> list[str]:
        return list(self._commands)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.has(name)

    def __iter__(self) -> Iterator[CommandDefinition]:
        return iter(self.all())

    def __len__(self) -> int:
        return len(self._commands)
