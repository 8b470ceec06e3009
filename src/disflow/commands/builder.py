"""Registration API handed to command modules.

Usage inside a command file::

    def setup(commands):
        commands.new("ping", "Check bot latency", ping)

        @commands.command("hello", "Says hello")
        async def hello(ctx):
            await ctx.reply("Hello!")
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from ..logging import get_logger
from .registry import CommandDefinition, CommandHandler, CommandRegistry

logger = get_logger(__name__)


class CommandBuilder:
    def __init__(self, registry: CommandRegistry, *, source: Path | None = None) -> None:
        self._registry = registry
        self._source = source

    @property
    def source(self) -> Path | None:
        return self._source

    def new(
        self,
        name: str,
        description: str,
        handler: CommandHandler,
        parameters: Iterable[Any] = (),
    ) -> CommandBuilder:
        """Create and register a slash command; returns the builder for chaining."""
        if not isinstance(name, str) or not name.strip():
            logger.error("command.invalid", reason="name must be a non-empty string")
            return self
        definition = CommandDefinition(
            name=name,
            description=description,
            handler=handler,
            parameters=parameters or (),
            source=self._source,
        )
        if self._registry.register(definition):
            logger.info("command.registered", command=name.lower())
        return self

    add = new

    def command(
        self,
        name: str,
        description: str,
        parameters: Iterable[Any] = (),
    ) -> Callable[[CommandHandler], CommandHandler]:
        def decorator(handler: CommandHandler) -> CommandHandler:
            self.new(name, description, handler, parameters)
            return handler

        return decorator

    def remove(self, name: str) -> bool:
        removed = self._registry.remove(name)
        if removed:
            logger.info("command.removed", command=name.lower())
        return removed

    def has(self, name: str) -> bool:
        return self._registry.has(name)

    def list(self) -> list[str]:
        return self._registry.names()

    def all(self) -> list[CommandDefinition]:
        return self._registry.all()
