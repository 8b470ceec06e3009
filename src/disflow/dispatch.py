"""Routes slash command interactions to registered handlers."""

from __future__ import annotations

import contextlib
import enum
from collections.abc import Callable
from typing import Any

import discord

from .commands.registry import CommandDefinition, CommandRegistry
from .context import EPHEMERAL_ERROR_MESSAGE, CommandContext
from .logging import bind_interaction_context, clear_context, get_logger
from .publish import InteractionTracker

logger = get_logger(__name__)

# Discord JSON error code for an expired or already-acknowledged interaction.
UNKNOWN_INTERACTION = 10062

ContextFactory = Callable[[discord.Interaction, CommandDefinition], CommandContext]


class DispatchOutcome(enum.Enum):
    IGNORED = "ignored"
    UNKNOWN = "unknown"
    EXPIRED = "expired"
    COMPLETED = "completed"
    FAILED = "failed"


def is_expired(exc: discord.HTTPException) -> bool:
    return isinstance(exc, discord.NotFound) and exc.code == UNKNOWN_INTERACTION


class InteractionDispatcher:
    def __init__(
        self,
        registry: CommandRegistry,
        tracker: InteractionTracker,
        *,
        context_factory: ContextFactory | None = None,
        error_message: str = EPHEMERAL_ERROR_MESSAGE,
    ) -> None:
        self._registry = registry
        self._tracker = tracker
        self._context_factory = context_factory or self._default_context
        self.error_message = error_message

    def _default_context(
        self, interaction: discord.Interaction, command: CommandDefinition
    ) -> CommandContext:
        return CommandContext(interaction, command=command, commands=self._registry.all)

    async def dispatch(self, interaction: discord.Interaction) -> DispatchOutcome:
        if interaction.type != discord.InteractionType.application_command:
            return DispatchOutcome.IGNORED

        data: dict[str, Any] = interaction.data or {}
        name = data.get("name") or ""
        command = self._registry.get(name)
        if command is None:
            # No reply: Discord shows its own "did not respond" notice.
            logger.warning("dispatch.unknown_command", command=name)
            return DispatchOutcome.UNKNOWN

        with self._tracker.track():
            bind_interaction_context(
                command=command.name,
                interaction_id=getattr(interaction, "id", None),
                user_id=getattr(interaction.user, "id", None),
                guild_id=getattr(interaction, "guild_id", None),
            )
            try:
                return await self._execute(interaction, command)
            finally:
                clear_context()

    async def _execute(
        self, interaction: discord.Interaction, command: CommandDefinition
    ) -> DispatchOutcome:
        ctx = self._context_factory(interaction, command)
        logger.info("command.invoked", command=command.name, user=str(interaction.user))
        try:
            if not ctx.acknowledged:
                try:
                    await ctx.defer()
                except discord.HTTPException as exc:
                    if is_expired(exc):
                        logger.warning("dispatch.interaction_expired", command=command.name)
                        return DispatchOutcome.EXPIRED
                    raise
            await command.handler(ctx)
        except Exception as exc:
            logger.exception(
                "command.failed",
                command=command.name,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            with contextlib.suppress(Exception):
                await ctx.send_error(self.error_message)
            return DispatchOutcome.FAILED
        return DispatchOutcome.COMPLETED
