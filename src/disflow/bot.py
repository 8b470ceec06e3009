"""Application wiring: load commands, connect, publish, hot reload."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import anyio
import discord

from .audit import GuildLogChannel
from .commands import CommandBuilder, CommandDefinition, CommandRegistry, ModuleLoader
from .config import ConfigError, DisflowSettings, load_settings, resolve_token
from .context import CommandContext
from .discord import DiscordBotClient
from .dispatch import InteractionDispatcher
from .hot_reload import HotReloader
from .logging import get_logger, setup_logging
from .publish import CommandPublisher, InteractionTracker, PublishScheduler
from .resources import Resources, load_resources
from .utils import RandomTools, TimeTools

logger = get_logger(__name__)


def _log_unhandled(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    exc = context.get("exception")
    logger.error(
        "process.unhandled_task_exception",
        message=context.get("message"),
        error=str(exc) if exc is not None else None,
        exc_info=exc,
    )


def install_exception_hooks() -> None:
    """Log exceptions nobody awaited instead of letting asyncio print them."""
    asyncio.get_running_loop().set_exception_handler(_log_unhandled)


class Disflow:
    def __init__(
        self,
        settings: DisflowSettings,
        *,
        client: DiscordBotClient | None = None,
        resources: Resources | None = None,
    ) -> None:
        self.settings = settings
        self.registry = CommandRegistry()
        self.commands = CommandBuilder(self.registry)
        self.tracker = InteractionTracker()
        self.loader = ModuleLoader(self.registry, settings.commands_path)
        self.resources = resources if resources is not None else load_resources(settings.base_dir)
        self.audit = GuildLogChannel(
            channel_name=settings.logging.channel_name,
            auto_create_channel=settings.logging.auto_create_channel,
        )
        self.random = RandomTools()
        self.time = TimeTools()
        self.dispatcher = InteractionDispatcher(
            self.registry, self.tracker, context_factory=self.create_context
        )
        self.client = client or DiscordBotClient(
            resolve_token(settings), guild_id=settings.guild_id
        )
        self.publisher = CommandPublisher(
            self.registry, self.client, publish_empty=settings.publish_empty
        )
        reload_cfg = settings.hot_reload
        self.scheduler = PublishScheduler(
            self.publisher,
            self.tracker,
            cooldown=reload_cfg.cooldown,
            busy_retry=reload_cfg.busy_retry,
        )
        self.hot_reload: HotReloader | None = None
        if reload_cfg.enabled:
            self.hot_reload = HotReloader(
                self.loader,
                self.scheduler,
                debounce=reload_cfg.debounce,
                stability_attempts=reload_cfg.stability_attempts,
                stability_interval=reload_cfg.stability_interval,
            )

    def create_context(
        self, interaction: discord.Interaction, command: CommandDefinition
    ) -> CommandContext:
        return CommandContext(
            interaction,
            command=command,
            commands=self.registry.all,
            resources=self.resources,
            audit=self.audit,
            random=self.random,
            time=self.time,
        )

    async def run(self) -> None:
        install_exception_hooks()
        self.loader.load_all()
        self.client.set_interaction_handler(self.dispatcher.dispatch)

        async with anyio.create_task_group() as tg:
            logger.info("bot.connecting")
            await self.client.start()
            await self.publisher.publish()
            if self.hot_reload is not None:
                await tg.start(self.hot_reload.run)
            else:
                logger.info("hot_reload.disabled")
            try:
                await self.client.wait_closed()
            finally:
                with anyio.CancelScope(shield=True):
                    await self.stop()

    async def stop(self) -> None:
        logger.info("bot.stopping")
        if self.hot_reload is not None:
            self.hot_reload.stop()
        await self.client.close()
        logger.info("bot.stopped")


def run_bot(base_dir: str | Path | None = None, **overrides: Any) -> None:
    """Load settings from ``base_dir`` and run the bot until it disconnects."""
    try:
        settings = load_settings(base_dir, **overrides)
        setup_logging(debug=settings.debug)
        bot = Disflow(settings)
    except ConfigError as exc:
        logger.error("config.error", error=str(exc))
        raise SystemExit(1) from None

    try:
        anyio.run(bot.run)
    except KeyboardInterrupt:
        logger.info("bot.interrupted")
    except Exception:
        # Past this point state is assumed unrecoverable.
        logger.exception("process.uncaught_exception")
        raise SystemExit(1) from None


def main() -> None:
    run_bot()
