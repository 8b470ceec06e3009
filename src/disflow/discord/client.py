"""Discord API client wrapper."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import discord

from ..logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Coroutine

    InteractionHandler = Callable[[discord.Interaction], Coroutine[Any, Any, Any]]

logger = get_logger(__name__)


class DiscordBotClient:
    """Wrapper around a plain pycord ``Client`` for disflow.

    ``discord.Bot`` is avoided on purpose: it syncs its own (empty) command
    tree on connect, which would overwrite the commands disflow publishes.
    """

    def __init__(
        self,
        token: str,
        *,
        guild_id: int | None = None,
    ) -> None:
        self._token = token
        self._guild_id = guild_id
        self._interaction_handler: InteractionHandler | None = None
        # Defer client creation until inside async context
        self._client: discord.Client | None = None
        self._ready_event: asyncio.Event | None = None
        self._start_task: asyncio.Task[None] | None = None

    def _ensure_client(self) -> discord.Client:
        """Create the client if not already created. Must be called from async context."""
        if self._client is not None:
            return self._client

        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        self._client = discord.Client(intents=intents)
        self._ready_event = asyncio.Event()

        @self._client.event
        async def on_ready() -> None:
            assert self._client is not None
            assert self._ready_event is not None
            logger.info(
                "client.ready",
                user=str(self._client.user),
                guilds=len(self._client.guilds),
            )
            self._ready_event.set()

        @self._client.event
        async def on_interaction(interaction: discord.Interaction) -> None:
            if self._interaction_handler is not None:
                await self._interaction_handler(interaction)

        @self._client.event
        async def on_error(event: str, *args: Any, **kwargs: Any) -> None:
            logger.exception("client.event_error", event_name=event)

        return self._client

    @property
    def client(self) -> discord.Client:
        """Get the underlying pycord client. Creates it if needed."""
        return self._ensure_client()

    @property
    def user(self) -> discord.ClientUser | None:
        if self._client is None:
            return None
        return self._client.user

    @property
    def guild_id(self) -> int | None:
        return self._guild_id

    @property
    def application_id(self) -> int | None:
        if self._client is None:
            return None
        return self._client.application_id

    @property
    def is_ready(self) -> bool:
        return self._ready_event is not None and self._ready_event.is_set()

    def set_interaction_handler(self, handler: InteractionHandler) -> None:
        self._interaction_handler = handler

    async def start(self) -> None:
        """Log in, connect and wait until ready."""
        client = self._ensure_client()
        assert self._ready_event is not None

        async def _run_client() -> None:
            try:
                await client.start(self._token)
            except asyncio.CancelledError:
                pass
            except RuntimeError as e:
                # Suppress "Session is closed" error during shutdown
                if "Session is closed" not in str(e):
                    raise

        self._start_task = asyncio.create_task(_run_client(), name="discord-client-start")
        ready = asyncio.ensure_future(self._ready_event.wait())
        done, _ = await asyncio.wait(
            {ready, self._start_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if ready not in done:
            ready.cancel()
            # Login failed before the gateway became ready.
            self._start_task.result()
            raise RuntimeError("Discord client stopped before becoming ready")

    async def wait_closed(self) -> None:
        """Wait until the connection task ends."""
        if self._start_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._start_task

    async def close(self) -> None:
        """Close the client connection."""
        if self._client is not None:
            await self._client.close()
            # Cancel the start task and wait for it to finish
            if self._start_task is not None and not self._start_task.done():
                self._start_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._start_task

    async def wait_until_ready(self) -> None:
        self._ensure_client()
        assert self._ready_event is not None
        await self._ready_event.wait()

    async def bulk_overwrite_commands(self, payload: list[dict[str, Any]]) -> None:
        """Replace every application command (globally or in ``guild_id``)."""
        if self._client is None or self.application_id is None:
            raise RuntimeError("Discord client is not logged in")
        http = self._client.http
        if self._guild_id is not None:
            await http.bulk_upsert_guild_commands(
                self.application_id, self._guild_id, payload
            )
        else:
            await http.bulk_upsert_global_commands(self.application_id, payload)
        logger.info(
            "client.commands_overwritten",
            count=len(payload),
            guild_id=self._guild_id,
        )
