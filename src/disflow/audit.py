"""Per-guild audit log channel."""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from typing import Any

import discord

from .logging import get_logger

logger = get_logger(__name__)

COLOR_DEFAULT = 0x5865F2
COLOR_SUCCESS = 0x57F287
COLOR_WARNING = 0xFEE75C
COLOR_ERROR = 0xED4245

FOOTER_TEXT = "🤖 Disflow Bot"


class GuildLogChannel:
    """Finds (and optionally creates) a ``bot-logs`` channel per guild.

    Lookups are cached by guild id; ``False`` marks a guild where the
    channel is missing and will not be created.
    """

    def __init__(
        self,
        *,
        channel_name: str = "bot-logs",
        auto_create_channel: bool = True,
    ) -> None:
        self.channel_name = channel_name
        self.auto_create_channel = auto_create_channel
        self._channels: dict[int, Any] = {}

    def cached(self, guild_id: int) -> Any:
        return self._channels.get(guild_id)

    async def get_channel(self, guild: discord.Guild | None) -> Any:
        if guild is None:
            return None

        cached = self._channels.get(guild.id)
        if cached is False:
            return None
        if cached is not None:
            return cached

        channel = discord.utils.get(guild.text_channels, name=self.channel_name)
        if channel is None and not self.auto_create_channel:
            self._channels[guild.id] = False
            return None

        if channel is None:
            me = guild.me
            permissions = getattr(me, "guild_permissions", None)
            if permissions is None or not permissions.manage_channels:
                logger.warning(
                    "audit.missing_permission",
                    guild_id=guild.id,
                    guild=getattr(guild, "name", None),
                    permission="manage_channels",
                )
                self._channels[guild.id] = False
                return None
            try:
                channel = await guild.create_text_channel(
                    self.channel_name,
                    topic="🤖 Bot activity logs",
                    reason="Automatic log channel created by Disflow",
                )
            except discord.HTTPException as exc:
                logger.error(
                    "audit.create_failed",
                    guild_id=guild.id,
                    error=str(exc),
                    status=getattr(exc, "status", None),
                )
                self._channels[guild.id] = False
                return None
            logger.info("audit.channel_created", guild_id=guild.id)

        self._channels[guild.id] = channel if channel is not None else False
        return channel

    async def log(
        self,
        guild: discord.Guild | None,
        content: str,
        *,
        title: str | None = None,
        color: int | None = None,
        fields: Sequence[dict[str, Any]] | None = None,
    ) -> bool:
        channel = await self.get_channel(guild)
        if channel is None:
            return False

        embed = discord.Embed(
            description=content,
            color=color or COLOR_DEFAULT,
            timestamp=datetime.datetime.now(datetime.timezone.utc),
        )
        if title:
            embed.title = title
        for item in fields or ():
            embed.add_field(
                name=str(item.get("name", "")),
                value=str(item.get("value", "")),
                inline=bool(item.get("inline", False)),
            )
        embed.set_footer(text=FOOTER_TEXT)

        try:
            await channel.send(embed=embed)
        except discord.HTTPException as exc:
            logger.error("audit.send_failed", guild_id=guild.id, error=str(exc))
            return False
        return True

    async def log_command(
        self,
        guild: discord.Guild | None,
        command_name: str,
        user: Any,
        *,
        success: bool = True,
    ) -> bool:
        return await self.log(
            guild,
            f"{'✅' if success else '❌'} Command executed",
            color=COLOR_SUCCESS if success else COLOR_ERROR,
            fields=[
                {"name": "Command", "value": f"/{command_name}", "inline": True},
                {"name": "User", "value": str(user), "inline": True},
                {"name": "Status", "value": "Success" if success else "Failed", "inline": True},
            ],
        )

    async def log_error(
        self, guild: discord.Guild | None, error: BaseException | str, context: str = ""
    ) -> bool:
        return await self.log(
            guild,
            "❌ Error occurred",
            title="⚠️ Error",
            color=COLOR_ERROR,
            fields=[
                {"name": "Context", "value": context or "Unknown"},
                {"name": "Error", "value": str(error)},
            ],
        )

    async def log_info(self, guild: discord.Guild | None, message: str, title: str = "") -> bool:
        return await self.log(guild, message, title=title or "ℹ️ Info", color=COLOR_DEFAULT)

    async def log_warning(
        self, guild: discord.Guild | None, message: str, title: str = ""
    ) -> bool:
        return await self.log(guild, message, title=title or "⚠️ Warning", color=COLOR_WARNING)

    async def log_success(
        self, guild: discord.Guild | None, message: str, title: str = ""
    ) -> bool:
        return await self.log(guild, message, title=title or "✅ Success", color=COLOR_SUCCESS)
