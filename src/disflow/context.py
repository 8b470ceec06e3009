"""Request-scoped helpers passed to every command handler."""

from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

import discord

from .logging import get_logger
from .resources import Resources
from .schemas import OptionType
from .utils import RandomTools, TimeTools

if TYPE_CHECKING:
    from .audit import GuildLogChannel
    from .commands.registry import CommandDefinition

logger = get_logger(__name__)

EPHEMERAL_ERROR_MESSAGE = "❌ Something went wrong executing this command."

_EDIT_ONLY_DROPPED = ("ephemeral", "delete_after", "tts")


class ResponseState(enum.Enum):
    PENDING = "pending"
    DEFERRED = "deferred"
    REPLIED = "replied"


def normalize_embed(embed: discord.Embed | Mapping[str, Any]) -> discord.Embed:
    """Rebuild ``embed`` with every field name and value coerced to text."""
    data = embed.to_dict() if isinstance(embed, discord.Embed) else dict(embed)
    fields = data.get("fields")
    if fields:
        data["fields"] = [
            {
                "name": str(field.get("name", "")),
                "value": str(field.get("value", "")),
                "inline": bool(field.get("inline", False)),
            }
            for field in fields
        ]
    return discord.Embed.from_dict(data)


def build_payload(content: Any, kwargs: Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(content, Mapping):
        payload = {**content, **kwargs}
    else:
        payload = dict(kwargs)
        if content is not None:
            payload["content"] = str(content)
    if payload.get("embed") is not None:
        payload["embed"] = normalize_embed(payload["embed"])
    if payload.get("embeds") is not None:
        payload["embeds"] = [normalize_embed(item) for item in payload["embeds"]]
    return payload


def _edit_payload(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in _EDIT_ONLY_DROPPED}


def flatten_options(options: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for option in options:
        kind = option.get("type")
        if kind in (OptionType.SUB_COMMAND, OptionType.SUB_COMMAND_GROUP):
            values.update(flatten_options(option.get("options", ())))
            continue
        values[option["name"]] = option.get("value")
    return values


class CommandContext:
    """What a handler gets: response routing, options, and shared tools.

    ``reply`` picks the right underlying call for the interaction's state:
    the initial response, an edit of the deferred response, or a follow-up.
    """

    def __init__(
        self,
        interaction: discord.Interaction,
        *,
        command: CommandDefinition | None = None,
        commands: Callable[[], list[CommandDefinition]] | None = None,
        resources: Resources | None = None,
        audit: GuildLogChannel | None = None,
        random: RandomTools | None = None,
        time: TimeTools | None = None,
    ) -> None:
        self.interaction = interaction
        self.command = command
        self._commands = commands
        self._resources = resources or Resources()
        self._audit = audit
        self.random = random or RandomTools()
        self.time = time or TimeTools()
        self.state = ResponseState.PENDING
        data = getattr(interaction, "data", None) or {}
        self.options = flatten_options(data.get("options", ()))

    @property
    def client(self) -> Any:
        return getattr(self.interaction, "client", None)

    @property
    def user(self) -> Any:
        return self.interaction.user

    @property
    def guild(self) -> Any:
        return self.interaction.guild

    @property
    def channel(self) -> Any:
        return self.interaction.channel

    @property
    def command_name(self) -> str | None:
        if self.command is not None:
            return self.command.name
        data = getattr(self.interaction, "data", None) or {}
        return data.get("name")

    @property
    def values(self) -> dict[str, Any]:
        return self._resources.values

    @property
    def emoji(self) -> dict[str, Any]:
        return self._resources.emoji

    @property
    def acknowledged(self) -> bool:
        return self.state is not ResponseState.PENDING

    def commands(self) -> list[CommandDefinition]:
        return self._commands() if self._commands is not None else []

    # -- responses -------------------------------------------------------

    async def defer(self, *, ephemeral: bool = False) -> None:
        await self.interaction.response.defer(ephemeral=ephemeral)
        self.state = ResponseState.DEFERRED

    async def reply(self, content: Any = None, **kwargs: Any) -> Any:
        payload = build_payload(content, kwargs)
        try:
            return await self._route_reply(payload)
        except discord.HTTPException as exc:
            logger.error(
                "context.reply_failed",
                command=self.command_name,
                state=self.state.value,
                error=str(exc),
                status=getattr(exc, "status", None),
            )
            try:
                return await self.interaction.followup.send(**payload)
            except discord.HTTPException as retry_exc:
                logger.error(
                    "context.reply_retry_failed",
                    command=self.command_name,
                    error=str(retry_exc),
                )
                return None

    async def _route_reply(self, payload: dict[str, Any]) -> Any:
        if self.state is ResponseState.REPLIED:
            return await self.interaction.followup.send(**payload)
        if self.state is ResponseState.DEFERRED:
            message = await self.interaction.edit_original_response(
                **_edit_payload(payload)
            )
            self.state = ResponseState.REPLIED
            return message
        result = await self.interaction.response.send_message(**payload)
        self.state = ResponseState.REPLIED
        return result

    async def edit(self, content: Any = None, **kwargs: Any) -> Any:
        payload = _edit_payload(build_payload(content, kwargs))
        try:
            message = await self.interaction.edit_original_response(**payload)
        except discord.HTTPException as exc:
            logger.error("context.edit_failed", command=self.command_name, error=str(exc))
            return None
        self.state = ResponseState.REPLIED
        return message

    async def update(self, content: Any = None, **kwargs: Any) -> Any:
        """Edit the message a component interaction came from."""
        payload = _edit_payload(build_payload(content, kwargs))
        try:
            result = await self.interaction.response.edit_message(**payload)
        except discord.HTTPException as exc:
            logger.error("context.update_failed", command=self.command_name, error=str(exc))
            return None
        self.state = ResponseState.REPLIED
        return result

    async def follow_up(self, content: Any = None, **kwargs: Any) -> Any:
        return await self.interaction.followup.send(**build_payload(content, kwargs))

    async def send_error(self, message: str = EPHEMERAL_ERROR_MESSAGE) -> None:
        if self.acknowledged:
            await self.interaction.followup.send(content=message, ephemeral=True)
        else:
            await self.interaction.response.send_message(content=message, ephemeral=True)
            self.state = ResponseState.REPLIED

    # -- options ---------------------------------------------------------

    def get_option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    def get_string(self, name: str) -> str | None:
        value = self.options.get(name)
        return None if value is None else str(value)

    def get_integer(self, name: str) -> int | None:
        value = self.options.get(name)
        return None if value is None else int(value)

    def get_number(self, name: str) -> float | None:
        value = self.options.get(name)
        return None if value is None else float(value)

    def get_boolean(self, name: str) -> bool | None:
        value = self.options.get(name)
        return None if value is None else bool(value)

    def _snowflake(self, name: str) -> int | None:
        value = self.options.get(name)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    def get_user(self, name: str) -> Any:
        user_id = self._snowflake(name)
        if user_id is None:
            return None
        if self.guild is not None:
            member = self.guild.get_member(user_id)
            if member is not None:
                return member
        return self.client.get_user(user_id) if self.client is not None else None

    def get_channel(self, name: str) -> Any:
        channel_id = self._snowflake(name)
        if channel_id is None:
            return None
        if self.guild is not None:
            channel = self.guild.get_channel(channel_id)
            if channel is not None:
                return channel
        return self.client.get_channel(channel_id) if self.client is not None else None

    def get_role(self, name: str) -> Any:
        role_id = self._snowflake(name)
        if role_id is None or self.guild is None:
            return None
        return self.guild.get_role(role_id)

    # -- audit -----------------------------------------------------------

    async def log(self, message: str, **options: Any) -> bool:
        if self._audit is None or self.guild is None:
            logger.info("context.log", command=self.command_name, message=message)
            return False
        return await self._audit.log(self.guild, message, **options)

    async def log_info(self, message: str, title: str = "") -> bool:
        if self._audit is None:
            return await self.log(message)
        return await self._audit.log_info(self.guild, message, title)

    async def log_warning(self, message: str, title: str = "") -> bool:
        if self._audit is None:
            return await self.log(message)
        return await self._audit.log_warning(self.guild, message, title)

    async def log_success(self, message: str, title: str = "") -> bool:
        if self._audit is None:
            return await self.log(message)
        return await self._audit.log_success(self.guild, message, title)

    async def log_error(self, error: BaseException | str, context: str = "") -> bool:
        """Report ``error`` to the audit channel; ``context`` defaults to the command."""
        context = context or (f"/{self.command_name}" if self.command_name else "")
        if self._audit is None:
            return await self.log(str(error))
        return await self._audit.log_error(self.guild, error, context)

    async def log_command(self, *, success: bool = True) -> bool:
        if self._audit is None or self.command_name is None:
            return False
        return await self._audit.log_command(
            self.guild, self.command_name, self.user, success=success
        )
