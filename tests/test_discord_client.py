"""Tests for Discord client module."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from disflow.discord.client import DiscordBotClient


class TestDiscordBotClientInitialization:
    """Test DiscordBotClient initialization."""

    def test_creates_client_with_token(self) -> None:
        client = DiscordBotClient("test-token")
        assert client._token == "test-token"
        assert client.guild_id is None

    def test_creates_client_with_guild_id(self) -> None:
        client = DiscordBotClient("test-token", guild_id=123456)
        assert client.guild_id == 123456

    def test_properties_before_connect(self) -> None:
        client = DiscordBotClient("test-token")
        assert client.user is None
        assert client.application_id is None
        assert client.is_ready is False


class TestDiscordBotClientInteractionHandler:
    def test_set_interaction_handler(self) -> None:
        client = DiscordBotClient("test-token")

        async def handler(interaction: Any) -> None:
            pass

        client.set_interaction_handler(handler)
        assert client._interaction_handler is handler


def _logged_in(client: DiscordBotClient) -> MagicMock:
    inner = MagicMock()
    inner.application_id = 99
    inner.http.bulk_upsert_guild_commands = AsyncMock()
    inner.http.bulk_upsert_global_commands = AsyncMock()
    client._client = inner
    return inner


class TestBulkOverwrite:
    """Test publishing the command set."""

    @pytest.mark.anyio
    async def test_requires_login(self) -> None:
        client = DiscordBotClient("test-token")
        with pytest.raises(RuntimeError, match="not logged in"):
            await client.bulk_overwrite_commands([])

    @pytest.mark.anyio
    async def test_guild_scoped(self) -> None:
        client = DiscordBotClient("test-token", guild_id=555)
        inner = _logged_in(client)
        payload = [{"name": "ping", "description": "Pong", "options": []}]

        await client.bulk_overwrite_commands(payload)

        inner.http.bulk_upsert_guild_commands.assert_awaited_once_with(99, 555, payload)
        inner.http.bulk_upsert_global_commands.assert_not_called()

    @pytest.mark.anyio
    async def test_global(self) -> None:
        client = DiscordBotClient("test-token")
        inner = _logged_in(client)

        await client.bulk_overwrite_commands([])

        inner.http.bulk_upsert_global_commands.assert_awaited_once_with(99, [])
        inner.http.bulk_upsert_guild_commands.assert_not_called()


class TestDiscordBotClientClose:
    @pytest.mark.anyio
    async def test_close_without_client(self) -> None:
        client = DiscordBotClient("test-token")
        await client.close()
        await client.wait_closed()

    @pytest.mark.anyio
    async def test_close_closes_inner_client(self) -> None:
        client = DiscordBotClient("test-token")
        inner = _logged_in(client)
        inner.close = AsyncMock()

        await client.close()

        inner.close.assert_awaited_once()
