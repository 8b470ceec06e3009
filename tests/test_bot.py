import asyncio
from pathlib import Path
from typing import Any

import anyio
import pytest

from disflow.bot import Disflow, _log_unhandled
from disflow.config import ConfigError, load_settings
from disflow.context import CommandContext
from disflow.dispatch import DispatchOutcome
from tests.discord_fakes import slash


class FakeClient:
    def __init__(self) -> None:
        self.handler: Any = None
        self.started = False
        self.closed = False
        self.payloads: list[list[dict[str, Any]]] = []
        self._done = anyio.Event()

    def set_interaction_handler(self, handler: Any) -> None:
        self.handler = handler

    async def start(self) -> None:
        self.started = True

    async def wait_closed(self) -> None:
        await self._done.wait()

    async def close(self) -> None:
        self.closed = True
        self._done.set()

    async def bulk_overwrite_commands(self, payload: list[dict[str, Any]]) -> None:
        self.payloads.append(payload)
        self._done.set()


def make_project(tmp_path: Path) -> Path:
    commands = tmp_path / "commands"
    commands.mkdir()
    (commands / "ping.py").write_text(
        "async def ping(ctx):\n"
        "    await ctx.reply(ctx.values['reply'])\n\n"
        "command = {'name': 'ping', 'description': 'Pong', 'execute': ping}\n",
        encoding="utf-8",
    )
    (tmp_path / "vals.toml").write_text('reply = "pong"\n', encoding="utf-8")
    (tmp_path / "disflow.toml").write_text(
        "[hot_reload]\nenabled = false\n", encoding="utf-8"
    )
    return tmp_path


@pytest.mark.anyio
async def test_run_loads_publishes_and_dispatches(tmp_path: Path) -> None:
    settings = load_settings(make_project(tmp_path), token="token")
    client = FakeClient()
    bot = Disflow(settings, client=client)  # type: ignore[arg-type]

    with anyio.fail_after(5):
        await bot.run()

    assert client.started
    assert client.closed
    assert [command["name"] for command in client.payloads[0]] == ["ping"]
    assert bot.hot_reload is None

    interaction = slash("ping")
    assert await client.handler(interaction) is DispatchOutcome.COMPLETED
    assert interaction.edits == [{"content": "pong"}]


def test_hot_reload_built_when_enabled(tmp_path: Path) -> None:
    settings = load_settings(tmp_path, token="token", hot_reload={"debounce": 1.5})
    bot = Disflow(settings, client=FakeClient())  # type: ignore[arg-type]
    assert bot.hot_reload is not None
    assert bot.hot_reload.debounce == 1.5
    assert bot.hot_reload.root == tmp_path / "commands"


def test_context_factory_shares_app_state(tmp_path: Path) -> None:
    settings = load_settings(make_project(tmp_path), token="token")
    bot = Disflow(settings, client=FakeClient())  # type: ignore[arg-type]
    bot.loader.load_all()
    command = bot.registry.get("ping")
    assert command is not None

    ctx = bot.create_context(slash("ping"), command)  # type: ignore[arg-type]

    assert isinstance(ctx, CommandContext)
    assert ctx.values == {"reply": "pong"}
    assert [entry.name for entry in ctx.commands()] == ["ping"]
    assert ctx.random is bot.random


def test_missing_token_fails_fast(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DISCORD_TOKEN", "BOT_TOKEN", "DISFLOW__TOKEN", "TOKEN"):
        monkeypatch.delenv(name, raising=False)
    with pytest.raises(ConfigError):
        Disflow(load_settings(tmp_path))


def test_unhandled_task_exceptions_are_logged(log_events) -> None:
    loop = asyncio.new_event_loop()
    try:
        _log_unhandled(
            loop,
            {"message": "Task exception was never retrieved", "exception": ValueError("lost")},
        )
    finally:
        loop.close()

    assert log_events[-1]["event"] == "process.unhandled_task_exception"
    assert log_events[-1]["error"] == "lost"
    assert log_events[-1]["log_level"] == "error"
