from pathlib import Path

import pytest

from disflow.config import ConfigError, load_settings, resolve_token

TOKEN_VARS = ("DISCORD_TOKEN", "BOT_TOKEN", "DISFLOW__TOKEN", "TOKEN")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in TOKEN_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("DISFLOW__HOT_RELOAD__ENABLED", raising=False)
    monkeypatch.delenv("DISFLOW__GUILD_ID", raising=False)


def test_defaults(tmp_path: Path) -> None:
    settings = load_settings(tmp_path)

    assert settings.base_dir == tmp_path
    assert settings.token is None
    assert settings.guild_id is None
    assert settings.commands_path == tmp_path / "commands"
    assert settings.hot_reload.enabled is True
    assert settings.hot_reload.debounce == 0.3
    assert settings.hot_reload.cooldown == 3.0
    assert settings.logging.channel_name == "bot-logs"
    assert settings.publish_empty is False


def test_reads_toml_file(tmp_path: Path) -> None:
    (tmp_path / "disflow.toml").write_text(
        'guild_id = 1234\ncommands_dir = "cmds"\n\n'
        "[hot_reload]\ncooldown = 10\n\n"
        '[logging]\nchannel_name = " audit "\nauto_create_channel = false\n',
        encoding="utf-8",
    )

    settings = load_settings(tmp_path)

    assert settings.guild_id == 1234
    assert settings.commands_path == tmp_path / "cmds"
    assert settings.hot_reload.cooldown == 10.0
    assert settings.logging.channel_name == "audit"
    assert settings.logging.auto_create_channel is False


def test_environment_overrides_toml(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "disflow.toml").write_text("guild_id = 1\n", encoding="utf-8")
    monkeypatch.setenv("DISFLOW__GUILD_ID", "2")
    monkeypatch.setenv("DISFLOW__HOT_RELOAD__ENABLED", "false")

    settings = load_settings(tmp_path)

    assert settings.guild_id == 2
    assert settings.hot_reload.enabled is False


def test_token_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "  env-token  ")
    assert resolve_token(load_settings(tmp_path)) == "env-token"


def test_token_from_dotenv(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text('DISCORD_TOKEN="dotenv-token"\n', encoding="utf-8")
    settings = load_settings(tmp_path)
    assert resolve_token(settings) == "dotenv-token"
    assert "dotenv-token" not in repr(settings)


def test_token_file_fallback(tmp_path: Path) -> None:
    (tmp_path / "token.txt").write_text("file-token\n", encoding="utf-8")
    assert resolve_token(load_settings(tmp_path)) == "file-token"


def test_placeholder_token_is_rejected(tmp_path: Path) -> None:
    (tmp_path / "token.txt").write_text("YOUR_DISCORD_BOT_TOKEN_HERE", encoding="utf-8")
    with pytest.raises(ConfigError, match="No bot token"):
        resolve_token(load_settings(tmp_path))


def test_missing_token(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="No bot token"):
        resolve_token(load_settings(tmp_path))


def test_overrides_win(tmp_path: Path) -> None:
    settings = load_settings(tmp_path, token="direct", guild_id="77")
    assert resolve_token(settings) == "direct"
    assert settings.guild_id == 77


@pytest.mark.parametrize(
    "content",
    [
        "[hot_reload]\ndebounce = -1\n",
        "[hot_reload]\nunknown = 1\n",
        '[logging]\nchannel_name = "   "\n',
        "guild_id = true\n",
    ],
)
def test_invalid_config(tmp_path: Path, content: str) -> None:
    (tmp_path / "disflow.toml").write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError, match="Invalid config"):
        load_settings(tmp_path)


def test_base_dir_must_be_directory(tmp_path: Path) -> None:
    target = tmp_path / "file"
    target.write_text("", encoding="utf-8")
    with pytest.raises(ConfigError, match="not a directory"):
        load_settings(target)
