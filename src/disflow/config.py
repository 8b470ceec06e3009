from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_serializer,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

CONFIG_FILENAME = "disflow.toml"
TOKEN_FILENAME = "token.txt"
TOKEN_PLACEHOLDER = "YOUR_DISCORD_BOT_TOKEN_HERE"


class ConfigError(RuntimeError):
    pass


class HotReloadSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    debounce: float = Field(default=0.3, ge=0)
    cooldown: float = Field(default=3.0, ge=0)
    busy_retry: float = Field(default=1.0, gt=0)
    stability_attempts: int = Field(default=5, ge=1)
    stability_interval: float = Field(default=0.05, ge=0)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    auto_create_channel: bool = True
    channel_name: str = "bot-logs"

    @field_validator("channel_name", mode="before")
    @classmethod
    def _validate_channel_name(cls, value: Any) -> Any:
        if not isinstance(value, str):
            raise ValueError("channel_name must be a string")
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("channel_name must be a non-empty string")
        return cleaned


class DisflowSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="DISFLOW__",
        env_nested_delimiter="__",
        populate_by_name=True,
    )

    base_dir: Path = Field(default_factory=Path.cwd)
    token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "token", "DISFLOW__TOKEN", "DISCORD_TOKEN", "BOT_TOKEN"
        ),
    )
    guild_id: int | None = None
    commands_dir: str = "commands"
    publish_empty: bool = False
    debug: bool = False

    hot_reload: HotReloadSettings = Field(default_factory=HotReloadSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("token", mode="before")
    @classmethod
    def _validate_token(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, SecretStr):
            return value
        if not isinstance(value, str):
            raise ValueError("token must be a string")
        cleaned = value.strip().strip("\"'").strip()
        return cleaned or None

    @field_validator("guild_id", mode="before")
    @classmethod
    def _validate_guild_id(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            raise ValueError("guild_id must be an integer")
        return value

    @field_serializer("token")
    def _dump_token(self, value: SecretStr | None) -> str | None:
        return value.get_secret_value() if value else None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @property
    def commands_path(self) -> Path:
        path = Path(self.commands_dir).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        return path


def load_settings(
    base_dir: str | Path | None = None, **overrides: Any
) -> DisflowSettings:
    root = Path(base_dir).expanduser() if base_dir else Path.cwd()
    if root.exists() and not root.is_dir():
        raise ConfigError(f"Base directory {root} exists but is not a directory.")
    cfg = dict(DisflowSettings.model_config)
    cfg["toml_file"] = root / CONFIG_FILENAME
    cfg["env_file"] = root / ".env"
    Bound = type(
        "DisflowSettingsBound",
        (DisflowSettings,),
        {"model_config": SettingsConfigDict(**cfg)},
    )
    try:
        return Bound(base_dir=root, **overrides)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {root}: {exc}") from exc
    except Exception as exc:  # pragma: no cover - safety net
        raise ConfigError(f"Failed to load config from {root}: {exc}") from exc


def resolve_token(settings: DisflowSettings) -> str:
    if settings.token is not None:
        token = settings.token.get_secret_value().strip()
        if token:
            return token
    token_path = settings.base_dir / TOKEN_FILENAME
    try:
        token = token_path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        token = ""
    except OSError as exc:
        raise ConfigError(f"Failed to read {token_path}: {exc}") from exc
    if token and token != TOKEN_PLACEHOLDER:
        return token
    raise ConfigError(
        f"No bot token found. Set DISCORD_TOKEN in {settings.base_dir / '.env'} "
        f"or put the token in {token_path}."
    )
