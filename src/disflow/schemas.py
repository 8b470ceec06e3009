"""Msgspec models for the application command payloads disflow publishes."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from typing import Any

import msgspec

__all__ = [
    "CommandChoice",
    "CommandParameter",
    "CommandPayload",
    "OptionType",
    "encode_commands",
    "to_parameter",
]


class OptionType(enum.IntEnum):
    SUB_COMMAND = 1
    SUB_COMMAND_GROUP = 2
    STRING = 3
    INTEGER = 4
    BOOLEAN = 5
    USER = 6
    CHANNEL = 7
    ROLE = 8
    MENTIONABLE = 9
    NUMBER = 10
    ATTACHMENT = 11


class CommandChoice(msgspec.Struct, frozen=True):
    name: str
    value: str | int | float


class CommandParameter(msgspec.Struct, frozen=True, omit_defaults=True):
    name: str
    description: str
    # Discord requires ``type`` on every option.
    type: OptionType
    required: bool = False
    choices: list[CommandChoice] | None = None


class CommandPayload(msgspec.Struct, frozen=True):
    name: str
    description: str
    options: list[CommandParameter] = []


def _normalize_type(value: Any) -> Any:
    if isinstance(value, OptionType):
        return int(value)
    if isinstance(value, str) and not value.isdigit():
        try:
            return int(OptionType[value.strip().upper()])
        except KeyError:
            raise msgspec.ValidationError(
                f"Unknown option type {value!r}"
            ) from None
    return value


def to_parameter(value: Any) -> CommandParameter:
    """Coerce a parameter spec into a ``CommandParameter``.

    Accepts an existing ``CommandParameter`` or a mapping shaped like the
    Discord option object; option types may be given as integers or as
    names (``"string"``, ``"user"``...).
    """
    if isinstance(value, CommandParameter):
        return value
    data = dict(value)
    data["type"] = _normalize_type(data.get("type", OptionType.STRING))
    return msgspec.convert(data, CommandParameter, strict=False)


def encode_commands(definitions: Iterable[Any]) -> list[dict[str, Any]]:
    """Serialize command definitions into the bulk-overwrite body."""
    payloads = [
        CommandPayload(
            name=definition.name,
            description=definition.description,
            options=list(definition.parameters),
        )
        for definition in definitions
    ]
    return msgspec.to_builtins(payloads)
