"""Disflow: drop command files in a folder, get slash commands."""

from .bot import Disflow, run_bot
from .commands import CommandBuilder, CommandDefinition, CommandRegistry
from .context import CommandContext
from .schemas import CommandChoice, CommandParameter, OptionType

__version__ = "0.1.0"

Command = CommandDefinition

__all__ = [
    "Command",
    "CommandBuilder",
    "CommandChoice",
    "CommandContext",
    "CommandDefinition",
    "CommandParameter",
    "CommandRegistry",
    "Disflow",
    "OptionType",
    "__version__",
    "run_bot",
]
