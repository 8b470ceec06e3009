"""Command table, registration API and file loader."""

from .builder import CommandBuilder
from .loader import LoadResult, ModuleLoader, discover_command_files
from .registry import CommandDefinition, CommandHandler, CommandRegistry

__all__ = [
    "CommandBuilder",
    "CommandDefinition",
    "CommandHandler",
    "CommandRegistry",
    "LoadResult",
    "ModuleLoader",
    "discover_command_files",
]
