"""Discovery and fresh execution of user command files."""

from __future__ import annotations

import importlib.machinery
import importlib.util
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any

from ..logging import get_logger
from .builder import CommandBuilder
from .registry import CommandDefinition, CommandRegistry

logger = get_logger(__name__)

DEFAULT_EXTENSIONS: tuple[str, ...] = (".py",)
MODULE_NAMESPACE = "disflow_commands"


class _SourceOnlyLoader(importlib.machinery.SourceFileLoader):
    """Compiles from source on every load; bytecode caches are never read."""

    def get_code(self, fullname: str) -> Any:
        return self.source_to_code(self.get_data(self.path), self.path)


@dataclass(frozen=True, slots=True)
class LoadResult:
    path: Path
    ok: bool
    commands: tuple[str, ...] = ()
    error: str | None = None


def is_command_file(path: Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> bool:
    if path.name.startswith(("_", ".")):
        return False
    return path.suffix.lower() in {ext.lower() for ext in extensions}


def discover_command_files(
    root: Path, extensions: Iterable[str] = DEFAULT_EXTENSIONS
) -> list[Path]:
    """Collect command files under ``root`` sorted by relative POSIX path."""
    if not root.is_dir():
        return []
    extensions = tuple(extensions)
    files: list[Path] = []
    pending = [root]
    while pending:
        directory = pending.pop()
        for entry in directory.iterdir():
            if entry.is_dir():
                if not entry.name.startswith(("_", ".")):
                    pending.append(entry)
                continue
            if entry.is_file() and is_command_file(entry, extensions):
                files.append(entry)
    return sorted(files, key=lambda path: path.relative_to(root).as_posix())


def _exported_definition(export: Any, source: Path) -> CommandDefinition | None:
    if isinstance(export, CommandDefinition):
        return CommandDefinition(
            name=export.name,
            description=export.description,
            handler=export.handler,
            parameters=export.parameters,
            source=source,
        )
    if isinstance(export, Mapping):
        data = export
    else:
        data = {
            key: getattr(export, key)
            for key in ("name", "description", "parameters", "options", "execute", "handler")
            if hasattr(export, key)
        }
    handler = data.get("execute", data.get("handler"))
    if not data.get("name") or handler is None:
        return None
    return CommandDefinition(
        name=data["name"],
        description=data.get("description") or "No description",
        handler=handler,
        parameters=data.get("parameters", data.get("options")) or (),
        source=source,
    )


class ModuleLoader:
    """Loads command files into a registry, one fresh module per file.

    A file may export a single ``command`` (a ``CommandDefinition``, a
    mapping or an object with ``name``/``description``/``execute``), define
    ``setup(commands)`` to register any number of commands itself, or both.
    """

    def __init__(
        self,
        registry: CommandRegistry,
        root: Path,
        *,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        namespace: str = MODULE_NAMESPACE,
    ) -> None:
        self.registry = registry
        self.root = Path(root).expanduser().resolve()
        self.extensions = tuple(extensions)
        self._namespace = namespace
        self._modules: dict[Path, ModuleType] = {}

    @property
    def modules(self) -> dict[Path, ModuleType]:
        return dict(self._modules)

    def discover(self) -> list[Path]:
        return discover_command_files(self.root, self.extensions)

    def is_command_file(self, path: Path) -> bool:
        return is_command_file(path, self.extensions)

    def resolve(self, path: Path) -> Path:
        return Path(path).expanduser().resolve()

    def relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return path.as_posix()

    def module_name(self, path: Path) -> str:
        relative = Path(self.relative(path)).with_suffix("")
        parts = [part.replace("-", "_").replace(".", "_") for part in relative.parts]
        return ".".join([self._namespace, *parts])

    def load_all(self) -> list[LoadResult]:
        if not self.root.is_dir():
            logger.warning("loader.root_missing", root=str(self.root))
            return []
        files = self.discover()
        if not files:
            logger.warning("loader.no_commands", root=str(self.root))
            return []
        results = [self.load_file(path) for path in files]
        logger.info(
            "loader.finished",
            files=len(results),
            failed=sum(1 for result in results if not result.ok),
            commands=len(self.registry),
        )
        return results

    def load_file(self, path: Path) -> LoadResult:
        """Execute ``path`` from source and register what it defines."""
        path = self.resolve(path)
        relative = self.relative(path)
        name = self.module_name(path)
        before = {definition.name: definition for definition in self.registry.all()}
        try:
            module = self._execute(path, name)
            builder = CommandBuilder(self.registry, source=path)
            setup = getattr(module, "setup", None)
            if callable(setup):
                setup(builder)
            export = getattr(module, "command", None)
            if export is not None and not callable(export):
                definition = _exported_definition(export, path)
                if definition is not None and self.registry.register(definition):
                    logger.info("loader.command_loaded", command=definition.name, file=relative)
        except Exception as exc:
            logger.exception(
                "loader.load_failed",
                file=relative,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return LoadResult(path=path, ok=False, error=str(exc))

        self._modules[path] = module
        registered = tuple(
            definition.name
            for definition in self.registry.all()
            if definition.source == path and before.get(definition.name) is not definition
        )
        logger.info("loader.file_loaded", file=relative, commands=list(registered))
        return LoadResult(path=path, ok=True, commands=registered)

    def unload(self, path: Path) -> list[str]:
        """Forget ``path`` and remove the commands it registered.

        Commands are matched by owning file; when the file owned nothing,
        the filename stem is tried as long as that entry is not owned by a
        different file.
        """
        path = self.resolve(path)
        self._modules.pop(path, None)
        removed = self.registry.remove_source(path)
        if not removed:
            stem = path.stem.lower()
            existing = self.registry.get(stem)
            if existing is not None and existing.source in (None, path):
                self.registry.remove(stem)
                removed = [stem]
        if removed:
            logger.info("loader.unloaded", file=self.relative(path), commands=removed)
        return removed

    def _execute(self, path: Path, name: str) -> ModuleType:
        spec = importlib.util.spec_from_file_location(
            name, path, loader=_SourceOnlyLoader(name, str(path))
        )
        if spec is None or spec.loader is None:
            raise ImportError(f"cannot create module spec for {path}")
        module = importlib.util.module_from_spec(spec)
        previous = sys.modules.get(name)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            if previous is not None:
                sys.modules[name] = previous
            else:
                sys.modules.pop(name, None)
            raise
        return module
