from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Literal

import anyio
from anyio.abc import TaskStatus
from watchfiles import Change, awatch

from .commands.loader import ModuleLoader
from .logging import get_logger
from .publish import PublishScheduler
from .timers import Timers

logger = get_logger(__name__)

DEFAULT_DEBOUNCE = 0.3
DEFAULT_STABILITY_ATTEMPTS = 5
DEFAULT_STABILITY_INTERVAL = 0.05

WatchState = Literal["disabled", "watching"]


class HotReloader:
    """Watches the commands tree and reloads files as they change."""

    def __init__(
        self,
        loader: ModuleLoader,
        scheduler: PublishScheduler,
        *,
        debounce: float = DEFAULT_DEBOUNCE,
        stability_attempts: int = DEFAULT_STABILITY_ATTEMPTS,
        stability_interval: float = DEFAULT_STABILITY_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._loader = loader
        self._scheduler = scheduler
        self.debounce = debounce
        self.stability_attempts = stability_attempts
        self.stability_interval = stability_interval
        self._sleep = sleep
        self._state: WatchState = "disabled"
        self._debounce: Timers | None = None
        self._stop_event: anyio.Event | None = None

    @property
    def root(self) -> Path:
        return self._loader.root

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state == "watching"

    @property
    def pending(self) -> int:
        return 0 if self._debounce is None else len(self._debounce)

    async def run(
        self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED
    ) -> None:
        """Watch until ``stop()`` is called or the watcher fails."""
        if self._state == "watching":
            logger.warning("hot_reload.already_enabled", root=str(self.root))
            task_status.started()
            return
        if not self.root.is_dir():
            logger.warning("hot_reload.root_missing", root=str(self.root))
            task_status.started()
            return

        stop_event = anyio.Event()
        self._stop_event = stop_event
        try:
            async with anyio.create_task_group() as tg:
                self._debounce = Timers(tg, sleep=self._sleep)
                self._scheduler.attach(tg)
                self._state = "watching"
                logger.info("hot_reload.started", root=str(self.root))
                task_status.started()
                try:
                    async for changes in awatch(self.root, stop_event=stop_event):
                        for change, raw_path in sorted(changes, key=lambda item: item[1]):
                            self.on_change(change, Path(raw_path).resolve())
                except anyio.get_cancelled_exc_class():
                    raise
                except Exception as exc:
                    logger.error(
                        "hot_reload.watch_failed",
                        root=str(self.root),
                        error=str(exc),
                        error_type=exc.__class__.__name__,
                    )
                self.stop()
        finally:
            self._state = "disabled"
            self._debounce = None
            self._scheduler.detach()

    def stop(self) -> None:
        if self._state == "disabled":
            return
        self._state = "disabled"
        if self._stop_event is not None:
            self._stop_event.set()
        if self._debounce is not None:
            self._debounce.cancel_all()
        self._scheduler.cancel()
        logger.info("hot_reload.stopped", root=str(self.root))

    def on_change(self, change: Change, path: Path) -> None:
        """Debounce one filesystem event; the last event per path wins."""
        if self._debounce is None or self._state != "watching":
            return
        if not self._loader.is_command_file(path):
            return
        logger.debug(
            "hot_reload.event",
            file=self._loader.relative(path),
            change=change.name,
        )
        self._debounce.schedule(path, self.debounce, lambda: self._handle(path))

    async def _handle(self, path: Path) -> None:
        try:
            if path.exists():
                await self.reload_file(path)
            else:
                self.unload_file(path)
        except Exception as exc:
            logger.exception(
                "hot_reload.handle_failed",
                file=self._loader.relative(path),
                error=str(exc),
                error_type=exc.__class__.__name__,
            )

    async def reload_file(self, path: Path) -> bool:
        try:
            await self.wait_for_stability(path)
        except FileNotFoundError:
            self.unload_file(path)
            return False
        removed = self._loader.unload(path)
        result = self._loader.load_file(path)
        if result.ok:
            logger.info(
                "hot_reload.reloaded",
                file=self._loader.relative(path),
                commands=list(result.commands),
            )
        else:
            logger.error(
                "hot_reload.reload_failed",
                file=self._loader.relative(path),
                error=result.error,
            )
        if result.ok or removed:
            self._schedule_publish()
        return result.ok

    def unload_file(self, path: Path) -> list[str]:
        removed = self._loader.unload(path)
        if removed:
            logger.info(
                "hot_reload.unloaded",
                file=self._loader.relative(path),
                commands=removed,
            )
            self._schedule_publish()
        return removed

    def _schedule_publish(self) -> None:
        # A reload that was already running when stop() hit must not
        # leave a publish timer behind.
        if self._state != "watching":
            logger.info("hot_reload.publish_skipped", root=str(self.root))
            return
        self._scheduler.schedule()

    async def wait_for_stability(self, path: Path) -> None:
        """Wait until the file size stops changing between polls."""
        last_size = -1
        for attempt in range(self.stability_attempts):
            await self._sleep(self.stability_interval)
            try:
                size = path.stat().st_size
            except FileNotFoundError:
                if attempt == self.stability_attempts - 1:
                    raise
                continue
            if size == last_size and size > 0:
                return
            last_size = size
