"""Bulk command publishing and its cooldown/busy scheduling."""

from __future__ import annotations

import contextlib
import time
from collections.abc import Callable, Iterable, Iterator
from typing import Any, Protocol

import anyio
from anyio.abc import TaskGroup

from .commands.registry import CommandDefinition, CommandRegistry
from .logging import get_logger
from .schemas import encode_commands
from .timers import Timers

logger = get_logger(__name__)

DEFAULT_COOLDOWN = 3.0
DEFAULT_BUSY_RETRY = 1.0

_PUBLISH_TIMER = "publish"


class CommandSync(Protocol):
    async def bulk_overwrite_commands(self, payload: list[dict[str, Any]]) -> None: ...


class InteractionTracker:
    """Counts interactions currently being dispatched."""

    def __init__(self) -> None:
        self.active = 0

    @contextlib.contextmanager
    def track(self) -> Iterator[None]:
        self.active += 1
        try:
            yield
        finally:
            self.active -= 1

    @property
    def busy(self) -> bool:
        return self.active > 0


class CommandPublisher:
    """Replaces the remote command set with the registry's contents."""

    def __init__(
        self,
        registry: CommandRegistry,
        sync: CommandSync,
        *,
        publish_empty: bool = False,
    ) -> None:
        self._registry = registry
        self._sync = sync
        self.publish_empty = publish_empty

    def payload(
        self, definitions: Iterable[CommandDefinition] | None = None
    ) -> list[dict[str, Any]]:
        if definitions is None:
            definitions = self._registry.all()
        return encode_commands(definitions)

    async def publish(
        self, definitions: Iterable[CommandDefinition] | None = None
    ) -> bool:
        payload = self.payload(definitions)
        if not payload and not self.publish_empty:
            # An empty bulk overwrite would deregister every remote command.
            logger.warning("publish.skipped_empty")
            return False
        logger.info("publish.start", count=len(payload))
        try:
            await self._sync.bulk_overwrite_commands(payload)
        except Exception as exc:
            logger.error(
                "publish.failed",
                count=len(payload),
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return False
        logger.info("publish.done", count=len(payload))
        return True


class PublishScheduler:
    """Keeps at most one publish pending, spaced by ``cooldown`` seconds.

    While interactions are in flight the publish is re-checked every
    ``busy_retry`` seconds instead of firing.
    """

    def __init__(
        self,
        publisher: CommandPublisher,
        tracker: InteractionTracker,
        *,
        cooldown: float = DEFAULT_COOLDOWN,
        busy_retry: float = DEFAULT_BUSY_RETRY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._publisher = publisher
        self._tracker = tracker
        self.cooldown = cooldown
        self.busy_retry = busy_retry
        self._clock = clock
        self._timers: Timers | None = None
        self._lock = anyio.Lock()
        self.last_publish: float | None = None

    def attach(self, task_group: TaskGroup) -> None:
        self._timers = Timers(task_group)

    def detach(self) -> None:
        self.cancel()
        self._timers = None

    @property
    def pending(self) -> bool:
        return self._timers is not None and self._timers.pending(_PUBLISH_TIMER)

    def delay(self) -> float:
        if self.last_publish is None:
            return 0.0
        elapsed = self._clock() - self.last_publish
        return max(0.0, self.cooldown - elapsed)

    def schedule(self) -> None:
        if self._timers is None:
            logger.warning("publish.scheduler_inactive")
            return
        if self._tracker.busy:
            logger.info("publish.paused", active_interactions=self._tracker.active)
            self._timers.schedule(_PUBLISH_TIMER, self.busy_retry, self._recheck)
            return
        delay = self.delay()
        self._timers.schedule(_PUBLISH_TIMER, delay, self._fire)
        if delay > 0:
            logger.info("publish.scheduled", delay=round(delay, 3))

    def cancel(self) -> bool:
        if self._timers is None:
            return False
        return self._timers.cancel(_PUBLISH_TIMER)

    async def _recheck(self) -> None:
        self.schedule()

    async def _fire(self) -> None:
        if self._tracker.busy:
            self.schedule()
            return
        async with self._lock:
            self.last_publish = self._clock()
            await self._publisher.publish()
