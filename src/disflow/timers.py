"""Keyed one-shot timers running on an anyio task group."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Hashable

import anyio
from anyio.abc import TaskGroup

TimerCallback = Callable[[], Awaitable[None]]


class Timers:
    """At most one pending timer per key.

    Scheduling a key again cancels the pending timer for that key. A timer
    can only be cancelled while it is still waiting; once its callback has
    started it runs to completion.
    """

    def __init__(
        self,
        task_group: TaskGroup,
        *,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        self._task_group = task_group
        self._sleep = sleep
        self._scopes: dict[Hashable, anyio.CancelScope] = {}

    def schedule(self, key: Hashable, delay: float, callback: TimerCallback) -> None:
        self.cancel(key)
        scope = anyio.CancelScope()
        self._scopes[key] = scope
        self._task_group.start_soon(self._fire, key, scope, max(0.0, delay), callback)

    def cancel(self, key: Hashable) -> bool:
        scope = self._scopes.pop(key, None)
        if scope is None:
            return False
        scope.cancel()
        return True

    def cancel_all(self) -> int:
        scopes = list(self._scopes.values())
        self._scopes.clear()
        for scope in scopes:
            scope.cancel()
        return len(scopes)

    def pending(self, key: Hashable) -> bool:
        return key in self._scopes

    def __len__(self) -> int:
        return len(self._scopes)

    async def _fire(
        self,
        key: Hashable,
        scope: anyio.CancelScope,
        delay: float,
        callback: TimerCallback,
    ) -> None:
        with scope:
            await self._sleep(delay)
        if scope.cancel_called:
            return
        if self._scopes.get(key) is scope:
            del self._scopes[key]
        await callback()
