"""Single-slot cancellable timer.

A TimerSlot holds at most one pending callback. Arming it again replaces
the pending callback, so a supervisor never has two escalation steps
queued at once.
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING, final

import anyio

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import anyio.abc


@final
class TimerSlot:
    """Runs one callback after a delay or after an awaitable completes.

    Work runs as a task in the task group passed to the constructor. The
    callback is synchronous and is skipped if the slot was cancelled or
    re-armed in the meantime.
    """

    __slots__ = ("_scope", "_task_group")

    def __init__(self, task_group: anyio.abc.TaskGroup) -> None:
        """Initialize the slot.

        Args:
            task_group: Task group that runs the waiting tasks.
        """
        self._task_group = task_group
        self._scope: anyio.CancelScope | None = None

    @property
    def armed(self) -> bool:
        """Return True while a callback is pending."""
        return self._scope is not None

    def arm(self, delay: float, callback: Callable[[], None]) -> None:
        """Call ``callback`` after ``delay`` seconds, replacing any pending one."""
        self.after(partial(anyio.sleep, delay), callback)

    def after(
        self,
        waiter: Callable[[], Awaitable[object]],
        callback: Callable[[], None],
    ) -> None:
        """Call ``callback`` once ``waiter()`` completes, replacing any pending one.

        Args:
            waiter: Async callable to await before firing.
            callback: Function called when the waiter completes.
        """
        self.cancel()
        scope = anyio.CancelScope()
        self._scope = scope
        self._task_group.start_soon(self._fire, scope, waiter, callback)

    def cancel(self) -> None:
        """Drop the pending callback, if any."""
        if self._scope is not None:
            self._scope.cancel()
            self._scope = None

    async def _fire(
        self,
        scope: anyio.CancelScope,
        waiter: Callable[[], Awaitable[object]],
        callback: Callable[[], None],
    ) -> None:
        with scope:
            await waiter()
        if scope.cancel_called or self._scope is not scope:
            return
        self._scope = None
        callback()
