"""Deferred actions run by the frame loop.

Timed effects (sequence dwell, transition clip expiry, the activation flag)
are not fire-and-forget timers. They are queued here with a due time and
run by the engine at the top of a frame, on the same thread of control that
owns the level states. Each action can be cancelled, individually or by key,
and may carry a guard that is checked right before it runs, which is how a
stale effect (one whose level has since been changed by something newer)
is dropped instead of clobbering the newer state.
"""

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(order=True)
class DeferredAction:
    """A queued callback.

    Ordering is by due time, then by scheduling order, so actions due at
    the same instant run first-scheduled first.
    """

    due: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    key: str = field(default="", compare=False)
    guard: Optional[Callable[[], bool]] = field(default=None, compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class DeferredScheduler:
    """Min-heap of deferred actions keyed by due time."""

    def __init__(self) -> None:
        self._queue: List[DeferredAction] = []
        self._counter = itertools.count()

    def schedule(
        self,
        due: float,
        callback: Callable[[], None],
        *,
        key: str = "",
        guard: Optional[Callable[[], bool]] = None,
    ) -> DeferredAction:
        """Queue ``callback`` to run once the clock reaches ``due``.

        Args:
            due: Absolute time (same clock the engine passes to run_due)
            callback: Zero-argument callable
            key: Optional grouping key for cancel_key()
            guard: Optional check evaluated right before running; when it
                returns False the action is dropped

        Returns:
            The queued action (call ``cancel()`` on it to drop it)
        """
        action = DeferredAction(due, next(self._counter), callback, key, guard)
        heapq.heappush(self._queue, action)
        return action

    def cancel_key(self, key: str) -> int:
        """Cancel every pending action scheduled under ``key``."""
        cancelled = 0
        for action in self._queue:
            if action.key == key and not action.cancelled:
                action.cancel()
                cancelled += 1
        return cancelled

    def clear(self) -> None:
        for action in self._queue:
            action.cancel()
        self._queue.clear()

    def run_due(self, now: float) -> int:
        """Run every action due at or before ``now``.

        Actions scheduled by a running callback with a due time not later
        than ``now`` run in the same call.

        Returns:
            Number of callbacks actually invoked
        """
        ran = 0
        while self._queue and self._queue[0].due <= now:
            action = heapq.heappop(self._queue)
            if action.cancelled:
                continue
            if action.guard is not None and not action.guard():
                logger.debug(f"Dropped stale deferred action {action.key or action.sequence}")
                continue
            action.callback()
            ran += 1
        return ran

    @property
    def pending_count(self) -> int:
        return sum(1 for action in self._queue if not action.cancelled)

    def has_pending(self, key: str) -> bool:
        return any(action.key == key and not action.cancelled for action in self._queue)

    def next_due(self) -> Optional[float]:
        for action in sorted(self._queue):
            if not action.cancelled:
                return action.due
        return None
