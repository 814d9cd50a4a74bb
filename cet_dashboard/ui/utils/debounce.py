"""
Timer coalescing for text filters.

The grid runs on a single cooperative loop: callbacks scheduled here only fire
when the owner calls ``run_due()`` (once per event-loop turn or per Streamlit
rerun) or ``flush()``. An asyncio event loop can be used instead of
``DeferredScheduler`` since it provides the same ``call_later`` contract.
"""

from __future__ import annotations

import heapq
import itertools
import time
from typing import Any, Callable, Dict, Hashable, List, Optional, Protocol, Tuple


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        ...


class _DeferredHandle:
    __slots__ = ("deadline", "callback", "args", "cancelled")

    def __init__(self, deadline: float, callback: Callable[..., Any], args: Tuple[Any, ...]):
        self.deadline = deadline
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class DeferredScheduler:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._queue: List[Tuple[float, int, _DeferredHandle]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _DeferredHandle:
        handle = _DeferredHandle(self._clock() + max(delay, 0.0), callback, args)
        heapq.heappush(self._queue, (handle.deadline, next(self._counter), handle))
        return handle

    def pending(self) -> int:
        return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def run_due(self) -> int:
        """Fire every live callback whose deadline has passed; return how many ran."""
        now = self._clock()
        fired = 0
        while self._queue and self._queue[0][0] <= now:
            _, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            handle.callback(*handle.args)
            fired += 1
        return fired

    def flush(self) -> int:
        """Fire every pending callback now, in deadline order."""
        fired = 0
        while self._queue:
            _, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            handle.callback(*handle.args)
            fired += 1
        return fired


class Debouncer:
    """Keyed trailing-edge debounce: each call cancels the pending one for its key."""

    def __init__(self, scheduler: Scheduler, delay_ms: int = 300):
        self.scheduler = scheduler
        self.delay = max(delay_ms, 0) / 1000.0
        self._pending: Dict[Hashable, Tuple[TimerHandle, Callable[[], None]]] = {}

    def call(self, key: Hashable, callback: Callable[..., Any], *args: Any) -> None:
        self.cancel(key)

        def _fire() -> None:
            self._pending.pop(key, None)
            callback(*args)

        self._pending[key] = (self.scheduler.call_later(self.delay, _fire), _fire)

    def cancel(self, key: Hashable) -> bool:
        entry: Optional[Tuple[TimerHandle, Callable[[], None]]] = self._pending.pop(key, None)
        if entry is None:
            return False
        entry[0].cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._pending):
            self.cancel(key)

    def flush(self) -> int:
        """Run every pending callback now instead of waiting for its timer."""
        fired = 0
        for key in list(self._pending):
            entry = self._pending.get(key)
            if entry is None:
                continue
            handle, fire = entry
            handle.cancel()
            fire()
            fired += 1
        return fired

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending
