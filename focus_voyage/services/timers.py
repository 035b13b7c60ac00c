"""Owned timer handles for detectors"""
import asyncio
import logging
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay in seconds"""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class LoopScheduler:
    """Schedules callbacks on the running asyncio event loop"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), callback)


class TimerHandle:
    """A single timer owned by a TimerGroup.

    The callback is wrapped so that a handle which has been cancelled never
    runs its callback, even if the underlying scheduler already queued it.
    """

    def __init__(self, group: "TimerGroup", callback: Callable[[], None]):
        self._group = group
        self._callback = callback
        self._inner: Optional[Cancellable] = None
        self.cancelled = False
        self.fired = False

    def _run(self) -> None:
        if self.cancelled:
            return
        self.fired = True
        self._group._discard(self)
        self._callback()

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._inner is not None:
            self._inner.cancel()
        self._group._discard(self)

    @property
    def pending(self) -> bool:
        return not (self.cancelled or self.fired)


class TimerGroup:
    """Set of timers released together.

    Each detector owns one group; ``cancel_all`` is called on deactivation.
    Also usable as a context manager, cancelling everything on exit.
    """

    def __init__(self, scheduler: Scheduler):
        self.scheduler = scheduler
        self._handles: List[TimerHandle] = []
        self.closed = False

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self, callback)
        if self.closed:
            # A closed group hands out dead handles
            handle.cancelled = True
            return handle
        handle._inner = self.scheduler.call_later(delay, handle._run)
        self._handles.append(handle)
        return handle

    def _discard(self, handle: TimerHandle) -> None:
        try:
            self._handles.remove(handle)
        except ValueError:
            pass

    def cancel_all(self) -> int:
        """Cancel every pending handle, returns how many were cancelled"""
        handles = list(self._handles)
        for handle in handles:
            handle.cancel()
        self._handles.clear()
        if handles:
            logger.debug(f"Cancelled {len(handles)} pending timers")
        return len(handles)

    def close(self) -> None:
        self.cancel_all()
        self.closed = True

    def reopen(self) -> None:
        self.closed = False

    @property
    def pending_count(self) -> int:
        return len(self._handles)

    def __enter__(self) -> "TimerGroup":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
