"""Turns accepted transitions into counted, persisted distraction events.

The counter and the local event list are the source of truth: both change
synchronously when a transition arrives, before any store call is issued.
Store writes run in the background, chained so they reach the store in
detection order. A failed write is logged and dropped; it never touches the
counter.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional, Set

from focus_voyage.models.events import (
    DistractionEnded,
    DistractionEvent,
    DistractionStarted,
    SignalType,
    Transition,
    UserResponse,
)
from focus_voyage.models.session import Session
from focus_voyage.services.clock import PrecisionClock
from focus_voyage.services.persistence import PersistenceAdapter

logger = logging.getLogger(__name__)


class EventRecorder:
    """Records the distraction events of one session"""

    def __init__(
        self,
        session: Session,
        clock: PrecisionClock,
        store: Optional[PersistenceAdapter] = None,
    ):
        self.session = session
        self.clock = clock
        self.store = store
        self.events: List[DistractionEvent] = []
        self._tail: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self.failed_writes = 0

    @property
    def count(self) -> int:
        return self.session.distraction_count

    @property
    def persists(self) -> bool:
        return self.store is not None and not self.session.is_local

    def __call__(self, transition: Transition) -> None:
        self.handle(transition)

    def handle(self, transition: Transition) -> None:
        if isinstance(transition, DistractionStarted):
            self._on_started(transition)
        elif isinstance(transition, DistractionEnded):
            self._on_ended(transition)
        else:
            raise TypeError(f"Unknown transition: {transition!r}")

    def _on_started(self, transition: DistractionStarted) -> DistractionEvent:
        self.session.distraction_count += 1
        event = DistractionEvent(
            session_id=self.session.id,
            signal_type=transition.signal_type,
            detected_at=transition.timestamp,
            detected_wall_time=self._wall_time(transition.timestamp),
        )
        self.events.append(event)
        logger.info(
            f"Distraction #{self.session.distraction_count} ({event.signal_type.value}) "
            f"in session {self.session.id}"
        )
        snapshot = event.model_copy()
        self._schedule(f"insert event {event.id}", lambda: self.store.insert_event(snapshot))
        return event

    def _on_ended(self, transition: DistractionEnded) -> Optional[DistractionEvent]:
        event = self.latest_unresolved(transition.signal_type)
        if event is None:
            logger.debug(f"No open {transition.signal_type.value} episode to resolve, end dropped")
            return None
        event.resolve(transition.duration_ms)
        logger.info(
            f"Distraction {event.signal_type.value} resolved after "
            f"{self.clock.format_text(event.duration_ms)}"
        )
        snapshot = event.model_copy()
        self._schedule(f"resolve event {event.id}", lambda: self._persist_resolution(snapshot))
        return event

    async def _persist_resolution(self, event: DistractionEvent) -> None:
        patch = {"duration_ms": event.duration_ms, "resolved": True}
        matched = await self.store.resolve_event(event.session_id, event.signal_type, patch)
        if not matched:
            logger.debug(f"No stored record for event {event.id}, inserting it resolved")
            await self.store.insert_event(event)

    def latest_unresolved(self, signal_type: SignalType) -> Optional[DistractionEvent]:
        for event in reversed(self.events):
            if event.signal_type == signal_type and not event.resolved:
                return event
        return None

    def record_response(self, response: UserResponse) -> Optional[DistractionEvent]:
        """Attach the user's response to the most recent event"""
        if not self.events:
            logger.debug("No distraction event to attach a response to")
            return None
        event = self.events[-1]
        event.user_response = UserResponse(response)
        self._schedule(
            f"update response of event {event.id}",
            lambda: self.store.update_event_response(event.id, event.user_response)
        )
        return event

    def _wall_time(self, timestamp: float) -> datetime:
        return datetime.now() - timedelta(milliseconds=self.clock.duration(timestamp))

    def _schedule(self, description: str, write: Callable[[], Awaitable[None]]) -> None:
        if not self.persists:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, skipped: {description}")
            return
        task = loop.create_task(self._run_after(self._tail, description, write))
        self._tail = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_after(
        self,
        previous: Optional[asyncio.Task],
        description: str,
        write: Callable[[], Awaitable[None]],
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        try:
            await write()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failed_writes += 1
            logger.error(f"Failed to {description}: {e}")

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait for queued writes; False when some are still pending at the timeout"""
        pending = set(self._pending)
        if not pending:
            return True
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} event writes still pending after {timeout}s")
            return False
        return True
