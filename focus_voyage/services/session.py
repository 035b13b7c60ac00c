"""Session lifecycle: idle -> active -> completed | abandoned.

``SessionManager`` owns the live ``SessionContext`` and is the only thing that
starts or stops the ``SignalMonitor``. Store failures never block a
transition: a session the store cannot create becomes local-only, and a
session the store cannot update is still finalized locally.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from focus_voyage.models.events import UserResponse
from focus_voyage.models.session import (
    NewSession,
    PersistenceTag,
    Session,
    SessionSnapshot,
    SessionStatus,
    make_local_id,
)
from focus_voyage.services.clock import PrecisionClock
from focus_voyage.services.errors import SessionStateError, ValidationError
from focus_voyage.services.monitor import SignalMonitor
from focus_voyage.services.persistence import PersistenceAdapter
from focus_voyage.services.recorder import EventRecorder
from focus_voyage.services.statistics import StatisticsEngine

logger = logging.getLogger(__name__)

Listener = Callable[[SessionSnapshot], None]


class SessionContext:
    """State of the one active session"""

    def __init__(self, session: Session, recorder: EventRecorder):
        self.session = session
        self.recorder = recorder
        self.exploring = False


class SessionManager:
    """Starts and finalizes focus sessions"""

    def __init__(
        self,
        monitor: SignalMonitor,
        store: Optional[PersistenceAdapter] = None,
        clock: Optional[PrecisionClock] = None,
        flush_timeout: float = 5.0,
    ):
        self.monitor = monitor
        self.store = store
        self.clock = clock or monitor.clock
        self.flush_timeout = flush_timeout
        self.context: Optional[SessionContext] = None
        self.session: Optional[Session] = None  # active or most recently finished
        self.history: List[Session] = []
        self._listeners: List[Listener] = []
        self._starting = False
        self.monitor.on_change = self._notify

    # Consumer surface

    @property
    def active(self) -> bool:
        return self.context is not None

    @property
    def status(self) -> Optional[SessionStatus]:
        return self.session.status if self.session else None

    @property
    def distraction_count(self) -> int:
        return self.session.distraction_count if self.session else 0

    @property
    def is_currently_distracted(self) -> bool:
        return self.active and self.monitor.is_currently_distracted

    @property
    def events(self):
        return list(self.context.recorder.events) if self.context else []

    @property
    def elapsed_ms(self) -> float:
        if self.session is None:
            return 0.0
        if self.session.actual_duration_ms is not None:
            return self.session.actual_duration_ms
        return self.clock.duration(self.session.start_mark)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            status=self.status,
            session_id=self.session.id if self.session else None,
            distraction_count=self.distraction_count,
            is_currently_distracted=self.is_currently_distracted,
            exploring=bool(self.context and self.context.exploring),
            elapsed_ms=self.elapsed_ms,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for state changes; returns an unsubscribe callable"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Session listener failed: {e}", exc_info=True)

    # Lifecycle

    async def start(
        self,
        destination_id: str,
        owner_id: str,
        planned_duration_minutes: Optional[int] = None,
    ) -> Session:
        """Begin a session and start detection

        Raises:
            ValidationError: If an identifier is missing or the planned duration is negative
            SessionStateError: If a session is already active or starting
        """
        if not destination_id or not str(destination_id).strip():
            raise ValidationError("destination_id is required")
        if not owner_id or not str(owner_id).strip():
            raise ValidationError("owner_id is required")
        if planned_duration_minutes is not None and planned_duration_minutes < 0:
            raise ValidationError("planned_duration_minutes cannot be negative")
        if self.active or self._starting:
            raise SessionStateError("A session is already active")

        self._starting = True
        try:
            params = NewSession(
                owner_id=owner_id,
                destination_id=destination_id,
                created_at=datetime.now(),
                start_mark=self.clock.now(),
                planned_duration_minutes=planned_duration_minutes,
            )
            session = await self._create(params)
        finally:
            self._starting = False

        recorder = EventRecorder(session, self.clock, self.store)
        self.context = SessionContext(session, recorder)
        self.session = session
        self.monitor.activate(recorder)
        logger.info(
            f"Started session {session.id} ({session.persistence.value}) "
            f"towards {destination_id}"
        )
        self._notify()
        return session

    async def _create(self, params: NewSession) -> Session:
        if self.store is not None:
            try:
                session = await self.store.create_session(params)
                # Local marks win over whatever the store echoes back
                session.start_mark = params.start_mark
                session.status = SessionStatus.ACTIVE
                session.persistence = PersistenceTag.REMOTE
                session.distraction_count = 0
                return session
            except Exception as e:
                logger.error(f"Failed to create session in store, continuing locally: {e}")

        return Session(
            id=make_local_id(),
            owner_id=params.owner_id,
            destination_id=params.destination_id,
            created_at=params.created_at,
            start_mark=params.start_mark,
            planned_duration_minutes=params.planned_duration_minutes,
            persistence=PersistenceTag.LOCAL_ONLY,
            synced=False,
        )

    async def end(self, strict: bool = False) -> Optional[Session]:
        """Complete the active session.

        Returns the finalized session, or None when there is nothing to end
        (``strict`` raises SessionStateError instead).
        """
        return await self._finish(SessionStatus.COMPLETED, strict)

    async def abandon(self, strict: bool = False) -> Optional[Session]:
        """Give up on the active session"""
        return await self._finish(SessionStatus.ABANDONED, strict)

    async def _finish(self, status: SessionStatus, strict: bool) -> Optional[Session]:
        context = self.context
        if context is None:
            if strict:
                raise SessionStateError("No active session")
            logger.info("No active session to end")
            return None

        # Detection stops before anything is read
        self.monitor.deactivate()
        self.context = None
        session = context.session
        end_mark = self.clock.now()
        session.end_mark = end_mark
        session.end_time = datetime.now()
        session.actual_duration_ms = self.clock.duration(session.start_mark, end_mark)
        session.transition_to(status)
        self._notify()

        await context.recorder.flush(self.flush_timeout)
        session.statistics = StatisticsEngine.summarize(
            session.actual_duration_ms,
            context.recorder.events,
            session.planned_duration_ms,
        )

        result = await self._store_final(session)
        # A session started while the store was busy stays current
        if self.context is None:
            self.session = result
        if result.status == SessionStatus.COMPLETED:
            self.history.insert(0, result)
        logger.info(
            f"Session {result.id} {result.status.value} after "
            f"{self.clock.format_text(result.actual_duration_ms)} with "
            f"{result.distraction_count} distractions"
        )
        self._notify()
        return result

    async def _store_final(self, session: Session) -> Session:
        if self.store is None or session.is_local:
            session.synced = False
            return session

        patch: Dict[str, Any] = {
            "end_time": session.end_time,
            "end_mark": session.end_mark,
            "actual_duration_ms": session.actual_duration_ms,
            "distraction_count": session.distraction_count,
            "status": session.status,
            "statistics": session.statistics,
        }
        try:
            stored = await self.store.update_session(session.id, patch)
        except Exception as e:
            logger.error(f"Failed to store final state of session {session.id}: {e}")
            session.synced = False
            return session
        stored.synced = True
        return stored

    # During a session

    def record_response(self, response: UserResponse):
        """Attach the user's answer to the latest distraction.

        ``exploring`` pauses detection; ``returned`` resumes it.
        """
        if self.context is None:
            raise SessionStateError("No active session")
        response = UserResponse(response)
        event = self.context.recorder.record_response(response)
        if response == UserResponse.EXPLORING:
            self.set_exploring(True)
        elif response == UserResponse.RETURNED and self.context.exploring:
            self.set_exploring(False)
        else:
            self._notify()
        return event

    def set_exploring(self, exploring: bool) -> None:
        """Pause or resume detection without ending the session"""
        if self.context is None:
            raise SessionStateError("No active session")
        if self.context.exploring == exploring:
            return
        self.context.exploring = exploring
        if exploring:
            self.monitor.pause()
        else:
            self.monitor.resume()
        self._notify()

    async def load_history(self, owner_id: str) -> List[Session]:
        """Completed sessions of an owner, from the store when it answers"""
        if self.store is not None:
            try:
                sessions = await self.store.list_completed_sessions(owner_id)
                logger.debug(f"Loaded {len(sessions)} sessions for {owner_id}")
                return sessions
            except Exception as e:
                logger.error(f"Failed to load session history, using local history: {e}")
        return [session for session in self.history if session.owner_id == owner_id]
